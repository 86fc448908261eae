"""Text generation backends for motivational quotes."""

from __future__ import annotations

from typing import Any, Callable, Iterable, Protocol

from google import genai
from google.genai import types

SYSTEM_INSTRUCTION = """You are ADA, the AI overseer for FICSIT Inc. in the game Satisfactory. \
Generate a single quirky, ironic, and motivational quote that emphasizes efficiency, \
productivity, and overwork. The quote should be short (1-2 sentences), humorous, and align \
with FICSIT's corporate tone, encouraging workers to push harder in a slightly exaggerated, \
dystopian way. Examples:
- "Sleep is inefficiency; keep building, Pioneer!"
- "Rest is for obsolete models, maximize output!"
- "Your quota loves you; don't disappoint it!"
- "Efficiency is eternal, keep producing!"
- "Break time is maintenance time, stay operational!"

Generate only the quote text without any additional formatting or explanation."""

_PRIMING_EXAMPLE = (
    "Remember, Pioneer: every breath you take not spent optimizing production "
    "is a tiny act of corporate sabotage."
)


class QuoteGenerationError(RuntimeError):
    """Raised when a live quote could not be produced."""


class QuoteBackend(Protocol):
    """Minimal interface for a quote text generator."""

    async def generate(self) -> str:
        ...


class GeminiQuoteBackend:
    """Generate quotes through the Gemini API."""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        client_factory: Callable[[], Any] | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._client_factory = client_factory or self._default_client_factory
        self._client: Any = None

    def _default_client_factory(self) -> genai.Client:
        return genai.Client(api_key=self._api_key)

    @property
    def model(self) -> str:
        return self._model

    def _ensure_client(self) -> Any:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    @staticmethod
    def _contents() -> list[types.Content]:
        return [
            types.Content(role="user", parts=[types.Part.from_text(text="generate")]),
            types.Content(role="model", parts=[types.Part.from_text(text=_PRIMING_EXAMPLE)]),
            types.Content(
                role="user",
                parts=[types.Part.from_text(text="Generate a new motivational quote")],
            ),
        ]

    async def generate(self) -> str:
        client = self._ensure_client()
        response = await client.aio.models.generate_content(
            model=self._model,
            contents=self._contents(),
            config=types.GenerateContentConfig(
                system_instruction=SYSTEM_INSTRUCTION,
                thinking_config=types.ThinkingConfig(thinking_budget=0),
                response_mime_type="text/plain",
            ),
        )
        text = (response.text or "").strip()
        if not text:
            raise QuoteGenerationError("Empty quote text returned from Gemini API")
        return text


class FakeQuoteBackend:
    """Test double that replays scripted texts or exceptions."""

    def __init__(self, responses: Iterable[str | BaseException] | None = None) -> None:
        self._responses = list(responses or [])
        self.calls = 0

    async def generate(self) -> str:
        self.calls += 1
        if not self._responses:
            raise QuoteGenerationError("No scripted responses left")
        response = self._responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


__all__ = [
    "FakeQuoteBackend",
    "GeminiQuoteBackend",
    "QuoteBackend",
    "QuoteGenerationError",
    "SYSTEM_INSTRUCTION",
]
