"""WorkBot diagnostics CLI."""

from __future__ import annotations

import argparse
import asyncio
import json

from pydantic import ValidationError

from workbot.config import WorkbotSettings
from workbot.formatting import render_shift_message
from workbot.quotes import GeminiQuoteBackend, QuoteBackend, QuoteProvider
from workbot.roles import RoleLabelError, resolve_role_labels


def load_settings() -> WorkbotSettings:
    try:
        return WorkbotSettings()
    except ValidationError as exc:
        print(f"Configuration invalid: {exc}")
        raise SystemExit(1)


def build_backend(settings: WorkbotSettings) -> QuoteBackend:
    return GeminiQuoteBackend(settings.gemini_api_key.get_secret_value(), settings.gemini_model)


def build_provider(settings: WorkbotSettings) -> QuoteProvider:
    return QuoteProvider(build_backend(settings), capacity=settings.max_cached_quotes)


def cmd_config(args: argparse.Namespace) -> None:
    settings = load_settings()
    print(json.dumps(settings.redacted(), indent=2))


def cmd_roles(args: argparse.Namespace) -> None:
    settings = load_settings()
    try:
        labels = resolve_role_labels(settings)
    except RoleLabelError as exc:
        print(f"Role labels invalid: {exc}")
        raise SystemExit(1)
    print(json.dumps(labels, indent=2, sort_keys=True))


def cmd_preview(args: argparse.Namespace) -> None:
    print(render_shift_message(args.name, args.duration_ms, args.quote, args.role))


def cmd_quote(args: argparse.Namespace) -> None:
    settings = load_settings()
    provider = build_provider(settings)
    quote = asyncio.run(provider.get_quote())
    print(
        json.dumps(
            {
                "text": quote.text,
                "is_fallback": quote.is_fallback,
                "generated_at": quote.generated_at.isoformat(),
            },
            indent=2,
        )
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="WorkBot diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_config = sub.add_parser("config", help="Validate settings and print them with secrets redacted")
    p_config.set_defaults(func=cmd_config)

    p_roles = sub.add_parser("roles", help="Print the resolved role label mapping")
    p_roles.set_defaults(func=cmd_roles)

    p_preview = sub.add_parser("preview", help="Render a sample shift message")
    p_preview.add_argument("--name", default="Pioneer")
    p_preview.add_argument("--role", default=None)
    p_preview.add_argument("--duration-ms", type=int, default=3_600_000)
    p_preview.add_argument("--quote", default="The factory must grow!")
    p_preview.set_defaults(func=cmd_preview)

    p_quote = sub.add_parser("quote", help="Fetch one quote from the configured backend")
    p_quote.set_defaults(func=cmd_quote)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
