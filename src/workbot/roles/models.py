"""Role label models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from ..config import is_snowflake


class RoleLabelEntry(BaseModel):
    """Display alias shown next to a member's name in shift announcements."""

    user_id: str = Field(..., description="Discord user id the label belongs to.")
    label: str = Field(..., description="Human readable role label, e.g. a worker name.")

    @field_validator("user_id", mode="before")
    @classmethod
    def _normalize_user_id(cls, value: Any) -> str:
        normalized = str(value).strip()
        if not is_snowflake(normalized):
            raise ValueError(f"'{normalized}' is not a Discord user id")
        return normalized

    @field_validator("label")
    @classmethod
    def _normalize_label(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Role label must not be empty")
        return normalized


__all__ = ["RoleLabelEntry"]
