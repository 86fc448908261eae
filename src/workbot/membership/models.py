"""Data models for membership tracking."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class RosterCandidate:
    """One guild member as reported by the roster source."""

    user_id: str
    display_name: str
    is_bot: bool = False
    can_view_channel: bool = False


@dataclass(slots=True)
class TrackedIdentity:
    user_id: str
    display_name: str
    role_label: str | None = None


@dataclass(slots=True)
class MembershipChange:
    """Outcome of one roster reconciliation."""

    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    total: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


__all__ = ["MembershipChange", "RosterCandidate", "TrackedIdentity"]
