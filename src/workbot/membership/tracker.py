"""Authoritative set of tracked identities, reconciled against the guild roster."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Mapping, Protocol

from .models import MembershipChange, RosterCandidate, TrackedIdentity

logger = logging.getLogger(__name__)


class RosterSource(Protocol):
    """Provides the current guild roster with channel visibility resolved."""

    async def fetch_roster(self) -> Iterable[RosterCandidate]:
        ...


class MembershipListener(Protocol):
    """Receives identity lifecycle events from the tracker."""

    def identity_added(self, identity: TrackedIdentity) -> None:
        ...

    async def identity_removed(self, identity: TrackedIdentity) -> None:
        ...


class MembershipTracker:
    """Maintain the members who can see the target channel.

    ``refresh`` only ever adds or removes whole identities; it never touches
    session state directly. Removal notifies the listener before the identity
    is dropped so a forced session end can still resolve the display name.
    """

    def __init__(
        self,
        source: RosterSource,
        *,
        role_labels: Mapping[str, str] | None = None,
        listener: MembershipListener | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._source = source
        self._role_labels = dict(role_labels or {})
        self._listener = listener
        self._timeout = timeout
        self._identities: dict[str, TrackedIdentity] = {}
        self._refreshing = False

    def attach(self, listener: MembershipListener) -> None:
        self._listener = listener

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._identities

    def __len__(self) -> int:
        return len(self._identities)

    def get(self, user_id: str) -> TrackedIdentity | None:
        return self._identities.get(user_id)

    def user_ids(self) -> list[str]:
        return list(self._identities)

    def snapshot(self) -> list[TrackedIdentity]:
        return [
            TrackedIdentity(
                user_id=identity.user_id,
                display_name=identity.display_name,
                role_label=identity.role_label,
            )
            for identity in self._identities.values()
        ]

    def role_label_for(self, user_id: str) -> str | None:
        return self._role_labels.get(user_id)

    async def _fetch_visible(self) -> dict[str, RosterCandidate]:
        candidates = await asyncio.wait_for(self._source.fetch_roster(), timeout=self._timeout)
        visible: dict[str, RosterCandidate] = {}
        for candidate in candidates:
            if candidate.is_bot or not candidate.can_view_channel:
                continue
            visible[candidate.user_id] = candidate
        return visible

    async def refresh(self) -> MembershipChange | None:
        """Reconcile the tracked set with the current roster.

        Returns ``None`` when the roster could not be fetched (the previous
        set is kept) or when another refresh is already running.
        """

        if self._refreshing:
            logger.debug("Membership refresh already in progress; skipping")
            return None

        self._refreshing = True
        try:
            try:
                visible = await self._fetch_visible()
            except Exception as exc:
                logger.error(
                    "Failed to fetch guild roster; keeping current members",
                    extra={"error": str(exc) or type(exc).__name__, "tracked": len(self._identities)},
                )
                return None

            change = MembershipChange()

            for user_id, candidate in visible.items():
                existing = self._identities.get(user_id)
                if existing is not None:
                    existing.display_name = candidate.display_name
                    continue
                identity = TrackedIdentity(
                    user_id=user_id,
                    display_name=candidate.display_name,
                    role_label=self._role_labels.get(user_id),
                )
                self._identities[user_id] = identity
                if self._listener is not None:
                    self._listener.identity_added(identity)
                change.added.append(user_id)
                logger.info("New user added to monitoring", extra={"user_id": user_id})

            for user_id in [uid for uid in self._identities if uid not in visible]:
                identity = self._identities[user_id]
                if self._listener is not None:
                    try:
                        await self._listener.identity_removed(identity)
                    except Exception as exc:
                        logger.error(
                            "Listener failed while removing user",
                            extra={"user_id": user_id, "error": str(exc)},
                        )
                self._identities.pop(user_id, None)
                change.removed.append(user_id)
                logger.info("User removed from monitoring", extra={"user_id": user_id})

            change.total = len(self._identities)
            if change.changed:
                logger.info(
                    "Monitored users updated",
                    extra={
                        "total_users": change.total,
                        "added_users": len(change.added),
                        "removed_users": len(change.removed),
                    },
                )
            return change
        finally:
            self._refreshing = False


__all__ = ["MembershipListener", "MembershipTracker", "RosterSource"]
