"""Membership tracking for the target channel."""

from .models import MembershipChange, RosterCandidate, TrackedIdentity
from .tracker import MembershipListener, MembershipTracker, RosterSource

__all__ = [
    "MembershipChange",
    "MembershipListener",
    "MembershipTracker",
    "RosterCandidate",
    "RosterSource",
    "TrackedIdentity",
]
