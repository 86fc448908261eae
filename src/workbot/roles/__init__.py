"""Role label models and loader exports."""

from .loader import RoleLabelError, RoleLabelLoader, resolve_role_labels
from .models import RoleLabelEntry

__all__ = [
    "RoleLabelEntry",
    "RoleLabelError",
    "RoleLabelLoader",
    "resolve_role_labels",
]
