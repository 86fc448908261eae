"""Role label loading utilities."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml
from pydantic import ValidationError

from ..config import WorkbotSettings
from .models import RoleLabelEntry


class RoleLabelError(RuntimeError):
    """Raised when one or more role label sources cannot be parsed."""


def _entries_from_document(document: Any) -> list[Any]:
    if isinstance(document, Mapping):
        return [{"user_id": key, "label": value} for key, value in document.items()]
    if isinstance(document, list):
        return document
    raise TypeError("expected a mapping of user ids to labels or a list of entries")


class RoleLabelLoader:
    """Loads role labels from YAML files on disk."""

    def __init__(self, search_paths: Iterable[Path] | None = None) -> None:
        paths = [Path(path) for path in (search_paths or [])]
        self._search_paths: list[Path] = [path for path in paths if path.exists()]

    @property
    def search_paths(self) -> list[Path]:
        return list(self._search_paths)

    def load_all(self) -> dict[str, str]:
        """Load labels from all configured search paths.

        Later search paths override earlier ones when user ids collide.
        """

        labels: dict[str, str] = {}
        errors: list[str] = []

        for base in self._search_paths:
            files = [base] if base.is_file() else sorted(base.glob("*.yml")) + sorted(base.glob("*.yaml"))
            for path in files:
                try:
                    document = yaml.safe_load(path.read_text(encoding="utf-8"))
                except yaml.YAMLError as exc:
                    errors.append(f"Failed to parse YAML in {path}: {exc}")
                    continue

                if document is None:
                    continue

                try:
                    raw_entries = _entries_from_document(document)
                except TypeError as exc:
                    errors.append(f"Unsupported role label layout in {path}: {exc}")
                    continue

                for raw in raw_entries:
                    try:
                        entry = RoleLabelEntry.model_validate(raw)
                    except ValidationError as exc:
                        errors.append(f"Role label validation error in {path}: {exc}")
                        continue
                    labels[entry.user_id] = entry.label

        if errors:
            raise RoleLabelError("; ".join(errors))

        return labels


def resolve_role_labels(settings: WorkbotSettings) -> dict[str, str]:
    """Merge file based labels with the ``WORKER_MAPPING`` environment mapping."""

    labels = RoleLabelLoader(settings.role_label_paths).load_all()
    errors: list[str] = []
    for user_id, label in settings.worker_mapping.items():
        try:
            entry = RoleLabelEntry(user_id=user_id, label=label)
        except ValidationError as exc:
            errors.append(f"WORKER_MAPPING entry for '{user_id}' is invalid: {exc}")
            continue
        labels[entry.user_id] = entry.label
    if errors:
        raise RoleLabelError("; ".join(errors))
    return labels


__all__ = ["RoleLabelError", "RoleLabelLoader", "resolve_role_labels"]
