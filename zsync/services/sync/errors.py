"""Error types for release synchronization."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

SyncErrorKind = Literal[
    "configuration",
    "not_found",
    "metadata_update",
    "remote_operation",
]


@dataclass(frozen=True, slots=True)
class SyncError:
    """Canonical error payload for every sync component.

    ``configuration`` errors are raised before any remote state changes;
    ``not_found`` and ``remote_operation`` come from the GitHub or Zenodo APIs.
    """

    kind: SyncErrorKind
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message
