from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Literal

from zsync.services.sync import config

DocumentFormat = Literal["json", "yaml"]


class MetadataKind(Enum):
    """The three metadata documents a release sync knows about."""

    CODEMETA = config.CODEMETA_JSON
    CITATION = config.CITATION_CFF
    ZENODO = config.ZENODO_JSON

    @property
    def repo_path(self) -> str:
        return self.value

    @property
    def format(self) -> DocumentFormat:
        return "yaml" if self is MetadataKind.CITATION else "json"

    @property
    def rewritable(self) -> bool:
        # .zenodo.json is sent to Zenodo as is.
        return self is not MetadataKind.ZENODO


class DraftState(Enum):
    OPEN = "open"
    PUBLISHED = "published"


@dataclass(frozen=True, slots=True)
class Committer:
    """Commit identity and message template for metadata writes."""

    name: str
    email: str
    message: str
    custom: bool

    def message_for(self, file_name: str) -> str:
        return self.message.replace(config.FILE_NAME_PLACEHOLDER, file_name)

    def identity(self) -> dict[str, str] | None:
        # A custom message alone keeps the token owner as committer.
        if not self.custom or not (self.name or self.email):
            return None
        return {"name": self.name, "email": self.email}


@dataclass(frozen=True, slots=True)
class ReleaseAttachment:
    """A file attached to the GitHub release."""

    name: str
    url: str


@dataclass(frozen=True, slots=True)
class ReleaseAsset:
    """A staged local file that will be uploaded verbatim to the draft."""

    name: str
    path: Path


@dataclass(frozen=True, slots=True)
class ReleaseContext:
    repository: str  # owner/name
    default_branch: str
    tag: str
    attachments: tuple[ReleaseAttachment, ...]
    documents: tuple[MetadataKind, ...]
    update_metadata_files: bool
    committer: Committer
    deposition_id: str
    zenodo_url: str
    doi: str | None = None
    draft_id: str | None = None

    def with_draft(self, *, draft_id: str, doi: str) -> ReleaseContext:
        """Return a copy bound to the active draft.

        Raises:
            ValueError: if a different draft or DOI was already bound, or the
                DOI is empty.
        """
        if not doi:
            raise ValueError("draft DOI must not be empty")
        if self.draft_id is not None and self.draft_id != draft_id:
            raise ValueError(f"context already bound to draft {self.draft_id}")
        if self.doi is not None and self.doi != doi:
            raise ValueError(f"context already bound to DOI {self.doi}")
        return replace(self, draft_id=draft_id, doi=doi)


@dataclass(frozen=True, slots=True)
class MetadataDocument:
    kind: MetadataKind
    local_path: Path

    @property
    def repo_path(self) -> str:
        return self.kind.repo_path


@dataclass(frozen=True, slots=True)
class DepositFile:
    id: str
    filename: str


@dataclass(frozen=True, slots=True)
class DepositDraft:
    """Snapshot of a Zenodo deposition returned by ``get``."""

    id: str
    bucket_url: str
    doi: str
    files: tuple[DepositFile, ...]


@dataclass(frozen=True, slots=True)
class ReleaseOutcome:
    tag: str
    doi: str
    draft_id: str
    state: DraftState
