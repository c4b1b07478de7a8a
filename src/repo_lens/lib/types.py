"""Value types passed between the ingestion stages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

__all__ = ["EntryKind", "FetchedFile", "RepoPathEntry"]

EntryKind = Literal["blob", "tree"]


@dataclass(frozen=True)
class RepoPathEntry:
    """One entry of a remote repository listing."""

    path: str
    kind: EntryKind
    size_bytes: int = 0

    @property
    def is_blob(self) -> bool:
        return self.kind == "blob"


@dataclass(frozen=True)
class FetchedFile:
    """A text file accepted into a project: repo-relative path plus content."""

    path: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "content": self.content}
