"""Local project loading: walk a checkout or read an ingestion snapshot."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from repo_lens.lib.paths import is_text_file, should_ignore
from repo_lens.lib.search import as_fetched_files
from repo_lens.lib.types import FetchedFile

__all__ = ["RepoIndex"]

logger = logging.getLogger(__name__)


@dataclass
class RepoIndex:
    """Text files of one project, ready for search or the assistant."""

    root: Path
    files: list[FetchedFile] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.root.stem if self.root.is_file() else self.root.name

    @classmethod
    def from_path(cls, path: Path, *, max_file_bytes: int = 100_000) -> RepoIndex:
        """Walk a local directory, keeping importable text files."""
        if not path.is_dir():
            msg = f"Not a directory: {path}"
            raise FileNotFoundError(msg)

        files: list[FetchedFile] = []
        for candidate in sorted(p for p in path.rglob("*") if p.is_file()):
            relative = candidate.relative_to(path).as_posix()
            if should_ignore(relative) or not is_text_file(relative):
                continue
            if candidate.stat().st_size > max_file_bytes:
                logger.debug("Skipping large file %s", relative)
                continue
            try:
                content = candidate.read_text(encoding="utf-8")
            except (UnicodeDecodeError, OSError) as exc:
                logger.debug("Skipping unreadable file %s: %s", relative, exc)
                continue
            files.append(FetchedFile(path=relative, content=content))
        return cls(root=path, files=files)

    @classmethod
    def from_snapshot(cls, path: Path) -> RepoIndex:
        """Load the JSON written by ``repo-lens ingest --output``."""
        if not path.is_file():
            msg = f"Not a file: {path}"
            raise FileNotFoundError(msg)
        data = json.loads(path.read_text(encoding="utf-8"))
        records = data.get("files", []) if isinstance(data, dict) else data
        return cls(root=path, files=as_fetched_files(records))
