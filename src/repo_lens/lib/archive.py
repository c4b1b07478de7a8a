"""ZIP upload ingestion: extract text files and build the project tree."""

from __future__ import annotations

import io
import logging
import zipfile
from collections.abc import Sequence
from pathlib import Path

from repo_lens.lib.errors import NoTextFilesFound, RepoLensError
from repo_lens.lib.ingest import IngestResult
from repo_lens.lib.paths import is_text_file, should_ignore
from repo_lens.lib.tree import build_file_tree
from repo_lens.lib.types import FetchedFile

__all__ = ["ingest_archive", "strip_common_root"]

logger = logging.getLogger(__name__)


def strip_common_root(names: Sequence[str]) -> list[str]:
    """Drop the single top-level folder shared by every entry, if any.

    ``["proj/a.py", "proj/src/b.py"]`` becomes ``["a.py", "src/b.py"]``;
    archives with several top-level entries are returned unchanged.
    """
    cleaned = [name.replace("\\", "/").lstrip("/") for name in names]
    if not cleaned:
        return []
    firsts = {name.split("/", 1)[0] for name in cleaned}
    if len(firsts) != 1 or not all("/" in name for name in cleaned):
        return cleaned
    return [name.split("/", 1)[1] for name in cleaned]


def ingest_archive(
    data: bytes | Path | str,
    *,
    max_file_bytes: int = 100_000,
    source: str | None = None,
) -> IngestResult:
    """Read a ZIP archive (bytes or path) into an ``IngestResult``.

    Raises:
        RepoLensError: The archive cannot be opened.
        NoTextFilesFound: No entry passed the text and size filters.
    """
    label = source or (str(data) if isinstance(data, (str, Path)) else "archive")
    handle = io.BytesIO(data) if isinstance(data, bytes) else Path(data)
    try:
        archive = zipfile.ZipFile(handle)
    except (zipfile.BadZipFile, OSError) as exc:
        raise RepoLensError(f"Could not open ZIP archive {label}: {exc}") from exc

    with archive:
        infos = [info for info in archive.infolist() if not info.is_dir()]
        normalized = strip_common_root([info.filename for info in infos])

        paths: list[str] = []
        files: list[FetchedFile] = []
        text_eligible = 0
        for info, path in zip(infos, normalized, strict=True):
            if not path or should_ignore(path):
                continue
            paths.append(path)
            if not is_text_file(path):
                continue
            text_eligible += 1
            if info.file_size > max_file_bytes:
                logger.warning("Skipping large file %s: %d bytes", path, info.file_size)
                continue
            try:
                content = archive.read(info).decode("utf-8")
            except UnicodeDecodeError:
                logger.warning("Skipping %s: not valid UTF-8", path)
                continue
            except (zipfile.BadZipFile, OSError) as exc:
                logger.warning("Skipping unreadable entry %s: %s", path, exc)
                continue
            files.append(FetchedFile(path=path, content=content))

    if not files:
        raise NoTextFilesFound(
            label, total_blobs=len(infos), text_eligible=text_eligible
        )

    logger.info(
        "Imported %d text files from %s (%d files found)",
        len(files),
        label,
        len(infos),
    )
    return IngestResult(
        files=files,
        file_count=len(infos),
        tree=build_file_tree(paths),
        skipped=len(paths) - len(files),
    )
