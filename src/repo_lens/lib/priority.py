"""Fetch-order heuristics: which files tell us most about a project."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from repo_lens.lib.paths import basename
from repo_lens.lib.types import RepoPathEntry

__all__ = ["PrioritizedPath", "file_priority", "prioritize"]

_SOURCE_EXTENSIONS = (".ts", ".js", ".tsx", ".jsx")
_CONFIG_EXTENSIONS = (".json", ".yml", ".yaml", ".toml", ".env")
_DOC_EXTENSIONS = (".md", ".txt", ".sql")


@dataclass(frozen=True)
class PrioritizedPath:
    """A listing entry annotated with its fetch priority."""

    entry: RepoPathEntry
    priority: int

    @property
    def path(self) -> str:
        return self.entry.path


def file_priority(path: str) -> int:
    """Integer fetch priority for *path*; higher is fetched first.

    Rules are checked in order and the first match wins:

    ===========================================  ========
    condition                                    priority
    ===========================================  ========
    file name ``package.json``                   100
    file name ``readme.md``                      90
    file name contains ``readme``                80
    JS/TS source under ``src/``                  70
    JS/TS source under ``app/``                  65
    JS/TS source under ``pages/``                60
    other JS/TS source                           50
    config (json/yml/yaml/toml/env, "config")    40
    docs (md/txt/sql, "documentation")           30
    anything else                                10
    ===========================================  ========
    """
    lowered = path.lower()
    name = basename(lowered)

    if name == "package.json":
        return 100
    if name == "readme.md":
        return 90
    if "readme" in name:
        return 80

    if lowered.endswith(_SOURCE_EXTENSIONS):
        if "src/" in lowered:
            return 70
        if "app/" in lowered:
            return 65
        if "pages/" in lowered:
            return 60
        return 50

    if lowered.endswith(_CONFIG_EXTENSIONS) or "config" in lowered:
        return 40
    if lowered.endswith(_DOC_EXTENSIONS) or "documentation" in lowered:
        return 30
    return 10


def prioritize(entries: Iterable[RepoPathEntry]) -> list[PrioritizedPath]:
    """Annotate and order *entries* by descending priority.

    ``sorted`` is stable, so equal priorities keep listing order.
    """
    scored = [PrioritizedPath(entry=e, priority=file_priority(e.path)) for e in entries]
    return sorted(scored, key=lambda p: p.priority, reverse=True)
