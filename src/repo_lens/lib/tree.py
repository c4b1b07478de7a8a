"""Build a nested directory/file tree from flat repo-relative paths."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Literal

__all__ = ["FileNode", "build_file_tree", "flatten_file_tree", "tree_to_dicts"]

logger = logging.getLogger(__name__)

NodeType = Literal["file", "directory"]


@dataclass
class FileNode:
    """One file or directory in the tree.

    Directories always carry a ``children`` list (possibly empty); files
    always have ``children=None``.
    """

    name: str
    path: str
    type: NodeType
    children: list[FileNode] | None = field(default=None)

    @property
    def is_directory(self) -> bool:
        return self.type == "directory"

    def to_dict(self) -> dict[str, Any]:
        """JSON-able form; files omit the ``children`` key entirely."""
        data: dict[str, Any] = {"name": self.name, "path": self.path, "type": self.type}
        if self.children is not None:
            data["children"] = [child.to_dict() for child in self.children]
        return data


def build_file_tree(paths: Iterable[str]) -> list[FileNode]:
    """Convert flat ``a/b/c.txt`` style paths into top-level tree nodes.

    Sibling order follows first appearance in *paths*. Nodes are keyed by
    their cumulative path, so the same directory is never created twice.
    A path that would nest beneath an existing file is dropped.
    """
    roots: list[FileNode] = []
    index: dict[str, FileNode] = {}

    for raw in paths:
        parts = [part for part in raw.split("/") if part]
        if not parts:
            continue
        siblings = roots
        for depth, name in enumerate(parts):
            current_path = "/".join(parts[: depth + 1])
            is_file = depth == len(parts) - 1
            node = index.get(current_path)
            if node is None:
                node = FileNode(
                    name=name,
                    path=current_path,
                    type="file" if is_file else "directory",
                    children=None if is_file else [],
                )
                index[current_path] = node
                siblings.append(node)
            if is_file:
                break
            if node.children is None:
                logger.debug("Skipping %s: %s is a file", raw, current_path)
                break
            siblings = node.children

    return roots


def flatten_file_tree(nodes: Iterable[FileNode]) -> list[str]:
    """Depth-first list of file paths in *nodes* (directories excluded)."""
    out: list[str] = []
    for node in nodes:
        if node.children is None:
            out.append(node.path)
        else:
            out.extend(flatten_file_tree(node.children))
    return out


def tree_to_dicts(nodes: Iterable[FileNode]) -> list[dict[str, Any]]:
    return [node.to_dict() for node in nodes]
