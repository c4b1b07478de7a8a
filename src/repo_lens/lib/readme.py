"""README generation for an imported project.

The AI path grounds a single prompt in the most informative files plus the
project tree. When no provider is configured, or every provider fails, a
basic Markdown README is assembled locally from the same inputs.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from repo_lens.lib.ai_providers import ModelCandidate, complete_first
from repo_lens.lib.errors import ProviderError
from repo_lens.lib.paths import basename
from repo_lens.lib.tree import FileNode, tree_to_dicts
from repo_lens.lib.types import FetchedFile

__all__ = [
    "ReadmeResult",
    "basic_readme",
    "build_readme_prompt",
    "generate_readme",
    "package_summary",
    "rank_for_readme",
]

logger = logging.getLogger(__name__)

ReadmeSource = Literal["ai", "fallback"]

CONTEXT_FILES = 30
FILE_CHARS = 2000
CONTEXT_CHARS = 20_000
STRUCTURE_CHARS = 3000
KEY_FILES = 10


@dataclass(frozen=True)
class ReadmeResult:
    """Generated README text and where it came from."""

    text: str
    source: ReadmeSource
    model: str | None = None


def _readme_rank(path: str) -> int:
    if "package.json" in path:
        return 100
    if "README" in path:
        return 90
    if "src/" in path:
        return 80
    if "app/" in path:
        return 70
    if "components/" in path:
        return 60
    return 10


def rank_for_readme(files: Sequence[FetchedFile]) -> list[FetchedFile]:
    """Manifests first, then READMEs, then source directories; stable."""
    return sorted(files, key=lambda f: _readme_rank(f.path), reverse=True)


def _file_context(files: Sequence[FetchedFile]) -> str:
    sections: list[str] = []
    total = 0
    for file in rank_for_readme(files[:CONTEXT_FILES]):
        if total >= CONTEXT_CHARS:
            break
        section = f"--- {file.path} ---\n{file.content[:FILE_CHARS]}\n\n"
        if total + len(section) <= CONTEXT_CHARS:
            sections.append(section)
            total += len(section)
    return "".join(sections)


def package_summary(files: Sequence[FetchedFile]) -> str:
    """Bullet summary of the first ``package.json``, or ``""``."""
    manifest = next((f for f in files if basename(f.path) == "package.json"), None)
    if manifest is None:
        return ""
    try:
        pkg = json.loads(manifest.content)
        scripts = pkg.get("scripts") or {}
        lines = [
            f"- Name: {pkg.get('name') or 'Not specified'}",
            f"- Version: {pkg.get('version') or 'Not specified'}",
            f"- Description: {pkg.get('description') or 'Not specified'}",
            f"- Main Entry: {pkg.get('main') or 'Not specified'}",
            f"- Scripts: {', '.join(scripts) if scripts else 'None'}",
            f"- Dependencies: {len(pkg.get('dependencies') or {})}",
            f"- Dev Dependencies: {len(pkg.get('devDependencies') or {})}",
        ]
    except (ValueError, AttributeError, TypeError) as exc:
        logger.debug("Could not parse %s: %s", manifest.path, exc)
        return ""
    return "\n".join(lines)


def _github_links(repo: tuple[str, str] | None) -> str:
    if repo is None:
        return ""
    owner, name = repo
    base = f"https://github.com/{owner}/{name}"
    return "\n".join(
        [
            f"- Repository: {base}",
            f"- Issues: {base}/issues",
            f"- Discussions: {base}/discussions",
        ]
    )


def build_readme_prompt(
    files: Sequence[FetchedFile],
    tree: Sequence[FileNode],
    *,
    project_name: str,
    description: str = "",
    repo: tuple[str, str] | None = None,
) -> str:
    """Single user prompt asking for a README grounded in *files* and *tree*."""
    parts = [
        f'Write a complete README.md in Markdown for the project "{project_name}".',
        "Base every section on the code below; do not invent features.",
        "Cover: title, description, features, tech stack, installation, "
        "configuration, project structure, contributing and license.",
    ]
    if description:
        parts.append(f"Description: {description}")
    summary = package_summary(files)
    if summary:
        parts.append(f"Package info:\n{summary}")
    if repo is not None:
        owner, name = repo
        parts.append(
            f"GitHub:\n{_github_links(repo)}\n"
            f"Clone with: git clone https://github.com/{owner}/{name}.git"
        )
    if tree:
        structure = json.dumps(tree_to_dicts(tree), indent=2)[:STRUCTURE_CHARS]
        parts.append(f"File structure (JSON):\n{structure}")
    parts.append(f"Key files content:\n{_file_context(files)}")
    return "\n\n".join(parts)


def _outline(
    nodes: Sequence[FileNode], depth: int = 0, max_depth: int = 2
) -> list[str]:
    lines: list[str] = []
    for node in nodes:
        suffix = "/" if node.is_directory else ""
        lines.append(f"{'  ' * depth}- `{node.name}{suffix}`")
        if node.children and depth + 1 < max_depth:
            lines.extend(_outline(node.children, depth + 1, max_depth))
    return lines


def _setup_steps(files: Sequence[FetchedFile], repo: tuple[str, str] | None) -> str:
    clone = "Clone the repository"
    if repo is not None:
        owner, name = repo
        clone += f": `git clone https://github.com/{owner}/{name}`"
    steps = [clone]
    names = {basename(f.path) for f in files}
    if "package.json" in names:
        steps += [
            "Install dependencies: `npm install`",
            "Start development server: `npm run dev`",
        ]
    elif names & {"pyproject.toml", "setup.py"}:
        steps.append("Install the package: `pip install -e .`")
    elif "requirements.txt" in names:
        steps.append("Install dependencies: `pip install -r requirements.txt`")
    return "\n".join(f"{n}. {step}" for n, step in enumerate(steps, start=1))


def basic_readme(
    files: Sequence[FetchedFile],
    tree: Sequence[FileNode],
    *,
    project_name: str,
    description: str = "",
    repo: tuple[str, str] | None = None,
) -> str:
    """Markdown README built without any AI provider."""
    sections = [f"# {project_name}"]
    if description:
        sections.append(f"## Description\n{description}")
    links = _github_links(repo)
    if links:
        sections.append(f"## GitHub\n{links}")

    structure = [f"This project contains {len(files)} files."]
    if files:
        key_files = "\n".join(f"- `{f.path}`" for f in files[:KEY_FILES])
        structure.append(f"### Key Files:\n{key_files}")
    if tree:
        structure.append("### Layout:\n" + "\n".join(_outline(tree)))
    sections.append("## Project Structure\n" + "\n\n".join(structure))

    sections.append(f"## Setup\n{_setup_steps(files, repo)}")
    sections.append(
        "---\n\n*Note: this README was generated without an AI model. "
        "Edit it with your project details.*"
    )
    return "\n\n".join(sections) + "\n"


def generate_readme(
    files: Sequence[FetchedFile],
    tree: Sequence[FileNode],
    *,
    project_name: str,
    candidates: Sequence[ModelCandidate] = (),
    description: str = "",
    repo: tuple[str, str] | None = None,
) -> ReadmeResult:
    """AI-written README, or ``basic_readme`` when no provider succeeds."""
    if candidates:
        prompt = build_readme_prompt(
            files,
            tree,
            project_name=project_name,
            description=description,
            repo=repo,
        )
        logger.info("Generating README with prompt length: %d chars", len(prompt))
        try:
            completion = complete_first(candidates, prompt)
        except ProviderError as exc:
            logger.warning("README generation failed, using basic README: %s", exc)
        else:
            return ReadmeResult(
                text=completion.text,
                source="ai",
                model=completion.candidate.label,
            )
    else:
        logger.info("No AI provider configured; writing basic README")

    return ReadmeResult(
        text=basic_readme(
            files,
            tree,
            project_name=project_name,
            description=description,
            repo=repo,
        ),
        source="fallback",
    )
