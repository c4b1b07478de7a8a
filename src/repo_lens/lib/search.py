"""Deterministic relevance search over a project's files.

Used when no AI backend is reachable, for "where is X" style questions, and
to pick which files go into an AI prompt. Scoring is additive over several
independent signals, weighted so that path matches dominate, API-shaped code
comes second, and raw term frequency counts least.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from repo_lens.lib.paths import basename
from repo_lens.lib.types import FetchedFile

__all__ = [
    "SearchResult",
    "as_fetched_files",
    "extract_file_name",
    "find_by_file_name",
    "format_search_context",
    "is_file_location_question",
    "render_search_answer",
    "search_codebase",
    "search_files",
]

MAX_RESULTS = 10
MAX_MATCHES = 3
SCANNED_LINES = 30
EXCERPT_CHARS = 100
EXACT_MATCH_RELEVANCE = 100

_PATH_TERM_WEIGHT = 15
_API_PATH_BONUS = 10
_API_PATTERN_WEIGHT = 5
_CONTENT_TERM_WEIGHT = 2
_METHOD_LINE_BONUS = 20
_TERM_LINE_BONUS = 10
_SOURCE_BONUS = 3
_JSON_BONUS = 2

_API_KEYWORDS = ("api", "route", "endpoint")
_SOURCE_EXTENSIONS = (".ts", ".js", ".tsx", ".jsx")
_API_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"app\.(get|post|put|delete|patch)\s*\(",
        r"router\.(get|post|put|delete|patch)\s*\(",
        r"fetch\s*\(",
        r"axios\.(get|post|put|delete|patch)\s*\(",
        r"@app\.(get|post|put|delete|patch)",
        r"@Route",
        r"api\s*:",
        r"/api/",
    )
)
_HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")
_FILE_NAME = re.compile(r"\b([\w-]+(?:\.[\w-]+)*\.\w{1,10})\b")
_LOCATION_QUESTION = re.compile(
    r"\b(where\s+(is|are|do|does|can)|which\s+files?|find|locate"
    r"|show\s+me|look\s+for)\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class SearchResult:
    """One ranked file with up to three human-readable match explanations."""

    path: str
    content: str
    relevance: int
    matches: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "path": self.path,
            "relevance": self.relevance,
            "matches": list(self.matches),
        }


def as_fetched_files(records: Iterable[Mapping[str, object]]) -> list[FetchedFile]:
    """Coerce stored ``{path|file_path, content}`` records into ``FetchedFile``s."""
    out: list[FetchedFile] = []
    for record in records:
        path = record.get("path", record.get("file_path"))
        if not path:
            continue
        content = str(record.get("content") or "")
        out.append(FetchedFile(path=str(path), content=content))
    return out


def _query_terms(query: str) -> list[str]:
    return [term for term in query.lower().split() if len(term) > 2]


def _excerpt(index: int, line: str) -> str:
    return f"Line {index + 1}: {line.strip()[:EXCERPT_CHARS]}"


def _score_file(file: FetchedFile, terms: Sequence[str]) -> tuple[int, list[str]]:
    relevance = 0
    matches: list[str] = []
    path_lower = file.path.lower()
    content_lower = file.content.lower()

    for term in terms:
        if term in path_lower:
            relevance += _PATH_TERM_WEIGHT
            matches.append(f'File name contains "{term}"')

    if any(keyword in path_lower for keyword in _API_KEYWORDS):
        relevance += _API_PATH_BONUS
        matches.append("File path suggests API")

    api_matches = sum(len(p.findall(file.content)) for p in _API_PATTERNS)
    if api_matches:
        relevance += api_matches * _API_PATTERN_WEIGHT
        matches.append(f"Found {api_matches} API endpoint patterns")

    for term in terms:
        count = content_lower.count(term)
        if count:
            relevance += count * _CONTENT_TERM_WEIGHT
            matches.append(f'Contains "{term}" {count} times')

    for index, line in enumerate(file.content.split("\n")[:SCANNED_LINES]):
        line_lower = line.lower()
        has_term = any(term in line_lower for term in terms)
        has_api = any(keyword in line_lower for keyword in _API_KEYWORDS)
        if not (has_term or has_api):
            continue
        if any(method in line for method in _HTTP_METHODS):
            relevance += _METHOD_LINE_BONUS
            matches.append(_excerpt(index, line))
        elif has_term:
            relevance += _TERM_LINE_BONUS
            matches.append(_excerpt(index, line))

    if file.path.endswith(_SOURCE_EXTENSIONS):
        relevance += _SOURCE_BONUS
    elif file.path.endswith(".json"):
        relevance += _JSON_BONUS

    return relevance, matches[:MAX_MATCHES]


def search_files(files: Iterable[FetchedFile], query: str) -> list[SearchResult]:
    """Rank *files* against *query*; at most ten results, best first.

    Terms of two characters or fewer are ignored. Files scoring zero are
    dropped and equal scores keep input order.
    """
    terms = _query_terms(query)
    if not terms:
        return []

    results: list[SearchResult] = []
    for file in files:
        relevance, matches = _score_file(file, terms)
        if relevance > 0:
            results.append(
                SearchResult(
                    path=file.path,
                    content=file.content,
                    relevance=relevance,
                    matches=matches,
                )
            )
    results.sort(key=lambda r: r.relevance, reverse=True)
    return results[:MAX_RESULTS]


def extract_file_name(query: str) -> str | None:
    """Return the first ``name.ext`` token in *query*, e.g. ``types.ts``."""
    match = _FILE_NAME.search(query)
    return match.group(1) if match else None


def find_by_file_name(files: Iterable[FetchedFile], name: str) -> list[SearchResult]:
    """Files whose base name equals *name*, ignoring case."""
    wanted = name.lower()
    return [
        SearchResult(
            path=file.path,
            content=file.content,
            relevance=EXACT_MATCH_RELEVANCE,
            matches=[f'Exact file name match "{basename(file.path)}"'],
        )
        for file in files
        if basename(file.path).lower() == wanted
    ]


def search_codebase(files: Sequence[FetchedFile], query: str) -> list[SearchResult]:
    """Exact file-name lookup when the query names a file, else full scoring."""
    name = extract_file_name(query)
    if name:
        exact = find_by_file_name(files, name)
        if exact:
            return exact
    return search_files(files, query)


def is_file_location_question(query: str, files: Iterable[FetchedFile] = ()) -> bool:
    """True for "where is ...", "which file ..." style questions.

    A bare ``name.ext`` token only counts when one of *files* has that name,
    so "how does next.js routing work?" stays a general question.
    """
    if _LOCATION_QUESTION.search(query):
        return True
    name = extract_file_name(query)
    return name is not None and bool(find_by_file_name(files, name))


def format_search_context(
    results: Sequence[SearchResult],
    *,
    max_chars: int = 1500,
    max_total: int = 12_000,
) -> str:
    """Serialize *results* into a bounded prompt fragment."""
    sections: list[str] = []
    used = 0
    for result in results:
        body = result.content[:max_chars]
        if len(result.content) > max_chars:
            body += "\n...[truncated]"
        section = f"--- {result.path} (relevance {result.relevance}) ---\n{body}"
        if used + len(section) > max_total:
            break
        sections.append(section)
        used += len(section) + 2
    return "\n\n".join(sections)


def render_search_answer(
    query: str,
    results: Sequence[SearchResult],
    files: Sequence[FetchedFile] = (),
    *,
    listing_limit: int = 20,
) -> str:
    """Markdown answer for a local search.

    With no results, lists the project's files instead so the caller never
    shows an empty answer.
    """
    if results:
        lines = [f'### Files matching "{query.strip()}"', ""]
        for rank, result in enumerate(results, start=1):
            lines.append(f"**{rank}. `{result.path}`** (relevance {result.relevance})")
            lines.extend(f"- {match}" for match in result.matches)
            lines.append("")
        return "\n".join(lines).rstrip() + "\n"

    lines = [f'No files matched "{query.strip()}".']
    if files:
        lines += ["", f"The project has {len(files)} files, including:", ""]
        lines.extend(f"- `{f.path}`" for f in files[:listing_limit])
        if len(files) > listing_limit:
            lines.append(f"- ... and {len(files) - listing_limit} more")
    lines += [
        "",
        'Try naming a file (e.g. "where is config.ts") or a feature keyword.',
    ]
    return "\n".join(lines) + "\n"
