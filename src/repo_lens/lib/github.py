"""GitHub REST integration: rate-limit aware requests and tree listing.

Everything here talks to a GitHub-compatible REST API through a shared
``httpx.AsyncClient``. Credentials are passed explicitly to each
``RateLimitedFetcher`` so concurrent ingestions never share a token.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import quote

import httpx

from repo_lens.lib.errors import (
    InvalidRepoReference,
    ProviderError,
    RateLimitExceeded,
    RepoNotFound,
)
from repo_lens.lib.types import RepoPathEntry

__all__ = [
    "JSON_ACCEPT",
    "RAW_ACCEPT",
    "RateLimitedFetcher",
    "RepositoryTreeResolver",
    "contents_url",
    "parse_repo_reference",
]

logger = logging.getLogger(__name__)

JSON_ACCEPT = "application/vnd.github.v3+json"
RAW_ACCEPT = "application/vnd.github.v3.raw"
_USER_AGENT = "repo-lens/0.1"
_API_VERSION = "2022-11-28"

_OWNER_REPO_PATTERN = re.compile(r"^([A-Za-z0-9_.-]+)/([A-Za-z0-9_.-]+?)(?:\.git)?/?$")
_GITHUB_URL_PATTERN = re.compile(
    r"^(?:https?://)?(?:www\.)?github\.com/([A-Za-z0-9_.-]+)/([A-Za-z0-9_.-]+?)"
    r"(?:\.git)?(?:/(?:tree|blob)/.*)?/?$"
)
_TOKEN_PATTERN = re.compile(r"\b(gh[pousr]_|github_pat_)[A-Za-z0-9_]+")

Sleep = Callable[[float], Awaitable[Any]]
Clock = Callable[[], float]

# Raised by ``response.json()`` on non-JSON bodies and by the listing parsers
# on unexpected shapes.
_MALFORMED_LISTING = (ValueError, KeyError, TypeError, AttributeError)


def _redact_sensitive(text: str) -> str:
    """Redact GitHub tokens in logs/errors."""
    return _TOKEN_PATTERN.sub(r"\1***", text)


def _github_error_message(action: str, response: httpx.Response) -> str:
    """Build a clear error message from a failed GitHub response.

    Args:
        action: Human-readable description of what was attempted.
        response: The non-2xx response.

    Returns:
        An actionable error string including the HTTP status and detail.
    """
    status = response.status_code
    message = ""
    try:
        detail = response.json()
    except ValueError:
        detail = None
    if isinstance(detail, dict):
        message = str(detail.get("message", ""))
    hints: dict[int, str] = {
        401: "check GITHUB_TOKEN is valid and not expired",
        403: "check token permissions or GitHub rate limits",
        404: "resource not found - verify repo name and visibility",
        422: "validation failed - the request was rejected as unprocessable",
    }
    hint = hints.get(status, "")
    parts = [f"GitHub API error: failed to {action}", f"(HTTP {status})"]
    if message:
        parts.append(f"- {message}")
    if hint:
        parts.append(f"[hint: {hint}]")
    return _redact_sensitive(" ".join(parts))


def parse_repo_reference(text: str) -> tuple[str, str]:
    """Split ``owner/repo`` or a ``github.com`` URL into ``(owner, repo)``.

    Raises:
        InvalidRepoReference: When *text* matches neither form.
    """
    candidate = text.strip()
    for pattern in (_GITHUB_URL_PATTERN, _OWNER_REPO_PATTERN):
        match = pattern.match(candidate)
        if match:
            return match.group(1), match.group(2)
    msg = (
        f"Invalid repository reference '{text}': expected 'owner/repo' or "
        "'https://github.com/owner/repo'"
    )
    raise InvalidRepoReference(msg)


def contents_url(api_base: str, owner: str, repo: str, path: str = "") -> str:
    """URL of the contents endpoint for *path* (root when empty)."""
    base = f"{api_base.rstrip('/')}/repos/{owner}/{repo}/contents"
    if not path:
        return base
    return f"{base}/{quote(path, safe='/')}"


def _header_int(response: httpx.Response, name: str) -> int | None:
    raw = response.headers.get(name)
    if raw is None:
        return None
    try:
        return int(float(raw.strip()))
    except ValueError:
        return None


def _is_rate_limited(response: httpx.Response) -> bool:
    if response.status_code == 429:
        return True
    if response.status_code != 403:
        return False
    return (
        response.headers.get("x-ratelimit-remaining") == "0"
        or "retry-after" in response.headers
    )


def _tree_blobs(payload: Any) -> list[RepoPathEntry]:
    """Blob entries of a ``git/trees`` payload."""
    return [
        RepoPathEntry(
            path=str(item["path"]),
            kind="blob",
            size_bytes=int(item.get("size") or 0),
        )
        for item in payload.get("tree", [])
        if item.get("type") == "blob" and item.get("path")
    ]


def _directory_listing(payload: Any) -> tuple[list[RepoPathEntry], list[str]]:
    """Split a contents-API directory payload into files and subdirectories."""
    if not isinstance(payload, list):
        raise TypeError(f"expected a list, got {type(payload).__name__}")
    files: list[RepoPathEntry] = []
    directories: list[str] = []
    for item in payload:
        item_type = item.get("type")
        if item_type == "file":
            files.append(
                RepoPathEntry(
                    path=str(item["path"]),
                    kind="blob",
                    size_bytes=int(item.get("size") or 0),
                )
            )
        elif item_type == "dir":
            directories.append(str(item["path"]))
    return files, directories


class RateLimitedFetcher:
    """Issue GitHub API requests with bounded retries.

    - 403/429 with exhausted quota: wait until ``x-ratelimit-reset`` (plus a
      small buffer) or ``retry-after`` and retry.
    - Transport errors and 5xx responses: linear backoff,
      ``backoff_base * attempt`` seconds.
    - Anything else (2xx, 404, 422, other 4xx) is returned untouched for the
      caller to interpret.

    Attempt counters live inside each ``request`` call; the only state held
    across calls is the client and the optional bearer token.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        auth_token: str | None = None,
        max_attempts: int = 3,
        backoff_base: float = 1.0,
        reset_buffer: float = 1.0,
        max_reset_wait: float = 3600.0,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.time,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._client = client
        self._auth_token = auth_token
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.reset_buffer = reset_buffer
        self.max_reset_wait = max_reset_wait
        self._sleep = sleep
        self._clock = clock

    @property
    def authenticated(self) -> bool:
        return bool(self._auth_token)

    def headers(self, accept: str = JSON_ACCEPT) -> dict[str, str]:
        """Request headers, including the bearer credential when present."""
        headers = {
            "Accept": accept,
            "User-Agent": _USER_AGENT,
            "X-GitHub-Api-Version": _API_VERSION,
        }
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"
        return headers

    def _rate_limit_wait(self, response: httpx.Response, attempt: int) -> float | None:
        """Seconds to wait before retrying a rate-limited response, if known."""
        retry_after = _header_int(response, "retry-after")
        if retry_after is not None:
            return float(retry_after)
        reset_at = _header_int(response, "x-ratelimit-reset")
        if reset_at is not None:
            return reset_at - self._clock() + self.reset_buffer
        if response.status_code == 429:
            return self.backoff_base * attempt
        return None

    async def request(
        self,
        url: str,
        *,
        action: str,
        method: str = "GET",
        accept: str = JSON_ACCEPT,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send one logical request, retrying transient failures.

        Raises:
            RateLimitExceeded: Quota is exhausted and no retry is permitted.
            ProviderError: Transport failures or 5xx after the final attempt.
        """
        headers = self.headers(accept)
        for attempt in range(1, self.max_attempts + 1):
            last_attempt = attempt == self.max_attempts
            logger.debug(
                "%s %s (attempt %d/%d)", method, url, attempt, self.max_attempts
            )
            try:
                response = await self._client.request(
                    method, url, headers=headers, params=params
                )
            except httpx.TransportError as exc:
                if last_attempt:
                    msg = _redact_sensitive(
                        f"GitHub API error: failed to {action} after "
                        f"{self.max_attempts} attempts: {exc}"
                    )
                    raise ProviderError(msg) from exc
                delay = self.backoff_base * attempt
                logger.debug(
                    "Retry %d/%d for %s in %.1fs after error: %s",
                    attempt,
                    self.max_attempts,
                    action,
                    delay,
                    exc,
                )
                await self._sleep(delay)
                continue

            if _is_rate_limited(response):
                wait = self._rate_limit_wait(response, attempt)
                reset_at = _header_int(response, "x-ratelimit-reset")
                if (
                    wait is not None
                    and 0 < wait <= self.max_reset_wait
                    and not last_attempt
                ):
                    logger.warning(
                        "GitHub rate limit hit while trying to %s; waiting %ds",
                        action,
                        int(wait + 0.999),
                    )
                    await self._sleep(wait)
                    continue
                raise RateLimitExceeded(action, reset_at)

            if response.status_code >= 500:
                if last_attempt:
                    raise ProviderError(
                        f"GitHub API error: failed to {action}",
                        status=response.status_code,
                        body=_redact_sensitive(response.text),
                    )
                delay = self.backoff_base * attempt
                logger.debug(
                    "Retry %d/%d for %s in %.1fs after HTTP %d",
                    attempt,
                    self.max_attempts,
                    action,
                    delay,
                    response.status_code,
                )
                await self._sleep(delay)
                continue

            return response

        raise AssertionError("unreachable: retry loop always returns or raises")


class RepositoryTreeResolver:
    """List every file of a remote repository.

    Prefers one ``git/trees/{branch}?recursive=1`` call and falls back to a
    breadth-first walk of the contents API when GitHub refuses (422) or
    truncates the recursive listing.
    """

    def __init__(
        self,
        fetcher: RateLimitedFetcher,
        *,
        api_base: str = "https://api.github.com",
        traversal_delay: float = 0.5,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._fetcher = fetcher
        self._api_base = api_base.rstrip("/")
        self.traversal_delay = traversal_delay
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Repository metadata
    # ------------------------------------------------------------------

    async def default_branch(self, owner: str, repo: str) -> str:
        """Return the repository's default branch.

        Raises:
            RepoNotFound: The metadata call returned 404.
            RateLimitExceeded: Quota exhausted after retries.
            ProviderError: Any other non-2xx response.
        """
        action = f"fetch repo metadata for '{owner}/{repo}'"
        response = await self._fetcher.request(
            f"{self._api_base}/repos/{owner}/{repo}", action=action
        )
        if response.status_code == 404:
            raise RepoNotFound(owner, repo)
        if not response.is_success:
            raise ProviderError(
                f"GitHub API error: failed to {action}",
                status=response.status_code,
                body=_redact_sensitive(response.text),
            )
        try:
            info = response.json()
            branch = str(info.get("default_branch") or "main")
        except _MALFORMED_LISTING as exc:
            raise ProviderError(
                f"GitHub API error: unreadable response to {action}",
                status=response.status_code,
                body=_redact_sensitive(response.text),
            ) from exc
        logger.info(
            "Repository %s/%s: %sKB, %s stars, default branch %s",
            owner,
            repo,
            info.get("size", 0),
            info.get("stargazers_count", 0),
            branch,
        )
        return branch

    # ------------------------------------------------------------------
    # Tree listing
    # ------------------------------------------------------------------

    async def resolve_tree(self, owner: str, repo: str) -> list[RepoPathEntry]:
        """Flat list of every blob in the default branch."""
        branch = await self.default_branch(owner, repo)
        return await self.list_tree(owner, repo, branch)

    async def list_tree(
        self, owner: str, repo: str, branch: str
    ) -> list[RepoPathEntry]:
        """List blobs on *branch*, falling back to manual traversal if needed."""
        entries = await self._recursive_tree(owner, repo, branch)
        if entries is None:
            entries = await self._manual_tree(owner, repo, branch)
        logger.info("Found %d files in %s/%s", len(entries), owner, repo)
        return entries

    async def _recursive_tree(
        self, owner: str, repo: str, branch: str
    ) -> list[RepoPathEntry] | None:
        """One-shot recursive listing; ``None`` means use manual traversal."""
        action = f"list tree of '{owner}/{repo}'@{branch}"
        ref = quote(branch, safe="")
        url = f"{self._api_base}/repos/{owner}/{repo}/git/trees/{ref}"
        try:
            response = await self._fetcher.request(
                url, action=action, params={"recursive": "1"}
            )
        except ProviderError as exc:
            logger.warning("Recursive tree fetch failed (%s); walking manually", exc)
            return None

        if response.status_code == 422:
            logger.info(
                "Repository %s/%s too large for recursive fetch; "
                "using manual traversal",
                owner,
                repo,
            )
            return None
        if response.status_code == 409:
            logger.info("Repository %s/%s is empty", owner, repo)
            return []
        if not response.is_success:
            logger.warning(
                "%s; walking manually", _github_error_message(action, response)
            )
            return None

        try:
            data = response.json()
            if data.get("truncated"):
                logger.info(
                    "Recursive tree for %s/%s was truncated; using manual traversal",
                    owner,
                    repo,
                )
                return None
            return _tree_blobs(data)
        except _MALFORMED_LISTING as exc:
            logger.warning(
                "Unreadable tree listing for %s/%s (%s); walking manually",
                owner,
                repo,
                exc,
            )
            return None

    async def _manual_tree(
        self, owner: str, repo: str, branch: str
    ) -> list[RepoPathEntry]:
        """Breadth-first walk of the contents API, one directory per request.

        A directory that fails to list is logged and skipped; whatever was
        found elsewhere is still returned.
        """
        entries: list[RepoPathEntry] = []
        queue: deque[str] = deque([""])

        while queue:
            directory = queue.popleft()
            label = directory or "<root>"
            action = f"list directory {label} of '{owner}/{repo}'"
            try:
                response = await self._fetcher.request(
                    contents_url(self._api_base, owner, repo, directory),
                    action=action,
                    params={"ref": branch},
                )
            except (ProviderError, RateLimitExceeded) as exc:
                logger.warning("Skipping directory %s: %s", label, exc)
                response = None

            if response is not None and not response.is_success:
                logger.warning(
                    "Skipping directory %s: %s",
                    label,
                    _github_error_message(action, response),
                )
            elif response is not None:
                try:
                    files, directories = _directory_listing(response.json())
                except _MALFORMED_LISTING as exc:
                    logger.warning(
                        "Skipping directory %s: unreadable listing (%s)", label, exc
                    )
                else:
                    entries.extend(files)
                    queue.extend(directories)

            logger.debug(
                "Manual traversal: %d files found, %d directories remaining",
                len(entries),
                len(queue),
            )
            if queue and self.traversal_delay > 0:
                await self._sleep(self.traversal_delay)

        return entries
