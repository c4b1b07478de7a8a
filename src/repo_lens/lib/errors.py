"""Typed failures surfaced by ingestion, search, and provider layers.

The orchestration layer catches these individually to pick user-facing
messaging; everything derives from ``RepoLensError`` so callers that only
care about "it failed" can catch one type.
"""

from __future__ import annotations

__all__ = [
    "InvalidRepoReference",
    "NoTextFilesFound",
    "ProviderError",
    "RateLimitExceeded",
    "RepoLensError",
    "RepoNotFound",
]

_BODY_EXCERPT_CHARS = 300


class RepoLensError(RuntimeError):
    """Base class for all repo_lens failures."""


class InvalidRepoReference(RepoLensError, ValueError):
    """Raised when a repository reference is not ``owner/repo`` or a GitHub URL."""


class RepoNotFound(RepoLensError):
    """The remote repository metadata call returned 404."""

    def __init__(self, owner: str, repo: str) -> None:
        self.owner = owner
        self.repo = repo
        super().__init__(
            f"GitHub repository not found: {owner}/{repo} "
            "[hint: check the URL and that the repository is public "
            "or visible to your token]"
        )


class RateLimitExceeded(RepoLensError):
    """Remaining API quota is zero and no retry is permitted."""

    def __init__(self, action: str, reset_at: int | None = None) -> None:
        self.action = action
        self.reset_at = reset_at
        parts = [f"GitHub API rate limit exceeded while trying to {action}"]
        if reset_at is not None:
            parts.append(f"(resets at epoch {reset_at})")
        parts.append("[hint: set GITHUB_TOKEN or rotate to a token with quota left]")
        super().__init__(" ".join(parts))


class ProviderError(RepoLensError):
    """Non-2xx response (after retries) or failure from an external provider."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        body: str = "",
    ) -> None:
        self.status = status
        self.body = body[:_BODY_EXCERPT_CHARS]
        parts = [message]
        if status is not None:
            parts.append(f"(HTTP {status})")
        if self.body.strip():
            parts.append(f"- {self.body.strip()}")
        super().__init__(" ".join(parts))


class NoTextFilesFound(RepoLensError):
    """Ingestion reached the repository but accepted zero text files."""

    def __init__(self, source: str, *, total_blobs: int, text_eligible: int) -> None:
        self.source = source
        self.total_blobs = total_blobs
        self.text_eligible = text_eligible
        super().__init__(
            f"No text files could be imported from {source}: "
            f"found {total_blobs} files, {text_eligible} looked like text"
        )
