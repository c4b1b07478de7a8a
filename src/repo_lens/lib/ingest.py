"""Repository ingestion: list, prioritize, and fetch text files in batches."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx

from repo_lens.lib.config import Config, resolve_auth_token
from repo_lens.lib.errors import NoTextFilesFound, RepoLensError
from repo_lens.lib.github import (
    RAW_ACCEPT,
    Clock,
    RateLimitedFetcher,
    RepositoryTreeResolver,
    Sleep,
    contents_url,
)
from repo_lens.lib.paths import is_text_file, should_ignore
from repo_lens.lib.priority import PrioritizedPath, prioritize
from repo_lens.lib.tree import FileNode, build_file_tree, tree_to_dicts
from repo_lens.lib.types import FetchedFile

__all__ = ["IngestResult", "RepositoryIngestor", "ingest_github"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestResult:
    """Files accepted from one ingestion run plus the project tree.

    ``file_count`` is every blob discovered, including the ones rejected as
    ignored, binary, oversized, or unfetchable.
    """

    files: list[FetchedFile]
    file_count: int
    tree: list[FileNode] = field(default_factory=list)
    skipped: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "files": [f.to_dict() for f in self.files],
            "fileCount": self.file_count,
            "tree": tree_to_dicts(self.tree),
        }


class RepositoryIngestor:
    """Fetch every importable text file of a GitHub repository.

    Files are fetched in priority order, ``BatchPolicy.size`` at a time. A
    batch is fully awaited before the next one starts, with a pause in
    between to stay inside the API rate limit.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        config: Config | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.time,
    ) -> None:
        self._client = client
        self.config = config or Config()
        self._sleep = sleep
        self._clock = clock

    def _fetcher(self, auth_token: str | None) -> RateLimitedFetcher:
        return RateLimitedFetcher(
            self._client,
            auth_token=resolve_auth_token(auth_token),
            max_attempts=self.config.max_attempts,
            sleep=self._sleep,
            clock=self._clock,
        )

    async def ingest(
        self, owner: str, repo: str, auth_token: str | None = None
    ) -> IngestResult:
        """Ingest ``owner/repo``.

        Raises:
            RepoNotFound: The repository does not exist or is not visible.
            RateLimitExceeded: The metadata call ran out of quota.
            ProviderError: The metadata call failed for another reason.
            NoTextFilesFound: Nothing passed the text and size filters.
        """
        fetcher = self._fetcher(auth_token)
        resolver = RepositoryTreeResolver(
            fetcher,
            api_base=self.config.api_base,
            traversal_delay=self.config.traversal_delay,
            sleep=self._sleep,
        )

        branch = await resolver.default_branch(owner, repo)
        blobs = [e for e in await resolver.list_tree(owner, repo, branch) if e.is_blob]
        kept = [e for e in blobs if not should_ignore(e.path)]
        ordered = prioritize(kept)
        text_eligible = sum(1 for p in ordered if is_text_file(p.path))

        policy = self.config.batch_policy(fetcher.authenticated)
        logger.info(
            "Fetching %d of %d files from %s/%s (batch size %d, delay %.1fs)",
            len(ordered),
            len(blobs),
            owner,
            repo,
            policy.size,
            policy.delay,
        )

        files: list[FetchedFile] = []
        for start in range(0, len(ordered), policy.size):
            batch = ordered[start : start + policy.size]
            files.extend(await self._fetch_batch(fetcher, owner, repo, branch, batch))
            logger.info("Progress: %d/%d files fetched", len(files), len(ordered))
            if start + policy.size < len(ordered) and policy.delay > 0:
                await self._sleep(policy.delay)

        if not files:
            raise NoTextFilesFound(
                f"{owner}/{repo}",
                total_blobs=len(blobs),
                text_eligible=text_eligible,
            )

        logger.info(
            "Imported %d text files from %s/%s (%d files found)",
            len(files),
            owner,
            repo,
            len(blobs),
        )
        return IngestResult(
            files=files,
            file_count=len(blobs),
            tree=build_file_tree(e.path for e in kept),
            skipped=len(kept) - len(files),
        )

    async def _fetch_batch(
        self,
        fetcher: RateLimitedFetcher,
        owner: str,
        repo: str,
        branch: str,
        batch: Sequence[PrioritizedPath],
    ) -> list[FetchedFile]:
        results = await asyncio.gather(
            *(self._fetch_file(fetcher, owner, repo, branch, item) for item in batch)
        )
        return [r for r in results if r is not None]

    async def _fetch_file(
        self,
        fetcher: RateLimitedFetcher,
        owner: str,
        repo: str,
        branch: str,
        item: PrioritizedPath,
    ) -> FetchedFile | None:
        """Fetch one file; ``None`` when it is skipped or fails."""
        path = item.path
        if not is_text_file(path):
            return None
        limit = self.config.max_file_bytes
        if item.entry.size_bytes > limit:
            logger.warning(
                "Skipping large file %s: %d bytes", path, item.entry.size_bytes
            )
            return None

        try:
            response = await fetcher.request(
                contents_url(self.config.api_base, owner, repo, path),
                action=f"fetch {path}",
                accept=RAW_ACCEPT,
                params={"ref": branch},
            )
        except (RepoLensError, httpx.HTTPError) as exc:
            logger.warning("Error fetching %s: %s", path, exc)
            return None
        if not response.is_success:
            logger.warning("Failed to fetch %s: HTTP %d", path, response.status_code)
            return None

        payload = response.content
        if len(payload) > limit:
            logger.warning("Skipping large file %s: %d bytes", path, len(payload))
            return None
        try:
            content = payload.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Skipping %s: not valid UTF-8", path)
            return None

        logger.debug("Fetched %s (%d chars)", path, len(content))
        return FetchedFile(path=path, content=content)


async def ingest_github(
    owner: str,
    repo: str,
    auth_token: str | None = None,
    *,
    config: Config | None = None,
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> IngestResult:
    """Run one ingestion with its own HTTP client.

    When *auth_token* is ``None`` the token from *config* is used. *timeout*
    bounds the whole run, not individual requests.
    """
    resolved = config or Config()
    token = auth_token if auth_token is not None else resolved.github_token
    async with httpx.AsyncClient(
        timeout=resolved.request_timeout,
        follow_redirects=True,
        transport=transport,
    ) as client:
        ingestor = RepositoryIngestor(client, config=resolved)
        run = ingestor.ingest(owner, repo, token)
        if timeout is None:
            return await run
        return await asyncio.wait_for(run, timeout=timeout)
