"""Tests for repo_lens.lib.github."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest

from repo_lens.lib.errors import (
    InvalidRepoReference,
    ProviderError,
    RateLimitExceeded,
    RepoLensError,
    RepoNotFound,
)
from repo_lens.lib.github import (
    RAW_ACCEPT,
    RateLimitedFetcher,
    RepositoryTreeResolver,
    _github_error_message,
    _redact_sensitive,
    contents_url,
    parse_repo_reference,
)

API = "https://api.github.com"
URL = f"{API}/repos/acme/widget"

Handler = Callable[[httpx.Request], httpx.Response]


class _Sleeper:
    """Records requested delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _run(handler: Handler, fn: Callable[[httpx.AsyncClient], Awaitable[Any]]) -> Any:
    async def _go() -> Any:
        transport = httpx.MockTransport(handler)
        async with httpx.AsyncClient(transport=transport) as client:
            return await fn(client)

    return asyncio.run(_go())


def _rate_limited(reset: int = 1060) -> httpx.Response:
    return httpx.Response(
        403,
        headers={"x-ratelimit-remaining": "0", "x-ratelimit-reset": str(reset)},
        json={"message": "API rate limit exceeded"},
    )


# ---------------------------------------------------------------------------
# parse_repo_reference / helpers
# ---------------------------------------------------------------------------


class TestParseRepoReference:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("acme/widget", ("acme", "widget")),
            ("  acme/widget  ", ("acme", "widget")),
            ("acme/widget.git", ("acme", "widget")),
            ("https://github.com/acme/widget", ("acme", "widget")),
            ("https://github.com/acme/widget/", ("acme", "widget")),
            ("http://www.github.com/acme/widget.git", ("acme", "widget")),
            ("github.com/acme/my.repo", ("acme", "my.repo")),
            ("https://github.com/acme/widget/tree/main/src", ("acme", "widget")),
        ],
    )
    def test_valid(self, text: str, expected: tuple[str, str]) -> None:
        assert parse_repo_reference(text) == expected

    @pytest.mark.parametrize(
        "text",
        ["", "widget", "acme/widget/extra", "https://gitlab.com/acme/widget"],
    )
    def test_invalid(self, text: str) -> None:
        with pytest.raises(InvalidRepoReference, match="owner/repo"):
            parse_repo_reference(text)

    def test_invalid_reference_is_a_repo_lens_error(self) -> None:
        with pytest.raises(RepoLensError) as excinfo:
            parse_repo_reference("widget")
        assert isinstance(excinfo.value, ValueError)


def test_contents_url() -> None:
    assert contents_url(API, "acme", "widget") == f"{URL}/contents"
    assert (
        contents_url(f"{API}/", "acme", "widget", "src/my file.ts")
        == f"{URL}/contents/src/my%20file.ts"
    )


def test_redact_sensitive_masks_tokens() -> None:
    text = "bad credentials ghp_abcdef123456 and github_pat_11AAA_zzz"
    redacted = _redact_sensitive(text)
    assert "abcdef123456" not in redacted
    assert "ghp_***" in redacted
    assert "github_pat_***" in redacted


def test_github_error_message_includes_status_message_and_hint() -> None:
    response = httpx.Response(404, json={"message": "Not Found"})
    msg = _github_error_message("fetch thing", response)
    assert "failed to fetch thing" in msg
    assert "(HTTP 404)" in msg
    assert "- Not Found" in msg
    assert "[hint:" in msg


def test_github_error_message_tolerates_non_json_body() -> None:
    msg = _github_error_message("fetch thing", httpx.Response(502, text="<html>"))
    assert "(HTTP 502)" in msg
    assert "[hint:" not in msg


# ---------------------------------------------------------------------------
# RateLimitedFetcher
# ---------------------------------------------------------------------------


class TestRateLimitedFetcher:
    def test_returns_success_without_retry(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"ok": True})

        sleeper = _Sleeper()
        response = _run(
            handler,
            lambda c: RateLimitedFetcher(c, sleep=sleeper).request(URL, action="x"),
        )
        assert response.json() == {"ok": True}
        assert len(calls) == 1
        assert sleeper.delays == []

    def test_exhausted_quota_raises_after_max_attempts(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return _rate_limited(reset=1060)

        sleeper = _Sleeper()
        with pytest.raises(RateLimitExceeded) as excinfo:
            _run(
                handler,
                lambda c: RateLimitedFetcher(
                    c, max_attempts=3, sleep=sleeper, clock=lambda: 1000.0
                ).request(URL, action="fetch repo metadata"),
            )
        assert len(calls) == 3
        # Waits reset - now + 1s buffer before each retry.
        assert sleeper.delays == [61.0, 61.0]
        assert excinfo.value.reset_at == 1060
        assert "GITHUB_TOKEN" in str(excinfo.value)

    def test_rate_limit_recovers_after_reset(self) -> None:
        responses = [_rate_limited(reset=1005), httpx.Response(200, json={})]

        def handler(request: httpx.Request) -> httpx.Response:
            return responses.pop(0)

        sleeper = _Sleeper()
        response = _run(
            handler,
            lambda c: RateLimitedFetcher(
                c, sleep=sleeper, clock=lambda: 1000.0
            ).request(URL, action="x"),
        )
        assert response.status_code == 200
        assert sleeper.delays == [6.0]

    def test_reset_in_the_past_raises_immediately(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return _rate_limited(reset=1000)

        sleeper = _Sleeper()
        with pytest.raises(RateLimitExceeded):
            _run(
                handler,
                lambda c: RateLimitedFetcher(
                    c, sleep=sleeper, clock=lambda: 5000.0
                ).request(URL, action="x"),
            )
        assert len(calls) == 1
        assert sleeper.delays == []

    def test_reset_too_far_away_raises_immediately(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return _rate_limited(reset=100_000)

        with pytest.raises(RateLimitExceeded):
            _run(
                handler,
                lambda c: RateLimitedFetcher(
                    c, sleep=_Sleeper(), clock=lambda: 0.0, max_reset_wait=60
                ).request(URL, action="x"),
            )

    def test_secondary_limit_honours_retry_after(self) -> None:
        responses = [
            httpx.Response(429, headers={"retry-after": "7"}),
            httpx.Response(200, json={}),
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            return responses.pop(0)

        sleeper = _Sleeper()
        _run(
            handler,
            lambda c: RateLimitedFetcher(c, sleep=sleeper).request(URL, action="x"),
        )
        assert sleeper.delays == [7.0]

    def test_plain_403_is_returned_to_caller(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(
                403,
                headers={"x-ratelimit-remaining": "42"},
                json={"message": "Resource not accessible"},
            )

        response = _run(
            handler,
            lambda c: RateLimitedFetcher(c, sleep=_Sleeper()).request(URL, action="x"),
        )
        assert response.status_code == 403
        assert len(calls) == 1

    @pytest.mark.parametrize("status", [404, 409, 422])
    def test_client_errors_are_not_retried(self, status: int) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(status, json={"message": "nope"})

        sleeper = _Sleeper()
        response = _run(
            handler,
            lambda c: RateLimitedFetcher(c, sleep=sleeper).request(URL, action="x"),
        )
        assert response.status_code == status
        assert len(calls) == 1
        assert sleeper.delays == []

    def test_server_errors_retry_with_linear_backoff(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(502, text="bad gateway")

        sleeper = _Sleeper()
        with pytest.raises(ProviderError) as excinfo:
            _run(
                handler,
                lambda c: RateLimitedFetcher(
                    c, max_attempts=3, backoff_base=1.0, sleep=sleeper
                ).request(URL, action="x"),
            )
        assert len(calls) == 3
        assert sleeper.delays == [1.0, 2.0]
        assert excinfo.value.status == 502
        assert excinfo.value.body == "bad gateway"

    def test_transport_error_then_success(self) -> None:
        attempts: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(1)
            if len(attempts) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={})

        sleeper = _Sleeper()
        response = _run(
            handler,
            lambda c: RateLimitedFetcher(
                c, backoff_base=0.5, sleep=sleeper
            ).request(URL, action="x"),
        )
        assert response.status_code == 200
        assert sleeper.delays == [0.5]

    def test_transport_error_exhausts_attempts(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        sleeper = _Sleeper()
        with pytest.raises(ProviderError, match="after 2 attempts"):
            _run(
                handler,
                lambda c: RateLimitedFetcher(
                    c, max_attempts=2, sleep=sleeper
                ).request(URL, action="x"),
            )
        assert sleeper.delays == [1.0]

    def test_auth_header_only_with_token(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        async def both(client: httpx.AsyncClient) -> None:
            await RateLimitedFetcher(client, auth_token="ghp_abc").request(
                URL, action="x", accept=RAW_ACCEPT
            )
            await RateLimitedFetcher(client).request(URL, action="x")

        _run(handler, both)
        assert seen[0].headers["Authorization"] == "Bearer ghp_abc"
        assert seen[0].headers["Accept"] == RAW_ACCEPT
        assert "Authorization" not in seen[1].headers

    def test_rejects_non_positive_attempts(self) -> None:
        with pytest.raises(ValueError, match="max_attempts"):
            RateLimitedFetcher(MagicMock(), max_attempts=0)


# ---------------------------------------------------------------------------
# RepositoryTreeResolver
# ---------------------------------------------------------------------------


class _FakeGitHub:
    """Route table keyed by URL path; each value builds a fresh response."""

    def __init__(self, routes: dict[str, Callable[[], httpx.Response]]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        build = self.routes.get(request.url.path)
        if build is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return build()

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


def _json(status: int, payload: Any) -> Callable[[], httpx.Response]:
    return lambda: httpx.Response(status, json=payload)


def _resolve(
    api: _FakeGitHub,
    fn: Callable[[RepositoryTreeResolver], Awaitable[Any]],
    sleeper: _Sleeper | None = None,
) -> Any:
    sleeper = sleeper or _Sleeper()

    async def _call(client: httpx.AsyncClient) -> Any:
        fetcher = RateLimitedFetcher(client, sleep=sleeper)
        resolver = RepositoryTreeResolver(
            fetcher, api_base=API, traversal_delay=0.5, sleep=sleeper
        )
        return await fn(resolver)

    return _run(api, _call)


class TestDefaultBranch:
    def test_returns_default_branch(self) -> None:
        api = _FakeGitHub(
            {"/repos/acme/widget": _json(200, {"default_branch": "develop"})}
        )
        assert _resolve(api, lambda r: r.default_branch("acme", "widget")) == "develop"

    def test_missing_branch_defaults_to_main(self) -> None:
        api = _FakeGitHub({"/repos/acme/widget": _json(200, {})})
        assert _resolve(api, lambda r: r.default_branch("acme", "widget")) == "main"

    def test_not_found(self) -> None:
        api = _FakeGitHub({})
        with pytest.raises(RepoNotFound) as excinfo:
            _resolve(api, lambda r: r.default_branch("acme", "widget"))
        assert excinfo.value.owner == "acme"
        assert len(api.requests) == 1

    def test_other_failure_is_provider_error(self) -> None:
        api = _FakeGitHub(
            {"/repos/acme/widget": _json(401, {"message": "Bad credentials"})}
        )
        with pytest.raises(ProviderError) as excinfo:
            _resolve(api, lambda r: r.default_branch("acme", "widget"))
        assert excinfo.value.status == 401
        assert "Bad credentials" in str(excinfo.value)

    def test_unreadable_metadata_is_provider_error(self) -> None:
        api = _FakeGitHub(
            {"/repos/acme/widget": lambda: httpx.Response(200, text="<html></html>")}
        )
        with pytest.raises(ProviderError, match="unreadable response"):
            _resolve(api, lambda r: r.default_branch("acme", "widget"))


class TestListTree:
    _TREE = "/repos/acme/widget/git/trees/main"

    def test_recursive_listing_keeps_blobs_only(self) -> None:
        api = _FakeGitHub(
            {
                self._TREE: _json(
                    200,
                    {
                        "truncated": False,
                        "tree": [
                            {"path": "src", "type": "tree"},
                            {"path": "src/a.ts", "type": "blob", "size": 12},
                            {"path": "README.md", "type": "blob"},
                            {"path": "vendor/lib", "type": "commit"},
                        ],
                    },
                )
            }
        )
        entries = _resolve(api, lambda r: r.list_tree("acme", "widget", "main"))
        assert [(e.path, e.size_bytes) for e in entries] == [
            ("src/a.ts", 12),
            ("README.md", 0),
        ]
        assert all(e.is_blob for e in entries)
        assert api.requests[0].url.params["recursive"] == "1"

    def test_empty_repository(self) -> None:
        api = _FakeGitHub(
            {self._TREE: _json(409, {"message": "Git Repository is empty."})}
        )
        assert _resolve(api, lambda r: r.list_tree("acme", "widget", "main")) == []

    @pytest.mark.parametrize(
        "tree_response",
        [
            _json(422, {"message": "tree too large"}),
            _json(200, {"truncated": True, "tree": [{"path": "x.ts", "type": "blob"}]}),
            _json(403, {"message": "forbidden"}),
        ],
    )
    def test_falls_back_to_manual_traversal(
        self, tree_response: Callable[[], httpx.Response]
    ) -> None:
        api = _FakeGitHub(
            {
                self._TREE: tree_response,
                "/repos/acme/widget/contents": _json(
                    200,
                    [
                        {"type": "dir", "path": "src"},
                        {"type": "file", "path": "README.md", "size": 10},
                    ],
                ),
                "/repos/acme/widget/contents/src": _json(
                    200, [{"type": "file", "path": "src/a.ts", "size": 5}]
                ),
            }
        )
        sleeper = _Sleeper()
        entries = _resolve(
            api, lambda r: r.list_tree("acme", "widget", "main"), sleeper
        )
        assert [e.path for e in entries] == ["README.md", "src/a.ts"]
        # Pauses between directories, not after the last one.
        assert sleeper.delays == [0.5]
        contents_requests = [
            r for r in api.requests if "/contents" in r.url.path
        ]
        assert all(r.url.params["ref"] == "main" for r in contents_requests)

    def test_manual_traversal_skips_failed_directory(self) -> None:
        api = _FakeGitHub(
            {
                self._TREE: _json(422, {}),
                "/repos/acme/widget/contents": _json(
                    200,
                    [
                        {"type": "dir", "path": "broken"},
                        {"type": "dir", "path": "src"},
                        {"type": "file", "path": "package.json", "size": 10},
                    ],
                ),
                "/repos/acme/widget/contents/broken": _json(403, {"message": "no"}),
                "/repos/acme/widget/contents/src": _json(
                    200,
                    [
                        {"type": "file", "path": "src/a.ts"},
                        {"type": "symlink", "path": "src/link"},
                    ],
                ),
            }
        )
        entries = _resolve(api, lambda r: r.list_tree("acme", "widget", "main"))
        assert [e.path for e in entries] == ["package.json", "src/a.ts"]

    def test_manual_traversal_survives_server_errors(self) -> None:
        api = _FakeGitHub(
            {
                self._TREE: _json(422, {}),
                "/repos/acme/widget/contents": _json(
                    200,
                    [
                        {"type": "dir", "path": "flaky"},
                        {"type": "file", "path": "README.md"},
                    ],
                ),
                "/repos/acme/widget/contents/flaky": lambda: httpx.Response(500),
            }
        )
        entries = _resolve(api, lambda r: r.list_tree("acme", "widget", "main"))
        assert [e.path for e in entries] == ["README.md"]
        assert api.paths().count("/repos/acme/widget/contents/flaky") == 3

    @pytest.mark.parametrize(
        "listing",
        [
            lambda: httpx.Response(200, text="<html>gateway</html>"),
            _json(200, {"type": "file", "path": "garbled"}),
            _json(200, [{"type": "file", "size": 3}]),
            _json(200, ["garbled"]),
        ],
        ids=["html-body", "not-a-list", "entry-without-path", "entry-not-a-dict"],
    )
    def test_manual_traversal_skips_unreadable_directory(
        self,
        listing: Callable[[], httpx.Response],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        api = _FakeGitHub(
            {
                self._TREE: _json(422, {}),
                "/repos/acme/widget/contents": _json(
                    200,
                    [
                        {"type": "dir", "path": "garbled"},
                        {"type": "file", "path": "README.md"},
                    ],
                ),
                "/repos/acme/widget/contents/garbled": listing,
            }
        )
        with caplog.at_level(logging.WARNING):
            entries = _resolve(api, lambda r: r.list_tree("acme", "widget", "main"))
        assert [e.path for e in entries] == ["README.md"]
        assert "Skipping directory garbled" in caplog.text

    @pytest.mark.parametrize(
        "tree_response",
        [
            lambda: httpx.Response(200, text="<html>gateway</html>"),
            _json(200, ["not", "a", "tree"]),
            _json(200, {"tree": [{"type": "blob", "path": "a.ts", "size": "big"}]}),
        ],
        ids=["html-body", "list-payload", "bad-size"],
    )
    def test_unreadable_recursive_tree_falls_back_to_manual(
        self, tree_response: Callable[[], httpx.Response]
    ) -> None:
        api = _FakeGitHub(
            {
                self._TREE: tree_response,
                "/repos/acme/widget/contents": _json(
                    200, [{"type": "file", "path": "README.md"}]
                ),
            }
        )
        entries = _resolve(api, lambda r: r.list_tree("acme", "widget", "main"))
        assert [e.path for e in entries] == ["README.md"]

    def test_resolve_tree_uses_default_branch(self) -> None:
        api = _FakeGitHub(
            {
                "/repos/acme/widget": _json(200, {"default_branch": "trunk"}),
                "/repos/acme/widget/git/trees/trunk": _json(
                    200, {"tree": [{"path": "a.py", "type": "blob"}]}
                ),
            }
        )
        entries = _resolve(api, lambda r: r.resolve_tree("acme", "widget"))
        assert [e.path for e in entries] == ["a.py"]
