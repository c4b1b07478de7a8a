"""Configuration loading: CLI flags → env vars → .env file → defaults."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_MODEL_PATTERN = re.compile(r"^[a-zA-Z0-9._:/-]+$")
_TOKEN_PREFIXES = ("ghp_", "ghs_", "gho_", "ghu_", "github_pat_")

try:
    from dotenv import load_dotenv
except ImportError:  # pragma: no cover - optional dependency safety
    load_dotenv = None  # type: ignore[assignment]

ConfigValue = str | bool | int | float | None


@dataclass(frozen=True)
class BatchPolicy:
    """How many file fetches run together and how long to pause between batches."""

    size: int
    delay: float


def is_well_formed_token(token: str | None) -> bool:
    """Return True when *token* looks like a GitHub token."""
    if not token:
        return False
    return token.strip().startswith(_TOKEN_PREFIXES)


def resolve_auth_token(token: str | None) -> str | None:
    """Return a usable bearer token or ``None``.

    Malformed tokens are treated as absent rather than rejected so a bad
    ``GITHUB_TOKEN`` degrades to unauthenticated access.
    """
    if not token or not token.strip():
        return None
    if not is_well_formed_token(token):
        logger.warning(
            "Ignoring malformed GitHub token; expected a prefix like "
            "'ghp_' or 'github_pat_'. Continuing unauthenticated."
        )
        return None
    return token.strip()


def _validate_model(model: str) -> None:
    """Warn if model string doesn't match expected patterns."""
    if not model or model == "default":
        return
    if not _MODEL_PATTERN.match(model):
        logger.warning(
            "Model '%s' contains unexpected characters; "
            "expected bare name (e.g. 'gemini-2.5-flash') or "
            "'provider/model' (e.g. 'openai/gpt-4o-mini')",
            model,
        )


def _load_env_files() -> None:
    """Load a dotenv file from the working directory when available."""
    if load_dotenv is None:
        return
    load_dotenv(Path.cwd() / ".env", override=False)


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("1", "true", "yes")


def _env_number(name: str, cast: type[int] | type[float]) -> int | float | None:
    """Parse a positive number from the environment, ``None`` when unset or bad."""
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        value = cast(raw.strip())
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number", name, raw)
        return None
    if value <= 0:
        logger.warning("Ignoring %s=%r: must be > 0", name, raw)
        return None
    return value


@dataclass(frozen=True)
class Config:
    """Immutable application configuration."""

    github_token: str = ""
    api_base: str = "https://api.github.com"
    max_file_bytes: int = 100_000
    max_attempts: int = 3
    auth_batch_size: int = 8
    auth_batch_delay: float = 0.8
    anon_batch_size: int = 4
    anon_batch_delay: float = 1.5
    traversal_delay: float = 0.5
    request_timeout: float = 30.0
    model: str = "default"
    verbose: bool = False

    def __post_init__(self) -> None:
        """Validate numeric limits and warn about odd model strings."""
        for name in (
            "max_file_bytes",
            "max_attempts",
            "auth_batch_size",
            "anon_batch_size",
            "request_timeout",
        ):
            if getattr(self, name) <= 0:
                msg = f"{name} must be > 0, got {getattr(self, name)!r}"
                raise ValueError(msg)
        for name in ("auth_batch_delay", "anon_batch_delay", "traversal_delay"):
            if getattr(self, name) < 0:
                msg = f"{name} must be >= 0, got {getattr(self, name)!r}"
                raise ValueError(msg)
        _validate_model(self.model)

    @property
    def auth_token(self) -> str | None:
        """The configured token when well-formed, else ``None``."""
        return resolve_auth_token(self.github_token)

    def batch_policy(self, authenticated: bool) -> BatchPolicy:
        """Batch size/delay for authenticated or anonymous ingestion."""
        if authenticated:
            return BatchPolicy(size=self.auth_batch_size, delay=self.auth_batch_delay)
        return BatchPolicy(size=self.anon_batch_size, delay=self.anon_batch_delay)

    @classmethod
    def from_env(cls, overrides: dict[str, ConfigValue] | None = None) -> Config:
        """Build config from environment variables, then apply overrides.

        Priority: overrides (CLI flags) > env vars > defaults.
        """
        _load_env_files()

        env_values: dict[str, ConfigValue] = {
            "github_token": os.environ.get(
                "GITHUB_TOKEN", os.environ.get("GH_TOKEN", "")
            ),
            "api_base": os.environ.get("REPO_LENS_GITHUB_API"),
            "max_file_bytes": _env_number("REPO_LENS_MAX_FILE_BYTES", int),
            "max_attempts": _env_number("REPO_LENS_MAX_ATTEMPTS", int),
            "auth_batch_size": _env_number("REPO_LENS_AUTH_BATCH_SIZE", int),
            "auth_batch_delay": _env_number("REPO_LENS_AUTH_BATCH_DELAY", float),
            "anon_batch_size": _env_number("REPO_LENS_ANON_BATCH_SIZE", int),
            "anon_batch_delay": _env_number("REPO_LENS_ANON_BATCH_DELAY", float),
            "traversal_delay": _env_number("REPO_LENS_TRAVERSAL_DELAY", float),
            "request_timeout": _env_number("REPO_LENS_REQUEST_TIMEOUT", float),
            "model": os.environ.get("REPO_LENS_MODEL"),
            "verbose": _env_flag("REPO_LENS_VERBOSE"),
        }

        merged = {k: v for k, v in env_values.items() if v}
        if overrides:
            merged.update({k: v for k, v in overrides.items() if v is not None})

        return cls(
            github_token=str(merged.get("github_token", cls.github_token)),
            api_base=str(merged.get("api_base", cls.api_base)).rstrip("/"),
            max_file_bytes=int(merged.get("max_file_bytes", cls.max_file_bytes)),
            max_attempts=int(merged.get("max_attempts", cls.max_attempts)),
            auth_batch_size=int(merged.get("auth_batch_size", cls.auth_batch_size)),
            auth_batch_delay=float(
                merged.get("auth_batch_delay", cls.auth_batch_delay)
            ),
            anon_batch_size=int(merged.get("anon_batch_size", cls.anon_batch_size)),
            anon_batch_delay=float(
                merged.get("anon_batch_delay", cls.anon_batch_delay)
            ),
            traversal_delay=float(merged.get("traversal_delay", cls.traversal_delay)),
            request_timeout=float(merged.get("request_timeout", cls.request_timeout)),
            model=str(merged.get("model", cls.model)),
            verbose=bool(merged.get("verbose", cls.verbose)),
        )
