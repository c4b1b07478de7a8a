"""Model selection and first-success completion over candidate providers.

A ``Config.model`` string resolves to an ordered list of
``(provider, model)`` candidates. ``complete_first`` walks that list and
returns the first successful completion.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from repo_lens.lib.ai_providers.types import AIProvider, PromptInput
from repo_lens.lib.errors import ProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelCandidate:
    """One provider/model pair to try."""

    provider: AIProvider
    model: str

    @property
    def label(self) -> str:
        return f"{self.provider.name}/{self.model}"


@dataclass(frozen=True)
class Completion:
    """Text produced by the candidate that succeeded."""

    text: str
    candidate: ModelCandidate


def resolve_candidates(
    model: str | None,
    providers: Mapping[str, AIProvider],
) -> list[ModelCandidate]:
    """Resolve user model input into an ordered candidate list.

    Supported forms:
    - ``default`` or empty: every configured provider, each with its model chain.
    - ``provider``: that provider's model chain (e.g. ``google``).
    - ``provider/model``: explicit selection (e.g. ``openai/gpt-4o``).
    - bare model names: provider inferred by common model prefix heuristics.
    """
    raw = (model or "").strip() or "default"

    if raw == "default":
        return [
            ModelCandidate(provider=provider, model=name)
            for provider in providers.values()
            if provider.is_configured()
            for name in provider.model_chain
        ]

    direct_provider = providers.get(raw)
    if direct_provider is not None:
        return [
            ModelCandidate(provider=direct_provider, model=name)
            for name in direct_provider.model_chain
        ]

    if "/" in raw:
        maybe_provider, maybe_model = raw.split("/", 1)
        provider = providers.get(maybe_provider)
        if provider is not None:
            resolved_model = maybe_model.strip() or provider.default_model
            return [ModelCandidate(provider=provider, model=resolved_model)]

    inferred = providers.get(_infer_provider_name(raw))
    if inferred is None:
        return []
    return [ModelCandidate(provider=inferred, model=raw)]


def _infer_provider_name(model: str) -> str:
    """Infer provider name from a bare model string using prefix heuristics."""
    if model.lower().startswith("gemini"):
        return "google"
    return "openai"


def complete_first(
    candidates: Sequence[ModelCandidate],
    prompt_or_messages: PromptInput,
    **kwargs: Any,
) -> Completion:
    """Return the first candidate's successful completion.

    Raises:
        ProviderError: No candidates were given, or every candidate failed.
    """
    if not candidates:
        raise ProviderError("No AI provider is configured")

    failures: list[str] = []
    for candidate in candidates:
        try:
            text = candidate.provider.complete_text(
                prompt_or_messages, model=candidate.model, **kwargs
            )
        except ProviderError as exc:
            logger.warning("%s failed, trying next candidate: %s", candidate.label, exc)
            failures.append(f"{candidate.label}: {exc}")
            continue
        logger.info("%s response successful", candidate.label)
        return Completion(text=text, candidate=candidate)

    raise ProviderError("All AI providers failed: " + "; ".join(failures))
