"""Provider wrapper layer for the AI completion backends.

The assistant treats these as black boxes: ``complete_text`` returns text or
raises ``ProviderError``. ``chain`` turns a model setting into an ordered
candidate list and tries them until one succeeds.
"""

from repo_lens.lib.ai_providers.chain import (
    Completion,
    ModelCandidate,
    complete_first,
    resolve_candidates,
)
from repo_lens.lib.ai_providers.google import GOOGLE_PROVIDER, GoogleProvider
from repo_lens.lib.ai_providers.openai import OPENAI_PROVIDER, OpenAIProvider
from repo_lens.lib.ai_providers.types import AIProvider

PROVIDERS: dict[str, AIProvider] = {
    GOOGLE_PROVIDER.name: GOOGLE_PROVIDER,
    OPENAI_PROVIDER.name: OPENAI_PROVIDER,
}

__all__ = [
    "GOOGLE_PROVIDER",
    "OPENAI_PROVIDER",
    "PROVIDERS",
    "AIProvider",
    "Completion",
    "GoogleProvider",
    "ModelCandidate",
    "OpenAIProvider",
    "complete_first",
    "resolve_candidates",
]
