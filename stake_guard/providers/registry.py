"""Provider selection — maps the configured provider name to an instance.

No heuristics.  An unknown name fails fast at startup.
"""

from __future__ import annotations

import logging
from typing import Optional

from stake_guard.config import Settings
from stake_guard.providers.base import CompletionProvider
from stake_guard.providers.gemini import GeminiCompletionProvider
from stake_guard.providers.ollama import OllamaCompletionProvider

logger = logging.getLogger(__name__)

PROVIDER_NAMES = ("none", "gemini", "ollama")


class UnknownProviderError(ValueError):
    """Raised when the configured provider name is not recognised."""


def build_provider(cfg: Settings) -> Optional[CompletionProvider]:
    name = cfg.ai_provider.strip().lower()
    if name == "none":
        logger.info("No completion provider configured — deterministic fallback only")
        return None
    if name == "gemini":
        provider: CompletionProvider = GeminiCompletionProvider(timeout=cfg.ai_timeout_seconds)
    elif name == "ollama":
        provider = OllamaCompletionProvider(
            base_url=cfg.ollama_url,
            model=cfg.ollama_model,
            temperature=cfg.ollama_temperature,
            num_predict=cfg.ollama_num_predict,
            timeout=cfg.local_ai_timeout_seconds,
        )
    else:
        raise UnknownProviderError(
            f"Unknown ai_provider '{cfg.ai_provider}'; expected one of {', '.join(PROVIDER_NAMES)}"
        )
    logger.info("Completion provider: %s (timeout=%.1fs)", provider.name, provider.default_timeout)
    return provider
