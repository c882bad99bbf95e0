"""
LLM Router
==========
Decides which generation backend to use and which one to fail over to.

Routing Strategy:
    1. Always attempt the preferred backend first (AI_BACKEND)
    2. On transport failure (HTTP error, timeout, connection refused) → the
       one configured alternate backend, exactly once
    3. On alternate failure → surface the preferred backend's error

What Counts as Configured:
    - ollama: always (local server, no credentials)
    - openai: only when OPENAI_API_KEY is set

The preferred backend failing this check is a ConfigurationError, raised
before any network call. An unconfigured alternate simply disables failover.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from bugbot.core.config import (
    AI_BACKEND,
    GENERATION_TEMPERATURE,
    MAX_OUTPUT_TOKENS,
    OLLAMA_BASE_URL,
    OLLAMA_MODEL,
    OLLAMA_TIMEOUT_SECONDS,
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
    OPENAI_MODEL,
    OPENAI_TIMEOUT_SECONDS,
)
from bugbot.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Provider Configuration
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ProviderConfig:
    """Configuration for a single generation backend."""
    name: str
    base_url: str
    model: str
    api_key: str = ""
    requires_api_key: bool = False
    timeout_seconds: float = 30.0
    temperature: float = GENERATION_TEMPERATURE
    max_tokens: int = MAX_OUTPUT_TOKENS

    @property
    def is_configured(self) -> bool:
        if not self.base_url or not self.model:
            return False
        return bool(self.api_key) or not self.requires_api_key


# Default provider configs
OLLAMA_CONFIG = ProviderConfig(
    name="ollama",
    base_url=OLLAMA_BASE_URL,
    model=OLLAMA_MODEL,
    timeout_seconds=OLLAMA_TIMEOUT_SECONDS,
)

OPENAI_CONFIG = ProviderConfig(
    name="openai",
    base_url=OPENAI_BASE_URL,
    model=OPENAI_MODEL,
    api_key=OPENAI_API_KEY or "",
    requires_api_key=True,
    timeout_seconds=OPENAI_TIMEOUT_SECONDS,
)


# ---------------------------------------------------------------------------
# LLM Router
# ---------------------------------------------------------------------------
class LLMRouter:
    """
    Selects the preferred backend and its single failover alternate.

    Usage:
        router = LLMRouter()
        primary = router.get_provider()          # may raise ConfigurationError
        alternate = router.get_fallback_provider(primary.name)
    """

    def __init__(
        self,
        preferred: str = AI_BACKEND,
        providers: Optional[List[ProviderConfig]] = None,
    ) -> None:
        self.preferred = (preferred or "").strip().lower()
        self._providers: list[ProviderConfig] = list(providers or [OLLAMA_CONFIG, OPENAI_CONFIG])
        self._usage_log: List[Dict[str, Any]] = []

    def get_provider(self) -> ProviderConfig:
        """
        Return the preferred provider.

        Raises
        ------
        ConfigurationError
            If the preferred backend is unknown or lacks required settings.
        """
        provider = self._find(self.preferred)
        if provider is None:
            known = ", ".join(p.name for p in self._providers)
            raise ConfigurationError(
                f"Unknown AI backend '{self.preferred}' (expected one of: {known})"
            )
        if not provider.is_configured:
            raise ConfigurationError(
                f"AI backend '{provider.name}' is selected but not configured "
                "(missing API key, base URL or model)"
            )
        logger.debug("Selected provider: %s", provider.name)
        return provider

    def get_fallback_provider(self, *exclude_names: str) -> ProviderConfig | None:
        """
        Return the first configured provider not in ``exclude_names``.

        Returns None when no alternate is configured.
        """
        for provider in self._providers:
            if provider.name not in exclude_names and provider.is_configured:
                return provider
        return None

    def _find(self, name: str) -> Optional[ProviderConfig]:
        for provider in self._providers:
            if provider.name == name:
                return provider
        return None

    # -----------------------------------------------------------------------
    # Telemetry
    # -----------------------------------------------------------------------
    def log_provider_usage(self, provider_used: str, fallback_triggered: bool = False) -> None:
        """Record which provider served a generation attempt."""
        self._usage_log.append({
            "provider_used": provider_used,
            "fallback_triggered": fallback_triggered,
        })

    def get_provider_usage_log(self) -> List[Dict[str, Any]]:
        """Return recorded provider usage events."""
        return list(self._usage_log)
