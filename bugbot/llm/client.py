"""
LLM Client
==========
Unified asynchronous client wrapper for the generation backends.
Supports Ollama (local, /api/generate) and any OpenAI-compatible endpoint.

Provider Fallback:
    - Primary: the router's preferred backend
    - Fallback: the router's single configured alternate
    - Fallback triggers on: HTTP error, timeout, connection failure,
      non-JSON response envelope
    - Exactly one attempt per provider, two attempts at most, never parallel
    - When both fail, the PRIMARY error is raised (root-cause diagnostics)

Data Verdicts Are Not Faults:
    The parse callback (normally the normalizer) runs outside the failover
    guard. A NeedMoreInfoError it raises reaches the caller unchanged, no
    matter how many backends are configured.

Timeouts:
    Every call is bounded twice: httpx's per-request timeout and an overall
    asyncio.wait_for ceiling, both set to the provider's timeout_seconds.
    Cancelling the surrounding task cancels the request.
"""
import asyncio
import logging
from typing import Callable, Optional, TypeVar

import httpx

from bugbot.core.errors import InfrastructureError
from bugbot.llm.router import LLMRouter, ProviderConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LLMClient:
    """
    Async HTTP client for calling generation backends.

    Usage:
        client = LLMClient()
        report = await client.generate_with_fallback(prompt, router, normalize)
        await client.close()
    """

    def __init__(self, http: Optional[httpx.AsyncClient] = None) -> None:
        self._http: Optional[httpx.AsyncClient] = http

    async def _get_http(self) -> httpx.AsyncClient:
        """Lazy-initialise the HTTP client."""
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(timeout=httpx.Timeout(30.0))
        return self._http

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http and not self._http.is_closed:
            await self._http.aclose()
            self._http = None

    async def call(self, prompt: str, provider: ProviderConfig) -> str:
        """
        Send a prompt to one provider and return its raw text.

        Parameters
        ----------
        prompt : str
            The compiled prompt.
        provider : ProviderConfig
            Backend configuration (Ollama or OpenAI-compatible).

        Returns
        -------
        str
            Raw model output; may be empty or malformed.

        Raises
        ------
        InfrastructureError
            On timeout, transport failure, non-2xx status or a non-JSON envelope.
        """
        if provider.name == "ollama":
            request = self._call_ollama(prompt, provider)
        else:
            request = self._call_openai_compatible(prompt, provider)

        logger.info("Requesting bug report from %s (%s)", provider.name, provider.model)
        try:
            raw = await asyncio.wait_for(request, timeout=provider.timeout_seconds)
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise InfrastructureError(
                provider.name, f"timed out after {provider.timeout_seconds:g}s"
            ) from e
        except httpx.HTTPStatusError as e:
            raise InfrastructureError(provider.name, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise InfrastructureError(provider.name, f"transport error: {e!r}") from e
        except ValueError as e:
            raise InfrastructureError(provider.name, "response envelope is not JSON") from e

        logger.info("Received response from %s (%d chars)", provider.name, len(raw))
        return raw

    async def _call_ollama(self, prompt: str, provider: ProviderConfig) -> str:
        """Call Ollama's non-streaming generate endpoint."""
        http = await self._get_http()
        url = f"{provider.base_url.rstrip('/')}/api/generate"
        payload = {
            "model": provider.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": provider.temperature,
                "num_predict": provider.max_tokens,
            },
        }
        resp = await http.post(url, json=payload, timeout=provider.timeout_seconds)
        resp.raise_for_status()
        data = resp.json()

        text = data.get("response") if isinstance(data, dict) else None
        return text if isinstance(text, str) else ""

    async def _call_openai_compatible(self, prompt: str, provider: ProviderConfig) -> str:
        """Call an OpenAI-compatible chat completions API."""
        http = await self._get_http()
        url = f"{provider.base_url.rstrip('/')}/chat/completions"
        headers = {
            "Authorization": f"Bearer {provider.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": provider.model,
            "messages": [
                {"role": "user", "content": prompt},
            ],
            "temperature": provider.temperature,
            "max_tokens": provider.max_tokens,
        }
        resp = await http.post(url, json=payload, headers=headers, timeout=provider.timeout_seconds)
        resp.raise_for_status()
        data = resp.json()

        # Extract text from OpenAI-compatible response
        try:
            content = data["choices"][0]["message"]["content"]
        except (IndexError, KeyError, TypeError):
            return ""
        return content if isinstance(content, str) else ""

    async def generate_with_fallback(
        self,
        prompt: str,
        router: LLMRouter,
        parse: Callable[[str], T],
    ) -> T:
        """
        Call the preferred provider, failing over once on transport errors.

        Parameters
        ----------
        prompt : str
            The compiled prompt.
        router : LLMRouter
            Provider selection.
        parse : callable
            Converts raw text into the result. Its exceptions propagate as-is.

        Raises
        ------
        ConfigurationError
            The preferred provider is unusable (raised before any request).
        InfrastructureError
            Both attempts failed; this is the preferred provider's error.
        """
        primary = router.get_provider()
        try:
            raw = await self.call(prompt, primary)
        except InfrastructureError as primary_error:
            fallback = router.get_fallback_provider(primary.name)
            if fallback is None:
                logger.error("Provider %s failed and no fallback is configured: %s", primary.name, primary_error)
                raise

            logger.warning("Provider %s failed (%s), falling back to %s", primary.name, primary_error, fallback.name)
            try:
                raw = await self.call(prompt, fallback)
            except InfrastructureError as fallback_error:
                logger.error("Fallback provider %s also failed: %s", fallback.name, fallback_error)
                raise primary_error

            router.log_provider_usage(fallback.name, fallback_triggered=True)
            return parse(raw)

        router.log_provider_usage(primary.name)
        return parse(raw)
