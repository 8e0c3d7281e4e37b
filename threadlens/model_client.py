"""
Language model backend client.

Provides:
- The ModelBackend contract used by extraction and analysis
- An httpx-based client for the Anthropic Messages API and
  OpenAI-compatible chat completion endpoints
- Retry logic with exponential backoff for transport failures
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from threadlens.utils.config import ModelProvider, get_settings
from threadlens.utils.exceptions import (
    ConfigurationError,
    ModelBackendError,
    ModelTimeoutError,
    RateLimitError,
)
from threadlens.utils.logger import get_logger

logger = get_logger("model")

STRUCTURED_SUFFIX = (
    "\n\nIMPORTANT: Return ONLY valid JSON with no additional text, "
    "explanations, or markdown formatting."
)

ANTHROPIC_VERSION = "2023-06-01"


class ModelBackend(ABC):
    """A text-completion backend."""

    provider: str = "unknown"

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """
        Send a prompt and return the completion text.

        Raises:
            ModelBackendError: On transport or provider errors
        """

    async def complete_structured(self, prompt: str) -> str:
        """Send a prompt with an instruction to answer in bare JSON."""
        return await self.complete(prompt + STRUCTURED_SUFFIX)


class HTTPModelClient(ModelBackend):
    """
    Client for hosted language model APIs.

    Handles authentication, request retries, and response parsing.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        provider: Optional[ModelProvider | str] = None,
        api_url: Optional[str] = None,
        model_name: Optional[str] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            api_key: Provider API key. Defaults to config value.
            provider: 'anthropic' or 'openai'. Defaults to config value.
            api_url: Base URL. Defaults to the provider's public endpoint.
            model_name: Model identifier. Defaults to config value.
            max_tokens: Completion token limit.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used in tests).

        Raises:
            ConfigurationError: If no API key is available
        """
        settings = get_settings().model
        self.provider = ModelProvider(provider or settings.provider).value
        self.api_key = api_key or settings.api_key
        self.api_url = (api_url or settings.resolved_api_url).rstrip("/")
        self.model_name = model_name or settings.resolved_model_name
        self.max_tokens = max_tokens or settings.max_tokens
        self.timeout = timeout or settings.request_timeout

        if not self.api_key:
            raise ConfigurationError(
                "Model backend API key not configured",
                missing_keys=["MODEL_API_KEY"],
            )

        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            headers=self._build_headers(),
            timeout=self.timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls) -> Optional["HTTPModelClient"]:
        """Create a client from settings, or None when no key is configured."""
        if not get_settings().has_model_backend:
            return None
        return cls()

    def _build_headers(self) -> dict[str, str]:
        """Build request headers with authentication."""
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.provider == ModelProvider.ANTHROPIC.value:
            headers["x-api-key"] = self.api_key
            headers["anthropic-version"] = ANTHROPIC_VERSION
        else:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "HTTPModelClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.aclose()

    def _build_request(self, prompt: str) -> tuple[str, dict[str, Any]]:
        """Endpoint path and JSON payload for a prompt."""
        messages = [{"role": "user", "content": prompt}]
        if self.provider == ModelProvider.ANTHROPIC.value:
            return "/messages", {
                "model": self.model_name,
                "max_tokens": self.max_tokens,
                "messages": messages,
            }
        return "/chat/completions", {
            "model": self.model_name,
            "max_tokens": self.max_tokens,
            "messages": messages,
        }

    def _extract_text(self, data: dict[str, Any]) -> str:
        """
        Pull the completion text out of a provider response.

        Malformed shapes yield empty text, which callers treat like any
        other unusable completion.
        """
        if self.provider == ModelProvider.ANTHROPIC.value:
            blocks = data.get("content")
            if not isinstance(blocks, list):
                return ""
            return "".join(
                block["text"]
                for block in blocks
                if isinstance(block, dict)
                and block.get("type") == "text"
                and isinstance(block.get("text"), str)
            )

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return ""
        message = choices[0].get("message")
        if not isinstance(message, dict):
            return ""
        content = message.get("content")
        return content if isinstance(content, str) else ""

    @retry(
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _post(self, endpoint: str, payload: dict[str, Any]) -> httpx.Response:
        """POST with retries on transport failures."""
        logger.debug(f"POST {self.api_url}{endpoint} ({self.model_name})")
        return await self._client.post(endpoint, json=payload)

    async def complete(self, prompt: str) -> str:
        """
        Send a prompt and return the completion text.

        Args:
            prompt: Prompt text

        Returns:
            Completion text (may be empty)

        Raises:
            ModelTimeoutError: When the request keeps timing out
            RateLimitError: When rate limited
            ModelBackendError: On other transport or provider errors
        """
        endpoint, payload = self._build_request(prompt)

        try:
            response = await self._post(endpoint, payload)
        except httpx.TimeoutException as e:
            logger.error(f"Model request timeout: {endpoint}")
            raise ModelTimeoutError(
                "Model request timed out",
                timeout=self.timeout,
                cause=e,
            )
        except httpx.HTTPError as e:
            logger.error(f"Model transport error: {endpoint} - {e}")
            raise ModelBackendError(
                "Network error calling model backend",
                provider=self.provider,
                cause=e,
            )

        if response.status_code == 429:
            retry_after_header = response.headers.get("Retry-After", "60")
            try:
                retry_after = int(retry_after_header)
            except (ValueError, TypeError):
                retry_after = 60
            logger.warning(f"Rate limited by {self.provider}, retry after {retry_after}s")
            raise RateLimitError(
                f"{self.provider} rate limit exceeded",
                service=self.provider,
                retry_after=retry_after,
            )

        if response.status_code >= 400:
            error_body = response.text
            logger.error(f"Model API error {response.status_code}: {error_body[:200]}")
            raise ModelBackendError(
                f"Model API error: {response.status_code}",
                status_code=response.status_code,
                response_body=error_body,
                provider=self.provider,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ModelBackendError(
                "Model API returned invalid JSON",
                status_code=response.status_code,
                response_body=response.text,
                provider=self.provider,
                cause=e,
            )

        text = self._extract_text(data if isinstance(data, dict) else {})
        logger.debug(f"Model returned {len(text)} characters")
        return text
