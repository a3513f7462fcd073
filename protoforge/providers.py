"""Async clients for the supported AI text-generation APIs.

Every provider speaks a different HTTP dialect (auth header, payload shape,
where the generated text lives in the response) but exposes the same
contract::

    provider = get_provider(config)
    completion = await provider.complete(prompt_pair)
    print(completion.text)

Adding a provider means subclassing ``Provider`` and registering the class in
``PROVIDERS``. Calls are single non-streaming request/response round trips;
an optional ``on_token`` callback receives the full text once, at the end.
"""

from __future__ import annotations

import inspect
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, ClassVar, Union

import httpx
from pydantic import BaseModel

from protoforge.config import ProviderConfig
from protoforge.errors import ErrorKind, ProviderError
from protoforge.parser.models import PromptPair, RawCompletion
from protoforge.utils import scrub_text

logger = logging.getLogger(__name__)

TokenCallback = Callable[[str], Union[None, Awaitable[None]]]

_BODY_PREVIEW = 500


class ProviderInfo(BaseModel):
    """Descriptor shown by the setup wizard, CLI and dashboard."""

    name: str
    label: str
    requires_key: bool
    default_model: str
    default_base_url: str


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------


class Provider(ABC):
    """One AI HTTP API.

    Subclasses describe the request (``endpoint``, ``headers``, ``params``,
    ``build_payload``), where the text is in the response
    (``extract_text``), and optionally a cheap connectivity probe
    (``probe``).
    """

    name: ClassVar[str]
    label: ClassVar[str]
    requires_key: ClassVar[bool] = True
    default_model: ClassVar[str]
    default_base_url: ClassVar[str]

    def __init__(
        self,
        config: ProviderConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.base_url = (config.base_url or self.default_base_url).rstrip("/")
        self.model = config.model_name or self.default_model
        self.timeout = config.timeout
        self._transport = transport

    # ------------------------------------------------------------------
    # Request description (overridden per provider)
    # ------------------------------------------------------------------

    @abstractmethod
    def endpoint(self) -> str:
        """Absolute URL of the completion endpoint."""

    def headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def params(self) -> dict[str, str]:
        return {}

    @abstractmethod
    def build_payload(self, prompt: PromptPair) -> dict[str, Any]:
        """JSON body for a completion request."""

    @abstractmethod
    def extract_text(self, data: Any) -> str:
        """Pull the generated text out of the response envelope.

        May raise ``KeyError``/``IndexError``/``TypeError`` on unexpected
        shapes; ``complete`` maps those to ``MALFORMED_UPSTREAM``.
        """

    def probe(self) -> tuple[str, dict[str, str], dict[str, str]] | None:
        """``(url, headers, params)`` of a cheap GET used by ``test_connection``.

        ``None`` means the provider has no probe and is assumed reachable.
        """
        return None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        """Return a fresh ``AsyncClient`` configured with our timeout."""
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            transport=self._transport,
        )

    def _error(self, kind: ErrorKind, message: str, status_code: int | None = None) -> ProviderError:
        return ProviderError(kind, message, provider=self.name, status_code=status_code)

    def _status_error(self, response: httpx.Response) -> ProviderError:
        """Map a non-2xx response onto the error taxonomy."""
        status = response.status_code
        body = response.text[:_BODY_PREVIEW]
        if status in (401, 403):
            kind = ErrorKind.AUTH_FAILED
        elif status == 429:
            kind = ErrorKind.RATE_LIMITED
        elif status >= 500:
            kind = ErrorKind.PROVIDER_UNREACHABLE
        else:
            kind = ErrorKind.MALFORMED_UPSTREAM
        return self._error(kind, f"{self.label} returned HTTP {status}: {body}", status_code=status)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def complete(
        self,
        prompt: PromptPair,
        on_token: TokenCallback | None = None,
    ) -> RawCompletion:
        """Send *prompt* and return the generated text.

        Raises:
            ProviderError: On transport failure, non-2xx status or an
                unexpected response shape.
        """
        started = time.monotonic()
        logger.debug("POST %s (model=%s)", self.endpoint(), self.model)
        try:
            async with self._client() as client:
                response = await client.post(
                    self.endpoint(),
                    json=self.build_payload(prompt),
                    headers=self.headers(),
                    params=self.params() or None,
                )
        except httpx.ConnectError as exc:
            raise self._error(
                ErrorKind.PROVIDER_UNREACHABLE,
                f"Cannot connect to {self.label} at {self.base_url}: {exc}",
            ) from exc
        except httpx.TimeoutException as exc:
            raise self._error(
                ErrorKind.PROVIDER_UNREACHABLE,
                f"Request to {self.label} timed out after {self.timeout}s.",
            ) from exc
        except httpx.HTTPError as exc:
            raise self._error(
                ErrorKind.PROVIDER_UNREACHABLE,
                f"HTTP error talking to {self.label}: {exc}",
            ) from exc

        if not response.is_success:
            raise self._status_error(response)

        try:
            data = response.json()
        except (ValueError, RecursionError) as exc:
            raise self._error(
                ErrorKind.MALFORMED_UPSTREAM,
                f"{self.label} returned a non-JSON body: {response.text[:_BODY_PREVIEW]}",
                status_code=response.status_code,
            ) from exc

        try:
            text = self.extract_text(data)
        except (KeyError, IndexError, TypeError) as exc:
            raise self._error(
                ErrorKind.MALFORMED_UPSTREAM,
                f"Unexpected {self.label} response shape: {str(data)[:_BODY_PREVIEW]}",
                status_code=response.status_code,
            ) from exc
        if not isinstance(text, str):
            raise self._error(
                ErrorKind.MALFORMED_UPSTREAM,
                f"{self.label} response text is not a string.",
                status_code=response.status_code,
            )
        text = scrub_text(text)

        if on_token is not None:
            outcome = on_token(text)
            if inspect.isawaitable(outcome):
                await outcome

        return RawCompletion(
            text=text,
            provider=self.name,
            model=self.model,
            duration_ms=(time.monotonic() - started) * 1000.0,
        )

    async def test_connection(self) -> bool:
        """Return ``True`` if the provider answers its probe; never raises."""
        probe = self.probe()
        if probe is None:
            return True
        url, headers, params = probe
        try:
            async with self._client() as client:
                response = await client.get(url, headers=headers, params=params or None)
                return response.is_success
        except Exception:  # noqa: BLE001
            logger.debug("Connection probe to %s failed", url, exc_info=True)
            return False

    @classmethod
    def info(cls) -> ProviderInfo:
        return ProviderInfo(
            name=cls.name,
            label=cls.label,
            requires_key=cls.requires_key,
            default_model=cls.default_model,
            default_base_url=cls.default_base_url,
        )


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


class OllamaProvider(Provider):
    """Local Ollama server (``/api/generate``)."""

    name = "ollama"
    label = "Ollama (Local)"
    requires_key = False
    default_model = "llama3.2"
    default_base_url = "http://localhost:11434"

    def endpoint(self) -> str:
        return f"{self.base_url}/api/generate"

    def build_payload(self, prompt: PromptPair) -> dict[str, Any]:
        return {
            "model": self.model,
            "prompt": prompt.user_prompt,
            "system": prompt.system_prompt,
            "stream": False,
            "options": {
                "temperature": self.config.temperature,
                "num_predict": self.config.max_output_tokens,
            },
        }

    def extract_text(self, data: Any) -> str:
        # Non-streaming responses put the full text in "response".
        return data["response"]

    def probe(self) -> tuple[str, dict[str, str], dict[str, str]]:
        return f"{self.base_url}/api/tags", {}, {}


class OpenAICompatibleProvider(Provider):
    """Chat-completions API shared by OpenAI, Groq and DeepSeek."""

    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key or ''}",
            "Content-Type": "application/json",
        }

    def build_payload(self, prompt: PromptPair) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": prompt.system_prompt},
                {"role": "user", "content": prompt.user_prompt},
            ],
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_output_tokens,
        }

    def extract_text(self, data: Any) -> str:
        return data["choices"][0]["message"]["content"]

    def probe(self) -> tuple[str, dict[str, str], dict[str, str]]:
        return (
            f"{self.base_url}/models",
            {"Authorization": f"Bearer {self.config.api_key or ''}"},
            {},
        )


class OpenAIProvider(OpenAICompatibleProvider):
    name = "openai"
    label = "OpenAI"
    default_model = "gpt-4o"
    default_base_url = "https://api.openai.com/v1"


class GroqProvider(OpenAICompatibleProvider):
    name = "groq"
    label = "Groq"
    default_model = "llama-3.3-70b-versatile"
    default_base_url = "https://api.groq.com/openai/v1"


class DeepSeekProvider(OpenAICompatibleProvider):
    name = "deepseek"
    label = "DeepSeek"
    default_model = "deepseek-chat"
    default_base_url = "https://api.deepseek.com/v1"


class AnthropicProvider(Provider):
    """Anthropic Messages API (``x-api-key`` header, top-level system prompt)."""

    name = "anthropic"
    label = "Anthropic"
    default_model = "claude-sonnet-4-20250514"
    default_base_url = "https://api.anthropic.com/v1"
    api_version = "2023-06-01"

    def endpoint(self) -> str:
        return f"{self.base_url}/messages"

    def headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.config.api_key or "",
            "anthropic-version": self.api_version,
            "Content-Type": "application/json",
        }

    def build_payload(self, prompt: PromptPair) -> dict[str, Any]:
        return {
            "model": self.model,
            "max_tokens": self.config.max_output_tokens,
            "temperature": self.config.temperature,
            "system": prompt.system_prompt,
            "messages": [{"role": "user", "content": prompt.user_prompt}],
        }

    def extract_text(self, data: Any) -> str:
        return data["content"][0]["text"]

    def probe(self) -> tuple[str, dict[str, str], dict[str, str]]:
        return (
            f"{self.base_url}/models",
            {"x-api-key": self.config.api_key or "", "anthropic-version": self.api_version},
            {},
        )


class GeminiProvider(Provider):
    """Google Gemini ``generateContent`` (API key in the query string)."""

    name = "gemini"
    label = "Google Gemini"
    default_model = "gemini-2.0-flash"
    default_base_url = "https://generativelanguage.googleapis.com/v1beta"

    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def params(self) -> dict[str, str]:
        return {"key": self.config.api_key or ""}

    def build_payload(self, prompt: PromptPair) -> dict[str, Any]:
        # Gemini has no separate system role on this endpoint.
        return {
            "contents": [
                {"parts": [{"text": f"{prompt.system_prompt}\n\n{prompt.user_prompt}"}]}
            ],
            "generationConfig": {
                "temperature": self.config.temperature,
                "maxOutputTokens": self.config.max_output_tokens,
            },
        }

    def extract_text(self, data: Any) -> str:
        return data["candidates"][0]["content"]["parts"][0]["text"]

    def probe(self) -> tuple[str, dict[str, str], dict[str, str]]:
        return f"{self.base_url}/models", {}, {"key": self.config.api_key or ""}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

PROVIDERS: dict[str, type[Provider]] = {
    cls.name: cls
    for cls in (
        OllamaProvider,
        OpenAIProvider,
        GroqProvider,
        AnthropicProvider,
        GeminiProvider,
        DeepSeekProvider,
    )
}


def available_providers() -> list[ProviderInfo]:
    """Descriptors for every registered provider, in menu order."""
    return [cls.info() for cls in PROVIDERS.values()]


def get_provider(
    config: ProviderConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Provider:
    """Instantiate the provider named by ``config.provider_id``.

    Raises:
        ProviderError: ``UNKNOWN_PROVIDER`` if the id is not registered. No
            network call is made.
    """
    provider_id = (config.provider_id or "").strip().lower()
    try:
        cls = PROVIDERS[provider_id]
    except KeyError:
        known = ", ".join(PROVIDERS)
        raise ProviderError(
            ErrorKind.UNKNOWN_PROVIDER,
            f"Unknown provider: '{config.provider_id}'. Available providers: {known}",
            provider=config.provider_id,
        ) from None
    return cls(config, transport=transport)


async def dispatch(
    prompt: PromptPair,
    config: ProviderConfig,
    on_token: TokenCallback | None = None,
) -> RawCompletion:
    """Send *prompt* to the provider configured in *config*."""
    return await get_provider(config).complete(prompt, on_token=on_token)


async def test_connection(config: ProviderConfig) -> bool:
    """Probe the configured provider; unknown ids resolve to ``False``."""
    try:
        provider = get_provider(config)
    except ProviderError:
        return False
    return await provider.test_connection()


# Not a test function, despite the name.
test_connection.__test__ = False  # type: ignore[attr-defined]
