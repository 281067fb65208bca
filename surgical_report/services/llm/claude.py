"""
Claude LLM provider implementation.

Uses the Anthropic Python SDK (``anthropic.AsyncAnthropic``). Only the
procedure suggester calls it, and it needs one complete JSON document per
call, so:

- connection problems, timeouts, rate limits and 5xx answers are retried
  with exponential backoff and surface as ``ConnectionError`` /
  ``TimeoutError``;
- rejected credentials or requests are not retried (``RuntimeError``);
- an answer cut off by ``max_tokens`` is an error, never partial JSON.
"""

import asyncio
import logging

from anthropic import (
    APIConnectionError,
    APITimeoutError,
    AsyncAnthropic,
    AuthenticationError,
    BadRequestError,
    InternalServerError,
    RateLimitError,
)
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from surgical_report.core.config import get_settings
from surgical_report.services.llm.base import JSON_SYSTEM_PROMPT, BaseLLM

logger = logging.getLogger(__name__)


class ClaudeLLM(BaseLLM):
    """Claude API provider for procedure suggestions.

    Args:
        api_key: Anthropic key; defaults to ``claude_api_key``.
        model: Model name; defaults to ``claude_model``.
        max_tokens: Output cap. Suggestion lists are short.
        temperature: Default sampling temperature.
        max_concurrent: Simultaneous requests allowed (reports share one client).
        max_attempts: Tries per call for transient failures.
        backoff: Multiplier of the exponential wait between tries, in seconds.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.3,
        max_concurrent: int = 3,
        max_attempts: int = 3,
        backoff: float = 1.0,
    ) -> None:
        settings = get_settings()
        self._api_key = api_key or settings.claude_api_key
        self._model = model or settings.claude_model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._max_attempts = max_attempts
        self._backoff = backoff
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._client = AsyncAnthropic(api_key=self._api_key)

    async def _call_api(self, request: dict) -> str:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._backoff, max=16),
            retry=retry_if_exception_type((ConnectionError, TimeoutError)),
            reraise=True,
        ):
            with attempt:
                return await self._request(request)

    async def _request(self, request: dict) -> str:
        async with self._semaphore:
            try:
                response = await self._client.messages.create(**request)
            except APITimeoutError as exc:
                logger.warning("Claude API timeout: %s", exc)
                raise TimeoutError(f"Claude API request timed out: {exc}") from exc
            except APIConnectionError as exc:
                logger.warning("Claude API connection error: %s", exc)
                raise ConnectionError(f"Failed to connect to Claude API: {exc}") from exc
            except RateLimitError as exc:
                logger.warning("Claude API rate limit hit: %s", exc)
                raise ConnectionError(f"Claude API rate limit exceeded: {exc}") from exc
            except InternalServerError as exc:
                logger.warning("Claude API server error: %s", exc)
                raise ConnectionError(f"Claude API unavailable: {exc}") from exc
            except AuthenticationError as exc:
                raise RuntimeError("Claude API key was rejected") from exc
            except BadRequestError as exc:
                raise RuntimeError(f"Claude API rejected the request: {exc}") from exc
            except Exception as exc:
                logger.error("Unexpected Claude API error: %s", exc)
                raise RuntimeError(f"Claude API error: {exc}") from exc

        if getattr(response, "stop_reason", None) == "max_tokens":
            raise RuntimeError("Claude response was truncated at max_tokens")
        text = "".join(
            block.text for block in response.content if getattr(block, "type", "text") == "text"
        )
        if not text.strip():
            raise RuntimeError("Claude returned an empty response")
        return text

    def _build_request(self, prompt: str, system: str | None, options: dict) -> dict:
        temperature = options.get("temperature")
        request: dict = {
            "model": self._model,
            "max_tokens": options.get("max_tokens") or self._max_tokens,
            "temperature": self._temperature if temperature is None else temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            request["system"] = system
        return request

    async def generate(self, prompt: str, **kwargs) -> str:
        return await self._call_api(self._build_request(prompt, kwargs.get("system"), kwargs))

    async def generate_json(self, prompt: str, **kwargs) -> str:
        """Ask for JSON only; a caller ``system`` prompt is appended to the JSON rule."""
        system = JSON_SYSTEM_PROMPT
        if kwargs.get("system"):
            system = f"{JSON_SYSTEM_PROMPT}\n\n{kwargs['system']}"
        kwargs.setdefault("temperature", 0.2)
        return await self._call_api(self._build_request(prompt, system, kwargs))
