"""LLM gateway: uniform chat-completion, embedding and structured extraction.

Every call goes through the same policy:
- a per-attempt timeout (``asyncio.wait_for``); a timeout is never retried
- bounded retry on rate-limit errors only, with a fixed wait between
  attempts (short for chat, long for embeddings)
- any other provider failure propagates immediately as LLMUpstreamError

Exports:
    LLMGateway: The gateway itself.
    LLMError, LLMRateLimitError, LLMTimeoutError, LLMUpstreamError,
    LLMResponseFormatError: Failure taxonomy raised to callers.
    is_rate_limit_error: Predicate used by the retry policy.
    get_llm_gateway: Settings-backed singleton.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import instructor
import litellm
import structlog
from instructor.core.exceptions import InstructorRetryException
from pydantic import BaseModel, ValidationError
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_fixed

from src.swiftship.config import Settings, get_settings
from src.swiftship.core.monitoring import record_rate_limit_retry, track_llm_call

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)
ResultT = TypeVar("ResultT")


# ── Errors ────────────────────────────────────────────────────────────────────


class LLMError(Exception):
    """Base class for every failure surfaced by the gateway."""

    def __init__(self, message: str, operation: str = "") -> None:
        super().__init__(message)
        self.operation = operation


class LLMRateLimitError(LLMError):
    """Rate limit persisted through every allowed retry."""


class LLMTimeoutError(LLMError):
    """A single call exceeded its timeout."""


class LLMUpstreamError(LLMError):
    """Provider failure other than rate limiting (5xx, auth, bad request)."""


class LLMResponseFormatError(LLMError):
    """Structured output did not validate against the requested model."""


def is_rate_limit_error(exc: BaseException) -> bool:
    """True for provider rate-limit signals (HTTP 429 equivalents)."""
    if isinstance(exc, litellm.RateLimitError):
        return True
    return getattr(exc, "status_code", None) == 429


# ── Gateway ───────────────────────────────────────────────────────────────────


class LLMGateway:
    """Single entry point for every LLM call made by the agents.

    Args:
        chat_model: LiteLLM model id used for ``model="chat"``.
        fast_model: LiteLLM model id used for ``model="fast"`` (routing,
            classification, extraction).
        embedding_model: LiteLLM embedding model id.
        timeout: Upper bound in seconds for one attempt.
        max_retries: Retries allowed after the first rate-limited attempt.
        chat_retry_wait: Seconds between rate-limited chat attempts.
        embed_retry_wait: Seconds between rate-limited embedding attempts.
        api_keys: Optional provider-prefix to key mapping, e.g.
            ``{"openai": "...", "anthropic": "..."}``.
    """

    def __init__(
        self,
        *,
        chat_model: str,
        fast_model: str,
        embedding_model: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        chat_retry_wait: float = 2.0,
        embed_retry_wait: float = 20.0,
        api_keys: dict[str, str] | None = None,
    ) -> None:
        self._models = {"chat": chat_model, "fast": fast_model}
        self._embedding_model = embedding_model
        self._timeout = timeout
        self._max_retries = max(0, max_retries)
        self._chat_retry_wait = chat_retry_wait
        self._embed_retry_wait = embed_retry_wait
        self._api_keys = {k: v for k, v in (api_keys or {}).items() if v}

    @classmethod
    def from_settings(cls, settings: Settings) -> LLMGateway:
        return cls(
            chat_model=settings.LLM_CHAT_MODEL,
            fast_model=settings.LLM_FAST_MODEL,
            embedding_model=settings.LLM_EMBEDDING_MODEL,
            timeout=settings.LLM_TIMEOUT,
            max_retries=settings.LLM_MAX_RETRIES,
            chat_retry_wait=settings.LLM_CHAT_RETRY_WAIT,
            embed_retry_wait=settings.LLM_EMBED_RETRY_WAIT,
            api_keys={
                "openai": settings.OPENAI_API_KEY,
                "anthropic": settings.ANTHROPIC_API_KEY,
            },
        )

    @property
    def max_retries(self) -> int:
        return self._max_retries

    # -- Public operations ------------------------------------------------

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        model: str = "chat",
        temperature: float = 0.3,
        max_tokens: int = 1024,
        response_format: dict[str, Any] | None = None,
    ) -> str:
        """Run a chat completion and return the assistant text.

        Args:
            messages: OpenAI-style message dicts with 'role' and 'content'.
            model: Model group, "chat" or "fast".
            temperature: Sampling temperature.
            max_tokens: Maximum tokens in the completion.
            response_format: Optional provider response format, e.g.
                ``{"type": "json_object"}``.

        Returns:
            The completion text ("" when the provider returns no content).

        Raises:
            LLMRateLimitError: Rate limited on every allowed attempt.
            LLMTimeoutError: An attempt exceeded the timeout.
            LLMUpstreamError: Any other provider failure.
        """
        model_id = self._resolve_model(model)
        kwargs: dict[str, Any] = {
            "model": model_id,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format is not None:
            kwargs["response_format"] = response_format
        kwargs.update(self._credentials(model_id))

        response = await self._call(
            "complete",
            model_id,
            lambda: litellm.acompletion(**kwargs),
            self._chat_retry_wait,
        )
        content = response.choices[0].message.content
        return content or ""

    async def embed(self, text: str) -> list[float]:
        """Embed one text and return its dense vector."""
        model_id = self._embedding_model
        kwargs: dict[str, Any] = {"model": model_id, "input": [text]}
        kwargs.update(self._credentials(model_id))

        response = await self._call(
            "embed",
            model_id,
            lambda: litellm.aembedding(**kwargs),
            self._embed_retry_wait,
        )
        return list(response.data[0]["embedding"])

    async def extract(
        self,
        messages: list[dict[str, str]],
        response_model: type[ModelT],
        *,
        model: str = "fast",
    ) -> ModelT:
        """Constrained structured output validated against ``response_model``.

        Uses instructor on top of LiteLLM. Validation failures are not
        retried here: the caller decides how to recover.

        Raises:
            LLMResponseFormatError: The model output did not validate.
            LLMRateLimitError, LLMTimeoutError, LLMUpstreamError: As for complete().
        """
        model_id = self._resolve_model(model)
        client = instructor.from_litellm(litellm.acompletion)
        kwargs: dict[str, Any] = {
            "model": model_id,
            "messages": messages,
            "response_model": response_model,
            "temperature": 0.0,
            "max_tokens": 1024,
            "max_retries": 1,
        }
        kwargs.update(self._credentials(model_id))

        try:
            return await self._call(
                "extract",
                model_id,
                lambda: client.chat.completions.create(**kwargs),
                self._chat_retry_wait,
            )
        except LLMUpstreamError as exc:
            cause = exc.__cause__
            if isinstance(cause, (InstructorRetryException, ValidationError)):
                raise LLMResponseFormatError(str(cause), operation="extract") from cause
            raise

    # -- Internals ----------------------------------------------------------

    def _resolve_model(self, model: str) -> str:
        return self._models.get(model, model)

    def _credentials(self, model_id: str) -> dict[str, str]:
        provider = model_id.split("/", 1)[0] if "/" in model_id else "openai"
        key = self._api_keys.get(provider)
        return {"api_key": key} if key else {}

    def _before_sleep(self, operation: str) -> Callable[[RetryCallState], None]:
        def _log(retry_state: RetryCallState) -> None:
            record_rate_limit_retry(operation)
            logger.warning(
                "llm_rate_limited",
                operation=operation,
                attempt=retry_state.attempt_number,
                max_retries=self._max_retries,
            )

        return _log

    async def _attempt(self, operation: str, request: Callable[[], Awaitable[ResultT]]) -> ResultT:
        try:
            return await asyncio.wait_for(request(), timeout=self._timeout)
        except (asyncio.TimeoutError, litellm.Timeout) as exc:
            raise LLMTimeoutError(
                f"{operation} exceeded {self._timeout}s timeout", operation=operation
            ) from exc

    async def _call(
        self,
        operation: str,
        model_id: str,
        request: Callable[[], Awaitable[ResultT]],
        wait_seconds: float,
    ) -> ResultT:
        retrying = AsyncRetrying(
            retry=retry_if_exception(is_rate_limit_error),
            stop=stop_after_attempt(self._max_retries + 1),
            wait=wait_fixed(wait_seconds),
            before_sleep=self._before_sleep(operation),
            reraise=True,
        )

        async with track_llm_call(operation, model_id):
            try:
                async for attempt in retrying:
                    with attempt:
                        result = await self._attempt(operation, request)
            except LLMError as exc:
                logger.warning(
                    "llm_call_failed",
                    operation=operation,
                    model=model_id,
                    error_type=type(exc).__name__,
                )
                raise
            except Exception as exc:
                if is_rate_limit_error(exc):
                    logger.error(
                        "llm_rate_limit_exhausted",
                        operation=operation,
                        model=model_id,
                        attempts=self._max_retries + 1,
                    )
                    raise LLMRateLimitError(
                        f"{operation} rate limited after {self._max_retries} retries",
                        operation=operation,
                    ) from exc
                logger.error(
                    "llm_call_failed",
                    operation=operation,
                    model=model_id,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                raise LLMUpstreamError(f"{operation} failed: {exc}", operation=operation) from exc

        return result


# ── Singleton ─────────────────────────────────────────────────────────────────

_llm_gateway: LLMGateway | None = None


def get_llm_gateway() -> LLMGateway:
    """Get or create the LLM gateway singleton."""
    global _llm_gateway
    if _llm_gateway is None:
        settings = get_settings()
        if not settings.llm_configured:
            logger.warning("llm_keys_missing", hint="LLM calls will fail until a provider key is set")
        _llm_gateway = LLMGateway.from_settings(settings)
    return _llm_gateway
