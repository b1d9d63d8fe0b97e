"""LLM gateway tests.

Patches litellm so no provider is called. Covers the retry policy (rate
limits only, max_retries + 1 attempts), timeouts, error mapping and
structured-output validation failures.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from instructor.core.exceptions import InstructorRetryException
from pydantic import ValidationError

from src.swiftship.agents.quote.schemas import PartialDraft
from src.swiftship.services.llm import (
    LLMGateway,
    LLMRateLimitError,
    LLMResponseFormatError,
    LLMTimeoutError,
    LLMUpstreamError,
    is_rate_limit_error,
)


# ── Helpers ──────────────────────────────────────────────────────────────────


class FakeRateLimit(Exception):
    status_code = 429


class FakeServerError(Exception):
    status_code = 500


def _gateway(max_retries: int = 2, timeout: float = 5.0) -> LLMGateway:
    return LLMGateway(
        chat_model="openai/gpt-4o",
        fast_model="openai/gpt-4o-mini",
        embedding_model="text-embedding-3-small",
        timeout=timeout,
        max_retries=max_retries,
        chat_retry_wait=0,
        embed_retry_wait=0,
        api_keys={"openai": "sk-test"},
    )


def _completion(content: str | None) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


def _validation_error() -> ValidationError:
    try:
        PartialDraft.model_validate({"weight_tons": -5})
    except ValidationError as exc:
        return exc
    raise AssertionError("expected a validation error")


# ── Rate-limit predicate ─────────────────────────────────────────────────────


def test_rate_limit_predicate():
    assert is_rate_limit_error(FakeRateLimit())
    assert not is_rate_limit_error(FakeServerError())
    assert not is_rate_limit_error(ValueError("bad"))


# ── complete() ───────────────────────────────────────────────────────────────


async def test_complete_returns_text_and_passes_model():
    mock = AsyncMock(return_value=_completion("Hello there"))
    with patch("src.swiftship.services.llm.litellm.acompletion", mock):
        text = await _gateway().complete([{"role": "user", "content": "hi"}], model="fast")

    assert text == "Hello there"
    kwargs = mock.await_args.kwargs
    assert kwargs["model"] == "openai/gpt-4o-mini"
    assert kwargs["api_key"] == "sk-test"


async def test_complete_empty_content_is_empty_string():
    with patch("src.swiftship.services.llm.litellm.acompletion", AsyncMock(return_value=_completion(None))):
        assert await _gateway().complete([{"role": "user", "content": "hi"}]) == ""


async def test_rate_limit_retried_then_succeeds():
    mock = AsyncMock(side_effect=[FakeRateLimit(), FakeRateLimit(), _completion("finally")])
    with patch("src.swiftship.services.llm.litellm.acompletion", mock):
        text = await _gateway(max_retries=2).complete([{"role": "user", "content": "hi"}])

    assert text == "finally"
    assert mock.await_count == 3


async def test_rate_limit_exhausted_raises_after_max_retries_plus_one_attempts():
    mock = AsyncMock(side_effect=FakeRateLimit())
    with patch("src.swiftship.services.llm.litellm.acompletion", mock):
        with pytest.raises(LLMRateLimitError) as exc_info:
            await _gateway(max_retries=3).complete([{"role": "user", "content": "hi"}])

    assert mock.await_count == 4
    assert exc_info.value.operation == "complete"


async def test_zero_retries_means_single_attempt():
    mock = AsyncMock(side_effect=FakeRateLimit())
    with patch("src.swiftship.services.llm.litellm.acompletion", mock):
        with pytest.raises(LLMRateLimitError):
            await _gateway(max_retries=0).complete([{"role": "user", "content": "hi"}])

    assert mock.await_count == 1


async def test_other_errors_are_not_retried():
    mock = AsyncMock(side_effect=FakeServerError("upstream down"))
    with patch("src.swiftship.services.llm.litellm.acompletion", mock):
        with pytest.raises(LLMUpstreamError) as exc_info:
            await _gateway(max_retries=3).complete([{"role": "user", "content": "hi"}])

    assert mock.await_count == 1
    assert "upstream down" in str(exc_info.value)


async def test_timeout_raises_and_is_not_retried():
    calls = 0

    async def slow(**kwargs):
        nonlocal calls
        calls += 1
        await asyncio.sleep(5)

    with patch("src.swiftship.services.llm.litellm.acompletion", slow):
        with pytest.raises(LLMTimeoutError):
            await _gateway(max_retries=3, timeout=0.05).complete([{"role": "user", "content": "hi"}])

    assert calls == 1


# ── embed() ──────────────────────────────────────────────────────────────────


async def test_embed_returns_vector():
    response = MagicMock()
    response.data = [{"embedding": [0.1, 0.2, 0.3]}]
    mock = AsyncMock(return_value=response)
    with patch("src.swiftship.services.llm.litellm.aembedding", mock):
        vector = await _gateway().embed("where is my shipment")

    assert vector == [0.1, 0.2, 0.3]
    assert mock.await_args.kwargs["input"] == ["where is my shipment"]


async def test_embed_rate_limit_uses_same_policy():
    mock = AsyncMock(side_effect=FakeRateLimit())
    with patch("src.swiftship.services.llm.litellm.aembedding", mock):
        with pytest.raises(LLMRateLimitError) as exc_info:
            await _gateway(max_retries=1).embed("text")

    assert mock.await_count == 2
    assert exc_info.value.operation == "embed"


# ── extract() ────────────────────────────────────────────────────────────────


async def test_extract_returns_validated_model():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=PartialDraft(weight_tons=12))
    with patch("src.swiftship.services.llm.instructor.from_litellm", return_value=client):
        result = await _gateway().extract([{"role": "user", "content": "12 tons"}], PartialDraft)

    assert result.weight_tons == 12
    assert client.chat.completions.create.await_args.kwargs["response_model"] is PartialDraft


async def test_extract_validation_failure_maps_to_format_error():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=_validation_error())
    with patch("src.swiftship.services.llm.instructor.from_litellm", return_value=client):
        with pytest.raises(LLMResponseFormatError):
            await _gateway().extract([{"role": "user", "content": "??"}], PartialDraft)

    assert client.chat.completions.create.await_count == 1


async def test_extract_exhausted_instructor_retries_map_to_format_error():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        side_effect=InstructorRetryException("output never validated", n_attempts=2, total_usage=0)
    )
    with patch("src.swiftship.services.llm.instructor.from_litellm", return_value=client):
        with pytest.raises(LLMResponseFormatError):
            await _gateway().extract([{"role": "user", "content": "??"}], PartialDraft)
