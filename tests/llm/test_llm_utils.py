"""Tests for JSON extraction, the token bucket rate limiter and its sharing."""

from unittest.mock import MagicMock

import pytest

import cue_system.llm.gemini_client as gemini_client_module
from cue_system.classification.gemini_classifier import GeminiClassifier
from cue_system.config.settings import settings
from cue_system.llm.gemini_client import GeminiClient, extract_json_object
from cue_system.llm.rate_limiter import RateLimiter, TokenBucket, get_shared_rate_limiter
from cue_system.standardization.term_generator import GeminiTermGenerator


class TestExtractJsonObject:
    def test_markdown_block(self) -> None:
        text = 'Here you go:\n```json\n{"term": "营救", "confidence": 0.7}\n```'
        assert extract_json_object(text) == {"term": "营救", "confidence": 0.7}

    def test_surrounding_prose(self) -> None:
        assert extract_json_object('Result: {"a": 1} done') == {"a": 1}

    def test_not_an_object(self) -> None:
        assert extract_json_object("[1, 2]") is None
        assert extract_json_object("no json here") is None
        assert extract_json_object("") is None


class TestTokenBucket:
    def test_acquire_until_empty(self) -> None:
        bucket = TokenBucket(capacity=2, refill_rate=0.001)
        assert bucket.acquire()
        assert bucket.acquire()
        assert not bucket.acquire()
        assert bucket.seconds_until(1) > 0

    def test_zero_refill_never_ready(self) -> None:
        bucket = TokenBucket(capacity=1, refill_rate=0)
        bucket.acquire()
        assert bucket.seconds_until(1) == float("inf")


class TestRateLimiter:
    def test_request_limit(self) -> None:
        limiter = RateLimiter(max_rpm=1, max_tpm=1000)
        assert limiter.can_proceed(10)
        assert not limiter.can_proceed(10)

    def test_token_limit_does_not_consume_request(self) -> None:
        limiter = RateLimiter(max_rpm=10, max_tpm=100)
        assert limiter.can_proceed(100)
        assert not limiter.can_proceed(50)
        assert limiter.rpm_bucket.tokens >= 8

    @pytest.mark.asyncio
    async def test_wait_returns_when_allowed(self) -> None:
        limiter = RateLimiter(max_rpm=60, max_tpm=10000)
        await limiter.wait(10)
        assert limiter.rpm_bucket.tokens < 60


class TestSharedRateLimiter:
    @pytest.fixture
    def configure(self, monkeypatch) -> MagicMock:
        configure = MagicMock()
        monkeypatch.setattr(gemini_client_module.genai, "configure", configure)
        return configure

    def test_clients_share_default_limiter(self, configure) -> None:
        first = GeminiClient(api_key="test-key")
        second = GeminiClient(api_key="test-key")
        assert first.rate_limiter is second.rate_limiter
        assert first.rate_limiter is get_shared_rate_limiter()
        configure.assert_called_with(api_key="test-key")

    def test_explicit_limiter_is_kept(self, configure) -> None:
        limiter = RateLimiter(max_rpm=5, max_tpm=100)
        assert GeminiClient(api_key="test-key", rate_limiter=limiter).rate_limiter is limiter

    def test_classifier_and_generator_share_limiter(self, configure, monkeypatch) -> None:
        monkeypatch.setattr(settings, "gemini_api_key", "test-key")
        classifier_client = GeminiClassifier().gemini_client
        generator_client = GeminiTermGenerator().gemini_client
        assert classifier_client is not generator_client
        assert classifier_client.rate_limiter is generator_client.rate_limiter
