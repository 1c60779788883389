"""
Quick Thoughts Backend: Gemini Service Unit Tests (Mocked)
============================================================

What we test:
    ✅ Circuit breaker state machine
    ✅ generate() sends prompt + inline audio and returns the reply text
    ✅ A failed call raises RequestFailedError once, with no retry
    ✅ Open circuit fails fast without calling the SDK
    ❌ Real API calls
"""

import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from quickthoughts.domain import AudioClip, ClassificationConstraint
from quickthoughts.exceptions import CircuitBreakerOpenError, RequestFailedError
from quickthoughts.services.gemini_service import CircuitBreaker, GeminiService
from quickthoughts.services.prompt_builder import build_transcription_request


@pytest.fixture
def request_for_clip():
    clip = AudioClip(data=b"RIFF-fake-audio", mime_type="audio/webm;codecs=opus")
    constraint = ClassificationConstraint.from_names(["Work"])
    return build_transcription_request(clip, constraint)


def make_service(model):
    with patch("quickthoughts.services.gemini_service.genai") as mock_genai:
        mock_genai.GenerativeModel.return_value = model
        service = GeminiService()
    service.model = model
    return service


class TestCircuitBreaker:
    """Tests for the CircuitBreaker state machine."""

    def test_initial_state_is_closed(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        assert cb.state == "closed"
        assert cb.failure_count == 0

    def test_stays_closed_under_threshold(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        for _ in range(4):
            cb.record_failure()
        assert cb.state == "closed"
        assert cb.can_execute() is True

    def test_opens_at_threshold(self):
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        for _ in range(3):
            cb.record_failure()
        assert cb.state == "open"

    def test_open_circuit_rejects_calls(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
        cb.record_failure()

        with pytest.raises(CircuitBreakerOpenError):
            cb.can_execute()

    def test_success_resets_failure_count(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        cb.record_failure()
        cb.record_failure()
        assert cb.failure_count == 2

        cb.record_success()
        assert cb.failure_count == 0
        assert cb.state == "closed"

    def test_half_open_after_recovery_timeout(self):
        """With a 0s timeout the next check moves to HALF_OPEN and lets one call through."""
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        cb.record_failure()
        time.sleep(0.01)

        assert cb.can_execute() is True
        assert cb.state == "half_open"

    def test_failure_in_half_open_reopens(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        cb.record_failure()
        time.sleep(0.01)
        cb.can_execute()

        cb.record_failure()
        assert cb.state == "open"


class TestGeminiServiceMocked:
    """GeminiService with the SDK model replaced by a mock."""

    @pytest.mark.asyncio
    async def test_generate_returns_reply_text(self, request_for_clip):
        response = MagicMock()
        response.text = '{"transcription": "hi", "thoughts": []}'
        model = MagicMock()
        model.generate_content_async = AsyncMock(return_value=response)
        service = make_service(model)

        result = await service.generate(request_for_clip)

        assert result == '{"transcription": "hi", "thoughts": []}'
        contents = model.generate_content_async.call_args.args[0]
        assert contents[0] == request_for_clip.prompt
        assert contents[1] == {"mime_type": "audio/webm", "data": b"RIFF-fake-audio"}
        assert "timeout" in model.generate_content_async.call_args.kwargs["request_options"]

    @pytest.mark.asyncio
    async def test_failure_raises_request_failed_without_retry(self, request_for_clip):
        model = MagicMock()
        model.generate_content_async = AsyncMock(side_effect=TimeoutError("deadline exceeded"))
        service = make_service(model)

        with pytest.raises(RequestFailedError):
            await service.generate(request_for_clip)

        assert model.generate_content_async.await_count == 1
        assert service.circuit_breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_open_circuit_skips_sdk_call(self, request_for_clip):
        model = MagicMock()
        model.generate_content_async = AsyncMock()
        service = make_service(model)
        for _ in range(service.circuit_breaker.failure_threshold):
            service.circuit_breaker.record_failure()

        with pytest.raises(CircuitBreakerOpenError):
            await service.generate(request_for_clip)
        model.generate_content_async.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_success_closes_breaker(self, request_for_clip):
        response = MagicMock()
        response.text = "{}"
        model = MagicMock()
        model.generate_content_async = AsyncMock(return_value=response)
        service = make_service(model)
        service.circuit_breaker.record_failure()

        await service.generate(request_for_clip)
        assert service.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_health_check_returns_bool(self):
        service = make_service(MagicMock())
        with patch("quickthoughts.services.gemini_service.genai") as mock_genai:
            mock_genai.list_models.return_value = [MagicMock(name="models/gemini-2.5-flash")]
            assert await service.health_check() is True

            mock_genai.list_models.side_effect = RuntimeError("network down")
            assert await service.health_check() is False
