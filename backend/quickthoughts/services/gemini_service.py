"""
Quick Thoughts Backend: Google Gemini Transcription Service
=============================================================

What:  TranscriptionModel implementation backed by the Gemini API.
How:   Sends the instruction text and the inline audio blob in one
       generate_content call, guarded by a circuit breaker and a per-call
       timeout.
Who:   Instantiated once at import; called by TranscriptionService for each
       uploaded clip.

Failure policy:
    - One attempt per clip. A failed or timed-out call raises
      RequestFailedError and is recorded by the circuit breaker.
    - After cb_failure_threshold consecutive failures the breaker opens and
      calls fail immediately with CircuitBreakerOpenError until
      cb_recovery_timeout has elapsed.
"""

import asyncio
import logging
import time
import uuid
from typing import Optional

import google.generativeai as genai

from quickthoughts.config import settings
from quickthoughts.exceptions import CircuitBreakerOpenError, RequestFailedError
from quickthoughts.services.llm_base import TranscriptionModel
from quickthoughts.services.prompt_builder import TranscriptionRequest

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Circuit breaker for the Gemini boundary.

    State Machine:
        CLOSED     → on failure: increment failure_count;
                     at threshold: OPEN
        OPEN       → every call raises CircuitBreakerOpenError;
                     after recovery_timeout: HALF_OPEN
        HALF_OPEN  → one call goes through;
                     success: CLOSED, failure: OPEN

    Not thread-safe; the server runs a single asyncio loop per process.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns True if a call may proceed.

        Raises:
            CircuitBreakerOpenError if OPEN and the recovery timeout has not elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info("Circuit breaker transitioning to HALF_OPEN after %.1fs", elapsed)
                self.state = self.HALF_OPEN
                return True
            remaining = max(1, int(self.recovery_timeout - elapsed))
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Gemini Service
# ══════════════════════════════════════════════════════════════════════════

class GeminiService(TranscriptionModel):
    """Gemini-backed audio transcription and thought classification."""

    def __init__(self):
        if settings.ai_configured:
            genai.configure(api_key=settings.gemini_api_key)

        self.model = genai.GenerativeModel(settings.gemini_model)
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

        logger.info(
            "GeminiService initialized with model=%s, timeout=%ds, "
            "circuit_breaker(threshold=%d, recovery=%ds)",
            settings.gemini_model,
            settings.gemini_timeout,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    async def generate(self, request: TranscriptionRequest) -> str:
        """
        Send one clip to Gemini and return the raw reply text.

        Flow:
            1. Check circuit breaker (may raise CircuitBreakerOpenError)
            2. generate_content_async([prompt, inline audio]) with timeout
            3. Record success/failure, return text or raise RequestFailedError
        """
        call_id = str(uuid.uuid4())[:8]
        self.circuit_breaker.can_execute()

        logger.info(
            "[%s] Sending %d bytes of %s to Gemini (%d allowed folders)",
            call_id,
            request.audio.size,
            request.audio.base_mime_type,
            len(request.constraint.folders),
        )

        start_time = time.time()
        try:
            response = await self.model.generate_content_async(
                request.contents(),
                request_options={"timeout": settings.gemini_timeout},
            )
            # .text raises ValueError when the candidate was blocked or empty
            text = response.text or ""
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] Gemini call failed after %.0fms: %s",
                call_id,
                duration_ms,
                str(e),
            )
            retry_after = (
                self.circuit_breaker.recovery_timeout
                if self.circuit_breaker.state == CircuitBreaker.OPEN
                else None
            )
            raise RequestFailedError(
                message="Transcription failed. Please try recording again.",
                retry_after=retry_after,
                context={"call_id": call_id, "error_type": type(e).__name__},
            )

        self.circuit_breaker.record_success()
        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "[%s] Gemini replied in %.0fms with %d chars",
            call_id,
            duration_ms,
            len(text),
        )
        return text

    async def health_check(self) -> bool:
        """Lists models (free call) to verify the key and connectivity."""
        try:
            models = await asyncio.to_thread(lambda: list(genai.list_models()))
            model_names = [m.name for m in models]
            target = f"models/{settings.gemini_model}"
            if target not in model_names:
                logger.warning("Configured model %s not found in available models", target)
            return True
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False


# Shared instance: the circuit breaker state must be shared by all requests
gemini_service = GeminiService()
