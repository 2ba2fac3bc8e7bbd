"""
Notebook Backend: Google Gemini Summarizer
===========================================

What:  LLMService implementation backed by Google Gemini text generation.
Why:   One hosted model call turns extracted note text into a structured,
       bullet-point summary.
How:   Sends the fixed system instruction plus the user prompt to Gemini,
       wrapped in tenacity retries, a circuit breaker and an overall deadline.
Who:   Built once in create_app() and kept on app.state; SummaryService calls it.

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter for transient failures
    2. Circuit breaker so a Gemini outage fails fast instead of piling up
    3. asyncio.wait_for deadline (summary_timeout_seconds) over all attempts
    4. Per-call correlation id in every log line
"""

import asyncio
import logging
import time
import uuid
from typing import Optional

import google.generativeai as genai
from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from notebook.config import Settings
from notebook.exceptions import ConfigurationError, UpstreamError
from notebook.services.llm_base import LLMService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════


class CircuitBreaker:
    """
    Stops calling Gemini for a while after repeated summary failures.

    States:
        closed     summaries go through; each failed summary counts
        open       reached failure_threshold; summarize requests get an
                   UpstreamError with retry_after until recovery_timeout passes
        half_open  one trial summary is let through; success closes the
                   breaker, failure opens it again with a fresh timer

    One breaker per process. The counters are not locked; each uvicorn
    worker runs a single event loop.
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
        Check if a request is allowed through.

        Raises:
            UpstreamError: circuit is OPEN and the recovery timeout hasn't elapsed
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
            raise UpstreamError(
                message=(
                    "Summarization service is temporarily unavailable. "
                    f"Please try again in {remaining} seconds."
                ),
                retry_after=remaining,
            )

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
# Gemini Summarizer
# ══════════════════════════════════════════════════════════════════════════


def first_candidate_text(response) -> str:
    """Text of the first candidate, or "" when Gemini returned nothing usable."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return ""
    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None) or []
    return "".join(getattr(part, "text", "") or "" for part in parts).strip()


class GeminiSummarizer(LLMService):
    """
    Gemini-backed summarizer.

    Error Handling Chain:
        API call fails → tenacity retries (retry_max_attempts, backoff)
        → retries exhausted or deadline hit → record breaker failure
        → UpstreamError to the caller
        → threshold reached → further calls rejected instantly until
          cb_recovery_timeout elapses
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.configured = settings.summarizer_configured

        if self.configured:
            genai.configure(api_key=settings.gemini_api_key)

        self.model = genai.GenerativeModel(
            settings.gemini_model,
            system_instruction=self.SYSTEM_INSTRUCTION,
        )
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

        logger.info(
            "GeminiSummarizer initialized with model=%s, configured=%s, "
            "circuit_breaker(threshold=%d, recovery=%ds)",
            settings.gemini_model,
            self.configured,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    async def summarize_text(self, text: str) -> str:
        """
        Summarize `text` with Gemini.

        Flow:
            1. Refuse if no API key is configured
            2. Check circuit breaker → may raise UpstreamError
            3. Call Gemini with retries, all under one deadline
            4. Record success/failure in the breaker
        """
        if not self.configured:
            raise ConfigurationError("Summarization is not configured: GEMINI_API_KEY is missing")

        request_id = str(uuid.uuid4())[:8]
        self.circuit_breaker.can_execute()

        logger.info("[%s] Starting Gemini summary for %d chars", request_id, len(text))

        try:
            summary = await asyncio.wait_for(
                self._call_gemini_with_retry(text, request_id),
                timeout=self.settings.summary_timeout_seconds,
            )
        except asyncio.TimeoutError:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] Gemini summary timed out after %.0fs",
                request_id,
                self.settings.summary_timeout_seconds,
            )
            raise UpstreamError(
                message="Summarization timed out. Please try again later.",
                context={"request_id": request_id},
            )
        except RetryError as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] All Gemini retries exhausted: %s",
                request_id,
                e.last_attempt.exception() if e.last_attempt else "Unknown error",
            )
            raise UpstreamError(
                message="Error generating summary. Please try again later.",
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"request_id": request_id, "attempts": self.settings.retry_max_attempts},
            )

        self.circuit_breaker.record_success()
        return summary or self.EMPTY_SUMMARY

    async def _call_gemini_with_retry(self, text: str, request_id: str) -> str:
        """
        Retry only the API call, never the breaker check.

        Raises RetryError once every attempt has failed.
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(Exception),
            stop=stop_after_attempt(self.settings.retry_max_attempts),
            wait=wait_exponential(
                multiplier=self.settings.retry_min_wait,
                max=self.settings.retry_max_wait,
            )
            + wait_random(0, 1),
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )
        async for attempt in retrying:
            with attempt:
                return await self._call_gemini(text, request_id)
        return ""

    async def _call_gemini(self, text: str, request_id: str) -> str:
        start_time = time.time()
        try:
            response = await self.model.generate_content_async(
                self.build_prompt(text),
                request_options={"timeout": self.settings.summary_timeout_seconds},
            )
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.warning(
                "[%s] Gemini API call failed after %.0fms: %s",
                request_id,
                duration_ms,
                e,
            )
            raise

        summary = first_candidate_text(response)
        logger.info(
            "[%s] Gemini summary completed in %.0fms, %d chars",
            request_id,
            (time.time() - start_time) * 1000,
            len(summary),
        )
        return summary

    async def health_check(self) -> bool:
        """
        Check if Gemini is reachable by listing models (no token cost).
        """
        if not self.configured:
            return False
        try:
            models = await asyncio.to_thread(lambda: [m.name for m in genai.list_models()])
        except Exception as e:
            logger.warning("Gemini health check failed: %s", e)
            return False
        target = f"models/{self.settings.gemini_model}"
        if target not in models:
            logger.warning("Configured model %s not found in available models", target)
        return True

    def status(self) -> str:
        if not self.configured:
            return "unconfigured"
        if self.circuit_breaker.state == CircuitBreaker.OPEN:
            return "circuit_open"
        return "available"
