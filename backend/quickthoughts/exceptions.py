"""
Quick Thoughts Backend: Custom Exception Hierarchy
====================================================

What:  Application-specific exceptions for every failure the capture pipeline
       knows how to report.
How:   Each exception carries a user-safe message and an optional context
       dict. Global handlers in main.py turn server-side exceptions into JSON
       error responses; the capture client raises and catches the client-side
       ones directly.

Exception Hierarchy:
    QuickThoughtsError (base)
    ├── ValidationError          → 400 Bad Request (missing/invalid audio, bad input)
    ├── UnauthorizedError        → 400 Bad Request (no active session)
    ├── NotFoundError            → 404 Not Found
    ├── RequestFailedError       → 500 (AI, auth or store call failed; no retry)
    ├── CircuitBreakerOpenError  → 503 Service Unavailable (AI fast-fail)
    ├── MalformedResponseError   (parser only; degrades to a single thought)
    ├── ConfigurationError       → 500 (required credentials missing)
    ├── DatabaseError            → 500 Internal Server Error
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── DeviceUnavailableError   (client capture: no microphone / permission)
    └── CaptureBusyError         (client capture: clip already in progress)
"""

from typing import Any, Dict, List, Optional


class QuickThoughtsError(Exception):
    """
    Base exception for all Quick Thoughts errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, not returned for server errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(QuickThoughtsError):
    """
    Raised when client input fails validation.

    When:    Missing audio field, empty upload, unsupported MIME type, oversize
             upload, invalid onboarding username or folder list.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class UnauthorizedError(QuickThoughtsError):
    """
    Raised when a request has no valid session.

    Server:  missing or rejected bearer token (HTTP 400, same as missing audio).
    Client:  the API answered "unauthorized"; the caller should send the user
             to the sign-in entry point.
    """

    def __init__(
        self,
        message: str = "You must be signed in to do that",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(QuickThoughtsError):
    """Raised when a requested resource does not exist for the current user."""

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class RequestFailedError(QuickThoughtsError):
    """
    Raised when a network call to the AI service, the auth provider or the
    Quick Thoughts API fails or times out.

    There is no automatic retry. The server answers 500; the client shows the
    message inline and lets the user try again.
    """

    def __init__(
        self,
        message: str = "The request could not be completed. Please try again.",
        retry_after: Optional[int] = None,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        if status_code:
            ctx["status_code"] = status_code
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
        self.status_code = status_code


class CircuitBreakerOpenError(QuickThoughtsError):
    """
    Raised when the Gemini circuit breaker is OPEN.

    How the breaker works:
        CLOSED (normal) → failures increment counter
        → After N failures → OPEN (reject all calls for M seconds)
        → After M seconds → HALF-OPEN (allow one test call)
        → Test succeeds → CLOSED; test fails → OPEN again
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Transcription is temporarily unavailable due to repeated failures. "
            f"Please try again in about {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class MalformedResponseError(QuickThoughtsError):
    """
    Raised by the response parser when the model's reply is not a JSON object
    after fenced-code markers are stripped.

    Never reaches the HTTP layer: classify_response() catches it and degrades
    to a single synthetic thought carrying the reply text.
    """

    def __init__(
        self,
        message: str = "The AI response could not be parsed",
        raw_preview: str = "",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if raw_preview:
            ctx["raw_preview"] = raw_preview[:200]
        super().__init__(message=message, context=ctx)


class ConfigurationError(QuickThoughtsError):
    """
    Raised by a route that needs an external service whose credentials are
    not configured (GEMINI_API_KEY, SUPABASE_URL, SUPABASE_ANON_KEY).
    """

    def __init__(
        self,
        missing: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        missing = missing or []
        message = "The server is not configured for this operation."
        ctx = context or {}
        ctx["missing"] = missing
        super().__init__(message=message, context=ctx)
        self.missing = missing


class DatabaseError(QuickThoughtsError):
    """
    Raised when a database operation fails unexpectedly.

    The message returned to the client is always generic; the context is
    logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(QuickThoughtsError):
    """Raised when a caller exceeds the transcription rate limit (HTTP 429)."""

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class DeviceUnavailableError(QuickThoughtsError):
    """
    Raised by the recorder when no input device can be opened.

    Covers: audio backend missing, permission denied, no default microphone.
    Recoverable by retrying once the device is available.
    """

    def __init__(
        self,
        message: str = "Could not access microphone. Please check permissions.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class CaptureBusyError(QuickThoughtsError):
    """Raised when a capture is started while another one is still in progress."""

    def __init__(
        self,
        message: str = "A recording is already being captured or transcribed.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
