"""
Quick Thoughts Backend: Abstract Transcription Model Interface
================================================================

What:  Contract for the external AI service that turns one audio request into
       free text.
How:   Concrete providers implement generate() and health_check().
Who:   TranscriptionService depends on this interface; GeminiService is the
       production implementation and tests substitute mocks.
"""

from abc import ABC, abstractmethod

from quickthoughts.services.prompt_builder import TranscriptionRequest


class TranscriptionModel(ABC):
    """
    Abstract interface for audio transcription/classification providers.

    Contract:
        - generate() issues exactly one request and returns the raw reply text
        - No retries; a failed call surfaces as RequestFailedError
        - Provider-specific errors never escape the implementation
    """

    @abstractmethod
    async def generate(self, request: TranscriptionRequest) -> str:
        """
        Send one audio clip plus instruction and return the model's raw text.

        Returns:
            The unparsed reply. May be wrapped in fenced-code markers, may be
            empty. Never None.

        Raises:
            RequestFailedError: network error, timeout or provider error.
            CircuitBreakerOpenError: too many recent consecutive failures.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight reachability check that does not consume generation quota."""
        ...
