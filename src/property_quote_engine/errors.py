from __future__ import annotations


class QuoteEngineError(Exception):
    """Base error for quote generation and project scheduling.

    ``retryable`` tells callers whether a "try again" action makes sense.
    """

    retryable: bool = True

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class GenerationFormatError(QuoteEngineError):
    """Model output could not be parsed into the expected quote shape."""


class EmptyQuoteError(QuoteEngineError):
    """No service line items were identified."""

    retryable = False


class GenerationExhaustedError(QuoteEngineError):
    def __init__(self, detail: str, *, attempts: int, last_error: BaseException) -> None:
        super().__init__(detail)
        self.attempts = attempts
        self.last_error = last_error


class ProjectCreationError(QuoteEngineError):
    """Task batch could not be written to the task store."""


class TaskStoreError(QuoteEngineError):
    pass


class TaskNotFoundError(TaskStoreError):
    retryable = False


class InvalidQuoteTransitionError(QuoteEngineError):
    retryable = False


class QuoteExpiredError(QuoteEngineError):
    retryable = False


__all__ = [
    "QuoteEngineError",
    "GenerationFormatError",
    "EmptyQuoteError",
    "GenerationExhaustedError",
    "ProjectCreationError",
    "TaskStoreError",
    "TaskNotFoundError",
    "InvalidQuoteTransitionError",
    "QuoteExpiredError",
]
