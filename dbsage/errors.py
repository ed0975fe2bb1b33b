"""
Exception hierarchy for dbsage.

Driver and SDK exceptions are translated into these at the adapter seams
(connections/, llm/) so callers only ever handle DBSageError subclasses.
"""


class DBSageError(Exception):
    """Base exception for all dbsage errors."""
    pass


class ConfigurationError(DBSageError):
    """Invalid or unsupported configuration, detected before any I/O."""
    pass


class DatabaseConnectionError(DBSageError):
    """The database connection is unusable. Fatal for the current call."""
    pass


class QueryExecutionError(DBSageError):
    """A single statement failed (syntax, privileges, missing view...)."""

    def __init__(self, message: str, sql: str | None = None):
        super().__init__(message)
        self.sql = sql


class BackendError(DBSageError):
    """
    Language-model call failure.
    
    Never retried inside dbsage; rate limiting and backoff belong to the
    HTTP client configuration.
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        model: str | None = None,
        original_error: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.model = model
        self.original_error = original_error

    def __str__(self) -> str:
        parts = [self.message]
        if self.provider:
            parts.append(f"Provider: {self.provider}")
        if self.model:
            parts.append(f"Model: {self.model}")
        if self.original_error:
            parts.append(f"Original error: {self.original_error}")
        return " | ".join(parts)


class ExtractionError(DBSageError):
    """Structured data could not be parsed out of model output."""
    pass


class TurnCancelledError(DBSageError):
    """A chat turn was cancelled while in flight."""
    pass


class DeadlineExceededError(DBSageError):
    """A chat turn ran past its deadline."""
    pass


class InvalidStatusTransitionError(DBSageError):
    """An analysis record was moved to a status it cannot reach."""
    pass
