"""Utility modules for BookBuddy.

- **errors** -- exception hierarchy rooted at BookBuddyError; the API maps
  its subclasses to HTTP status codes.
- **logging** -- structlog setup with a console renderer in development
  and JSON in production, plus a context manager binding job ids.
- **concurrency** -- semaphore-throttled ``gather`` used for embedding
  batches.
- **retry** -- exponential backoff for transient storage errors.
"""

# -- Domain exception hierarchy --------------------------------------------
from bookbuddy.utils.errors import (
    BookBuddyError,
    ConfigurationError,
    IngestionError,
    InputValidationError,
    LLMError,
    NotFoundError,
    ParseError,
    PermissionDeniedError,
    ProviderUnavailableError,
    RAGError,
    RateLimitError,
    StorageError,
    UnsupportedFileTypeError,
)

# -- Async concurrency helpers ---------------------------------------------
from bookbuddy.utils.concurrency import throttled_gather

# -- Structured logging setup ----------------------------------------------
from bookbuddy.utils.logging import bind_job_context, configure_logging, get_logger

# -- Retry with backoff ----------------------------------------------------
from bookbuddy.utils.retry import backoff_delay, is_transient, retry_async

__all__ = [
    "BookBuddyError",
    "ConfigurationError",
    "IngestionError",
    "InputValidationError",
    "LLMError",
    "NotFoundError",
    "ParseError",
    "PermissionDeniedError",
    "ProviderUnavailableError",
    "RAGError",
    "RateLimitError",
    "StorageError",
    "UnsupportedFileTypeError",
    "backoff_delay",
    "bind_job_context",
    "configure_logging",
    "get_logger",
    "is_transient",
    "retry_async",
    "throttled_gather",
]
