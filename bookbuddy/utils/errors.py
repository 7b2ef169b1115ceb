"""Custom exception hierarchy for BookBuddy.

All application exceptions inherit from :class:`BookBuddyError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "chromadb", "sqlite") caused the failure.

The hierarchy is organized by where the failure originates:

    BookBuddyError  (base -- catch-all for any BookBuddy error)
    +-- InputValidationError     (caller supplied bad input; rejected up front)
    |   +-- UnsupportedFileTypeError
    +-- NotFoundError            (unknown book / job / conversation)
    +-- PermissionDeniedError    (caller may not act on a resource)
    +-- ParseError               (corrupt or unreadable document)
    +-- IngestionError           (ingestion job orchestration)
    +-- StorageError             (blob store / record store failure)
    +-- ConfigurationError       (startup / missing config)
    +-- LLMError                 (any generation API call failure)
    +-- RateLimitError           (provider rate-limit exceeded)
    +-- ProviderUnavailableError (external service down / unreachable)
    +-- RAGError                 (embedding or vector-store failure)

The API middleware maps the first three branches to 400 / 404 / 403; every
other subclass surfaces as a 500 with a sanitized message.
"""


class BookBuddyError(Exception):
    """Base exception for all BookBuddy errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Caller-facing errors
# ---------------------------------------------------------------------------

class InputValidationError(BookBuddyError):
    """Raised when a request is rejected before any work begins."""

    def __init__(
        self,
        message: str = "Invalid input",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UnsupportedFileTypeError(InputValidationError):
    """Raised when an upload or parse request names a format we cannot read."""

    def __init__(
        self,
        message: str = "Unsupported file type. Only PDF, EPUB, and TXT files are allowed.",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NotFoundError(BookBuddyError):
    """Raised when a book, job, or conversation does not exist."""

    def __init__(
        self,
        message: str = "Resource not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PermissionDeniedError(BookBuddyError):
    """Raised when the caller is not allowed to modify a resource."""

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Ingestion errors
# ---------------------------------------------------------------------------

class ParseError(BookBuddyError):
    """Raised when a document cannot be parsed (corrupt PDF, broken EPUB zip)."""

    def __init__(
        self,
        message: str = "Failed to parse document",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IngestionError(BookBuddyError):
    """Raised when the ingestion pipeline cannot proceed."""

    def __init__(
        self,
        message: str = "Ingestion failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StorageError(BookBuddyError):
    """Raised when the blob store or record store fails."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class ProviderUnavailableError(BookBuddyError):
    """Raised when an external service or provider is unreachable."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(BookBuddyError):
    """Raised when an API rate limit is exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(BookBuddyError):
    """Raised when a generation API call fails or returns an empty response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(BookBuddyError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RAGError(BookBuddyError):
    """Raised when a RAG operation fails (embedding or vector store)."""

    def __init__(
        self,
        message: str = "RAG pipeline operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
