"""Full error hierarchy for notionpress.

Every public error class inherits from :class:`NotionpressError`.  Each
carries a machine-readable ``code`` (from :class:`ErrorCode`), a
human-readable ``message``, an optional structured ``context`` dict, and
an optional ``cause`` (chained exception).

Two families exist:

* **Transport errors** are raised by the HTTP layer for either remote
  system (validation, auth, permission, not found, rate limiting, retry
  exhaustion, network failures).
* **Sync errors** classify a failure for the orchestrator: fetching from
  the source, converting a block, writing to the target, or colliding
  with an in-flight sync of the same page.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable error codes for every error notionpress can raise."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    PERMISSION_ERROR = "PERMISSION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    RETRY_EXHAUSTED = "RETRY_EXHAUSTED"
    NETWORK_ERROR = "NETWORK_ERROR"
    FETCH_ERROR = "FETCH_ERROR"
    CONVERSION_ERROR = "CONVERSION_ERROR"
    UPSERT_ERROR = "UPSERT_ERROR"
    CONFLICT = "CONFLICT"
    BATCH_NOT_FOUND = "BATCH_NOT_FOUND"

    def __str__(self) -> str:
        return self.value


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class NotionpressError(Exception):
    """Base exception for all notionpress errors.

    Parameters
    ----------
    code:
        A value from :class:`ErrorCode` (or any string) identifying the
        error category.
    message:
        A developer-friendly description of what went wrong.
    context:
        Arbitrary structured data providing extra diagnostic detail.
        Keys and expected types are documented per subclass.
    cause:
        The underlying exception, if this error wraps another.
    """

    def __init__(
        self,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.code: str = code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: Exception | None = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


# ---------------------------------------------------------------------------
# Transport errors
# ---------------------------------------------------------------------------

class NotionpressValidationError(NotionpressError):
    """The remote API returned 400 (or another non-retryable 4xx).

    Context keys: ``status_code``, ``remote_code``, ``body``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class NotionpressAuthError(NotionpressError):
    """The remote API returned 401: the credentials are invalid or expired.

    Context keys: ``status_code``, ``remote_code``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.AUTH_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class NotionpressPermissionError(NotionpressError):
    """The remote API returned 403: access to the resource is denied.

    Context keys: ``status_code``, ``remote_code``, ``operation``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.PERMISSION_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class NotionpressNotFoundError(NotionpressError):
    """The remote API returned 404: the resource does not exist.

    Context keys: ``status_code``, ``remote_code``, ``path``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message=message,
            context=context,
            cause=cause,
        )


class NotionpressRateLimitError(NotionpressError):
    """The remote API returned 429 and the caller chose not to wait.

    Context keys: ``retry_after_seconds``, ``attempt``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.RATE_LIMITED,
            message=message,
            context=context,
            cause=cause,
        )


class NotionpressRetryExhaustedError(NotionpressError):
    """All retry attempts have been exhausted for a retryable request.

    Context keys: ``attempts``, ``last_status_code``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.RETRY_EXHAUSTED,
            message=message,
            context=context,
            cause=cause,
        )


class NotionpressNetworkError(NotionpressError):
    """A transport-level failure occurred (timeout, DNS, connection reset).

    Context keys: ``url``, ``attempt``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.NETWORK_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Sync errors
# ---------------------------------------------------------------------------

class NotionpressFetchError(NotionpressError):
    """The source API was unreachable, rate-limited past the retry budget,
    or returned malformed data.  Aborts the sync of a single page.

    Context keys: ``page_id``, ``operation``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.FETCH_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class NotionpressConversionError(NotionpressError):
    """A converter failed on a single block.

    Never escapes the conversion pipeline: the block is replaced by the
    fallback output and the error is recorded as a warning.

    Context keys: ``block_id``, ``block_type``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.CONVERSION_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class NotionpressUpsertError(NotionpressError):
    """The target system rejected a create or update of a post.

    Context keys: ``target_id``, ``operation``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.UPSERT_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class NotionpressConflictError(NotionpressError):
    """Another sync of the same source page is in flight.

    Context keys: ``source_id``, ``target_id``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.CONFLICT,
            message=message,
            context=context,
            cause=cause,
        )


class NotionpressBatchNotFoundError(NotionpressError):
    """No batch with the requested id exists (never started or purged).

    Context keys: ``batch_id``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.BATCH_NOT_FOUND,
            message=message,
            context=context,
            cause=cause,
        )
