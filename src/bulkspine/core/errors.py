"""
Structured error types for the bulk orchestrator.

Errors carry a category, a retry hint, structured context and an optional
chained cause, so that row-level failures can be turned into result events
and job-level failures into ``job.error`` events without losing detail.

Taxonomy::

    BulkSpineError
      ├── JobConfigError          (CONFIG, PARSE)  fatal at start time
      ├── JobAlreadyRunningError  (ORCHESTRATION)  duplicate start command
      ├── RemoteCallError         (SOURCE)         per-row remote failure
      └── VerificationError       (SOURCE)         read-back failed

    Auto-pause is not an error: it is a flow-control transition and is
    reported through its own event.

Examples:
    >>> err = RemoteCallError("HTTP 429: Too Many Requests", http_status=429)
    >>> err.retryable
    True
    >>> err.with_context(job_id="c1_acme_contacts", row_number=12).to_dict()["context"]
    {'job_id': 'c1_acme_contacts', 'row_number': 12, 'http_status': 429}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    NETWORK = "NETWORK"           # Connection, timeout, DNS
    SOURCE = "SOURCE"             # Remote API rejected or returned garbage
    PARSE = "PARSE"               # Row source could not be decoded
    CONFIG = "CONFIG"             # Invalid job configuration
    ORCHESTRATION = "ORCHESTRATION"  # Registry / lifecycle conflicts
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Only fields that are set are serialised by :meth:`to_dict`; anything
    without a dedicated field goes into ``metadata``.
    """

    job_id: str | None = None
    profile: str | None = None
    job_type: str | None = None
    row_number: int | None = None
    url: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["job_id", "profile", "job_type", "row_number", "url", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class BulkSpineError(Exception):
    """Base exception for all orchestrator errors.

    Subclasses set ``default_category`` and ``default_retryable``; callers
    may override both per instance.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> BulkSpineError:
        """Add context to this error (fluent API)."""
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# JOB LIFECYCLE ERRORS
# =============================================================================


class JobConfigError(BulkSpineError):
    """Malformed job configuration: unparseable row source, empty row list."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class JobAlreadyRunningError(BulkSpineError):
    """A job with the same key is still registered."""

    default_category = ErrorCategory.ORCHESTRATION
    default_retryable = False

    def __init__(self, job_id: str):
        super().__init__(
            f"Job '{job_id}' is already active; end it before starting again",
            context=ErrorContext(job_id=job_id),
        )
        self.job_id = job_id


# =============================================================================
# REMOTE ERRORS
# =============================================================================


class RemoteCallError(BulkSpineError):
    """The remote API rejected a call or could not be reached.

    ``full_response`` keeps the decoded error body (or transport detail) for
    diagnostics; it is forwarded verbatim in the row result.
    """

    default_category = ErrorCategory.SOURCE
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        http_status: int | None = None,
        full_response: Any = None,
        url: str | None = None,
        cause: Exception | None = None,
    ):
        retryable = http_status is None or http_status == 429 or http_status >= 500
        super().__init__(
            message,
            category=ErrorCategory.NETWORK if http_status is None else None,
            retryable=retryable,
            context=ErrorContext(url=url, http_status=http_status),
            cause=cause,
        )
        self.http_status = http_status
        self.full_response = full_response


class VerificationError(BulkSpineError):
    """A created record could not be read back."""

    default_category = ErrorCategory.SOURCE
    default_retryable = True


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "BulkSpineError",
    "JobConfigError",
    "JobAlreadyRunningError",
    "RemoteCallError",
    "VerificationError",
]
