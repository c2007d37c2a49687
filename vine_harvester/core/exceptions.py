"""Unified exception taxonomy for the harvester.

Every domain exception inherits from ``HarvesterError`` and carries
structured context fields that drive retry decisions in the job
reconciler and HTTP status mapping at the ingress boundary.

Taxonomy categories
-------------------
- ``ValidationError``  : input/contract violations, never retryable.
- ``TransientError``   : temporary failures (network, throttle), retryable.
- ``PermanentError``   : unrecoverable domain failures, not retryable.
- ``ContractError``    : payload/schema drift at a boundary, never retryable.

Concrete error kinds used by the store, scheduler and query layers:

- ``InvalidArgumentError`` (validation): malformed input such as a
  non-positive vineyard id, ``start > end`` or ``limit <= 0``.
- ``NotFoundError`` (permanent): missing vineyard, job or observation.
- ``ConflictError`` (permanent): reserved for duplicate-resource errors.
- ``UnavailableError`` (transient): I/O failure in an adapter or store.
- ``InternalError`` (permanent): unexpected, unclassified failure.

Every exception exposes ``to_error_dict()`` for a stable structured
error payload suitable for logging and HTTP responses.
"""

from __future__ import annotations


class HarvesterError(Exception):
    """Base exception for all harvester-domain errors.

    Attributes:
        message: Human-readable error description.
        stage: Component where the error occurred
            (e.g. ``"observation_store"``, ``"scheduler"``).
        code: Machine-readable error code (e.g. ``"INVALID_ARGUMENT"``).
        retryable: Whether the caller may retry the operation.
    """

    #: Default stage for subclasses (override via class attribute or kwarg).
    default_stage: str = ""
    #: Default code for subclasses (override via class attribute or kwarg).
    default_code: str = ""

    def __init__(
        self,
        message: str = "",
        *,
        stage: str = "",
        code: str = "",
        retryable: bool = False,
    ) -> None:
        self.message = message
        self.stage = stage or self.default_stage
        self.code = code or self.default_code
        self.retryable = retryable
        super().__init__(message)

    @property
    def category(self) -> str:
        """Return the error category based on concrete class."""
        if isinstance(self, ContractError):
            return "contract"
        if isinstance(self, ValidationError):
            return "validation"
        if isinstance(self, TransientError):
            return "transient"
        if isinstance(self, PermanentError):
            return "permanent"
        return "transient" if self.retryable else "permanent"

    def to_error_dict(self) -> dict[str, object]:
        """Return a structured error payload with stable keys."""
        return {
            "category": self.category,
            "code": self.code,
            "stage": self.stage,
            "message": self.message,
            "retryable": self.retryable,
        }


# ---------------------------------------------------------------------------
# Category base classes
# ---------------------------------------------------------------------------


class ValidationError(HarvesterError):
    """Input or domain-model validation failure. Never retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class TransientError(HarvesterError):
    """Temporary failure that may succeed on retry."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class PermanentError(HarvesterError):
    """Unrecoverable domain failure. Not retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class ContractError(HarvesterError):
    """Payload or schema drift at a boundary. Never retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Error kinds
# ---------------------------------------------------------------------------


class InvalidArgumentError(ValidationError):
    """Malformed caller input."""

    default_code = "INVALID_ARGUMENT"


class NotFoundError(PermanentError):
    """A vineyard, job or observation does not exist."""

    default_code = "NOT_FOUND"


class ConflictError(PermanentError):
    """The resource already exists."""

    default_code = "CONFLICT"


class UnavailableError(TransientError):
    """Transient I/O failure from an adapter or the store."""

    default_code = "UNAVAILABLE"


class InternalError(PermanentError):
    """Unexpected or unclassified failure."""

    default_code = "INTERNAL"


class OperationCancelledError(HarvesterError):
    """The operation context was cancelled or its deadline passed."""

    default_code = "CANCELLED"
