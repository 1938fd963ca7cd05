"""
Structured error types for idspine.

Every failure the identity engine can raise is a caller input or caller
configuration problem: a field whose declared type does not match its value,
two columns that clean to the same name, a batch whose order was never
declared stable, a policy that cannot work. None of them can succeed on a
retry with the same input, so every class here is non-retryable and carries
enough context (dataset tag, record index, field name) for the calling
pipeline to report exactly which input must be fixed.

Manifesto:
    - **Typed hierarchy:** One class per failure mode, grouped by category
    - **Fail fast:** Errors halt the batch call; nothing is silently recovered
    - **Rich context:** dataset_tag, record_index and field_name travel with
      the error for logging
    - **Error chaining:** The originating exception is preserved as cause

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                        IdSpineError                              │
        │          (category, retryable=False, context, cause)             │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  ValidationError          OrderingError        ConfigError       │
        │  (VALIDATION)             (ORDERING)           (CONFIG)          │
        │       │                        │                    │            │
        │  UnresolvableTypeError    UndefinedOrderError  InvalidPolicyError│
        │  AmbiguousFieldNameError  NonUniqueIndexError  UnknownAlgorithm- │
        │  MissingFieldError                             Error             │
        │  EmptyInputError                                                 │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    Adding record context while propagating:

    >>> error = UnresolvableTypeError("birth_date", "not-a-date", "date")
    >>> error.with_context(dataset_tag="ds1", record_index=7)
    UnresolvableTypeError(...)
    >>> error.to_dict()["context"]
    {'dataset_tag': 'ds1', 'record_index': 7, 'field_name': 'birth_date'}

Guardrails:
    ❌ DON'T: Catch these and continue with the rest of the batch
    ✅ DO: Surface them to the caller, who must fix the input or policy

    ❌ DON'T: Raise a plain ValueError from engine code
    ✅ DO: Raise the subclass naming the failure mode

Tags:
    error-handling, exception-hierarchy, fail-fast, idspine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Error categories for classification and routing.

    Attributes:
        VALIDATION: Record content cannot be canonicalized
        ORDERING: Sequential order missing or inconsistent
        CONFIG: Identity policy or settings are invalid
        INTERNAL: Bugs, unexpected state
        UNKNOWN: Uncategorized errors
    """

    VALIDATION = "VALIDATION"
    ORDERING = "ORDERING"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only fields that are set appear in ``to_dict()``, so a context built for a
    policy error does not carry empty record fields into the log line.

    Examples:
        >>> ctx = ErrorContext(dataset_tag="ds1", record_index=3)
        >>> ctx.to_dict()
        {'dataset_tag': 'ds1', 'record_index': 3}

    Attributes:
        dataset_tag: Tag of the batch being processed
        record_index: Position of the failing record within the batch
        field_name: Raw name of the failing field
        policy_kind: Identity policy kind in effect
        metadata: Additional key-value pairs
    """

    dataset_tag: str | None = None
    record_index: int | None = None
    field_name: str | None = None
    policy_kind: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["dataset_tag", "record_index", "field_name", "policy_kind"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class IdSpineError(Exception):
    """
    Base exception for all idspine errors.

    Subclasses set ``default_category``; ``default_retryable`` stays False for
    the whole hierarchy because identity failures are deterministic in their
    input.

    Examples:
        >>> error = IdSpineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False

    Tags:
        exception, error-hierarchy, error-context, idspine, base-class
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

    def with_context(self, **kwargs: Any) -> IdSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise MissingFieldError("location").with_context(
                dataset_tag="ds1",
                record_index=12,
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key):
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
# VALIDATION ERRORS
# =============================================================================


class ValidationError(IdSpineError):
    """
    Record content cannot be turned into a canonical form.

    Never retryable - the input must be fixed.
    """

    default_category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        constraint: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.constraint = constraint
        if field is not None and self.context.field_name is None:
            self.context.field_name = field

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        if self.constraint:
            result["constraint"] = self.constraint
        return result


class UnresolvableTypeError(ValidationError):
    """A field's declared type does not match the shape of its value."""

    def __init__(self, field: str, value: Any, declared: str, message: str | None = None):
        self.declared = declared
        super().__init__(
            message or f"Field {field!r} declared {declared} cannot hold {type(value).__name__} value {value!r}",
            field=field,
            value=value,
            constraint=f"type={declared}",
        )


class AmbiguousFieldNameError(ValidationError):
    """Two fields of one record map to the same hashed name."""

    def __init__(self, name: str, raw_names: list[str]):
        self.name = name
        self.raw_names = list(raw_names)
        super().__init__(
            f"Fields {self.raw_names!r} all normalize to {name!r}",
            field=name,
            constraint="unique-name",
        )


class MissingFieldError(ValidationError):
    """A field required by the policy is absent from the record."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Record has no field named {name!r}", field=name, constraint="required")


class EmptyInputError(ValidationError):
    """The digest engine was handed zero bytes."""

    def __init__(self, message: str = "Cannot digest zero-length canonical input"):
        super().__init__(message, constraint="non-empty")


# =============================================================================
# ORDERING ERRORS
# =============================================================================


class OrderingError(IdSpineError):
    """
    Sequential identity cannot be assigned from the batch order.

    Never retryable - the caller must declare or repair the order.
    """

    default_category = ErrorCategory.ORDERING


class UndefinedOrderError(OrderingError):
    """The batch order was not declared stable by the caller."""

    def __init__(self, message: str | None = None):
        super().__init__(
            message or "Sequential identifiers require a batch whose order is declared stable"
        )


class NonUniqueIndexError(OrderingError):
    """The caller-supplied order assigns one index to several records."""

    def __init__(self, index: int, record_indices: list[int]):
        self.index = index
        self.record_indices = list(record_indices)
        super().__init__(
            f"Sequence index {index} assigned to records {self.record_indices!r}"
        )


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(IdSpineError):
    """
    Identity policy or settings are invalid.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG


class InvalidPolicyError(ConfigError):
    """Policy options contradict each other or are out of range."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid policy option {key}: {value!r}")


class UnknownAlgorithmError(ConfigError):
    """No digest algorithm is registered under the requested identifier."""

    def __init__(self, algorithm: str, available: list[str]):
        self.algorithm = algorithm
        self.available = list(available)
        super().__init__(
            f"Unknown digest algorithm {algorithm!r}; available: {', '.join(self.available)}"
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, IdSpineError):
        return error.retryable
    return False


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "IdSpineError",
    "ValidationError",
    "UnresolvableTypeError",
    "AmbiguousFieldNameError",
    "MissingFieldError",
    "EmptyInputError",
    "OrderingError",
    "UndefinedOrderError",
    "NonUniqueIndexError",
    "ConfigError",
    "InvalidPolicyError",
    "UnknownAlgorithmError",
    "is_retryable",
]
