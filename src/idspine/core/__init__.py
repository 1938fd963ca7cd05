"""idspine core -- errors, results, logging and settings shared by the engine.

Module Map
----------
  errors      Structured error hierarchy (IdSpineError and subclasses)
  result      Ok / Err envelope for per-record work
  logging     structlog configuration and context helpers
  settings    IdentitySettings (pydantic-settings) + cached accessor
"""

from idspine.core.errors import (
    AmbiguousFieldNameError,
    ConfigError,
    EmptyInputError,
    ErrorCategory,
    ErrorContext,
    IdSpineError,
    InvalidPolicyError,
    MissingFieldError,
    NonUniqueIndexError,
    OrderingError,
    UndefinedOrderError,
    UnknownAlgorithmError,
    UnresolvableTypeError,
    ValidationError,
    is_retryable,
)
from idspine.core.result import Err, Ok, Result, collect_results, try_result

__all__ = [
    # Errors
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
    # Result
    "Ok",
    "Err",
    "Result",
    "try_result",
    "collect_results",
]
