"""
Result type for explicit success/failure handling.

The assigner canonicalizes and digests records independently, possibly on
worker threads. Each unit of per-record work returns a ``Result`` instead of
raising on its worker, and the collected results are then resolved in batch
order: the first ``Err`` by record position decides the error the caller
sees, no matter which worker finished first.

Manifesto:
    - **Explicit failure:** Per-record work returns Ok or Err, never half-raises
    - **Order preserved:** Collection follows input order, not completion order
    - **Fail-fast:** ``collect_results`` stops at the first Err

Architecture:
    ::

        try_result(lambda: work(record))   ─>  Ok(value) | Err(error)

        [Ok(a), Ok(b), Ok(c)]      ── collect_results ──>  Ok([a, b, c])
        [Ok(a), Err(x), Err(y)]    ── collect_results ──>  Err(x)

Examples:
    >>> collect_results([Ok(1), Ok(2)]).unwrap()
    [1, 2]
    >>> collect_results([Ok(1), Err(ValueError("bad"))]).is_err()
    True

Tags:
    result-pattern, error-handling, batch-processing, idspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Successful result containing a value.

    Examples:
        >>> Ok(10).map(lambda x: x * 2).unwrap()
        20
    """

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Get the value. Safe for Ok."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, f: Callable[[T], U]) -> Result[U]:
        """Transform the value if Ok."""
        return Ok(f(self.value))

    def to_dict(self) -> dict[str, Any]:
        return {"ok": True, "value": self.value}

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    """
    Failed result containing the exception that caused it.

    ``unwrap()`` re-raises the original exception unchanged, so callers that
    prefer exceptions lose nothing by going through a Result.

    Examples:
        >>> Err(ValueError("bad")).unwrap_or(0)
        0
    """

    error: Exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Raise the contained error."""
        raise self.error

    def unwrap_or(self, default: T) -> T:
        return default

    def map(self, f: Callable[[T], U]) -> Result[U]:
        return Err(self.error)

    def to_dict(self) -> dict[str, Any]:
        error = self.error
        if hasattr(error, "to_dict"):
            return {"ok": False, "error": error.to_dict()}
        return {
            "ok": False,
            "error": {"error_type": type(error).__name__, "message": str(error)},
        }

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Union[Ok[T], Err[T]]


def try_result(f: Callable[[], T]) -> Result[T]:
    """
    Run ``f`` and capture its outcome as a Result.

    Examples:
        >>> try_result(lambda: 1 / 1)
        Ok(1.0)
        >>> try_result(lambda: 1 / 0).is_err()
        True
    """
    try:
        return Ok(f())
    except Exception as e:
        return Err(e)


def collect_results(results: Iterable[Result[T]]) -> Result[list[T]]:
    """
    Collect Results into a Result of list (fail-fast).

    Iterates in order; the first Err encountered is returned and the rest is
    not inspected.

    Args:
        results: Results in input order

    Returns:
        Ok with all values if every result is Ok, otherwise the first Err
    """
    values = []
    for result in results:
        match result:
            case Ok(value):
                values.append(value)
            case Err(error):
                return Err(error)
    return Ok(values)


__all__ = [
    "Ok",
    "Err",
    "Result",
    "try_result",
    "collect_results",
]
