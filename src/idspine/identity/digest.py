"""
Digest engine: versioned hashing of canonical bytes.

The engine is deliberately thin. All identity policy lives upstream in the
canonical form; here a fixed, versioned algorithm turns bytes into a hex
identifier. The algorithm id (``sha256/1``, ``blake2b-256/1`` ...) travels
with every identifier so identifiers produced by different engine versions
stay comparable: same id, same bytes, same identifier.

Manifesto:
    Data pipelines need identifiers that survive re-processing:
    - **Deterministic:** Same bytes always produce the same identifier
    - **Versioned:** The algorithm id is part of the output metadata
    - **Pluggable:** Any strong digest can be registered under a new id
    - **Stateless:** A fresh hash object per call, nothing shared

Architecture:
    ::

        canonical bytes ──> DigestEngine("sha256/1", length=32)
                               │
                               ├── hashlib.new("sha256").update(bytes)
                               └── hexdigest()[:32]
                                      │
                                      ▼
                 Digest(value="9f86d0...", algorithm="sha256/1", input_length=57)

Examples:
    >>> engine = DigestEngine("sha256/1", length=16)
    >>> d = engine.digest(b"abc")
    >>> d.value
    'ba7816bf8f01cfea'
    >>> d.algorithm, d.input_length
    ('sha256/1', 3)

Tags:
    hashing, digest, versioning, idspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import functools
import hashlib
from collections.abc import Callable
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from idspine.core.errors import EmptyInputError, InvalidPolicyError, UnknownAlgorithmError

DEFAULT_ALGORITHM = "sha256/1"


@dataclass(frozen=True, slots=True)
class DigestAlgorithm:
    """A registered, versioned hash function."""

    id: str
    factory: Callable[[], Any]
    digest_size: int

    @property
    def hex_length(self) -> int:
        return self.digest_size * 2


_ALGORITHMS = MappingProxyType({
    "sha256/1": DigestAlgorithm("sha256/1", functools.partial(hashlib.new, "sha256"), 32),
    "sha512/1": DigestAlgorithm("sha512/1", functools.partial(hashlib.new, "sha512"), 64),
    "sha3-256/1": DigestAlgorithm("sha3-256/1", functools.partial(hashlib.new, "sha3_256"), 32),
    "blake2b-256/1": DigestAlgorithm(
        "blake2b-256/1", functools.partial(hashlib.blake2b, digest_size=32), 32
    ),
})


def available_algorithms() -> list[str]:
    """Registered algorithm ids, sorted."""
    return sorted(_ALGORITHMS)


def get_algorithm(algorithm_id: str) -> DigestAlgorithm:
    """Look up a registered algorithm.

    Raises:
        UnknownAlgorithmError: ``algorithm_id`` is not registered
    """
    try:
        return _ALGORITHMS[algorithm_id]
    except KeyError:
        raise UnknownAlgorithmError(algorithm_id, available_algorithms()) from None


@dataclass(frozen=True, slots=True)
class Digest:
    """Digest of one canonical input."""

    value: str
    algorithm: str
    input_length: int


class DigestEngine:
    """
    Pure function from canonical bytes to an identifier string.

    Args:
        algorithm: Registered algorithm id
        length: Hex characters kept from the digest (None = full digest)
    """

    def __init__(self, algorithm: str = DEFAULT_ALGORITHM, length: int | None = None):
        self.algorithm = get_algorithm(algorithm)
        if length is not None and (
            isinstance(length, bool)
            or not isinstance(length, int)
            or not 1 <= length <= self.algorithm.hex_length
        ):
            raise InvalidPolicyError(
                "digest_length",
                length,
                f"digest_length must be between 1 and {self.algorithm.hex_length} "
                f"for {self.algorithm.id}, got {length!r}",
            )
        self.length = length

    def digest(self, data: bytes) -> Digest:
        """Hash ``data``.

        Raises:
            EmptyInputError: ``data`` is zero-length
        """
        if len(data) == 0:
            raise EmptyInputError()
        h = self.algorithm.factory()
        h.update(data)
        value = h.hexdigest()
        if self.length is not None:
            value = value[: self.length]
        return Digest(value=value, algorithm=self.algorithm.id, input_length=len(data))

    def __repr__(self) -> str:
        return f"DigestEngine({self.algorithm.id!r}, length={self.length!r})"


__all__ = [
    "DEFAULT_ALGORITHM",
    "DigestAlgorithm",
    "Digest",
    "DigestEngine",
    "available_algorithms",
    "get_algorithm",
]
