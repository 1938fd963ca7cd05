"""
Assignment output: identifiers, per-record identities and collision report.

Everything the assigner returns is an immutable value the calling pipeline
can persist, log or compare across runs. Each identifier records how it was
made (policy kind, digest algorithm id, canonical byte length) so an
identifier stored months ago can still be audited against a fresh run.

Examples:
    >>> result.identifiers()
    ['3b1f...', '9c0e...']
    >>> result.collisions.has_duplicates
    False
    >>> result.to_dict()["collisions"]
    {'duplicate_long_identifiers': [], 'shared_short_identifiers': 0}

Tags:
    identifiers, results, collision-report, audit, idspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any


class PolicyKind(str, Enum):
    """How identifiers are composed."""

    SEQUENTIAL = "sequential"
    CONTENT_HASH = "content_hash"
    COMPOSITE = "composite"


@dataclass(frozen=True, slots=True)
class Identifier:
    """
    An opaque identifier and how it was produced.

    ``algorithm`` and ``canonical_byte_length`` are None for sequential
    identifiers.
    """

    value: str
    kind: PolicyKind
    algorithm: str | None = None
    canonical_byte_length: int | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"value": self.value, "kind": self.kind.value}
        if self.algorithm is not None:
            result["algorithm"] = self.algorithm
        if self.canonical_byte_length is not None:
            result["canonical_byte_length"] = self.canonical_byte_length
        return result

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class RecordIdentity:
    """Identity assigned to the record at ``record_index`` in its batch."""

    record_index: int
    long: Identifier
    short: Identifier | None = None

    @property
    def kind(self) -> PolicyKind:
        return self.long.kind

    @property
    def identifier(self) -> str:
        """The long identifier value."""
        return self.long.value

    @property
    def canonical_byte_length(self) -> int | None:
        return self.long.canonical_byte_length

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "record_index": self.record_index,
            "kind": self.kind.value,
            "long": self.long.to_dict(),
        }
        if self.short is not None:
            result["short"] = self.short.to_dict()
        return result


@dataclass(frozen=True, slots=True)
class DuplicateLongIdentifier:
    """
    Warning: several records of one batch share a long identifier.

    Not an error. It usually means the same real-world record appears twice
    in the batch; whether to drop, merge or flag is the pipeline's call.
    """

    identifier: str
    record_indices: tuple[int, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"identifier": self.identifier, "record_indices": list(self.record_indices)}


@dataclass(frozen=True, slots=True)
class CollisionReport:
    """
    In-batch collision scan results.

    Attributes:
        duplicate_long_identifiers: One group per long identifier held by
            more than one record, ordered by first occurrence
        shared_short_identifiers: Number of distinct short identifiers held
            by more than one record (expected under composite policies)
    """

    duplicate_long_identifiers: tuple[DuplicateLongIdentifier, ...] = ()
    shared_short_identifiers: int = 0

    @property
    def has_duplicates(self) -> bool:
        return bool(self.duplicate_long_identifiers)

    @property
    def duplicate_record_count(self) -> int:
        """Records involved in any duplicate group."""
        return sum(len(group.record_indices) for group in self.duplicate_long_identifiers)

    def to_dict(self) -> dict[str, Any]:
        return {
            "duplicate_long_identifiers": [g.to_dict() for g in self.duplicate_long_identifiers],
            "shared_short_identifiers": self.shared_short_identifiers,
        }


@dataclass(frozen=True, slots=True)
class AssignmentResult:
    """
    Identities for one batch, in batch order, plus the collision report.
    """

    identities: tuple[RecordIdentity, ...]
    collisions: CollisionReport
    kind: PolicyKind
    dataset_tag: str
    algorithm: str | None = None

    def identifiers(self) -> list[str]:
        """The long identifier column, in batch order."""
        return [identity.long.value for identity in self.identities]

    def short_identifiers(self) -> list[str | None]:
        """The short identifier column (None entries outside composite policies)."""
        return [
            identity.short.value if identity.short is not None else None
            for identity in self.identities
        ]

    def __len__(self) -> int:
        return len(self.identities)

    def __iter__(self) -> Iterator[RecordIdentity]:
        return iter(self.identities)

    def __getitem__(self, index: int) -> RecordIdentity:
        return self.identities[index]

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "dataset_tag": self.dataset_tag,
            "algorithm": self.algorithm,
            "identities": [identity.to_dict() for identity in self.identities],
            "collisions": self.collisions.to_dict(),
        }


__all__ = [
    "PolicyKind",
    "Identifier",
    "RecordIdentity",
    "DuplicateLongIdentifier",
    "CollisionReport",
    "AssignmentResult",
]
