"""
Identity policy: what feeds the digest for each record.

A policy answers three questions for a batch. Is the identifier a position
(sequential) or a function of content (content hash, composite)? Which
fields take part? Is the dataset tag part of the identity? The answers are
fixed in one immutable object passed per call, so two concurrent calls with
different policies cannot interfere and a stored policy reproduces the
same identifiers on a later run.

Manifesto:
    Identifier trouble in pipelines usually comes from decisions nobody
    made explicitly: row numbers that depended on an unsorted read, hashes
    that silently changed when a column was renamed, identical rows from two
    datasets that collided. Each policy option makes one of those decisions
    visible:

    - **SEQUENTIAL:** position in a caller-declared stable order, never an
      incidental one
    - **CONTENT_HASH:** digest of a chosen field subset, optionally scoped
      to the dataset
    - **COMPOSITE:** a short identifier for the logical entity (may be
      shared) and a long one for the physical record (all fields + tag)

Architecture:
    ::

        IdentityPolicy ──plan_record(record)──> RecordPlan
        ┌───────────────┬───────────────────────┬─────────────────────────┐
        │ SEQUENTIAL    │ CONTENT_HASH          │ COMPOSITE               │
        ├───────────────┼───────────────────────┼─────────────────────────┤
        │ no canonical  │ long = canon(fields,  │ long  = canon(all,      │
        │ input; index  │   tag if scoped)      │           tag)          │
        │ from declared │                       │ short = canon(short_    │
        │ order         │                       │   fields, tag if        │
        │               │                       │   short_dataset_scoped) │
        └───────────────┴───────────────────────┴─────────────────────────┘

Examples:
    >>> policy = IdentityPolicy.content_hash(dataset_scoped=True)
    >>> plan = policy.plan_record(record, 0, dataset_tag="ds1")
    >>> len(plan.long_input) > 0
    True

    >>> IdentityPolicy.composite(short_fields=["name", "date"])
    IdentityPolicy(kind=<PolicyKind.COMPOSITE: 'composite'>, ...)

Tags:
    identity-policy, sequential, content-hash, composite, dataset-scoping,
    idspine

Doc-Types:
    - API Reference
    - Identity Design Guide
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from idspine.core.errors import InvalidPolicyError, UndefinedOrderError
from idspine.identity.canonical import CanonicalizationConfig, Canonicalizer
from idspine.identity.digest import DEFAULT_ALGORITHM, DigestEngine
from idspine.identity.results import PolicyKind
from idspine.identity.values import Batch, Record


@dataclass(frozen=True, slots=True)
class FieldSubset:
    """
    Which fields take part in a content hash.

    ``include=None`` means all fields; ``exclude`` removes names from
    whichever set ``include`` selects. Giving both is rejected because the
    result would depend on which one wins.

    Examples:
        >>> FieldSubset.all().is_all
        True
        >>> FieldSubset.only("name", "date").include
        ('name', 'date')
    """

    include: tuple[str, ...] | None = None
    exclude: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.include is not None:
            if isinstance(self.include, str):
                raise InvalidPolicyError("fields.include", self.include, "include must be a list of names")
            object.__setattr__(self, "include", tuple(self.include))
            if not self.include:
                raise InvalidPolicyError("fields.include", self.include, "include must name at least one field")
        if isinstance(self.exclude, str):
            raise InvalidPolicyError("fields.exclude", self.exclude, "exclude must be a list of names")
        object.__setattr__(self, "exclude", tuple(self.exclude))
        if self.include is not None and self.exclude:
            raise InvalidPolicyError(
                "fields", self, "include and exclude cannot be combined"
            )

    @classmethod
    def all(cls) -> FieldSubset:
        return cls()

    @classmethod
    def only(cls, *names: str) -> FieldSubset:
        return cls(include=names)

    @classmethod
    def excluding(cls, *names: str) -> FieldSubset:
        return cls(exclude=names)

    @property
    def is_all(self) -> bool:
        return self.include is None and not self.exclude


@dataclass(frozen=True, slots=True)
class RecordPlan:
    """Canonical inputs planned for one record of a hash-based policy."""

    record_index: int
    long_input: bytes
    short_input: bytes | None = None


def _as_subset(fields: FieldSubset | Iterable[str] | str | None) -> FieldSubset:
    if fields is None or fields == "all":
        return FieldSubset()
    if isinstance(fields, FieldSubset):
        return fields
    if isinstance(fields, str):
        raise InvalidPolicyError("fields", fields, "fields must be 'all', a FieldSubset or a list of names")
    return FieldSubset(include=tuple(fields))


@dataclass(frozen=True)
class IdentityPolicy:
    """
    Immutable identity configuration for one assignment call.

    Prefer the constructors :meth:`sequential`, :meth:`content_hash`,
    :meth:`composite` and :meth:`from_settings` over calling this directly;
    they set the defaults that make sense for each kind.

    Attributes:
        kind: SEQUENTIAL, CONTENT_HASH or COMPOSITE
        fields: Field subset for CONTENT_HASH (COMPOSITE long always uses all)
        dataset_scoped: Inject the dataset tag (COMPOSITE long is always scoped)
        short_fields: Fields of the COMPOSITE short identifier
        short_dataset_scoped: Scope the COMPOSITE short identifier too
        algorithm: Versioned digest algorithm id
        digest_length: Hex characters kept (None = full digest)
        sequence_start: Offset added to SEQUENTIAL indices
        sequence_width: Zero-pad SEQUENTIAL indices to this width (0 = none)
        canonicalization: Normalizations applied before hashing
    """

    kind: PolicyKind
    fields: FieldSubset = field(default_factory=FieldSubset)
    dataset_scoped: bool = False
    short_fields: tuple[str, ...] = ()
    short_dataset_scoped: bool = False
    algorithm: str = DEFAULT_ALGORITHM
    digest_length: int | None = 32
    sequence_start: int = 0
    sequence_width: int = 0
    canonicalization: CanonicalizationConfig = field(default_factory=CanonicalizationConfig)

    def __post_init__(self) -> None:
        if not isinstance(self.kind, PolicyKind):
            try:
                object.__setattr__(self, "kind", PolicyKind(self.kind))
            except ValueError:
                raise InvalidPolicyError("kind", self.kind) from None
        object.__setattr__(self, "fields", _as_subset(self.fields))
        if isinstance(self.short_fields, str):
            raise InvalidPolicyError("short_fields", self.short_fields, "short_fields must be a list of names")
        object.__setattr__(self, "short_fields", tuple(self.short_fields))

        if self.kind is PolicyKind.COMPOSITE:
            if not self.short_fields:
                raise InvalidPolicyError("short_fields", self.short_fields, "composite policy needs short_fields")
            if not self.fields.is_all or not self.dataset_scoped:
                raise InvalidPolicyError(
                    "fields",
                    self.fields,
                    "composite long identifiers always hash all fields with the dataset tag",
                )
        elif self.short_fields:
            raise InvalidPolicyError(
                "short_fields", self.short_fields, f"short_fields only apply to composite, not {self.kind.value}"
            )

        if self.kind is PolicyKind.SEQUENTIAL:
            for key in ("sequence_start", "sequence_width"):
                value = getattr(self, key)
                if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                    raise InvalidPolicyError(key, value)
        else:
            # Validates algorithm id and digest_length up front
            self.digest_engine()

    # ── constructors ─────────────────────────────────────────────

    @classmethod
    def sequential(
        cls,
        *,
        dataset_scoped: bool = False,
        start: int = 0,
        width: int = 0,
    ) -> IdentityPolicy:
        """Identifiers from caller-declared batch order."""
        return cls(
            kind=PolicyKind.SEQUENTIAL,
            dataset_scoped=dataset_scoped,
            sequence_start=start,
            sequence_width=width,
        )

    @classmethod
    def content_hash(
        cls,
        fields: FieldSubset | Iterable[str] | str | None = None,
        *,
        dataset_scoped: bool = True,
        algorithm: str = DEFAULT_ALGORITHM,
        digest_length: int | None = 32,
        canonicalization: CanonicalizationConfig | None = None,
    ) -> IdentityPolicy:
        """Identifiers from a digest of ``fields`` (all fields by default)."""
        return cls(
            kind=PolicyKind.CONTENT_HASH,
            fields=_as_subset(fields),
            dataset_scoped=dataset_scoped,
            algorithm=algorithm,
            digest_length=digest_length,
            canonicalization=canonicalization or CanonicalizationConfig(),
        )

    @classmethod
    def composite(
        cls,
        short_fields: Iterable[str],
        *,
        short_dataset_scoped: bool = False,
        algorithm: str = DEFAULT_ALGORITHM,
        digest_length: int | None = 32,
        canonicalization: CanonicalizationConfig | None = None,
    ) -> IdentityPolicy:
        """Short identifier from ``short_fields`` plus a record-unique long one."""
        return cls(
            kind=PolicyKind.COMPOSITE,
            dataset_scoped=True,
            short_fields=tuple(short_fields),
            short_dataset_scoped=short_dataset_scoped,
            algorithm=algorithm,
            digest_length=digest_length,
            canonicalization=canonicalization or CanonicalizationConfig(),
        )

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        kind: PolicyKind | str = PolicyKind.CONTENT_HASH,
        **options: Any,
    ) -> IdentityPolicy:
        """
        Build a policy seeded with ``IdentitySettings`` defaults.

        ``options`` are passed to the kind's constructor and win over the
        settings values.
        """
        kind = PolicyKind(kind)
        if kind is PolicyKind.SEQUENTIAL:
            return cls.sequential(**options)
        options.setdefault("algorithm", settings.hash_algorithm)
        options.setdefault("digest_length", settings.digest_length)
        options.setdefault("canonicalization", CanonicalizationConfig.from_settings(settings))
        if kind is PolicyKind.COMPOSITE:
            return cls.composite(**options)
        return cls.content_hash(**options)

    # ── planning ─────────────────────────────────────────────────

    @property
    def is_hash_based(self) -> bool:
        return self.kind is not PolicyKind.SEQUENTIAL

    def digest_engine(self) -> DigestEngine:
        return DigestEngine(self.algorithm, self.digest_length)

    def canonicalizer(self) -> Canonicalizer:
        return Canonicalizer(self.canonicalization)

    def plan_record(
        self,
        record: Record,
        record_index: int,
        *,
        dataset_tag: str,
        canonicalizer: Canonicalizer | None = None,
    ) -> RecordPlan:
        """
        Canonical inputs for one record.

        Raises:
            InvalidPolicyError: Called on a SEQUENTIAL policy
        """
        if not self.is_hash_based:
            raise InvalidPolicyError("kind", self.kind.value, "sequential policies have no canonical input")
        canon = canonicalizer or self.canonicalizer()

        if self.kind is PolicyKind.COMPOSITE:
            long_input = canon.canonicalize(record, dataset_tag=dataset_tag)
            short_input = canon.canonicalize(
                record,
                dataset_tag=dataset_tag if self.short_dataset_scoped else None,
                include=self.short_fields,
            )
            return RecordPlan(record_index, long_input, short_input)

        long_input = canon.canonicalize(
            record,
            dataset_tag=dataset_tag if self.dataset_scoped else None,
            include=self.fields.include,
            exclude=self.fields.exclude,
        )
        return RecordPlan(record_index, long_input)

    def plan(self, batch: Batch) -> list[RecordPlan]:
        """Canonical inputs for every record of ``batch``, in batch order."""
        canon = self.canonicalizer()
        return [
            self.plan_record(record, index, dataset_tag=batch.dataset_tag, canonicalizer=canon)
            for index, record in enumerate(batch)
        ]

    def sequence_indices(self, batch: Batch) -> list[int]:
        """
        Sequential indices for ``batch`` in batch order.

        Uses each record's explicit ``sequence`` when all records carry one,
        otherwise the batch position. Repeats are not checked here.

        Raises:
            UndefinedOrderError: The batch order is not declared stable, or
                only some records carry an explicit sequence
        """
        if not batch.stable_order:
            raise UndefinedOrderError(
                f"Batch {batch.dataset_tag!r} is not marked stable_order; "
                "sequential identifiers need an explicit, deterministic order"
            )
        explicit = [record.sequence is not None for record in batch]
        if any(explicit) and not all(explicit):
            missing = [index for index, has in enumerate(explicit) if not has]
            raise UndefinedOrderError(
                f"Batch {batch.dataset_tag!r} mixes explicit and implicit positions; "
                f"records without sequence: {missing[:10]!r}"
            )
        if explicit and all(explicit):
            return [self.sequence_start + record.sequence for record in batch]
        return [self.sequence_start + position for position in range(len(batch))]

    def format_sequence(self, index: int, dataset_tag: str) -> str:
        """Render a sequential index as an identifier string."""
        text = str(index).zfill(self.sequence_width) if self.sequence_width else str(index)
        if self.dataset_scoped:
            return f"{dataset_tag}:{text}"
        return text


__all__ = [
    "FieldSubset",
    "RecordPlan",
    "IdentityPolicy",
]
