"""
Batch identity assigner: one identity per record, one pass, no I/O.

The assigner is the engine's entry point. It takes a batch and a policy,
computes every record's identity (in parallel when configured), then runs
one scan over the results for duplicate long identifiers. Duplicates are
reported, not raised: two identical rows in one batch are a fact the
pipeline must adjudicate. Input problems are raised: the first failing
record, in batch order, aborts the whole call with its original error.

Manifesto:
    - **Single pass:** Never retries, never reorders input
    - **Fail-fast:** No partial success; one bad record halts the batch
    - **Order-stable parallelism:** Per-record work may run on threads,
      results are always collected in batch order
    - **Report, don't decide:** Duplicate long identifiers are warnings

Architecture:
    ::

        assign(batch, policy)
          │
          ├── SEQUENTIAL
          │     policy.sequence_indices(batch)   UndefinedOrderError
          │     uniqueness check                 NonUniqueIndexError
          │
          └── CONTENT_HASH / COMPOSITE
                ┌──────────── per record (thread pool map) ─────────────┐
                │ policy.plan_record ─> canonical bytes                 │
                │ DigestEngine.digest ─> long (+ short) Identifier      │
                │ returns Ok(RecordIdentity) | Err(error + context)     │
                └───────────────────────────────────────────────────────┘
                collect_results (batch order, first Err raised)
                          │  barrier
                          ▼
                scan_collisions ─> CollisionReport

Examples:
    >>> batch = Batch.from_rows(rows, dataset_tag="ds1")
    >>> result = assign_identifiers(batch, IdentityPolicy.content_hash())
    >>> result.identifiers()
    ['5d1a...', ...]

Performance:
    - Canonicalize + digest: O(n) total, parallel across records
    - Collision scan: O(n) with a dict, not parallelized

Tags:
    batch-processing, identity-assignment, collision-detection,
    thread-pool, idspine

Doc-Types:
    - API Reference
    - Identity Design Guide
"""

from __future__ import annotations

import time
from collections import Counter
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

from idspine.core.errors import ConfigError, IdSpineError, NonUniqueIndexError
from idspine.core.logging import get_logger
from idspine.core.result import Result, collect_results, try_result
from idspine.identity.canonical import Canonicalizer
from idspine.identity.digest import DigestEngine
from idspine.identity.policy import IdentityPolicy
from idspine.identity.results import (
    AssignmentResult,
    CollisionReport,
    DuplicateLongIdentifier,
    Identifier,
    PolicyKind,
    RecordIdentity,
)
from idspine.identity.values import Batch, Record

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def scan_collisions(identities: Sequence[RecordIdentity]) -> CollisionReport:
    """
    Find long identifiers held by more than one record.

    Groups are ordered by the first record holding the identifier; record
    indices within a group are ascending.
    """
    holders: dict[str, list[int]] = {}
    for identity in identities:
        holders.setdefault(identity.long.value, []).append(identity.record_index)
    duplicates = tuple(
        DuplicateLongIdentifier(identifier=value, record_indices=tuple(indices))
        for value, indices in holders.items()
        if len(indices) > 1
    )

    short_counts = Counter(
        identity.short.value for identity in identities if identity.short is not None
    )
    shared = sum(1 for count in short_counts.values() if count > 1)
    return CollisionReport(duplicate_long_identifiers=duplicates, shared_short_identifiers=shared)


class BatchIdentityAssigner:
    """
    Assigns identities to batches under an ``IdentityPolicy``.

    Holds only execution options; policies are passed per call.

    Args:
        max_workers: Worker threads for per-record hashing (1 = no threads)
        parallel_threshold: Smallest batch that is worth threading
    """

    def __init__(self, *, max_workers: int = 1, parallel_threshold: int = 256):
        for key, value in (("max_workers", max_workers), ("parallel_threshold", parallel_threshold)):
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigError(f"{key} must be a positive integer, got {value!r}")
        self.max_workers = max_workers
        self.parallel_threshold = parallel_threshold

    @classmethod
    def from_settings(cls, settings: Any) -> BatchIdentityAssigner:
        return cls(max_workers=settings.max_workers, parallel_threshold=settings.parallel_threshold)

    def assign(self, batch: Batch, policy: IdentityPolicy) -> AssignmentResult:
        """
        Assign one identity per record of ``batch``.

        Raises:
            UnresolvableTypeError, AmbiguousFieldNameError, MissingFieldError:
                A record cannot be canonicalized (context carries record_index)
            UndefinedOrderError: SEQUENTIAL on a batch without declared order
            NonUniqueIndexError: SEQUENTIAL order repeats an index
        """
        log = logger.bind(
            dataset_tag=batch.dataset_tag,
            policy_kind=policy.kind.value,
            algorithm=policy.algorithm if policy.is_hash_based else None,
            records=len(batch),
        )
        started = time.perf_counter()
        log.info("identity_assignment_started")

        try:
            if policy.is_hash_based:
                identities = self._assign_hashed(batch, policy)
                report = scan_collisions(identities)
            else:
                identities = self._assign_sequential(batch, policy)
                report = CollisionReport()
        except IdSpineError as error:
            error.with_context(dataset_tag=batch.dataset_tag, policy_kind=policy.kind.value)
            log.error("identity_assignment_failed", error=error.to_dict())
            raise

        if report.has_duplicates:
            log.warning(
                "duplicate_long_identifiers",
                groups=len(report.duplicate_long_identifiers),
                duplicate_records=report.duplicate_record_count,
            )

        log.info(
            "identity_assignment_completed",
            shared_short_identifiers=report.shared_short_identifiers,
            duration_ms=round((time.perf_counter() - started) * 1000, 3),
        )
        return AssignmentResult(
            identities=tuple(identities),
            collisions=report,
            kind=policy.kind,
            dataset_tag=batch.dataset_tag,
            algorithm=policy.algorithm if policy.is_hash_based else None,
        )

    # ── sequential ───────────────────────────────────────────────

    def _assign_sequential(self, batch: Batch, policy: IdentityPolicy) -> list[RecordIdentity]:
        indices = policy.sequence_indices(batch)

        holders: dict[int, list[int]] = {}
        for record_index, index in enumerate(indices):
            holders.setdefault(index, []).append(record_index)
        for index, record_indices in holders.items():
            if len(record_indices) > 1:
                raise NonUniqueIndexError(index, record_indices)

        return [
            RecordIdentity(
                record_index=record_index,
                long=Identifier(
                    value=policy.format_sequence(index, batch.dataset_tag),
                    kind=PolicyKind.SEQUENTIAL,
                ),
            )
            for record_index, index in enumerate(indices)
        ]

    # ── hash based ───────────────────────────────────────────────

    def _assign_hashed(self, batch: Batch, policy: IdentityPolicy) -> list[RecordIdentity]:
        canonicalizer = policy.canonicalizer()
        engine = policy.digest_engine()

        def identify(item: tuple[int, Record]) -> Result[RecordIdentity]:
            record_index, record = item
            return try_result(
                lambda: self._identify(record_index, record, batch.dataset_tag, policy, canonicalizer, engine)
            )

        return self._map_ordered(identify, list(enumerate(batch))).unwrap()

    @staticmethod
    def _identify(
        record_index: int,
        record: Record,
        dataset_tag: str,
        policy: IdentityPolicy,
        canonicalizer: Canonicalizer,
        engine: DigestEngine,
    ) -> RecordIdentity:
        try:
            plan = policy.plan_record(
                record, record_index, dataset_tag=dataset_tag, canonicalizer=canonicalizer
            )
            long_digest = engine.digest(plan.long_input)
            short_digest = engine.digest(plan.short_input) if plan.short_input is not None else None
        except IdSpineError as error:
            raise error.with_context(record_index=record_index)

        long = Identifier(
            value=long_digest.value,
            kind=policy.kind,
            algorithm=long_digest.algorithm,
            canonical_byte_length=long_digest.input_length,
        )
        short = None
        if short_digest is not None:
            short = Identifier(
                value=short_digest.value,
                kind=policy.kind,
                algorithm=short_digest.algorithm,
                canonical_byte_length=short_digest.input_length,
            )
        return RecordIdentity(record_index=record_index, long=long, short=short)

    def _map_ordered(self, fn: Callable[[T], Result[R]], items: list[T]) -> Result[list[R]]:
        """Apply ``fn`` to every item and collect in input order, first Err wins."""
        if self.max_workers > 1 and len(items) >= self.parallel_threshold:
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="idspine") as pool:
                return collect_results(pool.map(fn, items))
        return collect_results(fn(item) for item in items)


def assign_identifiers(
    batch: Batch,
    policy: IdentityPolicy,
    *,
    max_workers: int = 1,
    parallel_threshold: int = 256,
) -> AssignmentResult:
    """Assign identities to ``batch`` with a one-off assigner."""
    assigner = BatchIdentityAssigner(max_workers=max_workers, parallel_threshold=parallel_threshold)
    return assigner.assign(batch, policy)


__all__ = [
    "BatchIdentityAssigner",
    "assign_identifiers",
    "scan_collisions",
]
