"""idspine identity -- record canonicalization, identity policies and assignment.

Module Map (dependency order)
-----------------------------
  values      Field / Record / Batch / Categorical input model
  canonical   Canonicalizer: record -> deterministic bytes
  results     Identifier, RecordIdentity, CollisionReport, AssignmentResult
  digest      DigestEngine: versioned hash of canonical bytes
  policy      IdentityPolicy: sequential, content hash or composite
  assigner    BatchIdentityAssigner: batch -> identities + collision report
"""

from idspine.identity.assigner import BatchIdentityAssigner, assign_identifiers, scan_collisions
from idspine.identity.canonical import (
    CANONICAL_FORMAT,
    CanonicalField,
    CanonicalizationConfig,
    Canonicalizer,
    NameStage,
)
from idspine.identity.digest import (
    DEFAULT_ALGORITHM,
    Digest,
    DigestAlgorithm,
    DigestEngine,
    available_algorithms,
    get_algorithm,
)
from idspine.identity.policy import FieldSubset, IdentityPolicy, RecordPlan
from idspine.identity.results import (
    AssignmentResult,
    CollisionReport,
    DuplicateLongIdentifier,
    Identifier,
    PolicyKind,
    RecordIdentity,
)
from idspine.identity.values import Batch, Categorical, Field, FieldType, Record, clean_name

__all__ = [
    # Values
    "FieldType",
    "Categorical",
    "Field",
    "Record",
    "Batch",
    "clean_name",
    # Canonicalization
    "CANONICAL_FORMAT",
    "NameStage",
    "CanonicalizationConfig",
    "CanonicalField",
    "Canonicalizer",
    # Digest
    "DEFAULT_ALGORITHM",
    "DigestAlgorithm",
    "Digest",
    "DigestEngine",
    "available_algorithms",
    "get_algorithm",
    # Policy
    "PolicyKind",
    "FieldSubset",
    "RecordPlan",
    "IdentityPolicy",
    # Results
    "Identifier",
    "RecordIdentity",
    "DuplicateLongIdentifier",
    "CollisionReport",
    "AssignmentResult",
    # Assignment
    "BatchIdentityAssigner",
    "assign_identifiers",
    "scan_collisions",
]
