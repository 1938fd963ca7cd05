"""idspine -- pipeline- and project-consistent record identifiers.

Manifesto:
    A record's identifier has to survive two things: every stage of the run
    that created it (pipeline consistency) and every later re-import of the
    same data (project consistency). Row numbers taken from an incidental
    read order, hashes of ``str(value)`` and identical rows from different
    datasets all break one or the other. idspine computes identifiers from
    an explicit policy over a canonical form of each record, so the same
    logical record always gets the same identifier and the normalizations
    applied before hashing are part of the configuration, not an accident
    of the reader.

Architecture::

    raw batch ─> Canonicalizer ─> IdentityPolicy ─> DigestEngine ─> BatchIdentityAssigner
                 (identity.canonical) (identity.policy) (identity.digest) (identity.assigner)

    core/       errors, result envelope, structlog logging, pydantic settings
    identity/   values, canonical, policy, digest, results, assigner

Quick start::

    from idspine import Batch, IdentityPolicy, assign_identifiers

    batch = Batch.from_rows(rows, dataset_tag="ds1", schema={"date": "date"})
    result = assign_identifiers(batch, IdentityPolicy.composite(["name", "date"]))
    result.identifiers()         # long identifier column
    result.short_identifiers()   # short identifier column
    result.collisions            # CollisionReport

Tags:
    idspine, record-identity, canonicalization, hashing, etl
"""

from idspine.core.errors import (
    AmbiguousFieldNameError,
    EmptyInputError,
    IdSpineError,
    InvalidPolicyError,
    MissingFieldError,
    NonUniqueIndexError,
    UndefinedOrderError,
    UnknownAlgorithmError,
    UnresolvableTypeError,
)
from idspine.core.settings import IdentitySettings, get_settings
from idspine.identity import (
    AssignmentResult,
    Batch,
    BatchIdentityAssigner,
    Categorical,
    CanonicalizationConfig,
    Canonicalizer,
    CollisionReport,
    DigestEngine,
    DuplicateLongIdentifier,
    Field,
    FieldSubset,
    FieldType,
    Identifier,
    IdentityPolicy,
    NameStage,
    PolicyKind,
    Record,
    RecordIdentity,
    assign_identifiers,
    available_algorithms,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Model
    "FieldType",
    "Categorical",
    "Field",
    "Record",
    "Batch",
    # Engine
    "NameStage",
    "CanonicalizationConfig",
    "Canonicalizer",
    "DigestEngine",
    "PolicyKind",
    "FieldSubset",
    "IdentityPolicy",
    "BatchIdentityAssigner",
    "assign_identifiers",
    "available_algorithms",
    # Settings
    "IdentitySettings",
    "get_settings",
    # Results
    "Identifier",
    "RecordIdentity",
    "DuplicateLongIdentifier",
    "CollisionReport",
    "AssignmentResult",
    # Errors
    "IdSpineError",
    "UnresolvableTypeError",
    "AmbiguousFieldNameError",
    "MissingFieldError",
    "EmptyInputError",
    "UndefinedOrderError",
    "NonUniqueIndexError",
    "InvalidPolicyError",
    "UnknownAlgorithmError",
]
