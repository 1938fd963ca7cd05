"""
Record data model: fields, records and batches.

A batch arrives from the caller already parsed: one mapping or one field
sequence per row, plus the tag of the dataset it came from. This module
holds that input in immutable form. Nothing here decides what gets hashed;
it only makes every piece of information the canonicalizer may need
(raw name, cleaned name, declared type, categorical code and levels,
caller-declared order) explicit and inspectable.

Manifesto:
    The same logical record can reach a pipeline in many encodings: a
    categorical column read as integer codes on one run and as plain labels
    on the next, a date as ``date`` or as ``"1948-12-10"``, a column named
    ``"Name "`` or ``"name"``. The model keeps every representation as
    given and leaves resolution to canonicalization time, so the decision
    is made in exactly one place.

    - **Immutable:** Frozen dataclasses; the engine never mutates input
    - **Explicit order:** ``stable_order`` must be declared by the caller
    - **Both names kept:** raw name for audit, cleaned name for hashing

Architecture:
    ::

        Batch(dataset_tag="ds1", stable_order=True)
          ├── Record(sequence=None)
          │     ├── Field("Name", "John Doe", STRING)
          │     ├── Field("Date", date(1948, 12, 10), DATE)
          │     └── Field("Location", Categorical(0, ("Paris", "Rome")))
          └── Record(...)

Examples:
    >>> batch = Batch.from_rows(
    ...     [{"name": "John Doe", "date": "1948-12-10", "location": "Paris"}],
    ...     dataset_tag="ds1",
    ...     schema={"date": FieldType.DATE},
    ... )
    >>> batch[0].get("date").declared_type
    <FieldType.DATE: 'date'>

Tags:
    data-model, records, batches, categorical, idspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import numbers
import unicodedata
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from idspine.core.errors import ValidationError


class FieldType(str, Enum):
    """Declared logical type of a field value."""

    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    DATETIME = "datetime"
    BOOLEAN = "boolean"
    NULL = "null"


def clean_name(name: str) -> str:
    """
    Clean a column name for hashing.

    Unicode-normalizes to NFC, trims, collapses inner whitespace runs to a
    single space and case-folds.

    Examples:
        >>> clean_name("  Birth   Date ")
        'birth date'
    """
    return " ".join(unicodedata.normalize("NFC", name).split()).casefold()


@dataclass(frozen=True, slots=True)
class Categorical:
    """
    A categorical (factor) value stored as a code into a level table.

    Its logical value is ``levels[code]``; the code itself never reaches the
    canonical form.

    Examples:
        >>> Categorical(1, ("Paris", "Rome")).label
        'Rome'
    """

    code: int
    levels: tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "levels", tuple(self.levels))

    @property
    def label(self) -> str | None:
        """Level text for the code, or None when the code is out of range."""
        if isinstance(self.code, bool) or not isinstance(self.code, int):
            return None
        if 0 <= self.code < len(self.levels):
            return self.levels[self.code]
        return None


@dataclass(frozen=True, slots=True)
class Field:
    """
    A named value with an optional declared logical type.

    When ``declared_type`` is None the type is inferred from the runtime
    value at canonicalization time.
    """

    name: str
    value: Any = None
    declared_type: FieldType | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str):
            raise ValidationError(
                f"Field name must be a string, got {type(self.name).__name__}",
                field=repr(self.name),
                constraint="name-type",
            )
        if self.declared_type is not None and not isinstance(self.declared_type, FieldType):
            object.__setattr__(self, "declared_type", FieldType(self.declared_type))

    @property
    def normalized_name(self) -> str:
        """The cleaned name (see :func:`clean_name`); ``name`` stays untouched."""
        return clean_name(self.name)


@dataclass(frozen=True, slots=True)
class Record:
    """
    One row: an ordered tuple of fields plus an optional caller position.

    ``sequence`` is the caller's explicit position for sequential identity.
    The record's dataset tag is the one of the batch holding it.
    """

    fields: tuple[Field, ...]
    sequence: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))
        if self.sequence is not None and (
            isinstance(self.sequence, bool)
            or not isinstance(self.sequence, int)
            or self.sequence < 0
        ):
            raise ValidationError(
                f"Record sequence must be a non-negative integer, got {self.sequence!r}",
                field="sequence",
                value=self.sequence,
                constraint="non-negative-int",
            )

    @classmethod
    def from_mapping(
        cls,
        row: Mapping[str, Any],
        schema: Mapping[str, FieldType | str] | None = None,
        sequence: int | None = None,
    ) -> Record:
        """Build a record from a parsed row, typing columns found in ``schema``."""
        schema = schema or {}
        return cls(
            fields=tuple(Field(name, value, schema.get(name)) for name, value in row.items()),
            sequence=sequence,
        )

    def get(self, name: str) -> Field | None:
        """Find a field by raw name, falling back to cleaned-name match."""
        for f in self.fields:
            if f.name == name:
                return f
        cleaned = clean_name(name)
        for f in self.fields:
            if f.normalized_name == cleaned:
                return f
        return None

    @property
    def names(self) -> list[str]:
        return [f.name for f in self.fields]

    def __len__(self) -> int:
        return len(self.fields)


@dataclass(frozen=True)
class Batch:
    """
    Ordered records from one dataset, consumed once by the assigner.

    ``stable_order`` is the caller's declaration that record order is
    deterministic across runs (e.g. sorted by a primary key upstream).
    Sequential identity refuses batches without it.
    """

    records: tuple[Record, ...]
    dataset_tag: str
    stable_order: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "records", tuple(self.records))
        if not isinstance(self.dataset_tag, str):
            raise ValidationError(
                f"dataset_tag must be a string, got {type(self.dataset_tag).__name__}",
                field="dataset_tag",
                value=self.dataset_tag,
                constraint="str",
            )

    @classmethod
    def from_rows(
        cls,
        rows: Sequence[Mapping[str, Any]],
        *,
        dataset_tag: str,
        schema: Mapping[str, FieldType | str] | None = None,
        categories: Mapping[str, Sequence[str]] | None = None,
        stable_order: bool = False,
        sequence_field: str | None = None,
    ) -> Batch:
        """
        Build a batch from parsed row mappings.

        Args:
            rows: One mapping per record, column name -> value
            dataset_tag: Source/batch tag shared by all records
            schema: Declared types per column; missing columns are inferred
            categories: Level tables for columns read as integer codes; integer
                values in those columns are wrapped in :class:`Categorical`,
                label strings pass through unchanged
            stable_order: Caller declaration that ``rows`` order is stable
            sequence_field: Column holding each row's explicit position; it
                is consumed as ordering metadata and not kept as a field
        """
        categories = categories or {}
        records = []
        for row in rows:
            values = dict(row)
            sequence = values.pop(sequence_field, None) if sequence_field else None
            for name, levels in categories.items():
                code = values.get(name)
                if isinstance(code, numbers.Integral) and not isinstance(code, bool):
                    values[name] = Categorical(int(code), tuple(levels))
            records.append(Record.from_mapping(values, schema=schema, sequence=sequence))
        return cls(records=tuple(records), dataset_tag=dataset_tag, stable_order=stable_order)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)

    def __getitem__(self, index: int) -> Record:
        return self.records[index]


__all__ = [
    "FieldType",
    "Categorical",
    "Field",
    "Record",
    "Batch",
    "clean_name",
]
