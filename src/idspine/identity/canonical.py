"""
Canonicalizer: one deterministic byte sequence per record.

Hashing is only as stable as its input. Two reads of the same logical
record must hand the digest exactly the same bytes, even when one read saw
a categorical column as codes and the other as labels, one saw ``1.0`` and
the other ``"1"``, or one listed the columns in a different order. The
canonicalizer resolves every field to a (logical type, text) pair and
serializes the set of pairs with an unambiguous, length-prefixed encoding.

Manifesto:
    - **Type-directed:** Values are rendered by logical type, never by repr
    - **Order-free:** Fields are sorted by hashed name before encoding
    - **Unambiguous:** Every variable-length token is length prefixed
    - **Explicit naming:** ``NameStage`` says whether raw or cleaned names
      are hashed, so the choice is visible in configuration

Architecture:
    ::

        canonical bytes
        ┌──────────────────────────────────────────────────────────────┐
        │ len4 "idspine-canon/1"                       format version  │
        │ 0x00                      (unscoped)                         │
        │   or 0x01 len4 <tag>      (dataset scoped)   dataset token   │
        │ count4                                       field count     │
        │ for each field, sorted by hashed name:                       │
        │   len4 <name>  type-tag  len4 <value text>                   │
        └──────────────────────────────────────────────────────────────┘

        type tags: S string  N number  D date  T datetime  B boolean
                   Z null (empty text, distinct from S with "")

        value rendering
        ┌──────────────┬───────────────────────────────────────────────┐
        │ STRING       │ Unicode normalized (NFC default); categorical │
        │              │ values resolve to their label                 │
        │ NUMBER       │ integers exact; fractions to 17 significant   │
        │              │ digits, half-even, trailing zeros stripped:   │
        │              │ 1, 1.0, "1.00" -> "1"; 1e-13 -> "0.0000...1"  │
        │ DATE         │ YYYY-MM-DD                                    │
        │ DATETIME     │ YYYY-MM-DDTHH:MM:SS.ffffffZ (UTC)             │
        │ BOOLEAN      │ true / false                                  │
        └──────────────┴───────────────────────────────────────────────┘

Examples:
    >>> canon = Canonicalizer()
    >>> a = Record((Field("Name", "John"), Field("city", Categorical(0, ("Paris",)))))
    >>> b = Record((Field("city", "Paris"), Field("name", "John")))
    >>> canon.canonicalize(a) == canon.canonicalize(b)
    True

Guardrails:
    ❌ DON'T: Hash ``str(value)`` - float repr, date formats and categorical
       codes differ between readers
    ✅ DO: Declare types for columns read as text (dates, numbers)

    ❌ DON'T: Let two columns clean to the same name
    ✅ DO: Rename upstream, or hash RAW names

Tags:
    canonicalization, canonical-encoding, hashing-input, idspine

Doc-Types:
    - API Reference
    - Identity Design Guide
"""

from __future__ import annotations

import math
import numbers
import struct
import unicodedata
from collections.abc import Collection
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation, localcontext
from enum import Enum
from typing import Any

from idspine.core.errors import (
    AmbiguousFieldNameError,
    InvalidPolicyError,
    MissingFieldError,
    UnresolvableTypeError,
    ValidationError,
)
from idspine.identity.values import Categorical, Field, FieldType, Record, clean_name

CANONICAL_FORMAT = "idspine-canon/1"

_TYPE_TAGS = {
    FieldType.STRING: b"S",
    FieldType.NUMBER: b"N",
    FieldType.DATE: b"D",
    FieldType.DATETIME: b"T",
    FieldType.BOOLEAN: b"B",
    FieldType.NULL: b"Z",
}

_UNSCOPED = b"\x00"
_SCOPED = b"\x01"
_UNICODE_FORMS = ("NFC", "NFD", "NFKC", "NFKD")
_MAX_MAGNITUDE = 4096


class NameStage(str, Enum):
    """Which field name is hashed: the untouched raw name or the cleaned one."""

    RAW = "raw"
    CLEANED = "cleaned"


@dataclass(frozen=True, slots=True)
class CanonicalizationConfig:
    """
    Normalizations applied before hashing.

    Attributes:
        name_stage: Hash cleaned names (default) or raw names
        number_precision: Significant digits kept for fractional NUMBER
            values (integral values are always exact)
        unicode_form: Normal form applied to STRING values
        nan_as_null: Render NaN numbers as null instead of ``NaN``
    """

    name_stage: NameStage = NameStage.CLEANED
    number_precision: int = 17
    unicode_form: str = "NFC"
    nan_as_null: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.name_stage, NameStage):
            object.__setattr__(self, "name_stage", NameStage(self.name_stage))
        if isinstance(self.number_precision, bool) or not isinstance(self.number_precision, int) \
                or self.number_precision < 1:
            raise InvalidPolicyError("number_precision", self.number_precision)
        if self.unicode_form not in _UNICODE_FORMS:
            raise InvalidPolicyError("unicode_form", self.unicode_form)

    @classmethod
    def from_settings(cls, settings: Any, **overrides: Any) -> CanonicalizationConfig:
        values = {
            "number_precision": settings.number_precision,
            "unicode_form": settings.unicode_form,
            "nan_as_null": settings.nan_as_null,
        }
        values.update(overrides)
        return cls(**values)


@dataclass(frozen=True, slots=True)
class CanonicalField:
    """A field after resolution: what will be encoded, and where it came from."""

    raw_name: str
    hashed_name: str
    logical_type: FieldType
    text: str


def _token(data: bytes) -> bytes:
    return struct.pack(">I", len(data)) + data


class Canonicalizer:
    """
    Turns records into canonical bytes under one ``CanonicalizationConfig``.

    Holds no state besides its configuration, so one instance can be shared
    across worker threads.
    """

    def __init__(self, config: CanonicalizationConfig | None = None):
        self.config = config or CanonicalizationConfig()

    # ── names ────────────────────────────────────────────────────

    def hashed_name(self, name: str) -> str:
        """The form of ``name`` that enters the canonical bytes."""
        if self.config.name_stage is NameStage.RAW:
            return name
        return clean_name(name)

    def _index_fields(self, record: Record) -> dict[str, Field]:
        by_name: dict[str, list[Field]] = {}
        for f in record.fields:
            by_name.setdefault(self.hashed_name(f.name), []).append(f)
        for name, group in by_name.items():
            if len(group) > 1:
                raise AmbiguousFieldNameError(name, [f.name for f in group])
        return {name: group[0] for name, group in by_name.items()}

    def select(
        self,
        record: Record,
        include: Collection[str] | None = None,
        exclude: Collection[str] = (),
    ) -> list[tuple[str, Field]]:
        """
        Pick the fields to encode, sorted by hashed name.

        ``include`` and ``exclude`` are matched through the same name stage
        as the record's fields. Every included name must be present.
        """
        indexed = self._index_fields(record)
        if include is not None:
            chosen = {}
            for name in include:
                key = self.hashed_name(name)
                if key not in indexed:
                    raise MissingFieldError(name)
                chosen[key] = indexed[key]
        else:
            chosen = dict(indexed)
        for name in exclude:
            chosen.pop(self.hashed_name(name), None)
        return sorted(chosen.items())

    # ── values ───────────────────────────────────────────────────

    def resolve(self, field: Field) -> tuple[FieldType, str]:
        """Resolve a field to its logical type and canonical text."""
        value = field.value
        declared = field.declared_type

        if isinstance(value, Categorical):
            if declared not in (None, FieldType.STRING):
                raise UnresolvableTypeError(field.name, value, declared.value)
            label = value.label
            if label is None:
                raise UnresolvableTypeError(
                    field.name,
                    value,
                    FieldType.STRING.value,
                    message=f"Categorical code {value.code!r} of field {field.name!r} has no level",
                )
            value = label
            declared = FieldType.STRING

        if value is None:
            return FieldType.NULL, ""

        if declared is None:
            declared = self._infer(field.name, value)

        if declared is FieldType.STRING:
            if not isinstance(value, str):
                raise UnresolvableTypeError(field.name, value, declared.value)
            return FieldType.STRING, unicodedata.normalize(self.config.unicode_form, value)
        if declared is FieldType.NUMBER:
            text = self._render_number(field.name, value)
            if text is None:
                return FieldType.NULL, ""
            return FieldType.NUMBER, text
        if declared is FieldType.DATE:
            return FieldType.DATE, self._render_date(field.name, value)
        if declared is FieldType.DATETIME:
            return FieldType.DATETIME, self._render_datetime(field.name, value)
        if declared is FieldType.BOOLEAN:
            return FieldType.BOOLEAN, self._render_boolean(field.name, value)
        # NULL declared but a value is present
        raise UnresolvableTypeError(field.name, value, declared.value)

    @staticmethod
    def _infer(name: str, value: Any) -> FieldType:
        if isinstance(value, bool):
            return FieldType.BOOLEAN
        if isinstance(value, (Decimal, numbers.Real)):
            return FieldType.NUMBER
        if isinstance(value, datetime):
            return FieldType.DATETIME
        if isinstance(value, date):
            return FieldType.DATE
        if isinstance(value, str):
            return FieldType.STRING
        raise UnresolvableTypeError(name, value, "inferred")

    def _render_number(self, name: str, value: Any) -> str | None:
        if isinstance(value, bool):
            raise UnresolvableTypeError(name, value, FieldType.NUMBER.value)
        try:
            if isinstance(value, Decimal):
                number = value
            elif isinstance(value, numbers.Integral):
                number = Decimal(int(value))
            elif isinstance(value, numbers.Real):
                as_float = float(value)
                if math.isnan(as_float):
                    number = Decimal("NaN")
                else:
                    number = Decimal(repr(as_float))
            elif isinstance(value, str):
                number = Decimal(value.strip())
            else:
                raise UnresolvableTypeError(name, value, FieldType.NUMBER.value)
        except InvalidOperation as exc:
            raise UnresolvableTypeError(name, value, FieldType.NUMBER.value) from exc

        if number.is_nan():
            return None if self.config.nan_as_null else "NaN"
        if number.is_infinite():
            return "-Infinity" if number < 0 else "Infinity"

        if number.is_zero():
            return "0"
        magnitude = number.adjusted()
        if abs(magnitude) > _MAX_MAGNITUDE:
            raise UnresolvableTypeError(name, value, FieldType.NUMBER.value)

        precision = self.config.number_precision
        with localcontext() as ctx:
            ctx.prec = max(ctx.prec, magnitude + 2, precision + 2)
            if number == number.to_integral_value():
                exponent = 0
            else:
                exponent = magnitude - precision + 1
            quantized = number.quantize(Decimal(1).scaleb(exponent), rounding=ROUND_HALF_EVEN)
        text = format(quantized, "f")
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        return text

    @staticmethod
    def _render_date(name: str, value: Any) -> str:
        # A calendar date has no zone; offset-bearing values must be DATETIME
        if isinstance(value, datetime):
            if value.tzinfo is not None or value.time() != time(0, 0):
                raise UnresolvableTypeError(name, value, FieldType.DATE.value)
            return value.date().isoformat()
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, str):
            text = value.strip()
            try:
                return date.fromisoformat(text).isoformat()
            except ValueError:
                pass
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError as exc:
                raise UnresolvableTypeError(name, value, FieldType.DATE.value) from exc
            if parsed.tzinfo is not None or parsed.time() != time(0, 0):
                raise UnresolvableTypeError(
                    name,
                    value,
                    FieldType.DATE.value,
                    message=f"DATE field {name!r} got {value!r}; values with a time or UTC offset need DATETIME",
                )
            return parsed.date().isoformat()
        raise UnresolvableTypeError(name, value, FieldType.DATE.value)

    @staticmethod
    def _render_datetime(name: str, value: Any) -> str:
        if isinstance(value, datetime):
            moment = value
        elif isinstance(value, date):
            moment = datetime.combine(value, time(0, 0))
        elif isinstance(value, str):
            text = value.strip()
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            try:
                moment = datetime.fromisoformat(text)
            except ValueError as exc:
                raise UnresolvableTypeError(name, value, FieldType.DATETIME.value) from exc
        else:
            raise UnresolvableTypeError(name, value, FieldType.DATETIME.value)

        # Naive values are taken as UTC
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        moment = moment.astimezone(timezone.utc)
        return (
            f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
            f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
            f".{moment.microsecond:06d}Z"
        )

    @staticmethod
    def _render_boolean(name: str, value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, str):
            text = value.strip().lower()
            if text in ("true", "false"):
                return text
        raise UnresolvableTypeError(name, value, FieldType.BOOLEAN.value)

    # ── encoding ─────────────────────────────────────────────────

    def canonical_fields(
        self,
        record: Record,
        include: Collection[str] | None = None,
        exclude: Collection[str] = (),
    ) -> list[CanonicalField]:
        """Resolved fields in encoding order, for inspection and audit."""
        resolved = []
        for hashed, f in self.select(record, include=include, exclude=exclude):
            logical_type, text = self.resolve(f)
            resolved.append(CanonicalField(f.name, hashed, logical_type, text))
        return resolved

    def canonicalize(
        self,
        record: Record,
        *,
        dataset_tag: str | None = None,
        include: Collection[str] | None = None,
        exclude: Collection[str] = (),
    ) -> bytes:
        """
        Encode ``record`` as canonical bytes.

        Args:
            record: Record to encode
            dataset_tag: Tag to scope the encoding to; None leaves it unscoped
            include: Names to encode (None = all fields)
            exclude: Names to leave out

        Raises:
            UnresolvableTypeError: A value does not fit its declared type, or a
                name or value cannot be encoded as UTF-8
            AmbiguousFieldNameError: Two fields share a hashed name
            MissingFieldError: An included name is absent
            ValidationError: ``dataset_tag`` cannot be encoded as UTF-8
        """
        resolved = self.canonical_fields(record, include=include, exclude=exclude)

        parts = [_token(CANONICAL_FORMAT.encode("ascii"))]
        if dataset_tag is None:
            parts.append(_UNSCOPED)
        else:
            try:
                tag = dataset_tag.encode("utf-8")
            except UnicodeEncodeError as exc:
                raise ValidationError(
                    f"dataset_tag {dataset_tag!r} is not encodable as UTF-8",
                    field="dataset_tag",
                    value=dataset_tag,
                    constraint="utf-8",
                    cause=exc,
                ) from exc
            parts.append(_SCOPED + _token(tag))
        parts.append(struct.pack(">I", len(resolved)))
        for cf in resolved:
            try:
                name = cf.hashed_name.encode("utf-8")
                text = cf.text.encode("utf-8")
            except UnicodeEncodeError as exc:
                raise UnresolvableTypeError(
                    cf.raw_name,
                    cf.text,
                    cf.logical_type.value,
                    message=f"Field {cf.raw_name!r} has a name or value that is not encodable as UTF-8",
                ) from exc
            parts.append(_token(name))
            parts.append(_TYPE_TAGS[cf.logical_type] + _token(text))
        return b"".join(parts)


__all__ = [
    "CANONICAL_FORMAT",
    "NameStage",
    "CanonicalizationConfig",
    "CanonicalField",
    "Canonicalizer",
]
