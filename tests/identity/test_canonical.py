"""Tests for idspine.identity.canonical module."""

import struct
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from idspine.core.errors import (
    AmbiguousFieldNameError,
    InvalidPolicyError,
    MissingFieldError,
    UnresolvableTypeError,
    ValidationError,
)
from idspine.identity.canonical import (
    CANONICAL_FORMAT,
    CanonicalizationConfig,
    Canonicalizer,
    NameStage,
)
from idspine.identity.values import Categorical, Field, FieldType, Record


def _record(*fields):
    return Record(tuple(Field(*f) for f in fields))


@pytest.fixture
def canon():
    return Canonicalizer()


@pytest.fixture
def raw_canon():
    return Canonicalizer(CanonicalizationConfig(name_stage=NameStage.RAW))


class TestCanonicalizationConfig:
    def test_defaults(self):
        config = CanonicalizationConfig()
        assert config.name_stage is NameStage.CLEANED
        assert config.number_precision == 17
        assert config.unicode_form == "NFC"
        assert config.nan_as_null is True

    def test_name_stage_from_string(self):
        assert CanonicalizationConfig(name_stage="raw").name_stage is NameStage.RAW

    @pytest.mark.parametrize("precision", [0, -1, 1.5, True])
    def test_invalid_precision(self, precision):
        with pytest.raises(InvalidPolicyError):
            CanonicalizationConfig(number_precision=precision)

    def test_invalid_unicode_form(self):
        with pytest.raises(InvalidPolicyError):
            CanonicalizationConfig(unicode_form="NFX")


class TestEncoding:
    def test_layout_unscoped(self, canon):
        data = canon.canonicalize(_record(("a", "x")))
        fmt = CANONICAL_FORMAT.encode("ascii")
        expected = (
            struct.pack(">I", len(fmt)) + fmt
            + b"\x00"
            + struct.pack(">I", 1)
            + struct.pack(">I", 1) + b"a"
            + b"S" + struct.pack(">I", 1) + b"x"
        )
        assert data == expected

    def test_layout_scoped(self, canon):
        data = canon.canonicalize(_record(("a", "x")), dataset_tag="ds1")
        fmt = CANONICAL_FORMAT.encode("ascii")
        assert data.startswith(struct.pack(">I", len(fmt)) + fmt + b"\x01" + struct.pack(">I", 3) + b"ds1")

    def test_scoping_changes_bytes(self, canon):
        record = _record(("a", "x"))
        assert canon.canonicalize(record) != canon.canonicalize(record, dataset_tag="ds1")
        assert canon.canonicalize(record, dataset_tag="ds1") != canon.canonicalize(record, dataset_tag="ds2")

    def test_empty_tag_differs_from_unscoped(self, canon):
        record = _record(("a", "x"))
        assert canon.canonicalize(record) != canon.canonicalize(record, dataset_tag="")

    def test_field_order_irrelevant(self, canon):
        a = _record(("name", "John"), ("city", "Paris"))
        b = _record(("city", "Paris"), ("name", "John"))
        assert canon.canonicalize(a) == canon.canonicalize(b)

    def test_null_distinct_from_empty_string(self, canon):
        assert canon.canonicalize(_record(("a", None))) != canon.canonicalize(_record(("a", "")))

    def test_no_delimiter_ambiguity(self, canon):
        a = _record(("a", "b|c"))
        b = _record(("a|b", "c"))
        assert canon.canonicalize(a) != canon.canonicalize(b)

    def test_type_tag_separates_equal_text(self, canon):
        as_string = _record(("v", "1", FieldType.STRING))
        as_number = _record(("v", "1", FieldType.NUMBER))
        assert canon.canonicalize(as_string) != canon.canonicalize(as_number)

    def test_empty_record_still_encodes(self, canon):
        data = canon.canonicalize(Record(()))
        assert data.endswith(struct.pack(">I", 0))


class TestNames:
    def test_cleaned_names_ignore_case_and_spacing(self, canon):
        a = _record(("Name", "John"))
        b = _record((" name ", "John"))
        assert canon.canonicalize(a) == canon.canonicalize(b)

    def test_raw_names_are_sensitive(self, raw_canon):
        a = _record(("Name", "John"))
        b = _record(("name", "John"))
        assert raw_canon.canonicalize(a) != raw_canon.canonicalize(b)

    def test_ambiguous_cleaned_names(self, canon):
        with pytest.raises(AmbiguousFieldNameError) as exc_info:
            canon.canonicalize(_record(("Name", "a"), ("name ", "b")))
        assert exc_info.value.raw_names == ["Name", "name "]

    def test_ambiguity_not_raised_for_raw_names(self, raw_canon):
        raw_canon.canonicalize(_record(("Name", "a"), ("name", "b")))

    def test_ambiguity_checked_outside_selection(self, canon):
        record = _record(("Name", "a"), ("name", "b"), ("city", "Paris"))
        with pytest.raises(AmbiguousFieldNameError):
            canon.canonicalize(record, include=["city"])


class TestSelection:
    def test_include(self, canon):
        record = _record(("name", "John"), ("city", "Paris"))
        assert canon.canonicalize(record, include=["name"]) == canon.canonicalize(_record(("name", "John")))

    def test_include_matched_through_name_stage(self, canon):
        record = _record(("Name", "John"), ("city", "Paris"))
        assert canon.canonicalize(record, include=["NAME"]) == canon.canonicalize(_record(("name", "John")))

    def test_include_order_irrelevant(self, canon):
        record = _record(("name", "John"), ("city", "Paris"), ("age", 3))
        assert canon.canonicalize(record, include=["name", "city"]) == canon.canonicalize(
            record, include=["city", "name"]
        )

    def test_exclude(self, canon):
        record = _record(("name", "John"), ("ingested_at", "2024-01-01"))
        assert canon.canonicalize(record, exclude=["ingested_at"]) == canon.canonicalize(
            _record(("name", "John"))
        )

    def test_exclude_unknown_name_ignored(self, canon):
        record = _record(("name", "John"))
        assert canon.canonicalize(record, exclude=["nope"]) == canon.canonicalize(record)

    def test_missing_included_field(self, canon):
        with pytest.raises(MissingFieldError) as exc_info:
            canon.canonicalize(_record(("name", "John")), include=["date"])
        assert exc_info.value.context.field_name == "date"


class TestStrings:
    def test_nfc_normalization(self, canon):
        composed = _record(("name", "Jos\u00e9"))
        decomposed = _record(("name", "Jose\u0301"))
        assert canon.canonicalize(composed) == canon.canonicalize(decomposed)

    def test_string_not_trimmed_or_folded(self, canon):
        assert canon.resolve(Field("n", " John ")) == (FieldType.STRING, " John ")

    def test_categorical_resolves_to_label(self, canon):
        coded = _record(("city", Categorical(1, ("Berlin", "Paris"))))
        plain = _record(("city", "Paris"))
        assert canon.canonicalize(coded) == canon.canonicalize(plain)

    def test_categorical_levels_table_irrelevant(self, canon):
        a = _record(("city", Categorical(1, ("Berlin", "Paris"))))
        b = _record(("city", Categorical(0, ("Paris", "Rome", "Oslo"))))
        assert canon.canonicalize(a) == canon.canonicalize(b)

    def test_categorical_out_of_range(self, canon):
        with pytest.raises(UnresolvableTypeError):
            canon.resolve(Field("city", Categorical(5, ("Berlin",))))

    def test_categorical_declared_number(self, canon):
        with pytest.raises(UnresolvableTypeError):
            canon.resolve(Field("city", Categorical(0, ("Berlin",)), FieldType.NUMBER))

    def test_declared_string_rejects_number(self, canon):
        with pytest.raises(UnresolvableTypeError) as exc_info:
            canon.resolve(Field("n", 42, FieldType.STRING))
        assert exc_info.value.declared == "string"


class TestNumbers:
    @pytest.mark.parametrize(
        "value,text",
        [
            (1, "1"),
            (1.0, "1"),
            ("1.00", "1"),
            (Decimal("1.50"), "1.5"),
            (-0.0, "0"),
            (0.1, "0.1"),
            (1e-20, "0." + "0" * 19 + "1"),
            (-1e-20, "-0." + "0" * 19 + "1"),
            (Decimal("-0.000"), "0"),
            (Decimal("1E+3"), "1000"),
            (Decimal("123.4500"), "123.45"),
            (10**20, "100000000000000000000"),
            (12345678901234567890, "12345678901234567890"),
            (0.1 + 0.2, "0.30000000000000004"),
            (" 2.5 ", "2.5"),
            (float("inf"), "Infinity"),
            (float("-inf"), "-Infinity"),
        ],
    )
    def test_rendering(self, canon, value, text):
        assert canon.resolve(Field("n", value, FieldType.NUMBER)) == (FieldType.NUMBER, text)

    def test_inferred_number(self, canon):
        assert canon.resolve(Field("n", 3.25)) == (FieldType.NUMBER, "3.25")

    def test_half_even_rounding(self):
        canon = Canonicalizer(CanonicalizationConfig(number_precision=1))
        assert canon.resolve(Field("n", 2.5))[1] == "2"
        assert canon.resolve(Field("n", 3.5))[1] == "4"

    def test_precision_counts_significant_digits(self):
        canon = Canonicalizer(CanonicalizationConfig(number_precision=3))
        assert canon.resolve(Field("n", "1.005", FieldType.NUMBER))[1] == "1"
        assert canon.resolve(Field("n", "1.015", FieldType.NUMBER))[1] == "1.02"
        assert canon.resolve(Field("n", "0.00012345", FieldType.NUMBER))[1] == "0.000123"

    def test_integers_never_rounded(self):
        canon = Canonicalizer(CanonicalizationConfig(number_precision=3))
        assert canon.resolve(Field("n", 123456))[1] == "123456"

    def test_lower_precision_absorbs_float_noise(self):
        canon = Canonicalizer(CanonicalizationConfig(number_precision=15))
        assert canon.resolve(Field("n", 0.1 + 0.2)) == canon.resolve(Field("n", 0.3))

    def test_small_values_stay_distinct(self, canon):
        assert canon.resolve(Field("n", 1e-13)) != canon.resolve(Field("n", 2e-13))
        assert canon.resolve(Field("n", 1e-13))[1] == "0.0000000000001"

    def test_magnitude_limit(self, canon):
        with pytest.raises(UnresolvableTypeError):
            canon.resolve(Field("n", "1e5000", FieldType.NUMBER))

    def test_nan_as_null(self, canon):
        assert canon.resolve(Field("n", float("nan"))) == (FieldType.NULL, "")

    def test_nan_kept_when_configured(self):
        canon = Canonicalizer(CanonicalizationConfig(nan_as_null=False))
        assert canon.resolve(Field("n", float("nan"))) == (FieldType.NUMBER, "NaN")

    @pytest.mark.parametrize("value", ["abc", True, [1]])
    def test_unresolvable(self, canon, value):
        with pytest.raises(UnresolvableTypeError):
            canon.resolve(Field("n", value, FieldType.NUMBER))

    def test_bool_inferred_as_boolean_not_number(self, canon):
        assert canon.resolve(Field("b", True)) == (FieldType.BOOLEAN, "true")


class TestDates:
    @pytest.mark.parametrize(
        "value",
        [date(1948, 12, 10), "1948-12-10", " 1948-12-10 ", datetime(1948, 12, 10), "1948-12-10T00:00:00"],
    )
    def test_date_forms_agree(self, canon, value):
        assert canon.resolve(Field("d", value, FieldType.DATE)) == (FieldType.DATE, "1948-12-10")

    def test_inferred_date(self, canon):
        assert canon.resolve(Field("d", date(2020, 2, 29))) == (FieldType.DATE, "2020-02-29")

    @pytest.mark.parametrize("value", ["10/12/1948", "1948-13-01", datetime(1948, 12, 10, 5), 19481210])
    def test_unresolvable_date(self, canon, value):
        with pytest.raises(UnresolvableTypeError):
            canon.resolve(Field("d", value, FieldType.DATE))

    @pytest.mark.parametrize(
        "value",
        [
            "1948-12-10T00:00:00+05:00",
            "1948-12-10T00:00:00Z",
            datetime(1948, 12, 10, tzinfo=timezone.utc),
        ],
    )
    def test_offset_bearing_values_rejected(self, canon, value):
        with pytest.raises(UnresolvableTypeError):
            canon.resolve(Field("d", value, FieldType.DATE))

    def test_date_string_without_declared_type_is_string(self, canon):
        assert canon.resolve(Field("d", "1948-12-10")) == (FieldType.STRING, "1948-12-10")


class TestDatetimes:
    def test_utc_rendering(self, canon):
        value = datetime(2024, 3, 1, 12, 30, 5, 123, tzinfo=timezone.utc)
        assert canon.resolve(Field("t", value)) == (FieldType.DATETIME, "2024-03-01T12:30:05.000123Z")

    def test_offsets_converted_to_utc(self, canon):
        plus_two = datetime(2024, 3, 1, 14, 30, tzinfo=timezone(timedelta(hours=2)))
        utc = datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)
        assert canon.resolve(Field("t", plus_two)) == canon.resolve(Field("t", utc))

    def test_naive_taken_as_utc(self, canon):
        naive = datetime(2024, 3, 1, 12, 30)
        assert canon.resolve(Field("t", naive))[1] == "2024-03-01T12:30:00.000000Z"

    @pytest.mark.parametrize("value", ["2024-03-01T12:30:00Z", "2024-03-01T14:30:00+02:00"])
    def test_string_forms(self, canon, value):
        assert canon.resolve(Field("t", value, FieldType.DATETIME))[1] == "2024-03-01T12:30:00.000000Z"

    def test_date_promoted_to_midnight(self, canon):
        assert canon.resolve(Field("t", date(2024, 3, 1), FieldType.DATETIME))[1] == "2024-03-01T00:00:00.000000Z"

    def test_unparseable(self, canon):
        with pytest.raises(UnresolvableTypeError):
            canon.resolve(Field("t", "yesterday", FieldType.DATETIME))


class TestBooleansAndNulls:
    @pytest.mark.parametrize("value,text", [(True, "true"), (False, "false"), ("TRUE", "true"), (" false", "false")])
    def test_boolean(self, canon, value, text):
        assert canon.resolve(Field("b", value, FieldType.BOOLEAN)) == (FieldType.BOOLEAN, text)

    @pytest.mark.parametrize("value", ["yes", 1, 0])
    def test_unresolvable_boolean(self, canon, value):
        with pytest.raises(UnresolvableTypeError):
            canon.resolve(Field("b", value, FieldType.BOOLEAN))

    @pytest.mark.parametrize("declared", [None, FieldType.STRING, FieldType.NUMBER, FieldType.DATE])
    def test_none_is_null_for_any_declared_type(self, canon, declared):
        assert canon.resolve(Field("x", None, declared)) == (FieldType.NULL, "")

    def test_declared_null_with_value(self, canon):
        with pytest.raises(UnresolvableTypeError):
            canon.resolve(Field("x", "a", FieldType.NULL))

    def test_unsupported_value(self, canon):
        with pytest.raises(UnresolvableTypeError):
            canon.resolve(Field("x", {"a": 1}))


class TestCanonicalFields:
    def test_audit_view(self, canon):
        record = _record(("Name", "John"), ("Born", "1948-12-10", FieldType.DATE))
        fields = canon.canonical_fields(record)
        assert [(f.raw_name, f.hashed_name, f.logical_type, f.text) for f in fields] == [
            ("Born", "born", FieldType.DATE, "1948-12-10"),
            ("Name", "name", FieldType.STRING, "John"),
        ]


class TestUnencodableText:
    def test_surrogate_in_value(self, canon):
        with pytest.raises(UnresolvableTypeError) as exc_info:
            canon.canonicalize(_record(("name", "bad\udcff")))
        assert exc_info.value.context.field_name == "name"

    def test_surrogate_in_name(self, canon):
        with pytest.raises(UnresolvableTypeError):
            canon.canonicalize(_record(("na\udcffme", "ok")))

    def test_surrogate_in_dataset_tag(self, canon):
        with pytest.raises(ValidationError) as exc_info:
            canon.canonicalize(_record(("name", "ok")), dataset_tag="ds\udcff")
        assert exc_info.value.context.field_name == "dataset_tag"
