"""
Tests for attribute type descriptors.

Tests cover:
- Blank-to-null casting for numeric, boolean and temporal types
- Numeric equivalence across representations
- Zone-aware timestamps compared by instant
- In-place change detection for JSON and binary values
- The type registry
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from recordstate import (
    AttributeType,
    BinaryType,
    BooleanType,
    CastError,
    DateTimeType,
    DateType,
    DecimalType,
    FloatType,
    IntegerType,
    JSONType,
    StringType,
    ValueType,
    cast_attribute,
    lookup_type,
    register_type,
)
from recordstate.types import parse_datetime_text


class TestIntegerType:
    """IntegerType casting and equality."""

    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_blank_casts_to_none(self, raw):
        """Blank and None cast to None."""
        assert IntegerType().cast(raw) is None

    def test_zero_representations_are_equal(self):
        """"0", 0 and 0.0 are the same integer."""
        t = IntegerType()
        assert t.equal(t.cast("0"), t.cast(0))
        assert t.equal(t.cast(0.0), t.cast("0"))

    def test_fractional_text_truncates(self):
        """Fractional text truncates toward zero."""
        assert IntegerType().cast("1.5") == 1

    def test_booleans_cast_to_int(self):
        """True and False cast to 1 and 0."""
        assert IntegerType().cast(True) == 1
        assert IntegerType().cast(False) == 0

    def test_uninterpretable_text_raises(self):
        """Non-numeric text raises CastError with the raw value."""
        with pytest.raises(CastError) as exc_info:
            IntegerType().cast("abc")
        assert exc_info.value.type_name == "integer"
        assert exc_info.value.value == "abc"

    def test_null_is_not_equal_to_zero(self):
        """None equals only None."""
        t = IntegerType()
        assert not t.equal(None, 0)
        assert t.equal(None, None)


class TestDecimalType:
    """DecimalType keeps exact values and compares numerically."""

    def test_zero_representations_are_equal(self):
        """Zero in any spelling is equal; one is not."""
        t = DecimalType()
        zero = t.cast(0.0)
        assert t.equal(zero, t.cast("0"))
        assert t.equal(zero, t.cast("0.00"))
        assert not t.equal(zero, t.cast("1"))

    def test_float_goes_through_repr(self):
        """0.1 becomes Decimal("0.1"), not its binary expansion."""
        assert DecimalType().cast(0.1) == Decimal("0.1")

    def test_scale_quantizes(self):
        """A scale pads or rounds to that many places."""
        assert str(DecimalType(scale=2).cast("1.5")) == "1.50"

    def test_non_finite_rejected(self):
        """NaN is rejected."""
        with pytest.raises(CastError):
            DecimalType().cast("NaN")

    def test_serializes_as_text(self):
        """Storage form is text and parses back."""
        t = DecimalType()
        assert t.serialize(Decimal("12.30")) == "12.30"
        assert t.deserialize("12.30") == Decimal("12.30")


class TestFloatType:
    """FloatType casting."""

    def test_text_zero(self):
        """Text zero casts to 0.0."""
        t = FloatType()
        assert t.cast("0.00") == 0.0
        assert t.equal(t.cast("0"), t.cast(0.0))

    def test_blank_casts_to_none(self):
        """Blank casts to None."""
        assert FloatType().cast("") is None

    def test_nan_equals_nan(self):
        """NaN equals NaN so it is never a change."""
        t = FloatType()
        assert t.equal(float("nan"), float("nan"))

    def test_garbage_raises(self):
        """Non-numeric text raises CastError."""
        with pytest.raises(CastError):
            FloatType().cast("warm")


class TestBooleanType:
    """BooleanType accepts alternate raw representations."""

    @pytest.mark.parametrize("raw", [True, 1, "1", "t", "true", "TRUE", "on", "yes"])
    def test_true_values(self, raw):
        """Accepted spellings of true."""
        assert BooleanType().cast(raw) is True

    @pytest.mark.parametrize("raw", [False, 0, "0", "f", "false", "off", "no"])
    def test_false_values(self, raw):
        """Accepted spellings of false."""
        assert BooleanType().cast(raw) is False

    def test_one_and_true_are_equal(self):
        """1 and True cast to the same value."""
        t = BooleanType(storage="integer")
        assert t.equal(t.cast(1), t.cast(True))

    def test_blank_casts_to_none(self):
        """Blank casts to None."""
        assert BooleanType().cast("") is None

    def test_unknown_text_raises(self):
        """Unrecognised text raises CastError."""
        with pytest.raises(CastError):
            BooleanType().cast("maybe")

    def test_integer_storage(self):
        """Integer storage writes 1 and 0."""
        t = BooleanType(storage="integer")
        assert t.serialize(True) == 1
        assert t.serialize(False) == 0
        assert t.deserialize(1) is True
        assert BooleanType().serialize(True) is True


class TestStringType:
    """StringType casting."""

    def test_casts_to_text(self):
        """Numbers and UTF-8 bytes become text."""
        assert StringType().cast(42) == "42"
        assert StringType().cast(b"arr") == "arr"

    def test_blank_string_is_kept(self):
        """An empty string stays an empty string."""
        assert StringType().cast("") == ""

    def test_never_changed_in_place(self):
        """Strings are immutable, so never changed in place."""
        assert not StringType().changed_in_place("a", "b")


class TestDateTimeType:
    """Zone-aware and naive timestamps."""

    def setup_method(self):
        self.paris = DateTimeType(time_zone="Europe/Paris")
        self.instant = datetime(2014, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def test_zone_aware_cast_converts_to_zone(self):
        """Aware values are converted to the configured zone."""
        value = self.paris.cast(self.instant)
        assert value.tzinfo.key == "Europe/Paris"
        assert value.hour == 13

    def test_same_instant_in_other_zone_text_is_equal(self):
        """A " +0900" string for the same instant is equal."""
        value = self.paris.cast(self.instant)
        tokyo_text = value.astimezone(ZoneInfo("Asia/Tokyo")).strftime("%Y-%m-%d %H:%M:%S %z")
        assert tokyo_text == "2014-01-01 21:00:00 +0900"
        assert self.paris.equal(value, self.paris.cast(tokyo_text))

    def test_iso_text_with_colon_offset(self):
        """ISO text with a "+09:00" offset is equal too."""
        value = self.paris.cast(self.instant)
        assert self.paris.equal(value, self.paris.cast("2014-01-01T21:00:00+09:00"))

    def test_naive_input_is_local_to_zone(self):
        """Naive text is read as local time in the zone."""
        assert self.paris.equal(self.paris.cast("2014-01-01 13:00:00"), self.paris.cast(self.instant))

    def test_one_second_later_is_not_equal(self):
        """A second later is a different instant."""
        value = self.paris.cast(self.instant)
        assert not self.paris.equal(value, self.paris.cast(self.instant + timedelta(seconds=1)))

    def test_fractional_seconds_are_significant(self):
        """Sub-second differences count at default precision."""
        value = self.paris.cast(self.instant)
        assert not self.paris.equal(value, self.paris.cast(self.instant + timedelta(seconds=0.3)))

    def test_precision_truncates(self):
        """Digits beyond the precision are dropped."""
        t = DateTimeType(time_zone="UTC", precision=0)
        assert t.cast(self.instant.replace(microsecond=300000)).microsecond == 0
        assert DateTimeType(precision=3).cast(self.instant.replace(microsecond=123456)).microsecond == 123000

    @pytest.mark.parametrize("precision", [-1, 7, 9])
    def test_precision_out_of_range_is_rejected(self, precision):
        """Precision outside 0..6 digits fails when the type is built, not on cast."""
        with pytest.raises(ValueError):
            DateTimeType(precision=precision)

    def test_naive_type_strips_zone(self):
        """Without a zone, values are naive UTC."""
        t = DateTimeType()
        value = t.cast(self.instant.astimezone(ZoneInfo("Europe/Paris")))
        assert value == datetime(2014, 1, 1, 12, 0, 0)
        assert value.tzinfo is None
        assert not t.zone_aware

    @pytest.mark.parametrize("raw", ["", "  ", None])
    def test_blank_casts_to_none(self, raw):
        """Blank casts to None."""
        assert self.paris.cast(raw) is None

    def test_garbage_raises(self):
        """Unparseable text raises CastError."""
        with pytest.raises(CastError):
            self.paris.cast("next tuesday")

    def test_serialized_form_is_utc(self):
        """Storage form is UTC ISO text and reads back equal."""
        value = self.paris.cast(self.instant)
        stored = self.paris.serialize(value)
        assert stored == "2014-01-01T12:00:00+00:00"
        assert self.paris.equal(self.paris.deserialize(stored), value)

    def test_parse_zulu_suffix(self):
        """A trailing Z means UTC."""
        assert parse_datetime_text("2014-01-01T12:00:00Z") == self.instant


class TestDateType:
    def test_casts_text_and_datetime(self):
        """Dates come from ISO text or a datetime's date part."""
        t = DateType()
        assert t.cast("2014-01-01").isoformat() == "2014-01-01"
        assert t.cast(datetime(2014, 1, 1, 9, 30)).isoformat() == "2014-01-01"
        assert t.cast("") is None


class TestJSONType:
    """Structured values detect element-level mutation."""

    def test_added_entry_is_changed_in_place(self):
        """Adding a key is an in-place change; the snapshot is untouched."""
        t = JSONType()
        current = t.cast({"a": "a"})
        original = t.snapshot(current)
        assert not t.changed_in_place(original, current)

        current["b"] = "b"
        assert t.changed_in_place(original, current)
        assert original == {"a": "a"}

    def test_nested_mutation(self):
        """Edits inside nested lists are detected."""
        t = JSONType()
        current = {"tags": ["a"]}
        original = t.snapshot(current)
        current["tags"].append("b")
        assert t.changed_in_place(original, current)

    def test_key_order_does_not_matter(self):
        """Reordered keys are not a change."""
        t = JSONType()
        assert not t.changed_in_place({"a": 1, "b": 2}, {"b": 2, "a": 1})

    def test_unserializable_value_raises(self):
        """Values JSON cannot encode raise CastError."""
        with pytest.raises(CastError):
            JSONType().cast({"when": object()})

    def test_round_trip_through_storage(self):
        """Storage form is sorted-key JSON text."""
        t = JSONType()
        assert t.serialize({"b": 1, "a": 2}) == '{"a": 2, "b": 1}'
        assert t.deserialize('{"a": 2}') == {"a": 2}


class TestBinaryType:
    """Byte buffers held as bytearray."""

    def test_text_is_encoded(self):
        """Text is stored as its UTF-8 bytes."""
        assert BinaryType().cast("foo") == bytearray(b"foo")

    def test_copy_is_not_changed(self):
        """A byte-equal copy is not an in-place change."""
        t = BinaryType()
        original = t.cast(b"foo")
        assert not t.changed_in_place(original, bytearray(original))

    def test_append_is_changed_in_place(self):
        """Appending bytes is an in-place change."""
        t = BinaryType()
        current = t.cast(b"foo")
        original = t.snapshot(current)
        current.extend(b"bar")
        assert t.changed_in_place(original, current)

    def test_unsupported_input_raises(self):
        """Integers are not accepted as binary."""
        with pytest.raises(CastError):
            BinaryType().cast(12)


class TestTypeRegistry:
    """lookup_type / register_type."""

    def test_lookup_with_options(self):
        """Options are passed to the type's constructor."""
        t = lookup_type("decimal", scale=2)
        assert isinstance(t, DecimalType)
        assert t.scale == 2

    def test_aliases_resolve_to_same_kind(self):
        """"text" and "serialized" map to string and JSON."""
        assert isinstance(lookup_type("text"), StringType)
        assert isinstance(lookup_type("serialized"), JSONType)

    def test_unknown_name(self):
        """An unregistered name raises LookupError."""
        with pytest.raises(LookupError):
            lookup_type("geometry")

    def test_register_custom_type(self):
        """A registered custom type can be looked up by name."""
        class UpperType(ValueType):
            type_name = "upper"

            def _cast_value(self, raw):
                return str(raw).upper()

        register_type("upper", UpperType)
        t = lookup_type("upper")
        assert isinstance(t, AttributeType)
        assert t.cast("arr") == "ARR"


class TestCastAttribute:
    """cast_attribute() attaches the attribute name to cast failures."""

    def test_failure_names_the_attribute(self):
        """The CastError carries both the attribute name and the type name."""
        with pytest.raises(CastError) as exc_info:
            cast_attribute("crew", IntegerType(), "a dozen")
        assert exc_info.value.attribute == "crew"
        assert exc_info.value.type_name == "integer"
        assert "'crew'" in str(exc_info.value)

    def test_plain_errors_from_custom_types_are_wrapped(self):
        """A ValueError raised by a custom type becomes a named CastError."""
        class StrictType(ValueType):
            type_name = "strict"

            def _cast_value(self, raw):
                raise ValueError("nope")

        with pytest.raises(CastError) as exc_info:
            cast_attribute("mood", StrictType(), "grumpy")
        assert exc_info.value.attribute == "mood"
        assert exc_info.value.type_name == "strict"

    def test_success_returns_cast_value(self):
        """A castable value comes back exactly as the type casts it."""
        assert cast_attribute("crew", IntegerType(), "12") == 12
