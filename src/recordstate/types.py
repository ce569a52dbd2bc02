"""
Attribute type descriptors.

Each descriptor owns the per-column behavior the change tracker relies on:

    cast(raw)                    raw input -> canonical in-memory value
    serialize(value)             canonical value -> storage representation
    deserialize(stored)          storage representation -> canonical value
    equal(a, b)                  semantic equality of two cast values
    changed_in_place(orig, cur)  content comparison for mutable values
    snapshot(value)              independent copy used as the clean baseline

The set of kinds is closed (one class per kind). User-defined types subclass
ValueType and override the same operations.
"""
import copy
import json
import logging
import math
import re
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Optional
from zoneinfo import ZoneInfo

from recordstate.errors import CastError

logger = logging.getLogger(__name__)


def is_blank(raw: Any) -> bool:
    """True for None and for strings that contain only whitespace."""
    return raw is None or (isinstance(raw, str) and not raw.strip())


class AttributeType(ABC):
    """Behavior of one attribute kind. Instances are immutable."""

    type_name: str = "value"
    mutable: bool = False

    def cast(self, raw: Any) -> Any:
        if raw is None:
            return None
        return self._cast_value(raw)

    @abstractmethod
    def _cast_value(self, raw: Any) -> Any:
        """Cast a non-None raw value."""

    def serialize(self, value: Any) -> Any:
        return value

    def deserialize(self, stored: Any) -> Any:
        return self.cast(stored)

    def equal(self, a: Any, b: Any) -> bool:
        if a is None or b is None:
            return a is None and b is None
        return a == b

    def changed_in_place(self, original: Any, current: Any) -> bool:
        return False

    def snapshot(self, value: Any) -> Any:
        return value

    def _fail(self, raw: Any) -> CastError:
        return CastError(None, self.type_name, raw)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class ValueType(AttributeType):
    """Identity type; the base class for custom types."""

    type_name = "value"

    def _cast_value(self, raw: Any) -> Any:
        return raw


class StringType(AttributeType):
    type_name = "string"

    def _cast_value(self, raw: Any) -> str:
        if isinstance(raw, (bytes, bytearray)):
            try:
                return bytes(raw).decode("utf-8")
            except UnicodeDecodeError as exc:
                raise self._fail(raw) from exc
        return str(raw)


class IntegerType(AttributeType):
    type_name = "integer"

    def cast(self, raw: Any) -> Optional[int]:
        if is_blank(raw):
            return None
        return self._cast_value(raw)

    def _cast_value(self, raw: Any) -> int:
        if isinstance(raw, bool):
            return int(raw)
        if isinstance(raw, int):
            return raw
        if isinstance(raw, float):
            if not math.isfinite(raw):
                raise self._fail(raw)
            return int(raw)
        if isinstance(raw, Decimal):
            if not raw.is_finite():
                raise self._fail(raw)
            return int(raw)
        if isinstance(raw, str):
            text = raw.strip()
            try:
                return int(text)
            except ValueError:
                pass
            try:
                parsed = Decimal(text)
            except InvalidOperation as exc:
                raise self._fail(raw) from exc
            if not parsed.is_finite():
                raise self._fail(raw)
            return int(parsed)
        raise self._fail(raw)


class FloatType(AttributeType):
    type_name = "float"

    def cast(self, raw: Any) -> Optional[float]:
        if is_blank(raw):
            return None
        return self._cast_value(raw)

    def _cast_value(self, raw: Any) -> float:
        if isinstance(raw, (bool, int, float, Decimal)):
            return float(raw)
        if isinstance(raw, str):
            try:
                return float(raw.strip())
            except ValueError as exc:
                raise self._fail(raw) from exc
        raise self._fail(raw)

    def equal(self, a: Any, b: Any) -> bool:
        if a is not None and b is not None and math.isnan(a) and math.isnan(b):
            return True
        return super().equal(a, b)


class DecimalType(AttributeType):
    """Exact decimal; equality is numeric so 0.0, "0" and "0.00" are equal."""

    type_name = "decimal"

    def __init__(self, scale: Optional[int] = None):
        self.scale = scale

    def cast(self, raw: Any) -> Optional[Decimal]:
        if is_blank(raw):
            return None
        return self._cast_value(raw)

    def _cast_value(self, raw: Any) -> Decimal:
        if isinstance(raw, Decimal):
            value = raw
        elif isinstance(raw, bool):
            value = Decimal(int(raw))
        elif isinstance(raw, int):
            value = Decimal(raw)
        elif isinstance(raw, float):
            # repr gives the shortest round-tripping text, so 0.1 stays 0.1
            value = Decimal(repr(raw))
        elif isinstance(raw, str):
            try:
                value = Decimal(raw.strip())
            except InvalidOperation as exc:
                raise self._fail(raw) from exc
        else:
            raise self._fail(raw)
        if not value.is_finite():
            raise self._fail(raw)
        if self.scale is not None:
            value = value.quantize(Decimal(1).scaleb(-self.scale))
        return value

    def serialize(self, value: Any) -> Optional[str]:
        return None if value is None else str(value)

    def __repr__(self) -> str:
        return f"DecimalType(scale={self.scale!r})"


_TRUE_VALUES = frozenset({"1", "t", "true", "on", "yes", "y"})
_FALSE_VALUES = frozenset({"0", "f", "false", "off", "no", "n"})


class BooleanType(AttributeType):
    """Boolean, optionally stored as an integer flag (storage="integer")."""

    type_name = "boolean"

    def __init__(self, storage: Optional[str] = None):
        self.storage = storage

    def cast(self, raw: Any) -> Optional[bool]:
        if is_blank(raw):
            return None
        return self._cast_value(raw)

    def _cast_value(self, raw: Any) -> bool:
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, (int, float, Decimal)):
            return raw != 0
        if isinstance(raw, str):
            text = raw.strip().lower()
            if text in _TRUE_VALUES:
                return True
            if text in _FALSE_VALUES:
                return False
        raise self._fail(raw)

    def serialize(self, value: Any) -> Any:
        if value is None or self.storage != "integer":
            return value
        return int(value)

    def __repr__(self) -> str:
        return f"BooleanType(storage={self.storage!r})"


# Trailing offset: "Z", "UTC", "+09:00" or "+0900", optionally preceded by a space.
_OFFSET_RE = re.compile(r"\s*(Z|UTC|[+-]\d{2}:?\d{2})$", re.IGNORECASE)


def parse_datetime_text(text: str) -> datetime:
    """Parse ISO-8601 style text, including "2014-01-01 21:00:00 +0900"."""
    text = text.strip()
    offset: Optional[tzinfo] = None
    match = _OFFSET_RE.search(text)
    if match:
        token = match.group(1).upper()
        text = text[:match.start()]
        if token in ("Z", "UTC"):
            offset = timezone.utc
        else:
            sign = 1 if token[0] == "+" else -1
            digits = token[1:].replace(":", "")
            offset = timezone(sign * timedelta(hours=int(digits[:2]), minutes=int(digits[2:])))
    parsed = datetime.fromisoformat(text)
    if offset is not None:
        parsed = parsed.replace(tzinfo=offset)
    return parsed


class DateTimeType(AttributeType):
    """Timestamp with optional zone awareness.

    Zone-aware (time_zone given): values are aware datetimes in that zone and
    naive input is read as local time in that zone. Otherwise values are naive
    UTC. Either way equality is by instant, and fractional seconds beyond
    ``precision`` digits are dropped.
    """

    type_name = "datetime"

    def __init__(self, time_zone: Optional[str] = None, precision: int = 6):
        if not 0 <= precision <= 6:
            raise ValueError(f"DateTimeType precision must be between 0 and 6, got {precision!r}")
        self.time_zone = time_zone
        self.precision = precision
        self._zone = ZoneInfo(time_zone) if time_zone else None

    @property
    def zone_aware(self) -> bool:
        return self._zone is not None

    def cast(self, raw: Any) -> Optional[datetime]:
        if is_blank(raw):
            return None
        return self._cast_value(raw)

    def _cast_value(self, raw: Any) -> datetime:
        if isinstance(raw, datetime):
            value = raw
        elif isinstance(raw, date):
            value = datetime(raw.year, raw.month, raw.day)
        elif isinstance(raw, str):
            try:
                value = parse_datetime_text(raw)
            except ValueError as exc:
                raise self._fail(raw) from exc
        elif isinstance(raw, (int, float)) and not isinstance(raw, bool):
            value = datetime.fromtimestamp(raw, timezone.utc)
        else:
            raise self._fail(raw)

        value = self._truncate(value)
        if self._zone is not None:
            if value.tzinfo is None:
                value = value.replace(tzinfo=self._zone)
            return value.astimezone(self._zone)
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def _truncate(self, value: datetime) -> datetime:
        step = 10 ** (6 - self.precision)
        return value.replace(microsecond=value.microsecond // step * step)

    def serialize(self, value: Any) -> Optional[str]:
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.isoformat()

    def __repr__(self) -> str:
        return f"DateTimeType(time_zone={self.time_zone!r}, precision={self.precision!r})"


class DateType(AttributeType):
    type_name = "date"

    def cast(self, raw: Any) -> Optional[date]:
        if is_blank(raw):
            return None
        return self._cast_value(raw)

    def _cast_value(self, raw: Any) -> date:
        if isinstance(raw, datetime):
            return raw.date()
        if isinstance(raw, date):
            return raw
        if isinstance(raw, str):
            try:
                return parse_datetime_text(raw).date()
            except ValueError as exc:
                raise self._fail(raw) from exc
        raise self._fail(raw)

    def serialize(self, value: Any) -> Optional[str]:
        return None if value is None else value.isoformat()


class JSONType(AttributeType):
    """Structured value stored as JSON text.

    In-memory values are plain dicts/lists/scalars that callers may mutate
    directly, so change detection compares canonical JSON dumps.
    """

    type_name = "json"
    mutable = True

    def _cast_value(self, raw: Any) -> Any:
        try:
            json.dumps(raw)
        except (TypeError, ValueError) as exc:
            raise self._fail(raw) from exc
        return raw

    def serialize(self, value: Any) -> Optional[str]:
        if value is None:
            return None
        return json.dumps(value, sort_keys=True)

    def deserialize(self, stored: Any) -> Any:
        if isinstance(stored, (str, bytes, bytearray)):
            try:
                return json.loads(stored)
            except ValueError as exc:
                raise self._fail(stored) from exc
        return self.cast(stored)

    def changed_in_place(self, original: Any, current: Any) -> bool:
        return self.serialize(original) != self.serialize(current)

    def snapshot(self, value: Any) -> Any:
        return copy.deepcopy(value)


class BinaryType(AttributeType):
    """Byte buffer held as a mutable bytearray."""

    type_name = "binary"
    mutable = True

    def _cast_value(self, raw: Any) -> bytearray:
        if isinstance(raw, (bytes, bytearray, memoryview)):
            return bytearray(raw)
        if isinstance(raw, str):
            return bytearray(raw.encode("utf-8"))
        raise self._fail(raw)

    def serialize(self, value: Any) -> Optional[bytes]:
        return None if value is None else bytes(value)

    def changed_in_place(self, original: Any, current: Any) -> bool:
        if original is None or current is None:
            return original is not current
        return bytes(original) != bytes(current)

    def snapshot(self, value: Any) -> Any:
        return None if value is None else bytearray(value)



def cast_attribute(name: str, attr_type: AttributeType, raw: Any) -> Any:
    """Cast ``raw`` for attribute ``name``; failures raise a CastError naming it."""
    try:
        return attr_type.cast(raw)
    except CastError as exc:
        raise CastError(name, exc.type_name, raw) from exc
    except (ValueError, TypeError, ArithmeticError) as exc:
        raise CastError(name, attr_type.type_name, raw) from exc

# ==================== TYPE REGISTRY ====================

_type_registry: Dict[str, Callable[..., AttributeType]] = {}


def register_type(name: str, factory: Callable[..., AttributeType]) -> None:
    """Register a type factory under a lookup name (overwrites silently)."""
    if name in _type_registry:
        logger.debug(f"Replacing attribute type registration for {name!r}")
    _type_registry[name] = factory


def lookup_type(name: str, **options: Any) -> AttributeType:
    """Build a type descriptor from its registered name."""
    try:
        factory = _type_registry[name]
    except KeyError:
        raise LookupError(f"Unknown attribute type {name!r}. Known: {sorted(_type_registry)}") from None
    return factory(**options)


for _name, _factory in (
    ("value", ValueType),
    ("string", StringType),
    ("text", StringType),
    ("integer", IntegerType),
    ("float", FloatType),
    ("decimal", DecimalType),
    ("boolean", BooleanType),
    ("datetime", DateTimeType),
    ("date", DateType),
    ("json", JSONType),
    ("serialized", JSONType),
    ("binary", BinaryType),
):
    register_type(_name, _factory)
