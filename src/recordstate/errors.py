"""
Exception hierarchy for recordstate.

Every error raised by the engine derives from RecordStateError. The attribute
errors also derive from the matching builtin so that attribute access on a
Record behaves like ordinary Python attribute access.
"""
from typing import Any, Optional


class RecordStateError(Exception):
    """Base class for all recordstate errors."""


class CastError(RecordStateError, ValueError):
    """Raw input could not be interpreted by an attribute's type.

    The assignment that triggered it is rejected; the store is left unchanged.
    """

    def __init__(self, attribute: Optional[str], type_name: str, value: Any):
        self.attribute = attribute
        self.type_name = type_name
        self.value = value
        target = f"attribute {attribute!r}" if attribute else "value"
        super().__init__(f"Cannot cast {value!r} for {target} of type {type_name!r}")


class UnknownAttributeError(RecordStateError, AttributeError):
    """Attribute name is not part of the record's schema."""

    def __init__(self, record_kind: str, attribute: str):
        self.record_kind = record_kind
        self.attribute = attribute
        super().__init__(f"Unknown attribute {attribute!r} for {record_kind}")


class MissingAttributeError(RecordStateError, AttributeError):
    """Attribute exists in the schema but was not loaded (partial load)."""

    def __init__(self, record_kind: str, attribute: str):
        self.record_kind = record_kind
        self.attribute = attribute
        super().__init__(f"Missing attribute {attribute!r}: it was not loaded for this {record_kind}")


class PersistenceError(RecordStateError):
    """A persistence write failed; tracked changes are left intact."""


class StaleRecordError(PersistenceError):
    """Optimistic lock check failed at the storage layer."""

    def __init__(self, table: str, key: Any, expected: Any, actual: Any):
        self.table = table
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Stale {table} row {key!r}: expected lock version {expected!r}, found {actual!r}"
        )


class RecordNotFound(PersistenceError):
    """No stored row matches the requested key or conditions."""
