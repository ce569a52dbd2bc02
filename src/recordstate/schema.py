"""
Schema / type registry for one record kind.

A RecordSchema is the ordered list of attribute definitions plus the
configuration that applies to that record kind. Configuration is an explicit
frozen value attached to the schema and handed to the write planner at call
time; nothing in the engine reads module-level settings.
"""
from dataclasses import dataclass, replace
from datetime import datetime, timezone
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from recordstate.errors import UnknownAttributeError
from recordstate.types import AttributeType, DateTimeType, cast_attribute, lookup_type

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SchemaConfig:
    """Per-kind settings for change tracking and write planning.

    Attributes:
        partial_writes: Persisted records write only changed columns.
        time_zone: Zone used by zone-aware temporal attributes.
        time_zone_aware_attributes: Temporal attributes are zone-aware unless
            listed in ``skip_time_zone_conversion_for_attributes``.
        created_timestamp_attributes: Filled on insert when still null.
        updated_timestamp_attributes: Filled on insert and on every non-empty update.
        record_timestamps: Master switch for the two timestamp groups.
        locking_column: Optimistic lock counter, bumped on every non-empty update.
        clock: Source of "now" for timestamps (aware datetime).
    """
    partial_writes: bool = True
    time_zone: str = "UTC"
    time_zone_aware_attributes: bool = True
    skip_time_zone_conversion_for_attributes: Tuple[str, ...] = ()
    created_timestamp_attributes: Tuple[str, ...] = ("created_at", "created_on")
    updated_timestamp_attributes: Tuple[str, ...] = ("updated_at", "updated_on")
    record_timestamps: bool = True
    locking_column: Optional[str] = "lock_version"
    clock: Callable[[], datetime] = utc_now


@dataclass(frozen=True)
class AttributeDefinition:
    """One attribute of a record kind.

    ``type`` is a descriptor instance or a registered type name. ``persisted``
    False marks a virtual attribute that is tracked but never written.
    ``materialize`` is an optional hook run once on first read; it receives the
    current value and returns the value the attribute should hold.
    """
    name: str
    type: Union[AttributeType, str] = "value"
    default: Any = None
    persisted: bool = True
    primary_key: bool = False
    materialize: Optional[Callable[[Any], Any]] = None


class RecordSchema:
    """Ordered attribute definitions, resolved types and config for one kind."""

    def __init__(
        self,
        name: str,
        definitions: Iterable[AttributeDefinition],
        config: Optional[SchemaConfig] = None,
        aliases: Optional[Mapping[str, str]] = None,
    ):
        self.name = name
        self.config = config or SchemaConfig()
        self._definitions: Dict[str, AttributeDefinition] = {}
        for definition in definitions:
            if definition.name in self._definitions:
                raise ValueError(f"Duplicate attribute {definition.name!r} in schema {name!r}")
            self._definitions[definition.name] = definition

        self.aliases: Dict[str, str] = dict(aliases or {})
        for alias, target in self.aliases.items():
            if target not in self._definitions:
                raise ValueError(f"Alias {alias!r} points at unknown attribute {target!r}")

        self._types: Dict[str, AttributeType] = {
            attr_name: self._resolve_type(definition)
            for attr_name, definition in self._definitions.items()
        }

        primary_keys = [d.name for d in self._definitions.values() if d.primary_key]
        if len(primary_keys) > 1:
            raise ValueError(f"Schema {name!r} declares more than one primary key: {primary_keys}")
        self.primary_key: Optional[str] = primary_keys[0] if primary_keys else None

    def _resolve_type(self, definition: AttributeDefinition) -> AttributeType:
        attr_type = definition.type
        if isinstance(attr_type, str):
            attr_type = lookup_type(attr_type)

        # Temporal zone handling comes from this kind's config, not from the descriptor
        if isinstance(attr_type, DateTimeType):
            aware = (
                self.config.time_zone_aware_attributes
                and definition.name not in self.config.skip_time_zone_conversion_for_attributes
            )
            zone = self.config.time_zone if aware else None
            if attr_type.time_zone != zone:
                attr_type = DateTimeType(time_zone=zone, precision=attr_type.precision)
        return attr_type

    # ==================== LOOKUP ====================

    @property
    def names(self) -> List[str]:
        return list(self._definitions)

    def has_attribute(self, name: str) -> bool:
        return name in self._definitions or name in self.aliases

    def resolve(self, name: str) -> str:
        """Map an attribute name or alias to the attribute name."""
        if name in self._definitions:
            return name
        target = self.aliases.get(name)
        if target is None:
            raise UnknownAttributeError(self.name, name)
        return target

    def definition(self, name: str) -> AttributeDefinition:
        return self._definitions[self.resolve(name)]

    def type_for(self, name: str) -> AttributeType:
        return self._types[self.resolve(name)]

    def cast(self, name: str, raw: Any) -> Any:
        """Cast a raw value with the attribute's type; CastError names the attribute."""
        name = self.resolve(name)
        return cast_attribute(name, self._types[name], raw)

    def serialize(self, name: str, raw: Any) -> Any:
        """Cast then convert to the storage representation."""
        return self.type_for(name).serialize(self.cast(name, raw))

    def storable_names(self) -> List[str]:
        return [n for n, d in self._definitions.items() if d.persisted]

    def default_for(self, name: str) -> Any:
        name = self.resolve(name)
        attr_type = self._types[name]
        return attr_type.snapshot(attr_type.cast(self._definitions[name].default))

    # ==================== CONFIGURATION ====================

    def with_config(self, **changes: Any) -> 'RecordSchema':
        """Return a copy of this schema with config fields replaced."""
        new_config = replace(self.config, **changes)
        logger.debug(f"Reconfigured schema {self.name!r}: {sorted(changes)}")
        return RecordSchema(self.name, self._definitions.values(), new_config, self.aliases)

    def __repr__(self) -> str:
        return f"RecordSchema({self.name!r}, {self.names!r})"
