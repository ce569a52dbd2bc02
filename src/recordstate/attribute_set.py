"""
AttributeSlot / AttributeStore: per-record attribute state.

One AttributeStore belongs to exactly one record instance. Each slot keeps the
value as of the last clean state (``original``) next to the value currently
held (``current``); everything the change detector reports is derived from
those two values plus two flags.

Lifecycle of a slot:
- load/create: original == current, clean
- set():       current changes, original untouched
- clean_cut(): after a successful write, original := snapshot(current)
- reload():    both re-seeded from storage
"""
import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from recordstate.errors import MissingAttributeError
from recordstate.schema import RecordSchema
from recordstate.types import AttributeType, cast_attribute

logger = logging.getLogger(__name__)


class AttributeSlot:
    """State machine for a single attribute.

    Attributes:
        original: Value as of the last clean state (independent snapshot).
        current: Value currently held; mutable values may be edited in place.
        forced_dirty: Set by mark_will_change; dirty regardless of equality.
        known: False when the attribute was omitted from a partial load.
        assigned: Assigned since the last clean state.
        materialized: The definition's materialize hook has already run.
    """
    __slots__ = ('name', 'type', 'original', 'current', 'forced_dirty', 'known', 'assigned', 'materialized')

    def __init__(self, name: str, attr_type: AttributeType, value: Any = None, known: bool = True):
        self.name = name
        self.type = attr_type
        self.current = value
        self.original = attr_type.snapshot(value)
        self.forced_dirty = False
        self.known = known
        self.assigned = False
        self.materialized = False

    def changed(self) -> bool:
        if self.forced_dirty:
            return True
        if not self.known:
            # Nothing to compare against: any assignment counts
            return self.assigned
        if not self.type.equal(self.original, self.current):
            return True
        # Only this slot's own descriptor is asked about in-place edits
        return self.type.mutable and self.type.changed_in_place(self.original, self.current)

    def copy(self) -> 'AttributeSlot':
        """Value copy: no mutable value is shared with the source slot."""
        clone = AttributeSlot(self.name, self.type, known=self.known)
        clone.current = self.type.snapshot(self.current)
        clone.original = self.type.snapshot(self.original)
        clone.forced_dirty = self.forced_dirty
        clone.assigned = self.assigned
        clone.materialized = self.materialized
        return clone

    def __repr__(self) -> str:
        flags = []
        if self.forced_dirty:
            flags.append("forced")
        if not self.known:
            flags.append("unknown")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        return f"<AttributeSlot {self.name}: {self.original!r} -> {self.current!r}{suffix}>"


class AttributeStore:
    """Ordered mapping of attribute name to AttributeSlot for one record.

    Iteration order is the schema's definition order.
    """

    def __init__(self, schema: RecordSchema, slots: Dict[str, AttributeSlot]):
        self._schema = schema
        self._slots = slots

    # ==================== CONSTRUCTION ====================

    @classmethod
    def from_defaults(cls, schema: RecordSchema) -> 'AttributeStore':
        """Store for a new record: every slot clean at its declared default."""
        slots = {
            name: AttributeSlot(name, schema.type_for(name), schema.default_for(name))
            for name in schema.names
        }
        return cls(schema, slots)

    @classmethod
    def from_storage(
        cls,
        schema: RecordSchema,
        row: Mapping[str, Any],
        columns: Optional[List[str]] = None,
    ) -> 'AttributeStore':
        """Store for a loaded record.

        Attributes outside ``columns`` (a partial load) are marked unknown.
        Non-persisted attributes start at their default.
        """
        loaded = set(row) if columns is None else {schema.resolve(c) for c in columns}
        slots: Dict[str, AttributeSlot] = {}
        for name in schema.names:
            attr_type = schema.type_for(name)
            if name in loaded and name in row:
                slots[name] = AttributeSlot(name, attr_type, attr_type.deserialize(row[name]))
            elif not schema.definition(name).persisted:
                slots[name] = AttributeSlot(name, attr_type, schema.default_for(name))
            else:
                slots[name] = AttributeSlot(name, attr_type, known=False)
        return cls(schema, slots)

    # ==================== ACCESS ====================

    @property
    def schema(self) -> RecordSchema:
        return self._schema

    def _slot(self, name: str) -> AttributeSlot:
        return self._slots[self._schema.resolve(name)]

    def names(self) -> List[str]:
        return list(self._slots)

    def __iter__(self) -> Iterator[str]:
        return iter(self._slots)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._schema.has_attribute(name)

    def __len__(self) -> int:
        return len(self._slots)

    def type_for(self, name: str) -> AttributeType:
        return self._slot(name).type

    def is_known(self, name: str) -> bool:
        """True when the attribute was loaded or has since been assigned."""
        slot = self._slot(name)
        return slot.known or slot.assigned

    def original(self, name: str) -> Any:
        return self._slot(name).original

    def current(self, name: str) -> Any:
        """Current value without running materialize hooks."""
        return self._slot(name).current

    def get(self, name: str) -> Any:
        """Read an attribute.

        On the first read the definition's materialize hook (if any) runs once;
        a value it returns is assigned through set() so change tracking sees it.
        """
        name = self._schema.resolve(name)
        slot = self._slots[name]
        if not slot.known and not slot.assigned:
            raise MissingAttributeError(self._schema.name, name)

        hook = self._schema.definition(name).materialize
        if hook is not None and not slot.materialized:
            # Flag first so a read from inside the hook cannot re-enter it
            slot.materialized = True
            value = hook(slot.current)
            if value is not slot.current:
                self.set(name, value)
        return slot.current

    def values(self) -> Dict[str, Any]:
        """Current values of every loaded or assigned attribute."""
        return {name: slot.current for name, slot in self._slots.items() if slot.known or slot.assigned}

    # ==================== MUTATION ====================

    def _cast(self, slot: AttributeSlot, raw: Any) -> Any:
        return cast_attribute(slot.name, slot.type, raw)

    def set(self, name: str, raw: Any) -> None:
        """Cast and assign; ``original`` is untouched. A failed cast changes nothing."""
        slot = self._slot(name)
        value = self._cast(slot, raw)
        slot.current = value
        slot.assigned = True

    def set_many(self, values: Mapping[str, Any]) -> None:
        """Assign several attributes; all casts succeed before any slot changes."""
        staged: List[Tuple[AttributeSlot, Any]] = []
        for name, raw in values.items():
            slot = self._slot(name)
            staged.append((slot, self._cast(slot, raw)))
        for slot, value in staged:
            slot.current = value
            slot.assigned = True

    def mark_will_change(self, name: str) -> None:
        """Force the attribute dirty, seeding a baseline if none is known."""
        slot = self._slot(name)
        if not slot.known:
            slot.original = slot.type.snapshot(slot.current)
            slot.known = True
        slot.forced_dirty = True

    def restore(self, name: str) -> None:
        slot = self._slot(name)
        slot.current = slot.type.snapshot(slot.original)
        slot.forced_dirty = False
        slot.assigned = False

    def restore_all(self) -> None:
        for name in self._slots:
            self.restore(name)

    def reset(self, name: str) -> None:
        """Clear an attribute to a clean null (used for duplicated primary keys)."""
        slot = self._slot(name)
        slot.current = None
        slot.original = None
        slot.forced_dirty = False
        slot.known = True
        slot.assigned = False

    def changed(self, name: str) -> bool:
        return self._slot(name).changed()

    # ==================== STATE TRANSITIONS ====================

    def clean_cut(self) -> Dict[str, Tuple[Any, Any]]:
        """Make current values the new clean baseline.

        Called after a successful write. Returns the diff as it stood just
        before the cut so the caller can record it as change history.
        """
        changes = {
            name: (slot.original, slot.type.snapshot(slot.current))
            for name, slot in self._slots.items()
            if slot.changed()
        }
        for slot in self._slots.values():
            if slot.assigned:
                slot.known = True
            if slot.known:
                slot.original = slot.type.snapshot(slot.current)
            slot.forced_dirty = False
            slot.assigned = False
        logger.debug(f"Clean cut on {self._schema.name}: {list(changes)}")
        return changes

    def reload(self, row: Mapping[str, Any]) -> None:
        """Re-seed every slot from stored values; all flags reset."""
        for name, slot in self._slots.items():
            if name in row:
                slot.current = slot.type.deserialize(row[name])
                slot.original = slot.type.snapshot(slot.current)
                slot.known = True
            elif not self._schema.definition(name).persisted:
                slot.current = self._schema.default_for(name)
                slot.original = slot.type.snapshot(slot.current)
                slot.known = True
            else:
                slot.current = None
                slot.original = None
                slot.known = False
            slot.forced_dirty = False
            slot.assigned = False
            slot.materialized = False
        logger.debug(f"Reloaded {self._schema.name} attributes from storage")

    def duplicate(self) -> 'AttributeStore':
        """Independent copy carrying the same values and dirty state as data."""
        return AttributeStore(self._schema, {name: slot.copy() for name, slot in self._slots.items()})

    def __repr__(self) -> str:
        return f"<AttributeStore {self._schema.name}: {list(self._slots.values())!r}>"
