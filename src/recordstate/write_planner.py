"""
WritePlanner: decides which attributes a persistence write must include.

The planner reads the store and the schema's config at call time and returns a
WritePlan. It never mutates the store: bookkeeping values (timestamps, lock
version) travel in the plan and are applied by the caller only once the write
has succeeded, so a failed write leaves tracked state exactly as it was.
"""
from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, Dict, List, Optional

from recordstate.attribute_set import AttributeStore
from recordstate.change_detector import ChangeDetector
from recordstate.schema import RecordSchema, SchemaConfig

logger = logging.getLogger(__name__)


class WriteKind(Enum):
    INSERT = "insert"
    UPDATE = "update"
    SKIP = "skip"


@dataclass(frozen=True)
class WritePlan:
    """What a single persistence write would contain.

    Attributes:
        kind: INSERT, UPDATE, or SKIP (no round-trip needed).
        values: Attribute name -> serialized value, in definition order.
        bookkeeping: Attribute name -> cast value to assign after success.
        key: Primary key of the stored row (UPDATE only).
        expected_lock_version: Lock value the stored row must still hold.
    """
    kind: WriteKind
    values: Dict[str, Any] = field(default_factory=dict)
    bookkeeping: Dict[str, Any] = field(default_factory=dict)
    key: Any = None
    expected_lock_version: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return self.kind is WriteKind.SKIP

    @property
    def columns(self) -> List[str]:
        return list(self.values)


class WritePlanner:
    """Builds WritePlans for new and persisted records."""

    def plan(self, store: AttributeStore, schema: RecordSchema, new_record: bool) -> WritePlan:
        config = schema.config
        if new_record:
            plan = self._plan_insert(store, schema, config)
        else:
            plan = self._plan_update(store, schema, config)
        logger.debug(f"Planned {plan.kind.value} for {schema.name}: columns={plan.columns}")
        return plan

    def _plan_insert(self, store: AttributeStore, schema: RecordSchema, config: SchemaConfig) -> WritePlan:
        bookkeeping: Dict[str, Any] = {}
        if config.record_timestamps:
            now = config.clock()
            for name in (*config.created_timestamp_attributes, *config.updated_timestamp_attributes):
                if schema.has_attribute(name) and store.current(name) is None:
                    bookkeeping[schema.resolve(name)] = store.type_for(name).cast(now)

        changed = set(ChangeDetector(store).changed_names())
        names = []
        for name in schema.storable_names():
            if not store.is_known(name):
                continue
            # Unchanged attributes still hold the schema default; storage fills those
            if config.partial_writes and name not in changed and name not in bookkeeping:
                continue
            names.append(name)

        return WritePlan(
            kind=WriteKind.INSERT,
            values=self._serialize(store, names, bookkeeping),
            bookkeeping=bookkeeping,
        )

    def _plan_update(self, store: AttributeStore, schema: RecordSchema, config: SchemaConfig) -> WritePlan:
        changed = ChangeDetector(store).changed_names()
        storable = [name for name in schema.storable_names() if store.is_known(name)]

        if config.partial_writes:
            storable_set = set(storable)
            names = [name for name in changed if name in storable_set]
            if not names:
                return WritePlan(kind=WriteKind.SKIP)
        else:
            names = storable

        bookkeeping: Dict[str, Any] = {}
        if config.record_timestamps:
            now = config.clock()
            for name in config.updated_timestamp_attributes:
                if schema.has_attribute(name) and schema.resolve(name) not in changed:
                    bookkeeping[schema.resolve(name)] = store.type_for(name).cast(now)

        expected_lock_version = None
        lock = config.locking_column
        if lock and schema.has_attribute(lock) and store.is_known(lock):
            lock = schema.resolve(lock)
            expected_lock_version = store.original(lock)
            bookkeeping[lock] = (store.current(lock) or 0) + 1

        pk = schema.primary_key
        return WritePlan(
            kind=WriteKind.UPDATE,
            values=self._serialize(store, names, bookkeeping),
            bookkeeping=bookkeeping,
            key=store.original(pk) if pk else None,
            expected_lock_version=expected_lock_version,
        )

    @staticmethod
    def _serialize(store: AttributeStore, names: List[str], bookkeeping: Dict[str, Any]) -> Dict[str, Any]:
        wanted = set(names) | set(bookkeeping)
        values = {}
        for name in store:
            if name not in wanted:
                continue
            value = bookkeeping[name] if name in bookkeeping else store.current(name)
            values[name] = store.type_for(name).serialize(value)
        return values
