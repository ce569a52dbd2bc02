"""
Record: the record-object seam over the change-tracking engine.

A Record subclass declares a ``schema`` (RecordSchema) and is bound to a
``table`` (PersistenceExecutor). Schema attributes are read and written as
ordinary Python attributes; everything else goes through explicit methods.

Save flow:
    plan = planner.plan(store, schema, new_record)
    SKIP   -> return without touching storage
    write  -> on success: apply bookkeeping, clean cut, record history
           -> on failure: nothing changes, the exception propagates
"""
from contextlib import contextmanager
import logging
from typing import Any, ClassVar, Dict, Generator, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar

from recordstate.attribute_set import AttributeStore
from recordstate.change_detector import ChangeDetector, _UNSET
from recordstate.change_history import ChangeHistory
from recordstate.errors import PersistenceError
from recordstate.persistence import PersistenceExecutor
from recordstate.schema import RecordSchema
from recordstate.write_planner import WriteKind, WritePlanner

logger = logging.getLogger(__name__)

R = TypeVar('R', bound='Record')


class Record:
    """Base class for tracked records.

    Example:
        >>> class Pirate(Record):
        ...     schema = RecordSchema("pirates", [
        ...         AttributeDefinition("id", "integer", primary_key=True),
        ...         AttributeDefinition("catchphrase", "string"),
        ...     ])
        >>> Pirate.table = InMemoryTable(Pirate.schema)
        >>> pirate = Pirate.create(catchphrase="arrr")
        >>> pirate.catchphrase = "Yar!"
        >>> pirate.changes
        {'catchphrase': ('arrr', 'Yar!')}
    """
    schema: ClassVar[RecordSchema]
    table: ClassVar[Optional[PersistenceExecutor]] = None
    planner: ClassVar[WritePlanner] = WritePlanner()

    def __init__(self, **attributes: Any):
        self._init_state(AttributeStore.from_defaults(type(self).schema), new_record=True)
        if attributes:
            self.assign_attributes(attributes)

    def _init_state(self, store: AttributeStore, new_record: bool) -> None:
        object.__setattr__(self, '_store', store)
        object.__setattr__(self, '_history', ChangeHistory())
        object.__setattr__(self, '_new_record', new_record)

    @classmethod
    def _from_row(cls: Type[R], row: Mapping[str, Any], columns: Optional[List[str]] = None) -> R:
        record = cls.__new__(cls)
        record._init_state(AttributeStore.from_storage(cls.schema, row, columns), new_record=False)
        return record

    # ==================== ATTRIBUTE ACCESS ====================

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal lookup fails
        if name.startswith('_'):
            raise AttributeError(name)
        store = self.__dict__.get('_store')
        if store is None:
            raise AttributeError(name)
        return store.get(name)

    def __setattr__(self, name: str, value: Any) -> None:
        if not name.startswith('_') and type(self).schema.has_attribute(name):
            self._store.set(name, value)
        else:
            object.__setattr__(self, name, value)

    def assign_attributes(self, attributes: Mapping[str, Any]) -> None:
        """Assign several attributes at once; nothing changes if any cast fails."""
        self._store.set_many(attributes)

    @property
    def attributes(self) -> Dict[str, Any]:
        return self._store.values()

    @property
    def store(self) -> AttributeStore:
        return self._store

    @property
    def new_record(self) -> bool:
        return self._new_record

    @property
    def persisted(self) -> bool:
        return not self._new_record

    @property
    def key(self) -> Any:
        pk = type(self).schema.primary_key
        return self._store.current(pk) if pk else None

    # ==================== DIRTY TRACKING ====================

    @property
    def _detector(self) -> ChangeDetector:
        return ChangeDetector(self._store)

    @property
    def changed(self) -> List[str]:
        """Names of changed attributes in definition order."""
        return self._detector.changed_names()

    @property
    def changes(self) -> Dict[str, Tuple[Any, Any]]:
        return self._detector.changes()

    @property
    def has_changes(self) -> bool:
        return self._detector.has_changes()

    @property
    def previous_changes(self) -> Dict[str, Tuple[Any, Any]]:
        """Diff written by the most recent save; {} after load or reload."""
        return self._history.previous_changes()

    def attribute_changed(self, name: str, from_: Any = _UNSET, to: Any = _UNSET) -> bool:
        return self._detector.changed_value(name, from_=from_, to=to)

    def attribute_was(self, name: str) -> Any:
        return self._detector.attribute_was(name)

    def attribute_change(self, name: str) -> Optional[Tuple[Any, Any]]:
        return self._detector.attribute_change(name)

    def attribute_previously_changed(self, name: str) -> bool:
        return self._history.previously_changed(type(self).schema.resolve(name))

    def attribute_previously_was(self, name: str) -> Any:
        return self._history.previous_value(type(self).schema.resolve(name))

    def attribute_will_change(self, name: str) -> None:
        self._store.mark_will_change(name)

    def restore_attribute(self, name: str) -> None:
        self._store.restore(name)

    def restore_attributes(self, names: Optional[Iterable[str]] = None) -> None:
        if names is None:
            self._store.restore_all()
            return
        for name in names:
            self._store.restore(name)

    # ==================== PERSISTENCE ====================

    @classmethod
    def _require_table(cls) -> PersistenceExecutor:
        if cls.table is None:
            raise PersistenceError(f"{cls.__name__} is not bound to a table")
        return cls.table

    def save(self) -> None:
        """Write pending changes, or do nothing when there are none.

        On failure the exception propagates and every tracked change stays in
        place so the caller can inspect, correct and retry.
        """
        cls = type(self)
        schema = cls.schema
        table = cls._require_table()
        plan = self.planner.plan(self._store, schema, self._new_record)
        if plan.kind is WriteKind.SKIP:
            logger.debug(f"Skipping save of {schema.name} {self.key!r}: no changes")
            return

        try:
            if plan.kind is WriteKind.INSERT:
                generated = table.insert(plan.values)
            else:
                table.update(plan.key, plan.values, plan.expected_lock_version)
                generated = {}
        except PersistenceError as exc:
            logger.warning(f"{plan.kind.value} of {schema.name} failed, keeping {len(self.changed)} changes: {exc}")
            raise

        for name, value in plan.bookkeeping.items():
            self._store.set(name, value)
        for name, stored in generated.items():
            self._store.set(name, self._store.type_for(name).deserialize(stored))

        self._history.record_save(self._store.clean_cut(), saved_at=schema.config.clock())
        object.__setattr__(self, '_new_record', False)

    def update(self, **attributes: Any) -> None:
        self.assign_attributes(attributes)
        self.save()

    def update_attribute(self, name: str, value: Any) -> None:
        self._store.set(name, value)
        self.save()

    def update_columns(self, **attributes: Any) -> None:
        """Write columns straight to storage.

        This bypasses change tracking entirely: the in-memory attributes,
        their dirty state and the change history are left untouched, and no
        timestamp or lock version is written. Call reload() to observe the
        stored values.
        """
        if self._new_record:
            raise PersistenceError(f"Cannot update columns of a new {type(self).schema.name} record")
        schema = type(self).schema
        values = {schema.resolve(name): schema.serialize(name, raw) for name, raw in attributes.items()}
        type(self)._require_table().update_columns(self._store.original(schema.primary_key), values)

    def reload(self: R) -> R:
        """Re-read every attribute from storage and clear change history."""
        row = type(self)._require_table().fetch(self._store.original(type(self).schema.primary_key))
        self._store.reload(row)
        self._history.clear()
        return self

    def dup(self: R) -> R:
        """New, unsaved record with an independent copy of this one's attributes.

        The copied values are assigned over the schema defaults, so they show
        up as changes and a partial insert writes them. The primary key is not
        copied.
        """
        cls = type(self)
        source = self._store.duplicate()
        pk = cls.schema.primary_key
        store = AttributeStore.from_defaults(cls.schema)
        copied = [name for name in source if name != pk and source.is_known(name)]
        store.set_many({name: source.current(name) for name in copied})
        for name in copied:
            if source.changed(name):
                store.mark_will_change(name)
        duplicate = cls.__new__(cls)
        duplicate._init_state(store, new_record=True)
        return duplicate

    # ==================== CLASS-LEVEL API ====================

    @classmethod
    def create(cls: Type[R], **attributes: Any) -> R:
        record = cls(**attributes)
        record.save()
        return record

    @classmethod
    def find(cls: Type[R], key: Any, columns: Optional[List[str]] = None) -> R:
        """Load one record. With ``columns`` only those attributes are loaded."""
        if columns is not None:
            columns = [cls.schema.resolve(c) for c in columns]
        return cls._from_row(cls._require_table().fetch(key, columns), columns)

    @classmethod
    def find_by(cls: Type[R], columns: Optional[List[str]] = None, **conditions: Any) -> R:
        stored_conditions = {
            cls.schema.resolve(name): cls.schema.serialize(name, raw)
            for name, raw in conditions.items()
        }
        if columns is not None:
            columns = [cls.schema.resolve(c) for c in columns]
        return cls._from_row(cls._require_table().find_by(stored_conditions, columns), columns)

    @classmethod
    def configure(cls, **changes: Any) -> None:
        """Replace config fields on this record kind's schema."""
        cls.schema = cls.schema.with_config(**changes)

    def __repr__(self) -> str:
        state = "new" if self._new_record else "persisted"
        return f"<{type(self).__name__} {state} {self._store.values()!r}>"


@contextmanager
def with_partial_writes(record_class: Type[Record], on: bool = True) -> Generator[None, None, None]:
    """Temporarily set ``partial_writes`` for one record kind."""
    previous = record_class.schema.config.partial_writes
    record_class.configure(partial_writes=on)
    try:
        yield
    finally:
        # Only the flag is put back; other configure() calls made inside stay
        record_class.configure(partial_writes=previous)
