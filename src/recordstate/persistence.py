"""
Persistence collaborator interface and an in-memory reference executor.

The engine never performs I/O itself. A record hands WritePlan contents to a
PersistenceExecutor and reacts to the outcome: success triggers a clean cut,
an exception leaves every tracked change in place.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from recordstate.errors import PersistenceError, RecordNotFound, StaleRecordError
from recordstate.schema import RecordSchema

logger = logging.getLogger(__name__)


class PersistenceExecutor(ABC):
    """Storage seam used by Record. Values are in serialized (storage) form."""

    @abstractmethod
    def insert(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        """Insert a row; return storage-generated values (e.g. the primary key)."""

    @abstractmethod
    def update(self, key: Any, values: Mapping[str, Any], expected_lock_version: Optional[int] = None) -> None:
        """Update a row, failing with StaleRecordError on a lock mismatch."""

    @abstractmethod
    def fetch(self, key: Any, columns: Optional[List[str]] = None) -> Dict[str, Any]:
        """Return the stored row (restricted to ``columns`` when given)."""

    @abstractmethod
    def find_by(self, conditions: Mapping[str, Any], columns: Optional[List[str]] = None) -> Dict[str, Any]:
        """Return the first stored row matching every condition."""

    @abstractmethod
    def update_columns(self, key: Any, values: Mapping[str, Any]) -> None:
        """Write columns directly, bypassing planning and lock checks."""


@dataclass(frozen=True)
class WriteLogEntry:
    """One executed write (like a line in a SQL log)."""
    operation: str
    key: Any
    columns: Tuple[str, ...]


class InMemoryTable(PersistenceExecutor):
    """Dict-backed table with auto-increment keys, column defaults and lock checks.

    Every executed write is appended to ``write_log`` so callers can count
    round-trips.
    """

    def __init__(self, schema: RecordSchema):
        if schema.primary_key is None:
            raise ValueError(f"InMemoryTable requires a primary key on {schema.name!r}")
        self.name = schema.name
        self._schema = schema
        self._rows: Dict[Any, Dict[str, Any]] = {}
        self._next_id = 1
        self.write_log: List[WriteLogEntry] = []

    @property
    def write_count(self) -> int:
        return len(self.write_log)

    def clear_log(self) -> None:
        self.write_log.clear()

    def __len__(self) -> int:
        return len(self._rows)

    def _column_defaults(self) -> Dict[str, Any]:
        return {
            name: self._schema.type_for(name).serialize(self._schema.default_for(name))
            for name in self._schema.storable_names()
        }

    def _row(self, key: Any) -> Dict[str, Any]:
        try:
            return self._rows[key]
        except KeyError:
            raise RecordNotFound(f"No {self.name} row with key {key!r}") from None

    def _log(self, operation: str, key: Any, values: Mapping[str, Any]) -> None:
        self.write_log.append(WriteLogEntry(operation, key, tuple(values)))
        logger.debug(f"{operation} {self.name} key={key!r} columns={list(values)}")

    @staticmethod
    def _project(row: Mapping[str, Any], columns: Optional[List[str]]) -> Dict[str, Any]:
        if columns is None:
            return dict(row)
        return {name: row[name] for name in columns if name in row}

    def insert(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        pk = self._schema.primary_key
        unknown = set(values) - set(self._schema.storable_names())
        if unknown:
            raise PersistenceError(f"Unknown columns for {self.name}: {sorted(unknown)}")

        row = self._column_defaults()
        row.update(values)
        generated: Dict[str, Any] = {}
        if row.get(pk) is None:
            row[pk] = self._next_id
            generated[pk] = row[pk]
        key = row[pk]
        if key in self._rows:
            raise PersistenceError(f"Duplicate key {key!r} for {self.name}")
        if isinstance(key, int):
            self._next_id = max(self._next_id, key + 1)

        self._rows[key] = row
        self._log("insert", key, values)
        return generated

    def update(self, key: Any, values: Mapping[str, Any], expected_lock_version: Optional[int] = None) -> None:
        row = self._row(key)
        lock = self._schema.config.locking_column
        if expected_lock_version is not None and lock in row and row[lock] != expected_lock_version:
            raise StaleRecordError(self.name, key, expected_lock_version, row[lock])

        pk = self._schema.primary_key
        new_key = values.get(pk, key)
        if new_key != key:
            if new_key in self._rows:
                raise PersistenceError(f"Duplicate key {new_key!r} for {self.name}")
            del self._rows[key]
            self._rows[new_key] = row
        row.update(values)
        self._log("update", key, values)

    def fetch(self, key: Any, columns: Optional[List[str]] = None) -> Dict[str, Any]:
        return self._project(self._row(key), columns)

    def find_by(self, conditions: Mapping[str, Any], columns: Optional[List[str]] = None) -> Dict[str, Any]:
        for row in self._rows.values():
            if all(row.get(name) == value for name, value in conditions.items()):
                return self._project(row, columns)
        raise RecordNotFound(f"No {self.name} row matching {dict(conditions)!r}")

    def update_columns(self, key: Any, values: Mapping[str, Any]) -> None:
        row = self._row(key)
        row.update(values)
        self._log("update_columns", key, values)
