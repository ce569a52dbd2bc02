"""
Change history: the diff captured at the most recent successful save.

History is a single immutable snapshot replaced wholesale on every save and
dropped on reload. It never accumulates across saves.
"""
from dataclasses import dataclass
from datetime import datetime
import logging
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SavedChanges:
    """Immutable record of what one save wrote.

    No record references - data only.
    """
    changes: Mapping[str, Tuple[Any, Any]]
    saved_at: Optional[datetime]

    @classmethod
    def create(cls, changes: Mapping[str, Tuple[Any, Any]], saved_at: Optional[datetime] = None) -> 'SavedChanges':
        return cls(changes=MappingProxyType(dict(changes)), saved_at=saved_at)

    def to_dict(self) -> Dict[str, Tuple[Any, Any]]:
        return dict(self.changes)


class ChangeHistory:
    """Holds the SavedChanges of the last save, if any."""

    def __init__(self) -> None:
        self._last: Optional[SavedChanges] = None

    @property
    def last_save(self) -> Optional[SavedChanges]:
        return self._last

    def record_save(self, changes: Mapping[str, Tuple[Any, Any]], saved_at: Optional[datetime] = None) -> SavedChanges:
        """Replace the history with the diff of the save that just succeeded."""
        self._last = SavedChanges.create(changes, saved_at)
        logger.debug(f"Recorded save history: {list(changes)}")
        return self._last

    def clear(self) -> None:
        self._last = None

    def previous_changes(self) -> Dict[str, Tuple[Any, Any]]:
        """Copy of the last save's diff ({} when there is none)."""
        if self._last is None:
            return {}
        return self._last.to_dict()

    def previously_changed(self, name: str) -> bool:
        return self._last is not None and name in self._last.changes

    def previous_value(self, name: str) -> Any:
        """Value ``name`` had before the last save (None if it was not changed)."""
        if not self.previously_changed(name):
            return None
        return self._last.changes[name][0]
