"""
ChangeDetector: on-demand diff of an AttributeStore.

Nothing is cached. In-place mutation can alter a current value without any
call into the store, so every query recomputes from original vs current.
"""
from typing import Any, Dict, List, Optional, Tuple

from recordstate.attribute_set import AttributeStore

_UNSET = object()


class ChangeDetector:
    """Reports which attributes of a store differ from their clean baseline."""

    def __init__(self, store: AttributeStore):
        self._store = store

    def changed_names(self) -> List[str]:
        """Changed attribute names in definition order."""
        return [name for name in self._store if self._store.changed(name)]

    def changes(self) -> Dict[str, Tuple[Any, Any]]:
        """Map of changed name -> (original, current)."""
        return {
            name: (self._store.original(name), self._store.current(name))
            for name in self.changed_names()
        }

    def has_changes(self) -> bool:
        return any(self._store.changed(name) for name in self._store)

    def changed_value(self, name: str, from_: Any = _UNSET, to: Any = _UNSET) -> bool:
        """True if ``name`` changed, optionally from a given value and/or to a given value.

        ``from_`` and ``to`` are cast through the attribute's type before being
        compared, so ``from_="0"`` matches an integer original of 0.
        """
        if not self._store.changed(name):
            return False
        attr_type = self._store.type_for(name)
        if from_ is not _UNSET and not self._matches(attr_type, self._store.original(name), from_):
            return False
        if to is not _UNSET and not self._matches(attr_type, self._store.current(name), to):
            return False
        return True

    @staticmethod
    def _matches(attr_type, value: Any, expected: Any) -> bool:
        try:
            expected = attr_type.cast(expected)
        except (ValueError, TypeError, ArithmeticError):
            # A value the type cannot represent cannot be the stored one
            return False
        return attr_type.equal(value, expected)

    def attribute_was(self, name: str) -> Any:
        """Original value if changed, otherwise the current value."""
        if self._store.changed(name):
            return self._store.original(name)
        return self._store.current(name)

    def attribute_change(self, name: str) -> Optional[Tuple[Any, Any]]:
        """(original, current) if changed, otherwise None."""
        if not self._store.changed(name):
            return None
        return (self._store.original(name), self._store.current(name))
