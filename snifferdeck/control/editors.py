"""
Field editors: one per (row, attribute) pair.

The store accepts any ``update_field`` call. The edit-mode gate lives here,
in the caller: an editor only forwards input while its row accepts it.
"""

from __future__ import annotations

from typing import Any, List, Union

from snifferdeck.control.guards import accepts_input
from snifferdeck.data.models import RowField
from snifferdeck.data.row_store import ConfigRowStore


class FieldEditor:
    def __init__(self, store: ConfigRowStore, key: str, field: Union[RowField, str]):
        self.store = store
        self.key = key
        self.field = RowField.parse(field)

    @property
    def enabled(self) -> bool:
        row = self.store.get_by_key(self.key)
        return row is not None and accepts_input(row)

    @property
    def value(self) -> Any:
        row = self.store.get_by_key(self.key)
        if row is None:
            return None
        return getattr(row.config, self.field.attr)

    def set(self, value: Any) -> bool:
        """Forward input to the store; returns False when the editor is disabled."""
        idx = self.store.index_of(self.key)
        if idx is None or not self.enabled:
            return False
        self.store.update_field(idx, self.field, value)
        return True


def editors_for(store: ConfigRowStore, key: str) -> List[FieldEditor]:
    return [FieldEditor(store, key, field) for field in RowField]
