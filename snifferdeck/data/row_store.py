# snifferdeck/data/row_store.py: the ordered collection of config rows
"""
ConfigRowStore exclusively owns the row collection. Everything else reads
snapshots and mutates through the narrow API below.

Index addressing is only valid inside one synchronous batch. Anything that
awaits must capture ``row.key`` first and call ``index_of(key)`` afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Iterable, List, Optional, Union

from snifferdeck.data.models import ConfigRow, RowField, coerce_port, new_draft_key
from snifferdeck.net.client import SnifferControlClient
from snifferdeck.utils.observer import Observable

logger = logging.getLogger(__name__)


class ConfigRowStore(Observable):
    """
    In-memory rows plus a single-flight ``load()`` from the control service.
    Emits ``rows_changed`` after every mutation.
    """

    signals = ("rows_changed",)

    def __init__(self, client: SnifferControlClient):
        super().__init__()
        self.client = client
        self._rows: List[ConfigRow] = []
        self._loading = False
        self._disposed = False

    # -------- Reading --------

    @property
    def loading(self) -> bool:
        return self._loading

    def __len__(self) -> int:
        return len(self._rows)

    def snapshot(self) -> List[ConfigRow]:
        """Copies of every row; safe to keep across later mutations."""
        return [row.copy() for row in self._rows]

    def get(self, index: int) -> ConfigRow:
        """Copy of the row at ``index``. Raises IndexError."""
        return self._rows[index].copy()

    def index_of(self, key: str) -> Optional[int]:
        for idx, row in enumerate(self._rows):
            if row.key == key:
                return idx
        return None

    def get_by_key(self, key: str) -> Optional[ConfigRow]:
        idx = self.index_of(key)
        return None if idx is None else self._rows[idx].copy()

    def find_by_port(self, port: int) -> Optional[int]:
        """Index of the persisted row the backend knows as ``port``."""
        for idx, row in enumerate(self._rows):
            if not row.is_new and row.persisted_port == port:
                return idx
        return None

    # -------- Backend sync --------

    async def load(self) -> List[ConfigRow]:
        """
        Replace the whole collection with the backend's listing.

        A call made while another load is in flight returns the current
        snapshot immediately and changes nothing.

        Raises:
            NetworkFailure: the listing could not be fetched; rows untouched
        """
        if self._loading:
            logger.debug("[Store] Load already in flight; skipping")
            return self.snapshot()

        self._loading = True
        try:
            statuses = await self.client.list_sniffers()
        finally:
            self._loading = False

        if self._disposed:
            logger.debug("[Store] Load resolved after dispose; ignoring")
            return []

        self._rows = [ConfigRow.from_status(status) for status in statuses]
        logger.info(f"[Store] Loaded {len(self._rows)} sniffer(s)")
        self.rows_changed.emit()
        return self.snapshot()

    # -------- Local mutations --------

    def append(self, draft: Optional[ConfigRow] = None) -> ConfigRow:
        """
        Add a draft (new, editing, expanded) to the end of the collection.

        The store keeps its own copy under a fresh draft key; ``draft`` only
        supplies the field values.
        """
        base = draft or ConfigRow.draft()
        row = replace(
            base,
            config=base.config.model_copy(),
            is_new=True,
            is_started=False,
            is_editing=True,
            is_collapsed=False,
            persisted_port=None,
            key=new_draft_key(),
        )
        if not self._write_allowed("append"):
            return row.copy()
        self._rows.append(row)
        self.rows_changed.emit()
        return row.copy()

    def remove_at(self, index: int) -> ConfigRow:
        """Remove and return the row at ``index``. Raises IndexError."""
        if not self._write_allowed("remove"):
            return self._rows[index].copy()
        row = self._rows.pop(index)
        self.rows_changed.emit()
        return row

    def update_field(self, index: int, field: Union[RowField, str], value: Any) -> None:
        """
        Set one config attribute in place.

        The store does not check edit mode; callers only route input here
        while the row accepts it (see control.editors).
        """
        row_field = RowField.parse(field)
        if row_field is RowField.PORT:
            value = coerce_port(value)
        elif value is not None:
            value = str(value)
        row = self._rows[index]
        if not self._write_allowed("update"):
            return
        setattr(row.config, row_field.attr, value)
        self.rows_changed.emit()

    def toggle_collapse(self, index: int) -> bool:
        """Flip the display toggle; returns the new ``is_collapsed``."""
        row = self._rows[index]
        if not self._write_allowed("toggle"):
            return row.is_collapsed
        row.is_collapsed = not row.is_collapsed
        self.rows_changed.emit()
        return row.is_collapsed

    def set_editing(self, index: int, editing: bool) -> bool:
        """
        Enter or leave edit mode. Returns False (and changes nothing) when
        asked to edit a running sniffer.
        """
        row = self._rows[index]
        if editing and row.is_started:
            logger.debug(f"[Store] Refusing edit mode on running row {row.key}")
            return False
        if not self._write_allowed("set_editing"):
            return False
        row.is_editing = editing
        self.rows_changed.emit()
        return True

    def replace_all(self, rows: Iterable[ConfigRow]) -> None:
        """
        Swap in a whole new collection (used by import).

        Rows are copied in. A key seen earlier in ``rows`` is replaced by a
        fresh draft key so every row stays addressable.
        """
        new_rows: List[ConfigRow] = []
        seen = set()
        for incoming in rows:
            row = incoming.copy()
            if row.key in seen:
                row.key = new_draft_key()
            seen.add(row.key)
            new_rows.append(row)
        if not self._write_allowed("replace"):
            return
        self._rows = new_rows
        self.rows_changed.emit()

    # -------- Teardown --------

    def dispose(self) -> None:
        """Stop accepting writes; late async results are dropped quietly."""
        self._disposed = True

    def _write_allowed(self, op: str) -> bool:
        if self._disposed:
            logger.debug(f"[Store] Ignoring {op} on disposed store")
            return False
        return True
