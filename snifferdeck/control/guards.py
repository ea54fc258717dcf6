"""
Row states and the guard predicates that decide which transitions are legal.

Guards are plain predicates over a row snapshot. A failing guard means the
affordance is disabled: the controller returns False without touching the
network or the notification sink.

    NEW_DRAFT -> NEW_EDITING -> VIEWING <-> EDITING
                                VIEWING <-> STARTED
    any -> REMOVED
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from snifferdeck.data.models import ConfigRow


class RowState(str, Enum):
    NEW_DRAFT = "new_draft"
    NEW_EDITING = "new_editing"
    VIEWING = "viewing"
    EDITING = "editing"
    STARTED = "started"
    REMOVED = "removed"


class OperationKind(str, Enum):
    SAVE = "save"
    EDIT = "edit"
    START = "start"
    STOP = "stop"
    DELETE = "delete"


def row_state(row: Optional[ConfigRow]) -> RowState:
    if row is None:
        return RowState.REMOVED
    if row.is_new:
        return RowState.NEW_EDITING if row.is_editing else RowState.NEW_DRAFT
    if row.is_started:
        return RowState.STARTED
    return RowState.EDITING if row.is_editing else RowState.VIEWING


def can_create(row: ConfigRow) -> bool:
    return row.is_new and row.config.is_complete


def can_edit(row: ConfigRow) -> bool:
    """Both edit clicks: entering edit mode, and saving from it."""
    state = row_state(row)
    if state is RowState.VIEWING:
        return True
    return state is RowState.EDITING and row.config.is_complete


def can_start(row: ConfigRow) -> bool:
    return row_state(row) is RowState.VIEWING


def can_stop(row: ConfigRow) -> bool:
    return row_state(row) is RowState.STARTED


def can_delete(row: ConfigRow) -> bool:
    return not row.is_started


def accepts_input(row: ConfigRow) -> bool:
    """Whether field editors of this row are enabled."""
    return row.is_new or row.is_editing
