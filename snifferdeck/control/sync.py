# ============================================================================
# snifferdeck/control/sync.py
# Sync Controller — the per-row lifecycle state machine
# ============================================================================
#
# PURPOSE:
# Every user intent (save, edit, start, stop, delete, import, export) enters
# here. The controller checks the row's guard, calls the control service,
# and reconciles the result into the ConfigRowStore.
#
# RECONCILIATION:
# Every successful network mutation except delete is followed by a full
# reload; the backend listing is the only source of truth. Delete patches the
# store locally, and only after the backend confirmed it. A follow-up reload
# that overlaps another load is skipped (ConfigRowStore.load is single-flight).
#
# IDENTITY:
# Rows are addressed by index on entry, then by ``row.key`` after any await,
# since intervening deletes and reloads shift positions.
#
# IN-FLIGHT STATE:
# ``pending()`` maps row key -> OperationKind, so two rows can show
# independent progress for the same kind of operation.
#
# ============================================================================

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Coroutine, Dict, Iterator, Optional, Union

import httpx

from snifferdeck.base.config import DeckConfig, get_config
from snifferdeck.base.errors import NetworkFailure, ParseFailure
from snifferdeck.control.guards import (
    OperationKind,
    RowState,
    can_create,
    can_delete,
    can_start,
    can_stop,
    row_state,
)
from snifferdeck.control.notify import LoggingNotifier, NotificationLevel, Notifier
from snifferdeck.data.codec import DirectoryFileSink, FileSink, ImportExportCodec
from snifferdeck.data.models import (
    ConfigRow,
    PartialSnifferConfig,
    SnifferConfig,
    port_key,
)
from snifferdeck.data.row_store import ConfigRowStore
from snifferdeck.net.client import SnifferControlClient
from snifferdeck.utils.async_helpers import create_safe_task
from snifferdeck.utils.observer import Observable

logger = logging.getLogger(__name__)

INFO = NotificationLevel.INFO
ERROR = NotificationLevel.ERROR


class SyncController(Observable):
    """
    Orchestrates control service calls and keeps the row store consistent.

    Every operation returns True when it took effect and False when it was
    refused by a guard or failed; failures are reported through the notifier,
    refusals are silent.
    """

    signals = ("pending_changed",)

    def __init__(
        self,
        store: ConfigRowStore,
        notifier: Optional[Notifier] = None,
        codec: Optional[ImportExportCodec] = None,
        file_sink: Optional[FileSink] = None,
    ):
        super().__init__()
        self.store = store
        self.client: SnifferControlClient = store.client
        self.notifier = notifier or LoggingNotifier()
        self.codec = codec or ImportExportCodec()
        self.file_sink = file_sink
        self._pending: Dict[str, OperationKind] = {}

    @classmethod
    def from_config(
        cls,
        config: Optional[DeckConfig] = None,
        notifier: Optional[Notifier] = None,
        underlying_client: Optional[httpx.AsyncClient] = None,
    ) -> "SyncController":
        """Wire client, store and file sink from the application config."""
        cfg = config or get_config()
        client = SnifferControlClient(cfg.api, underlying_client)
        return cls(
            ConfigRowStore(client),
            notifier=notifier,
            file_sink=DirectoryFileSink(cfg.export.directory),
        )

    # -------- In-flight tracking --------

    def pending(self) -> Dict[str, OperationKind]:
        return dict(self._pending)

    def is_pending(self, key: str, kind: Optional[OperationKind] = None) -> bool:
        current = self._pending.get(key)
        if kind is None:
            return current is not None
        return current is kind

    @contextmanager
    def _track(self, key: str, kind: OperationKind) -> Iterator[None]:
        self._pending[key] = kind
        self.pending_changed.emit(key, kind)
        try:
            yield
        finally:
            self._pending.pop(key, None)
            self.pending_changed.emit(key, None)

    def _notify(self, message: str, level: NotificationLevel) -> None:
        try:
            self.notifier.notify(message, level)
        except Exception as e:
            logger.error(f"[Sync] Notifier failed on {message!r}: {e}", exc_info=e)

    # -------- Reload --------

    async def reload(self) -> bool:
        """Full resync from the backend; reports failure, never raises."""
        try:
            await self.store.load()
        except NetworkFailure as e:
            logger.warning(f"[Sync] Reload failed: {e}")
            self._notify("Failed to get config", ERROR)
            return False
        return True

    async def bootstrap(self) -> bool:
        """Initial load; an empty backend gets one blank draft to fill in."""
        ok = await self.reload()
        if len(self.store) == 0:
            self.store.append()
        return ok

    def add_draft(self) -> ConfigRow:
        return self.store.append()

    # -------- Create --------

    async def create(
        self,
        config: Union[PartialSnifferConfig, SnifferConfig],
        *,
        key: Optional[str] = None,
    ) -> bool:
        """
        POST a new sniffer, then reload.

        ``key`` is the draft row being saved, if any; it is only used for
        in-flight tracking, the draft itself disappears with the reload.
        """
        if isinstance(config, SnifferConfig):
            config = PartialSnifferConfig.from_config(config)
        if not config.is_complete:
            logger.debug("[Sync] Create refused: port or downstreamUrl unset")
            return False

        track_key = key or port_key(config.port)
        if self.is_pending(track_key):
            return False

        with self._track(track_key, OperationKind.SAVE):
            try:
                await self.client.create_sniffer(config.to_config())
            except NetworkFailure as e:
                logger.warning(f"[Sync] Create on port {config.port} failed: {e}")
                self._notify("Failed to create proxy", ERROR)
                return False

            logger.info(f"[Sync] Created sniffer on port {config.port}")
            # Single-flight: if another load is already in flight this returns
            # at once and the row stops being pending before that load lands.
            await self.reload()
        self._notify("Created sniffer", INFO)
        return True

    async def save_new(self, index: int) -> bool:
        """Save button of a draft row."""
        row = self.store.get(index)
        if not can_create(row):
            return False
        return await self.create(row.config, key=row.key)

    # -------- Edit --------

    async def edit(self, index: int) -> bool:
        """
        Edit button of a persisted row.

        First press enters edit mode locally. Second press PUTs the current
        field values and reloads; on failure the row stays in edit mode.
        """
        row = self.store.get(index)
        if self.is_pending(row.key):
            return False

        state = row_state(row)
        if state is RowState.VIEWING:
            if not self.store.set_editing(index, True):
                return False
            self._notify("Sniffer in edit mode", INFO)
            return True

        if state is not RowState.EDITING or not row.config.is_complete:
            logger.debug(f"[Sync] Edit refused for {row.key} in state {state.value}")
            return False

        config = row.config.to_config()
        with self._track(row.key, OperationKind.EDIT):
            try:
                await self.client.edit_sniffer(config)
            except NetworkFailure as e:
                logger.warning(f"[Sync] Edit of {row.key} failed: {e}")
                self._notify("Failed to edit config", ERROR)
                return False

            logger.info(f"[Sync] Saved changes to {row.key}")
            await self.reload()  # single-flight, see create()
        self._notify("Changes were saved", INFO)
        return True

    # -------- Start / Stop --------

    async def start(self, port: int) -> bool:
        row = self._persisted_row(port)
        if row is None or self.is_pending(row.key) or not can_start(row):
            return False

        with self._track(row.key, OperationKind.START):
            try:
                await self.client.start_sniffer(port)
            except NetworkFailure as e:
                logger.warning(f"[Sync] Start on port {port} failed: {e}")
                self._notify("Failed to start sniffer", ERROR)
                return False

            logger.info(f"[Sync] Started sniffer on port {port}")
            await self.reload()  # single-flight, see create()
        return True

    async def stop(self, port: int) -> bool:
        row = self._persisted_row(port)
        if row is None or self.is_pending(row.key) or not can_stop(row):
            return False

        with self._track(row.key, OperationKind.STOP):
            try:
                await self.client.stop_sniffer(port)
            except NetworkFailure as e:
                logger.warning(f"[Sync] Stop on port {port} failed: {e}")
                self._notify("Failed to stop sniffer", ERROR)
                return False

            logger.info(f"[Sync] Stopped sniffer on port {port}")
            await self.reload()  # single-flight, see create()
        return True

    def _persisted_row(self, port: int) -> Optional[ConfigRow]:
        idx = self.store.find_by_port(port)
        return None if idx is None else self.store.get(idx)

    # -------- Delete --------

    async def delete(self, index: int) -> bool:
        """
        Drafts are removed locally. Persisted rows are removed only after the
        backend confirmed the DELETE; on failure the row stays.
        """
        row = self.store.get(index)
        if self.is_pending(row.key) or not can_delete(row):
            return False

        if row.is_new:
            self.store.remove_at(index)
            return True

        port = row.persisted_port
        with self._track(row.key, OperationKind.DELETE):
            try:
                await self.client.delete_sniffer(port)
            except NetworkFailure as e:
                logger.warning(f"[Sync] Delete on port {port} failed: {e}")
                self._notify("Failed to remove sniffer", ERROR)
                return False

        idx = self.store.index_of(row.key)
        if idx is not None:
            self.store.remove_at(idx)
        logger.info(f"[Sync] Removed sniffer on port {port}")
        self._notify("Removed sniffer successfully", INFO)
        return True

    # -------- Import / Export --------

    def import_configs(self, raw_text: str) -> bool:
        """Replace every row with drafts parsed from ``raw_text``; all or nothing."""
        try:
            configs = self.codec.parse(raw_text)
        except ParseFailure as e:
            logger.warning(f"[Sync] Import rejected: {e}")
            self._notify("Failed to import config", ERROR)
            return False

        self.store.replace_all(self.codec.rows_from(configs))
        logger.info(f"[Sync] Imported {len(configs)} sniffer config(s)")
        self._notify("Successfully set the config file", INFO)
        return True

    def import_file(self, path: Path) -> bool:
        try:
            raw_text = self.codec.read_document(path)
        except ParseFailure as e:
            logger.warning(f"[Sync] Import rejected: {e}")
            self._notify("Failed to import config", ERROR)
            return False
        return self.import_configs(raw_text)

    def export(self) -> Optional[str]:
        """
        Serialise the current rows and hand them to the file sink.

        Returns:
            The document, or None when delivery failed
        """
        document = self.codec.export(self.store.snapshot())
        if self.file_sink is None:
            return document
        try:
            self.file_sink.deliver(self.codec.filename, document)
        except OSError as e:
            logger.warning(f"[Sync] Export delivery failed: {e}")
            self._notify("Failed to export config", ERROR)
            return None
        return document

    # -------- Scheduling / teardown --------

    def dispatch(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
        """Fire an intent without blocking the caller."""
        return create_safe_task(coro, name=name)

    async def aclose(self) -> None:
        self.store.dispose()
        await self.client.aclose()
