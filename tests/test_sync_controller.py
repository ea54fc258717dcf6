"""
SyncController: lifecycle transitions against the in-memory control service.
"""

import asyncio

import pytest

from snifferdeck.control.guards import OperationKind, RowState, row_state
from snifferdeck.control.notify import NotificationLevel
from snifferdeck.control.sync import SyncController
from snifferdeck.data.codec import DirectoryFileSink
from snifferdeck.data.models import PartialSnifferConfig, SnifferConfig


def _check_invariants(rows):
    for row in rows:
        assert not (row.is_started and row.is_editing), row
        assert not (row.is_new and row.is_started), row


# -------- Scenarios --------


@pytest.mark.asyncio
async def test_empty_backend_bootstraps_one_blank_draft(controller):
    assert await controller.bootstrap() is True

    rows = controller.store.snapshot()
    assert len(rows) == 1
    draft = rows[0]
    assert draft.config.port is None
    assert draft.config.downstream_url is None
    assert draft.is_new is True
    assert draft.is_editing is True
    assert row_state(draft) is RowState.NEW_EDITING


@pytest.mark.asyncio
async def test_create_then_reload(controller, service, notifier):
    config = PartialSnifferConfig(port=8080, downstream_url="http://example.com", name="")

    assert await controller.create(config) is True

    rows = controller.store.snapshot()
    assert len(rows) == 1
    assert rows[0].config.port == 8080
    assert rows[0].is_new is False
    assert rows[0].is_started is False
    assert service.calls == [("POST", "/sniffers"), ("GET", "/sniffers")]
    assert notifier.infos() == ["Created sniffer"]


@pytest.mark.asyncio
async def test_start_then_stop(controller, service):
    service.seed(8080, "http://example.com")
    await controller.bootstrap()

    assert await controller.start(8080) is True
    assert controller.store.get(0).is_started is True
    assert row_state(controller.store.get(0)) is RowState.STARTED

    assert await controller.stop(8080) is True
    assert controller.store.get(0).is_started is False
    assert service.calls_to("POST") == ["/sniffers/8080/start", "/sniffers/8080/stop"]


@pytest.mark.asyncio
async def test_export_then_import_roundtrip(controller, service, tmp_path):
    service.seed(8080, "http://example.com", name="api")
    await controller.bootstrap()
    controller.file_sink = DirectoryFileSink(tmp_path)

    document = controller.export()
    assert (tmp_path / "config.json").read_text(encoding="utf-8") == document

    assert controller.import_configs(document) is True

    rows = controller.store.snapshot()
    assert len(rows) == 1
    assert (rows[0].config.port, rows[0].config.name, rows[0].config.downstream_url) == (
        8080,
        "api",
        "http://example.com",
    )
    assert rows[0].is_new is True
    assert rows[0].is_started is False


@pytest.mark.asyncio
async def test_deleting_a_draft_is_local(controller, service):
    controller.add_draft()
    controller.add_draft()
    controller.store.update_field(1, "port", "9000")
    controller.store.update_field(1, "downstreamUrl", "http://keep.me")
    survivor = controller.store.get(1)

    assert await controller.delete(0) is True

    rows = controller.store.snapshot()
    assert rows == [survivor]
    assert service.calls == []


@pytest.mark.asyncio
async def test_malformed_import_changes_nothing(controller, service, notifier):
    service.seed(8080, "http://example.com")
    await controller.bootstrap()
    before = controller.store.snapshot()

    assert controller.import_configs("not json") is False

    assert controller.store.snapshot() == before
    assert notifier.errors() == ["Failed to import config"]
    assert len(notifier.messages) == 1


# -------- Create / save --------


@pytest.mark.asyncio
async def test_create_guard_needs_port_and_url(controller, service, notifier):
    assert await controller.create(PartialSnifferConfig(port=8080)) is False
    assert await controller.create(PartialSnifferConfig(downstream_url="http://x")) is False

    assert service.calls == []
    assert notifier.messages == []


@pytest.mark.asyncio
async def test_failed_create_keeps_the_draft(controller, service, notifier):
    service.fail.add("create")
    draft = controller.add_draft()
    controller.store.update_field(0, "port", 8080)
    controller.store.update_field(0, "downstreamUrl", "http://x")

    assert await controller.save_new(0) is False

    row = controller.store.get(0)
    assert row.key == draft.key
    assert row.is_new is True
    assert row.is_editing is True
    assert row.config.port == 8080
    assert notifier.errors() == ["Failed to create proxy"]


@pytest.mark.asyncio
async def test_save_new_accepts_a_full_config(controller, service):
    assert await controller.create(
        SnifferConfig(id="custom", name="n", port=7000, downstream_url="http://x")
    ) is True
    assert service.records[7000]["id"] == "custom"


@pytest.mark.asyncio
async def test_duplicate_port_is_reported(controller, service, notifier):
    service.seed(8080, "http://a")
    await controller.bootstrap()

    ok = await controller.create(PartialSnifferConfig(port=8080, downstream_url="http://b"))

    assert ok is False
    assert notifier.errors() == ["Failed to create proxy"]
    assert len(controller.store) == 1


# -------- Edit --------


@pytest.mark.asyncio
async def test_first_edit_press_is_local(controller, service, notifier):
    service.seed(8080, "http://a")
    await controller.bootstrap()
    service.calls.clear()

    assert await controller.edit(0) is True

    assert controller.store.get(0).is_editing is True
    assert service.calls == []
    assert notifier.infos() == ["Sniffer in edit mode"]


@pytest.mark.asyncio
async def test_second_edit_press_saves_and_reloads(controller, service, notifier):
    service.seed(8080, "http://a", name="old")
    await controller.bootstrap()
    await controller.edit(0)
    controller.store.update_field(0, "name", "new")
    controller.store.update_field(0, "downstreamUrl", "http://b")

    assert await controller.edit(0) is True

    row = controller.store.get(0)
    assert row.is_editing is False
    assert row.config.name == "new"
    assert row.config.downstream_url == "http://b"
    assert service.calls_to("PUT") == ["/sniffers"]
    assert notifier.infos()[-1] == "Changes were saved"


@pytest.mark.asyncio
async def test_failed_edit_stays_in_edit_mode(controller, service, notifier):
    service.seed(8080, "http://a")
    await controller.bootstrap()
    await controller.edit(0)
    controller.store.update_field(0, "name", "pending")
    service.fail.add("edit")

    assert await controller.edit(0) is False

    row = controller.store.get(0)
    assert row.is_editing is True
    assert row.config.name == "pending"
    assert notifier.errors() == ["Failed to edit config"]


@pytest.mark.asyncio
async def test_edit_save_refused_with_unset_port(controller, service):
    service.seed(8080, "http://a")
    await controller.bootstrap()
    await controller.edit(0)
    controller.store.update_field(0, "port", "oops")
    service.calls.clear()

    assert await controller.edit(0) is False
    assert service.calls == []


@pytest.mark.asyncio
async def test_running_sniffer_cannot_be_edited(controller, service):
    service.seed(8080, "http://a", running=True)
    await controller.bootstrap()

    assert await controller.edit(0) is False
    assert controller.store.get(0).is_editing is False


@pytest.mark.asyncio
async def test_edit_is_not_for_drafts(controller):
    controller.add_draft()
    assert await controller.edit(0) is False


# -------- Start / stop guards --------


@pytest.mark.asyncio
async def test_start_refused_while_editing(controller, service):
    service.seed(8080, "http://a")
    await controller.bootstrap()
    await controller.edit(0)
    service.calls.clear()

    assert await controller.start(8080) is False
    assert service.calls == []


@pytest.mark.asyncio
async def test_start_refused_for_unknown_port_or_draft(controller, service):
    controller.add_draft()
    controller.store.update_field(0, "port", 8080)

    assert await controller.start(8080) is False
    assert await controller.start(1234) is False
    assert service.calls == []


@pytest.mark.asyncio
async def test_stop_refused_when_not_running(controller, service):
    service.seed(8080, "http://a")
    await controller.bootstrap()
    service.calls.clear()

    assert await controller.stop(8080) is False
    assert service.calls == []


@pytest.mark.asyncio
async def test_failed_start_leaves_state(controller, service, notifier):
    service.seed(8080, "http://a")
    await controller.bootstrap()
    before = controller.store.snapshot()
    service.fail.add("start")

    assert await controller.start(8080) is False

    assert controller.store.snapshot() == before
    assert notifier.errors() == ["Failed to start sniffer"]


@pytest.mark.asyncio
async def test_failed_stop_is_reported(controller, service, notifier):
    service.seed(8080, "http://a", running=True)
    await controller.bootstrap()
    service.fail.add("stop")

    assert await controller.stop(8080) is False

    assert controller.store.get(0).is_started is True
    assert notifier.errors() == ["Failed to stop sniffer"]


# -------- Delete --------


@pytest.mark.asyncio
async def test_delete_persisted_issues_one_call(controller, service, notifier):
    service.seed(8080, "http://a")
    service.seed(9090, "http://b")
    await controller.bootstrap()
    service.calls.clear()

    assert await controller.delete(0) is True

    assert service.calls == [("DELETE", "/sniffers/8080")]
    assert [r.config.port for r in controller.store.snapshot()] == [9090]
    assert notifier.infos() == ["Removed sniffer successfully"]


@pytest.mark.asyncio
async def test_delete_addresses_the_persisted_port(controller, service):
    service.seed(8080, "http://a")
    await controller.bootstrap()
    await controller.edit(0)
    controller.store.update_field(0, "port", "9999")
    service.calls.clear()

    assert await controller.delete(0) is True
    assert service.calls == [("DELETE", "/sniffers/8080")]


@pytest.mark.asyncio
async def test_failed_delete_keeps_row(controller, service, notifier):
    service.seed(8080, "http://a")
    await controller.bootstrap()
    service.fail.add("delete")

    assert await controller.delete(0) is False

    assert len(controller.store) == 1
    assert notifier.errors() == ["Failed to remove sniffer"]


@pytest.mark.asyncio
async def test_delete_refused_while_running(controller, service):
    service.seed(8080, "http://a", running=True)
    await controller.bootstrap()
    service.calls.clear()

    assert await controller.delete(0) is False
    assert service.calls == []
    assert len(controller.store) == 1


@pytest.mark.asyncio
async def test_delete_resolves_row_by_key_after_await(controller, service):
    service.seed(8080, "http://a")
    await controller.bootstrap()
    controller.add_draft()
    service.gates["delete"] = asyncio.Event()

    task = asyncio.create_task(controller.delete(0))
    await asyncio.sleep(0)
    # Positions shift while the DELETE is in flight
    controller.store.replace_all([controller.store.get(1), controller.store.get(0)])
    service.gates["delete"].set()

    assert await task is True
    rows = controller.store.snapshot()
    assert len(rows) == 1
    assert rows[0].is_new is True


# -------- Reload / import / export --------


@pytest.mark.asyncio
async def test_failed_reload_is_reported(controller, service, notifier):
    service.fail.add("list")

    assert await controller.bootstrap() is False

    assert notifier.errors() == ["Failed to get config"]
    assert len(controller.store) == 1
    assert controller.store.get(0).is_new is True


@pytest.mark.asyncio
async def test_import_replaces_persisted_rows_with_drafts(controller, service, notifier):
    service.seed(8080, "http://a", running=True)
    await controller.bootstrap()

    ok = controller.import_configs(
        '[{"port": 1, "downstreamUrl": "http://x", "isStarted": true},'
        ' {"port": 2, "downstreamUrl": "http://y", "name": "two"}]'
    )

    assert ok is True
    rows = controller.store.snapshot()
    assert [r.config.port for r in rows] == [1, 2]
    assert all(r.is_new and not r.is_started and not r.is_editing for r in rows)
    assert notifier.infos() == ["Successfully set the config file"]
    _check_invariants(rows)


@pytest.mark.asyncio
async def test_imported_draft_can_be_saved(controller, service):
    controller.import_configs('[{"port": 7000, "downstreamUrl": "http://x"}]')

    assert await controller.save_new(0) is True

    assert 7000 in service.records
    assert controller.store.get(0).is_new is False


@pytest.mark.asyncio
async def test_import_file_missing(controller, notifier, tmp_path):
    assert controller.import_file(tmp_path / "nope.json") is False
    assert notifier.errors() == ["Failed to import config"]


@pytest.mark.asyncio
async def test_export_without_sink_returns_document(controller):
    controller.add_draft()
    assert controller.export() == "[\n  {}\n]"


@pytest.mark.asyncio
async def test_export_delivery_failure(controller, notifier, tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    controller.file_sink = DirectoryFileSink(blocker)

    assert controller.export() is None
    assert notifier.errors() == ["Failed to export config"]


# -------- In-flight tracking / concurrency --------


@pytest.mark.asyncio
async def test_pending_is_tracked_per_row(controller, service):
    service.seed(8080, "http://a")
    service.seed(9090, "http://b")
    await controller.bootstrap()
    service.gates["start"] = asyncio.Event()

    first = asyncio.create_task(controller.start(8080))
    second = asyncio.create_task(controller.start(9090))
    await asyncio.sleep(0)

    assert controller.pending() == {
        "port:8080": OperationKind.START,
        "port:9090": OperationKind.START,
    }
    assert controller.is_pending("port:8080", OperationKind.START)
    assert not controller.is_pending("port:8080", OperationKind.STOP)

    # A second intent on a busy row is refused
    assert await controller.delete(0) is False

    service.gates["start"].set()
    assert await first is True
    assert await second is True
    assert controller.pending() == {}


@pytest.mark.asyncio
async def test_pending_changed_signal(controller, service):
    service.seed(8080, "http://a", running=True)
    await controller.bootstrap()
    events = []
    controller.pending_changed.connect(lambda key, kind: events.append((key, kind)))

    await controller.stop(8080)

    assert events == [("port:8080", OperationKind.STOP), ("port:8080", None)]


@pytest.mark.asyncio
async def test_follow_up_reload_skipped_while_load_in_flight(controller, service):
    service.seed(8080, "http://a")
    await controller.bootstrap()
    service.gates["list"] = asyncio.Event()

    slow = asyncio.create_task(controller.reload())
    await asyncio.sleep(0)
    assert controller.store.loading is True

    # Start succeeds and clears pending before the overlapping load lands
    assert await controller.start(8080) is True
    assert controller.pending() == {}
    assert controller.store.get(0).is_started is False
    assert service.calls_to("GET") == ["/sniffers", "/sniffers"]

    service.gates["list"].set()
    assert await slow is True
    assert controller.store.get(0).is_started is True


@pytest.mark.asyncio
async def test_dispatch_runs_in_background(controller, service):
    service.seed(8080, "http://a")
    await controller.bootstrap()

    task = controller.dispatch(controller.start(8080), name="start:8080")

    assert await task is True
    assert controller.store.get(0).is_started is True


@pytest.mark.asyncio
async def test_broken_notifier_does_not_break_operations(store, service):
    class Exploding:
        def notify(self, message, level):
            raise RuntimeError("sink down")

    controller = SyncController(store, notifier=Exploding())

    assert controller.import_configs("[]") is True
    assert len(store) == 0


@pytest.mark.asyncio
async def test_invariants_hold_through_a_session(controller, service):
    service.seed(8080, "http://a", running=True)
    service.seed(9090, "http://b")
    await controller.bootstrap()
    _check_invariants(controller.store.snapshot())

    await controller.edit(0)
    await controller.edit(1)
    _check_invariants(controller.store.snapshot())

    await controller.start(9090)
    await controller.stop(8080)
    _check_invariants(controller.store.snapshot())

    controller.import_configs(controller.export())
    _check_invariants(controller.store.snapshot())


@pytest.mark.asyncio
async def test_aclose_disposes_store(controller, service):
    service.seed(8080, "http://a")
    await controller.aclose()

    controller.add_draft()
    assert len(controller.store) == 0


def test_levels_are_plain_strings():
    assert NotificationLevel.ERROR == "error"
    assert NotificationLevel.INFO.value == "info"
