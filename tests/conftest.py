"""Pytest configuration for SnifferDeck."""
import asyncio
import os
from typing import Dict, List, Optional, Set, Tuple

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI, HTTPException, Response

from snifferdeck.control.notify import NotificationLevel
from snifferdeck.control.sync import SyncController
from snifferdeck.data.models import SnifferConfig
from snifferdeck.data.row_store import ConfigRowStore
from snifferdeck.net.client import SnifferControlClient


def pytest_configure():
    os.environ.setdefault("SNIFFERDECK_DEBUG", "true")


class FakeControlService:
    """
    In-memory Sniffer Control Service.

    ``fail`` holds operation names ("list", "create", "edit", "delete",
    "start", "stop") that answer 500. ``gates`` holds events an operation
    waits on before answering, to keep it in flight.
    """

    def __init__(self):
        self.records: Dict[int, dict] = {}
        self.running: Set[int] = set()
        self.calls: List[Tuple[str, str]] = []
        self.fail: Set[str] = set()
        self.gates: Dict[str, asyncio.Event] = {}
        self.app = self._build_app()

    def seed(self, port: int, url: str, name: str = "", running: bool = False) -> None:
        self.records[port] = {"id": str(port), "name": name, "port": port, "downstreamUrl": url}
        if running:
            self.running.add(port)

    def calls_to(self, method: str) -> List[str]:
        return [path for m, path in self.calls if m == method]

    async def _enter(self, op: str) -> None:
        gate = self.gates.get(op)
        if gate is not None:
            await gate.wait()
        if op in self.fail:
            raise HTTPException(status_code=500, detail=f"{op} failed")

    def _require(self, port: int) -> None:
        if port not in self.records:
            raise HTTPException(status_code=404, detail=f"no sniffer on {port}")

    def _build_app(self) -> FastAPI:
        app = FastAPI()

        @app.get("/sniffers")
        async def list_sniffers():
            await self._enter("list")
            return [
                dict(record, isStarted=port in self.running)
                for port, record in sorted(self.records.items())
            ]

        @app.post("/sniffers")
        async def create_sniffer(config: SnifferConfig):
            await self._enter("create")
            if config.port in self.records:
                raise HTTPException(status_code=409, detail="port in use")
            self.records[config.port] = config.to_wire()
            return config.to_wire()

        @app.put("/sniffers")
        async def edit_sniffer(config: SnifferConfig):
            await self._enter("edit")
            old = next((p for p, r in self.records.items() if r["id"] == config.id), None)
            if old is None:
                raise HTTPException(status_code=404, detail="unknown id")
            if old in self.running:
                raise HTTPException(status_code=409, detail="stop it first")
            if config.port != old and config.port in self.records:
                raise HTTPException(status_code=409, detail="port in use")
            del self.records[old]
            self.records[config.port] = config.to_wire()
            return config.to_wire()

        @app.delete("/sniffers/{port}", status_code=204)
        async def delete_sniffer(port: int):
            await self._enter("delete")
            self._require(port)
            if port in self.running:
                raise HTTPException(status_code=409, detail="stop it first")
            del self.records[port]
            return Response(status_code=204)

        @app.post("/sniffers/{port}/start", status_code=204)
        async def start_sniffer(port: int):
            await self._enter("start")
            self._require(port)
            if port in self.running:
                raise HTTPException(status_code=409, detail="already running")
            self.running.add(port)
            return Response(status_code=204)

        @app.post("/sniffers/{port}/stop", status_code=204)
        async def stop_sniffer(port: int):
            await self._enter("stop")
            self._require(port)
            self.running.discard(port)
            return Response(status_code=204)

        return app


class RecordingNotifier:
    def __init__(self):
        self.messages: List[Tuple[str, NotificationLevel]] = []

    def notify(self, message: str, level: NotificationLevel) -> None:
        self.messages.append((message, level))

    def errors(self) -> List[str]:
        return [m for m, level in self.messages if level is NotificationLevel.ERROR]

    def infos(self) -> List[str]:
        return [m for m, level in self.messages if level is NotificationLevel.INFO]


@pytest.fixture
def service() -> FakeControlService:
    return FakeControlService()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def client(service: FakeControlService):
    async def _record(request: httpx.Request) -> None:
        service.calls.append((request.method, request.url.path))

    http = httpx.AsyncClient(
        transport=httpx.ASGITransport(app=service.app),
        base_url="http://control.test",
        event_hooks={"request": [_record]},
    )
    control = SnifferControlClient(underlying_client=http)
    yield control
    await control.aclose()


@pytest.fixture
def store(client: SnifferControlClient) -> ConfigRowStore:
    return ConfigRowStore(client)


@pytest.fixture
def controller(store: ConfigRowStore, notifier: RecordingNotifier) -> SyncController:
    return SyncController(store, notifier=notifier)
