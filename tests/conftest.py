"""Pytest fixtures for Hardware Tagger tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from src.hw_tagger.k8s.node_client import NodeLabels
from src.hw_tagger.models.device import Device, DeviceEvent
from src.hw_tagger.models.scope import WatchScope

PREFIX = "node-devices.alpha.kubernetes.io"


class FakeLabelStore:
    """인메모리 라벨 저장소 (NodeLabelClient 대체)."""

    def __init__(self, labels: dict[str, str] | None = None) -> None:
        self.labels: dict[str, str] = dict(labels or {})
        self.resource_version = 1
        self.get_calls: list[str] = []
        self.update_calls: list[tuple[str, dict[str, str], str | None]] = []
        self.connected = False

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    async def get_labels(self, node_name: str) -> NodeLabels:
        self.get_calls.append(node_name)
        return NodeLabels(labels=dict(self.labels), resource_version=str(self.resource_version))

    async def update_labels(
        self,
        node_name: str,
        labels: dict[str, str],
        resource_version: str | None = None,
    ) -> None:
        self.update_calls.append((node_name, dict(labels), resource_version))
        self.labels = dict(labels)
        self.resource_version += 1


class FakeSubscription:
    """큐 기반 이벤트 구독 (None을 넣으면 구독 종료)."""

    def __init__(self) -> None:
        self.queue: asyncio.Queue[DeviceEvent | None] = asyncio.Queue()

    def __aiter__(self) -> FakeSubscription:
        return self

    async def __anext__(self) -> DeviceEvent:
        event = await self.queue.get()
        if event is None:
            raise StopAsyncIteration
        return event


class FakeBackend:
    """디바이스 백엔드 대체."""

    def __init__(self, devices: list[Device] | None = None) -> None:
        self.devices = list(devices or [])
        self.subscription = FakeSubscription()
        self.calls: list[str] = []

    def enumerate(self, subsystem: str) -> list[Device]:
        self.calls.append(f"enumerate:{subsystem}")
        return list(self.devices)

    def subscribe(self, subsystem: str) -> FakeSubscription:
        self.calls.append(f"subscribe:{subsystem}")
        return self.subscription


@pytest.fixture
def make_device() -> Callable[..., Device]:
    """디바이스 생성 팩토리."""

    def _make(
        sysname: str = "sda",
        devtype: str = "disk",
        subsystem: str = "block",
        **properties: Any,
    ) -> Device:
        return Device(
            subsystem=subsystem,
            devtype=devtype,
            syspath=f"/sys/devices/virtual/{subsystem}/{sysname}",
            sysname=sysname,
            devnode=f"/dev/{sysname}",
            properties={k: str(v) for k, v in properties.items()},
        )

    return _make


@pytest.fixture
def block_scope() -> WatchScope:
    """기본 block 디스크 범위."""
    return WatchScope(
        prefix=PREFIX,
        subsystem="block",
        filter=lambda dev: dev.devtype == "disk",
        id_properties={"wwn": "ID_WWN", "sn": "ID_SERIAL_SHORT"},
    )


@pytest.fixture
def label_store() -> FakeLabelStore:
    """인메모리 라벨 저장소."""
    return FakeLabelStore()


@pytest.fixture
def add_event() -> Callable[[Device], DeviceEvent]:
    return lambda device: DeviceEvent(action="add", device=device)


@pytest.fixture
def remove_event() -> Callable[[Device], DeviceEvent]:
    return lambda device: DeviceEvent(action="remove", device=device)


@pytest.fixture
def make_backend() -> Callable[..., FakeBackend]:
    """디바이스 백엔드 대체 팩토리."""
    return FakeBackend
