"""감시 범위 및 동기화 신호 모델."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal

from src.hw_tagger.models.device import Device, DeviceEvent

INVALID_KEY_CHARS = re.compile(r"[^-A-Za-z0-9_.]")


def accept_all(device: Device) -> bool:
    """기본 필터 (모든 디바이스 허용)."""
    return True


@dataclass(frozen=True)
class WatchScope:
    """감시 범위 설정 (생성 후 불변).

    Attributes:
        prefix: 라벨 키 prefix (예: "node-devices.alpha.kubernetes.io")
        subsystem: 감시할 서브시스템 (예: "block")
        filter: 디바이스 필터
        id_properties: 식별 태그 → 디바이스 프로퍼티 (순서 = 우선순위)

    Examples:
        ```python
        scope = WatchScope(
            prefix="node-devices.alpha.kubernetes.io",
            subsystem="block",
            filter=lambda dev: dev.devtype == "disk",
            id_properties={"wwn": "ID_WWN", "sn": "ID_SERIAL_SHORT"},
        )
        scope.key_prefix  # "node-devices.alpha.kubernetes.io/block-"
        ```
    """

    prefix: str
    subsystem: str
    filter: Callable[[Device], bool] = accept_all
    id_properties: dict[str, str] = field(default_factory=dict)

    @property
    def key_prefix(self) -> str:
        """이 범위가 관리하는 라벨 키의 공통 prefix."""
        return f"{self.prefix}/{INVALID_KEY_CHARS.sub('-', self.subsystem)}-"

    @property
    def name(self) -> str:
        """로그용 범위 이름."""
        return f"{self.prefix}/{self.subsystem}"


@dataclass(frozen=True)
class SyncSignal:
    """이벤트 소스 → 감시자 간 제어/데이터 메시지.

    Attributes:
        kind: "baseline-complete" 또는 "device-event"
        event: 디바이스 이벤트 (device-event 전용, 없을 수 있음)
    """

    kind: Literal["baseline-complete", "device-event"]
    event: DeviceEvent | None = None

    @classmethod
    def baseline_complete(cls) -> SyncSignal:
        return cls(kind="baseline-complete")

    @classmethod
    def device_event(cls, event: DeviceEvent | None) -> SyncSignal:
        return cls(kind="device-event", event=event)

    @property
    def is_baseline_complete(self) -> bool:
        return self.kind == "baseline-complete"
