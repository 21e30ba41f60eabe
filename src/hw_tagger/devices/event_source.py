"""디바이스 이벤트 소스 어댑터.

"현재 디바이스 열거" + "이후 add/remove 이벤트 구독"을
하나의 순서 있는 SyncSignal 스트림(asyncio.Queue)으로 통합.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any, Protocol

from src.hw_tagger.models.device import ACTION_ADD, Device, DeviceEvent
from src.hw_tagger.models.scope import SyncSignal

logger = logging.getLogger(__name__)


class DeviceSourceError(Exception):
    """디바이스 감시 실패 (모니터 생성 실패, 구독 중단 등)."""


class DeviceBackend(Protocol):
    """디바이스 서브시스템 백엔드 인터페이스."""

    def enumerate(self, subsystem: str) -> list[Device]:
        """서브시스템의 현재 디바이스 목록."""
        ...

    def subscribe(self, subsystem: str) -> AsyncIterator[DeviceEvent]:
        """이벤트 구독 시작.

        반환 시점부터 이벤트를 버퍼링해야 합니다.

        Raises:
            DeviceSourceError: 구독 실패 시
        """
        ...


class EventSource:
    """열거 + 실시간 구독 통합 이벤트 소스.

    신호 순서:
    1. 현재 디바이스마다 device-event(add)
    2. baseline-complete 1회
    3. 이후 실시간 device-event (무한)

    구독은 열거 전에 먼저 열어서 열거 도중 발생한 이벤트도
    baseline-complete 이후에 전달됩니다.

    Examples:
        ```python
        queue: asyncio.Queue[SyncSignal] = asyncio.Queue(maxsize=10)
        source = EventSource(backend=UdevBackend(), subsystem="block")

        asyncio.create_task(source.run(queue))
        signal = await queue.get()
        ```
    """

    def __init__(self, backend: DeviceBackend, subsystem: str) -> None:
        """초기화.

        Args:
            backend: 디바이스 백엔드
            subsystem: 감시할 서브시스템
        """
        self.backend = backend
        self.subsystem = subsystem
        self._baseline_count = 0
        self._live_count = 0

    async def run(self, queue: asyncio.Queue[SyncSignal]) -> None:
        """신호 생성 (종료되지 않음).

        Args:
            queue: 신호를 넣을 큐

        Raises:
            DeviceSourceError: 구독 실패 또는 구독 종료 시
        """
        subscription = self.backend.subscribe(self.subsystem)

        # sysfs 읽기는 이벤트 루프 밖에서 (다른 범위가 멈추지 않도록)
        devices = await asyncio.to_thread(self.backend.enumerate, self.subsystem)
        for device in devices:
            self._baseline_count += 1
            await queue.put(
                SyncSignal.device_event(DeviceEvent(action=ACTION_ADD, device=device))
            )

        logger.info(f"[{self.subsystem}] 초기 열거 완료: {self._baseline_count}개")
        await queue.put(SyncSignal.baseline_complete())

        try:
            async for event in subscription:
                self._live_count += 1
                await queue.put(SyncSignal.device_event(event))
        except OSError as e:
            raise DeviceSourceError(f"{self.subsystem} 감시 실패: {e}") from e

        raise DeviceSourceError(f"{self.subsystem} 감시 종료됨")

    def get_stats(self) -> dict[str, Any]:
        """통계 조회."""
        return {
            "subsystem": self.subsystem,
            "baseline_devices": self._baseline_count,
            "live_events": self._live_count,
        }
