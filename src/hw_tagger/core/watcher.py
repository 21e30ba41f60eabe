"""범위별 디바이스 감시자.

EventSource → 큐 → StateTracker → Reconciler 흐름을 구동.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from src.hw_tagger.core.reconciler import LabelStore, Reconciler
from src.hw_tagger.core.state_tracker import StateTracker
from src.hw_tagger.devices.event_source import DeviceBackend, EventSource
from src.hw_tagger.models.scope import SyncSignal, WatchScope

logger = logging.getLogger(__name__)


class DeviceWatcher:
    """감시 범위 1개를 처음부터 끝까지 구동.

    기능:
    - 이벤트 소스 태스크 + 소비 태스크 병렬 실행
    - 큐의 신호를 순서대로 1개씩 처리 (락 불필요)
    - baseline 완료 시 첫 동기화
    - 상태 변경 이벤트마다 즉시 동기화 (배치 없음)

    Examples:
        ```python
        watcher = DeviceWatcher(
            scope=scope,
            backend=UdevBackend(),
            store=client,
            node_name="worker-1",
        )
        await watcher.run()  # 종료되지 않음 (치명적 오류 시 예외)
        ```
    """

    def __init__(
        self,
        scope: WatchScope,
        backend: DeviceBackend,
        store: LabelStore,
        node_name: str,
        dry_run: bool = False,
        queue_size: int = 10,
        label_value: str = "present",
    ) -> None:
        """초기화.

        Args:
            scope: 감시 범위
            backend: 디바이스 백엔드
            store: 라벨 저장소
            node_name: Node 이름
            dry_run: dry run 여부
            queue_size: 신호 큐 크기
            label_value: 라벨 값
        """
        self.scope = scope
        self.queue_size = queue_size
        self.source = EventSource(backend=backend, subsystem=scope.subsystem)
        self.tracker = StateTracker(scope)
        self.reconciler = Reconciler(
            scope=scope,
            store=store,
            node_name=node_name,
            dry_run=dry_run,
            value=label_value,
        )
        self._signal_count = 0

    @property
    def can_sync(self) -> bool:
        return self.reconciler.can_sync

    async def run(self) -> None:
        """감시 시작.

        Raises:
            DeviceSourceError: 디바이스 감시 실패 시
            KubeAPIError: 라벨 조회/갱신 실패 시
        """
        queue: asyncio.Queue[SyncSignal] = asyncio.Queue(maxsize=self.queue_size)
        logger.info(f"[{self.scope.name}] 감시 시작")

        producer = asyncio.create_task(self.source.run(queue))
        consumer = asyncio.create_task(self._consume(queue))
        try:
            await asyncio.gather(producer, consumer)
        finally:
            # 한쪽이 실패하면 다른 쪽도 정리
            producer.cancel()
            consumer.cancel()
            await asyncio.gather(producer, consumer, return_exceptions=True)

    async def _consume(self, queue: asyncio.Queue[SyncSignal]) -> None:
        """큐 소비 (종료되지 않음)."""
        while True:
            signal = await queue.get()
            try:
                await self.handle_signal(signal)
            finally:
                queue.task_done()

    async def handle_signal(self, signal: SyncSignal) -> bool:
        """신호 1개 처리.

        Args:
            signal: 동기화 신호

        Returns:
            동기화 수행 여부
        """
        self._signal_count += 1

        if signal.is_baseline_complete:
            logger.info(
                f"[{self.scope.name}] baseline 완료: 키 {len(self.tracker.known_keys)}개"
            )
            self.reconciler.can_sync = True
            await self.reconciler.sync(self.tracker.known_keys)
            return True

        if signal.event is None:
            return False

        if not self.tracker.apply(signal.event):
            return False

        diff = await self.reconciler.sync(self.tracker.known_keys)
        return diff is not None

    def get_stats(self) -> dict[str, Any]:
        """통계 조회."""
        return {
            "scope": self.scope.name,
            "signals": self._signal_count,
            "source": self.source.get_stats(),
            "state": self.tracker.get_stats(),
            "reconciler": self.reconciler.get_stats(),
        }
