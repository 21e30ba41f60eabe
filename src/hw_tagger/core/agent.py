"""TaggerAgent - 하드웨어 라벨 에이전트.

설정된 감시 범위마다 DeviceWatcher 1개를 병렬 실행.
한 범위의 치명적 오류는 에이전트 전체를 중단시킵니다.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from src.hw_tagger.config.settings import Settings
from src.hw_tagger.core.watcher import DeviceWatcher
from src.hw_tagger.devices.event_source import DeviceBackend
from src.hw_tagger.k8s.node_client import NodeLabelClient
from src.hw_tagger.models.scope import WatchScope

logger = logging.getLogger(__name__)


class TaggerAgent:
    """하드웨어 라벨 에이전트.

    기능:
    - 감시 범위별 DeviceWatcher 생성
    - 모든 감시자 병렬 실행 (범위 간 공유 상태 없음)
    - 상태 통계 (헬스체크용)

    Examples:
        ```python
        settings = Settings()
        agent = TaggerAgent(
            settings=settings,
            scopes=load_scopes(settings.scopes_file),
            backend=UdevBackend(),
            store=NodeLabelClient(config=load_config()),
        )

        await agent.start()  # 감시자 병렬 실행
        await agent.stop()
        ```
    """

    def __init__(
        self,
        settings: Settings,
        scopes: list[WatchScope],
        backend: DeviceBackend,
        store: NodeLabelClient,
    ) -> None:
        """초기화.

        Args:
            settings: 설정
            scopes: 감시 범위 목록
            backend: 디바이스 백엔드
            store: 라벨 저장소 (NodeLabelClient)

        Raises:
            ConfigurationError: Node 이름 미설정 시
        """
        self.settings = settings
        self.node_name = settings.require_node_name()
        self.store = store
        self._running = False

        self.watchers = [
            DeviceWatcher(
                scope=scope,
                backend=backend,
                store=store,
                node_name=self.node_name,
                dry_run=settings.dry_run,
                queue_size=settings.queue_size,
                label_value=settings.label_value,
            )
            for scope in scopes
        ]

    async def start(self) -> None:
        """에이전트 시작 - 감시자 병렬 실행.

        Raises:
            DeviceSourceError: 디바이스 감시 실패 시
            KubeAPIError: 라벨 조회/갱신 실패 시
        """
        self._running = True
        logger.info("=" * 60)
        logger.info("TaggerAgent 시작")
        logger.info("=" * 60)
        logger.info(f"Node: {self.node_name}")
        logger.info(f"dry-run: {self.settings.dry_run}")
        logger.info(f"감시 범위: {[w.scope.name for w in self.watchers]}")
        logger.info("=" * 60)

        await self.store.connect()

        tasks = [asyncio.create_task(watcher.run()) for watcher in self.watchers]
        try:
            await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            logger.info("TaggerAgent 태스크 취소됨")
            raise
        finally:
            # 한 범위가 실패하면 나머지 감시자를 종료한 뒤 반환 (store.close() 이전)
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            self._running = False

    async def stop(self) -> None:
        """에이전트 중지."""
        self._running = False

        await self.store.close()

        logger.info("TaggerAgent 중지 완료")

    @property
    def is_ready(self) -> bool:
        """모든 범위의 baseline 완료 여부."""
        return all(watcher.can_sync for watcher in self.watchers)

    def get_stats(self) -> dict[str, Any]:
        """상태 통계 조회."""
        return {
            "running": self._running,
            "ready": self.is_ready,
            "node_name": self.node_name,
            "dry_run": self.settings.dry_run,
            "scopes": [watcher.get_stats() for watcher in self.watchers],
        }
