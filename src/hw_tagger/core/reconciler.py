"""라벨 조정(Reconciliation) 모듈.

KnownKeys와 Node 라벨을 비교하여 필요한 변경만 적용.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

from src.hw_tagger.k8s.node_client import NodeLabels
from src.hw_tagger.models.scope import WatchScope

logger = logging.getLogger(__name__)


class LabelStore(Protocol):
    """라벨 저장소 인터페이스 (NodeLabelClient)."""

    async def get_labels(self, node_name: str) -> NodeLabels: ...

    async def update_labels(
        self,
        node_name: str,
        labels: dict[str, str],
        resource_version: str | None = None,
    ) -> None: ...


@dataclass
class LabelDiff:
    """라벨 비교 결과.

    Attributes:
        removed: 제거할 키 (prefix 하위이지만 KnownKeys에 없음)
        added: 새로 추가할 키
        changed: 값이 달라 갱신할 키
        labels: 변경 적용 후 전체 라벨
    """

    removed: list[str] = field(default_factory=list)
    added: list[str] = field(default_factory=list)
    changed: list[str] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.removed or self.added or self.changed)


def compute_label_diff(
    current: dict[str, str],
    key_prefix: str,
    known_keys: Iterable[str],
    value: str = "present",
) -> LabelDiff:
    """3-way 라벨 비교.

    key_prefix 밖의 라벨은 그대로 유지됩니다.

    Args:
        current: 현재 Node 라벨
        key_prefix: 관리 대상 키 prefix
        known_keys: 존재해야 하는 키
        value: 라벨 값

    Returns:
        LabelDiff
    """
    known = set(known_keys)
    labels = dict(current)
    diff = LabelDiff()

    for key in sorted(current):
        if key.startswith(key_prefix) and key not in known:
            del labels[key]
            diff.removed.append(key)

    for key in sorted(known):
        if key not in current:
            diff.added.append(key)
        elif current[key] != value:
            diff.changed.append(key)
        else:
            continue
        labels[key] = value

    diff.labels = labels
    return diff


class Reconciler:
    """범위 1개의 라벨 조정기.

    baseline 완료(can_sync) 전에는 아무것도 하지 않습니다.
    변경이 없으면 API 호출을 하지 않으며, 변경이 있으면 전체 라벨로
    1회 갱신합니다.

    Examples:
        ```python
        reconciler = Reconciler(scope, store=client, node_name="worker-1")
        reconciler.can_sync = True

        diff = await reconciler.sync(tracker.known_keys)
        ```
    """

    def __init__(
        self,
        scope: WatchScope,
        store: LabelStore,
        node_name: str,
        dry_run: bool = False,
        value: str = "present",
    ) -> None:
        """초기화.

        Args:
            scope: 감시 범위
            store: 라벨 저장소
            node_name: Node 이름
            dry_run: True면 변경 내용만 로그하고 갱신하지 않음
            value: 라벨 값
        """
        self.scope = scope
        self.store = store
        self.node_name = node_name
        self.dry_run = dry_run
        self.value = value
        self.can_sync = False

        self._sync_count = 0
        self._update_count = 0

    async def sync(self, known_keys: Iterable[str]) -> LabelDiff | None:
        """라벨 조정.

        Args:
            known_keys: 존재해야 하는 키

        Returns:
            LabelDiff (can_sync가 False면 None)

        Raises:
            KubeAPIError: 조회/갱신 실패 시
        """
        if not self.can_sync:
            return None

        self._sync_count += 1
        current = await self.store.get_labels(self.node_name)
        diff = compute_label_diff(
            current.labels, self.scope.key_prefix, known_keys, self.value
        )

        for key in diff.removed:
            logger.info(f"라벨 제거: {key}")
        for key in diff.added:
            logger.info(f"라벨 추가: {key}={self.value}")
        for key in diff.changed:
            logger.info(f"라벨 변경: {key}={self.value}")

        if diff.is_empty:
            return diff

        logger.debug(f"새 라벨:\n{json.dumps(diff.labels, indent=2, sort_keys=True)}")

        if self.dry_run:
            logger.info(f"dry-run: Node {self.node_name} 갱신 생략")
            return diff

        logger.info(f"Node 갱신: {self.node_name}")
        await self.store.update_labels(
            self.node_name, diff.labels, current.resource_version
        )
        self._update_count += 1
        return diff

    def get_stats(self) -> dict[str, Any]:
        """통계 조회."""
        return {
            "can_sync": self.can_sync,
            "dry_run": self.dry_run,
            "sync_count": self._sync_count,
            "update_count": self._update_count,
        }
