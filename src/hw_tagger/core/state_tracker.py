"""KnownKeys 상태 추적 모듈.

감시 범위 1개의 "현재 존재해야 하는 라벨 키" 집합을 관리.
디바이스 add/remove 이벤트로만 변경됩니다.
"""

from __future__ import annotations

import logging
from typing import Any

from src.hw_tagger.core.key_normalizer import normalize_key
from src.hw_tagger.models.device import Device, DeviceEvent
from src.hw_tagger.models.scope import WatchScope

logger = logging.getLogger(__name__)


class StateTracker:
    """범위별 KnownKeys 관리.

    키마다 기여한 디바이스(syspath)를 함께 기록하여,
    같은 식별자를 가진 디바이스가 여럿일 때 마지막 디바이스가
    사라질 때만 키를 제거합니다.

    Examples:
        ```python
        tracker = StateTracker(scope)

        changed = tracker.apply(DeviceEvent(action="add", device=disk))
        if changed:
            print(tracker.known_keys)
        ```
    """

    def __init__(self, scope: WatchScope) -> None:
        """초기화.

        Args:
            scope: 감시 범위
        """
        self.scope = scope
        self._contributors: dict[str, set[str]] = {}
        self._unknown_actions = 0

    @property
    def known_keys(self) -> frozenset[str]:
        """현재 존재해야 하는 라벨 키."""
        return frozenset(self._contributors)

    def derive_keys(self, device: Device) -> list[str]:
        """디바이스에서 라벨 키 목록 생성.

        식별 태그마다 키 1개 (프로퍼티가 비어있으면 건너뜀).

        Args:
            device: 디바이스

        Returns:
            정규화된 키 리스트 (id_properties 순서)
        """
        keys: list[str] = []
        for tag, property_name in self.scope.id_properties.items():
            value = device.get_property(property_name)
            if not value:
                continue
            raw_key = (
                f"{self.scope.prefix}/{self.scope.subsystem}-"
                f"{device.devtype}-{tag}-{value}"
            )
            keys.append(normalize_key(raw_key))
        return keys

    def apply(self, event: DeviceEvent) -> bool:
        """이벤트 적용.

        Args:
            event: 디바이스 이벤트

        Returns:
            KnownKeys 변경 여부
        """
        device = event.device
        if device is None or not self.scope.filter(device):
            return False

        keys = self.derive_keys(device)
        if not keys:
            return False

        if event.is_add:
            return self._add(keys, device.syspath)
        if event.is_remove:
            return self._remove(keys, device.syspath)

        self._unknown_actions += 1
        logger.warning(f"[{self.scope.name}] 알 수 없는 action: {event.action!r}")
        return False

    def _add(self, keys: list[str], syspath: str) -> bool:
        changed = False
        for key in keys:
            contributors = self._contributors.setdefault(key, set())
            if not contributors:
                logger.info(f"키 추가: {key}")
                changed = True
            contributors.add(syspath)
        return changed

    def _remove(self, keys: list[str], syspath: str) -> bool:
        changed = False
        for key in keys:
            contributors = self._contributors.get(key)
            if contributors is None or syspath not in contributors:
                continue
            contributors.discard(syspath)
            if not contributors:
                del self._contributors[key]
                logger.info(f"키 제거: {key}")
                changed = True
        return changed

    def get_stats(self) -> dict[str, Any]:
        """통계 조회 (헬스체크 스레드에서도 호출됨)."""
        known_keys = list(self._contributors)
        return {
            "known_keys": sorted(known_keys),
            "key_count": len(known_keys),
            "unknown_actions": self._unknown_actions,
        }
