"""StateTracker 테스트."""

from __future__ import annotations

import logging
import re

import pytest

from src.hw_tagger.core.state_tracker import StateTracker
from src.hw_tagger.models.device import DeviceEvent
from src.hw_tagger.models.scope import WatchScope

PREFIX = "node-devices.alpha.kubernetes.io"


@pytest.fixture
def tracker(block_scope: WatchScope) -> StateTracker:
    return StateTracker(block_scope)


class TestDeriveKeys:
    """키 생성."""

    def test_one_key_per_present_property(self, tracker, make_device):
        """식별 태그마다 키 1개."""
        device = make_device(ID_WWN="0x5000c500a1b2c3d4", ID_SERIAL_SHORT="ZA1234")

        assert tracker.derive_keys(device) == [
            f"{PREFIX}/block-disk-wwn-0x5000c500a1b2c3d4",
            f"{PREFIX}/block-disk-sn-ZA1234",
        ]

    def test_empty_property_skipped(self, tracker, make_device):
        """빈 프로퍼티는 건너뜀."""
        device = make_device(ID_WWN="", ID_SERIAL_SHORT="ZA1234")

        assert tracker.derive_keys(device) == [f"{PREFIX}/block-disk-sn-ZA1234"]

    def test_no_properties(self, tracker, make_device):
        """식별 프로퍼티 없음 → 키 없음."""
        assert tracker.derive_keys(make_device()) == []

    def test_deterministic(self, tracker, make_device):
        """같은 디바이스 → 같은 키."""
        device = make_device(ID_SERIAL_SHORT="S" * 70)
        assert tracker.derive_keys(device) == tracker.derive_keys(device)

    def test_long_serial_truncated(self, tracker, make_device):
        """70자 시리얼 → 63자 이름 + 5자 해시."""
        device = make_device(ID_SERIAL_SHORT="S" * 70)

        (key,) = tracker.derive_keys(device)
        name = key.partition("/")[2]

        assert len(name) == 63
        assert name[57] == "-"
        assert re.fullmatch(r"[a-z2-7]{5}", name[58:])
        assert name.startswith("block-disk-sn-SSS")


class TestApply:
    """이벤트 적용."""

    def test_add_inserts_keys(self, tracker, make_device, add_event):
        """add → 키 추가, 변경 보고."""
        device = make_device(ID_WWN="abc123")

        assert tracker.apply(add_event(device)) is True
        assert tracker.known_keys == {f"{PREFIX}/block-disk-wwn-abc123"}

    def test_add_twice_reports_no_change(self, tracker, make_device, add_event):
        """이미 있는 키 재추가 → 변경 없음."""
        device = make_device(ID_WWN="abc123")
        tracker.apply(add_event(device))

        assert tracker.apply(add_event(device)) is False
        assert len(tracker.known_keys) == 1

    def test_add_then_remove_restores_state(self, tracker, make_device, add_event, remove_event):
        """add 후 remove → 원래 상태."""
        other = make_device("sdb", ID_WWN="keep")
        tracker.apply(add_event(other))
        before = tracker.known_keys

        device = make_device(ID_WWN="abc123", ID_SERIAL_SHORT="SN1")
        tracker.apply(add_event(device))
        assert tracker.apply(remove_event(device)) is True

        assert tracker.known_keys == before

    def test_remove_without_add(self, tracker, make_device, remove_event):
        """add 없이 remove → 변화 없음."""
        device = make_device(ID_WWN="ghost")

        assert tracker.apply(remove_event(device)) is False
        assert tracker.known_keys == frozenset()

    def test_filtered_device_ignored(self, tracker, make_device, add_event):
        """필터 불통과 (partition) → 무시."""
        partition = make_device("sda1", devtype="partition", ID_WWN="abc123")

        assert tracker.apply(add_event(partition)) is False
        assert tracker.known_keys == frozenset()

    def test_event_without_device(self, tracker):
        """디바이스 없는 이벤트 → 무시."""
        assert tracker.apply(DeviceEvent(action="add", device=None)) is False

    def test_unknown_action_warns(self, tracker, make_device, caplog):
        """알 수 없는 action → 경고, 상태 유지."""
        device = make_device(ID_WWN="abc123")

        with caplog.at_level(logging.WARNING):
            changed = tracker.apply(DeviceEvent(action="change", device=device))

        assert changed is False
        assert tracker.known_keys == frozenset()
        assert "change" in caplog.text
        assert tracker.get_stats()["unknown_actions"] == 1

    def test_shared_key_kept_until_last_device_removed(
        self, tracker, make_device, add_event, remove_event
    ):
        """같은 WWN을 가진 두 디바이스 → 둘 다 사라져야 키 제거."""
        first = make_device("sda", ID_WWN="shared")
        second = make_device("sdb", ID_WWN="shared")
        key = f"{PREFIX}/block-disk-wwn-shared"

        tracker.apply(add_event(first))
        assert tracker.apply(add_event(second)) is False

        assert tracker.apply(remove_event(first)) is False
        assert key in tracker.known_keys

        assert tracker.apply(remove_event(second)) is True
        assert key not in tracker.known_keys


class TestStats:
    def test_stats(self, tracker, make_device, add_event):
        tracker.apply(add_event(make_device(ID_WWN="abc123")))

        stats = tracker.get_stats()

        assert stats["key_count"] == 1
        assert stats["known_keys"] == [f"{PREFIX}/block-disk-wwn-abc123"]
