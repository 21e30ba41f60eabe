"""Reconciler 테스트."""

from __future__ import annotations

import logging
from unittest.mock import AsyncMock

import pytest

from src.hw_tagger.core.reconciler import Reconciler, compute_label_diff
from src.hw_tagger.k8s.node_client import KubeAPIError, NodeLabels

PREFIX = "node-devices.alpha.kubernetes.io"
KEY_PREFIX = f"{PREFIX}/block-"


class TestComputeLabelDiff:
    """3-way 비교."""

    def test_empty(self):
        diff = compute_label_diff({}, KEY_PREFIX, [])

        assert diff.is_empty
        assert diff.labels == {}

    def test_add_missing_key(self):
        """KnownKeys에만 있는 키 → 추가."""
        key = f"{KEY_PREFIX}disk-wwn-abc"
        diff = compute_label_diff({"kubernetes.io/os": "linux"}, KEY_PREFIX, [key])

        assert diff.added == [key]
        assert diff.labels == {"kubernetes.io/os": "linux", key: "present"}

    def test_remove_stale_key(self):
        """prefix 하위인데 KnownKeys에 없는 키 → 제거."""
        stale = f"{KEY_PREFIX}disk-wwn-gone"
        diff = compute_label_diff({stale: "present"}, KEY_PREFIX, [])

        assert diff.removed == [stale]
        assert diff.labels == {}

    def test_change_wrong_value(self):
        """값이 다른 키 → 변경."""
        key = f"{KEY_PREFIX}disk-sn-X"
        diff = compute_label_diff({key: "absent"}, KEY_PREFIX, [key])

        assert diff.changed == [key]
        assert diff.labels[key] == "present"

    def test_correct_key_untouched(self):
        """이미 올바른 키 → 변경 없음."""
        key = f"{KEY_PREFIX}disk-sn-X"
        diff = compute_label_diff({key: "present"}, KEY_PREFIX, [key])

        assert diff.is_empty

    def test_other_prefixes_preserved(self):
        """다른 prefix/서브시스템 라벨은 유지."""
        current = {
            "kubernetes.io/hostname": "worker-1",
            f"{PREFIX}/net-interface-mac-aa": "present",
        }
        diff = compute_label_diff(current, KEY_PREFIX, [])

        assert diff.is_empty
        assert diff.labels == current


@pytest.fixture
def reconciler(block_scope, label_store) -> Reconciler:
    r = Reconciler(scope=block_scope, store=label_store, node_name="worker-1")
    r.can_sync = True
    return r


class TestReconcilerSync:
    """sync 동작."""

    @pytest.mark.asyncio
    async def test_no_sync_before_baseline(self, block_scope, label_store):
        """can_sync=False → 아무 호출 없음."""
        reconciler = Reconciler(scope=block_scope, store=label_store, node_name="worker-1")

        result = await reconciler.sync([f"{KEY_PREFIX}disk-wwn-abc"])

        assert result is None
        assert label_store.get_calls == []
        assert label_store.update_calls == []

    @pytest.mark.asyncio
    async def test_single_update_with_merged_labels(self, reconciler, label_store):
        """변경 시 전체 라벨로 1회 갱신."""
        label_store.labels = {
            "kubernetes.io/hostname": "worker-1",
            f"{KEY_PREFIX}disk-wwn-old": "present",
        }
        key = f"{KEY_PREFIX}disk-wwn-new"

        diff = await reconciler.sync([key])

        assert diff.added == [key]
        assert diff.removed == [f"{KEY_PREFIX}disk-wwn-old"]
        assert len(label_store.update_calls) == 1
        node_name, labels, resource_version = label_store.update_calls[0]
        assert node_name == "worker-1"
        assert labels == {"kubernetes.io/hostname": "worker-1", key: "present"}
        assert resource_version == "1"

    @pytest.mark.asyncio
    async def test_idempotent(self, reconciler, label_store):
        """변경 없이 2회 sync → 갱신 최대 1회."""
        keys = [f"{KEY_PREFIX}disk-wwn-abc"]

        await reconciler.sync(keys)
        second = await reconciler.sync(keys)

        assert second.is_empty
        assert len(label_store.update_calls) == 1
        assert reconciler.get_stats()["sync_count"] == 2
        assert reconciler.get_stats()["update_count"] == 1

    @pytest.mark.asyncio
    async def test_empty_diff_no_update(self, reconciler, label_store):
        """이미 일치 → 갱신 없음."""
        label_store.labels = {"kubernetes.io/os": "linux"}

        diff = await reconciler.sync([])

        assert diff.is_empty
        assert label_store.update_calls == []

    @pytest.mark.asyncio
    async def test_dry_run_skips_update(self, block_scope, label_store, caplog):
        """dry-run → 비교/로그만, 갱신 없음."""
        reconciler = Reconciler(
            scope=block_scope, store=label_store, node_name="worker-1", dry_run=True
        )
        reconciler.can_sync = True
        key = f"{KEY_PREFIX}disk-wwn-abc"

        with caplog.at_level(logging.INFO):
            diff = await reconciler.sync([key])

        assert diff.added == [key]
        assert label_store.update_calls == []
        assert f"라벨 추가: {key}=present" in caplog.text

    @pytest.mark.asyncio
    async def test_custom_value(self, block_scope, label_store):
        """라벨 값 설정."""
        reconciler = Reconciler(
            scope=block_scope, store=label_store, node_name="worker-1", value="yes"
        )
        reconciler.can_sync = True

        await reconciler.sync([f"{KEY_PREFIX}disk-wwn-abc"])

        assert label_store.labels == {f"{KEY_PREFIX}disk-wwn-abc": "yes"}


class TestReconcilerErrors:
    """저장소 오류 전파."""

    @pytest.mark.asyncio
    async def test_get_error_propagates(self, block_scope):
        store = AsyncMock()
        store.get_labels = AsyncMock(side_effect=KubeAPIError("boom", status_code=500))
        reconciler = Reconciler(scope=block_scope, store=store, node_name="worker-1")
        reconciler.can_sync = True

        with pytest.raises(KubeAPIError):
            await reconciler.sync(["x"])

        store.update_labels.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_error_propagates(self, block_scope):
        store = AsyncMock()
        store.get_labels = AsyncMock(return_value=NodeLabels(labels={}, resource_version="7"))
        store.update_labels = AsyncMock(side_effect=KubeAPIError("conflict", status_code=409))
        reconciler = Reconciler(scope=block_scope, store=store, node_name="worker-1")
        reconciler.can_sync = True

        with pytest.raises(KubeAPIError):
            await reconciler.sync([f"{KEY_PREFIX}disk-wwn-abc"])

        store.update_labels.assert_awaited_once_with(
            "worker-1", {f"{KEY_PREFIX}disk-wwn-abc": "present"}, "7"
        )
