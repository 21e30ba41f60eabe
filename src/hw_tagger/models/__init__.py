"""데이터 모델 모듈."""

from src.hw_tagger.models.device import ACTION_ADD, ACTION_REMOVE, Device, DeviceEvent
from src.hw_tagger.models.scope import SyncSignal, WatchScope, accept_all

__all__ = [
    "ACTION_ADD",
    "ACTION_REMOVE",
    "Device",
    "DeviceEvent",
    "SyncSignal",
    "WatchScope",
    "accept_all",
]
