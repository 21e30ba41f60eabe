"""디바이스 백엔드 모듈."""

from src.hw_tagger.devices.event_source import DeviceBackend, DeviceSourceError, EventSource

__all__ = ["DeviceBackend", "DeviceSourceError", "EventSource"]
