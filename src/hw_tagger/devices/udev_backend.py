"""pyudev 기반 디바이스 백엔드.

- 열거: pyudev.Context.list_devices(subsystem=...)
- 구독: netlink Monitor + asyncio add_reader (비차단 수신)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import pyudev

from src.hw_tagger.devices.event_source import DeviceSourceError
from src.hw_tagger.models.device import Device, DeviceEvent

logger = logging.getLogger(__name__)


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _read_attributes(udev_device: pyudev.Device) -> dict[str, str]:
    """sysfs 속성 읽기 (읽을 수 없는 속성은 제외)."""
    attributes: dict[str, str] = {}
    for name in udev_device.attributes.available_attributes:
        try:
            attributes[name] = _text(udev_device.attributes.get(name))
        except (OSError, KeyError):
            # write-only 속성 등
            continue
    return attributes


def device_from_udev(udev_device: pyudev.Device, with_attributes: bool = True) -> Device:
    """pyudev.Device → Device 스냅샷 변환.

    Args:
        udev_device: pyudev 디바이스
        with_attributes: sysfs 속성 포함 여부

    Returns:
        Device
    """
    parent = udev_device.parent
    return Device(
        subsystem=_text(udev_device.subsystem),
        devtype=_text(udev_device.device_type),
        syspath=_text(udev_device.sys_path),
        sysname=_text(udev_device.sys_name),
        parent_sysname=_text(parent.sys_name) if parent is not None else "",
        devnode=_text(udev_device.device_node),
        devpath=_text(udev_device.device_path),
        sysnum=_text(udev_device.sys_number),
        driver=_text(udev_device.driver),
        properties={k: _text(v) for k, v in udev_device.properties.items()},
        tags={tag: "" for tag in udev_device.tags},
        attributes=_read_attributes(udev_device) if with_attributes else {},
    )


class UdevSubscription:
    """udev netlink 이벤트 구독.

    생성 시 모니터가 수신을 시작하므로 이후 이벤트는 소켓에 버퍼링됩니다.
    async for로 이벤트를 읽습니다.
    """

    def __init__(self, context: pyudev.Context, subsystem: str, with_attributes: bool = True) -> None:
        """초기화.

        Raises:
            DeviceSourceError: netlink 소켓 생성/수신 시작 실패 시
        """
        self.subsystem = subsystem
        self.with_attributes = with_attributes
        try:
            self._monitor = pyudev.Monitor.from_netlink(context, source="udev")
            self._monitor.filter_by(subsystem=subsystem)
            self._monitor.start()
        except (OSError, ValueError) as e:
            raise DeviceSourceError(f"udev netlink 소켓 생성 실패 ({subsystem}): {e}") from e
        logger.info(f"udev 이벤트 구독 시작: {subsystem}")

    def __aiter__(self) -> UdevSubscription:
        return self

    async def __anext__(self) -> DeviceEvent:
        while True:
            udev_device = self._monitor.poll(timeout=0)
            if udev_device is not None:
                return DeviceEvent(
                    action=_text(udev_device.action),
                    device=device_from_udev(udev_device, self.with_attributes),
                )
            await self._wait_readable()

    async def _wait_readable(self) -> None:
        """소켓 수신 대기."""
        loop = asyncio.get_running_loop()
        readable: asyncio.Future[None] = loop.create_future()
        fd = self._monitor.fileno()

        def _on_readable() -> None:
            if not readable.done():
                readable.set_result(None)

        loop.add_reader(fd, _on_readable)
        try:
            await readable
        finally:
            loop.remove_reader(fd)


class UdevBackend:
    """pyudev 기반 디바이스 백엔드.

    Examples:
        ```python
        backend = UdevBackend()

        for device in backend.enumerate("block"):
            print(device.sysname, device.properties.get("ID_WWN"))

        async for event in backend.subscribe("block"):
            print(event.action, event.device.sysname)
        ```
    """

    def __init__(self, with_attributes: bool = True) -> None:
        """초기화.

        Args:
            with_attributes: 디바이스 스냅샷에 sysfs 속성 포함 여부
        """
        self.with_attributes = with_attributes
        try:
            self.context = pyudev.Context()
        except (ImportError, OSError) as e:
            raise DeviceSourceError(f"libudev 초기화 실패: {e}") from e

    def enumerate(self, subsystem: str) -> list[Device]:
        """서브시스템 디바이스 열거."""
        devices = [
            device_from_udev(udev_device, self.with_attributes)
            for udev_device in self.context.list_devices(subsystem=subsystem)
        ]
        logger.debug(f"udev 열거: {subsystem} {len(devices)}개")
        return devices

    def subscribe(self, subsystem: str) -> UdevSubscription:
        """이벤트 구독 시작."""
        return UdevSubscription(self.context, subsystem, self.with_attributes)
