"""udev 디바이스 스냅샷 모델.

디바이스 백엔드가 생성하는 읽기 전용 데이터.
열거 결과 1건 또는 이벤트 1건마다 새로 생성되며 이후 변경되지 않음.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

ACTION_ADD = "add"
ACTION_REMOVE = "remove"


@dataclass(frozen=True)
class Device:
    """디바이스 스냅샷.

    Attributes:
        subsystem: 서브시스템 (예: "block", "net")
        devtype: 디바이스 타입 (예: "disk", "partition")
        syspath: /sys 경로
        sysname: sys 이름 (예: "sda")
        parent_sysname: 부모 디바이스 sys 이름
        devnode: 디바이스 노드 경로 (예: "/dev/sda")
        devpath: devpath (/sys 기준 상대 경로)
        sysnum: sys 번호
        driver: 드라이버명
        properties: udev 프로퍼티 (예: {"ID_WWN": "0x5000..."})
        tags: udev 태그
        attributes: sysfs 속성
    """

    subsystem: str = ""
    devtype: str = ""
    syspath: str = ""
    sysname: str = ""
    parent_sysname: str = ""
    devnode: str = ""
    devpath: str = ""
    sysnum: str = ""
    driver: str = ""
    properties: dict[str, str] = field(default_factory=dict)
    tags: dict[str, str] = field(default_factory=dict)
    attributes: dict[str, str] = field(default_factory=dict)

    def get_property(self, name: str) -> str:
        """프로퍼티 조회 (없으면 빈 문자열)."""
        return self.properties.get(name, "")


@dataclass(frozen=True)
class DeviceEvent:
    """디바이스 이벤트.

    Attributes:
        action: "add", "remove" 또는 기타 (change, bind 등)
        device: 대상 디바이스 (없을 수 있음)
    """

    action: Literal["add", "remove"] | str
    device: Device | None = None

    @property
    def is_add(self) -> bool:
        return self.action == ACTION_ADD

    @property
    def is_remove(self) -> bool:
        return self.action == ACTION_REMOVE
