"""감시 범위 설정 로드 모듈.

JSON 파일에서 WatchScope 목록을 읽음.
파일이 지정되지 않으면 기본 block 디스크 범위 사용.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from src.hw_tagger.config.settings import ConfigurationError
from src.hw_tagger.models.device import Device
from src.hw_tagger.models.scope import WatchScope, accept_all

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "node-devices.alpha.kubernetes.io"


class ScopeConfig(BaseModel):
    """감시 범위 1개 정의.

    Scope JSON Format:
        ```json
        {
            "scopes": [
                {
                    "prefix": "node-devices.alpha.kubernetes.io",
                    "subsystem": "block",
                    "device_types": ["disk"],
                    "id_properties": {"wwn": "ID_WWN", "sn": "ID_SERIAL_SHORT"}
                }
            ]
        }
        ```
    """

    prefix: str = Field(min_length=1)
    subsystem: str = Field(min_length=1)
    device_types: list[str] = Field(default_factory=list)
    id_properties: dict[str, str] = Field(default_factory=dict)

    def to_scope(self) -> WatchScope:
        return WatchScope(
            prefix=self.prefix,
            subsystem=self.subsystem,
            filter=devtype_filter(self.device_types),
            id_properties=dict(self.id_properties),
        )


class ScopesFile(BaseModel):
    scopes: list[ScopeConfig] = Field(min_length=1)


def devtype_filter(device_types: list[str]) -> Callable[[Device], bool]:
    """디바이스 타입 필터 생성 (빈 목록이면 전체 허용)."""
    if not device_types:
        return accept_all
    allowed = frozenset(device_types)

    def _filter(device: Device) -> bool:
        return device.devtype in allowed

    return _filter


def filter_block_disk(device: Device) -> bool:
    """block 서브시스템에서 disk만 허용 (파티션 제외)."""
    return device.devtype == "disk"


def default_scopes() -> list[WatchScope]:
    """기본 감시 범위.

    ID_SERIAL, DM_UUID는 너무 길고 DM_NAME은 LVM 디바이스
    (docker pool 등)까지 잡으므로 제외.
    """
    return [
        WatchScope(
            prefix=DEFAULT_PREFIX,
            subsystem="block",
            filter=filter_block_disk,
            id_properties={
                "wwn": "ID_WWN",
                "sn": "ID_SERIAL_SHORT",
            },
        )
    ]


def check_ownership(scopes: list[WatchScope]) -> None:
    """범위 간 라벨 키 소유 영역 겹침 검사.

    한 범위의 key_prefix가 다른 범위의 key_prefix로 시작하면
    (예: "usb-"와 "usb-serial-") 앞쪽 범위의 동기화가
    뒤쪽 범위의 라벨을 삭제하므로 설정 오류로 처리합니다.

    Raises:
        ConfigurationError: 소유 영역이 겹칠 때
    """
    for i, scope in enumerate(scopes):
        for other in scopes[i + 1 :]:
            if scope.key_prefix.startswith(other.key_prefix) or other.key_prefix.startswith(
                scope.key_prefix
            ):
                raise ConfigurationError(
                    f"감시 범위 라벨 영역 겹침: {scope.name} ({scope.key_prefix}) / "
                    f"{other.name} ({other.key_prefix})"
                )


def load_scopes(path: str | Path | None = None) -> list[WatchScope]:
    """감시 범위 로드.

    Args:
        path: 범위 JSON 파일 경로 (없으면 기본 범위)

    Returns:
        WatchScope 리스트

    Raises:
        ConfigurationError: 파일 읽기/검증 실패 시
    """
    if not path:
        scopes = default_scopes()
        logger.info(f"기본 감시 범위 사용: {[s.name for s in scopes]}")
        return scopes

    scopes_path = Path(path)
    try:
        data = json.loads(scopes_path.read_text(encoding="utf-8"))
        parsed = ScopesFile.model_validate(data)
    except OSError as e:
        raise ConfigurationError(f"감시 범위 파일 읽기 실패: {scopes_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"감시 범위 JSON 오류: {scopes_path}: {e}") from e
    except ValidationError as e:
        raise ConfigurationError(f"감시 범위 검증 실패: {scopes_path}: {e}") from e

    scopes = [item.to_scope() for item in parsed.scopes]
    names = [s.name for s in scopes]
    if len(set(names)) != len(names):
        raise ConfigurationError(f"중복된 감시 범위: {names}")
    check_ownership(scopes)

    logger.info(f"감시 범위 로드: {names}")
    return scopes
