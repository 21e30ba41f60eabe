"""Hardware Tagger 설정 모듈.

환경 변수 기반 단일 Settings 클래스.
"""

from __future__ import annotations

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """시작 시 설정 오류 (Node 이름 누락, 인증 정보 없음 등)."""


class Settings(BaseSettings):
    """Hardware Tagger 설정.

    환경 변수 PREFIX: HW_TAGGER_
    (node_name은 Downward API 관례에 따라 NODE_NAME도 허용)

    Examples:
        ```bash
        export NODE_NAME=worker-1
        export HW_TAGGER_DRY_RUN=true
        export HW_TAGGER_SCOPES_FILE=/etc/hw-tagger/scopes.json
        ```
    """

    model_config = SettingsConfigDict(
        env_prefix="HW_TAGGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # === 호스트 식별 ===
    node_name: str = Field(
        default="",
        validation_alias=AliasChoices("node_name", "HW_TAGGER_NODE_NAME", "NODE_NAME"),
        description="라벨을 관리할 Node 이름",
    )

    # === 동작 모드 ===
    dry_run: bool = Field(
        default=False,
        description="dry run (Node 갱신 없이 변경 내용만 로그)",
    )

    # === Kubernetes 설정 ===
    kubeconfig: str = Field(
        default="",
        description="kubeconfig 경로 (클러스터 외부 실행 시, 비우면 기본 경로)",
    )
    kube_timeout: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="API 서버 요청 타임아웃 (초)",
    )

    # === 감시 설정 ===
    scopes_file: str = Field(
        default="",
        description="감시 범위 JSON 파일 경로 (비우면 기본 block 범위)",
    )
    queue_size: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="범위별 이벤트 큐 크기",
    )
    label_value: str = Field(
        default="present",
        min_length=1,
        max_length=63,
        description="라벨 값",
    )

    # === 헬스체크 설정 ===
    health_port: int = Field(
        default=8080,
        ge=1024,
        le=65535,
        description="헬스체크 HTTP 서버 포트",
    )
    health_enabled: bool = Field(
        default=False,
        description="헬스체크 서버 활성화 여부",
    )

    # === 로깅 설정 ===
    log_level: str = Field(
        default="INFO",
        description="로그 레벨 (DEBUG, INFO, WARNING, ERROR)",
    )

    @model_validator(mode="after")
    def validate_log_level(self) -> Settings:
        """로그 레벨 검증."""
        level = self.log_level.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"알 수 없는 log_level: {self.log_level}")
        self.log_level = level
        return self

    def require_node_name(self) -> str:
        """Node 이름 반환.

        Raises:
            ConfigurationError: 미설정 시
        """
        if not self.node_name:
            raise ConfigurationError("NODE_NAME 환경 변수가 필요합니다")
        return self.node_name
