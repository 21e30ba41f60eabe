"""Kubernetes Node 라벨 클라이언트 모듈.

httpx 기반 비동기 HTTP 클라이언트.
Node 라벨 조회 / 전체 교체만 지원.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from src.hw_tagger.k8s.kube_config import KubeConfig

logger = logging.getLogger(__name__)


class KubeAPIError(Exception):
    """Kubernetes API 오류 (조회/갱신 실패)."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


@dataclass
class NodeLabels:
    """Node 라벨 조회 결과.

    Attributes:
        labels: 현재 라벨 전체
        resource_version: 조회 시점 resourceVersion (낙관적 동시성 제어용)
    """

    labels: dict[str, str] = field(default_factory=dict)
    resource_version: str | None = None


class NodeLabelClient:
    """httpx 기반 Node 라벨 클라이언트.

    기능:
    - Node 라벨 조회 (GET /api/v1/nodes/{name})
    - Node 라벨 전체 교체 (JSON Patch, resourceVersion 검증)
    - 연결 상태 관리

    Examples:
        ```python
        client = NodeLabelClient(config=load_config(), timeout=30.0)
        await client.connect()

        current = await client.get_labels("worker-1")
        labels = dict(current.labels, **{"example.io/block-disk-sn-X": "present"})
        await client.update_labels("worker-1", labels, current.resource_version)

        await client.close()
        ```
    """

    def __init__(
        self,
        config: KubeConfig,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """초기화.

        Args:
            config: API 서버 접속 정보
            timeout: 요청 타임아웃 (초)
            transport: httpx 트랜스포트 (테스트용)
        """
        self.config = config
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """HTTP 클라이언트 초기화."""
        kwargs: dict[str, Any] = {}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        else:
            kwargs["verify"] = self.config.ssl_context()

        self._client = httpx.AsyncClient(
            base_url=f"{self.config.server}/api/v1",
            headers={
                "Accept": "application/json",
                **self.config.auth_headers(),
            },
            timeout=httpx.Timeout(self.timeout),
            **kwargs,
        )
        logger.info(f"NodeLabelClient 연결: {self.config.server}")

    async def close(self) -> None:
        """클라이언트 종료 (kubeconfig 임시 인증서 파일 삭제 포함)."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("NodeLabelClient 연결 종료")
        self.config.cleanup()

    async def get_labels(self, node_name: str) -> NodeLabels:
        """Node 라벨 조회.

        Args:
            node_name: Node 이름

        Returns:
            NodeLabels

        Raises:
            KubeAPIError: 조회 실패 시
        """
        self._ensure_connected()

        try:
            response = await self._client.get(f"/nodes/{node_name}")
        except httpx.HTTPError as e:
            raise KubeAPIError(f"Node 조회 요청 실패 ({node_name}): {e}") from e

        self._check_response(response, f"Node 조회 실패 ({node_name})")

        try:
            node = response.json()
        except json.JSONDecodeError as e:
            raise KubeAPIError(f"Node 응답 파싱 실패 ({node_name}): {e}") from e

        metadata = node.get("metadata") or {}
        return NodeLabels(
            labels=dict(metadata.get("labels") or {}),
            resource_version=metadata.get("resourceVersion"),
        )

    async def update_labels(
        self,
        node_name: str,
        labels: dict[str, str],
        resource_version: str | None = None,
    ) -> None:
        """Node 라벨 전체 교체.

        resource_version이 주어지면 조회 이후 Node가 변경된 경우
        API 서버가 요청을 거부합니다 (JSON Patch test).

        Args:
            node_name: Node 이름
            labels: 새 라벨 전체
            resource_version: 조회 시점 resourceVersion

        Raises:
            KubeAPIError: 갱신 실패 시
        """
        self._ensure_connected()

        patch: list[dict[str, Any]] = []
        if resource_version is not None:
            patch.append(
                {
                    "op": "test",
                    "path": "/metadata/resourceVersion",
                    "value": resource_version,
                }
            )
        patch.append({"op": "replace", "path": "/metadata/labels", "value": labels})

        try:
            response = await self._client.patch(
                f"/nodes/{node_name}",
                content=json.dumps(patch),
                headers={"Content-Type": "application/json-patch+json"},
            )
        except httpx.HTTPError as e:
            raise KubeAPIError(f"Node 갱신 요청 실패 ({node_name}): {e}") from e

        self._check_response(response, f"Node 갱신 실패 ({node_name})")
        logger.debug(f"Node 라벨 갱신 완료: {node_name} ({len(labels)}개)")

        try:
            response = await self._client.get("/", timeout=5.0)
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"헬스체크 실패: {e}")
            return False

    def _check_response(self, response: httpx.Response, message: str) -> None:
        """응답 상태 확인.

        Raises:
            KubeAPIError: 2xx 이외
        """
        status = response.status_code
        if 200 <= status < 300:
            return

        error_body = response.text
        logger.error(f"{message}: HTTP {status}: {error_body}")
        raise KubeAPIError(f"{message}: HTTP {status}", status_code=status, details=error_body)

    def _ensure_connected(self) -> None:
        """연결 상태 확인."""
        if self._client is None:
            raise RuntimeError("NodeLabelClient가 연결되지 않음. connect() 먼저 호출하세요.")
