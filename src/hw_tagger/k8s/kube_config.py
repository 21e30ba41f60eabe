"""Kubernetes 접속 정보 로드 모듈.

1. 클러스터 내부 (ServiceAccount 토큰)
2. 실패 시 kubeconfig 파일 (~/.kube/config)
"""

from __future__ import annotations

import base64
import logging
import os
import ssl
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from src.hw_tagger.config.settings import ConfigurationError

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")


@dataclass
class KubeConfig:
    """API 서버 접속 정보.

    Attributes:
        server: API 서버 URL (예: https://10.0.0.1:443)
        token: Bearer 토큰
        ca_file: CA 인증서 파일 경로
        cert_file: 클라이언트 인증서 파일 경로
        key_file: 클라이언트 키 파일 경로
        verify: TLS 검증 여부
        temp_files: kubeconfig *-data 항목을 풀어 쓴 임시 파일 (cleanup 시 삭제)
    """

    server: str
    token: str | None = None
    ca_file: str | None = None
    cert_file: str | None = None
    key_file: str | None = None
    verify: bool = True
    temp_files: list[str] = field(default_factory=list)

    def ssl_context(self) -> ssl.SSLContext | bool:
        """httpx verify 인자용 SSL 컨텍스트."""
        if not self.verify:
            return False
        context = ssl.create_default_context(cafile=self.ca_file)
        if self.cert_file:
            context.load_cert_chain(self.cert_file, self.key_file)
        return context

    def auth_headers(self) -> dict[str, str]:
        """인증 헤더."""
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    def cleanup(self) -> None:
        """임시 인증서/키 파일 삭제."""
        for path in self.temp_files:
            try:
                os.unlink(path)
            except FileNotFoundError:
                continue
            logger.debug(f"임시 파일 삭제: {path}")
        self.temp_files.clear()


def load_incluster_config(
    service_account_dir: Path = SERVICE_ACCOUNT_DIR,
) -> KubeConfig:
    """클러스터 내부 설정 로드.

    Raises:
        ConfigurationError: 클러스터 내부가 아니거나 토큰이 없을 때
    """
    host = os.environ.get("KUBERNETES_SERVICE_HOST")
    port = os.environ.get("KUBERNETES_SERVICE_PORT")
    if not host or not port:
        raise ConfigurationError(
            "클러스터 내부 환경 아님 (KUBERNETES_SERVICE_HOST/PORT 미설정)"
        )

    token_path = service_account_dir / "token"
    ca_path = service_account_dir / "ca.crt"
    try:
        token = token_path.read_text(encoding="utf-8").strip()
    except OSError as e:
        raise ConfigurationError(f"ServiceAccount 토큰 읽기 실패: {e}") from e
    if not token:
        raise ConfigurationError(f"ServiceAccount 토큰 비어있음: {token_path}")

    if ":" in host:
        host = f"[{host}]"  # IPv6
    return KubeConfig(
        server=f"https://{host}:{port}",
        token=token,
        ca_file=str(ca_path) if ca_path.exists() else None,
    )


def default_kubeconfig_path() -> Path:
    """기본 kubeconfig 경로 ($KUBECONFIG 첫 항목 또는 ~/.kube/config)."""
    env = os.environ.get("KUBECONFIG")
    if env:
        return Path(env.split(os.pathsep)[0]).expanduser()
    return Path.home() / ".kube" / "config"


def _named(items: list[dict[str, Any]] | None, name: str, kind: str) -> dict[str, Any]:
    for item in items or []:
        if item.get("name") == name:
            return item.get(kind) or {}
    raise ConfigurationError(f"kubeconfig에 {kind} '{name}' 없음")


def _materialize(data: str, suffix: str, temp_files: list[str]) -> str:
    """base64 *-data 항목을 임시 파일로 저장 (경로를 temp_files에 기록)."""
    handle = tempfile.NamedTemporaryFile(
        prefix="hw-tagger-", suffix=suffix, delete=False
    )
    temp_files.append(handle.name)
    with handle:
        handle.write(base64.b64decode(data))
    return handle.name


def _resolve(path: str | None, base_dir: Path) -> str | None:
    if not path:
        return None
    resolved = Path(path).expanduser()
    if not resolved.is_absolute():
        resolved = base_dir / resolved
    return str(resolved)


def load_kubeconfig(path: str | Path | None = None) -> KubeConfig:
    """kubeconfig 파일에서 current-context 설정 로드.

    Args:
        path: kubeconfig 경로 (없으면 기본 경로)

    Returns:
        KubeConfig

    Raises:
        ConfigurationError: 파일이 없거나 형식이 잘못되었을 때
    """
    config_path = Path(path).expanduser() if path else default_kubeconfig_path()
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"kubeconfig 읽기 실패: {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"kubeconfig 파싱 실패: {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"kubeconfig 형식 오류: {config_path}")

    context_name = data.get("current-context")
    if not context_name:
        raise ConfigurationError(f"kubeconfig current-context 없음: {config_path}")

    context = _named(data.get("contexts"), context_name, "context")
    cluster = _named(data.get("clusters"), context.get("cluster", ""), "cluster")
    user: dict[str, Any] = {}
    if context.get("user"):
        user = _named(data.get("users"), context["user"], "user")

    server = cluster.get("server")
    if not server:
        raise ConfigurationError(f"kubeconfig cluster server 없음: {config_path}")

    base_dir = config_path.parent

    token = user.get("token")
    if not token and user.get("tokenFile"):
        token_path = Path(_resolve(user["tokenFile"], base_dir))
        try:
            token = token_path.read_text(encoding="utf-8").strip()
        except OSError as e:
            raise ConfigurationError(f"토큰 파일 읽기 실패: {token_path}: {e}") from e

    temp_files: list[str] = []

    ca_file = _resolve(cluster.get("certificate-authority"), base_dir)
    if cluster.get("certificate-authority-data"):
        ca_file = _materialize(cluster["certificate-authority-data"], ".crt", temp_files)

    cert_file = _resolve(user.get("client-certificate"), base_dir)
    if user.get("client-certificate-data"):
        cert_file = _materialize(user["client-certificate-data"], ".crt", temp_files)

    key_file = _resolve(user.get("client-key"), base_dir)
    if user.get("client-key-data"):
        key_file = _materialize(user["client-key-data"], ".key", temp_files)

    return KubeConfig(
        server=server.rstrip("/"),
        token=token,
        ca_file=ca_file,
        cert_file=cert_file,
        key_file=key_file,
        verify=not cluster.get("insecure-skip-tls-verify", False),
        temp_files=temp_files,
    )


def load_config(kubeconfig: str = "") -> KubeConfig:
    """접속 정보 로드 (클러스터 내부 → kubeconfig 순).

    Args:
        kubeconfig: kubeconfig 경로 (없으면 기본 경로)

    Raises:
        ConfigurationError: 둘 다 실패 시
    """
    try:
        return load_incluster_config()
    except ConfigurationError as e:
        logger.info(f"{e}")
        logger.info("로컬 kubeconfig로 대체")

    config = load_kubeconfig(kubeconfig or None)
    logger.info(f"kubeconfig 로드: {config.server}")
    return config
