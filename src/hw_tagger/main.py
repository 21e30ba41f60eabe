"""Hardware Tagger 메인 진입점.

udev 디바이스를 감시하여 Kubernetes Node 라벨을 동기화합니다.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

from pydantic import ValidationError

from src.hw_tagger.config.scopes import load_scopes
from src.hw_tagger.config.settings import ConfigurationError, Settings
from src.hw_tagger.core.agent import TaggerAgent
from src.hw_tagger.devices.event_source import DeviceSourceError
from src.hw_tagger.devices.udev_backend import UdevBackend
from src.hw_tagger.health.healthcheck import HealthCheckServer
from src.hw_tagger.k8s.kube_config import load_config
from src.hw_tagger.k8s.node_client import KubeAPIError, NodeLabelClient

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1


def setup_logging(level: str = "INFO") -> None:
    """로깅 설정."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """CLI 인자 파싱."""
    parser = argparse.ArgumentParser(
        description="udev 디바이스 → Kubernetes Node 라벨 동기화 에이전트",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="dry run (Node를 갱신하지 않음)",
    )
    parser.add_argument(
        "--scopes-file",
        default=None,
        help="감시 범위 JSON 파일 경로",
    )
    parser.add_argument(
        "--kubeconfig",
        default=None,
        help="kubeconfig 경로 (클러스터 외부 실행 시)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="로그 레벨 (DEBUG, INFO, WARNING, ERROR)",
    )
    return parser.parse_args(argv)


def load_settings(args: argparse.Namespace) -> Settings:
    """환경 변수 + CLI 인자로 설정 생성 (CLI 우선)."""
    overrides = {
        "scopes_file": args.scopes_file,
        "kubeconfig": args.kubeconfig,
        "log_level": args.log_level,
    }
    if args.dry_run:
        overrides["dry_run"] = True
    return Settings(**{k: v for k, v in overrides.items() if v is not None})


def build_agent(settings: Settings) -> TaggerAgent:
    """설정으로부터 에이전트 조립.

    Raises:
        ConfigurationError: 설정/인증 정보 오류 시
        DeviceSourceError: udev 초기화 실패 시
    """
    settings.require_node_name()
    scopes = load_scopes(settings.scopes_file)
    backend = UdevBackend()
    # 인증 정보는 마지막에 로드 (임시 인증서 파일은 store.close()에서 삭제)
    store = NodeLabelClient(
        config=load_config(settings.kubeconfig),
        timeout=settings.kube_timeout,
    )
    return TaggerAgent(
        settings=settings,
        scopes=scopes,
        backend=backend,
        store=store,
    )


async def run_agent(agent: TaggerAgent, settings: Settings) -> int:
    """에이전트 실행 (종료 시그널 또는 치명적 오류까지).

    Returns:
        종료 코드
    """
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def handle_signal(sig: signal.Signals) -> None:
        logger.info(f"시그널 수신: {sig.name}, 종료합니다")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    health_server: HealthCheckServer | None = None
    if settings.health_enabled:
        health_server = HealthCheckServer(
            port=settings.health_port,
            stats_callback=agent.get_stats,
        )
        health_server.start()

    agent_task = asyncio.create_task(agent.start())
    stop_task = asyncio.create_task(stop_event.wait())

    try:
        await asyncio.wait({agent_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)

        if agent_task.done():
            # 감시자는 종료되지 않으므로 여기 도달하면 치명적 오류
            agent_task.result()
            logger.critical("감시자가 예기치 않게 종료됨")
            return EXIT_FATAL

        agent_task.cancel()
        try:
            await agent_task
        except asyncio.CancelledError:
            pass
        return EXIT_OK

    except (DeviceSourceError, KubeAPIError) as e:
        logger.critical(f"치명적 오류: {e}")
        return EXIT_FATAL

    finally:
        stop_task.cancel()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        if health_server:
            health_server.stop()
        await agent.stop()


def main(argv: list[str] | None = None) -> int:
    """메인 함수."""
    args = parse_args(argv)

    try:
        settings = load_settings(args)
    except ValidationError as e:
        setup_logging()
        logger.critical(f"설정 오류: {e}")
        return EXIT_FATAL

    setup_logging(settings.log_level)

    logger.info("=" * 60)
    logger.info("Hardware Tagger")
    logger.info("=" * 60)

    try:
        agent = build_agent(settings)
    except ConfigurationError as e:
        logger.critical(f"설정 오류: {e}")
        return EXIT_FATAL
    except DeviceSourceError as e:
        logger.critical(f"udev 초기화 실패: {e}")
        return EXIT_FATAL

    return asyncio.run(run_agent(agent, settings))


def run() -> None:
    """진입점."""
    sys.exit(main())


if __name__ == "__main__":
    run()
