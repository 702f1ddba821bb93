# kiosk_agent/main.py

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from pydantic import ValidationError

from kiosk_agent.core.config import settings
from kiosk_agent.core.logging_config import configure_logging
from kiosk_agent.core.nats_client import nats_client
from kiosk_agent.core.nats_subjects import AgentCommands, NatsSubjects
from kiosk_agent.core.orchestrator_service import orchestrator_service
from kiosk_agent.domain.models.orchestrator_config import OrchestratorConfig
from kiosk_agent.infrastructure.android.adb_bridge import AdbBridge, AdbUnavailableError
from kiosk_agent.infrastructure.android.device_identity import read_device_identity
from kiosk_agent.infrastructure.config.orchestrator_config_repository import orchestrator_config_repository
from kiosk_agent.interfaces.handlers.supervisor_command_handler import handle_supervisor_command

logger = logging.getLogger(__name__)


async def run_agent(force_start: bool, restart_sequence: bool) -> int:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass

    try:
        started = await orchestrator_service.start(
            force_start=force_start,
            restart_sequence=restart_sequence,
        )
        if not started:
            logger.error("Orchestrator not started: %s", orchestrator_service.status)
            return 1

        if nats_client.is_enabled():
            device_id = orchestrator_service.loop.config.device_id
            try:
                await nats_client.subscribe(
                    NatsSubjects.agent_command(device_id, AgentCommands.SUPERVISOR),
                    handle_supervisor_command,
                )
            except Exception:
                logger.exception("NATS unavailable, supervisor control disabled")

        logger.info("Kiosk agent started")
        await stop_event.wait()

    finally:
        logger.info("Kiosk agent stopping.")
        await orchestrator_service.stop()
        await orchestrator_service.status_reporter.flush()
        await nats_client.close()
        orchestrator_service.shutdown()

    return 0


def configure(args: argparse.Namespace) -> int:
    device_id = args.device_id
    if not device_id:
        try:
            device_id = read_device_identity(AdbBridge())
        except AdbUnavailableError as exc:
            print(f"Cannot derive device id: {exc}", file=sys.stderr)
            return 2

    try:
        config = OrchestratorConfig(
            base_url=args.base_url or settings.DEFAULT_BASE_URL,
            api_key=args.api_key or settings.DEFAULT_API_KEY,
            site_id=args.site_id,
            device_id=device_id,
            server_app=args.server_app,
            kiosk_app=args.kiosk_app,
        )
    except ValidationError as exc:
        print(f"Invalid configuration:\n{exc}", file=sys.stderr)
        return 2

    orchestrator_config_repository.save_config(config)
    print(
        "Configuration saved.\n"
        f"site_id: {config.site_id}\n"
        f"device_id: {config.device_id}\n"
        f"server_app: {config.server_app}\n"
        f"kiosk_app: {config.kiosk_app}\n"
        f"file: {orchestrator_config_repository.path}"
    )
    return 0


def print_device_id(_args: argparse.Namespace) -> int:
    try:
        print(read_device_identity(AdbBridge()))
    except AdbUnavailableError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kiosk-agent", description="Kiosk orchestrator agent")
    sub = parser.add_subparsers(dest="command", required=True)

    run_parser = sub.add_parser("run", help="Run the reconciliation loop")
    run_parser.add_argument("--force-start", action="store_true", help="Register, activate and lock before looping")
    run_parser.add_argument("--restart-sequence", action="store_true", help="Cold start both apps on force start")

    cfg_parser = sub.add_parser("configure", help="Write the orchestrator config file")
    cfg_parser.add_argument("--site-id", required=True)
    cfg_parser.add_argument("--server-app", required=True, help="Package of the server app")
    cfg_parser.add_argument("--kiosk-app", required=True, help="Package of the kiosk app")
    cfg_parser.add_argument("--base-url", default="")
    cfg_parser.add_argument("--api-key", default="")
    cfg_parser.add_argument("--device-id", default="", help="Defaults to the id derived from the device")

    sub.add_parser("device-id", help="Print the stable device id")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "configure":
        return configure(args)
    if args.command == "device-id":
        return print_device_id(args)

    configure_logging()
    try:
        return asyncio.run(run_agent(args.force_start, args.restart_sequence))
    except KeyboardInterrupt:
        logging.info("Kiosk agent stopping due to keyboard interrupt.")
        return 0


if __name__ == "__main__":
    sys.exit(main())
