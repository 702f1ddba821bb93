# kiosk_agent/application/command_processor.py
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from kiosk_agent.application.app_actuator import AppActuator
from kiosk_agent.application.policy_enforcer import PolicyEnforcer
from kiosk_agent.domain.commands.remote_command import RemoteCommand
from kiosk_agent.domain.device.enums import KioskCommand, OrchestratorStatus
from kiosk_agent.infrastructure.backend.remote_state_client import RemoteStateClient

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str], None]


@dataclass
class DrainReport:
    processed: List[str] = field(default_factory=list)
    acknowledged: List[str] = field(default_factory=list)
    unknown: List[str] = field(default_factory=list)


class CommandProcessor:
    """Drains the remote command queue, oldest first, one command at a time.

    Every command is acknowledged after its effect was attempted, unknown
    ones included; a failed acknowledgment leaves it pending, so effects
    must be safe to repeat.
    """

    def __init__(
        self,
        client: RemoteStateClient,
        actuator: AppActuator,
        policy: PolicyEnforcer,
        on_status: Optional[StatusCallback] = None,
        batch_limit: int = 20,
    ):
        self._client = client
        self._actuator = actuator
        self._policy = policy
        self._on_status = on_status
        self.batch_limit = batch_limit

    async def drain(self, kiosk_enabled: bool = True) -> DrainReport:
        report = DrainReport()

        pending = await self._client.fetch_pending_commands(self.batch_limit)
        if not pending:
            return report

        logger.info("Draining %s pending command(s)", len(pending))
        for remote in pending:
            report.processed.append(remote.id)
            acked = await self._process(remote, kiosk_enabled, report)
            if acked:
                report.acknowledged.append(remote.id)

        return report

    async def _process(self, remote: RemoteCommand, kiosk_enabled: bool, report: DrainReport) -> bool:
        kind = remote.kind
        logger.info("Executing command | id=%s command=%r", remote.id, remote.normalized)

        try:
            match kind:
                case KioskCommand.RESTART_APPS:
                    await self._actuator.restart(kiosk_enabled)

                case KioskCommand.START_KIOSK:
                    await self._policy.apply(self._actuator.config.kiosk_app)
                    await self._actuator.launch_kiosk_app(True)

                case KioskCommand.STOP_KIOSK:
                    await self._policy.clear()

                case _:
                    report.unknown.append(remote.id)
                    logger.warning(
                        "Unknown command acknowledged without effect | id=%s command=%r",
                        remote.id,
                        remote.command,
                    )
        except Exception:
            logger.exception("Command effect failed | id=%s command=%r", remote.id, remote.normalized)

        acked = await self._client.acknowledge_command(remote.id)
        if not acked:
            logger.warning("Command acknowledgment failed, will be redelivered | id=%s", remote.id)
        elif kind is KioskCommand.RESTART_APPS and self._on_status is not None:
            self._on_status(OrchestratorStatus.RESTART_EXECUTED.value)

        return acked
