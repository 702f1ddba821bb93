import json
import logging

from kiosk_agent.core.orchestrator_service import OrchestratorService, orchestrator_service
from kiosk_agent.domain.device.enums import SupervisorAction

logger = logging.getLogger(__name__)


async def dispatch_supervisor_action(service: OrchestratorService, raw_action) -> bool:
    action = None
    if isinstance(raw_action, str):
        try:
            action = SupervisorAction(raw_action.strip().lower())
        except ValueError:
            action = None

    match action:
        case SupervisorAction.START:
            return await service.start()

        case SupervisorAction.FORCE_START:
            return await service.start(force_start=True)

        case SupervisorAction.RESTART_SEQUENCE:
            return await service.start(force_start=True, restart_sequence=True)

        case SupervisorAction.STOP:
            await service.stop()
            return True

        case SupervisorAction.ENFORCE_FOREGROUND:
            return await service.enforce_foreground()

        case _:
            logger.warning("Unknown supervisor action: %s", raw_action)
            return False


async def handle_supervisor_command(msg, service: OrchestratorService = orchestrator_service):

    try:
        payload = json.loads(msg.data.decode())
        raw_action = payload.get("action") if isinstance(payload, dict) else None

        logger.info(
            "SUPERVISOR CONTROL RECEIVED | subject=%s action=%s",
            msg.subject,
            raw_action,
        )

        ok = await dispatch_supervisor_action(service, raw_action)
        logger.info("Supervisor action handled | action=%s ok=%s status=%s", raw_action, ok, service.status)

    except Exception:
        logger.exception("Error handling supervisor control command")
