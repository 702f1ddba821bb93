import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Set

from kiosk_agent.core.nats_client import NATSClient
from kiosk_agent.core.nats_subjects import AgentEvents, NatsSubjects
from kiosk_agent.domain.device.device_state import CycleDecision
from kiosk_agent.domain.device.enums import OrchestratorStatus

logger = logging.getLogger(__name__)

STATUS_EVENT_TYPE = "KIOSK_STATUS"

StatusListener = Callable[[str], None]


class StatusReporter:
    """The one user-visible status line.

    Transitions are logged, handed to listeners and, when NATS is
    configured, published as telemetry. Repeating the current status is a
    no-op.
    """

    def __init__(self, device_id: str = "", nats: Optional[NATSClient] = None):
        self.device_id = device_id
        self._nats = nats
        self._status: str = OrchestratorStatus.STARTING.value
        self._decision: Optional[CycleDecision] = None
        self._listeners: List[StatusListener] = []
        self._pending: Set[asyncio.Task] = set()

    @property
    def status(self) -> str:
        return self._status

    def add_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def update(self, status: str, decision: Optional[CycleDecision] = None) -> None:
        if decision is not None:
            self._decision = decision

        if status == self._status:
            return

        previous = self._status
        self._status = status
        logger.info("Status | %s -> %s", previous, status)

        for listener in self._listeners:
            try:
                listener(status)
            except Exception:
                logger.exception("Status listener failed")

        self._schedule_publish(status)

    def _schedule_publish(self, status: str) -> None:
        if self._nats is None or not self._nats.is_enabled() or not self.device_id:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return

        task = loop.create_task(self._publish(status, self._decision))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _publish(self, status: str, decision: Optional[CycleDecision]) -> bool:
        subject = NatsSubjects.agent_event(self.device_id, AgentEvents.KIOSK_STATUS)
        event = {
            "event_type": STATUS_EVENT_TYPE,
            "subject": subject,
            "payload": {
                "device_id": self.device_id,
                "status": status,
                "should_run": decision.should_run if decision else None,
                "kiosk_enabled": decision.kiosk_enabled if decision else None,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        }

        try:
            await self._nats.publish(subject, event)
            return True
        except Exception:
            logger.warning("Status publish failed | subject=%s", subject, exc_info=True)
            return False

    async def flush(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
