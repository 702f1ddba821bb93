import asyncio
import logging
from typing import Optional

from kiosk_agent.application.app_actuator import AppActuator
from kiosk_agent.application.command_processor import CommandProcessor
from kiosk_agent.application.policy_enforcer import PolicyEnforcer
from kiosk_agent.core.status_reporter import StatusReporter
from kiosk_agent.domain.device.device_state import (
    CycleDecision,
    DeviceState,
    SessionState,
    LastKnownState,
    decide,
)
from kiosk_agent.domain.device.enums import OrchestratorStatus
from kiosk_agent.domain.models.orchestrator_config import OrchestratorConfig
from kiosk_agent.infrastructure.backend.remote_state_client import RemoteStateClient
from kiosk_agent.infrastructure.storage.local_state_cache import LocalStateCache

logger = logging.getLogger(__name__)


class ReconciliationLoop:
    """Converges the device to the backend's desired state, one cycle at a time.

    Each cycle fetches the device row, decides whether the managed apps
    should run and whether kiosk lockdown applies, actuates, then drains the
    command queue. When the backend is unreachable the last confirmed state
    (or the persisted local lock) is held, so a locked device stays locked
    through an outage.

    One instance per supervisor start; never run two against the same
    device. Cancellation is cooperative and only observed between cycles.
    """

    def __init__(
        self,
        config: OrchestratorConfig,
        client: RemoteStateClient,
        actuator: AppActuator,
        policy: PolicyEnforcer,
        command_processor: CommandProcessor,
        cache: LocalStateCache,
        status: StatusReporter,
        *,
        poll_interval: float = 5.0,
        kiosk_poll_interval: float = 2.0,
    ):
        self.config = config
        self.client = client
        self.actuator = actuator
        self.policy = policy
        self.command_processor = command_processor
        self.cache = cache
        self.status = status
        self.poll_interval = poll_interval
        self.kiosk_poll_interval = kiosk_poll_interval

        self.last_known = LastKnownState(local_lock=cache.is_local_lock_enabled())
        self.last_decision: Optional[CycleDecision] = None
        self.cycles = 0
        self._registered = False
        self._running = False
        self._wake = asyncio.Event()

    @property
    def session(self) -> SessionState:
        return self.actuator.session

    @property
    def running(self) -> bool:
        return self._running

    async def force_start(self, restart_sequence: bool = False) -> None:
        """Register, mark the device active and locked, and bring the apps up now."""
        self._registered = await self.client.register_device()
        if not await self.client.set_device_state(is_active=True, kiosk_mode=True):
            logger.warning("Force start: backend state not updated, relying on local lock")

        self._persist_local_lock(True)

        if restart_sequence:
            self.session.reset()

        await self.actuator.ensure_running(True)
        self.status.update(
            OrchestratorStatus.STARTED_MANUALLY.value,
            CycleDecision(reachable=self._registered, should_run=True, kiosk_enabled=True),
        )

    async def run(self) -> None:
        self._running = True
        logger.info(
            "Reconciliation loop started | device_id=%s poll=%ss kiosk_poll=%ss",
            self.config.device_id,
            self.poll_interval,
            self.kiosk_poll_interval,
        )

        while self._running:
            next_delay = await self.run_once()
            await self._sleep(next_delay)

        logger.info("Reconciliation loop stopped | device_id=%s cycles=%s", self.config.device_id, self.cycles)

    def stop(self) -> None:
        self._running = False
        self._wake.set()

    async def _sleep(self, delay: float) -> None:
        if not self._running:
            return
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def run_once(self) -> float:
        """Run one cycle and return the delay before the next one."""
        self.cycles += 1
        try:
            decision = await self._cycle()
        except Exception:
            logger.exception("Reconciliation cycle failed, treating as communication failure")
            decision = await self._fallback()

        self.last_decision = decision
        if decision.should_run and decision.kiosk_enabled:
            return self.kiosk_poll_interval
        return self.poll_interval

    async def _cycle(self) -> CycleDecision:
        if not self._registered:
            self._registered = await self.client.register_device()

        state = await self.client.fetch_state()
        if state is not None:
            self._observe(state)
            await self._touch_last_seen()

        decision = decide(state, self.last_known)
        logger.debug(
            "Cycle decision | reachable=%s should_run=%s kiosk=%s",
            decision.reachable,
            decision.should_run,
            decision.kiosk_enabled,
        )
        await self._apply(decision)
        return decision

    async def _fallback(self) -> CycleDecision:
        decision = decide(None, self.last_known)
        try:
            await self._apply(decision)
        except Exception:
            logger.exception("Fallback actuation failed")
            self.status.update(OrchestratorStatus.COMMUNICATION_FAILURE.value, decision)
        return decision

    def _observe(self, state: DeviceState) -> None:
        self.last_known.observe(state)
        self._persist_local_lock(state.locked)

    def _persist_local_lock(self, enabled: bool) -> None:
        self.last_known.local_lock = enabled
        try:
            self.cache.set_local_lock(enabled)
        except OSError:
            logger.exception("Failed to persist local kiosk lock | enabled=%s", enabled)

    async def _touch_last_seen(self) -> None:
        try:
            seen = await self.client.touch_last_seen()
        except Exception:
            logger.warning("touch_last_seen raised", exc_info=True)
            seen = False
        if not seen:
            logger.debug("last_seen heartbeat not written | device_id=%s", self.config.device_id)

    async def _apply(self, decision: CycleDecision) -> None:
        if decision.should_run:
            await self.actuator.ensure_running(decision.kiosk_enabled)

            if decision.reachable:
                await self.command_processor.drain(decision.kiosk_enabled)
                self.status.update(OrchestratorStatus.ACTIVE.value, decision)
            else:
                self.status.update(OrchestratorStatus.COMMUNICATION_FAILURE.value, decision)
            return

        self.session.reset()
        await self.policy.clear()
        self._persist_local_lock(False)

        if decision.reachable:
            self.status.update(OrchestratorStatus.INACTIVE.value, decision)
        else:
            self.status.update(OrchestratorStatus.COMMUNICATION_FAILURE.value, decision)
