# kiosk_agent/application/app_actuator.py
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from kiosk_agent.application.policy_enforcer import PolicyEnforcer
from kiosk_agent.core.ui_executor import UiExecutor
from kiosk_agent.domain.device.device_state import SessionState
from kiosk_agent.domain.device.platform import AppLauncher
from kiosk_agent.domain.models.orchestrator_config import OrchestratorConfig

logger = logging.getLogger(__name__)


@dataclass
class ActuationResult:
    cold_start: bool = False
    launches: Dict[str, bool] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return all(self.launches.values())


class AppActuator:
    """Keeps the server app and the kiosk app running, in that order.

    The server app must be up before the kiosk app starts; there is no
    readiness signal, so a fixed settle delay separates the two launches.
    """

    def __init__(
        self,
        config: OrchestratorConfig,
        launcher: AppLauncher,
        policy: PolicyEnforcer,
        ui_executor: UiExecutor,
        session: Optional[SessionState] = None,
        settle_delay: float = 5.0,
    ):
        self.config = config
        self.session = session or SessionState()
        self.settle_delay = settle_delay
        self._launcher = launcher
        self._policy = policy
        self._ui = ui_executor

    async def _launch(self, app_id: str) -> bool:
        try:
            return bool(await self._ui.run(self._launcher.launch, app_id))
        except Exception:
            logger.exception("Launch raised | app=%s", app_id)
            return False

    async def launch_kiosk_app(self, kiosk_enabled: bool) -> bool:
        if kiosk_enabled:
            await self._policy.apply(self.config.kiosk_app)
        return await self._launch(self.config.kiosk_app)

    async def _cold_start(self, kiosk_enabled: bool, result: ActuationResult) -> None:
        result.cold_start = True
        logger.info(
            "Cold start | server_app=%s kiosk_app=%s settle=%ss",
            self.config.server_app,
            self.config.kiosk_app,
            self.settle_delay,
        )
        result.launches["server_app"] = await self._launch(self.config.server_app)
        await asyncio.sleep(self.settle_delay)
        result.launches["kiosk_app"] = await self.launch_kiosk_app(kiosk_enabled)

        # A failed cold start is repeated on the next cycle.
        self.session.started = result.ok

    async def ensure_running(self, kiosk_enabled: bool) -> ActuationResult:
        result = ActuationResult()

        if not self.session.started:
            await self._cold_start(kiosk_enabled, result)
        elif kiosk_enabled:
            result.launches["kiosk_app"] = await self.launch_kiosk_app(True)

        if kiosk_enabled:
            await self._policy.apply(self.config.kiosk_app)

        return result

    async def ensure_foreground(self, kiosk_enabled: bool) -> bool:
        if not kiosk_enabled:
            return False
        return await self.launch_kiosk_app(True)

    async def restart(self, kiosk_enabled: bool) -> ActuationResult:
        self.session.reset()
        result = ActuationResult()
        await self._cold_start(kiosk_enabled, result)
        if kiosk_enabled:
            await self._policy.apply(self.config.kiosk_app)
        # Left unstarted; the next cycle cold-starts again.
        self.session.reset()
        return result
