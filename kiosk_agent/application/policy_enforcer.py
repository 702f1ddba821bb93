# kiosk_agent/application/policy_enforcer.py
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from kiosk_agent.core.config import settings
from kiosk_agent.core.ui_executor import UiExecutor
from kiosk_agent.domain.device.platform import LockdownPrimitive

logger = logging.getLogger(__name__)


@dataclass
class PolicyResult:
    changed: bool = False
    capable: bool = True
    steps: Dict[str, bool] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.capable and all(self.steps.values())


class PolicyEnforcer:

    def __init__(
        self,
        primitive: LockdownPrimitive,
        ui_executor: UiExecutor,
        owner_package: Optional[str] = None,
    ):
        self._primitive = primitive
        self._ui = ui_executor
        self._owner_package = owner_package or settings.OWNER_PACKAGE
        self._applied_app: Optional[str] = None
        # None until the first clear(); a lock left by a previous process must still be cleared once.
        self._cleared: Optional[bool] = None

    @property
    def applied_app(self) -> Optional[str]:
        return self._applied_app

    async def _step(self, result: PolicyResult, name: str, fn, *args) -> None:
        try:
            ok = bool(await self._ui.run(fn, *args))
        except Exception:
            logger.exception("Lockdown step raised | step=%s", name)
            ok = False

        if not ok:
            logger.warning("Lockdown step failed | step=%s", name)
        result.steps[name] = ok

    async def _is_capable(self) -> bool:
        try:
            return bool(await self._ui.run(self._primitive.is_lockdown_capable))
        except Exception:
            logger.exception("Lockdown capability check raised")
            return False

    async def apply(self, app_id: str) -> PolicyResult:
        if self._applied_app == app_id:
            return PolicyResult()

        if not await self._is_capable():
            logger.debug("Lockdown not available, apply skipped | app=%s", app_id)
            return PolicyResult(capable=False)

        result = PolicyResult(changed=True)
        await self._step(
            result,
            "lock_task_packages",
            self._primitive.set_lock_task_packages,
            [app_id, self._owner_package],
        )
        await self._step(result, "status_bar", self._primitive.set_status_bar_disabled, True)
        await self._step(result, "keyguard", self._primitive.set_keyguard_disabled, True)

        # Without the task restriction the device is not locked; try again next call.
        if result.steps["lock_task_packages"]:
            self._applied_app = app_id
        self._cleared = False
        logger.info("Kiosk lockdown applied | app=%s steps=%s", app_id, result.steps)
        return result

    async def clear(self) -> PolicyResult:
        if self._cleared:
            return PolicyResult()

        if not await self._is_capable():
            self._applied_app = None
            return PolicyResult(capable=False)

        result = PolicyResult(changed=True)
        await self._step(result, "status_bar", self._primitive.set_status_bar_disabled, False)
        await self._step(result, "keyguard", self._primitive.set_keyguard_disabled, False)
        await self._step(result, "lock_task_packages", self._primitive.set_lock_task_packages, [])

        self._applied_app = None
        self._cleared = result.steps["lock_task_packages"]
        logger.info("Kiosk lockdown cleared | steps=%s", result.steps)
        return result
