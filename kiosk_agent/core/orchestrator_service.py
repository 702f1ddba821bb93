import asyncio
import logging
from typing import Callable, Optional

from kiosk_agent.application.app_actuator import AppActuator
from kiosk_agent.application.command_processor import CommandProcessor
from kiosk_agent.application.policy_enforcer import PolicyEnforcer
from kiosk_agent.core.config import settings
from kiosk_agent.core.nats_client import NATSClient, nats_client
from kiosk_agent.core.reconciliation_loop import ReconciliationLoop
from kiosk_agent.core.status_reporter import StatusReporter
from kiosk_agent.core.ui_executor import UiExecutor
from kiosk_agent.domain.device.enums import OrchestratorStatus
from kiosk_agent.domain.device.platform import AppLauncher, LockdownPrimitive
from kiosk_agent.domain.models.orchestrator_config import OrchestratorConfig
from kiosk_agent.infrastructure.android.adb_bridge import AdbBridge, AdbUnavailableError
from kiosk_agent.infrastructure.android.app_launcher import AdbAppLauncher
from kiosk_agent.infrastructure.android.lockdown_primitive import AdbLockdownPrimitive
from kiosk_agent.infrastructure.backend.remote_state_client import RemoteStateClient
from kiosk_agent.infrastructure.config.orchestrator_config_repository import (
    OrchestratorConfigRepository,
    orchestrator_config_repository,
)
from kiosk_agent.infrastructure.storage.local_state_cache import LocalStateCache

logger = logging.getLogger(__name__)

ClientFactory = Callable[[OrchestratorConfig], RemoteStateClient]


def default_client_factory(config: OrchestratorConfig) -> RemoteStateClient:
    return RemoteStateClient(config, timeout=settings.REQUEST_TIMEOUT)


class OrchestratorService:
    """Supervising surface: start/stop the reconciliation loop and expose its status.

    Every start() builds a fresh loop instance with its own last-known and
    session state; a running loop is stopped first so two never overlap.
    """

    def __init__(
        self,
        *,
        repository: Optional[OrchestratorConfigRepository] = None,
        cache: Optional[LocalStateCache] = None,
        launcher: Optional[AppLauncher] = None,
        lockdown: Optional[LockdownPrimitive] = None,
        client_factory: ClientFactory = default_client_factory,
        ui_executor: Optional[UiExecutor] = None,
        nats: Optional[NATSClient] = None,
        poll_interval: Optional[float] = None,
        kiosk_poll_interval: Optional[float] = None,
        settle_delay: Optional[float] = None,
        stop_timeout: Optional[float] = None,
    ):
        self.repository = repository or orchestrator_config_repository
        self.cache = cache or LocalStateCache(self.repository)
        self.status_reporter = StatusReporter(nats=nats if nats is not None else nats_client)
        self._launcher = launcher
        self._lockdown = lockdown
        self._client_factory = client_factory
        self._ui = ui_executor
        self.poll_interval = poll_interval or settings.POLL_INTERVAL
        self.kiosk_poll_interval = kiosk_poll_interval or settings.KIOSK_POLL_INTERVAL
        self.settle_delay = settle_delay if settle_delay is not None else settings.APP_SETTLE_DELAY
        self.stop_timeout = stop_timeout or settings.STOP_TIMEOUT

        self._loop: Optional[ReconciliationLoop] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def status(self) -> str:
        return self.status_reporter.status

    @property
    def loop(self) -> Optional[ReconciliationLoop]:
        return self._loop

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _ensure_platform(self) -> None:
        if self._ui is None:
            self._ui = UiExecutor()
        if self._launcher is not None and self._lockdown is not None:
            return

        bridge = AdbBridge()
        if self._launcher is None:
            self._launcher = AdbAppLauncher(bridge)
        if self._lockdown is None:
            self._lockdown = AdbLockdownPrimitive(bridge)

    def _build_actuator(self, config: OrchestratorConfig, policy: PolicyEnforcer) -> AppActuator:
        return AppActuator(
            config,
            self._launcher,
            policy,
            self._ui,
            settle_delay=self.settle_delay,
        )

    def _build_loop(self, config: OrchestratorConfig) -> ReconciliationLoop:
        client = self._client_factory(config)
        policy = PolicyEnforcer(self._lockdown, self._ui)
        actuator = self._build_actuator(config, policy)
        processor = CommandProcessor(
            client,
            actuator,
            policy,
            on_status=self.status_reporter.update,
            batch_limit=settings.COMMAND_BATCH_LIMIT,
        )
        return ReconciliationLoop(
            config,
            client,
            actuator,
            policy,
            processor,
            self.cache,
            self.status_reporter,
            poll_interval=self.poll_interval,
            kiosk_poll_interval=self.kiosk_poll_interval,
        )

    async def start(self, force_start: bool = False, restart_sequence: bool = False) -> bool:
        config = self.repository.read_config()
        if config is None:
            self.status_reporter.update(OrchestratorStatus.CONFIG_INCOMPLETE.value)
            return False

        await self.stop()

        try:
            self._ensure_platform()
        except AdbUnavailableError as exc:
            logger.error("Orchestrator not started: %s", exc)
            return False

        self.status_reporter.device_id = config.device_id
        self.status_reporter.update(OrchestratorStatus.STARTING.value)

        loop = self._build_loop(config)
        self._loop = loop
        self._task = asyncio.create_task(self._run(loop, force_start, restart_sequence))
        logger.info(
            "Orchestrator started | device_id=%s force_start=%s restart_sequence=%s",
            config.device_id,
            force_start,
            restart_sequence,
        )
        return True

    async def _run(self, loop: ReconciliationLoop, force_start: bool, restart_sequence: bool) -> None:
        try:
            if force_start:
                try:
                    await loop.force_start(restart_sequence)
                except Exception:
                    logger.exception("Force start failed, continuing with the regular loop")
            await loop.run()
        finally:
            await loop.client.close()

    async def stop(self) -> None:
        task, loop = self._task, self._loop
        if task is None or loop is None:
            return

        logger.info("Stopping orchestrator loop.")
        loop.stop()

        try:
            await asyncio.wait_for(task, timeout=self.stop_timeout)
        except asyncio.TimeoutError:
            logger.warning("Orchestrator loop did not stop within %ss, cancelled", self.stop_timeout)
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Orchestrator loop ended with an error")

        self._task = None
        self._loop = None
        self.status_reporter.update(OrchestratorStatus.STOPPED.value)

    async def enforce_foreground(self) -> bool:
        """Re-assert the kiosk app when the device should be locked.

        Used when a presentation surface resumes: closes the gap where the
        user reached the home screen between two cycles.
        """
        config = self.repository.read_config()
        if config is None:
            return False

        loop = self._loop if self.is_running else None
        if loop is not None:
            state = await loop.client.fetch_state()
            actuator = loop.actuator
        else:
            try:
                self._ensure_platform()
            except AdbUnavailableError as exc:
                logger.error("Foreground not enforced: %s", exc)
                return False
            client = self._client_factory(config)
            try:
                state = await client.fetch_state()
            finally:
                await client.close()
            actuator = self._build_actuator(config, PolicyEnforcer(self._lockdown, self._ui))

        should_lock = state.locked if state is not None else self.cache.is_local_lock_enabled()
        return await actuator.ensure_foreground(should_lock)

    def shutdown(self) -> None:
        if self._ui is not None:
            self._ui.shutdown()
            self._ui = None


orchestrator_service = OrchestratorService()
