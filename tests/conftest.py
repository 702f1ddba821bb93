from __future__ import annotations

import time
from typing import List, Optional, Sequence

import pytest

from kiosk_agent.application.app_actuator import AppActuator
from kiosk_agent.application.command_processor import CommandProcessor
from kiosk_agent.application.policy_enforcer import PolicyEnforcer
from kiosk_agent.core.reconciliation_loop import ReconciliationLoop
from kiosk_agent.core.status_reporter import StatusReporter
from kiosk_agent.core.ui_executor import UiExecutor
from kiosk_agent.domain.commands.remote_command import RemoteCommand
from kiosk_agent.domain.device.device_state import DeviceState
from kiosk_agent.domain.models.orchestrator_config import OrchestratorConfig
from kiosk_agent.infrastructure.config.orchestrator_config_repository import OrchestratorConfigRepository
from kiosk_agent.infrastructure.storage.local_state_cache import LocalStateCache

SERVER_APP = "com.example.server"
KIOSK_APP = "com.example.kiosk"
OWNER_PACKAGE = "com.kioskagent.owner"


class FakeLauncher:
    def __init__(self, installed: Sequence[str] = (SERVER_APP, KIOSK_APP)):
        self.installed = set(installed)
        self.launches: List[tuple[str, float]] = []

    def is_installed(self, app_id: str) -> bool:
        return app_id in self.installed

    def launch(self, app_id: str) -> bool:
        if app_id not in self.installed:
            return False
        self.launches.append((app_id, time.monotonic()))
        return True

    @property
    def launched(self) -> List[str]:
        return [app for app, _ in self.launches]


class FakeLockdown:
    def __init__(self, capable: bool = True):
        self.capable = capable
        self.lock_task_packages: List[str] = []
        self.status_bar_disabled = False
        self.keyguard_disabled = False
        self.calls: List[str] = []
        self.fail_steps: set[str] = set()

    @property
    def locked(self) -> bool:
        return bool(self.lock_task_packages)

    def is_lockdown_capable(self) -> bool:
        self.calls.append("is_lockdown_capable")
        return self.capable

    def set_lock_task_packages(self, packages: Sequence[str]) -> bool:
        self.calls.append("lock_task_packages")
        if "lock_task_packages" in self.fail_steps:
            return False
        self.lock_task_packages = list(packages)
        return True

    def set_status_bar_disabled(self, disabled: bool) -> bool:
        self.calls.append("status_bar")
        if "status_bar" in self.fail_steps:
            raise RuntimeError("statusbar service unavailable")
        self.status_bar_disabled = disabled
        return True

    def set_keyguard_disabled(self, disabled: bool) -> bool:
        self.calls.append("keyguard")
        if "keyguard" in self.fail_steps:
            return False
        self.keyguard_disabled = disabled
        return True


class FakeRemoteClient:
    def __init__(self, state: Optional[DeviceState] = None):
        self.state = state
        self.fetch_error: Optional[Exception] = None
        self.reachable = True
        self.touch_ok = True
        self.ack_ok = True
        self.register_ok = True
        self.pending: List[RemoteCommand] = []
        self.acked: List[str] = []
        self.calls: List[str] = []
        self.device_state_writes: List[tuple[bool, bool]] = []
        self.closed = False

    def queue(self, *commands: tuple[str, str]) -> None:
        for command_id, command in commands:
            self.pending.append(RemoteCommand(id=command_id, command=command))

    async def register_device(self) -> bool:
        self.calls.append("register_device")
        return self.register_ok

    async def set_device_state(self, *, is_active: bool, kiosk_mode: bool) -> bool:
        self.calls.append("set_device_state")
        self.device_state_writes.append((is_active, kiosk_mode))
        if self.reachable:
            self.state = DeviceState(is_active=is_active, kiosk_mode=kiosk_mode)
        return self.reachable

    async def fetch_state(self) -> Optional[DeviceState]:
        self.calls.append("fetch_state")
        if self.fetch_error is not None:
            raise self.fetch_error
        if not self.reachable:
            return None
        return self.state

    async def touch_last_seen(self) -> bool:
        self.calls.append("touch_last_seen")
        return self.touch_ok

    async def fetch_pending_commands(self, limit: Optional[int] = None) -> List[RemoteCommand]:
        self.calls.append("fetch_pending_commands")
        if not self.reachable:
            return []
        return list(self.pending[: limit or 20])

    async def acknowledge_command(self, command_id: str) -> bool:
        self.calls.append(f"ack:{command_id}")
        if not self.ack_ok:
            return False
        self.acked.append(command_id)
        self.pending = [c for c in self.pending if c.id != command_id]
        return True

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def orchestrator_config() -> OrchestratorConfig:
    return OrchestratorConfig(
        base_url="https://backend.example.com/",
        api_key="anon-key",
        site_id="unit@example.com",
        device_id="dev-0123456789abcdef01234567",
        server_app=SERVER_APP,
        kiosk_app=KIOSK_APP,
    )


@pytest.fixture
def ui_executor():
    executor = UiExecutor()
    yield executor
    executor.shutdown()


@pytest.fixture
def launcher() -> FakeLauncher:
    return FakeLauncher()


@pytest.fixture
def lockdown() -> FakeLockdown:
    return FakeLockdown()


@pytest.fixture
def remote() -> FakeRemoteClient:
    return FakeRemoteClient()


@pytest.fixture
def repository(tmp_path) -> OrchestratorConfigRepository:
    return OrchestratorConfigRepository(tmp_path / "kiosk_config.json")


@pytest.fixture
def cache(repository) -> LocalStateCache:
    return LocalStateCache(repository)


@pytest.fixture
def policy(lockdown, ui_executor) -> PolicyEnforcer:
    return PolicyEnforcer(lockdown, ui_executor, owner_package=OWNER_PACKAGE)


@pytest.fixture
def actuator(orchestrator_config, launcher, policy, ui_executor) -> AppActuator:
    return AppActuator(orchestrator_config, launcher, policy, ui_executor, settle_delay=0.05)


@pytest.fixture
def status() -> StatusReporter:
    return StatusReporter(device_id="dev-test")


@pytest.fixture
def processor(remote, actuator, policy, status) -> CommandProcessor:
    return CommandProcessor(remote, actuator, policy, on_status=status.update)


@pytest.fixture
def make_loop(orchestrator_config, remote, actuator, policy, processor, cache, status):
    def _make(**overrides) -> ReconciliationLoop:
        kwargs = dict(
            config=orchestrator_config,
            client=remote,
            actuator=actuator,
            policy=policy,
            command_processor=processor,
            cache=cache,
            status=status,
            poll_interval=0.05,
            kiosk_poll_interval=0.02,
        )
        kwargs.update(overrides)
        return ReconciliationLoop(**kwargs)

    return _make
