import logging
from typing import Optional, Sequence

from kiosk_agent.core.config import settings
from kiosk_agent.infrastructure.android.adb_bridge import AdbBridge

logger = logging.getLogger(__name__)

STATUS_BAR_LOCKED_FLAGS = ("home", "recents", "statusbar-expansion", "notification-alerts")


class AdbLockdownPrimitive:
    """Device lockdown over adb.

    Lock-task packages can only be set by the device owner, so that step is a
    broadcast to the owner helper app; the status bar and keyguard toggles
    are plain shell commands.
    """

    def __init__(
        self,
        bridge: AdbBridge,
        owner_package: Optional[str] = None,
        owner_receiver: Optional[str] = None,
        lock_task_action: Optional[str] = None,
    ):
        self.bridge = bridge
        self.owner_package = owner_package or settings.OWNER_PACKAGE
        self.owner_receiver = owner_receiver or settings.OWNER_RECEIVER
        self.lock_task_action = lock_task_action or settings.LOCK_TASK_ACTION

    def is_lockdown_capable(self) -> bool:
        result = self.bridge.shell("dpm", "list-owners")
        return result.ok and self.owner_package in result.out

    def set_lock_task_packages(self, packages: Sequence[str]) -> bool:
        component = f"{self.owner_package}/{self.owner_receiver}"
        args = ["am", "broadcast", "-a", self.lock_task_action, "-n", component]
        if packages:
            args += ["--esa", "packages", ",".join(packages)]
        else:
            args += ["--ez", "clear", "true"]

        result = self.bridge.shell(*args)
        # The owner helper answers RESULT_OK (-1); an unhandled broadcast completes with result=0.
        return result.ok and "result=-1" in result.out

    def set_status_bar_disabled(self, disabled: bool) -> bool:
        flags = STATUS_BAR_LOCKED_FLAGS if disabled else ("none",)
        return self.bridge.shell("cmd", "statusbar", "send-disable-flag", *flags).ok

    def set_keyguard_disabled(self, disabled: bool) -> bool:
        return self.bridge.shell("locksettings", "set-disabled", "true" if disabled else "false").ok
