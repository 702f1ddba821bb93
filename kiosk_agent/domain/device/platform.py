from typing import Protocol, Sequence


class AppLauncher(Protocol):

    def is_installed(self, app_id: str) -> bool: ...

    def launch(self, app_id: str) -> bool: ...


class LockdownPrimitive(Protocol):

    def is_lockdown_capable(self) -> bool: ...

    def set_lock_task_packages(self, packages: Sequence[str]) -> bool: ...

    def set_status_bar_disabled(self, disabled: bool) -> bool: ...

    def set_keyguard_disabled(self, disabled: bool) -> bool: ...
