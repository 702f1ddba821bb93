from dataclasses import dataclass
from typing import Any, Optional


def _flag(value: Any, name: str) -> bool:
    # PostgREST may hand back "true"/"false" for text-cast columns; anything else is malformed.
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValueError(f"{name} is not a boolean: {value!r}")


@dataclass(frozen=True)
class DeviceState:
    """Desired state read from the backend, not what the device is doing."""

    is_active: bool
    kiosk_mode: bool

    @classmethod
    def from_row(cls, row: dict) -> "DeviceState":
        return cls(
            is_active=_flag(row.get("is_active"), "is_active"),
            kiosk_mode=_flag(row.get("kiosk_mode"), "kiosk_mode"),
        )

    @property
    def locked(self) -> bool:
        return self.is_active and self.kiosk_mode


@dataclass
class LastKnownState:
    active: bool = False
    kiosk_mode: bool = False
    local_lock: bool = False

    def observe(self, state: DeviceState) -> None:
        self.active = state.is_active
        self.kiosk_mode = state.kiosk_mode
        self.local_lock = state.locked


@dataclass
class SessionState:
    started: bool = False

    def reset(self) -> None:
        self.started = False


@dataclass(frozen=True)
class CycleDecision:
    reachable: bool
    should_run: bool
    kiosk_enabled: bool


def decide(state: Optional[DeviceState], last_known: LastKnownState) -> CycleDecision:
    if state is not None:
        return CycleDecision(
            reachable=True,
            should_run=state.is_active,
            kiosk_enabled=state.is_active and state.kiosk_mode,
        )

    # Backend unreachable: hold the last confirmed state, the local lock wins.
    return CycleDecision(
        reachable=False,
        should_run=last_known.active or last_known.local_lock,
        kiosk_enabled=last_known.kiosk_mode or last_known.local_lock,
    )
