from enum import Enum


class KioskCommand(str, Enum):
    RESTART_APPS = "restart_apps"
    START_KIOSK = "start_kiosk"
    STOP_KIOSK = "stop_kiosk"


class SupervisorAction(str, Enum):
    START = "start"
    FORCE_START = "force_start"
    RESTART_SEQUENCE = "restart_sequence"
    STOP = "stop"
    ENFORCE_FOREGROUND = "enforce_foreground"


class OrchestratorStatus(str, Enum):
    STARTING = "Orchestrator starting..."
    STARTED_MANUALLY = "Started manually: apps running"
    ACTIVE = "Active: server app + kiosk app monitored"
    INACTIVE = "Inactive: waiting for devices.is_active = true"
    COMMUNICATION_FAILURE = "Communication failure. Retrying..."
    RESTART_EXECUTED = "Command restart_apps executed"
    CONFIG_INCOMPLETE = "Configuration incomplete: orchestrator not started"
    STOPPED = "Orchestrator stopped."
