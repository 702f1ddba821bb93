import logging
from typing import Optional

from kiosk_agent.infrastructure.config.orchestrator_config_repository import (
    OrchestratorConfigRepository,
    orchestrator_config_repository,
)

logger = logging.getLogger(__name__)

LOCAL_LOCK_KEY = "local_kiosk_lock"


class LocalStateCache:
    """Persisted "local kiosk lock" flag.

    Survives process restarts so a device that was locked stays locked while
    the backend is unreachable. Writes are synchronous: once set_local_lock()
    returns, the value is on disk.
    """

    def __init__(self, repository: Optional[OrchestratorConfigRepository] = None):
        self._repository = repository or orchestrator_config_repository
        self._value: Optional[bool] = None

    def is_local_lock_enabled(self) -> bool:
        if self._value is None:
            self._value = bool(self._repository.load_raw().get(LOCAL_LOCK_KEY, False))
        return self._value

    def set_local_lock(self, enabled: bool) -> None:
        enabled = bool(enabled)
        if self.is_local_lock_enabled() is enabled:
            return

        self._repository.update(**{LOCAL_LOCK_KEY: enabled})
        self._value = enabled
        logger.info("Local kiosk lock persisted | enabled=%s", enabled)
