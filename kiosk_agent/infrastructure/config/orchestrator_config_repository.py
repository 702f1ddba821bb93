import errno
import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from kiosk_agent.core.config import settings
from kiosk_agent.domain.models.orchestrator_config import OrchestratorConfig, StoredConfig

logger = logging.getLogger(__name__)


class OrchestratorConfigRepository:

    def __init__(self, config_path: Optional[Path] = None):
        self._config_path = config_path or self._resolve_path()

    @staticmethod
    def _resolve_path() -> Path:
        path = Path(settings.CONFIG_FILE)

        if not path.is_absolute():
            path = settings.BASE_DIR / path

        return path

    @property
    def path(self) -> Path:
        return self._config_path

    def load_raw(self) -> dict[str, Any]:
        if not self._config_path.exists():
            return {}

        try:
            with self._config_path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        except json.JSONDecodeError:
            logger.error("Config file is not valid JSON: %s", self._config_path)
            return {}

        if not isinstance(raw, dict):
            logger.error("Config root must be an object: %s", self._config_path)
            return {}

        return raw

    def load_stored(self) -> StoredConfig:
        raw = self._normalize_legacy_fields(self.load_raw())
        try:
            return StoredConfig.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Stored config has invalid fields, ignoring them: %s", exc)
            return StoredConfig(
                **{k: v for k, v in raw.items() if k in StoredConfig.model_fields and isinstance(v, str)}
            )

    def read_config(self) -> Optional[OrchestratorConfig]:
        """Return the validated config, or None when any field is missing."""
        stored = self.load_stored()
        try:
            return OrchestratorConfig.model_validate(
                stored.model_dump(exclude={"local_kiosk_lock"})
            )
        except ValidationError as exc:
            missing = sorted({str(err["loc"][0]) for err in exc.errors() if err["loc"]})
            logger.warning("Orchestrator config incomplete | fields=%s", ",".join(missing))
            return None

    def save_config(self, config: OrchestratorConfig) -> None:
        data = self.load_raw()
        data.update(config.model_dump())
        data.setdefault("local_kiosk_lock", False)
        self.write_raw(data)

    def update(self, **kwargs) -> dict[str, Any]:
        data = self.load_raw()
        data.update(kwargs)
        self.write_raw(data)
        return data

    @staticmethod
    def _normalize_legacy_fields(raw: dict) -> dict:
        normalized = dict(raw)
        if "base_url" in normalized and isinstance(normalized["base_url"], str):
            normalized["base_url"] = normalized["base_url"].strip().rstrip("/")
        return normalized

    def write_raw(self, data: dict[str, Any]) -> None:
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._config_path.with_suffix(".tmp")

        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())

        try:
            tmp_path.replace(self._config_path)
            logger.debug("Orchestrator config saved (atomic write)")
            return
        except OSError as exc:
            if exc.errno not in {errno.EBUSY, errno.EXDEV, errno.EPERM}:
                raise

            logger.warning(
                "Atomic replace failed for orchestrator config (%s). "
                "Falling back to in-place write: %s",
                self._config_path,
                exc,
            )

        with self._config_path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())

        try:
            tmp_path.unlink(missing_ok=True)
        except OSError:
            logger.debug("Failed to remove temp config file: %s", tmp_path)

        logger.debug("Orchestrator config saved (in-place write)")


orchestrator_config_repository = OrchestratorConfigRepository()
