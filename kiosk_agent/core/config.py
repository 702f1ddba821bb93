from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):

    BASE_DIR: Path = Field(default_factory=Path.cwd)
    CONFIG_FILE: str = Field("kiosk_config.json", description="Orchestrator config JSON")
    LOG_DIR: str = Field("logs")

    # Reconciliation cadence (seconds)
    POLL_INTERVAL: float = Field(5.0, gt=0)
    KIOSK_POLL_INTERVAL: float = Field(2.0, gt=0)
    APP_SETTLE_DELAY: float = Field(5.0, ge=0)
    REQUEST_TIMEOUT: float = Field(5.0, gt=0)
    STOP_TIMEOUT: float = Field(15.0, gt=0)
    COMMAND_BATCH_LIMIT: int = Field(20, ge=1)

    # Android Debug Bridge
    ADB_PATH: str = Field("adb")
    ADB_SERIAL: str = Field("", description="Target device serial, empty for the only device")
    ADB_TIMEOUT: float = Field(10.0, gt=0)
    OWNER_PACKAGE: str = Field("com.kioskagent.owner", description="Device owner helper app")
    OWNER_RECEIVER: str = Field(".LockTaskReceiver")
    LOCK_TASK_ACTION: str = Field("com.kioskagent.owner.SET_LOCK_TASK_PACKAGES")

    # Optional NATS telemetry / supervisor control; empty URL disables it
    NATS_URL: str = Field("")
    NATS_PREFIX: str = Field("kiosk")

    # Defaults used by `configure` when no backend is given explicitly
    DEFAULT_BASE_URL: str = Field("")
    DEFAULT_API_KEY: str = Field("")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
