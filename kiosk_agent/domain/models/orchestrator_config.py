from pydantic import BaseModel, ConfigDict, field_validator


class OrchestratorConfig(BaseModel):
    """Everything one loop instance needs to talk to the backend and the device.

    All six fields are required and must be non-blank; an incomplete config
    never reaches the loop.
    """

    model_config = ConfigDict(frozen=True)

    base_url: str
    api_key: str
    site_id: str
    device_id: str
    server_app: str
    kiosk_app: str

    @field_validator("api_key", "site_id", "device_id", "server_app", "kiosk_app")
    @classmethod
    def validate_not_blank(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("value must not be empty")
        return normalized

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError("base_url must not be empty")
        return normalized


class StoredConfig(BaseModel):
    """On-disk shape of the config file; fields may be missing or blank."""

    base_url: str = ""
    api_key: str = ""
    site_id: str = ""
    device_id: str = ""
    server_app: str = ""
    kiosk_app: str = ""
    local_kiosk_lock: bool = False
