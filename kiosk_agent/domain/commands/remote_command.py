from typing import Optional

from pydantic import BaseModel, field_validator

from kiosk_agent.domain.device.enums import KioskCommand


class RemoteCommand(BaseModel):
    id: str
    command: str

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, value) -> str:
        # PostgREST hands back integer or uuid ids depending on the schema.
        normalized = str(value).strip() if value is not None else ""
        if not normalized:
            raise ValueError("command id must not be empty")
        return normalized

    @property
    def normalized(self) -> str:
        return self.command.strip().lower()

    @property
    def kind(self) -> Optional[KioskCommand]:
        try:
            return KioskCommand(self.normalized)
        except ValueError:
            return None
