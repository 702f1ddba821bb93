# kiosk_agent/infrastructure/backend/remote_state_client.py
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

import httpx
from pydantic import ValidationError

from kiosk_agent.core.config import settings
from kiosk_agent.domain.commands.remote_command import RemoteCommand
from kiosk_agent.domain.device.device_state import DeviceState
from kiosk_agent.domain.models.orchestrator_config import OrchestratorConfig

logger = logging.getLogger(__name__)

DEVICES_PATH = "/rest/v1/devices"
COMMANDS_PATH = "/rest/v1/device_commands"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class RemoteStateClient:
    """PostgREST client for the `devices` row and the `device_commands` queue.

    Every call is bounded by the request timeout. Transport errors, non-2xx
    responses and malformed bodies are logged and mapped to the call's
    failure value (None, [] or False); they never propagate.
    """

    def __init__(
        self,
        config: OrchestratorConfig,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={
                "apikey": config.api_key,
                "Authorization": f"Bearer {config.api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout if timeout is not None else settings.REQUEST_TIMEOUT,
            transport=transport,
        )

    async def __aenter__(self) -> "RemoteStateClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    def _device_filter(self) -> dict[str, str]:
        return {"device_id": f"eq.{self.config.device_id}"}

    async def _request(self, method: str, path: str, **kwargs) -> Optional[httpx.Response]:
        try:
            resp = await self._client.request(method, path, **kwargs)
            resp.raise_for_status()
            return resp
        except httpx.HTTPStatusError as exc:
            logger.error(
                "RemoteStateClient: %s %s responded with error: %s %s",
                method,
                path,
                exc.response.status_code,
                exc.response.text,
            )
        except httpx.RequestError as exc:
            logger.error("RemoteStateClient: request error on %s %s: %r", method, path, exc)
        return None

    async def _json(self, method: str, path: str, **kwargs) -> Optional[Any]:
        resp = await self._request(method, path, **kwargs)
        if resp is None:
            return None
        try:
            return resp.json()
        except ValueError:
            logger.error("RemoteStateClient: malformed JSON from %s %s: %r", method, path, resp.text[:200])
            return None

    async def register_device(self) -> bool:
        """Idempotent upsert of the device row.

        Older backend schemas have no `site_id` column; the upsert is then
        retried once with the reduced payload.
        """
        headers = {"Prefer": "resolution=merge-duplicates,return=minimal"}
        payload = {
            "device_id": self.config.device_id,
            "site_id": self.config.site_id,
            "unit_name": self.config.site_id,
            "last_seen": _now_iso(),
        }

        if await self._request("POST", DEVICES_PATH, json=payload, headers=headers) is not None:
            logger.info("Device registered | device_id=%s site_id=%s", self.config.device_id, self.config.site_id)
            return True

        payload.pop("site_id")
        payload["last_seen"] = _now_iso()
        if await self._request("POST", DEVICES_PATH, json=payload, headers=headers) is not None:
            logger.warning("Device registered without site_id | device_id=%s", self.config.device_id)
            return True

        return False

    async def fetch_state(self) -> Optional[DeviceState]:
        params = {
            **self._device_filter(),
            "select": "is_active,kiosk_mode",
            "limit": "1",
        }
        rows = await self._json("GET", DEVICES_PATH, params=params)
        if not isinstance(rows, list):
            if rows is not None:
                logger.error("RemoteStateClient: expected a list of devices, got %r", rows)
            return None
        if not rows:
            logger.warning("Device row not found | device_id=%s", self.config.device_id)
            return None
        if not isinstance(rows[0], dict):
            logger.error("RemoteStateClient: malformed device row %r", rows[0])
            return None
        try:
            return DeviceState.from_row(rows[0])
        except ValueError as exc:
            logger.error("RemoteStateClient: malformed device row: %s", exc)
            return None

    async def set_device_state(self, *, is_active: bool, kiosk_mode: bool) -> bool:
        payload = {
            "is_active": is_active,
            "kiosk_mode": kiosk_mode,
            "last_seen": _now_iso(),
        }
        resp = await self._request(
            "PATCH",
            DEVICES_PATH,
            params=self._device_filter(),
            json=payload,
            headers={"Prefer": "return=minimal"},
        )
        return resp is not None

    async def touch_last_seen(self) -> bool:
        resp = await self._request(
            "PATCH",
            DEVICES_PATH,
            params=self._device_filter(),
            json={"last_seen": _now_iso()},
            headers={"Prefer": "return=minimal"},
        )
        return resp is not None

    async def fetch_pending_commands(self, limit: Optional[int] = None) -> List[RemoteCommand]:
        params = {
            **self._device_filter(),
            "executed": "is.false",
            "select": "id,command",
            "order": "created_at.asc",
            "limit": str(limit or settings.COMMAND_BATCH_LIMIT),
        }
        rows = await self._json("GET", COMMANDS_PATH, params=params)
        if not isinstance(rows, list):
            return []

        commands: List[RemoteCommand] = []
        for row in rows:
            try:
                commands.append(RemoteCommand.model_validate(row))
            except ValidationError:
                logger.error("Skipping malformed command row: %r", row)
        return commands

    async def acknowledge_command(self, command_id: str) -> bool:
        resp = await self._request(
            "PATCH",
            COMMANDS_PATH,
            params={"id": f"eq.{command_id}"},
            json={"executed": True, "executed_at": _now_iso()},
            headers={"Prefer": "return=minimal"},
        )
        return resp is not None
