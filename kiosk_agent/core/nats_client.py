import json
import logging
from typing import Optional

import nats

from kiosk_agent.core.config import settings

logger = logging.getLogger(__name__)


class NATSClient:
    def __init__(self, url: Optional[str] = None):
        self.url = url if url is not None else settings.NATS_URL
        self.nc = None

    def is_enabled(self) -> bool:
        return bool(self.url)

    async def connect(self):
        logger.info(f"Connecting to NATS: {self.url}")
        self.nc = await nats.connect(self.url)
        logger.info("Connected to NATS")

    async def ensure_connected(self):
        if not self.nc or not self.nc.is_connected:
            await self.connect()

    async def publish(self, subject: str, payload: dict):
        await self.ensure_connected()
        data = json.dumps(payload).encode("utf-8")
        await self.nc.publish(subject, data)

    async def subscribe(self, subject: str, handler):
        await self.ensure_connected()

        sub = await self.nc.subscribe(subject, cb=handler)
        logger.info(f"[NATS] Subscribed to subject: {subject}")

        return sub

    async def close(self):
        if self.nc is None:
            return

        try:
            logger.info("Closing NATS connection...")
            await self.nc.drain()
        except Exception:
            logger.debug("NATS drain failed", exc_info=True)

        try:
            await self.nc.close()
        except Exception:
            logger.debug("NATS close failed", exc_info=True)

        self.nc = None
        logger.info("NATS connection closed.")


nats_client = NATSClient()
