"""
Outbound Command Channel
Fire-and-forget user intents; dropped silently while disconnected
"""

import logging

import orjson

from .connection import ConnectionManager

logger = logging.getLogger(__name__)

SET_ALLOCATION = 'set_allocation'
RESET = 'reset'

# (label, stocks_pct) quick presets offered by the allocation control
ALLOCATION_PRESETS = [
    ('80/20', 80),
    ('60/40', 60),
    ('40/60', 40),
    ('20/80', 20),
]


def encode_command(payload: dict) -> str:
    return orjson.dumps(payload).decode('utf-8')


class CommandChannel:
    """Serialises intents onto the active connection; no queue, no ack"""

    def __init__(self, connection: ConnectionManager):
        self.connection = connection
        self.sent = 0
        self.suppressed = 0

    async def _send(self, payload: dict) -> bool:
        if not self.connection.connected:
            self.suppressed += 1
            logger.debug("[CMD] Not connected, dropping %s", payload['type'])
            return False
        ok = await self.connection.send(encode_command(payload))
        if ok:
            self.sent += 1
            logger.info("[CMD] Sent %s", payload['type'])
        else:
            self.suppressed += 1
        return ok

    async def set_allocation(self, stocks_pct: float, bonds_pct: float) -> bool:
        """Ask the backend for a new target split; the portfolio frame that follows is the answer"""
        return await self._send({
            'type': SET_ALLOCATION,
            'stocks_pct': stocks_pct,
            'bonds_pct': bonds_pct,
        })

    async def set_allocation_stocks(self, stocks_pct: float) -> bool:
        """Set target from the stocks share alone; bonds take the remainder"""
        return await self.set_allocation(stocks_pct, 100 - stocks_pct)

    async def reset(self) -> bool:
        return await self._send({'type': RESET})
