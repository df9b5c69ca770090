"""
Message Dispatcher
Decodes inbound frames and routes each recognised type to one store mutation
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Union

import orjson

from .models import AgentMetric, PortfolioSnapshot, SignalStatus, TradeLogEntry, required_text
from .store import StateStore

logger = logging.getLogger(__name__)

PHEROMONE_UPDATE = 'pheromone_update'
PORTFOLIO_UPDATE = 'portfolio_update'
AGENT_METRICS = 'agent_metrics'
TRADE_HISTORY = 'trade_history'
EVENT = 'event'

INBOUND_TYPES = (PHEROMONE_UPDATE, PORTFOLIO_UPDATE, AGENT_METRICS, TRADE_HISTORY, EVENT)


@dataclass
class DispatchStats:
    """Running counts of what happened to inbound frames"""
    applied: int = 0
    decode_errors: int = 0
    malformed: int = 0
    unknown: int = 0

    @property
    def dropped(self) -> int:
        return self.decode_errors + self.malformed + self.unknown


def _items(data: dict, key: str) -> list:
    items = data[key]
    if not isinstance(items, list):
        raise TypeError(f"'{key}' must be a list, got {type(items).__name__}")
    return items


class MessageDispatcher:
    """Synchronous, in-order frame router in front of a StateStore"""

    def __init__(self, store: StateStore):
        self.store = store
        self.stats = DispatchStats()
        self._handlers: Dict[str, Callable[[dict], None]] = {
            PHEROMONE_UPDATE: self._on_pheromone_update,
            PORTFOLIO_UPDATE: self._on_portfolio_update,
            AGENT_METRICS: self._on_agent_metrics,
            TRADE_HISTORY: self._on_trade_history,
            EVENT: self._on_event,
        }

    def dispatch(self, raw: Union[str, bytes]) -> bool:
        """Apply one raw frame. Returns True if the store was mutated."""
        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            self.stats.decode_errors += 1
            logger.warning("[DISPATCH] Undecodable frame dropped: %s", e)
            return False

        if not isinstance(data, dict):
            self.stats.decode_errors += 1
            logger.warning("[DISPATCH] Non-object frame dropped: %s", type(data).__name__)
            return False

        kind = data.get('type')
        handler = self._handlers.get(kind) if isinstance(kind, str) else None
        if handler is None:
            self.stats.unknown += 1
            logger.debug("[DISPATCH] Ignoring frame type %r", kind)
            return False

        try:
            handler(data)
        except (KeyError, TypeError, ValueError) as e:
            self.stats.malformed += 1
            logger.warning("[DISPATCH] Malformed %s payload dropped: %r", kind, e)
            return False

        self.stats.applied += 1
        return True

    # Each handler parses the whole payload before touching the store

    def _on_pheromone_update(self, data: dict):
        signals = [SignalStatus.from_dict(p) for p in _items(data, 'pheromones')]
        self.store.pheromone_update(signals)

    def _on_portfolio_update(self, data: dict):
        portfolio = data['portfolio']
        if not isinstance(portfolio, dict):
            raise TypeError("'portfolio' must be an object")
        self.store.portfolio_update(PortfolioSnapshot.from_dict(portfolio))

    def _on_agent_metrics(self, data: dict):
        agents = [AgentMetric.from_dict(a) for a in _items(data, 'agents')]
        self.store.agent_metrics(agents)

    def _on_trade_history(self, data: dict):
        trades = [TradeLogEntry.from_dict(t) for t in _items(data, 'trades')]
        self.store.trade_history(trades)

    def _on_event(self, data: dict):
        self.store.event(
            event_type=required_text(data, 'event_type'),
            pheromone=required_text(data, 'pheromone'),
            intensity=float(data['intensity']),
        )
