"""
Swarm dashboard client
One connection, one store, one command channel per instance: create -> connect -> close
"""

import logging
from typing import Callable, List, Optional, Sequence, Tuple

from .analytics import (
    DEFAULT_AGENTS, AgentActivity, AgentInfo, DriftReading, GaugeGeometry,
    drift_reading, gauge_geometry, resolve_agents, sparkline_points,
)
from .commands import CommandChannel
from .config import ClientConfig
from .connection import ConnectionManager, ConnectionState, Connector
from .dispatcher import MessageDispatcher
from .store import StateStore, StoreSnapshot

logger = logging.getLogger(__name__)


class SwarmClient:
    """Streaming state-reconciliation client for the swarm backend"""

    def __init__(self, config: Optional[ClientConfig] = None,
                 connector: Optional[Connector] = None,
                 on_state_change: Optional[Callable[[ConnectionState], None]] = None,
                 agents: Sequence[AgentInfo] = DEFAULT_AGENTS):
        self.config = config or ClientConfig()
        self.agents = tuple(agents)
        self.on_state_change = on_state_change
        self.store = StateStore(
            history_size=self.config.history_size,
            event_log_size=self.config.event_log_size,
        )
        self.dispatcher = MessageDispatcher(self.store)
        self.connection = ConnectionManager(
            self.config.ws_url,
            on_frame=self.dispatcher.dispatch,
            reconnect_delay=self.config.reconnect_delay,
            on_state_change=self._on_state_change,
            connector=connector,
        )
        self.commands = CommandChannel(self.connection)

    def _on_state_change(self, state: ConnectionState):
        self.store.set_connected(state is ConnectionState.CONNECTED)
        if self.on_state_change:
            self.on_state_change(state)

    @property
    def connected(self) -> bool:
        return self.connection.connected

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    # Lifecycle

    def connect(self) -> bool:
        return self.connection.connect()

    def reconnect(self) -> bool:
        return self.connection.reconnect()

    async def close(self):
        await self.connection.disconnect()

    async def __aenter__(self) -> 'SwarmClient':
        self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # Commands

    async def set_allocation(self, stocks_pct: float, bonds_pct: float) -> bool:
        return await self.commands.set_allocation(stocks_pct, bonds_pct)

    async def set_allocation_stocks(self, stocks_pct: float) -> bool:
        return await self.commands.set_allocation_stocks(stocks_pct)

    async def reset(self) -> bool:
        return await self.commands.reset()

    # Derived views, recomputed from the latest store contents

    def snapshot(self) -> StoreSnapshot:
        return self.store.snapshot()

    def agent_activity(self) -> List[AgentActivity]:
        return resolve_agents(self.store.signals, self.store.agents, self.agents)

    def drift(self, target_stocks_pct: Optional[float] = None) -> Optional[DriftReading]:
        target = self.config.target_stocks_pct if target_stocks_pct is None else target_stocks_pct
        return drift_reading(self.store.portfolio, target)

    def gauge(self, target_stocks_pct: Optional[float] = None) -> Optional[GaugeGeometry]:
        reading = self.drift(target_stocks_pct)
        if reading is None:
            return None
        return gauge_geometry(reading.current_stocks_pct, reading.current_bonds_pct,
                              reading.target_stocks_pct)

    def sparkline(self, name: str, width: float = 100, height: float = 24) -> List[Tuple[float, float]]:
        return sparkline_points(self.store.history_for(name), width, height)
