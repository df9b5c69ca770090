"""
State Store - canonical client-side view of the swarm
One replace-or-append mutation per inbound frame type
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import pandas as pd

from .config import DEFAULT_EVENT_LOG_SIZE, DEFAULT_HISTORY_SIZE
from .models import AgentMetric, PortfolioSnapshot, SignalStatus, SwarmEvent, TradeLogEntry


@dataclass
class HistoryBuffer:
    """Rolling window of recent intensities, oldest first"""
    max_samples: int = DEFAULT_HISTORY_SIZE
    samples: list = field(default_factory=list)

    def add(self, value: float):
        self.samples.append(value)
        while len(self.samples) > self.max_samples:
            self.samples.pop(0)

    def to_list(self) -> List[float]:
        return list(self.samples)

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def last(self) -> Optional[float]:
        return self.samples[-1] if self.samples else None


@dataclass(frozen=True)
class StoreSnapshot:
    """Point-in-time copy of the store, safe to hand to analytics"""
    signals: Tuple[SignalStatus, ...] = ()
    portfolio: Optional[PortfolioSnapshot] = None
    agents: Tuple[AgentMetric, ...] = ()
    events: Tuple[SwarmEvent, ...] = ()
    history: Dict[str, Tuple[float, ...]] = field(default_factory=dict)
    trades: Tuple[TradeLogEntry, ...] = ()
    connected: bool = False

    def signal(self, name: str) -> Optional[SignalStatus]:
        for s in self.signals:
            if s.name == name:
                return s
        return None

    def to_dict(self) -> dict:
        return {
            'connected': self.connected,
            'pheromones': [s.to_dict() for s in self.signals],
            'portfolio': self.portfolio.to_dict() if self.portfolio else None,
            'agents': [a.to_dict() for a in self.agents],
            'events': [e.to_dict() for e in self.events],
            'history': {name: list(values) for name, values in self.history.items()},
            'trades': [t.to_dict() for t in self.trades],
        }


class StateStore:
    """Holds signals, portfolio, agents, bounded event log, histories and trades"""

    def __init__(self, history_size: int = DEFAULT_HISTORY_SIZE,
                 event_log_size: int = DEFAULT_EVENT_LOG_SIZE):
        self.history_size = history_size
        self.event_log_size = event_log_size
        self.signals: List[SignalStatus] = []
        self.portfolio: Optional[PortfolioSnapshot] = None
        self.agents: List[AgentMetric] = []
        self.events: List[SwarmEvent] = []
        self.history: Dict[str, HistoryBuffer] = {}
        self.trades: List[TradeLogEntry] = []
        self.connected = False

    # Mutations, one per inbound discriminant

    def pheromone_update(self, signals: List[SignalStatus]):
        """Replace signal statuses and extend each signal's history"""
        self.signals = list(signals)
        for s in self.signals:
            buf = self.history.get(s.name)
            if buf is None:
                buf = self.history[s.name] = HistoryBuffer(max_samples=self.history_size)
            buf.add(s.intensity)

    def portfolio_update(self, portfolio: PortfolioSnapshot):
        self.portfolio = portfolio

    def agent_metrics(self, agents: List[AgentMetric]):
        self.agents = list(agents)

    def trade_history(self, trades: List[TradeLogEntry]):
        self.trades = list(trades)

    def event(self, event_type: str, pheromone: str, intensity: float) -> SwarmEvent:
        """Record an event with a fresh id and receipt time, newest first"""
        evt = SwarmEvent(type=event_type, pheromone=pheromone, intensity=intensity)
        self.add_event(evt)
        return evt

    def add_event(self, evt: SwarmEvent):
        self.events.insert(0, evt)
        del self.events[self.event_log_size:]

    def set_connected(self, connected: bool):
        self.connected = connected

    def clear(self):
        """Drop everything received so far"""
        self.signals = []
        self.portfolio = None
        self.agents = []
        self.events = []
        self.history = {}
        self.trades = []

    # Reads

    def history_for(self, name: str) -> List[float]:
        buf = self.history.get(name)
        return buf.to_list() if buf else []

    def agent(self, name: str) -> Optional[AgentMetric]:
        for a in self.agents:
            if a.name == name:
                return a
        return None

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            signals=tuple(self.signals),
            portfolio=self.portfolio,
            agents=tuple(self.agents),
            events=tuple(self.events),
            history={name: tuple(buf.samples) for name, buf in self.history.items()},
            trades=tuple(self.trades),
            connected=self.connected,
        )

    def history_frame(self) -> pd.DataFrame:
        """Signal histories as long-format rows: signal, sample, intensity"""
        rows = [
            {'signal': name, 'sample': i, 'intensity': value}
            for name, buf in self.history.items()
            for i, value in enumerate(buf.samples)
        ]
        if not rows:
            return pd.DataFrame(columns=['signal', 'sample', 'intensity'])
        return pd.DataFrame(rows)

    def trades_frame(self) -> pd.DataFrame:
        columns = ['id', 'timestamp', 'action', 'symbol', 'amount', 'price',
                   'portfolio_value', 'drift_before', 'drift_after']
        if not self.trades:
            return pd.DataFrame(columns=columns)
        df = pd.DataFrame([t.to_dict() for t in self.trades], columns=columns)
        df['timestamp'] = pd.to_datetime(df['timestamp'], utc=True, errors='coerce')
        return df
