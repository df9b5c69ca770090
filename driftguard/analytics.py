"""
Derived Analytics
Pure functions over store data: drift tiers, sparklines, gauge geometry, agent activity
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .models import AgentMetric, PortfolioSnapshot, SignalStatus, SwarmEvent, TradeLogEntry

# Agent that reads the market feed directly rather than a pheromone
EXTERNAL_API = 'External API'

EVENT_TYPES = ('Deposited', 'Sniffed', 'Decayed')

GAUGE_SIZE = 140
GAUGE_STROKE = 8


# ---------------------------------------------------------------- drift

class DriftSeverity(Enum):
    ALIGNED = ('ALIGNED', 'rgb(74, 222, 128)')
    MINOR = ('MINOR DRIFT', 'rgb(251, 191, 36)')
    MODERATE = ('MODERATE DRIFT', 'rgb(251, 146, 60)')
    CRITICAL = ('CRITICAL DRIFT', 'rgb(248, 113, 113)')

    @property
    def label(self) -> str:
        return self.value[0]

    @property
    def color(self) -> str:
        return self.value[1]


def classify_drift(drift: float) -> DriftSeverity:
    """Tier a drift in percentage points; each boundary belongs to the lower tier"""
    if drift <= 2:
        return DriftSeverity.ALIGNED
    if drift <= 5:
        return DriftSeverity.MINOR
    if drift <= 10:
        return DriftSeverity.MODERATE
    return DriftSeverity.CRITICAL


@dataclass(frozen=True)
class DriftReading:
    """Current vs target allocation"""
    current_stocks_pct: float
    current_bonds_pct: float
    target_stocks_pct: float

    @property
    def target_bonds_pct(self) -> float:
        return 100 - self.target_stocks_pct

    @property
    def drift(self) -> float:
        return abs(self.current_stocks_pct - self.target_stocks_pct)

    @property
    def severity(self) -> DriftSeverity:
        return classify_drift(self.drift)

    def to_dict(self) -> dict:
        return {
            'current_stocks_pct': self.current_stocks_pct,
            'current_bonds_pct': self.current_bonds_pct,
            'target_stocks_pct': self.target_stocks_pct,
            'target_bonds_pct': self.target_bonds_pct,
            'drift': round(self.drift, 2),
            'severity': self.severity.label,
            'color': self.severity.color,
        }


def drift_reading(portfolio: Optional[PortfolioSnapshot], target_stocks_pct: float) -> Optional[DriftReading]:
    if portfolio is None:
        return None
    return DriftReading(portfolio.stocks_pct, portfolio.bonds_pct, target_stocks_pct)


# ---------------------------------------------------------------- sparkline

def sparkline_points(values: Sequence[float], width: float, height: float) -> List[Tuple[float, float]]:
    """
    Screen coordinates for a sparkline.

    x spreads the samples evenly over [0, width]; y is inverted so higher
    intensity sits nearer the top. Fewer than two samples draw nothing.
    Out-of-range intensities are plotted as given.
    """
    if len(values) < 2:
        return []
    v = np.asarray(values, dtype=float)
    xs = np.linspace(0.0, width, num=len(v))
    ys = height - v * height
    return [(float(x), float(y)) for x, y in zip(xs, ys)]


def sparkline_path(values: Sequence[float], width: float, height: float) -> str:
    """SVG polyline `points` attribute for the same geometry"""
    return ' '.join(f"{x:.2f},{y:.2f}" for x, y in sparkline_points(values, width, height))


# ---------------------------------------------------------------- radial gauge

@dataclass(frozen=True)
class GaugeGeometry:
    """Two contiguous arcs (stocks then bonds) and a target marker on one circle"""
    radius: float
    circumference: float
    stocks_arc: float
    bonds_arc: float
    bonds_offset: float
    target_angle: float
    marker_x: float
    marker_y: float

    @property
    def stocks_dasharray(self) -> str:
        return f"{self.stocks_arc} {self.circumference - self.stocks_arc}"

    @property
    def bonds_dasharray(self) -> str:
        return f"{self.bonds_arc} {self.circumference - self.bonds_arc}"


def gauge_geometry(stocks_pct: float, bonds_pct: float, target_stocks_pct: float,
                   size: float = GAUGE_SIZE, stroke_width: float = GAUGE_STROKE) -> GaugeGeometry:
    radius = (size - stroke_width) / 2
    circumference = 2 * math.pi * radius
    center = size / 2
    stocks_arc = stocks_pct / 100 * circumference
    bonds_arc = bonds_pct / 100 * circumference
    # 0% points at the top of the circle
    target_angle = target_stocks_pct / 100 * 360 - 90
    rad = math.radians(target_angle)
    return GaugeGeometry(
        radius=radius,
        circumference=circumference,
        stocks_arc=stocks_arc,
        bonds_arc=bonds_arc,
        bonds_offset=stocks_arc,
        target_angle=target_angle,
        marker_x=center + radius * math.cos(rad),
        marker_y=center + radius * math.sin(rad),
    )


# ---------------------------------------------------------------- agents

@dataclass(frozen=True)
class AgentInfo:
    name: str
    listen_to: Optional[str]
    emits: str
    description: str = ''

    @property
    def is_entry(self) -> bool:
        return self.listen_to is None or self.listen_to == EXTERNAL_API

    @property
    def emits_abbrev(self) -> str:
        return ''.join(w[0] for w in self.emits.split())


DEFAULT_AGENTS = (
    AgentInfo('Sensor', EXTERNAL_API, 'Price Freshness', 'Ingests market data'),
    AgentInfo('Analyst', 'Price Freshness', 'Rebalance Opportunity', 'Calculates drift'),
    AgentInfo('Guardian', 'Rebalance Opportunity', 'Execution Permit', 'VIX circuit breaker'),
    AgentInfo('Trader', 'Execution Permit', 'Trade Executed', 'Executes trades'),
)


@dataclass(frozen=True)
class AgentActivity:
    name: str
    is_active: bool
    source: str  # 'metrics' or 'signal'
    action_count: int = 0
    last_action: str = ''


def resolve_agent_activity(agent: AgentInfo,
                           signals: Iterable[SignalStatus],
                           metrics: Iterable[AgentMetric]) -> AgentActivity:
    """
    Authoritative metrics win when the server reported this agent.
    Otherwise the entry agent is active and every other agent mirrors the
    is_active flag of the signal it listens to (inactive if never seen).
    """
    metric = next((m for m in metrics if m.name == agent.name), None)
    if metric is not None:
        return AgentActivity(agent.name, metric.is_active, 'metrics',
                             metric.action_count, metric.last_action)
    if agent.is_entry:
        return AgentActivity(agent.name, True, 'signal')
    signal = next((s for s in signals if s.name == agent.listen_to), None)
    return AgentActivity(agent.name, bool(signal and signal.is_active), 'signal')


def resolve_agents(signals: Sequence[SignalStatus], metrics: Sequence[AgentMetric],
                   agents: Sequence[AgentInfo] = DEFAULT_AGENTS) -> List[AgentActivity]:
    return [resolve_agent_activity(a, signals, metrics) for a in agents]


# ---------------------------------------------------------------- signals

SIGNAL_STYLES: Dict[str, Tuple[str, str]] = {
    'Price Freshness': ('#22c55e', 'Fresh market data available'),
    'Rebalance Opportunity': ('#eab308', 'Drift detected, rebalance needed'),
    'Execution Permit': ('#3b82f6', 'Volatility check passed'),
    'Trade Executed': ('#8b5cf6', 'Trade completed'),
}
DEFAULT_SIGNAL_STYLE = ('#888', '')


def signal_style(name: str) -> Tuple[str, str]:
    """(colour, description) for a signal name"""
    return SIGNAL_STYLES.get(name, DEFAULT_SIGNAL_STYLE)


def intensity_percent(fraction: float) -> int:
    """0..1 fraction to a whole percent, halves rounded up"""
    return int(math.floor(fraction * 100 + 0.5))


# ---------------------------------------------------------------- events & trades

def filter_events(events: Sequence[SwarmEvent], types: Optional[Iterable[str]] = None) -> List[SwarmEvent]:
    """Events whose type is selected; no selection shows everything"""
    selected = set(types or ())
    if not selected:
        return list(events)
    return [e for e in events if e.type in selected]


def event_counts(events: Sequence[SwarmEvent]) -> Dict[str, int]:
    counts = {t: 0 for t in EVENT_TYPES}
    for e in events:
        if e.type in counts:
            counts[e.type] += 1
    return counts


def is_buy(trade: TradeLogEntry) -> bool:
    return 'buy' in trade.action.lower()


# ---------------------------------------------------------------- formatting

def format_currency(value: float) -> str:
    """Whole dollars with thousands separators"""
    sign = '-' if value < 0 else ''
    return f"{sign}${abs(value):,.0f}"


def format_last_trade(portfolio: Optional[PortfolioSnapshot]) -> str:
    ts = portfolio.last_trade_at if portfolio else None
    if ts is None:
        return 'Never'
    return ts.tz_convert('UTC').strftime('%H:%M:%S UTC')
