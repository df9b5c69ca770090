"""
Wire entities pushed by the swarm backend
Parsing is strict on required fields and ignores anything unknown
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import pandas as pd


def _text(value: Any) -> str:
    return '' if value is None else str(value)


def _optional_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def required_text(data: dict, key: str) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise TypeError(f"'{key}' must be a string, got {type(value).__name__}")
    return value


def required_flag(data: dict, key: str) -> bool:
    value = data[key]
    if not isinstance(value, bool):
        raise TypeError(f"'{key}' must be a boolean, got {type(value).__name__}")
    return value


def parse_timestamp(value: Optional[str]) -> Optional[pd.Timestamp]:
    """Parse an RFC 3339 timestamp (nanosecond precision allowed), None if absent or unreadable."""
    if not value:
        return None
    try:
        ts = pd.Timestamp(value)
    except (ValueError, TypeError):
        return None
    if ts is pd.NaT:
        return None
    if ts.tzinfo is None:
        ts = ts.tz_localize('UTC')
    return ts


@dataclass(frozen=True)
class SignalStatus:
    """Current state of one named pheromone signal"""
    name: str
    intensity: float
    threshold: float
    is_active: bool

    @classmethod
    def from_dict(cls, data: dict) -> 'SignalStatus':
        return cls(
            name=required_text(data, 'name'),
            intensity=float(data['intensity']),
            threshold=float(data['threshold']),
            is_active=required_flag(data, 'is_active'),
        )

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'intensity': self.intensity,
            'threshold': self.threshold,
            'is_active': self.is_active,
        }


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Portfolio valuation and current allocation split"""
    total_value: float
    stocks_value: float
    bonds_value: float
    stocks_pct: float
    bonds_pct: float
    last_trade_time: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'PortfolioSnapshot':
        return cls(
            total_value=float(data['total_value']),
            stocks_value=float(data['stocks_value']),
            bonds_value=float(data['bonds_value']),
            stocks_pct=float(data['stocks_pct']),
            bonds_pct=float(data['bonds_pct']),
            last_trade_time=_optional_text(data.get('last_trade_time')),
        )

    @property
    def last_trade_at(self) -> Optional[pd.Timestamp]:
        return parse_timestamp(self.last_trade_time)

    def to_dict(self) -> dict:
        return {
            'total_value': self.total_value,
            'stocks_value': self.stocks_value,
            'bonds_value': self.bonds_value,
            'stocks_pct': self.stocks_pct,
            'bonds_pct': self.bonds_pct,
            'last_trade_time': self.last_trade_time,
        }


@dataclass(frozen=True)
class AgentMetric:
    """Server-reported activity of one agent"""
    name: str
    is_active: bool
    action_count: int = 0
    last_action: str = ''
    last_action_time: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'AgentMetric':
        return cls(
            name=required_text(data, 'name'),
            is_active=required_flag(data, 'is_active'),
            action_count=int(data.get('action_count') or 0),
            last_action=_text(data.get('last_action')),
            last_action_time=_optional_text(data.get('last_action_time')),
        )

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'is_active': self.is_active,
            'action_count': self.action_count,
            'last_action': self.last_action,
            'last_action_time': self.last_action_time,
        }


@dataclass(frozen=True)
class TradeLogEntry:
    """One executed rebalance trade"""
    id: str
    timestamp: str
    action: str
    symbol: str
    amount: float
    price: float
    portfolio_value: float
    drift_before: float
    drift_after: float

    @classmethod
    def from_dict(cls, data: dict) -> 'TradeLogEntry':
        return cls(
            id=required_text(data, 'id'),
            timestamp=required_text(data, 'timestamp'),
            action=required_text(data, 'action'),
            symbol=required_text(data, 'symbol'),
            amount=float(data['amount']),
            price=float(data['price']),
            portfolio_value=float(data['portfolio_value']),
            drift_before=float(data['drift_before']),
            drift_after=float(data['drift_after']),
        )

    @property
    def executed_at(self) -> Optional[pd.Timestamp]:
        return parse_timestamp(self.timestamp)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'timestamp': self.timestamp,
            'action': self.action,
            'symbol': self.symbol,
            'amount': self.amount,
            'price': self.price,
            'portfolio_value': self.portfolio_value,
            'drift_before': self.drift_before,
            'drift_after': self.drift_after,
        }


@dataclass(frozen=True)
class SwarmEvent:
    """Pheromone lifecycle event, stamped on receipt"""
    type: str
    pheromone: str
    intensity: float
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'type': self.type,
            'pheromone': self.pheromone,
            'intensity': self.intensity,
            'timestamp': self.timestamp.isoformat(),
        }
