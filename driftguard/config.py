"""
Client configuration
Endpoint, reconnect policy and buffer caps, overridable from the environment
"""

import os
from dataclasses import dataclass

DEFAULT_WS_URL = 'ws://localhost:8080/ws'
DEFAULT_RECONNECT_DELAY = 2.0  # seconds, fixed (no backoff)
DEFAULT_HISTORY_SIZE = 20      # samples per signal
DEFAULT_EVENT_LOG_SIZE = 50    # most recent events kept
DEFAULT_TARGET_STOCKS_PCT = 60.0

ENV_WS_URL = 'DRIFTGUARD_WS_URL'
ENV_RECONNECT_DELAY = 'DRIFTGUARD_RECONNECT_DELAY'
ENV_TARGET_STOCKS_PCT = 'DRIFTGUARD_TARGET_STOCKS_PCT'


def _env(name: str) -> str | None:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass
class ClientConfig:
    """Settings for one client instance"""
    ws_url: str = DEFAULT_WS_URL
    reconnect_delay: float = DEFAULT_RECONNECT_DELAY
    history_size: int = DEFAULT_HISTORY_SIZE
    event_log_size: int = DEFAULT_EVENT_LOG_SIZE
    target_stocks_pct: float = DEFAULT_TARGET_STOCKS_PCT

    def __post_init__(self):
        if self.reconnect_delay <= 0:
            raise ValueError(f"reconnect_delay must be positive, got {self.reconnect_delay}")
        if self.history_size <= 0:
            raise ValueError(f"history_size must be positive, got {self.history_size}")
        if self.event_log_size <= 0:
            raise ValueError(f"event_log_size must be positive, got {self.event_log_size}")

    @classmethod
    def from_env(cls, **overrides) -> 'ClientConfig':
        """Build config from DRIFTGUARD_* variables; keyword overrides win."""
        values = {}
        url = _env(ENV_WS_URL)
        if url:
            values['ws_url'] = url
        delay = _env(ENV_RECONNECT_DELAY)
        if delay:
            values['reconnect_delay'] = float(delay)
        target = _env(ENV_TARGET_STOCKS_PCT)
        if target:
            values['target_stocks_pct'] = float(target)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
