"""
DriftGuard dashboard client
Streaming state reconciliation for the pheromone-driven rebalancing swarm
"""

from .client import SwarmClient
from .config import ClientConfig
from .connection import ConnectionManager, ConnectionState
from .dispatcher import MessageDispatcher
from .store import StateStore, StoreSnapshot

__all__ = [
    'SwarmClient',
    'ClientConfig',
    'ConnectionManager',
    'ConnectionState',
    'MessageDispatcher',
    'StateStore',
    'StoreSnapshot',
]
