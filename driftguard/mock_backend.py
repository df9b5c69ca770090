"""
Mock Swarm Backend
Simulated pheromone swarm served over WebSocket for local development and tests

Usage:
    python -m driftguard.mock_backend                 # ws://127.0.0.1:8080/ws
    python -m driftguard.mock_backend --port 9000 --seed 7
"""

import argparse
import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

import aiohttp
import numpy as np
import orjson
from aiohttp import web

logger = logging.getLogger(__name__)

# name: (decay rate lambda per second, activation threshold)
SIGNALS = {
    'Price Freshness': (0.3, 0.7),
    'Rebalance Opportunity': (0.2, 0.6),
    'Execution Permit': (0.5, 0.5),
    'Trade Executed': (0.1, 0.3),
}
AGENT_NAMES = ('Sensor', 'Analyst', 'Guardian', 'Trader')

INITIAL_BALANCE = 100_000.0
DEFAULT_TARGET_STOCKS = 60.0
DRIFT_THRESHOLD = 5.0
VIX_HIGH = 25.0
MAX_TRADES = 50


def json_dumps(data) -> str:
    return orjson.dumps(data).decode('utf-8')


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Deposit:
    intensity: float
    at: float


class SimulatedSwarm:
    """
    Four agents coordinating through decaying pheromones.

    Intensities follow I(t) = I0 * exp(-lambda * t) from the moment of
    deposit. Time is passed in explicitly so the simulation is deterministic
    under test.
    """

    def __init__(self, seed: Optional[int] = None, sensor_interval: float = 2.0):
        self.rng = np.random.default_rng(seed)
        self.sensor_interval = sensor_interval
        self.deposits: Dict[str, Deposit] = {}
        self.target_stocks_pct = DEFAULT_TARGET_STOCKS
        self.target_bonds_pct = 100 - DEFAULT_TARGET_STOCKS
        self.trades: List[dict] = []
        self.vix = 18.0
        self._was_active: Dict[str, bool] = {}
        self._last_sensor: Optional[float] = None
        self._action_counts = {name: 0 for name in AGENT_NAMES}
        self._metrics: Dict[str, dict] = {}
        self._reset_portfolio()

    def _reset_portfolio(self):
        self.stocks_value = INITIAL_BALANCE * self.target_stocks_pct / 100
        self.bonds_value = INITIAL_BALANCE - self.stocks_value
        self.last_trade_time: Optional[str] = None

    # Pheromone physics

    def intensity(self, name: str, now: float) -> float:
        d = self.deposits.get(name)
        if d is None:
            return 0.0
        decay, _ = SIGNALS[name]
        return float(d.intensity * np.exp(-decay * max(0.0, now - d.at)))

    def is_active(self, name: str, now: float) -> bool:
        return self.intensity(name, now) > SIGNALS[name][1]

    def _deposit(self, name: str, now: float, events: List[dict]):
        self.deposits[name] = Deposit(1.0, now)
        events.append(self._event('Deposited', name, 1.0))

    @staticmethod
    def _event(action: str, name: str, intensity: float) -> dict:
        return {'type': 'event', 'event_type': action, 'pheromone': name, 'intensity': intensity}

    def _metric(self, agent: str, active: bool, action: str, counted: bool = True):
        if counted:
            self._action_counts[agent] += 1
        self._metrics[agent] = {
            'name': agent,
            'is_active': active,
            'action_count': self._action_counts[agent],
            'last_action': action,
            'last_action_time': _utc_now(),
        }

    # Portfolio

    @property
    def total_value(self) -> float:
        return self.stocks_value + self.bonds_value

    @property
    def stocks_pct(self) -> float:
        total = self.total_value
        return self.stocks_value / total * 100 if total else 0.0

    def set_allocation(self, stocks_pct: float, bonds_pct: float):
        logger.info("[MOCK] Target allocation %.1f%% / %.1f%%", stocks_pct, bonds_pct)
        self.target_stocks_pct = float(stocks_pct)
        self.target_bonds_pct = float(bonds_pct)

    def reset(self):
        logger.info("[MOCK] Reset requested")
        self.deposits.clear()
        self._was_active.clear()
        self._reset_portfolio()

    def _move_market(self):
        self.stocks_value *= 1 + self.rng.normal(0.0, 0.004)
        self.bonds_value *= 1 + self.rng.normal(0.0, 0.001)
        self.vix = float(np.clip(self.vix + self.rng.normal(0.0, 0.5), 10.0, 40.0))

    def _execute_trade(self, now: float, events: List[dict]):
        drift_before = abs(self.stocks_pct - self.target_stocks_pct)
        target_stocks_value = self.total_value * self.target_stocks_pct / 100
        delta = target_stocks_value - self.stocks_value
        action = 'Buy Stocks' if delta > 0 else 'Sell Stocks'
        price = self.stocks_value / 100
        self.stocks_value += delta
        self.bonds_value -= delta
        self.last_trade_time = _utc_now()
        self.trades.insert(0, {
            'id': str(uuid.uuid4()),
            'timestamp': self.last_trade_time,
            'action': action,
            'symbol': 'SPY',
            'amount': abs(delta),
            'price': price,
            'portfolio_value': self.total_value,
            'drift_before': drift_before,
            'drift_after': abs(self.stocks_pct - self.target_stocks_pct),
        })
        del self.trades[MAX_TRADES:]
        # The permit is consumed by the trade
        self.deposits.pop('Execution Permit', None)
        self.deposits.pop('Rebalance Opportunity', None)
        self._deposit('Trade Executed', now, events)
        self._metric('Trader', True, f"Executed: {action}")

    def step(self, now: float) -> List[dict]:
        """Advance one sniff cycle; returns the event frames it produced"""
        events: List[dict] = []
        self._move_market()

        if self._last_sensor is None or now - self._last_sensor >= self.sensor_interval:
            self._last_sensor = now
            self._deposit('Price Freshness', now, events)
            self._metric('Sensor', True, 'Fetched prices')

        if self.is_active('Price Freshness', now):
            drift = abs(self.stocks_pct - self.target_stocks_pct)
            if drift > DRIFT_THRESHOLD and not self.is_active('Rebalance Opportunity', now):
                events.append(self._event('Sniffed', 'Price Freshness',
                                          self.intensity('Price Freshness', now)))
                self._deposit('Rebalance Opportunity', now, events)
                self._metric('Analyst', True, f"Drift {drift:.1f}% - rebalance")
            else:
                self._metric('Analyst', True, f"Drift {drift:.1f}% within threshold", counted=False)
        else:
            self._metric('Analyst', False, 'Dormant', counted=False)

        if self.is_active('Rebalance Opportunity', now) and not self.is_active('Execution Permit', now):
            events.append(self._event('Sniffed', 'Rebalance Opportunity',
                                      self.intensity('Rebalance Opportunity', now)))
            if self.vix <= VIX_HIGH:
                self._deposit('Execution Permit', now, events)
                self._metric('Guardian', True, f"Permit granted (VIX {self.vix:.1f})")
            else:
                self._metric('Guardian', False, f"Blocked (VIX {self.vix:.1f})")

        if self.is_active('Execution Permit', now):
            events.append(self._event('Sniffed', 'Execution Permit',
                                      self.intensity('Execution Permit', now)))
            self._execute_trade(now, events)

        for name in SIGNALS:
            active = self.is_active(name, now)
            if self._was_active.get(name) and not active:
                events.append(self._event('Decayed', name, self.intensity(name, now)))
            self._was_active[name] = active
        return events

    # Frames

    def pheromone_frame(self, now: float) -> dict:
        return {'type': 'pheromone_update', 'pheromones': [
            {
                'name': name,
                'intensity': self.intensity(name, now),
                'threshold': threshold,
                'is_active': self.is_active(name, now),
            }
            for name, (_, threshold) in SIGNALS.items()
        ]}

    def portfolio_frame(self) -> dict:
        stocks_pct = self.stocks_pct
        return {'type': 'portfolio_update', 'portfolio': {
            'total_value': self.total_value,
            'stocks_value': self.stocks_value,
            'bonds_value': self.bonds_value,
            'stocks_pct': stocks_pct,
            'bonds_pct': 100 - stocks_pct,
            'last_trade_time': self.last_trade_time,
        }}

    def agents_frame(self) -> dict:
        return {'type': 'agent_metrics', 'agents': list(self._metrics.values())}

    def trades_frame(self) -> dict:
        return {'type': 'trade_history', 'trades': list(self.trades)}

    def state_frames(self, now: float) -> List[dict]:
        frames = [self.pheromone_frame(now), self.portfolio_frame()]
        if self._metrics:
            frames.append(self.agents_frame())
        frames.append(self.trades_frame())
        return frames


class MockBackendServer:
    """aiohttp server pushing swarm state to every connected dashboard"""

    def __init__(self, host='127.0.0.1', port=8080, interval=0.5, seed=None):
        self.host = host
        self.port = port
        self.interval = interval
        self.swarm = SimulatedSwarm(seed=seed)
        self.clients = set()
        self.running = False
        self._tick_task = None

    def _now(self) -> float:
        return asyncio.get_running_loop().time()

    async def _broadcast(self, data: dict):
        if not self.clients:
            return
        message = json_dumps(data)
        for client in list(self.clients):
            try:
                await client.send_str(message)
            except (ConnectionError, RuntimeError):
                self.clients.discard(client)

    async def _tick_loop(self):
        while self.running:
            now = self._now()
            for evt in self.swarm.step(now):
                await self._broadcast(evt)
            for frame in self.swarm.state_frames(now):
                await self._broadcast(frame)
            await asyncio.sleep(self.interval)

    def handle_client_message(self, text: str):
        try:
            msg = orjson.loads(text)
        except orjson.JSONDecodeError as e:
            logger.warning("[MOCK] Bad client message: %s", e)
            return
        if not isinstance(msg, dict):
            return
        kind = msg.get('type')
        if kind == 'set_allocation':
            try:
                self.swarm.set_allocation(float(msg['stocks_pct']), float(msg['bonds_pct']))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("[MOCK] Bad set_allocation: %r", e)
        elif kind == 'reset':
            self.swarm.reset()
        elif kind == 'get_status':
            pass  # state goes out on every tick anyway
        else:
            logger.debug("[MOCK] Ignoring client message %r", kind)

    async def websocket_handler(self, request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        self.clients.add(ws)
        logger.info("[MOCK] Dashboard connected (%d total)", len(self.clients))

        for frame in self.swarm.state_frames(self._now()):
            await ws.send_str(json_dumps(frame))

        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self.handle_client_message(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.warning("[MOCK] WebSocket error: %s", ws.exception())
        finally:
            self.clients.discard(ws)
            logger.info("[MOCK] Dashboard disconnected (%d total)", len(self.clients))

        return ws

    async def health_handler(self, request):
        return web.json_response({'status': 'ok'})

    async def _on_startup(self, app):
        self.running = True
        self._tick_task = asyncio.create_task(self._tick_loop())

    async def _on_shutdown(self, app):
        self.running = False
        for client in list(self.clients):
            await client.close()
        if self._tick_task is not None:
            self._tick_task.cancel()
            try:
                await self._tick_task
            except asyncio.CancelledError:
                pass

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get('/ws', self.websocket_handler)
        app.router.add_get('/health', self.health_handler)
        app.on_startup.append(self._on_startup)
        app.on_shutdown.append(self._on_shutdown)
        return app

    async def run(self):
        runner = web.AppRunner(self.build_app())
        await runner.setup()
        site = web.TCPSite(runner, self.host, self.port)
        await site.start()
        print(f"[SERVER] Mock swarm: ws://{self.host}:{self.port}/ws")
        print("[SERVER] Press Ctrl+C to stop\n")
        try:
            while True:
                await asyncio.sleep(3600)
        finally:
            await runner.cleanup()
            print("[OK] Shutdown complete")


def main():
    parser = argparse.ArgumentParser(description='Mock DriftGuard swarm backend')
    parser.add_argument('--host', default='127.0.0.1')
    parser.add_argument('--port', type=int, default=8080)
    parser.add_argument('--interval', type=float, default=0.5,
                        help='Seconds between state pushes (default: 0.5)')
    parser.add_argument('--seed', type=int, default=None)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(message)s')
    server = MockBackendServer(host=args.host, port=args.port, interval=args.interval, seed=args.seed)
    try:
        asyncio.run(server.run())
    except KeyboardInterrupt:
        pass


if __name__ == '__main__':
    main()
