"""
DriftGuard Swarm Monitor - terminal view of the live swarm state

Usage:
    py run_client.py                         # Monitor ws://localhost:8080/ws for 5 min
    py run_client.py --duration 60           # Monitor for 60 seconds
    py run_client.py --set-allocation 70     # Request a 70/30 target once connected
    py run_client.py --reset                 # Reset the swarm once connected
    py run_client.py --preset 40/60         # Send one of the preset splits
    py run_client.py --json                  # Print snapshots as JSON lines
    Ctrl+C to stop
"""

import argparse
import asyncio
import logging
import signal
from datetime import datetime, timezone

import orjson

from driftguard import ClientConfig, ConnectionState, SwarmClient
from driftguard.commands import ALLOCATION_PRESETS
from driftguard.analytics import (
    event_counts, format_currency, format_last_trade, intensity_percent, is_buy, signal_style,
)


class SwarmMonitor:
    """Connects a SwarmClient and prints a status board periodically"""

    def __init__(self, config: ClientConfig, duration_sec: float = 300, refresh_sec: float = 2.0,
                 set_allocation: float = None, reset: bool = False, as_json: bool = False):
        self.as_json = as_json
        self.duration_sec = duration_sec
        self.refresh_sec = refresh_sec
        self.pending_allocation = set_allocation
        self.pending_reset = reset
        self.running = False
        self.client = SwarmClient(config, on_state_change=self._on_state_change)

    def _on_state_change(self, state: ConnectionState):
        print(f"[WS] {state.value.upper()}")

    def stop(self):
        self.running = False

    async def _send_pending(self):
        if not self.client.connected:
            return
        if self.pending_reset and await self.client.reset():
            print("[CMD] Reset sent")
            self.pending_reset = False
        if self.pending_allocation is not None:
            stocks = self.pending_allocation
            if await self.client.set_allocation_stocks(stocks):
                print(f"[CMD] Allocation {stocks:.0f}/{100 - stocks:.0f} sent")
                self.pending_allocation = None

    def render(self) -> str:
        snap = self.client.snapshot()
        utc_now = datetime.now(timezone.utc).strftime('%H:%M:%S')
        status = 'CONNECTED' if snap.connected else 'DISCONNECTED'
        lines = ["=" * 60, f"[{utc_now} UTC] {status}", "=" * 60]

        lines.append("PHEROMONES")
        if not snap.signals:
            lines.append("  Waiting for connection...")
        for s in snap.signals:
            _, description = signal_style(s.name)
            flag = '*' if s.is_active else ' '
            lines.append(f" {flag} {s.name:<22} {intensity_percent(s.intensity):>3}%"
                         f"  (threshold {intensity_percent(s.threshold)}%)  {description}")

        lines.append("AGENTS")
        for a in self.client.agent_activity():
            state = 'ACTIVE' if a.is_active else 'dormant'
            ops = f" {a.action_count} ops" if a.action_count else ''
            lines.append(f"  {a.name:<10} {state:<8} [{a.source}]{ops}")

        lines.append("PORTFOLIO")
        if snap.portfolio is None:
            lines.append("  // CONNECTING TO BROKER...")
        else:
            p = snap.portfolio
            lines.append(f"  Total {format_currency(p.total_value)}"
                         f" | Stocks {format_currency(p.stocks_value)} ({p.stocks_pct:.1f}%)"
                         f" | Bonds {format_currency(p.bonds_value)} ({p.bonds_pct:.1f}%)")
            lines.append(f"  Last rebalance: {format_last_trade(p)}")
            drift = self.client.drift()
            lines.append(f"  Drift {drift.drift:.1f}% vs {drift.target_stocks_pct:.0f}/"
                         f"{drift.target_bonds_pct:.0f} -> {drift.severity.label}")

        counts = event_counts(snap.events)
        lines.append("EVENTS " + ' '.join(f"{k}={v}" for k, v in counts.items()))
        for e in snap.events[:5]:
            lines.append(f"  {e.timestamp.strftime('%H:%M:%S')} {e.type.upper():<10}"
                         f" {e.pheromone:<22} {intensity_percent(e.intensity)}%")

        lines.append(f"TRADES ({len(snap.trades)})")
        for t in snap.trades[:3]:
            side = 'BUY ' if is_buy(t) else 'SELL'
            lines.append(f"  {side} {t.symbol} ${t.amount:.2f}  drift {t.drift_before:.2f}%"
                         f"  value {format_currency(t.portfolio_value)}")
        return '\n'.join(lines)

    async def run(self):
        print("=" * 60)
        print("DRIFTGUARD SWARM MONITOR")
        print(f"Endpoint: {self.client.config.ws_url} | Duration: {self.duration_sec:.0f}s")
        print("=" * 60)

        self.running = True
        loop = asyncio.get_running_loop()
        start = loop.time()
        last_render = start
        self.client.connect()
        try:
            while self.running:
                await asyncio.sleep(0.25)
                await self._send_pending()
                now = loop.time()
                if now - start >= self.duration_sec:
                    print(f"\n[INFO] Duration limit ({self.duration_sec:.0f}s) reached")
                    break
                if now - last_render >= self.refresh_sec:
                    if self.as_json:
                        print(orjson.dumps(self.client.snapshot().to_dict()).decode('utf-8'))
                    else:
                        print(self.render())
                    last_render = now
        finally:
            await self.client.close()
            print("[OK] Disconnected cleanly")


def main():
    parser = argparse.ArgumentParser(description='DriftGuard Swarm Monitor')
    parser.add_argument('--url', default=None,
                        help='Backend WebSocket URL (default: $DRIFTGUARD_WS_URL or ws://localhost:8080/ws)')
    parser.add_argument('--duration', type=float, default=300,
                        help='How long to monitor in seconds (default: 300)')
    parser.add_argument('--refresh', type=float, default=2.0,
                        help='Status refresh interval in seconds (default: 2)')
    parser.add_argument('--target', type=float, default=None,
                        help='Target stocks %% used for drift (default: 60)')
    parser.add_argument('--set-allocation', type=float, default=None, metavar='STOCKS',
                        help='Send a set_allocation of STOCKS / 100-STOCKS once connected')
    parser.add_argument('--preset', choices=[label for label, _ in ALLOCATION_PRESETS], default=None,
                        help='Send one of the preset stocks/bonds splits once connected')
    parser.add_argument('--reset', action='store_true',
                        help='Send a reset once connected')
    parser.add_argument('--json', action='store_true',
                        help='Print raw store snapshots as JSON instead of the status board')
    parser.add_argument('--log-level', default='WARNING')
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(),
                        format='%(asctime)s %(levelname)s %(name)s %(message)s')

    config = ClientConfig.from_env(ws_url=args.url, target_stocks_pct=args.target)
    allocation = args.set_allocation
    if args.preset:
        allocation = dict(ALLOCATION_PRESETS)[args.preset]
    monitor = SwarmMonitor(config, duration_sec=args.duration, refresh_sec=args.refresh,
                           set_allocation=allocation, reset=args.reset, as_json=args.json)

    async def _main():
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, monitor.stop)
        except NotImplementedError:
            pass  # Windows
        await monitor.run()

    asyncio.run(_main())


if __name__ == '__main__':
    main()
