"""Shared fixtures: an in-memory WebSocket stand-in and small async helpers."""
import asyncio

import orjson
import pytest

_CLOSE = object()


class FakeSocket:
    """Minimal async-iterable socket: frames pushed by the test come out in order."""

    def __init__(self):
        self.sent = []
        self.closed = False
        self._inbox = asyncio.Queue()

    def push(self, frame):
        self._inbox.put_nowait(frame)

    def drop(self):
        """Simulate the remote side closing the connection."""
        self._inbox.put_nowait(_CLOSE)

    def fail(self, exc: Exception):
        self._inbox.put_nowait(exc)

    async def send(self, text):
        if self.closed:
            raise OSError("socket is closed")
        self.sent.append(text)

    async def close(self):
        self.closed = True
        self._inbox.put_nowait(_CLOSE)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._inbox.get()
        if item is _CLOSE:
            self.closed = True
            raise StopAsyncIteration
        if isinstance(item, Exception):
            self.closed = True
            raise item
        return item


class FakeConnector:
    """Connector double: fails the first `fail_times` attempts, then hands out FakeSockets."""

    def __init__(self, fail_times: int = 0):
        self.fail_times = fail_times
        self.calls = 0
        self.urls = []
        self.sockets = []

    async def __call__(self, url):
        self.calls += 1
        self.urls.append(url)
        if self.calls <= self.fail_times:
            raise OSError("connection refused")
        ws = FakeSocket()
        self.sockets.append(ws)
        return ws

    @property
    def last(self) -> FakeSocket:
        return self.sockets[-1]


async def _wait_until(predicate, timeout: float = 2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


def _frame(kind: str, **fields) -> str:
    return orjson.dumps({'type': kind, **fields}).decode('utf-8')


@pytest.fixture
def fake_connector():
    return FakeConnector()


@pytest.fixture
def wait_until():
    return _wait_until


@pytest.fixture
def frame():
    return _frame


@pytest.fixture
def portfolio_payload():
    return {
        'total_value': 100000.0,
        'stocks_value': 62000.0,
        'bonds_value': 38000.0,
        'stocks_pct': 62.0,
        'bonds_pct': 38.0,
        'last_trade_time': None,
    }


@pytest.fixture
def trade_payload():
    return {
        'id': 't-1',
        'timestamp': '2026-02-06T12:30:00+00:00',
        'action': 'Buy Stocks',
        'symbol': 'SPY',
        'amount': 1500.0,
        'price': 600.0,
        'portfolio_value': 101200.0,
        'drift_before': 6.5,
        'drift_after': 0.0,
    }


@pytest.fixture
def make_connector():
    return FakeConnector
