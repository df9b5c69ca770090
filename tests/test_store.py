"""Bounded buffers and wholesale replacement in the state store."""
from driftguard.models import AgentMetric, PortfolioSnapshot, SignalStatus, TradeLogEntry
from driftguard.store import HistoryBuffer, StateStore


def _signal(name, intensity, active=True):
    return SignalStatus(name=name, intensity=intensity, threshold=0.5, is_active=active)


def test_history_buffer_keeps_most_recent_samples():
    buf = HistoryBuffer(max_samples=3)
    for v in [0.1, 0.2, 0.3, 0.4, 0.5]:
        buf.add(v)
    assert buf.to_list() == [0.3, 0.4, 0.5]
    assert buf.last == 0.5
    assert len(buf) == 3


def test_signal_history_never_exceeds_cap_and_holds_last_twenty():
    store = StateStore()
    received = []
    for i in range(45):
        value = i / 100
        received.append(value)
        store.pheromone_update([_signal('Price Freshness', value)])
        assert len(store.history_for('Price Freshness')) <= 20
    assert store.history_for('Price Freshness') == received[-20:]


def test_history_is_independent_per_signal():
    store = StateStore()
    store.pheromone_update([_signal('A', 0.1), _signal('B', 0.9)])
    store.pheromone_update([_signal('A', 0.2)])
    assert store.history_for('A') == [0.1, 0.2]
    assert store.history_for('B') == [0.9]
    assert store.history_for('missing') == []


def test_pheromone_update_replaces_collection():
    store = StateStore()
    store.pheromone_update([_signal('A', 0.1), _signal('B', 0.2)])
    store.pheromone_update([_signal('C', 0.3)])
    assert [s.name for s in store.signals] == ['C']


def test_event_log_capped_newest_first():
    store = StateStore()
    for i in range(60):
        store.event('Deposited', f'signal-{i}', 1.0)
        assert len(store.events) <= 50
    assert len(store.events) == 50
    assert store.events[0].pheromone == 'signal-59'
    assert store.events[-1].pheromone == 'signal-10'
    stamps = [e.timestamp for e in store.events]
    assert stamps == sorted(stamps, reverse=True)
    assert len({e.id for e in store.events}) == 50


def test_fields_update_independently():
    store = StateStore()
    portfolio = PortfolioSnapshot(100.0, 60.0, 40.0, 60.0, 40.0)
    store.portfolio_update(portfolio)
    store.agent_metrics([AgentMetric('Sensor', True, 3)])
    store.pheromone_update([_signal('A', 0.4)])
    assert store.portfolio is portfolio
    assert store.agent('Sensor').action_count == 3
    assert store.agent('Trader') is None


def test_trade_history_replaced_not_appended(trade_payload):
    store = StateStore()
    first = TradeLogEntry.from_dict(trade_payload)
    second = TradeLogEntry.from_dict({**trade_payload, 'id': 't-2'})
    store.trade_history([first])
    store.trade_history([second])
    assert [t.id for t in store.trades] == ['t-2']


def test_snapshot_is_a_copy():
    store = StateStore()
    store.pheromone_update([_signal('A', 0.4)])
    snap = store.snapshot()
    store.pheromone_update([_signal('A', 0.6)])
    assert snap.history['A'] == (0.4,)
    assert snap.signal('A').intensity == 0.4
    assert snap.signal('B') is None


def test_clear_empties_everything():
    store = StateStore()
    store.pheromone_update([_signal('A', 0.4)])
    store.event('Sniffed', 'A', 0.4)
    store.portfolio_update(PortfolioSnapshot(1.0, 0.5, 0.5, 50.0, 50.0))
    store.clear()
    snap = store.snapshot()
    assert snap.signals == () and snap.events == () and snap.history == {}
    assert snap.portfolio is None


def test_history_frame_long_format():
    store = StateStore(history_size=2)
    store.pheromone_update([_signal('A', 0.1)])
    store.pheromone_update([_signal('A', 0.2)])
    store.pheromone_update([_signal('A', 0.3)])
    df = store.history_frame()
    assert list(df.columns) == ['signal', 'sample', 'intensity']
    assert df['intensity'].tolist() == [0.2, 0.3]
    assert StateStore().history_frame().empty


def test_trades_frame_parses_timestamps(trade_payload):
    store = StateStore()
    store.trade_history([TradeLogEntry.from_dict(trade_payload)])
    df = store.trades_frame()
    assert len(df) == 1
    assert df.iloc[0]['timestamp'].hour == 12
    assert StateStore().trades_frame().empty


def test_snapshot_to_dict_is_plain_data():
    store = StateStore()
    store.set_connected(True)
    store.pheromone_update([_signal('A', 0.4)])
    store.event('Deposited', 'A', 0.4)
    data = store.snapshot().to_dict()
    assert data['connected'] is True
    assert data['pheromones'][0]['name'] == 'A'
    assert data['portfolio'] is None
    assert data['history'] == {'A': [0.4]}
    assert data['events'][0]['type'] == 'Deposited'
    assert isinstance(data['events'][0]['timestamp'], str)
