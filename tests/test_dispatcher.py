"""Frame decoding, routing and drop behaviour."""
from datetime import datetime, timezone

import pytest

from driftguard.dispatcher import MessageDispatcher
from driftguard.store import StateStore

PF = {'name': 'Price Freshness', 'intensity': 0.9, 'threshold': 0.7, 'is_active': True}


@pytest.fixture
def dispatcher():
    return MessageDispatcher(StateStore())


def test_pheromone_update_routes_to_store(dispatcher, frame):
    assert dispatcher.dispatch(frame('pheromone_update', pheromones=[PF]))
    assert dispatcher.store.signals[0].name == 'Price Freshness'
    assert dispatcher.store.history_for('Price Freshness') == [0.9]


def test_portfolio_update(dispatcher, frame, portfolio_payload):
    assert dispatcher.dispatch(frame('portfolio_update', portfolio=portfolio_payload))
    p = dispatcher.store.portfolio
    assert p.stocks_pct == 62.0
    assert p.last_trade_time is None
    assert p.last_trade_at is None


def test_agent_metrics_and_trade_history(dispatcher, frame, trade_payload):
    dispatcher.dispatch(frame('agent_metrics', agents=[
        {'name': 'Trader', 'is_active': True, 'action_count': 4,
         'last_action': 'Executed: Buy Stocks', 'last_action_time': None},
    ]))
    dispatcher.dispatch(frame('trade_history', trades=[trade_payload]))
    assert dispatcher.store.agent('Trader').action_count == 4
    assert dispatcher.store.trades[0].symbol == 'SPY'
    assert dispatcher.store.trades[0].executed_at.year == 2026


def test_event_frame_is_stamped_on_receipt(dispatcher, frame):
    before = datetime.now(timezone.utc)
    dispatcher.dispatch(frame('event', event_type='Deposited', pheromone='Price Freshness', intensity=0.9))
    evt = dispatcher.store.events[0]
    assert (evt.type, evt.pheromone, evt.intensity) == ('Deposited', 'Price Freshness', 0.9)
    assert evt.id
    assert evt.timestamp >= before


@pytest.mark.parametrize('raw', [
    'not json',
    '{"type": "pheromone_update", ',
    '[1, 2, 3]',
    '"just a string"',
    b'\xff\xfe',
])
def test_undecodable_frames_are_dropped(dispatcher, raw):
    assert dispatcher.dispatch(raw) is False
    assert dispatcher.store.snapshot().signals == ()
    assert dispatcher.stats.decode_errors == 1


def test_unknown_type_is_ignored(dispatcher, frame):
    assert dispatcher.dispatch(frame('leaderboard', rows=[])) is False
    assert dispatcher.dispatch('{"no_type": true}') is False
    assert dispatcher.stats.unknown == 2
    assert dispatcher.stats.dropped == 2


def test_malformed_payload_leaves_store_untouched(dispatcher, frame):
    dispatcher.dispatch(frame('pheromone_update', pheromones=[PF]))
    bad = frame('pheromone_update', pheromones=[
        {**PF, 'intensity': 0.1},
        {'name': 'Execution Permit', 'threshold': 0.5},
    ])
    assert dispatcher.dispatch(bad) is False
    assert dispatcher.store.signals[0].intensity == 0.9
    assert dispatcher.store.history_for('Price Freshness') == [0.9]
    assert dispatcher.stats.malformed == 1


@pytest.mark.parametrize('msg_type, fields', [
    ('pheromone_update', {'pheromones': 'oops'}),
    ('pheromone_update', {'pheromones': [1]}),
    ('pheromone_update', {}),
    ('pheromone_update', {'pheromones': [{**PF, 'name': None}]}),
    ('pheromone_update', {'pheromones': [{**PF, 'is_active': 'false'}]}),
    ('agent_metrics', {'agents': [{'name': 'Sensor', 'is_active': 1}]}),
    ('event', {'event_type': None, 'pheromone': 'Price Freshness', 'intensity': 0.5}),
    ('event', {'event_type': 'Sniffed', 'pheromone': None, 'intensity': 0.5}),
])
def test_wrong_shapes_are_malformed(dispatcher, frame, msg_type, fields):
    assert dispatcher.dispatch(frame(msg_type, **fields)) is False
    assert dispatcher.stats.malformed == 1
    snap = dispatcher.store.snapshot()
    assert snap.signals == () and snap.agents == () and snap.events == ()
    assert snap.history == {}


def test_portfolio_must_be_object(dispatcher, frame):
    assert dispatcher.dispatch(frame('portfolio_update', portfolio=[1, 2])) is False
    assert dispatcher.store.portfolio is None


def test_unknown_fields_ignored_and_out_of_range_kept(dispatcher, frame):
    odd = {**PF, 'intensity': 1.7, 'colour': 'green', 'version': 2}
    assert dispatcher.dispatch(frame('pheromone_update', pheromones=[odd], sequence=12))
    assert dispatcher.store.signals[0].intensity == 1.7


def test_frames_applied_in_arrival_order(dispatcher, frame):
    for value in (0.3, 0.2, 0.1):
        dispatcher.dispatch(frame('pheromone_update', pheromones=[{**PF, 'intensity': value}]))
    assert dispatcher.store.history_for('Price Freshness') == [0.3, 0.2, 0.1]
    assert dispatcher.stats.applied == 3
