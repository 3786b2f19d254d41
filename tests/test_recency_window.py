from datetime import timedelta, timezone

import pytest

from wired.models.core import ConnectionStats, NodeType
from wired.services.recency_window import RecencyWindowModel
from wired.utils.config import ConnectionEngineConfig


def test_idle_unimportant_node_keeps_base_window(engine_config, make_node, now):
    node = make_node('a', node_type=NodeType.TASK, importance=0.0)

    window = RecencyWindowModel(engine_config).compute(node, ConnectionStats(), now=now)

    assert window.temperature == 0.0
    assert window.window_days == pytest.approx(10.0)
    assert window.recent_cutoff == now - timedelta(days=10)


def test_never_connected_thought(engine_config, make_node, now):
    node = make_node('a', node_type=NodeType.THOUGHT, importance=0.5)

    window = RecencyWindowModel(engine_config).compute(node, ConnectionStats(), now=now)

    assert window.temperature == pytest.approx(0.5 / 3)
    assert window.window_days == pytest.approx(6.25)
    assert window.recent_cutoff == now - timedelta(days=6.25)


def test_active_node_gets_wider_window(engine_config, make_node, now):
    node = make_node('a', node_type=NodeType.THOUGHT, importance=0.3)
    stats = ConnectionStats(connection_count=10, avg_connection_confidence=0.9, last_connected_at=now - timedelta(days=1))

    window = RecencyWindowModel(engine_config).compute(node, stats, now=now)

    # activity 0.9, decay 0.8
    assert window.temperature == pytest.approx((0.9 * 0.8 + 0.3) / 3)
    assert window.window_days == pytest.approx(5 * (1 + 0.34 * 1.5))


def test_stale_connections_decay_to_floor(engine_config, make_node, now):
    node = make_node('a', node_type=NodeType.EMOTION, importance=0.0)
    stats = ConnectionStats(connection_count=40, avg_connection_confidence=1.0, last_connected_at=now - timedelta(days=30))

    window = RecencyWindowModel(engine_config).compute(node, stats, now=now)

    # activity capped at 2, decay floored at 0.3
    assert window.temperature == pytest.approx(2 * 0.3 / 3)


def test_temperature_is_capped_at_one(engine_config, make_node, now):
    node = make_node('a', importance=1.0)
    stats = ConnectionStats(connection_count=100, avg_connection_confidence=1.0, last_connected_at=now)

    window = RecencyWindowModel(engine_config).compute(node, stats, now=now)

    assert window.temperature == 1.0
    assert window.window_days == pytest.approx(5 * 2.5)


def test_types_missing_from_lifetime_table_fall_back_to_default(make_node, now):
    model = RecencyWindowModel(ConnectionEngineConfig(lifetime_days={'thought': 5}))

    assert model.base_lifetime(NodeType.THOUGHT) == 5.0
    assert model.base_lifetime(NodeType.MEMORY) == 14.0
    assert model.base_lifetime('unknown') == 14.0

    window = model.compute(make_node('a', node_type=NodeType.MEMORY, importance=0.0), ConnectionStats(), now=now)
    assert window.window_days == pytest.approx(14.0)


def test_timezone_aware_times_are_compared_in_local_time(engine_config, make_node, now):
    node = make_node('a', node_type=NodeType.THOUGHT, importance=0.5)
    stats = ConnectionStats(connection_count=10,
                            avg_connection_confidence=0.9,
                            last_connected_at=(now - timedelta(days=1)).astimezone(timezone.utc))

    aware = RecencyWindowModel(engine_config).compute(node, stats, now=now.astimezone(timezone.utc))
    naive_stats = ConnectionStats(connection_count=10,
                                  avg_connection_confidence=0.9,
                                  last_connected_at=now - timedelta(days=1))
    naive = RecencyWindowModel(engine_config).compute(node, naive_stats, now=now)

    assert aware.temperature == pytest.approx(naive.temperature)
    assert aware.recent_cutoff == naive.recent_cutoff
    assert aware.recent_cutoff.tzinfo is None
