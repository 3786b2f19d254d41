from datetime import timedelta, timezone

import pytest

from wired.models.core import Connection, NodeType, RelationType
from wired.services.candidate_selection import CandidateQueryError
from wired.services.connection_engine import ConnectionEngineError, ConnectionEngineService
from wired.services.relation_language import InvalidClassificationError

from .conftest import InMemoryConnectionStore, InMemoryNodeStore, StubLanguageService


@pytest.fixture
def stores(make_node):
    node_store = InMemoryNodeStore([
        make_node('a'),
        make_node('twin'),
        make_node('far', node_type=NodeType.TASK, embeddings=[0.0, 1.0, 0.0]),
        make_node('stale', age=timedelta(days=9)),
    ])
    return node_store, InMemoryConnectionStore()


def _engine(stores, engine_config, language=None):
    node_store, connection_store = stores
    return ConnectionEngineService(node_store, connection_store, language or StubLanguageService(), engine_config)


def test_identical_nodes_get_forward_and_reverse_connection(stores, engine_config, now):
    node_store, connection_store = stores
    engine = _engine(stores, engine_config)
    node = node_store.find_by_id('a')

    result = engine.process_node(node, [], now=now)

    assert result.temperature == pytest.approx(0.5 / 3)
    assert [c.target_id for c in result.forward] == ['twin']
    forward, reverse = result.forward[0], result.reverse[0]
    assert (reverse.source_id, reverse.target_id) == ('twin', 'a')
    assert reverse.confidence == pytest.approx(forward.confidence * 0.95)
    assert reverse.id != forward.id
    assert len(connection_store.connections) == 2


def test_confident_connection_reinforces_both_nodes(stores, engine_config, now):
    node_store, _ = stores
    node = node_store.find_by_id('a')

    result = _engine(stores, engine_config).process_node(node, [], now=now)

    confidence = result.forward[0].confidence
    assert confidence >= 0.8
    assert result.reinforced_ids == ['twin']
    for node_id in ('a', 'twin'):
        assert node_store.nodes[node_id].memory_weight == pytest.approx(confidence * 0.1)
        assert node_store.nodes[node_id].importance == pytest.approx(0.5 + confidence * 0.1 * 0.65)
    assert node_store.nodes['far'].memory_weight == 0.0


def test_every_forward_connection_has_exactly_one_mirror(stores, engine_config, make_node, now):
    node_store, connection_store = stores
    for i in range(3):
        node_store.save(make_node(f'sib{i}', node_type=NodeType.IDEA, embeddings=[1.0, 0.1 * i, 0.0]))

    result = _engine(stores, engine_config).process_node(node_store.find_by_id('a'), [], now=now)

    assert len(result.forward) == 4
    for forward in result.forward:
        mirrors = [
            c for c in connection_store.connections
            if c.source_id == forward.target_id and c.target_id == forward.source_id
        ]
        assert len(mirrors) == 1
        assert mirrors[0].confidence == pytest.approx(forward.confidence * 0.95)
        assert mirrors[0].id != forward.id


def test_invalid_classification_persists_nothing(stores, engine_config, now):
    node_store, connection_store = stores
    engine = _engine(stores, engine_config, StubLanguageService(default='unknown'))

    with pytest.raises(InvalidClassificationError):
        engine.process_node(node_store.find_by_id('a'), [], now=now)

    assert connection_store.connections == []


def test_candidate_query_failure_aborts(stores, engine_config, now):
    node_store, connection_store = stores
    node = node_store.find_by_id('a')
    node_store.fail_queries = True

    with pytest.raises(CandidateQueryError):
        _engine(stores, engine_config).process_node(node, [], now=now)

    assert connection_store.connections == []


def test_second_run_is_warmer_and_not_deduplicated(stores, engine_config, now):
    node_store, connection_store = stores
    engine = _engine(stores, engine_config)

    first = engine.process_node(node_store.find_by_id('a'), [], now=now)
    second = engine.process_node(node_store.find_by_id('a'), [node_store.find_by_id('twin')], now=now)

    assert second.temperature > first.temperature
    assert [c.target_id for c in second.forward] == ['twin']
    assert len(connection_store.connections) == 4


def test_connected_nodes_are_most_recent_distinct_neighbors(engine_config, make_node, now):
    node_store = InMemoryNodeStore([make_node('a'), make_node('b'), make_node('c')])
    connection_store = InMemoryConnectionStore([
        Connection(id=f'c{i}',
                   source_id=source,
                   target_id=target,
                   confidence=0.7,
                   relation_type=RelationType.ASSOCIATED_WITH,
                   summary='',
                   created_at=now - timedelta(hours=i))
        for i, (source, target) in enumerate([('a', 'b'), ('c', 'a'), ('b', 'a'), ('a', 'ghost')])
    ])
    engine = ConnectionEngineService(node_store, connection_store, StubLanguageService(), engine_config)

    neighbors = engine.get_connected_nodes(node_store.find_by_id('a'))

    assert [n.id for n in neighbors] == ['b', 'c']


def test_process_node_by_id(stores, engine_config):
    node_store, connection_store = stores

    result = _engine(stores, engine_config).process_node_by_id('a')

    assert result.node_id == 'a'
    assert len(connection_store.connections) == 2 * len(result.forward)


def test_process_unknown_node_id(stores, engine_config):
    with pytest.raises(ConnectionEngineError):
        _engine(stores, engine_config).process_node_by_id('missing')


def test_similar_nodes_are_nearest_first(stores, engine_config, make_node):
    node_store, _ = stores
    node_store.save(make_node('tilted', embeddings=[1.0, 0.5, 0.0], age=timedelta(days=40)))

    similar = _engine(stores, engine_config).similar_nodes('a')

    assert [n.id for n in similar][:2] == ['twin', 'stale']
    assert [n.id for n in similar][2] == 'tilted'
    assert 'a' not in [n.id for n in similar]
    assert len(similar) <= engine_config.similar_node_limit


def test_process_node_with_timezone_aware_times(stores, engine_config, now):
    node_store, connection_store = stores

    result = _engine(stores, engine_config).process_node(node_store.find_by_id('a'), [],
                                                         now=now.astimezone(timezone.utc))

    assert [c.target_id for c in result.forward] == ['twin']
    assert len(connection_store.connections) == 2
