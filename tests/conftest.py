import copy
from datetime import datetime, timedelta
from typing import List, Optional

import pytest

from wired.models.core import Node, NodeMetadata, NodeType, RelationType
from wired.services.relation_language import LanguageService, parse_relation_type
from wired.services.stores import ConnectionStore, ConnectionStoreError, NodeNotFoundError, NodeStore, NodeStoreError
from wired.utils.config import ConnectionEngineConfig
from wired.utils.vector_utils import cosine_similarity

NOW = datetime(2026, 10, 19, 12, 0, 0)


class InMemoryNodeStore(NodeStore):
    """Node store keeping deep copies, so callers never share objects with it."""

    def __init__(self, nodes=()):
        self.nodes = {node.id: copy.deepcopy(node) for node in nodes}
        self.saved_ids: List[List[str]] = []
        self.fail_queries = False
        self.fail_saves = False

    def find_by_created_after(self, cutoff, exclude_id, limit):
        if self.fail_queries:
            raise NodeStoreError('store unavailable')
        found = [n for n in self.nodes.values() if n.created_at > cutoff and n.id != exclude_id]
        return [copy.deepcopy(n) for n in found[:limit]]

    def find_by_id(self, node_id):
        if node_id not in self.nodes:
            raise NodeNotFoundError(f'Node with id {node_id} not found')
        return copy.deepcopy(self.nodes[node_id])

    def save(self, nodes):
        if self.fail_saves:
            raise NodeStoreError('write rejected')
        batch = [nodes] if isinstance(nodes, Node) else list(nodes)
        for node in batch:
            self.nodes[node.id] = copy.deepcopy(node)
        self.saved_ids.append([node.id for node in batch])
        return batch

    def find_similar(self, node, limit):
        if self.fail_queries:
            raise NodeStoreError('store unavailable')
        if not node.embeddings:
            return []
        others = [n for n in self.nodes.values() if n.id != node.id and n.embeddings]
        others.sort(key=lambda n: cosine_similarity(node.embeddings, n.embeddings), reverse=True)
        return [copy.deepcopy(n) for n in others[:limit]]


class InMemoryConnectionStore(ConnectionStore):

    def __init__(self, connections=()):
        self.connections = list(connections)
        self.batches = []
        self.fail_saves = False

    def save_batch(self, connections):
        if self.fail_saves:
            raise ConnectionStoreError('write rejected')
        self.batches.append(list(connections))
        self.connections.extend(connections)
        return list(connections)

    def find_by_node(self, node_id, limit=None):
        touching = [c for c in self.connections if node_id in (c.source_id, c.target_id)]
        touching.sort(key=lambda c: c.created_at, reverse=True)
        return touching[:limit] if limit is not None else touching


class StubLanguageService(LanguageService):
    """Deterministic language service; classification answers go through the real parser."""

    def __init__(self, answers: Optional[List[str]] = None, default: str = 'similar_to'):
        self.answers = list(answers or [])
        self.default = default
        self.summary_calls = []
        self.classify_calls = []

    def summarize_relation(self, source_title, source_summary, target_title, target_summary):
        self.summary_calls.append((source_title, target_title))
        return f'{source_title} relates to {target_title}.'

    def classify_relation_type(self, source_summary, target_summary) -> RelationType:
        self.classify_calls.append((source_summary, target_summary))
        raw = self.answers.pop(0) if self.answers else self.default
        return parse_relation_type(raw)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def engine_config():
    return ConnectionEngineConfig()


@pytest.fixture
def make_node():

    def _make(node_id,
              node_type=NodeType.THOUGHT,
              embeddings=(1.0, 0.0, 0.0),
              importance=0.5,
              age=timedelta(hours=1),
              memory_weight=0.0,
              tags_embedding=()):
        return Node(id=node_id,
                    title=f'{node_id} title',
                    summary=f'{node_id} summary',
                    type=node_type,
                    embeddings=list(embeddings),
                    importance=importance,
                    sentiment=0.0,
                    memory_weight=memory_weight,
                    created_at=NOW - age,
                    metadata=NodeMetadata(tags=['tag'], tags_embedding=list(tags_embedding)))

    return _make
