"""
Core data models for the connection engine.

Nodes and connections live in separate stores and refer to each other by id only.
Connection statistics for a node are derived on demand from its connections.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

from ..utils.timestamp_utils import as_local


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


class NodeType(str, Enum):
    """Kinds of knowledge unit a node can hold."""
    EMOTION = 'emotion'
    THOUGHT = 'thought'
    TASK = 'task'
    EVENT = 'event'
    HABIT = 'habit'
    TOPIC = 'topic'
    MEMORY = 'memory'
    GOAL = 'goal'
    RELATIONSHIP = 'relationship'
    PERSON = 'person'
    IDEA = 'idea'


class RelationType(str, Enum):
    """Closed set of relation types a connection can carry."""
    CAUSED_BY = 'caused_by'
    INSPIRED_BY = 'inspired_by'
    CONTRADICTS = 'contradicts'
    SIMILAR_TO = 'similar_to'
    CONTINUES_FROM = 'continues_from'
    DEPENDS_ON = 'depends_on'
    ASSOCIATED_WITH = 'associated_with'
    REFLECTS_ON = 'reflects_on'


@dataclass
class NodeMetadata:
    """Descriptive metadata attached to a node."""
    tags: List[str] = field(default_factory=list)
    tags_embedding: List[float] = field(default_factory=list)  # Embedding of the joined tags
    source: str = 'other'

    def __post_init__(self):
        self.tags = list(self.tags) if self.tags is not None else []
        self.tags_embedding = [float(x) for x in self.tags_embedding] if self.tags_embedding is not None else []


@dataclass
class Node:
    """A discrete unit of personal knowledge (thought, task, memory, ...)."""
    id: str
    title: str
    summary: str
    type: NodeType
    embeddings: List[float]  # May be empty when no embedding was produced
    importance: float
    sentiment: float
    created_at: datetime
    memory_weight: float = 0.0
    metadata: NodeMetadata = field(default_factory=NodeMetadata)

    def __post_init__(self):
        self.type = NodeType(self.type)
        self.embeddings = [float(x) for x in self.embeddings] if self.embeddings is not None else []
        self.importance = clamp(float(self.importance), 0.0, 1.0)
        self.sentiment = clamp(float(self.sentiment), -1.0, 1.0)
        self.memory_weight = clamp(float(self.memory_weight or 0.0), 0.0, 1.0)
        self.created_at = as_local(self.created_at)


@dataclass
class Connection:
    """A directed, scored and typed edge between two nodes."""
    id: str
    source_id: str
    target_id: str
    confidence: float
    relation_type: RelationType
    summary: str
    created_at: datetime

    def __post_init__(self):
        self.relation_type = RelationType(self.relation_type)
        self.confidence = clamp(float(self.confidence), 0.0, 1.0)
        self.created_at = as_local(self.created_at)


@dataclass
class ConnectionStats:
    """Activity figures derived from a node's connections."""
    connection_count: int = 0
    avg_connection_confidence: float = 0.0
    last_connected_at: Optional[datetime] = None


@dataclass
class ScoredCandidate:
    """A candidate node together with its adjusted similarity score."""
    node: Node
    adjusted_score: float


def compute_connection_stats(node_id: str, connections: Iterable[Connection]) -> ConnectionStats:
    """Derive connection count, average confidence and last connection time for a node.

    Every connection with the node as source or target counts once.
    """
    touching = [c for c in connections if c.source_id == node_id or c.target_id == node_id]
    if not touching:
        return ConnectionStats()

    avg = sum(c.confidence for c in touching) / len(touching)
    return ConnectionStats(connection_count=len(touching),
                           avg_connection_confidence=round(avg, 3),
                           last_connected_at=max(c.created_at for c in touching))
