"""
Turns scored candidates into connection records and reinforces strongly connected nodes.
"""

import threading
import uuid
import weakref
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from ..models.core import Connection, Node, ScoredCandidate, clamp
from ..utils.config import ConnectionEngineConfig
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import as_local, days_between, to_datetime
from .connection_persistence import PersistenceError
from .relation_language import LanguageService
from .stores import NodeNotFoundError, NodeStore, NodeStoreError

logger = get_logger(__name__)


class ReinforcementUpdater:
    """Raises memory weight and importance on both ends of a strong connection.

    Updates are serialised per node id within the process and applied to the
    latest stored values, so two events reinforcing the same node do not lose
    an increment. Concurrent writers in other processes are not covered.
    """

    def __init__(self, node_store: NodeStore, engine_config: ConnectionEngineConfig):
        self.node_store = node_store
        self.rate = engine_config.reinforcement_rate
        self.importance_ratio = engine_config.importance_reinforcement_ratio
        # Entries vanish once no reinforcement holds the lock
        self._locks = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _lock_for(self, node_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(node_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[node_id] = lock
            return lock

    def _latest(self, node: Node) -> Node:
        try:
            return self.node_store.find_by_id(node.id)
        except NodeNotFoundError:
            # Not stored yet, reinforce the object in hand
            return node
        except NodeStoreError as e:
            raise PersistenceError(f'Could not reload node {node.id} for reinforcement: {e}')

    def reinforce(self, node: Node, candidate: Node, confidence: float) -> float:
        """
        Apply reinforcement proportional to ``confidence`` to both nodes and save them.

        The caller's node objects are updated in place with the saved values.

        Returns:
            The reinforcement amount added to memory weight

        Raises:
            PersistenceError: If the nodes cannot be reloaded or saved
        """
        reinforcement = min(1.0, confidence * self.rate)

        # Sorted acquisition avoids deadlock between events on the same pair
        locks = [self._lock_for(node_id) for node_id in sorted({node.id, candidate.id})]
        for lock in locks:
            lock.acquire()
        try:
            fresh = [self._latest(node), self._latest(candidate)]
            for current in fresh:
                current.memory_weight = min(1.0, current.memory_weight + reinforcement)
                current.importance = min(1.0, current.importance + reinforcement * self.importance_ratio)

            try:
                self.node_store.save(fresh)
            except NodeStoreError as e:
                logger.error(f'Failed to save reinforced nodes {node.id}, {candidate.id}: {e}')
                raise PersistenceError(f'Reinforcement save failed: {e}')
        finally:
            for lock in reversed(locks):
                lock.release()

        for original, current in zip((node, candidate), fresh):
            original.memory_weight = current.memory_weight
            original.importance = current.importance

        logger.debug(f'Reinforced {node.id} and {candidate.id} by {reinforcement:.3f}')
        return reinforcement


class ConnectionEvaluator:
    """Scores confidence, asks the language service for summary and type, and builds forward connections."""

    def __init__(self,
                 language_service: LanguageService,
                 reinforcement: ReinforcementUpdater,
                 engine_config: ConnectionEngineConfig):
        self.language_service = language_service
        self.reinforcement = reinforcement
        self.config = engine_config

    def recency_boost(self, candidate: Node, now: datetime) -> float:
        """1.0 for a brand-new candidate, fading linearly to 0 at the recency horizon."""
        days_ago = days_between(candidate.created_at, now)
        return clamp(1 - days_ago / self.config.recency_horizon_days, 0.0, 1.0)

    def confidence(self, node: Node, candidate: Node, similarity: float, now: datetime) -> float:
        same_type = self.config.same_type_confidence_bonus if node.type == candidate.type else 0.0
        confidence = (similarity * self.config.similarity_weight +
                      self.recency_boost(candidate, now) * self.config.recency_weight + same_type)
        return clamp(confidence, 0.0, 1.0)

    def evaluate(self,
                 node: Node,
                 candidates: Sequence[ScoredCandidate],
                 now: Optional[datetime] = None) -> Tuple[List[Connection], List[str]]:
        """
        Build forward connections for the candidates, one language round-trip pair at a time.

        Reinforcement for a confident connection is applied immediately. Any error
        propagates and leaves the batch unbuilt; reinforcement already applied stays.

        Args:
            node: Node being processed
            candidates: Ranked candidates from the similarity scorer
            now: Reference time (current time if None)

        Returns:
            Tuple of (forward connections, ids of candidates that were reinforced)
        """
        now = as_local(now) if now is not None else to_datetime()
        connections: List[Connection] = []
        reinforced: List[str] = []

        for scored in candidates:
            candidate = scored.node
            similarity = scored.adjusted_score
            if similarity < self.config.score_threshold:
                logger.debug(f'Skipping candidate {candidate.id}: score {similarity:.3f} below threshold')
                continue

            confidence = self.confidence(node, candidate, similarity, now)

            summary = self.language_service.summarize_relation(node.title, node.summary, candidate.title,
                                                               candidate.summary)
            relation_type = self.language_service.classify_relation_type(node.summary, candidate.summary)

            connections.append(
                Connection(id=str(uuid.uuid4()),
                           source_id=node.id,
                           target_id=candidate.id,
                           confidence=confidence,
                           relation_type=relation_type,
                           summary=summary,
                           created_at=now))
            logger.debug(f'Connection {node.id} -> {candidate.id}: {relation_type.value} ({confidence:.3f})')

            if confidence >= self.config.reinforcement_threshold:
                self.reinforcement.reinforce(node, candidate, confidence)
                reinforced.append(candidate.id)

        return connections, reinforced
