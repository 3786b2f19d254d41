"""
Connection Engine Service: decides which existing nodes a node should be linked to.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from ..models.core import Connection, Node, compute_connection_stats
from ..utils.config import ConnectionEngineConfig, config
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import as_local, to_datetime
from .candidate_selection import CandidateQueryError, CandidateRetriever, SimilarityScorer
from .connection_evaluation import ConnectionEvaluator, ReinforcementUpdater
from .connection_persistence import ConnectionPersister, PersistenceError
from .recency_window import RecencyWindow, RecencyWindowModel
from .relation_language import LanguageService, RelationLanguageError
from .stores import ConnectionStore, ConnectionStoreError, NodeNotFoundError, NodeStore, NodeStoreError

logger = get_logger(__name__)


class ConnectionEngineError(Exception):
    """Custom exception for connection engine errors."""
    pass


@dataclass
class ProcessingResult:
    """What one run of the engine wrote for a node."""
    node_id: str
    temperature: float
    forward: List[Connection] = field(default_factory=list)
    reverse: List[Connection] = field(default_factory=list)
    reinforced_ids: List[str] = field(default_factory=list)


class ConnectionEngineService:
    """Recency window, candidate retrieval, scoring, evaluation, reinforcement and persistence for one node."""

    def __init__(self,
                 node_store: NodeStore,
                 connection_store: ConnectionStore,
                 language_service: LanguageService,
                 engine_config: Optional[ConnectionEngineConfig] = None):
        """Initialize the connection engine with its collaborators."""
        self.config = engine_config or config.engine
        self.node_store = node_store
        self.connection_store = connection_store

        self.recency = RecencyWindowModel(self.config)
        self.retriever = CandidateRetriever(node_store, self.config)
        self.scorer = SimilarityScorer(self.config)
        self.reinforcement = ReinforcementUpdater(node_store, self.config)
        self.evaluator = ConnectionEvaluator(language_service, self.reinforcement, self.config)
        self.persister = ConnectionPersister(connection_store, self.config)

        logger.info('Initialized ConnectionEngineService')

    def recency_window(self, node: Node, now: Optional[datetime] = None) -> RecencyWindow:
        """Recency window of a node, from connection statistics derived on demand.

        Raises:
            CandidateQueryError: If the node's connections cannot be read
        """
        try:
            connections = self.connection_store.find_by_node(node.id)
        except ConnectionStoreError as e:
            logger.error(f'Failed to read connections of node {node.id}: {e}')
            raise CandidateQueryError(f'Connection statistics query failed: {e}')

        stats = compute_connection_stats(node.id, connections)
        return self.recency.compute(node, stats, now=now)

    def process_node(self, node: Node, known_neighbors: Sequence[Node], now: Optional[datetime] = None) -> ProcessingResult:
        """
        Find, evaluate and persist new connections for a node.

        Connections are written only after every candidate has been evaluated; any
        failure aborts the run without persisting connections. Reinforcement applied
        before the failure is not rolled back. Repeated runs may create duplicate edges.

        Args:
            node: Newly created or updated node (already stored)
            known_neighbors: Nodes already connected to it
            now: Reference time (current time if None)

        Returns:
            ProcessingResult describing the written connections

        Raises:
            CandidateQueryError: If candidates or connection statistics cannot be read
            RelationLanguageError: If a summary or classification cannot be produced
            PersistenceError: If connections or reinforced nodes cannot be written
        """
        now = as_local(now) if now is not None else to_datetime()

        try:
            window = self.recency_window(node, now=now)
            recent_nodes = self.retriever.retrieve(node, window.recent_cutoff)
            candidates = self.scorer.rank(node, known_neighbors, recent_nodes)
            forward, reinforced_ids = self.evaluator.evaluate(node, candidates, now=now)
            saved_forward, saved_reverse = self.persister.persist(forward)

        except (CandidateQueryError, RelationLanguageError, PersistenceError) as e:
            logger.error(f'Connection processing aborted for node {node.id}: {e}')
            raise

        logger.info(f'Processed node {node.id}: temperature {window.temperature:.3f}, '
                    f'{len(recent_nodes)} recent, {len(candidates)} candidates, '
                    f'{len(saved_forward)} connections, {len(reinforced_ids)} reinforced')

        return ProcessingResult(node_id=node.id,
                                temperature=window.temperature,
                                forward=saved_forward,
                                reverse=saved_reverse,
                                reinforced_ids=reinforced_ids)

    def get_connected_nodes(self, node: Node) -> List[Node]:
        """
        Nodes on the other end of the node's most recent connections.

        Args:
            node: Node whose neighbors are wanted

        Returns:
            Up to ``neighbor_limit`` distinct neighbors, most recently connected first
        """
        try:
            connections = self.connection_store.find_by_node(node.id, limit=self.config.neighbor_limit)
        except ConnectionStoreError as e:
            logger.error(f'Failed to read connections of node {node.id}: {e}')
            raise CandidateQueryError(f'Neighbor query failed: {e}')

        neighbors = []
        seen_ids = {node.id}
        for connection in connections:
            other_id = connection.target_id if connection.source_id == node.id else connection.source_id
            if other_id in seen_ids:
                continue
            seen_ids.add(other_id)
            try:
                neighbors.append(self.node_store.find_by_id(other_id))
            except NodeNotFoundError:
                logger.warning(f'Connection {connection.id} points at missing node {other_id}')
            except NodeStoreError as e:
                raise CandidateQueryError(f'Neighbor lookup failed: {e}')

        return neighbors

    def load_node(self, node_id: str) -> Node:
        """Load a node by id, raising ConnectionEngineError if it cannot be found."""
        try:
            return self.node_store.find_by_id(node_id)
        except NodeNotFoundError as e:
            raise ConnectionEngineError(str(e))
        except NodeStoreError as e:
            raise CandidateQueryError(f'Node lookup failed: {e}')

    def similar_nodes(self, node_id: str) -> List[Node]:
        """
        Nodes nearest to a node by embedding, independent of recency.

        Args:
            node_id: Id of the stored node

        Returns:
            Up to ``similar_node_limit`` other nodes, nearest first (empty if the node has no embedding)
        """
        node = self.load_node(node_id)
        try:
            return self.node_store.find_similar(node, self.config.similar_node_limit)
        except NodeStoreError as e:
            logger.error(f'Similar node query failed for node {node_id}: {e}')
            raise CandidateQueryError(f'Similar node query failed: {e}')

    def process_node_by_id(self, node_id: str) -> ProcessingResult:
        """Load a node and its known neighbors, then process it."""
        node = self.load_node(node_id)
        return self.process_node(node, self.get_connected_nodes(node))
