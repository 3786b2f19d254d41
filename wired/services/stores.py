"""
Read/write contracts for nodes and connections, with OpenSearch and Neptune backends.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from ..models.core import Connection, Node, NodeMetadata
from ..utils.config import config
from ..utils.logging_config import get_logger
from ..utils.neptune_client import NeptuneClient, NeptuneError
from ..utils.opensearch_client import OpenSearchClient, OpenSearchError
from ..utils.timestamp_utils import to_datetime, to_seconds_str

logger = get_logger(__name__)


class NodeStoreError(Exception):
    """Custom exception for node store errors."""
    pass


class NodeNotFoundError(NodeStoreError):
    """Raised when a node id is not present in the store."""
    pass


class ConnectionStoreError(Exception):
    """Custom exception for connection store errors."""
    pass


class NodeStore(ABC):
    """Where nodes are read from and reinforcement updates are written to."""

    @abstractmethod
    def find_by_created_after(self, cutoff: datetime, exclude_id: Optional[str], limit: int) -> List[Node]:
        """Up to ``limit`` nodes created after ``cutoff``, never including ``exclude_id``."""
        pass

    @abstractmethod
    def find_by_id(self, node_id: str) -> Node:
        """Load one node, raising NodeNotFoundError if absent."""
        pass

    @abstractmethod
    def save(self, nodes: Union[Node, Sequence[Node]]) -> List[Node]:
        """Persist one or more nodes and return them."""
        pass

    @abstractmethod
    def find_similar(self, node: Node, limit: int) -> List[Node]:
        """Up to ``limit`` other nodes nearest to the node's embedding, nearest first."""
        pass


class ConnectionStore(ABC):
    """Where connection records are written and looked up."""

    @abstractmethod
    def save_batch(self, connections: Sequence[Connection]) -> List[Connection]:
        """Persist a batch of connections and return them."""
        pass

    @abstractmethod
    def find_by_node(self, node_id: str, limit: Optional[int] = None) -> List[Connection]:
        """Connections with the node as source or target, newest first."""
        pass


def node_to_document(node: Node) -> Dict[str, Any]:
    """Flatten a node into an OpenSearch document."""
    document = {
        'id': node.id,
        'title': node.title,
        'summary': node.summary,
        'type': node.type.value,
        'importance': node.importance,
        'sentiment': node.sentiment,
        'memory_weight': node.memory_weight,
        'tags': list(node.metadata.tags),
        'source': node.metadata.source,
        'created_at': node.created_at.isoformat()
    }
    # knn_vector fields reject empty arrays
    if node.embeddings:
        document['embeddings'] = list(node.embeddings)
    if node.metadata.tags_embedding:
        document['tags_embedding'] = list(node.metadata.tags_embedding)
    return document


def document_to_node(document: Dict[str, Any]) -> Node:
    """Rebuild a node from an OpenSearch document."""
    return Node(id=document['id'],
                title=document.get('title', ''),
                summary=document.get('summary', ''),
                type=document['type'],
                embeddings=document.get('embeddings') or [],
                importance=float(document.get('importance', 0.0)),
                sentiment=float(document.get('sentiment', 0.0)),
                memory_weight=float(document.get('memory_weight', 0.0)),
                created_at=datetime.fromisoformat(document['created_at']),
                metadata=NodeMetadata(tags=document.get('tags') or [],
                                      tags_embedding=document.get('tags_embedding') or [],
                                      source=document.get('source', 'other')))


def edge_to_connection(edge: Dict[str, Any]) -> Connection:
    """Rebuild a connection from a Neptune edge property map."""
    return Connection(id=edge['id'],
                      source_id=edge['source_id'],
                      target_id=edge['target_id'],
                      confidence=edge['confidence'],
                      relation_type=edge['relation_type'],
                      summary=edge.get('summary', ''),
                      created_at=to_datetime(int(edge.get('created_at') or 0)))


class OpenSearchNodeStore(NodeStore):
    """Node store backed by an OpenSearch index, one document per node."""

    def __init__(self, client: Optional[OpenSearchClient] = None):
        self.client = client or OpenSearchClient(config.opensearch)

        try:
            self.client.create_index_if_not_exists()
        except OpenSearchError as e:
            logger.warning(f'Failed to create OpenSearch node index: {e}')

        logger.info('Initialized OpenSearchNodeStore')

    def find_by_created_after(self, cutoff: datetime, exclude_id: Optional[str], limit: int) -> List[Node]:
        try:
            documents = self.client.search_created_after(cutoff, exclude_id, limit)
        except OpenSearchError as e:
            raise NodeStoreError(f'Node range query failed: {e}')
        # The exclusion is part of the contract, not just the query
        return [document_to_node(doc) for doc in documents if doc.get('id') != exclude_id][:limit]

    def find_by_id(self, node_id: str) -> Node:
        try:
            document = self.client.get_document(node_id)
        except OpenSearchError as e:
            raise NodeStoreError(f'Node lookup failed: {e}')
        if document is None:
            raise NodeNotFoundError(f'Node with id {node_id} not found')
        return document_to_node(document)

    def save(self, nodes: Union[Node, Sequence[Node]]) -> List[Node]:
        batch = [nodes] if isinstance(nodes, Node) else list(nodes)
        for node in batch:
            try:
                success = self.client.index_document(node.id, node_to_document(node))
            except OpenSearchError as e:
                raise NodeStoreError(f'Saving node {node.id} failed: {e}')
            if not success:
                raise NodeStoreError(f'Saving node {node.id} was not acknowledged')
        logger.debug(f'Saved {len(batch)} nodes')
        return batch

    def find_similar(self, node: Node, limit: int) -> List[Node]:
        if not node.embeddings:
            return []
        try:
            documents = self.client.vector_search(node.embeddings, node.id, limit)
        except OpenSearchError as e:
            raise NodeStoreError(f'Similar node query failed: {e}')
        return [document_to_node(doc) for doc in documents if doc.get('id') != node.id][:limit]


class NeptuneConnectionStore(ConnectionStore):
    """Connection store backed by Neptune, one edge per directed connection."""

    def __init__(self, client: Optional[NeptuneClient] = None):
        self.client = client or NeptuneClient(config.neptune)
        logger.info('Initialized NeptuneConnectionStore')

    def save_batch(self, connections: Sequence[Connection]) -> List[Connection]:
        try:
            for connection in connections:
                self.client.ensure_node_vertex(connection.source_id)
                self.client.ensure_node_vertex(connection.target_id)
                self.client.create_connection_edge(connection_id=connection.id,
                                                   source_id=connection.source_id,
                                                   target_id=connection.target_id,
                                                   confidence=connection.confidence,
                                                   relation_type=connection.relation_type.value,
                                                   summary=connection.summary,
                                                   created_at=to_seconds_str(connection.created_at.timestamp()))
        except NeptuneError as e:
            raise ConnectionStoreError(f'Saving connection batch failed: {e}')

        logger.debug(f'Saved {len(connections)} connections')
        return list(connections)

    def find_by_node(self, node_id: str, limit: Optional[int] = None) -> List[Connection]:
        try:
            edges = self.client.get_node_connections(node_id)
        except NeptuneError as e:
            raise ConnectionStoreError(f'Connection lookup for node {node_id} failed: {e}')

        connections = sorted((edge_to_connection(edge) for edge in edges), key=lambda c: c.created_at, reverse=True)
        return connections[:limit] if limit is not None else connections
