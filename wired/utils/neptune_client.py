"""
Amazon Neptune graph database client with Gremlin Python driver and AWS SigV4 authentication.

Nodes are stored as ``Node`` vertices carrying only their id; each directed
connection is one ``Connection`` edge from source to target.
"""

from functools import wraps
from typing import Any, Dict, List, Optional

from boto3 import Session
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from gremlin_python.driver.aiohttp.transport import AiohttpTransport
from gremlin_python.driver.driver_remote_connection import DriverRemoteConnection
from gremlin_python.process.anonymous_traversal import traversal
from gremlin_python.process.graph_traversal import __

from .config import NeptuneConfig
from .logging_config import get_logger

logger = get_logger(__name__)

NODE_LABEL = 'Node'
CONNECTION_LABEL = 'Connection'


class NeptuneError(Exception):
    """Custom exception for Neptune errors."""
    pass


def retry_on_connection_error(func):
    """Decorator to retry Neptune operations on connection errors."""

    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except Exception as e:
            if 'cannot write to closing transport' in str(e).lower():
                logger.warning(f'Connection error detected: {e}. Reconnecting...')
                self.close()
                self._connect()
                try:
                    return func(self, *args, **kwargs)
                except Exception as retry_e:
                    logger.error(f'Error in {func.__name__}: {retry_e}')
                    raise NeptuneError(f'Failed to {func.__name__}: {retry_e}')
            else:
                logger.error(f'Error in {func.__name__}: {e}')
                raise NeptuneError(f'Failed to {func.__name__}: {e}')

    return wrapper


def _first(data: Dict[Any, Any], key: str, default: Any = None) -> Any:
    """Unwrap a value_map entry, which Gremlin returns as a single-element list for vertices."""
    value = data.get(key, default)
    if isinstance(value, list):
        return value[0] if value else default
    return value


class NeptuneClient:
    """Amazon Neptune client using Gremlin Python driver with AWS authentication."""

    def __init__(self, config: NeptuneConfig, g: Optional[Any] = None):
        """
        Initialize Neptune client with Gremlin driver.

        Args:
            config: NeptuneConfig instance with connection parameters
            g: Pre-built graph traversal source (connects to Neptune if None)
        """
        self.config = config
        self.connection = None
        self.g = g
        if g is None:
            self._connect()
            logger.info(f'Connected to Neptune at {config.endpoint}')

    def _connect(self):
        """Establish connection to Neptune."""
        conn_string = f'wss://{self.config.endpoint}:{self.config.port}/gremlin'

        credentials = Session().get_credentials()
        if credentials is None:
            raise NeptuneError('No AWS credentials found')
        creds = credentials.get_frozen_credentials()

        region = self.config.region or Session().region_name or 'us-east-1'

        # Create signed request for WebSocket connection
        request = AWSRequest(method='GET', url=conn_string, data=None)
        SigV4Auth(creds, 'neptune-db', region).add_auth(request)

        self.connection = DriverRemoteConnection(conn_string,
                                                 'g',
                                                 headers=request.headers.items(),
                                                 transport_factory=lambda: AiohttpTransport(call_from_event_loop=True))
        self.g = traversal().with_remote(self.connection)

    def close(self):
        """Close the Neptune connection."""
        if self.connection is not None:
            self.connection.close()

    @retry_on_connection_error
    def ensure_node_vertex(self, node_id: str) -> None:
        """
        Create a node vertex unless one with this id already exists.

        Args:
            node_id: Node identifier
        """
        self.g.V().has(NODE_LABEL, 'id', node_id).fold()\
            .coalesce(__.unfold(), __.addV(NODE_LABEL).property('id', node_id))\
            .iterate()

    @retry_on_connection_error
    def create_connection_edge(self,
                               connection_id: str,
                               source_id: str,
                               target_id: str,
                               confidence: float,
                               relation_type: str,
                               summary: str,
                               created_at: str) -> bool:
        """
        Create a directed connection edge between two node vertices.

        Args:
            connection_id: Unique connection identifier
            source_id: Source node id
            target_id: Target node id
            confidence: Confidence score (0.0 to 1.0)
            relation_type: Relation type keyword
            summary: One-sentence description of the relation
            created_at: Creation timestamp in seconds

        Returns:
            True if creation was successful
        """
        self.g.V().has(NODE_LABEL, 'id', source_id).as_('source')\
            .V().has(NODE_LABEL, 'id', target_id)\
            .addE(CONNECTION_LABEL).from_('source')\
            .property('id', connection_id)\
            .property('source_id', source_id)\
            .property('target_id', target_id)\
            .property('confidence', confidence)\
            .property('relation_type', relation_type)\
            .property('summary', summary)\
            .property('created_at', created_at)\
            .next()

        logger.debug(f'Created connection edge: {connection_id} ({source_id} -> {target_id})')
        return True

    @retry_on_connection_error
    def get_node_connections(self, node_id: str) -> List[Dict[str, Any]]:
        """
        Get property maps of every connection edge touching a node, in either direction.

        Args:
            node_id: Node identifier

        Returns:
            List of flat property dictionaries
        """
        edge_data = self.g.V().has(NODE_LABEL, 'id', node_id)\
            .both_e(CONNECTION_LABEL)\
            .dedup()\
            .value_map()\
            .to_list()

        edges = []
        for data in edge_data:
            edges.append({
                'id': _first(data, 'id', ''),
                'source_id': _first(data, 'source_id', ''),
                'target_id': _first(data, 'target_id', ''),
                'confidence': float(_first(data, 'confidence', 0.0)),
                'relation_type': _first(data, 'relation_type', ''),
                'summary': _first(data, 'summary', ''),
                'created_at': _first(data, 'created_at', '0'),
            })

        logger.debug(f'Found {len(edges)} connection edges for node {node_id}')
        return edges

    @retry_on_connection_error
    def health_check(self) -> bool:
        """
        Perform a health check on the Neptune service.

        Returns:
            True if service is healthy
        """
        self.g.V().limit(1).count().next()
        return True
