"""
MCP Interface Layer using fastmcp for triggering connection processing.
"""
from typing import List, Tuple

from fastmcp import FastMCP

from wired.services.candidate_selection import CandidateQueryError
from wired.services.connection_engine import ConnectionEngineError, ConnectionEngineService
from wired.services.connection_persistence import PersistenceError
from wired.services.relation_language import BedrockLanguageService, RelationLanguageError
from wired.services.stores import NeptuneConnectionStore, OpenSearchNodeStore
from wired.utils.config import config
from wired.utils.logging_config import get_logger

logger = get_logger(__name__)

# Initialize FastMCP application
mcp = FastMCP('Wired Connections')
engine = ConnectionEngineService(node_store=OpenSearchNodeStore(),
                                 connection_store=NeptuneConnectionStore(),
                                 language_service=BedrockLanguageService())


@mcp.tool()
def connect_node(node_id: str) -> List[Tuple[str, str, str, float]]:
    """Find and store connections for a stored node.

    Args:
        node_id: Id of the node to connect

    Returns:
        List of tuples (connection_id, target_id, relation_type, confidence) for the new forward connections

    Raises:
        Exception: If processing fails
    """
    if not node_id or not node_id.strip():
        raise ValueError('Node ID is required')

    try:
        result = engine.process_node_by_id(node_id.strip())
        connections = [(c.id, c.target_id, c.relation_type.value, round(c.confidence, 4)) for c in result.forward]

        logger.debug(f'MCP connect_node created {len(connections)} connections for node {node_id}')
        return connections

    except (ConnectionEngineError, CandidateQueryError, RelationLanguageError, PersistenceError) as e:
        logger.error(f'Connection engine error in MCP connect_node: {e}')
        raise Exception(f'Connecting node failed: {e}')


@mcp.tool()
def node_temperature(node_id: str) -> float:
    """Activity temperature of a node in [0, 1].

    Args:
        node_id: Id of the node

    Returns:
        Temperature used to widen or narrow its retrieval window
    """
    if not node_id or not node_id.strip():
        raise ValueError('Node ID is required')

    try:
        node = engine.load_node(node_id.strip())
        return engine.recency_window(node).temperature

    except (ConnectionEngineError, CandidateQueryError) as e:
        logger.error(f'Connection engine error in MCP node_temperature: {e}')
        raise Exception(f'Reading node temperature failed: {e}')


@mcp.tool()
def similar_nodes(node_id: str) -> List[Tuple[str, str]]:
    """Nodes nearest to a stored node by embedding.

    Args:
        node_id: Id of the node

    Returns:
        List of tuples (node_id, title), nearest first
    """
    if not node_id or not node_id.strip():
        raise ValueError('Node ID is required')

    try:
        return [(node.id, node.title) for node in engine.similar_nodes(node_id.strip())]

    except (ConnectionEngineError, CandidateQueryError) as e:
        logger.error(f'Connection engine error in MCP similar_nodes: {e}')
        raise Exception(f'Finding similar nodes failed: {e}')


if __name__ == '__main__':
    mcp.run(transport=config.mcp.transport, host=config.mcp.host, port=config.mcp.port)
