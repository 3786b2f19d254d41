"""
Writes connections in both directions.
"""

import uuid
from dataclasses import replace
from typing import List, Sequence, Tuple

from ..models.core import Connection
from ..utils.config import ConnectionEngineConfig
from ..utils.logging_config import get_logger
from .stores import ConnectionStore, ConnectionStoreError

logger = get_logger(__name__)


class PersistenceError(Exception):
    """Custom exception for failed writes of connections or nodes."""
    pass


def mirror_connection(connection: Connection, discount: float) -> Connection:
    """Reverse-direction copy of a connection with a fresh id and discounted confidence."""
    return replace(connection,
                   id=str(uuid.uuid4()),
                   source_id=connection.target_id,
                   target_id=connection.source_id,
                   confidence=connection.confidence * discount)


class ConnectionPersister:
    """Persists a forward batch, then its mirrored reverse batch."""

    def __init__(self, connection_store: ConnectionStore, engine_config: ConnectionEngineConfig):
        self.connection_store = connection_store
        self.reverse_discount = engine_config.reverse_confidence_discount

    def persist(self, forward: Sequence[Connection]) -> Tuple[List[Connection], List[Connection]]:
        """
        Save the forward connections, then one reverse connection per forward connection.

        Reverse confidence is the forward confidence times the reverse discount and is not
        re-checked against the score threshold. The two batches are separate writes: if the
        reverse batch fails, the forward connections already written stay unmirrored.

        Args:
            forward: Connections from the processed node to its candidates

        Returns:
            Tuple of (saved forward connections, saved reverse connections)

        Raises:
            PersistenceError: If either batch cannot be written
        """
        if not forward:
            return [], []

        reverse = [mirror_connection(connection, self.reverse_discount) for connection in forward]

        try:
            saved_forward = self.connection_store.save_batch(list(forward))
            saved_reverse = self.connection_store.save_batch(reverse)
        except ConnectionStoreError as e:
            logger.error(f'Failed to persist connection batch: {e}')
            raise PersistenceError(f'Connection persistence failed: {e}')

        logger.debug(f'Persisted {len(saved_forward)} forward and {len(saved_reverse)} reverse connections')
        return saved_forward, saved_reverse
