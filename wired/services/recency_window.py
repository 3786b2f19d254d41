"""
Adaptive recency window for candidate retrieval.

Nodes that connect often, with high confidence, and that are important get a
wider look-back window; stale or unimportant nodes keep a narrow window sized by
their type's baseline lifetime.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..models.core import ConnectionStats, Node, NodeType
from ..utils.config import ConnectionEngineConfig
from ..utils.timestamp_utils import as_local, days_before, days_between, to_datetime


@dataclass
class RecencyWindow:
    """Retrieval cutoff and the activity temperature it was derived from."""
    recent_cutoff: datetime
    temperature: float
    window_days: float


class RecencyWindowModel:
    """Computes the retrieval cutoff and temperature of a node."""

    def __init__(self, engine_config: ConnectionEngineConfig):
        self.lifetime_days = engine_config.lifetime_days
        self.default_lifetime_days = engine_config.default_lifetime_days

    def base_lifetime(self, node_type: NodeType) -> float:
        """Baseline lifetime in days for a node type, falling back to the default for unknown types."""
        key = node_type.value if isinstance(node_type, NodeType) else str(node_type)
        return float(self.lifetime_days.get(key, self.default_lifetime_days))

    def compute(self, node: Node, stats: ConnectionStats, now: Optional[datetime] = None) -> RecencyWindow:
        """
        Compute the recency window of a node.

        Args:
            node: Node being processed
            stats: Connection statistics derived for the node
            now: Reference time (current time if None)

        Returns:
            RecencyWindow with cutoff, temperature in [0, 1] and window length in days
        """
        now = as_local(now) if now is not None else to_datetime()
        base_window = self.base_lifetime(node.type)

        activity_boost = min((stats.connection_count / 10) * stats.avg_connection_confidence, 2.0)
        if stats.last_connected_at is not None:
            time_since_last = days_between(stats.last_connected_at, now)
        else:
            time_since_last = base_window
        decay_factor = max(0.3, 1 - time_since_last / base_window)

        temperature = min(1.0, (activity_boost * decay_factor + node.importance) / 3)
        window_days = base_window * (1 + temperature * 1.5)

        return RecencyWindow(recent_cutoff=days_before(now, window_days), temperature=temperature, window_days=window_days)
