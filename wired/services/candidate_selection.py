"""
Candidate retrieval and multi-signal similarity scoring.
"""

from datetime import datetime
from typing import List, Sequence

from ..models.core import Node, ScoredCandidate, clamp
from ..utils.config import ConnectionEngineConfig
from ..utils.logging_config import get_logger
from ..utils.vector_utils import average_vectors, cosine_similarity
from .stores import NodeStore, NodeStoreError

logger = get_logger(__name__)


class CandidateQueryError(Exception):
    """Custom exception for candidate retrieval errors."""
    pass


class CandidateRetriever:
    """Fetches the bounded, time-filtered set of nodes to score against."""

    def __init__(self, node_store: NodeStore, engine_config: ConnectionEngineConfig):
        self.node_store = node_store
        self.limit = engine_config.candidate_limit

    def retrieve(self, node: Node, recent_cutoff: datetime) -> List[Node]:
        """
        Get up to ``candidate_limit`` nodes created after the cutoff, excluding the node itself.

        Raises:
            CandidateQueryError: If the node store query fails
        """
        try:
            recent_nodes = self.node_store.find_by_created_after(recent_cutoff, node.id, self.limit)
        except NodeStoreError as e:
            logger.error(f'Candidate query failed for node {node.id}: {e}')
            raise CandidateQueryError(f'Candidate query failed: {e}')

        recent_nodes = [candidate for candidate in recent_nodes if candidate.id != node.id][:self.limit]
        logger.debug(f'Retrieved {len(recent_nodes)} recent nodes for {node.id} (cutoff {recent_cutoff.isoformat()})')
        return recent_nodes


class SimilarityScorer:
    """Scores recent nodes against a node and its known neighbors."""

    def __init__(self, engine_config: ConnectionEngineConfig):
        self.config = engine_config

    @staticmethod
    def context_embedding(node: Node, neighbors: Sequence[Node]) -> list:
        """Mean of the node's embedding and its neighbors' embeddings."""
        return average_vectors([node.embeddings] + [neighbor.embeddings for neighbor in neighbors])

    def tag_boost(self, node: Node, candidate: Node) -> float:
        """Tag-embedding similarity, counted only above the gate."""
        score = cosine_similarity(node.metadata.tags_embedding, candidate.metadata.tags_embedding)
        return score if score > self.config.tag_similarity_gate else 0.0

    def score(self, node: Node, neighbors: Sequence[Node], candidate: Node, context_embedding: Sequence[float]) -> float:
        """Adjusted score of a single candidate, clamped to [0, 1]."""
        similarity = cosine_similarity(context_embedding, candidate.embeddings)

        if candidate.type == node.type:
            similarity += self.config.type_match_bonus

        if any(neighbor.id == candidate.id for neighbor in neighbors):
            similarity += self.config.mutual_bonus

        importance_overlap = 1 - abs(node.importance - candidate.importance)
        similarity += importance_overlap * self.config.importance_overlap_weight

        return clamp(similarity + self.tag_boost(node, candidate), 0.0, 1.0)

    def rank(self, node: Node, neighbors: Sequence[Node], recent_nodes: Sequence[Node]) -> List[ScoredCandidate]:
        """
        Score every recent node, keep those at or above the threshold, best first, capped at ``max_candidates``.

        Args:
            node: Node being processed
            neighbors: Nodes already connected to it
            recent_nodes: Nodes returned by the candidate retriever

        Returns:
            List of ScoredCandidate sorted by descending adjusted score
        """
        context_embedding = self.context_embedding(node, neighbors)

        scored = [
            ScoredCandidate(node=candidate, adjusted_score=self.score(node, neighbors, candidate, context_embedding))
            for candidate in recent_nodes
        ]
        qualifying = [s for s in scored if s.adjusted_score >= self.config.score_threshold]
        qualifying.sort(key=lambda s: s.adjusted_score, reverse=True)

        logger.debug(f'{len(qualifying)}/{len(scored)} candidates qualified for node {node.id}')
        return qualifying[:self.config.max_candidates]
