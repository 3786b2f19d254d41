"""
Configuration management for AWS services and connection engine settings.
"""

import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from dotenv import load_dotenv

load_dotenv()

# Baseline lifetime in days per node type, used by the recency window model
NODE_TYPE_LIFETIME_DAYS: Mapping[str, int] = MappingProxyType({
    'emotion': 3,
    'thought': 5,
    'task': 10,
    'event': 14,
    'habit': 30,
    'topic': 30,
    'memory': 60,
    'goal': 90,
    'relationship': 90,
    'person': 90,
    'idea': 7,
})


@dataclass
class BedrockLLMConfig:
    """Configuration for Amazon Bedrock LLM service."""
    region: str
    model_id: str
    max_tokens: int
    temperature: float
    retry_attempts: int
    retry_delay: float


@dataclass
class NeptuneConfig:
    """Configuration for Amazon Neptune graph database."""
    endpoint: str
    port: int
    region: str


@dataclass
class OpenSearchConfig:
    """Configuration for OpenSearch."""
    endpoint: str
    port: int
    region: str
    index_name: str
    dimension: int


@dataclass(frozen=True)
class ConnectionEngineConfig:
    """Tuning constants for candidate retrieval, scoring, evaluation and reinforcement."""
    candidate_limit: int = 100
    score_threshold: float = 0.55
    max_candidates: int = 20
    tag_similarity_gate: float = 0.7
    type_match_bonus: float = 0.05
    mutual_bonus: float = 0.1
    importance_overlap_weight: float = 0.05
    similarity_weight: float = 0.7
    recency_weight: float = 0.15
    same_type_confidence_bonus: float = 0.15
    recency_horizon_days: float = 7.0
    reinforcement_threshold: float = 0.8
    reinforcement_rate: float = 0.1
    importance_reinforcement_ratio: float = 0.65
    reverse_confidence_discount: float = 0.95
    neighbor_limit: int = 10
    similar_node_limit: int = 5
    default_lifetime_days: float = 14.0
    lifetime_days: Mapping[str, int] = field(default_factory=lambda: NODE_TYPE_LIFETIME_DAYS)


@dataclass
class MCPConfig:
    """Configuration for MCP interface."""
    transport: str
    host: str
    port: int


@dataclass
class AppConfig:
    """Main application configuration."""
    environment: str
    log_level: str
    bedrock_llm: BedrockLLMConfig
    neptune: NeptuneConfig
    opensearch: OpenSearchConfig
    engine: ConnectionEngineConfig
    mcp: MCPConfig


def load_config() -> AppConfig:
    """Load configuration from environment variables with defaults."""
    environment = os.getenv('ENVIRONMENT', 'development')

    # Bedrock configuration
    bedrock_llm_config = BedrockLLMConfig(region=os.getenv('BEDROCK_LLM_AWS_REGION', 'us-east-1'),
                                          model_id=os.getenv('BEDROCK_LLM_MODEL_ID', 'anthropic.claude-3-haiku-20240307-v1:0'),
                                          max_tokens=int(os.getenv('BEDROCK_LLM_MAX_TOKENS', '256')),
                                          temperature=float(os.getenv('BEDROCK_LLM_TEMPERATURE', '0.7')),
                                          retry_attempts=int(os.getenv('BEDROCK_LLM_RETRY_ATTEMPTS', '3')),
                                          retry_delay=float(os.getenv('BEDROCK_LLM_RETRY_DELAY', '1.0')))

    # Neptune configuration (connection edges)
    neptune_config = NeptuneConfig(endpoint=os.getenv('NEPTUNE_ENDPOINT', 'localhost'),
                                   port=int(os.getenv('NEPTUNE_PORT', '8182')),
                                   region=os.getenv('NEPTUNE_AWS_REGION', 'us-east-1'))

    # OpenSearch configuration (node documents)
    opensearch_config = OpenSearchConfig(endpoint=os.getenv('OPENSEARCH_ENDPOINT', 'localhost'),
                                         port=int(os.getenv('OPENSEARCH_PORT', '443')),
                                         region=os.getenv('OPENSEARCH_AWS_REGION', 'us-east-1'),
                                         index_name=os.getenv('OPENSEARCH_INDEX', 'wired'),
                                         dimension=int(os.getenv('OPENSEARCH_DIMENSION', '1536')))

    # Connection engine tuning
    engine_config = ConnectionEngineConfig(
        candidate_limit=int(os.getenv('ENGINE_CANDIDATE_LIMIT', '100')),
        score_threshold=float(os.getenv('ENGINE_SCORE_THRESHOLD', '0.55')),
        max_candidates=int(os.getenv('ENGINE_MAX_CANDIDATES', '20')),
        reinforcement_threshold=float(os.getenv('ENGINE_REINFORCEMENT_THRESHOLD', '0.8')),
        reverse_confidence_discount=float(os.getenv('ENGINE_REVERSE_CONFIDENCE_DISCOUNT', '0.95')),
        neighbor_limit=int(os.getenv('ENGINE_NEIGHBOR_LIMIT', '10')))

    # MCP configuration
    mcp_config = MCPConfig(transport=os.getenv('MCP_TRANSPORT', 'sse'),
                           host=os.getenv('MCP_HOST', '127.0.0.1'),
                           port=int(os.getenv('MCP_PORT', '8000')))

    return AppConfig(environment=environment,
                     log_level=os.getenv('LOG_LEVEL', 'INFO'),
                     bedrock_llm=bedrock_llm_config,
                     neptune=neptune_config,
                     opensearch=opensearch_config,
                     engine=engine_config,
                     mcp=mcp_config)


# Global configuration instance
config = load_config()
