"""
Health check utilities for the connection engine's backing services.
"""

from typing import Any, Dict

from .bedrock_llm import BedrockLLM
from .config import config
from .logging_config import get_logger
from .neptune_client import NeptuneClient
from .opensearch_client import OpenSearchClient

logger = get_logger(__name__)


def check_health() -> bool:
    """Check the health of all backing services.

    Returns:
        True if all components are healthy, False otherwise
    """
    health_status = get_health_status()
    all_healthy = all(status.get('healthy', False) for status in health_status.values())

    if all_healthy:
        logger.info('All system components are healthy')
    else:
        unhealthy = [name for name, status in health_status.items() if not status.get('healthy', False)]
        logger.warning(f'Unhealthy components: {", ".join(unhealthy)}')

    return all_healthy


def get_health_status() -> Dict[str, Any]:
    """Get detailed health status of all components.

    Returns:
        Dictionary with health status of each component
    """
    health_status = {}

    # Language service
    try:
        llm = BedrockLLM(config.bedrock_llm)
        health_status['bedrock_llm'] = {
            'healthy': llm.health_check(),
            'service': 'Amazon Bedrock LLM',
            'model': config.bedrock_llm.model_id
        }
    except Exception as e:
        health_status['bedrock_llm'] = {'healthy': False, 'service': 'Amazon Bedrock LLM', 'error': str(e)}

    # Connection store
    try:
        neptune = NeptuneClient(config.neptune)
        try:
            neptune_healthy = neptune.health_check()
        finally:
            neptune.close()
        health_status['neptune'] = {
            'healthy': neptune_healthy,
            'service': 'Amazon Neptune',
            'endpoint': config.neptune.endpoint
        }
    except Exception as e:
        health_status['neptune'] = {'healthy': False, 'service': 'Amazon Neptune', 'error': str(e)}

    # Node store
    try:
        opensearch = OpenSearchClient(config.opensearch)
        health_status['opensearch'] = {
            'healthy': opensearch.health_check(),
            'service': 'Amazon OpenSearch',
            'endpoint': config.opensearch.endpoint
        }
    except Exception as e:
        health_status['opensearch'] = {'healthy': False, 'service': 'Amazon OpenSearch', 'error': str(e)}

    return health_status
