"""
OpenSearch client wrapper for node documents.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import boto3
from opensearchpy import OpenSearch, RequestsHttpConnection
from opensearchpy.exceptions import NotFoundError, OpenSearchException
from requests_aws4auth import AWS4Auth

from .config import OpenSearchConfig
from .logging_config import get_logger

logger = get_logger(__name__)


class OpenSearchError(Exception):
    """Custom exception for OpenSearch errors."""
    pass


class OpenSearchClient:
    """OpenSearch client with AWS authentication and error handling."""

    def __init__(self, config: OpenSearchConfig, client: Optional[OpenSearch] = None):
        """
        Initialize OpenSearch client.

        Args:
            config: OpenSearchConfig instance with connection parameters
            client: Pre-built OpenSearch client (built from config if None)
        """
        self.config = config
        self.index_name = f'{config.index_name}_node'

        if client is None:
            # Get AWS credentials and create auth
            credentials = boto3.Session().get_credentials()
            auth = AWS4Auth(region=config.region, service='aoss', refreshable_credentials=credentials)
            endpoint = config.endpoint
            if '://' in endpoint:
                endpoint = endpoint.split('://', 1)[1]

            client = OpenSearch(hosts=[{
                'host': endpoint,
                'port': config.port
            }],
                                http_auth=auth,
                                use_ssl=True,
                                verify_certs=True,
                                connection_class=RequestsHttpConnection)
        self.client = client

        logger.info(f'Initialized OpenSearch client for endpoint: {config.endpoint}')

    def create_index_if_not_exists(self) -> str:
        """
        Create the node index if it doesn't exist.

        Returns:
            'exists', 'created' or 'failed'
        """
        vector_field = {
            'type': 'knn_vector',
            'dimension': self.config.dimension,
            'method': {
                'name': 'hnsw',
                'space_type': 'cosinesimil',
                'engine': 'nmslib'
            }
        }

        try:
            if self.client.indices.exists(index=self.index_name):
                logger.debug(f'Index {self.index_name} already exists')
                return 'exists'

            index_body = {
                'mappings': {
                    'properties': {
                        'id': {
                            'type': 'keyword'
                        },
                        'title': {
                            'type': 'text'
                        },
                        'summary': {
                            'type': 'text'
                        },
                        'type': {
                            'type': 'keyword'
                        },
                        'embeddings': vector_field,
                        'importance': {
                            'type': 'float'
                        },
                        'sentiment': {
                            'type': 'float'
                        },
                        'memory_weight': {
                            'type': 'float'
                        },
                        'tags': {
                            'type': 'keyword'
                        },
                        'tags_embedding': vector_field,
                        'source': {
                            'type': 'keyword'
                        },
                        'created_at': {
                            'type': 'date'
                        }
                    }
                },
                'settings': {
                    'index': {
                        'knn': True
                    }
                }
            }

            response = self.client.indices.create(index=self.index_name, body=index_body)
            if response.get('acknowledged', False):
                logger.info(f'Created index {self.index_name}')
                return 'created'
            return 'failed'

        except OpenSearchException as e:
            logger.error(f'Error creating index {self.index_name}: {e}')
            raise OpenSearchError(f'Failed to create index: {e}')
        except Exception as e:
            logger.error(f'Unexpected error creating index {self.index_name}: {e}')
            raise OpenSearchError(f'Unexpected error creating index: {e}')

    def index_document(self, doc_id: str, document: Dict[str, Any]) -> bool:
        """
        Index (create or overwrite) a document under a fixed id.

        Args:
            doc_id: Document id, the node id
            document: Document body

        Returns:
            True if indexing was successful, False otherwise
        """
        try:
            response = self.client.index(index=self.index_name, id=doc_id, body=document, refresh=True)

            success = response.get('result') in ['created', 'updated']
            if success:
                logger.debug(f'Indexed document {doc_id} in {self.index_name}')
            else:
                logger.warning(f'Unexpected result indexing document {doc_id}: {response}')

            return success

        except OpenSearchException as e:
            logger.error(f'Error indexing document {doc_id}: {e}')
            raise OpenSearchError(f'Failed to index document: {e}')
        except Exception as e:
            logger.error(f'Unexpected error indexing document {doc_id}: {e}')
            raise OpenSearchError(f'Unexpected error indexing document: {e}')

    def get_document(self, doc_id: str) -> Optional[Dict[str, Any]]:
        """
        Get a document by id.

        Args:
            doc_id: Document id

        Returns:
            Document source if found, None otherwise
        """
        try:
            response = self.client.get(index=self.index_name, id=doc_id)
            if not response.get('found', False):
                return None
            return response['_source']

        except NotFoundError:
            return None
        except OpenSearchException as e:
            logger.error(f'Error getting document {doc_id}: {e}')
            raise OpenSearchError(f'Failed to get document: {e}')
        except Exception as e:
            logger.error(f'Unexpected error getting document {doc_id}: {e}')
            raise OpenSearchError(f'Unexpected error getting document: {e}')

    def search_created_after(self, cutoff: datetime, exclude_id: Optional[str], limit: int) -> List[Dict[str, Any]]:
        """
        Find documents created strictly after ``cutoff``.

        Args:
            cutoff: Lower bound (exclusive) on created_at
            exclude_id: Document id to leave out of the results
            limit: Maximum number of documents to return

        Returns:
            List of document sources
        """
        query: Dict[str, Any] = {'bool': {'filter': [{'range': {'created_at': {'gt': cutoff.isoformat()}}}]}}
        if exclude_id:
            query['bool']['must_not'] = [{'term': {'id': exclude_id}}]

        try:
            response = self.client.search(index=self.index_name, body={'size': limit, 'query': query})
            documents = [hit['_source'] for hit in response['hits']['hits']]

            logger.debug(f'Range search returned {len(documents)} documents created after {cutoff.isoformat()}')
            return documents

        except OpenSearchException as e:
            logger.error(f'Error performing range search: {e}')
            raise OpenSearchError(f'Range search failed: {e}')
        except Exception as e:
            logger.error(f'Unexpected error in range search: {e}')
            raise OpenSearchError(f'Unexpected error in range search: {e}')

    def vector_search(self, query_vector: List[float], exclude_id: Optional[str], top_k: int = 5) -> List[Dict[str, Any]]:
        """
        Find the documents whose node embedding is nearest to a vector.

        Args:
            query_vector: Embedding to search around
            exclude_id: Document id to leave out of the results
            top_k: Number of results to return

        Returns:
            List of document sources, nearest first
        """
        query: Dict[str, Any] = {'bool': {'must': [{'knn': {'embeddings': {'vector': list(query_vector), 'k': top_k}}}]}}
        if exclude_id:
            query['bool']['must_not'] = [{'term': {'id': exclude_id}}]

        try:
            response = self.client.search(index=self.index_name, body={'size': top_k, 'query': query})
            documents = [hit['_source'] for hit in response['hits']['hits']]

            logger.debug(f'Vector search returned {len(documents)} documents')
            return documents

        except OpenSearchException as e:
            logger.error(f'Error performing vector search: {e}')
            raise OpenSearchError(f'Vector search failed: {e}')
        except Exception as e:
            logger.error(f'Unexpected error in vector search: {e}')
            raise OpenSearchError(f'Unexpected error in vector search: {e}')

    def health_check(self) -> bool:
        """
        Perform a health check on the OpenSearch service.

        Returns:
            True if service is healthy, False otherwise
        """
        try:
            response = self.client.indices.exists(index=self.index_name)
            return response in [True, False]

        except Exception as e:
            logger.error(f'OpenSearch health check failed: {e}')
            return False
