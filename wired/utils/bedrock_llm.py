"""
Amazon Bedrock LLM client wrapper with retry logic and error handling.
"""

import random
import time
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .config import BedrockLLMConfig
from .logging_config import get_logger

logger = get_logger(__name__)


class BedrockLLMError(Exception):
    """Custom exception for Bedrock LLM errors."""
    pass


class BedrockLLM:
    """Amazon Bedrock LLM client with retry logic and error handling."""

    def __init__(self, config: BedrockLLMConfig, client: Optional[Any] = None):
        """
        Initialize Bedrock LLM client.

        Args:
            config: BedrockLLMConfig instance with connection parameters
            client: Pre-built bedrock-runtime client (built from config if None)
        """
        self.config = config
        self.model_id = config.model_id

        # Retries are handled here, not by botocore
        self.bedrock_runtime = client or boto3.client('bedrock-runtime',
                                                      region_name=config.region,
                                                      config=BotoConfig(connect_timeout=60,
                                                                        read_timeout=120,
                                                                        retries={'max_attempts': 0}))

        logger.info(f'Initialized Bedrock LLM client with model: {self.model_id}')

    def generate_text(self,
                      system_prompt: str,
                      user_prompt: str,
                      max_tokens: Optional[int] = None,
                      temperature: Optional[float] = None,
                      stop_sequences: Optional[List[str]] = None) -> str:
        """
        Generate a single text completion with retry logic.

        Args:
            system_prompt: System prompt for the conversation
            user_prompt: User turn content
            max_tokens: Maximum tokens to generate (uses config default if None)
            temperature: Temperature for generation (uses config default if None)
            stop_sequences: Stop sequences for generation

        Returns:
            Concatenated text of the model response (may be empty)

        Raises:
            BedrockLLMError: If all retry attempts fail
        """
        inf_params = {
            'maxTokens': max_tokens if max_tokens is not None else self.config.max_tokens,
            'temperature': temperature if temperature is not None else self.config.temperature,
            'stopSequences': stop_sequences or [],
        }
        messages: List[Dict[str, Any]] = [{'role': 'user', 'content': [{'text': user_prompt}]}]

        for attempt in range(self.config.retry_attempts):
            try:
                logger.debug(f'Bedrock LLM request attempt {attempt + 1}/{self.config.retry_attempts}')

                response = self.bedrock_runtime.converse(modelId=self.model_id,
                                                         messages=messages,
                                                         system=[{'text': system_prompt}],
                                                         inferenceConfig=inf_params)

                content = response.get('output', {}).get('message', {}).get('content', [])
                text = ''.join(block.get('text', '') for block in content)

                logger.debug(f'Bedrock LLM response generated successfully (length: {len(text)})')
                return text

            except (ClientError, BotoCoreError) as e:
                logger.warning(f'Bedrock LLM attempt {attempt + 1}/{self.config.retry_attempts} failed: {e}')

                if attempt < self.config.retry_attempts - 1:
                    # Exponential backoff with jitter
                    delay = self.config.retry_delay * (2**attempt) + random.uniform(0, 1)
                    time.sleep(delay)
                else:
                    raise BedrockLLMError(f'Bedrock LLM failed after {self.config.retry_attempts} attempts: {e}')

            except Exception as e:
                logger.error(f'Unexpected error in Bedrock LLM: {e}')
                raise BedrockLLMError(f'Unexpected Bedrock LLM error: {e}')

        raise BedrockLLMError(f'Bedrock LLM failed after {self.config.retry_attempts} attempts')

    def health_check(self) -> bool:
        """
        Perform a health check on the Bedrock LLM service.

        Returns:
            True if service is healthy, False otherwise
        """
        try:
            response = self.generate_text(system_prompt="You are a helpful assistant. Respond with just 'OK'.",
                                          user_prompt='Hi',
                                          max_tokens=10,
                                          temperature=0.0)
            return len(response.strip()) > 0

        except Exception as e:
            logger.error(f'Bedrock LLM health check failed: {e}')
            return False
