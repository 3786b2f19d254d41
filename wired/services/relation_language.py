"""
Natural-language characterisation of node relationships.

The engine only depends on ``LanguageService``; ``BedrockLanguageService`` is the
production implementation backed by Amazon Bedrock.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..models.core import RelationType
from ..utils.bedrock_llm import BedrockLLM, BedrockLLMError
from ..utils.config import config
from ..utils.logging_config import get_logger
from ..utils.text_utils import clean_keyword_response, clean_llm_response

logger = get_logger(__name__)

RELATION_KEYWORDS = ', '.join(f'"{relation.value}"' for relation in RelationType)

SUMMARY_SYSTEM_PROMPT = 'You are a concise semantic graph summarizer.'

CLASSIFICATION_SYSTEM_PROMPT = 'You are a semantic relation classifier for a knowledge graph.'


class RelationLanguageError(Exception):
    """Custom exception for relation language service errors."""
    pass


class EmptyGenerationError(RelationLanguageError):
    """The language model returned no usable text."""
    pass


class InvalidClassificationError(RelationLanguageError):
    """The language model returned a token outside the relation type set."""
    pass


def parse_relation_type(raw: Optional[str]) -> RelationType:
    """Match a raw classifier answer against the relation types, case-insensitively.

    Raises:
        EmptyGenerationError: If the answer is empty
        InvalidClassificationError: If the answer is not a known relation type
    """
    keyword = clean_keyword_response(raw or '')
    if not keyword:
        raise EmptyGenerationError('Relation classification returned no content')

    try:
        return RelationType(keyword)
    except ValueError:
        raise InvalidClassificationError(f'Could not identify relation type: {keyword!r}')


class LanguageService(ABC):
    """Capability boundary for the two language operations the engine needs."""

    @abstractmethod
    def summarize_relation(self, source_title: str, source_summary: str, target_title: str, target_summary: str) -> str:
        """One-sentence description of how the source relates to the target."""
        pass

    @abstractmethod
    def classify_relation_type(self, source_summary: str, target_summary: str) -> RelationType:
        """Relation type between source and target, from the closed enumeration."""
        pass


class BedrockLanguageService(LanguageService):
    """Relation summaries and classifications generated with Bedrock LLMs."""

    def __init__(self, llm: Optional[BedrockLLM] = None):
        """Initialize the relation language service."""
        self.llm = llm or BedrockLLM(config.bedrock_llm)
        logger.info('Initialized BedrockLanguageService')

    def summarize_relation(self, source_title: str, source_summary: str, target_title: str, target_summary: str) -> str:
        """Describe the relationship between two nodes in one sentence.

        Args:
            source_title: Title of the node the connection starts from
            source_summary: Summary of the source node
            target_title: Title of the candidate node
            target_summary: Summary of the candidate node

        Returns:
            The relation summary

        Raises:
            EmptyGenerationError: If the model returns no content
            RelationLanguageError: If the model call fails
        """
        user_prompt = f"""Source Node: "{source_title}"
Summary: {source_summary}

Target Node: "{target_title}"
Summary: {target_summary}

Describe their relationship in one sentence:"""

        try:
            response = self.llm.generate_text(system_prompt=SUMMARY_SYSTEM_PROMPT, user_prompt=user_prompt)
        except BedrockLLMError as e:
            logger.error(f'LLM error while summarizing relation: {e}')
            raise RelationLanguageError(f'Relation summary failed: {e}')

        summary = clean_llm_response(response)
        if not summary:
            raise EmptyGenerationError('Relation summary returned no content')
        return summary

    def classify_relation_type(self, source_summary: str, target_summary: str) -> RelationType:
        """Classify the relation between two node summaries.

        Args:
            source_summary: Summary of the source node
            target_summary: Summary of the candidate node

        Returns:
            The relation type

        Raises:
            EmptyGenerationError: If the model returns no content
            InvalidClassificationError: If the returned keyword is not a relation type
            RelationLanguageError: If the model call fails
        """
        user_prompt = f"""Between the following two pieces of text, classify their relationship using one of:
{RELATION_KEYWORDS}.

Source Node: {source_summary}
Target Node: {target_summary}

Return ONLY the keyword."""

        try:
            response = self.llm.generate_text(system_prompt=CLASSIFICATION_SYSTEM_PROMPT,
                                              user_prompt=user_prompt,
                                              max_tokens=16,
                                              temperature=0.0)
        except BedrockLLMError as e:
            logger.error(f'LLM error while classifying relation: {e}')
            raise RelationLanguageError(f'Relation classification failed: {e}')

        relation_type = parse_relation_type(response)
        logger.debug(f'Classified relation as {relation_type.value}')
        return relation_type
