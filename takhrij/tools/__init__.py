"""
Tools package for Takhrij
"""

from .collection_loader import CollectionLoader, extract_hadiths
from .llm_client import (
    AnthropicClient,
    ChatClient,
    LLMError,
    OpenRouterClient,
    create_llm_client,
)
from .text_normalizer import extract_keywords, normalize, truncate

__all__ = [
    'CollectionLoader',
    'extract_hadiths',
    'AnthropicClient',
    'ChatClient',
    'LLMError',
    'OpenRouterClient',
    'create_llm_client',
    'extract_keywords',
    'normalize',
    'truncate',
]
