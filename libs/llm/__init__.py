"""LLM client abstractions and implementations."""

from .llm_client import LLMClient
from .replicate_client import LLMClientError, ReplicateLLMClient
from .embeddings_provider import EmbeddingsProvider
from .tag_parser import DEFAULT_TAGS, TagParser
from .gateway import ModelGateway, PromptsError, fallback_summary

__all__ = [
    "LLMClient",
    "LLMClientError",
    "ReplicateLLMClient",
    "EmbeddingsProvider",
    "DEFAULT_TAGS",
    "TagParser",
    "ModelGateway",
    "PromptsError",
    "fallback_summary",
]
