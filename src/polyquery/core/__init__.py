"""Core utilities: configuration, logging, LLM abstraction, exceptions."""

from polyquery.core.config import Settings, get_settings
from polyquery.core.exceptions import (
    ConfigInvalidError,
    ConfigurationError,
    ConnectionNotFoundError,
    DescriptorParseError,
    DuplicateConnectionError,
    ExecutionError,
    NoStructuredOutputError,
    PolyQueryError,
    SourceUnreachableError,
    SubCollectionNotFoundError,
)
from polyquery.core.llm import LLMClient, get_llm_client

__all__ = [
    "Settings",
    "get_settings",
    "LLMClient",
    "get_llm_client",
    "PolyQueryError",
    "ConfigInvalidError",
    "SourceUnreachableError",
    "SubCollectionNotFoundError",
    "NoStructuredOutputError",
    "DescriptorParseError",
    "ConnectionNotFoundError",
    "DuplicateConnectionError",
    "ExecutionError",
    "ConfigurationError",
]
