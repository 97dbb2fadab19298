"""Prompt templates for the text generation step."""

from polyquery.prompts.query_generator import (
    QUERY_GENERATOR_SYSTEM_PROMPT,
    QUERY_GENERATOR_USER_PROMPT,
    SOURCE_RULES,
    format_query_generator_prompt,
    format_schema_context,
)

__all__ = [
    "QUERY_GENERATOR_SYSTEM_PROMPT",
    "QUERY_GENERATOR_USER_PROMPT",
    "SOURCE_RULES",
    "format_query_generator_prompt",
    "format_schema_context",
]
