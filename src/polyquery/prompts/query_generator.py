"""Query generator prompt templates.

The generator sees the inferred schema of one connection and must answer
with a single JSON object describing what to fetch.
"""

import json

from polyquery.models.connections import SourceType
from polyquery.models.schema import CollectionSchema

QUERY_GENERATOR_SYSTEM_PROMPT = """You are a data query expert. Given the schema of a data source, translate the user's natural language request into a query descriptor.

## Source
Type: {source_type}
{source_rules}

## Available Schema
{schema_context}

## Output Format
Respond with ONE JSON object and nothing else:
{{
  "dbName": "<database name from the schema>",
  "collectionName": "<collection, sheet or table name from the schema>",
  "query": {{"<field>": "<value>"}},
  "projection": ["<field>", "..."],
  "sort": {{"<field>": 1}},
  "limit": 50,
  "explanation": "<what the query does, in plain language>",
  "chartType": "bar | line | pie | area | table"
}}

## Rules
- Use EXACT dbName, collectionName and field names from the schema
- Omit "projection" to return every field
- Omit "sort" when no ordering is requested
- Use the user's limit if one is mentioned, otherwise 50
- Pick "table" as chartType unless another chart clearly fits the data
"""

SOURCE_RULES = {
    SourceType.MONGODB: (
        "- \"query\" is a standard MongoDB find() filter; operators such as $gt, $in, $regex are allowed\n"
        "- Nested fields use dot notation (e.g. \"address.city\")"
    ),
    SourceType.EXCEL: (
        "- \"query\" maps column names to text; a row matches when the cell contains the text, "
        "ignoring case\n"
        "- Operators are not supported; use plain values only"
    ),
    SourceType.SQL: (
        "- \"query\" maps column names to values; a row matches when the column equals the value "
        "(null matches NULL)\n"
        "- Operators are not supported; use plain values only"
    ),
}

QUERY_GENERATOR_USER_PROMPT = """## User Request
"{user_query}"

Instructions:
1. Identify the most relevant database and collection.
2. Build the filter for the "query" key.
3. Decide whether any projection, sorting or limiting is needed.
4. Suggest a chart type (bar, line, pie, area or table) that fits the data.
5. Return the JSON object."""


def format_schema_context(schemas: list[CollectionSchema]) -> str:
    """Render schemas as the JSON the generator reads."""
    return json.dumps(
        [s.model_dump(mode="json", by_alias=True, exclude_none=True) for s in schemas],
        indent=2,
    )


def format_query_generator_prompt(
    user_query: str,
    schemas: list[CollectionSchema],
    source_type: SourceType,
) -> tuple[str, str]:
    """Format the query generator prompt with schema context.

    Args:
        user_query: The natural language request from the user.
        schemas: Inferred schemas of the resolved connection.
        source_type: Kind of source the descriptor will run against.

    Returns:
        Tuple of (system_prompt, user_prompt) for LLM invocation.
    """
    system = QUERY_GENERATOR_SYSTEM_PROMPT.format(
        source_type=str(source_type),
        source_rules=SOURCE_RULES[source_type],
        schema_context=format_schema_context(schemas) if schemas else "No schema available.",
    )
    user = QUERY_GENERATOR_USER_PROMPT.format(user_query=user_query)
    return system, user
