"""API request models."""

from pydantic import Field

from polyquery.models.schema import CamelModel


class AskRequest(CamelModel):
    """Natural-language question against one connection.

    Attributes:
        prompt: The user's question.
        connection_id: Target connection; unknown ids fall back to the first one.
    """

    prompt: str = Field(..., min_length=1, max_length=4000, description="Natural language question")
    connection_id: str | None = Field(default=None, description="Target connection id")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"prompt": "show all products cheaper than 20", "connectionId": "1718000000001"}
            ]
        }
    }


class MetadataRequest(CamelModel):
    """Operator annotation for one field of one collection."""

    connection_id: str = Field(..., min_length=1)
    collection_name: str = Field(..., min_length=1)
    field_name: str = Field(..., min_length=1)
    description: str | None = None
    tips: str | None = None
