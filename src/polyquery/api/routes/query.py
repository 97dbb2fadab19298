"""Natural-language query and raw data routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query

from polyquery.api.dependencies import ExecutorDep
from polyquery.core.logging import get_logger
from polyquery.models.query import DEFAULT_LIMIT, ResultEnvelope
from polyquery.models.requests import AskRequest
from polyquery.models.responses import DataResponse, ErrorResponse

logger = get_logger(__name__)

router = APIRouter(tags=["query"])


@router.post(
    "/ask",
    response_model=ResultEnvelope,
    responses={
        404: {"model": ErrorResponse, "description": "No connections are registered"},
        422: {"model": ErrorResponse, "description": "Generator output was unusable"},
        502: {"model": ErrorResponse, "description": "Source could not be contacted"},
    },
)
async def ask(body: AskRequest, executor: ExecutorDep) -> ResultEnvelope:
    """Answer a natural-language request.

    The request is processed as:
    1. Result cache lookup for ``(connectionId, prompt)``
    2. Schema retrieval for the resolved connection
    3. Text generation and descriptor repair
    4. Fetch through the source adapter

    Args:
        body: Prompt and optional connection id.
        executor: Query executor (injected).

    Returns:
        ResultEnvelope with the descriptor used, the records and their count.
    """
    logger.info("ask_received", connection_id=body.connection_id, prompt=body.prompt[:100])
    return await executor.ask(body.prompt, body.connection_id)


@router.get(
    "/data/{db}/{coll}",
    response_model=DataResponse,
    responses={404: {"model": ErrorResponse, "description": "No document-store connection"}},
)
async def get_data(
    db: str,
    coll: str,
    executor: ExecutorDep,
    limit: Annotated[int, Query(ge=1, le=10000)] = DEFAULT_LIMIT,
    connection_id: Annotated[str | None, Query(alias="connectionId")] = None,
) -> DataResponse:
    """Raw unfiltered documents from a document-store collection."""
    docs = await executor.fetch_raw(db, coll, limit=limit, connection_id=connection_id)
    return DataResponse(count=len(docs), docs=docs)
