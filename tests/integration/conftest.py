"""Integration test fixtures."""

from __future__ import annotations

import json
import os
from collections.abc import Iterator
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from polyquery.api.app import create_app
from polyquery.core.config import Settings


@pytest.fixture(autouse=True)
def mock_env():
    """Set required environment variables for integration tests."""
    with patch.dict(
        os.environ,
        {
            "OPENAI_API_KEY": "test-integration-api-key",
            "DEBUG": "true",
            "ENVIRONMENT": "development",
        },
    ):
        from polyquery.core.config import get_settings

        get_settings.cache_clear()
        yield
        get_settings.cache_clear()


@pytest.fixture
def generate_text() -> AsyncMock:
    """Text generation step returning a descriptor for the Products sheet."""
    return AsyncMock(
        return_value=json.dumps(
            {"collectionName": "Products", "query": {}, "explanation": "All products"}
        )
    )


@pytest.fixture
def client(mock_settings: Settings, generate_text: AsyncMock) -> Iterator[TestClient]:
    """Test client with the lifespan run against temp-dir state."""
    app = create_app(settings=mock_settings, generate_text=generate_text)
    with TestClient(app) as test_client:
        yield test_client
