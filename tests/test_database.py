"""Tests for the database client's health reporting."""

from unittest.mock import AsyncMock, patch

import pytest

from roofreview.core.database import DatabaseClient, engine


@pytest.fixture
def client() -> DatabaseClient:
    return DatabaseClient(engine)


def test_table_names(client):
    assert client.table_names == ["document_pages", "extractions", "job_documents", "jobs"]


@pytest.mark.asyncio
async def test_healthy_when_all_tables_exist(client):
    with patch.object(client, "missing_tables", AsyncMock(return_value=[])):
        health = await client.health_check()

    assert health["status"] == "healthy"
    assert health["database"] == "postgresql"
    assert client.is_connected


@pytest.mark.asyncio
async def test_degraded_when_tables_missing(client):
    with patch.object(client, "missing_tables", AsyncMock(return_value=["jobs"])):
        health = await client.health_check()

    assert health["status"] == "degraded"
    assert health["missing_tables"] == ["jobs"]


@pytest.mark.asyncio
async def test_unreachable_database(client):
    with patch.object(client, "missing_tables", AsyncMock(side_effect=OSError("connection refused"))):
        health = await client.health_check()

    assert health == {"status": "unhealthy", "connected": False, "error": "connection refused"}
    assert not client.is_connected
