import os
# Must be set BEFORE any app imports so the cached Settings see them
os.environ["TESTING"] = "True"
os.environ["ENVIRONMENT"] = "development"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"

import pytest
from typing import AsyncGenerator
from unittest.mock import AsyncMock
from httpx import AsyncClient, ASGITransport

from app.shared.adapters.base import CloudGateway


@pytest.fixture
def gateway() -> AsyncMock:
    """Management-identity gateway; every capability is an AsyncMock."""
    return AsyncMock(spec=CloudGateway)


@pytest.fixture
def member_gateway() -> AsyncMock:
    """Invited-account gateway, kept distinct from the management one."""
    return AsyncMock(spec=CloudGateway)


@pytest.fixture
async def ac(gateway, member_gateway) -> AsyncGenerator[AsyncClient, None]:
    """Async client with both gateway roles replaced by mocks."""
    from app.main import app
    from app.shared.core.dependencies import get_management_gateway, get_member_gateway

    app.dependency_overrides[get_management_gateway] = lambda: gateway
    app.dependency_overrides[get_member_gateway] = lambda: member_gateway
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
