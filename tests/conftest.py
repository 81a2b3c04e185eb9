"""Test configuration and shared fixtures.

Services run against the in-memory stores in ``tests.fixtures.in_memory``;
the event channel and the live push relay run against fakeredis.
"""

from collections.abc import AsyncGenerator, Generator
from typing import Any
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis

from claimflow.core.config import Settings, clear_settings_cache
from claimflow.core.security import reset_identity_verifier
from claimflow.schemas.auth import CallerContext
from claimflow.services.claim_service import ClaimService
from tests.fixtures.in_memory import (
    InMemoryClaimStore,
    InMemoryNotificationStore,
    RecordingPublisher,
    StaticPolicyDirectory,
)
from tests.fixtures.websockets import create_mock_websocket

# Configure pytest-asyncio
pytest_plugins = ["pytest_asyncio"]


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Every test starts from environment-derived settings and a fresh verifier."""
    clear_settings_cache()
    reset_identity_verifier()
    yield
    clear_settings_cache()
    reset_identity_verifier()


@pytest.fixture
def settings() -> Settings:
    """Settings with a small partition count and short blocking reads."""
    return Settings(
        event_stream_prefix="test:claim-status",
        event_partitions=2,
        event_block_ms=10,
        event_retry_backoff_seconds=0.01,
        live_push_channel="test:live-push",
    )


@pytest.fixture
def user_ctx() -> CallerContext:
    return CallerContext(subject_id="user-1", roles=["USER"], email="user1@example.com")


@pytest.fixture
def other_user_ctx() -> CallerContext:
    return CallerContext(subject_id="user-2", roles=["USER"], email="user2@example.com")


@pytest.fixture
def admin_ctx() -> CallerContext:
    return CallerContext(subject_id="admin-1", roles=["ADMIN"], email="admin@example.com")


@pytest.fixture
def claim_store() -> InMemoryClaimStore:
    return InMemoryClaimStore()


@pytest.fixture
def notification_store() -> InMemoryNotificationStore:
    return InMemoryNotificationStore()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def claim_service(
    claim_store: InMemoryClaimStore, publisher: RecordingPublisher
) -> ClaimService:
    return ClaimService(claim_store, publisher=publisher, policies=StaticPolicyDirectory())


@pytest_asyncio.fixture  # type: ignore[misc]
async def fake_redis() -> AsyncGenerator[Any, None]:
    """Fake Redis with string responses, like the production client."""
    client = FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def mock_websocket() -> MagicMock:
    return create_mock_websocket()
