import asyncpg
import pytest
import pytest_asyncio

from fastapi.testclient import TestClient
from functools import lru_cache
from structlog.stdlib import BoundLogger
from typing import AsyncGenerator

import os

os.environ["BENTO_DEBUG"] = "true"

from saved_query_service.config import get_config
from saved_query_service.db import Database, get_db
from saved_query_service.identity import BaseIdentityVerifier, get_identity_verifier
from saved_query_service.logger import get_logger
from saved_query_service.main import app
from saved_query_service.pipeline import SavedQueryPipeline
from saved_query_service.policy_engine.evaluation import DEFAULT_POLICY

from . import shared_data as sd
from .doubles import InMemoryStore, RecordingPolicyEngine


class MockIdentityVerifier(BaseIdentityVerifier):
    async def initialize(self):
        self._initialized = True

    def get_supported_token_signing_algs(self) -> frozenset[str]:
        return sd.TEST_IDP_SUPPORTED_TOKEN_SIGNING_ALGOS

    async def decode(self, token: str) -> dict:
        return self._verify_and_decode(token, sd.TEST_TOKEN_SECRET)


@pytest.fixture
def logger() -> BoundLogger:
    return get_logger(get_config())


def make_mock_identity_verifier() -> MockIdentityVerifier:
    return MockIdentityVerifier(
        get_logger(get_config()), "", sd.TEST_TOKEN_AUD, sd.TEST_DISABLED_TOKEN_SIGNING_ALGOS, True
    )


@lru_cache()
def get_mock_identity_verifier() -> MockIdentityVerifier:
    return make_mock_identity_verifier()


@pytest_asyncio.fixture
async def identity_verifier() -> AsyncGenerator[MockIdentityVerifier, None]:
    identity_verifier_instance = make_mock_identity_verifier()
    await identity_verifier_instance.initialize()
    yield identity_verifier_instance


@pytest.fixture
def store() -> InMemoryStore:
    return sd.make_seeded_store()


@pytest.fixture
def policy_engine(logger: BoundLogger) -> RecordingPolicyEngine:
    return RecordingPolicyEngine(DEFAULT_POLICY, logger)


@pytest.fixture
def pipeline(store: InMemoryStore, policy_engine: RecordingPolicyEngine, logger: BoundLogger) -> SavedQueryPipeline:
    return SavedQueryPipeline(store, store, policy_engine, store, logger)


@pytest.fixture
def test_client(store: InMemoryStore):
    with TestClient(app) as client:
        app.dependency_overrides[get_db] = lambda: store
        app.dependency_overrides[get_identity_verifier] = get_mock_identity_verifier
        yield client
    app.dependency_overrides.clear()


# PostgreSQL-backed fixtures: tests using these are skipped when no database is reachable at the configured URI.


async def get_test_db() -> AsyncGenerator[Database, None]:
    db_instance = Database(get_config().database_uri)
    try:
        await db_instance.initialize(pool_size=1)  # Small pool size for testing
    except (OSError, asyncpg.PostgresError) as e:
        pytest.skip(f"PostgreSQL not available: {e}")
    yield db_instance


db_fixture = pytest_asyncio.fixture(get_test_db, name="db")


@pytest_asyncio.fixture
async def db_cleanup(db: Database):
    yield
    conn: asyncpg.Connection
    async with db.connect() as conn:
        await conn.execute("DROP TABLE IF EXISTS saved_queries")
        await conn.execute("DROP TABLE IF EXISTS projects")
        await conn.execute("DROP TABLE IF EXISTS team_roles")
        await conn.execute("DROP TABLE IF EXISTS teams")
    await db.close()
