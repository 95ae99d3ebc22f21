import asyncio
import os
from typing import List, Optional

# Settings are read at import time, so the environment must be in place first
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["MODERATION_BACKEND"] = "inline"
os.environ["TRUST_CLIENT_VERDICTS"] = "true"
os.environ["ALLOW_REQUEST_AFTER_DECLINE"] = "true"

import pytest

from app.database import make_engine, make_session_factory
from app.dependencies import ServiceContainer
from app.init_db import init_models
from app.schemas.posts import ClassifierResult


class FakeClassifier:
    """Classifier double. Set `gate` to hold calls until the test releases them."""

    def __init__(self, result: Optional[ClassifierResult] = None, error: Optional[Exception] = None):
        self.result = result or ClassifierResult(
            fact_check_status="verified",
            credibility_score=5,
            summary="Matches the official certified results.",
        )
        self.error = error
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[str] = []

    async def classify(self, text: str) -> ClassifierResult:
        self.calls.append(text)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result


class FakeBlobStore:
    def __init__(self):
        self.objects = {}

    async def put(self, path_hint: str, data: bytes, content_type: str) -> str:
        self.objects[path_hint] = (data, content_type)
        return f"https://cdn.test/{path_hint}"


@pytest.fixture
async def engine(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'feed.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def blobs():
    return FakeBlobStore()


@pytest.fixture
async def container(session_factory, classifier, blobs):
    container = ServiceContainer(session_factory, classifier=classifier, blobs=blobs)
    yield container
    await container.runner.drain(timeout=5)


async def create_user(container: ServiceContainer, name: str, email: Optional[str] = None) -> str:
    user = await container.identity_store.create(
        name=name,
        email=email or f"{name.lower()}@example.com",
        password_hash="not-a-real-hash",
    )
    return user.id


@pytest.fixture
async def alice(container):
    return await create_user(container, "Alice")


@pytest.fixture
async def bob(container):
    return await create_user(container, "Bob")


@pytest.fixture
async def carol(container):
    return await create_user(container, "Carol")
