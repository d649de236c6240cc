"""Pytest configuration and fixtures for RelayChat tests."""

import os
import sys

# Set required env vars BEFORE any imports that might trigger Settings
os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key")
os.environ.setdefault(
    "FIREBASE_CREDENTIALS", '{"type":"service_account","project_id":"test"}'
)
os.environ.setdefault("FIREBASE_DATABASE_URL", "https://test-default-rtdb.firebaseio.com")
os.environ.setdefault("CLOUDINARY_CLOUD_NAME", "test-cloud")
os.environ.setdefault("CLOUDINARY_UPLOAD_PRESET", "test-preset")
os.environ.setdefault("STORE_BACKEND", "memory")

from unittest.mock import AsyncMock, MagicMock

import pytest

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from db import InMemoryDocumentStore, InMemoryPresenceStore, WriteOp  # noqa: E402
from services import (  # noqa: E402
    AITurnController,
    ChatSession,
    ChatStateReconciler,
    Identity,
    MessageCoordinator,
    UploadResult,
)


@pytest.fixture
def mock_settings():
    """Mock application settings."""
    settings = MagicMock()
    settings.anthropic_api_key = "test-anthropic-key"
    settings.cloudinary_cloud_name = "test-cloud"
    settings.cloudinary_upload_preset = "test-preset"
    settings.environment = "test"
    settings.debug = True
    settings.store_backend = "memory"
    settings.message_window = 50
    settings.max_upload_size_mb = 1
    settings.max_upload_size_bytes = 1024 * 1024
    settings.upload_timeout_seconds = 5.0
    settings.llm_model = "claude-sonnet-4-20250514"
    settings.llm_temperature = 0.7
    settings.llm_max_tokens = 2048
    return settings


@pytest.fixture
def store():
    """Empty in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def presence_store():
    """Empty in-memory presence store."""
    return InMemoryPresenceStore()


@pytest.fixture
def alice():
    return Identity(uid="alice", display_name="Alice A.", photo_url="https://img/alice.png")


@pytest.fixture
def bob():
    return Identity(uid="bob", display_name="Bob B.")


@pytest.fixture
def mock_llm():
    """Mock LLM service."""
    service = AsyncMock()
    service.generate.return_value = "Hello! How can I help?"
    service.generate_with_image.return_value = "A cat on a sofa."
    return service


@pytest.fixture
def mock_uploads():
    """Mock upload service."""
    service = AsyncMock()
    service.upload.return_value = UploadResult(
        url="https://files.example/f/photo.png",
        public_id="f/photo",
        resource_type="image",
    )
    service.fetch.return_value = (b"\x89PNG", "image/png")
    return service


@pytest.fixture
def ai_turns(store, mock_llm, mock_uploads):
    return AITurnController(store=store, llm=mock_llm, uploads=mock_uploads)


@pytest.fixture
def coordinator(store, mock_uploads, ai_turns):
    return MessageCoordinator(store=store, uploads=mock_uploads, ai_turns=ai_turns)


@pytest.fixture
def make_session(store, presence_store, coordinator):
    """Factory for started chat sessions sharing one store."""
    sessions: list[ChatSession] = []

    def factory(identity: Identity, message_window: int = 50) -> ChatSession:
        reconciler = ChatStateReconciler(
            identity,
            store=store,
            presence_store=presence_store,
            message_window=message_window,
        )
        session = ChatSession(identity, reconciler, coordinator)
        session.start()
        sessions.append(session)
        return session

    yield factory

    for session in sessions:
        session.close()


async def seed_users(store: InMemoryDocumentStore, *users: dict) -> None:
    """Insert user profiles keyed by uid."""
    await store.commit(
        [WriteOp(collection="users", doc_id=user["uid"], data=user) for user in users]
    )


@pytest.fixture
def user_docs():
    """Sample profiles for alice, bob and carol."""
    return [
        {"uid": "alice", "name": "Alice", "photoURL": "https://img/alice.png"},
        {"uid": "bob", "name": "Bob", "photoURL": None},
        {"uid": "carol", "name": "Carol", "photoURL": "https://img/carol.png"},
    ]
