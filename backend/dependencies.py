"""FastAPI dependency injection for services.

Services are cached with @lru_cache() so one instance is shared across all
requests. Identity is resolved per request and passed explicitly into every
session call.
"""

import asyncio
import logging
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, Query
from firebase_admin import auth as firebase_auth

from config import get_settings
from db import (
    BaseDocumentStore,
    BasePresenceStore,
    InMemoryDocumentStore,
    InMemoryPresenceStore,
)
from llm import BaseLLMService, LLMService
from responses import ResponseCode, error_dict
from services import (
    AITurnController,
    ChatSession,
    ChatStateReconciler,
    Identity,
    MessageCoordinator,
    SessionRegistry,
    UploadService,
)

logger = logging.getLogger(__name__)

# --- Cached Singletons ---
# These are created once and reused across all requests


@lru_cache
def get_document_store() -> BaseDocumentStore:
    """Get cached document store (Firestore unless STORE_BACKEND=memory)."""
    if get_settings().store_backend == "memory":
        return InMemoryDocumentStore()

    from db.firestore import FirestoreService

    return FirestoreService()


@lru_cache
def get_presence_store() -> BasePresenceStore:
    """Get cached presence store (Realtime Database unless STORE_BACKEND=memory)."""
    if get_settings().store_backend == "memory":
        return InMemoryPresenceStore()

    from db.presence import RealtimePresenceStore

    return RealtimePresenceStore()


@lru_cache
def get_llm_service() -> BaseLLMService:
    """Get cached LLM service (expensive - has API client)."""
    return LLMService()


@lru_cache
def get_upload_service() -> UploadService:
    """Get cached upload service (holds an HTTP connection pool)."""
    return UploadService()


@lru_cache
def get_ai_turn_controller() -> AITurnController:
    """Get the process-wide assistant turn controller.

    Shared so single-flight locks cover every request of a user.
    """
    return AITurnController(
        store=get_document_store(),
        llm=get_llm_service(),
        uploads=get_upload_service(),
    )


@lru_cache
def get_message_coordinator() -> MessageCoordinator:
    """Get cached message coordinator."""
    return MessageCoordinator(
        store=get_document_store(),
        uploads=get_upload_service(),
        ai_turns=get_ai_turn_controller(),
    )


@lru_cache
def get_session_registry() -> SessionRegistry:
    """Get the registry of live chat sessions."""
    settings = get_settings()

    def create_session(identity: Identity) -> ChatSession:
        reconciler = ChatStateReconciler(
            identity,
            store=get_document_store(),
            presence_store=get_presence_store(),
            message_window=settings.message_window,
        )
        return ChatSession(identity, reconciler, get_message_coordinator())

    return SessionRegistry(create_session)


# --- Identity ---


async def verify_token(token: str) -> Identity:
    """Resolve a Firebase ID token to an Identity.

    With the in-memory backend there is no Firebase project to verify
    against, so the token itself is taken as the uid.

    Raises:
        HTTPException: 401 if the token is missing or invalid.
    """
    if not token:
        raise HTTPException(status_code=401, detail=error_dict(ResponseCode.UNAUTHORIZED))

    if get_settings().store_backend == "memory":
        return Identity(uid=token)

    from db.firestore import initialize_firebase_app

    initialize_firebase_app()
    try:
        decoded = await asyncio.to_thread(firebase_auth.verify_id_token, token)
    except (ValueError, firebase_auth.InvalidIdTokenError) as e:
        logger.warning("Rejected ID token: %s", e)
        raise HTTPException(
            status_code=401, detail=error_dict(ResponseCode.UNAUTHORIZED)
        ) from e
    except firebase_auth.CertificateFetchError as e:
        logger.error("Could not fetch token certificates: %s", e)
        raise HTTPException(
            status_code=503,
            detail=error_dict(ResponseCode.INTERNAL_ERROR, "Authentication unavailable"),
        ) from e

    return Identity(
        uid=decoded["uid"],
        display_name=decoded.get("name"),
        photo_url=decoded.get("picture"),
    )


async def get_identity(authorization: str | None = Header(default=None)) -> Identity:
    """Identity from an ``Authorization: Bearer <token>`` header."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer":
        token = ""
    return await verify_token(token.strip())


async def get_ws_identity(token: str = Query(default="")) -> Identity | None:
    """Identity for WebSocket connections, which pass the token as a query param."""
    try:
        return await verify_token(token)
    except HTTPException:
        return None


# --- Composed Services ---


async def get_session(
    identity: Identity = Depends(get_identity),
    registry: SessionRegistry = Depends(get_session_registry),
) -> ChatSession:
    """Get (opening if needed) the caller's chat session."""
    return registry.open(identity)
