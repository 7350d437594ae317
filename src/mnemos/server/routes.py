"""API routes for the Mnemos server."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from pydantic import BaseModel, Field

from mnemos import __version__
from mnemos.errors import AuthError
from mnemos.memory.schema import ConversationRecord
from mnemos.services import Services


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    model: str
    version: str
    active_connections: int
    writer: dict[str, Any]


class CreateConversationRequest(BaseModel):
    title: str | None = Field(default=None, max_length=200)


class RenameConversationRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)


class ConversationResponse(BaseModel):
    id: str
    title: str
    created_at: datetime
    last_activity: datetime


class TurnResponse(BaseModel):
    id: str
    role: str
    text: str
    created_at: datetime


def _conversation(record: ConversationRecord) -> ConversationResponse:
    return ConversationResponse(
        id=record.id,
        title=record.title,
        created_at=record.created_at,
        last_activity=record.last_activity,
    )


def create_router(services: Services) -> APIRouter:
    """Create API router for health and conversation management.

    Args:
        services: Running services

    Returns:
        Configured API router
    """
    router = APIRouter()
    store = services.store
    cookie_name = services.config.auth.cookie_name

    async def current_user(request: Request) -> str:
        """Resolve the caller from a Bearer header or the auth cookie."""
        scheme, _, value = request.headers.get("authorization", "").partition(" ")
        credential = value.strip() if scheme.lower() == "bearer" else None
        credential = credential or request.cookies.get(cookie_name)
        try:
            identity = await services.verifier.verify(credential)
        except AuthError as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=e.reason,
                headers={"WWW-Authenticate": "Bearer"},
            ) from e
        return identity.user_id

    async def owned(conversation_id: str, user_id: str) -> ConversationRecord:
        record = await store.get_conversation(conversation_id)
        if record is None or record.user_id != user_id:
            raise HTTPException(status_code=404, detail="Conversation not found")
        return record

    @router.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Health check endpoint."""
        writer = services.writer
        return HealthResponse(
            status="healthy",
            model=services.config.model.name,
            version=__version__,
            active_connections=services.gateway.active_connections,
            writer={"queued": writer.pending, "running": writer.running, **writer.stats.as_dict()},
        )

    @router.post(
        "/conversations",
        response_model=ConversationResponse,
        status_code=status.HTTP_201_CREATED,
    )
    async def create_conversation(
        request: CreateConversationRequest, user_id: str = Depends(current_user)
    ) -> ConversationResponse:
        """Create an empty conversation."""
        record = await store.create_conversation(user_id, title=request.title)
        return _conversation(record)

    @router.get("/conversations", response_model=list[ConversationResponse])
    async def list_conversations(
        limit: int = Query(default=50, ge=1, le=200),
        offset: int = Query(default=0, ge=0),
        user_id: str = Depends(current_user),
    ) -> list[ConversationResponse]:
        """List the caller's conversations, most recently active first."""
        records = await store.list_conversations(user_id, limit=limit, offset=offset)
        return [_conversation(r) for r in records]

    @router.get("/conversations/{conversation_id}/turns", response_model=list[TurnResponse])
    async def list_turns(
        conversation_id: str,
        limit: int | None = Query(default=None, ge=1, le=1000),
        user_id: str = Depends(current_user),
    ) -> list[TurnResponse]:
        """List turns of a conversation, oldest first."""
        await owned(conversation_id, user_id)
        turns = await store.find(conversation_id, limit=limit, order="asc")
        return [
            TurnResponse(id=t.id, role=t.role, text=t.text, created_at=t.created_at)
            for t in turns
        ]

    @router.patch("/conversations/{conversation_id}", response_model=ConversationResponse)
    async def rename_conversation(
        conversation_id: str,
        request: RenameConversationRequest,
        user_id: str = Depends(current_user),
    ) -> ConversationResponse:
        """Rename a conversation."""
        await owned(conversation_id, user_id)
        await store.rename_conversation(conversation_id, request.title.strip())
        return _conversation(await owned(conversation_id, user_id))

    @router.delete("/conversations/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_conversation(
        conversation_id: str, user_id: str = Depends(current_user)
    ) -> Response:
        """Delete a conversation, its turns and its memories."""
        await owned(conversation_id, user_id)
        async with services.orchestrator.locks.hold(conversation_id):
            await services.ltm.delete_conversation(conversation_id, user_id)
            await store.delete_conversation(conversation_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return router
