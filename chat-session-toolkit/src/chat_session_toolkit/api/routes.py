"""
HTTP routes for chat sessions.

'build_chat_router' exposes a 'SessionRegistry' over FastAPI. Answers are
streamed as newline-delimited JSON: one 'ClientMessage' line per snapshot of
the assistant message (placeholder, every fragment, final message), which is
the only wire format the session produces.

Routes:
    POST   /sessions/{session_id}/messages                        submit a message, NDJSON stream
    POST   /sessions/{session_id}/cancel                          cancel the answer in flight
    POST   /sessions/{session_id}/reset                           start a new conversation
    GET    /sessions/{session_id}/messages                        current message log
    POST   /sessions/{session_id}/messages/{message_id}/feedback  rate an answer
    POST   /sessions/{session_id}/conversations/{conversation_id} load a stored conversation
    DELETE /sessions/{session_id}                                 dispose of the session
    GET    /conversations                                         stored conversations of the user
    DELETE /conversations/{conversation_id}                       delete a stored conversation
"""

import json
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from chat_session_toolkit.api.auth.base import AuthProvider
from chat_session_toolkit.conversation_database.data_models.conversation import ConversationThread
from chat_session_toolkit.conversation_database.data_models.message import Message
from chat_session_toolkit.exceptions import ExchangeInProgressError
from chat_session_toolkit.session.conversation_session import ConversationSession
from chat_session_toolkit.session.registry import SessionRegistry

NDJSON_MEDIA_TYPE = "application/x-ndjson"


class MessageInput(BaseModel):
    content: str


class FeedbackInput(BaseModel):
    positive: bool
    note: str | None = None


class ClientMessage(Message):
    is_loading: bool = False

    @classmethod
    def from_message(cls, message: Message) -> "ClientMessage":
        return cls(
            **message.model_dump(),
            is_loading=message.is_assistant and not message.content.strip(),
        )

    def encode(self, charset: str = "utf-8") -> bytes:
        return (json.dumps(self.model_dump(mode="json")) + "\n").encode(charset)


def build_chat_router(registry: SessionRegistry, auth: AuthProvider) -> APIRouter:
    router = APIRouter()

    def _session(session_id: str, user_id: str) -> ConversationSession:
        return registry.get_or_create(user_id, session_id)

    def _existing_session(session_id: str, user_id: str) -> ConversationSession:
        session = registry.get(user_id, session_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
        return session

    @router.post("/sessions/{session_id}/messages")
    async def submit_message(
        session_id: str,
        message_input: MessageInput,
        user_id: str = Depends(auth.get_current_user_id),
    ) -> StreamingResponse:
        if not message_input.content.strip():
            raise HTTPException(status_code=400, detail="Message content is empty")
        session = _session(session_id, user_id)

        # the exchange starts here so a busy session is refused before any header is sent
        snapshots = session.submit_message_stream(message_input.content)
        try:
            placeholder = await anext(snapshots)
        except ExchangeInProgressError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc

        async def stream() -> AsyncGenerator[bytes, None]:
            try:
                yield ClientMessage.from_message(placeholder).encode()
                async for snapshot in snapshots:
                    yield ClientMessage.from_message(snapshot).encode()
            finally:
                await snapshots.aclose()

        return StreamingResponse(stream(), media_type=NDJSON_MEDIA_TYPE)

    @router.post("/sessions/{session_id}/cancel")
    async def cancel(session_id: str, user_id: str = Depends(auth.get_current_user_id)) -> dict[str, bool]:
        session = registry.get(user_id, session_id)
        return {"cancelled": session.cancel() if session is not None else False}

    @router.post("/sessions/{session_id}/reset", status_code=204)
    async def reset(session_id: str, user_id: str = Depends(auth.get_current_user_id)) -> None:
        session = _existing_session(session_id, user_id)
        try:
            session.reset()
        except ExchangeInProgressError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc

    @router.get("/sessions/{session_id}/messages")
    async def get_messages(
        session_id: str, user_id: str = Depends(auth.get_current_user_id)
    ) -> list[ClientMessage]:
        session = registry.get(user_id, session_id)
        if session is None:
            return []
        return [ClientMessage.from_message(message) for message in session.messages.all()]

    @router.post("/sessions/{session_id}/messages/{message_id}/feedback")
    async def submit_feedback(
        session_id: str,
        message_id: str,
        feedback_input: FeedbackInput,
        user_id: str = Depends(auth.get_current_user_id),
    ) -> ClientMessage:
        session = _existing_session(session_id, user_id)
        message = await session.submit_feedback(message_id, feedback_input.positive, feedback_input.note)
        if message is None:
            raise HTTPException(status_code=404, detail=f"Message {message_id} not found")
        return ClientMessage.from_message(message)

    @router.post("/sessions/{session_id}/conversations/{conversation_id}")
    async def load_conversation(
        session_id: str,
        conversation_id: str,
        user_id: str = Depends(auth.get_current_user_id),
    ) -> ConversationThread:
        session = _session(session_id, user_id)
        try:
            thread = await session.load_conversation(conversation_id)
        except ExchangeInProgressError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        if thread is None:
            raise HTTPException(status_code=404, detail=f"Conversation {conversation_id} not found")
        return thread

    @router.delete("/sessions/{session_id}", status_code=204)
    async def dispose(session_id: str, user_id: str = Depends(auth.get_current_user_id)) -> None:
        if not await registry.dispose(user_id, session_id):
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found")

    @router.get("/conversations")
    async def list_conversations(user_id: str = Depends(auth.get_current_user_id)) -> list[ConversationThread]:
        async with registry.transient(user_id) as session:
            return await session.list_conversations()

    @router.delete("/conversations/{conversation_id}")
    async def delete_conversation(
        conversation_id: str, user_id: str = Depends(auth.get_current_user_id)
    ) -> dict[str, bool]:
        holders = [s for s in registry.sessions_of(user_id) if s.conversation_id == conversation_id]
        if any(s.is_busy for s in holders):
            raise HTTPException(status_code=409, detail="The conversation is answering a message")

        async with registry.transient(user_id) as session:
            deleted = await session.delete_conversation(conversation_id)
        if not deleted:
            raise HTTPException(status_code=404, detail=f"Conversation {conversation_id} not found")

        # open sessions would save the conversation again on their next exchange
        for holder in holders:
            holder.reset()
        return {"deleted": True}

    return router
