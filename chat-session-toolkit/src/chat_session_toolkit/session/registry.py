"""
Session lifecycle for the request layer.

A 'ConversationSession' lives as long as the client connection that owns it:
the registry creates it on first use, hands the same instance back for every
later request of that user and session id, and disposes of it explicitly.
Sessions of different users are never shared, even under the same session id.
"""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from loguru import logger

from chat_session_toolkit.session.conversation_session import ConversationSession
from chat_session_toolkit.utils.database import generate_uid

SessionFactory = Callable[[str, str], ConversationSession]


class SessionRegistry:
    """
    Attributes:
        factory: Builds a new session from '(user_id, session_id)'.
    """

    def __init__(self, factory: SessionFactory) -> None:
        self.factory = factory
        self._sessions: dict[tuple[str, str], ConversationSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, user_id: str, session_id: str) -> ConversationSession | None:
        return self._sessions.get((user_id, session_id))

    def get_or_create(self, user_id: str, session_id: str) -> ConversationSession:
        session = self._sessions.get((user_id, session_id))
        if session is None:
            session = self.factory(user_id, session_id)
            self._sessions[(user_id, session_id)] = session
            logger.info(f"Created session {session_id} for user {user_id}")
        return session

    def sessions_of(self, user_id: str) -> list[ConversationSession]:
        return [session for (owner, _), session in self._sessions.items() if owner == user_id]

    @asynccontextmanager
    async def transient(self, user_id: str) -> AsyncIterator[ConversationSession]:
        """An unregistered session for one-off history queries, closed on exit."""
        session = self.factory(user_id, generate_uid())
        try:
            yield session
        finally:
            await session.aclose()

    async def dispose(self, user_id: str, session_id: str) -> bool:
        session = self._sessions.pop((user_id, session_id), None)
        if session is None:
            return False
        await session.aclose()
        logger.info(f"Disposed session {session_id} for user {user_id}")
        return True

    async def dispose_all(self) -> None:
        for user_id, session_id in list(self._sessions):
            await self.dispose(user_id, session_id)
