"""
Conversation data model and storage interface.

The 'ConversationDatabase' ABC is the pluggable storage backend for
conversation records. Records are partitioned by 'user_id'. Concrete
implementation: 'InMemoryConversationDatabase'.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from chat_session_toolkit.conversation_database.data_models.message import Message
from chat_session_toolkit.utils.database import generate_uid
from chat_session_toolkit.utils.time import get_current_timestamp


class Conversation(BaseModel):
    """A single conversation owned by a user. The title is taken from the first user message."""

    id: str = Field(default_factory=generate_uid)
    user_id: str | None = None
    title: str = ""
    create_timestamp: int = Field(default_factory=get_current_timestamp)
    update_timestamp: int = Field(default_factory=get_current_timestamp)

    def touch(self) -> None:
        self.update_timestamp = max(self.update_timestamp, get_current_timestamp())


class ConversationThread(Conversation):
    """A conversation together with its messages, oldest first."""

    messages: list[Message] = Field(default_factory=list)

    @classmethod
    def from_conversation(cls, conversation: Conversation, messages: list[Message]) -> "ConversationThread":
        return cls(
            **conversation.model_dump(),
            messages=sorted(messages, key=lambda m: m.create_timestamp),
        )


class ConversationDatabase(ABC):
    """Abstract repository for 'Conversation' records."""

    @abstractmethod
    async def save_conversation(self, conversation: Conversation) -> Conversation:
        """Insert or replace the conversation."""
        pass

    @abstractmethod
    async def get_conversations_by_user_id(self, user_id: str) -> list[Conversation]:
        pass

    @abstractmethod
    async def get_conversation_by_id(self, conversation_id: str) -> Conversation | None:
        pass

    @abstractmethod
    async def delete_conversation(self, conversation: Conversation) -> bool:
        pass
