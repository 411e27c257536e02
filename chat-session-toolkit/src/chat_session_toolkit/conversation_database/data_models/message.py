"""
Message data model and storage interface.

A message is one turn of a conversation. Assistant messages start empty (the
"loading" signal), grow fragment by fragment while the answer streams, and end
in exactly one terminal 'status'. User feedback is kept on the message itself
so the record can be upserted as a single document.

The 'MessageDatabase' ABC is the pluggable storage backend. Records are
partitioned by 'user_id'. Concrete implementation: 'InMemoryMessageDatabase'.
"""

from abc import ABC, abstractmethod
from enum import StrEnum

from pydantic import BaseModel, Field

from chat_session_toolkit.conversation_database.data_models.source import Source
from chat_session_toolkit.llms.base import Roles
from chat_session_toolkit.utils.database import generate_uid
from chat_session_toolkit.utils.time import get_current_timestamp


class MessageStatus(StrEnum):
    SUCCESS = "success"
    CANCELLED = "cancelled"
    ERROR = "error"


class Feedback(StrEnum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NONE = "none"


class Message(BaseModel):
    """
    A single turn within a conversation.

    'user_id' and 'conversation_id' are filled in when the message is appended
    to a session's 'MessageStore'. 'sources' holds only the documents the
    assistant actually cited.
    """

    id: str = Field(default_factory=generate_uid)
    role: Roles
    content: str = ""
    create_timestamp: int = Field(default_factory=get_current_timestamp)
    user_id: str | None = None
    conversation_id: str | None = None
    sources: list[Source] | None = None
    feedback: Feedback = Feedback.NONE
    feedback_message: str | None = None
    status: MessageStatus = MessageStatus.SUCCESS

    @property
    def is_assistant(self) -> bool:
        return self.role == Roles.ASSISTANT


class MessageDatabase(ABC):
    """Abstract repository for 'Message' records."""

    @abstractmethod
    async def save_message(self, message: Message) -> Message:
        """Insert or replace the message."""
        pass

    @abstractmethod
    async def get_messages_by_conversation_id(self, conversation_id: str) -> list[Message]:
        pass

    @abstractmethod
    async def get_messages_by_user_id(self, user_id: str) -> list[Message]:
        pass

    @abstractmethod
    async def get_messages_with_feedback(self) -> list[Message]:
        pass

    @abstractmethod
    async def delete_messages(self, messages: list[Message]) -> bool:
        pass
