"""
In-memory ordered log of conversation turns.

Insertion order is chronological order. The store owns the active
'Conversation', which it creates lazily on the first append and touches on
every append after that. No locking: the owning session is the only writer.
"""

from collections.abc import Iterable

from chat_session_toolkit.conversation_database.data_models.conversation import Conversation
from chat_session_toolkit.conversation_database.data_models.message import Message


class MessageStore:
    def __init__(self, user_id: str | None = None) -> None:
        self.user_id = user_id
        self._messages: list[Message] = []
        self._ids: set[str] = set()
        self._conversation: Conversation | None = None

    @property
    def conversation(self) -> Conversation | None:
        return self._conversation

    @property
    def last(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: Message) -> Message:
        if message.id in self._ids:
            raise ValueError(f"Message {message.id} is already part of the conversation")

        if self._conversation is None:
            self._conversation = Conversation(user_id=self.user_id, title=message.content)

        message.user_id = self.user_id
        message.conversation_id = self._conversation.id
        # strictly increasing, so sorting by timestamp restores the log order
        if self._messages and message.create_timestamp <= self._messages[-1].create_timestamp:
            message.create_timestamp = self._messages[-1].create_timestamp + 1

        self._conversation.touch()
        self._messages.append(message)
        self._ids.add(message.id)
        return message

    def all(self) -> list[Message]:
        return list(self._messages)

    def recent(self, count: int) -> list[Message]:
        """The last 'count' messages (at least one), oldest first."""
        count = max(1, count)
        return self._messages[-count:]

    def get(self, message_id: str) -> Message | None:
        return next((m for m in self._messages if m.id == message_id), None)

    def clear(self) -> None:
        self._messages.clear()
        self._ids.clear()
        self._conversation = None

    def hydrate(self, conversation: Conversation, messages: Iterable[Message]) -> None:
        """Replace the log with a persisted conversation; reads may come back out of order."""
        ordered = sorted(messages, key=lambda m: m.create_timestamp)
        self._conversation = conversation
        self._messages = ordered
        self._ids = {m.id for m in ordered}
