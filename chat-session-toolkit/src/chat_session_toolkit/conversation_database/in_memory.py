"""
In-memory repositories.

Records are kept in per-user partitions, mirroring how a document database
partitions conversations and messages by owner. Stored objects are copies, so
later mutation of a live session message does not leak into the store until it
is saved again. Suitable for tests and single-process deployments only.
"""

from collections import defaultdict

from chat_session_toolkit.conversation_database.data_models.conversation import Conversation, ConversationDatabase
from chat_session_toolkit.conversation_database.data_models.message import Feedback, Message, MessageDatabase

_NO_USER = ""


class InMemoryConversationDatabase(ConversationDatabase):
    def __init__(self) -> None:
        self.partitions: dict[str, dict[str, Conversation]] = defaultdict(dict)

    async def save_conversation(self, conversation: Conversation) -> Conversation:
        self.partitions[conversation.user_id or _NO_USER][conversation.id] = conversation.model_copy(deep=True)
        return conversation

    async def get_conversations_by_user_id(self, user_id: str) -> list[Conversation]:
        return [c.model_copy(deep=True) for c in self.partitions.get(user_id, {}).values()]

    async def get_conversation_by_id(self, conversation_id: str) -> Conversation | None:
        for partition in self.partitions.values():
            if conversation_id in partition:
                return partition[conversation_id].model_copy(deep=True)
        return None

    async def delete_conversation(self, conversation: Conversation) -> bool:
        partition = self.partitions.get(conversation.user_id or _NO_USER, {})
        return partition.pop(conversation.id, None) is not None


class InMemoryMessageDatabase(MessageDatabase):
    def __init__(self) -> None:
        self.partitions: dict[str, dict[str, Message]] = defaultdict(dict)

    def _all_messages(self) -> list[Message]:
        return [message for partition in self.partitions.values() for message in partition.values()]

    async def save_message(self, message: Message) -> Message:
        self.partitions[message.user_id or _NO_USER][message.id] = message.model_copy(deep=True)
        return message

    async def get_messages_by_conversation_id(self, conversation_id: str) -> list[Message]:
        return [m.model_copy(deep=True) for m in self._all_messages() if m.conversation_id == conversation_id]

    async def get_messages_by_user_id(self, user_id: str) -> list[Message]:
        return [m.model_copy(deep=True) for m in self.partitions.get(user_id, {}).values()]

    async def get_messages_with_feedback(self) -> list[Message]:
        return [m.model_copy(deep=True) for m in self._all_messages() if m.feedback != Feedback.NONE]

    async def delete_messages(self, messages: list[Message]) -> bool:
        deleted = False
        for message in messages:
            partition = self.partitions.get(message.user_id or _NO_USER, {})
            deleted = partition.pop(message.id, None) is not None or deleted
        return deleted
