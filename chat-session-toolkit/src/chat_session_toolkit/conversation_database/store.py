"""
Persistence facade used by the chat session.

'ConversationStore' wraps the optional conversation and message repositories.
When storage is not configured every operation is a no-op returning an empty
result, 'None' or 'False', so a deployment without a database still chats;
it just forgets. Repository exceptions are not caught here: the session
decides how storage failures are handled.
"""

from loguru import logger

from chat_session_toolkit.conversation_database.data_models.conversation import Conversation, ConversationDatabase
from chat_session_toolkit.conversation_database.data_models.message import Message, MessageDatabase


class ConversationStore:
    def __init__(
        self,
        conversation_db: ConversationDatabase | None = None,
        message_db: MessageDatabase | None = None,
    ) -> None:
        self.conversation_db = conversation_db
        self.message_db = message_db

    def is_initialized(self) -> bool:
        return self.conversation_db is not None and self.message_db is not None

    async def save_message(self, message: Message) -> None:
        if self.message_db is None:
            return
        await self.message_db.save_message(message)

    async def save_conversation(self, conversation: Conversation) -> None:
        if self.conversation_db is None:
            return
        await self.conversation_db.save_conversation(conversation)

    async def get_conversation_by_id(self, conversation_id: str) -> Conversation | None:
        if self.conversation_db is None:
            return None
        return await self.conversation_db.get_conversation_by_id(conversation_id)

    async def get_conversations_for_user(self, user_id: str) -> list[Conversation]:
        if self.conversation_db is None:
            return []
        return await self.conversation_db.get_conversations_by_user_id(user_id)

    async def get_messages_for_conversation(self, conversation_id: str) -> list[Message]:
        if self.message_db is None:
            return []
        return await self.message_db.get_messages_by_conversation_id(conversation_id)

    async def get_messages_for_user(self, user_id: str) -> list[Message]:
        if self.message_db is None:
            return []
        return await self.message_db.get_messages_by_user_id(user_id)

    async def get_messages_with_feedback(self) -> list[Message]:
        if self.message_db is None:
            return []
        return await self.message_db.get_messages_with_feedback()

    async def delete_messages(self, messages: list[Message]) -> bool:
        if self.message_db is None or not messages:
            return False
        return await self.message_db.delete_messages(messages)

    async def delete_conversation(self, conversation: Conversation) -> bool:
        if self.conversation_db is None:
            return False
        deleted = await self.conversation_db.delete_conversation(conversation)
        logger.debug(f"Deleted conversation {conversation.id} for user {conversation.user_id}: {deleted}")
        return deleted
