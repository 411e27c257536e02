"""
Retrieval-augmented chat sessions.

A 'ConversationSession' keeps one user's conversation, blends retrieved
documents into the prompt, streams the model answer and resolves the
bracketed document citations in it back to numbered sources:

    from chat_session_toolkit import ConversationSession, SessionSettings

    session = ConversationSession(llm=llm, retriever=retriever, settings=SessionSettings(), user_id="user-1")
    async for snapshot in session.submit_message_stream("How do I renew my passport?"):
        print(snapshot.content)
"""

from chat_session_toolkit.conversation_database.data_models.conversation import Conversation, ConversationThread
from chat_session_toolkit.conversation_database.data_models.message import Feedback, Message, MessageStatus
from chat_session_toolkit.conversation_database.data_models.source import Source
from chat_session_toolkit.conversation_database.store import ConversationStore
from chat_session_toolkit.exceptions import ChatSessionError, ExchangeInProgressError
from chat_session_toolkit.llms.base import LLM, GenerationSettings, LLMMessage, Roles
from chat_session_toolkit.retriever.base import Retriever
from chat_session_toolkit.session.conversation_session import ConversationSession, ExchangeState
from chat_session_toolkit.session.registry import SessionRegistry
from chat_session_toolkit.session.settings import SessionSettings

__all__ = [
    "LLM",
    "ChatSessionError",
    "Conversation",
    "ConversationSession",
    "ConversationStore",
    "ConversationThread",
    "ExchangeInProgressError",
    "ExchangeState",
    "Feedback",
    "GenerationSettings",
    "LLMMessage",
    "Message",
    "MessageStatus",
    "Retriever",
    "Roles",
    "SessionRegistry",
    "SessionSettings",
    "Source",
]
