"""
Chat session orchestration.

'ConversationSession' owns one user's conversation state (the message log
and the document cache) and runs each exchange through the pipeline:

    append user turn -> retrieve documents -> build the RAG prompt ->
    stream the model answer -> resolve citations -> persist

'submit_message_stream' is an async generator that yields a snapshot of the
assistant message after every change: the empty placeholder first (the
"loading" signal), then once per streamed fragment, then the finalised
message with its cited sources. 'submit_message' drains the stream and
returns only the final message.

Only one exchange runs at a time. 'cancel' stops the exchange in flight at its
next suspension point (retrieval or the next fragment) and the answer is
replaced by the configured cancel notice. Streaming, retrieval and storage
failures never propagate: they are logged and the session stays usable.
"""

import asyncio
from collections.abc import AsyncGenerator, Awaitable
from contextlib import aclosing
from enum import StrEnum
from typing import TypeVar

from loguru import logger

from chat_session_toolkit.conversation_database.data_models.conversation import ConversationThread
from chat_session_toolkit.conversation_database.data_models.message import Feedback, Message, MessageStatus
from chat_session_toolkit.conversation_database.data_models.source import Source
from chat_session_toolkit.conversation_database.store import ConversationStore
from chat_session_toolkit.exceptions import ExchangeCancelled, ExchangeInProgressError
from chat_session_toolkit.llms.base import LLM, LLMMessage, Roles
from chat_session_toolkit.retriever.base import Retriever
from chat_session_toolkit.session.document_cache import DocumentCache, consolidate_documents
from chat_session_toolkit.session.history import sanitize_history
from chat_session_toolkit.session.message_store import MessageStore
from chat_session_toolkit.session.settings import SessionSettings
from chat_session_toolkit.utils.citations import resolve_citations
from chat_session_toolkit.utils.database import generate_uid
from chat_session_toolkit.utils.prompt import build_rag_prompt

T = TypeVar("T")


class ExchangeState(StrEnum):
    IDLE = "idle"
    USER_TURN_APPENDED = "user_turn_appended"
    RETRIEVING = "retrieving"
    PROMPT_BUILT = "prompt_built"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


async def _await_cancellable(awaitable: Awaitable[T], cancel_event: asyncio.Event) -> T:
    """Await 'awaitable' unless 'cancel_event' fires first, in which case it is cancelled."""
    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
        if not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    if cancel_event.is_set():
        if not task.cancelled():
            task.exception()
        raise ExchangeCancelled()
    return task.result()


class ConversationSession:
    """
    One user's chat session.

    The session is created by the request layer on the first message and
    disposed with 'aclose' when the connection ends. Nothing is shared between
    sessions.

    Attributes:
        llm: Streaming model used to answer.
        retriever: Search collaborator; 'None' means answers are generated without documents.
        store: Persistence collaborator; an unconfigured store makes persistence a no-op.
        settings: Window sizes, assistant persona and locale-dependent notices.
        messages: The ordered message log of the active conversation.
        documents: Documents retrieved during the active conversation.
    """

    def __init__(
        self,
        llm: LLM,
        retriever: Retriever | None = None,
        store: ConversationStore | None = None,
        settings: SessionSettings | None = None,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> None:
        self.llm = llm
        self.retriever = retriever
        self.store = store or ConversationStore()
        self.settings = settings or SessionSettings()
        self.session_id = session_id or generate_uid()
        self.messages = MessageStore(user_id)
        self.documents = DocumentCache(self.settings.max_cached_documents)
        self.state = ExchangeState.IDLE
        self._lock = asyncio.Lock()
        self._cancel_event: asyncio.Event | None = None
        self._closed = False

    @property
    def user_id(self) -> str | None:
        return self.messages.user_id

    @property
    def conversation_id(self) -> str | None:
        conversation = self.messages.conversation
        return conversation.id if conversation is not None else None

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    @property
    def is_loading(self) -> bool:
        last = self.messages.last
        return last is not None and last.is_assistant and not last.content.strip()

    def _transition(self, state: ExchangeState) -> None:
        logger.debug(f"Session {self.session_id}: {self.state} -> {state}")
        self.state = state

    # ═══════════════════════════════ EXCHANGES ═══════════════════════════════

    def cancel(self) -> bool:
        """Cancel the exchange in flight. Returns False when there is nothing to cancel."""
        if self._cancel_event is None or self._cancel_event.is_set():
            return False
        logger.info(f"Session {self.session_id}: cancellation requested")
        self._cancel_event.set()
        return True

    async def submit_message(self, text: str) -> Message | None:
        final = None
        async for snapshot in self.submit_message_stream(text):
            final = snapshot
        return final

    async def submit_message_stream(self, text: str) -> AsyncGenerator[Message, None]:
        if not text or not text.strip():
            return
        if self._closed:
            raise RuntimeError(f"Session {self.session_id} is closed")
        if self._lock.locked():
            raise ExchangeInProgressError(self.session_id)

        async with self._lock:
            cancel_event = asyncio.Event()
            self._cancel_event = cancel_event
            exchange = self._run_exchange(text, cancel_event)
            try:
                async for snapshot in exchange:
                    yield snapshot
            finally:
                await exchange.aclose()
                self._cancel_event = None
                self._transition(ExchangeState.IDLE)

    async def _run_exchange(self, text: str, cancel_event: asyncio.Event) -> AsyncGenerator[Message, None]:
        user_message = self.messages.append(Message(role=Roles.USER, content=text))
        self._transition(ExchangeState.USER_TURN_APPENDED)
        await self._persist(user_message)

        assistant_message = self.messages.append(Message(role=Roles.ASSISTANT, content=""))

        docs: list[Source] = []
        try:
            yield assistant_message.model_copy(deep=True)

            self._transition(ExchangeState.RETRIEVING)
            docs = await self._retrieve_documents(text, cancel_event)

            system_prompt = self.settings.system_prompt()
            rag_prompt = Message(role=Roles.USER, content=build_rag_prompt(text, docs, system_prompt))
            history = sanitize_history(
                [*self.messages.recent(self.settings.recent_messages_count), rag_prompt],
                system_prompt,
                self.settings.idk_answers,
            )
            self._transition(ExchangeState.PROMPT_BUILT)

            self._transition(ExchangeState.STREAMING)
            async with aclosing(self._stream(history, cancel_event)) as fragments:
                async for fragment in fragments:
                    assistant_message.content += fragment
                    yield assistant_message.model_copy(deep=True)
        except ExchangeCancelled:
            self._mark_cancelled(assistant_message)
        except (GeneratorExit, asyncio.CancelledError):
            self._mark_cancelled(assistant_message)
            raise
        except Exception:
            logger.exception(f"Session {self.session_id}: streaming the answer failed")
            assistant_message.content = self.settings.error_message
            assistant_message.status = MessageStatus.ERROR
            self._transition(ExchangeState.FAILED)
        else:
            assistant_message.content, sources = resolve_citations(assistant_message.content, docs)
            if sources:
                assistant_message.sources = sources
            self._transition(ExchangeState.COMPLETED)
            logger.info(
                f"Session {self.session_id}: answer completed with {len(docs)} documents, {len(sources)} cited"
            )

        await self._persist(assistant_message)
        yield assistant_message.model_copy(deep=True)

    def _mark_cancelled(self, message: Message) -> None:
        message.content = self.settings.cancel_message
        message.status = MessageStatus.CANCELLED
        self._transition(ExchangeState.CANCELLED)

    async def _retrieve_documents(self, query: str, cancel_event: asyncio.Event) -> list[Source]:
        if self.retriever is None:
            return []
        try:
            batch = await _await_cancellable(self.retriever.retrieve(query), cancel_event)
        except ExchangeCancelled:
            raise
        except Exception as exc:
            logger.warning(f"Session {self.session_id}: retrieval failed, answering without documents: {exc!r}")
            return []

        if not batch:
            logger.debug(f"Session {self.session_id}: no documents found for {query[:60]!r}")
            return []

        self.documents.insert(batch)
        return consolidate_documents(self.documents.snapshot())

    async def _stream(self, history: list[LLMMessage], cancel_event: asyncio.Event) -> AsyncGenerator[str, None]:
        stream = self.llm.generate_stream(history)
        try:
            while True:
                try:
                    chunk = await _await_cancellable(anext(stream), cancel_event)
                except StopAsyncIteration:
                    break
                if chunk.content:
                    yield chunk.content
        finally:
            await stream.aclose()

    # ═══════════════════════════════ PERSISTENCE ═════════════════════════════

    async def _persist(self, message: Message) -> None:
        conversation = self.messages.conversation
        if not self.user_id or conversation is None:
            logger.warning(f"Session {self.session_id}: no user id, message {message.id} is not saved")
            return
        try:
            await self.store.save_conversation(conversation)
            await self.store.save_message(message)
        except Exception:
            logger.exception(f"Session {self.session_id}: saving message {message.id} failed")

    async def submit_feedback(self, message_id: str, positive: bool, note: str | None = None) -> Message | None:
        message = self.messages.get(message_id)
        if message is None or not message.is_assistant:
            logger.warning(f"Session {self.session_id}: no assistant message {message_id} to rate")
            return None

        message.feedback = Feedback.POSITIVE if positive else Feedback.NEGATIVE
        message.feedback_message = note
        await self._persist(message)
        return message.model_copy(deep=True)

    # ═══════════════════════════════ CONVERSATIONS ═══════════════════════════

    def _ensure_idle(self) -> None:
        if self.is_busy:
            raise ExchangeInProgressError(self.session_id)

    def _can_query_store(self, operation: str) -> bool:
        if not self.user_id:
            logger.warning(f"ConversationSession.{operation}: user id is missing")
            return False
        if not self.store.is_initialized():
            logger.warning(f"ConversationSession.{operation}: storage is not configured")
            return False
        return True

    def reset(self) -> None:
        """Start over: forget the messages, the cached documents and the active conversation."""
        self._ensure_idle()
        self.messages.clear()
        self.documents.clear()
        self._transition(ExchangeState.IDLE)

    async def list_conversations(self) -> list[ConversationThread]:
        """The user's conversations, most recently updated first, each with its messages oldest first."""
        if not self._can_query_store("list_conversations"):
            return []
        user_id = self.user_id or ""
        conversations = await self.store.get_conversations_for_user(user_id)
        messages = await self.store.get_messages_for_user(user_id)

        grouped: dict[str, list[Message]] = {}
        for message in messages:
            if message.conversation_id:
                grouped.setdefault(message.conversation_id, []).append(message)

        return [
            ConversationThread.from_conversation(conversation, grouped.get(conversation.id, []))
            for conversation in sorted(conversations, key=lambda c: c.update_timestamp, reverse=True)
        ]

    async def load_conversation(self, conversation_id: str) -> ConversationThread | None:
        """Make a persisted conversation of this user the active one."""
        self._ensure_idle()
        if not self._can_query_store("load_conversation"):
            return None

        conversation = await self.store.get_conversation_by_id(conversation_id)
        if conversation is None or conversation.user_id != self.user_id:
            logger.warning(f"ConversationSession.load_conversation: {conversation_id} not found or unauthorized")
            return None

        messages = await self.store.get_messages_for_conversation(conversation_id)
        self.messages.hydrate(conversation, messages)
        self.documents.clear()
        logger.info(f"Session {self.session_id}: loaded conversation {conversation_id} ({len(messages)} messages)")
        return ConversationThread.from_conversation(conversation, messages)

    async def delete_conversation(self, conversation_id: str) -> bool:
        if not self._can_query_store("delete_conversation"):
            return False

        conversation = await self.store.get_conversation_by_id(conversation_id)
        if conversation is None or conversation.user_id != self.user_id:
            logger.warning(f"ConversationSession.delete_conversation: {conversation_id} not found or unauthorized")
            return False

        active = self.messages.conversation
        if active is not None and active.id == conversation_id:
            self.reset()

        messages = await self.store.get_messages_for_conversation(conversation_id)
        await self.store.delete_messages(messages)
        await self.store.delete_conversation(conversation)
        return True

    async def aclose(self) -> None:
        """Dispose of the session. An exchange still running is cancelled."""
        self._closed = True
        self.cancel()
