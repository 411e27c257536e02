import asyncio
from collections.abc import AsyncGenerator

import pytest

from chat_session_toolkit.conversation_database.data_models.message import Message
from chat_session_toolkit.conversation_database.data_models.source import Source
from chat_session_toolkit.conversation_database.in_memory import (
    InMemoryConversationDatabase,
    InMemoryMessageDatabase,
)
from chat_session_toolkit.conversation_database.store import ConversationStore
from chat_session_toolkit.llms.base import LLM, LLMMessage, Roles
from chat_session_toolkit.retriever.base import Retriever
from chat_session_toolkit.session.settings import SessionSettings


class FakeLLM(LLM):
    """Streams a scripted answer, optionally raising after 'fail_after' fragments."""

    def __init__(self, fragments: list[str] | None = None, error: Exception | None = None, fail_after: int = 0):
        super().__init__()
        self.fragments = fragments if fragments is not None else ["Hello", " world"]
        self.error = error
        self.fail_after = fail_after
        self.calls: list[list[LLMMessage]] = []

    async def generate(self, conversation: list[LLMMessage]) -> LLMMessage:
        self.calls.append(conversation)
        return LLMMessage(role=Roles.ASSISTANT, content="".join(self.fragments))

    async def generate_stream(self, conversation: list[LLMMessage]) -> AsyncGenerator[LLMMessage, None]:
        self.calls.append(conversation)
        for i, fragment in enumerate(self.fragments):
            if self.error is not None and i == self.fail_after:
                raise self.error
            yield LLMMessage(role=Roles.ASSISTANT, content=fragment)
        if self.error is not None:
            raise self.error


class BlockingLLM(LLM):
    """Streams one fragment, then waits until released. 'closed' tells whether the stream was shut down."""

    def __init__(self, first_fragment: str = "partial"):
        super().__init__()
        self.first_fragment = first_fragment
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.closed = False

    async def generate(self, conversation: list[LLMMessage]) -> LLMMessage:
        raise NotImplementedError

    async def generate_stream(self, conversation: list[LLMMessage]) -> AsyncGenerator[LLMMessage, None]:
        try:
            yield LLMMessage(role=Roles.ASSISTANT, content=self.first_fragment)
            self.started.set()
            await self.release.wait()
            yield LLMMessage(role=Roles.ASSISTANT, content=" never shown")
        finally:
            self.closed = True


class FakeRetriever(Retriever):
    """Returns the scripted batches in order, repeating the last one."""

    def __init__(self, batches: list[list[Source]] | None = None, error: Exception | None = None, top_k: int = 5):
        super().__init__(top_k)
        self.batches = batches or [[]]
        self.error = error
        self.queries: list[str] = []
        self.closed = False

    async def retrieve(self, query: str) -> list[Source]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        batch = self.batches[min(len(self.queries) - 1, len(self.batches) - 1)]
        return [source.model_copy() for source in batch]

    async def aclose(self) -> None:
        self.closed = True


class BlockingRetriever(Retriever):
    def __init__(self) -> None:
        super().__init__(top_k=5)
        self.started = asyncio.Event()

    async def retrieve(self, query: str) -> list[Source]:
        self.started.set()
        await asyncio.Event().wait()
        return []


class FailingMessageDatabase(InMemoryMessageDatabase):
    async def save_message(self, message: Message) -> Message:
        raise RuntimeError("storage unavailable")


class ReversedMessageDatabase(InMemoryMessageDatabase):
    """Returns the messages of a conversation newest first, like an unordered query would."""

    async def get_messages_by_conversation_id(self, conversation_id: str) -> list[Message]:
        return list(reversed(await super().get_messages_by_conversation_id(conversation_id)))


@pytest.fixture
def policy_sources() -> list[Source]:
    return [
        Source(title="Policy.pdf", chunk="Employees get 25 days of paid leave.", url="https://docs/policy.pdf"),
        Source(title="Other.docx", chunk="Remote work is allowed two days a week.", url="https://docs/other.docx"),
    ]


@pytest.fixture
def store() -> ConversationStore:
    return ConversationStore(InMemoryConversationDatabase(), InMemoryMessageDatabase())


@pytest.fixture
def settings() -> SessionSettings:
    return SessionSettings(assistant_name="Test Assistant", assistant_domain="tests")
