"""
Retriever abstraction.

A retriever accepts a natural-language query and returns up to 'top_k' ranked
document snippets as 'Source' objects. Retrieval is best-effort for the chat
session: an exception or an empty list both mean "answer without documents".

Concrete implementations: 'HTTPSearchRetriever', 'BM25Retriever'.
"""

from abc import ABC, abstractmethod

from chat_session_toolkit.conversation_database.data_models.source import Source


class Retriever(ABC):
    """
    Abstract base class for document retrievers.

    Attributes:
        top_k: Maximum number of snippets to return per query.
    """

    def __init__(self, top_k: int):
        self.top_k = max(1, top_k)

    @abstractmethod
    async def retrieve(self, query: str) -> list[Source]:
        """Return up to 'top_k' snippets most relevant to 'query'."""
        pass

    async def aclose(self) -> None:
        """Release connections held by the retriever. Nothing to release by default."""
        return None
