"""
BM25 lexical retriever backed by 'rank-bm25'.

An offline stand-in for the semantic search service: the corpus of 'Source'
snippets is tokenised and indexed at construction time and retrieval is a pure
in-memory operation. Useful for local runs and demos without a search index.
"""

import re

from rank_bm25 import BM25Okapi  # type: ignore[import-untyped]

from chat_session_toolkit.conversation_database.data_models.source import Source
from chat_session_toolkit.retriever.base import Retriever


class BM25Retriever(Retriever):
    """
    In-memory BM25 retriever over a fixed corpus of 'Source' snippets.

    Title and chunk are indexed together so a question naming a document finds
    it. Snippets scoring zero share no term with the query and are not returned.

    Attributes:
        corpus: The indexed snippets.
    """

    def __init__(self, corpus: list[Source], top_k: int) -> None:
        super().__init__(top_k)
        self.corpus = corpus
        tokenized = [self._tokenize(f"{source.title} {source.chunk}") for source in corpus]
        self._bm25 = BM25Okapi(tokenized) if corpus else None

    @staticmethod
    def _tokenize(text: str) -> list[str]:
        """Lowercase word-boundary tokenisation."""
        return re.findall(r"\b\w+\b", text.lower())

    async def retrieve(self, query: str) -> list[Source]:
        if self._bm25 is None:
            return []
        scores: list[float] = self._bm25.get_scores(self._tokenize(query)).tolist()
        top_indices = sorted(range(len(scores)), key=lambda i: scores[i], reverse=True)[: self.top_k]
        return [self.corpus[i].model_copy() for i in top_indices if scores[i] > 0]
