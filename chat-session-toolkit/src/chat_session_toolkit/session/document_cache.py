"""
Bounded cache of retrieved document snippets.

Every retrieval batch is merged into the cache so documents found for earlier
questions stay in context for follow-ups. The cache holds at most
'max_documents' entries and evicts the oldest first. 'consolidate_documents'
turns the cache into the document set shown to the model: one entry per
title, chunks of the same document joined together.
"""

import math
from collections.abc import Iterable

from chat_session_toolkit.conversation_database.data_models.source import Source, normalize_title

CHUNK_SEPARATOR = "\n\n…\n\n"
OVERLAP_FACTOR = 0.8


def max_cached_documents(recent_messages_count: int, top_search_results_count: int) -> int:
    """
    Capacity of the cache.

    'recent_messages_count / 2' is the number of user/assistant exchanges kept
    in context, each bringing up to 'top_search_results_count' documents; the
    0.8 factor accounts for documents being retrieved again on later turns.
    """
    exchanges = recent_messages_count / 2
    return math.floor(exchanges * top_search_results_count * OVERLAP_FACTOR)


class DocumentCache:
    def __init__(self, max_documents: int) -> None:
        self.max_documents = max(0, max_documents)
        self._documents: list[Source] = []

    def __len__(self) -> int:
        return len(self._documents)

    def insert(self, batch: Iterable[Source]) -> None:
        for document in batch:
            # exact match on purpose: two different chunks of one document are both kept
            if any(d.title == document.title and d.chunk == document.chunk for d in self._documents):
                continue
            self._documents.append(document)

        overflow = len(self._documents) - self.max_documents
        if overflow > 0:
            del self._documents[:overflow]

    def snapshot(self) -> list[Source]:
        return list(self._documents)

    def clear(self) -> None:
        self._documents.clear()


def consolidate_documents(documents: Iterable[Source]) -> list[Source]:
    """Merge documents sharing a title into one entry, keeping first-seen order. Inputs are not modified."""
    consolidated: dict[str, Source] = {}
    for document in documents:
        key = normalize_title(document.title)
        if key in consolidated:
            consolidated[key].append_to_chunk(f"{CHUNK_SEPARATOR}{document.chunk}")
        else:
            consolidated[key] = document.model_copy()
    return list(consolidated.values())
