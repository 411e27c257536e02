"""
Source data model.

Sources are the retrieved document snippets a session shows to the model and,
once cited, attaches to the assistant message. They are stored embedded in the
message record so a persisted conversation carries its citations with it.
"""

from pydantic import BaseModel


def normalize_title(title: str | None) -> str:
    """Key used wherever titles are compared: trimmed and case-insensitive."""
    return (title or "").strip().casefold()


class Source(BaseModel):
    """
    A retrieved document chunk.

    Attributes:
        title: Document title; the key for caching, consolidation and citation matching.
        chunk: The text content. Consolidation appends further chunks of the same document.
        culture: Language/culture tag reported by the search index.
        url: Location of the full document.
        size: Document size in bytes.
    """

    title: str
    chunk: str
    culture: str = "unknown"
    url: str = ""
    size: int = 0

    def append_to_chunk(self, additional_chunk: str) -> None:
        self.chunk += additional_chunk
