"""
Citation extraction and renumbering.

The model cites documents by title in brackets, e.g. "[Policy.pdf]". After an
answer completes, the titles are read back out, matched to the retrieved
documents, and rewritten into numbered superscripts. Bracket tokens that do
not match a known title are left as they are: model output is untrusted and a
malformed citation must not fail the turn.
"""

import re
from collections.abc import Sequence

from chat_session_toolkit.conversation_database.data_models.source import Source, normalize_title

CITATION_PATTERN = re.compile(r"\[(.*?)\]")


def extract_cited_titles(text: str) -> list[str]:
    """All bracketed titles in order of appearance, duplicates included."""
    return CITATION_PATTERN.findall(text)


def filter_sources_by_titles(all_sources: Sequence[Source], cited_titles: Sequence[str]) -> list[Source]:
    """The cited sources, one per title, ordered by first citation rather than by 'all_sources'."""
    filtered: list[Source] = []
    seen: set[str] = set()
    for title in cited_titles:
        key = normalize_title(title)
        if key in seen:
            continue
        source = next((s for s in all_sources if normalize_title(s.title) == key), None)
        if source is not None:
            filtered.append(source)
            seen.add(key)
    return filtered


def renumber_citations(text: str, cited_titles: Sequence[str]) -> str:
    """Replace '[Title]' with '<sup>[n]</sup>', numbering titles from 1 by first appearance."""
    numbers: dict[str, int] = {}
    for title in cited_titles:
        numbers.setdefault(normalize_title(title), len(numbers) + 1)

    def replace(match: re.Match[str]) -> str:
        number = numbers.get(normalize_title(match.group(1)))
        return f"<sup>[{number}]</sup>" if number is not None else match.group(0)

    return CITATION_PATTERN.sub(replace, text)


def resolve_citations(content: str, docs: Sequence[Source]) -> tuple[str, list[Source]]:
    """
    Rewrite the citations of a finished answer and return it with the cited sources.

    Only titles that resolve to one of 'docs' are numbered, so superscript 'n'
    always points at the n-th returned source. Citations of unknown titles stay
    in their bracket form.
    """
    cited = extract_cited_titles(content)
    if not docs or not cited:
        return content, []

    sources = filter_sources_by_titles(docs, cited)
    return renumber_citations(content, [s.title for s in sources]), sources
