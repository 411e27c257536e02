"""
Prompt construction for the hidden RAG turn.

'build_rag_prompt' produces the user turn the model actually answers: the
system preamble, the citation rules, the retrieved documents inside a
'<context>' tag and the literal question inside a '<question>' tag. The visible
user message is never replaced by this text; it only exists in the
model-facing history.
"""

import datetime
from collections.abc import Sequence

from chat_session_toolkit.conversation_database.data_models.source import Source

DOCUMENT_SEPARATOR = "\n\n---\n\n"

CITATION_INSTRUCTIONS = (
    "You are helping people answer questions based on the context below, denoted by the <context> tag. "
    "Past questions and answers in this conversation may also provide required context.\n"
    "Always cite sources at the end of each relevant sentence using this exact format: [Exact Document Title.ext]. "
    "If multiple sources support a sentence, list each in its own bracket token separated by a comma and space "
    "(eg, [Doc A.pdf], [Doc B.docx]). Even if you mention a document title in a sentence, still append a bracketed "
    "citation at the end of that sentence (eg, These steps are summarized in **Document.docx** [Document.docx].).\n"
    "IMPORTANT: Put exactly one document title per bracket. Do not combine multiple titles in a single bracket. "
    "Do not prefix with 'Source:' or 'Sources:'. If multiple sources apply to a sentence, chain separate brackets "
    "back-to-back like [Title A.docx] [Title-B.pdf]. Never use numeric citations like [1]. "
    "Always use the EXACT source document title.\n"
    "Answer in 2-3 sentences unless otherwise instructed.\n"
    'VERY IMPORTANT: If you don\'t know the answer, just say "I don\'t know.", don\'t try to make up an answer.'
)

LANGUAGE_INSTRUCTION = (
    "CRITICAL: Detect the language of the user's question below. If there is no explicit direction on which "
    "language to use, you should respond in THE EXACT SAME LANGUAGE. If the question tells you which language "
    "to respond in, use that language."
)


def get_system_prompt(assistant_name: str, assistant_domain: str, year: int | None = None) -> str:
    year = year or datetime.date.today().year
    return (
        f"You are a helpful AI assistant for {assistant_domain}. Your name is {assistant_name}. "
        f"It is {year} right now. Respond to users in their preferred language."
    )


def format_documents(docs: Sequence[Source]) -> str:
    return DOCUMENT_SEPARATOR.join(
        f"DOCUMENT {i}\nTITLE: {doc.title}\nCONTENT: {doc.chunk}" for i, doc in enumerate(docs, start=1)
    )


def build_rag_prompt(user_query: str, docs: Sequence[Source], system_prompt: str) -> str:
    """
    Build the model-facing prompt for 'user_query'.

    With documents, the preamble is followed by the citation contract and the
    '<context>' block. Without documents (search unavailable or empty) only the
    preamble is used and the model answers directly.
    """
    lines = [system_prompt]
    if docs:
        lines += [CITATION_INSTRUCTIONS, "", "<context>", format_documents(docs), "</context>"]

    lines += ["", LANGUAGE_INSTRUCTION, "<question>", user_query, "</question>"]
    return "\n".join(lines) + "\n"
