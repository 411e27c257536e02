"""
Turn the session log into the conversation handed to the model.

Two kinds of turn are pruned. The visible question and the empty assistant
placeholder of the exchange in flight are dropped because the RAG prompt that
follows them already carries the question. "I don't know" answers are dropped
together with the question that produced them, so a failed exchange does not
steer later answers.
"""

from collections.abc import Collection, Sequence

from chat_session_toolkit.conversation_database.data_models.message import Message
from chat_session_toolkit.llms.base import LLMMessage, Roles


def _is_idk(content: str, idk_answers: Collection[str]) -> bool:
    return bool(content.strip()) and content.strip() in idk_answers


def _drop_pending_question(messages: list[Message]) -> list[Message]:
    # [..., user question, assistant placeholder, user RAG prompt]
    if len(messages) < 3:
        return messages
    question, placeholder, rag_prompt = messages[-3:]
    pending = not question.is_assistant and placeholder.is_assistant and not placeholder.content.strip()
    if pending and not rag_prompt.is_assistant:
        return [*messages[:-3], rag_prompt]
    return messages


def sanitize_history(
    messages: Sequence[Message],
    system_prompt: str,
    idk_answers: Collection[str],
) -> list[LLMMessage]:
    turns = _drop_pending_question(list(messages))

    cleaned: list[Message] = []
    for message in turns:
        if message.is_assistant and _is_idk(message.content, idk_answers):
            if cleaned and not cleaned[-1].is_assistant:
                cleaned.pop()
            continue
        cleaned.append(message)

    return [
        LLMMessage(role=Roles.SYSTEM, content=system_prompt),
        *(
            LLMMessage(role=Roles.ASSISTANT if m.is_assistant else Roles.USER, content=m.content)
            for m in cleaned
        ),
    ]
