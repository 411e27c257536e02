"""
Session configuration.

Everything locale-dependent (the cancel and error notices, the "I don't know"
answers that are pruned from history) is plain data here, so a session for
another language is just another 'SessionSettings' instance.
"""

from pydantic import BaseModel, field_validator

from chat_session_toolkit.session.document_cache import max_cached_documents
from chat_session_toolkit.utils.prompt import get_system_prompt

DEFAULT_IDK_ANSWERS = ("I don't know.", "Je ne sais pas.")


class SessionSettings(BaseModel):
    """
    Attributes:
        recent_messages_count: Size of the history window sent to the model.
        top_search_results_count: Documents requested from search per question.
        assistant_name: Name the assistant introduces itself with.
        assistant_domain: What the assistant helps with, used in the system preamble.
        cancel_message: Content of an assistant message whose answer was cancelled.
        error_message: Content of an assistant message whose answer failed.
        idk_answers: Exact answers treated as a failed exchange and dropped from history.
    """

    recent_messages_count: int = 6
    top_search_results_count: int = 5
    assistant_name: str = "Chat Assistant"
    assistant_domain: str = "questions about the documents in this knowledge base"
    cancel_message: str = "The response was cancelled."
    error_message: str = "Sorry, something went wrong while generating the response. Please try again."
    idk_answers: tuple[str, ...] = DEFAULT_IDK_ANSWERS

    @field_validator("recent_messages_count", "top_search_results_count")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        return max(1, value)

    @property
    def max_cached_documents(self) -> int:
        return max_cached_documents(self.recent_messages_count, self.top_search_results_count)

    def system_prompt(self) -> str:
        return get_system_prompt(self.assistant_name, self.assistant_domain)
