"""
Core LLM abstractions and message data models.

All concrete LLM backends ('OpenAILLM' and test doubles) implement the 'LLM'
ABC. The shared message format ('LLMMessage') is backend-agnostic so the
session pipeline never needs to know which provider produces the stream.

'generate_stream' yields partial content fragments; the session appends each
fragment to the assistant message as it arrives.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator
from enum import StrEnum

from pydantic import BaseModel


class Roles(StrEnum):
    """Conversation roles as used by the OpenAI chat completions API."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class LLMMessage(BaseModel):
    """A single role-tagged turn sent to, or a fragment received from, an LLM."""

    content: str = ""
    role: Roles = Roles.ASSISTANT


class GenerationSettings(BaseModel):
    """
    Sampling parameters forwarded to the provider.

    'None' means "leave it to the provider default" and the parameter is not
    sent at all.
    """

    temperature: float = 1.0
    top_p: float = 1.0
    max_tokens: int | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None

    def as_request_params(self) -> dict[str, float | int]:
        return {key: value for key, value in self.model_dump().items() if value is not None}


class LLM(ABC):
    """
    Abstract base class for language model backends.

    Concrete implementations adapt a specific API client to a common interface.
    Generation settings live on the instance so one session configuration is
    applied to every exchange.
    """

    def __init__(self, settings: GenerationSettings | None = None) -> None:
        self.settings = settings or GenerationSettings()

    @abstractmethod
    async def generate(self, conversation: list[LLMMessage]) -> LLMMessage:
        """Return a single complete response for the given conversation."""
        pass

    @abstractmethod
    def generate_stream(self, conversation: list[LLMMessage]) -> AsyncGenerator[LLMMessage, None]:
        """Yield response fragments as they arrive from the model."""
        pass
