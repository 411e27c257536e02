"""
OpenAI chat completions backend.

Works against api.openai.com as well as any OpenAI-compatible server (vLLM,
LM Studio, a gateway) by passing 'base_url'. Only non-None generation settings
are forwarded so provider defaults apply for everything left unset.
"""

from collections.abc import AsyncGenerator

from loguru import logger
from openai import AsyncOpenAI

from chat_session_toolkit.llms.base import LLM, GenerationSettings, LLMMessage, Roles


class OpenAILLM(LLM):
    """
    'LLM' implementation backed by 'openai.AsyncOpenAI'.

    Attributes:
        model_name: Model identifier sent with every request.
        client: The async OpenAI client. Injectable so tests and callers that
            already own a client (custom timeouts, proxies) can reuse it.
    """

    def __init__(
        self,
        model_name: str = "gpt-4o-mini",
        settings: GenerationSettings | None = None,
        openai_api_key: str | None = None,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        super().__init__(settings)
        self.model_name = model_name
        self.client = client or AsyncOpenAI(api_key=openai_api_key, base_url=base_url)

    def _request_messages(self, conversation: list[LLMMessage]) -> list[dict[str, str]]:
        return [{"role": str(message.role), "content": message.content} for message in conversation]

    async def generate(self, conversation: list[LLMMessage]) -> LLMMessage:
        response = await self.client.chat.completions.create(
            model=self.model_name,
            messages=self._request_messages(conversation),  # type: ignore[arg-type]
            **self.settings.as_request_params(),  # type: ignore[arg-type]
        )
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ValueError("Invalid or empty text content")
        return LLMMessage(role=Roles.ASSISTANT, content=content)

    async def generate_stream(self, conversation: list[LLMMessage]) -> AsyncGenerator[LLMMessage, None]:
        logger.debug(f"Streaming completion from {self.model_name!r} with {len(conversation)} turns")
        stream = await self.client.chat.completions.create(
            model=self.model_name,
            messages=self._request_messages(conversation),  # type: ignore[arg-type]
            stream=True,
            **self.settings.as_request_params(),  # type: ignore[arg-type]
        )
        async for chunk in stream:
            if not chunk.choices:
                continue
            content = chunk.choices[0].delta.content
            if content:
                yield LLMMessage(role=Roles.ASSISTANT, content=content)
