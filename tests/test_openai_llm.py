from types import SimpleNamespace

import pytest

from chat_session_toolkit.llms.base import GenerationSettings, LLMMessage, Roles
from chat_session_toolkit.llms.openai import OpenAILLM


def _chunk(content: str | None):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class FakeStream:
    def __init__(self, chunks):
        self._chunks = iter(chunks)

    def __aiter__(self):
        return self

    async def __anext__(self):
        try:
            return next(self._chunks)
        except StopIteration:
            raise StopAsyncIteration


class FakeCompletions:
    def __init__(self, response=None, chunks=None):
        self.response = response
        self.chunks = chunks or []
        self.requests: list[dict] = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if kwargs.get("stream"):
            return FakeStream(self.chunks)
        return self.response


def _client(completions: FakeCompletions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


CONVERSATION = [
    LLMMessage(role=Roles.SYSTEM, content="system"),
    LLMMessage(role=Roles.USER, content="question"),
]


@pytest.mark.asyncio
async def test_stream_yields_non_empty_fragments():
    chunks = [_chunk("Hel"), _chunk(None), SimpleNamespace(choices=[]), _chunk(""), _chunk("lo")]
    completions = FakeCompletions(chunks=chunks)
    llm = OpenAILLM(model_name="test-model", client=_client(completions))

    fragments = [m.content async for m in llm.generate_stream(CONVERSATION)]

    assert fragments == ["Hel", "lo"]
    [request] = completions.requests
    assert request["model"] == "test-model"
    assert request["stream"] is True
    assert request["messages"] == [
        {"role": "system", "content": "system"},
        {"role": "user", "content": "question"},
    ]


@pytest.mark.asyncio
async def test_unset_generation_settings_are_not_sent():
    completions = FakeCompletions(chunks=[])
    settings = GenerationSettings(temperature=0.2, max_tokens=256)
    llm = OpenAILLM(settings=settings, client=_client(completions))

    [_ async for _ in llm.generate_stream(CONVERSATION)]

    request = completions.requests[0]
    assert request["temperature"] == 0.2
    assert request["top_p"] == 1.0
    assert request["max_tokens"] == 256
    assert "frequency_penalty" not in request
    assert "presence_penalty" not in request


@pytest.mark.asyncio
async def test_generate_returns_full_message():
    response = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="Full answer"))])
    llm = OpenAILLM(client=_client(FakeCompletions(response=response)))

    message = await llm.generate(CONVERSATION)

    assert message.role == Roles.ASSISTANT
    assert message.content == "Full answer"


@pytest.mark.asyncio
async def test_generate_rejects_empty_content():
    response = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=None))])
    llm = OpenAILLM(client=_client(FakeCompletions(response=response)))

    with pytest.raises(ValueError):
        await llm.generate(CONVERSATION)
