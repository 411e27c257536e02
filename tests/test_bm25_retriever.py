import pytest

from chat_session_toolkit.conversation_database.data_models.source import Source
from chat_session_toolkit.retriever.bm25_retriever import BM25Retriever


@pytest.fixture
def corpus() -> list[Source]:
    return [
        Source(title="leave.md", chunk="Employees are entitled to 25 days of paid annual leave."),
        Source(title="remote.md", chunk="Remote work is possible two days per week after onboarding."),
        Source(title="expenses.md", chunk="Travel expenses are reimbursed within 30 days of submission."),
        Source(title="security.md", chunk="Laptops must use full disk encryption and a screen lock."),
        Source(title="canteen.md", chunk="The canteen serves lunch between noon and two."),
    ]


@pytest.mark.asyncio
async def test_most_relevant_snippet_first(corpus):
    retriever = BM25Retriever(corpus, top_k=3)
    results = await retriever.retrieve("how many days of annual leave")
    assert results[0].title == "leave.md"
    assert len(results) <= 3


@pytest.mark.asyncio
async def test_title_is_indexed(corpus):
    retriever = BM25Retriever(corpus, top_k=1)
    [result] = await retriever.retrieve("canteen")
    assert result.title == "canteen.md"


@pytest.mark.asyncio
async def test_unrelated_query_returns_nothing(corpus):
    retriever = BM25Retriever(corpus, top_k=5)
    assert await retriever.retrieve("quantum chromodynamics") == []


@pytest.mark.asyncio
async def test_results_are_copies(corpus):
    retriever = BM25Retriever(corpus, top_k=1)
    [result] = await retriever.retrieve("encryption")
    result.append_to_chunk(" changed")
    assert corpus[3].chunk.endswith("screen lock.")


@pytest.mark.asyncio
async def test_empty_corpus():
    assert await BM25Retriever([], top_k=5).retrieve("anything") == []


def test_top_k_is_at_least_one(corpus):
    assert BM25Retriever(corpus, top_k=0).top_k == 1
