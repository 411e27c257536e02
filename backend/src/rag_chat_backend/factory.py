"""
Assembly of the chat backend from 'BackendSettings'.

Each collaborator has its own builder so it can be created and inspected on
its own (e.g. 'build_retriever' to try a few queries without an LLM):

    build_llm               OpenAI or any OpenAI-compatible server
    build_retriever         HTTP semantic search, else BM25 over CORPUS_DIR, else none
    build_store             in-memory conversation store, or no persistence
    build_session_settings  session windows and locale notices
    create_app              FastAPI app exposing the chat routes

Usage:
    uvicorn --factory rag_chat_backend.factory:create_app
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from loguru import logger

from chat_session_toolkit.api.auth.header import HeaderAuthProvider
from chat_session_toolkit.api.routes import build_chat_router
from chat_session_toolkit.conversation_database.data_models.source import Source
from chat_session_toolkit.conversation_database.in_memory import (
    InMemoryConversationDatabase,
    InMemoryMessageDatabase,
)
from chat_session_toolkit.conversation_database.store import ConversationStore
from chat_session_toolkit.llms.base import LLM, GenerationSettings
from chat_session_toolkit.llms.openai import OpenAILLM
from chat_session_toolkit.retriever.base import Retriever
from chat_session_toolkit.retriever.bm25_retriever import BM25Retriever
from chat_session_toolkit.retriever.http_search import HTTPSearchRetriever
from chat_session_toolkit.session.conversation_session import ConversationSession
from chat_session_toolkit.session.registry import SessionRegistry
from chat_session_toolkit.session.settings import SessionSettings
from rag_chat_backend.settings import BackendSettings, configure_logging

CORPUS_EXTENSIONS = {".txt", ".md"}
CHUNK_TARGET_CHARS = 600


def build_llm(settings: BackendSettings) -> LLM:
    """Instantiate the streaming LLM for 'settings.llm_backend'.

    'openai' needs OPENAI_API_KEY (secret file or env var). 'local' talks to any
    OpenAI-compatible server at LLM_BASE_URL; LLM_API_KEY is optional there.
    """
    generation = GenerationSettings(
        temperature=settings.temperature,
        top_p=settings.top_p,
        max_tokens=settings.max_tokens,
        frequency_penalty=settings.frequency_penalty,
        presence_penalty=settings.presence_penalty,
    )
    match settings.llm_backend:
        case "openai":
            if not settings.llm_api_key:
                raise ValueError(
                    "OPENAI_API_KEY not found. Either:\n"
                    "  - Add it as a secret file at /secrets/OPENAI_API_KEY, or\n"
                    "  - Set the OPENAI_API_KEY environment variable."
                )
            name = settings.model or "gpt-4o-mini"
            logger.info(f"LLM backend: OpenAI ({name})")
            return OpenAILLM(model_name=name, settings=generation, openai_api_key=settings.llm_api_key)
        case "local":
            if not settings.llm_base_url:
                raise ValueError("LLM_BACKEND=local requires LLM_BASE_URL")
            name = settings.model or "Qwen/Qwen3-32B-AWQ"
            logger.info(f"LLM backend: OpenAI-compatible server at {settings.llm_base_url} ({name})")
            return OpenAILLM(
                model_name=name,
                settings=generation,
                openai_api_key=settings.llm_api_key or "EMPTY",
                base_url=settings.llm_base_url,
            )
        case _:
            raise ValueError(f"Unsupported backend {settings.llm_backend!r}. Choose 'openai' or 'local'.")


def paragraph_chunks(text: str, target_chars: int = CHUNK_TARGET_CHARS) -> list[str]:
    """Split on blank lines, then merge short paragraphs until 'target_chars' is reached."""
    paragraphs = [p.strip() for p in text.split("\n\n") if p.strip()]
    chunks: list[str] = []
    current: list[str] = []
    current_len = 0
    for para in paragraphs:
        if current_len + len(para) > target_chars and current:
            chunks.append("\n\n".join(current))
            current = [para]
            current_len = len(para)
        else:
            current.append(para)
            current_len += len(para)
    if current:
        chunks.append("\n\n".join(current))
    return chunks


def load_corpus(corpus_dir: Path, target_chars: int = CHUNK_TARGET_CHARS) -> list[Source]:
    """Load .txt and .md files from 'corpus_dir' as paragraph-sized 'Source' snippets.

    The file name is the document title the model cites. Other file types are
    logged and skipped.
    """
    sources: list[Source] = []
    for path in sorted(f for f in corpus_dir.iterdir() if f.is_file()):
        if path.suffix.lower() not in CORPUS_EXTENSIONS:
            logger.warning(f"Skipping unsupported file type {path.suffix!r}: {path.name}")
            continue
        size = path.stat().st_size
        for chunk in paragraph_chunks(path.read_text(encoding="utf-8"), target_chars):
            sources.append(Source(title=path.name, chunk=chunk, url=path.resolve().as_uri(), size=size))
        logger.debug(f"  {path.name}: {size} bytes")

    logger.info(f"Loaded {len(sources)} snippets from {corpus_dir}")
    return sources


def build_retriever(settings: BackendSettings) -> Retriever | None:
    if settings.search_endpoint:
        if not settings.search_index_name or not settings.search_api_key:
            raise ValueError("SEARCH_ENDPOINT requires SEARCH_INDEX_NAME and SEARCH_API_KEY")
        logger.info(f"Retriever: HTTP search ({settings.search_endpoint}, index {settings.search_index_name!r})")
        return HTTPSearchRetriever(
            endpoint=settings.search_endpoint,
            index_name=settings.search_index_name,
            api_key=settings.search_api_key,
            top_k=settings.top_search_results_count,
        )
    if settings.corpus_dir is not None:
        if not settings.corpus_dir.is_dir():
            raise ValueError(f"CORPUS_DIR {str(settings.corpus_dir)!r} is not a directory")
        logger.info(f"Retriever: BM25 over {settings.corpus_dir}")
        return BM25Retriever(load_corpus(settings.corpus_dir), top_k=settings.top_search_results_count)

    logger.warning("No search configured, answers are generated without documents")
    return None


def build_store(settings: BackendSettings) -> ConversationStore:
    match settings.store:
        case "memory":
            return ConversationStore(InMemoryConversationDatabase(), InMemoryMessageDatabase())
        case "none":
            logger.info("Persistence disabled")
            return ConversationStore()
        case _:
            raise ValueError(f"Unsupported store {settings.store!r}. Choose 'memory' or 'none'.")


def build_session_settings(settings: BackendSettings) -> SessionSettings:
    return SessionSettings(
        recent_messages_count=settings.recent_messages_count,
        top_search_results_count=settings.top_search_results_count,
        cancel_message=settings.notices["cancel_message"],
        error_message=settings.notices["error_message"],
    )


def build_registry(
    llm: LLM,
    retriever: Retriever | None,
    store: ConversationStore,
    session_settings: SessionSettings,
) -> SessionRegistry:
    def factory(user_id: str, session_id: str) -> ConversationSession:
        return ConversationSession(
            llm=llm,
            retriever=retriever,
            store=store,
            settings=session_settings,
            user_id=user_id,
            session_id=session_id,
        )

    return SessionRegistry(factory)


def create_app(
    settings: BackendSettings | None = None,
    llm: LLM | None = None,
    retriever: Retriever | None = None,
    store: ConversationStore | None = None,
) -> FastAPI:
    """Build the FastAPI app. Collaborators not passed in are built from 'settings'."""
    settings = settings or BackendSettings.from_env()
    configure_logging(settings.log_level)

    if retriever is None:
        retriever = build_retriever(settings)
    registry = build_registry(
        llm or build_llm(settings),
        retriever,
        store or build_store(settings),
        build_session_settings(settings),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await registry.dispose_all()
        if retriever is not None:
            await retriever.aclose()

    app = FastAPI(title="RAG chat backend", lifespan=lifespan)
    auth = HeaderAuthProvider(mock_user_id=settings.mock_user_id)
    auth.bind_to_app(app)
    app.include_router(build_chat_router(registry, auth))
    app.state.registry = registry
    return app
