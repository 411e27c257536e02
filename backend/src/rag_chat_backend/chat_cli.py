"""
Interactive console chat.

Runs one 'ConversationSession' in the terminal and prints the answer as it
streams. Ctrl+C while an answer is streaming cancels that answer only; at the
prompt it exits, as do Ctrl+D, 'exit' and 'quit'. '/reset' starts a new
conversation.

Configuration is read from the environment, see 'rag_chat_backend.settings'.

Usage:
    LLM_BACKEND=openai CORPUS_DIR=./data python -m rag_chat_backend.chat_cli
    LLM_BACKEND=local LLM_BASE_URL=http://localhost:8000/v1 python -m rag_chat_backend.chat_cli
"""

import asyncio
import signal

from loguru import logger

from chat_session_toolkit.conversation_database.data_models.message import Message
from chat_session_toolkit.session.conversation_session import ConversationSession
from rag_chat_backend.factory import build_llm, build_retriever, build_session_settings, build_store
from rag_chat_backend.settings import BackendSettings, configure_logging

EXIT_COMMANDS = {"exit", "quit"}
RESET_COMMAND = "/reset"


def print_sources(message: Message) -> None:
    if not message.sources:
        return
    print(f"Sources ({len(message.sources)}):")
    for i, source in enumerate(message.sources, 1):
        print(f"  [{i}] {source.title}")


async def ask(session: ConversationSession, text: str) -> Message | None:
    """Stream the answer to 'text' to stdout and return the final message."""
    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, session.cancel)
    shown = ""
    final = None
    try:
        async for snapshot in session.submit_message_stream(text):
            final = snapshot
            if snapshot.content.startswith(shown):
                print(snapshot.content[len(shown):], end="", flush=True)
            else:
                # replaced by a notice or rewritten with numbered citations
                print(f"\n{snapshot.content}", end="", flush=True)
            shown = snapshot.content
    finally:
        loop.remove_signal_handler(signal.SIGINT)

    print()
    if final is not None:
        print_sources(final)
    return final


def run_chat(settings: BackendSettings) -> None:
    retriever = build_retriever(settings)
    session = ConversationSession(
        llm=build_llm(settings),
        retriever=retriever,
        store=build_store(settings),
        settings=build_session_settings(settings),
        user_id=settings.mock_user_id or "console",
    )
    logger.info(f"Chat session {session.session_id} ready. Ctrl+C cancels an answer, Ctrl+D exits.")
    with asyncio.Runner() as runner:
        try:
            while True:
                try:
                    text = input("\nYou: ").strip()
                except (EOFError, KeyboardInterrupt):
                    break
                if text.lower() in EXIT_COMMANDS:
                    break
                if text == RESET_COMMAND:
                    session.reset()
                    print("(new conversation)")
                    continue
                if text:
                    print("Assistant: ", end="", flush=True)
                    runner.run(ask(session, text))
        finally:
            runner.run(session.aclose())
            if retriever is not None:
                runner.run(retriever.aclose())


if __name__ == "__main__":
    _settings = BackendSettings.from_env()
    configure_logging(_settings.log_level)
    run_chat(_settings)
