from chat_session_toolkit.conversation_database.data_models.message import Message
from chat_session_toolkit.llms.base import Roles
from chat_session_toolkit.session.history import sanitize_history
from chat_session_toolkit.session.settings import DEFAULT_IDK_ANSWERS

SYSTEM = "You are a test assistant."


def user(content: str) -> Message:
    return Message(role=Roles.USER, content=content)


def assistant(content: str) -> Message:
    return Message(role=Roles.ASSISTANT, content=content)


def turns(messages: list[Message]) -> list[tuple[str, str]]:
    history = sanitize_history(messages, SYSTEM, DEFAULT_IDK_ANSWERS)
    return [(str(m.role), m.content) for m in history]


def test_pending_question_is_replaced_by_rag_prompt():
    assert turns([user("Q"), assistant(""), user("<RAG prompt>")]) == [
        ("system", SYSTEM),
        ("user", "<RAG prompt>"),
    ]


def test_idk_exchange_is_dropped_as_a_pair():
    messages = [user("Q1"), assistant("I don't know."), user("Q2"), assistant("answer")]
    assert turns(messages) == [("system", SYSTEM), ("user", "Q2"), ("assistant", "answer")]


def test_idk_detection_trims_but_is_case_sensitive():
    messages = [user("Q1"), assistant("  Je ne sais pas.  "), user("Q2"), assistant("i don't know.")]
    assert turns(messages) == [("system", SYSTEM), ("user", "Q2"), ("assistant", "i don't know.")]


def test_idk_removes_at_most_one_preceding_user_turn():
    messages = [user("Q0"), user("Q1"), assistant("I don't know.")]
    assert turns(messages) == [("system", SYSTEM), ("user", "Q0")]


def test_idk_after_assistant_turn_only_drops_itself():
    messages = [user("Q1"), assistant("A1"), assistant("I don't know.")]
    assert turns(messages) == [("system", SYSTEM), ("user", "Q1"), ("assistant", "A1")]


def test_full_window_keeps_order():
    messages = [
        user("Q1"),
        assistant("A1"),
        user("Q2"),
        assistant("I don't know."),
        user("Q3"),
        assistant(""),
        user("<RAG prompt 3>"),
    ]
    assert turns(messages) == [
        ("system", SYSTEM),
        ("user", "Q1"),
        ("assistant", "A1"),
        ("user", "<RAG prompt 3>"),
    ]


def test_completed_exchange_is_left_alone():
    messages = [user("Q"), assistant("answer"), user("follow-up")]
    assert turns(messages) == [("system", SYSTEM), ("user", "Q"), ("assistant", "answer"), ("user", "follow-up")]


def test_empty_log_yields_system_message_only():
    assert turns([]) == [("system", SYSTEM)]
