"""
Exceptions raised by the chat session toolkit.

Only misuse of the session API surfaces as an exception to the caller.
Collaborator failures (search, storage, streaming) are caught at the
orchestration boundary and turned into a terminal message state plus a log
entry, so most of these never leave the library.
"""


class ChatSessionError(Exception):
    """Base class for all toolkit errors."""


class ExchangeInProgressError(ChatSessionError):
    """A message was submitted while the session is still streaming the previous answer."""

    def __init__(self, session_id: str | None = None) -> None:
        self.session_id = session_id
        super().__init__("An exchange is already in progress for this session")


class ExchangeCancelled(ChatSessionError):
    """Raised inside the session pipeline when the in-flight exchange is cancelled."""


class SearchServiceError(ChatSessionError):
    """The search provider returned a response that could not be used."""
