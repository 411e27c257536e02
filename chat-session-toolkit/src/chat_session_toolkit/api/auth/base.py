"""
Authentication provider abstractions.

An 'AuthProvider' integrates with a FastAPI application to identify the
current user on every request. The chat routes only ever see the resolved user
id, which partitions sessions and stored conversations.
"""

from abc import ABC, abstractmethod

from fastapi import FastAPI, Request


class AuthProvider(ABC):
    """
    Abstract base class for authentication backends.

    Implementors must supply a FastAPI dependency that resolves to the current
    user ID ('get_current_user_id') and a setup hook that registers any routes
    or middleware they need ('bind_to_app').
    """

    @abstractmethod
    def get_current_user_id(self, request: Request) -> str:
        """FastAPI dependency that returns the authenticated user's ID.

        Raise 'HTTPException' with status 401 if the request is not authenticated.
        """
        pass

    @abstractmethod
    def bind_to_app(self, app: FastAPI) -> None:
        """Register routes and middleware required by this provider."""
        pass
