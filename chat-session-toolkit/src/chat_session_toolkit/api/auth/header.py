"""
Identity from a trusted request header.

Meant for deployments behind an authenticating proxy (e.g. App Service "Easy
Auth") that injects the principal id into every request. For local
development a fixed mock user id can be configured; it is only honoured for
requests coming from localhost.
"""

from fastapi import FastAPI, HTTPException, Request

from chat_session_toolkit.api.auth.base import AuthProvider

DEFAULT_PRINCIPAL_HEADER = "X-MS-CLIENT-PRINCIPAL-ID"
LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})


class HeaderAuthProvider(AuthProvider):
    def __init__(self, header_name: str = DEFAULT_PRINCIPAL_HEADER, mock_user_id: str | None = None) -> None:
        self.header_name = header_name
        self.mock_user_id = mock_user_id

    @staticmethod
    def _is_local(request: Request) -> bool:
        return request.url.hostname in LOCAL_HOSTS

    def get_current_user_id(self, request: Request) -> str:
        if self.mock_user_id and self._is_local(request):
            return self.mock_user_id

        user_id = request.headers.get(self.header_name, "").strip()
        if not user_id:
            raise HTTPException(status_code=401, detail="Not authenticated")
        return user_id

    def bind_to_app(self, app: FastAPI) -> None:
        @app.get("/auth/me")
        def me(request: Request) -> dict[str, str]:
            return {"user_id": self.get_current_user_id(request)}
