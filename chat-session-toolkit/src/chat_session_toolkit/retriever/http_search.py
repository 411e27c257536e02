"""
Semantic search over HTTP.

'HTTPSearchRetriever' queries a hosted search index (Azure AI Search REST
shape): a POST to '/indexes/{index}/docs/search' with the query, the number of
results and the fields to select, authenticated with an 'api-key' header. The
index owns the embeddings; this client only ships text.

Hits missing one of the selected fields, or carrying a blank chunk, are
dropped rather than failing the whole batch.
"""

from typing import Any

import httpx
from loguru import logger

from chat_session_toolkit.conversation_database.data_models.source import Source
from chat_session_toolkit.exceptions import SearchServiceError
from chat_session_toolkit.retriever.base import Retriever

DEFAULT_API_VERSION = "2024-11-01-preview"
SELECTED_FIELDS = ("chunk", "title", "culture", "path", "size")


class HTTPSearchRetriever(Retriever):
    """
    Attributes:
        endpoint: Base URL of the search service.
        index_name: Name of the index holding the document chunks.
        client: Shared 'httpx.AsyncClient'. Injectable for connection reuse and tests.
    """

    def __init__(
        self,
        endpoint: str,
        index_name: str,
        api_key: str,
        top_k: int = 5,
        api_version: str = DEFAULT_API_VERSION,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        super().__init__(top_k)
        self.endpoint = endpoint.rstrip("/")
        self.index_name = index_name
        self.api_version = api_version
        self._headers = {"api-key": api_key}
        self.client = client or httpx.AsyncClient(timeout=timeout)

    def _url(self, path: str) -> str:
        return f"{self.endpoint}/indexes/{self.index_name}/{path}?api-version={self.api_version}"

    async def exists(self) -> bool:
        """Ping the index statistics endpoint; any failure means the service is not reachable."""
        try:
            response = await self.client.get(self._url("stats"), headers=self._headers)
        except httpx.HTTPError as exc:
            logger.warning(f"Search service at {self.endpoint} is not reachable: {exc}")
            return False
        return response.is_success

    async def retrieve(self, query: str) -> list[Source]:
        body = {
            "search": query,
            "top": self.top_k,
            "queryType": "semantic",
            "select": "chunk,title,culture,path,type,size",
        }
        response = await self.client.post(self._url("docs/search"), json=body, headers=self._headers)
        response.raise_for_status()

        payload = response.json()
        hits = payload.get("value") if isinstance(payload, dict) else None
        if not isinstance(hits, list):
            raise SearchServiceError("Search response has no 'value' list")

        sources = [source for hit in hits if (source := self._to_source(hit)) is not None]
        logger.debug(f"Search returned {len(sources)}/{len(hits)} usable hits for {query[:60]!r}")
        return sources

    @staticmethod
    def _to_source(hit: Any) -> Source | None:
        if not isinstance(hit, dict) or any(field not in hit for field in SELECTED_FIELDS):
            return None
        chunk = hit["chunk"]
        if not isinstance(chunk, str) or not chunk.strip():
            return None
        return Source(
            title=hit["title"] or "",
            chunk=chunk,
            culture=hit["culture"] or "unknown",
            url=hit["path"] or "",
            size=int(hit["size"] or 0),
        )

    async def aclose(self) -> None:
        await self.client.aclose()
