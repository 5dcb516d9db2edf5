"""Concrete implementations for knowledge retrievers."""

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import httpx

from .errors import RetrievalFailure

logger = logging.getLogger(__name__)

TOP_K = 3
QUERY_TIMEOUT = 10.0


class Retrieval(ABC):
    """Interface for retrieving context to augment a user's query."""

    @abstractmethod
    def retrieve(self, query: str) -> Optional[str]:
        """Returns formatted passages relevant to ``query``.

        An empty string means the index answered but found nothing.

        Raises
        ------
        RetrievalFailure
            The index could not be reached or its reply could not be read.
        """
        return None

    def augment(self, query: str) -> str:
        """Rewrites ``query`` to carry retrieved context. Never raises.

        A failed search still returns the original query, prefixed with a
        visible note, so the turn can go ahead without context.
        """
        try:
            context = self.retrieve(query)
        except RetrievalFailure as exc:
            logger.warning("RAG search failed: %s", exc)
            return f"(RAG search failed: {exc})\n\n{query}"

        if context:
            return f"Context from knowledge base:\n{context}\n\nUser question: {query}"
        return f"(No relevant context found in knowledge base)\n\nUser question: {query}"


class NoRetrieval(Retrieval):
    """Default retriever that performs no action."""

    def retrieve(self, query):
        pass

    def augment(self, query: str) -> str:
        return query


class Chroma(Retrieval):
    """Queries a Chroma server's REST API for the closest documents."""

    def __init__(
        self,
        url: str = "",
        collection: str = "documents",
        n_results: int = TOP_K,
        timeout: float = QUERY_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ):
        self.url = url
        self.collection = collection
        self.n_results = n_results
        self._client = client or httpx.Client(timeout=timeout)

    def query_url(self) -> str:
        return f"{self.url.rstrip('/')}/api/v1/collections/{self.collection}/query"

    def retrieve(self, query: str) -> str:
        if not self.url:
            raise RetrievalFailure("ChromaDB URL not configured")

        payload = {"query_texts": [query], "n_results": self.n_results}
        try:
            response = self._client.post(self.query_url(), json=payload)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise RetrievalFailure(f"failed to query ChromaDB: {exc}") from exc

        if response.status_code != httpx.codes.OK:
            raise RetrievalFailure(f"ChromaDB returned status {response.status_code}")

        try:
            result = response.json()
        except ValueError as exc:
            raise RetrievalFailure(f"failed to decode ChromaDB response: {exc}") from exc

        matches = _first_query_documents(result)
        # Each passage ends with a newline, so the context block does too
        passages = [
            f"Document {i}: {doc}\n"
            for i, doc in enumerate(matches[: self.n_results], start=1)
        ]
        logger.debug("ChromaDB returned %d matches", len(passages))
        return "".join(passages)


def _first_query_documents(result: Any) -> List[str]:
    """Texts matched for the first query text of a query reply.

    Chroma answers with one list of documents per query text.
    """
    if not isinstance(result, dict):
        raise RetrievalFailure(
            f"failed to decode ChromaDB response: expected an object, got {type(result).__name__}"
        )
    documents = result.get("documents")
    if documents is None or documents == []:
        return []
    if not isinstance(documents, list) or not isinstance(documents[0], list):
        raise RetrievalFailure(
            "failed to decode ChromaDB response: 'documents' is not a list of lists"
        )
    return [doc for doc in documents[0] if isinstance(doc, str)]
