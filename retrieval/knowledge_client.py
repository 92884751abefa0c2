"""Knowledge retrieval clients."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests

from schemas.context import UserRole
from schemas.knowledge import KnowledgeChunk, KnowledgeResult
from utils.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

AUDIENCE_BY_ROLE = {
    UserRole.GUARDIAN: "guardians",
    UserRole.ADMIN: "guardians",
    UserRole.INVESTOR: "investors",
    UserRole.LEAD_INVESTOR: "investors",
    UserRole.PARTNER: "partners",
}


def audience_for_role(role: Optional[UserRole], default: str = "donors") -> str:
    """Knowledge audience for a user role; everyone else reads donor content."""
    return AUDIENCE_BY_ROLE.get(role, default)


class BaseKnowledgeClient(ABC):
    """Returns ranked knowledge snippets for a query."""

    @abstractmethod
    def retrieve(
        self,
        query: str,
        agent_type: str = "case_agent",
        audience: Optional[str] = None,
        max_results: int = 3
    ) -> KnowledgeResult:
        """
        Retrieve knowledge for a query.

        Raises:
            UpstreamUnavailable: when the knowledge service cannot answer
        """
        pass


class NullKnowledgeClient(BaseKnowledgeClient):
    """Used when no knowledge service is configured."""

    def retrieve(self, query, agent_type="case_agent", audience=None, max_results=3) -> KnowledgeResult:
        return KnowledgeResult()


class HttpKnowledgeClient(BaseKnowledgeClient):
    """
    Knowledge service over HTTP.

    Expects `GET {base_url}/search` to return either `{"chunks": [...]}`,
    `{"results": [...]}` or a bare list. Each chunk may carry governance
    tags under `rule_hints` or `tags`.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10,
        auth_token: Optional[str] = None
    ):
        """
        Initialize the knowledge client.

        Args:
            base_url: Base URL of the knowledge service
            timeout: Request timeout in seconds
            auth_token: Optional bearer token
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.auth_token = auth_token
        self._last_error: Optional[str] = None

    def _get_headers(self) -> dict:
        headers = {
            "Accept": "application/json",
            "User-Agent": "Case-Assistant/1.0"
        }
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    def _fail(self, message: str) -> UpstreamUnavailable:
        self._last_error = message
        logger.warning(f"Knowledge service error: {message}")
        return UpstreamUnavailable("knowledge", message)

    def retrieve(
        self,
        query: str,
        agent_type: str = "case_agent",
        audience: Optional[str] = None,
        max_results: int = 3
    ) -> KnowledgeResult:
        params = {"q": query, "agent_type": agent_type, "limit": max_results}
        if audience:
            params["audience"] = audience

        try:
            response = requests.get(
                f"{self.base_url}/search",
                params=params,
                headers=self._get_headers(),
                timeout=self.timeout
            )
        except requests.exceptions.Timeout as e:
            raise self._fail(f"Request timeout after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise self._fail(str(e)) from e

        if response.status_code in (401, 403):
            raise self._fail(f"Authentication failed: {response.status_code}")
        if response.status_code != 200:
            raise self._fail(f"Service returned status {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise self._fail("Response is not valid JSON") from e

        confidence = 0.0
        if isinstance(data, dict):
            items = data.get("chunks") or data.get("results") or data.get("data") or []
            confidence = data.get("confidence", 0.0) or 0.0
        elif isinstance(data, list):
            items = data
        else:
            logger.warning(f"Unexpected knowledge response format: {type(data)}")
            return KnowledgeResult()

        chunks = []
        for item in items[:max_results]:
            chunk = self._parse_chunk(item)
            if chunk:
                chunks.append(chunk)

        if not confidence and chunks:
            scores = [float(item.get("score", 0.0)) for item in items[:max_results] if isinstance(item, dict)]
            confidence = max(scores) if scores else 0.0

        return KnowledgeResult(chunks=chunks, confidence=max(0.0, min(1.0, float(confidence))))

    def _parse_chunk(self, item) -> Optional[KnowledgeChunk]:
        """Map a service item to a KnowledgeChunk; malformed items are skipped."""
        if not isinstance(item, dict):
            logger.warning(f"Skipping knowledge item of type {type(item).__name__}")
            return None

        chunk_id = item.get("id") or item.get("chunk_id") or item.get("key")
        content = item.get("content") or item.get("text") or ""
        if not chunk_id or not content:
            logger.warning("Skipping knowledge item without id or content")
            return None

        hints = item.get("rule_hints") or item.get("tags") or []
        if isinstance(hints, str):
            hints = [hints]

        return KnowledgeChunk(
            id=str(chunk_id),
            title=item.get("title") or item.get("name") or "",
            content=content,
            rule_hints=[str(h) for h in hints],
        )

    def get_last_error(self) -> Optional[str]:
        return self._last_error


def create_knowledge_client(settings) -> BaseKnowledgeClient:
    if not settings.knowledge_base_url:
        logger.info("No knowledge base URL configured; responses will not be grounded")
        return NullKnowledgeClient()
    return HttpKnowledgeClient(
        settings.knowledge_base_url,
        timeout=settings.knowledge_timeout_seconds,
        auth_token=settings.knowledge_base_token,
    )
