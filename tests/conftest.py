"""Shared fakes for external collaborators."""

from datetime import datetime, timedelta
from typing import Callable, List, Optional, Union

import numpy as np
import pytest

from llm.base_client import BaseLLMClient, LLMResponse, Message
from retrieval.embeddings_manager import BaseEmbeddingProvider
from retrieval.knowledge_client import BaseKnowledgeClient
from schemas.context import CaseFacts, UserContext
from schemas.knowledge import KnowledgeResult
from utils.errors import UpstreamUnavailable

# Each axis of the fake vector space counts these substrings
FAKE_AXES = {
    "donate": ("donat", "donar", "doar"),
    "share": ("share", "compart"),
    "adopt": ("adopt", "adopc"),
    "contact": ("contact", "habl"),
    "help": ("help", "ayud"),
}


class FakeEmbeddingProvider(BaseEmbeddingProvider):
    """Deterministic keyword-axis embeddings."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[List[str]] = []

    def embed_texts(self, texts: list[str]) -> list[np.ndarray]:
        self.calls.append(list(texts))
        if self.fail:
            raise RuntimeError("embedding service down")
        return [self.vector(t) for t in texts]

    @staticmethod
    def vector(text: str) -> np.ndarray:
        lowered = text.lower()
        values = [float(sum(lowered.count(k) for k in keys)) for keys in FAKE_AXES.values()]
        values.append(0.01)
        return np.array(values)

    def get_model_name(self) -> str:
        return "fake-embedding"


class FakeLLMClient(BaseLLMClient):
    """Returns scripted replies and records every request."""

    def __init__(self, reply: Union[str, Callable[[List[Message]], str]] = "Gracias por tu mensaje."):
        self.reply = reply
        self.calls: List[List[Message]] = []

    def chat(self, messages, temperature=0.7, max_tokens=1000) -> LLMResponse:
        self.calls.append(list(messages))
        content = self.reply(messages) if callable(self.reply) else self.reply
        return LLMResponse(content=content, finish_reason="stop")

    def is_available(self) -> bool:
        return True

    def get_provider_name(self) -> str:
        return "fake"

    def get_model_name(self) -> str:
        return "fake-model"


class FailingLLMClient(FakeLLMClient):
    def chat(self, messages, temperature=0.7, max_tokens=1000) -> LLMResponse:
        self.calls.append(list(messages))
        raise RuntimeError("completion service exploded")


class FakeKnowledgeClient(BaseKnowledgeClient):
    """Returns a fixed result, or raises when told to."""

    def __init__(self, result: Optional[KnowledgeResult] = None, fail: bool = False):
        self.result = result or KnowledgeResult()
        self.fail = fail
        self.calls: list[dict] = []

    def retrieve(self, query, agent_type="case_agent", audience=None, max_results=3) -> KnowledgeResult:
        self.calls.append({
            "query": query,
            "agent_type": agent_type,
            "audience": audience,
            "max_results": max_results,
        })
        if self.fail:
            raise UpstreamUnavailable("knowledge", "service down")
        return self.result


class FakeClock:
    """Manually advanced datetime clock."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 5, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeTimer:
    """Manually advanced float clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def case_facts() -> CaseFacts:
    return CaseFacts(
        case_id="case-1",
        name="Luna",
        guardian_id="guardian-7",
        guardian_name="Marta",
        guardian_alias="luna.rescate",
        species="perra",
        location="Córdoba",
        condition="fractura de cadera",
        social_links={"instagram": "https://instagram.com/luna"},
    )


@pytest.fixture
def case_facts_without_alias(case_facts) -> CaseFacts:
    return case_facts.model_copy(update={"guardian_alias": None})


@pytest.fixture
def user_context() -> UserContext:
    return UserContext(user_id="user-1", language="es")
