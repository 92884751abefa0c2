"""Knowledge retrieval schemas."""

from pydantic import BaseModel, Field


class KnowledgeChunk(BaseModel):
    """A ranked knowledge-base snippet."""
    id: str
    title: str
    content: str
    rule_hints: list[str] = Field(
        default_factory=list,
        description="Governance tags attached by the retrieval contract (e.g. help_seeking)"
    )


class KnowledgeResult(BaseModel):
    """Result of a knowledge retrieval call."""
    chunks: list[KnowledgeChunk] = Field(default_factory=list)
    confidence: float = Field(0.0, ge=0.0, le=1.0)

    @property
    def rule_hints(self) -> set[str]:
        hints: set[str] = set()
        for chunk in self.chunks:
            hints.update(hint.strip().lower() for hint in chunk.rule_hints if hint.strip())
        return hints

    def as_prompt_context(self) -> str:
        """Format chunks for the system prompt."""
        return "\n\n".join(f"{chunk.title}\n{chunk.content}" for chunk in self.chunks)
