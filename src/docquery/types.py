"""Shared domain models."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal


@dataclass(slots=True, frozen=True)
class Fragment:
    """A named slice of a source document."""

    name: str
    content: str
    summary: str
    index: int


@dataclass(slots=True, frozen=True)
class FragmentSet:
    """The ordered fragments produced by dividing one document."""

    fragments: tuple[Fragment, ...]
    method: str
    created_at: float
    source_length: int
    degraded: bool = False

    def names(self) -> list[str]:
        return [fragment.name for fragment in self.fragments]

    def __len__(self) -> int:
        return len(self.fragments)

    def __iter__(self) -> Iterator[Fragment]:
        return iter(self.fragments)


@dataclass(slots=True, frozen=True)
class CacheEntry:
    fingerprint: str
    document_name: str
    fragment_set: FragmentSet
    created_at: float


@dataclass(slots=True, frozen=True)
class CacheStats:
    count: int
    document_names: list[str]


class CostPhase(str, Enum):
    """Stage tag attached to every cost record."""

    DIVISION = "DIVISION"
    SELECTION = "SELECTION"
    FINAL_ANSWER = "FINAL_ANSWER"
    GENERAL_ANSWER = "GENERAL_ANSWER"
    ERROR = "ERROR"


@dataclass(slots=True, frozen=True)
class CostRecord:
    """One accounting entry for a transport invocation or failure."""

    timestamp: float
    operation: str
    phase: CostPhase
    input_tokens: int
    output_tokens: int
    cost: float
    details: str = ""


@dataclass(slots=True)
class SelectionResult:
    """The model's judgment of which fragments a question needs."""

    selected_names: list[str]
    reasoning: str
    cost: CostRecord | None = None


@dataclass(slots=True)
class FragmentFilter:
    """Fragments matched by name, plus the requested names that matched nothing."""

    fragments: list[Fragment]
    missing: list[str]


@dataclass(slots=True, frozen=True)
class Message:
    author: Literal["user", "assistant"]
    text: str


@dataclass(slots=True)
class QueryResponse:
    answer: str
    sections_used: list[str]
    total_cost: float
    processing_time_ms: float
    from_cache: bool
    missing_sections: list[str] = field(default_factory=list)
    method: str | None = None
    tokens_saved: int = 0


@dataclass(slots=True, frozen=True)
class SessionStats:
    cache_entries: int
    total_queries: int
    total_cost: float
