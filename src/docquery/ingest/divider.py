"""Remote division: the model reads the whole document once and splits it."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

from docquery.agent.decoder import FALLBACK_FRAGMENT_NAME, DecodeShape, decode
from docquery.agent.prompts import build_division_prompt
from docquery.agent.transport import MeteredTransport
from docquery.config import ChunkingConfig
from docquery.errors import DivisionValidationError
from docquery.ingest.chunker import DivisionStrategy
from docquery.ingest.summarizer import normalize_text, summarize, truncate
from docquery.obs.logging import get_logger
from docquery.types import CostPhase, Fragment, FragmentSet

logger = get_logger(__name__)


class LLMDivider(DivisionStrategy):
    """Sends the entire document once and decodes the model's division.

    This is the expensive strategy: the full text is billed as input. Results
    belong in a long-lived cache keyed on the whole content.
    """

    remote = True
    operation = "LLMDivider"

    def __init__(
        self,
        transport: MeteredTransport,
        config: ChunkingConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.transport = transport
        self.config = config or ChunkingConfig()
        self._clock = clock

    async def divide(self, content: str, name: str) -> FragmentSet:
        response = await self.transport.invoke(
            build_division_prompt(content),
            [],
            operation=self.operation,
            phase=CostPhase.DIVISION,
            details=f"Full-document division: {name}",
        )
        decoded = decode(response.text, DecodeShape.FRAGMENTS)
        if decoded.degraded:
            logger.warning(
                "division_degraded",
                document=name,
                response_preview=response.text[:200],
            )
            return self._whole_document(content, str(decoded.data["method"]))

        raw_fragments = decoded.data.get("fragments")
        if not isinstance(raw_fragments, list):
            raise DivisionValidationError(
                f"Division response for {name!r} has no fragment list"
            )
        fragments = self._build_fragments(raw_fragments)
        if not fragments:
            raise DivisionValidationError(
                f"Division response for {name!r} has no usable fragments"
            )

        method = decoded.data.get("method")
        fragment_set = FragmentSet(
            fragments=tuple(fragments),
            method=method if isinstance(method, str) and method else "LLM division",
            created_at=self._clock(),
            source_length=len(content),
        )
        logger.info(
            "document_divided",
            document=name,
            strategy="remote",
            method=fragment_set.method,
            fragments=len(fragment_set),
            decode_tier=decoded.tier.value,
        )
        return fragment_set

    def _whole_document(self, content: str, method: str) -> FragmentSet:
        """One fragment carrying the entire text; flagged so it is never cached."""
        fragment = Fragment(
            name=FALLBACK_FRAGMENT_NAME,
            content=content,
            summary=summarize(content, self.config),
            index=0,
        )
        return FragmentSet(
            fragments=(fragment,),
            method=method,
            created_at=self._clock(),
            source_length=len(content),
            degraded=True,
        )

    def _build_fragments(self, raw_fragments: list[Any]) -> list[Fragment]:
        fragments: list[Fragment] = []
        seen: set[str] = set()
        for item in raw_fragments:
            if len(fragments) >= self.config.target_fragments:
                break
            if not isinstance(item, dict):
                continue
            index = len(fragments)
            content = item.get("content")
            content = content if isinstance(content, str) else ""
            name = item.get("name")
            name = name.strip() if isinstance(name, str) and name.strip() else f"Part {index + 1}"
            name = _unique_name(name, seen)
            summary = item.get("summary")
            if isinstance(summary, str) and summary.strip():
                summary = truncate(normalize_text(summary), self.config.summary_max_chars)
            else:
                summary = summarize(content, self.config)
            seen.add(name)
            fragments.append(Fragment(name=name, content=content, summary=summary, index=index))
        return fragments


def _unique_name(name: str, seen: set[str]) -> str:
    if name not in seen:
        return name
    suffix = 2
    while f"{name} ({suffix})" in seen:
        suffix += 1
    return f"{name} ({suffix})"
