"""Document division strategies and the local heuristic chunker."""

from __future__ import annotations

import math
import re
import time
from abc import ABC, abstractmethod
from collections.abc import Callable

from docquery.config import ChunkingConfig
from docquery.ingest.summarizer import summarize
from docquery.obs.logging import get_logger
from docquery.types import Fragment, FragmentSet

logger = get_logger(__name__)

_HEADING_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    (
        "headings",
        re.compile(
            r"^[ \t]*(?:chapter|cap[ií]tulo|section|se[cç][aã]o|annex|anexo|appendix"
            r"|title|t[ií]tulo|part|parte)[ \t]+"
            r"(?:[ivxlc]+|\d+|(?-i:[A-Z])|[a-z](?=[ \t]*[-\u2013:.]))\b[^\n]*",
            re.IGNORECASE | re.MULTILINE,
        ),
    ),
    (
        "numbered",
        re.compile(r"^[ \t]*\d+(?:\.\d+)*[.)][ \t]+\S[^\n]*", re.IGNORECASE | re.MULTILINE),
    ),
    (
        "articles",
        re.compile(r"^[ \t]*(?:article|artigo|art\.?)[ \t]*\d+[^\n]*", re.IGNORECASE | re.MULTILINE),
    ),
)
_PARAGRAPH_BREAK = re.compile(r"(\n[ \t]*\n)")


class DivisionStrategy(ABC):
    """Turns one document into a `FragmentSet`.

    Implementations are interchangeable: the orchestrator only calls `divide`.
    `remote` tells the caller whether dividing spends transport tokens.
    """

    remote: bool = False

    @abstractmethod
    async def divide(self, content: str, name: str) -> FragmentSet:
        """Divide a document into named, summarized fragments."""


class HeuristicChunker(DivisionStrategy):
    """Pure, deterministic local division into at most 20 fragments.

    Strategies, first success wins:
    1. Structural headings (chapters, numbered headings, articles). A pattern
       needs at least three matches; each span runs to the next heading.
    2. Paragraph aggregation up to `ceil(len / target)` characters.
    3. Forced equal split whenever 1-2 produce fewer fragments than the target,
       preferring a line break in the last 30% of each range.

    Contents concatenated in index order always cover the cleaned source, so
    short spans are folded into their neighbours instead of being dropped.
    """

    def __init__(
        self,
        config: ChunkingConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or ChunkingConfig()
        self._clock = clock

    async def divide(self, content: str, name: str) -> FragmentSet:
        fragment_set = self.chunk(content)
        logger.info(
            "document_divided",
            document=name,
            strategy="local",
            method=fragment_set.method,
            fragments=len(fragment_set),
            source_length=fragment_set.source_length,
        )
        return fragment_set

    def chunk(self, text: str) -> FragmentSet:
        cleaned = clean_document(text)
        if not cleaned:
            return self._assemble([""], "empty document", len(text))

        target = self.effective_target(len(cleaned))
        pieces: list[str] | None = None
        method = ""

        pattern_result = self._pattern_split(cleaned)
        if pattern_result is not None:
            pieces, method = pattern_result
        else:
            pieces = self._paragraph_split(cleaned, target)
            method = "paragraph grouping"

        if len(pieces) < target:
            pieces = self._equal_split(cleaned, target)
            method = f"forced equal split into {target} parts"

        return self._assemble(self._cap(pieces), method, len(text))

    def effective_target(self, length: int) -> int:
        """Fragment count for a document, never below `min_fragment_chars` each."""
        by_size = math.ceil(length / self.config.min_fragment_chars)
        return max(1, min(self.config.target_fragments, by_size))

    def _pattern_split(self, text: str) -> tuple[list[str], str] | None:
        minimum = self.config.min_pattern_matches
        for label, pattern in _HEADING_PATTERNS:
            starts = [match.start() for match in pattern.finditer(text)]
            if len(starts) < minimum:
                continue
            # Preamble before the first heading stays with the first span.
            bounds = [0, *starts[1:], len(text)]
            spans = [text[start:end] for start, end in zip(bounds, bounds[1:])]
            pieces = self._fold_short(spans)
            if len(pieces) >= minimum:
                return pieces, f"chapter-pattern match ({label})"
        return None

    def _fold_short(self, spans: list[str]) -> list[str]:
        pieces: list[str] = []
        carry = ""
        for span in spans:
            candidate = carry + span
            if len(candidate.strip()) < self.config.min_fragment_chars:
                carry = candidate
                continue
            pieces.append(candidate)
            carry = ""
        if carry:
            if pieces:
                pieces[-1] += carry
            else:
                pieces.append(carry)
        return pieces

    def _paragraph_split(self, text: str, target: int) -> list[str]:
        parts = _PARAGRAPH_BREAK.split(text)
        units = [
            parts[i] + (parts[i + 1] if i + 1 < len(parts) else "")
            for i in range(0, len(parts), 2)
        ]
        target_size = math.ceil(len(text) / target)

        pieces: list[str] = []
        current = ""
        for unit in units:
            current += unit
            if len(unit.strip()) < self.config.min_fragment_chars:
                continue
            if len(current) >= target_size and len(pieces) < target - 1:
                pieces.append(current)
                current = ""
        if current:
            if pieces and not current.strip():
                pieces[-1] += current
            else:
                pieces.append(current)
        return pieces

    def _equal_split(self, text: str, count: int) -> list[str]:
        pieces: list[str] = []
        cursor = 0
        for i in range(count):
            if cursor >= len(text):
                break
            if i == count - 1:
                pieces.append(text[cursor:])
                break
            # Remaining text is spread evenly over the remaining ranges.
            size = math.ceil((len(text) - cursor) / (count - i))
            earliest_cut = size * (1.0 - self.config.newline_window)
            end = min(cursor + size, len(text))
            if end < len(text):
                cut = text.rfind("\n", cursor, end)
                if cut != -1 and cut - cursor > earliest_cut:
                    end = cut + 1
            pieces.append(text[cursor:end])
            cursor = end
        return pieces

    def _cap(self, pieces: list[str]) -> list[str]:
        limit = self.config.target_fragments
        if len(pieces) <= limit:
            return pieces
        return [*pieces[: limit - 1], "".join(pieces[limit - 1 :])]

    def _assemble(self, pieces: list[str], method: str, source_length: int) -> FragmentSet:
        contents = [piece.strip() for piece in pieces]
        contents = [content for content in contents if content] or [""]
        fragments = tuple(
            Fragment(
                name=f"Part {index + 1}",
                content=content,
                summary=summarize(content, self.config),
                index=index,
            )
            for index, content in enumerate(contents)
        )
        return FragmentSet(
            fragments=fragments,
            method=method,
            created_at=self._clock(),
            source_length=source_length,
        )


def clean_document(text: str) -> str:
    """Normalize line endings and collapse runs of blank lines."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return re.sub(r"\n{3,}", "\n\n", text).strip()
