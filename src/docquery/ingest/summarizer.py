"""Deterministic extractive summaries for document fragments."""

from __future__ import annotations

import re
import unicodedata

from docquery.config import ChunkingConfig

_TRANSLATION = str.maketrans(
    {
        "‘": "'",
        "’": "'",
        "‚": "'",
        "‛": "'",
        "′": "'",
        "“": '"',
        "”": '"',
        "„": '"',
        "‟": '"',
        "″": '"',
        "‐": "-",
        "‑": "-",
        "‒": "-",
        "–": "-",
        "—": "-",
        "―": "-",
        "−": "-",
        "…": "...",
        "•": "-",
        "‣": "-",
        "▪": "-",
        "●": "-",
        "◦": "-",
        "·": "-",
        "\u00a0": " ",
        "\u2007": " ",
        "\u202f": " ",
        "\u3000": " ",
    }
)

_STRUCTURAL_LABELS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("Article", re.compile(r"\b(?:article|artigo|art\.)\s*\d+", re.IGNORECASE)),
    ("Chapter", re.compile(r"\b(?:chapter|cap[ií]tulo)\s+[\divxlc]+", re.IGNORECASE)),
    ("Section", re.compile(r"\b(?:section|se[cç][aã]o)\s+[\divxlc]+|§\s*\d+", re.IGNORECASE)),
    ("Annex", re.compile(r"\b(?:annex|appendix|anexo)\s+[a-z\d]+", re.IGNORECASE)),
)

_THEMATIC_LABELS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("Definitions", re.compile(r"\b(?:means|is defined as|refers to|definitions?)\b", re.IGNORECASE)),
    ("Obligations", re.compile(r"\b(?:shall|must|is required|prohibited|may not)\b", re.IGNORECASE)),
    ("Procedure", re.compile(r"\b(?:procedure|steps?|process|submit|apply for)\b", re.IGNORECASE)),
    ("Financial", re.compile(r"(?:\$|\b(?:cost|budget|payment|fee|salary)s?\b|\d+(?:\.\d+)?%)", re.IGNORECASE)),
    ("Dates", re.compile(r"\b(?:\d{1,2}/\d{1,2}/\d{4}|deadline|(?:19|20)\d{2})\b", re.IGNORECASE)),
)

THEME_KEYWORDS: tuple[str, ...] = (
    "security",
    "training",
    "discipline",
    "personnel",
    "equipment",
    "health",
    "safety",
    "education",
    "finance",
    "budget",
    "contract",
    "payment",
    "deadline",
    "penalty",
    "compliance",
    "promotion",
    "leave",
    "evaluation",
    "data",
    "procedure",
)

_PLACEHOLDER = "Empty fragment with no summarizable content."


def normalize_text(text: str) -> str:
    """Strip control characters and unify typography to plain ASCII forms."""

    text = text.replace("\r\n", "\n").replace("\r", "\n").translate(_TRANSLATION)
    text = "".join(
        ch
        for ch in text
        if ch in "\n\t" or unicodedata.category(ch) not in {"Cc", "Cf"}
    )
    text = re.sub(r"[ \t]+", " ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def classify(first_line: str, text: str) -> str:
    """Pick a label from structural markers first, then thematic keywords."""

    for scope in (first_line, text):
        for label, pattern in _STRUCTURAL_LABELS:
            if pattern.search(scope):
                return label
    for label, pattern in _THEMATIC_LABELS:
        if pattern.search(text):
            return label
    return "Content"


def detect_themes(text: str, limit: int = 3) -> list[str]:
    lowered = text.lower()
    return [
        keyword
        for keyword in THEME_KEYWORDS
        if re.search(rf"\b{keyword}", lowered)
    ][:limit]


def truncate(text: str, max_chars: int, marker: str = "...") -> str:
    if len(text) <= max_chars:
        return text
    return text[: max_chars - len(marker)].rstrip() + marker


def summarize(content: str, config: ChunkingConfig | None = None) -> str:
    """Build a short, deterministic description of a fragment.

    Layout: ``[Label] first line | following lines | Themes: a, b, c``.
    """

    config = config or ChunkingConfig()
    normalized = normalize_text(content)
    if not normalized:
        return _PLACEHOLDER

    lines = [
        line
        for line in normalized.split("\n")
        if len(line) > config.summary_min_line_chars
    ][: config.summary_max_lines]
    if not lines:
        lines = [normalized.replace("\n", " ")]

    first_line = lines[0]
    label = classify(first_line, normalized)
    parts = [f"[{label}] {truncate(first_line, 200)}"]

    following = " ".join(lines[1:4])
    if following:
        parts.append(truncate(following, 200))

    themes = detect_themes(normalized)
    if themes:
        parts.append("Themes: " + ", ".join(themes))

    return truncate(" | ".join(parts), config.summary_max_chars)
