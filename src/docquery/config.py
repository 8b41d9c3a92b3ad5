"""Configuration models for the document query pipeline."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ChunkingConfig(BaseModel):
    """Configures local heuristic division and summary generation."""

    target_fragments: int = Field(default=20, ge=1, le=20)
    min_fragment_chars: int = Field(default=100, ge=1)
    min_pattern_matches: int = Field(default=3, ge=1)
    newline_window: float = Field(default=0.3, gt=0.0, lt=1.0)
    summary_max_chars: int = Field(default=400, ge=50)
    summary_max_lines: int = Field(default=7, ge=1)
    summary_min_line_chars: int = Field(default=15, ge=0)


class CacheConfig(BaseModel):
    """Configures one fragment cache instance.

    `prefix_chars=None` fingerprints the whole document content.
    """

    ttl_seconds: float = Field(default=4 * 60 * 60, gt=0.0)
    prefix_chars: int | None = Field(default=100, ge=1)


class PricingConfig(BaseModel):
    """Token estimation and per-1K-token pricing."""

    input_per_1k: float = Field(default=0.00125, ge=0.0)
    output_per_1k: float = Field(default=0.005, ge=0.0)
    chars_per_token: float = Field(default=4.0, gt=0.0)


class LedgerConfig(BaseModel):
    """Configures cost ledger reporting and budget alerts."""

    recent_limit: int = Field(default=50, ge=1)
    budget: float = Field(default=5.0, gt=0.0)
    warning_threshold: float = Field(default=0.8, gt=0.0, le=1.0)


class OrchestratorConfig(BaseModel):
    """Configures one query session."""

    division_mode: Literal["local", "remote"] = "local"
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    local_cache: CacheConfig = Field(
        default_factory=lambda: CacheConfig(ttl_seconds=4 * 60 * 60, prefix_chars=100)
    )
    remote_cache: CacheConfig = Field(
        default_factory=lambda: CacheConfig(ttl_seconds=2 * 60 * 60, prefix_chars=None)
    )
    pricing: PricingConfig = Field(default_factory=PricingConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
