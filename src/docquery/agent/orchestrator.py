"""Query session orchestrator: divide, select, answer."""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence

from docquery.agent.prompts import build_answer_prompt, build_general_prompt
from docquery.agent.selector import RelevanceSelector
from docquery.agent.transport import LLMTransport, MeteredTransport
from docquery.config import OrchestratorConfig
from docquery.errors import DivisionValidationError, DocQueryError, SelectionFormatError
from docquery.ingest.cache import FragmentCache
from docquery.ingest.chunker import DivisionStrategy, HeuristicChunker
from docquery.ingest.divider import LLMDivider
from docquery.obs.ledger import CharRatioEstimator, CostLedger, CostModel, Timer, TokenEstimator
from docquery.obs.logging import get_logger
from docquery.types import CostPhase, Fragment, FragmentSet, Message, QueryResponse, SessionStats

logger = get_logger(__name__)


class QueryOrchestrator:
    """Answers questions about a document while transmitting as little of it as possible.

    Per query: reuse or compute the document's fragment set, ask the model
    which fragments matter (summaries only), then answer from the full text of
    just those fragments. When nothing is selected the question is answered
    without document context.

    One instance is one session: it owns its caches, ledger and counters.
    """

    operation = "QueryOrchestrator"

    def __init__(
        self,
        transport: LLMTransport,
        *,
        config: OrchestratorConfig | None = None,
        ledger: CostLedger | None = None,
        strategy: DivisionStrategy | None = None,
        estimator: TokenEstimator | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or OrchestratorConfig()
        self.estimator = estimator or CharRatioEstimator(self.config.pricing.chars_per_token)
        self.ledger = ledger or CostLedger(
            cost_model=CostModel.from_config(self.config.pricing),
            config=self.config.ledger,
            clock=clock,
        )
        self.transport = MeteredTransport(transport, self.ledger, estimator=self.estimator)
        self.selector = RelevanceSelector(self.transport)

        if strategy is None:
            if self.config.division_mode == "remote":
                strategy = LLMDivider(self.transport, self.config.chunking, clock=clock)
            else:
                strategy = HeuristicChunker(self.config.chunking, clock=clock)
        self.strategy = strategy

        self.local_cache = FragmentCache(self.config.local_cache, label="local", clock=clock)
        self.remote_cache = FragmentCache(self.config.remote_cache, label="remote", clock=clock)
        self.query_count = 0

    @property
    def cache(self) -> FragmentCache:
        """The cache matching the active division strategy."""
        return self.remote_cache if self.strategy.remote else self.local_cache

    async def answer_query(
        self,
        question: str,
        document_content: str | None = None,
        document_name: str | None = None,
        history: Sequence[Message] = (),
    ) -> QueryResponse:
        self.query_count += 1
        first_record = len(self.ledger)

        with Timer() as timer:
            if not document_content:
                answer = await self._general_answer(question, history)
                response = QueryResponse(
                    answer=answer,
                    sections_used=[],
                    total_cost=0.0,
                    processing_time_ms=0.0,
                    from_cache=False,
                )
            else:
                response = await self._answer_from_document(
                    question, document_content, document_name or "document", history
                )

        response.total_cost = sum(record.cost for record in self.ledger.records()[first_record:])
        response.processing_time_ms = timer.elapsed_ms
        logger.info(
            "query_answered",
            sections_used=len(response.sections_used),
            from_cache=response.from_cache,
            tokens_saved=response.tokens_saved,
            cost=response.total_cost,
            processing_time_ms=round(response.processing_time_ms, 1),
        )
        return response

    async def preprocess_document(self, content: str, name: str) -> bool:
        """Divide and cache a document ahead of its first query."""

        try:
            fragment_set, from_cache = await self._divide_or_cache_hit(content, name)
        except DocQueryError as exc:
            logger.warning("preprocess_failed", document=name, error=str(exc))
            return False
        logger.info(
            "document_preprocessed",
            document=name,
            fragments=len(fragment_set),
            from_cache=from_cache,
            degraded=fragment_set.degraded,
        )
        return not fragment_set.degraded

    def get_stats(self) -> SessionStats:
        return SessionStats(
            cache_entries=len(self.local_cache) + len(self.remote_cache),
            total_queries=self.query_count,
            total_cost=self.ledger.total_cost(),
        )

    def clear_all(self) -> None:
        self.local_cache.clear()
        self.remote_cache.clear()
        self.ledger.reset()
        self.query_count = 0
        logger.info("session_cleared")

    async def _answer_from_document(
        self,
        question: str,
        content: str,
        name: str,
        history: Sequence[Message],
    ) -> QueryResponse:
        fragment_set, from_cache = await self._divide_or_cache_hit(content, name)

        try:
            selection = await self.selector.select(question, fragment_set)
        except SelectionFormatError as exc:
            self._record_failure(CostPhase.SELECTION, exc)
            raise

        selected = self.selector.filter_selected(fragment_set, selection.selected_names)
        if not selected.fragments:
            logger.info(
                "no_relevant_fragments",
                document=name,
                requested=selection.selected_names,
            )
            answer = await self._general_answer(question, history)
        else:
            answer = await self._final_answer(question, selected.fragments, history)

        return QueryResponse(
            answer=answer,
            sections_used=[fragment.name for fragment in selected.fragments],
            total_cost=0.0,
            processing_time_ms=0.0,
            from_cache=from_cache,
            missing_sections=selected.missing,
            method=fragment_set.method,
            tokens_saved=self._tokens_saved(fragment_set, selected.fragments),
        )

    async def _divide_or_cache_hit(self, content: str, name: str) -> tuple[FragmentSet, bool]:
        cache = self.cache
        cached = cache.get(name, content)
        if cached is not None:
            return cached, True

        try:
            fragment_set = await self.strategy.divide(content, name)
        except DivisionValidationError as exc:
            self._record_failure(CostPhase.DIVISION, exc)
            raise
        if fragment_set.degraded:
            logger.warning("division_not_cached", document=name, method=fragment_set.method)
        else:
            cache.put(name, content, fragment_set)
        return fragment_set, False

    async def _final_answer(
        self,
        question: str,
        fragments: Sequence[Fragment],
        history: Sequence[Message],
    ) -> str:
        result = await self.transport.invoke(
            build_answer_prompt(question, fragments),
            history,
            operation=self.operation,
            phase=CostPhase.FINAL_ANSWER,
            details=f"Answer from {len(fragments)} sections",
        )
        return result.text

    async def _general_answer(self, question: str, history: Sequence[Message]) -> str:
        result = await self.transport.invoke(
            build_general_prompt(question),
            history,
            operation=self.operation,
            phase=CostPhase.GENERAL_ANSWER,
            details=f"General answer for: {question[:50]}",
        )
        return result.text

    def _tokens_saved(self, fragment_set: FragmentSet, used: Sequence[Fragment]) -> int:
        used_names = {fragment.name for fragment in used}
        return sum(
            self.estimator(fragment.content)
            for fragment in fragment_set
            if fragment.name not in used_names
        )

    def _record_failure(self, phase: CostPhase, exc: Exception) -> None:
        self.ledger.record(self.operation, CostPhase.ERROR, 0, 0, f"{phase.value}: {exc}")
        logger.error(
            "query_failed",
            phase=phase.value,
            error=str(exc),
            error_type=type(exc).__name__,
        )
