"""Relevance selection: ask the model which fragments a question needs."""

from __future__ import annotations

from collections.abc import Iterable

from docquery.agent.decoder import SELECTION_KEYS, DecodeShape, decode_strict
from docquery.agent.prompts import build_selection_prompt
from docquery.agent.transport import MeteredTransport
from docquery.errors import DecodeError, SelectionFormatError
from docquery.obs.logging import get_logger
from docquery.types import CostPhase, FragmentFilter, FragmentSet, SelectionResult

logger = get_logger(__name__)


class RelevanceSelector:
    """Sends the question plus fragment summaries (never contents) to the model.

    The selection prompt is the token-economy boundary: full fragment text is
    only transmitted later, and only for fragments named here.
    """

    operation = "RelevanceSelector"

    def __init__(self, transport: MeteredTransport) -> None:
        self.transport = transport

    async def select(self, question: str, fragment_set: FragmentSet) -> SelectionResult:
        prompt = build_selection_prompt(question, fragment_set)
        response = await self.transport.invoke(
            prompt,
            [],
            operation=self.operation,
            phase=CostPhase.SELECTION,
            details=f"Selection for: {question[:50]}",
        )

        try:
            decoded = decode_strict(response.text, DecodeShape.SELECTION)
        except DecodeError as exc:
            raise SelectionFormatError(f"Selection response is not decodable: {exc}") from exc
        raw_names = next(
            (decoded.data[key] for key in SELECTION_KEYS if key in decoded.data),
            None,
        )
        if not isinstance(raw_names, list):
            raise SelectionFormatError(
                f"Selection response has no list of fragment names: {response.text[:200]!r}"
            )

        names = [name for name in raw_names if isinstance(name, str)]
        reasoning = decoded.data.get("reasoning")
        result = SelectionResult(
            selected_names=names,
            reasoning=reasoning if isinstance(reasoning, str) else "",
            cost=response.record,
        )
        logger.info(
            "selection_completed",
            selected=len(names),
            available=len(fragment_set),
            decode_tier=decoded.tier.value,
            names=names,
        )
        return result

    @staticmethod
    def filter_selected(fragment_set: FragmentSet, names: Iterable[str]) -> FragmentFilter:
        """Exact-name filter preserving document order.

        Requested names that match no fragment are reported in `missing`
        rather than raised; the model sometimes echoes a near-miss name.
        """

        requested = list(dict.fromkeys(names))
        wanted = set(requested)
        fragments = [fragment for fragment in fragment_set if fragment.name in wanted]
        found = {fragment.name for fragment in fragments}
        missing = [name for name in requested if name not in found]
        if missing:
            logger.warning(
                "selection_names_missing",
                missing=missing,
                available=fragment_set.names(),
            )
        return FragmentFilter(fragments=fragments, missing=missing)
