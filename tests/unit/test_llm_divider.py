import asyncio
import json

import pytest

from docquery.agent.transport import MeteredTransport
from docquery.config import ChunkingConfig
from docquery.errors import DivisionValidationError
from docquery.ingest.divider import LLMDivider
from docquery.obs.ledger import CostLedger
from docquery.types import CostPhase


def _divider(transport, config: ChunkingConfig | None = None):
    ledger = CostLedger()
    return LLMDivider(MeteredTransport(transport, ledger), config, clock=lambda: 5.0), ledger


def test_division_sends_whole_document_and_builds_fragments(scripted) -> None:
    reply = json.dumps(
        {
            "fragments": [
                {"name": "Scope", "content": "Applies to all staff.", "summary": "Who is covered"},
                {"name": "Leave", "content": "Staff must request leave early."},
            ],
            "method": "by topic",
        }
    )
    transport = scripted(reply)
    divider, ledger = _divider(transport)
    document = "Applies to all staff.\n\nStaff must request leave early."

    fragment_set = asyncio.run(divider.divide(document, "policy.txt"))

    assert document in transport.prompts[0]
    assert fragment_set.names() == ["Scope", "Leave"]
    assert fragment_set.method == "by topic"
    assert fragment_set.source_length == len(document)
    assert fragment_set.fragments[0].summary == "Who is covered"
    assert fragment_set.fragments[1].summary.startswith("[Obligations]")
    assert ledger.records()[0].phase is CostPhase.DIVISION
    assert divider.remote is True


def test_missing_names_are_defaulted_and_duplicates_disambiguated(scripted) -> None:
    reply = json.dumps(
        {
            "fragments": [
                {"name": "Rules", "content": "a"},
                {"name": "Rules", "content": "b"},
                {"content": "c"},
                "not a fragment",
            ]
        }
    )
    divider, _ = _divider(scripted(reply))

    fragment_set = asyncio.run(divider.divide("abc", "doc"))

    assert fragment_set.names() == ["Rules", "Rules (2)", "Part 3"]
    assert [fragment.index for fragment in fragment_set] == [0, 1, 2]
    assert fragment_set.method == "LLM division"


def test_fragment_count_is_capped(scripted) -> None:
    reply = json.dumps({"fragments": [{"name": f"S{i}", "content": str(i)} for i in range(30)]})
    divider, _ = _divider(scripted(reply), ChunkingConfig(target_fragments=20))

    assert len(asyncio.run(divider.divide("doc", "doc"))) == 20


@pytest.mark.parametrize("reply", ['{"method": "none"}', '{"fragments": []}', '{"fragments": "x"}'])
def test_response_without_usable_fragments_is_rejected(scripted, reply: str) -> None:
    divider, _ = _divider(scripted(reply))

    with pytest.raises(DivisionValidationError):
        asyncio.run(divider.divide("doc", "doc"))


def test_undecodable_response_degrades_to_single_fragment(scripted) -> None:
    divider, _ = _divider(scripted("The model returned prose instead of JSON."))
    document = "Staff must request leave ten days in advance."

    fragment_set = asyncio.run(divider.divide(document, "doc"))

    assert fragment_set.names() == ["Full document"]
    assert fragment_set.fragments[0].content == document
    assert fragment_set.degraded is True
    assert fragment_set.method.startswith("fallback")
