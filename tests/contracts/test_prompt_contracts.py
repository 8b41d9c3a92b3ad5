from docquery.agent.prompts import (
    DIVISION_PROMPT,
    SELECTION_PROMPT,
    build_answer_prompt,
    build_division_prompt,
    build_selection_prompt,
)
from docquery.types import Fragment, FragmentSet


def _fragment_set() -> FragmentSet:
    fragments = (
        Fragment(name="Part 1", content="Full text of part one.", summary="[Content] Part one", index=0),
        Fragment(name="Part 2", content="Full text of part two.", summary="[Content] Part two", index=1),
    )
    return FragmentSet(fragments=fragments, method="test", created_at=0.0, source_length=44)


def test_division_prompt_requests_json_fragments() -> None:
    assert '"fragments"' in DIVISION_PROMPT
    assert "at most 20 divisions" in DIVISION_PROMPT
    assert build_division_prompt("BODY").endswith("DOCUMENT:\nBODY")


def test_selection_prompt_lists_summaries_only() -> None:
    prompt = build_selection_prompt("What is in part two?", _fragment_set())

    assert '1. "Part 1": [Content] Part one' in prompt
    assert '2. "Part 2": [Content] Part two' in prompt
    assert "Full text of part" not in prompt
    assert '"selected_names"' in SELECTION_PROMPT


def test_answer_prompt_labels_each_section_in_order() -> None:
    prompt = build_answer_prompt("What is in part two?", list(_fragment_set()))

    assert prompt.index("=== Part 1 ===\nFull text of part one.") < prompt.index(
        "=== Part 2 ===\nFull text of part two."
    )
    assert "Cite the section names" in prompt
