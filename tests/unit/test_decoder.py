import pytest

from docquery.agent.decoder import (
    FALLBACK_FRAGMENT_NAME,
    DecodeShape,
    DecodeTier,
    decode,
    decode_strict,
    repair_json,
)
from docquery.errors import DecodeError


def test_fenced_json_decodes_directly() -> None:
    text = '```json\n{"fragments": [{"name": "Intro", "content": "Hello", "summary": "Greeting"}], "method": "by topic"}\n```'

    result = decode(text, DecodeShape.FRAGMENTS)

    assert result.tier is DecodeTier.DIRECT
    assert result.data["fragments"][0]["name"] == "Intro"
    assert result.data["method"] == "by topic"


def test_truncated_json_is_repaired() -> None:
    text = '{"fragments": [{"name": "Intro", "content": "The document beg'

    result = decode(text, DecodeShape.FRAGMENTS)

    assert result.tier is DecodeTier.REPAIRED
    assert result.data["fragments"] == [{"name": "Intro", "content": "The document beg"}]


def test_trailing_prose_after_object_is_ignored() -> None:
    text = 'Here you go: {"selected_names": ["Part 2"], "reasoning": "dates"} Hope this helps!'

    result = decode(text, DecodeShape.SELECTION)

    assert result.tier is DecodeTier.REPAIRED
    assert result.data["selected_names"] == ["Part 2"]


def test_unparseable_fragments_are_extracted_by_field() -> None:
    text = (
        'fragments: "name": "Scope", "content": "Applies to staff", "summary": "Who" ;; '
        '"name": "Leave", "content": "Ten days"'
    )

    result = decode(text, DecodeShape.FRAGMENTS)

    assert result.tier is DecodeTier.EXTRACTED
    assert result.data["fragments"] == [
        {"name": "Scope", "content": "Applies to staff", "summary": "Who"},
        {"name": "Leave", "content": "Ten days"},
    ]
    assert result.data["method"] == "partial extraction from malformed response"


def test_selection_accepts_bare_list_and_camel_case_alias() -> None:
    assert decode('["Part 1", "Part 3"]', DecodeShape.SELECTION).data["selected_names"] == [
        "Part 1",
        "Part 3",
    ]

    result = decode('{"selectedNames": ["Part 2", "Part 5"', DecodeShape.SELECTION)
    assert result.tier is DecodeTier.REPAIRED
    assert result.data["selectedNames"] == ["Part 2", "Part 5"]


def test_garbage_falls_back_without_raising() -> None:
    fragments = decode("I could not do that.", DecodeShape.FRAGMENTS)
    selection = decode("I could not do that.", DecodeShape.SELECTION)

    assert fragments.degraded
    assert fragments.data["fragments"][0]["name"] == FALLBACK_FRAGMENT_NAME
    assert selection.degraded
    assert selection.data["selected_names"] == []


def test_decode_is_pure() -> None:
    text = '{"fragments": [{"name": "A", "content": "x'

    assert decode(text, DecodeShape.FRAGMENTS) == decode(text, DecodeShape.FRAGMENTS)


def test_decode_strict_raises_when_every_tier_fails() -> None:
    with pytest.raises(DecodeError):
        decode_strict("no structure at all", DecodeShape.SELECTION)


def test_repair_json_closes_dangling_key() -> None:
    assert repair_json('{"a": [1, 2], "b":') == '{"a": [1, 2], "b": null}'
    assert repair_json("no braces") is None


def test_fences_inside_string_values_are_preserved() -> None:
    text = '```json\n{"fragments": [{"name": "Build", "content": "Run ```make``` first"}]}\n```'

    result = decode(text, DecodeShape.FRAGMENTS)

    assert result.tier is DecodeTier.DIRECT
    assert result.data["fragments"][0]["content"] == "Run ```make``` first"
