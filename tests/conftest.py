from __future__ import annotations

from collections.abc import Callable, Sequence

import pytest

from docquery.types import Message


class ScriptedTransport:
    """Replays queued replies in order and records every prompt it receives.

    A queued item may be a reply string, an exception to raise, or a callable
    that receives the prompt and returns the reply.
    """

    def __init__(self, responses: Sequence[object] = ()) -> None:
        self.responses = list(responses)
        self.calls: list[tuple[str, list[Message]]] = []

    async def invoke(self, prompt: str, history: Sequence[Message]) -> str:
        self.calls.append((prompt, list(history)))
        if not self.responses:
            raise AssertionError(f"unexpected transport call: {prompt[:80]!r}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(prompt)
        return str(response)

    @property
    def prompts(self) -> list[str]:
        return [prompt for prompt, _ in self.calls]


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def scripted() -> Callable[..., ScriptedTransport]:
    def factory(*responses: object) -> ScriptedTransport:
        return ScriptedTransport(responses)

    return factory


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def report_text() -> str:
    """Sixty numbered lines with no headings or blank-line paragraphs."""
    lines = [
        f"Line {i:03d}: the quarterly maintenance report lists inspection item {i:03d}."
        for i in range(1, 61)
    ]
    return "\n".join(lines)
