"""LLM transport contract, LangChain adapter, and cost metering."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

from docquery.errors import TransportError
from docquery.obs.ledger import CharRatioEstimator, CostLedger, TokenEstimator
from docquery.obs.logging import get_logger
from docquery.types import CostPhase, CostRecord, Message

logger = get_logger(__name__)


class LLMTransport(Protocol):
    """Sends one prompt, after an optional history, and returns the reply text."""

    async def invoke(self, prompt: str, history: Sequence[Message]) -> str:
        """May raise `TransportError`."""


class ChatModelTransport:
    """Adapts any LangChain chat model (`ainvoke` on a message list)."""

    def __init__(self, llm: Any) -> None:
        self.llm = llm

    async def invoke(self, prompt: str, history: Sequence[Message]) -> str:
        messages = to_langchain_messages(history)
        messages.append(HumanMessage(content=prompt))
        try:
            result = await self.llm.ainvoke(messages)
        except Exception as exc:
            raise TransportError(f"LLM call failed: {exc}") from exc
        return _message_text(result)


class UnconfiguredTransport:
    """Stands in when no model credentials exist; every call fails."""

    async def invoke(self, prompt: str, history: Sequence[Message]) -> str:
        raise TransportError("No LLM transport is configured (set OPENAI_API_KEY).")


@dataclass(slots=True, frozen=True)
class TransportResult:
    text: str
    record: CostRecord


class MeteredTransport:
    """Wraps a transport so every call, successful or not, lands in the ledger.

    Failures are recorded as zero-token `ERROR` entries and re-raised unchanged.
    """

    def __init__(
        self,
        transport: LLMTransport,
        ledger: CostLedger,
        *,
        estimator: TokenEstimator | None = None,
    ) -> None:
        self.transport = transport
        self.ledger = ledger
        self.estimator = estimator or CharRatioEstimator()

    async def invoke(
        self,
        prompt: str,
        history: Sequence[Message] = (),
        *,
        operation: str,
        phase: CostPhase,
        details: str = "",
    ) -> TransportResult:
        input_tokens = self.estimator(prompt) + sum(self.estimator(m.text) for m in history)
        try:
            text = await self.transport.invoke(prompt, list(history))
        except Exception as exc:
            self.ledger.record(operation, CostPhase.ERROR, 0, 0, f"{phase.value}: {exc}")
            logger.error(
                "transport_failed",
                operation=operation,
                phase=phase.value,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise
        record = self.ledger.record(
            operation, phase, input_tokens, self.estimator(text), details
        )
        logger.info(
            "transport_call",
            operation=operation,
            phase=phase.value,
            input_tokens=record.input_tokens,
            output_tokens=record.output_tokens,
            cost=record.cost,
        )
        return TransportResult(text=text, record=record)


def to_langchain_messages(history: Sequence[Message]) -> list[BaseMessage]:
    messages: list[BaseMessage] = []
    for message in history:
        if message.author == "assistant":
            messages.append(AIMessage(content=message.text))
        else:
            messages.append(HumanMessage(content=message.text))
    return messages


def _message_text(result: Any) -> str:
    content = getattr(result, "content", result)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return " ".join(parts).strip()
    return str(content)
