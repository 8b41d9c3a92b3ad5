"""FastAPI entrypoint for document/query/cost endpoints."""

from __future__ import annotations

import os
from dataclasses import asdict
from typing import Any, Literal

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from docquery.agent.orchestrator import QueryOrchestrator
from docquery.agent.transport import ChatModelTransport, LLMTransport, UnconfiguredTransport
from docquery.config import OrchestratorConfig
from docquery.errors import DocQueryError, TransportError
from docquery.obs.logging import configure_logging, get_logger
from docquery.types import Message

logger = get_logger(__name__)


def _create_transport() -> LLMTransport:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        return UnconfiguredTransport()

    from langchain_openai import ChatOpenAI

    return ChatModelTransport(
        ChatOpenAI(model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"), temperature=0)
    )


def _create_orchestrator() -> QueryOrchestrator:
    mode = os.getenv("DOCQUERY_DIVISION_MODE", "local")
    config = OrchestratorConfig(division_mode=mode)
    return QueryOrchestrator(_create_transport(), config=config)


class DocumentRequest(BaseModel):
    name: str = Field(min_length=1)
    content: str = Field(min_length=1)


class HistoryMessage(BaseModel):
    author: Literal["user", "assistant"]
    text: str


class QueryRequest(BaseModel):
    question: str = Field(min_length=1)
    document_content: str | None = None
    document_name: str | None = None
    history: list[HistoryMessage] = Field(default_factory=list)


def create_app(orchestrator: QueryOrchestrator | None = None) -> FastAPI:
    configure_logging(os.getenv("DOCQUERY_LOG_LEVEL", "INFO"))
    session = orchestrator or _create_orchestrator()
    api = FastAPI(title="DocQuery", version="0.1.0")

    @api.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "llm_configured": not isinstance(session.transport.transport, UnconfiguredTransport),
            "division_mode": "remote" if session.strategy.remote else "local",
            "cache_entries": session.get_stats().cache_entries,
        }

    @api.post("/documents")
    async def preprocess(request: DocumentRequest) -> dict[str, Any]:
        ready = await session.preprocess_document(request.content, request.name)
        return {"ready": ready, "cache_entries": session.get_stats().cache_entries}

    @api.post("/query")
    async def query(request: QueryRequest) -> dict[str, Any]:
        history = [Message(author=item.author, text=item.text) for item in request.history]
        try:
            response = await session.answer_query(
                request.question,
                document_content=request.document_content,
                document_name=request.document_name,
                history=history,
            )
        except TransportError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        except DocQueryError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return asdict(response)

    @api.get("/stats")
    def stats() -> dict[str, Any]:
        ledger = session.ledger
        return {
            **asdict(session.get_stats()),
            "by_phase": {key: asdict(value) for key, value in ledger.breakdown_by_phase().items()},
            "by_operation": {
                key: asdict(value) for key, value in ledger.breakdown_by_operation().items()
            },
            "budget": ledger.budget_status(),
        }

    @api.get("/costs")
    def costs(limit: int = 20) -> dict[str, Any]:
        return {
            "summary": session.ledger.summary(),
            "items": [asdict(record) for record in session.ledger.recent(limit)],
        }

    @api.post("/reset")
    def reset() -> dict[str, Any]:
        session.clear_all()
        return asdict(session.get_stats())

    return api


app = create_app()
