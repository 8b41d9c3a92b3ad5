"""DocQuery package."""

from .agent.orchestrator import QueryOrchestrator
from .config import ChunkingConfig, OrchestratorConfig
from .types import Fragment, FragmentSet, Message, QueryResponse

__all__ = [
    "ChunkingConfig",
    "Fragment",
    "FragmentSet",
    "Message",
    "OrchestratorConfig",
    "QueryOrchestrator",
    "QueryResponse",
]
