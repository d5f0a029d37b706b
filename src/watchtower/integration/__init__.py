"""
Multi-source integration.

Binds many sources behind namespaced function names and drives the
decide/execute orchestration loop over them.
"""

from watchtower.integration.source_registry import (
    SourceRegistry,
    RegistryConfig,
    FunctionCall,
    FunctionResult,
    RegistryError,
    InvalidFunctionFormat,
    UnknownSource,
    UnknownFunction,
    RegistryConnectError,
    split_function_name,
)
from watchtower.integration.llm_adapter import (
    LLMInterface,
    DedalusLLMAdapter,
    MockLLMAdapter,
)
from watchtower.integration.decision import (
    Decision,
    DecisionMaker,
    ChatCompletionDecisionMaker,
    ScriptedDecisionMaker,
)
from watchtower.integration.orchestrator import (
    ConversationEntry,
    UserEntry,
    AssistantEntry,
    FunctionOutcomeEntry,
    OrchestrationStatus,
    OrchestrationResult,
    Orchestrator,
)

__all__ = [
    # Registry
    "SourceRegistry",
    "RegistryConfig",
    "FunctionCall",
    "FunctionResult",
    "RegistryError",
    "InvalidFunctionFormat",
    "UnknownSource",
    "UnknownFunction",
    "RegistryConnectError",
    "split_function_name",
    # LLM
    "LLMInterface",
    "DedalusLLMAdapter",
    "MockLLMAdapter",
    # Decisions
    "Decision",
    "DecisionMaker",
    "ChatCompletionDecisionMaker",
    "ScriptedDecisionMaker",
    # Orchestration
    "ConversationEntry",
    "UserEntry",
    "AssistantEntry",
    "FunctionOutcomeEntry",
    "OrchestrationStatus",
    "OrchestrationResult",
    "Orchestrator",
]
