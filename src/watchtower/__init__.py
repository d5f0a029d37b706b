"""
Watchtower: a line-delimited JSON-RPC protocol for cloud log sources.

Submodules:
- transport: TCP, subprocess stdio, HTTP and in-process transports
- protocol: message model, server engine, client, connection state
- sources: the Source base and the built-in AWS/GCP sample sources
- integration: multi-source registry, decision makers, orchestration loop
- config: source binding files
"""

# Transport layer
from watchtower.transport import (
    Transport,
    TransportConfig,
    TransportError,
    ConnectionError,
    ConnectionClosed,
    TimeoutError,
    SessionError,
    create_transport,
)

# Protocol layer
from watchtower.protocol import (
    ProtocolClient,
    ProtocolServer,
    ServerSession,
    ProtocolRequest,
    ProtocolResponse,
    OperationDescriptor,
    ParameterDescriptor,
    ParameterType,
    ProtocolError,
    ProtocolViolation,
    ParseError,
    InvalidRequest,
    MethodNotFound,
    InvalidParams,
    InternalError,
    SourceError,
    ConnectionState,
)

# Sources
from watchtower.sources import Source, AWSLogSource, GCPLogSource, BUILTIN_SOURCES

# Integration
from watchtower.config import SourceBinding, load_source_config
from watchtower.integration import (
    SourceRegistry,
    RegistryConfig,
    FunctionCall,
    FunctionResult,
    RegistryError,
    InvalidFunctionFormat,
    UnknownSource,
    UnknownFunction,
    RegistryConnectError,
    Decision,
    DecisionMaker,
    ChatCompletionDecisionMaker,
    ScriptedDecisionMaker,
    OrchestrationResult,
    OrchestrationStatus,
    Orchestrator,
)

__version__ = "0.1.0"

__all__ = [
    # Transport
    "Transport",
    "TransportConfig",
    "TransportError",
    "ConnectionError",
    "ConnectionClosed",
    "TimeoutError",
    "SessionError",
    "create_transport",
    # Protocol
    "ProtocolClient",
    "ProtocolServer",
    "ServerSession",
    "ProtocolRequest",
    "ProtocolResponse",
    "OperationDescriptor",
    "ParameterDescriptor",
    "ParameterType",
    "ProtocolError",
    "ProtocolViolation",
    "ParseError",
    "InvalidRequest",
    "MethodNotFound",
    "InvalidParams",
    "InternalError",
    "SourceError",
    "ConnectionState",
    # Sources
    "Source",
    "AWSLogSource",
    "GCPLogSource",
    "BUILTIN_SOURCES",
    # Config
    "SourceBinding",
    "load_source_config",
    # Integration
    "SourceRegistry",
    "RegistryConfig",
    "FunctionCall",
    "FunctionResult",
    "RegistryError",
    "InvalidFunctionFormat",
    "UnknownSource",
    "UnknownFunction",
    "RegistryConnectError",
    "Decision",
    "DecisionMaker",
    "ChatCompletionDecisionMaker",
    "ScriptedDecisionMaker",
    "OrchestrationResult",
    "OrchestrationStatus",
    "Orchestrator",
]
