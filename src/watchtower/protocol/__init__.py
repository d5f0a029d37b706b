"""
Source Protocol Core.

Implements JSON-RPC 2.0 line framing, the initialize/discover/execute
lifecycle on both ends, request/response correlation, and the connection
state machine.
"""

from watchtower.protocol.messages import (
    Method,
    ParameterType,
    ProtocolRequest,
    ProtocolResponse,
    ParameterDescriptor,
    OperationDescriptor,
    encode_message,
    decode_request,
    decode_response,
)
from watchtower.protocol.errors import (
    ProtocolError,
    ProtocolViolation,
    ParseError,
    InvalidRequest,
    MethodNotFound,
    InvalidParams,
    InternalError,
    SourceError,
    PARSE_ERROR,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    INVALID_PARAMS,
    INTERNAL_ERROR,
)
from watchtower.protocol.state import (
    ConnectionState,
    ConnectionStateMachine,
    InvalidStateTransition,
)
from watchtower.protocol.client import ProtocolClient
from watchtower.protocol.server import ProtocolServer, ServerSession

__all__ = [
    # Messages
    "Method",
    "ParameterType",
    "ProtocolRequest",
    "ProtocolResponse",
    "ParameterDescriptor",
    "OperationDescriptor",
    "encode_message",
    "decode_request",
    "decode_response",
    # Errors
    "ProtocolError",
    "ProtocolViolation",
    "ParseError",
    "InvalidRequest",
    "MethodNotFound",
    "InvalidParams",
    "InternalError",
    "SourceError",
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMS",
    "INTERNAL_ERROR",
    # State
    "ConnectionState",
    "ConnectionStateMachine",
    "InvalidStateTransition",
    # Endpoints
    "ProtocolClient",
    "ProtocolServer",
    "ServerSession",
]
