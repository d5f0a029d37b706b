"""JSON-RPC 2.0 message types and line framing for the source protocol."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from watchtower.lib import oj
from watchtower.protocol.errors import ProtocolError, ProtocolViolation

JSONRPC_VERSION = "2.0"


class Method(str, Enum):
    """The fixed method set."""

    INITIALIZE = "initialize"
    DISCOVER = "discover"
    EXECUTE = "execute"

    def __str__(self) -> str:
        return self.value


class ParameterType(str, Enum):
    """Declared operation parameter types."""

    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"

    def accepts(self, value: Any) -> bool:
        """Check a JSON value against this type."""
        if self is ParameterType.BOOLEAN:
            return isinstance(value, bool)
        if self is ParameterType.INTEGER:
            return isinstance(value, int) and not isinstance(value, bool)
        return isinstance(value, str)


def new_request_id() -> str:
    return str(uuid.uuid4())


@dataclass
class ProtocolRequest:
    """
    Request message.

    Every request expects exactly one response carrying the same id.
    """

    method: str
    params: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=new_request_id)
    jsonrpc: str = field(default=JSONRPC_VERSION, init=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "jsonrpc": self.jsonrpc,
            "method": str(self.method),
            "params": self.params,
            "id": self.id,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ProtocolRequest":
        """
        Validate and build a request from a decoded JSON value.

        Raises:
            ProtocolError: InvalidRequest or InvalidParams describing the defect.
        """
        if not isinstance(data, dict):
            raise ProtocolError.invalid_request("Request must be a JSON object")
        if data.get("jsonrpc") != JSONRPC_VERSION:
            raise ProtocolError.invalid_request("Invalid JSON-RPC version")
        request_id = data.get("id")
        if not isinstance(request_id, (str, int)) or isinstance(request_id, bool):
            raise ProtocolError.invalid_request("Request id must be a string")
        method = data.get("method")
        if not isinstance(method, str):
            raise ProtocolError.invalid_request("Request method must be a string")
        params = data.get("params")
        if params is None:
            params = {}
        elif not isinstance(params, dict):
            raise ProtocolError.invalid_params("params must be an object")
        return cls(method=method, params=params, id=request_id)

    def __str__(self) -> str:
        return f"Request({self.method}, id={self.id})"


@dataclass
class ProtocolResponse:
    """
    Response message.

    Either result or error must be present, but not both. Violations raise
    at construction so a malformed response never reaches the wire.
    """

    id: str | int | None
    result: Any = None
    error: ProtocolError | None = None
    jsonrpc: str = field(default=JSONRPC_VERSION, init=False)

    def __post_init__(self) -> None:
        if (self.result is None) == (self.error is None):
            raise ValueError(
                "ProtocolResponse needs exactly one of result or error"
            )

    @property
    def is_error(self) -> bool:
        """Check if this is an error response."""
        return self.error is not None

    @property
    def is_success(self) -> bool:
        """Check if this is a success response."""
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        msg: dict[str, Any] = {"jsonrpc": self.jsonrpc}
        if self.error is not None:
            msg["error"] = self.error.to_dict()
        else:
            msg["result"] = self.result
        msg["id"] = self.id
        return msg

    @classmethod
    def from_dict(cls, data: Any) -> "ProtocolResponse":
        """
        Validate and build a response from a decoded JSON value.

        Raises:
            ProtocolViolation: If the envelope is malformed.
        """
        if not isinstance(data, dict):
            raise ProtocolViolation.invalid_envelope("not a JSON object")
        if data.get("jsonrpc") != JSONRPC_VERSION:
            raise ProtocolViolation.invalid_envelope("missing or wrong jsonrpc version")
        if "id" not in data:
            raise ProtocolViolation.invalid_envelope("missing id")

        has_result = data.get("result") is not None
        has_error = data.get("error") is not None
        if has_result == has_error:
            raise ProtocolViolation.invalid_envelope(
                "exactly one of result or error is required"
            )

        if has_error:
            error = data["error"]
            if not isinstance(error, dict) or not isinstance(error.get("code"), int):
                raise ProtocolViolation.invalid_envelope("error object needs an integer code")
            return cls(id=data["id"], error=ProtocolError.from_dict(error))
        return cls(id=data["id"], result=data["result"])

    @classmethod
    def success(cls, id: str | int | None, result: Any) -> "ProtocolResponse":
        """Create a success response."""
        return cls(id=id, result=result)

    @classmethod
    def failure(cls, id: str | int | None, error: ProtocolError) -> "ProtocolResponse":
        """Create an error response."""
        return cls(id=id, error=error)

    def __str__(self) -> str:
        if self.is_error:
            return f"Response(id={self.id}, error={self.error.code})"
        return f"Response(id={self.id}, success)"


@dataclass
class ParameterDescriptor:
    """One declared parameter of an operation."""

    name: str
    type: ParameterType
    description: str = ""
    required: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.value,
            "description": self.description,
            "required": self.required,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ParameterDescriptor":
        return cls(
            name=data["name"],
            type=ParameterType(data.get("type", "string")),
            description=data.get("description", ""),
            required=bool(data.get("required", True)),
        )


@dataclass
class OperationDescriptor:
    """An operation as advertised by discover."""

    name: str
    description: str = ""
    parameters: list[ParameterDescriptor] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": [p.to_dict() for p in self.parameters],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OperationDescriptor":
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            parameters=[
                ParameterDescriptor.from_dict(p) for p in data.get("parameters", [])
            ],
        )

    def namespaced(self, source: str) -> "OperationDescriptor":
        """Copy renamed to ``<source>.<name>`` with the source credited."""
        return replace(
            self,
            name=f"{source}.{self.name}",
            description=f"{self.description} (via {source})",
            parameters=list(self.parameters),
        )

    def validate_arguments(self, arguments: dict[str, Any]) -> list[str]:
        """
        Check arguments against the declared parameters.

        Undeclared arguments are ignored.

        Returns:
            Human readable problems, empty when the arguments are acceptable.
        """
        problems: list[str] = []
        for param in self.parameters:
            if param.name not in arguments or arguments[param.name] is None:
                if param.required:
                    problems.append(f"missing required parameter '{param.name}'")
                continue
            if not param.type.accepts(arguments[param.name]):
                problems.append(
                    f"parameter '{param.name}' must be of type {param.type.value}"
                )
        return problems

    def to_tool_schema(self, name: str | None = None) -> dict[str, Any]:
        """
        Convert to OpenAI/Anthropic function calling format.

        Args:
            name: Override for the function name (tool names cannot contain dots).
        """
        return {
            "type": "function",
            "function": {
                "name": name or self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {
                        p.name: {"type": p.type.value, "description": p.description}
                        for p in self.parameters
                    },
                    "required": [p.name for p in self.parameters if p.required],
                },
            },
        }


def encode_message(message: ProtocolRequest | ProtocolResponse) -> bytes:
    """Frame a message as one newline-terminated JSON line."""
    return oj.dumps_line(message.to_dict())


def decode_request(line: bytes | str) -> ProtocolRequest:
    """
    Parse one request line.

    Raises:
        ProtocolError: ParseError for invalid JSON, otherwise the envelope defect.
    """
    try:
        data = oj.loads(line)
    except oj.JSONDecodeError as e:
        raise ProtocolError.parse_error(str(e))
    return ProtocolRequest.from_dict(data)


def decode_response(line: bytes | str) -> ProtocolResponse:
    """
    Parse one response line.

    Raises:
        ProtocolViolation: If the line is not a well-formed response.
    """
    try:
        data = oj.loads(line)
    except oj.JSONDecodeError as e:
        raise ProtocolViolation.malformed(str(e))
    return ProtocolResponse.from_dict(data)


def peek_request_id(line: bytes | str) -> str | int | None:
    """Best-effort id extraction for error responses to malformed requests."""
    try:
        data = oj.loads(line)
    except oj.JSONDecodeError:
        return None
    if isinstance(data, dict):
        request_id = data.get("id")
        if isinstance(request_id, (str, int)) and not isinstance(request_id, bool):
            return request_id
    return None
