"""Protocol error types and error codes."""

from dataclasses import dataclass
from typing import Any

# Standard JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# Codes below this value belong to the individual sources
SOURCE_ERROR_CEILING = -32000

ERROR_MESSAGES = {
    PARSE_ERROR: "Parse error",
    INVALID_REQUEST: "Invalid Request",
    METHOD_NOT_FOUND: "Method not found",
    INVALID_PARAMS: "Invalid params",
    INTERNAL_ERROR: "Internal error",
}


def is_source_code(code: int) -> bool:
    """Check whether a code lies in the source-defined range."""
    return code < SOURCE_ERROR_CEILING and code not in ERROR_MESSAGES


@dataclass
class ProtocolError(Exception):
    """
    Protocol error.

    Doubles as the wire error object and as the exception the client raises
    when a response carries an error. ``from_dict`` picks the subclass that
    matches the code so callers can catch by kind.
    """

    code: int
    message: str
    data: Any = None

    def __post_init__(self):
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-RPC error object."""
        error: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.data is not None:
            error["data"] = self.data
        return error

    @classmethod
    def from_dict(cls, error: dict[str, Any]) -> "ProtocolError":
        """Create the typed error for a JSON-RPC error object."""
        code = error.get("code", INTERNAL_ERROR)
        error_cls = error_class_for(code)
        return error_cls(
            code=code,
            message=error.get("message", "Unknown error"),
            data=error.get("data"),
        )

    @classmethod
    def parse_error(cls, details: str | None = None) -> "ProtocolError":
        """Create a parse error."""
        return ParseError(
            code=PARSE_ERROR,
            message=ERROR_MESSAGES[PARSE_ERROR],
            data={"details": details} if details else None,
        )

    @classmethod
    def invalid_request(cls, details: str | None = None) -> "ProtocolError":
        """Create an invalid request error."""
        return InvalidRequest(
            code=INVALID_REQUEST,
            message=details or ERROR_MESSAGES[INVALID_REQUEST],
        )

    @classmethod
    def method_not_found(cls, method: str) -> "ProtocolError":
        """Create a method not found error."""
        return MethodNotFound(
            code=METHOD_NOT_FOUND,
            message=f"Method not found: {method}",
            data={"method": method},
        )

    @classmethod
    def invalid_params(
        cls,
        details: str | None = None,
        data: Any = None,
    ) -> "ProtocolError":
        """Create an invalid params error."""
        return InvalidParams(
            code=INVALID_PARAMS,
            message=details or ERROR_MESSAGES[INVALID_PARAMS],
            data=data,
        )

    @classmethod
    def internal_error(cls, details: str | None = None) -> "ProtocolError":
        """Create an internal error."""
        return InternalError(
            code=INTERNAL_ERROR,
            message=details or ERROR_MESSAGES[INTERNAL_ERROR],
        )

    def __str__(self) -> str:
        base = f"{type(self).__name__}({self.code}): {self.message}"
        if self.data:
            base += f" {self.data}"
        return base

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code}, "
            f"message={self.message!r}, data={self.data})"
        )


class ParseError(ProtocolError):
    """The peer sent something that is not JSON."""


class InvalidRequest(ProtocolError):
    """Malformed envelope, or a method called in the wrong connection state."""


class MethodNotFound(ProtocolError):
    """Method outside initialize/discover/execute."""


class InvalidParams(ProtocolError):
    """Bad params, unknown operation, or arguments that fail validation."""


class InternalError(ProtocolError):
    """The source failed while initializing or executing."""


class SourceError(ProtocolError):
    """Source-defined error (code below -32000)."""

    @classmethod
    def create(cls, code: int, message: str, data: Any = None) -> "SourceError":
        if not is_source_code(code):
            raise ValueError(
                f"Source error codes must be below {SOURCE_ERROR_CEILING}, got {code}"
            )
        return cls(code=code, message=message, data=data)


class ProtocolViolation(ProtocolError):
    """
    The peer broke the envelope contract.

    Raised client-side for unparseable response lines, missing envelope
    fields, and responses whose id does not match the outstanding request.
    """

    @classmethod
    def malformed(cls, details: str) -> "ProtocolViolation":
        return cls(code=PARSE_ERROR, message=f"Malformed response: {details}")

    @classmethod
    def invalid_envelope(cls, details: str) -> "ProtocolViolation":
        return cls(code=INVALID_REQUEST, message=f"Invalid response envelope: {details}")

    @classmethod
    def id_mismatch(cls, expected: str, received: Any) -> "ProtocolViolation":
        return cls(
            code=INVALID_REQUEST,
            message=f"Response id {received!r} does not match request id {expected!r}",
            data={"expected": expected, "received": received},
        )


_ERROR_CLASSES: dict[int, type[ProtocolError]] = {
    PARSE_ERROR: ParseError,
    INVALID_REQUEST: InvalidRequest,
    METHOD_NOT_FOUND: MethodNotFound,
    INVALID_PARAMS: InvalidParams,
    INTERNAL_ERROR: InternalError,
}


def error_class_for(code: int) -> type[ProtocolError]:
    """Map an error code to its exception class."""
    if code in _ERROR_CLASSES:
        return _ERROR_CLASSES[code]
    if isinstance(code, int) and is_source_code(code):
        return SourceError
    return ProtocolError
