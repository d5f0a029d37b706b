"""Source base class: a provider of named operations behind the protocol."""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from watchtower.protocol.messages import OperationDescriptor

logger = logging.getLogger(__name__)

# Handlers take the argument mapping and return a JSON-serializable result
OperationHandler = Callable[[dict[str, Any]], Any | Awaitable[Any]]


@dataclass
class Operation:
    """A registered operation: what discover advertises plus what execute runs."""

    descriptor: OperationDescriptor
    handler: OperationHandler

    @property
    def name(self) -> str:
        return self.descriptor.name


class Source(ABC):
    """
    Base class for anything a ProtocolServer can expose.

    Subclasses register their operations once in ``__init__`` via
    ``register()``; discover lists them in registration order and execute
    dispatches through the same map.
    """

    provider: str = "unknown"

    def __init__(self):
        self._operations: dict[str, Operation] = {}

    def register(
        self,
        descriptor: OperationDescriptor,
        handler: OperationHandler,
    ) -> None:
        """
        Register an operation handler.

        Args:
            descriptor: The advertised shape of the operation.
            handler: Sync or async callable receiving the argument mapping.
        """
        if descriptor.name in self._operations:
            raise ValueError(f"Operation already registered: {descriptor.name}")
        self._operations[descriptor.name] = Operation(descriptor, handler)

    @abstractmethod
    def initialize(self, config: dict[str, str]) -> None:
        """
        Prepare the source using an opaque config/credentials mapping.

        Raise to signal failure; the message is reported to the caller.
        """

    def capabilities(self) -> list[str]:
        """Capability labels advertised by initialize."""
        return []

    def limits(self) -> dict[str, Any]:
        """Advertised limits, e.g. a maximum page size."""
        return {}

    def operations(self) -> list[OperationDescriptor]:
        return [op.descriptor for op in self._operations.values()]

    def get_operation(self, name: str) -> Operation | None:
        return self._operations.get(name)

    async def invoke(self, name: str, arguments: dict[str, Any]) -> Any:
        """
        Run a registered operation.

        Raises:
            KeyError: If no operation is registered under ``name``.
        """
        operation = self._operations[name]
        result = operation.handler(arguments)
        if inspect.isawaitable(result):
            result = await result
        return result

    def close(self) -> None:
        """Release source resources. Called once when the connection closes."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(provider={self.provider!r}, operations={list(self._operations)})"
