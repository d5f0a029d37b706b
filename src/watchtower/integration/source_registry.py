"""Multi-source registry: one client per named source, namespaced routing."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from watchtower.config import SourceBinding
from watchtower.protocol.client import ProtocolClient
from watchtower.protocol.errors import ProtocolError
from watchtower.protocol.messages import OperationDescriptor
from watchtower.transport import TransportError, create_transport

logger = logging.getLogger(__name__)

ClientFactory = Callable[[SourceBinding], ProtocolClient]

NAMESPACE_SEPARATOR = "."


class RegistryError(Exception):
    """Base for registry routing and construction failures."""


class InvalidFunctionFormat(RegistryError):
    """Function name is not of the form ``<source>.<operation>``."""


class UnknownSource(RegistryError):
    """Source part of a function name names no bound client."""


class UnknownFunction(RegistryError):
    """Function was not advertised by the last discovery."""


class RegistryConnectError(RegistryError):
    """A source could not be connected or initialized at construction."""

    def __init__(self, source: str, cause: Exception):
        self.source = source
        self.cause = cause
        super().__init__(f"Failed to connect source {source}: {cause}")


@dataclass
class RegistryConfig:
    """Registry construction policy."""

    best_effort: bool = False
    """Skip unreachable sources instead of failing construction."""


@dataclass
class FunctionCall:
    """A request to run one namespaced function."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class FunctionResult:
    """Outcome of a FunctionCall, success or failure."""

    function_name: str
    success: bool
    result: Any = None
    error: str | None = None
    error_code: int | None = None

    @classmethod
    def ok(cls, function_name: str, result: Any) -> "FunctionResult":
        return cls(function_name=function_name, success=True, result=result)

    @classmethod
    def failed(
        cls,
        function_name: str,
        error: str,
        error_code: int | None = None,
    ) -> "FunctionResult":
        return cls(
            function_name=function_name,
            success=False,
            error=error,
            error_code=error_code,
        )


def split_function_name(function_name: str) -> tuple[str, str]:
    """Split ``<source>.<operation>`` on the first separator."""
    source, sep, operation = function_name.partition(NAMESPACE_SEPARATOR)
    if not sep or not source or not operation:
        raise InvalidFunctionFormat(
            f"Function name must look like <source>.<operation>: {function_name!r}"
        )
    return source, operation


def default_client_factory(binding: SourceBinding) -> ProtocolClient:
    """Build a client over the transport the binding describes."""
    return ProtocolClient(create_transport(binding.transport_config()), name=binding.name)


class SourceRegistry:
    """
    Owns one initialized ProtocolClient per named source.

    Discovery fans out to every source and merges the results under
    ``<source>.`` prefixes. Execution routes a namespaced function to
    exactly one client using the unprefixed operation name.
    """

    def __init__(self, clients: Mapping[str, ProtocolClient]):
        """
        Args:
            clients: Already initialized clients keyed by source name.
        """
        self._clients: dict[str, ProtocolClient] = dict(clients)
        self._catalog: list[OperationDescriptor] = []
        self._catalog_names: set[str] = set()

    @classmethod
    async def connect(
        cls,
        bindings: Mapping[str, SourceBinding],
        config: RegistryConfig | None = None,
        client_factory: ClientFactory = default_client_factory,
    ) -> "SourceRegistry":
        """
        Connect and initialize one client per binding.

        Raises:
            RegistryConnectError: A source failed and ``best_effort`` is off.
                Clients opened before the failure are closed first.
        """
        config = config or RegistryConfig()
        clients: dict[str, ProtocolClient] = {}

        for name, binding in bindings.items():
            client: ProtocolClient | None = None
            try:
                client = client_factory(binding)
                await client.connect()
                await client.initialize(binding.credentials)
            except Exception as e:
                if client is not None:
                    await _close_quietly(name, client)
                if config.best_effort:
                    logger.warning(f"Skipping unreachable source {name}: {e}")
                    continue
                logger.error(f"Source {name} failed to initialize: {e}")
                for opened_name, opened in clients.items():
                    await _close_quietly(opened_name, opened)
                raise RegistryConnectError(name, e) from e
            clients[name] = client
            logger.info(f"Source {name} connected via {client.transport.endpoint}")

        logger.info(f"Registry ready with sources: {', '.join(clients) or '(none)'}")
        return cls(clients)

    @property
    def sources(self) -> list[str]:
        return list(self._clients)

    @property
    def catalog(self) -> list[OperationDescriptor]:
        """Snapshot from the most recent ``discover_all``."""
        return list(self._catalog)

    def get_client(self, source: str) -> ProtocolClient | None:
        return self._clients.get(source)

    async def discover_all(self) -> list[OperationDescriptor]:
        """
        Discover every source and merge the namespaced results.

        A source whose discover fails is left out of this catalog with a
        logged warning; nothing is raised.
        """
        names = list(self._clients)
        results = await asyncio.gather(
            *(self._clients[name].discover() for name in names),
            return_exceptions=True,
        )

        catalog: list[OperationDescriptor] = []
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning(f"Discovery failed for source {name}: {result}")
                continue
            catalog.extend(op.namespaced(name) for op in result)

        self._catalog = catalog
        self._catalog_names = {op.name for op in catalog}
        logger.debug(f"Catalog has {len(catalog)} functions")
        return list(catalog)

    async def execute(
        self,
        function_name: str,
        arguments: dict[str, Any] | None = None,
    ) -> FunctionResult:
        """
        Route a namespaced call to its source.

        Raises:
            InvalidFunctionFormat: Name is not ``<source>.<operation>``.
            UnknownSource: No client bound under that source name.
            UnknownFunction: Name absent from the last discovered catalog.

        Protocol and transport failures from the source come back as a
        failed FunctionResult.
        """
        source, operation = split_function_name(function_name)
        client = self._clients.get(source)
        if client is None:
            raise UnknownSource(f"Unknown source: {source}")
        if function_name not in self._catalog_names:
            raise UnknownFunction(f"Function not in catalog: {function_name}")

        logger.debug(f"Routing {function_name} to {source}")
        try:
            result = await client.execute(operation, arguments or {})
        except ProtocolError as e:
            logger.info(f"{function_name} failed: {e.message}")
            return FunctionResult.failed(function_name, e.message, e.code)
        except TransportError as e:
            logger.warning(f"{function_name} transport failure: {e}")
            return FunctionResult.failed(function_name, str(e))
        return FunctionResult.ok(function_name, result)

    async def call(self, call: FunctionCall) -> FunctionResult:
        return await self.execute(call.name, call.arguments)

    async def close(self) -> None:
        """Close every client, continuing past individual failures."""
        for name, client in self._clients.items():
            await _close_quietly(name, client)
        logger.info("Registry closed")

    async def __aenter__(self) -> "SourceRegistry":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


async def _close_quietly(name: str, client: ProtocolClient) -> None:
    try:
        await client.close()
    except Exception as e:
        logger.warning(f"Error closing source {name}: {e}")
