"""
Operation sources.

A source is the concrete back-end a ProtocolServer wraps: it registers its
operations once and is initialized per connection.
"""

from watchtower.sources.base import Source, Operation, OperationHandler
from watchtower.sources.models import LogEntry, Metric
from watchtower.sources.cloud import (
    CloudLogSource,
    AWSLogSource,
    GCPLogSource,
    BUILTIN_SOURCES,
)

__all__ = [
    "Source",
    "Operation",
    "OperationHandler",
    "LogEntry",
    "Metric",
    "CloudLogSource",
    "AWSLogSource",
    "GCPLogSource",
    "BUILTIN_SOURCES",
]
