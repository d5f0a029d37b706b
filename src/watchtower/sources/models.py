"""Log and metric records returned by the cloud log sources."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class LogEntry:
    timestamp: datetime
    message: str
    severity: str
    source: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "message": self.message,
            "severity": self.severity,
            "source": self.source,
        }


@dataclass
class Metric:
    """One metric data point."""

    timestamp: datetime
    name: str
    value: float
    unit: str
    labels: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "name": self.name,
            "value": self.value,
            "unit": self.unit,
            "labels": dict(self.labels),
        }
