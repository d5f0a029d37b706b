"""Sample cloud log sources exposing fetchLogs and fetchMetrics."""

from __future__ import annotations

import logging
import random
from abc import abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any

from watchtower.protocol.errors import ProtocolError
from watchtower.protocol.messages import (
    OperationDescriptor,
    ParameterDescriptor,
    ParameterType,
)
from watchtower.sources.base import Source
from watchtower.sources.models import LogEntry, Metric

logger = logging.getLogger(__name__)

SAMPLE_EPOCH = datetime(2024, 1, 15, 14, 0, tzinfo=timezone.utc)

# (seconds after SAMPLE_EPOCH, service, severity, message)
SAMPLE_EVENTS: list[tuple[int, str, str, str]] = [
    (0, "payment-service", "INFO", "Processing payment request id=pay-1001"),
    (12, "payment-service", "WARN", "Database connection pool at 85% capacity"),
    (31, "payment-service", "ERROR", "Database connection pool exhausted, request id=pay-1002 rejected"),
    (33, "payment-service", "ERROR", "Timeout waiting for connection from pool after 30000ms"),
    (40, "user-service", "INFO", "User login succeeded user=u-481"),
    (45, "payment-service", "ERROR", "Payment gateway returned 503 for request id=pay-1003"),
    (52, "user-service", "WARN", "Slow query on users table took 2300ms"),
    (60, "payment-service", "ERROR", "Database connection pool exhausted, request id=pay-1004 rejected"),
    (75, "api-gateway", "INFO", "Health check passed"),
    (81, "payment-service", "ERROR", "Circuit breaker opened for payment-db"),
    (90, "user-service", "ERROR", "Failed to refresh session token: upstream reset"),
    (120, "payment-service", "INFO", "Circuit breaker half-open, probing payment-db"),
]

TIME_RANGE_POINTS = {"1h": 12, "24h": 24, "7d": 7}
TIME_RANGE_STEP = {"1h": timedelta(minutes=5), "24h": timedelta(hours=1), "7d": timedelta(days=1)}


def _matches_filter(severity: str, message: str, filter: str) -> bool:
    if not filter:
        return True
    return severity.upper() == filter.upper() or filter in message


class CloudLogSource(Source):
    """
    A cloud logging back-end seen through logical resource names.

    Subclasses translate logical names ("payment-service", "error_rate")
    into provider names and return provider-flavoured records.
    """

    provider = "cloud"
    source_label = "cloud"

    def __init__(self):
        super().__init__()
        self._config: dict[str, str] | None = None
        self.register(
            OperationDescriptor(
                name="fetchLogs",
                description=f"Fetch logs from {self.source_label}",
                parameters=[
                    ParameterDescriptor("resource", ParameterType.STRING, "Service name (e.g., payment-service)"),
                    ParameterDescriptor("filter", ParameterType.STRING, "Log level or text filter (INFO, ERROR, ...)"),
                    ParameterDescriptor("limit", ParameterType.INTEGER, "Maximum logs to return"),
                ],
            ),
            self._handle_fetch_logs,
        )
        self.register(
            OperationDescriptor(
                name="fetchMetrics",
                description=f"Fetch metrics from {self.source_label}",
                parameters=[
                    ParameterDescriptor("resource", ParameterType.STRING, "Service name"),
                    ParameterDescriptor("metricName", ParameterType.STRING, "Metric name (error_rate, cpu_usage, request_count)"),
                    ParameterDescriptor("timeRange", ParameterType.STRING, "Time range (1h, 24h, 7d)"),
                ],
            ),
            self._handle_fetch_metrics,
        )

    def initialize(self, config: dict[str, str]) -> None:
        logger.info(f"Initializing {self.source_label} source")
        self._config = self.validate_config(dict(config))

    def validate_config(self, config: dict[str, str]) -> dict[str, str]:
        """Fill defaults and reject unusable config. Returns the effective config."""
        return config

    @property
    def config(self) -> dict[str, str]:
        if self._config is None:
            raise RuntimeError(f"{self.provider} source is not initialized")
        return self._config

    def limits(self) -> dict[str, Any]:
        return {"maxLogs": 1000}

    def _handle_fetch_logs(self, arguments: dict[str, Any]) -> dict[str, Any]:
        limit = arguments["limit"]
        if limit < 0:
            raise ProtocolError.invalid_params("limit must not be negative")
        limit = min(limit, self.limits()["maxLogs"])
        logs = self.fetch_logs(arguments["resource"], arguments["filter"], limit)
        return {
            "logs": [entry.to_dict() for entry in logs],
            "count": len(logs),
            "source": self.source_label,
        }

    def _handle_fetch_metrics(self, arguments: dict[str, Any]) -> dict[str, Any]:
        metrics = self.fetch_metrics(
            arguments["resource"],
            arguments["metricName"],
            arguments["timeRange"],
        )
        return {
            "metrics": [metric.to_dict() for metric in metrics],
            "source": self.source_label,
        }

    def fetch_logs(self, resource: str, filter: str, limit: int) -> list[LogEntry]:
        log_name = self.translate_resource(resource)
        logs: list[LogEntry] = []
        for offset, service, severity, message in SAMPLE_EVENTS:
            if len(logs) >= limit:
                break
            if service != resource:
                continue
            severity = self.translate_severity(severity)
            if not _matches_filter(severity, message, filter):
                continue
            logs.append(
                LogEntry(
                    timestamp=SAMPLE_EPOCH + timedelta(seconds=offset),
                    message=message,
                    severity=severity,
                    source=log_name,
                )
            )
        return logs

    def fetch_metrics(self, resource: str, metric_name: str, time_range: str) -> list[Metric]:
        namespace = self.translate_namespace(resource)
        provider_metric = self.translate_metric(metric_name)
        points = TIME_RANGE_POINTS.get(time_range, 10)
        step = TIME_RANGE_STEP.get(time_range, timedelta(minutes=5))

        # Seeded so repeated calls describe the same series
        rng = random.Random(f"{self.provider}/{namespace}/{provider_metric}/{time_range}")
        now = datetime.now(timezone.utc)
        return [
            Metric(
                timestamp=now - i * step,
                name=provider_metric,
                value=round(rng.uniform(0, 100), 2),
                unit=self.metric_unit(metric_name),
                labels={"namespace": namespace},
            )
            for i in range(points)
        ]

    def metric_unit(self, metric_name: str) -> str:
        return "Percent" if metric_name == "cpu_usage" else "Count"

    def translate_severity(self, severity: str) -> str:
        return severity

    @abstractmethod
    def translate_resource(self, resource: str) -> str:
        """Logical resource name to provider log name."""

    @abstractmethod
    def translate_namespace(self, resource: str) -> str:
        """Logical resource name to provider metric namespace."""

    @abstractmethod
    def translate_metric(self, metric_name: str) -> str:
        """Logical metric name to provider metric name."""


class AWSLogSource(CloudLogSource):
    """AWS CloudWatch flavoured source."""

    provider = "AWS"
    source_label = "AWS CloudWatch"

    METRICS = {
        "error_rate": "HTTPCode_Target_5XX_Count",
        "cpu_usage": "CPUUtilization",
        "request_count": "RequestCount",
    }

    def validate_config(self, config: dict[str, str]) -> dict[str, str]:
        config.setdefault("region", "us-east-1")
        if not config["region"]:
            raise ValueError("AWS region must not be empty")
        logger.info(f"AWS source connected to region {config['region']}")
        return config

    def capabilities(self) -> list[str]:
        return ["CloudWatch", "X-Ray", "CloudTrail"]

    def translate_resource(self, resource: str) -> str:
        return f"/aws/{resource}"

    def translate_namespace(self, resource: str) -> str:
        if resource in ("payment-service", "user-service"):
            return "AWS/ApplicationELB"
        return "AWS/EC2"

    def translate_metric(self, metric_name: str) -> str:
        return self.METRICS.get(metric_name, metric_name)


class GCPLogSource(CloudLogSource):
    """GCP Cloud Logging flavoured source."""

    provider = "GCP"
    source_label = "GCP Cloud Logging"

    METRICS = {
        "error_rate": "logging.googleapis.com/log_entry_count",
        "cpu_usage": "compute.googleapis.com/instance/cpu/utilization",
        "request_count": "loadbalancing.googleapis.com/https/request_count",
    }

    def validate_config(self, config: dict[str, str]) -> dict[str, str]:
        config.setdefault("projectId", "my-gcp-project")
        return config

    def capabilities(self) -> list[str]:
        return ["Cloud Logging", "Cloud Monitoring"]

    def translate_severity(self, severity: str) -> str:
        return "WARNING" if severity == "WARN" else severity

    def translate_resource(self, resource: str) -> str:
        return f"projects/{self.config['projectId']}/logs/{resource}"

    def translate_namespace(self, resource: str) -> str:
        return "k8s_container" if resource.endswith("-service") else "gce_instance"

    def translate_metric(self, metric_name: str) -> str:
        return self.METRICS.get(metric_name, metric_name)


BUILTIN_SOURCES: dict[str, type[CloudLogSource]] = {
    "AWS": AWSLogSource,
    "GCP": GCPLogSource,
}
