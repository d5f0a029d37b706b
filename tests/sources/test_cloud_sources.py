"""Tests for the sample AWS and GCP sources."""

import pytest

from watchtower.protocol.errors import InvalidParams
from watchtower.protocol.messages import OperationDescriptor
from watchtower.sources import AWSLogSource, GCPLogSource, BUILTIN_SOURCES
from watchtower.sources.base import Source


@pytest.fixture
def aws():
    source = AWSLogSource()
    source.initialize({"region": "us-east-1"})
    return source


@pytest.fixture
def gcp():
    source = GCPLogSource()
    source.initialize({"projectId": "demo"})
    return source


class TestSourceRegistration:
    """Tests for the handler map on Source."""

    def test_duplicate_registration_rejected(self):
        source = AWSLogSource()
        with pytest.raises(ValueError, match="already registered"):
            source.register(OperationDescriptor("fetchLogs"), lambda args: {})

    def test_both_expose_the_same_operations(self):
        for source_cls in BUILTIN_SOURCES.values():
            names = [op.name for op in source_cls().operations()]
            assert names == ["fetchLogs", "fetchMetrics"]

    @pytest.mark.asyncio
    async def test_invoke_awaits_async_handlers(self):
        class Echo(Source):
            provider = "echo"

            def __init__(self):
                super().__init__()
                self.register(OperationDescriptor("echo"), self._echo)

            def initialize(self, config):
                pass

            async def _echo(self, arguments):
                return {"echo": arguments}

        assert await Echo().invoke("echo", {"x": 1}) == {"echo": {"x": 1}}


class TestAWSLogSource:
    """Tests for the AWS sample source."""

    def test_region_defaults(self):
        source = AWSLogSource()
        source.initialize({})
        assert source.config["region"] == "us-east-1"

    def test_empty_region_rejected(self):
        with pytest.raises(ValueError):
            AWSLogSource().initialize({"region": ""})

    def test_capabilities_and_limits(self, aws):
        assert aws.capabilities() == ["CloudWatch", "X-Ray", "CloudTrail"]
        assert aws.limits() == {"maxLogs": 1000}

    @pytest.mark.asyncio
    async def test_fetch_logs_respects_limit(self, aws):
        result = await aws.invoke(
            "fetchLogs", {"resource": "payment-service", "filter": "ERROR", "limit": 5}
        )
        assert result["count"] == len(result["logs"]) == 5
        assert result["source"] == "AWS CloudWatch"
        assert all(entry["severity"] == "ERROR" for entry in result["logs"])
        assert result["logs"][0]["source"] == "/aws/payment-service"

    @pytest.mark.asyncio
    async def test_fetch_logs_text_filter(self, aws):
        result = await aws.invoke(
            "fetchLogs", {"resource": "payment-service", "filter": "pool", "limit": 100}
        )
        assert result["count"] == 4
        assert all("pool" in entry["message"] for entry in result["logs"])

    @pytest.mark.asyncio
    async def test_fetch_logs_unknown_resource(self, aws):
        result = await aws.invoke("fetchLogs", {"resource": "nope", "filter": "", "limit": 5})
        assert result == {"logs": [], "count": 0, "source": "AWS CloudWatch"}

    @pytest.mark.asyncio
    async def test_negative_limit(self, aws):
        with pytest.raises(InvalidParams):
            await aws.invoke("fetchLogs", {"resource": "payment-service", "filter": "", "limit": -1})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("time_range, points", [("1h", 12), ("24h", 24), ("7d", 7), ("30m", 10)])
    async def test_metric_points(self, aws, time_range, points):
        result = await aws.invoke(
            "fetchMetrics",
            {"resource": "payment-service", "metricName": "error_rate", "timeRange": time_range},
        )
        assert len(result["metrics"]) == points
        assert result["metrics"][0]["name"] == "HTTPCode_Target_5XX_Count"
        assert result["metrics"][0]["labels"] == {"namespace": "AWS/ApplicationELB"}

    @pytest.mark.asyncio
    async def test_metric_series_is_stable(self, aws):
        args = {"resource": "user-service", "metricName": "cpu_usage", "timeRange": "7d"}
        first = await aws.invoke("fetchMetrics", args)
        second = await aws.invoke("fetchMetrics", args)
        assert [m["value"] for m in first["metrics"]] == [m["value"] for m in second["metrics"]]
        assert first["metrics"][0]["unit"] == "Percent"


class TestGCPLogSource:
    """Tests for the GCP sample source."""

    def test_capabilities(self, gcp):
        assert gcp.capabilities() == ["Cloud Logging", "Cloud Monitoring"]

    def test_project_defaults(self):
        source = GCPLogSource()
        source.initialize({})
        assert source.config["projectId"] == "my-gcp-project"

    def test_uninitialized_config(self):
        with pytest.raises(RuntimeError, match="not initialized"):
            GCPLogSource().config

    @pytest.mark.asyncio
    async def test_warn_becomes_warning(self, gcp):
        result = await gcp.invoke(
            "fetchLogs", {"resource": "user-service", "filter": "WARNING", "limit": 10}
        )
        assert result["count"] == 1
        assert result["logs"][0]["severity"] == "WARNING"
        assert result["logs"][0]["source"] == "projects/demo/logs/user-service"

    @pytest.mark.asyncio
    async def test_metric_names(self, gcp):
        result = await gcp.invoke(
            "fetchMetrics",
            {"resource": "payment-service", "metricName": "request_count", "timeRange": "24h"},
        )
        assert len(result["metrics"]) == 24
        assert result["metrics"][0]["name"] == "loadbalancing.googleapis.com/https/request_count"
        assert result["metrics"][0]["labels"] == {"namespace": "k8s_container"}
