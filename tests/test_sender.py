"""Tests for the HTTP, local and OTLP senders."""

import gzip
import json
from datetime import datetime, timezone

import httpx
import pytest
from opentelemetry.sdk.metrics.export import InMemoryMetricReader

from monify_agent import __version__
from monify_agent.config import AgentConfig, LocalSenderConfig, OtelSenderConfig, ServerConfig
from monify_agent.errors import AuthenticationError, SendError
from monify_agent.models import (
    CpuMetrics,
    DynamicMetrics,
    MetricPayload,
    StaticMetrics,
    SwapMetrics,
)
from monify_agent.sender import create_sender
from monify_agent.sender.http import HttpSender
from monify_agent.sender.local import LocalSender
from monify_agent.sender.otel import OtelSender, iter_gauges

URL = "https://collector.test/v1/agent/metrics"


def _payload(static=None):
    return MetricPayload(
        hostname="web-1",
        metrics=DynamicMetrics(
            cpu=CpuMetrics(usage_percent=42.0, load_avg_1m=1.0, load_avg_5m=0.5, load_avg_15m=0.25),
            swap=SwapMetrics(total=100, used=10, used_percent=10.0),
        ),
        static_info=static,
        timestamp=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
    )


def _http_sender(handler, token="secret"):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpSender(ServerConfig(url=URL, token=token), client=client)


# ---------------------------------------------------------------------------
# Payload
# ---------------------------------------------------------------------------

class TestPayload:
    def test_absent_fields_omitted(self):
        data = _payload(StaticMetrics(hostname="web-1", region=None)).to_dict()
        assert data["hostname"] == "web-1"
        assert data["timestamp"] == "2024-01-02T03:04:05+00:00"
        assert set(data["metrics"]) == {"cpu", "swap"}
        assert data["static_info"] == {"hostname": "web-1"}

    def test_static_info_optional(self):
        assert "static_info" not in _payload().to_dict()


# ---------------------------------------------------------------------------
# HttpSender
# ---------------------------------------------------------------------------

class TestHttpSender:
    """Wire format and status handling."""

    def test_posts_gzip_json_with_headers(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200, json={"status": "ok", "message": "welcome"})

        response = _http_sender(handler).send(_payload(), timeout=5)

        request = seen["request"]
        assert request.method == "POST"
        assert str(request.url) == URL
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["Content-Encoding"] == "gzip"
        assert request.headers["User-Agent"] == f"monify/{__version__}"
        assert request.headers["X-Agent-Version"] == __version__
        assert request.headers["Authorization"] == "Bearer secret"

        body = json.loads(gzip.decompress(request.content))
        assert body["hostname"] == "web-1"
        assert body["metrics"]["cpu"]["usage_percent"] == 42.0
        assert response.status == "ok"
        assert response.message == "welcome"

    def test_no_token_no_authorization_header(self):
        seen = {}

        def handler(request):
            seen["headers"] = request.headers
            return httpx.Response(204)

        _http_sender(handler, token="").send(_payload())
        assert "Authorization" not in seen["headers"]

    def test_commands_parsed(self):
        def handler(request):
            return httpx.Response(200, json={
                "status": "success",
                "commands": [{"command": "uninstall", "params": {"reason": "deleted"}}, {"bogus": 1}],
            })

        response = _http_sender(handler).send(_payload())
        assert len(response.commands) == 1
        assert response.commands[0].command == "uninstall"
        assert response.commands[0].params == {"reason": "deleted"}

    def test_unparsable_body_is_success(self):
        response = _http_sender(lambda r: httpx.Response(200, text="not json")).send(_payload())
        assert response.status == "success"
        assert response.commands == []

    @pytest.mark.parametrize("body", [
        {"commands": 5},
        {"commands": "uninstall"},
        {"commands": [{"command": "uninstall", "params": "x"}]},
        {"commands": [{"command": "uninstall", "params": [1, 2]}]},
    ])
    def test_malformed_body_shapes_tolerated(self, body):
        """Valid JSON of the wrong shape still yields a usable response."""
        response = _http_sender(lambda r: httpx.Response(200, json=body)).send(_payload())
        assert response.status == "success"
        for command in response.commands:
            assert command.params == {}

    def test_unauthorized(self):
        with pytest.raises(AuthenticationError):
            _http_sender(lambda r: httpx.Response(401)).send(_payload())

    @pytest.mark.parametrize("status, message", [
        (400, "bad request"),
        (429, "rate limited"),
        (500, "unexpected status code"),
        (302, "unexpected status code"),
    ])
    def test_failure_statuses(self, status, message):
        with pytest.raises(SendError, match=message) as excinfo:
            _http_sender(lambda r: httpx.Response(status)).send(_payload())
        assert not isinstance(excinfo.value, AuthenticationError)

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(SendError):
            _http_sender(handler).send(_payload())


# ---------------------------------------------------------------------------
# LocalSender
# ---------------------------------------------------------------------------

class TestLocalSender:
    def test_appends_jsonl(self, tmp_path):
        sender = LocalSender(LocalSenderConfig(output_dir=str(tmp_path / "out")))
        try:
            assert sender.send(_payload()).status == "success"
            sender.send(_payload())
        finally:
            sender.close()

        files = list((tmp_path / "out").glob("payloads-*.jsonl"))
        assert len(files) == 1
        lines = files[0].read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0])["metrics"]["swap"]["total"] == 100

    def test_close_is_idempotent(self, tmp_path):
        sender = LocalSender(LocalSenderConfig(output_dir=str(tmp_path)))
        sender.close()
        sender.close()


# ---------------------------------------------------------------------------
# OtelSender
# ---------------------------------------------------------------------------

class TestOtelSender:
    def test_iter_gauges_skips_absent(self):
        names = {name for name, _, _ in iter_gauges(DynamicMetrics(swap=SwapMetrics(1, 1, 100.0)))}
        assert names == {"monify.swap.total", "monify.swap.used", "monify.swap.used_percent"}

    def test_records_gauges(self):
        reader = InMemoryMetricReader()
        sender = OtelSender(OtelSenderConfig(), reader=reader)
        try:
            sender.send(_payload())
            data = reader.get_metrics_data()
        finally:
            sender.close()

        points = {}
        for resource_metrics in data.resource_metrics:
            for scope_metrics in resource_metrics.scope_metrics:
                for metric in scope_metrics.metrics:
                    for point in metric.data.data_points:
                        points[metric.name] = (point.value, dict(point.attributes))

        value, attributes = points["monify.cpu.usage_percent"]
        assert value == 42.0
        assert attributes == {"host.name": "web-1"}
        assert "monify.swap.total" in points


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

class TestCreateSender:
    def test_local_mode(self, tmp_path):
        cfg = AgentConfig(mode="local", local_sender=LocalSenderConfig(output_dir=str(tmp_path)))
        sender = create_sender(cfg)
        assert isinstance(sender, LocalSender)
        sender.close()

    def test_http_mode(self):
        sender = create_sender(AgentConfig())
        assert isinstance(sender, HttpSender)
        sender.close()
