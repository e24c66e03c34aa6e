"""OpenTelemetry sender – pushes dynamic host metrics via OTLP/HTTP."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Iterator

from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource, SERVICE_NAME

from .. import __version__
from ..config import OtelSenderConfig
from ..errors import SendError
from ..models import DynamicMetrics, MetricPayload, ServerResponse
from .base import Sender

logger = logging.getLogger(__name__)

METRIC_PREFIX = "monify"

_UNIT_SUFFIXES = (
    ("_percent", "%"),
    ("_mbps", "Mbit/s"),
    ("_iops", "{operation}/s"),
    ("_gb", "GBy"),
    ("uptime", "s"),
    ("boot_time", "s"),
)

_BYTE_FIELDS = {"memory", "swap", "disk_space"}


def _unit(group: str, name: str) -> str:
    for suffix, unit in _UNIT_SUFFIXES:
        if name.endswith(suffix):
            return unit
    if group in _BYTE_FIELDS:
        return "By"
    return "1"


def iter_gauges(metrics: DynamicMetrics) -> Iterator[tuple[str, float, str]]:
    """Flatten a snapshot into ``(name, value, unit)`` triples.

    Absent sub-collections produce nothing.
    """
    for group in dataclasses.fields(metrics):
        record = getattr(metrics, group.name)
        if record is None:
            continue
        for item in dataclasses.fields(record):
            value = getattr(record, item.name)
            yield f"{METRIC_PREFIX}.{group.name}.{item.name}", value, _unit(group.name, item.name)


class OtelSender(Sender):
    """Records each payload's dynamic metrics as OpenTelemetry gauges.

    The SDK's ``PeriodicExportingMetricReader`` flushes them to the
    configured OTLP/HTTP endpoint; a different *reader* can be supplied
    instead. Static facts are not exported.
    """

    def __init__(self, config: OtelSenderConfig, reader: MetricReader | None = None) -> None:
        self._config = config
        resource = Resource.create({
            SERVICE_NAME: config.service_name,
            "service.version": __version__,
        })

        if reader is None:
            exporter_kwargs: dict[str, Any] = {
                "endpoint": f"{config.endpoint.rstrip('/')}/v1/metrics",
            }
            if config.headers:
                exporter_kwargs["headers"] = config.headers
            reader = PeriodicExportingMetricReader(
                OTLPMetricExporter(**exporter_kwargs),
                export_interval_millis=config.export_interval_ms,
            )
        self._provider = MeterProvider(resource=resource, metric_readers=[reader])
        self._meter = self._provider.get_meter("monify_agent.metrics")
        self._gauges: dict[str, Any] = {}

        logger.info(
            "OtelSender initialized -> %s (service=%s)",
            config.endpoint,
            config.service_name,
        )

    def _get_gauge(self, name: str, unit: str) -> Any:
        if name not in self._gauges:
            self._gauges[name] = self._meter.create_gauge(name=name, unit=unit)
        return self._gauges[name]

    def send(self, payload: MetricPayload, timeout: float | None = None) -> ServerResponse:
        attributes = {"host.name": payload.hostname}
        try:
            for name, value, unit in iter_gauges(payload.metrics):
                self._get_gauge(name, unit).set(value, attributes=attributes)
        except (TypeError, ValueError) as exc:
            raise SendError(f"recording metrics failed: {exc}") from exc
        return ServerResponse()

    def close(self) -> None:
        self._provider.shutdown()
        logger.info("OtelSender shut down")
