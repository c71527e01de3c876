"""Report in-process metrics to the Datadog series API."""
from dogmetrics.client import (
    Client,
    DatadogEncodingError,
    DatadogError,
    DatadogResponseError,
    DatadogTransportError,
)
from dogmetrics.metrics import (
    Counter,
    Gauge,
    Healthcheck,
    Histogram,
    Meter,
    MetricKind,
    Timer,
    UniformSample,
)
from dogmetrics.registry import DuplicateMetricError, Registry
from dogmetrics.reporter import MetricsReporter, ReporterSelfMetrics
from dogmetrics.series import Series
from dogmetrics.tags import split_name_and_tags
from dogmetrics.translator import SeriesTranslator

__all__ = [
    "Client",
    "Counter",
    "DatadogEncodingError",
    "DatadogError",
    "DatadogResponseError",
    "DatadogTransportError",
    "DuplicateMetricError",
    "Gauge",
    "Healthcheck",
    "Histogram",
    "Meter",
    "MetricKind",
    "MetricsReporter",
    "Registry",
    "ReporterSelfMetrics",
    "Series",
    "SeriesTranslator",
    "Timer",
    "UniformSample",
    "split_name_and_tags",
]
