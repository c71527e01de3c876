"""Tests for building and sending reports."""
import json
import logging
import threading
import time

import httpx
import numpy as np
import pytest

from dogmetrics.client import Client, DatadogError
from dogmetrics.metrics import Counter, Gauge, Healthcheck, Histogram, Meter, Timer
from dogmetrics.reporter import (
    MetricsReporter,
    ReporterSelfMetrics,
    next_tick_after,
    run_reporter_thread,
)

from conftest import T, FakeClock


@pytest.fixture
def reporter(client, registry):
    return MetricsReporter(client, registry, clock=FakeClock(T + 0.75))


def test_simple_report(reporter, registry):
    counter = Counter()
    counter.inc(666)
    meter = Meter()
    meter.mark(222)
    meter.mark(444)

    registry.register("my.counter", counter)
    registry.register("my.meter", meter)

    series = reporter.series()
    assert [s.metric for s in series] == [
        "my.counter.count",
        "my.meter.count",
        "my.meter.rate.1min",
        "my.meter.rate.5min",
        "my.meter.rate.15min",
        "my.meter.rate.mean",
    ]
    assert series[0].points == ((T, 666),)
    assert all(s.timestamp == T for s in series)
    assert all(s.host == "My Host" for s in series)


def test_empty_registry(reporter):
    assert reporter.series() == []


def test_unsupported_metrics_skipped(reporter, registry):
    registry.register("my.health", Healthcheck(lambda h: None))
    registry.register("my.other", object())
    registry.register("my.gauge", Gauge(7))

    assert [s.metric for s in reporter.series()] == ["my.gauge.value"]


def test_all_kinds_concatenated(reporter, registry):
    registry.register("c", Counter())
    registry.register("g", Gauge())
    registry.register("h", Histogram())
    registry.register("m", Meter())
    registry.register("t", Timer())

    assert len(reporter.series()) == 1 + 1 + 10 + 5 + 14


def test_report_posts_batch(reporter, registry, handler):
    gauge = Gauge()
    gauge.update(12)
    registry.register("my.gauge[env:test]", gauge)

    reporter.report()

    assert handler.payloads == [{
        "series": [{
            "metric": "my.gauge.value",
            "points": [[T, 12]],
            "type": "gauge",
            "host": "My Host",
            "tags": ["env:test"],
        }]
    }]
    assert reporter.report_count == 1
    assert reporter.error_count == 0
    assert reporter.last_report_time == T + 0.75


def test_report_empty_registry_still_wrapped(reporter, handler):
    reporter.report()
    assert handler.payloads == [{"series": []}]


def test_report_failure(reporter, handler):
    handler.status_code = 500
    with pytest.raises(DatadogError):
        reporter.report()
    assert reporter.report_count == 0
    assert reporter.error_count == 1
    assert "500" in reporter.last_error


def test_self_metrics(client, registry, handler):
    self_metrics = ReporterSelfMetrics(registry, prefix="self")
    reporter = MetricsReporter(client, registry, clock=FakeClock(T), self_metrics=self_metrics)

    reporter.report()
    assert self_metrics.reports.count() == 1
    assert self_metrics.series.value() == 1 + 1 + 14 + 1
    assert self_metrics.duration.count() == 1

    handler.status_code = 503
    with pytest.raises(DatadogError):
        reporter.report()
    assert self_metrics.errors.count() == 1

    names = [s["metric"] for s in handler.payloads[0]["series"]]
    assert names[0] == "self.reports.count"
    assert "self.duration.percentile.99" in names


def test_run_invalid_interval(reporter):
    with pytest.raises(ValueError):
        reporter.run(0)


def test_run_reports_until_stopped(registry):
    calls = []

    def handle(request):
        calls.append(request)
        if len(calls) >= 3:
            reporter.stop()
        return httpx.Response(202)

    http = httpx.Client(transport=httpx.MockTransport(handle))
    reporter = MetricsReporter(Client("h", "k", http_client=http), registry)

    thread = threading.Thread(target=reporter.run, args=(0.01,))
    thread.start()
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert len(calls) == 3
    assert reporter.report_count == 3
    assert not reporter.running


def test_run_continues_after_errors(registry):
    calls = []

    def handle(request):
        calls.append(request)
        if len(calls) >= 3:
            reporter.stop()
            return httpx.Response(202)
        raise httpx.ConnectError("unreachable", request=request)

    http = httpx.Client(transport=httpx.MockTransport(handle))
    reporter = MetricsReporter(Client("h", "k", http_client=http), registry)

    thread = threading.Thread(target=run_reporter_thread, args=(reporter, 0.01))
    thread.start()
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert reporter.error_count == 2
    assert reporter.report_count == 1


def test_stop_before_first_tick(reporter, handler):
    reporter.stop()
    reporter.run(60)
    assert handler.requests == []


class BrokenGauge(Gauge):
    def value(self):
        raise RuntimeError("sensor unavailable")


def wait_for(condition, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not condition():
        if time.monotonic() > deadline:
            return False
        time.sleep(0.005)
    return True


@pytest.mark.parametrize(
    "bad_metric",
    [Gauge(float("nan")), BrokenGauge()],
    ids=["nan-gauge", "raising-gauge"],
)
def test_run_survives_bad_metric(registry, bad_metric):
    """Test a metric that cannot be reported fails its cycles without stopping the loop."""
    calls = []

    def handle(request):
        calls.append(request)
        reporter.stop()
        return httpx.Response(202)

    http = httpx.Client(transport=httpx.MockTransport(handle))
    reporter = MetricsReporter(Client("h", "k", http_client=http), registry)
    registry.register("my.bad", bad_metric)

    thread = threading.Thread(target=run_reporter_thread, args=(reporter, 0.01))
    thread.start()
    try:
        assert wait_for(lambda: reporter.error_count >= 2)
        assert thread.is_alive()
        assert calls == []
    finally:
        registry.unregister("my.bad")
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert len(calls) == 1
    assert reporter.report_count == 1
    assert reporter.last_error


def test_run_survives_numpy_histogram_values(registry):
    calls = []

    def handle(request):
        calls.append(request)
        reporter.stop()
        return httpx.Response(202)

    http = httpx.Client(transport=httpx.MockTransport(handle))
    reporter = MetricsReporter(Client("h", "k", http_client=http), registry)
    hist = Histogram()
    hist.update(np.int64(5))
    registry.register("my.hist", hist)

    thread = threading.Thread(target=run_reporter_thread, args=(reporter, 0.01))
    thread.start()
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert reporter.error_count == 0
    sent = {s["metric"]: s["points"][0][1] for s in json.loads(calls[0].content)["series"]}
    assert sent["my.hist.min"] == 5
    assert sent["my.hist.max"] == 5


@pytest.mark.parametrize(
    "tick, now, expected",
    [
        (10.0, 10.5, (11.0, 0)),
        (10.0, 11.0, (12.0, 1)),
        (10.0, 13.5, (14.0, 3)),
    ],
)
def test_next_tick_after(tick, now, expected):
    assert next_tick_after(tick, now, 1.0) == expected


def test_slow_reports_skip_ticks(registry, caplog):
    """Test ticks passing during a slow report are dropped, not queued."""
    interval_s = 0.2
    starts = []
    active = []
    overlaps = []

    def handle(request):
        active.append(request)
        if len(active) > 1:
            overlaps.append(request)
        starts.append(time.monotonic())
        time.sleep(0.5)
        active.pop()
        if len(starts) >= 3:
            reporter.stop()
        return httpx.Response(202)

    http = httpx.Client(transport=httpx.MockTransport(handle))
    reporter = MetricsReporter(Client("h", "k", http_client=http), registry)

    with caplog.at_level(logging.WARNING, logger="dogmetrics.reporter"):
        thread = threading.Thread(target=reporter.run, args=(interval_s,))
        thread.start()
        thread.join(timeout=10)

    assert not thread.is_alive()
    assert len(starts) == 3
    assert overlaps == []
    # Each 0.5s report swallows two ticks; the next report waits for the
    # following grid point instead of firing immediately.
    for earlier, later in zip(starts, starts[1:]):
        gap = (later - earlier) / interval_s
        assert gap == pytest.approx(3, abs=0.3)
    assert "skipped 2 tick(s)" in caplog.text
