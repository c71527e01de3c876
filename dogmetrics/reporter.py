"""Periodic reporting of a metrics registry to Datadog."""
from typing import Callable, List, Optional, Tuple
import logging
import threading
import time

from dogmetrics.client import Client, DatadogError
from dogmetrics.metrics import Counter, Gauge, Timer
from dogmetrics.registry import Registry
from dogmetrics.series import Series
from dogmetrics.translator import SeriesTranslator

logger = logging.getLogger(__name__)


def next_tick_after(tick: float, now: float, interval_s: float) -> Tuple[float, int]:
    """
    Next grid tick after ``tick`` that is still in the future at ``now``.

    Returns the tick and how many grid ticks were skipped to reach it.
    """
    next_tick = tick + interval_s
    if next_tick > now:
        return next_tick, 0
    missed = int((now - next_tick) // interval_s) + 1
    return next_tick + missed * interval_s, missed


class ReporterSelfMetrics:
    """Records the reporter's own activity into the registry it reports."""

    def __init__(self, registry: Registry, prefix: str = "dogmetrics.reporter"):
        self.reports = registry.get_or_register(f"{prefix}.reports", Counter)
        self.errors = registry.get_or_register(f"{prefix}.errors", Counter)
        self.series = registry.get_or_register(f"{prefix}.series", Gauge)
        self.duration = registry.get_or_register(f"{prefix}.duration", Timer)

    def record_report(self, series_count: int, duration_ns: int):
        self.reports.inc()
        self.series.update(series_count)
        self.duration.update(duration_ns)

    def record_error(self):
        self.errors.inc()


class MetricsReporter:
    """Translates a registry into series and pushes them through a client."""

    def __init__(
        self,
        client: Client,
        registry: Registry,
        clock: Callable[[], float] = time.time,
        self_metrics: Optional[ReporterSelfMetrics] = None,
    ):
        self.client = client
        self.registry = registry
        self.clock = clock
        self.self_metrics = self_metrics
        self.translator = SeriesTranslator(client.host)

        self.report_count = 0
        self.error_count = 0
        self.last_error: Optional[str] = None
        self.last_report_time: Optional[float] = None

        self.running = False
        self._stop_event = threading.Event()
        self._report_lock = threading.Lock()

    def series(self) -> List[Series]:
        """
        Series for every registered metric, all stamped with the same
        capture time, in registry order.
        """
        now = int(self.clock())
        all_series: List[Series] = []
        for name, metric in self.registry:
            all_series.extend(self.translator.series(now, name, metric))
        return all_series

    def report(self):
        """Build one batch and POST it. Failures are counted, then re-raised."""
        with self._report_lock:
            start = time.perf_counter_ns()
            try:
                series = self.series()
                self.client.post_series(series)
            except Exception as e:
                self.error_count += 1
                self.last_error = str(e)
                if self.self_metrics:
                    self.self_metrics.record_error()
                raise

            self.report_count += 1
            self.last_report_time = self.clock()
            if self.self_metrics:
                self.self_metrics.record_report(len(series), time.perf_counter_ns() - start)

    def run(self, interval_s: float):
        """
        Report every ``interval_s`` seconds until ``stop()`` is called.

        Ticks sit on a fixed grid measured from the start of the loop, not
        from the end of the previous report. Reports never overlap: ticks
        that pass while a report is in progress are dropped.
        """
        if interval_s <= 0:
            raise ValueError(f"interval_s must be positive, got {interval_s}")

        self.running = True
        logger.info(f"Starting Datadog reporter, interval {interval_s}s")

        next_tick = time.monotonic() + interval_s
        while not self._stop_event.wait(max(0.0, next_tick - time.monotonic())):
            try:
                self.report()
            except DatadogError as e:
                logger.error(f"Datadog series error: {e}")
            except Exception as e:
                logger.error(f"Datadog series error: {e}", exc_info=True)

            next_tick, missed = next_tick_after(next_tick, time.monotonic(), interval_s)
            if missed:
                logger.warning(f"Report took longer than interval {interval_s}s, skipped {missed} tick(s)")

        self.running = False
        logger.info("Datadog reporter stopped")

    def stop(self):
        self._stop_event.set()


def run_reporter_thread(reporter: MetricsReporter, interval_s: float):
    """Run the reporter loop in a separate thread."""
    try:
        reporter.run(interval_s)
    except Exception as e:
        logger.error(f"Reporter thread error: {e}", exc_info=True)
        reporter.stop()
