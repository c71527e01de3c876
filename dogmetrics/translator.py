"""Translation of registry metrics into Datadog series records."""
from typing import Any, Callable, Dict, List, Sequence

from dogmetrics.metrics import Counter, Gauge, Histogram, Meter, MetricKind, Timer
from dogmetrics.series import COUNTER, GAUGE, Number, Series
from dogmetrics.tags import split_name_and_tags

QUANTILES = (0.5, 0.75, 0.95, 0.99, 0.999)

PERCENTILE_SUFFIXES = (
    "median",
    "percentile.75",
    "percentile.95",
    "percentile.99",
    "percentile.999",
)

NANOS_PER_MILLI = 1_000_000


def millis(nanos: Number) -> float:
    """Convert a nanosecond duration to floating point milliseconds."""
    return float(nanos) / NANOS_PER_MILLI


class SeriesTranslator:
    """
    Maps each metric kind to a fixed, ordered list of series.

    Every record carries ``host`` and the tags parsed from the metric
    identifier. Only the gauge kind produces ``gauge`` series; every
    statistic of the other kinds is sent as a ``counter``.
    """

    def __init__(self, host: str):
        self.host = host
        self._builders: Dict[MetricKind, Callable[[int, str, List[str], Any], List[Series]]] = {
            MetricKind.COUNTER: self.counter_series,
            MetricKind.GAUGE: self.gauge_series,
            MetricKind.HEALTHCHECK: self._unsupported_series,
            MetricKind.HISTOGRAM: self.histogram_series,
            MetricKind.METER: self.meter_series,
            MetricKind.TIMER: self.timer_series,
        }

    def series(self, t: int, identifier: str, metric: Any) -> List[Series]:
        """Translate one metric; unknown kinds and healthchecks produce nothing."""
        kind = getattr(metric, "kind", None)
        if not isinstance(kind, MetricKind):
            return []
        builder = self._builders[kind]
        name, tags = split_name_and_tags(identifier)
        return builder(t, name, tags, metric)

    def counter_series(self, t: int, name: str, tags: List[str], counter: Counter) -> List[Series]:
        return [self._record(f"{name}.count", COUNTER, t, counter.count(), tags)]

    def gauge_series(self, t: int, name: str, tags: List[str], gauge: Gauge) -> List[Series]:
        return [self._record(f"{name}.value", GAUGE, t, gauge.value(), tags)]

    def histogram_series(self, t: int, name: str, tags: List[str], h: Histogram) -> List[Series]:
        ps = h.percentiles(QUANTILES)
        stats = [
            ("count", h.count()),
            ("min", h.min()),
            ("max", h.max()),
            ("mean", h.mean()),
            ("stddev", h.stddev()),
        ]
        stats.extend(zip(PERCENTILE_SUFFIXES, ps))
        return self._counters(t, name, tags, stats)

    def meter_series(self, t: int, name: str, tags: List[str], m: Meter) -> List[Series]:
        stats = [("count", m.count())]
        stats.extend(self._rates(m))
        return self._counters(t, name, tags, stats)

    def timer_series(self, t: int, name: str, tags: List[str], timer: Timer) -> List[Series]:
        # Durations are recorded in nanoseconds and reported in milliseconds.
        ps = timer.percentiles(QUANTILES)
        stats = [
            ("count", timer.count()),
            ("min", millis(timer.min())),
            ("max", millis(timer.max())),
            ("mean", millis(timer.mean())),
            ("stddev", millis(timer.stddev())),
        ]
        stats.extend((suffix, millis(p)) for suffix, p in zip(PERCENTILE_SUFFIXES, ps))
        stats.extend(self._rates(timer))
        return self._counters(t, name, tags, stats)

    def _unsupported_series(self, t: int, name: str, tags: List[str], metric: Any) -> List[Series]:
        return []

    @staticmethod
    def _rates(m) -> List[tuple]:
        return [
            ("rate.1min", m.rate1()),
            ("rate.5min", m.rate5()),
            ("rate.15min", m.rate15()),
            ("rate.mean", m.rate_mean()),
        ]

    def _counters(self, t: int, name: str, tags: List[str], stats: Sequence[tuple]) -> List[Series]:
        return [self._record(f"{name}.{suffix}", COUNTER, t, value, tags) for suffix, value in stats]

    def _record(self, metric: str, typ: str, t: int, value: Number, tags: List[str]) -> Series:
        return Series(
            metric=metric,
            type=typ,
            points=((t, value),),
            host=self.host,
            tags=tuple(tags),
        )
