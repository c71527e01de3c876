"""Metric primitives: counters, gauges, healthchecks, histograms, meters and timers."""
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Iterator, List, Optional, Sequence, Union
import math
import threading
import time

import numpy as np

Number = Union[int, float]

# Interval between moving-average ticks, in seconds.
TICK_INTERVAL_S = 5.0

DEFAULT_RESERVOIR_SIZE = 1028


def _native(value: Number) -> Number:
    """Unwrap numpy scalars so sample values serialise like plain numbers."""
    if isinstance(value, np.generic):
        return value.item()
    return value


class MetricKind(Enum):
    """Closed set of metric kinds a registry can hold."""
    COUNTER = "counter"
    GAUGE = "gauge"
    HEALTHCHECK = "healthcheck"
    HISTOGRAM = "histogram"
    METER = "meter"
    TIMER = "timer"


class Counter:
    """Monotonic-ish integer total."""

    kind = MetricKind.COUNTER

    def __init__(self):
        self._count = 0
        self._lock = threading.Lock()

    def inc(self, n: int = 1):
        with self._lock:
            self._count += n

    def dec(self, n: int = 1):
        with self._lock:
            self._count -= n

    def clear(self):
        with self._lock:
            self._count = 0

    def count(self) -> int:
        return self._count


class Gauge:
    """Holds the last value written to it."""

    kind = MetricKind.GAUGE

    def __init__(self, value: Number = 0):
        self._value = value

    def update(self, value: Number):
        self._value = value

    def value(self) -> Number:
        return self._value


class Healthcheck:
    """Wraps a check callable that reports its result via healthy()/unhealthy()."""

    kind = MetricKind.HEALTHCHECK

    def __init__(self, check_fn: Callable[["Healthcheck"], None]):
        self._check_fn = check_fn
        self._error: Optional[Exception] = None

    def check(self):
        self._check_fn(self)

    def error(self) -> Optional[Exception]:
        return self._error

    def healthy(self):
        self._error = None

    def unhealthy(self, error: Exception):
        self._error = error


class UniformSample:
    """
    Fixed-size reservoir holding a uniform random sample of a stream.

    Uses Vitter's algorithm R: the first ``reservoir_size`` values are kept
    as-is, after that each new value replaces a random slot with probability
    ``reservoir_size / count``.
    """

    def __init__(self, reservoir_size: int = DEFAULT_RESERVOIR_SIZE, seed: Optional[int] = None):
        if reservoir_size <= 0:
            raise ValueError(f"reservoir_size must be positive, got {reservoir_size}")
        self.reservoir_size = reservoir_size
        self.rng = np.random.default_rng(seed)
        self._values: List[Number] = []
        self._count = 0
        self._lock = threading.Lock()

    def update(self, value: Number):
        with self._lock:
            self._count += 1
            if len(self._values) < self.reservoir_size:
                self._values.append(value)
            else:
                slot = int(self.rng.integers(0, self._count))
                if slot < self.reservoir_size:
                    self._values[slot] = value

    def clear(self):
        with self._lock:
            self._values = []
            self._count = 0

    def count(self) -> int:
        """Total number of updates seen, not just the ones retained."""
        return self._count

    def size(self) -> int:
        return len(self._values)

    def values(self) -> List[Number]:
        with self._lock:
            return list(self._values)


class Histogram:
    """
    Distribution of integer samples backed by a reservoir.

    ``count()`` is the number of updates ever made; every other statistic is
    computed over the values currently retained by the sample. An empty
    histogram reports 0 for all statistics.
    """

    kind = MetricKind.HISTOGRAM

    def __init__(self, sample: Optional[UniformSample] = None):
        self.sample = sample if sample is not None else UniformSample()

    def update(self, value: Number):
        self.sample.update(value)

    def clear(self):
        self.sample.clear()

    def count(self) -> int:
        return self.sample.count()

    def min(self) -> Number:
        values = self.sample.values()
        return _native(min(values)) if values else 0

    def max(self) -> Number:
        values = self.sample.values()
        return _native(max(values)) if values else 0

    def mean(self) -> float:
        values = self.sample.values()
        if not values:
            return 0.0
        return float(np.mean(values))

    def stddev(self) -> float:
        """Population standard deviation of the retained values."""
        values = self.sample.values()
        if not values:
            return 0.0
        return float(np.std(values))

    def percentile(self, q: float) -> float:
        return self.percentiles([q])[0]

    def percentiles(self, qs: Sequence[float]) -> List[float]:
        """
        Interpolated percentiles for each quantile in ``qs``.

        The interpolation position is ``q * (n + 1)`` over the sorted values,
        clamped to the first and last value.
        """
        values = self.sample.values()
        if not values:
            return [0.0 for _ in qs]
        result = np.quantile(np.asarray(values, dtype=float), list(qs), method="weibull")
        return [float(v) for v in result]


class EWMA:
    """Exponentially-weighted moving average of a per-second rate."""

    def __init__(self, alpha: float):
        self.alpha = alpha
        self._uncounted = 0
        self._rate = 0.0
        self._initialized = False

    @classmethod
    def for_minutes(cls, minutes: float) -> "EWMA":
        return cls(1 - math.exp(-TICK_INTERVAL_S / 60.0 / minutes))

    def update(self, n: int):
        self._uncounted += n

    def tick(self):
        instant_rate = self._uncounted / TICK_INTERVAL_S
        self._uncounted = 0
        if self._initialized:
            self._rate += self.alpha * (instant_rate - self._rate)
        else:
            self._rate = instant_rate
            self._initialized = True

    def rate(self) -> float:
        """Events per second."""
        return self._rate


class Meter:
    """
    Counts events and tracks their 1, 5 and 15 minute moving rates.

    Moving averages advance in 5 second ticks. Ticks that elapsed since the
    last access are applied on every mark and every read, so reads always
    reflect the current clock without a background thread.
    """

    kind = MetricKind.METER

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._count = 0
        self._start = clock()
        self._last_tick = self._start
        self._m1 = EWMA.for_minutes(1)
        self._m5 = EWMA.for_minutes(5)
        self._m15 = EWMA.for_minutes(15)

    def _tick_if_needed(self):
        elapsed = self._clock() - self._last_tick
        if elapsed < TICK_INTERVAL_S:
            return
        ticks = int(elapsed // TICK_INTERVAL_S)
        self._last_tick += ticks * TICK_INTERVAL_S
        for _ in range(ticks):
            self._m1.tick()
            self._m5.tick()
            self._m15.tick()

    def mark(self, n: int = 1):
        with self._lock:
            self._tick_if_needed()
            self._count += n
            self._m1.update(n)
            self._m5.update(n)
            self._m15.update(n)

    def count(self) -> int:
        return self._count

    def rate1(self) -> float:
        with self._lock:
            self._tick_if_needed()
            return self._m1.rate()

    def rate5(self) -> float:
        with self._lock:
            self._tick_if_needed()
            return self._m5.rate()

    def rate15(self) -> float:
        with self._lock:
            self._tick_if_needed()
            return self._m15.rate()

    def rate_mean(self) -> float:
        """Events per second since the meter was created."""
        elapsed = self._clock() - self._start
        if elapsed <= 0:
            return 0.0
        return self._count / elapsed


class Timer:
    """
    Histogram of durations in nanoseconds combined with a meter of their rate.
    """

    kind = MetricKind.TIMER

    def __init__(
        self,
        histogram: Optional[Histogram] = None,
        meter: Optional[Meter] = None,
    ):
        self.histogram = histogram if histogram is not None else Histogram()
        self.meter = meter if meter is not None else Meter()

    def update(self, duration_ns: int):
        self.histogram.update(duration_ns)
        self.meter.mark(1)

    def update_since(self, start_ns: int):
        """Record the time elapsed since a ``time.perf_counter_ns()`` reading."""
        self.update(time.perf_counter_ns() - start_ns)

    def time(self, fn: Callable, *args, **kwargs):
        """Call ``fn`` and record how long it took."""
        start = time.perf_counter_ns()
        try:
            return fn(*args, **kwargs)
        finally:
            self.update_since(start)

    @contextmanager
    def timing(self) -> Iterator[None]:
        start = time.perf_counter_ns()
        try:
            yield
        finally:
            self.update_since(start)

    def count(self) -> int:
        return self.histogram.count()

    def min(self) -> Number:
        return self.histogram.min()

    def max(self) -> Number:
        return self.histogram.max()

    def mean(self) -> float:
        return self.histogram.mean()

    def stddev(self) -> float:
        return self.histogram.stddev()

    def percentile(self, q: float) -> float:
        return self.histogram.percentile(q)

    def percentiles(self, qs: Sequence[float]) -> List[float]:
        return self.histogram.percentiles(qs)

    def rate1(self) -> float:
        return self.meter.rate1()

    def rate5(self) -> float:
        return self.meter.rate5()

    def rate15(self) -> float:
        return self.meter.rate15()

    def rate_mean(self) -> float:
        return self.meter.rate_mean()
