"""
In-memory metrics registry drained by the reporter.

Supported metric types:
- Counter: an integer count that can be incremented and decremented
- Gauge / GaugeFloat: the last value set
- Histogram: a distribution computed over a uniform reservoir sample
- Meter: an event rate with 1, 5 and 15 minute moving averages
- Timer: a histogram of durations (in seconds) plus a meter of their rate

Every metric exposes ``snapshot()`` which returns an immutable read of its
current values.
"""
import logging
import math
import random
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

RESERVOIR_SIZE = 1028
TICK_INTERVAL = 5  # seconds between moving average ticks


class DuplicateMetric(ValueError):
    """Raised when a metric name is registered twice."""


@dataclass(frozen=True)
class CounterSnapshot:
    count: int


@dataclass(frozen=True)
class GaugeSnapshot:
    value: Any


@dataclass(frozen=True)
class HistogramSnapshot:
    """Read-only view of a histogram sample."""
    count: int
    values: Tuple[float, ...]

    @property
    def min(self) -> float:
        return self.values[0] if self.values else 0.0

    @property
    def max(self) -> float:
        return self.values[-1] if self.values else 0.0

    @property
    def mean(self) -> float:
        if not self.values:
            return 0.0
        return math.fsum(self.values) / len(self.values)

    @property
    def variance(self) -> float:
        if not self.values:
            return 0.0
        mean = self.mean
        return math.fsum((v - mean) ** 2 for v in self.values) / len(self.values)

    @property
    def stddev(self) -> float:
        return math.sqrt(self.variance)

    def percentiles(self, ps: Sequence[float]) -> List[float]:
        """
        Interpolated percentiles of the sample.

        Args:
            ps (sequence): Percentiles as fractions, e.g. 0.99

        Returns:
            list: One score per requested percentile
        """
        size = len(self.values)
        scores = []
        for p in ps:
            if size == 0:
                scores.append(0.0)
                continue
            pos = p * (size + 1)
            if pos < 1.0:
                scores.append(float(self.values[0]))
            elif pos >= size:
                scores.append(float(self.values[-1]))
            else:
                lower = self.values[int(pos) - 1]
                upper = self.values[int(pos)]
                scores.append(lower + (pos - math.floor(pos)) * (upper - lower))
        return scores


@dataclass(frozen=True)
class MeterSnapshot:
    count: int
    rate1: float
    rate5: float
    rate15: float
    rate_mean: float


@dataclass(frozen=True)
class TimerSnapshot:
    histogram: HistogramSnapshot
    meter: MeterSnapshot


class Counter:
    """Integer count."""

    def __init__(self):
        self._count = 0
        self._lock = threading.Lock()

    def inc(self, n: int = 1) -> None:
        with self._lock:
            self._count += n

    def dec(self, n: int = 1) -> None:
        with self._lock:
            self._count -= n

    def clear(self) -> None:
        with self._lock:
            self._count = 0

    def count(self) -> int:
        return self._count

    def snapshot(self) -> CounterSnapshot:
        return CounterSnapshot(count=self._count)


class Gauge:
    """Holds the last integer value set."""

    def __init__(self, value: int = 0):
        self._value = int(value)

    def update(self, value) -> None:
        self._value = int(value)

    def value(self) -> int:
        return self._value

    def snapshot(self) -> GaugeSnapshot:
        return GaugeSnapshot(value=self._value)


class GaugeFloat:
    """Holds the last float value set."""

    def __init__(self, value: float = 0.0):
        self._value = float(value)

    def update(self, value) -> None:
        self._value = float(value)

    def value(self) -> float:
        return self._value

    def snapshot(self) -> GaugeSnapshot:
        return GaugeSnapshot(value=self._value)


class UniformSample:
    """
    Fixed-size reservoir holding a uniform random sample of every value seen
    (Vitter's algorithm R).
    """

    def __init__(self, reservoir_size: int = RESERVOIR_SIZE, rng: Optional[random.Random] = None):
        self.reservoir_size = reservoir_size
        self._rng = rng or random.Random()
        self._values: List[float] = []
        self._count = 0

    def update(self, value: float) -> None:
        self._count += 1
        if len(self._values) < self.reservoir_size:
            self._values.append(value)
        else:
            r = self._rng.randint(0, self._count - 1)
            if r < self.reservoir_size:
                self._values[r] = value

    def clear(self) -> None:
        self._values = []
        self._count = 0

    def count(self) -> int:
        return self._count

    def values(self) -> List[float]:
        return list(self._values)


class Histogram:
    """Distribution of recorded values."""

    def __init__(self, reservoir_size: int = RESERVOIR_SIZE, rng: Optional[random.Random] = None):
        self._sample = UniformSample(reservoir_size, rng)
        self._lock = threading.Lock()

    def update(self, value) -> None:
        with self._lock:
            self._sample.update(float(value))

    def clear(self) -> None:
        with self._lock:
            self._sample.clear()

    def count(self) -> int:
        return self._sample.count()

    def snapshot(self) -> HistogramSnapshot:
        with self._lock:
            return HistogramSnapshot(
                count=self._sample.count(),
                values=tuple(sorted(self._sample.values()))
            )


class EWMA:
    """Exponentially weighted moving average of a per-second rate."""

    def __init__(self, alpha: float):
        self.alpha = alpha
        self._rate = 0.0
        self._uncounted = 0
        self._initialized = False

    @classmethod
    def for_minutes(cls, minutes: float) -> 'EWMA':
        return cls(1 - math.exp(-TICK_INTERVAL / 60.0 / minutes))

    def update(self, n: int) -> None:
        self._uncounted += n

    def tick(self) -> None:
        instant_rate = self._uncounted / float(TICK_INTERVAL)
        self._uncounted = 0
        if self._initialized:
            self._rate += self.alpha * (instant_rate - self._rate)
        else:
            self._rate = instant_rate
            self._initialized = True

    def rate(self) -> float:
        return self._rate


class Meter:
    """
    Counts events and tracks their rate.

    The moving averages are ticked lazily on ``mark()`` and ``snapshot()``,
    once for every full tick interval elapsed since the previous tick.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._start = clock()
        self._last_tick = self._start
        self._count = 0
        self._m1 = EWMA.for_minutes(1)
        self._m5 = EWMA.for_minutes(5)
        self._m15 = EWMA.for_minutes(15)
        self._lock = threading.Lock()

    def _tick_if_necessary(self) -> None:
        elapsed = self._clock() - self._last_tick
        if elapsed < TICK_INTERVAL:
            return
        ticks = int(elapsed // TICK_INTERVAL)
        self._last_tick += ticks * TICK_INTERVAL
        for _ in range(ticks):
            for ewma in (self._m1, self._m5, self._m15):
                ewma.tick()

    def mark(self, n: int = 1) -> None:
        with self._lock:
            self._tick_if_necessary()
            self._count += n
            for ewma in (self._m1, self._m5, self._m15):
                ewma.update(n)

    def count(self) -> int:
        return self._count

    def snapshot(self) -> MeterSnapshot:
        with self._lock:
            self._tick_if_necessary()
            elapsed = self._clock() - self._start
            rate_mean = self._count / elapsed if elapsed > 0 else 0.0
            return MeterSnapshot(
                count=self._count,
                rate1=self._m1.rate(),
                rate5=self._m5.rate(),
                rate15=self._m15.rate(),
                rate_mean=rate_mean
            )


class Timer:
    """Histogram of durations in seconds combined with a meter of their rate."""

    def __init__(self, clock: Callable[[], float] = time.monotonic,
                 reservoir_size: int = RESERVOIR_SIZE):
        self._clock = clock
        self._histogram = Histogram(reservoir_size)
        self._meter = Meter(clock)

    def update(self, seconds: float) -> None:
        self._histogram.update(seconds)
        self._meter.mark()

    def update_since(self, start: float) -> None:
        self.update(self._clock() - start)

    @contextmanager
    def time(self) -> Iterator[None]:
        """Record the duration of the wrapped block."""
        start = self._clock()
        try:
            yield
        finally:
            self.update_since(start)

    def count(self) -> int:
        return self._histogram.count()

    def snapshot(self) -> TimerSnapshot:
        return TimerSnapshot(histogram=self._histogram.snapshot(), meter=self._meter.snapshot())


class Registry:
    """
    Thread-safe mapping of metric names to metrics.

    Registries are created explicitly and handed to whoever reports them;
    there is no process-wide default instance.
    """

    def __init__(self):
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def each(self, callback: Callable[[str, Any], None]) -> None:
        """
        Call ``callback(name, metric)`` for every registered metric.

        The callback runs outside the registry lock, over a copy of the
        registrations taken when iteration starts.
        """
        with self._lock:
            items = list(self._metrics.items())
        for name, metric in items:
            callback(name, metric)

    def get(self, name: str) -> Optional[Any]:
        with self._lock:
            return self._metrics.get(name)

    def register(self, name: str, metric: Any) -> None:
        """
        Register a metric under ``name``.

        Raises:
            DuplicateMetric: If the name is already registered
        """
        with self._lock:
            if name in self._metrics:
                raise DuplicateMetric(f"duplicate metric: {name}")
            self._metrics[name] = metric
        logger.debug("Registered metric: %s", name)

    def get_or_register(self, name: str, factory: Callable[[], Any]) -> Any:
        """Return the metric registered under ``name``, creating it with ``factory`` if missing."""
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = factory()
                self._metrics[name] = metric
            return metric

    def unregister(self, name: str) -> bool:
        with self._lock:
            return self._metrics.pop(name, None) is not None

    def unregister_all(self) -> None:
        with self._lock:
            self._metrics.clear()

    def _typed(self, name: str, metric_type: type) -> Any:
        metric = self.get_or_register(name, metric_type)
        if not isinstance(metric, metric_type):
            raise TypeError(f"metric {name} is a {type(metric).__name__}, not a {metric_type.__name__}")
        return metric

    def counter(self, name: str) -> Counter:
        return self._typed(name, Counter)

    def gauge(self, name: str) -> Gauge:
        return self._typed(name, Gauge)

    def gauge_float(self, name: str) -> GaugeFloat:
        return self._typed(name, GaugeFloat)

    def histogram(self, name: str) -> Histogram:
        return self._typed(name, Histogram)

    def meter(self, name: str) -> Meter:
        return self._typed(name, Meter)

    def timer(self, name: str) -> Timer:
        return self._typed(name, Timer)

    def __len__(self) -> int:
        return len(self._metrics)

    def __contains__(self, name: str) -> bool:
        return name in self._metrics
