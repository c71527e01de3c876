"""Ordered, thread-safe collection of named metrics."""
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
import threading


class DuplicateMetricError(ValueError):
    """Raised when registering a name that is already taken."""

    def __init__(self, name: str):
        super().__init__(f"Metric already registered: {name!r}")
        self.name = name


class Registry:
    """
    Maps metric identifiers to metric instances.

    Identifiers may carry tags in a bracketed suffix, e.g.
    ``api.requests[env:prod,region:us]``. Iteration yields a snapshot of
    ``(identifier, metric)`` pairs in registration order, so metrics can be
    registered or removed while a report is being built.
    """

    def __init__(self):
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def register(self, name: str, metric: Any):
        with self._lock:
            if name in self._metrics:
                raise DuplicateMetricError(name)
            self._metrics[name] = metric

    def get(self, name: str) -> Optional[Any]:
        with self._lock:
            return self._metrics.get(name)

    def get_or_register(self, name: str, factory: Callable[[], Any]) -> Any:
        """Return the metric registered as ``name``, creating it with ``factory`` if absent."""
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = factory()
                self._metrics[name] = metric
            return metric

    def unregister(self, name: str):
        with self._lock:
            self._metrics.pop(name, None)

    def items(self) -> List[Tuple[str, Any]]:
        with self._lock:
            return list(self._metrics.items())

    def names(self) -> List[str]:
        with self._lock:
            return list(self._metrics.keys())

    def each(self, fn: Callable[[str, Any], None]):
        for name, metric in self.items():
            fn(name, metric)

    def __iter__(self) -> Iterator[Tuple[str, Any]]:
        return iter(self.items())

    def __len__(self) -> int:
        return len(self._metrics)

    def __contains__(self, name: str) -> bool:
        return name in self._metrics
