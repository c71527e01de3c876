"""Data structures for Datadog series records."""
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple, Union

Number = Union[int, float]

COUNTER = "counter"
GAUGE = "gauge"


@dataclass(frozen=True)
class Series:
    """A single named data point as accepted by the Datadog series API."""
    metric: str
    type: str
    points: Tuple[Tuple[int, Number], ...]
    host: str
    tags: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def timestamp(self) -> int:
        return self.points[0][0]

    @property
    def value(self) -> Number:
        return self.points[0][1]

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation; ``tags`` is left out when there are none."""
        body: Dict[str, Any] = {
            "metric": self.metric,
            "points": [list(point) for point in self.points],
            "type": self.type,
            "host": self.host,
        }
        if self.tags:
            body["tags"] = list(self.tags)
        return body
