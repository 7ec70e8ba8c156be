"""
Density maps and point clouds.

A DensityMap is the histogram built while a render runs; a PointCloud is
its immutable, serializable form and the unit exchanged with storage and
with the overlap comparator. The wire shape is a list of [x, y, count]
triples.
"""

import json
import math
from typing import Dict, Any, Iterable, Iterator, List, Optional, Sequence, Tuple, NamedTuple
import logging

from ..exceptions import InvalidInputError

logger = logging.getLogger(__name__)

PixelKey = Tuple[int, int]


class CloudPoint(NamedTuple):
    """A single (x, y, count) entry of a point cloud."""
    x: float
    y: float
    count: int


class DensityMap:
    """Visit counts keyed by quantized pixel coordinate."""

    def __init__(self):
        self._counts: Dict[PixelKey, int] = {}

    def increment(self, x: int, y: int, amount: int = 1) -> None:
        """Add visits to a pixel, inserting it on first visit."""
        key = (x, y)
        self._counts[key] = self._counts.get(key, 0) + amount

    def merge(self, other: 'DensityMap') -> 'DensityMap':
        """
        Sum another map's counts into this one.

        Summing per key is commutative and associative, so partial maps from
        independent workers can be merged in any order.

        Returns:
            self, for chaining
        """
        for (x, y), count in other.items():
            self.increment(x, y, count)
        return self

    def items(self) -> Iterable[Tuple[PixelKey, int]]:
        return self._counts.items()

    def get(self, x: int, y: int) -> int:
        return self._counts.get((x, y), 0)

    @property
    def total(self) -> int:
        return sum(self._counts.values())

    def to_point_cloud(self) -> 'PointCloud':
        """Convert to a point cloud, one entry per visited pixel in first-visit order."""
        return PointCloud(CloudPoint(x, y, count) for (x, y), count in self._counts.items())

    def __len__(self) -> int:
        return len(self._counts)

    def __contains__(self, key: PixelKey) -> bool:
        return key in self._counts

    def __repr__(self) -> str:
        return f"DensityMap(pixels={len(self)}, total={self.total})"


class PointCloud:
    """Immutable sequence of (x, y, count) entries."""

    def __init__(self, points: Iterable[CloudPoint] = ()):
        self._points: Tuple[CloudPoint, ...] = tuple(CloudPoint(*p) for p in points)

    @classmethod
    def from_wire(cls, data: Sequence[Sequence[float]]) -> 'PointCloud':
        """
        Build a point cloud from its wire shape.

        Args:
            data: List of [x, y, count] triples. Coordinates must be finite;
                counts must be positive integers.

        Returns:
            PointCloud
        """
        if not isinstance(data, (list, tuple)):
            raise InvalidInputError("Point cloud must be a list of [x, y, count] triples")

        points = []
        for index, entry in enumerate(data):
            if not isinstance(entry, (list, tuple)) or len(entry) != 3:
                raise InvalidInputError(f"Entry {index} is not an [x, y, count] triple: {entry!r}")
            try:
                x, y, count = (float(v) for v in entry)
            except (TypeError, ValueError) as e:
                raise InvalidInputError(f"Entry {index} contains a non-numeric value") from e
            if not (math.isfinite(x) and math.isfinite(y)):
                raise InvalidInputError(f"Entry {index} has non-finite coordinates")
            if count < 1 or count != int(count):
                raise InvalidInputError(f"Entry {index} count must be a positive integer, got {count}")
            points.append(CloudPoint(_as_number(x), _as_number(y), int(count)))

        return cls(points)

    def to_wire(self) -> List[List[float]]:
        """Convert to the [x, y, count] wire shape."""
        return [[p.x, p.y, p.count] for p in self._points]

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_wire(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> 'PointCloud':
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise InvalidInputError(f"Point cloud is not valid JSON: {e}") from e
        return cls.from_wire(data)

    @property
    def total_count(self) -> int:
        return sum(p.count for p in self._points)

    def bounds(self) -> Optional[Tuple[float, float, float, float]]:
        """Get (xmin, xmax, ymin, ymax), or None for an empty cloud."""
        if not self._points:
            return None
        xs = [p.x for p in self._points]
        ys = [p.y for p in self._points]
        return (min(xs), max(xs), min(ys), max(ys))

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[CloudPoint]:
        return iter(self._points)

    def __getitem__(self, index):
        return self._points[index]

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, PointCloud):
            return NotImplemented
        return self._points == other._points

    def __repr__(self) -> str:
        return f"PointCloud(points={len(self)}, total={self.total_count})"


def _as_number(value: float):
    """Keep integral coordinates as ints so the wire shape stays integer-valued."""
    return int(value) if value == int(value) else value
