"""
Spatial overlap between two point clouds.

For every entry of cloud A the comparator scans a square window of integer
offsets around it, looks up cloud B's summed counts at each offset, and
scores matches with a Gaussian distance falloff weighted by the geometric
mean of the two counts. Results are keyed by A's own pixel, so comparing A
with B and B with A generally gives different maps.
"""

import math
from typing import Dict, Any, Iterable, List, Optional, Tuple, Union, Sequence
from dataclasses import dataclass, asdict
import logging

from ..core.point_cloud import PointCloud
from ..exceptions import InvalidInputError

logger = logging.getLogger(__name__)

PixelKey = Tuple[int, int]


@dataclass(frozen=True)
class OverlapEntry:
    """Overlap score at one output pixel."""
    intensity: float
    distance: float


OverlapMap = Dict[PixelKey, OverlapEntry]


@dataclass
class OverlapConfig:
    """Constants of the overlap comparator."""

    max_distance: int = 10  # pixels, square window half-size
    sigma: float = 3.0
    min_alpha: float = 0.01
    density_divisor: float = 25.0
    gain: float = 2.5
    num_workers: int = 1

    def validate(self) -> None:
        """Validate configuration parameters."""
        if self.max_distance < 0 or int(self.max_distance) != self.max_distance:
            raise InvalidInputError("max_distance must be a non-negative integer")
        if self.sigma <= 0:
            raise InvalidInputError("sigma must be positive")
        if self.density_divisor <= 0:
            raise InvalidInputError("density_divisor must be positive")
        if self.gain <= 0:
            raise InvalidInputError("gain must be positive")
        if not 0 <= self.min_alpha < 1:
            raise InvalidInputError("min_alpha must be in [0, 1)")
        if self.num_workers < 1:
            raise InvalidInputError("num_workers must be >= 1")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward positive infinity."""
    return math.floor(value + 0.5)


CloudLike = Union[PointCloud, Sequence[Sequence[float]]]


def _as_cloud(cloud: CloudLike) -> PointCloud:
    if isinstance(cloud, PointCloud):
        return cloud
    return PointCloud.from_wire(cloud)


def build_count_lookup(cloud: CloudLike) -> Dict[PixelKey, int]:
    """Sum a cloud's counts per rounded integer coordinate."""
    lookup: Dict[PixelKey, int] = {}
    for x, y, count in _as_cloud(cloud):
        key = (round_half_up(x), round_half_up(y))
        lookup[key] = lookup.get(key, 0) + count
    return lookup


def window_offsets(max_distance: int) -> List[Tuple[int, int, int]]:
    """
    Offsets of the square search window that lie within the circular cutoff.

    Returns:
        List of (dx, dy, dx*dx + dy*dy) in scan order (dx outer, dy inner)
    """
    limit_sq = max_distance * max_distance
    offsets = []
    for dx in range(-max_distance, max_distance + 1):
        for dy in range(-max_distance, max_distance + 1):
            dist_sq = dx * dx + dy * dy
            if dist_sq <= limit_sq:
                offsets.append((dx, dy, dist_sq))
    return offsets


def calculate_overlap(cloud_a: CloudLike, cloud_b: CloudLike,
                      config: Optional[OverlapConfig] = None,
                      threshold: Optional[float] = None,
                      b_lookup: Optional[Dict[PixelKey, int]] = None) -> OverlapMap:
    """
    Compute the overlap map of cloud A against cloud B.

    Args:
        cloud_a: Cloud whose pixels anchor the output
        cloud_b: Cloud searched around each A pixel
        config: Comparator constants (defaults if None)
        threshold: Legacy parameter, accepted and ignored
        b_lookup: Precomputed build_count_lookup(cloud_b), used by
            partitioned execution to avoid rebuilding it per chunk

    Returns:
        Map from A's integer pixel to the best-scoring OverlapEntry
    """
    config = config or OverlapConfig()
    config.validate()
    cloud_a = _as_cloud(cloud_a)

    if b_lookup is None:
        b_lookup = build_count_lookup(cloud_b)

    two_sigma_sq = 2.0 * config.sigma * config.sigma
    divisor = config.density_divisor
    gain = config.gain
    min_alpha = config.min_alpha

    # Distance and falloff depend only on the offset
    offsets = [(dx, dy, math.sqrt(dist_sq), math.exp(-dist_sq / two_sigma_sq))
               for dx, dy, dist_sq in window_offsets(int(config.max_distance))]

    overlaps: OverlapMap = {}
    for x_a, y_a, count_a in cloud_a:
        out_key = (round_half_up(x_a), round_half_up(y_a))
        for dx, dy, distance, similarity in offsets:
            count_b = b_lookup.get((round_half_up(x_a + dx), round_half_up(y_a + dy)))
            if not count_b:
                continue

            density = math.sqrt(count_a * count_b) / divisor
            alpha = min(1.0, similarity * density * gain)
            if alpha <= min_alpha:
                continue

            existing = overlaps.get(out_key)
            if existing is None or alpha > existing.intensity:
                overlaps[out_key] = OverlapEntry(intensity=alpha, distance=distance)

    logger.info(f"Overlap: {len(overlaps)} pixels from {len(cloud_a)} x "
                f"{len(b_lookup)} candidate pixels")
    return overlaps


def merge_overlap_maps(maps: Iterable[OverlapMap]) -> OverlapMap:
    """
    Merge partial overlap maps keeping the highest intensity per key.

    Maps are merged in the given order and ties keep the earlier entry, so
    merging the maps of contiguous chunks of A in chunk order reproduces the
    single-pass result.
    """
    merged: OverlapMap = {}
    for partial in maps:
        for key, entry in partial.items():
            existing = merged.get(key)
            if existing is None or entry.intensity > existing.intensity:
                merged[key] = entry
    return merged


def build_rendering_data(overlaps: OverlapMap) -> Dict[str, Any]:
    """
    Build the rendering payload for an overlap map.

    Returns:
        {'points': [{'position': {'x', 'y', 'z'}, 'intensity'}],
         'metadata': {'count', 'averageDistance'}}
    """
    points = [
        {'position': {'x': x, 'y': y, 'z': 0}, 'intensity': entry.intensity}
        for (x, y), entry in overlaps.items()
    ]
    total_distance = sum(entry.distance for entry in overlaps.values())

    return {
        'points': points,
        'metadata': {
            'count': len(overlaps),
            'averageDistance': total_distance / len(overlaps) if overlaps else 0,
        },
    }
