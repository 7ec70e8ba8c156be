"""
Core mathematical functions for flame iteration.

This module provides the variation catalog applied after each affine
transform, the affine transform itself, and the fixed mapping between the
abstract iteration space and raster pixel coordinates.
"""

import math
import numpy as np
from typing import Callable, Dict, Tuple, Union
from dataclasses import dataclass
import logging

from ..exceptions import InvalidInputError

logger = logging.getLogger(__name__)

VariationFunction = Callable[[float, float], Tuple[float, float]]


@dataclass
class Point:
    """Running position of the chaos game in iteration space."""
    x: float
    y: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y)


@dataclass(frozen=True)
class AffineTransform:
    """
    Affine map x' = a*x + b*y + c, y' = d*x + e*y + f.
    """
    a: float
    b: float
    c: float
    d: float
    e: float
    f: float

    def apply(self, x: float, y: float) -> Tuple[float, float]:
        """Apply the transform to a single coordinate pair."""
        return (self.a * x + self.b * y + self.c,
                self.d * x + self.e * y + self.f)

    def coefficients(self) -> Tuple[float, float, float, float, float, float]:
        """Get coefficients in (a, b, c, d, e, f) order."""
        return (self.a, self.b, self.c, self.d, self.e, self.f)


# Variation functions. Anything dividing by the radius treats r = 0 as a
# neutral factor of 1, and atan2(0, 0) is 0, so the origin never produces
# NaN or infinite output.

def linear(x: float, y: float) -> Tuple[float, float]:
    return (x, y)


def sinusoidal(x: float, y: float) -> Tuple[float, float]:
    return (math.sin(x), math.sin(y))


def spherical(x: float, y: float) -> Tuple[float, float]:
    r2 = x * x + y * y
    factor = 1.0 / r2 if r2 > 0 else 1.0
    return (x * factor, y * factor)


def swirl(x: float, y: float) -> Tuple[float, float]:
    r2 = x * x + y * y
    sin_r = math.sin(r2)
    cos_r = math.cos(r2)
    return (x * sin_r - y * cos_r, x * cos_r + y * sin_r)


def horseshoe(x: float, y: float) -> Tuple[float, float]:
    r = math.sqrt(x * x + y * y)
    factor = 1.0 / r if r > 0 else 1.0
    return (factor * (x - y) * (x + y), factor * 2.0 * x * y)


def polar(x: float, y: float) -> Tuple[float, float]:
    r = math.sqrt(x * x + y * y)
    theta = math.atan2(y, x)
    return (theta / math.pi, r - 1.0)


def handkerchief(x: float, y: float) -> Tuple[float, float]:
    r = math.sqrt(x * x + y * y)
    theta = math.atan2(y, x)
    return (r * math.sin(theta + r), r * math.cos(theta - r))


def disc(x: float, y: float) -> Tuple[float, float]:
    r = math.sqrt(x * x + y * y)
    theta = math.atan2(y, x)
    factor = math.pi * r
    return (math.sin(factor) * theta / math.pi,
            math.cos(factor) * theta / math.pi)


# Catalog order matters: transform i is paired with VARIATIONS[i % 8].
VARIATIONS: Tuple[VariationFunction, ...] = (
    linear,
    sinusoidal,
    spherical,
    swirl,
    horseshoe,
    polar,
    handkerchief,
    disc,
)


class VariationRegistry:
    """Registry for looking up variation functions by name or catalog index."""

    _variations: Dict[str, VariationFunction] = {
        func.__name__: func for func in VARIATIONS
    }

    @classmethod
    def get(cls, key: Union[str, int]) -> VariationFunction:
        """
        Get a variation function.

        Args:
            key: Variation name (e.g. 'swirl') or catalog index; indices
                wrap around the catalog length

        Returns:
            The variation function
        """
        if isinstance(key, int):
            return VARIATIONS[key % len(VARIATIONS)]

        func = cls._variations.get(key.lower())
        if func is None:
            available = ', '.join(cls._variations.keys())
            raise InvalidInputError(f"Unknown variation '{key}'. Available: {available}")
        return func

    @classmethod
    def names(cls) -> Tuple[str, ...]:
        """Get the catalog names in order."""
        return tuple(func.__name__ for func in VARIATIONS)

    @classmethod
    def index_of(cls, name: str) -> int:
        """Get the catalog index of a named variation."""
        return VARIATIONS.index(cls.get(name))


class ScreenTransform:
    """
    Fixed mapping from iteration space onto a raster.

    The square [-1, 1] x [-1, 1] is centered on the raster and scaled by
    min(width, height) / 2, with the y-axis inverted so that mathematical up
    is screen up. The constants are computed once; nothing is read back from
    a drawing surface.
    """

    def __init__(self, width: int, height: int):
        """
        Initialize the transform for a raster size.

        Args:
            width, height: Raster size in device pixels
        """
        if width <= 0 or height <= 0:
            raise InvalidInputError("Width and height must be positive")

        self.width = width
        self.height = height
        self.scale = min(width, height) / 2.0
        self.offset_x = width / 2.0
        self.offset_y = height / 2.0

    def to_pixel(self, x: float, y: float) -> Tuple[int, int]:
        """Map an iteration-space point to its integer pixel coordinate."""
        return (math.floor(self.scale * x + self.offset_x),
                math.floor(-self.scale * y + self.offset_y))

    def to_world(self, px: float, py: float) -> Tuple[float, float]:
        """Map a pixel coordinate back to iteration space (pixel centre)."""
        x = (px + 0.5 - self.offset_x) / self.scale
        y = -(py + 0.5 - self.offset_y) / self.scale
        return (x, y)

    def to_pixels(self, xs: np.ndarray, ys: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Vectorised version of to_pixel for finite inputs."""
        px = np.floor(self.scale * np.asarray(xs, dtype=np.float64) + self.offset_x)
        py = np.floor(-self.scale * np.asarray(ys, dtype=np.float64) + self.offset_y)
        return px.astype(np.int64), py.astype(np.int64)

    def to_world_arrays(self, px: np.ndarray, py: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Vectorised version of to_world."""
        px = np.asarray(px, dtype=np.float64)
        py = np.asarray(py, dtype=np.float64)
        return ((px + 0.5 - self.offset_x) / self.scale,
                -(py + 0.5 - self.offset_y) / self.scale)

    def contains(self, px: int, py: int) -> bool:
        """Check whether a pixel coordinate lies on the raster."""
        return 0 <= px < self.width and 0 <= py < self.height

    def __repr__(self) -> str:
        return f"ScreenTransform(width={self.width}, height={self.height}, scale={self.scale})"
