"""
Flame parameter definitions and derivation from embedding vectors.

This module turns an arbitrary-length numeric vector into the transform
table and color coefficients that drive the chaos game. Derivation is a
pure function: the same vector always produces the same parameters, which
is what makes a previously generated flame reproducible at a higher
resolution.
"""

import math
import numpy as np
from typing import Dict, Any, List, Sequence, Tuple
from dataclasses import dataclass, field
import logging

from ..exceptions import InvalidInputError
from .math_functions import AffineTransform, VariationFunction, VariationRegistry, VARIATIONS

logger = logging.getLogger(__name__)

TRANSFORM_COUNT = 8
COEFFICIENTS_PER_TRANSFORM = 6
WEIGHT_EPSILON = 0.001
LINEAR_SCALE = 1.8
LINEAR_LIMIT = 2.0
COLOR_BASE_INDEX = TRANSFORM_COUNT + TRANSFORM_COUNT * COEFFICIENTS_PER_TRANSFORM
COLOR_SCALES = (40.0, 15.0, 15.0)

Color3 = Tuple[float, float, float]


@dataclass(frozen=True)
class ColorParams:
    """HSL-like color response coefficients."""

    base_color: Color3 = (0.0, 50.0, 25.0)
    color_speed: Color3 = (0.0, 0.0, 0.0)
    color_shift: Color3 = (0.0, 0.0, 0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'base_color': list(self.base_color),
            'color_speed': list(self.color_speed),
            'color_shift': list(self.color_shift),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ColorParams':
        try:
            return cls(
                base_color=_triple(data['base_color']),
                color_speed=_triple(data['color_speed']),
                color_shift=_triple(data['color_shift']),
            )
        except (KeyError, TypeError) as e:
            raise InvalidInputError(f"Invalid color parameters: {e}") from e


@dataclass(frozen=True)
class TransformEntry:
    """One row of the transform table."""

    affine: AffineTransform
    weight: float
    variation_index: int

    @property
    def variation(self) -> VariationFunction:
        return VariationRegistry.get(self.variation_index)

    def apply(self, x: float, y: float) -> Tuple[float, float]:
        """Apply the affine transform followed by the paired variation."""
        return self.variation(*self.affine.apply(x, y))


@dataclass(frozen=True)
class FractalParams:
    """Complete parameter set for one flame render."""

    transforms: Tuple[TransformEntry, ...]
    color: ColorParams = field(default_factory=ColorParams)

    def __post_init__(self):
        self.validate()

    @property
    def weights(self) -> Tuple[float, ...]:
        return tuple(entry.weight for entry in self.transforms)

    def validate(self) -> None:
        """Validate the transform table."""
        if not self.transforms:
            raise InvalidInputError("Transform table must not be empty")

        weights = self.weights
        if any(w < 0 or not math.isfinite(w) for w in weights):
            raise InvalidInputError("Transform weights must be finite and non-negative")
        if not math.isclose(sum(weights), 1.0, abs_tol=1e-9):
            raise InvalidInputError(f"Transform weights must sum to 1, got {sum(weights)}")

    def cumulative_weights(self) -> np.ndarray:
        """Get the cumulative selection weights used by the chaos game."""
        return np.cumsum(np.asarray(self.weights, dtype=np.float64))

    def to_dict(self) -> Dict[str, Any]:
        """Convert parameters to a JSON-friendly dictionary."""
        return {
            'transforms': [
                {
                    'coefficients': list(entry.affine.coefficients()),
                    'weight': entry.weight,
                    'variation': VariationRegistry.names()[entry.variation_index % len(VARIATIONS)],
                }
                for entry in self.transforms
            ],
            'color': self.color.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FractalParams':
        """Create parameters from a dictionary produced by to_dict."""
        try:
            entries = []
            for row in data['transforms']:
                coefficients = [float(v) for v in row['coefficients']]
                if len(coefficients) != COEFFICIENTS_PER_TRANSFORM:
                    raise InvalidInputError("Affine transforms need exactly 6 coefficients")
                variation = row.get('variation', len(entries))
                if isinstance(variation, str):
                    variation = VariationRegistry.index_of(variation)
                entries.append(TransformEntry(
                    affine=AffineTransform(*coefficients),
                    weight=float(row['weight']),
                    variation_index=int(variation),
                ))
            color = ColorParams.from_dict(data.get('color', ColorParams().to_dict()))
        except InvalidInputError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidInputError(f"Invalid fractal parameters: {e}") from e

        return cls(transforms=tuple(entries), color=color)


def _triple(values: Sequence[float]) -> Color3:
    values = [float(v) for v in values]
    if len(values) != 3:
        raise InvalidInputError("Color channels need exactly 3 values")
    return (values[0], values[1], values[2])


def _clip(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def validate_vector(vector: Sequence[float]) -> List[float]:
    """
    Validate an embedding vector and return it as a list of floats.

    Args:
        vector: Sequence of real numbers, length >= 1

    Returns:
        List of floats
    """
    try:
        values = [float(v) for v in vector]
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Vector must contain only numbers: {e}") from e

    if not values:
        raise InvalidInputError("Vector must contain at least one value")
    if not all(math.isfinite(v) for v in values):
        raise InvalidInputError("Vector values must be finite")
    return values


def derive_params(vector: Sequence[float]) -> FractalParams:
    """
    Derive flame parameters from an embedding vector.

    Indices wrap modulo the vector length, so vectors of any length >= 1
    produce a full table of 8 transforms.

    Args:
        vector: Embedding vector

    Returns:
        FractalParams for the vector
    """
    values = validate_vector(vector)
    n = len(values)

    def at(index: int) -> float:
        return values[index % n]

    # Selection weights
    raw_weights = [abs(at(i)) + WEIGHT_EPSILON for i in range(TRANSFORM_COUNT)]
    total = sum(raw_weights)
    weights = [w / total for w in raw_weights]

    # Affine transforms: linear part scaled and clamped, translation unscaled
    entries = []
    for i in range(TRANSFORM_COUNT):
        base = TRANSFORM_COUNT + i * COEFFICIENTS_PER_TRANSFORM
        a = _clip(at(base) * LINEAR_SCALE, -LINEAR_LIMIT, LINEAR_LIMIT)
        b = _clip(at(base + 1) * LINEAR_SCALE, -LINEAR_LIMIT, LINEAR_LIMIT)
        c = at(base + 2)
        d = _clip(at(base + 3) * LINEAR_SCALE, -LINEAR_LIMIT, LINEAR_LIMIT)
        e = _clip(at(base + 4) * LINEAR_SCALE, -LINEAR_LIMIT, LINEAR_LIMIT)
        f = at(base + 5)
        entries.append(TransformEntry(
            affine=AffineTransform(a, b, c, d, e, f),
            weight=weights[i],
            variation_index=i % len(VARIATIONS),
        ))

    # Color response: base color from clipped magnitudes
    magnitudes = [min(abs(at(COLOR_BASE_INDEX + k)), 1.0) for k in range(3)]
    hue = (magnitudes[0] * 360.0) % 360.0
    saturation = 50.0 + magnitudes[1] * 50.0
    lightness = 25.0 + magnitudes[2] * 50.0

    speed = tuple(at(COLOR_BASE_INDEX + 3 + k) * COLOR_SCALES[k] for k in range(3))
    shift = tuple(at(COLOR_BASE_INDEX + 6 + k) * COLOR_SCALES[k] for k in range(3))

    params = FractalParams(
        transforms=tuple(entries),
        color=ColorParams(
            base_color=(hue, saturation, lightness),
            color_speed=speed,
            color_shift=shift,
        ),
    )
    logger.debug(f"Derived flame parameters from vector of length {n}")
    return params


def common_core(vector_a: Sequence[float], vector_b: Sequence[float]) -> List[float]:
    """
    Build the shared core of two embedding vectors.

    Components whose signs agree keep that sign with the smaller magnitude;
    components with opposite signs (or a zero) cancel to 0.

    Args:
        vector_a, vector_b: Embedding vectors of equal length

    Returns:
        Shared-core vector
    """
    a = validate_vector(vector_a)
    b = validate_vector(vector_b)
    if len(a) != len(b):
        raise InvalidInputError(f"Vector lengths differ: {len(a)} != {len(b)}")

    core = []
    for v1, v2 in zip(a, b):
        if np.sign(v1) == np.sign(v2):
            core.append(float(np.sign(v1)) * min(abs(v1), abs(v2)))
        else:
            core.append(0.0)
    return core
