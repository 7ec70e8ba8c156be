"""
Color mapping and palette management for flame rendering.

This module provides the per-sample HSL color mapper used by the chaos game
as a live-preview side channel, vectorised HSL to RGB conversion, gradient
palettes, and rasterisation of point clouds and overlap maps into RGB
image arrays.
"""

import numpy as np
from typing import Dict, List, Mapping, Tuple, Union
from dataclasses import dataclass
import logging

import matplotlib

from ..core.flame_types import ColorParams
from ..core.math_functions import ScreenTransform
from ..core.point_cloud import PointCloud
from ..exceptions import InvalidInputError

logger = logging.getLogger(__name__)

SAMPLE_ALPHA = 0.5


@dataclass(frozen=True)
class ColorSample:
    """HSLA color produced for one chaos-game sample."""
    hue: float
    saturation: float
    lightness: float
    alpha: float = SAMPLE_ALPHA

    def to_css(self) -> str:
        """Format as a CSS hsla() color."""
        return f"hsla({self.hue}, {self.saturation}%, {self.lightness}%, {self.alpha})"

    def to_rgb(self) -> Tuple[float, float, float]:
        """Convert to an RGB tuple with components in [0, 1]."""
        rgb = hsl_to_rgb(np.array([self.hue]), np.array([self.saturation]),
                         np.array([self.lightness]))
        return tuple(float(v) for v in rgb[0])


def color_sample(x: float, y: float, params: ColorParams) -> ColorSample:
    """
    Compute the color of a sample at iteration-space position (x, y).

    Hue wraps into [0, 360); saturation and lightness are clamped to
    [0, 100]. Alpha is fixed.

    Args:
        x, y: Sample position
        params: Color response coefficients

    Returns:
        ColorSample
    """
    base, speed, shift = params.base_color, params.color_speed, params.color_shift
    hue = (base[0] + speed[0] * x + shift[0] * y) % 360.0
    saturation = min(100.0, max(0.0, base[1] + speed[1] * x + shift[1] * y))
    lightness = min(100.0, max(0.0, base[2] + speed[2] * x + shift[2] * y))
    return ColorSample(hue, saturation, lightness)


def map_colors(xs: np.ndarray, ys: np.ndarray,
               params: ColorParams) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Vectorised color_sample.

    Returns:
        Tuple of (hue, saturation, lightness) arrays
    """
    xs = np.asarray(xs, dtype=np.float64)
    ys = np.asarray(ys, dtype=np.float64)
    base, speed, shift = params.base_color, params.color_speed, params.color_shift
    hue = np.mod(base[0] + speed[0] * xs + shift[0] * ys, 360.0)
    saturation = np.clip(base[1] + speed[1] * xs + shift[1] * ys, 0.0, 100.0)
    lightness = np.clip(base[2] + speed[2] * xs + shift[2] * ys, 0.0, 100.0)
    return hue, saturation, lightness


def hsl_to_rgb(hue: np.ndarray, saturation: np.ndarray, lightness: np.ndarray) -> np.ndarray:
    """
    Convert HSL arrays to RGB.

    Args:
        hue: Degrees, any range (wrapped)
        saturation, lightness: Percentages in [0, 100]

    Returns:
        Array of shape hue.shape + (3,) with values in [0, 1]
    """
    h = np.mod(np.asarray(hue, dtype=np.float64), 360.0) / 360.0
    s = np.clip(np.asarray(saturation, dtype=np.float64) / 100.0, 0.0, 1.0)
    l = np.clip(np.asarray(lightness, dtype=np.float64) / 100.0, 0.0, 1.0)

    # CSS Color Module algorithm
    a = s * np.minimum(l, 1.0 - l)
    channels = []
    for n in (0.0, 8.0, 4.0):
        k = np.mod(n + h * 12.0, 12.0)
        channels.append(l - a * np.clip(np.minimum(k - 3.0, 9.0 - k), -1.0, 1.0))
    return np.clip(np.stack(channels, axis=-1), 0.0, 1.0)


@dataclass
class ColorRGB:
    """RGB color representation."""
    r: float
    g: float
    b: float

    def __post_init__(self):
        for component in (self.r, self.g, self.b):
            if not 0 <= component <= 1:
                raise InvalidInputError("RGB components must be between 0 and 1")

    def to_tuple(self) -> Tuple[float, float, float]:
        """Get the (r, g, b) components in [0, 1]."""
        return (self.r, self.g, self.b)

    def to_uint8_tuple(self) -> Tuple[int, int, int]:
        """Get the components scaled to 0-255 integers."""
        return (int(self.r * 255), int(self.g * 255), int(self.b * 255))


class Palette:
    """Color gradient with linear interpolation."""

    def __init__(self, colors: List[Union[ColorRGB, Tuple[float, float, float]]],
                 name: str = "Custom"):
        """
        Initialize color palette.

        Args:
            colors: List of colors in the palette
            name: Human-readable name for the palette
        """
        self.name = name
        self.colors = []

        for color in colors:
            if isinstance(color, ColorRGB):
                self.colors.append(color)
            elif isinstance(color, (tuple, list)) and len(color) == 3:
                self.colors.append(ColorRGB(*color))
            else:
                raise InvalidInputError(f"Invalid color format: {color}")

        if len(self.colors) < 2:
            raise InvalidInputError("Palette must contain at least 2 colors")

        self._table = np.array([c.to_tuple() for c in self.colors], dtype=np.float64)

    def interpolate(self, t: Union[float, np.ndarray]) -> np.ndarray:
        """
        Interpolate colors at positions t in [0, 1].

        Args:
            t: Scalar or array of positions (values outside are clipped)

        Returns:
            Array of shape np.shape(t) + (3,)
        """
        t = np.clip(np.asarray(t, dtype=np.float64), 0.0, 1.0)
        positions = np.linspace(0.0, 1.0, len(self.colors))
        return np.stack([np.interp(t, positions, self._table[:, channel])
                         for channel in range(3)], axis=-1)

    @classmethod
    def from_matplotlib(cls, cmap_name: str, n_samples: int = 32) -> 'Palette':
        """Create palette from a matplotlib colormap."""
        try:
            cmap = matplotlib.colormaps[cmap_name]
        except KeyError as e:
            raise InvalidInputError(f"Unknown matplotlib colormap '{cmap_name}'") from e

        colors = [tuple(float(c) for c in cmap(t)[:3]) for t in np.linspace(0, 1, n_samples)]
        return cls(colors, name=f"From_{cmap_name}")


class ColoringEngine:
    """Rasterises point clouds and overlap payloads into RGB images."""

    def __init__(self):
        self.palettes = self._create_builtin_palettes()

    def _create_builtin_palettes(self) -> Dict[str, Palette]:
        palettes = {
            # Matches the red overlap markers of the comparison view
            'red': Palette([(0, 0, 0), (1, 0, 0)], name="Red"),
            'hot': Palette([(0, 0, 0), (1, 0, 0), (1, 1, 0), (1, 1, 1)], name="Hot"),
            'gray': Palette([(0, 0, 0), (1, 1, 1)], name="Grayscale"),
        }
        for name in ('viridis', 'plasma', 'inferno', 'magma'):
            palettes[name] = Palette.from_matplotlib(name, 32)
        return palettes

    def add_palette(self, name: str, palette: Palette) -> None:
        """Register a custom palette."""
        self.palettes[name] = palette
        logger.info(f"Added color palette: {name}")

    def get_palette(self, name: str) -> Palette:
        """Get a palette by name."""
        if name not in self.palettes:
            available = ', '.join(self.palettes.keys())
            raise InvalidInputError(f"Unknown color palette '{name}'. Available: {available}")
        return self.palettes[name]

    def list_palettes(self) -> List[str]:
        """Get list of available palette names."""
        return list(self.palettes.keys())

    def render_point_cloud(self, cloud: PointCloud, params: ColorParams,
                           width: int, height: int, gamma: float = 2.2) -> np.ndarray:
        """
        Render a point cloud as a flame image.

        Each visited pixel takes the color the mapper gives its pixel centre
        in iteration space; brightness follows log-density normalised to the
        densest pixel, then gamma corrected.

        Args:
            cloud: Point cloud produced for a raster of the same size
            params: Color response coefficients
            width, height: Raster size
            gamma: Display gamma

        Returns:
            RGB image array (height, width, 3) with values 0-1
        """
        if gamma <= 0:
            raise InvalidInputError("gamma must be positive")

        image = np.zeros((height, width, 3), dtype=np.float64)
        px, py, counts = _on_raster(cloud, width, height)
        if counts.size == 0:
            return image

        xs, ys = ScreenTransform(width, height).to_world_arrays(px, py)
        rgb = hsl_to_rgb(*map_colors(xs, ys, params))

        log_density = np.log1p(counts.astype(np.float64))
        brightness = (log_density / log_density.max()) ** (1.0 / gamma)
        image[py, px] = rgb * brightness[:, np.newaxis]
        return image

    def render_overlap(self, overlap: Union[Mapping, Dict], width: int, height: int,
                       palette: str = 'red') -> np.ndarray:
        """
        Render overlap intensities as a heat map.

        Args:
            overlap: Either a rendering payload ({'points': [...]}) or an
                overlap map keyed by (x, y)
            width, height: Raster size
            palette: Palette name

        Returns:
            RGB image array (height, width, 3) with values 0-1
        """
        image = np.zeros((height, width, 3), dtype=np.float64)

        if 'points' in overlap:
            rows = [(p['position']['x'], p['position']['y'], p['intensity'])
                    for p in overlap['points']]
        else:
            rows = [(x, y, entry.intensity) for (x, y), entry in overlap.items()]
        if not rows:
            return image

        data = np.asarray(rows, dtype=np.float64)
        px = data[:, 0].astype(np.int64)
        py = data[:, 1].astype(np.int64)
        mask = (px >= 0) & (px < width) & (py >= 0) & (py < height)
        image[py[mask], px[mask]] = self.get_palette(palette).interpolate(data[mask, 2])
        return image


def _on_raster(cloud: PointCloud, width: int, height: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Split a cloud into pixel and count arrays, dropping off-raster entries."""
    if len(cloud) == 0:
        empty = np.zeros(0, dtype=np.int64)
        return empty, empty, empty

    data = np.asarray(cloud.to_wire(), dtype=np.float64)
    px = np.floor(data[:, 0]).astype(np.int64)
    py = np.floor(data[:, 1]).astype(np.int64)
    counts = data[:, 2].astype(np.int64)
    mask = (px >= 0) & (px < width) & (py >= 0) & (py < height)

    dropped = int(np.count_nonzero(~mask))
    if dropped:
        logger.debug(f"Skipping {dropped} point cloud entries outside the {width}x{height} raster")
    return px[mask], py[mask], counts[mask]
