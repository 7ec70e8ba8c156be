"""
Embedding flame visualisation library.

This library turns embedding vectors into flame fractals and compares the
point clouds of two flames for spatial overlap.

Key Features:
- Deterministic derivation of flame parameters from vectors of any length
- Seedable, batch-wise chaos-game engine with progress and cancellation
- Serializable point clouds in a compact [x, y, count] wire shape
- Distance-decayed overlap maps and renderable overlap payloads
- Optional multi-process rendering and comparison

Example usage:
    >>> from embedding_flame import FlameRenderer, RenderConfig, OverlapAnalyzer
    >>> renderer = FlameRenderer(RenderConfig(width=400, height=400, seed=7))
    >>> cloud_a = renderer.render(vector_a).point_cloud
    >>> cloud_b = renderer.render(vector_b).point_cloud
    >>> payload = OverlapAnalyzer().compare(cloud_a, cloud_b)
"""

__version__ = "1.0.0"
__author__ = "Embedding Flame Team"

from embedding_flame.exceptions import FlameError, InvalidInputError, NotFoundError
from embedding_flame.core.flame_types import FractalParams, ColorParams, derive_params, common_core
from embedding_flame.core.engine import ChaosGameEngine, RenderResult
from embedding_flame.core.point_cloud import PointCloud, DensityMap
from embedding_flame.comparison.overlap import (
    OverlapConfig, OverlapEntry, calculate_overlap, build_rendering_data,
)
from embedding_flame.io.store import InMemoryPointCloudStore

# Main API classes
from embedding_flame.api import FlameRenderer, RenderConfig, OverlapAnalyzer, OverlapService, render_flame

__all__ = [
    "FlameRenderer",
    "RenderConfig",
    "OverlapAnalyzer",
    "OverlapService",
    "render_flame",
    "FractalParams",
    "ColorParams",
    "derive_params",
    "common_core",
    "ChaosGameEngine",
    "RenderResult",
    "PointCloud",
    "DensityMap",
    "OverlapConfig",
    "OverlapEntry",
    "calculate_overlap",
    "build_rendering_data",
    "InMemoryPointCloudStore",
    "FlameError",
    "InvalidInputError",
    "NotFoundError",
]
