"""
Main API classes for flame generation and comparison.

This module provides the high-level interface, combining parameter
derivation, the chaos-game engine, rasterisation and the overlap
comparator into easy-to-use classes.
"""

import numpy as np
from typing import Optional, Union, Dict, Any, Sequence
from dataclasses import dataclass, replace
from pathlib import Path
import logging
import time

from .core.engine import (
    CancelToken, ChaosGameEngine, ProgressCallback, RandomSource, RenderResult, SampleSink,
)
from .core.flame_types import FractalParams, derive_params
from .core.point_cloud import PointCloud
from .comparison.overlap import (
    OverlapConfig, OverlapMap, build_rendering_data, calculate_overlap,
)
from .rendering.coloring import ColoringEngine
from .rendering.image_output import ImageExporter, RenderMetadata
from .acceleration.multiprocessing import ParallelOverlap, ParallelRenderer
from .io.store import PointCloudStore
from .exceptions import InvalidInputError

logger = logging.getLogger(__name__)

ParamsOrVector = Union[FractalParams, Sequence[float]]


@dataclass
class RenderConfig:
    """Configuration for flame rendering."""

    # Raster
    width: int = 800
    height: int = 800

    # Chaos game
    iterations: int = 1_000_000
    batch_size: int = 10_000
    seed: Optional[int] = None

    # High-resolution export: size scales linearly, iterations quadratically
    resolution_multiplier: int = 1

    # Performance
    num_workers: int = 1

    # Output
    gamma: float = 2.2

    def validate(self):
        """Validate configuration parameters."""
        if self.width <= 0 or self.height <= 0:
            raise InvalidInputError("Width and height must be positive")

        if self.iterations < 0:
            raise InvalidInputError("iterations must be >= 0")

        if self.batch_size < 1:
            raise InvalidInputError("batch_size must be >= 1")

        if self.resolution_multiplier < 1:
            raise InvalidInputError("resolution_multiplier must be >= 1")

        if self.num_workers < 1:
            raise InvalidInputError("num_workers must be >= 1")

        if self.gamma <= 0:
            raise InvalidInputError("gamma must be positive")

    def scaled(self) -> 'RenderConfig':
        """Get the effective config with the resolution multiplier applied."""
        m = self.resolution_multiplier
        return replace(self, width=self.width * m, height=self.height * m,
                       iterations=self.iterations * m * m, resolution_multiplier=1)


def as_params(source: ParamsOrVector) -> FractalParams:
    """Accept either ready parameters or an embedding vector."""
    if isinstance(source, FractalParams):
        return source
    return derive_params(source)


class FlameRenderer:
    """Main flame rendering engine."""

    def __init__(self, config: Optional[RenderConfig] = None):
        """
        Initialize flame renderer.

        Args:
            config: Rendering configuration (uses defaults if None)
        """
        self.config = config or RenderConfig()
        self.config.validate()

        self.coloring_engine = ColoringEngine()
        self.image_exporter = ImageExporter()

        logger.info(f"FlameRenderer initialized: {self.config.width}x{self.config.height}, "
                    f"multiplier={self.config.resolution_multiplier}")

    def params_for(self, vector: Sequence[float]) -> FractalParams:
        """Derive flame parameters for an embedding vector."""
        return derive_params(vector)

    def render(self, source: ParamsOrVector,
               progress: Optional[ProgressCallback] = None,
               cancel: Optional[CancelToken] = None,
               rng: RandomSource = None,
               sample_sink: Optional[SampleSink] = None) -> RenderResult:
        """
        Render a flame to a point cloud.

        Args:
            source: FractalParams or the embedding vector to derive them from
            progress: Optional progress callback receiving percentages
            cancel: Optional cancellation token (e.g. threading.Event)
            rng: Random source; defaults to the configured seed
            sample_sink: Optional color side channel (single-worker only)

        Returns:
            RenderResult with the point cloud
        """
        params = as_params(source)
        config = self.config.scaled()

        logger.info(f"Starting render: {config.width}x{config.height}, "
                    f"{config.iterations} iterations, {config.num_workers} worker(s)")

        if config.num_workers > 1:
            if rng is not None or sample_sink is not None:
                raise InvalidInputError("rng and sample_sink are only supported with one worker")
            renderer = ParallelRenderer(config.num_workers)
            return renderer.render(params, config.width, config.height, config.iterations,
                                   seed=config.seed, batch_size=config.batch_size,
                                   progress=progress, cancel=cancel)

        engine = ChaosGameEngine(
            params, config.width, config.height,
            rng=config.seed if rng is None else rng,
            batch_size=config.batch_size,
        )
        return engine.render(config.iterations, progress=progress, cancel=cancel,
                             sample_sink=sample_sink)

    def render_image(self, cloud: PointCloud, source: ParamsOrVector) -> np.ndarray:
        """Rasterise a point cloud rendered with this config."""
        config = self.config.scaled()
        return self.coloring_engine.render_point_cloud(
            cloud, as_params(source).color, config.width, config.height, gamma=config.gamma)

    def export(self, source: ParamsOrVector, output_path: Path,
               progress: Optional[ProgressCallback] = None,
               cancel: Optional[CancelToken] = None) -> RenderResult:
        """
        Render a flame and save it as an image with embedded metadata.

        Returns:
            RenderResult of the render that was saved
        """
        params = as_params(source)
        result = self.render(params, progress=progress, cancel=cancel)
        image = self.render_image(result.point_cloud, params)

        config = self.config.scaled()
        metadata = RenderMetadata(
            kind='flame',
            resolution=(config.width, config.height),
            iterations=result.iterations_done,
            seed=config.seed,
            point_count=len(result.point_cloud),
            render_time_seconds=result.elapsed_seconds,
            cancelled=result.cancelled,
            fractal_parameters=params.to_dict(),
        )
        self.image_exporter.save_image(image, Path(output_path), metadata)
        return result


def render_flame(source: ParamsOrVector, config: Optional[RenderConfig] = None,
                 progress: Optional[ProgressCallback] = None,
                 cancel: Optional[CancelToken] = None) -> RenderResult:
    """Render a vector or parameter set to a point cloud in one call."""
    return FlameRenderer(config).render(source, progress=progress, cancel=cancel)


class OverlapAnalyzer:
    """Compares point clouds and builds overlap rendering payloads."""

    def __init__(self, config: Optional[OverlapConfig] = None):
        self.config = config or OverlapConfig()
        self.config.validate()

    def compare_map(self, cloud_a: PointCloud, cloud_b: PointCloud) -> OverlapMap:
        """Compute the overlap map anchored at cloud A's pixels."""
        start_time = time.time()
        if self.config.num_workers > 1:
            overlaps = ParallelOverlap(self.config.num_workers).calculate(cloud_a, cloud_b, self.config)
        else:
            overlaps = calculate_overlap(cloud_a, cloud_b, self.config)
        logger.info(f"Comparison complete: {len(overlaps)} pixels, {time.time() - start_time:.2f}s")
        return overlaps

    def compare(self, cloud_a: PointCloud, cloud_b: PointCloud) -> Dict[str, Any]:
        """Compare two clouds and return the rendering payload."""
        return build_rendering_data(self.compare_map(cloud_a, cloud_b))

    def render_image(self, payload: Dict[str, Any], width: int, height: int,
                     palette: str = 'red') -> np.ndarray:
        """Rasterise an overlap payload as a heat map."""
        return ColoringEngine().render_overlap(payload, width, height, palette)


class OverlapService:
    """Resolves stored point clouds by identifier and compares them."""

    def __init__(self, store: PointCloudStore, config: Optional[OverlapConfig] = None):
        self.store = store
        self.analyzer = OverlapAnalyzer(config)

    def compare(self, point_cloud_id_1: str, point_cloud_id_2: str,
                threshold: float = 0.01) -> Dict[str, Any]:
        """
        Compare two stored clouds.

        Args:
            point_cloud_id_1: Identifier of cloud A
            point_cloud_id_2: Identifier of cloud B
            threshold: Legacy parameter echoed in the response, not used

        Returns:
            Response with both identifiers, the threshold, the overlap count
            and the rendering payload
        """
        cloud_a = self.store.get(point_cloud_id_1)
        cloud_b = self.store.get(point_cloud_id_2)

        rendering_data = self.analyzer.compare(cloud_a, cloud_b)
        return {
            'pointCloudId1': point_cloud_id_1,
            'pointCloudId2': point_cloud_id_2,
            'threshold': threshold,
            'overlapCount': rendering_data['metadata']['count'],
            'renderingData': rendering_data,
        }
