"""
Chaos-game engine for flame fractals.

The engine repeatedly picks a weighted transform, applies its affine map and
variation to a running point, and counts the quantized raster position the
point lands on. Work is done in fixed-size batches; after each batch control
returns to the caller, which is where progress is reported and cancellation
is honoured.
"""

import math
import time
import numpy as np
from typing import Callable, Iterator, Optional, Protocol, Union
from dataclasses import dataclass
import logging

from ..exceptions import InvalidInputError
from .flame_types import FractalParams
from .math_functions import ScreenTransform
from .point_cloud import DensityMap, PointCloud
from ..rendering.coloring import ColorSample, color_sample

logger = logging.getLogger(__name__)

DEFAULT_ITERATIONS = 1_000_000
DEFAULT_BATCH_SIZE = 10_000
DEFAULT_ESCAPE_LIMIT = 1e12

ProgressCallback = Callable[[float], None]
SampleSink = Callable[[int, int, ColorSample], None]
RandomSource = Union[None, int, np.random.SeedSequence, np.random.Generator]


class CancelToken(Protocol):
    """Anything with an is_set() method, e.g. threading.Event."""

    def is_set(self) -> bool:
        ...


@dataclass
class RenderResult:
    """Outcome of one engine run."""
    point_cloud: PointCloud
    iterations_done: int
    iterations_requested: int
    cancelled: bool = False
    elapsed_seconds: float = 0.0

    @property
    def completed(self) -> bool:
        return not self.cancelled


class ChaosGameEngine:
    """Runs the chaos game for one set of flame parameters."""

    def __init__(self, params: FractalParams, width: int, height: int,
                 rng: RandomSource = None, batch_size: int = DEFAULT_BATCH_SIZE,
                 escape_limit: float = DEFAULT_ESCAPE_LIMIT):
        """
        Initialize the engine.

        Args:
            params: Flame parameters (transform table and colors)
            width, height: Raster size in device pixels
            rng: numpy Generator, or a seed for a new one. None draws fresh
                OS entropy, which makes runs non-reproducible.
            batch_size: Iterations per batch between yields
            escape_limit: Coordinate magnitude beyond which the running point
                is considered diverged and reseeded
        """
        if batch_size < 1:
            raise InvalidInputError("batch_size must be >= 1")
        if escape_limit <= 0:
            raise InvalidInputError("escape_limit must be positive")

        self.params = params
        self.screen = ScreenTransform(width, height)
        self.rng = np.random.default_rng(rng)
        self.batch_size = batch_size
        self.escape_limit = escape_limit

        self._cumulative = params.cumulative_weights()
        self._affines = [entry.affine.apply for entry in params.transforms]
        self._variations = [entry.variation for entry in params.transforms]

    def _random_point(self):
        x, y = self.rng.uniform(-1.0, 1.0, 2)
        return float(x), float(y)

    def select_transforms(self, draws: np.ndarray) -> np.ndarray:
        """
        Map uniform draws in [0, 1) to transform indices.

        Picks the first entry whose cumulative weight reaches the draw. A
        draw above the final cumulative sum (possible through rounding) falls
        back to the last entry.
        """
        indices = np.searchsorted(self._cumulative, draws, side='left')
        return np.minimum(indices, len(self._cumulative) - 1)

    def iterate(self, iterations: int, density: DensityMap,
                cancel: Optional[CancelToken] = None,
                sample_sink: Optional[SampleSink] = None) -> Iterator[float]:
        """
        Run the chaos game batch by batch.

        Counts are accumulated into `density`. After each batch the generator
        yields the percentage of iterations done; the caller decides when to
        resume. A set cancel token stops the run before the next batch.

        Args:
            iterations: Total number of iterations
            density: Map receiving visit counts
            cancel: Optional cancellation token
            sample_sink: Optional callback receiving (px, py, ColorSample)
                for every recorded sample

        Yields:
            Progress percentage after each batch
        """
        if iterations < 0:
            raise InvalidInputError("iterations must be >= 0")

        color_params = self.params.color

        affines = self._affines
        variations = self._variations
        screen = self.screen
        scale, offset_x, offset_y = screen.scale, screen.offset_x, screen.offset_y
        limit = self.escape_limit
        floor = math.floor
        increment = density.increment

        x, y = self._random_point()
        done = 0
        escaped = 0

        while done < iterations:
            if cancel is not None and cancel.is_set():
                logger.info(f"Render cancelled after {done}/{iterations} iterations")
                return

            batch = min(self.batch_size, iterations - done)
            indices = self.select_transforms(self.rng.random(batch))

            for index in indices.tolist():
                x, y = affines[index](x, y)
                if not (-limit < x < limit and -limit < y < limit):
                    escaped += 1
                    x, y = self._random_point()
                    continue

                x, y = variations[index](x, y)
                if not (-limit < x < limit and -limit < y < limit):
                    escaped += 1
                    x, y = self._random_point()
                    continue

                px = floor(scale * x + offset_x)
                py = floor(-scale * y + offset_y)
                increment(px, py)

                if sample_sink is not None:
                    sample_sink(px, py, color_sample(x, y, color_params))

            done += batch
            if escaped:
                logger.debug(f"{escaped} samples diverged and were reseeded so far")
            yield 100.0 * done / iterations

        if escaped:
            logger.warning(f"{escaped} of {iterations} samples diverged and were reseeded")

    def render(self, iterations: int = DEFAULT_ITERATIONS,
               progress: Optional[ProgressCallback] = None,
               cancel: Optional[CancelToken] = None,
               sample_sink: Optional[SampleSink] = None) -> RenderResult:
        """
        Run the chaos game to completion or cancellation.

        The progress callback receives the percentage after every batch and
        once more at the end: 100 on completion, or the last computed value
        (0 if no batch ran) on cancellation.

        Args:
            iterations: Total number of iterations
            progress: Optional progress callback
            cancel: Optional cancellation token checked between batches
            sample_sink: Optional color side channel, see iterate()

        Returns:
            RenderResult with the (possibly partial) point cloud
        """
        start_time = time.time()
        logger.info(f"Starting chaos game: {iterations} iterations on "
                    f"{self.screen.width}x{self.screen.height}")

        density = DensityMap()
        last_progress = 0.0
        batches = 0
        cancelled = False

        for value in self.iterate(iterations, density, cancel, sample_sink):
            last_progress = value
            batches += 1
            report_progress(progress, value)

        done = min(batches * self.batch_size, iterations)
        if done < iterations:
            cancelled = True
            report_progress(progress, last_progress)
        else:
            report_progress(progress, 100.0)

        cloud = density.to_point_cloud()
        elapsed = time.time() - start_time
        logger.info(f"Chaos game {'cancelled' if cancelled else 'complete'}: "
                    f"{len(cloud)} distinct pixels, {elapsed:.2f}s")

        return RenderResult(
            point_cloud=cloud,
            iterations_done=done,
            iterations_requested=iterations,
            cancelled=cancelled,
            elapsed_seconds=elapsed,
        )


def report_progress(progress: Optional[ProgressCallback], value: float) -> None:
    if progress is None:
        return
    try:
        progress(value)
    except Exception as e:
        logger.warning(f"Progress callback failed: {e}")
