"""
Multiprocessing backend for parallel flame rendering and overlap comparison.

Both workloads split cleanly: chaos-game workers run independent random
streams whose density maps are summed per pixel, and the overlap
comparator partitions cloud A into contiguous chunks whose partial maps are
merged by maximum intensity.
"""

import numpy as np
from typing import Any, Dict, List, Optional, Sequence, Tuple
import multiprocessing as mp
import queue
import logging
import time
from dataclasses import dataclass
from concurrent.futures import FIRST_COMPLETED, ProcessPoolExecutor, as_completed, wait

from ..core.engine import CancelToken, ChaosGameEngine, ProgressCallback, RenderResult, report_progress
from ..core.flame_types import FractalParams
from ..core.point_cloud import DensityMap, PointCloud
from ..comparison.overlap import (
    OverlapConfig, OverlapMap, build_count_lookup, calculate_overlap, merge_overlap_maps,
)
from ..exceptions import InvalidInputError

logger = logging.getLogger(__name__)


@dataclass
class RenderChunk:
    """Specification for one worker's share of a render."""
    chunk_id: int
    iterations: int
    seed: np.random.SeedSequence


def partition(items: Sequence[Any], parts: int) -> List[Sequence[Any]]:
    """
    Split a sequence into at most `parts` contiguous, near-equal chunks.

    Args:
        items: Sequence to split
        parts: Maximum number of chunks

    Returns:
        List of non-empty chunks in original order
    """
    if parts < 1:
        raise InvalidInputError("parts must be >= 1")

    size, remainder = divmod(len(items), parts)
    chunks = []
    start = 0
    for i in range(parts):
        end = start + size + (1 if i < remainder else 0)
        if end > start:
            chunks.append(items[start:end])
        start = end
    return chunks


def split_iterations(iterations: int, parts: int) -> List[int]:
    """Split an iteration count into `parts` near-equal shares."""
    size, remainder = divmod(iterations, parts)
    return [size + (1 if i < remainder else 0) for i in range(parts)]


def process_render_chunk(args) -> Tuple[int, int, List[Tuple[Tuple[int, int], int]]]:
    """
    Run one worker's share of the chaos game in a separate process.

    The worker stops between batches once the shared cancel flag is set,
    and posts (chunk_id, iterations_done) to the progress queue after every
    batch.

    Args:
        args: Tuple of (params_dict, width, height, chunk, batch_size,
            cancel_flag, progress_queue)

    Returns:
        Tuple of (chunk_id, iterations done, density items)
    """
    params_dict, width, height, chunk, batch_size, cancel_flag, progress_queue = args

    params = FractalParams.from_dict(params_dict)
    engine = ChaosGameEngine(params, width, height,
                             rng=np.random.default_rng(chunk.seed), batch_size=batch_size)
    density = DensityMap()
    done = 0
    for _ in engine.iterate(chunk.iterations, density, cancel=cancel_flag):
        done = min(done + batch_size, chunk.iterations)
        if progress_queue is not None:
            progress_queue.put((chunk.chunk_id, done))
    return chunk.chunk_id, done, list(density.items())


def process_overlap_chunk(args) -> Tuple[int, OverlapMap]:
    """
    Compare one contiguous chunk of cloud A against cloud B.

    Args:
        args: Tuple of (chunk_id, chunk wire data, B lookup, config dict)

    Returns:
        Tuple of (chunk_id, partial overlap map)
    """
    chunk_id, chunk_wire, b_lookup, config_dict = args
    config = OverlapConfig(**config_dict)
    return chunk_id, calculate_overlap(PointCloud.from_wire(chunk_wire), None,
                                       config=config, b_lookup=b_lookup)


class ParallelRenderer:
    """Chaos game split across worker processes."""

    def __init__(self, num_workers: Optional[int] = None, poll_interval: float = 0.05):
        """
        Initialize parallel renderer.

        Args:
            num_workers: Number of worker processes (None for optimal count)
            poll_interval: Seconds between checks of the cancel token and
                the progress queue
        """
        self.num_workers = max(1, num_workers or get_optimal_process_count())
        self.poll_interval = poll_interval
        logger.info(f"Parallel renderer: {self.num_workers} processes")

    def render(self, params: FractalParams, width: int, height: int, iterations: int,
               seed: Optional[int] = None, batch_size: int = 10_000,
               progress: Optional[ProgressCallback] = None,
               cancel: Optional[CancelToken] = None) -> RenderResult:
        """
        Render with independent random streams per worker.

        Each worker gets a child of one SeedSequence, so a fixed seed and
        worker count reproduce the same cloud. Workers report progress after
        every batch, and a set cancel token is relayed to them so each stops
        before its next batch; the density gathered so far is returned.

        Returns:
            RenderResult with the merged point cloud
        """
        if iterations < 0:
            raise InvalidInputError("iterations must be >= 0")
        if batch_size < 1:
            raise InvalidInputError("batch_size must be >= 1")

        start_time = time.time()
        shares = [n for n in split_iterations(iterations, self.num_workers) if n > 0]
        seeds = np.random.SeedSequence(seed).spawn(max(1, len(shares)))
        chunks = [RenderChunk(i, n, seeds[i]) for i, n in enumerate(shares)]

        logger.info(f"Rendering {iterations} iterations in {len(chunks)} chunks")

        params_dict = params.to_dict()
        partials: Dict[int, list] = {}
        chunk_done: Dict[int, int] = {chunk.chunk_id: 0 for chunk in chunks}
        last_progress = 0.0

        def forward(chunk_id: int, done: int) -> None:
            nonlocal last_progress
            if done <= chunk_done[chunk_id]:
                return
            chunk_done[chunk_id] = done
            last_progress = 100.0 * sum(chunk_done.values()) / iterations
            report_progress(progress, last_progress)

        if chunks:
            with mp.Manager() as manager:
                cancel_flag = manager.Event()
                progress_queue = manager.Queue()
                if cancel is not None and cancel.is_set():
                    cancel_flag.set()

                with ProcessPoolExecutor(max_workers=self.num_workers) as executor:
                    pending = {
                        executor.submit(process_render_chunk,
                                        (params_dict, width, height, chunk, batch_size,
                                         cancel_flag, progress_queue))
                        for chunk in chunks
                    }

                    while pending:
                        if cancel is not None and cancel.is_set() and not cancel_flag.is_set():
                            cancel_flag.set()
                            logger.info("Parallel render cancellation relayed to workers")

                        finished, pending = wait(pending, timeout=self.poll_interval,
                                                 return_when=FIRST_COMPLETED)
                        _drain(progress_queue, forward)
                        for future in finished:
                            chunk_id, done, items = future.result()
                            partials[chunk_id] = items
                            forward(chunk_id, done)

                _drain(progress_queue, forward)

        done = sum(chunk_done.values())
        cancelled = done < iterations

        # Merge in chunk order so the cloud is independent of completion order
        density = DensityMap()
        for chunk_id in sorted(partials):
            for (x, y), count in partials[chunk_id]:
                density.increment(x, y, count)

        if cancelled:
            logger.info(f"Parallel render cancelled after {done}/{iterations} iterations")
            report_progress(progress, last_progress)
        else:
            report_progress(progress, 100.0)

        elapsed = time.time() - start_time
        cloud = density.to_point_cloud()
        logger.info(f"Parallel render complete: {len(cloud)} distinct pixels, {elapsed:.2f}s")

        return RenderResult(
            point_cloud=cloud,
            iterations_done=done,
            iterations_requested=iterations,
            cancelled=cancelled,
            elapsed_seconds=elapsed,
        )


def _drain(progress_queue, forward) -> None:
    """Forward every queued (chunk_id, done) progress message."""
    while True:
        try:
            chunk_id, done = progress_queue.get_nowait()
        except queue.Empty:
            return
        forward(chunk_id, done)


class ParallelOverlap:
    """Overlap comparator partitioned over cloud A."""

    def __init__(self, num_workers: Optional[int] = None):
        self.num_workers = max(1, num_workers or get_optimal_process_count())

    def calculate(self, cloud_a: PointCloud, cloud_b: PointCloud,
                  config: Optional[OverlapConfig] = None) -> OverlapMap:
        """
        Compute the same map as calculate_overlap using worker processes.

        Returns:
            Overlap map merged by maximum intensity in chunk order
        """
        config = config or OverlapConfig()
        config.validate()

        start_time = time.time()
        b_lookup = build_count_lookup(cloud_b)
        chunks = partition(cloud_a.to_wire(), self.num_workers)
        if not chunks:
            return {}

        config_dict = config.to_dict()
        partials: Dict[int, OverlapMap] = {}

        logger.info(f"Comparing {len(cloud_a)} points in {len(chunks)} chunks")
        with ProcessPoolExecutor(max_workers=self.num_workers) as executor:
            futures = [executor.submit(process_overlap_chunk, (i, chunk, b_lookup, config_dict))
                       for i, chunk in enumerate(chunks)]
            for future in as_completed(futures):
                chunk_id, partial = future.result()
                partials[chunk_id] = partial

        merged = merge_overlap_maps(partials[i] for i in sorted(partials))
        logger.info(f"Parallel overlap complete: {len(merged)} pixels, "
                    f"{time.time() - start_time:.2f}s")
        return merged


def get_optimal_process_count() -> int:
    """Get optimal number of processes, leaving one core for the system."""
    return max(1, mp.cpu_count() - 1)
