import threading

import pytest

from embedding_flame.acceleration.multiprocessing import (
    ParallelOverlap, ParallelRenderer, partition, split_iterations,
)
from embedding_flame.comparison.overlap import OverlapConfig, calculate_overlap
from embedding_flame.core.engine import ChaosGameEngine
from embedding_flame.core.point_cloud import PointCloud
from embedding_flame.exceptions import InvalidInputError


def test_partition_contiguous():
    assert partition(list(range(7)), 3) == [[0, 1, 2], [3, 4], [5, 6]]
    assert partition([1, 2], 4) == [[1], [2]]
    assert partition([], 2) == []


def test_partition_invalid():
    with pytest.raises(InvalidInputError):
        partition([1], 0)


def test_split_iterations():
    assert split_iterations(10, 3) == [4, 3, 3]
    assert sum(split_iterations(1_000_001, 4)) == 1_000_001


def test_parallel_overlap_matches_sequential(sample_params):
    cloud_a = ChaosGameEngine(sample_params, 120, 120, rng=1).render(20_000).point_cloud
    cloud_b = ChaosGameEngine(sample_params, 120, 120, rng=2).render(20_000).point_cloud
    config = OverlapConfig(max_distance=4)

    sequential = calculate_overlap(cloud_a, cloud_b, config)
    parallel = ParallelOverlap(num_workers=2).calculate(cloud_a, cloud_b, config)
    assert parallel == sequential
    assert list(parallel) == list(sequential)


def test_parallel_overlap_empty():
    assert ParallelOverlap(num_workers=2).calculate(PointCloud(), PointCloud.from_wire([[0, 0, 1]])) == {}


def test_parallel_render_reproducible(sample_params):
    renderer = ParallelRenderer(num_workers=2)
    first = renderer.render(sample_params, 100, 100, 10_000, seed=11, batch_size=1000)
    second = renderer.render(sample_params, 100, 100, 10_000, seed=11, batch_size=1000)

    assert first.point_cloud == second.point_cloud
    assert first.iterations_done == 10_000
    assert first.completed


def test_parallel_render_counts(zero_params):
    progress = []
    result = ParallelRenderer(num_workers=2).render(zero_params, 50, 50, 5000, seed=0,
                                                     progress=progress.append)
    assert result.point_cloud.total_count == 5000
    assert {(x, y) for x, y, _ in result.point_cloud} <= {(25, 25), (25, 50)}
    assert progress[-1] == 100.0


def test_parallel_render_zero_iterations(sample_params):
    progress = []
    result = ParallelRenderer(num_workers=2).render(sample_params, 50, 50, 0,
                                                     progress=progress.append)
    assert len(result.point_cloud) == 0
    assert progress == [100.0]


def test_parallel_render_reports_every_batch(zero_params):
    progress = []
    result = ParallelRenderer(num_workers=2).render(zero_params, 50, 50, 20_000, seed=0,
                                                     batch_size=1000, progress=progress.append)
    assert result.completed
    # Ten batches per worker, then the final 100.
    assert len(progress) == 21
    assert progress == sorted(progress)
    assert progress[-2:] == [100.0, 100.0]


def test_parallel_render_cancelled_before_start(sample_params):
    cancel = threading.Event()
    cancel.set()
    progress = []
    result = ParallelRenderer(num_workers=2).render(sample_params, 100, 100, 400_000, seed=1,
                                                     batch_size=1000, progress=progress.append,
                                                     cancel=cancel)
    assert result.cancelled
    assert result.iterations_done <= 2 * 1000
    assert progress[-1] < 100.0


def test_parallel_render_cancelled_mid_run(sample_params):
    cancel = threading.Event()

    def on_progress(value):
        cancel.set()

    result = ParallelRenderer(num_workers=2).render(sample_params, 100, 100, 2_000_000, seed=1,
                                                     batch_size=1000, progress=on_progress,
                                                     cancel=cancel)
    assert result.cancelled
    assert 0 < result.iterations_done < 2_000_000
    assert result.point_cloud.total_count <= result.iterations_done
