import json

import pytest

from embedding_flame.core.point_cloud import CloudPoint, DensityMap, PointCloud
from embedding_flame.exceptions import InvalidInputError


class TestDensityMap:

    def test_increment_inserts_and_adds(self):
        density = DensityMap()
        density.increment(1, 2)
        density.increment(1, 2)
        density.increment(3, 4, 5)
        assert density.get(1, 2) == 2
        assert density.get(3, 4) == 5
        assert density.get(0, 0) == 0
        assert density.total == 7
        assert len(density) == 2
        assert (1, 2) in density

    def test_point_cloud_in_first_visit_order(self):
        density = DensityMap()
        for key in [(5, 5), (1, 1), (5, 5), (2, 2)]:
            density.increment(*key)
        cloud = density.to_point_cloud()
        assert cloud.to_wire() == [[5, 5, 2], [1, 1, 1], [2, 2, 1]]

    def test_merge_sums_per_key(self):
        a, b = DensityMap(), DensityMap()
        a.increment(0, 0, 3)
        a.increment(1, 0, 1)
        b.increment(0, 0, 2)
        b.increment(2, 0, 4)

        merged = DensityMap().merge(a).merge(b)
        assert merged.get(0, 0) == 5
        assert merged.get(1, 0) == 1
        assert merged.get(2, 0) == 4

        reversed_order = DensityMap().merge(b).merge(a)
        assert dict(reversed_order.items()) == dict(merged.items())


class TestPointCloud:

    def test_from_wire(self):
        cloud = PointCloud.from_wire([[0, 0, 10], [1.5, -2, 3]])
        assert len(cloud) == 2
        assert cloud[1] == CloudPoint(1.5, -2, 3)
        assert cloud.total_count == 13

    def test_integral_floats_stay_integral(self):
        cloud = PointCloud.from_wire([[1.0, 2.0, 3.0]])
        assert cloud.to_wire() == [[1, 2, 3]]
        assert json.loads(cloud.to_json()) == [[1, 2, 3]]

    def test_json_round_trip(self):
        cloud = PointCloud.from_wire([[4, 5, 6], [-1, 0, 1]])
        assert PointCloud.from_json(cloud.to_json()) == cloud

    def test_empty(self):
        cloud = PointCloud.from_wire([])
        assert len(cloud) == 0
        assert cloud.bounds() is None

    def test_bounds(self):
        cloud = PointCloud.from_wire([[0, 5, 1], [10, -3, 1]])
        assert cloud.bounds() == (0, 10, -3, 5)

    @pytest.mark.parametrize("data", [
        {'x': 1},
        [[1, 2]],
        [[1, 2, 0]],
        [[1, 2, -4]],
        [[1, 2, 1.5]],
        [[float('nan'), 0, 1]],
        [[0, float('inf'), 1]],
        [['a', 0, 1]],
    ])
    def test_invalid_wire(self, data):
        with pytest.raises(InvalidInputError):
            PointCloud.from_wire(data)

    def test_invalid_json(self):
        with pytest.raises(InvalidInputError):
            PointCloud.from_json("not json")
