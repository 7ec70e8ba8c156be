import pytest

from embedding_flame import (
    FlameRenderer, OverlapAnalyzer, PointCloud, RenderConfig, derive_params, render_flame,
)
from embedding_flame.comparison.overlap import OverlapConfig, OverlapEntry
from embedding_flame.rendering.image_output import ImageExporter
from embedding_flame.exceptions import InvalidInputError


@pytest.fixture
def renderer():
    return FlameRenderer(RenderConfig(width=60, height=60, iterations=3000, seed=5))


class TestRenderConfig:

    def test_scaled(self):
        config = RenderConfig(width=100, height=50, iterations=1000, resolution_multiplier=3)
        scaled = config.scaled()
        assert (scaled.width, scaled.height, scaled.iterations) == (300, 150, 9000)
        assert scaled.resolution_multiplier == 1

    @pytest.mark.parametrize("kwargs", [
        {'width': 0}, {'iterations': -1}, {'batch_size': 0},
        {'resolution_multiplier': 0}, {'num_workers': 0}, {'gamma': 0},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(InvalidInputError):
            FlameRenderer(RenderConfig(**kwargs))


class TestFlameRenderer:

    def test_render_from_vector(self, renderer, sample_vector):
        result = renderer.render(sample_vector)
        assert result.completed
        assert result.iterations_requested == 3000
        assert len(result.point_cloud) > 0

    def test_render_is_seeded(self, renderer, sample_vector):
        assert renderer.render(sample_vector).point_cloud == renderer.render(sample_vector).point_cloud

    def test_render_accepts_params(self, renderer, sample_vector, sample_params):
        assert renderer.render(sample_params).point_cloud == renderer.render(sample_vector).point_cloud

    def test_multiplier_scales_raster(self, sample_vector):
        renderer = FlameRenderer(RenderConfig(width=40, height=40, iterations=500,
                                              resolution_multiplier=2, seed=1))
        result = renderer.render(sample_vector)
        assert result.iterations_requested == 2000

    def test_rng_rejected_with_workers(self, sample_vector):
        renderer = FlameRenderer(RenderConfig(width=40, height=40, iterations=100, num_workers=2))
        with pytest.raises(InvalidInputError):
            renderer.render(sample_vector, rng=1)

    def test_render_image(self, renderer, sample_params):
        cloud = renderer.render(sample_params).point_cloud
        image = renderer.render_image(cloud, sample_params)
        assert image.shape == (60, 60, 3)
        assert image.max() > 0

    def test_export(self, renderer, sample_vector, tmp_path):
        path = tmp_path / "flame.png"
        result = renderer.export(sample_vector, path)

        assert path.exists()
        metadata = ImageExporter().extract_metadata(path)
        assert metadata.kind == 'flame'
        assert metadata.seed == 5
        assert metadata.point_count == len(result.point_cloud)
        assert metadata.fractal_parameters == derive_params(sample_vector).to_dict()


class TestOverlapAnalyzer:

    def test_compare_map(self):
        cloud = PointCloud.from_wire([[0, 0, 10]])
        assert OverlapAnalyzer().compare_map(cloud, cloud) == {(0, 0): OverlapEntry(1.0, 0.0)}

    def test_compare_payload(self):
        payload = OverlapAnalyzer().compare(PointCloud.from_wire([[0, 0, 10]]),
                                            PointCloud.from_wire([[100, 100, 10]]))
        assert payload == {'points': [], 'metadata': {'count': 0, 'averageDistance': 0}}

    def test_parallel_config(self):
        cloud = PointCloud.from_wire([[0, 0, 10], [5, 5, 4], [9, 1, 2]])
        sequential = OverlapAnalyzer().compare(cloud, cloud)
        parallel = OverlapAnalyzer(OverlapConfig(num_workers=2)).compare(cloud, cloud)
        assert parallel == sequential

    def test_render_image(self):
        analyzer = OverlapAnalyzer()
        payload = analyzer.compare(PointCloud.from_wire([[1, 2, 10]]),
                                   PointCloud.from_wire([[1, 2, 10]]))
        image = analyzer.render_image(payload, 4, 4)
        assert image[2, 1].tolist() == [1.0, 0.0, 0.0]


def test_render_flame(sample_vector):
    config = RenderConfig(width=50, height=50, iterations=1000, seed=2)
    progress = []
    result = render_flame(sample_vector, config, progress=progress.append)

    assert result.completed
    assert progress[-1] == 100.0
    assert result.point_cloud == FlameRenderer(config).render(sample_vector).point_cloud
