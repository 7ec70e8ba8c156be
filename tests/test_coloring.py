import numpy as np
import pytest

from embedding_flame.core.flame_types import ColorParams
from embedding_flame.core.point_cloud import PointCloud
from embedding_flame.rendering.coloring import (
    ColorSample, ColoringEngine, Palette, color_sample, hsl_to_rgb, map_colors,
)
from embedding_flame.exceptions import InvalidInputError


class TestColorSample:

    def test_base_color_at_origin(self):
        params = ColorParams((10.0, 60.0, 30.0), (5.0, 5.0, 5.0), (1.0, 1.0, 1.0))
        assert color_sample(0.0, 0.0, params) == ColorSample(10.0, 60.0, 30.0, 0.5)

    def test_hue_wraps(self):
        params = ColorParams((350.0, 50.0, 50.0), (20.0, 0.0, 0.0), (0.0, 0.0, 0.0))
        assert color_sample(1.0, 0.0, params).hue == pytest.approx(10.0)
        assert color_sample(-20.0, 0.0, params).hue == pytest.approx(310.0)

    def test_saturation_and_lightness_clamped(self):
        params = ColorParams((0.0, 90.0, 10.0), (0.0, 20.0, 0.0), (0.0, 0.0, -40.0))
        sample = color_sample(1.0, 1.0, params)
        assert sample.saturation == 100.0
        assert sample.lightness == 0.0

    def test_css(self):
        assert ColorSample(120.0, 50.0, 25.0).to_css() == "hsla(120.0, 50.0%, 25.0%, 0.5)"

    def test_vectorised_matches_scalar(self):
        params = ColorParams((200.0, 40.0, 60.0), (30.0, -10.0, 15.0), (-12.0, 25.0, 5.0))
        xs = np.array([-1.0, 0.3, 2.0])
        ys = np.array([0.5, -0.7, 1.0])
        hue, sat, light = map_colors(xs, ys, params)
        for i in range(3):
            sample = color_sample(xs[i], ys[i], params)
            assert (hue[i], sat[i], light[i]) == pytest.approx(
                (sample.hue, sample.saturation, sample.lightness))


@pytest.mark.parametrize("hsl,rgb", [
    ((0, 100, 50), (1, 0, 0)),
    ((120, 100, 50), (0, 1, 0)),
    ((240, 100, 50), (0, 0, 1)),
    ((0, 0, 100), (1, 1, 1)),
    ((0, 50, 25), (0.375, 0.125, 0.125)),
    ((360, 100, 50), (1, 0, 0)),
])
def test_hsl_to_rgb(hsl, rgb):
    result = hsl_to_rgb(*(np.array([v], dtype=float) for v in hsl))
    assert result[0].tolist() == pytest.approx(list(rgb))


class TestPalette:

    def test_interpolate(self):
        palette = Palette([(0, 0, 0), (1, 1, 1)])
        assert palette.interpolate(0.5).tolist() == pytest.approx([0.5, 0.5, 0.5])
        assert palette.interpolate(np.array([-1.0, 2.0])).tolist() == [[0, 0, 0], [1, 1, 1]]

    def test_requires_two_colors(self):
        with pytest.raises(InvalidInputError):
            Palette([(1, 0, 0)])

    def test_rejects_out_of_range(self):
        with pytest.raises(InvalidInputError):
            Palette([(0, 0, 0), (2, 0, 0)])

    def test_from_matplotlib(self):
        palette = Palette.from_matplotlib('viridis', 16)
        assert len(palette.colors) == 16

    def test_unknown_colormap(self):
        with pytest.raises(InvalidInputError):
            Palette.from_matplotlib('not-a-colormap')


class TestColoringEngine:

    def test_builtin_palettes(self):
        engine = ColoringEngine()
        assert {'red', 'hot', 'gray', 'viridis'} <= set(engine.list_palettes())
        with pytest.raises(InvalidInputError):
            engine.get_palette('missing')

    def test_render_point_cloud(self):
        cloud = PointCloud.from_wire([[5, 5, 10], [-1, 0, 3], [2, 50, 1]])
        image = ColoringEngine().render_point_cloud(cloud, ColorParams(), 10, 10)

        assert image.shape == (10, 10, 3)
        assert image[5, 5].tolist() == pytest.approx([0.375, 0.125, 0.125])
        assert np.count_nonzero(image.sum(axis=2)) == 1

    def test_render_empty_cloud(self):
        image = ColoringEngine().render_point_cloud(PointCloud(), ColorParams(), 4, 3)
        assert image.shape == (3, 4, 3)
        assert not image.any()

    def test_render_overlap_payload(self):
        payload = {'points': [{'position': {'x': 2, 'y': 3, 'z': 0}, 'intensity': 1.0},
                              {'position': {'x': 99, 'y': 0, 'z': 0}, 'intensity': 1.0}],
                   'metadata': {'count': 2, 'averageDistance': 0.0}}
        image = ColoringEngine().render_overlap(payload, 5, 5)
        assert image[3, 2].tolist() == [1.0, 0.0, 0.0]
        assert np.count_nonzero(image.sum(axis=2)) == 1

    def test_invalid_gamma(self):
        with pytest.raises(InvalidInputError):
            ColoringEngine().render_point_cloud(PointCloud(), ColorParams(), 4, 4, gamma=0)
