import json

import numpy as np
import pytest
from PIL import Image

from embedding_flame import __version__
from embedding_flame.rendering.image_output import ImageExporter, RenderMetadata
from embedding_flame.exceptions import InvalidInputError


@pytest.fixture
def image():
    data = np.zeros((6, 8, 3), dtype=np.float64)
    data[2, 3] = (1.0, 0.5, 0.0)
    return data


@pytest.fixture
def metadata():
    return RenderMetadata(kind='flame', resolution=(8, 6), iterations=1000, seed=7,
                          point_count=1, fractal_parameters={'transforms': []})


def test_png_round_trip(tmp_path, image, metadata):
    exporter = ImageExporter()
    path = exporter.save_image(image, tmp_path / "flame.png", metadata)

    with Image.open(path) as img:
        assert img.size == (8, 6)
        assert img.getpixel((3, 2)) == (255, 127, 0)

    restored = exporter.extract_metadata(path)
    assert restored.kind == 'flame'
    assert restored.resolution == (8, 6)
    assert restored.seed == 7
    assert restored.software_version == __version__
    assert restored.fractal_parameters == {'transforms': []}


def test_png_without_metadata(tmp_path, image):
    exporter = ImageExporter()
    path = exporter.save_image(image, tmp_path / "plain.png")
    assert exporter.extract_metadata(path) is None


def test_jpeg_writes_companion_json(tmp_path, image, metadata):
    exporter = ImageExporter()
    path = exporter.save_image(image, tmp_path / "flame.jpg", metadata)

    companion = tmp_path / "flame.json"
    assert companion.exists()
    assert json.loads(companion.read_text())['iterations'] == 1000
    assert exporter.extract_metadata(path).iterations == 1000


def test_creates_parent_directories(tmp_path, image):
    path = ImageExporter().save_image(image, tmp_path / "a" / "b" / "out.png")
    assert path.exists()


def test_unsupported_format(tmp_path, image):
    with pytest.raises(InvalidInputError):
        ImageExporter().save_image(image, tmp_path / "flame.gif")


def test_rejects_non_rgb_array(tmp_path):
    with pytest.raises(InvalidInputError):
        ImageExporter().save_image(np.zeros((4, 4)), tmp_path / "gray.png")


def test_metadata_json_round_trip(metadata):
    restored = RenderMetadata.from_json(metadata.to_json())
    assert restored == metadata
    assert restored.timestamp
