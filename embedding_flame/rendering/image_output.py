"""
Image export for rasterised flames and overlap maps.

Images are written with Pillow. PNG files carry the render metadata as a
JSON text chunk so a flame can be traced back to the parameters and seed
that produced it; JPEG files get a companion JSON file instead.
"""

import numpy as np
from typing import Dict, Any, Optional, Tuple
from pathlib import Path
from dataclasses import dataclass, asdict, field
import json
import logging
from datetime import datetime

from PIL import Image, PngImagePlugin

from .. import __version__
from ..exceptions import InvalidInputError

logger = logging.getLogger(__name__)

METADATA_KEY = "FlameMetadata"


@dataclass
class RenderMetadata:
    """Metadata for flame and overlap renders."""

    kind: str  # 'flame' or 'overlap'
    resolution: Tuple[int, int]  # width, height
    iterations: int = 0
    seed: Optional[int] = None
    point_count: int = 0
    render_time_seconds: float = 0.0
    cancelled: bool = False

    timestamp: str = ""
    software_version: str = __version__

    fractal_parameters: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now().isoformat()
        self.resolution = tuple(self.resolution)

    def to_dict(self) -> Dict[str, Any]:
        """Convert metadata to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RenderMetadata':
        """Create metadata from dictionary."""
        return cls(**data)

    def to_json(self, indent: int = 2) -> str:
        """Serialize metadata to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> 'RenderMetadata':
        """Parse metadata from a JSON string."""
        return cls.from_dict(json.loads(json_str))


class ImageExporter:
    """Writes RGB image arrays with embedded metadata."""

    def __init__(self):
        self.supported_formats = {
            '.png': self._save_png,
            '.jpg': self._save_jpeg,
            '.jpeg': self._save_jpeg,
        }

    def save_image(self, image_array: np.ndarray, filepath: Path,
                   metadata: Optional[RenderMetadata] = None, quality: int = 95) -> Path:
        """
        Save RGB image array to file with metadata.

        Args:
            image_array: RGB image array (height, width, 3) with values 0-1
            filepath: Output file path
            metadata: Render metadata to embed
            quality: JPEG quality (1-100)

        Returns:
            The path written
        """
        filepath = Path(filepath)
        suffix = filepath.suffix.lower()

        if suffix not in self.supported_formats:
            supported = ', '.join(self.supported_formats.keys())
            raise InvalidInputError(f"Unsupported format '{suffix}'. Supported: {supported}")

        pil_image = Image.fromarray(self._prepare_image_array(image_array))
        filepath.parent.mkdir(parents=True, exist_ok=True)
        self.supported_formats[suffix](pil_image, filepath, metadata, quality)

        logger.info(f"Saved image: {filepath} ({pil_image.size[0]}x{pil_image.size[1]})")
        return filepath

    def _prepare_image_array(self, image_array: np.ndarray) -> np.ndarray:
        """Validate an image array and convert it to 8-bit."""
        if image_array.ndim != 3 or image_array.shape[2] != 3:
            raise InvalidInputError(f"Expected RGB image array (H, W, 3), got {image_array.shape}")

        if image_array.dtype != np.uint8:
            if np.issubdtype(image_array.dtype, np.floating):
                image_array = (np.clip(image_array, 0.0, 1.0) * 255).astype(np.uint8)
            else:
                image_array = np.clip(image_array, 0, 255).astype(np.uint8)

        return image_array

    def _save_png(self, pil_image: Image.Image, filepath: Path,
                  metadata: Optional[RenderMetadata], quality: int) -> None:
        pnginfo = PngImagePlugin.PngInfo()

        if metadata:
            pnginfo.add_text("Title", f"Flame: {metadata.kind}")
            pnginfo.add_text("Software", f"embedding-flame v{metadata.software_version}")
            pnginfo.add_text("Creation Time", metadata.timestamp)
            pnginfo.add_text(METADATA_KEY, metadata.to_json())

        pil_image.save(filepath, "PNG", pnginfo=pnginfo)

    def _save_jpeg(self, pil_image: Image.Image, filepath: Path,
                   metadata: Optional[RenderMetadata], quality: int) -> None:
        pil_image.save(filepath, "JPEG", quality=quality, optimize=True)

        # JPEG has no room for rich metadata; write a companion file
        if metadata:
            json_path = filepath.with_suffix('.json')
            json_path.write_text(metadata.to_json(), encoding='utf-8')
            logger.info(f"Saved metadata: {json_path}")

    def extract_metadata(self, filepath: Path) -> Optional[RenderMetadata]:
        """
        Read render metadata back from a saved image.

        Returns:
            Extracted metadata, or None if the image carries none
        """
        filepath = Path(filepath)

        if filepath.suffix.lower() in ('.jpg', '.jpeg'):
            json_path = filepath.with_suffix('.json')
            if json_path.exists():
                return RenderMetadata.from_json(json_path.read_text(encoding='utf-8'))
            return None

        with Image.open(filepath) as img:
            text = getattr(img, 'text', {})
            if METADATA_KEY in text:
                return RenderMetadata.from_json(text[METADATA_KEY])
        return None
