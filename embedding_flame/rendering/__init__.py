"""Color mapping, rasterisation and image export."""
