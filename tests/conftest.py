"""
Shared fixtures: synthetic RGBA buffers and image files.
"""
import numpy as np
import pytest
from PIL import Image


def rgba_buffer(colors: list) -> bytes:
    """Flatten a list of (r, g, b, a) tuples into an RGBA8 byte string."""
    return bytes(channel for color in colors for channel in color)


@pytest.fixture
def make_buffer():
    return rgba_buffer


@pytest.fixture
def red_2x2():
    """Uniform opaque red 2x2 image as (pixels, width, height)."""
    return rgba_buffer([(255, 0, 0, 255)] * 4), 2, 2


@pytest.fixture
def white_black_5x2():
    """60% white, 40% black, fully opaque."""
    pixels = [(255, 255, 255, 255)] * 6 + [(0, 0, 0, 255)] * 4
    return rgba_buffer(pixels), 5, 2


@pytest.fixture
def noise_image():
    """Deterministic random opaque 40x30 image as an (h, w, 4) uint8 array."""
    rng = np.random.default_rng(7)
    pixels = rng.integers(0, 256, size=(30, 40, 4), dtype=np.uint8)
    pixels[:, :, 3] = 255
    return pixels


@pytest.fixture
def write_image(tmp_path):
    """Factory: save a solid-color image and return its path."""
    def _write(name: str, color: tuple, size=(32, 16), mode='RGBA') -> str:
        path = tmp_path / name
        Image.new(mode, size, color).save(path)
        return str(path)
    return _write
