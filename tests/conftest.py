"""Shared fixtures for image-deduper tests."""

import pytest
from PIL import Image

from image_deduper.core.hashing import Fingerprint, ImageFingerprints
from image_deduper.core.sampler import PixelGrid
from image_deduper.utils.config import Config


@pytest.fixture
def config(tmp_path):
    """Config stored in a temporary file instead of the home directory."""
    return Config(tmp_path / "config" / "config.json")


@pytest.fixture
def ramp_grid():
    """Build an 8x8 grid whose cells increase (or decrease) row-major."""

    def _ramp(reverse: bool = False) -> PixelGrid:
        values = tuple(i * 4 for i in range(64))
        if reverse:
            values = tuple(reversed(values))
        return PixelGrid(width=8, height=8, values=values)

    return _ramp


@pytest.fixture
def make_fingerprints():
    """Build ImageFingerprints from raw 64-bit integers."""

    def _make(ref, ahash: int, dhash=None, width: int = 64) -> ImageFingerprints:
        return ImageFingerprints(
            ref=ref,
            ahash=Fingerprint(bits=ahash, width=width),
            dhash=Fingerprint(bits=ahash if dhash is None else dhash, width=width),
        )

    return _make


@pytest.fixture
def image_dir(tmp_path):
    """
    Directory with an original, an exact copy, an unrelated image and a
    file that only pretends to be an image.
    """
    directory = tmp_path / "images"
    directory.mkdir()

    ramp = Image.frombytes("L", (64, 64), bytes(x * 4 for _ in range(64) for x in range(64)))
    ramp.save(directory / "a_original.png")
    ramp.save(directory / "b_copy.png")

    reversed_ramp = Image.frombytes(
        "L", (64, 64), bytes(255 - x * 4 for _ in range(64) for x in range(64))
    )
    reversed_ramp.save(directory / "c_other.png")

    (directory / "d_broken.png").write_bytes(b"not really a png")

    return directory
