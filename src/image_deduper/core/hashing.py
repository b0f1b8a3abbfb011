"""Average-hash and difference-hash fingerprints of pixel grids."""

from dataclasses import dataclass
from typing import Hashable

from image_deduper.core.sampler import PixelGrid


@dataclass(frozen=True)
class Fingerprint:
    """A fixed-width bit vector; bit i belongs to grid cell i (row-major)."""

    bits: int
    width: int

    def __post_init__(self) -> None:
        if self.width < 1:
            raise ValueError(f"Fingerprint width must be at least 1, got {self.width}")
        if not 0 <= self.bits < 1 << self.width:
            raise ValueError(f"Bits {self.bits:#x} do not fit in width {self.width}")

    def to_hex(self) -> str:
        digits = max(1, (self.width + 3) // 4)
        return format(self.bits, f"0{digits}x")

    def bit(self, index: int) -> int:
        if not 0 <= index < self.width:
            raise IndexError(f"Bit {index} out of range for width {self.width}")
        return (self.bits >> index) & 1

    def __str__(self) -> str:
        return self.to_hex()


@dataclass(frozen=True)
class ImageFingerprints:
    """Both fingerprints of one image."""

    ref: Hashable
    ahash: Fingerprint
    dhash: Fingerprint


def average_hash(grid: PixelGrid) -> Fingerprint:
    """
    Compute the average hash of a grid.

    Bit i is set when cell i is at or above the mean intensity of the grid.

    Args:
        grid: Sampled grayscale grid

    Returns:
        Fingerprint with one bit per grid cell
    """
    count = grid.cell_count
    total = sum(grid.values)

    bits = 0
    for index, value in enumerate(grid.values):
        # value >= total / count, without floating point
        if value * count >= total:
            bits |= 1 << index
    return Fingerprint(bits=bits, width=count)


def difference_hash(grid: PixelGrid) -> Fingerprint:
    """
    Compute the difference hash of a grid.

    Cells are read row-major and each is compared with the next one, so the
    last cell of a row is compared with the first cell of the row below and
    the final cell is compared with itself. Bit i is set when cell i is at
    or above its neighbour.

    Args:
        grid: Sampled grayscale grid

    Returns:
        Fingerprint with one bit per grid cell
    """
    values = grid.values
    last = grid.cell_count - 1

    bits = 0
    for index, value in enumerate(values):
        if value >= values[min(index + 1, last)]:
            bits |= 1 << index
    return Fingerprint(bits=bits, width=grid.cell_count)


def fingerprint_grid(ref: Hashable, grid: PixelGrid) -> ImageFingerprints:
    """Compute both fingerprints for the grid of image ``ref``."""
    return ImageFingerprints(
        ref=ref,
        ahash=average_hash(grid),
        dhash=difference_hash(grid),
    )
