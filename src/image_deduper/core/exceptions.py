"""Exception types raised by image-deduper."""

from typing import Hashable


class ImageDeduperError(Exception):
    """Base class for all image-deduper errors."""


class DecodeError(ImageDeduperError):
    """Raised when an image cannot be turned into a pixel grid."""

    def __init__(self, ref: Hashable, reason: str):
        self.ref = ref
        self.reason = reason
        super().__init__(f"Cannot decode {ref}: {reason}")


class WidthMismatchError(ImageDeduperError, ValueError):
    """Raised when two fingerprints of different bit width are compared.

    This means the grid size changed in the middle of a run, so the
    fingerprints are not comparable and the run must stop.
    """

    def __init__(self, left_width: int, right_width: int):
        self.left_width = left_width
        self.right_width = right_width
        super().__init__(
            f"Cannot compare fingerprints of width {left_width} and {right_width}"
        )


class ConfigError(ImageDeduperError, ValueError):
    """Raised for invalid configuration values."""
