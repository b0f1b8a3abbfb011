"""Downsampling of decoded images to small grayscale grids."""

from dataclasses import dataclass
from pathlib import Path
from typing import Hashable, Iterator, Optional, Sequence, Tuple

from PIL import Image, UnidentifiedImageError

from image_deduper.core.exceptions import DecodeError
from image_deduper.utils.logger import setup_logger

logger = setup_logger(__name__)

DEFAULT_GRID_SIZE = (8, 8)

# Area averaging keeps fingerprints stable across source resolutions
RESAMPLING = Image.Resampling.BOX


@dataclass(frozen=True)
class PixelGrid:
    """A width x height grid of grayscale intensities stored row-major."""

    width: int
    height: int
    values: Tuple[int, ...]

    def __post_init__(self) -> None:
        if self.width < 1 or self.height < 1:
            raise ValueError(f"Grid must be at least 1x1, got {self.width}x{self.height}")
        if len(self.values) != self.width * self.height:
            raise ValueError(
                f"Grid {self.width}x{self.height} needs {self.width * self.height} "
                f"values, got {len(self.values)}"
            )
        if any(not 0 <= v <= 255 for v in self.values):
            raise ValueError("Grid intensities must be in the range 0-255")

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[int]]) -> "PixelGrid":
        """
        Build a grid from a list of equally long rows.

        Args:
            rows: Grayscale intensities, one sequence per row

        Returns:
            PixelGrid with the same layout

        Raises:
            ValueError: If rows are empty or ragged
        """
        if not rows or not rows[0]:
            raise ValueError("Grid needs at least one row and one column")
        width = len(rows[0])
        if any(len(row) != width for row in rows):
            raise ValueError("All grid rows must have the same length")
        values = tuple(int(v) for row in rows for v in row)
        return cls(width=width, height=len(rows), values=values)

    @property
    def cell_count(self) -> int:
        return self.width * self.height

    def rows(self) -> Iterator[Tuple[int, ...]]:
        for start in range(0, self.cell_count, self.width):
            yield self.values[start:start + self.width]


def sample_grid(
    image: Image.Image,
    width: int = DEFAULT_GRID_SIZE[0],
    height: int = DEFAULT_GRID_SIZE[1],
    ref: Optional[Hashable] = None,
) -> PixelGrid:
    """
    Resample a decoded image to a width x height grayscale grid.

    The image is converted to 8-bit luminance and box-filtered down (or up)
    to the requested size, so the same image and size always give the same
    grid.

    Args:
        image: Decoded Pillow image
        width: Grid width in cells
        height: Grid height in cells
        ref: Identifier reported in errors (defaults to the image filename)

    Returns:
        PixelGrid of exactly width x height cells

    Raises:
        ValueError: If the grid size is not positive
        DecodeError: If the image has zero width or height
    """
    if width < 1 or height < 1:
        raise ValueError(f"Grid size must be positive, got {width}x{height}")

    ref = ref if ref is not None else getattr(image, "filename", None) or "<image>"
    if image.width == 0 or image.height == 0:
        raise DecodeError(ref, f"image has zero dimensions ({image.width}x{image.height})")

    if image.mode == "I" or image.mode.startswith("I;16"):
        # Scale 16-bit samples to 0-255; a plain "L" conversion clips them
        image = image.convert("I").point(lambda v: v * (1 / 256))

    gray = image if image.mode == "L" else image.convert("L")
    resized = gray.resize((width, height), RESAMPLING)
    return PixelGrid(width=width, height=height, values=tuple(resized.tobytes()))


def load_grid(
    image_path: Path,
    width: int = DEFAULT_GRID_SIZE[0],
    height: int = DEFAULT_GRID_SIZE[1],
) -> PixelGrid:
    """
    Decode an image file and sample it to a grid.

    Args:
        image_path: Path to the image file
        width: Grid width in cells
        height: Grid height in cells

    Returns:
        PixelGrid for the image

    Raises:
        DecodeError: If the file is missing, unreadable or not a supported image
    """
    try:
        with Image.open(image_path) as img:
            img.load()
            grid = sample_grid(img, width, height, ref=image_path)
    except DecodeError:
        raise
    except (UnidentifiedImageError, Image.DecompressionBombError) as e:
        raise DecodeError(image_path, f"unsupported or unsafe image: {e}") from e
    except OSError as e:
        # Covers missing files, permission problems and truncated data
        raise DecodeError(image_path, str(e) or type(e).__name__) from e

    logger.debug(f"Sampled {image_path} to {width}x{height} grid")
    return grid
