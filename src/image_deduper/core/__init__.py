"""Core functionality: grid sampling, hashing, similarity and grouping."""

from image_deduper.core.detector import (
    DuplicateDetector,
    DuplicateGroup,
    ProgressEvent,
    ScanResult,
    SkippedImage,
    group_duplicates,
)
from image_deduper.core.exceptions import (
    ConfigError,
    DecodeError,
    ImageDeduperError,
    WidthMismatchError,
)
from image_deduper.core.hashing import (
    Fingerprint,
    ImageFingerprints,
    average_hash,
    difference_hash,
    fingerprint_grid,
)
from image_deduper.core.sampler import PixelGrid, load_grid, sample_grid
from image_deduper.core.scanner import ImageScanner
from image_deduper.core.similarity import hamming_distance, similarity

__all__ = [
    "ConfigError",
    "DecodeError",
    "DuplicateDetector",
    "DuplicateGroup",
    "Fingerprint",
    "ImageDeduperError",
    "ImageFingerprints",
    "ImageScanner",
    "PixelGrid",
    "ProgressEvent",
    "ScanResult",
    "SkippedImage",
    "WidthMismatchError",
    "average_hash",
    "difference_hash",
    "fingerprint_grid",
    "group_duplicates",
    "hamming_distance",
    "load_grid",
    "sample_grid",
    "similarity",
]
