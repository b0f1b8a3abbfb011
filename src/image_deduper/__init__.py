"""
Image Deduper - perceptual near-duplicate image detection.

Each image is reduced to a small grayscale grid and fingerprinted with an
average hash and a difference hash; images whose fingerprints are similar
enough are grouped under the first image in scan order that matched them.
"""

__version__ = "0.1.0"
__author__ = "Image Deduper Contributors"

from image_deduper.core.detector import DuplicateDetector, DuplicateGroup, ScanResult
from image_deduper.core.scanner import ImageScanner

__all__ = [
    "DuplicateDetector",
    "DuplicateGroup",
    "ImageScanner",
    "ScanResult",
    "__version__",
]
