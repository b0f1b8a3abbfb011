"""Hamming similarity between fingerprints."""

from image_deduper.core.exceptions import WidthMismatchError
from image_deduper.core.hashing import Fingerprint


def hamming_distance(a: Fingerprint, b: Fingerprint) -> int:
    """
    Count the bits that differ between two fingerprints.

    Args:
        a: First fingerprint
        b: Second fingerprint

    Returns:
        Number of differing bits (0 to width)

    Raises:
        WidthMismatchError: If the fingerprints have different widths
    """
    if a.width != b.width:
        raise WidthMismatchError(a.width, b.width)
    return bin(a.bits ^ b.bits).count("1")


def similarity(a: Fingerprint, b: Fingerprint) -> float:
    """
    Fraction of matching bits between two fingerprints, in [0, 1].

    Raises:
        WidthMismatchError: If the fingerprints have different widths
    """
    return 1.0 - hamming_distance(a, b) / a.width
