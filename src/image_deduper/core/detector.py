"""Duplicate detection using average and difference hashes."""

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence, Tuple

from tqdm import tqdm

from image_deduper.core.exceptions import DecodeError
from image_deduper.core.hashing import ImageFingerprints, fingerprint_grid
from image_deduper.core.sampler import PixelGrid, load_grid
from image_deduper.core.similarity import similarity
from image_deduper.utils.config import Config, validate_threshold
from image_deduper.utils.logger import setup_logger

logger = setup_logger(__name__)

# (ref, grid width, grid height) -> grid; raises DecodeError on failure
ImageLoader = Callable[[Any, int, int], PixelGrid]


@dataclass(frozen=True)
class DuplicateGroup:
    """An image and the images judged to be its duplicates."""

    representative: Hashable
    duplicates: Tuple[Hashable, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": str(self.representative),
            "duplicates": [str(ref) for ref in self.duplicates],
        }


@dataclass(frozen=True)
class SkippedImage:
    """An image left out of the run because it could not be decoded."""

    ref: Hashable
    reason: str


@dataclass(frozen=True)
class ProgressEvent:
    """
    Progress notification passed to ``find_duplicates`` callbacks.

    ``stage`` is ``"fingerprint"`` after each image has been hashed or
    skipped, and ``"group"`` after each duplicate group has been emitted.
    """

    stage: str
    completed: int
    total: int
    ref: Optional[Hashable] = None
    group: Optional[DuplicateGroup] = None


ProgressCallback = Callable[[ProgressEvent], None]


@dataclass
class ScanResult:
    """Outcome of a duplicate detection run."""

    total_images: int
    threshold: float
    grid_size: Tuple[int, int]
    fingerprints: List[ImageFingerprints] = field(default_factory=list)
    skipped: List[SkippedImage] = field(default_factory=list)
    groups: List[DuplicateGroup] = field(default_factory=list)
    cancelled: bool = False

    @property
    def fingerprinted(self) -> int:
        return len(self.fingerprints)

    @property
    def duplicate_count(self) -> int:
        return sum(len(group.duplicates) for group in self.groups)

    def files_to_remove(self) -> List[Hashable]:
        """
        List every image that can be removed while keeping one per group.

        Returns:
            Duplicate members of all groups, in group order
        """
        return [ref for group in self.groups for ref in group.duplicates]

    def to_dict(self) -> Dict[str, Any]:
        """Summarize the run as JSON-serializable data."""
        return {
            "total_images": self.total_images,
            "fingerprinted": self.fingerprinted,
            "threshold": self.threshold,
            "grid_size": list(self.grid_size),
            "cancelled": self.cancelled,
            "skipped": [
                {"image": str(item.ref), "reason": item.reason} for item in self.skipped
            ],
            "groups": [group.to_dict() for group in self.groups],
        }


def group_duplicates(
    fingerprints: Sequence[ImageFingerprints],
    threshold: float,
    cancel_event: Optional[threading.Event] = None,
    on_group: Optional[Callable[[DuplicateGroup, int], None]] = None,
) -> Tuple[List[DuplicateGroup], bool]:
    """
    Partition fingerprinted images into representatives and their duplicates.

    Images are visited in the given order. Each image that has not already
    been claimed as a duplicate is compared with every other unclaimed
    image; a candidate matches when its AHash or its DHash similarity is
    strictly greater than ``threshold``. Matches are claimed by the current
    image and never examined again, so the result depends on input order.

    Args:
        fingerprints: Fingerprints in scan order, one entry per image
        threshold: Similarity a hash must exceed to count as a match
        cancel_event: Checked before each image; stops the pass when set
        on_group: Called with each emitted group and the number of images
            visited so far

    Returns:
        Tuple of (groups in representative order, whether the pass was cancelled)

    Raises:
        WidthMismatchError: If fingerprints of different widths are compared
    """
    count = len(fingerprints)
    active = [True] * count
    groups: List[DuplicateGroup] = []

    for index, current in enumerate(fingerprints):
        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"Grouping cancelled after {index} of {count} images")
            return groups, True

        if not active[index]:
            continue

        candidates = [j for j in range(count) if active[j] and j != index]

        by_ahash = [
            j
            for j in candidates
            if similarity(fingerprints[j].ahash, current.ahash) > threshold
        ]
        claimed = set(by_ahash)
        by_dhash = [
            j
            for j in candidates
            if j not in claimed
            and similarity(fingerprints[j].dhash, current.dhash) > threshold
        ]

        members = by_ahash + by_dhash
        if not members:
            continue

        for j in members:
            active[j] = False

        group = DuplicateGroup(
            representative=current.ref,
            duplicates=tuple(fingerprints[j].ref for j in members),
        )
        groups.append(group)
        logger.debug(
            f"{current.ref}: {len(by_ahash)} AHash and {len(by_dhash)} "
            f"DHash-only duplicates"
        )

        if on_group is not None:
            on_group(group, index + 1)

    return groups, False


class DuplicateDetector:
    """Detects duplicate and near-duplicate images by perceptual hashing."""

    def __init__(
        self,
        config: Config,
        show_progress: bool = True,
        max_workers: Optional[int] = None,
        loader: Optional[ImageLoader] = None,
    ):
        """
        Initialize the duplicate detector.

        Args:
            config: Configuration instance
            show_progress: Show a progress bar while fingerprinting
            max_workers: Fingerprinting threads (default: from config)
            loader: Turns an image reference into a pixel grid
                (default: decode the reference as an image file path)
        """
        self.config = config
        self.show_progress = show_progress
        self.grid_size = config.get_grid_size()
        self.threshold = config.get_threshold()
        self.max_workers = max_workers if max_workers is not None else config.get_max_workers()
        self.loader = loader or load_grid

    def fingerprint(self, ref: Hashable) -> ImageFingerprints:
        """
        Compute both fingerprints for a single image.

        Args:
            ref: Image reference understood by the loader

        Returns:
            ImageFingerprints for the image

        Raises:
            DecodeError: If the image cannot be decoded
        """
        width, height = self.grid_size
        grid = self.loader(ref, width, height)
        return fingerprint_grid(ref, grid)

    def compute_fingerprints(
        self,
        images: Sequence[Hashable],
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Tuple[List[ImageFingerprints], List[SkippedImage], bool]:
        """
        Fingerprint images on a thread pool, keeping scan order.

        Results are consumed in submission order, so the output never
        depends on which worker finishes first. Images that fail to decode
        are skipped and reported.

        Args:
            images: Image references in scan order
            progress: Optional progress callback
            cancel_event: Checked before each image result is consumed

        Returns:
            Tuple of (fingerprints, skipped images, whether cancelled)
        """
        total = len(images)
        fingerprints: List[ImageFingerprints] = []
        skipped: List[SkippedImage] = []
        cancelled = False

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(self.fingerprint, ref) for ref in images]
            progress_bar = tqdm(
                total=total,
                desc="Fingerprinting",
                unit="image",
                disable=not self.show_progress,
            )
            try:
                for position, (ref, future) in enumerate(zip(images, futures), start=1):
                    if cancel_event is not None and cancel_event.is_set():
                        logger.info(
                            f"Fingerprinting cancelled after {position - 1} of {total} images"
                        )
                        cancelled = True
                        break

                    try:
                        fingerprints.append(future.result())
                    except DecodeError as e:
                        logger.warning(f"Skipping {ref}: {e.reason}")
                        skipped.append(SkippedImage(ref=ref, reason=e.reason))
                    except Exception as e:
                        logger.error(f"Error computing fingerprints for {ref}: {e}")
                        raise

                    progress_bar.update(1)
                    if progress is not None:
                        progress(ProgressEvent("fingerprint", position, total, ref=ref))
            finally:
                progress_bar.close()
                # Stop queued work on cancellation or an unexpected error
                for future in futures:
                    future.cancel()

        return fingerprints, skipped, cancelled

    def find_duplicates(
        self,
        images: Sequence[Hashable],
        threshold: Optional[float] = None,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ScanResult:
        """
        Find duplicate and near-duplicate images.

        Args:
            images: Image references in scan order
            threshold: Optional similarity threshold in (0, 1] (overrides config)
            progress: Called after each image is fingerprinted and after
                each group is emitted
            cancel_event: Set it to stop the run at the next image boundary;
                groups finished before that are still returned

        Returns:
            ScanResult with counts, skipped images and duplicate groups

        Raises:
            ConfigError: If the threshold is out of range
            WidthMismatchError: If images produced fingerprints of different widths
        """
        threshold = validate_threshold(threshold) if threshold is not None else self.threshold
        refs = self._unique_refs(images)

        result = ScanResult(
            total_images=len(refs), threshold=threshold, grid_size=self.grid_size
        )
        if not refs:
            logger.warning("No images provided for duplicate detection")
            return result

        width, height = self.grid_size
        logger.info(
            f"Finding duplicates in {len(refs)} images "
            f"(threshold: {threshold}, grid: {width}x{height})"
        )

        fingerprints, skipped, cancelled = self.compute_fingerprints(
            refs, progress=progress, cancel_event=cancel_event
        )
        result.fingerprints = fingerprints
        result.skipped = skipped

        if skipped:
            logger.warning(f"Skipped {len(skipped)} images that could not be decoded")

        if cancelled:
            result.cancelled = True
            return result

        def on_group(group: DuplicateGroup, visited: int) -> None:
            if progress is not None:
                progress(
                    ProgressEvent(
                        "group",
                        visited,
                        len(fingerprints),
                        ref=group.representative,
                        group=group,
                    )
                )

        groups, cancelled = group_duplicates(
            fingerprints, threshold, cancel_event=cancel_event, on_group=on_group
        )
        result.groups = groups
        result.cancelled = cancelled

        logger.info(
            f"Found {len(groups)} duplicate groups "
            f"({result.duplicate_count} duplicates)"
        )
        return result

    def find_duplicates_to_remove(
        self,
        images: Sequence[Hashable],
        threshold: Optional[float] = None,
    ) -> List[Hashable]:
        """
        Find duplicate images to remove (keeping one per group).

        Args:
            images: Image references in scan order
            threshold: Optional similarity threshold

        Returns:
            Image references that duplicate an earlier representative
        """
        result = self.find_duplicates(images, threshold=threshold)
        files_to_remove = result.files_to_remove()
        logger.info(f"Identified {len(files_to_remove)} files to remove")
        return files_to_remove

    @staticmethod
    def _unique_refs(images: Sequence[Hashable]) -> List[Hashable]:
        seen = set()
        refs: List[Hashable] = []
        for ref in images:
            if ref in seen:
                logger.warning(f"Ignoring repeated image {ref}")
                continue
            seen.add(ref)
            refs.append(ref)
        return refs
