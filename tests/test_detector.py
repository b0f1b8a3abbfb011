"""Test duplicate grouping and the detector pipeline."""

import logging
import threading
import time

import pytest

from image_deduper.core.detector import (
    DuplicateDetector,
    DuplicateGroup,
    ScanResult,
    SkippedImage,
    group_duplicates,
)
from image_deduper.core.exceptions import ConfigError, DecodeError, WidthMismatchError
from image_deduper.core.sampler import PixelGrid

ALL_BITS = (1 << 64) - 1


class TestGroupDuplicates:
    """Test the greedy grouping pass on hand-made fingerprints."""

    def test_identical_pair_and_unrelated_image(self, make_fingerprints):
        """Test that identical images group and an unrelated one starts nothing."""
        fingerprints = [
            make_fingerprints("A", 0x0F0F),
            make_fingerprints("B", 0x0F0F),
            make_fingerprints("C", ALL_BITS ^ 0x0F0F),
        ]

        groups, cancelled = group_duplicates(fingerprints, 0.95)

        assert groups == [DuplicateGroup("A", ("B",))]
        assert not cancelled

    def test_either_hash_is_enough(self, make_fingerprints):
        """Test that a strong AHash match alone puts B in A's group."""
        fingerprints = [
            make_fingerprints("A", 0, dhash=0),
            # AHash similarity 62/64, DHash similarity 0.5
            make_fingerprints("B", 0b11, dhash=(1 << 32) - 1),
            make_fingerprints("C", ALL_BITS, dhash=ALL_BITS),
        ]

        groups, _ = group_duplicates(fingerprints, 0.95)

        assert groups == [DuplicateGroup("A", ("B",))]

    def test_dhash_only_matches_follow_ahash_matches(self, make_fingerprints):
        """Test member order: AHash matches first, then DHash-only matches."""
        fingerprints = [
            make_fingerprints("A", 0, dhash=0),
            make_fingerprints("B", ALL_BITS, dhash=0),  # DHash only
            make_fingerprints("C", 0, dhash=ALL_BITS),  # AHash only
            make_fingerprints("D", 0, dhash=0),  # both, counted once
        ]

        groups, _ = group_duplicates(fingerprints, 0.95)

        assert groups == [DuplicateGroup("A", ("C", "D", "B"))]

    def test_first_image_claims_whole_cluster(self, make_fingerprints):
        """Test that mutually similar images form one group under the first."""
        fingerprints = [make_fingerprints(ref, 0xABCDEF) for ref in ("A", "B", "C")]

        groups, _ = group_duplicates(fingerprints, 0.95)

        assert groups == [DuplicateGroup("A", ("B", "C"))]

    def test_result_depends_on_order(self, make_fingerprints):
        fingerprints = [make_fingerprints(ref, 0xABCDEF) for ref in ("C", "B", "A")]

        groups, _ = group_duplicates(fingerprints, 0.95)

        assert groups == [DuplicateGroup("C", ("B", "A"))]

    def test_claimed_image_is_not_revisited(self, make_fingerprints):
        """
        Test a chain A~B, B~C where A and C are not similar.

        B is claimed by A, so it never starts its own group and C stays
        alone even though it resembles B.
        """
        fingerprints = [
            make_fingerprints("A", 0),
            make_fingerprints("B", 0b111),  # 61/64 from A
            make_fingerprints("C", 0b111111),  # 61/64 from B, 58/64 from A
        ]

        groups, _ = group_duplicates(fingerprints, 0.95)

        assert groups == [DuplicateGroup("A", ("B",))]

    def test_each_image_in_at_most_one_group(self, make_fingerprints):
        fingerprints = [
            make_fingerprints("A", 0),
            make_fingerprints("B", 0b1),
            make_fingerprints("C", ALL_BITS),
            make_fingerprints("D", ALL_BITS ^ 0b1),
            make_fingerprints("E", 0b11),
        ]

        groups, _ = group_duplicates(fingerprints, 0.95)

        assert groups == [
            DuplicateGroup("A", ("B", "E")),
            DuplicateGroup("C", ("D",)),
        ]
        members = [ref for g in groups for ref in (g.representative,) + g.duplicates]
        assert len(members) == len(set(members))

    def test_threshold_is_strict(self, make_fingerprints):
        """Test that a similarity equal to the threshold does not match."""
        fingerprints = [
            make_fingerprints("A", 0, width=4),
            make_fingerprints("B", 0b1, width=4),  # similarity 0.75
        ]

        assert group_duplicates(fingerprints, 0.75)[0] == []
        assert group_duplicates(fingerprints, 0.74)[0] == [DuplicateGroup("A", ("B",))]

    def test_threshold_one_rejects_near_identical(self, make_fingerprints):
        fingerprints = [make_fingerprints("A", 0), make_fingerprints("B", 1)]

        groups, _ = group_duplicates(fingerprints, 1.0)

        assert groups == []

    def test_is_deterministic(self, make_fingerprints):
        fingerprints = [
            make_fingerprints(str(i), bits)
            for i, bits in enumerate([0, 1, ALL_BITS, 3, ALL_BITS - 1, 0x5555])
        ]

        first, _ = group_duplicates(fingerprints, 0.95)
        second, _ = group_duplicates(fingerprints, 0.95)

        assert first == second

    def test_width_mismatch_is_fatal(self, make_fingerprints):
        fingerprints = [
            make_fingerprints("A", 0, width=64),
            make_fingerprints("B", 0, width=16),
        ]

        with pytest.raises(WidthMismatchError):
            group_duplicates(fingerprints, 0.95)

    def test_cancel_before_start(self, make_fingerprints):
        event = threading.Event()
        event.set()
        fingerprints = [make_fingerprints("A", 0), make_fingerprints("B", 0)]

        groups, cancelled = group_duplicates(fingerprints, 0.95, cancel_event=event)

        assert groups == []
        assert cancelled

    def test_cancel_keeps_finished_groups(self, make_fingerprints):
        """Test that cancelling after a group returns that group only."""
        event = threading.Event()
        fingerprints = [
            make_fingerprints("A", 0),
            make_fingerprints("B", 0),
            make_fingerprints("C", ALL_BITS),
            make_fingerprints("D", ALL_BITS),
        ]

        groups, cancelled = group_duplicates(
            fingerprints, 0.95, cancel_event=event, on_group=lambda g, n: event.set()
        )

        assert groups == [DuplicateGroup("A", ("B",))]
        assert cancelled

    def test_empty_input(self):
        assert group_duplicates([], 0.95) == ([], False)


@pytest.fixture
def grids(ramp_grid):
    """Image name -> grid; 'a' and 'b' are identical, 'c' is unrelated."""
    return {"a": ramp_grid(), "b": ramp_grid(), "c": ramp_grid(reverse=True)}


def _loader_for(grids):
    def loader(ref, width, height):
        if ref not in grids:
            raise DecodeError(ref, "corrupt")
        return grids[ref]

    return loader


class TestDuplicateDetector:
    """Test fingerprinting plus grouping through DuplicateDetector."""

    def test_finds_duplicates(self, config, grids):
        detector = DuplicateDetector(config, show_progress=False, loader=_loader_for(grids))

        result = detector.find_duplicates(["a", "b", "c"])

        assert result.groups == [DuplicateGroup("a", ("b",))]
        assert result.total_images == 3
        assert result.fingerprinted == 3
        assert result.skipped == []
        assert not result.cancelled

    def test_skips_images_that_fail_to_decode(self, config, grids):
        """Test that a corrupt image is reported and excluded."""
        detector = DuplicateDetector(config, show_progress=False, loader=_loader_for(grids))

        result = detector.find_duplicates(["a", "broken", "b", "c"])

        assert result.skipped == [SkippedImage("broken", "corrupt")]
        assert result.total_images == 4
        assert result.fingerprinted == 3
        assert result.groups == [DuplicateGroup("a", ("b",))]
        assert [fp.ref for fp in result.fingerprints] == ["a", "b", "c"]

    def test_results_follow_scan_order_not_completion_order(self, config, ramp_grid):
        """Test that slow early images still come first with several workers."""
        refs = [f"img{i}" for i in range(6)]
        grid = ramp_grid()

        def slow_loader(ref, width, height):
            time.sleep(0.02 * (len(refs) - refs.index(ref)))
            return grid

        detector = DuplicateDetector(
            config, show_progress=False, max_workers=4, loader=slow_loader
        )

        result = detector.find_duplicates(refs)

        assert [fp.ref for fp in result.fingerprints] == refs
        assert result.groups == [DuplicateGroup("img0", tuple(refs[1:]))]

    def test_progress_events(self, config, grids):
        detector = DuplicateDetector(config, show_progress=False, loader=_loader_for(grids))
        events = []

        detector.find_duplicates(["a", "b", "c", "x"], progress=events.append)

        fingerprint_events = [e for e in events if e.stage == "fingerprint"]
        group_events = [e for e in events if e.stage == "group"]
        assert [e.completed for e in fingerprint_events] == [1, 2, 3, 4]
        assert [e.ref for e in fingerprint_events] == ["a", "b", "c", "x"]
        assert all(e.total == 4 for e in fingerprint_events)
        assert len(group_events) == 1
        assert group_events[0].group == DuplicateGroup("a", ("b",))
        assert group_events[0].total == 3

    def test_cancel_during_fingerprinting(self, config, grids):
        """Test that cancelling while hashing emits no groups."""
        detector = DuplicateDetector(config, show_progress=False, loader=_loader_for(grids))
        event = threading.Event()

        result = detector.find_duplicates(
            ["a", "b", "c"], progress=lambda e: event.set(), cancel_event=event
        )

        assert result.cancelled
        assert result.groups == []
        assert result.fingerprinted == 1

    def test_repeated_refs_are_collapsed(self, config, grids):
        detector = DuplicateDetector(config, show_progress=False, loader=_loader_for(grids))

        result = detector.find_duplicates(["a", "a", "c"])

        assert result.total_images == 2
        assert result.groups == []

    def test_mismatched_grid_sizes_abort(self, config, ramp_grid):
        grids = {"a": ramp_grid(), "b": PixelGrid.from_rows([[1, 2], [3, 4]])}
        detector = DuplicateDetector(config, show_progress=False, loader=_loader_for(grids))

        with pytest.raises(WidthMismatchError):
            detector.find_duplicates(["a", "b"])

    def test_threshold_override(self, config, grids):
        detector = DuplicateDetector(config, show_progress=False, loader=_loader_for(grids))

        result = detector.find_duplicates(["a", "b", "c"], threshold=1.0)

        assert result.threshold == 1.0
        assert result.groups == []

    @pytest.mark.parametrize("threshold", [0, -0.5, 1.5])
    def test_invalid_threshold(self, config, grids, threshold):
        detector = DuplicateDetector(config, show_progress=False, loader=_loader_for(grids))

        with pytest.raises(ConfigError):
            detector.find_duplicates(["a", "b"], threshold=threshold)

    def test_empty_input(self, config):
        detector = DuplicateDetector(config, show_progress=False)

        result = detector.find_duplicates([])

        assert result.total_images == 0
        assert result.groups == []

    def test_grid_size_from_config(self, config):
        config.set("grid_size", [4, 2])
        seen = []

        def loader(ref, width, height):
            seen.append((width, height))
            return PixelGrid(width=width, height=height, values=(0,) * (width * height))

        detector = DuplicateDetector(config, show_progress=False, loader=loader)
        fingerprints = detector.fingerprint("a")

        assert seen == [(4, 2)]
        assert fingerprints.ahash.width == 8

    def test_image_files_end_to_end(self, config, image_dir):
        """Test the default file loader on real images."""
        detector = DuplicateDetector(config, show_progress=False)
        images = sorted(image_dir.iterdir())

        result = detector.find_duplicates(images)

        assert result.groups == [
            DuplicateGroup(image_dir / "a_original.png", (image_dir / "b_copy.png",))
        ]
        assert [item.ref for item in result.skipped] == [image_dir / "d_broken.png"]

    def test_find_duplicates_to_remove(self, config, image_dir):
        detector = DuplicateDetector(config, show_progress=False)

        to_remove = detector.find_duplicates_to_remove(sorted(image_dir.iterdir()))

        assert to_remove == [image_dir / "b_copy.png"]


def test_scan_result_to_dict():
    result = ScanResult(
        total_images=3,
        threshold=0.95,
        grid_size=(8, 8),
        skipped=[SkippedImage("x.png", "corrupt")],
        groups=[DuplicateGroup("a.png", ("b.png", "c.png"))],
    )

    assert result.to_dict() == {
        "total_images": 3,
        "fingerprinted": 0,
        "threshold": 0.95,
        "grid_size": [8, 8],
        "cancelled": False,
        "skipped": [{"image": "x.png", "reason": "corrupt"}],
        "groups": [{"from": "a.png", "duplicates": ["b.png", "c.png"]}],
    }
    assert result.files_to_remove() == ["b.png", "c.png"]
    assert result.duplicate_count == 2


def test_unexpected_loader_error_is_logged_and_raised(config, caplog):
    """Test that errors other than DecodeError stop the run and are logged."""

    def failing_loader(ref, width, height):
        raise RuntimeError("disk on fire")

    detector = DuplicateDetector(config, show_progress=False, loader=failing_loader)

    with caplog.at_level(logging.ERROR):
        with pytest.raises(RuntimeError, match="disk on fire"):
            detector.find_duplicates(["a", "b"])

    assert "Error computing fingerprints for a" in caplog.text
