"""Command-line interface for image-deduper."""

import json
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from image_deduper import __version__
from image_deduper.core.detector import DuplicateDetector, ScanResult
from image_deduper.core.exceptions import ConfigError, DecodeError, ImageDeduperError
from image_deduper.core.hashing import ImageFingerprints
from image_deduper.core.scanner import ImageScanner
from image_deduper.core.similarity import similarity
from image_deduper.utils.config import Config
from image_deduper.utils.logger import set_log_level, setup_logger

console = Console()
err_console = Console(stderr=True)
logger = setup_logger(__name__)

MAX_GROUPS_SHOWN = 10


@click.group()
@click.version_option(version=__version__, prog_name="image-deduper")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Also write detailed logs to this file",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file (default: ~/.image-deduper/config.json)",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    log_file: Optional[Path],
    config_file: Optional[Path],
) -> None:
    """
    Image Deduper - find near-duplicate images with perceptual hashing.

    Every image is reduced to a small grayscale grid and fingerprinted with
    an average hash and a difference hash. Images whose fingerprints are
    similar enough are grouped under the first image that matched them.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_file"] = config_file

    if verbose or log_file:
        set_log_level(logging.DEBUG if verbose else logging.INFO, log_file)


@cli.command()
@click.option(
    "--path",
    "-p",
    "paths",
    multiple=True,
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
    required=True,
    help="Directory path(s) to scan for images",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output file for duplicate report (JSON)",
)
@click.option(
    "--threshold",
    "-t",
    type=click.FloatRange(0, 1, min_open=True),
    help="Similarity threshold in (0, 1] (default: from config)",
)
@click.option(
    "--grid-size",
    "-g",
    type=(click.IntRange(min=1), click.IntRange(min=1)),
    help="Sampling grid WIDTH HEIGHT (default: from config)",
)
@click.option(
    "--workers",
    "-w",
    type=click.IntRange(min=1),
    help="Threads used for fingerprinting (default: from config)",
)
@click.option(
    "--recursive/--no-recursive",
    "-r/-R",
    default=None,
    help="Recursively scan subdirectories (default: from config)",
)
@click.option(
    "--show-progress/--no-progress",
    default=True,
    help="Show progress bars",
)
@click.pass_context
def scan(
    ctx: click.Context,
    paths: Tuple[Path, ...],
    output: Optional[Path],
    threshold: Optional[float],
    grid_size: Optional[Tuple[int, int]],
    workers: Optional[int],
    recursive: Optional[bool],
    show_progress: bool,
) -> None:
    """
    Scan directories for duplicate images.

    Images are compared in scan order; each image that is not already a
    duplicate claims every remaining image whose average or difference hash
    is more similar than the threshold. Press Ctrl-C to stop early and
    keep the groups found so far.

    Example:
        image-deduper scan --path ~/Pictures --threshold 0.9 --output dupes.json
    """
    config = _load_config(ctx)

    if grid_size:
        # Override for this run only
        config.settings["grid_size"] = list(grid_size)

    console.print(
        f"\n[bold cyan]Image Deduper v{__version__}[/bold cyan] - Duplicate Detection\n"
    )

    scanner = ImageScanner(config, show_progress=show_progress)
    for path in paths:
        console.print(f"[yellow]Scanning:[/yellow] {path}")
    all_images = scanner.scan_multiple_directories(
        list(paths), recursive=recursive, skip_hidden=None
    )

    if not all_images:
        console.print("[yellow]No images found to scan.[/yellow]")
        return

    console.print(f"\n[green]Total images found:[/green] {len(all_images)}\n")

    cancel_event = threading.Event()
    previous_handler = signal.signal(signal.SIGINT, lambda *_: cancel_event.set())
    try:
        detector = DuplicateDetector(
            config, show_progress=show_progress, max_workers=workers
        )
        result = detector.find_duplicates(
            all_images, threshold=threshold, cancel_event=cancel_event
        )
    except ImageDeduperError as e:
        err_console.print(f"[red]Error during duplicate detection:[/red] {e}")
        sys.exit(1)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if result.cancelled:
        console.print("[yellow]Scan cancelled; showing finished groups only.[/yellow]\n")

    _display_summary(result)
    _display_skipped(result)

    if result.groups:
        _display_duplicate_results(result)
    else:
        console.print("[green]✓ No duplicates found![/green]")

    if output:
        _save_report_json(result, output)
        console.print(f"\n[green]✓ Results saved to:[/green] {output}")


@cli.command(name="hash")
@click.argument(
    "images",
    nargs=-1,
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
)
@click.pass_context
def hash_images(ctx: click.Context, images: Tuple[Path, ...]) -> None:
    """
    Print the AHash and DHash fingerprints of image files.
    """
    try:
        detector = DuplicateDetector(_load_config(ctx), show_progress=False)
    except ConfigError as e:
        err_console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Image")
    table.add_column("AHash")
    table.add_column("DHash")

    failures = 0
    for image in images:
        try:
            fingerprints = detector.fingerprint(image)
        except DecodeError as e:
            err_console.print(f"[red]✗ {image}:[/red] {e.reason}")
            failures += 1
            continue
        table.add_row(
            escape(image.name), fingerprints.ahash.to_hex(), fingerprints.dhash.to_hex()
        )

    if table.row_count:
        console.print(table)
    if failures:
        sys.exit(1)


@cli.command()
@click.argument("image_a", type=click.Path(dir_okay=False, path_type=Path))
@click.argument("image_b", type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "--threshold",
    "-t",
    type=click.FloatRange(0, 1, min_open=True),
    help="Similarity threshold in (0, 1] (default: from config)",
)
@click.pass_context
def compare(
    ctx: click.Context, image_a: Path, image_b: Path, threshold: Optional[float]
) -> None:
    """
    Compare two images and report whether they count as duplicates.
    """
    config = _load_config(ctx)
    try:
        detector = DuplicateDetector(config, show_progress=False)
        threshold = threshold if threshold is not None else detector.threshold
        first = detector.fingerprint(image_a)
        second = detector.fingerprint(image_b)
    except ImageDeduperError as e:
        err_console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)

    ahash_score = similarity(first.ahash, second.ahash)
    dhash_score = similarity(first.dhash, second.dhash)

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Hash")
    table.add_column("Similarity")
    table.add_row("AHash", f"{ahash_score:.1%}")
    table.add_row("DHash", f"{dhash_score:.1%}")
    console.print(table)

    if ahash_score > threshold or dhash_score > threshold:
        console.print(f"[bold green]Duplicate[/bold green] (threshold {threshold})")
    else:
        console.print(f"[yellow]Not a duplicate[/yellow] (threshold {threshold})")


@cli.group(name="config")
def config_group() -> None:
    """Show or change settings."""


@config_group.command(name="show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Print the current settings."""
    config = _load_config(ctx)

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in sorted(config.settings.items()):
        table.add_row(key, json.dumps(value))

    console.print(f"[dim]{config.config_file}[/dim]")
    console.print(table)


@config_group.command(name="set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """
    Change a setting. VALUE is parsed as JSON, e.g. 0.9 or "[16, 16]".
    """
    config = _load_config(ctx)

    try:
        parsed: Any = json.loads(value)
    except json.JSONDecodeError:
        parsed = value

    previous = config.get(key)
    config.set(key, parsed)
    try:
        config.get_threshold()
        config.get_grid_size()
        config.get_max_workers()
    except ConfigError as e:
        config.set(key, previous)
        err_console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)

    console.print(f"[green]✓ {key} set to[/green] {json.dumps(parsed)}")


def _load_config(ctx: click.Context) -> Config:
    obj: Dict[str, Any] = ctx.find_root().obj or {}
    return Config(obj.get("config_file"))


def _display_summary(result: ScanResult) -> None:
    table = Table(show_header=False, box=None)
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    width, height = result.grid_size
    table.add_row("Images scanned", str(result.total_images))
    table.add_row("Fingerprinted", str(result.fingerprinted))
    table.add_row("Skipped", str(len(result.skipped)))
    table.add_row("Duplicate groups", str(len(result.groups)))
    table.add_row("Duplicates", str(result.duplicate_count))
    table.add_row("Threshold", f"{result.threshold}")
    table.add_row("Grid", f"{width}x{height}")

    console.print(table)
    console.print()


def _display_skipped(result: ScanResult) -> None:
    if not result.skipped:
        return

    console.print(f"[bold yellow]Skipped {len(result.skipped)} images:[/bold yellow]")
    for item in result.skipped:
        console.print(f"  • {escape(str(item.ref))}: {escape(item.reason)}")
    console.print()


def _display_duplicate_results(result: ScanResult) -> None:
    """Display duplicate groups with per-hash similarity to the representative."""
    console.print(
        f"[bold green]Found {len(result.groups)} duplicate groups:[/bold green]\n"
    )

    by_ref: Dict[Any, ImageFingerprints] = {fp.ref: fp for fp in result.fingerprints}

    for group in result.groups[:MAX_GROUPS_SHOWN]:
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Representative")
        table.add_column("Duplicate")
        table.add_column("AHash")
        table.add_column("DHash")

        table.add_row(f"[bold]{_display_name(group.representative)}[/bold]", "", "", "")

        origin = by_ref[group.representative]
        for ref in group.duplicates:
            other = by_ref[ref]
            table.add_row(
                "",
                _display_name(ref),
                f"{similarity(origin.ahash, other.ahash):.1%}",
                f"{similarity(origin.dhash, other.dhash):.1%}",
            )

        console.print(table)
        console.print()

    if len(result.groups) > MAX_GROUPS_SHOWN:
        console.print(
            f"[dim]... and {len(result.groups) - MAX_GROUPS_SHOWN} more groups[/dim]\n"
        )


def _display_name(ref: Any) -> str:
    return escape(ref.name if isinstance(ref, Path) else str(ref))


def _save_report_json(result: ScanResult, output_path: Path) -> None:
    """Save the scan report to a JSON file."""
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(result.to_dict(), f, indent=2)


def main() -> None:
    """Main entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
