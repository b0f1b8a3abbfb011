"""File scanner that enumerates images in scan order."""

import os
from pathlib import Path
from typing import List, Optional, Sequence

from tqdm import tqdm

from image_deduper.utils.config import Config
from image_deduper.utils.logger import setup_logger

logger = setup_logger(__name__)


class ImageScanner:
    """Lists image files under one or more directories in a stable order."""

    IMAGE_EXTENSIONS = {
        ".jpg",
        ".jpeg",
        ".png",
        ".gif",
        ".bmp",
        ".webp",
        ".tiff",
        ".tif",
    }

    def __init__(self, config: Config, show_progress: bool = True):
        """
        Initialize the image scanner.

        Args:
            config: Configuration instance (supplies recursive/skip_hidden defaults)
            show_progress: Show progress bar during scanning
        """
        self.config = config
        self.show_progress = show_progress

    def scan_directory(
        self,
        directory: Path,
        recursive: Optional[bool] = None,
        skip_hidden: Optional[bool] = None,
    ) -> List[Path]:
        """
        Scan a directory for image files.

        Args:
            directory: Directory path to scan
            recursive: Recursively scan subdirectories (default: from config)
            skip_hidden: Skip hidden files and folders (default: from config)

        Returns:
            Image file paths, sorted so repeated scans give the same order

        Raises:
            FileNotFoundError: If directory doesn't exist
            NotADirectoryError: If the path is not a directory
        """
        if recursive is None:
            recursive = self.config.get("recursive", True)
        if skip_hidden is None:
            skip_hidden = self.config.get("skip_hidden", True)

        if not directory.exists():
            raise FileNotFoundError(f"Directory not found: {directory}")
        if not directory.is_dir():
            raise NotADirectoryError(f"Not a directory: {directory}")

        logger.info(f"Scanning directory: {directory}")

        all_files = self._discover_files(directory, recursive, skip_hidden)
        logger.info(f"Found {len(all_files)} files to check")

        file_iter = tqdm(
            all_files,
            desc="Filtering images",
            unit="file",
            disable=not self.show_progress,
        )
        image_files = [path for path in file_iter if self._is_image_file(path)]

        logger.info(f"Found {len(image_files)} image files")
        return sorted(image_files)

    def scan_multiple_directories(
        self,
        directories: Sequence[Path],
        recursive: Optional[bool] = None,
        skip_hidden: Optional[bool] = None,
    ) -> List[Path]:
        """
        Scan multiple directories for images.

        Directories that cannot be scanned are logged and left out.

        Args:
            directories: Directory paths
            recursive: Recursively scan subdirectories
            skip_hidden: Skip hidden files and folders

        Returns:
            Combined, de-duplicated and sorted list of image paths
        """
        all_images = set()

        for directory in directories:
            try:
                all_images.update(self.scan_directory(directory, recursive, skip_hidden))
            except (FileNotFoundError, NotADirectoryError, PermissionError) as e:
                logger.error(f"Error scanning {directory}: {e}")

        return sorted(all_images)

    def _discover_files(
        self, directory: Path, recursive: bool, skip_hidden: bool
    ) -> List[Path]:
        files: List[Path] = []

        try:
            if recursive:
                for root, dirs, filenames in os.walk(directory):
                    root_path = Path(root)

                    # Prune in place so os.walk skips these subtrees
                    dirs[:] = [
                        d
                        for d in dirs
                        if not (skip_hidden and d.startswith("."))
                        and not (root_path / d).is_symlink()
                    ]

                    for filename in filenames:
                        file_path = root_path / filename
                        if skip_hidden and filename.startswith("."):
                            continue
                        if file_path.is_symlink():
                            continue
                        files.append(file_path)
            else:
                for item in directory.iterdir():
                    if not item.is_file() or item.is_symlink():
                        continue
                    if skip_hidden and item.name.startswith("."):
                        continue
                    files.append(item)

        except PermissionError as e:
            logger.warning(f"Permission denied accessing directory: {e}")

        return files

    def _is_image_file(self, file_path: Path) -> bool:
        return file_path.suffix.lower() in self.IMAGE_EXTENSIONS
