"""Run the palette finder over every image in a directory."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from .config import Settings
from .matcher import Detection, ImageReadError, PaletteResult, find_palette_in_file

IMAGE_EXTENSIONS = {".bmp", ".jpg", ".jpeg", ".png", ".tif", ".tiff", ".webp"}

Presenter = Callable[[PaletteResult], None]


@dataclass
class BatchReport:
    images_path: str
    detections: Dict[str, List[Detection]] = field(default_factory=dict)
    failures: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def processed(self) -> int:
        return len(self.detections)

    @property
    def detection_count(self) -> int:
        return sum(len(dets) for dets in self.detections.values())


def iter_image_paths(images_path: str) -> List[str]:
    """Image files directly inside ``images_path``, sorted by name."""
    if not os.path.isdir(images_path):
        raise NotADirectoryError(f"Images path is not a directory: {images_path}")
    paths = []
    for name in sorted(os.listdir(images_path)):
        full = os.path.join(images_path, name)
        if not os.path.isfile(full):
            continue
        if os.path.splitext(name)[1].lower() not in IMAGE_EXTENSIONS:
            continue
        paths.append(full)
    return paths


def run_batch(
    settings: Settings,
    presenter: Optional[Presenter] = None,
    images_path: Optional[str] = None,
) -> BatchReport:
    """
    Process each image in turn and hand every result to ``presenter``.

    Unreadable images follow ``settings.on_error``: ``"continue"`` records
    the failure and moves on, ``"abort"`` re-raises the ``ImageReadError``.

    Raises:
        NotADirectoryError: If the images path does not exist.
        ImageReadError: Under the ``"abort"`` policy.
    """
    root = images_path or settings.path
    report = BatchReport(images_path=root)
    for image_path in iter_image_paths(root):
        logger.info(f"Processing {image_path}")
        try:
            result = find_palette_in_file(image_path, settings)
        except ImageReadError as exc:
            logger.error(str(exc))
            if settings.on_error == "abort":
                raise
            report.failures.append((image_path, str(exc)))
            continue
        report.detections[image_path] = result.detections
        if presenter is not None:
            presenter(result)

    if report.processed == 0 and not report.failures:
        logger.info(f"No images found in {root}")
    return report
