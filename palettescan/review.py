"""
Presenters receive one ``PaletteResult`` per image from the batch driver.

``LogPresenter`` writes the summary to the log; ``WindowPresenter`` shows the
swatch and the annotated photo in OpenCV windows and waits for a key before
the next image.
"""

from __future__ import annotations

from typing import List

import cv2
from loguru import logger

from .batch import Presenter
from .config import Settings
from .matcher import PaletteResult, annotate_detections, format_match_summary, swatch_extents

PALETTE_WINDOW = "palette"


class LogPresenter:
    def __call__(self, result: PaletteResult) -> None:
        name = result.source or "<image>"
        for line in format_match_summary(result).split("  \n"):
            logger.debug(f"{name}: {line}")


class WindowPresenter:
    def __init__(self, settings: Settings, wait_ms: int = 0) -> None:
        self.settings = settings
        self.wait_ms = wait_ms

    def __call__(self, result: PaletteResult) -> None:
        win_x, win_y = swatch_extents(self.settings)
        cv2.namedWindow(PALETTE_WINDOW, cv2.WINDOW_NORMAL)
        cv2.resizeWindow(PALETTE_WINDOW, win_x, win_y)
        cv2.imshow(PALETTE_WINDOW, result.swatch)

        title = result.source or "image"
        cv2.namedWindow(title, cv2.WINDOW_NORMAL)
        cv2.resizeWindow(title, self.settings.win_w, self.settings.win_h)
        cv2.imshow(title, annotate_detections(result.image, result.detections))

        # 0 blocks until a key is pressed in one of the windows
        cv2.waitKey(self.wait_ms)
        cv2.destroyAllWindows()

    def close(self) -> None:
        cv2.destroyAllWindows()


def chain_presenters(*presenters: Presenter) -> Presenter:
    chain: List[Presenter] = [p for p in presenters if p is not None]

    def _present(result: PaletteResult) -> None:
        for presenter in chain:
            presenter(result)

    return _present
