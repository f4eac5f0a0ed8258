"""
Palette finder: derive a palette from a photo's dominant colours, build a
swatch strip from it and locate that strip inside the photo.

Pipeline per image:
    preprocess_image -> quantize_colors -> order_palette -> compose_swatch
    -> locate_candidates -> dedupe_candidates

Also exposes helpers so the CLI, the review window and the web UI can render
results without reproducing any image-processing logic.
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np
from loguru import logger

from .config import Settings

# ---------- configuration ----------
BLUR_KSIZE = (19, 19)
KMEANS_MAX_ITER = 10
KMEANS_EPS = 1.0
KMEANS_ATTEMPTS = 10
CORR_METHOD = cv2.TM_CCOEFF_NORMED
MERGE_RADIUS_PX = 7
PROFILE_ENV = "PALETTESCAN_PROFILE"

# BT.601 luma weights in BGR channel order
LUMA_WEIGHTS_BGR = np.array([0.114, 0.587, 0.299], dtype=np.float32)

BOX_COLOR_BGR = (0, 0, 255)
BOX_THICKNESS = 2
LABEL_COLOR_BGR = (255, 0, 0)
LABEL_FONT = cv2.FONT_HERSHEY_SIMPLEX
LABEL_SCALE = 2
LABEL_OFFSET_PX = 70
NOT_FOUND_MESSAGE = "Palette not found!"


class ImageReadError(RuntimeError):
    """Raised when an image file cannot be decoded."""


# ---------- helper dataclasses ----------
@dataclass
class MatchCandidate:
    x: int
    y: int
    score: float


@dataclass
class Detection:
    tl: Tuple[int, int]
    br: Tuple[int, int]
    score: float
    label: str

    @property
    def width(self) -> int:
        return self.br[0] - self.tl[0]

    @property
    def height(self) -> int:
        return self.br[1] - self.tl[1]


@dataclass
class Quantization:
    centers: np.ndarray
    labels: np.ndarray
    cluster_sizes: np.ndarray
    compactness: float


@dataclass
class PaletteResult:
    image: np.ndarray
    smoothed: np.ndarray
    swatch: np.ndarray
    palette: np.ndarray
    centers: np.ndarray
    cluster_sizes: np.ndarray
    compactness: float
    surface: np.ndarray
    candidates: List[MatchCandidate] = field(default_factory=list)
    detections: List[Detection] = field(default_factory=list)
    source: Optional[str] = None

    @property
    def found(self) -> bool:
        return bool(self.detections)


# ---------- helpers ----------
def load_image(path: str) -> np.ndarray:
    img = cv2.imread(path, cv2.IMREAD_COLOR)
    if img is None:
        raise ImageReadError(f"Could not read the image: {path}")
    return img


def _ensure_three_channel(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        return np.stack([img] * 3, axis=-1)
    if img.ndim == 3 and img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2BGR)
    return img


def _check_image(image_bgr: Optional[np.ndarray]) -> np.ndarray:
    if image_bgr is None or image_bgr.size == 0:
        raise ValueError("Empty image")
    img = _ensure_three_channel(image_bgr)
    if img.ndim != 3 or img.shape[2] != 3:
        raise ValueError(f"Expected a 3-channel image, got shape {image_bgr.shape}")
    if img.dtype != np.uint8:
        raise ValueError(f"Expected an 8-bit image, got dtype {img.dtype}")
    return img


def _bgr_to_hex(color_bgr: Sequence[float]) -> str:
    b, g, r = [int(np.clip(round(float(c)), 0, 255)) for c in color_bgr]
    return f"#{r:02X}{g:02X}{b:02X}"


def preprocess_image(
    image_bgr: np.ndarray, settings: Settings
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Smooth an image and build the clustering sample set from it.

    Args:
        image_bgr: 8-bit BGR image (grayscale and BGRA are converted).
        settings: Run settings; ``settings.resize`` sets the sample grid side.

    Returns:
        Tuple of (smoothed full-resolution image, ``resize**2 x 3`` float32
        sample matrix taken from the smoothed image).

    Raises:
        ValueError: If the image is empty or not an 8-bit colour image.
    """
    img = _check_image(image_bgr)
    smoothed = cv2.GaussianBlur(img, BLUR_KSIZE, 0, borderType=cv2.BORDER_DEFAULT)
    small = cv2.resize(smoothed, (settings.resize, settings.resize))
    samples = small.reshape(-1, 3).astype(np.float32)
    return smoothed, samples


def quantize_colors(samples: np.ndarray, settings: Settings) -> Quantization:
    """
    Cluster the sample set into ``settings.n_clusters`` dominant colours.

    k-means stops after 10 iterations or once centres move by at most 1.0,
    and keeps the most compact of 10 randomly seeded attempts.
    """
    k = settings.n_clusters
    data = np.ascontiguousarray(samples, dtype=np.float32).reshape(-1, 3)
    if data.shape[0] < k:
        raise ValueError(
            f"Need at least {k} samples to find {k} clusters, got {data.shape[0]}"
        )
    if settings.seed is not None:
        cv2.setRNGSeed(int(settings.seed))
    criteria = (
        cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER,
        KMEANS_MAX_ITER,
        KMEANS_EPS,
    )
    compactness, labels, centers = cv2.kmeans(
        data, k, None, criteria, KMEANS_ATTEMPTS, cv2.KMEANS_RANDOM_CENTERS
    )
    labels = labels.ravel()
    cluster_sizes = np.bincount(labels, minlength=k)
    return Quantization(
        centers=centers.astype(np.float32),
        labels=labels,
        cluster_sizes=cluster_sizes,
        compactness=float(compactness),
    )


def order_palette(centers: np.ndarray, order: str = "channels") -> np.ndarray:
    """
    Order cluster centres and drop the background entry.

    ``"channels"`` sorts every channel column on its own, ascending, so row
    ``i`` holds the ``i``-th smallest B, G and R values rather than one
    cluster's colour. ``"luminance"`` sorts whole colours by luma instead.
    In both cases the last (brightest) row is the background and is removed.
    """
    centers = np.asarray(centers, dtype=np.float32)
    if centers.ndim != 2 or centers.shape[1] != 3 or centers.shape[0] < 2:
        raise ValueError(f"Expected at least two BGR centres, got shape {centers.shape}")
    if order == "channels":
        ordered = np.sort(centers, axis=0)
    elif order == "luminance":
        luma = centers @ LUMA_WEIGHTS_BGR
        ordered = centers[np.argsort(luma, kind="stable")]
    else:
        raise ValueError(f"Unknown palette order '{order}'")
    return ordered[:-1].copy()


def swatch_extents(settings: Settings) -> Tuple[int, int]:
    """Width and height of the swatch strip, from the settings alone."""
    if settings.vertical:
        return settings.color_w, settings.color_h * settings.colors
    return settings.color_h * settings.colors, settings.color_w


def compose_swatch(palette: np.ndarray, settings: Settings) -> np.ndarray:
    palette = np.asarray(palette, dtype=np.float32).reshape(-1, 3)
    if palette.shape[0] != settings.colors:
        raise ValueError(
            f"Expected {settings.colors} palette colours, got {palette.shape[0]}"
        )
    if settings.vertical:
        rows, cols = settings.color_h, settings.color_w
    else:
        rows, cols = settings.color_w, settings.color_h
    values = np.clip(np.rint(palette), 0, 255).astype(np.uint8)
    cells = [np.full((rows, cols, 3), value, dtype=np.uint8) for value in values]
    if settings.reverse:
        cells.reverse()
    if settings.vertical:
        return cv2.vconcat(cells)
    return cv2.hconcat(cells)


def correlate_swatch(smoothed: np.ndarray, swatch: np.ndarray) -> np.ndarray:
    """
    Normalised correlation-coefficient surface of ``swatch`` over ``smoothed``.

    Cell ``(y, x)`` scores the placement with the swatch's top-left corner at
    ``(x, y)``. A swatch that does not fit inside the image has no placement,
    so an empty surface is returned.
    """
    ih, iw = smoothed.shape[:2]
    sh, sw = swatch.shape[:2]
    if sh > ih or sw > iw:
        logger.warning(
            f"Swatch {sw}x{sh} does not fit inside image {iw}x{ih}; skipping search"
        )
        return np.zeros((0, 0), dtype=np.float32)
    return cv2.matchTemplate(smoothed, swatch, CORR_METHOD)


def threshold_surface(surface: np.ndarray, threshold: float) -> List[MatchCandidate]:
    """
    Every surface cell scoring at least ``threshold``, in row-major order.

    The threshold is compared in the surface's own precision, so a score
    equal to the threshold is always kept.
    """
    if surface.size == 0:
        return []
    limit = np.asarray(threshold, dtype=surface.dtype)
    ys, xs = np.nonzero(surface >= limit)
    return [
        MatchCandidate(x=int(x), y=int(y), score=float(surface[y, x]))
        for y, x in zip(ys, xs)
    ]


def locate_candidates(
    smoothed: np.ndarray, swatch: np.ndarray, settings: Settings
) -> Tuple[np.ndarray, List[MatchCandidate]]:
    surface = correlate_swatch(smoothed, swatch)
    return surface, threshold_surface(surface, settings.threshold)


def _make_detection(candidate: MatchCandidate, win_x: int, win_y: int) -> Detection:
    br = (candidate.x + win_x, candidate.y + win_y)
    return Detection(
        tl=(candidate.x, candidate.y),
        br=br,
        score=candidate.score,
        label=f"Palette: {br[0]}, {br[1]}",
    )


def dedupe_candidates(
    candidates: Sequence[MatchCandidate],
    settings: Settings,
    extents: Optional[Tuple[int, int]] = None,
) -> List[Detection]:
    """
    Collapse candidates that sit close together along the orientation axis.

    Candidates are walked in order (reversed when ``settings.reverse``). The
    primary axis is x for a vertical strip and y for a horizontal one. A
    candidate becomes a detection only when its primary coordinate is more
    than ``MERGE_RADIUS_PX`` away from every detection accepted so far.

    Returns:
        Detections in acceptance order; empty when nothing was accepted.
    """
    win_x, win_y = extents if extents is not None else swatch_extents(settings)
    ordered = list(reversed(candidates)) if settings.reverse else list(candidates)
    detections: List[Detection] = []
    accepted: List[int] = []
    for candidate in ordered:
        coord = candidate.x if settings.vertical else candidate.y
        if any(abs(coord - prev) <= MERGE_RADIUS_PX for prev in accepted):
            continue
        detections.append(_make_detection(candidate, win_x, win_y))
        accepted.append(coord)
    return detections


def find_palette_in_image(
    image_bgr: np.ndarray, settings: Settings, source: Optional[str] = None
) -> PaletteResult:
    profile_value = os.getenv(PROFILE_ENV, "").strip().lower()
    profile = profile_value not in ("", "0", "false", "no")
    if profile:
        t0 = time.perf_counter()
        marks: List[Tuple[str, float]] = []

    image = _check_image(image_bgr).copy()
    smoothed, samples = preprocess_image(image, settings)
    if profile:
        marks.append(("preprocess", time.perf_counter()))

    quant = quantize_colors(samples, settings)
    palette = order_palette(quant.centers, settings.palette_order)
    if profile:
        marks.append(("kmeans", time.perf_counter()))

    swatch = compose_swatch(palette, settings)
    if profile:
        marks.append(("swatch", time.perf_counter()))

    surface, candidates = locate_candidates(smoothed, swatch, settings)
    if profile:
        marks.append(("match", time.perf_counter()))

    detections = dedupe_candidates(candidates, settings)
    if profile:
        marks.append(("dedupe", time.perf_counter()))

    name = source or "<image>"
    if detections:
        for det in detections:
            logger.info(f"{name}: {det.label} (score {det.score:.3f})")
    else:
        logger.info(f"{name}: {NOT_FOUND_MESSAGE}")

    if profile:
        t_end = time.perf_counter()
        prev = t0
        parts = []
        for label, ts in marks:
            parts.append(f"{label}={((ts - prev) * 1000.0):.2f}ms")
            prev = ts
        parts.append(f"total={((t_end - t0) * 1000.0):.2f}ms")
        logger.info("pipeline profile: " + " ".join(parts))

    return PaletteResult(
        image=image,
        smoothed=smoothed,
        swatch=swatch,
        palette=palette,
        centers=quant.centers,
        cluster_sizes=quant.cluster_sizes,
        compactness=quant.compactness,
        surface=surface,
        candidates=candidates,
        detections=detections,
        source=source,
    )


def find_palette_in_file(path: str, settings: Settings) -> PaletteResult:
    return find_palette_in_image(load_image(path), settings, source=path)


def process(
    image_bgr: np.ndarray, settings: Settings
) -> Tuple[np.ndarray, List[Detection]]:
    """Per-image driver contract: the synthesised swatch and its detections."""
    result = find_palette_in_image(image_bgr, settings)
    return result.swatch, result.detections


# ---------- rendering ----------
def annotate_detections(
    image_bgr: np.ndarray, detections: Sequence[Detection]
) -> np.ndarray:
    out = image_bgr.copy()
    for det in detections:
        cv2.rectangle(out, det.tl, det.br, BOX_COLOR_BGR, BOX_THICKNESS)
        cv2.putText(
            out,
            det.label,
            (det.tl[0], det.br[1] + LABEL_OFFSET_PX),
            LABEL_FONT,
            LABEL_SCALE,
            LABEL_COLOR_BGR,
        )
    return out


def render_views(result: PaletteResult) -> Dict[str, np.ndarray]:
    annotated = annotate_detections(result.image, result.detections)
    return {
        "image": cv2.cvtColor(result.image, cv2.COLOR_BGR2RGB),
        "smoothed": cv2.cvtColor(result.smoothed, cv2.COLOR_BGR2RGB),
        "swatch": cv2.cvtColor(result.swatch, cv2.COLOR_BGR2RGB),
        "annotated": cv2.cvtColor(annotated, cv2.COLOR_BGR2RGB),
    }


def format_match_summary(result: PaletteResult) -> str:
    k = len(result.centers)
    lines = [
        f"Clusters: {k} | visible colours: {len(result.palette)} | "
        f"compactness: {result.compactness:.1f}",
        "Palette: " + " ".join(_bgr_to_hex(c) for c in result.palette),
        "Cluster sizes: " + ", ".join(str(int(n)) for n in result.cluster_sizes),
    ]
    if not result.detections:
        lines.append(NOT_FOUND_MESSAGE)
        return "  \n".join(lines)
    lines.append(
        f"Detections: {len(result.detections)} "
        f"(from {len(result.candidates)} candidates)"
    )
    for idx, det in enumerate(result.detections):
        lines.append(f"#{idx + 1} {det.label} | score {det.score:.3f}")
    return "  \n".join(lines)
