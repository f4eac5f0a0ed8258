import numpy as np
import pytest

from create_sample_images import SAMPLE_ORIGINS
from palettescan.config import Settings
from palettescan.matcher import (
    BOX_COLOR_BGR,
    NOT_FOUND_MESSAGE,
    annotate_detections,
    find_palette_in_image,
    format_match_summary,
    process,
    swatch_extents,
)

POSITION_TOLERANCE_PX = 3
STRIP_ORIGIN = SAMPLE_ORIGINS["vertical"]
HORIZONTAL_ORIGIN = SAMPLE_ORIGINS["horizontal"]


def _peak_threshold(result, margin: float = 0.02) -> float:
    """Threshold just under the best score of a previous run's surface"""
    return float(np.nanmax(result.surface)) - margin


def _assert_near(point, expected, tol=POSITION_TOLERANCE_PX):
    assert abs(point[0] - expected[0]) <= tol, f"x {point[0]} vs {expected[0]}"
    assert abs(point[1] - expected[1]) <= tol, f"y {point[1]} vs {expected[1]}"


def test_vertical_strip_found_at_inserted_position(synthetic_settings, vertical_photo_bgr):
    probe = find_palette_in_image(vertical_photo_bgr, synthetic_settings)

    assert probe.swatch.shape[:2] == (180, 120)
    peak_y, peak_x = np.unravel_index(np.nanargmax(probe.surface), probe.surface.shape)
    _assert_near((peak_x, peak_y), STRIP_ORIGIN)
    assert np.nanmax(probe.surface) > 0.85

    settings = synthetic_settings.with_overrides(threshold=_peak_threshold(probe))
    result = find_palette_in_image(vertical_photo_bgr, settings)

    assert len(result.detections) == 1
    det = result.detections[0]
    _assert_near(det.tl, STRIP_ORIGIN)
    assert (det.width, det.height) == swatch_extents(settings)
    assert det.label == f"Palette: {det.br[0]}, {det.br[1]}"


def test_palette_drops_background_and_keeps_strip_colours(
    synthetic_settings, vertical_photo_bgr
):
    result = find_palette_in_image(vertical_photo_bgr, synthetic_settings)

    assert len(result.centers) == 4
    assert len(result.palette) == 3
    # grey strip cells 50 / 110 / 170 on a 230 background
    greys = np.sort(result.palette.mean(axis=1))
    np.testing.assert_allclose(greys, [50, 110, 170], atol=12)
    assert result.cluster_sizes.sum() == synthetic_settings.resize ** 2


def test_horizontal_strip_found(synthetic_settings, horizontal_photo_bgr):
    settings = synthetic_settings.with_overrides(vertical=False)
    probe = find_palette_in_image(horizontal_photo_bgr, settings)

    assert probe.swatch.shape[:2] == (120, 180)
    peak_y, peak_x = np.unravel_index(np.nanargmax(probe.surface), probe.surface.shape)
    _assert_near((peak_x, peak_y), HORIZONTAL_ORIGIN)

    tight = settings.with_overrides(threshold=_peak_threshold(probe))
    result = find_palette_in_image(horizontal_photo_bgr, tight)

    assert len(result.detections) == 1
    _assert_near(result.detections[0].tl, HORIZONTAL_ORIGIN)


def test_repeated_runs_agree(synthetic_settings, vertical_photo_bgr):
    first = find_palette_in_image(vertical_photo_bgr, synthetic_settings)
    second = find_palette_in_image(vertical_photo_bgr, synthetic_settings)

    assert first.swatch.shape == second.swatch.shape
    assert [d.tl for d in first.detections] == [d.tl for d in second.detections]


def test_process_returns_swatch_and_detections(synthetic_settings, vertical_photo_bgr):
    swatch, detections = process(vertical_photo_bgr, synthetic_settings)

    w, h = swatch_extents(synthetic_settings)
    assert swatch.shape == (h, w, 3)
    assert swatch.dtype == np.uint8
    assert isinstance(detections, list)


def test_input_image_left_untouched(synthetic_settings, vertical_photo_bgr):
    original = vertical_photo_bgr.copy()
    result = find_palette_in_image(vertical_photo_bgr, synthetic_settings)
    annotate_detections(result.image, result.detections)

    np.testing.assert_array_equal(vertical_photo_bgr, original)


def test_swatch_larger_than_image_reports_not_found(vertical_photo_bgr):
    settings = Settings(n_clusters=4, color_w=128, color_h=400, seed=0)
    result = find_palette_in_image(vertical_photo_bgr, settings)

    assert result.surface.size == 0
    assert result.candidates == []
    assert not result.found
    assert NOT_FOUND_MESSAGE in format_match_summary(result)


def test_annotation_draws_box(synthetic_settings, vertical_photo_bgr):
    result = find_palette_in_image(vertical_photo_bgr, synthetic_settings)
    assert result.detections, "expected at least one detection at threshold 0.9"

    annotated = annotate_detections(result.image, result.detections)
    x, y = result.detections[0].tl
    assert tuple(int(v) for v in annotated[y, x]) == BOX_COLOR_BGR


@pytest.mark.parametrize("order", ["channels", "luminance"])
def test_grey_palette_identical_for_both_orders(order, synthetic_settings, vertical_photo_bgr):
    settings = synthetic_settings.with_overrides(palette_order=order)
    result = find_palette_in_image(vertical_photo_bgr, settings)

    assert len(result.palette) == 3
    assert np.all(np.diff(result.palette.mean(axis=1)) > 0)
