"""Pytest configuration: synthetic photo fixtures and browser fixtures for e2e tests"""
import cv2
import numpy as np
import pytest

from create_sample_images import SAMPLE_ORIGINS, draw_palette_photo
from palettescan.config import Settings


def _to_bgr(pil_img) -> np.ndarray:
    return cv2.cvtColor(np.asarray(pil_img), cv2.COLOR_RGB2BGR)


@pytest.fixture
def synthetic_settings():
    """Settings matching the strips drawn by ``draw_palette_photo`` defaults"""
    return Settings(
        n_clusters=4,
        resize=120,
        color_w=120,
        color_h=60,
        threshold=0.9,
        vertical=True,
        reverse=True,
        seed=0,
    )


@pytest.fixture
def vertical_photo_bgr():
    return _to_bgr(draw_palette_photo(origin=SAMPLE_ORIGINS["vertical"], vertical=True))


@pytest.fixture
def horizontal_photo_bgr():
    return _to_bgr(draw_palette_photo(origin=SAMPLE_ORIGINS["horizontal"], vertical=False))


@pytest.fixture
def images_dir(tmp_path, vertical_photo_bgr):
    """Directory holding one readable synthetic photo"""
    out = tmp_path / "images"
    out.mkdir()
    cv2.imwrite(str(out / "b_photo.png"), vertical_photo_bgr)
    return out


@pytest.fixture(scope="session")
def browser():
    """Create a browser instance for the test session"""
    from playwright.sync_api import sync_playwright

    with sync_playwright() as p:
        browser = p.chromium.launch(headless=True)
        yield browser
        browser.close()


@pytest.fixture(scope="function")
def page(browser):
    """Create a new page for each test"""
    context = browser.new_context()
    page = context.new_page()
    yield page
    page.close()
    context.close()
