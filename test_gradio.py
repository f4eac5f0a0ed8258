"""End-to-end tests for the Gradio palette finder interface"""
import os
import socket
import subprocess
import sys
import time
from pathlib import Path

import pytest

from create_sample_images import draw_palette_photo


def find_free_port():
    """Find a free port to run the test server on"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        s.listen(1)
        port = s.getsockname()[1]
    return port


@pytest.fixture(scope="module")
def gradio_app():
    """Start Gradio app for testing"""
    port = find_free_port()
    project_dir = Path(__file__).resolve().parent

    env = os.environ.copy()
    env['GRADIO_SERVER_PORT'] = str(port)
    env['PALETTESCAN_LOG_LEVEL'] = "WARNING"

    process = subprocess.Popen(
        [sys.executable, "app.py"],
        cwd=str(project_dir),
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=env
    )

    # Wait for app to be ready (check if port is listening)
    max_wait = 30
    start_time = time.time()
    while time.time() - start_time < max_wait:
        if process.poll() is not None:
            stdout, stderr = process.communicate()
            error_msg = f"Gradio app process terminated unexpectedly.\nStdout: {stdout.decode()}\nStderr: {stderr.decode()}"
            raise RuntimeError(error_msg)

        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.settimeout(1)
            if s.connect_ex(('127.0.0.1', port)) == 0:
                # Port is open, wait a bit more for app to be fully ready
                time.sleep(2)
                break
        time.sleep(0.5)
    else:
        process.terminate()
        stdout, stderr = process.communicate(timeout=5)
        error_msg = f"Gradio app failed to start within timeout.\nStdout: {stdout.decode()}\nStderr: {stderr.decode()}"
        raise RuntimeError(error_msg)

    yield f"http://127.0.0.1:{port}"

    process.terminate()
    try:
        process.wait(timeout=5)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait()


@pytest.fixture
def sample_photo(tmp_path):
    path = tmp_path / "palette_vertical.png"
    draw_palette_photo().save(path)
    return path


@pytest.mark.e2e
def test_app_loads(page, gradio_app):
    """Test that the Gradio app loads successfully"""
    page.goto(gradio_app, wait_until="networkidle", timeout=30000)

    page.wait_for_selector("text=palettescan", timeout=10000)
    heading = page.locator("h1:has-text('palettescan')").first
    assert heading.is_visible()


@pytest.mark.e2e
def test_upload_interface_exists(page, gradio_app):
    """Test that file upload interface exists"""
    page.goto(gradio_app, wait_until="networkidle", timeout=30000)

    page.wait_for_selector("h3:has-text('Upload Photo')", timeout=10000)
    find_button = page.locator("button:has-text('Find Palette')")
    assert find_button.is_visible()


@pytest.mark.e2e
def test_photo_upload_and_search(page, gradio_app, sample_photo):
    """Test uploading a photo and getting the palette summary"""
    page.goto(gradio_app, wait_until="networkidle", timeout=30000)
    page.wait_for_selector("h3:has-text('Upload Photo')", timeout=10000)
    time.sleep(2)

    file_inputs = page.locator('input[type="file"]').all()
    assert file_inputs, "no file input on the page"
    file_inputs[0].set_input_files(str(sample_photo))
    time.sleep(2)

    page.locator("button:has-text('Find Palette')").click()

    # Summary always starts with the cluster line, found or not
    page.wait_for_selector("text=Clusters:", timeout=20000)
    assert page.locator("text=Clusters:").first.is_visible()
