"""Gradio interface for the palette finder"""

import os
from typing import Dict, Optional

import gradio as gr
import numpy as np
import plotly.express as px

from palettescan.config import PALETTE_ORDERS, load_settings
from palettescan.log import configure_logging, is_configured
from palettescan.matcher import (
    ImageReadError,
    PaletteResult,
    find_palette_in_file,
    format_match_summary,
    render_views,
)
from palettescan.version import __version__

if not is_configured():
    configure_logging(os.environ.get("PALETTESCAN_LOG_LEVEL", "INFO"))

BASE_SETTINGS = load_settings()
FOCUS_PAD_PX = 40

VIEW_KEYS = ["swatch", "smoothed", "focus"]

VIEW_LABELS = {
    "swatch": "Synthesised swatch",
    "smoothed": "Smoothed image",
    "focus": "Detection (zoomed)",
}


def make_zoomable_plot(image: Optional[np.ndarray]):
    """Create a Plotly figure with zoom/pan for a numpy RGB image."""
    if image is None:
        base = np.zeros((10, 10, 3), dtype=np.uint8)
    else:
        base = image
    if base.dtype != np.uint8:
        base = np.clip(base, 0, 255).astype(np.uint8)
    fig = px.imshow(base)
    fig.update_layout(
        margin=dict(l=0, r=0, t=0, b=0),
        dragmode="pan",
        coloraxis_showscale=False,
    )
    fig.update_xaxes(showticklabels=False, showgrid=False, zeroline=False)
    fig.update_yaxes(
        showticklabels=False,
        showgrid=False,
        zeroline=False,
        scaleanchor="x",
        scaleratio=1,
    )
    return fig


def _crop_detection(annotated_rgb: np.ndarray, result: PaletteResult, idx: int):
    det = result.detections[idx]
    h, w = annotated_rgb.shape[:2]
    x0 = max(0, det.tl[0] - FOCUS_PAD_PX)
    y0 = max(0, det.tl[1] - FOCUS_PAD_PX)
    x1 = min(w, det.br[0] + FOCUS_PAD_PX)
    y1 = min(h, det.br[1] + FOCUS_PAD_PX)
    return annotated_rgb[y0:y1, x0:x1].copy()


def _views_to_outputs(
    views: Dict[str, Optional[np.ndarray]],
    annotated_plot,
    summary: str,
    state,
    idx: int,
):
    ordered = [views.get(key) for key in VIEW_KEYS]
    return (annotated_plot, *ordered, summary, state, idx)


def _blank_outputs(message: str):
    blank_views = {key: None for key in VIEW_KEYS}
    return _views_to_outputs(blank_views, make_zoomable_plot(None), message, None, 0)


def _render_result(result: PaletteResult, idx: int):
    views = render_views(result)
    summary = format_match_summary(result)
    focus = None
    if result.detections:
        idx %= len(result.detections)
        focus = _crop_detection(views["annotated"], result, idx)
        summary += f"  \nShowing detection #{idx + 1} / {len(result.detections)}"
    shown = {"swatch": views["swatch"], "smoothed": views["smoothed"], "focus": focus}
    return _views_to_outputs(
        shown, make_zoomable_plot(views["annotated"]), summary, result, idx
    )


def _change_detection(step: int, result, current_index: int):
    if result is None:
        return _blank_outputs("Run the finder once a photo is uploaded.")
    if not result.detections:
        return _render_result(result, 0)
    return _render_result(result, (current_index or 0) + step)


def find_palette(
    image_path, n_clusters, threshold, color_w, color_h, vertical, reverse, order
):
    """Run the palette finder and return visualization slices"""
    if not image_path or not os.path.exists(image_path):
        return _blank_outputs("Please upload a photo.")

    try:
        settings = BASE_SETTINGS.with_overrides(
            n_clusters=int(n_clusters),
            threshold=float(threshold),
            color_w=int(color_w),
            color_h=int(color_h),
            vertical=bool(vertical),
            reverse=bool(reverse),
            palette_order=order,
        )
    except (TypeError, ValueError) as exc:
        return _blank_outputs(f"Invalid settings: {exc}")

    try:
        result = find_palette_in_file(image_path, settings)
        return _render_result(result, 0)
    except (ImageReadError, ValueError) as exc:
        return _blank_outputs(f"Error: {exc}")


def goto_previous_detection(state, current_index):
    return _change_detection(-1, state, current_index)


def goto_next_detection(state, current_index):
    return _change_detection(1, state, current_index)


app_theme = gr.themes.Soft()
with gr.Blocks(title=f"🎨 palettescan v{__version__}") as demo:
    gr.Markdown(
        f"""
    # 🎨 palettescan v{__version__}

    Upload a photo that contains a colour-palette swatch. The dominant colours
    are clustered into a palette, a swatch strip is synthesised from it, and
    the photo is searched for regions matching that strip.

    Notes:
    - The brightest cluster is treated as the background and left out of the swatch.
    - Cell width/height describe one swatch cell; a vertical strip stacks
      cells top to bottom.
    """
    )

    with gr.Row():
        with gr.Column(scale=1):
            gr.Markdown("### Upload Photo")
            image_input = gr.Image(
                label="Photo",
                type="filepath",
                sources=["upload", "clipboard"],
                height=300,
            )
            with gr.Row():
                clusters_input = gr.Number(
                    label="Clusters",
                    value=BASE_SETTINGS.n_clusters,
                    precision=0,
                    minimum=2,
                    maximum=16,
                )
                threshold_input = gr.Slider(
                    label="Similarity threshold",
                    value=BASE_SETTINGS.threshold,
                    minimum=-1.0,
                    maximum=1.0,
                    step=0.01,
                )
            with gr.Row():
                cell_w_input = gr.Number(
                    label="Cell width", value=BASE_SETTINGS.color_w, precision=0, minimum=1
                )
                cell_h_input = gr.Number(
                    label="Cell height", value=BASE_SETTINGS.color_h, precision=0, minimum=1
                )
            with gr.Row():
                vertical_input = gr.Checkbox(label="Vertical strip", value=BASE_SETTINGS.vertical)
                reverse_input = gr.Checkbox(label="Reverse order", value=BASE_SETTINGS.reverse)
                order_input = gr.Dropdown(
                    label="Palette order",
                    choices=list(PALETTE_ORDERS),
                    value=BASE_SETTINGS.palette_order,
                )
            find_button = gr.Button("🔍 Find Palette", variant="primary", size="lg")
        with gr.Column(scale=1):
            gr.Markdown("### Detections")
            annotated_plot = gr.Plot(
                value=make_zoomable_plot(None),
                elem_id="primary-annotated-view",
            )
            gr.Markdown("Use the controls to zoom and pan the image.")

    gr.Markdown("### Palette and search diagnostics")

    image_components = {}
    with gr.Row():
        for key in VIEW_KEYS:
            image_components[key] = gr.Image(
                label=VIEW_LABELS[key],
                type="numpy",
                interactive=False,
                height=260,
            )

    with gr.Row():
        prev_button = gr.Button("⬅️ Previous detection")
        next_button = gr.Button("Next detection ➡️")
        match_summary = gr.Markdown("Run the finder to view the palette and detections.")

    result_state = gr.State()
    detection_index = gr.State(0)

    outputs = [
        annotated_plot,
        *[image_components[key] for key in VIEW_KEYS],
        match_summary,
        result_state,
        detection_index,
    ]

    find_button.click(
        fn=find_palette,
        inputs=[
            image_input,
            clusters_input,
            threshold_input,
            cell_w_input,
            cell_h_input,
            vertical_input,
            reverse_input,
            order_input,
        ],
        outputs=outputs,
    )
    prev_button.click(
        fn=goto_previous_detection,
        inputs=[result_state, detection_index],
        outputs=outputs,
    )
    next_button.click(
        fn=goto_next_detection,
        inputs=[result_state, detection_index],
        outputs=outputs,
    )

if __name__ == "__main__":
    demo.launch(theme=app_theme)
