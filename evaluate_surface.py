#!/usr/bin/env python3
"""
Standalone script for inspecting the palette search on one image.

Shows the input, the smoothed image, the synthesised swatch, the correlation
surface with the threshold contour and the accepted detections.

Usage:
    python evaluate_surface.py path/to/photo.jpg
    python evaluate_surface.py path/to/photo.jpg --threshold 0.9 -s surface.png
"""

import argparse
import os
from typing import Optional

import cv2
import matplotlib.pyplot as plt
import numpy as np

from palettescan.config import load_settings
from palettescan.log import configure_logging
from palettescan.matcher import (
    PaletteResult,
    find_palette_in_file,
    format_match_summary,
    render_views,
)


def plot_result(result: PaletteResult, threshold: float, save_path: Optional[str] = None):
    views = render_views(result)

    fig, axes = plt.subplots(2, 3, figsize=(15, 10))
    title = os.path.basename(result.source) if result.source else "image"
    fig.suptitle(f"Palette search: {title}", fontsize=16)

    axes[0, 0].imshow(views["image"])
    axes[0, 0].set_title("Input")
    axes[0, 0].axis("off")

    axes[0, 1].imshow(views["smoothed"])
    axes[0, 1].set_title("Smoothed (19x19 Gaussian)")
    axes[0, 1].axis("off")

    axes[0, 2].imshow(views["swatch"])
    axes[0, 2].set_title(f"Swatch ({len(result.palette)} colours)")
    axes[0, 2].axis("off")

    if result.surface.size:
        im = axes[1, 0].imshow(result.surface, cmap="viridis", vmin=-1.0, vmax=1.0)
        if np.nanmax(result.surface) >= threshold:
            axes[1, 0].contour(result.surface >= threshold, levels=[0.5], colors="red")
        fig.colorbar(im, ax=axes[1, 0], fraction=0.046)
        axes[1, 0].set_title(f"Correlation (max {np.nanmax(result.surface):.3f})")
    else:
        axes[1, 0].text(0.5, 0.5, "Swatch larger than image", ha="center", va="center")
        axes[1, 0].set_title("Correlation")
    axes[1, 0].axis("off")

    axes[1, 1].imshow(views["annotated"])
    axes[1, 1].set_title(f"Detections ({len(result.detections)})")
    axes[1, 1].axis("off")

    axes[1, 2].text(
        0.05,
        0.5,
        format_match_summary(result).replace("  \n", "\n"),
        ha="left",
        va="center",
        fontsize=10,
        family="monospace",
        bbox=dict(boxstyle="round", facecolor="wheat", alpha=0.5),
    )
    axes[1, 2].set_title("Summary")
    axes[1, 2].axis("off")

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches="tight")
        print(f"\nVisualization saved to: {save_path}")

    plt.show()


def main():
    parser = argparse.ArgumentParser(
        description="Inspect the palette search on a single image.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s dataset/photo_1.jpg
  %(prog)s dataset/photo_2.jpg --threshold 0.9 --save surface.png
        """,
    )
    parser.add_argument("image_path", help="Path to the photo")
    parser.add_argument("--settings", default=None, help="Settings file to load")
    parser.add_argument(
        "-t", "--threshold", type=float, default=None, help="Override the threshold"
    )
    parser.add_argument("--seed", type=int, default=0, help="k-means RNG seed")
    parser.add_argument(
        "-s",
        "--save",
        type=str,
        default=None,
        help="Save visualization to this path (optional)",
    )
    args = parser.parse_args()

    configure_logging("INFO")
    if not os.path.exists(args.image_path):
        print(f"Error: File not found: {args.image_path}")
        return 1

    settings = load_settings(args.settings).with_overrides(
        threshold=args.threshold, seed=args.seed
    )
    try:
        result = find_palette_in_file(args.image_path, settings)
    except (RuntimeError, ValueError, cv2.error) as e:
        print(f"Error: {e}")
        return 1
    plot_result(result, settings.threshold, save_path=args.save)
    return 0


if __name__ == "__main__":
    exit(main())
