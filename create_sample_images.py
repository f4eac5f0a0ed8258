"""Create synthetic photos containing a palette swatch for testing"""
import argparse
import os
from typing import List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image, ImageDraw

Color = Tuple[int, int, int]

# Grey ramps keep the per-channel palette sort equal to the true colours
SAMPLE_SWATCHES: List[List[Color]] = [
    [(170, 170, 170), (110, 110, 110), (50, 50, 50)],
    [(180, 180, 180), (140, 140, 140), (100, 100, 100), (60, 60, 60)],
]

SAMPLE_ORIGINS = {"vertical": (100, 50), "horizontal": (40, 300), "four": (300, 40)}


def draw_palette_photo(
    width: int = 512,
    height: int = 512,
    background: Color = (230, 230, 230),
    swatch: Sequence[Color] = SAMPLE_SWATCHES[0],
    origin: Tuple[int, int] = SAMPLE_ORIGINS["vertical"],
    cell_w: int = 120,
    cell_h: int = 60,
    vertical: bool = True,
    noise: float = 0.0,
    seed: Optional[int] = None,
) -> Image.Image:
    """
    Draw a plain background with a strip of solid colour cells on it.

    A vertical strip stacks ``cell_h`` x ``cell_w`` cells top to bottom; a
    horizontal strip places ``cell_w`` x ``cell_h`` (rows x cols) cells left
    to right, matching how the palette finder lays out its swatch.
    """
    img = Image.new("RGB", (width, height), background)
    draw = ImageDraw.Draw(img)
    x0, y0 = origin
    for idx, color in enumerate(swatch):
        if vertical:
            left, top = x0, y0 + idx * cell_h
            right, bottom = left + cell_w, top + cell_h
        else:
            left, top = x0 + idx * cell_h, y0
            right, bottom = left + cell_h, top + cell_w
        # PIL rectangles include the end coordinate
        draw.rectangle([left, top, right - 1, bottom - 1], fill=color)

    if noise > 0:
        rng = np.random.default_rng(seed)
        arr = np.asarray(img, dtype=np.float32)
        arr += rng.normal(0.0, noise, size=arr.shape)
        img = Image.fromarray(np.clip(arr, 0, 255).astype(np.uint8))
    return img


def main():
    parser = argparse.ArgumentParser(description="Write synthetic palette photos.")
    parser.add_argument("out_dir", help="Directory to write sample images into")
    parser.add_argument("--noise", type=float, default=4.0, help="Gaussian noise std")
    parser.add_argument("--seed", type=int, default=0)
    args = parser.parse_args()

    os.makedirs(args.out_dir, exist_ok=True)
    samples = [
        ("palette_vertical.png", SAMPLE_SWATCHES[0], SAMPLE_ORIGINS["vertical"], True),
        ("palette_horizontal.png", SAMPLE_SWATCHES[0], SAMPLE_ORIGINS["horizontal"], False),
        ("palette_four.png", SAMPLE_SWATCHES[1], SAMPLE_ORIGINS["four"], True),
    ]
    for filename, swatch, origin, vertical in samples:
        img = draw_palette_photo(
            swatch=swatch,
            origin=origin,
            vertical=vertical,
            noise=args.noise,
            seed=args.seed,
        )
        path = os.path.join(args.out_dir, filename)
        img.save(path)
        print(f"Saved sample to {path}")

    print("\nDone! Run palettescan with --settings pointing at matching cell sizes.")


if __name__ == "__main__":
    main()
