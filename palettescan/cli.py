#!/usr/bin/env python3
"""
Find palette swatches in every image of a directory.

Usage:
    palettescan                       # images path from the settings file
    palettescan /your/image/files/path/ --show
"""

import argparse
import sys
from typing import List, Optional

from loguru import logger

from .batch import run_batch
from .config import PALETTE_ORDERS, load_settings
from .log import configure_logging
from .matcher import ImageReadError
from .review import LogPresenter, WindowPresenter, chain_presenters
from .version import __version__


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="palettescan",
        description="Locate colour-palette swatches in photos.",
    )
    parser.add_argument(
        "images_path",
        nargs="?",
        default=None,
        help="Directory of images (overrides the path in the settings file).",
    )
    parser.add_argument(
        "--settings",
        default=None,
        help="Settings file (default: $PALETTESCAN_SETTINGS or ../settings.txt).",
    )
    parser.add_argument(
        "--show",
        action="store_true",
        help="Show each result in a window and wait for a key before the next.",
    )
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        help="Stop the whole run at the first unreadable image.",
    )
    parser.add_argument(
        "--order",
        choices=PALETTE_ORDERS,
        default=None,
        help="Palette ordering (default: per-channel sort).",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Override the similarity threshold.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed the k-means RNG for reproducible palettes.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Log level (DEBUG shows the settings and per-image summaries).",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    settings = load_settings(args.settings)
    if args.images_path:
        logger.info(f"Images path from command line: {args.images_path}")
    try:
        settings = settings.with_overrides(
            path=args.images_path,
            threshold=args.threshold,
            palette_order=args.order,
            seed=args.seed,
            on_error="abort" if args.fail_fast else None,
        )
    except ValueError as exc:
        logger.error(f"Invalid settings: {exc}")
        return 2

    window = WindowPresenter(settings) if args.show else None
    presenter = chain_presenters(LogPresenter(), window)
    try:
        report = run_batch(settings, presenter=presenter)
    except NotADirectoryError as exc:
        logger.error(str(exc))
        return 2
    except ImageReadError:
        return 1
    finally:
        if window is not None:
            window.close()

    logger.info(
        f"Processed {report.processed} image(s), "
        f"{report.detection_count} detection(s), {len(report.failures)} failure(s)"
    )
    return 0 if report.ok else 1


if __name__ == "__main__":
    sys.exit(main())
