#!/usr/bin/env python3

import argparse
import math
import os
import statistics
import time
from typing import Dict, List, Tuple

import numpy as np

from palettescan import matcher
from palettescan.batch import iter_image_paths
from palettescan.config import Settings, load_settings
from palettescan.log import configure_logging

Case = Tuple[str, np.ndarray]


def _percentile(sorted_vals: List[float], p: float) -> float:
    if not sorted_vals:
        return 0.0
    k = (len(sorted_vals) - 1) * (p / 100.0)
    f = math.floor(k)
    c = math.ceil(k)
    if f == c:
        return sorted_vals[int(k)]
    return sorted_vals[f] * (c - k) + sorted_vals[c] * (k - f)


def _format_ms(value_s: float) -> str:
    return f"{value_s * 1000.0:.2f} ms"


def _resolve_cases(selected: List[str], images_dir: str) -> List[Case]:
    paths = iter_image_paths(images_dir)
    if selected:
        by_name = {os.path.basename(p): p for p in paths}
        chosen = []
        for name in selected:
            item = by_name.get(name)
            if not item:
                raise ValueError(
                    f"Unknown case '{name}'. Available: {', '.join(by_name)}"
                )
            chosen.append(item)
        paths = chosen

    # decode once up front so timings cover the pipeline only
    return [(os.path.basename(p), matcher.load_image(p)) for p in paths]


def _run_benchmark(
    settings: Settings,
    cases: List[Case],
    iterations: int,
    repeats: int,
    warmup: int,
) -> Dict[str, List[float]]:
    timings: Dict[str, List[float]] = {name: [] for name, _ in cases}

    def _run_cases(record: bool) -> None:
        for name, image in cases:
            start = time.perf_counter()
            matcher.find_palette_in_image(image, settings, source=name)
            if record:
                timings[name].append(time.perf_counter() - start)

    for _ in range(warmup):
        _run_cases(record=False)

    for _ in range(repeats):
        for _ in range(iterations):
            _run_cases(record=True)

    return timings


def main() -> None:
    parser = argparse.ArgumentParser(description="Benchmark palette finder runtime.")
    parser.add_argument(
        "images_dir",
        nargs="?",
        default=None,
        help="Directory of images (default: path from the settings file).",
    )
    parser.add_argument(
        "--settings",
        default=None,
        help="Settings file to load.",
    )
    parser.add_argument(
        "--iterations",
        type=int,
        default=5,
        help="Iterations per repeat (per case).",
    )
    parser.add_argument(
        "--repeats",
        type=int,
        default=3,
        help="Repeat count for the iteration loop.",
    )
    parser.add_argument(
        "--warmup",
        type=int,
        default=1,
        help="Warmup passes before timing.",
    )
    parser.add_argument(
        "--case",
        action="append",
        default=[],
        help="Image filename to benchmark (repeatable).",
    )
    parser.add_argument(
        "--resize",
        type=int,
        default=None,
        help="Override the k-means sample grid side.",
    )
    parser.add_argument(
        "--clusters",
        type=int,
        default=None,
        help="Override the cluster count.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=0,
        help="k-means RNG seed.",
    )
    args = parser.parse_args()

    configure_logging("WARNING")
    settings = load_settings(args.settings).with_overrides(
        resize=args.resize, n_clusters=args.clusters, seed=args.seed
    )
    images_dir = args.images_dir or settings.path

    cases = _resolve_cases(args.case, images_dir)
    if not cases:
        raise FileNotFoundError(f"No images to benchmark in {images_dir}")

    timings = _run_benchmark(
        settings=settings,
        cases=cases,
        iterations=args.iterations,
        repeats=args.repeats,
        warmup=args.warmup,
    )

    total_runs = sum(len(v) for v in timings.values())
    print(
        f"Runs: {total_runs} | cases: {len(cases)} | "
        f"iterations: {args.iterations} | repeats: {args.repeats} | warmup: {args.warmup}"
    )
    print(
        "settings:",
        f"clusters={settings.n_clusters}",
        f"resize={settings.resize}",
        f"cell={settings.color_w}x{settings.color_h}",
        f"vertical={settings.vertical}",
    )

    def _summarize(label: str, values: List[float]) -> str:
        sorted_vals = sorted(values)
        return (
            f"{label}: median {_format_ms(statistics.median(sorted_vals))}, "
            f"mean {_format_ms(statistics.mean(sorted_vals))}, "
            f"p95 {_format_ms(_percentile(sorted_vals, 95))}, "
            f"min {_format_ms(sorted_vals[0])}, "
            f"max {_format_ms(sorted_vals[-1])}"
        )

    combined: List[float] = []
    for name, values in timings.items():
        combined.extend(values)
        print(_summarize(name, values))

    if combined:
        print(_summarize("overall", combined))


if __name__ == "__main__":
    main()
