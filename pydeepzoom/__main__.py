import argparse
import logging

import numpy as np
from PIL import Image

from .config import DEFAULT_CONFIG
from .engine import DeepZoomEngine
from .view import DEFAULT_CENTER_IM, DEFAULT_CENTER_RE, DEFAULT_RADIUS, ViewParams


def to_grayscale(counts: np.ndarray, max_iterations: int) -> np.ndarray:
    """Map iteration counts to 8 bit gray, points that never escape are black."""
    shade = 255 - (counts.astype(np.int64) * 255) // max(max_iterations, 1)
    return np.where(counts >= max_iterations, 0, shade).astype(np.uint8)


def main(argv=None):
    parser = argparse.ArgumentParser(
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument(
        "--center",
        nargs=2,
        default=[DEFAULT_CENTER_RE, DEFAULT_CENTER_IM],
        metavar=("RE", "IM"),
        help="the view center as decimal strings",
    )
    parser.add_argument(
        "--radius",
        default=DEFAULT_RADIUS,
        help="half the longer side of the view, as a decimal string",
    )
    parser.add_argument(
        "--imax",
        type=int,
        default=256,
        help="the max iterations to perform",
    )
    parser.add_argument(
        "--power",
        type=int,
        default=2,
        choices=[2, 3, 4],
        help="the exponent p of z -> z^p + c",
    )
    parser.add_argument(
        "--julia",
        nargs=2,
        default=None,
        metavar=("RE", "IM"),
        help="render the Julia set for this seed instead of the Mandelbrot set",
    )
    parser.add_argument(
        "--dims",
        type=int,
        default=[400, 300],
        nargs=2,
        help="The dimensions of the output image, in pixels",
    )
    parser.add_argument(
        "-o",
        "--out-file",
        default="out.png",
        help="The output file to write to",
    )
    parser.add_argument(
        "--save-counts",
        default=None,
        help="also save the raw iteration counts to this .npy file",
    )
    parser.add_argument(
        "--perturbation",
        action="store_true",
        help="use perturbation even where doubles would be precise enough",
    )
    parser.add_argument(
        "--no-series",
        action="store_true",
        help="start every pixel at iteration 0 instead of using the series",
    )
    parser.add_argument(
        "--search",
        action="store_true",
        help="look for a longer lived reference point if the center escapes",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="number of render threads",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="log orbit and render details",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    try:
        view = ViewParams(
            center_re=args.center[0],
            center_im=args.center[1],
            radius=args.radius,
            max_iterations=args.imax,
            power=args.power,
            julia_seed=tuple(args.julia) if args.julia else None,
        )
    except ValueError as exc:
        parser.error(str(exc))

    config = DEFAULT_CONFIG.with_overrides(
        force_perturbation=args.perturbation,
        use_series=not args.no_series,
        search_reference=args.search,
    )
    engine = DeepZoomEngine(config)
    width, height = args.dims

    print(f"center: {view.center_re} + {view.center_im}i")
    print(f"radius: {view.radius} (zoom 10^{view.zoom_log10:.1f})")
    print(f"imax: {view.max_iterations}")
    print(f"dims: {args.dims}")
    if engine.is_deep(view):
        digits = engine.precision.required(view.center_re, view.center_im, view.radius)
        print(f"perturbation with {digits} digits")

    counts = engine.render(view, width, height, workers=args.workers)
    if engine.cache.state is not None:
        print(f"reference: {engine.cache.state.summary()}")
    Image.fromarray(to_grayscale(counts, view.max_iterations)).save(args.out_file)
    print(f"img_name: {args.out_file}")
    if args.save_counts:
        np.save(args.save_counts, counts)
        print(f"counts: {args.save_counts}")


if __name__ == "__main__":
    main()
