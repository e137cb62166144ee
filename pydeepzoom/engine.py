"""Escape-time engine choosing between direct and perturbation iteration.

Below the deep zoom threshold pixels are iterated directly in double
precision. Beyond it a reference state is built (or reused) and every
pixel is evaluated by perturbation against it. The state is complete
before any tile starts, and tiles only read it.
"""

from concurrent.futures import ThreadPoolExecutor
import logging
import math
import threading
import time
from typing import Optional, Tuple

import mpmath
import numpy as np

from .cache import OrbitCache
from .config import DEFAULT_CONFIG, EngineConfig
from .direct import direct_tile, iterate_direct
from .orbit import EXTRA_DIGITS
from .perturbation import compute_iterations, compute_tile
from .precision import PrecisionManager
from .state import ReferenceState
from .view import ViewParams, pixel_offset

logger = logging.getLogger(__name__)

DEFAULT_TILE_ROWS = 32


def reference_offset(state: ReferenceState, view: ViewParams) -> Tuple[float, float, float]:
    """Map view offsets onto reference offsets.

    Returns (bx, by, scale) such that a pixel at normalized view offset d
    sits at b + scale * d relative to the reference point, in units of the
    reference radius.
    """
    with mpmath.workdps(state.precision_digits + EXTRA_DIGITS):
        r = mpmath.mpf(state.radius)
        bx = (mpmath.mpf(view.center_re) - mpmath.mpf(state.center_re)) / r
        by = (mpmath.mpf(view.center_im) - mpmath.mpf(state.center_im)) / r
        scale = mpmath.mpf(view.radius) / r
        return float(bx), float(by), float(scale)


def _julia_complex(view: ViewParams) -> Optional[complex]:
    if view.julia_seed is None:
        return None
    return complex(float(view.julia_seed[0]), float(view.julia_seed[1]))


class DeepZoomEngine:
    """Computes iteration counts for views at any zoom depth."""

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG):
        self.config = config
        self.cache = OrbitCache(config)
        self.precision = PrecisionManager(config.base_precision, config.precision_slope)

    def is_deep(self, view: ViewParams) -> bool:
        """Whether the view needs perturbation rather than plain doubles."""
        if self.config.force_perturbation:
            return True
        return view.zoom_log10 >= math.log10(self.config.deep_zoom_threshold)

    def needs_rebuild(self, view: ViewParams) -> bool:
        return self.cache.needs_rebuild(view, self.is_deep(view))

    def prepare(self, view: ViewParams) -> Optional[ReferenceState]:
        """Make sure the reference state for ``view`` is built and published.

        Returns None when the view is shallow enough for direct iteration.
        """
        deep = self.is_deep(view)
        digits = None
        if deep:
            digits = self.precision.update(view.center_re, view.center_im, view.radius)
        return self.cache.get(view, deep, digits)

    def compute_iterations(self, offset: Tuple[float, float], state: ReferenceState,
                           max_iterations: Optional[int] = None) -> int:
        """Perturbation iteration count for one reference offset.

        Numeric failures only cost the color of one pixel, so they yield
        half the iteration cap instead of an exception.
        """
        n = state.max_iterations if max_iterations is None else max_iterations
        try:
            return compute_iterations(offset, state, n)
        except (ValueError, ArithmeticError) as exc:
            logger.warning("pixel at offset %s failed: %s", offset, exc)
            return n // 2

    def pixel_iterations(self, view: ViewParams, px: float, py: float,
                         width: int, height: int) -> int:
        """Iteration count of a single pixel of a width x height image."""
        n = view.max_iterations
        try:
            state = self.prepare(view)
            if state is None:
                re, im = view.pixel_world_point(px, py, width, height)
                point = complex(float(re), float(im))
                seed = _julia_complex(view)
                if seed is None:
                    return iterate_direct(point, 0j, n, view.power,
                                          self.config.direct_escape_radius_sq)
                return iterate_direct(seed, point, n, view.power,
                                      self.config.direct_escape_radius_sq)
            dx, dy = pixel_offset(px, py, width, height)
            bx, by, scale = reference_offset(state, view)
            return compute_iterations((bx + scale * dx, by + scale * dy), state, n)
        except (ValueError, ArithmeticError) as exc:
            logger.warning("pixel (%s, %s) failed: %s", px, py, exc)
            return n // 2

    def render(self, view: ViewParams, width: int, height: int,
               cancel: Optional[threading.Event] = None,
               tile_rows: int = DEFAULT_TILE_ROWS,
               workers: Optional[int] = None) -> Optional[np.ndarray]:
        """Iteration counts for a whole image as a (height, width) int array.

        Tiles of ``tile_rows`` rows run on a thread pool. If ``cancel`` gets
        set, tiles that have not started are skipped and None is returned.
        """
        if width < 1 or height < 1:
            raise ValueError(f"image size must be positive, got {width}x{height}")
        t0 = time.perf_counter()
        state = self.prepare(view)
        result = np.zeros((height, width), dtype=np.int64)

        xs = (2.0 * np.arange(width) + 1.0 - width) / max(width, height)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(self._render_rows, view, state, result, xs, top,
                            min(top + tile_rows, height), height, cancel)
                for top in range(0, height, tile_rows)
            ]
            for future in futures:
                future.result()

        if cancel is not None and cancel.is_set():
            logger.info("render cancelled")
            return None
        logger.info(
            "rendered %dx%d (%s) in %.1fms",
            width, height, "perturbation" if state is not None else "direct",
            (time.perf_counter() - t0) * 1000,
        )
        return result

    def _render_rows(self, view: ViewParams, state: Optional[ReferenceState],
                     result: np.ndarray, xs: np.ndarray, top: int, bottom: int,
                     height: int, cancel: Optional[threading.Event]):
        if cancel is not None and cancel.is_set():
            return
        rows = np.arange(top, bottom)
        ys = (height - 2.0 * rows - 1.0) / max(len(xs), height)
        dx, dy = np.meshgrid(xs, ys)
        n = view.max_iterations
        try:
            if state is None:
                r = float(view.radius)
                result[top:bottom] = direct_tile(
                    float(view.center_re) + r * dx,
                    float(view.center_im) + r * dy,
                    n, view.power, self.config.direct_escape_radius_sq,
                    julia_seed=_julia_complex(view),
                )
            else:
                bx, by, scale = reference_offset(state, view)
                result[top:bottom] = compute_tile(bx + scale * dx, by + scale * dy, state, n)
        except (ValueError, ArithmeticError) as exc:
            logger.warning("tile rows %d-%d failed: %s", top, bottom, exc)
            result[top:bottom] = n // 2
