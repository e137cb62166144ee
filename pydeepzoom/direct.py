"""Plain escape-time iteration without perturbation.

``iterate_direct`` and ``direct_tile`` run in double precision and are the
fast path for shallow zooms. ``iterate_arbitrary`` runs at mpmath
precision and serves as the brute force reference for checking the
perturbation path.
"""

from typing import Optional

import mpmath
import numpy as np

from .config import DIRECT_ESCAPE_RADIUS_SQ


def iterate_direct(c: complex, z0: complex = 0j, max_iterations: int = 256,
                   power: int = 2, escape_radius_sq: float = DIRECT_ESCAPE_RADIUS_SQ) -> int:
    """Index of the first iterate with |z|^2 > escape_radius_sq, else max_iterations."""
    z = z0
    for i in range(max_iterations):
        if z.real * z.real + z.imag * z.imag > escape_radius_sq:
            return i
        try:
            z = z * z + c if power == 2 else z ** power + c
        except OverflowError:
            return i + 1
    return max_iterations


def direct_tile(re: np.ndarray, im: np.ndarray, max_iterations: int, power: int = 2,
                escape_radius_sq: float = DIRECT_ESCAPE_RADIUS_SQ,
                julia_seed: Optional[complex] = None) -> np.ndarray:
    """Vectorized ``iterate_direct`` over arrays of world coordinates.

    In Mandelbrot mode the coordinates are c and z starts at 0; in Julia
    mode they are the starting z and c is ``julia_seed``.
    """
    points = np.asarray(re, dtype=np.float64) + 1j * np.asarray(im, dtype=np.float64)
    shape = points.shape
    points = points.ravel()
    result = np.full(points.size, max_iterations, dtype=np.int64)

    if julia_seed is None:
        z = np.zeros_like(points)
        c = points.copy()
    else:
        z = points.copy()
        c = np.full_like(points, complex(julia_seed))
    active = np.arange(points.size)

    with np.errstate(over="ignore", invalid="ignore"):
        for i in range(max_iterations):
            mag = z.real * z.real + z.imag * z.imag
            escaped = mag > escape_radius_sq
            if escaped.any():
                result[active[escaped]] = i
                keep = ~escaped
                active, z, c = active[keep], z[keep], c[keep]
            if active.size == 0:
                break
            z = z * z + c if power == 2 else z ** power + c

    return result.reshape(shape)


def iterate_arbitrary(c_re: str, c_im: str, max_iterations: int, power: int = 2,
                      escape_radius_sq: float = DIRECT_ESCAPE_RADIUS_SQ,
                      precision_digits: int = 50, z0=None) -> int:
    """``iterate_direct`` at mpmath precision, for coordinates given as strings.

    ``z0`` is an optional (re, im) pair of strings; when given, (c_re, c_im)
    is the Julia seed.
    """
    with mpmath.workdps(precision_digits):
        c = mpmath.mpc(mpmath.mpf(c_re), mpmath.mpf(c_im))
        if z0 is None:
            z = mpmath.mpc(0, 0)
        else:
            z = mpmath.mpc(mpmath.mpf(z0[0]), mpmath.mpf(z0[1]))
        for i in range(max_iterations):
            if z.real * z.real + z.imag * z.imag > escape_radius_sq:
                return i
            z = z * z + c if power == 2 else z ** power + c
    return max_iterations
