"""Per-pixel perturbation iteration against a shared reference orbit.

A pixel's perturbation is kept as a double mantissa (dx, dy) together
with a binary exponent q, so the true value is (dx + i*dy) * 2**q. Each
orbit row stores the reference value as (x + i*y) * 2**scale. Stepping

    dz' = p*Z^(p-1)*dz + ... + dz^p + dc

and dividing through by 2**(q + (p-1)*scale) keeps (dx, dy) near unit
magnitude, with ``uns = 2**(q - scale)`` carrying the mismatch between the
two exponents into the higher order terms.

``compute_iterations`` is the scalar form of the loop. ``compute_tile``
runs the same loop over numpy arrays of pixels.
"""

from math import comb
import math
from typing import Tuple

import numpy as np

from .direct import direct_tile, iterate_direct
from .state import ReferenceState


def _exp2(exponent: float) -> float:
    try:
        return 2.0 ** exponent
    except OverflowError:
        return math.inf


def _finite_or_zero(value: float) -> float:
    return value if math.isfinite(value) else 0.0


def _series_start(state: ReferenceState, ox, oy):
    """Evaluate the quadratic series at the normalized offset.

    The cubic coefficient only decides ``poly_limit``; it is not applied.
    """
    b_re, b_im, c_re, c_im = state.compact.poly1
    sqrx = ox * ox - oy * oy
    sqry = 2.0 * ox * oy
    dx = b_re * ox - b_im * oy + c_re * sqrx - c_im * sqry
    dy = b_re * oy + b_im * ox + c_re * sqry + c_im * sqrx
    return dx, dy


def _power_step(power: int, x, y, dx, dy, uns, dcx, dcy):
    """Perturbation step for p > 2 as a binomial sum.

    Works on Python floats and on numpy arrays alike.
    """
    z = x + 1j * y
    d = dx + 1j * dy
    total = dcx + 1j * dcy
    d_pow = d
    factor = 1.0
    for m in range(1, power + 1):
        total = total + comb(power, m) * z ** (power - m) * d_pow * factor
        d_pow = d_pow * d
        factor = factor * uns
    return total.real, total.imag


def _fallback_point(state: ReferenceState, ox: float, oy: float) -> Tuple[complex, complex]:
    cx, cy = state.center_float
    r = _exp2(state.radius_log2)
    point = complex(cx + ox * r, cy + oy * r)
    if state.is_julia:
        return state.seed_complex, point
    return point, 0j


def compute_iterations(offset: Tuple[float, float], state: ReferenceState,
                       max_iterations: int = None) -> int:
    """Escape iteration of one pixel, or ``max_iterations`` if it never escapes.

    Args:
        offset: Normalized pixel offset (dx, dy) from the reference point,
            in units of the reference radius
        state: Reference state built for the current area
        max_iterations: Iteration cap, defaults to the state's cap

    Returns:
        First j with |z_j|^2 > escape_radius_sq, else max_iterations
    """
    n = state.max_iterations if max_iterations is None else max_iterations
    ox, oy = float(offset[0]), float(offset[1])
    power = state.power
    esc = state.escape_radius_sq
    points = state.points
    length = state.orbit_length

    if length < 2:
        # no orbit to perturb against, the view is far outside the set
        c, z0 = _fallback_point(state, ox, oy)
        return iterate_direct(c, z0, n, power, esc)

    cq = state.radius_log2
    q = cq + state.compact.norm_exponent
    dx, dy = _series_start(state, ox, oy)
    z0x, z0y = state.rebase_origin
    julia = state.is_julia
    rescale_limit = state.rescale_limit

    k = j = state.compact.poly_limit
    while True:
        # the series may already reach past a lowered cap
        if j >= n:
            return n
        x, y, scale = points[k]
        s = _exp2(q)
        zs = _exp2(scale)
        fx = x * zs + s * dx
        fy = y * zs + s * dy
        mag = fx * fx + fy * fy
        if mag > esc:
            return j

        dmag = dx * dx + dy * dy
        if dmag > rescale_limit:
            dx *= 0.5
            dy *= 0.5
            q += 1
            s = _exp2(q)
            dmag *= 0.25

        # glitch, or the orbit runs out after this row: restart from Z_0
        if mag < s * s * dmag or k + 1 >= length:
            dx = fx - z0x
            dy = fy - z0y
            q = 0.0
            k = 0
            x, y, scale = points[0]

        if julia:
            dcx = dcy = 0.0
        else:
            t = _finite_or_zero(_exp2(cq - q - (power - 1) * scale))
            dcx = ox * t
            dcy = oy * t
        uns = _finite_or_zero(_exp2(q - scale))

        if power == 2:
            tx = 2 * x * dx - 2 * y * dy + uns * dx * dx - uns * dy * dy + dcx
            dy = 2 * x * dy + 2 * y * dx + uns * 2 * dx * dy + dcy
            dx = tx
        else:
            dx, dy = _power_step(power, x, y, dx, dy, uns, dcx, dcy)

        q += (power - 1) * scale
        k += 1
        j += 1


def compute_tile(offset_x, offset_y, state: ReferenceState,
                 max_iterations: int = None) -> np.ndarray:
    """``compute_iterations`` over arrays of normalized offsets.

    Finished pixels are dropped from the working arrays each step, so the
    cost follows the pixels still iterating.
    """
    n = state.max_iterations if max_iterations is None else max_iterations
    ox = np.asarray(offset_x, dtype=np.float64)
    oy = np.asarray(offset_y, dtype=np.float64)
    shape = np.broadcast(ox, oy).shape
    ox = np.broadcast_to(ox, shape).ravel()
    oy = np.broadcast_to(oy, shape).ravel()
    power = state.power
    esc = state.escape_radius_sq
    length = state.orbit_length

    if length < 2:
        cx, cy = state.center_float
        r = _exp2(state.radius_log2)
        return direct_tile(
            cx + ox * r, cy + oy * r, n, power, esc, julia_seed=state.seed_complex
        ).reshape(shape)

    result = np.full(ox.size, n, dtype=np.int64)
    orbit = state.orbit
    x0, y0, scale0 = orbit[0]
    z0x, z0y = state.rebase_origin
    cq = state.radius_log2
    rescale_limit = state.rescale_limit

    idx = np.arange(ox.size)
    dx, dy = _series_start(state, ox, oy)
    q = np.full(ox.size, cq + state.compact.norm_exponent)
    k = np.full(ox.size, state.compact.poly_limit, dtype=np.int64)
    j = k.copy()

    with np.errstate(over="ignore", under="ignore", invalid="ignore"):
        while idx.size:
            x = orbit[k, 0]
            y = orbit[k, 1]
            scale = orbit[k, 2]
            s = np.exp2(q)
            zs = np.exp2(scale)
            fx = x * zs + s * dx
            fy = y * zs + s * dy
            mag = fx * fx + fy * fy

            capped = j >= n
            escaped = (mag > esc) & ~capped
            result[idx[escaped]] = j[escaped]
            keep = ~(escaped | capped)
            if not keep.all():
                idx, ox, oy = idx[keep], ox[keep], oy[keep]
                dx, dy, q, k, j = dx[keep], dy[keep], q[keep], k[keep], j[keep]
                x, y, scale = x[keep], y[keep], scale[keep]
                fx, fy, mag, s = fx[keep], fy[keep], mag[keep], s[keep]
                if not idx.size:
                    break

            dmag = dx * dx + dy * dy
            big = dmag > rescale_limit
            if big.any():
                dx = np.where(big, dx * 0.5, dx)
                dy = np.where(big, dy * 0.5, dy)
                q = q + big
                s = np.exp2(q)
                dmag = np.where(big, dmag * 0.25, dmag)

            glitch = (mag < s * s * dmag) | (k + 1 >= length)
            if glitch.any():
                dx = np.where(glitch, fx - z0x, dx)
                dy = np.where(glitch, fy - z0y, dy)
                q = np.where(glitch, 0.0, q)
                k = np.where(glitch, 0, k)
                x = np.where(glitch, x0, x)
                y = np.where(glitch, y0, y)
                scale = np.where(glitch, scale0, scale)

            if state.is_julia:
                dcx = dcy = 0.0
            else:
                t = np.exp2(cq - q - (power - 1) * scale)
                t = np.where(np.isfinite(t), t, 0.0)
                dcx = ox * t
                dcy = oy * t
            uns = np.exp2(q - scale)
            uns = np.where(np.isfinite(uns), uns, 0.0)

            if power == 2:
                tx = 2 * x * dx - 2 * y * dy + uns * dx * dx - uns * dy * dy + dcx
                dy = 2 * x * dy + 2 * y * dx + uns * 2 * dx * dy + dcy
                dx = tx
            else:
                dx, dy = _power_step(power, x, y, dx, dy, uns, dcx, dcy)

            q = q + (power - 1) * scale
            k = k + 1
            j = j + 1

    return result.reshape(shape)
