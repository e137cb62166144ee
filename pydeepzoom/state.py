"""Immutable reference state shared by every pixel of a frame."""

from dataclasses import dataclass
import logging
import time
from typing import Optional, Tuple

import numpy as np

from .config import DEFAULT_CONFIG, ORBIT_TEXTURE_SIZE, EngineConfig
from .orbit import ReferenceOrbit, SeriesCoefficients
from .precision import PrecisionManager
from .series import CompactCoefficients, radius_exponent, radius_log2, scale_coefficients

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ReferenceState:
    """Everything the evaluators need about one reference orbit.

    Built once per area by ``build_reference_state`` and never mutated.
    ``orbit`` is a read-only (orbit_length + 1, 3) array of (x, y, scale)
    rows whose last row is the (-1, -1, -1) sentinel; ``points`` holds the
    same rows as tuples for the scalar evaluator.
    """

    center_re: str
    center_im: str
    radius: str
    power: int
    max_iterations: int
    julia_seed: Optional[Tuple[str, str]]
    precision_digits: int
    orbit: np.ndarray
    points: tuple
    orbit_length: int
    escaped: bool
    escape_iteration: int
    coefficients: SeriesCoefficients
    compact: CompactCoefficients
    radius_log2: float
    escape_radius_sq: float
    rescale_limit: float

    @property
    def is_julia(self) -> bool:
        return self.julia_seed is not None

    @property
    def reference_iterations(self) -> int:
        """Escape index of the reference point itself, capped at max_iterations."""
        if self.escaped:
            return self.escape_iteration
        return self.max_iterations

    @property
    def center_float(self) -> Tuple[float, float]:
        return float(self.center_re), float(self.center_im)

    @property
    def seed_complex(self) -> Optional[complex]:
        if self.julia_seed is None:
            return None
        return complex(float(self.julia_seed[0]), float(self.julia_seed[1]))

    @property
    def rebase_origin(self) -> Tuple[float, float]:
        """True value of the first orbit point, subtracted on a rebase."""
        x, y, scale = self.points[0]
        factor = 2.0 ** scale
        return x * factor, y * factor

    def summary(self) -> str:
        return (
            f"orbit {self.orbit_length}, poly@{self.compact.poly_limit}, "
            f"precision {self.precision_digits} digits"
        )

    def orbit_texture(self, size: int = ORBIT_TEXTURE_SIZE) -> np.ndarray:
        """Orbit triples packed row-major into a square float32 texture.

        Texels past the sentinel are filled with -1.
        """
        flat = self.orbit.astype(np.float32).ravel()
        if flat.size > size * size:
            raise ValueError(
                f"orbit of {self.orbit_length} points does not fit a {size}x{size} texture"
            )
        texture = np.full(size * size, -1.0, dtype=np.float32)
        texture[:flat.size] = flat
        return texture.reshape(size, size)

    def shader_uniforms(self, center_offset: float = 0.0, color_scale: float = 1.0) -> dict:
        """Uniform values for a shader implementing the perturbation loop.

        uState = (center offset, color scale, 1 + radius exponent, max
        iterations). The shader works with the integer exponent while the
        CPU evaluators use the exact ``radius_log2``.
        """
        poly1, poly2 = self.compact.as_float32()
        state = np.array(
            (center_offset, color_scale, 1 + radius_exponent(self.radius), self.max_iterations),
            dtype=np.float32,
        )
        return {"uState": state, "poly1": poly1, "poly2": poly2}


def build_reference_state(center_re: str, center_im: str, radius: str = "2.0",
                          power: int = 2, max_iterations: int = 256,
                          julia_seed: Optional[Tuple[str, str]] = None,
                          config: EngineConfig = DEFAULT_CONFIG,
                          precision_digits: Optional[int] = None) -> ReferenceState:
    """Compute the reference orbit and coefficients for one area.

    Args:
        center_re: Real part of the reference point as a decimal string
        center_im: Imaginary part of the reference point as a decimal string
        radius: Half the longer view extent as a decimal string
        power: Exponent p of z -> z^p + c
        max_iterations: Iteration cap N
        julia_seed: (re, im) strings of the fixed c in Julia mode
        config: Engine tuning values
        precision_digits: Working precision; derived from the zoom if None

    Returns:
        A fully built, read-only ReferenceState
    """
    if max_iterations < 1:
        raise ValueError(f"max_iterations must be positive, got {max_iterations}")
    if precision_digits is None:
        manager = PrecisionManager(config.base_precision, config.precision_slope)
        precision_digits = manager.required(center_re, center_im, radius)

    t0 = time.perf_counter()
    orbit = ReferenceOrbit(
        center_re, center_im, radius,
        power=power,
        precision_digits=precision_digits,
        julia_seed=julia_seed,
    )
    orbit.compute(
        max_iterations,
        escape_radius_sq=config.escape_radius_sq,
        capacity=config.orbit_capacity,
        series_tolerance=config.series_tolerance,
        use_series=config.use_series,
    )
    buffer = orbit.orbit_buffer()
    buffer.setflags(write=False)
    compact = scale_coefficients(orbit.coefficients, orbit.radius)

    logger.info(
        "reference orbit at (%s, %s) r=%s: %d points in %.1fms, %d digits, poly limit %d",
        center_re, center_im, radius, orbit.orbit_length,
        (time.perf_counter() - t0) * 1000, precision_digits, compact.poly_limit,
    )

    return ReferenceState(
        center_re=center_re,
        center_im=center_im,
        radius=radius,
        power=power,
        max_iterations=max_iterations,
        julia_seed=julia_seed,
        precision_digits=precision_digits,
        orbit=buffer,
        points=tuple(tuple(row) for row in buffer.tolist()),
        orbit_length=orbit.orbit_length,
        escaped=orbit.escaped,
        escape_iteration=orbit.escape_iteration,
        coefficients=orbit.coefficients,
        compact=compact,
        radius_log2=radius_log2(radius),
        escape_radius_sq=config.escape_radius_sq,
        rescale_limit=config.rescale_limit,
    )
