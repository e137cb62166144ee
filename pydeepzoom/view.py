"""View parameters and navigation in arbitrary precision.

Centers and radii are decimal strings so that panning and zooming never
round a deep-zoom coordinate through a double.
"""

from dataclasses import dataclass, replace
from typing import Optional, Tuple

from .precision import (
    GUARD_DIGITS, INITIAL_RADIUS, add_decimal_strings, coordinate_digits,
    log10_zoom, mul_decimal_string, precision_for_zoom,
)

# Default starting location
DEFAULT_CENTER_RE = "-0.5"
DEFAULT_CENTER_IM = "0.0"
DEFAULT_RADIUS = INITIAL_RADIUS
DEFAULT_MAX_ITERATIONS = 256

ZOOM_FACTOR = 0.5


def pixel_offset(px: float, py: float, width: int, height: int) -> Tuple[float, float]:
    """Normalized offset of a pixel center from the view center.

    The longer image side spans [-1, 1]; y grows upwards.
    """
    longer = max(width, height)
    dx = (2.0 * px + 1.0 - width) / longer
    dy = (height - 2.0 * py - 1.0) / longer
    return dx, dy


@dataclass(frozen=True)
class ViewParams:
    """Where to look and how hard to iterate."""

    center_re: str = DEFAULT_CENTER_RE
    center_im: str = DEFAULT_CENTER_IM
    radius: str = DEFAULT_RADIUS
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    power: int = 2
    julia_seed: Optional[Tuple[str, str]] = None

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be positive, got {self.max_iterations}")
        # both raise ValueError for malformed input
        coordinate_digits(self.center_re, self.center_im)
        log10_zoom(self.radius)

    @property
    def zoom_log10(self) -> float:
        return log10_zoom(self.radius)

    @property
    def precision(self) -> int:
        """Decimal digits used for coordinate arithmetic at this zoom."""
        return max(
            precision_for_zoom(self.zoom_log10),
            coordinate_digits(self.center_re, self.center_im, self.radius),
        ) + GUARD_DIGITS

    def world_point(self, dx: float, dy: float) -> Tuple[str, str]:
        """World coordinates of a normalized offset, as decimal strings."""
        precision = self.precision
        offset_re = mul_decimal_string(self.radius, dx, precision)
        offset_im = mul_decimal_string(self.radius, dy, precision)
        return (
            add_decimal_strings(self.center_re, offset_re, precision),
            add_decimal_strings(self.center_im, offset_im, precision),
        )

    def pixel_world_point(self, px: float, py: float, width: int, height: int) -> Tuple[str, str]:
        return self.world_point(*pixel_offset(px, py, width, height))

    def zoom_in(self, dx: float = 0.0, dy: float = 0.0,
                factor: float = ZOOM_FACTOR) -> "ViewParams":
        """Shrink the radius by ``factor``, keeping the point at (dx, dy) fixed."""
        if not 0.0 < factor < 1.0:
            raise ValueError(f"zoom in factor must be in (0, 1), got {factor}")
        return self._zoom(dx, dy, factor)

    def zoom_out(self, dx: float = 0.0, dy: float = 0.0,
                 factor: float = 1.0 / ZOOM_FACTOR) -> "ViewParams":
        if factor <= 1.0:
            raise ValueError(f"zoom out factor must exceed 1, got {factor}")
        return self._zoom(dx, dy, factor)

    def _zoom(self, dx: float, dy: float, factor: float) -> "ViewParams":
        # The fixed point p satisfies p = c + r*d = c' + r'*d
        shift = 1.0 - factor
        center_re, center_im = self.world_point(dx * shift, dy * shift)
        radius = mul_decimal_string(self.radius, factor, self.precision)
        return replace(self, center_re=center_re, center_im=center_im, radius=radius)

    def pan(self, dx: float, dy: float) -> "ViewParams":
        """Move the center by (dx, dy) radii."""
        center_re, center_im = self.world_point(dx, dy)
        return replace(self, center_re=center_re, center_im=center_im)

    def with_iterations(self, max_iterations: int) -> "ViewParams":
        return replace(self, max_iterations=max_iterations)

    def reset(self) -> "ViewParams":
        """Back to the default view, keeping power and Julia seed."""
        return replace(
            self,
            center_re=DEFAULT_CENTER_RE,
            center_im=DEFAULT_CENTER_IM,
            radius=DEFAULT_RADIUS,
            max_iterations=DEFAULT_MAX_ITERATIONS,
        )
