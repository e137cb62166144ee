"""Engine tuning values.

The thresholds below are empirical. They are collected in ``EngineConfig``
so callers can tune them per render instead of patching module globals.
"""

from dataclasses import dataclass, replace

from .precision import BASE_PRECISION, PRECISION_SLOPE

# Orbit texture is a square float32 image holding (x, y, scale) triples.
ORBIT_TEXTURE_SIZE = 1024
# Leaves room for the sentinel row after the last point.
ORBIT_CAPACITY = ORBIT_TEXTURE_SIZE * ORBIT_TEXTURE_SIZE // 3 - 1

ESCAPE_RADIUS_SQ = 400.0          # perturbation bailout, 20^2
DIRECT_ESCAPE_RADIUS_SQ = 4.0     # plain double iteration bailout, 2^2
RESCALE_LIMIT = 1.0e6             # |dz|^2 above which the mantissa is halved
SERIES_TOLERANCE = 1000.0         # |C| must exceed this * 2^rexp * |D|
INVALIDATION_FRACTION = 0.5       # recenter distance, in radii, forcing a new orbit
REBUILD_ZOOM_RATIO = 64.0         # zoom in factor forcing a new orbit
DEEP_ZOOM_THRESHOLD = 1.0e12      # zoom factor where perturbation takes over

SUPPORTED_POWERS = (2, 3, 4)


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for the deep zoom engine."""

    escape_radius_sq: float = ESCAPE_RADIUS_SQ
    direct_escape_radius_sq: float = DIRECT_ESCAPE_RADIUS_SQ
    rescale_limit: float = RESCALE_LIMIT
    series_tolerance: float = SERIES_TOLERANCE
    use_series: bool = True
    invalidation_fraction: float = INVALIDATION_FRACTION
    rebuild_zoom_ratio: float = REBUILD_ZOOM_RATIO
    deep_zoom_threshold: float = DEEP_ZOOM_THRESHOLD
    force_perturbation: bool = False
    orbit_capacity: int = ORBIT_CAPACITY
    base_precision: int = BASE_PRECISION
    precision_slope: float = PRECISION_SLOPE
    search_reference: bool = False
    search_grid: int = 8

    def __post_init__(self):
        if self.orbit_capacity < 2:
            raise ValueError("orbit_capacity must hold at least two points")
        if self.escape_radius_sq <= 0 or self.direct_escape_radius_sq <= 0:
            raise ValueError("escape radii must be positive")
        if self.rescale_limit <= 1.0:
            raise ValueError("rescale_limit must exceed 1")
        if self.search_grid < 2:
            raise ValueError("search_grid must be at least 2")

    def with_overrides(self, **changes) -> "EngineConfig":
        return replace(self, **changes)


DEFAULT_CONFIG = EngineConfig()
