"""Deep zoom escape-time engine for z -> z^p + c using perturbation theory."""

from .config import DEFAULT_CONFIG, EngineConfig
from .engine import DeepZoomEngine
from .perturbation import compute_iterations, compute_tile
from .state import ReferenceState, build_reference_state
from .view import ViewParams

__all__ = [
    "DEFAULT_CONFIG",
    "DeepZoomEngine",
    "EngineConfig",
    "ReferenceState",
    "ViewParams",
    "build_reference_state",
    "compute_iterations",
    "compute_tile",
]
