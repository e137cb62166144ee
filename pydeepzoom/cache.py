"""Reuse of reference states across frames.

A state stays valid while the view keeps roughly the same area. The
active state is replaced by building a new one completely and then
swapping the reference, so a frame that already holds the old state keeps
reading a consistent orbit.
"""

import logging
import math
from typing import Optional

import mpmath

from .config import DEFAULT_CONFIG, EngineConfig
from .orbit import EXTRA_DIGITS
from .precision import coordinate_digits
from .search import find_best_reference
from .state import ReferenceState, build_reference_state
from .view import ViewParams

logger = logging.getLogger(__name__)


def needs_rebuild(previous: Optional[ViewParams], view: ViewParams,
                  config: EngineConfig = DEFAULT_CONFIG) -> bool:
    """Whether a state built for ``previous`` can no longer serve ``view``.

    The center may drift up to ``invalidation_fraction`` radii in either
    axis and the radius may shrink by up to ``rebuild_zoom_ratio``. The
    series limit only holds for offsets within the radius it was built
    for, so any zoom out forces a rebuild, as does a change of iteration
    cap, power or Julia seed.
    """
    if previous is None:
        return True
    if (previous.max_iterations != view.max_iterations
            or previous.power != view.power
            or previous.julia_seed != view.julia_seed):
        return True

    digits = coordinate_digits(
        previous.center_re, previous.center_im, view.center_re, view.center_im, view.radius
    ) + EXTRA_DIGITS
    with mpmath.workdps(digits):
        radius = mpmath.mpf(view.radius)
        ratio = radius / mpmath.mpf(previous.radius)
        if ratio > 1 or -mpmath.log(ratio, 2) > math.log2(config.rebuild_zoom_ratio):
            return True
        limit = config.invalidation_fraction * radius
        moved_re = abs(mpmath.mpf(view.center_re) - mpmath.mpf(previous.center_re))
        moved_im = abs(mpmath.mpf(view.center_im) - mpmath.mpf(previous.center_im))
        return moved_re > limit or moved_im > limit


class OrbitCache:
    """Holds the single active reference state."""

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG):
        self.config = config
        self._state: Optional[ReferenceState] = None
        self._area: Optional[ViewParams] = None
        self._deep = False
        self.builds = 0

    @property
    def state(self) -> Optional[ReferenceState]:
        return self._state

    def invalidate(self):
        self._state = None
        self._area = None

    def needs_rebuild(self, view: ViewParams, deep: bool) -> bool:
        if deep != self._deep:
            return True
        if not deep:
            return False
        return needs_rebuild(self._area, view, self.config)

    def get(self, view: ViewParams, deep: bool,
            precision_digits: Optional[int] = None) -> Optional[ReferenceState]:
        """State for ``view``, rebuilt if needed. None while not in deep mode."""
        if deep != self._deep:
            logger.debug("deep zoom mode %s", "on" if deep else "off")
            self.invalidate()
            self._deep = deep
        if not deep:
            return None
        if needs_rebuild(self._area, view, self.config):
            state = build_reference_state(
                view.center_re, view.center_im, view.radius,
                power=view.power,
                max_iterations=view.max_iterations,
                julia_seed=view.julia_seed,
                config=self.config,
                precision_digits=precision_digits,
            )
            if self.config.search_reference:
                state = find_best_reference(state, self.config)
            self.builds += 1
            # publish only once fully built
            self._state, self._area = state, view
        return self._state
