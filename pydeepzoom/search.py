"""Reference point search for views whose center escapes early.

A reference that escapes after a few iterations forces nearly every pixel
through a rebase. The search ranks a coarse grid of candidate points by
perturbation against the current orbit, then verifies the most promising
ones at full precision and keeps the longest orbit.
"""

import logging

import numpy as np

from .config import DEFAULT_CONFIG, EngineConfig
from .perturbation import compute_tile
from .state import ReferenceState, build_reference_state
from .view import ViewParams

logger = logging.getLogger(__name__)

# Grid candidates verified at full precision
VERIFY_CANDIDATES = 4


def find_best_reference(state: ReferenceState,
                        config: EngineConfig = DEFAULT_CONFIG) -> ReferenceState:
    """Return a reference state whose orbit lasts longer, or ``state`` itself."""
    if not state.escaped:
        return state

    ticks = np.linspace(-1.0, 1.0, config.search_grid)
    grid_x, grid_y = np.meshgrid(ticks, ticks)
    grid_x, grid_y = grid_x.ravel(), grid_y.ravel()
    iterations = compute_tile(grid_x, grid_y, state)
    order = np.argsort(-iterations, kind="stable")

    area = ViewParams(
        center_re=state.center_re,
        center_im=state.center_im,
        radius=state.radius,
        max_iterations=state.max_iterations,
        power=state.power,
        julia_seed=state.julia_seed,
    )
    logger.debug(
        "reference escapes at %d, searching %d grid points",
        state.escape_iteration, grid_x.size,
    )

    best = state
    for flat in order[:VERIFY_CANDIDATES]:
        if iterations[flat] <= best.reference_iterations:
            break
        re, im = area.world_point(float(grid_x[flat]), float(grid_y[flat]))
        candidate = build_reference_state(
            re, im, state.radius,
            power=state.power,
            max_iterations=state.max_iterations,
            julia_seed=state.julia_seed,
            config=config,
            precision_digits=state.precision_digits,
        )
        logger.debug(
            "candidate (%s, %s): %d iterations, escaped=%s",
            re, im, candidate.reference_iterations, candidate.escaped,
        )
        if candidate.reference_iterations > best.reference_iterations:
            best = candidate
            if not candidate.escaped:
                break

    if best is not state:
        logger.info("using better reference: %d iterations", best.reference_iterations)
    return best
