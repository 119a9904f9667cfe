import logging
from collections import deque
from collections.abc import Iterator

from outlines.core.mask import OpacityMask
from outlines.serde.raster.neighborhood import (
    FOUR_OFFSETS,
    Neighborhood,
    classify,
    is_outline_pixel,
    transparent_4_count,
    transparent_8_count,
)

logger = logging.getLogger(__name__)

Coordinate = tuple[int, int]

# The three other cells of each 2x2 block holding the subject pixel;
# the last entry is the cell diagonally opposite the subject.
DIAGONAL_BLOCKS: tuple[tuple[Coordinate, Coordinate, Coordinate], ...] = (
    ((0, 1), (1, 0), (1, 1)),  # subject is top-left
    ((0, -1), (1, 0), (1, -1)),  # subject is bottom-left
    ((0, 1), (-1, 0), (-1, 1)),  # subject is top-right
    ((0, -1), (-1, 0), (-1, -1)),  # subject is bottom-right
)

# (opaque offsets, checkpoint offsets) for each orientation of a stair step.
# fmt: off
STAIR_STEPS: tuple[tuple[tuple[Coordinate, ...], tuple[Coordinate, ...]], ...] = (
    (((1, 0), (1, 1)), ((0, -1), (-1, 0), (-1, -1))),     # down-right, subject above
    (((0, 1), (1, 1)), ((-1, 0), (0, -1), (-1, -1))),     # down-right, subject left
    (((-1, 0), (-1, 1)), ((0, -1), (1, 0), (1, -1))),     # down-left
    (((0, 1), (-1, 1)), ((1, 0), (0, -1), (1, -1))),
    (((1, 0), (1, -1)), ((0, 1), (-1, 0), (-1, 1))),      # up-right
    (((0, -1), (1, -1)), ((-1, 0), (0, 1), (-1, 1))),
    (((-1, 0), (-1, -1)), ((0, 1), (1, 0), (1, 1))),      # up-left
    (((0, -1), (-1, -1)), ((1, 0), (0, 1), (1, 1))),
)
# fmt: on


def would_disconnect(neighborhood: Neighborhood) -> bool:
    """True if the opaque cells around the center only touch each other
    through the center. For example:

        . * .
        . S .       * - opaque
        . * .       . - transparent

    Erasing S would split the upper and lower pixels, whereas

        * * .
        . S .
        . * .

    is still split (the upper pair never reaches the lower pixel), but

        * * .
        * S .
        * * .

    is not: the ring cells reach each other down the left column.
    """
    if neighborhood.opaque_4_count <= 1:
        return False

    positions = neighborhood.opaque_offsets()
    if len(positions) <= 1:
        return False

    visited = {positions[0]}
    queue = deque([positions[0]])
    while queue:
        cx, cy = queue.popleft()
        for position in positions:
            if position in visited:
                continue
            px, py = position
            if abs(cx - px) <= 1 and abs(cy - py) <= 1:
                visited.add(position)
                queue.append(position)

    return len(visited) < len(positions)


def is_diagonal_pair_removable(mask: OpacityMask, x: int, y: int) -> bool:
    """Within a filled 2x2 block, the subject may go if it is more exposed
    than the cell diagonally across from it. This resolves filled corners
    into a single diagonal strand.
    """
    if not mask.is_opaque(x, y):
        return False

    for block in DIAGONAL_BLOCKS:
        if not all(mask.is_opaque(x + dx, y + dy) for dx, dy in block):
            continue
        diag_dx, diag_dy = block[-1]
        subject_exposure = transparent_8_count(mask, x, y)
        diagonal_exposure = transparent_8_count(mask, x + diag_dx, y + diag_dy)
        if subject_exposure > diagonal_exposure:
            return True

    return False


def is_stair_step_removable(mask: OpacityMask, x: int, y: int) -> bool:
    """The subject is the outer cell of a 2-wide diagonal step, e.g.

        . S *
        . * *       S - subject
        . . *

    when both step cells are opaque and at least one checkpoint behind the
    subject is transparent.
    """
    if not mask.is_opaque(x, y):
        return False

    for step, checkpoints in STAIR_STEPS:
        if not all(mask.is_opaque(x + dx, y + dy) for dx, dy in step):
            continue
        if any(mask.is_transparent(x + dx, y + dy) for dx, dy in checkpoints):
            return True

    return False


def is_outline_interior_removable(mask: OpacityMask, x: int, y: int) -> bool:
    if not is_outline_pixel(mask, x, y):
        return False

    neighborhood = classify(mask, x, y)
    # with fewer than two opaque 4-neighbors the outline is already 1 pixel wide
    if neighborhood.opaque_4_count < 2:
        return False
    if neighborhood.transparent_4_count < 1:
        return False

    # an adjacent outline pixel means this part of the outline is 2 thick
    if not any(is_outline_pixel(mask, x + dx, y + dy) for dx, dy in FOUR_OFFSETS):
        return False

    return not would_disconnect(neighborhood)


def is_removable(mask: OpacityMask, x: int, y: int) -> bool:
    """The diagonal and stair patterns are safe by construction and skip the
    connectivity check.
    """
    return (
        is_diagonal_pair_removable(mask, x, y)
        or is_stair_step_removable(mask, x, y)
        or is_outline_interior_removable(mask, x, y)
    )


def find_candidates(mask: OpacityMask) -> list[Coordinate]:
    return [(x, y) for x, y in mask.coordinates() if is_removable(mask, x, y)]


def order_candidates(
    mask: OpacityMask, candidates: list[Coordinate]
) -> list[Coordinate]:
    """Most exposed pixels first. `sorted` is stable, so candidates with
    equal exposure keep their row-major scan order.
    """
    return sorted(
        candidates,
        key=lambda coordinate: transparent_4_count(mask, *coordinate),
        reverse=True,
    )


def thin_pass(mask: OpacityMask) -> int:
    """Perform one sweep over the mask and return the number of pixels erased.

    Each candidate is checked again right before it is erased; earlier
    removals in the same sweep can make a later candidate unsafe.
    """
    candidates = order_candidates(mask, find_candidates(mask))

    removed = 0
    for x, y in candidates:
        if is_removable(mask, x, y):
            mask.set(x, y, False)
            removed += 1

    logger.debug("sweep found %d candidates, removed %d", len(candidates), removed)
    return removed


def iter_passes(mask: OpacityMask, max_iterations: int) -> Iterator[int]:
    """Yield the removed count of each sweep until one removes nothing
    or `max_iterations` sweeps have run.
    """
    for _ in range(max_iterations):
        removed = thin_pass(mask)
        yield removed
        if removed == 0:
            return


def thin(mask: OpacityMask, max_iterations: int) -> int:
    """Thin 2 pixel outlines in `mask` to 1 pixel, in place."""
    total_removed = 0
    for sweep, removed in enumerate(iter_passes(mask, max_iterations), start=1):
        total_removed += removed
        logger.debug("sweep %d of at most %d removed %d", sweep, max_iterations, removed)

    logger.info(
        "thinned %dx%d mask: removed %d pixels",
        mask.width,
        mask.height,
        total_removed,
    )
    return total_removed
