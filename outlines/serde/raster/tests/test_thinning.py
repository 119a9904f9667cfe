# pylint: disable=redefined-builtin
import numpy as np
import pytest

from outlines.core.mask import OpacityMask
from outlines.serde.raster.neighborhood import Neighborhood
from outlines.serde.raster.thinning import (
    find_candidates,
    is_diagonal_pair_removable,
    is_outline_interior_removable,
    is_removable,
    is_stair_step_removable,
    iter_passes,
    order_candidates,
    thin,
    would_disconnect,
)

# fmt: off
FILLED_3X3 = [
    ".....",
    ".***.",
    ".***.",
    ".***.",
    ".....",
]

FILLED_2X2 = [
    "....",
    ".**.",
    ".**.",
    "....",
]

RING = [
    ".......",
    ".*****.",
    ".*...*.",
    ".*...*.",
    ".*...*.",
    ".*****.",
    ".......",
]

STAIRCASE = [
    "**....",
    ".**...",
    "..**..",
    "...**.",
    "......",
]

VERTICAL_DOUBLE = ["..**.."] * 10
# fmt: on


def _random_mask(seed: int) -> OpacityMask:
    rng = np.random.default_rng(seed)
    return OpacityMask(data=rng.random((7, 7)) < 0.6)


class TestWouldDisconnect:
    # fmt: off
    @pytest.mark.parametrize(
        ("input", "exp_result"),
        [
            ([".*.", ".*.", ".*."], True),
            ([". .", "***", ". ."], True),
            (["**.", ".*.", ".*."], True),
            (["*..", ".**", ".*."], True),
            (["**.", "**.", "**."], False),
            ([".*.", "**.", "..."], False),
            (["...", "**.", "..."], False),
            (["*.*", ".*.", "*.*"], False),
            (["***", "***", "***"], False),
        ],
    )
    # fmt: on
    def test_would_disconnect(self, input, exp_result):
        assert would_disconnect(Neighborhood.from_rows(input)) == exp_result


class TestDiagonalPair:
    @pytest.mark.parametrize(
        ("rows", "x", "y", "exp_result"),
        [
            (FILLED_3X3, 1, 1, True),
            (FILLED_3X3, 3, 3, True),
            (FILLED_3X3, 2, 2, False),
            (FILLED_3X3, 2, 1, False),
            (FILLED_3X3, 0, 0, False),
            # both diagonals of a lone 2x2 block are equally exposed
            (FILLED_2X2, 1, 1, False),
        ],
    )
    def test_is_diagonal_pair_removable(self, rows, x, y, exp_result):
        mask = OpacityMask.from_rows(rows)
        assert is_diagonal_pair_removable(mask, x, y) == exp_result


class TestStairStep:
    # fmt: off
    STEP = [
        "....",
        ".**.",
        "..*.",
        "....",
    ]
    # fmt: on

    @pytest.mark.parametrize(
        ("rows", "x", "y", "exp_result"),
        [
            (STEP, 1, 1, True),
            (STEP, 2, 2, True),
            (STEP, 2, 1, False),
            (STEP, 0, 0, False),
            (FILLED_3X3, 2, 2, False),
            (["...", ".*.", "..."], 1, 1, False),
        ],
    )
    def test_is_stair_step_removable(self, rows, x, y, exp_result):
        mask = OpacityMask.from_rows(rows)
        assert is_stair_step_removable(mask, x, y) == exp_result


class TestOutlineInterior:
    @pytest.mark.parametrize(
        ("rows", "x", "y", "exp_result"),
        [
            # corner of a 1 pixel ring: the two arms still touch diagonally
            (RING, 1, 1, True),
            # the middle of a straight edge holds the ring together
            (RING, 3, 1, False),
            (FILLED_3X3, 2, 1, True),
            (FILLED_3X3, 2, 2, False),
            (["...", ".*.", "..."], 1, 1, False),
        ],
    )
    def test_is_outline_interior_removable(self, rows, x, y, exp_result):
        mask = OpacityMask.from_rows(rows)
        assert is_outline_interior_removable(mask, x, y) == exp_result

    def test_ring_edge_is_not_removable_by_any_route(self):
        mask = OpacityMask.from_rows(RING)
        assert not is_removable(mask, 3, 1)
        assert not is_removable(mask, 1, 3)

    @pytest.mark.parametrize(
        "mask",
        [OpacityMask.from_rows(RING), OpacityMask.from_rows(FILLED_3X3)]
        + [_random_mask(seed) for seed in range(8)],
    )
    def test_removal_keeps_neighbors_connected(self, mask: OpacityMask):
        approved = [
            (x, y)
            for x, y in mask.coordinates()
            if is_outline_interior_removable(mask, x, y)
        ]
        for x, y in approved:
            after = mask.copy()
            after.set(x, y, False)

            # walk the ring around the erased pixel under 8-adjacency
            ring = {
                (x + dx, y + dy)
                for dy in (-1, 0, 1)
                for dx in (-1, 0, 1)
                if (dx, dy) != (0, 0) and after.is_opaque(x + dx, y + dy)
            }
            four_neighbors = {
                (x + dx, y + dy)
                for dx, dy in ((-1, 0), (1, 0), (0, -1), (0, 1))
                if after.is_opaque(x + dx, y + dy)
            }
            start = next(iter(four_neighbors))
            reached = {start}
            frontier = [start]
            while frontier:
                cx, cy = frontier.pop()
                for px, py in ring - reached:
                    if abs(cx - px) <= 1 and abs(cy - py) <= 1:
                        reached.add((px, py))
                        frontier.append((px, py))

            assert four_neighbors <= reached, (x, y)


class TestScheduling:
    def test_find_candidates_scans_row_major(self):
        mask = OpacityMask.from_rows(FILLED_2X2)
        assert find_candidates(mask) == [(1, 1), (2, 1), (1, 2), (2, 2)]

    def test_order_candidates_puts_exposed_pixels_first(self):
        mask = OpacityMask.from_rows(STAIRCASE)
        candidates = find_candidates(mask)
        assert order_candidates(mask, candidates) == [
            (0, 0),
            (4, 3),
            (1, 0),
            (1, 1),
            (2, 1),
            (2, 2),
            (3, 2),
            (3, 3),
        ]

    def test_order_candidates_keeps_scan_order_on_ties(self):
        mask = OpacityMask.from_rows(FILLED_2X2)
        candidates = [(2, 2), (1, 1), (2, 1)]
        assert order_candidates(mask, candidates) == candidates


class TestThin:
    @pytest.mark.parametrize(
        "rows",
        [
            ["...", ".*.", "..."],
            ["*"],
            [".......", ".*****.", "......."],
            ["*....", ".*...", "..*..", "...*.", "....*"],
        ],
    )
    def test_minimal_outlines_are_left_alone(self, rows):
        mask = OpacityMask.from_rows(rows)
        assert thin(mask, 10) == 0
        assert mask.to_rows() == OpacityMask.from_rows(rows).to_rows()

    @pytest.mark.parametrize(("width", "height"), [(0, 0), (3, 0), (0, 3), (4, 4)])
    def test_degenerate_masks(self, width, height):
        mask = OpacityMask.blank(width, height)
        assert thin(mask, 5) == 0

    def test_filled_2x2_is_re_checked_during_sweep(self):
        mask = OpacityMask.from_rows(FILLED_2X2)
        # every pixel starts out as a candidate, but removing the top row
        # leaves the bottom pair with nothing to pair against
        assert list(iter_passes(mask, 5)) == [2, 0]
        assert mask.to_rows() == ["....", "....", ".**.", "...."]

    def test_vertical_double_segment(self):
        mask = OpacityMask.from_rows(VERTICAL_DOUBLE)
        assert thin(mask, 5) == 18
        expected = ["......"] * 10
        expected[8] = "..**.."
        assert mask.to_rows() == expected

    def test_staircase(self):
        mask = OpacityMask.from_rows(STAIRCASE)
        assert list(iter_passes(mask, 5)) == [6, 0]
        assert mask.to_rows() == [
            "......",
            "......",
            "...*..",
            "...*..",
            "......",
        ]

    def test_iteration_cap(self):
        mask = OpacityMask.from_rows(VERTICAL_DOUBLE)
        assert list(iter_passes(mask, 1)) == [18]

        untouched = OpacityMask.from_rows(VERTICAL_DOUBLE)
        assert thin(untouched, 0) == 0
        assert untouched.count_opaque() == 20

    @pytest.mark.parametrize("rows", [RING, FILLED_3X3, STAIRCASE, VERTICAL_DOUBLE])
    def test_converges_to_fixed_point(self, rows):
        original = OpacityMask.from_rows(rows)
        mask = original.copy()

        passes = list(iter_passes(mask, 20))
        assert passes[-1] == 0
        assert all(0 <= removed <= mask.width * mask.height for removed in passes)
        assert sum(passes) == original.count_opaque() - mask.count_opaque()

        thinned = mask.copy()
        assert thin(mask, 5) == 0
        assert np.array_equal(mask.data, thinned.data)

    @pytest.mark.parametrize("rows", [RING, FILLED_3X3, STAIRCASE])
    def test_only_removes_pixels(self, rows):
        original = OpacityMask.from_rows(rows)
        mask = original.copy()
        thin(mask, 10)
        assert not np.any(np.logical_and(mask.data, np.logical_not(original.data)))

    @pytest.mark.parametrize("rows", [RING, FILLED_3X3, STAIRCASE])
    def test_deterministic(self, rows):
        first = OpacityMask.from_rows(rows)
        second = OpacityMask.from_rows(rows)
        assert thin(first, 7) == thin(second, 7)
        assert np.array_equal(first.data, second.data)
