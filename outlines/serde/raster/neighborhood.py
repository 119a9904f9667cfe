import attr
from attr import field

from outlines.core.mask import OpacityMask

OFFSETS: tuple[tuple[int, int], ...] = tuple(
    (dx, dy) for dy in (-1, 0, 1) for dx in (-1, 0, 1)
)
RING_OFFSETS: tuple[tuple[int, int], ...] = tuple(
    offset for offset in OFFSETS if offset != (0, 0)
)
FOUR_OFFSETS: tuple[tuple[int, int], ...] = ((-1, 0), (1, 0), (0, -1), (0, 1))


def _index(dx: int, dy: int) -> int:
    return (dy + 1) * 3 + (dx + 1)


@attr.frozen
class Neighborhood:
    """Opacity of the 3x3 block around a pixel. For example:

        * . .
        * S *       * - opaque
        . * .       . - transparent

    is stored row-major as (T, F, F, T, S, T, F, T, F).
    """

    cells: tuple[bool, ...] = field(converter=tuple)

    @cells.validator
    def has_nine_cells(self, attribute, value):  # type: ignore[no-untyped-def]
        if len(value) != 9:
            raise ValueError(f"A neighborhood holds 9 cells; got {len(value)}")

    @classmethod
    def from_rows(cls, rows: list[str]) -> "Neighborhood":
        if len(rows) != 3 or any(len(row) != 3 for row in rows):
            raise ValueError("A neighborhood is described by 3 rows of 3 characters")
        return cls(cells=tuple(char == "*" for row in rows for char in row))

    def at(self, dx: int, dy: int) -> bool:
        return self.cells[_index(dx, dy)]

    @property
    def center(self) -> bool:
        return self.at(0, 0)

    @property
    def opaque_4_count(self) -> int:
        return sum(self.at(dx, dy) for dx, dy in FOUR_OFFSETS)

    @property
    def transparent_4_count(self) -> int:
        return len(FOUR_OFFSETS) - self.opaque_4_count

    def opaque_offsets(self) -> list[tuple[int, int]]:
        """Opaque cells of the ring around the center, row-major."""
        return [(dx, dy) for dx, dy in RING_OFFSETS if self.at(dx, dy)]


def classify(mask: OpacityMask, x: int, y: int) -> Neighborhood:
    return Neighborhood(
        cells=tuple(mask.is_opaque(x + dx, y + dy) for dx, dy in OFFSETS)
    )


def transparent_8_count(mask: OpacityMask, x: int, y: int) -> int:
    return sum(mask.is_transparent(x + dx, y + dy) for dx, dy in RING_OFFSETS)


def transparent_4_count(mask: OpacityMask, x: int, y: int) -> int:
    return sum(mask.is_transparent(x + dx, y + dy) for dx, dy in FOUR_OFFSETS)


def is_outline_pixel(mask: OpacityMask, x: int, y: int) -> bool:
    """An opaque pixel with at least one transparent 4-neighbor."""
    if not mask.is_opaque(x, y):
        return False
    return transparent_4_count(mask, x, y) > 0
