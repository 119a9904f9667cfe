from collections.abc import Iterable, Iterator

import attr
from attr import field
from attr.validators import instance_of
import numpy as np
import numpy.typing as npt

OPAQUE_CHAR = "*"
TRANSPARENT_CHARS = (" ", ".")


@attr.frozen
class OpacityMask:
    """Binary view over a rectangular pixel buffer, indexed [y, x].

    Coordinates outside the buffer read as transparent, so pixels on the
    image border behave exactly like pixels bordering a transparent area.
    """

    data: npt.NDArray[np.bool_] = field(validator=instance_of(np.ndarray))

    @data.validator
    def has_correct_shape(self, attribute, value):  # type: ignore[no-untyped-def]
        n_dimensions = len(value.shape)
        if not n_dimensions == 2:
            raise ValueError(f"Opacity mask expected to be 2D (y, x); got {n_dimensions}")
        if value.dtype != np.bool_:
            raise ValueError(f"Opacity mask expected boolean data; got {value.dtype}")

    @classmethod
    def blank(cls, width: int, height: int) -> "OpacityMask":
        return cls(data=np.zeros((height, width), dtype=np.bool_))

    @classmethod
    def from_rows(cls, rows: Iterable[str]) -> "OpacityMask":
        """Build a mask from ASCII art: '*' is opaque, ' ' or '.' transparent."""
        rows = list(rows)
        width = max((len(row) for row in rows), default=0)
        data = np.zeros((len(rows), width), dtype=np.bool_)
        for y, row in enumerate(rows):
            for x, char in enumerate(row):
                if char == OPAQUE_CHAR:
                    data[y, x] = True
                elif char not in TRANSPARENT_CHARS:
                    raise ValueError(f"unexpected mask character {char!r}")
        return cls(data=data)

    def to_rows(self) -> list[str]:
        return [
            "".join(OPAQUE_CHAR if cell else "." for cell in row) for row in self.data
        ]

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def is_opaque(self, x: int, y: int) -> bool:
        if not self.in_bounds(x, y):
            return False
        return bool(self.data[y, x])

    def is_transparent(self, x: int, y: int) -> bool:
        return not self.is_opaque(x, y)

    def set(self, x: int, y: int, opaque: bool) -> None:
        # writes outside the buffer are dropped, mirroring the read policy
        if self.in_bounds(x, y):
            self.data[y, x] = opaque

    def coordinates(self) -> Iterator[tuple[int, int]]:
        """Every (x, y) in row-major scan order."""
        for y in range(self.height):
            for x in range(self.width):
                yield x, y

    def count_opaque(self) -> int:
        return int(np.count_nonzero(self.data))

    def copy(self) -> "OpacityMask":
        return OpacityMask(data=self.data.copy())
