import attr
from attr import field
from attr.validators import instance_of

MIN_ITERATIONS = 1
MAX_ITERATIONS = 20
DEFAULT_ITERATIONS = 5


class InvalidConfigError(ValueError):
    """Thinning settings outside the supported range"""


@attr.frozen
class ThinningConfig:
    max_iterations: int = field(default=DEFAULT_ITERATIONS, validator=instance_of(int))

    @max_iterations.validator
    def is_within_range(self, attribute, value):  # type: ignore[no-untyped-def]
        if not MIN_ITERATIONS <= value <= MAX_ITERATIONS:
            raise InvalidConfigError(
                f"max_iterations must be between {MIN_ITERATIONS} and {MAX_ITERATIONS}; got {value}"
            )
