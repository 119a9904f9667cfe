import pytest

from outlines.core.config import (
    DEFAULT_ITERATIONS,
    InvalidConfigError,
    ThinningConfig,
)


class TestThinningConfig:
    def test_default(self):
        assert ThinningConfig().max_iterations == DEFAULT_ITERATIONS == 5

    @pytest.mark.parametrize("max_iterations", [1, 10, 20])
    def test_in_range(self, max_iterations):
        assert ThinningConfig(max_iterations=max_iterations).max_iterations == max_iterations

    @pytest.mark.parametrize("max_iterations", [0, -3, 21])
    def test_out_of_range(self, max_iterations):
        with pytest.raises(InvalidConfigError):
            ThinningConfig(max_iterations=max_iterations)

    def test_not_an_int(self):
        with pytest.raises(TypeError):
            ThinningConfig(max_iterations="5")
