import logging
from enum import Enum
from pathlib import Path
from typing import Optional

import attr
from attr import field
from attr.validators import instance_of, optional
import imageio.v3 as iio
import numpy as np
import numpy.typing as npt
from PIL import Image, UnidentifiedImageError

from outlines.core.config import ThinningConfig
from outlines.core.mask import OpacityMask
from outlines.serde.raster.thinning import thin

logger = logging.getLogger(__name__)

DEFAULT_TRANSPARENT_INDEX = 0


class UnsupportedImageError(ValueError):
    """Input cannot be read as a raster image"""


class ColorMode(Enum):
    RGBA = 0
    GRAYSCALE = 1  # luminance + alpha
    INDEXED = 2


@attr.frozen
class RasterImage:
    data: npt.NDArray[np.generic] = field(validator=instance_of(np.ndarray))
    color_mode: ColorMode = field(validator=instance_of(ColorMode))
    palette: Optional[tuple[int, ...]] = field(
        default=None, converter=attr.converters.optional(tuple)
    )
    transparent_index: int = DEFAULT_TRANSPARENT_INDEX
    palette_alpha: Optional[bytes] = field(default=None, validator=optional(instance_of(bytes)))

    @data.validator
    def has_correct_shape(self, attribute, value):  # type: ignore[no-untyped-def]
        n_dimensions = len(value.shape)
        if self.color_mode == ColorMode.INDEXED:
            if n_dimensions != 2:
                raise UnsupportedImageError(
                    f"Indexed array expected to be 2D (y, x); got {n_dimensions}"
                )
            return

        if n_dimensions != 3:
            raise UnsupportedImageError(
                f"{self.color_mode.name} array expected to be 3D (y, x, bands); got {n_dimensions}"
            )
        expected_channels = 4 if self.color_mode == ColorMode.RGBA else 2
        n_channels = value.shape[2]
        if n_channels != expected_channels:
            raise UnsupportedImageError(
                f"{self.color_mode.name} array expected to have {expected_channels} channels; got {n_channels}"
            )

    @classmethod
    def from_array(cls, data: npt.NDArray[np.generic]) -> "RasterImage":
        """Wrap a true-color or grayscale array, adding an opaque alpha
        channel when the array has none.
        """
        if data.dtype == np.bool_:
            data = data.astype(np.uint8) * 255

        n_dimensions = len(data.shape)
        if n_dimensions == 2:
            return cls(data=_with_alpha(data[:, :, np.newaxis]), color_mode=ColorMode.GRAYSCALE)
        if n_dimensions != 3:
            raise UnsupportedImageError(
                f"Image array expected to be 2D or 3D; got {n_dimensions}"
            )

        n_channels = data.shape[2]
        if n_channels == 1:
            return cls(data=_with_alpha(data), color_mode=ColorMode.GRAYSCALE)
        if n_channels == 2:
            return cls(data=data, color_mode=ColorMode.GRAYSCALE)
        if n_channels == 3:
            return cls(data=_with_alpha(data), color_mode=ColorMode.RGBA)
        if n_channels == 4:
            return cls(data=data, color_mode=ColorMode.RGBA)
        raise UnsupportedImageError(
            f"Image array expected to have 1 to 4 channels; got {n_channels}"
        )

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])


def _with_alpha(data: npt.NDArray[np.generic]) -> npt.NDArray[np.generic]:
    if np.issubdtype(data.dtype, np.integer):
        opaque = np.iinfo(data.dtype).max
    else:
        opaque = 1.0
    alpha = np.full(data.shape[:2] + (1,), opaque, dtype=data.dtype)
    return np.concatenate([data, alpha], axis=2)


def _transparent_index(transparency: object) -> tuple[int, Optional[bytes]]:
    """Resolve a palette image's transparency entry to a single index.

    PNG stores either one index or an alpha value per palette entry; in the
    latter case the first fully transparent entry wins.
    """
    if isinstance(transparency, int):
        return transparency, None
    if isinstance(transparency, bytes):
        for index, alpha in enumerate(transparency):
            if alpha == 0:
                return index, transparency
        return DEFAULT_TRANSPARENT_INDEX, transparency
    return DEFAULT_TRANSPARENT_INDEX, None


def read_raster(path: Path) -> RasterImage:
    try:
        with Image.open(path) as image:
            if image.mode == "P":
                transparent_index, palette_alpha = _transparent_index(
                    image.info.get("transparency")
                )
                return RasterImage(
                    data=np.array(image, dtype=np.uint8),
                    color_mode=ColorMode.INDEXED,
                    palette=image.getpalette(),
                    transparent_index=transparent_index,
                    palette_alpha=palette_alpha,
                )
            if image.info.get("transparency") is not None:
                # a tRNS colour key only survives as alpha when Pillow converts
                target = "RGBA" if image.mode == "RGB" else "LA"
                return RasterImage.from_array(np.array(image.convert(target)))
    except UnidentifiedImageError as e:
        raise UnsupportedImageError(f"{path} is not a readable image") from e

    return RasterImage.from_array(iio.imread(path))


def write_raster(path: Path, image: RasterImage) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if image.color_mode != ColorMode.INDEXED:
        iio.imwrite(path, image.data)
        return

    out = Image.frombytes(
        "P", (image.width, image.height), image.data.astype(np.uint8).tobytes()
    )
    if image.palette is not None:
        out.putpalette(list(image.palette))
    transparency = (
        image.palette_alpha if image.palette_alpha is not None else image.transparent_index
    )
    out.save(path, format="PNG", transparency=transparency)


def opacity_mask(image: RasterImage) -> OpacityMask:
    """Resolve the image's transparency rule into a binary mask.

    Indexed images compare against the transparent index; everything else
    is opaque where alpha is nonzero.
    """
    if image.color_mode == ColorMode.INDEXED:
        return OpacityMask(data=np.asarray(image.data != image.transparent_index))
    return OpacityMask(data=np.asarray(image.data[:, :, -1] > 0))


def apply_mask(image: RasterImage, mask: OpacityMask) -> RasterImage:
    """Clear every pixel that is opaque in `image` but transparent in `mask`."""
    if mask.data.shape != image.data.shape[:2]:
        raise ValueError(
            f"Mask shape {mask.data.shape} does not match image shape {image.data.shape[:2]}"
        )

    cleared = np.logical_and(opacity_mask(image).data, np.logical_not(mask.data))
    data = image.data.copy()
    if image.color_mode == ColorMode.INDEXED:
        data[cleared] = image.transparent_index
    else:
        data[cleared] = 0
    return attr.evolve(image, data=data)


def thin_image(image: RasterImage, config: ThinningConfig) -> tuple[RasterImage, int]:
    """Thin the outlines of `image`; the input is left untouched and is
    returned as is when nothing was removed.
    """
    mask = opacity_mask(image)
    logger.debug(
        "thinning %s image %dx%d with %d opaque pixels",
        image.color_mode.name,
        image.width,
        image.height,
        mask.count_opaque(),
    )
    removed = thin(mask, config.max_iterations)
    if removed == 0:
        return image, 0
    return apply_mask(image, mask), removed


def thin_raster_file(
    input_path: Path, output_path: Path, config: ThinningConfig
) -> int:
    image = read_raster(input_path)
    thinned, removed = thin_image(image, config)
    if removed > 0:
        write_raster(output_path, thinned)
        logger.info("wrote %s", output_path)
    else:
        logger.info("nothing to thin in %s; %s not written", input_path, output_path)
    return removed
