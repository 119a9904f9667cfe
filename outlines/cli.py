import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from outlines.core.config import (
    DEFAULT_ITERATIONS,
    MAX_ITERATIONS,
    MIN_ITERATIONS,
    InvalidConfigError,
    ThinningConfig,
)
from outlines.serde.raster.formats import UnsupportedImageError, thin_raster_file

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="outline-thinner",
        description="Thin 2 pixel outlines in a sprite to 1 pixel.",
    )
    ap.add_argument("input", type=Path)
    ap.add_argument(
        "output",
        type=Path,
        nargs="?",
        default=None,
        help="Where to write the result. Defaults to overwriting the input.",
    )
    ap.add_argument(
        "--iterations",
        type=int,
        default=DEFAULT_ITERATIONS,
        help=f"Maximum thinning sweeps ({MIN_ITERATIONS}-{MAX_ITERATIONS}). More sweeps = more thinning.",
    )
    ap.add_argument("-v", "--verbose", action="store_true", help="Log every sweep.")
    return ap


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    output = args.output if args.output is not None else args.input
    try:
        config = ThinningConfig(max_iterations=args.iterations)
        removed = thin_raster_file(args.input, output, config)
    except (InvalidConfigError, UnsupportedImageError, FileNotFoundError) as e:
        logger.debug("thinning %s failed", args.input, exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1

    print(f"Removed {removed} pixels")
    return 0


if __name__ == "__main__":
    sys.exit(main())
