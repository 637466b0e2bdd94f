#!/usr/bin/env python3
"""
Load an image, optionally Gauss filter and differentiate it, and write it out.

Usage:
    python scripts/dic_image.py speckle.tif --gauss --mask-size 7 --gradients
    python scripts/dic_image.py speckle.tif --region 100 100 64 64 -o patch.rawi
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path if running from scripts/
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from dicimage import Image, ImageConfig, ImageError  # noqa: E402
from dicimage.config import MAX_GAUSS_MASK_SIZE  # noqa: E402


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("input", type=Path, help="Input image (TIFF, PNG, ... or .rawi)")
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output file; .rawi keeps full precision, anything else is 8-bit",
    )
    parser.add_argument(
        "--region",
        type=int,
        nargs=4,
        metavar=("OX", "OY", "W", "H"),
        default=None,
        help="Load only the rectangle at (OX, OY) of size W x H",
    )

    group = parser.add_argument_group("Processing")
    group.add_argument("--gauss", action="store_true", help="Gauss filter the image")
    group.add_argument(
        "--mask-size",
        type=int,
        default=7,
        help=f"Gauss mask size, odd, at most {MAX_GAUSS_MASK_SIZE} (default: 7)",
    )
    group.add_argument("--gradients", action="store_true", help="Compute image gradients")

    group = parser.add_argument_group("Kernel Launch")
    group.add_argument(
        "--hierarchical",
        action="store_true",
        help="Use team/tile execution instead of one work unit per pixel",
    )
    group.add_argument("--team-size", type=int, default=256, help="Pixels per team (default: 256)")
    group.add_argument("--workers", type=int, default=1, help="Worker threads (default: 1)")

    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config = ImageConfig(
        gauss_filter_mask_size=args.mask_size,
        use_hierarchical_parallelism=args.hierarchical,
        team_size=args.team_size,
        num_workers=args.workers,
        gauss_filter_image=args.gauss,
        compute_image_gradients=args.gradients,
    )

    try:
        if args.region is not None:
            image = Image.from_file_region(args.input, *args.region, config=config)
        else:
            image = Image.from_file(args.input, config=config)
    except (ImageError, OSError) as err:
        print(f"error: {err}", file=sys.stderr)
        return 1

    print(f"Image: {image.width}x{image.height} at offset ({image.offset_x}, {image.offset_y})")
    intensities = image.intensities()
    print(f"  intensity range: [{intensities.min():.4f}, {intensities.max():.4f}]")
    if args.gauss:
        print(f"  gauss filtered with {image.gauss_mask_size}x{image.gauss_mask_size} mask")
    if image.has_gradients():
        gx, gy = image.grad_x_array(), image.grad_y_array()
        print(f"  grad_x range: [{gx.min():.4f}, {gx.max():.4f}]")
        print(f"  grad_y range: [{gy.min():.4f}, {gy.max():.4f}]")

    if args.output is not None:
        if args.output.suffix.lower() == ".rawi":
            image.write_rawi(args.output)
        else:
            image.write_tiff(args.output)
        print(f"Wrote {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
