"""Convert local image files to WebP without running the server.

Usage:
    image-gateway-convert photo.jpg scan.png --quality 80 --output-dir out/
    image-gateway-convert photo.jpg --base64
"""

import argparse
import logging
import os
import sys
from typing import Optional, Sequence

from image_gateway.core import codec
from image_gateway.core.errors import ImageGatewayError
from image_gateway.core.models import MAX_QUALITY, MIN_QUALITY, WEBP_MEDIA_TYPE
from image_gateway.core.transcoder import derive_output_file_name, transcode


def _quality(value: str) -> int:
    quality = int(value)
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise argparse.ArgumentTypeError(f"quality must be between {MIN_QUALITY} and {MAX_QUALITY}")
    return quality


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Convert images to WebP")
    parser.add_argument("inputs", nargs="+", help="Image files to convert")
    parser.add_argument("-q", "--quality", type=_quality, default=80, help="WebP quality, 1-100")
    parser.add_argument("-o", "--output-dir", default=None, help="Directory for the .webp files (default: next to input)")
    parser.add_argument("--base64", action="store_true", help="Print data URIs instead of writing files")
    return parser


def convert_file(input_path: str, quality: int, output_dir: Optional[str] = None) -> str:
    """Convert one file and return the path of the written .webp file."""
    with open(input_path, "rb") as f:
        source = f.read()
    encoded = transcode(source, quality)

    output_name = derive_output_file_name(os.path.basename(input_path))
    target_dir = output_dir or os.path.dirname(input_path)
    if target_dir:
        os.makedirs(target_dir, exist_ok=True)
    output_path = os.path.join(target_dir, output_name)

    with open(output_path, "wb") as f:
        f.write(encoded)
    logging.info(f"{input_path}: {len(source)} -> {len(encoded)} bytes, saved to {output_path}")
    return output_path


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    failures = 0
    for input_path in args.inputs:
        try:
            if args.base64:
                with open(input_path, "rb") as f:
                    encoded = transcode(f.read(), args.quality)
                print(codec.to_data_uri(encoded, WEBP_MEDIA_TYPE))
            else:
                print(convert_file(input_path, args.quality, args.output_dir))
        except (ImageGatewayError, OSError) as e:
            failures += 1
            logging.error(f"Failed to convert {input_path}: {str(e)}")

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
