#!/usr/bin/env python3
"""Batch extract palettes from a directory of images into JSON exports."""

import argparse
import sys
import time
from pathlib import Path

from extract_palette import (
    add_config_arguments, clamp_count, config_from_args, configure_logging,
    extract_from_path,
)
from palette_export import write_json


def find_images(directory: Path) -> list[Path]:
    """Find all image files in directory."""
    extensions = {'.jpg', '.jpeg', '.png', '.webp', '.bmp', '.gif'}
    return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in extensions)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description='Batch extract palettes and write one JSON export per image.'
    )
    parser.add_argument(
        '--input', '-i',
        required=True,
        help='Directory containing images'
    )
    parser.add_argument(
        '--output', '-o',
        required=True,
        help='Directory for JSON output files'
    )
    add_config_arguments(parser)

    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    input_dir = Path(args.input)
    output_dir = Path(args.output)

    if not input_dir.is_dir():
        print(f"Error: Input directory not found: {input_dir}", file=sys.stderr)
        return 2

    try:
        config = config_from_args(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    output_dir.mkdir(parents=True, exist_ok=True)

    images = find_images(input_dir)
    if not images:
        print(f"No images found in {input_dir}", file=sys.stderr)
        return 2

    count = clamp_count(args.count)
    total = len(images)
    succeeded = 0
    failed = []

    batch_start = time.perf_counter()

    for i, image_path in enumerate(images, 1):
        try:
            img_start = time.perf_counter()
            palette = extract_from_path(str(image_path), count, config)
            img_elapsed = time.perf_counter() - img_start

            if not palette:
                print(f"[{i}/{total}] {image_path.name} → no colors found ({img_elapsed:.2f}s)")
                succeeded += 1
                continue

            output_file = output_dir / f"{image_path.stem}-palette.json"
            if output_file.exists():
                print(f"  Warning: Overwriting {output_file.name}", file=sys.stderr)
            write_json(palette, output_file)

            print(f"[{i}/{total}] {image_path.name} → {len(palette)} colors ({img_elapsed:.2f}s)")
            succeeded += 1

        except Exception as e:
            error_msg = f"{type(e).__name__}: {e}"
            print(f"[{i}/{total}] {image_path.name} → ERROR: {error_msg}", file=sys.stderr)
            failed.append((image_path.name, error_msg))

    batch_elapsed = time.perf_counter() - batch_start

    # Summary
    print()
    print(f"Completed: {succeeded}/{total} succeeded in {batch_elapsed:.2f}s")
    if succeeded > 0:
        print(f"Average: {batch_elapsed / succeeded:.2f}s per image")
    if failed:
        print(f"Failed ({len(failed)}):")
        for name, error in failed:
            print(f"  - {name}: {error}")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
