#!/usr/bin/env python3
"""
Palette extraction pipeline.

Reduces an image to a short, ordered palette of representative colors with
role labels and WCAG contrast figures.
Five stages: Sample → Quantize → Deduplicate → Order → Contrast
"""

import sys

import numpy as np
from PIL import Image
from scipy.spatial.distance import cdist
from dataclasses import dataclass
from typing import Optional
from loguru import logger

from color_math import (
    WHITE, BLACK, round_half_up, rgb_to_hex, rgb_to_text, rgb_to_hsl_text,
    relative_luminance, contrast_ratio, format_ratio,
)


# =============================================================================
# Constants
# =============================================================================

MAX_DIMENSION = 240  # Longest side of the working image
BUCKET_SIZE = 20  # Side of a quantization cell in RGB units
ALPHA_THRESHOLD = 180  # Pixels below this alpha are ignored
MIN_DISTANCE = 26.0  # Minimum RGB distance between palette colors
CANDIDATE_MULTIPLIER = 2  # Candidates kept per requested color

ROLE_NAMES = (
    'Base', 'Surface', 'Primary', 'Secondary', 'Accent',
    'Muted', 'Highlight', 'Success', 'Warning', 'Info',
)

# Requested color count range accepted by the CLIs
MIN_COUNT = 2
MAX_COUNT = 10
DEFAULT_COUNT = 6

# Image size limits (security: prevent decompression bombs)
MAX_IMAGE_PIXELS = 50_000_000  # 50 megapixels
MAX_IMAGE_DIMENSION = 10_000  # 10k pixels per side


@dataclass(frozen=True)
class PaletteConfig:
    """Tunable parameters for one extraction."""
    max_dimension: int = MAX_DIMENSION
    bucket_size: int = BUCKET_SIZE
    alpha_threshold: int = ALPHA_THRESHOLD
    min_distance: float = MIN_DISTANCE
    candidate_multiplier: int = CANDIDATE_MULTIPLIER
    role_names: tuple = ROLE_NAMES


DEFAULT_CONFIG = PaletteConfig()


def clamp_count(count: int) -> int:
    """Clamp a user-supplied color count to the supported range."""
    return max(MIN_COUNT, min(MAX_COUNT, count))


# =============================================================================
# Data Types
# =============================================================================

@dataclass(frozen=True)
class CandidateColor:
    """Average color of one quantization cell."""
    r: int
    g: int
    b: int
    weight: int  # Pixel count of the cell

    @property
    def rgb(self) -> tuple:
        return (self.r, self.g, self.b)


@dataclass(frozen=True)
class PaletteEntry:
    """A finished palette color."""
    role: str
    hex: str
    rgb_text: str
    hsl_text: str
    contrast_on_white: str  # Two-decimal ratio, e.g. "4.00"
    contrast_on_black: str
    rgb: tuple

    def to_dict(self) -> dict:
        """Export form with the camelCase keys of the JSON download."""
        return {
            'role': self.role,
            'hex': self.hex,
            'rgb': self.rgb_text,
            'hsl': self.hsl_text,
            'contrastOnWhite': self.contrast_on_white,
            'contrastOnBlack': self.contrast_on_black,
        }


# =============================================================================
# Stage 0: Image Loading
# =============================================================================

def load_image(image_path: str) -> Image.Image:
    """
    Open and fully decode an image file.

    Raises:
        FileNotFoundError: If image file doesn't exist
        ValueError: If file is not a valid image or exceeds size limits
    """
    try:
        img = Image.open(image_path)
    except FileNotFoundError:
        raise FileNotFoundError(f"Image not found: {image_path}")
    except Exception as e:
        raise ValueError(f"Could not open image: {e}")

    width, height = img.size
    if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
        raise ValueError(
            f"Image dimensions {width}x{height} exceed maximum "
            f"{MAX_IMAGE_DIMENSION}x{MAX_IMAGE_DIMENSION}"
        )
    if width * height > MAX_IMAGE_PIXELS:
        raise ValueError(
            f"Image has {width * height:,} pixels, exceeding maximum {MAX_IMAGE_PIXELS:,}"
        )

    try:
        img.load()
    except Exception as e:
        raise ValueError(f"Could not decode image: {e}")

    return img


# =============================================================================
# Stage 1: Sampling
# =============================================================================

def working_size(width: int, height: int, max_dimension: int = MAX_DIMENSION) -> tuple[int, int]:
    """Fit (width, height) inside a max_dimension box, never upscaling."""
    scale = min(1.0, max_dimension / max(width, height))
    return max(1, int(width * scale)), max(1, int(height * scale))


def sample_image(img: Image.Image, max_dimension: int = MAX_DIMENSION) -> tuple[bytes, int, int]:
    """
    Downscale an image into the working box and return its RGBA bytes.

    Returns:
        Tuple of (rgba_bytes, width, height), 4 bytes per pixel, row-major
    """
    width, height = working_size(img.width, img.height, max_dimension)
    rgba = img.convert('RGBA')
    if rgba.size != (width, height):
        rgba = rgba.resize((width, height), Image.Resampling.BILINEAR)
        logger.debug(f"Resampled {img.width}x{img.height} → {width}x{height}")
    return rgba.tobytes(), width, height


# =============================================================================
# Stage 2: Quantization
# =============================================================================

def pixel_array(pixels, width: int, height: int) -> np.ndarray:
    """
    View an RGBA8 buffer as an (n, 4) uint8 array.

    Raises:
        ValueError: If dimensions are not positive or the buffer length
            does not equal width * height * 4
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid image dimensions {width}x{height}")

    if isinstance(pixels, (bytes, bytearray, memoryview)):
        flat = np.frombuffer(pixels, dtype=np.uint8)
    else:
        flat = np.asarray(pixels)
        if flat.dtype != np.uint8:
            raise ValueError(f"Pixel buffer must be uint8, got {flat.dtype}")
        flat = flat.reshape(-1)

    expected = width * height * 4
    if flat.size != expected:
        raise ValueError(
            f"Pixel buffer has {flat.size} bytes, expected {expected} "
            f"for a {width}x{height} RGBA image"
        )
    return flat.reshape(-1, 4)


def quantize(pixels, width: int, height: int, count: int,
             config: PaletteConfig = DEFAULT_CONFIG) -> list[CandidateColor]:
    """
    Bucket opaque pixels into RGB cells and rank cell averages by size.

    Ties in pixel count go to the cell whose first pixel came earlier in
    the buffer. The result is truncated to the candidate pool size.
    """
    rgba = pixel_array(pixels, width, height)
    opaque = rgba[rgba[:, 3] >= config.alpha_threshold]
    if len(opaque) == 0:
        logger.debug("No pixels above alpha threshold")
        return []

    rgb = opaque[:, :3].astype(np.int64)
    cells = rgb // config.bucket_size
    grid = 255 // config.bucket_size + 1
    keys = (cells[:, 0] * grid + cells[:, 1]) * grid + cells[:, 2]

    _, first_seen, inverse, counts = np.unique(
        keys, return_index=True, return_inverse=True, return_counts=True
    )
    inverse = inverse.reshape(-1)

    sums = np.column_stack([
        np.bincount(inverse, weights=rgb[:, c], minlength=len(counts))
        for c in range(3)
    ])
    means = sums / counts[:, None]

    # Largest cells first, earliest-seen first among equals
    ranking = np.lexsort((first_seen, -counts))
    pool_size = max(config.candidate_multiplier * count, count)
    ranking = ranking[:pool_size]

    logger.debug(
        f"Quantized {len(opaque)} opaque pixels into {len(counts)} cells, "
        f"keeping {len(ranking)} candidates"
    )

    return [
        CandidateColor(
            r=round_half_up(means[i, 0]),
            g=round_half_up(means[i, 1]),
            b=round_half_up(means[i, 2]),
            weight=int(counts[i]),
        )
        for i in ranking
    ]


# =============================================================================
# Stage 3: Deduplication
# =============================================================================

def deduplicate(candidates: list[CandidateColor], count: int,
                min_distance: float = MIN_DISTANCE) -> list[CandidateColor]:
    """
    Greedily pick up to `count` candidates at least `min_distance` apart.

    When too few distinct colors survive, the remaining slots are filled
    from the ranked list in order, ignoring distance. Candidates are
    identified by list position, so equal colors are still distinct slots.
    """
    if count <= 0 or not candidates:
        return []

    points = np.array([c.rgb for c in candidates], dtype=np.float64)
    distances = cdist(points, points)

    selected = []
    for i in range(len(candidates)):
        if all(distances[i, j] >= min_distance for j in selected):
            selected.append(i)
        if len(selected) >= count:
            break

    if len(selected) < count:
        distinct = len(selected)
        chosen = set(selected)
        for i in range(len(candidates)):
            if i not in chosen:
                selected.append(i)
                chosen.add(i)
            if len(selected) >= count:
                break
        logger.debug(f"Backfilled {len(selected) - distinct} colors below distance {min_distance}")

    return [candidates[i] for i in selected]


# =============================================================================
# Stage 4: Ordering and Contrast
# =============================================================================

def role_for_index(index: int, role_names: tuple = ROLE_NAMES) -> str:
    if index < len(role_names):
        return role_names[index]
    return f"Tone {index + 1}"


def evaluate_contrast(rgb: tuple) -> tuple[str, str]:
    """Contrast of a color against white and against black, formatted."""
    return (
        format_ratio(contrast_ratio(rgb, WHITE)),
        format_ratio(contrast_ratio(rgb, BLACK)),
    )


def build_entry(role: str, rgb: tuple) -> PaletteEntry:
    on_white, on_black = evaluate_contrast(rgb)
    return PaletteEntry(
        role=role,
        hex=rgb_to_hex(*rgb),
        rgb_text=rgb_to_text(*rgb),
        hsl_text=rgb_to_hsl_text(*rgb),
        contrast_on_white=on_white,
        contrast_on_black=on_black,
        rgb=tuple(rgb),
    )


def order_palette(colors: list[CandidateColor],
                  role_names: tuple = ROLE_NAMES) -> list[PaletteEntry]:
    """Sort darkest to lightest (stable) and label each color by rank."""
    ordered = sorted(colors, key=lambda c: relative_luminance(c.rgb))
    return [
        build_entry(role_for_index(i, role_names), color.rgb)
        for i, color in enumerate(ordered)
    ]


# =============================================================================
# Main Pipeline
# =============================================================================

def extract(pixels, width: int, height: int, count: int,
            config: Optional[PaletteConfig] = None) -> list[PaletteEntry]:
    """
    Run quantize → deduplicate → order on an RGBA8 buffer.

    An image without opaque pixels yields an empty list.

    Raises:
        ValueError: If the buffer does not match width and height
    """
    config = config or DEFAULT_CONFIG
    count = max(0, count)

    candidates = quantize(pixels, width, height, count, config)
    selected = deduplicate(candidates, count, config.min_distance)
    palette = order_palette(selected, config.role_names)

    if not palette:
        logger.info(f"Palette is empty ({count} requested)")
    else:
        logger.debug(f"Extracted {len(palette)} of {count} requested colors")
    return palette


def extract_from_image(img: Image.Image, count: int,
                       config: Optional[PaletteConfig] = None) -> list[PaletteEntry]:
    """Sample a decoded image and extract its palette."""
    config = config or DEFAULT_CONFIG
    pixels, width, height = sample_image(img, config.max_dimension)
    return extract(pixels, width, height, count, config)


def extract_from_path(image_path: str, count: int,
                      config: Optional[PaletteConfig] = None) -> list[PaletteEntry]:
    """Load an image file and extract its palette."""
    with load_image(image_path) as img:
        return extract_from_image(img, count, config)


# =============================================================================
# CLI
# =============================================================================

def configure_logging(verbose: bool = False) -> None:
    """Route loguru output to stderr at WARNING, or DEBUG when verbose."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="{time:HH:mm:ss} | {level} | {message}",
        level="DEBUG" if verbose else "WARNING",
    )


def add_config_arguments(parser) -> None:
    """Options shared by the single-image and batch CLIs."""
    parser.add_argument(
        '--count', '-n',
        type=int,
        default=DEFAULT_COUNT,
        help=f'Number of colors to extract ({MIN_COUNT}-{MAX_COUNT}, default {DEFAULT_COUNT})'
    )
    parser.add_argument(
        '--max-size',
        type=int,
        default=MAX_DIMENSION,
        help=f'Longest side of the working image (default {MAX_DIMENSION})'
    )
    parser.add_argument(
        '--bucket-size',
        type=int,
        default=BUCKET_SIZE,
        help=f'Quantization cell size in RGB units (default {BUCKET_SIZE})'
    )
    parser.add_argument(
        '--alpha-threshold',
        type=int,
        default=ALPHA_THRESHOLD,
        help=f'Ignore pixels with alpha below this (default {ALPHA_THRESHOLD})'
    )
    parser.add_argument(
        '--min-distance',
        type=float,
        default=MIN_DISTANCE,
        help=f'Minimum RGB distance between colors (default {MIN_DISTANCE:g})'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Log pipeline details to stderr'
    )


def config_from_args(args) -> PaletteConfig:
    if args.max_size < 1 or args.bucket_size < 1:
        raise ValueError("--max-size and --bucket-size must be positive")
    return PaletteConfig(
        max_dimension=args.max_size,
        bucket_size=args.bucket_size,
        alpha_threshold=args.alpha_threshold,
        min_distance=args.min_distance,
    )


def main(argv=None) -> int:
    import argparse
    from pathlib import Path

    from palette_export import EXPORT_FILENAME, render_text, render_html, render_swatches, write_json

    parser = argparse.ArgumentParser(
        description='Extract an ordered color palette from an image.'
    )
    parser.add_argument(
        '--input', '-i',
        required=True,
        help='Path to the image file'
    )
    parser.add_argument(
        '--json', '-j',
        nargs='?',
        const=True,
        default=None,
        help=f'Write JSON export. Optionally specify path, otherwise {EXPORT_FILENAME}.'
    )
    parser.add_argument(
        '--output', '-o',
        nargs='?',
        const=True,
        default=None,
        help='Write HTML report. Optionally specify path, otherwise auto-names from input.'
    )
    parser.add_argument(
        '--swatch', '-s',
        default=None,
        help='Write a PNG swatch strip to this path'
    )
    add_config_arguments(parser)

    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    image_path = Path(args.input)

    try:
        config = config_from_args(args)
        palette = extract_from_path(str(image_path), clamp_count(args.count), config)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error extracting palette: {e}", file=sys.stderr)
        return 1

    if not palette:
        print("No colors found. Try another image.")
        return 0

    print(render_text(palette))

    outputs = []
    if args.json:
        outputs.append((Path(EXPORT_FILENAME) if args.json is True else Path(args.json), 'json'))
    if args.output:
        if args.output is True:
            html_path = image_path.with_name(f"{image_path.stem}-palette.html")
        else:
            html_path = Path(args.output)
        outputs.append((html_path, 'html'))
    if args.swatch:
        outputs.append((Path(args.swatch), 'png'))

    for output_path, kind in outputs:
        try:
            if kind == 'json':
                write_json(palette, output_path)
            elif kind == 'html':
                output_path.write_text(render_html(palette, str(image_path)))
            else:
                render_swatches(palette, str(output_path))
            print(f"Wrote: {output_path}")
        except OSError as e:
            print(f"Error writing output: {e}", file=sys.stderr)
            return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
