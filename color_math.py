"""
Color conversions and WCAG contrast math shared by the palette pipeline.

All functions take plain 8-bit channel values (0-255).
"""

import math
import string


# =============================================================================
# Constants
# =============================================================================

WHITE = (255, 255, 255)
BLACK = (0, 0, 0)

# sRGB linearization knee (WCAG 2.x uses 0.03928)
LINEAR_KNEE = 0.03928

# Rec.709 luminance weights
LUMA_WEIGHTS = (0.2126, 0.7152, 0.0722)


def round_half_up(value: float) -> int:
    """Round to nearest integer, halves toward +infinity."""
    return int(math.floor(value + 0.5))


# =============================================================================
# Text Formats
# =============================================================================

def rgb_to_hex(r: int, g: int, b: int) -> str:
    """Convert RGB channels to an uppercase #RRGGBB string."""
    return f"#{r:02X}{g:02X}{b:02X}"


def hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
    """Parse #RRGGBB (or RRGGBB) into an RGB tuple.

    Raises:
        ValueError: If the string is not six hex digits
    """
    digits = hex_color[1:] if hex_color.startswith('#') else hex_color
    if len(digits) != 6 or any(ch not in string.hexdigits for ch in digits):
        raise ValueError(f"Invalid hex color: {hex_color!r}")
    return tuple(int(digits[i:i + 2], 16) for i in (0, 2, 4))


def rgb_to_text(r: int, g: int, b: int) -> str:
    return f"rgb({r}, {g}, {b})"


def rgb_to_hsl(r: int, g: int, b: int) -> tuple[int, int, int]:
    """Convert RGB to (hue degrees, saturation %, lightness %), all rounded.

    Hue is 0 for achromatic colors and always falls in [0, 360).
    """
    r1, g1, b1 = r / 255, g / 255, b / 255
    high = max(r1, g1, b1)
    low = min(r1, g1, b1)
    delta = high - low

    hue = 0
    if delta != 0:
        if high == r1:
            h = math.fmod((g1 - b1) / delta, 6)
        elif high == g1:
            h = (b1 - r1) / delta + 2
        else:
            h = (r1 - g1) / delta + 4
        hue = round_half_up(h * 60) % 360

    lightness = (high + low) / 2
    saturation = 0 if delta == 0 else delta / (1 - abs(2 * lightness - 1))

    return hue, round_half_up(saturation * 100), round_half_up(lightness * 100)


def rgb_to_hsl_text(r: int, g: int, b: int) -> str:
    """CSS Color 4 space-separated form, e.g. ``hsl(0 100% 50%)``."""
    h, s, l = rgb_to_hsl(r, g, b)
    return f"hsl({h} {s}% {l}%)"


# =============================================================================
# Luminance and Contrast
# =============================================================================

def relative_luminance(rgb: tuple) -> float:
    """WCAG relative luminance of an RGB triple (0.0 black - 1.0 white)."""
    linear = []
    for value in rgb[:3]:
        c = value / 255
        linear.append(c / 12.92 if c <= LINEAR_KNEE else ((c + 0.055) / 1.055) ** 2.4)
    return sum(w * c for w, c in zip(LUMA_WEIGHTS, linear))


def contrast_ratio(rgb1: tuple, rgb2: tuple) -> float:
    """WCAG contrast ratio between two colors, in [1, 21]."""
    l1 = relative_luminance(rgb1)
    l2 = relative_luminance(rgb2)
    lighter = max(l1, l2)
    darker = min(l1, l2)
    return (lighter + 0.05) / (darker + 0.05)


def format_ratio(ratio: float) -> str:
    return f"{ratio:.2f}"


def wcag_level(ratio: float) -> str:
    """Classify a contrast ratio: 'AAA', 'AA', 'AA-large' or 'fail'."""
    if ratio >= 7:
        return "AAA"
    elif ratio >= 4.5:
        return "AA"
    elif ratio >= 3:
        return "AA-large"
    return "fail"


def color_distance(rgb1: tuple, rgb2: tuple) -> float:
    """Euclidean distance in RGB space."""
    return math.sqrt(sum((a - b) ** 2 for a, b in zip(rgb1[:3], rgb2[:3])))
