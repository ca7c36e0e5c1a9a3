"""
Renderers for extracted palettes: JSON export, terminal text, HTML report
and PNG swatch strip.
"""

import json
from datetime import datetime, timezone
from html import escape
from pathlib import Path
from typing import Optional

from PIL import Image, ImageDraw

from color_math import relative_luminance, wcag_level


EXPORT_FILENAME = 'chromaflow-palette.json'


# =============================================================================
# JSON Export
# =============================================================================

def iso_timestamp(moment: Optional[datetime] = None) -> str:
    """UTC ISO-8601 timestamp with milliseconds and a Z suffix."""
    moment = moment or datetime.now(timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def build_export(palette: list, generated_at: Optional[datetime] = None) -> dict:
    return {
        'generatedAt': iso_timestamp(generated_at),
        'colorCount': len(palette),
        'colors': [entry.to_dict() for entry in palette],
    }


def export_json(palette: list, generated_at: Optional[datetime] = None) -> str:
    return json.dumps(build_export(palette, generated_at), indent=2, ensure_ascii=False)


def write_json(palette: list, output_path, generated_at: Optional[datetime] = None) -> Path:
    output_path = Path(output_path)
    output_path.write_text(export_json(palette, generated_at) + "\n", encoding='utf-8')
    return output_path


# =============================================================================
# Text
# =============================================================================

def render_text(palette: list) -> str:
    """Render a palette as terminal prose, darkest first."""
    lines = [f"PALETTE: {len(palette)} colors", ""]

    for entry in palette:
        on_white = float(entry.contrast_on_white)
        on_black = float(entry.contrast_on_black)
        lines.append(f"[{entry.role}] {entry.hex}")
        lines.append(f"  {entry.rgb_text} | {entry.hsl_text}")
        lines.append(f"  Contrast W: {entry.contrast_on_white}:1 ({wcag_level(on_white)}) | "
                     f"B: {entry.contrast_on_black}:1 ({wcag_level(on_black)})")
        lines.append("")

    return "\n".join(lines).rstrip()


# =============================================================================
# HTML
# =============================================================================

def text_color_for_background(rgb: tuple) -> str:
    """Return black or white text color, whichever contrasts more."""
    return "#000" if relative_luminance(rgb) > 0.179 else "#fff"


def render_html(palette: list, image_path: str) -> str:
    """Render a palette as a standalone HTML swatch report."""
    safe_path = escape(image_path)

    css = """
        * { box-sizing: border-box; margin: 0; padding: 0; }
        body {
            font-family: system-ui, -apple-system, sans-serif;
            background: #f5f5f5;
            color: #333;
            line-height: 1.5;
            padding: 2rem;
            max-width: 900px;
            margin: 0 auto;
        }
        h1 { font-size: 1.5rem; margin-bottom: 0.5rem; }
        .meta { color: #666; font-size: 0.9rem; margin-bottom: 1rem; }
        .palette-strip {
            display: flex;
            height: 80px;
            border-radius: 8px;
            overflow: hidden;
            box-shadow: 0 2px 8px rgba(0,0,0,0.1);
            margin: 1.5rem 0;
        }
        .palette-strip .swatch {
            flex: 1;
            display: flex;
            align-items: flex-end;
            justify-content: center;
            padding: 0.5rem;
            font-size: 0.7rem;
            font-weight: 500;
        }
        .color-card {
            background: #fff;
            border-radius: 8px;
            padding: 1rem;
            margin-bottom: 1rem;
            box-shadow: 0 1px 3px rgba(0,0,0,0.08);
            display: grid;
            grid-template-columns: 60px 1fr;
            gap: 1rem;
        }
        .color-card .swatch { width: 60px; height: 60px; border-radius: 6px; }
        .role { font-weight: 600; }
        .values { font-family: ui-monospace, monospace; font-size: 0.85rem; }
        .contrast { color: #666; font-size: 0.85rem; }
    """

    lines = [
        '<!DOCTYPE html>',
        '<html lang="en">',
        '<head>',
        '<meta charset="utf-8">',
        f'<title>Palette: {safe_path}</title>',
        f'<style>{css}</style>',
        '</head>',
        '<body>',
        '<h1>Palette</h1>',
        f'<p class="meta">{safe_path} · {len(palette)} colors</p>',
        '<div class="palette-strip">',
    ]

    for entry in palette:
        fg = text_color_for_background(entry.rgb)
        lines.append(f'<div class="swatch" style="background:{entry.hex};color:{fg}">{escape(entry.role)}</div>')
    lines.append('</div>')

    for entry in palette:
        lines.extend([
            '<div class="color-card">',
            f'<div class="swatch" style="background:{entry.hex}"></div>',
            '<div>',
            f'<div class="role">{escape(entry.role)}</div>',
            f'<div class="values">{entry.hex} · {entry.rgb_text} · {entry.hsl_text}</div>',
            f'<div class="contrast">Contrast W:{entry.contrast_on_white} / B:{entry.contrast_on_black}</div>',
            '</div>',
            '</div>',
        ])

    lines.extend(['</body>', '</html>'])
    return '\n'.join(lines)


# =============================================================================
# PNG Swatches
# =============================================================================

def render_swatches(palette: list, output_path: str, swatch_size: int = 80) -> Image.Image:
    """
    Draw the palette as a row of labelled swatches and save it.

    Args:
        palette: PaletteEntry list, drawn left to right
        output_path: Path to save the output image
        swatch_size: Side of each square swatch in pixels
    """
    padding = 10
    text_height = 30
    cols = max(1, len(palette))

    img_width = cols * (swatch_size + padding) + padding
    img_height = swatch_size + text_height + 2 * padding

    img = Image.new('RGB', (img_width, img_height), (240, 240, 240))
    draw = ImageDraw.Draw(img)

    for i, entry in enumerate(palette):
        x = padding + i * (swatch_size + padding)
        y = padding

        draw.rectangle([x, y, x + swatch_size, y + swatch_size], fill=tuple(entry.rgb))

        # Role and hex centered under the swatch
        for line_no, text in enumerate((entry.role, entry.hex)):
            bbox = draw.textbbox((0, 0), text)
            text_width = bbox[2] - bbox[0]
            text_x = x + (swatch_size - text_width) // 2
            draw.text((text_x, y + swatch_size + 2 + line_no * 13), text, fill=(0, 0, 0))

    img.save(output_path)
    return img
