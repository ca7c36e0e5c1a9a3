"""
Unit tests for the palette extraction pipeline.

Covers each stage (sampling, quantization, deduplication, ordering) and
the end-to-end extract() behaviour on synthetic buffers.
"""

import itertools

import numpy as np
import pytest
from PIL import Image

from color_math import relative_luminance, color_distance
from extract_palette import (
    PaletteConfig, CandidateColor, ROLE_NAMES, clamp_count, working_size,
    sample_image, pixel_array, quantize, deduplicate, order_palette,
    role_for_index, extract, extract_from_image, extract_from_path, load_image,
)


class TestSampling:
    """Working-size box and resampling"""

    def test_working_size_downscales_longest_side(self):
        assert working_size(480, 240, 240) == (240, 120)
        assert working_size(240, 960, 240) == (60, 240)

    def test_working_size_never_upscales(self):
        assert working_size(100, 50, 240) == (100, 50)

    def test_working_size_keeps_at_least_one_pixel(self):
        assert working_size(1000, 1, 240) == (240, 1)

    def test_sample_image_returns_rgba_bytes(self):
        img = Image.new('RGB', (480, 240), (255, 0, 0))
        pixels, width, height = sample_image(img, 240)
        assert (width, height) == (240, 120)
        assert len(pixels) == 240 * 120 * 4
        assert pixels[:4] == bytes([255, 0, 0, 255])

    def test_sample_image_small_image_untouched(self):
        img = Image.new('RGBA', (3, 2), (1, 2, 3, 4))
        pixels, width, height = sample_image(img)
        assert (width, height) == (3, 2)
        assert pixels == bytes([1, 2, 3, 4]) * 6


class TestPixelArray:
    """Buffer validation"""

    def test_wrong_length_rejected(self, make_buffer):
        with pytest.raises(ValueError, match="expected 16"):
            pixel_array(make_buffer([(0, 0, 0, 255)] * 3), 2, 2)

    def test_non_positive_dimensions_rejected(self):
        with pytest.raises(ValueError):
            pixel_array(b"", 0, 0)

    def test_non_uint8_array_rejected(self):
        with pytest.raises(ValueError, match="uint8"):
            pixel_array(np.zeros((2, 2, 4), dtype=np.float32), 2, 2)

    def test_accepts_image_shaped_array(self, noise_image):
        rgba = pixel_array(noise_image, 40, 30)
        assert rgba.shape == (1200, 4)


class TestQuantize:
    """Bucketing, averaging and ranking"""

    def test_uniform_image_single_candidate(self, red_2x2):
        pixels, width, height = red_2x2
        assert quantize(pixels, width, height, 3) == [CandidateColor(255, 0, 0, 4)]

    def test_bucket_mean_rounds_half_up(self, make_buffer):
        pixels = make_buffer([(0, 0, 0, 255), (1, 1, 1, 255)])
        assert quantize(pixels, 2, 1, 2) == [CandidateColor(1, 1, 1, 2)]

    def test_alpha_threshold_is_inclusive(self, make_buffer):
        pixels = make_buffer([(200, 0, 0, 180), (0, 0, 200, 179)])
        candidates = quantize(pixels, 2, 1, 2)
        assert [c.rgb for c in candidates] == [(200, 0, 0)]

    def test_ranked_by_weight(self, make_buffer):
        pixels = make_buffer([(0, 0, 255, 255)] + [(255, 0, 0, 255)] * 3)
        candidates = quantize(pixels, 4, 1, 2)
        assert [c.rgb for c in candidates] == [(255, 0, 0), (0, 0, 255)]
        assert [c.weight for c in candidates] == [3, 1]

    def test_ties_go_to_first_seen_bucket(self, make_buffer):
        blue_first = make_buffer([(0, 0, 255, 255), (255, 0, 0, 255)])
        red_first = make_buffer([(255, 0, 0, 255), (0, 0, 255, 255)])
        assert [c.rgb for c in quantize(blue_first, 2, 1, 2)] == [(0, 0, 255), (255, 0, 0)]
        assert [c.rgb for c in quantize(red_first, 2, 1, 2)] == [(255, 0, 0), (0, 0, 255)]

    def test_pool_truncated_to_twice_count(self, make_buffer):
        colors = [(i * 50, 0, 0, 255) for i in range(6)]
        assert len(quantize(make_buffer(colors), 6, 1, 2)) == 4

    def test_custom_bucket_size(self, make_buffer):
        pixels = make_buffer([(0, 0, 0, 255), (30, 30, 30, 255)])
        assert len(quantize(pixels, 2, 1, 2)) == 2
        merged = quantize(pixels, 2, 1, 2, PaletteConfig(bucket_size=64))
        assert merged == [CandidateColor(15, 15, 15, 2)]

    def test_fully_transparent_yields_nothing(self, make_buffer):
        pixels = make_buffer([(255, 255, 255, 0)] * 4)
        assert quantize(pixels, 2, 2, 5) == []


class TestDeduplicate:
    """Distance filter and backfill"""

    def test_skips_close_colors(self):
        a = CandidateColor(100, 100, 100, 10)
        b = CandidateColor(110, 100, 100, 8)
        c = CandidateColor(200, 0, 0, 5)
        assert deduplicate([a, b, c], 2) == [a, c]

    def test_backfills_in_rank_order(self):
        a = CandidateColor(100, 100, 100, 10)
        b = CandidateColor(110, 100, 100, 8)
        c = CandidateColor(200, 0, 0, 5)
        assert deduplicate([a, b, c], 3) == [a, c, b]

    def test_threshold_distance_is_accepted(self):
        a = CandidateColor(0, 0, 0, 2)
        b = CandidateColor(26, 0, 0, 1)
        assert deduplicate([a, b], 2, min_distance=26) == [a, b]

    def test_backfill_identifies_by_position(self):
        # Value-equal candidates are still separate slots
        first = CandidateColor(50, 50, 50, 3)
        second = CandidateColor(50, 50, 50, 3)
        assert len(deduplicate([first, second], 2)) == 2

    def test_never_exceeds_count(self):
        candidates = [CandidateColor(i * 40, 0, 0, 10 - i) for i in range(6)]
        assert len(deduplicate(candidates, 3)) == 3

    def test_zero_count(self):
        assert deduplicate([CandidateColor(1, 2, 3, 1)], 0) == []


class TestOrdering:
    """Luminance sort and role labels"""

    def test_sorted_dark_to_light_with_roles(self):
        grays = [CandidateColor(v, v, v, 1) for v in range(200, -1, -20)]
        palette = order_palette(grays)
        assert [entry.rgb[0] for entry in palette] == list(range(0, 201, 20))
        assert palette[0].role == "Base"
        assert palette[9].role == "Info"
        assert palette[10].role == "Tone 11"

    def test_role_for_index(self):
        assert role_for_index(0) == ROLE_NAMES[0]
        assert role_for_index(len(ROLE_NAMES)) == f"Tone {len(ROLE_NAMES) + 1}"
        assert role_for_index(1, ('Dark', 'Light')) == 'Light'
        assert role_for_index(2, ('Dark', 'Light')) == 'Tone 3'

    def test_entry_fields(self):
        entry = order_palette([CandidateColor(255, 0, 0, 4)])[0]
        assert entry.hex == "#FF0000"
        assert entry.rgb_text == "rgb(255, 0, 0)"
        assert entry.hsl_text == "hsl(0 100% 50%)"
        assert entry.rgb == (255, 0, 0)


class TestExtract:
    """End-to-end extraction on buffers"""

    def test_uniform_red(self, red_2x2):
        palette = extract(*red_2x2, 3)
        assert len(palette) == 1
        entry = palette[0]
        assert entry.role == "Base"
        assert entry.hex == "#FF0000"
        assert entry.contrast_on_white == "4.00"
        assert entry.contrast_on_black == "5.25"

    def test_white_and_black(self, white_black_5x2):
        palette = extract(*white_black_5x2, 2)
        assert [entry.hex for entry in palette] == ["#000000", "#FFFFFF"]
        assert [entry.role for entry in palette] == ["Base", "Surface"]
        assert palette[0].contrast_on_white == "21.00"
        assert palette[1].contrast_on_black == "21.00"

    @pytest.mark.parametrize("count", [0, 1, 3, 10])
    def test_all_transparent_is_empty(self, make_buffer, count):
        pixels = make_buffer([(10, 200, 30, 100)] * 6)
        assert extract(pixels, 3, 2, count) == []

    def test_negative_count_is_empty(self, red_2x2):
        assert extract(*red_2x2, -1) == []

    def test_malformed_buffer_raises(self, red_2x2):
        pixels, _, _ = red_2x2
        with pytest.raises(ValueError):
            extract(pixels, 3, 3, 2)

    @pytest.mark.parametrize("count", [1, 2, 6, 10])
    def test_invariants_on_noise(self, noise_image, count):
        palette = extract(noise_image, 40, 30, count)
        assert 0 < len(palette) <= count
        luminances = [relative_luminance(entry.rgb) for entry in palette]
        assert luminances == sorted(luminances)
        for entry in palette:
            assert all(0 <= channel <= 255 for channel in entry.rgb)

    def test_distinct_colors_respect_distance(self, make_buffer):
        colors = [(250, 10, 10), (10, 250, 10), (10, 10, 250), (240, 240, 240)]
        pixels = make_buffer([(*rgb, 255) for rgb in colors for _ in range(3)]
                             + [(245, 15, 15, 255)] * 2)
        palette = extract(pixels, 7, 2, 4)
        assert len(palette) == 4
        for a, b in itertools.combinations(palette, 2):
            assert color_distance(a.rgb, b.rgb) >= 26

    def test_idempotent(self, noise_image):
        assert extract(noise_image, 40, 30, 6) == extract(noise_image, 40, 30, 6)

    def test_custom_role_names(self, white_black_5x2):
        config = PaletteConfig(role_names=('Ink', 'Paper'))
        palette = extract(*white_black_5x2, 2, config)
        assert [entry.role for entry in palette] == ['Ink', 'Paper']


class TestImageInput:
    """Loading and extracting from decoded images and files"""

    def test_extract_from_image_downscales(self):
        img = Image.new('RGB', (600, 300), (0, 128, 255))
        palette = extract_from_image(img, 3)
        assert [entry.hex for entry in palette] == ["#0080FF"]

    def test_transparent_png_is_empty(self, write_image):
        path = write_image("clear.png", (0, 0, 0, 0))
        assert extract_from_path(path, 4) == []

    def test_extract_from_path(self, write_image):
        path = write_image("red.png", (255, 0, 0, 255))
        palette = extract_from_path(path, 3)
        assert [entry.hex for entry in palette] == ["#FF0000"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_image(str(tmp_path / "nope.png"))

    def test_not_an_image(self, tmp_path):
        path = tmp_path / "notes.png"
        path.write_text("not an image")
        with pytest.raises(ValueError):
            load_image(str(path))


def test_clamp_count():
    assert clamp_count(0) == 2
    assert clamp_count(5) == 5
    assert clamp_count(50) == 10
