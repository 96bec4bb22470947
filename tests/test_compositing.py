import numpy as np
import pytest

from flextext.image.compositing import blend_source_over, composite
from flextext.models import ContentKind, OutputImage, RasterizedGlyph, SourceKind
from utils.exceptions import UnsupportedContentKindError

WHITE = (255, 255, 255, 255)
BLACK = (0, 0, 0, 255)


def mask_glyph(coverage, width=1, height=1):
    data = np.full((height, width), coverage, dtype=np.uint8)
    return RasterizedGlyph(ContentKind.MASK, SourceKind.OUTLINE, data, 0, 0, width, height)


def color_glyph(rgba, width=1, height=1):
    data = np.zeros((height, width, 4), dtype=np.uint8)
    data[:, :] = rgba
    return RasterizedGlyph(ContentKind.COLOR, SourceKind.COLOR_BITMAP, data, 0, 0, width, height)


def test_zero_coverage_leaves_pixels_untouched():
    image = OutputImage(4, 4, (12, 34, 56, 78))
    before = image.pixels.copy()
    clipped = composite(image, mask_glyph(0, 4, 4), (0, 0), BLACK)
    assert clipped is False
    assert np.array_equal(image.pixels, before)


def test_full_coverage_writes_brush():
    image = OutputImage(2, 2, WHITE)
    composite(image, mask_glyph(255), (1, 1), (10, 20, 30, 255))
    assert image.pixel(1, 1) == (10, 20, 30, 255)
    assert image.pixel(0, 0) == WHITE


def test_half_coverage_over_white_then_again():
    image = OutputImage(1, 1, WHITE)
    composite(image, mask_glyph(128), (0, 0), BLACK)
    assert image.pixel(0, 0) == (127, 127, 127, 255)
    composite(image, mask_glyph(128), (0, 0), BLACK)
    assert image.pixel(0, 0) == (63, 63, 63, 255)


def test_brush_alpha_scales_coverage():
    image = OutputImage(1, 1, WHITE)
    composite(image, mask_glyph(255), (0, 0), (0, 0, 0, 128))
    assert image.pixel(0, 0) == (127, 127, 127, 255)


def test_blend_onto_transparent_destination_keeps_source_color():
    image = OutputImage(1, 1, (0, 0, 0, 0))
    composite(image, mask_glyph(128), (0, 0), (255, 0, 0, 255))
    assert image.pixel(0, 0) == (255, 0, 0, 128)


def test_color_glyph_ignores_brush():
    image = OutputImage(1, 1, WHITE)
    composite(image, color_glyph((255, 0, 0, 255)), (0, 0), (0, 0, 255, 255))
    assert image.pixel(0, 0) == (255, 0, 0, 255)


def test_color_glyph_transparent_pixels_untouched():
    image = OutputImage(2, 1, WHITE)
    glyph = color_glyph((0, 0, 0, 0), width=2)
    glyph.data[0, 1] = (0, 255, 0, 255)
    composite(image, glyph, (0, 0), BLACK)
    assert image.pixel(0, 0) == WHITE
    assert image.pixel(1, 0) == (0, 255, 0, 255)


def test_partially_outside_glyph_is_clipped():
    image = OutputImage(10, 10, WHITE)
    clipped = composite(image, mask_glyph(255, 4, 4), (-2, -2), BLACK)
    assert clipped is True
    assert image.pixel(0, 0) == BLACK
    assert image.pixel(1, 1) == BLACK
    assert image.pixel(2, 2) == WHITE


def test_glyph_past_bottom_right_is_clipped():
    image = OutputImage(10, 10, WHITE)
    assert composite(image, mask_glyph(255, 4, 4), (8, 8), BLACK) is True
    assert image.pixel(9, 9) == BLACK
    assert image.pixel(7, 7) == WHITE


def test_fully_outside_glyph_changes_nothing():
    image = OutputImage(10, 10, WHITE)
    before = image.pixels.copy()
    assert composite(image, mask_glyph(255, 4, 4), (20, 20), BLACK) is True
    assert np.array_equal(image.pixels, before)


def test_empty_glyph_is_a_no_op():
    image = OutputImage(2, 2, WHITE)
    empty = RasterizedGlyph(ContentKind.MASK, SourceKind.OUTLINE, np.zeros((0, 0), dtype=np.uint8), 0, 0, 0, 0)
    assert composite(image, empty, (0, 0), BLACK) is False
    assert image.pixel(0, 0) == WHITE


def test_subpixel_mask_is_rejected():
    image = OutputImage(2, 2, WHITE)
    glyph = RasterizedGlyph(
        ContentKind.SUBPIXEL_MASK, SourceKind.OUTLINE, np.zeros((1, 1, 3), dtype=np.uint8), 0, 0, 1, 1
    )
    with pytest.raises(UnsupportedContentKindError):
        composite(image, glyph, (0, 0), BLACK)


def test_blend_source_over_opaque_destination_is_linear_mix():
    dst = np.array([[[200, 100, 0, 255]]], dtype=np.uint8)
    src_rgb = np.array([[[0.0, 0.0, 100.0]]])
    src_alpha = np.array([[0.25]])
    out = blend_source_over(dst, src_rgb, src_alpha)
    assert tuple(out[0, 0]) == (150, 75, 25, 255)
