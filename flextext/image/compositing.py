from typing import Optional, Tuple

import numpy as np

from flextext.models import Color, ContentKind, OutputImage, RasterizedGlyph
from utils.exceptions import UnsupportedContentKindError


def _clip(image: OutputImage, x: int, y: int, width: int, height: int) -> Optional[Tuple[slice, slice, slice, slice]]:
    """Returns (dst_rows, dst_cols, src_rows, src_cols) for the visible part, or None."""
    x1, y1 = max(0, x), max(0, y)
    x2, y2 = min(image.width, x + width), min(image.height, y + height)
    if x2 <= x1 or y2 <= y1:
        return None
    gx1, gy1 = x1 - x, y1 - y
    return (
        slice(y1, y2),
        slice(x1, x2),
        slice(gy1, gy1 + (y2 - y1)),
        slice(gx1, gx1 + (x2 - x1)),
    )


def blend_source_over(dst: np.ndarray, src_rgb: np.ndarray, src_alpha: np.ndarray) -> np.ndarray:
    """
    Non-premultiplied source-over of src onto dst.

    dst: (h, w, 4) uint8, src_rgb: (h, w, 3) float in [0, 255], src_alpha: (h, w) float in [0, 1].
    Pixels with zero source alpha are returned unchanged.
    """
    dst_f = dst.astype(np.float64) / 255.0
    src_a = src_alpha[..., None]
    dst_a = dst_f[..., 3:4]

    out_a = src_a + dst_a * (1.0 - src_a)
    safe_a = np.where(out_a > 0.0, out_a, 1.0)
    out_rgb = (src_rgb / 255.0 * src_a + dst_f[..., :3] * dst_a * (1.0 - src_a)) / safe_a

    blended = np.concatenate([out_rgb, out_a], axis=-1)
    blended = np.clip(np.rint(blended * 255.0), 0, 255).astype(np.uint8)
    return np.where(src_a > 0.0, blended, dst)


def composite(image: OutputImage, glyph: RasterizedGlyph, origin: Tuple[int, int], brush: Color) -> bool:
    """
    Blends a rasterized glyph onto the image with its top-left corner at origin.

    Coverage masks are tinted with the brush color; color bitmaps carry their
    own RGBA and ignore the brush. Anything outside the image is clipped.

    Returns:
        True if part of the glyph was clipped away

    Raises:
        UnsupportedContentKindError: For sub-pixel (LCD) coverage masks
    """
    if glyph.content is ContentKind.SUBPIXEL_MASK:
        raise UnsupportedContentKindError("Sub-pixel coverage masks are not supported")
    if glyph.is_empty:
        return False

    x, y = origin
    region = _clip(image, x, y, glyph.width, glyph.height)
    if region is None:
        return True
    dst_rows, dst_cols, src_rows, src_cols = region

    dst = image.pixels[dst_rows, dst_cols]
    if glyph.content is ContentKind.MASK:
        coverage = glyph.data[src_rows, src_cols].astype(np.float64) / 255.0
        src_alpha = coverage * (brush[3] / 255.0)
        src_rgb = np.broadcast_to(np.asarray(brush[:3], dtype=np.float64), coverage.shape + (3,))
    else:
        src = glyph.data[src_rows, src_cols].astype(np.float64)
        src_alpha = src[..., 3] / 255.0
        src_rgb = src[..., :3]

    image.pixels[dst_rows, dst_cols] = blend_source_over(dst, src_rgb, src_alpha)

    visible = (dst_rows.stop - dst_rows.start) * (dst_cols.stop - dst_cols.start)
    return visible != glyph.width * glyph.height
