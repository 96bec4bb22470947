import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np
import skia

from flextext.models import ContentKind, FontFace, GlyphRun, RasterizedGlyph, SourceKind
from flextext.text.font_manager import FontCollection
from utils.exceptions import RasterizationError
from utils.logging import log_message

HINTING_MAP = {
    "none": skia.FontHinting.kNone,
    "slight": skia.FontHinting.kSlight,
    "normal": skia.FontHinting.kNormal,
    "full": skia.FontHinting.kFull,
}

# First available source wins
SOURCE_ORDER = (SourceKind.COLOR_OUTLINE, SourceKind.COLOR_BITMAP, SourceKind.OUTLINE)

# Extra pixels around the glyph bounds for anti-aliasing fringe
_BOUNDS_PADDING = 1


@dataclass
class RasterizerContext:
    """Scaler state shared by every glyph of one run (font, size, hinting, variations)."""

    face: FontFace
    typeface: skia.Typeface
    font: skia.Font
    glyph_count: int


def select_source(face: FontFace, glyph_id: int) -> SourceKind:
    for source in SOURCE_ORDER:
        if source is SourceKind.COLOR_OUTLINE and glyph_id in face.color_outline_glyphs:
            return source
        if source is SourceKind.COLOR_BITMAP and glyph_id in face.color_bitmap_glyphs:
            return source
    return SourceKind.OUTLINE


def fractional_offset(x: float, y: float) -> Tuple[float, float]:
    """Fractional pixel part of a glyph position."""
    return x - math.floor(x), y - math.floor(y)


class GlyphRasterizer:
    def __init__(self, font_collection: FontCollection, font_hinting: str = "normal",
                 use_subpixel_positioning: bool = True, verbose: bool = False):
        self.font_collection = font_collection
        self.hinting = HINTING_MAP.get(font_hinting.lower(), skia.FontHinting.kNone)
        self.use_subpixel_positioning = use_subpixel_positioning
        self.verbose = verbose

    def build_context(self, run: GlyphRun) -> RasterizerContext:
        """
        Builds the scaler for a run. Font properties are constant across a run,
        so this is done once per run and reused for each of its glyphs.

        Raises:
            FontError: If Skia cannot load the run's typeface
        """
        typeface = self.font_collection.typeface(run.font)
        skia_font = skia.Font(typeface, run.font_size)
        skia_font.setHinting(self.hinting)
        skia_font.setSubpixel(self.use_subpixel_positioning)
        skia_font.setEdging(skia.Font.Edging.kAntiAlias)
        log_message(
            f"Scaler: {run.font.face.family} {run.font.face.style_name} size={run.font_size} coords={run.font.coords}",
            verbose=self.verbose,
        )
        return RasterizerContext(
            face=run.font.face,
            typeface=typeface,
            font=skia_font,
            glyph_count=typeface.countGlyphs(),
        )

    def rasterize(self, context: RasterizerContext, glyph_id: int,
                  offset: Tuple[float, float] = (0.0, 0.0)) -> RasterizedGlyph:
        """
        Renders one glyph at the given fractional pixel offset.

        Raises:
            RasterizationError: If the glyph id is invalid or Skia fails to draw it
        """
        if not 0 <= glyph_id < context.glyph_count:
            raise RasterizationError(
                f"Glyph id {glyph_id} out of range for {context.face.family} ({context.glyph_count} glyphs)",
                glyph_id,
            )

        source = select_source(context.face, glyph_id)
        content = ContentKind.MASK if source is SourceKind.OUTLINE else ContentKind.COLOR
        offset_x, offset_y = offset

        try:
            bounds = context.font.getBounds([glyph_id])[0]
        except Exception as e:
            raise RasterizationError(f"Failed to measure glyph {glyph_id}: {e}", glyph_id) from e

        if bounds.isEmpty():
            empty_shape = (0, 0) if content is ContentKind.MASK else (0, 0, 4)
            return RasterizedGlyph(content, source, np.zeros(empty_shape, dtype=np.uint8), 0, 0, 0, 0)

        x0 = math.floor(offset_x + bounds.left()) - _BOUNDS_PADDING
        y0 = math.floor(offset_y + bounds.top()) - _BOUNDS_PADDING
        x1 = math.ceil(offset_x + bounds.right()) + _BOUNDS_PADDING
        y1 = math.ceil(offset_y + bounds.bottom()) + _BOUNDS_PADDING
        width, height = x1 - x0, y1 - y0

        try:
            rgba = self._draw(context, glyph_id, offset_x - x0, offset_y - y0, width, height)
        except RasterizationError:
            raise
        except Exception as e:
            raise RasterizationError(f"Skia failed to render glyph {glyph_id}: {e}", glyph_id) from e

        data = rgba[:, :, 3].copy() if content is ContentKind.MASK else rgba
        return RasterizedGlyph(content, source, data, x0, -y0, width, height)

    @staticmethod
    def _draw(context: RasterizerContext, glyph_id: int, origin_x: float, origin_y: float,
              width: int, height: int) -> np.ndarray:
        surface = skia.Surface(width, height)
        builder = skia.TextBlobBuilder()
        builder.allocRunPos(context.font, [glyph_id], [skia.Point(origin_x, origin_y)])
        text_blob = builder.make()
        if text_blob is None:
            raise RasterizationError(f"TextBlob build failed for glyph {glyph_id}", glyph_id)

        paint = skia.Paint(AntiAlias=True, Color=skia.ColorBLACK)
        with surface as canvas:
            canvas.clear(skia.ColorTRANSPARENT)
            canvas.drawTextBlob(text_blob, 0, 0, paint)

        skia_image = surface.makeImageSnapshot()
        if skia_image is None:
            raise RasterizationError(f"Skia surface snapshot failed for glyph {glyph_id}", glyph_id)
        skia_image = skia_image.convert(alphaType=skia.kUnpremul_AlphaType, colorType=skia.kRGBA_8888_ColorType)
        return np.array(skia_image, dtype=np.uint8).reshape(height, width, 4)
