import io
import string

import pytest
from fontTools.colorLib.builder import buildCOLR, buildCPAL
from fontTools.fontBuilder import FontBuilder
from fontTools.pens.ttGlyphPen import TTGlyphPen
from fontTools.ttLib import newTable
from fontTools.ttLib.tables.sbixGlyph import Glyph as SbixGlyph
from fontTools.ttLib.tables.sbixStrike import Strike as SbixStrike
from PIL import Image

from flextext.config import TextConfig
from flextext.text.font_manager import FontCollection
from flextext.text.layout_engine import TextLayoutBuilder

UPEM = 1000
ASCENT = 800
DESCENT = -200
CHARSET = string.ascii_letters + string.digits + ".,;:!?'-"
REGULAR_ADVANCE = 500
BOLD_ADVANCE = 600
SPACE_ADVANCE = 250
FAMILY = "Test Sans"
BITMAP_PPEM = 32
BITMAP_COLOR = (20, 160, 60, 255)


def glyph_name(ch):
    return f"uni{ord(ch):04X}"


def rect(pen, x0, y0, x1, y1):
    pen.moveTo((x0, y0))
    pen.lineTo((x0, y1))
    pen.lineTo((x1, y1))
    pen.lineTo((x1, y0))
    pen.closePath()


def rect_glyph(x0, y0, x1, y1):
    pen = TTGlyphPen(None)
    rect(pen, x0, y0, x1, y1)
    return pen.glyph()


def empty_glyph():
    return TTGlyphPen(None).glyph()


def png_square(size, color):
    buffer = io.BytesIO()
    Image.new("RGBA", (size, size), color).save(buffer, format="PNG")
    return buffer.getvalue()


def build_test_font(family=FAMILY, style="Regular", weight=400, advance=REGULAR_ADVANCE,
                    color_glyph=False, bitmap_glyph=False):
    """
    Builds a TrueType font whose letters are solid rectangles.

    Every character of CHARSET advances by ``advance`` units, space by
    SPACE_ADVANCE. With color_glyph, "uni0041" (A) gets a two-layer COLR v0 record.
    With bitmap_glyph, "uni0042" (B) gets a solid PNG in an sbix strike at BITMAP_PPEM.
    """
    glyph_order = [".notdef", "space"] + [glyph_name(ch) for ch in CHARSET]
    cmap = {0x20: "space"}
    cmap.update({ord(ch): glyph_name(ch) for ch in CHARSET})

    glyphs = {".notdef": rect_glyph(50, 0, advance - 50, 700), "space": empty_glyph()}
    for ch in CHARSET:
        glyphs[glyph_name(ch)] = rect_glyph(50, 0, advance - 50, 700)

    layer_names = []
    if color_glyph:
        layer_names = ["A.layer1", "A.layer2"]
        glyph_order += layer_names
        glyphs["A.layer1"] = rect_glyph(50, 0, advance - 50, 700)
        glyphs["A.layer2"] = rect_glyph(150, 200, advance - 150, 500)

    metrics = {name: (advance, 50) for name in glyph_order}
    metrics["space"] = (SPACE_ADVANCE, 0)

    fb = FontBuilder(UPEM, isTTF=True)
    fb.setupGlyphOrder(glyph_order)
    fb.setupCharacterMap(cmap)
    fb.setupGlyf(glyphs)
    fb.setupHorizontalMetrics(metrics)
    fb.setupHorizontalHeader(ascent=ASCENT, descent=DESCENT)
    fb.setupOS2(
        sTypoAscender=ASCENT,
        sTypoDescender=DESCENT,
        usWinAscent=ASCENT,
        usWinDescent=-DESCENT,
        usWeightClass=weight,
    )
    fb.setupNameTable(
        {
            "familyName": family,
            "styleName": style,
            "fullName": f"{family} {style}",
            "psName": f"{family.replace(' ', '')}-{style}",
        }
    )
    fb.setupPost()
    fb.setupMaxp()

    if color_glyph:
        fb.font["CPAL"] = buildCPAL([[(0.8, 0.1, 0.1, 1.0), (0.1, 0.1, 0.8, 1.0)]])
        fb.font["COLR"] = buildCOLR(
            {glyph_name("A"): [("A.layer1", 0), ("A.layer2", 1)]},
            version=0,
            glyphMap=fb.font.getReverseGlyphMap(),
        )

    if bitmap_glyph:
        strike = SbixStrike(ppem=BITMAP_PPEM, resolution=72)
        strike.glyphs[glyph_name("B")] = SbixGlyph(
            glyphName=glyph_name("B"),
            graphicType="png ",
            imageData=png_square(BITMAP_PPEM, BITMAP_COLOR),
        )
        fb.font["sbix"] = newTable("sbix")
        fb.font["sbix"].strikes[BITMAP_PPEM] = strike

    fb.font["head"].created = 0
    fb.font["head"].modified = 0

    buffer = io.BytesIO()
    fb.save(buffer)
    return buffer.getvalue()


@pytest.fixture(scope="session")
def regular_font_data():
    return build_test_font()


@pytest.fixture(scope="session")
def bold_font_data():
    return build_test_font(style="Bold", weight=700, advance=BOLD_ADVANCE)


@pytest.fixture(scope="session")
def color_font_data():
    return build_test_font(family="Test Color", color_glyph=True)


@pytest.fixture(scope="session")
def bitmap_font_data():
    return build_test_font(family="Test Bitmap", bitmap_glyph=True)


@pytest.fixture
def font_collection(regular_font_data, bold_font_data):
    collection = FontCollection()
    collection.register_fonts(regular_font_data, source="TestSans-Regular.ttf")
    collection.register_fonts(bold_font_data, source="TestSans-Bold.ttf")
    return collection


@pytest.fixture
def builder(font_collection):
    return TextLayoutBuilder(font_collection, TextConfig(), family=FAMILY)


@pytest.fixture
def font_files(tmp_path, regular_font_data, bold_font_data):
    font_dir = tmp_path / "fonts"
    font_dir.mkdir()
    regular_path = font_dir / "TestSans-Regular.ttf"
    bold_path = font_dir / "TestSans-Bold.ttf"
    regular_path.write_bytes(regular_font_data)
    bold_path.write_bytes(bold_font_data)
    return [str(regular_path), str(bold_path)]
