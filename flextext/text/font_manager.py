import io
import struct
from collections import OrderedDict
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import skia
import uharfbuzz as hb
from fontTools.ttLib import TTCollection, TTFont

from flextext.models import FontFace, ResolvedFont
from utils.exceptions import FontError, FontResolutionError
from utils.logging import log_message


# --- LRU Cache Implementation ---
class LRUCache:
    """Simple LRU cache implementation to prevent unbounded memory growth."""

    def __init__(self, max_size: int = 100):
        self.max_size = max_size
        self.cache = OrderedDict()

    def get(self, key):
        if key in self.cache:
            # Move to end (most recently used)
            value = self.cache.pop(key)
            self.cache[key] = value
            return value
        return None

    def put(self, key, value):
        if key in self.cache:
            self.cache.pop(key)
        elif len(self.cache) >= self.max_size:
            # Remove least recently used (first item)
            self.cache.popitem(last=False)
        self.cache[key] = value

    def __contains__(self, key):
        return key in self.cache

    def __delitem__(self, key):
        if key in self.cache:
            del self.cache[key]

    def __len__(self):
        return len(self.cache)


FONT_FILE_PATTERNS = ("*.ttf", "*.otf", "*.ttc")
ITALIC_KEYWORDS = {"italic", "oblique", "slanted", "inclined"}

# OS/2 fsSelection bits
FS_SELECTION_ITALIC = 1 << 0
FS_SELECTION_USE_TYPO_METRICS = 1 << 7


def _to_four_char_code(tag: str) -> int:
    """Convert OpenType tag string to 4-byte integer code."""
    return struct.unpack("!I", tag.encode("ascii"))[0]


def _glyph_ids(font: TTFont, names) -> frozenset:
    ids = set()
    for name in names:
        try:
            ids.add(font.getGlyphID(name))
        except KeyError:
            continue
    return frozenset(ids)


def _color_outline_glyphs(font: TTFont) -> frozenset:
    """Glyph ids that have COLR layers or paint records."""
    if "COLR" not in font:
        return frozenset()
    colr = font["COLR"]
    names = set()
    if colr.version == 0:
        names.update(getattr(colr, "ColorLayers", {}) or {})
    else:
        table = colr.table
        if table.BaseGlyphRecordArray:
            names.update(rec.BaseGlyph for rec in table.BaseGlyphRecordArray.BaseGlyphRecord)
        if table.BaseGlyphList:
            names.update(rec.BaseGlyph for rec in table.BaseGlyphList.BaseGlyphPaintRecord)
    return _glyph_ids(font, names)


def _color_bitmap_glyphs(font: TTFont) -> frozenset:
    """Glyph ids present in any CBDT or sbix strike."""
    names = set()
    if "CBDT" in font:
        for strike in font["CBDT"].strikeData:
            names.update(strike.keys())
    if "sbix" in font:
        for strike in font["sbix"].strikes.values():
            names.update(
                name for name, glyph in strike.glyphs.items() if glyph.graphicType is not None
            )
    return _glyph_ids(font, names)


def _read_face(font: TTFont, font_id: int, data: bytes, index: int, source: str) -> FontFace:
    """Extracts naming, weight, metrics, axes and color capabilities from a parsed font."""
    name_table = font["name"] if "name" in font else None
    family = name_table.getBestFamilyName() if name_table is not None else None
    style_name = name_table.getBestSubFamilyName() if name_table is not None else None
    if not family:
        family = Path(source).stem if source else f"font-{font_id}"
    style_name = style_name or "Regular"

    os2 = font["OS/2"] if "OS/2" in font else None
    weight = float(os2.usWeightClass) if os2 is not None else 400.0
    italic = bool(os2.fsSelection & FS_SELECTION_ITALIC) if os2 is not None else False
    if not italic and "head" in font:
        italic = bool(font["head"].macStyle & 0x2)
    if not italic:
        italic = any(kw in style_name.lower() for kw in ITALIC_KEYWORDS)

    axes: Tuple[Tuple[str, float, float, float], ...] = ()
    if "fvar" in font:
        axes = tuple(
            (axis.axisTag, float(axis.minValue), float(axis.defaultValue), float(axis.maxValue))
            for axis in font["fvar"].axes
        )
        for tag, _, default, _ in axes:
            if tag == "wght":
                weight = default

    hhea = font["hhea"]
    ascender, descender, line_gap = float(hhea.ascent), float(hhea.descent), float(hhea.lineGap)
    if os2 is not None and (os2.fsSelection & FS_SELECTION_USE_TYPO_METRICS):
        ascender = float(os2.sTypoAscender)
        descender = float(os2.sTypoDescender)
        line_gap = float(os2.sTypoLineGap)

    return FontFace(
        font_id=font_id,
        data=data,
        index=index,
        family=family,
        style_name=style_name,
        weight=weight,
        italic=italic,
        units_per_em=int(font["head"].unitsPerEm),
        ascender=ascender,
        descender=descender,
        line_gap=line_gap,
        num_glyphs=int(font["maxp"].numGlyphs),
        axes=axes,
        color_outline_glyphs=_color_outline_glyphs(font),
        color_bitmap_glyphs=_color_bitmap_glyphs(font),
    )


class FontCollection:
    """
    Registry of font faces plus the HarfBuzz/Skia resources derived from them.

    Caches only ever hold resources derived from registered bytes, so cache state
    never changes shaping or rasterization results.
    """

    def __init__(self, fallback_family: Optional[str] = None, cache_size: int = 50, verbose: bool = False):
        self.fallback_family = fallback_family
        self.verbose = verbose
        self._faces: List[FontFace] = []
        self._hb_face_cache = LRUCache(max_size=cache_size)
        self._typeface_cache = LRUCache(max_size=cache_size)
        # Requested family -> family actually used, in first-seen order
        self.substitutions: Dict[str, str] = {}

    # --- Registration ---
    def register_fonts(self, data: bytes, source: str = "") -> List[FontFace]:
        """
        Registers every face found in raw font bytes (single font or collection).

        Raises:
            FontError: If the data cannot be parsed as a font
        """
        data = bytes(data)
        try:
            if data[:4] == b"ttcf":
                fonts = list(TTCollection(io.BytesIO(data)).fonts)
            else:
                fonts = [TTFont(io.BytesIO(data))]
            faces = []
            for index, font in enumerate(fonts):
                face = _read_face(font, len(self._faces), data, index, source)
                self._faces.append(face)
                faces.append(face)
        except Exception as e:
            log_message(f"Font parse failed: {source or '<bytes>'}: {e}", always_print=True)
            raise FontError(f"Failed to parse font data: {source or '<bytes>'}") from e

        for face in faces:
            log_message(
                f"Registered font: {face.family} {face.style_name} (weight={face.weight:.0f}, italic={face.italic})",
                verbose=self.verbose,
            )
        return faces

    def register_font_file(self, font_path: str) -> List[FontFace]:
        """
        Raises:
            FontError: If the font file cannot be read or parsed
        """
        try:
            with open(font_path, "rb") as f:
                font_data = f.read()
        except OSError as e:
            log_message(f"Font file read failed: {font_path}: {e}", always_print=True)
            raise FontError(f"Failed to read font file: {font_path}") from e
        return self.register_fonts(font_data, source=str(font_path))

    def register_font_dir(self, font_dir: str) -> List[FontFace]:
        """Registers all .ttf, .otf and .ttc files in a directory, in name order."""
        font_dir_path = Path(font_dir).resolve()
        if not font_dir_path.is_dir():
            raise FontError(f"Font directory '{font_dir_path}' does not exist or is not a directory.")

        log_message(f"Scanning font directory: {font_dir_path}", verbose=self.verbose)
        font_files = sorted(
            {path for pattern in FONT_FILE_PATTERNS for path in font_dir_path.glob(pattern)}
        )
        if not font_files:
            log_message(f"No font files (.ttf, .otf, .ttc) found in '{font_dir_path}'", always_print=True)

        faces = []
        for font_file in font_files:
            faces.extend(self.register_font_file(str(font_file)))
        return faces

    # --- Queries ---
    @property
    def faces(self) -> Tuple[FontFace, ...]:
        return tuple(self._faces)

    def families(self) -> List[str]:
        seen: Dict[str, None] = {}
        for face in self._faces:
            seen.setdefault(face.family, None)
        return list(seen)

    def has_family(self, family: str) -> bool:
        family_lower = family.lower()
        return any(face.family.lower() == family_lower for face in self._faces)

    def _faces_for_family(self, family: str) -> List[FontFace]:
        family_lower = family.lower()
        return [face for face in self._faces if face.family.lower() == family_lower]

    def resolve(self, family: str, weight: float = 400.0, italic: bool = False) -> ResolvedFont:
        """
        Resolves a family/weight/style request to a registered face.

        Unknown families fall back to the fallback family, then to the first
        registered family.

        Raises:
            FontResolutionError: If no fonts are registered at all
        """
        if not self._faces:
            raise FontResolutionError(f"No fonts registered; cannot resolve family '{family}'")

        candidates = self._faces_for_family(family)
        if not candidates:
            fallback = self.fallback_family if self.fallback_family else self._faces[0].family
            candidates = self._faces_for_family(fallback) or list(self._faces)
            self.substitutions.setdefault(family, candidates[0].family)
            log_message(f"Family '{family}' -> '{candidates[0].family}'", verbose=self.verbose)

        styled = [face for face in candidates if face.italic == italic]
        if styled:
            candidates = styled

        face = min(candidates, key=lambda f: self._weight_key(f, weight))
        return ResolvedFont(face=face, coords=self._variation_coords(face, weight, italic))

    @staticmethod
    def _weight_key(face: FontFace, weight: float) -> Tuple[float, int, int]:
        wght = face.axis("wght")
        if wght is not None:
            _, minimum, _, maximum = wght
            distance = max(0.0, minimum - weight, weight - maximum)
        else:
            distance = abs(face.weight - weight)
        # Ties go to the heavier face for bold requests and the lighter face otherwise
        if weight > 500:
            direction = 0 if face.weight >= weight else 1
        else:
            direction = 0 if face.weight <= weight else 1
        return distance, direction, face.font_id

    @staticmethod
    def _variation_coords(face: FontFace, weight: float, italic: bool) -> Tuple[Tuple[str, float], ...]:
        coords = []
        wght = face.axis("wght")
        if wght is not None:
            _, minimum, _, maximum = wght
            coords.append(("wght", float(min(max(weight, minimum), maximum))))
        ital = face.axis("ital")
        if ital is not None and italic:
            coords.append(("ital", float(ital[3])))
        return tuple(coords)

    # --- Engine resources ---
    def hb_face(self, face: FontFace) -> hb.Face:
        """
        Raises:
            FontError: If HarfBuzz cannot load the face
        """
        hb_face = self._hb_face_cache.get(face.font_id)
        if hb_face is None:
            try:
                hb_face = hb.Face(face.data, face.index)
            except Exception as e:
                log_message(f"HarfBuzz face load failed: {face.family}: {e}", always_print=True)
                raise FontError(f"Failed to create HarfBuzz face for: {face.family}") from e
            self._hb_face_cache.put(face.font_id, hb_face)
        return hb_face

    def hb_font(self, font: ResolvedFont) -> hb.Font:
        """Creates a HarfBuzz font scaled to font units with the run's variations applied."""
        hb_font = hb.Font(self.hb_face(font.face))
        upem = font.face.units_per_em
        hb_font.scale = (upem, upem)
        if font.coords:
            hb_font.set_variations(font.variations)
        return hb_font

    def typeface(self, font: ResolvedFont) -> skia.Typeface:
        """
        Returns a Skia typeface for the resolved font, cloned with its variation coordinates.

        Raises:
            FontError: If Skia cannot load the face
        """
        key = (font.face.font_id, font.coords)
        typeface = self._typeface_cache.get(key)
        if typeface is not None:
            return typeface

        skia_data = skia.Data.MakeWithoutCopy(font.face.data)
        typeface = skia.Typeface.MakeFromData(skia_data, font.face.index)
        if typeface is None:
            log_message(f"Skia typeface load failed: {font.face.family}", always_print=True)
            raise FontError(f"Failed to create Skia typeface from font: {font.face.family}")

        if font.coords:
            coords_list = [
                skia.FontArguments.VariationPosition.Coordinate(
                    axis=_to_four_char_code(tag), value=float(value)
                )
                for tag, value in font.coords
            ]
            coordinates = skia.FontArguments.VariationPosition.Coordinates(coords_list)
            args = skia.FontArguments()
            args.setVariationDesignPosition(skia.FontArguments.VariationPosition(coordinates))
            cloned = typeface.makeClone(args)
            if cloned is None:
                log_message(f"Skia variation clone failed: {font.face.family} {font.coords}", always_print=True)
            else:
                typeface = cloned

        self._typeface_cache.put(key, typeface)
        return typeface
