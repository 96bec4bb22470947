from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterator, List, Optional, Tuple

import numpy as np
from PIL import Image

# None means "maximum content" (no wrapping), 0.0 means "minimum content".
WidthConstraint = Optional[float]

Color = Tuple[int, int, int, int]

# --- Geometry ---


@dataclass(frozen=True)
class Size:
    width: float = 0.0
    height: float = 0.0


@dataclass(frozen=True)
class KnownSize:
    """Dimensions the layout engine has already decided (None = undecided)."""

    width: Optional[float] = None
    height: Optional[float] = None


@dataclass(frozen=True)
class Point:
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class Rect:
    left: float = 0.0
    right: float = 0.0
    top: float = 0.0
    bottom: float = 0.0

    @classmethod
    def uniform(cls, value: float) -> "Rect":
        return cls(value, value, value, value)


class AvailableSpaceKind(Enum):
    DEFINITE = "definite"
    MIN_CONTENT = "min-content"
    MAX_CONTENT = "max-content"


@dataclass(frozen=True)
class AvailableSpace:
    """Space offered to a node along one axis during layout."""

    kind: AvailableSpaceKind
    value: float = 0.0

    @classmethod
    def definite(cls, value: float) -> "AvailableSpace":
        return cls(AvailableSpaceKind.DEFINITE, float(value))

    @classmethod
    def min_content(cls) -> "AvailableSpace":
        return cls(AvailableSpaceKind.MIN_CONTENT)

    @classmethod
    def max_content(cls) -> "AvailableSpace":
        return cls(AvailableSpaceKind.MAX_CONTENT)

    @property
    def is_definite(self) -> bool:
        return self.kind is AvailableSpaceKind.DEFINITE


@dataclass(frozen=True)
class AvailableSize:
    width: AvailableSpace
    height: AvailableSpace


# --- Styled text ---

STYLE_PROPERTY_NAMES = ("family", "weight", "size", "line_height", "italic", "brush")


@dataclass(frozen=True)
class StyleProperty:
    """A single style property applied either as a default or over a span."""

    name: str
    value: Any

    def __post_init__(self):
        if self.name not in STYLE_PROPERTY_NAMES:
            raise ValueError(f"Unknown style property: {self.name}")

    @classmethod
    def font_family(cls, family: str) -> "StyleProperty":
        return cls("family", family)

    @classmethod
    def font_weight(cls, weight: float) -> "StyleProperty":
        return cls("weight", float(weight))

    @classmethod
    def font_size(cls, size: float) -> "StyleProperty":
        return cls("size", float(size))

    @classmethod
    def line_height(cls, multiplier: float) -> "StyleProperty":
        return cls("line_height", float(multiplier))

    @classmethod
    def italic(cls, enabled: bool = True) -> "StyleProperty":
        return cls("italic", bool(enabled))

    @classmethod
    def brush(cls, color: Color) -> "StyleProperty":
        return cls("brush", tuple(int(c) for c in color))


@dataclass(frozen=True)
class StyleSpan:
    """A style property over the UTF-8 byte range [start, end)."""

    start: int
    end: int
    prop: StyleProperty


@dataclass(frozen=True)
class StyledText:
    text: str
    spans: Tuple[StyleSpan, ...] = ()
    defaults: Tuple[StyleProperty, ...] = ()


@dataclass(frozen=True)
class TextStyle:
    """Fully resolved style of one character."""

    family: str
    weight: float
    size: float
    line_height: float
    italic: bool
    brush: Color

    def with_property(self, prop: StyleProperty) -> "TextStyle":
        return replace(self, **{prop.name: prop.value})


# --- Fonts ---


@dataclass(frozen=True)
class FontFace:
    """A registered font face. ``data`` is the raw font file shared by all faces of a collection."""

    font_id: int
    data: bytes = field(repr=False, compare=False)
    index: int
    family: str
    style_name: str
    weight: float
    italic: bool
    units_per_em: int
    ascender: float
    descender: float
    line_gap: float
    num_glyphs: int
    axes: Tuple[Tuple[str, float, float, float], ...] = ()
    color_outline_glyphs: frozenset = field(default=frozenset(), repr=False)
    color_bitmap_glyphs: frozenset = field(default=frozenset(), repr=False)

    def axis(self, tag: str) -> Optional[Tuple[str, float, float, float]]:
        for axis in self.axes:
            if axis[0] == tag:
                return axis
        return None


@dataclass(frozen=True)
class ResolvedFont:
    """Opaque font handle handed from shaping to rasterization."""

    face: FontFace
    coords: Tuple[Tuple[str, float], ...] = ()

    @property
    def index(self) -> int:
        return self.face.index

    @property
    def variations(self) -> dict:
        return dict(self.coords)


# --- Measured layout ---


@dataclass(frozen=True)
class Glyph:
    id: int
    x: float
    y: float
    advance: float
    cluster: int = 0


@dataclass(frozen=True)
class RunMetrics:
    ascent: float
    descent: float
    line_height: float


@dataclass(frozen=True)
class GlyphRun:
    font: ResolvedFont
    font_size: float
    brush: Color
    glyphs: Tuple[Glyph, ...]
    offset: float
    baseline: float
    metrics: RunMetrics
    text_range: Tuple[int, int]

    @property
    def normalized_coords(self) -> Tuple[Tuple[str, float], ...]:
        return self.font.coords

    @property
    def advance(self) -> float:
        return sum(glyph.advance for glyph in self.glyphs)


@dataclass(frozen=True)
class Line:
    runs: Tuple[GlyphRun, ...]
    offset: float
    width: float
    top: float
    height: float
    baseline: float
    text_range: Tuple[int, int]

    def items(self) -> Iterator[GlyphRun]:
        return iter(self.runs)


@dataclass(frozen=True)
class MeasuredLayout:
    layout_width: float
    layout_height: float
    line_data: Tuple[Line, ...] = ()
    width_constraint: WidthConstraint = None

    def width(self) -> float:
        return self.layout_width

    def height(self) -> float:
        return self.layout_height

    def lines(self) -> Iterator[Line]:
        """Returns a fresh iterator over the positioned lines."""
        return iter(self.line_data)

    @property
    def line_count(self) -> int:
        return len(self.line_data)


# --- Rasterization ---


class ContentKind(Enum):
    MASK = "mask"
    SUBPIXEL_MASK = "subpixel_mask"
    COLOR = "color"


class SourceKind(Enum):
    COLOR_OUTLINE = "color_outline"
    COLOR_BITMAP = "color_bitmap"
    OUTLINE = "outline"


@dataclass
class RasterizedGlyph:
    """
    Rasterized glyph image.

    ``left`` is the offset from the pen position to the bitmap's left edge,
    ``top`` the distance from the baseline up to the bitmap's top edge.
    ``data`` is (height, width) uint8 coverage for masks, (height, width, 4) RGBA for color.
    """

    content: ContentKind
    source: SourceKind
    data: np.ndarray
    left: int
    top: int
    width: int
    height: int

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


class OutputImage:
    """Mutable fixed-size RGBA pixel buffer, origin top-left."""

    def __init__(self, width: int, height: int, background: Color = (0, 0, 0, 0)):
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid image size: {width}x{height}")
        self.width = int(width)
        self.height = int(height)
        self.pixels = np.zeros((self.height, self.width, 4), dtype=np.uint8)
        self.fill(background)

    def fill(self, color: Color) -> None:
        self.pixels[:, :] = np.asarray(color, dtype=np.uint8)

    def pixel(self, x: int, y: int) -> Color:
        return tuple(int(c) for c in self.pixels[y, x])

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()

    def to_pil(self):
        return Image.fromarray(self.pixels)


@dataclass
class RenderReport:
    runs_drawn: int = 0
    glyphs_drawn: int = 0
    glyphs_clipped: int = 0
    skipped_glyphs: List[Tuple[int, str]] = field(default_factory=list)
    font_substitutions: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.skipped_glyphs
