from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass
class FontConfig:
    """Configuration for font registration and resolution."""

    font_paths: List[str] = field(default_factory=list)
    font_dir: Optional[str] = None
    family: str = "Open Sans"
    fallback_family: Optional[str] = None  # None = first registered family


@dataclass
class TextConfig:
    """Configuration for the text block's default style and line breaking."""

    font_size: float = 16.0
    line_height: float = 1.3
    weight: float = 400.0
    italic: bool = False
    color: Tuple[int, int, int, int] = (0, 0, 0, 255)
    emphasis_length: int = 4  # Leading bytes that receive emphasis_weight (0 = none)
    emphasis_weight: float = 600.0
    alignment: str = "start"  # "start", "center" or "end"
    line_breaking: str = "greedy"  # "greedy" or "optimal"
    badness_exponent: float = 3.0
    use_ligatures: bool = True
    use_kerning: bool = True


@dataclass
class LayoutConfig:
    """Configuration for the two-box column layout."""

    width: int = 500
    height: int = 300
    padding: float = 10.0
    filler_grow: float = 1.0


@dataclass
class RenderingConfig:
    """Configuration for rasterizing and drawing."""

    font_hinting: str = "normal"  # "none", "slight", "normal", "full"
    use_subpixel_positioning: bool = True
    draw_debug_boxes: bool = True
    background: Tuple[int, int, int, int] = (255, 255, 255, 255)
    text_box_color: Tuple[int, int, int, int] = (255, 0, 0, 255)
    filler_box_color: Tuple[int, int, int, int] = (0, 0, 255, 255)


@dataclass
class OutputConfig:
    """Configuration for saving output images."""

    output_path: str = "output.png"
    jpeg_quality: int = 95
    png_compression: int = 6


@dataclass
class FlexTextConfig:
    """Main configuration for a flextext render."""

    font: FontConfig = field(default_factory=FontConfig)
    text: TextConfig = field(default_factory=TextConfig)
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    rendering: RenderingConfig = field(default_factory=RenderingConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    verbose: bool = False
