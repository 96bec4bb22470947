"""
flextext Package

Renders a styled block of text into a fixed-size image, placed inside a
two-box flexible column layout. Shaping uses HarfBuzz, rasterization uses Skia.
"""

from .config import FlexTextConfig
from .layout.measure import TextNodeContext, measure_function
from .layout.tree import LayoutTree
from .pipeline import RenderResult, RenderSession, render_text
from .text.layout_engine import TextLayoutBuilder

__version__ = "1.0.0"
__version_info__ = (1, 0, 0)
__description__ = "Flex layout driven text rendering with HarfBuzz and Skia"
__all__ = [
    "FlexTextConfig",
    "LayoutTree",
    "RenderResult",
    "RenderSession",
    "TextLayoutBuilder",
    "TextNodeContext",
    "measure_function",
    "render_text",
]
