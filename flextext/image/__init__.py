"""
Image modules for flextext.

This subpackage contains modules for:
- Glyph rasterization using Skia
- Alpha compositing of glyph bitmaps
- Output image helpers and saving
"""
