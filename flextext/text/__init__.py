"""
Text modules for flextext.

This subpackage contains modules for:
- Font registration and resolution
- Break opportunities and line breaking
- Shaping and line layout
- Drawing positioned glyph runs
"""
