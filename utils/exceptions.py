class ValidationError(ValueError):
    """Custom exception for validation errors."""

    pass


class FontError(RuntimeError):
    """Custom exception for font loading and resource failures."""

    pass


class FontResolutionError(FontError):
    """Raised when no registered font can serve a requested family/style."""

    pass


class LayoutResolutionError(RuntimeError):
    """Custom exception for malformed box trees and failed geometry resolution."""

    pass


class RenderingError(RuntimeError):
    """Custom exception for text rendering and drawing failures."""

    pass


class RasterizationError(RenderingError):
    """Raised when a single glyph cannot be rasterized."""

    def __init__(self, message: str, glyph_id: int = -1):
        super().__init__(message)
        self.glyph_id = glyph_id


class UnsupportedContentKindError(RenderingError):
    """Raised for rasterized content the compositor cannot blend (sub-pixel masks)."""

    pass


class ImageProcessingError(Exception):
    """Custom exception for image operations failures."""

    pass
