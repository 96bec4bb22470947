from pathlib import Path
from typing import Sequence

from flextext.config import FlexTextConfig, FontConfig, LayoutConfig, TextConfig
from utils.exceptions import ValidationError

VALID_HINTING = ["none", "slight", "normal", "full"]
VALID_ALIGNMENTS = ["start", "center", "end"]
VALID_LINE_BREAKING = ["greedy", "optimal"]


def _validate_color(name: str, color: Sequence[int]) -> None:
    if len(color) != 4 or not all(isinstance(c, int) and 0 <= c <= 255 for c in color):
        raise ValidationError(f"{name} must be four integers in the range 0-255.")


def validate_font_inputs(font_cfg: FontConfig) -> None:
    """
    Validates font sources.

    Raises:
        FileNotFoundError: If a configured font file or directory does not exist.
        ValidationError: If no font source is configured or the family is empty.
    """
    if not font_cfg.font_paths and not font_cfg.font_dir:
        raise ValidationError("No fonts configured. Provide font files or a font directory.")

    for font_path in font_cfg.font_paths:
        if not Path(font_path).is_file():
            raise FileNotFoundError(f"Font file not found: {font_path}")

    if font_cfg.font_dir:
        font_dir_path = Path(font_cfg.font_dir)
        if not font_dir_path.is_dir():
            raise FileNotFoundError(f"Font directory not found: {font_dir_path}")
        font_files = list(font_dir_path.glob("*.ttf")) + list(font_dir_path.glob("*.otf"))
        font_files += list(font_dir_path.glob("*.ttc"))
        if not font_files and not font_cfg.font_paths:
            raise ValidationError(f"No font files (.ttf, .otf or .ttc) found in: '{font_dir_path}'")

    if not font_cfg.family:
        raise ValidationError("Font family cannot be empty.")


def validate_text_config(text_cfg: TextConfig) -> None:
    if not (isinstance(text_cfg.font_size, (int, float)) and text_cfg.font_size > 0):
        raise ValidationError("Font Size must be a positive number.")
    if not (isinstance(text_cfg.line_height, (int, float)) and text_cfg.line_height > 0):
        raise ValidationError("Line Height must be a positive number.")
    if not 1 <= text_cfg.weight <= 1000:
        raise ValidationError("Font Weight must be between 1 and 1000.")
    if not 1 <= text_cfg.emphasis_weight <= 1000:
        raise ValidationError("Emphasis Weight must be between 1 and 1000.")
    if text_cfg.emphasis_length < 0:
        raise ValidationError("Emphasis Length cannot be negative.")
    if text_cfg.alignment not in VALID_ALIGNMENTS:
        raise ValidationError(f"Invalid Alignment value. Must be one of: {', '.join(VALID_ALIGNMENTS)}.")
    if text_cfg.line_breaking not in VALID_LINE_BREAKING:
        raise ValidationError(
            f"Invalid Line Breaking value. Must be one of: {', '.join(VALID_LINE_BREAKING)}."
        )
    if text_cfg.badness_exponent <= 0:
        raise ValidationError("Badness Exponent must be positive.")
    _validate_color("Text color", text_cfg.color)


def validate_layout_config(layout_cfg: LayoutConfig) -> None:
    if not (isinstance(layout_cfg.width, int) and layout_cfg.width > 0):
        raise ValidationError("Image width must be a positive integer.")
    if not (isinstance(layout_cfg.height, int) and layout_cfg.height > 0):
        raise ValidationError("Image height must be a positive integer.")
    if layout_cfg.padding < 0:
        raise ValidationError("Padding cannot be negative.")
    if 2 * layout_cfg.padding >= min(layout_cfg.width, layout_cfg.height):
        raise ValidationError("Padding leaves no room for content.")
    if layout_cfg.filler_grow < 0:
        raise ValidationError("Filler grow factor cannot be negative.")


def validate_config(config: FlexTextConfig, check_fonts: bool = True) -> None:
    """
    Validates a full configuration, raising standard exceptions.

    Args:
        config (FlexTextConfig): Configuration to validate.
        check_fonts (bool): Whether to check font files on disk. Sessions that
            register font bytes directly skip this.

    Raises:
        FileNotFoundError: If configured font files or directories are missing.
        ValidationError: If configuration values are invalid.
    """
    if check_fonts:
        validate_font_inputs(config.font)
    validate_text_config(config.text)
    validate_layout_config(config.layout)

    rendering_cfg = config.rendering
    if rendering_cfg.font_hinting not in VALID_HINTING:
        raise ValidationError(
            "Invalid Font Hinting value. Must be one of: none, slight, normal, full."
        )
    _validate_color("Background color", rendering_cfg.background)
    _validate_color("Text box color", rendering_cfg.text_box_color)
    _validate_color("Filler box color", rendering_cfg.filler_box_color)

    output_cfg = config.output
    if not 0 <= output_cfg.png_compression <= 9:
        raise ValidationError("PNG compression must be between 0 and 9.")
    if not 1 <= output_cfg.jpeg_quality <= 100:
        raise ValidationError("JPEG quality must be between 1 and 100.")
    if not output_cfg.output_path:
        raise ValidationError("Output path cannot be empty.")
