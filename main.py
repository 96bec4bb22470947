import argparse
import sys
import time
from pathlib import Path

from flextext.config import (FlexTextConfig, FontConfig, LayoutConfig,
                             OutputConfig, RenderingConfig, TextConfig)
from flextext.pipeline import RenderSession
from flextext.validation import (VALID_ALIGNMENTS, VALID_HINTING,
                                 VALID_LINE_BREAKING, validate_config)
from utils.exceptions import (FontError, ImageProcessingError,
                              LayoutResolutionError, RenderingError,
                              ValidationError)
from utils.logging import log_message

DEFAULT_SENTENCE = "The quick brown fox jumped over the lazy dog."
DEFAULT_TEXT = " ".join([DEFAULT_SENTENCE] * 12)


def parse_color(value):
    """Parses 'r,g,b' or 'r,g,b,a' into an RGBA tuple."""
    parts = [p.strip() for p in value.split(",")]
    if len(parts) not in (3, 4):
        raise argparse.ArgumentTypeError(f"Invalid color '{value}', expected r,g,b or r,g,b,a")
    try:
        components = [int(p) for p in parts]
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid color '{value}', components must be integers")
    if len(components) == 3:
        components.append(255)
    return tuple(components)


def build_parser():
    parser = argparse.ArgumentParser(
        description="Render a styled text block inside a flexible column layout to an image"
    )
    # --- Text Arguments ---
    text_group = parser.add_mutually_exclusive_group()
    text_group.add_argument(
        "--text",
        type=str,
        default=None,
        help="Text to render (default: a pangram repeated twelve times)",
    )
    text_group.add_argument(
        "--text-file",
        type=str,
        default=None,
        help="Path to a UTF-8 text file to render",
    )
    # --- Font Arguments ---
    parser.add_argument(
        "--font",
        dest="fonts",
        action="append",
        default=[],
        help="Path to a font file (.ttf, .otf, .ttc); may be repeated",
    )
    parser.add_argument(
        "--font-dir",
        type=str,
        default=None,
        help="Directory containing font files",
    )
    parser.add_argument(
        "--family",
        type=str,
        default="Open Sans",
        help="Font family of the text block",
    )
    parser.add_argument(
        "--fallback-family",
        type=str,
        default=None,
        help="Family used when the requested family is not registered",
    )
    # --- Style Arguments ---
    parser.add_argument(
        "--font-size", type=float, default=16.0, help="Font size in pixels"
    )
    parser.add_argument(
        "--line-height",
        type=float,
        default=1.3,
        help="Line height as a multiple of the font size",
    )
    parser.add_argument(
        "--weight", type=float, default=400.0, help="Base font weight (1-1000)"
    )
    parser.add_argument(
        "--emphasis-length",
        type=int,
        default=4,
        help="Number of leading UTF-8 bytes drawn with --emphasis-weight (0 disables)",
    )
    parser.add_argument(
        "--emphasis-weight",
        type=float,
        default=600.0,
        help="Font weight of the emphasized leading bytes",
    )
    parser.add_argument(
        "--color",
        type=parse_color,
        default=(0, 0, 0, 255),
        help="Text color as r,g,b or r,g,b,a",
    )
    parser.add_argument(
        "--align",
        type=str,
        default="start",
        choices=VALID_ALIGNMENTS,
        help="Horizontal alignment of lines",
    )
    parser.add_argument(
        "--line-breaking",
        type=str,
        default="greedy",
        choices=VALID_LINE_BREAKING,
        help="Line breaking strategy",
    )
    # --- Layout Arguments ---
    parser.add_argument("--width", type=int, default=500, help="Image width in pixels")
    parser.add_argument("--height", type=int, default=300, help="Image height in pixels")
    parser.add_argument(
        "--padding", type=float, default=10.0, help="Padding of the column in pixels"
    )
    # --- Rendering Arguments ---
    parser.add_argument(
        "--hinting",
        type=str,
        default="normal",
        choices=VALID_HINTING,
        help="Font hinting level",
    )
    parser.add_argument(
        "--no-debug-boxes",
        action="store_true",
        help="Do not outline the text and filler boxes",
    )
    # --- Output Arguments ---
    parser.add_argument(
        "--output",
        type=str,
        default="output.png",
        help="Path to save the rendered image (.png, .jpg, .webp)",
    )
    parser.add_argument(
        "--png-compression",
        type=int,
        default=6,
        help="PNG compression level (0-9)",
    )
    parser.add_argument(
        "--jpeg-quality",
        type=int,
        default=95,
        help="JPEG quality (1-100)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    return parser


def config_from_args(args):
    return FlexTextConfig(
        font=FontConfig(
            font_paths=list(args.fonts),
            font_dir=args.font_dir,
            family=args.family,
            fallback_family=args.fallback_family,
        ),
        text=TextConfig(
            font_size=args.font_size,
            line_height=args.line_height,
            weight=args.weight,
            color=args.color,
            emphasis_length=args.emphasis_length,
            emphasis_weight=args.emphasis_weight,
            alignment=args.align,
            line_breaking=args.line_breaking,
        ),
        layout=LayoutConfig(
            width=args.width,
            height=args.height,
            padding=args.padding,
        ),
        rendering=RenderingConfig(
            font_hinting=args.hinting,
            draw_debug_boxes=not args.no_debug_boxes,
        ),
        output=OutputConfig(
            output_path=args.output,
            jpeg_quality=args.jpeg_quality,
            png_compression=args.png_compression,
        ),
        verbose=args.verbose,
    )


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.text_file:
        try:
            text = Path(args.text_file).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            log_message(f"Error reading text file '{args.text_file}': {e}", always_print=True, is_error=True)
            return 1
    elif args.text is not None:
        text = args.text
    else:
        text = DEFAULT_TEXT

    config = config_from_args(args)
    try:
        validate_config(config)
    except (ValidationError, FileNotFoundError) as e:
        log_message(f"Configuration error: {e}", always_print=True, is_error=True)
        return 2

    start_time = time.time()
    try:
        session = RenderSession(config)
        result = session.render(text)
        output_path = session.save(result)
    except (FontError, LayoutResolutionError, RenderingError, ImageProcessingError) as e:
        log_message(f"Error: {e}", always_print=True, is_error=True)
        return 1

    if not result.report.ok:
        log_message(
            f"Warning: {len(result.report.skipped_glyphs)} glyphs could not be rendered",
            always_print=True,
        )
    log_message(
        f"Rendered {result.measured.line_count} lines to {output_path} in {time.time() - start_time:.2f}s",
        always_print=True,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
