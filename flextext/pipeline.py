import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple

from flextext.config import FlexTextConfig
from flextext.image.glyph_rasterizer import GlyphRasterizer
from flextext.image.image_utils import create_output_image, draw_hollow_rect, save_image_with_compression
from flextext.layout.measure import TextNodeContext, measure_function
from flextext.layout.tree import Dimension, DimensionSize, Display, FlexDirection, Layout, LayoutTree, NodeId, Style
from flextext.models import (
    AvailableSize,
    AvailableSpace,
    KnownSize,
    MeasuredLayout,
    OutputImage,
    Rect,
    RenderReport,
    Size,
    StyledText,
    StyleSpan,
)
from flextext.text.drawing_engine import RunRenderer
from flextext.text.font_manager import FontCollection
from flextext.text.layout_engine import TextLayoutBuilder
from utils.logging import log_message


@dataclass
class RenderResult:
    """Outcome of one render: the painted image plus the geometry it was painted from."""

    image: OutputImage
    text_layout: Layout
    filler_layout: Layout
    measured: MeasuredLayout
    report: RenderReport
    tree: str = ""


class RenderSession:
    """
    Owns every mutable context of a render: the font collection and its
    engine caches, the layout builder, the rasterizer and the run renderer.

    Sessions share nothing, so several can be used side by side.
    """

    def __init__(self, config: FlexTextConfig, font_data: Sequence[bytes] = ()):
        self.config = config
        self.verbose = config.verbose

        self.font_collection = FontCollection(fallback_family=config.font.fallback_family, verbose=self.verbose)
        for i, data in enumerate(font_data):
            self.font_collection.register_fonts(data, source=f"<font data {i}>")
        for font_path in config.font.font_paths:
            self.font_collection.register_font_file(font_path)
        if config.font.font_dir:
            self.font_collection.register_font_dir(config.font.font_dir)
        log_message(f"Registered families: {', '.join(self.font_collection.families())}", verbose=self.verbose)

        self.builder = TextLayoutBuilder(
            self.font_collection, config.text, family=config.font.family, verbose=self.verbose
        )
        self.rasterizer = GlyphRasterizer(
            self.font_collection,
            font_hinting=config.rendering.font_hinting,
            use_subpixel_positioning=config.rendering.use_subpixel_positioning,
            verbose=self.verbose,
        )
        self.renderer = RunRenderer(self.rasterizer, verbose=self.verbose)

    def build_tree(self, styled_text: StyledText) -> Tuple[LayoutTree, NodeId, NodeId, NodeId]:
        """Creates the column: a text leaf followed by a flexible filler leaf."""
        layout_cfg = self.config.layout
        tree = LayoutTree()
        text_node = tree.new_leaf_with_context(
            Style(display=Display.FLEX),
            TextNodeContext(styled_text, verbose=self.verbose),
        )
        filler_node = tree.new_leaf(
            Style(
                display=Display.FLEX,
                flex_grow=layout_cfg.filler_grow,
                flex_shrink=1.0,
                flex_basis=Dimension.auto(),
            )
        )
        root = tree.new_with_children(
            Style(
                display=Display.FLEX,
                flex_direction=FlexDirection.COLUMN,
                size=DimensionSize(Dimension.length(layout_cfg.width), Dimension.length(layout_cfg.height)),
                padding=Rect.uniform(layout_cfg.padding),
            ),
            [text_node, filler_node],
        )
        return tree, root, text_node, filler_node

    def _measure(self, known: KnownSize, available: AvailableSize, node_id: NodeId, node_context) -> Size:
        return measure_function(known, available, node_context, self.builder)

    def render(self, text: str, style_spans: Sequence[StyleSpan] = ()) -> RenderResult:
        """
        Lays out and paints text into a new image.

        style_spans are applied on top of the configured emphasis span. Every
        family that had to be replaced, configured or per span, is listed in
        the report.

        Raises:
            LayoutResolutionError: If the box tree cannot be resolved
            FontResolutionError: If no fonts are registered
            UnsupportedContentKindError: If a glyph produces sub-pixel coverage
        """
        start_time = time.time()
        rendering_cfg = self.config.rendering
        self.font_collection.substitutions.clear()
        if not self.font_collection.has_family(self.config.font.family):
            fallback = self.font_collection.resolve(self.config.font.family).face.family
            log_message(
                f"Warning: Font family '{self.config.font.family}' not registered, using '{fallback}'",
                always_print=True,
            )

        styled_text = self.builder.styled_text(text, style_spans)
        tree, root, text_node, filler_node = self.build_tree(styled_text)
        tree.compute_layout_with_measure(
            root,
            AvailableSize(AvailableSpace.max_content(), AvailableSpace.max_content()),
            self._measure,
        )
        tree_text = tree.format_tree(root)
        log_message(tree_text, verbose=self.verbose)

        image = create_output_image(self.config.layout.width, self.config.layout.height, rendering_cfg.background)
        text_layout = tree.layout(text_node)
        filler_layout = tree.layout(filler_node)

        if rendering_cfg.draw_debug_boxes:
            for name, box, color in (
                ("text", text_layout, rendering_cfg.text_box_color),
                ("other", filler_layout, rendering_cfg.filler_box_color),
            ):
                log_message(
                    f"Drawing {name} box at {box.location.x:g},{box.location.y:g} "
                    f"with size {box.size.width:g}x{box.size.height:g}",
                    verbose=self.verbose,
                )
                draw_hollow_rect(image, box.location.x, box.location.y, box.size.width, box.size.height, color)

        # Authoritative pass at the resolved width
        measured = self.builder.build_styled(styled_text, text_layout.size.width)
        report = self.renderer.render_layout(image, measured, text_layout.location)
        report.font_substitutions.extend(
            f"{requested} -> {used}" for requested, used in self.font_collection.substitutions.items()
        )

        log_message(
            f"Rendered {report.glyphs_drawn} glyphs in {report.runs_drawn} runs "
            f"({len(report.skipped_glyphs)} skipped) in {time.time() - start_time:.3f}s",
            verbose=self.verbose,
        )
        return RenderResult(image, text_layout, filler_layout, measured, report, tree_text)

    def save(self, result: RenderResult, output_path: Optional[str] = None) -> Path:
        """
        Raises:
            ImageProcessingError: If the image cannot be written
        """
        output_cfg = self.config.output
        return save_image_with_compression(
            result.image,
            output_path or output_cfg.output_path,
            jpeg_quality=output_cfg.jpeg_quality,
            png_compression=output_cfg.png_compression,
            verbose=self.verbose,
        )


def render_text(text: str, config: FlexTextConfig, font_data: Sequence[bytes] = ()) -> RenderResult:
    """Convenience wrapper: one session, one render."""
    return RenderSession(config, font_data).render(text)
