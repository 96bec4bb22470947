import math
from typing import Optional

from flextext.image.compositing import composite
from flextext.image.glyph_rasterizer import GlyphRasterizer, fractional_offset
from flextext.models import Line, MeasuredLayout, OutputImage, Point, RenderReport
from utils.exceptions import RasterizationError
from utils.logging import log_message


class RunRenderer:
    """
    Paints positioned lines into an OutputImage.

    This is a "dumb" renderer - all layout decisions have been made.
    It just executes the drawing plan, one glyph at a time.
    """

    def __init__(self, rasterizer: GlyphRasterizer, verbose: bool = False):
        self.rasterizer = rasterizer
        self.verbose = verbose

    def render(self, image: OutputImage, line: Line, box_origin: Point,
               report: Optional[RenderReport] = None) -> RenderReport:
        """
        Draws every run of a line with the box's top-left corner at box_origin.

        Glyphs that fail to rasterize are logged, recorded in the report and
        skipped; the rest of the line is still drawn.

        Args:
            image: Destination image
            line: Positioned line from the layout builder
            box_origin: Absolute position of the text box
            report: Report to accumulate into (a new one is created if omitted)

        Returns:
            The render report

        Raises:
            UnsupportedContentKindError: If a glyph comes back as a sub-pixel mask
        """
        report = report if report is not None else RenderReport()

        for run in line.items():
            context = self.rasterizer.build_context(run)
            run_x = run.offset + box_origin.x
            run_y = run.baseline + box_origin.y

            for glyph in run.glyphs:
                glyph_x = run_x + glyph.x
                glyph_y = run_y - glyph.y
                run_x += glyph.advance

                try:
                    rasterized = self.rasterizer.rasterize(context, glyph.id, fractional_offset(glyph_x, glyph_y))
                except RasterizationError as e:
                    log_message(f"Skipping glyph {glyph.id}: {e}", always_print=True)
                    report.skipped_glyphs.append((glyph.id, str(e)))
                    continue

                origin = (
                    math.floor(glyph_x) + rasterized.left,
                    math.floor(glyph_y) - rasterized.top,
                )
                if composite(image, rasterized, origin, run.brush):
                    report.glyphs_clipped += 1
                report.glyphs_drawn += 1

            report.runs_drawn += 1
            log_message(
                f"Run {run.text_range}: {len(run.glyphs)} glyphs, advance={run.advance:.1f}",
                verbose=self.verbose,
            )

        return report

    def render_layout(self, image: OutputImage, layout: MeasuredLayout, box_origin: Point) -> RenderReport:
        """Draws all lines of a layout and returns the combined report."""
        report = RenderReport()
        for i, line in enumerate(layout.lines()):
            log_message(f"Line {i}: {len(line.runs)} runs", verbose=self.verbose)
            self.render(image, line, box_origin, report)
        if report.glyphs_clipped:
            log_message(f"{report.glyphs_clipped} glyphs clipped at image bounds", verbose=self.verbose)
        return report
