from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import uharfbuzz as hb

from flextext.config import TextConfig
from flextext.models import (
    Glyph,
    GlyphRun,
    Line,
    MeasuredLayout,
    ResolvedFont,
    RunMetrics,
    StyledText,
    StyleProperty,
    StyleSpan,
    TextStyle,
    WidthConstraint,
)
from flextext.text.font_manager import FontCollection
from flextext.text.text_processing import (
    BreakSegment,
    break_lines_greedy,
    break_lines_optimal,
    byte_range_to_chars,
    segment_text,
)
from utils.logging import log_message


@dataclass(frozen=True)
class _StyleRun:
    """Characters [start, end) sharing one resolved style and font."""

    start: int
    end: int
    style: TextStyle
    font: ResolvedFont


@dataclass(frozen=True)
class _ShapedGlyph:
    id: int
    cluster: int  # absolute character index
    x_offset: float
    y_offset: float
    advance: float
    run_index: int


def shape_line(
    text_line: str, hb_font: hb.Font, features: Dict[str, bool]
) -> Tuple[List[hb.GlyphInfo], List[hb.GlyphPosition]]:
    """Shapes a string left-to-right with HarfBuzz."""
    hb_buffer = hb.Buffer()
    hb_buffer.add_str(text_line)
    hb_buffer.guess_segment_properties()
    hb_buffer.direction = "ltr"
    hb.shape(hb_font, hb_buffer, features)
    return hb_buffer.glyph_infos, hb_buffer.glyph_positions or []


class TextLayoutBuilder:
    """
    Builds measured, positioned layouts from styled text.

    Every call shapes, breaks and aligns from scratch; the only state kept
    between calls are the font collection's engine caches.
    """

    def __init__(self, font_collection: FontCollection, text_config: Optional[TextConfig] = None,
                 family: str = "Open Sans", verbose: bool = False):
        self.font_collection = font_collection
        self.config = text_config or TextConfig()
        self.family = family
        self.verbose = verbose
        self.features = {"liga": self.config.use_ligatures, "kern": self.config.use_kerning}

    def default_style(self) -> TextStyle:
        return TextStyle(
            family=self.family,
            weight=float(self.config.weight),
            size=float(self.config.font_size),
            line_height=float(self.config.line_height),
            italic=bool(self.config.italic),
            brush=tuple(self.config.color),
        )

    def styled_text(self, text: str, extra_spans: Sequence[StyleSpan] = ()) -> StyledText:
        """Creates StyledText with the configured emphasis span applied to the leading bytes."""
        spans: List[StyleSpan] = []
        encoded = text.encode("utf-8")
        emphasis_end = min(self.config.emphasis_length, len(encoded))
        # Snap back to a character boundary
        while 0 < emphasis_end < len(encoded) and (encoded[emphasis_end] & 0xC0) == 0x80:
            emphasis_end -= 1
        if emphasis_end > 0:
            spans.append(StyleSpan(0, emphasis_end, StyleProperty.font_weight(self.config.emphasis_weight)))
        spans.extend(extra_spans)
        return StyledText(text=text, spans=tuple(spans))

    # --- Public API ---
    def build(self, text: str, style_spans: Sequence[StyleSpan] = (),
              width_constraint: WidthConstraint = None) -> MeasuredLayout:
        """Shapes, breaks and aligns text against width_constraint (None = no wrapping)."""
        return self.build_styled(StyledText(text=text, spans=tuple(style_spans)), width_constraint)

    def build_styled(self, styled_text: StyledText, width_constraint: WidthConstraint = None) -> MeasuredLayout:
        text = styled_text.text
        if not text:
            return MeasuredLayout(0.0, 0.0, (), width_constraint)

        styles = self._resolve_styles(styled_text)
        style_runs = self._itemize(text, styles)
        glyphs = self._shape(text, style_runs)

        segments = self._measure_segments(text, glyphs)
        if self.config.line_breaking == "optimal":
            breaks = break_lines_optimal(segments, width_constraint, self.config.badness_exponent)
        else:
            breaks = break_lines_greedy(segments, width_constraint)

        lines = self._build_lines(segments, breaks, glyphs, style_runs)
        layout_width = max((line.width for line in lines), default=0.0)
        lines = self._align(lines, width_constraint, layout_width)
        layout_height = sum(line.height for line in lines)

        return MeasuredLayout(layout_width, layout_height, tuple(lines), width_constraint)

    # --- Styling ---
    def _resolve_styles(self, styled_text: StyledText) -> List[TextStyle]:
        base = self.default_style()
        for prop in styled_text.defaults:
            base = base.with_property(prop)

        styles = [base] * len(styled_text.text)
        for span in styled_text.spans:
            start, end = byte_range_to_chars(styled_text.text, span.start, span.end)
            for index in range(start, end):
                styles[index] = styles[index].with_property(span.prop)
        return styles

    def _itemize(self, text: str, styles: List[TextStyle]) -> List[_StyleRun]:
        runs: List[_StyleRun] = []
        start = 0
        for index in range(1, len(text) + 1):
            if index == len(text) or styles[index] != styles[start]:
                style = styles[start]
                font = self.font_collection.resolve(style.family, style.weight, style.italic)
                runs.append(_StyleRun(start, index, style, font))
                start = index
        return runs

    # --- Shaping ---
    def _shape(self, text: str, style_runs: List[_StyleRun]) -> List[_ShapedGlyph]:
        shaped: List[_ShapedGlyph] = []
        for run_index, run in enumerate(style_runs):
            hb_font = self.font_collection.hb_font(run.font)
            # HarfBuzz positions are in font units at scale=upem
            scale = run.style.size / run.font.face.units_per_em
            infos, positions = shape_line(text[run.start : run.end], hb_font, self.features)
            for info, pos in zip(infos, positions):
                if text[run.start + info.cluster] in "\r\n":
                    continue
                shaped.append(
                    _ShapedGlyph(
                        id=info.codepoint,
                        cluster=run.start + info.cluster,
                        x_offset=pos.x_offset * scale,
                        y_offset=pos.y_offset * scale,
                        advance=pos.x_advance * scale,
                        run_index=run_index,
                    )
                )
        return shaped

    # --- Breaking ---
    @staticmethod
    def _measure_segments(text: str, glyphs: List[_ShapedGlyph]) -> List[BreakSegment]:
        segments = segment_text(text)
        widths = [0.0] * len(segments)
        trailing = [0.0] * len(segments)
        seg_index = 0
        for glyph in glyphs:
            while segments[seg_index].end <= glyph.cluster:
                seg_index += 1
            if text[glyph.cluster].isspace():
                trailing[seg_index] += glyph.advance
            else:
                widths[seg_index] += trailing[seg_index] + glyph.advance
                trailing[seg_index] = 0.0
        return [
            BreakSegment(seg.start, seg.end, widths[i], trailing[i], seg.mandatory)
            for i, seg in enumerate(segments)
        ]

    def _build_lines(
        self,
        segments: List[BreakSegment],
        breaks: List[Tuple[int, int, float]],
        glyphs: List[_ShapedGlyph],
        style_runs: List[_StyleRun],
    ) -> List[Line]:
        lines: List[Line] = []
        line_top = 0.0
        glyph_index = 0
        for first, last, width in breaks:
            start_char, end_char = segments[first].start, segments[last - 1].end
            line_glyphs = []
            while glyph_index < len(glyphs) and glyphs[glyph_index].cluster < end_char:
                line_glyphs.append(glyphs[glyph_index])
                glyph_index += 1

            groups = self._group_by_run(line_glyphs)
            used_runs = [style_runs[run_index] for run_index, _ in groups]
            if not used_runs:
                # Lines without glyphs still take the height of their style
                used_runs = [self._run_at(style_runs, start_char)]
            metrics = [self._run_metrics(run) for run in used_runs]
            above = max(m.ascent + (m.line_height - m.ascent - m.descent) / 2.0 for m in metrics)
            below = max(m.descent + (m.line_height - m.ascent - m.descent) / 2.0 for m in metrics)
            baseline = line_top + above

            runs: List[GlyphRun] = []
            pen_x = 0.0
            for (run_index, run_glyphs), run_metrics in zip(groups, metrics):
                style_run = style_runs[run_index]
                run_advance = sum(g.advance for g in run_glyphs)
                runs.append(
                    GlyphRun(
                        font=style_run.font,
                        font_size=style_run.style.size,
                        brush=style_run.style.brush,
                        glyphs=tuple(Glyph(g.id, g.x_offset, g.y_offset, g.advance, g.cluster) for g in run_glyphs),
                        offset=pen_x,
                        baseline=baseline,
                        metrics=run_metrics,
                        text_range=(min(g.cluster for g in run_glyphs), max(g.cluster for g in run_glyphs) + 1),
                    )
                )
                pen_x += run_advance

            height = above + below
            lines.append(Line(tuple(runs), 0.0, width, line_top, height, baseline, (start_char, end_char)))
            line_top += height
        return lines

    @staticmethod
    def _group_by_run(line_glyphs: List[_ShapedGlyph]) -> List[Tuple[int, List[_ShapedGlyph]]]:
        groups: List[Tuple[int, List[_ShapedGlyph]]] = []
        for glyph in line_glyphs:
            if groups and groups[-1][0] == glyph.run_index:
                groups[-1][1].append(glyph)
            else:
                groups.append((glyph.run_index, [glyph]))
        return groups

    @staticmethod
    def _run_at(style_runs: List[_StyleRun], char_index: int) -> _StyleRun:
        for run in style_runs:
            if run.start <= char_index < run.end:
                return run
        return style_runs[-1]

    @staticmethod
    def _run_metrics(run: _StyleRun) -> RunMetrics:
        face = run.font.face
        scale = run.style.size / face.units_per_em
        return RunMetrics(
            ascent=face.ascender * scale,
            descent=-face.descender * scale,
            line_height=run.style.size * run.style.line_height,
        )

    # --- Alignment ---
    def _align(self, lines: List[Line], width_constraint: WidthConstraint, layout_width: float) -> List[Line]:
        alignment = self.config.alignment
        container_width = layout_width if width_constraint is None else width_constraint
        if alignment == "start":
            return lines

        aligned = []
        for line in lines:
            free = max(0.0, container_width - line.width)
            shift = free / 2.0 if alignment == "center" else free
            runs = tuple(
                GlyphRun(
                    font=run.font,
                    font_size=run.font_size,
                    brush=run.brush,
                    glyphs=run.glyphs,
                    offset=run.offset + shift,
                    baseline=run.baseline,
                    metrics=run.metrics,
                    text_range=run.text_range,
                )
                for run in line.runs
            )
            aligned.append(
                Line(runs, shift, line.width, line.top, line.height, line.baseline, line.text_range)
            )
        log_message(f"Aligned {len(aligned)} lines ({alignment}) within {container_width:.1f}", verbose=self.verbose)
        return aligned
