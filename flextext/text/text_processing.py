from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from utils.exceptions import ValidationError


@dataclass(frozen=True)
class BreakSegment:
    """
    A run of text between two break opportunities.

    ``width`` excludes trailing whitespace, which is carried separately in
    ``trailing`` so it never counts towards the width of the line it ends.
    """

    start: int
    end: int
    width: float = 0.0
    trailing: float = 0.0
    mandatory: bool = False


def byte_range_to_chars(text: str, start: int, end: int) -> Tuple[int, int]:
    """
    Converts a UTF-8 byte range into a character range.

    Raises:
        ValidationError: If either offset is out of range or splits a character
    """
    boundaries = {}
    offset = 0
    for index, ch in enumerate(text):
        boundaries[offset] = index
        offset += len(ch.encode("utf-8"))
    boundaries[offset] = len(text)

    if start > end:
        raise ValidationError(f"Invalid byte range {start}..{end}")
    if start not in boundaries or end not in boundaries:
        raise ValidationError(
            f"Byte range {start}..{end} is out of range or not on a character boundary (text is {offset} bytes)"
        )
    return boundaries[start], boundaries[end]


def segment_text(text: str) -> List[BreakSegment]:
    """
    Splits text at break opportunities.

    A segment ends after a run of whitespace (soft break) or after a newline
    (mandatory break). Widths are filled in later by the caller.
    """
    segments: List[BreakSegment] = []
    start = 0
    length = len(text)
    for i, ch in enumerate(text):
        if ch == "\n":
            segments.append(BreakSegment(start, i + 1, mandatory=True))
            start = i + 1
        elif ch.isspace() and (i + 1 == length or not text[i + 1].isspace()):
            segments.append(BreakSegment(start, i + 1))
            start = i + 1
    if start < length:
        segments.append(BreakSegment(start, length))
    return segments


def line_width(segments: Sequence[BreakSegment], first: int, last: int) -> float:
    """Width of segments[first:last] on one line, without the final trailing whitespace."""
    if last <= first:
        return 0.0
    inner = sum(seg.width + seg.trailing for seg in segments[first : last - 1])
    return inner + segments[last - 1].width


def _paragraphs(segments: Sequence[BreakSegment]) -> List[Tuple[int, int]]:
    paragraphs = []
    start = 0
    for i, seg in enumerate(segments):
        if seg.mandatory:
            paragraphs.append((start, i + 1))
            start = i + 1
    if start < len(segments):
        paragraphs.append((start, len(segments)))
    return paragraphs


def break_lines_greedy(
    segments: Sequence[BreakSegment], max_width: Optional[float]
) -> List[Tuple[int, int, float]]:
    """
    First-fit line breaking.

    Returns (first_segment, end_segment, width) per line. A segment wider than
    max_width is placed on its own line and overflows.
    """
    lines: List[Tuple[int, int, float]] = []
    for para_start, para_end in _paragraphs(segments):
        line_start = para_start
        for i in range(para_start + 1, para_end):
            if max_width is not None and line_width(segments, line_start, i + 1) > max_width:
                lines.append((line_start, i, line_width(segments, line_start, i)))
                line_start = i
        lines.append((line_start, para_end, line_width(segments, line_start, para_end)))
    return lines


def _break_paragraph_optimal(
    segments: Sequence[BreakSegment],
    para_start: int,
    para_end: int,
    max_width: float,
    badness_exponent: float,
) -> List[Tuple[int, int]]:
    """
    Pragmatic Knuth-Plass style DP over one paragraph.

    Cost of a line is slack ** badness_exponent; the last line is free and a
    single overflowing segment forms its own zero-cost line.
    """
    count = para_end - para_start
    min_cost: List[float] = [float("inf")] * (count + 1)
    path: List[int] = [0] * (count + 1)
    min_cost[0] = 0.0

    for i in range(1, count + 1):
        for j in range(i - 1, -1, -1):
            width = line_width(segments, para_start + j, para_start + i)
            if width > max_width and j < i - 1:
                # Further extending will only increase width
                break

            if width > max_width or i == count:
                badness = 0.0
            else:
                badness = pow(max_width - width, badness_exponent)

            total_cost = min_cost[j] + badness
            if total_cost < min_cost[i]:
                min_cost[i] = total_cost
                path[i] = j

    breaks: List[Tuple[int, int]] = []
    current_break = count
    while current_break > 0:
        prev_break = path[current_break]
        breaks.insert(0, (para_start + prev_break, para_start + current_break))
        current_break = prev_break
    return breaks


def break_lines_optimal(
    segments: Sequence[BreakSegment],
    max_width: Optional[float],
    badness_exponent: float = 3.0,
) -> List[Tuple[int, int, float]]:
    """Globally optimal line breaking per paragraph; same contract as break_lines_greedy."""
    if max_width is None:
        return break_lines_greedy(segments, None)

    lines: List[Tuple[int, int, float]] = []
    for para_start, para_end in _paragraphs(segments):
        for first, last in _break_paragraph_optimal(
            segments, para_start, para_end, max_width, badness_exponent
        ):
            lines.append((first, last, line_width(segments, first, last)))
    return lines
