from dataclasses import dataclass
from typing import Any

from flextext.models import (
    AvailableSize,
    AvailableSpace,
    AvailableSpaceKind,
    KnownSize,
    Size,
    StyledText,
    WidthConstraint,
)
from flextext.text.layout_engine import TextLayoutBuilder
from utils.exceptions import LayoutResolutionError
from utils.logging import log_message


def width_constraint_for(known_width, available_width: AvailableSpace) -> WidthConstraint:
    """
    Derives the text width constraint from a layout engine query.

    A known width wins; otherwise min-content maps to 0, max-content to
    None (no wrapping) and a definite space to its value.
    """
    if known_width is not None:
        return float(known_width)
    if available_width.kind is AvailableSpaceKind.MIN_CONTENT:
        return 0.0
    if available_width.kind is AvailableSpaceKind.MAX_CONTENT:
        return None
    return float(available_width.value)


@dataclass(frozen=True)
class TextNodeContext:
    """Node context of a text leaf: the styled text it displays."""

    styled_text: StyledText
    verbose: bool = False

    def measure(self, known_dimensions: KnownSize, available_space: AvailableSize,
                builder: TextLayoutBuilder) -> Size:
        if known_dimensions.width is not None and known_dimensions.height is not None:
            return Size(known_dimensions.width, known_dimensions.height)

        width_constraint = width_constraint_for(known_dimensions.width, available_space.width)
        layout = builder.build_styled(self.styled_text, width_constraint)
        log_message(
            f"Measure: constraint={width_constraint} -> {layout.width():.2f}x{layout.height():.2f} "
            f"({layout.line_count} lines)",
            verbose=self.verbose,
        )
        return Size(
            known_dimensions.width if known_dimensions.width is not None else layout.width(),
            known_dimensions.height if known_dimensions.height is not None else layout.height(),
        )


def measure_function(known_dimensions: KnownSize, available_space: AvailableSize,
                     node_context: Any, builder: TextLayoutBuilder) -> Size:
    """
    Dispatches a layout engine measurement to the node's context.

    Leaves without a context measure as zero size.

    Raises:
        LayoutResolutionError: If the context is of an unknown kind
    """
    if node_context is None:
        return Size(0.0, 0.0)
    if isinstance(node_context, TextNodeContext):
        return node_context.measure(known_dimensions, available_space, builder)
    raise LayoutResolutionError(f"Unknown node context: {type(node_context).__name__}")
