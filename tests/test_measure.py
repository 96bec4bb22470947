import pytest

from flextext.layout.measure import TextNodeContext, measure_function, width_constraint_for
from flextext.models import AvailableSize, AvailableSpace, KnownSize, MeasuredLayout, Size, StyledText
from utils.exceptions import LayoutResolutionError


class RecordingBuilder:
    def __init__(self, width=42.0, height=21.0):
        self.width = width
        self.height = height
        self.constraints = []

    def build_styled(self, styled_text, width_constraint=None):
        self.constraints.append(width_constraint)
        return MeasuredLayout(self.width, self.height, (), width_constraint)


class ExplodingBuilder:
    def build_styled(self, styled_text, width_constraint=None):
        raise AssertionError("builder should not be called")


def available(width, height=None):
    return AvailableSize(width, height or AvailableSpace.max_content())


CONTEXT = TextNodeContext(StyledText("hello world"))


def test_width_constraint_mapping():
    assert width_constraint_for(None, AvailableSpace.min_content()) == 0.0
    assert width_constraint_for(None, AvailableSpace.max_content()) is None
    assert width_constraint_for(None, AvailableSpace.definite(120)) == 120.0
    assert width_constraint_for(80, AvailableSpace.min_content()) == 80.0


def test_both_known_dimensions_are_returned_unchanged():
    size = CONTEXT.measure(KnownSize(10.0, 20.0), available(AvailableSpace.max_content()), ExplodingBuilder())
    assert size == Size(10.0, 20.0)


def test_known_width_takes_priority():
    builder = RecordingBuilder()
    size = CONTEXT.measure(KnownSize(120.0, None), available(AvailableSpace.min_content()), builder)
    assert builder.constraints == [120.0]
    assert size == Size(120.0, 21.0)


@pytest.mark.parametrize(
    "space, expected",
    [
        (AvailableSpace.min_content(), 0.0),
        (AvailableSpace.max_content(), None),
        (AvailableSpace.definite(250.0), 250.0),
    ],
)
def test_available_width_drives_the_constraint(space, expected):
    builder = RecordingBuilder()
    size = CONTEXT.measure(KnownSize(), available(space), builder)
    assert builder.constraints == [expected]
    assert size == Size(42.0, 21.0)


def test_known_height_is_kept():
    builder = RecordingBuilder()
    size = CONTEXT.measure(KnownSize(None, 99.0), available(AvailableSpace.max_content()), builder)
    assert size == Size(42.0, 99.0)


def test_measure_function_without_context_is_zero():
    size = measure_function(KnownSize(), available(AvailableSpace.max_content()), None, ExplodingBuilder())
    assert size == Size(0.0, 0.0)


def test_measure_function_dispatches_to_text_context():
    builder = RecordingBuilder()
    size = measure_function(KnownSize(), available(AvailableSpace.definite(300.0)), CONTEXT, builder)
    assert size == Size(42.0, 21.0)
    assert builder.constraints == [300.0]


def test_measure_function_rejects_unknown_context():
    with pytest.raises(LayoutResolutionError):
        measure_function(KnownSize(), available(AvailableSpace.max_content()), object(), RecordingBuilder())


def test_measuring_real_text_is_idempotent(builder):
    context = TextNodeContext(builder.styled_text("The quick brown fox jumped over the lazy dog."))
    space = available(AvailableSpace.definite(100.0))
    first = measure_function(KnownSize(), space, context, builder)
    second = measure_function(KnownSize(), space, context, builder)
    assert first == second
    assert first.width <= 100.0
    assert first.height > 0.0
