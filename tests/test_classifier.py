"""Tests for color-value detection."""

import pytest

from pastee.classifier import classify, is_color
from pastee.types import ContentVariant, Tag


COLOR_SAMPLES = [
    "#F0F",
    "#FF00FF",
    "#FF00FF80",
    "#ff00ff",
    "rgb(255, 0, 255)",
    "rgba(255, 0, 255, 0.5)",
    "hsl(300, 100%, 50%)",
    "hsla(300, 100%, 50%, 0.5)",
]

NON_COLOR_SAMPLES = [
    "Hello World",
    "#GG00FF",
    "rgb(255, 0)",
    "just text",
    "12345",
    "",
]


class TestHexColors:
    """Hex literals: '#' plus 3, 6 or 8 hex digits."""

    @pytest.mark.parametrize("text", ["#FFF", "#FF0000", "#FF000080", "#abcdef"])
    def test_valid_lengths(self, text):
        """Three, six and eight digit hex literals are colors."""
        assert is_color(text)

    @pytest.mark.parametrize("text", ["#", "#F", "#FF", "#FFFF", "#FFFFF", "#FFFFFFF", "#FFFFFFFFF"])
    def test_other_lengths_are_text(self, text):
        """Any other digit count is plain text."""
        assert not is_color(text)

    def test_non_hex_character(self):
        """A non-hex digit anywhere makes it text."""
        assert not is_color("#GG00FF")
        assert not is_color("#FF00FZ")

    def test_missing_hash(self):
        """Hex digits without a leading hash are text."""
        assert not is_color("FF0000")

    def test_surrounding_whitespace_is_ignored(self):
        """The literal may be padded with whitespace."""
        assert is_color("  #FF0000\n")

    def test_inner_whitespace_is_not_hex(self):
        """Whitespace inside the literal breaks the match."""
        assert not is_color("#FF 000")


class TestFunctionColors:
    """rgb/rgba/hsl/hsla with the right argument count."""

    @pytest.mark.parametrize("text", [
        "rgb(255,0,0)",
        "RGB(255, 0, 0)",
        "Rgb(  255 ,0,   0 )",
        "rgba(255, 0, 0, 0.5)",
        "RGBA(1,2,3,4)",
        "hsl(120, 50%, 50%)",
        "HSL(120,50%,50%)",
        "hsla(120, 50%, 50%, 1)",
    ])
    def test_structural_match(self, text):
        """Function syntax matches case-insensitively with loose spacing."""
        assert is_color(text)

    @pytest.mark.parametrize("text", [
        "rgb(255,0)",
        "rgb(255,0,0,0)",
        "rgba(255,0,0)",
        "hsl(1,2)",
        "hsla(1,2,3)",
        "rgb(255,0,0",
        "rgb 255,0,0",
    ])
    def test_wrong_shape_is_text(self, text):
        """Wrong argument counts or broken syntax are text."""
        assert not is_color(text)

    def test_values_are_not_range_checked(self):
        """Out-of-range and non-numeric arguments still count as colors."""
        assert is_color("rgb(999, -5, 300)")
        assert is_color("hsl(abc, x, y)")
        assert is_color("rgba(,,,)")


class TestClassify:
    """classify() returns the variant and its tag set."""

    @pytest.mark.parametrize("text", COLOR_SAMPLES)
    def test_color_samples(self, text):
        """Known color literals classify as color."""
        assert classify(text) == (ContentVariant.COLOR, [Tag.COLOR])

    @pytest.mark.parametrize("text", NON_COLOR_SAMPLES)
    def test_non_color_samples(self, text):
        """Everything else classifies as text."""
        assert classify(text) == (ContentVariant.TEXT, [Tag.TEXT])
