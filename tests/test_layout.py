"""Tests for text fitting, script detection and block measurement."""

from caption_translator.config import StyleConfig
from caption_translator.layout import (
    available_width,
    compose_frame_phrase,
    detect_script,
    fit_text,
    layout_phrase,
    measure_block,
    normalize_cjk_spacing,
    split_in_half,
)
from caption_translator.models import LineGroup, ScriptClass, TranslatedPhrase

LONG_LATIN = "one two three four five six seven eight nine ten eleven twelve"


def make_line(text: str = "HELLO", x: float = 100, y: float = 500, width: float = 300) -> LineGroup:
    return LineGroup(text=text, x=x, y=y, width=width, height=30, font_size=24)


class TestScriptDetection:
    def test_latin(self):
        assert detect_script("Hello, world") is ScriptClass.LATIN

    def test_han(self):
        assert detect_script("你好") is ScriptClass.CJK

    def test_kana(self):
        assert detect_script("こんにちは") is ScriptClass.CJK

    def test_mixed_counts_as_cjk(self):
        assert detect_script("OK 好") is ScriptClass.CJK


class TestNormalizeCjkSpacing:
    def test_removes_space_between_ideographs(self):
        assert normalize_cjk_spacing("你好 世界") == "你好世界"

    def test_keeps_latin_spacing(self):
        assert normalize_cjk_spacing("Hello world") == "Hello world"

    def test_keeps_space_next_to_latin(self):
        assert normalize_cjk_spacing("你好 world") == "你好 world"

    def test_empty(self):
        assert normalize_cjk_spacing("") == ""


class TestSplitInHalf:
    def test_latin_by_words(self):
        """The first line takes the extra word."""
        assert split_in_half("a b c", ScriptClass.LATIN) == ["a b", "c"]

    def test_cjk_by_characters(self):
        assert split_in_half("一二三四五", ScriptClass.CJK) == ["一二三", "四五"]

    def test_single_word_not_split(self):
        assert split_in_half("word", ScriptClass.LATIN) == ["word"]


class TestFitText:
    """Tests for fit_text."""

    def test_short_text_unchanged(self):
        fitted = fit_text("Hello world", 1000, StyleConfig())

        assert fitted.lines == ["Hello world"]
        assert fitted.font_size == 44
        assert fitted.script is ScriptClass.LATIN

    def test_long_latin_wraps_and_shrinks(self):
        """Too wide at 44px: split into two lines, then shrink to fit the longer one."""
        fitted = fit_text(LONG_LATIN, 600, StyleConfig())

        assert fitted.lines == ["one two three four five six", "seven eight nine ten eleven twelve"]
        assert fitted.font_size == 28

    def test_cjk_wraps_without_shrinking(self):
        fitted = fit_text("你好世界你好世界你好世界", 300, StyleConfig())

        assert fitted.lines == ["你好世界你好", "世界你好世界"]
        assert fitted.font_size == 44
        assert fitted.script is ScriptClass.CJK

    def test_font_size_floor(self):
        """An unsplittable long word shrinks no further than the minimum size."""
        fitted = fit_text("a" * 200, 100, StyleConfig())

        assert fitted.lines == ["a" * 200]
        assert fitted.font_size == 12

    def test_force_single_line(self):
        fitted = fit_text(LONG_LATIN, 600, StyleConfig(force_single_line=True))

        assert len(fitted.lines) == 1
        assert fitted.font_size < 44

    def test_base_font_size_override(self):
        fitted = fit_text("Hello", 1000, StyleConfig(), base_font_size=30)

        assert fitted.font_size == 30

    def test_idempotent(self):
        """Fitting already-fitted text at the fitted size changes nothing."""
        style = StyleConfig()
        for text, width in [(LONG_LATIN, 600), ("你好世界你好世界你好世界", 300), ("Hi", 1000)]:
            first = fit_text(text, width, style)
            second = fit_text(first.text, width, style, base_font_size=first.font_size)

            assert second == first

    def test_existing_line_breaks_kept(self):
        fitted = fit_text("first\nsecond", 1000, StyleConfig())

        assert fitted.lines == ["first", "second"]


class TestAvailableWidth:
    def test_frame_fraction_minus_padding(self):
        assert available_width(1280, None, StyleConfig()) == 1132

    def test_source_anchor_uses_box_width(self):
        style = StyleConfig(anchor="source")

        assert available_width(1280, make_line(width=300), style) == 280

    def test_minimum(self):
        assert available_width(10, None, StyleConfig()) == 10


class TestLayoutPhrase:
    def test_sets_layout_fields(self):
        phrase = TranslatedPhrase(make_line(), "BONJOUR")

        laid_out = layout_phrase(phrase, 1280, StyleConfig())

        assert laid_out.is_laid_out
        assert laid_out.wrapped_text == "BONJOUR"
        assert laid_out.font_size == 44
        assert laid_out.script is ScriptClass.LATIN
        assert phrase.wrapped_text is None


class TestComposeFramePhrase:
    def test_nothing_to_show(self):
        assert compose_frame_phrase([]) is None
        assert compose_frame_phrase([TranslatedPhrase(make_line(), "  ")]) is None

    def test_joins_top_to_bottom(self):
        lower = TranslatedPhrase(make_line("WORLD", y=540, width=200), "MONDE")
        upper = TranslatedPhrase(make_line("HELLO", y=500, width=300), "BONJOUR")

        combined = compose_frame_phrase([lower, upper])

        assert combined.translation == "BONJOUR MONDE"
        assert combined.source.text == "HELLO WORLD"
        assert (combined.source.y, combined.source.bottom) == (500, 570)
        assert combined.source.width == 300


class TestMeasureBlock:
    def test_single_line(self):
        assert measure_block(["A"], 40, ScriptClass.LATIN, StyleConfig()) == (45, 60)

    def test_two_lines_include_gap(self):
        width, height = measure_block(["AB", "A"], 40, ScriptClass.LATIN, StyleConfig())

        assert height == 2 * 40 + 6 + 20
        assert width == 50 + 20
