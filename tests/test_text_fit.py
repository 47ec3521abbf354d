from pathlib import Path

import pytest

from conftest import FakeOracle
from text_fit import (
    BOLD,
    ITALIC,
    FitTuning,
    ReportlabWidthOracle,
    ShorteningStage,
    fit_break_font_size,
    load_fit_tuning,
    preserve_word_shape,
    remove_vowels,
    shorten_phrase,
    substitute_morphemes,
    truncate_aggressively,
)


# At 10pt the fake oracle measures exactly one mm per character.
SIZE = 10


def _shorten(phrase, max_width, oracle, **kw):
    events = []
    out = shorten_phrase(phrase, max_width, SIZE, oracle=oracle, trace=events.append, **kw)
    return out, events


class TestRemoveVowels:
    def test_keeps_first_and_last_letter(self):
        assert remove_vowels("Something Wonderful Tonight") == "Smthng Wndrfl Tnght"

    def test_short_words_untouched(self):
        assert remove_vowels("the cat sat on a mat") == "the cat sat on a mat"

    def test_all_vowel_interior_keeps_one_letter(self):
        assert remove_vowels("Bead") == "Bed"
        assert remove_vowels("Aeiou") == "Aeu"

    def test_case_insensitive(self):
        assert remove_vowels("BEAUTIFUL") == "BTFL"

    def test_whitespace_collapsed(self):
        assert remove_vowels("  Rock   Roll ") == "Rck Rll"

    def test_empty(self):
        assert remove_vowels("") == ""


class TestSubstituteMorphemes:
    def test_whole_words(self):
        assert substitute_morphemes("Rock and Roll") == "Rock & Roll"

    def test_case_insensitive(self):
        assert substitute_morphemes("AND With Without") == "& w/ w/o"

    def test_word_boundaries(self):
        assert substitute_morphemes("Android sandwich Withering") == "Android sandwich Withering"

    def test_unknown_words_untouched(self):
        assert substitute_morphemes("Together Forever") == "tgthr Forever"


class TestPreserveWordShape:
    @pytest.mark.parametrize(
        "word, n, expected",
        [
            ("Wonderful", 5, "Wondl"),
            ("Hello", 3, "Heo"),
            ("Hello", 2, "Ho"),
            ("Hello", 1, "H"),
            ("Hi", 5, "Hi"),
        ],
    )
    def test_truncation(self, word, n, expected):
        assert preserve_word_shape(word, n) == expected


class TestTruncateAggressively:
    def test_budget_shared_between_words(self):
        assert truncate_aggressively("Smthng Wndrfl Tnght", 12) == "Smtg Wndl Tnt"

    def test_words_dropped_when_budget_runs_out(self):
        assert truncate_aggressively("alpha beta gamma delta", 5) == "aa ba"

    def test_zero_budget(self):
        assert truncate_aggressively("alpha beta", 0) == ""

    def test_letters_never_increase_as_budget_shrinks(self):
        phrase = "Smthng Wndrfl Tnght"
        previous = None
        for budget in range(20, -1, -1):
            out = truncate_aggressively(phrase, budget)
            words = out.split()
            assert all(len(w) >= 1 for w in words)
            assert len(words) <= 3
            letters = sum(len(w) for w in words)
            if previous is not None:
                assert letters <= previous
            previous = letters


class TestShortenPhrase:
    def test_break_labels_only_transliterated(self, fake_oracle):
        out = shorten_phrase("Přestávka na pivo", 1, SIZE, False, oracle=fake_oracle)
        assert out == "Prestavka na pivo"
        assert fake_oracle.calls == []

    def test_empty_phrase(self, fake_oracle):
        out, events = _shorten("", 1, fake_oracle)
        assert out == ""
        assert events == []

    def test_at_trigger_threshold_unchanged(self, fake_oracle):
        out, events = _shorten("abcdefghi", 10, fake_oracle)
        assert out == "abcdefghi"
        assert [e.stage for e in events] == [ShorteningStage.IDENTITY]
        assert events[0].accepted

    def test_just_over_threshold_shortens(self, fake_oracle):
        out, events = _shorten("abcdefghij", 10, fake_oracle)
        assert out == "abcdfghj"
        assert [e.stage for e in events] == [ShorteningStage.IDENTITY, ShorteningStage.VOWEL_REMOVAL]
        assert not events[0].accepted and events[1].accepted

    def test_vowel_removal_scenario(self, fake_oracle):
        phrase = "Something Wonderful Tonight"
        out, events = _shorten(phrase, 20, fake_oracle)
        assert out == "Smthng Wndrfl Tnght"
        assert len(out) < len(phrase)
        assert events[-1].stage is ShorteningStage.VOWEL_REMOVAL

    def test_morpheme_stage(self, fake_oracle):
        out, events = _shorten("Rock and Roll and Rock and Roll", 26, fake_oracle)
        assert out == "Rock & Roll & Rock & Roll"
        assert events[-1].stage is ShorteningStage.MORPHEME_SUBSTITUTION

    def test_combined_stage(self, fake_oracle):
        out, events = _shorten("Rock and Roll and Rock and Roll", 22, fake_oracle)
        assert out == "Rck & Rll & Rck & Rll"
        assert events[-1].stage is ShorteningStage.VOWEL_REMOVAL_AFTER_MORPHEME

    def test_aggressive_truncation_is_terminal(self, fake_oracle):
        out, events = _shorten("Rock and Roll and Rock and Roll", 10, fake_oracle)
        assert out == "Rk & Rl & Rk"
        assert [e.stage for e in events] == list(ShorteningStage)
        assert events[-1].width is None and events[-1].accepted

    def test_stages_measured_against_full_width(self, fake_oracle):
        # 19 chars: over the 90% trigger of 20 but fits 100%
        out, _ = _shorten("Something Wonderful Tonight", 19, fake_oracle)
        assert out == "Smthng Wndrfl Tnght"

    def test_transliterates_before_measuring(self, fake_oracle):
        out, _ = _shorten("Píseň", 100, fake_oracle)
        assert out == "Pisen"
        assert fake_oracle.calls[0][0] == "Pisen"

    def test_style_passed_to_oracle(self, fake_oracle):
        shorten_phrase("Something Wonderful Tonight", 5, SIZE, oracle=fake_oracle, style=BOLD)
        assert {c[3] for c in fake_oracle.calls} == {BOLD}

    def test_custom_trigger(self, fake_oracle):
        tuning = FitTuning(shorten_trigger=1.0)
        out = shorten_phrase("abcdefghij", 10, SIZE, oracle=fake_oracle, tuning=tuning)
        assert out == "abcdefghij"


class TestReportlabWidths:
    phrases = [
        "Something Wonderful Tonight",
        "Rock and Roll Without You",
        "Every Little Thing Should Be Together",
    ]

    def test_widths_never_grow_through_stages(self):
        oracle = ReportlabWidthOracle()
        for phrase in self.phrases:
            w = lambda t: oracle.measure(t, 40, "Helvetica", BOLD)  # noqa: E731
            original = w(phrase)
            morph = w(substitute_morphemes(phrase))
            assert w(remove_vowels(phrase)) <= original
            assert morph <= original
            assert w(remove_vowels(substitute_morphemes(phrase))) <= morph

    def test_bold_is_wider_than_regular(self):
        oracle = ReportlabWidthOracle()
        assert oracle.measure("Setlist", 20, "Helvetica", BOLD) > oracle.measure("Setlist", 20, "Helvetica", "normal")

    def test_measurement_is_in_mm(self):
        oracle = ReportlabWidthOracle()
        # Helvetica "M" is 833/1000 em; 72pt == 25.4mm
        assert oracle.measure("M", 72, "Helvetica", "normal") == pytest.approx(0.833 * 25.4)

    def test_unknown_family_raises(self):
        with pytest.raises(ValueError):
            ReportlabWidthOracle().measure("x", 10, "Nope", BOLD)


class TestBreakFontSize:
    def test_short_label_keeps_base_size(self, fake_oracle):
        assert fit_break_font_size("Short break", 100, 28, oracle=fake_oracle) == 28

    def test_long_label_shrinks(self, fake_oracle):
        assert fit_break_font_size("x" * 60, 100, 28, oracle=fake_oracle) == 16

    def test_never_below_minimum(self, fake_oracle):
        assert fit_break_font_size("x" * 500, 100, 28, oracle=fake_oracle) == 8

    def test_measured_in_italic(self, fake_oracle):
        fit_break_font_size("Pauza", 100, 28, oracle=fake_oracle)
        assert fake_oracle.calls[0][3] == ITALIC


class TestTuning:
    def test_missing_file_gives_defaults(self, tmp_path: Path):
        assert load_fit_tuning(tmp_path / "nope.json") == FitTuning()

    def test_bundled_file_matches_defaults(self):
        assert load_fit_tuning() == FitTuning()

    def test_overrides(self, tmp_path: Path):
        p = tmp_path / "t.json"
        p.write_text('{"shorten_trigger": 0.8, "single_page_song_limit": 12}', encoding="utf-8")
        t = load_fit_tuning(p)
        assert t.shorten_trigger == 0.8
        assert t.single_page_song_limit == 12
        assert isinstance(t.single_page_song_limit, int)

    def test_unknown_key(self, tmp_path: Path):
        p = tmp_path / "t.json"
        p.write_text('{"shrink": 1}', encoding="utf-8")
        with pytest.raises(ValueError, match="shrink"):
            load_fit_tuning(p)

    def test_boolean_value_rejected(self, tmp_path: Path):
        p = tmp_path / "t.json"
        p.write_text('{"break_ratio": true}', encoding="utf-8")
        with pytest.raises(ValueError, match="break_ratio"):
            load_fit_tuning(p)

    @pytest.mark.parametrize(
        "override",
        [
            '{"break_ratio": 1.5}',
            '{"min_break_font_size": 30}',
            '{"multi_page_break_size": 50}',
            '{"min_search_break_size": 30}',
            '{"font_step": 0}',
            '{"shorten_trigger": 0}',
        ],
    )
    def test_inconsistent_values_rejected(self, tmp_path: Path, override):
        p = tmp_path / "t.json"
        p.write_text(override, encoding="utf-8")
        with pytest.raises(ValueError, match="must be"):
            load_fit_tuning(p)
