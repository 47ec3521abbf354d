#!/usr/bin/env python3
"""
Text fitting for the stage view of a setlist.

Two jobs live here:
- pick one font size for all song lines (and a smaller one for breaks) so a
  short setlist fills a single A4 page;
- shorten song titles that still overflow their column, trying progressively
  more aggressive transforms and keeping the first one that fits.

All widths come from a WidthOracle; for PDF output that is reportlab's
font metrics, converted to millimetres.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont

from load_setlist import SetlistEntry, count_songs
from transliterate import transliterate

logger = logging.getLogger(__name__)

_ROOT = Path(__file__).resolve().parent
_TUNING_PATH = _ROOT / "fit_tuning.json"


# -----------------------------
# Tuning
# -----------------------------
@dataclass(frozen=True)
class FitTuning:
    # A point is 1/72 inch; font sizes are in points, layout is in mm.
    pt_to_mm: float = 0.3528

    # Shortening only starts once a title uses more than this share of its column.
    shorten_trigger: float = 0.9

    # Single-page search domain.
    single_page_song_limit: int = 9
    max_font_size: float = 60
    min_font_size: float = 24
    font_step: float = 2
    break_ratio: float = 0.6
    min_search_break_size: float = 16
    min_song_font_size: float = 24
    min_break_font_size: float = 14
    height_reserve_mm: float = 20

    # Multi-page fixed sizes.
    multi_page_song_size: float = 42
    multi_page_break_size: float = 28

    # Vertical rhythm.
    single_page_line_factor: float = 1.05
    multi_page_line_factor: float = 1.15
    estimate_break_gap_factor: float = 0.15
    single_page_break_gap_factor: float = 0.1
    multi_page_break_gap_factor: float = 0.2
    baseline_factor: float = 0.8

    # Break labels shrink one point at a time down to this size.
    min_break_label_size: float = 8


def load_fit_tuning(path: Optional[Path] = None) -> FitTuning:
    """
    Load tuning overrides from JSON (default: fit_tuning.json next to this
    module). A missing file yields the built-in defaults.
    """
    p = path or _TUNING_PATH
    if not p.exists():
        return FitTuning()

    data = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{p}: tuning must be a JSON object")

    types = {f.name: f.type for f in fields(FitTuning)}
    unknown = sorted(k for k in data if k not in types)
    if unknown:
        raise ValueError(f"{p}: unknown tuning keys: {', '.join(unknown)}")

    overrides: Dict[str, Any] = {}
    for k, v in data.items():
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError(f"{p}: tuning value for {k} must be a number, got {v!r}")
        # field types are strings under `from __future__ import annotations`
        overrides[k] = int(v) if types[k] == "int" else float(v)
    tuning = replace(FitTuning(), **overrides)

    problems = []
    if not 0 < tuning.shorten_trigger <= 1:
        problems.append("shorten_trigger must be in (0, 1]")
    if tuning.font_step <= 0:
        problems.append("font_step must be > 0")
    if tuning.break_ratio > 1:
        problems.append("break_ratio must be <= 1")
    if tuning.min_search_break_size > tuning.min_font_size:
        problems.append("min_search_break_size must be <= min_font_size")
    if tuning.min_break_font_size > tuning.min_song_font_size:
        problems.append("min_break_font_size must be <= min_song_font_size")
    if tuning.multi_page_break_size > tuning.multi_page_song_size:
        problems.append("multi_page_break_size must be <= multi_page_song_size")
    if problems:
        raise ValueError(f"{p}: {'; '.join(problems)}")
    return tuning


# -----------------------------
# Fonts and measurement
# -----------------------------
NORMAL = "normal"
BOLD = "bold"
ITALIC = "italic"
BOLD_ITALIC = "bold_italic"


@dataclass(frozen=True)
class PdfFontPack:
    regular: str
    bold: str
    italic: str
    bold_italic: str
    unicode_ok: bool

    def for_style(self, style: str) -> str:
        if style == BOLD:
            return self.bold
        if style == ITALIC:
            return self.italic
        if style == BOLD_ITALIC:
            return self.bold_italic
        if style == NORMAL:
            return self.regular
        raise ValueError(f"Unknown font style: {style!r}")


HELVETICA = PdfFontPack(
    regular="Helvetica",
    bold="Helvetica-Bold",
    italic="Helvetica-Oblique",
    bold_italic="Helvetica-BoldOblique",
    unicode_ok=False,
)

DEFAULT_FAMILY = "Helvetica"


def register_unicode_font_pack(base_dir: Path) -> PdfFontPack:
    """
    Register a Unicode-capable font pack (regular/bold/italic/bold-italic).

    Strategy:
    - Prefer project-local fonts in ./fonts (DejaVuSans*.ttf).
    - Fall back to common system font locations.
    - If none available, fall back to the built-in Helvetica fonts.
    """
    fonts_dir = base_dir / "fonts"
    names = ("DejaVuSans.ttf", "DejaVuSans-Bold.ttf", "DejaVuSans-Oblique.ttf", "DejaVuSans-BoldOblique.ttf")

    candidates: List[Path] = [fonts_dir]
    candidates.append(Path("/usr/share/fonts/truetype/dejavu"))
    candidates.append(Path("/usr/share/fonts/dejavu"))

    for d in candidates:
        reg_fp, bold_fp, ital_fp, bold_ital_fp = (d / n for n in names)
        if not reg_fp.is_file():
            continue

        def reg_font(fp: Path, suffix: str) -> Optional[str]:
            if not fp.is_file():
                return None
            name = f"SetlistText-{suffix}"
            if name not in pdfmetrics.getRegisteredFontNames():
                pdfmetrics.registerFont(TTFont(name, str(fp)))
            return name

        reg_name = reg_font(reg_fp, "Regular")
        bold_name = reg_font(bold_fp, "Bold") or reg_name
        ital_name = reg_font(ital_fp, "Italic") or reg_name
        bold_ital_name = reg_font(bold_ital_fp, "BoldItalic") or bold_name
        logger.info("Using Unicode font pack from %s", d)
        return PdfFontPack(reg_name, bold_name, ital_name, bold_ital_name, unicode_ok=True)

    logger.info("No Unicode font found; using built-in Helvetica")
    return HELVETICA


class WidthOracle(Protocol):
    def measure(self, text: str, font_size: float, family: str, style: str) -> float:
        """Rendered width of `text` in mm."""
        ...


class ReportlabWidthOracle:
    """
    Text widths from reportlab's font metrics. Stateless: the font is chosen
    per call from (family, style), nothing is set on any canvas.
    """

    def __init__(self, packs: Optional[Dict[str, PdfFontPack]] = None) -> None:
        self.packs = dict(packs or {DEFAULT_FAMILY: HELVETICA})

    def font_name(self, family: str, style: str) -> str:
        try:
            pack = self.packs[family]
        except KeyError:
            raise ValueError(f"Unknown font family: {family!r}") from None
        return pack.for_style(style)

    def measure(self, text: str, font_size: float, family: str, style: str) -> float:
        return pdfmetrics.stringWidth(text, self.font_name(family, style), font_size) / mm


# -----------------------------
# Shortening transforms
# -----------------------------
class ShorteningStage(Enum):
    IDENTITY = 0
    VOWEL_REMOVAL = 1
    MORPHEME_SUBSTITUTION = 2
    VOWEL_REMOVAL_AFTER_MORPHEME = 3
    AGGRESSIVE_TRUNCATION = 4


ABBREVIATIONS: Dict[str, str] = {
    "and": "&",
    "with": "w/",
    "without": "w/o",
    "through": "thru",
    "because": "bc",
    "before": "bfr",
    "after": "aftr",
    "between": "btwn",
    "around": "arnd",
    "tonight": "tnght",
    "something": "smthg",
    "someone": "smne",
    "together": "tgthr",
    "remember": "rmbr",
    "should": "shld",
    "would": "wld",
    "could": "cld",
    "never": "nvr",
    "every": "evry",
    "people": "ppl",
    "little": "ltl",
}

_ABBREVIATION_RE = re.compile(
    r"\b(" + "|".join(sorted(ABBREVIATIONS, key=len, reverse=True)) + r")\b",
    re.IGNORECASE,
)
_VOWELS_RE = re.compile(r"[aeiou]", re.IGNORECASE)


def remove_vowels(phrase: str) -> str:
    """
    Keep the first and last letter of every word longer than 3 characters
    and drop the vowels in between.
    """
    out: List[str] = []
    for word in phrase.split():
        if len(word) <= 3:
            out.append(word)
            continue
        middle = word[1:-1]
        kept = _VOWELS_RE.sub("", middle)
        # all-vowel interior: keep one letter so the word doesn't collapse to two
        if not kept and len(middle) > 1:
            kept = middle[0]
        out.append(word[0] + kept + word[-1])
    return " ".join(out)


def substitute_morphemes(phrase: str) -> str:
    """Whole-word, case-insensitive replacement with short conventional forms."""
    return _ABBREVIATION_RE.sub(lambda m: ABBREVIATIONS[m.group(1).lower()], phrase)


def preserve_word_shape(word: str, max_length: int) -> str:
    """Truncate `word` to `max_length`, keeping its first and last letter when possible."""
    if len(word) <= max_length:
        return word
    if max_length >= 3:
        return word[0] + word[1:-1][:max_length - 2] + word[-1]
    if max_length >= 2:
        return word[0] + word[-1]
    return word[0]


def truncate_aggressively(phrase: str, budget_chars: int) -> str:
    """
    Fit `phrase` into `budget_chars` characters (spaces included), sharing
    what is left evenly among the words still to place, at least 2 each.
    Words that no longer fit are dropped.
    """
    words = phrase.split()
    result = ""
    for i, word in enumerate(words):
        remaining = budget_chars - len(result)
        if remaining <= 0:
            break
        target = max(2, min(len(word), remaining // (len(words) - i)))
        if result:
            result += " "
        result += preserve_word_shape(word, target)
    return result


# -----------------------------
# Progressive shortener
# -----------------------------
@dataclass(frozen=True)
class StageEvent:
    stage: ShorteningStage
    text: str
    width: Optional[float]  # None for the unmeasured truncation stage
    max_width: float
    accepted: bool


StageTrace = Callable[[StageEvent], None]


def _emit(trace: Optional[StageTrace], event: StageEvent) -> None:
    logger.debug(
        "%s: %r width=%s max=%.2f%s",
        event.stage.name,
        event.text,
        "-" if event.width is None else f"{event.width:.2f}",
        event.max_width,
        " (accepted)" if event.accepted else "",
    )
    if trace is not None:
        trace(event)


def shorten_phrase(
    phrase: str,
    max_width: float,
    font_size: float,
    shortenable: bool = True,
    *,
    oracle: WidthOracle,
    family: str = DEFAULT_FAMILY,
    style: str = BOLD,
    tuning: Optional[FitTuning] = None,
    trace: Optional[StageTrace] = None,
) -> str:
    """
    Return the display text for `phrase` in a column `max_width` mm wide.

    Break labels (`shortenable=False`) are only transliterated. Song titles
    are left alone while they use at most `shorten_trigger` of the column;
    otherwise vowel removal, abbreviations, and both combined are tried in
    turn against the full width, and aggressive truncation is the final
    answer when none of them fit.
    """
    tuning = tuning or FitTuning()
    working = transliterate(phrase)
    if not shortenable or not working:
        return working

    def width(text: str) -> float:
        return oracle.measure(text, font_size, family, style)

    w = width(working)
    if w <= max_width * tuning.shorten_trigger:
        _emit(trace, StageEvent(ShorteningStage.IDENTITY, working, w, max_width, True))
        return working
    _emit(trace, StageEvent(ShorteningStage.IDENTITY, working, w, max_width, False))

    candidates: List[Tuple[ShorteningStage, str]] = [
        (ShorteningStage.VOWEL_REMOVAL, remove_vowels(working)),
        (ShorteningStage.MORPHEME_SUBSTITUTION, substitute_morphemes(working)),
        (ShorteningStage.VOWEL_REMOVAL_AFTER_MORPHEME, remove_vowels(substitute_morphemes(working))),
    ]
    for stage, text in candidates:
        w = width(text)
        fits = w <= max_width
        _emit(trace, StageEvent(stage, text, w, max_width, fits))
        if fits:
            return text

    em = width("M")
    budget = int(math.floor(max_width / em)) if em > 0 else len(working)
    final = truncate_aggressively(candidates[-1][1], budget)
    _emit(trace, StageEvent(ShorteningStage.AGGRESSIVE_TRUNCATION, final, None, max_width, True))
    return final


# -----------------------------
# Font-size search
# -----------------------------
A4_HEIGHT_MM = 297
PAGE_MARGIN_MM = 8


@dataclass(frozen=True)
class FontSizePlan:
    song_font_size: float
    break_font_size: float
    single_page: bool


def default_usable_height(tuning: Optional[FitTuning] = None) -> float:
    """Stage area of an A4 page inside the margins, less the height reserve (261 mm)."""
    tuning = tuning or FitTuning()
    return A4_HEIGHT_MM - 2 * PAGE_MARGIN_MM - tuning.height_reserve_mm


def estimate_stack_height(
    entries: Sequence[SetlistEntry],
    song_size: float,
    break_size: float,
    tuning: Optional[FitTuning] = None,
) -> float:
    """Estimated height (mm) of the stage view with one line per entry."""
    tuning = tuning or FitTuning()
    h = 0.0
    for i, entry in enumerate(entries):
        size = song_size if entry.is_song else break_size
        if not entry.is_song and i > 0:
            h += size * tuning.pt_to_mm * tuning.estimate_break_gap_factor
        h += size * tuning.pt_to_mm * tuning.single_page_line_factor
    return h


def candidate_font_sizes(tuning: Optional[FitTuning] = None) -> List[float]:
    """Song font sizes to try, largest first (60, 58 ... 24)."""
    tuning = tuning or FitTuning()
    out: List[float] = []
    size = tuning.max_font_size
    while size >= tuning.min_font_size:
        out.append(size)
        size -= tuning.font_step
    return out


def plan_font_sizes(
    entries: Sequence[SetlistEntry],
    usable_height: Optional[float] = None,
    *,
    tuning: Optional[FitTuning] = None,
) -> FontSizePlan:
    """
    Choose song/break font sizes for the stage view.

    Up to `single_page_song_limit` songs: the largest candidate size whose
    estimated stack height fits `usable_height` (mm, default: an A4 page
    inside the margins less the height reserve). If none fits the smallest
    candidate is used. Longer setlists get fixed sizes and paginate.
    """
    tuning = tuning or FitTuning()
    if usable_height is None:
        usable_height = default_usable_height(tuning)
    if count_songs(entries) > tuning.single_page_song_limit:
        plan = FontSizePlan(tuning.multi_page_song_size, tuning.multi_page_break_size, single_page=False)
        logger.debug("Multi-page plan: %s", plan)
        return plan

    song_size = tuning.min_font_size
    break_size = max(tuning.min_search_break_size, song_size * tuning.break_ratio)
    for size in candidate_font_sizes(tuning):
        song_size = size
        break_size = max(tuning.min_search_break_size, size * tuning.break_ratio)
        if estimate_stack_height(entries, song_size, break_size, tuning) <= usable_height:
            break

    plan = FontSizePlan(
        song_font_size=max(tuning.min_song_font_size, song_size),
        break_font_size=max(tuning.min_break_font_size, break_size),
        single_page=True,
    )
    logger.debug("Single-page plan: %s (usable %.1f mm)", plan, usable_height)
    return plan


def fit_break_font_size(
    label: str,
    max_width: float,
    base_size: float,
    *,
    oracle: WidthOracle,
    family: str = DEFAULT_FAMILY,
    style: str = ITALIC,
    tuning: Optional[FitTuning] = None,
) -> float:
    """
    Largest size (1pt steps down from `base_size`) at which a break label
    fits on one line, but never below `min_break_label_size`.
    """
    tuning = tuning or FitTuning()
    text = transliterate(label)
    size = base_size
    while size > tuning.min_break_label_size and oracle.measure(text, size, family, style) > max_width:
        size -= 1
    return size


def describe_tuning(tuning: FitTuning) -> Dict[str, Any]:
    return {f.name: getattr(tuning, f.name) for f in fields(tuning)}
