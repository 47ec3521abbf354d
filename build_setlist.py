#!/usr/bin/env python3
"""
Setlist PDF export
Generates one A4 PDF per setlist:
- Stage view: one large line per song/break, sized to fill a single page when
  the set is short (up to 9 songs), fixed large sizes and pagination otherwise
- Organizer view: table of start/end times, titles, vibe and duration, with a
  summary block

Source of truth: a setlist JSON file (optionally with a song catalog)
"""

from __future__ import annotations

import argparse
import io
import logging
import sys
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, List, Optional, Protocol, Sequence, Tuple

from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from load_setlist import (
    SetlistEntry,
    SongMetadata,
    catalog_from_dicts,
    count_songs,
    format_time,
    load_catalog,
    load_setlist,
    resolve_vibe,
    timeline,
    total_duration,
)
from text_fit import (
    A4_HEIGHT_MM,
    BOLD,
    DEFAULT_FAMILY,
    ITALIC,
    NORMAL,
    PAGE_MARGIN_MM,
    FitTuning,
    FontSizePlan,
    PdfFontPack,
    ReportlabWidthOracle,
    StageTrace,
    WidthOracle,
    describe_tuning,
    fit_break_font_size,
    load_fit_tuning,
    plan_font_sizes,
    register_unicode_font_pack,
    shorten_phrase,
)
from transliterate import transliterate

logger = logging.getLogger(__name__)

UNICODE_FAMILY = "SetlistText"
DEFAULT_DATE_FORMAT = "%m/%d/%Y"

# Stage view
STAGE_TOP_OFFSET = 15  # mm below the top margin
BREAK_INDENT = 15  # mm

# Organizer view
ORGANIZER_TOP_OFFSET = 10
ORGANIZER_CONT_TOP_OFFSET = 25
ORGANIZER_BOTTOM_RESERVE = 20
TITLE_COL_WIDTH = 80
COLUMNS = (("TIME", 0), ("TITLE", 25), ("VIBE/TYPE", 110), ("DURATION", 160))


# -----------------------------
# Page geometry and drawing surface
# -----------------------------
@dataclass(frozen=True)
class PageGeometry:
    width: float = 210  # A4, mm
    height: float = A4_HEIGHT_MM
    margin: float = PAGE_MARGIN_MM

    @property
    def content_width(self) -> float:
        return self.width - 2 * self.margin

    @property
    def content_height(self) -> float:
        return self.height - 2 * self.margin


class DrawingSurface(Protocol):
    page_count: int

    def set_font(self, family: str, style: str) -> None: ...
    def set_font_size(self, size: float) -> None: ...
    def measure_text_width(self, text: str) -> float: ...
    def draw_text(self, text: str, x: float, y: float) -> None: ...
    def draw_line(self, x1: float, y1: float, x2: float, y2: float) -> None: ...
    def new_page(self) -> None: ...
    def save_as(self, path: Path) -> None: ...


class PdfSurface:
    """
    reportlab canvas addressed in mm from the top-left corner (y grows down),
    which is how all layout code in this module thinks about the page.
    """

    def __init__(self, geometry: PageGeometry, oracle: Optional[ReportlabWidthOracle] = None) -> None:
        self.geometry = geometry
        self.oracle = oracle or ReportlabWidthOracle()
        self._buf = io.BytesIO()
        self.c = canvas.Canvas(self._buf, pagesize=(geometry.width * mm, geometry.height * mm))
        self.family = next(iter(self.oracle.packs))
        self.style = NORMAL
        self.font_size = 12.0
        self.page_count = 1
        self._apply_font()

    def _apply_font(self) -> None:
        self.c.setFont(self.oracle.font_name(self.family, self.style), self.font_size)

    def set_font(self, family: str, style: str) -> None:
        self.family, self.style = family, style
        self._apply_font()

    def set_font_size(self, size: float) -> None:
        self.font_size = size
        self._apply_font()

    def measure_text_width(self, text: str) -> float:
        return self.oracle.measure(text, self.font_size, self.family, self.style)

    def draw_text(self, text: str, x: float, y: float) -> None:
        self.c.drawString(x * mm, (self.geometry.height - y) * mm, text)

    def draw_line(self, x1: float, y1: float, x2: float, y2: float) -> None:
        h = self.geometry.height
        self.c.line(x1 * mm, (h - y1) * mm, x2 * mm, (h - y2) * mm)

    def new_page(self) -> None:
        self.c.showPage()
        self.page_count += 1
        # showPage resets the graphics state
        self._apply_font()

    def save_as(self, path: Path) -> None:
        self.c.save()
        path.write_bytes(self._buf.getvalue())


# -----------------------------
# Utilities
# -----------------------------
def setlist_filename(today: date, date_format: str = DEFAULT_DATE_FORMAT) -> str:
    return f"setlist-{today.strftime(date_format).replace('/', '-')}.pdf"


def wrap_text(text: str, max_width: float, font_size: float, *, oracle: WidthOracle, family: str, style: str) -> List[str]:
    """
    Greedy word wrap; a single word wider than the column gets its own line.
    """
    t = (text or "").strip()
    if not t:
        return [""]
    lines: List[str] = []
    cur: List[str] = []
    for w in t.split():
        tentative = " ".join(cur + [w])
        if oracle.measure(tentative, font_size, family, style) <= max_width or not cur:
            cur.append(w)
        else:
            lines.append(" ".join(cur))
            cur = [w]
    if cur:
        lines.append(" ".join(cur))
    return lines


def _as_catalog(catalog: Optional[Sequence[Any]]) -> List[SongMetadata]:
    items = list(catalog or [])
    if items and isinstance(items[0], dict):
        return catalog_from_dicts(items)
    return items


# -----------------------------
# Stage view
# -----------------------------
def draw_stage_view(
    surface: DrawingSurface,
    entries: Sequence[SetlistEntry],
    *,
    oracle: WidthOracle,
    geometry: PageGeometry,
    tuning: FitTuning,
    family: str = DEFAULT_FAMILY,
    trace: Optional[StageTrace] = None,
) -> FontSizePlan:
    """
    Draw one line per entry. Songs are bold and shortened to fit the content
    width; breaks are italic, indented, and only shrink their font size.
    """
    usable = geometry.content_height - tuning.height_reserve_mm
    plan = plan_font_sizes(entries, usable, tuning=tuning)
    single = plan.single_page
    pt = tuning.pt_to_mm
    line_factor = tuning.single_page_line_factor if single else tuning.multi_page_line_factor
    gap_factor = tuning.single_page_break_gap_factor if single else tuning.multi_page_break_gap_factor
    bottom = geometry.height - geometry.margin

    top = geometry.margin + STAGE_TOP_OFFSET
    y = top
    for i, entry in enumerate(entries):
        if entry.is_song:
            style, x = BOLD, geometry.margin
            max_width = geometry.content_width
            size = plan.song_font_size
        else:
            style, x = ITALIC, geometry.margin + BREAK_INDENT
            max_width = geometry.content_width - BREAK_INDENT
            size = fit_break_font_size(
                entry.label, max_width, plan.break_font_size, oracle=oracle, family=family, tuning=tuning
            )

        gap = size * pt * gap_factor if (not entry.is_song and i > 0) else 0.0
        line_h = size * pt * line_factor

        if not single and y > top and y + gap + line_h > bottom:
            surface.new_page()
            y = top
            gap = 0.0

        y += gap
        text = shorten_phrase(
            entry.text,
            max_width,
            size,
            entry.is_song,
            oracle=oracle,
            family=family,
            style=style,
            tuning=tuning,
            trace=trace,
        )
        surface.set_font(family, style)
        surface.set_font_size(size)
        surface.draw_text(text, x, y + size * pt * tuning.baseline_factor)
        y += line_h

    return plan


# -----------------------------
# Organizer view
# -----------------------------
def _draw_table_header(surface: DrawingSurface, y: float, *, geometry: PageGeometry, family: str, line_h: float) -> float:
    left = geometry.margin
    right = geometry.margin + geometry.content_width

    surface.set_font(family, BOLD)
    surface.set_font_size(10)
    surface.draw_line(left, y - 5, right, y - 5)
    for label, dx in COLUMNS:
        surface.draw_text(label, left + dx, y)
    y += 3
    surface.draw_line(left, y, right, y)
    return y + line_h * 0.8


def draw_organizer_view(
    surface: DrawingSurface,
    entries: Sequence[SetlistEntry],
    catalog: Sequence[SongMetadata],
    *,
    oracle: WidthOracle,
    geometry: PageGeometry,
    tuning: FitTuning,
    family: str = DEFAULT_FAMILY,
) -> None:
    """
    Timing table for event staff. Starts wherever the surface currently is
    (the caller inserts the page break), paginates on its own and repeats the
    column header on every page.
    """
    pt = tuning.pt_to_mm
    line_h = 14 * pt
    section_gap = 8 * pt
    left = geometry.margin
    right = geometry.margin + geometry.content_width
    row_limit = geometry.height - geometry.margin - ORGANIZER_BOTTOM_RESERVE
    total = total_duration(entries, catalog)
    songs = count_songs(entries)

    y = geometry.margin + ORGANIZER_TOP_OFFSET
    surface.set_font(family, BOLD)
    surface.set_font_size(18)
    surface.draw_text("SETLIST - ORGANIZER INFORMATION", left, y)
    y += line_h * 1.5

    surface.set_font(family, NORMAL)
    surface.set_font_size(11)
    surface.draw_text(f"Total Duration: {format_time(total)}", left, y)
    y += line_h * 0.8
    surface.draw_text(f"Total Songs: {songs}", left, y)
    y += section_gap * 2.5

    y = _draw_table_header(surface, y, geometry=geometry, family=family, line_h=line_h)
    page_top = y

    def next_table_page() -> float:
        nonlocal page_top
        surface.new_page()
        page_top = _draw_table_header(
            surface, geometry.margin + ORGANIZER_CONT_TOP_OFFSET, geometry=geometry, family=family, line_h=line_h
        )
        return page_top

    x_time, x_title, x_vibe, x_duration = (left + dx for _, dx in COLUMNS)
    for entry, start, end in timeline(entries, catalog):
        # titles wrap here, they are never shortened
        lines: List[Tuple[str, str, float, float]] = [
            (ln, NORMAL, 9, line_h * 0.9)
            for ln in wrap_text(transliterate(entry.text), TITLE_COL_WIDTH, 9, oracle=oracle, family=family, style=NORMAL)
        ]
        if entry.notes:
            lines += [
                (ln, ITALIC, 8, line_h * 0.8)
                for ln in wrap_text(transliterate(entry.notes), TITLE_COL_WIDTH, 8, oracle=oracle, family=family, style=ITALIC)
            ]
        row_h = max(line_h, sum(step for *_, step in lines))

        # keep a row together unless it is taller than a whole table page
        if y > row_limit or (y > page_top and y + row_h > row_limit):
            y = next_table_page()

        surface.set_font(family, NORMAL)
        surface.set_font_size(9)
        surface.draw_text(f"{format_time(start)} - {format_time(end)}", x_time, y)
        if entry.is_song:
            surface.draw_text(transliterate(resolve_vibe(entry, catalog)), x_vibe, y)
        else:
            surface.set_font(family, ITALIC)
            surface.draw_text("Break", x_vibe, y)
            surface.set_font(family, NORMAL)
        surface.draw_text(format_time(end - start), x_duration, y)

        cursor = y
        row_end = y + line_h
        for text, style, size, step in lines:
            if cursor > row_limit:
                cursor = next_table_page()
                row_end = cursor + line_h
            surface.set_font(family, style)
            surface.set_font_size(size)
            surface.draw_text(text, x_title, cursor)
            cursor += step
        y = max(row_end, cursor)

    # summary: rule + heading + four lines
    if y + section_gap + line_h * 2 + line_h * 0.8 * 4 > geometry.height - geometry.margin:
        surface.new_page()
        y = geometry.margin + ORGANIZER_TOP_OFFSET

    y += section_gap
    surface.draw_line(left, y, right, y)
    y += line_h

    surface.set_font(family, BOLD)
    surface.set_font_size(11)
    surface.draw_text("SUMMARY", left, y)
    y += line_h

    surface.set_font(family, NORMAL)
    surface.set_font_size(10)
    for line in (
        f"Total Songs: {songs}",
        f"Breaks: {len(entries) - songs}",
        f"Estimated Total Time: {format_time(total)}",
        f"Expected End Time: {format_time(total)} after start",
    ):
        surface.draw_text(line, left, y)
        y += line_h * 0.8


# -----------------------------
# Export
# -----------------------------
@dataclass(frozen=True)
class RenderSummary:
    plan: FontSizePlan
    stage_pages: int
    total_pages: int


def render_setlist(
    surface: DrawingSurface,
    entries: Sequence[SetlistEntry],
    catalog: Optional[Sequence[Any]] = None,
    *,
    oracle: WidthOracle,
    geometry: Optional[PageGeometry] = None,
    tuning: Optional[FitTuning] = None,
    family: str = DEFAULT_FAMILY,
    trace: Optional[StageTrace] = None,
) -> RenderSummary:
    """Stage view, hard page break, organizer view."""
    geometry = geometry or PageGeometry()
    tuning = tuning or FitTuning()
    songs_catalog = _as_catalog(catalog)

    plan = draw_stage_view(
        surface, entries, oracle=oracle, geometry=geometry, tuning=tuning, family=family, trace=trace
    )
    stage_pages = surface.page_count

    surface.new_page()
    draw_organizer_view(
        surface, entries, songs_catalog, oracle=oracle, geometry=geometry, tuning=tuning, family=family
    )
    return RenderSummary(plan=plan, stage_pages=stage_pages, total_pages=surface.page_count)


def export_setlist(
    entries: Sequence[SetlistEntry],
    catalog: Optional[Sequence[Any]] = None,
    *,
    out_dir: Path,
    today: Optional[date] = None,
    date_format: str = DEFAULT_DATE_FORMAT,
    tuning: Optional[FitTuning] = None,
    font_pack: Optional[PdfFontPack] = None,
    trace: Optional[StageTrace] = None,
) -> Optional[Path]:
    """
    Write ``setlist-<date>.pdf`` into `out_dir` and return its path.
    An empty setlist produces nothing and returns None.
    """
    if not entries:
        logger.info("Empty setlist; nothing to export")
        return None

    geometry = PageGeometry()
    family = DEFAULT_FAMILY
    oracle = ReportlabWidthOracle()
    if font_pack is not None and font_pack.unicode_ok:
        family = UNICODE_FAMILY
        oracle = ReportlabWidthOracle({UNICODE_FAMILY: font_pack})

    surface = PdfSurface(geometry, oracle)
    summary = render_setlist(
        surface, entries, catalog, oracle=oracle, geometry=geometry, tuning=tuning, family=family, trace=trace
    )

    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / setlist_filename(today or date.today(), date_format)
    surface.save_as(out_path)
    logger.info(
        "Wrote %s (%d stage page(s), %d total, songs at %spt)",
        out_path,
        summary.stage_pages,
        summary.total_pages,
        summary.plan.song_font_size,
    )
    return out_path


# -----------------------------
# CLI
# -----------------------------
def main() -> None:
    ap = argparse.ArgumentParser(description="Generate a stage + organizer PDF from a setlist JSON file")
    ap.add_argument("--input", default="setlist.json", help="Path to setlist JSON")
    ap.add_argument(
        "--catalog",
        default="",
        help="Optional song catalog JSON (name/duration/vibe); wins over songs embedded in the setlist file",
    )
    ap.add_argument("--outdir", default="output", help="Output directory")
    ap.add_argument("--tuning", default="", help="Optional JSON file overriding text-fit tuning constants")
    ap.add_argument("--date-format", default=DEFAULT_DATE_FORMAT, help="strftime format for the file name date")
    ap.add_argument(
        "--unicode-font",
        action="store_true",
        help="Embed DejaVu Sans (from ./fonts or system paths) instead of built-in Helvetica.",
    )
    ap.add_argument("-v", "--verbose", action="store_true", help="Log every shortening stage")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    base_dir = Path(".").resolve()
    json_path = (base_dir / args.input).resolve()
    if not json_path.exists():
        print(f"Error: {json_path} not found", file=sys.stderr)
        sys.exit(1)

    entries, catalog = load_setlist(json_path)
    if args.catalog:
        # first match wins, so --catalog overrides songs embedded in the setlist file
        catalog = load_catalog((base_dir / args.catalog).resolve()) + catalog

    tuning = load_fit_tuning((base_dir / args.tuning).resolve() if args.tuning else None)
    logger.debug("Tuning: %s", describe_tuning(tuning))
    font_pack = register_unicode_font_pack(base_dir) if args.unicode_font else None

    pdf_path = export_setlist(
        entries,
        catalog,
        out_dir=(base_dir / args.outdir).resolve(),
        date_format=args.date_format,
        tuning=tuning,
        font_pack=font_pack,
    )
    if pdf_path is None:
        print("PDF: skipped (empty setlist)")
    else:
        print("PDF:", pdf_path)


if __name__ == "__main__":
    main()
