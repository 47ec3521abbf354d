#!/usr/bin/env python3
"""
Setlist and song-catalog loading for the setlist exporter.

Accepted layouts for the setlist file:
  1. A bare JSON list of setlist items.
  2. An object: {"setlist": [...items...], "songs": [...catalog...]}

Item shapes:
  {"type": "song", "song": "Title", "duration": 4, "notes": "capo 2"}
  {"type": "midshow", "text": "Short break"}      ("break" is accepted too)

Catalog entries (matched to songs by exact title):
  {"name": "Title", "duration": 4, "vibe": "Ballad"}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

SONG = "song"
BREAK = "break"

DEFAULT_SONG_MINUTES = 3.0
BREAK_MINUTES = 1.0
DEFAULT_VIBE = "Standard"

_BREAK_TYPES = ("midshow", "break")


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SetlistEntry:
    kind: str  # "song" | "break"
    text: str  # title for songs, label for breaks
    duration_minutes: float = DEFAULT_SONG_MINUTES
    notes: Optional[str] = None

    @property
    def is_song(self) -> bool:
        return self.kind == SONG

    @property
    def title(self) -> str:
        return self.text if self.is_song else ""

    @property
    def label(self) -> str:
        return "" if self.is_song else self.text


def song(title: str, duration_minutes: float = DEFAULT_SONG_MINUTES, notes: Optional[str] = None) -> SetlistEntry:
    return SetlistEntry(SONG, title, float(duration_minutes), notes)


def break_(label: str, notes: Optional[str] = None) -> SetlistEntry:
    return SetlistEntry(BREAK, label, BREAK_MINUTES, notes)


@dataclass(frozen=True)
class SongMetadata:
    name: str
    duration_minutes: Optional[float] = None
    vibe: str = DEFAULT_VIBE


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _read_json(path: Path) -> Any:
    """Read and parse a JSON file."""
    return json.loads(path.read_text(encoding="utf-8"))


def _optional_minutes(v: Any, *, where: str) -> Optional[float]:
    if v is None or v == "":
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        raise ValueError(f"{where}: duration must be a number, got {v!r}") from None


def _optional_text(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_entry(item: Any, index: int) -> SetlistEntry:
    """
    Turn one raw JSON setlist item into a SetlistEntry.

    Raises ``ValueError`` for anything that is not a recognizable song or
    break item.
    """
    where = f"setlist item {index}"
    if not isinstance(item, dict):
        raise ValueError(f"{where}: expected an object, got {type(item).__name__}")

    kind = str(item.get("type") or SONG).strip().lower()
    notes = _optional_text(item.get("notes"))

    if kind in _BREAK_TYPES:
        label = str(item.get("text") or item.get("label") or "").strip()
        return break_(label, notes)

    if kind != SONG:
        raise ValueError(f"{where}: unknown item type {kind!r}")

    title = str(item.get("song") or item.get("title") or "").strip()
    if not title:
        raise ValueError(f"{where}: song is missing a title")

    minutes = _optional_minutes(item.get("duration"), where=where)
    return song(title, DEFAULT_SONG_MINUTES if minutes is None else minutes, notes)


def parse_setlist(items: Any) -> List[SetlistEntry]:
    if not isinstance(items, list):
        raise ValueError("setlist: expected a list of items")
    return [parse_entry(item, i) for i, item in enumerate(items)]


def parse_catalog(items: Any) -> List[SongMetadata]:
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValueError("songs: expected a list of catalog entries")

    catalog: List[SongMetadata] = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValueError(f"catalog entry {i}: expected an object")
        name = str(item.get("name") or "")
        if not name:
            continue
        catalog.append(SongMetadata(
            name=name,
            duration_minutes=_optional_minutes(item.get("duration"), where=f"catalog entry {i}"),
            vibe=str(item.get("vibe") or DEFAULT_VIBE),
        ))
    return catalog


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def load_setlist(path: Path) -> Tuple[List[SetlistEntry], List[SongMetadata]]:
    """
    Return ``(entries, catalog)`` from a setlist JSON file.

    The catalog is empty unless the file is an object with a ``songs`` list.
    """
    data = _read_json(path)
    if isinstance(data, dict):
        return parse_setlist(data.get("setlist", [])), parse_catalog(data.get("songs"))
    return parse_setlist(data), []


def load_catalog(path: Path) -> List[SongMetadata]:
    """
    Load a song catalog: either a bare list or an object with ``songs``.
    """
    data = _read_json(path)
    if isinstance(data, dict):
        data = data.get("songs", [])
    return parse_catalog(data)


def find_song_metadata(catalog: Optional[Sequence[SongMetadata]], title: str) -> Optional[SongMetadata]:
    """
    Exact-title lookup. The raw (not transliterated) title is compared, so an
    accented catalog name will not match an unaccented setlist title.
    """
    for meta in catalog or ():
        if meta.name == title:
            return meta
    return None


def resolve_duration(entry: SetlistEntry, catalog: Optional[Sequence[SongMetadata]] = None) -> float:
    """Minutes an entry occupies: 1 for breaks, catalog-or-entry for songs."""
    if not entry.is_song:
        return BREAK_MINUTES
    meta = find_song_metadata(catalog, entry.title)
    if meta is not None and meta.duration_minutes:
        return meta.duration_minutes
    return entry.duration_minutes or DEFAULT_SONG_MINUTES


def resolve_vibe(entry: SetlistEntry, catalog: Optional[Sequence[SongMetadata]] = None) -> str:
    meta = find_song_metadata(catalog, entry.title) if entry.is_song else None
    return meta.vibe if meta is not None else DEFAULT_VIBE


def total_duration(entries: Sequence[SetlistEntry], catalog: Optional[Sequence[SongMetadata]] = None) -> float:
    return sum(resolve_duration(e, catalog) for e in entries)


def count_songs(entries: Sequence[SetlistEntry]) -> int:
    return sum(1 for e in entries if e.is_song)


def format_time(minutes: float) -> str:
    """Minutes as zero-padded MM:SS (minutes may exceed 59)."""
    total_seconds = int(round(minutes * 60))
    mins, secs = divmod(total_seconds, 60)
    return f"{mins:02d}:{secs:02d}"


def timeline(
    entries: Sequence[SetlistEntry],
    catalog: Optional[Sequence[SongMetadata]] = None,
) -> List[Tuple[SetlistEntry, float, float]]:
    """
    Return ``(entry, start, end)`` in minutes, running clock starting at 0.
    """
    out: List[Tuple[SetlistEntry, float, float]] = []
    clock = 0.0
    for e in entries:
        minutes = resolve_duration(e, catalog)
        out.append((e, clock, clock + minutes))
        clock += minutes
    return out


def catalog_from_dicts(items: Sequence[Dict[str, Any]]) -> List[SongMetadata]:
    """Convenience for callers holding catalog rows in memory."""
    return parse_catalog(list(items))
