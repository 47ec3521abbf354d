from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

import pytest


class FakeOracle:
    """Width = characters x font size x per_pt, whatever the font."""

    def __init__(self, per_pt: float = 0.1) -> None:
        self.per_pt = per_pt
        self.calls: List[Tuple[str, float, str, str]] = []

    def measure(self, text: str, font_size: float, family: str, style: str) -> float:
        self.calls.append((text, font_size, family, style))
        return len(text) * font_size * self.per_pt


@dataclass
class DrawnText:
    page: int
    text: str
    x: float
    y: float
    family: str
    style: str
    size: float


@dataclass
class RecordingSurface:
    page_count: int = 1
    family: str = "Helvetica"
    style: str = "normal"
    size: float = 12.0
    texts: List[DrawnText] = field(default_factory=list)
    lines: List[Tuple[int, float, float, float, float]] = field(default_factory=list)

    def set_font(self, family: str, style: str) -> None:
        self.family, self.style = family, style

    def set_font_size(self, size: float) -> None:
        self.size = size

    def measure_text_width(self, text: str) -> float:
        return len(text) * self.size * 0.1

    def draw_text(self, text: str, x: float, y: float) -> None:
        self.texts.append(DrawnText(self.page_count, text, x, y, self.family, self.style, self.size))

    def draw_line(self, x1: float, y1: float, x2: float, y2: float) -> None:
        self.lines.append((self.page_count, x1, y1, x2, y2))

    def new_page(self) -> None:
        self.page_count += 1

    def save_as(self, path: Path) -> None:
        path.write_bytes(b"")

    def on_page(self, page: int) -> List[DrawnText]:
        return [t for t in self.texts if t.page == page]


@pytest.fixture
def fake_oracle() -> FakeOracle:
    return FakeOracle()


@pytest.fixture
def surface() -> RecordingSurface:
    return RecordingSurface()
