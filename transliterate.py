#!/usr/bin/env python3
"""
ASCII fallbacks for accented characters.

The built-in PDF fonts (Helvetica and friends) have no glyphs for most of
Latin Extended, so every string that ends up on a setlist page is passed
through `transliterate` first. The table only covers the Czech alphabet;
anything else passes through unchanged.
"""

from __future__ import annotations

from typing import Dict, Optional

CZECH_FALLBACKS: Dict[str, str] = {
    "á": "a",
    "č": "c",
    "ď": "d",
    "é": "e",
    "ě": "e",
    "í": "i",
    "ň": "n",
    "ó": "o",
    "ř": "r",
    "š": "s",
    "ť": "t",
    "ú": "u",
    "ů": "u",
    "ý": "y",
    "ž": "z",
    "Á": "A",
    "Č": "C",
    "Ď": "D",
    "É": "E",
    "Ě": "E",
    "Í": "I",
    "Ň": "N",
    "Ó": "O",
    "Ř": "R",
    "Š": "S",
    "Ť": "T",
    "Ú": "U",
    "Ů": "U",
    "Ý": "Y",
    "Ž": "Z",
}

_TABLE = str.maketrans(CZECH_FALLBACKS)


def transliterate(text: Optional[str]) -> str:
    """
    Replace accented characters with their ASCII base letter.
    Characters outside the table are kept as-is.
    """
    if not text:
        return ""
    return text.translate(_TABLE)
