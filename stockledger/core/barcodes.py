"""Barcode normalisation.

Barcodes are typed or scanned by people, so the same label can arrive with
stray spaces or a trailing newline from the scanner. Every barcode is
normalised before it is stored or looked up, which keeps the uniqueness check
honest without changing what the label actually says.
"""

from __future__ import annotations

import re

__all__ = ["normalize_barcode"]

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_barcode(raw: object) -> str | None:
    """Return the canonical form of a barcode, or ``None`` when it is blank.

    * Numbers (spreadsheet imports often hand these over as ints) become text.
    * Outer whitespace is trimmed and inner runs collapse to a single space.
    * Case is preserved: ``abc-1`` and ``ABC-1`` are different labels.
    """

    if raw is None:
        return None
    value = str(raw).strip()
    if not value:
        return None
    return _WHITESPACE_RE.sub(" ", value)
