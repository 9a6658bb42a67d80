"""
Purpose: Product tally tables (single source of truth for what the packing floor counts).
What it does:

Each table has rows; a row is either
- simple:  label -> one count over searchTexts
- complex: label -> {fieldName: count over that field's searchTexts}

Matching is case-insensitive substring, OR across searchTexts.

Rule: No logic here. Edit the tables, not dispatch/tally.py.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class TallyField:
    field_name: str
    search_texts: Tuple[str, ...]


@dataclass(frozen=True)
class TallyRow:
    label: str
    search_texts: Tuple[str, ...] = ()
    fields: Tuple[TallyField, ...] = ()

    @property
    def is_complex(self) -> bool:
        return bool(self.fields)


@dataclass(frozen=True)
class TallyTable:
    name: str
    rows: Tuple[TallyRow, ...]


DEFAULT_TALLY_RULES: Tuple[TallyTable, ...] = (
    TallyTable(
        name="flowers",
        rows=(
            TallyRow("Roses", ("rose",)),
            TallyRow("Lilies", ("lily", "lilies")),
            TallyRow("Tulips", ("tulip",)),
            TallyRow("Peonies", ("peony", "peonies")),
            TallyRow("Natives", ("native", "protea")),
        ),
    ),
    TallyTable(
        name="jars",
        rows=(
            TallyRow("Jars", fields=(
                TallyField("luxe", ("luxe jar",)),
                TallyField("classic", ("classic jar",)),
                TallyField("large", ("large jar",)),
            )),
        ),
    ),
    TallyTable(
        name="extras",
        rows=(
            TallyRow("Prosecco", ("prosecco",)),
            TallyRow("Candles", ("candle",)),
            TallyRow("Plants", ("plant",)),
            TallyRow("Chocolates", ("chocolate", "lindt")),
            TallyRow("Teddy Bears", ("teddy", "bear")),
        ),
    ),
)
