"""Map free-form section headings onto the closed set of canonical labels.

Travel guides title the same topic many ways ("Eat", "Food and drink",
"Dining", "Getting around", "Transport", "Climate").  :func:`normalize`
folds them into :class:`~src.models.rag.CanonicalSection` values by
case-insensitive substring matching against an **ordered** rule table.

The table is a tuple, not a dict: rules are evaluated top to bottom and the
first rule with a matching keyword wins.  Order therefore decides
ambiguous headings.  Weather is checked before Eat because "weather"
contains the substring "eat".
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from src.models.rag import DEFAULT_TARGET_SECTIONS, CanonicalSection

SECTION_RULES: tuple[tuple[tuple[str, ...], CanonicalSection], ...] = (
    (("safety", "stay safe"), CanonicalSection.SAFETY),
    (("weather", "climate"), CanonicalSection.WEATHER),
    (("get around", "getting around", "transport"), CanonicalSection.GET_AROUND),
    (("eat", "food", "dining", "drink"), CanonicalSection.EAT),
    (("understand",), CanonicalSection.UNDERSTAND),
    (("see",), CanonicalSection.SEE),
    (("do",), CanonicalSection.DO),
    (("buy",), CanonicalSection.BUY),
    (("sleep",), CanonicalSection.SLEEP),
    (("connect",), CanonicalSection.CONNECT),
)

_WHITESPACE_RUN = re.compile(r"[ \t\r\f\v]+")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_BRACKETED = re.compile(r"\[[^\]]*\]")


def normalize(raw_heading: str) -> CanonicalSection:
    """Return the canonical label for *raw_heading*.

    Total and deterministic: every string maps to a label, and headings
    that match no rule map to :attr:`CanonicalSection.OTHER`.
    """
    lower = raw_heading.strip().lower()
    for keywords, label in SECTION_RULES:
        if any(keyword in lower for keyword in keywords):
            return label
    return CanonicalSection.OTHER


def is_target_section(
    section: CanonicalSection,
    targets: Iterable[CanonicalSection] = DEFAULT_TARGET_SECTIONS,
) -> bool:
    """Return ``True`` if *section* is one of the indexed sections.

    By default only Safety, Eat, Get Around and Weather are indexed.
    """
    return section in frozenset(targets)


def clean_section_text(text: str) -> str:
    """Tidy scraped section text before chunking.

    Drops ``[edit]`` links and bracketed citation markers, collapses runs
    of horizontal whitespace, and squeezes three or more newlines down to
    a single paragraph break so ``"\\n\\n"`` remains a usable boundary.
    """
    text = _BRACKETED.sub("", text)
    text = _WHITESPACE_RUN.sub(" ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    return _EXCESS_NEWLINES.sub("\n\n", text).strip()
