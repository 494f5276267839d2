"""
Year and relative-period extraction
"""
import re
from typing import Optional, Tuple

from casequery.components.contracts import Timeframe
from casequery.core.exceptions import AmbiguousTimeframe
from casequery.utils.datetime_utils import Clock, utc_now

_YEAR_RE = re.compile(r"\b(19\d{2}|20\d{2})\b")
_LAST_YEAR_RE = re.compile(r"\blast\s+year\b", re.IGNORECASE)
_THIS_YEAR_RE = re.compile(r"\b(?:this|current)\s+year\b", re.IGNORECASE)
_PAST_N_YEARS_RE = re.compile(r"\b(?:past|last)\s+(\d{1,2}|five|ten|three|two)\s+years\b", re.IGNORECASE)
_LABEL_N_YEARS_RE = re.compile(r"^past\s+(\d{1,2})\s+years$")

_NUMBER_WORDS = {"two": 2, "three": 3, "five": 5, "ten": 10}

LAST_YEAR = "last year"
THIS_YEAR = "this year"


def extract_timeframe(text: Optional[str]) -> Timeframe:
    """
    Pull a year or relative period out of free text.

    The first four-digit year in 1900-2099 wins and is returned as both year
    and label. Relative phrases only set the label; they are resolved against
    the clock when the query runs.
    """
    if not text:
        return Timeframe()

    match = _YEAR_RE.search(text)
    if match:
        return Timeframe(year=int(match.group(1)), label=match.group(1))

    match = _PAST_N_YEARS_RE.search(text)
    if match:
        raw = match.group(1).lower()
        span = int(raw) if raw.isdigit() else _NUMBER_WORDS[raw]
        return Timeframe(label=f"past {span} years")

    if _LAST_YEAR_RE.search(text):
        return Timeframe(label=LAST_YEAR)
    if _THIS_YEAR_RE.search(text):
        return Timeframe(label=THIS_YEAR)

    return Timeframe()


def resolve_year_window(
    year: Optional[int],
    label: Optional[str],
    clock: Clock = utc_now,
) -> Tuple[Tuple[int, int], str]:
    """
    Turn an extracted timeframe into an inclusive (start, end) year window
    plus the phrase used in answers.

    Raises:
        AmbiguousTimeframe: the label is not a period this engine understands
    """
    if year is not None:
        return (year, year), f"in {year}"

    normalized = (label or "").strip().lower()
    if not normalized:
        raise AmbiguousTimeframe(
            "No timeframe specified in the query. Please include a specific year or time period."
        )

    if normalized.isdigit() and len(normalized) == 4:
        explicit = int(normalized)
        return (explicit, explicit), f"in {explicit}"

    current_year = clock().year
    if normalized == LAST_YEAR:
        return (current_year - 1, current_year - 1), f"in {current_year - 1} (last year)"
    if normalized == THIS_YEAR:
        return (current_year, current_year), f"in {current_year} (this year)"

    match = _LABEL_N_YEARS_RE.match(normalized)
    if match:
        span = int(match.group(1))
        start = current_year - span
        return (start, current_year), f"in the past {span} years ({start}-{current_year})"

    raise AmbiguousTimeframe(
        f"I couldn't understand the timeframe \"{label}\". Please specify a year like "
        f"\"2020\" or a period like \"last year\"."
    )


class TimeframeExtractor:
    def extract(self, text: Optional[str]) -> Timeframe:
        return extract_timeframe(text)
