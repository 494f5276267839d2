"""
Rendering helpers for answer text
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Union

from casequery.components.contracts import NamedCount, OutcomeCount

Number = Union[int, float, Decimal]


def format_currency(amount: Optional[Number], fractional_digits: int = 2) -> str:
    """
    US-dollar rendering with thousands separators.

    Totals use 0 fractional digits, averages 2.

    Example:
        >>> format_currency(Decimal("1234.5"))
        '$1,234.50'
        >>> format_currency(1234.5, fractional_digits=0)
        '$1,235'
    """
    value = Decimal(str(amount or 0))
    quantum = Decimal(1).scaleb(-fractional_digits)
    rounded = value.quantize(quantum, rounding=ROUND_HALF_UP)
    sign = "-" if rounded < 0 else ""
    return f"{sign}${abs(rounded):,.{fractional_digits}f}"


def percentage(count: int, total: int) -> float:
    """Share of total as a percentage rounded half-up to one decimal"""
    if not total:
        return 0.0
    share = Decimal(count) * 100 / Decimal(total)
    return float(share.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def format_percentage(count: int, total: int) -> str:
    return f"{percentage(count, total):.1f}"


def pluralize(count: int, singular: str, plural: Optional[str] = None) -> str:
    return singular if count == 1 else (plural or f"{singular}s")


def outcome_counts(counts: Dict[str, int]) -> List[OutcomeCount]:
    """Dispositions ordered by count (descending) then name, with percentages of the total"""
    total = sum(counts.values())
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [
        OutcomeCount(disposition=disposition, count=count, percentage=percentage(count, total))
        for disposition, count in ordered
    ]


def outcome_lines(outcomes: Iterable[OutcomeCount]) -> str:
    """
    Example:
        - Awarded: 4 cases (66.7%)
        - Dismissed: 2 cases (33.3%)
    """
    return "\n".join(
        f"- {outcome.disposition}: {outcome.count} {pluralize(outcome.count, 'case')} ({outcome.percentage:.1f}%)"
        for outcome in outcomes
    )


def named_count_lines(counts: Sequence[NamedCount], limit: Optional[int] = None, noun: str = "variations") -> str:
    """Bullet list of names with counts, truncated to limit with a "+N more" tail"""
    shown = counts if limit is None else counts[:limit]
    lines = [f"- {item.name}: {item.count} {pluralize(item.count, 'case')}" for item in shown]
    hidden = len(counts) - len(shown)
    if hidden > 0:
        lines.append(f"- ...and {hidden} more {noun}")
    return "\n".join(lines)


def numbered_lines(items: Iterable[str]) -> str:
    return "\n".join(f"{index}. {item}" for index, item in enumerate(items, start=1))


class ResponseFormatter:
    """Bundles the formatting helpers for injection into the executor"""

    currency = staticmethod(format_currency)
    percentage = staticmethod(format_percentage)
    outcome_counts = staticmethod(outcome_counts)
    outcome_lines = staticmethod(outcome_lines)
    named_count_lines = staticmethod(named_count_lines)
    numbered_lines = staticmethod(numbered_lines)
    pluralize = staticmethod(pluralize)
