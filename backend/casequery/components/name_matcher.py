"""
Equivalence of differently formatted person names
"""
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from casequery.components.name_standardizer import standardize_name

_INITIAL_RE = re.compile(r"^[A-Za-z]\.?$")


@dataclass(frozen=True)
class NameComponents:
    first_name: Optional[str] = None
    middle_initial: Optional[str] = None
    last_name: Optional[str] = None


def parse_name_components(name: Optional[str]) -> NameComponents:
    """
    Split a standardized name into first name, middle initial and last name.

    A single token is a last name. The middle initial is read from the second
    token only when that token is a lone letter, optionally followed by a period.
    """
    if not name or not name.strip():
        return NameComponents()

    parts = name.split()
    if len(parts) == 1:
        return NameComponents(last_name=parts[0])

    middle_initial = None
    if len(parts) >= 3 and _INITIAL_RE.match(parts[1]):
        middle_initial = parts[1][0]

    return NameComponents(first_name=parts[0], middle_initial=middle_initial, last_name=parts[-1])


def names_match(name1: Optional[str], name2: Optional[str]) -> bool:
    """
    Decide whether two names refer to the same person.

    Last names must agree; a side without a first name matches any first name;
    first names must agree otherwise; two explicit middle initials must agree.
    All comparisons are case-insensitive and the relation is symmetric.
    """
    a = parse_name_components(standardize_name(name1))
    b = parse_name_components(standardize_name(name2))

    if not a.last_name or not b.last_name:
        return False
    if a.last_name.lower() != b.last_name.lower():
        return False
    if not a.first_name or not b.first_name:
        return True
    if a.first_name.lower() != b.first_name.lower():
        return False
    if a.middle_initial and b.middle_initial and a.middle_initial.lower() != b.middle_initial.lower():
        return False
    return True


def last_name_of(name: Optional[str]) -> str:
    """Last token of the standardized name, used as the coarse store pre-filter"""
    components = parse_name_components(standardize_name(name))
    return components.last_name or ""


class NameMatcher:
    """Groups stored name variants that refer to the queried person"""

    def matches(self, name1: Optional[str], name2: Optional[str]) -> bool:
        return names_match(name1, name2)

    def filter_matching(self, query_name: str, candidates: Iterable[Optional[str]]) -> List[str]:
        """Candidates equivalent to query_name, in input order, without duplicates"""
        seen = set()
        matching = []
        for candidate in candidates:
            if candidate and candidate not in seen and names_match(query_name, candidate):
                seen.add(candidate)
                matching.append(candidate)
        return matching
