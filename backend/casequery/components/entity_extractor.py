"""
Arbitrator and respondent name extraction.

Each cascade is an ordered tuple of compiled patterns; the first capture of
plausible length wins. Everything here is a pure function of the query text,
so the patterns can be tested and reordered in isolation.
"""
import re
from typing import Callable, Iterable, Optional, Pattern, Sequence, Tuple

from casequery.components.name_standardizer import (
    HONORIFIC_ALTERNATION,
    is_honorific,
    standardize_name,
)

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 39

PERSON = r"[A-Za-z\s\.\-']+?"
COMPANY = r"[A-Za-z0-9\s\.\-&']+?"
TITLE = rf"(?:(?:{HONORIFIC_ALTERNATION})\s+)?"
# Capitalized tokens joined by lowercase connectors: "Bank of America", "AT&T Mobility"
CAPITALIZED_RUN = r"[A-Z0-9][\w\.\-&']*(?:\s+(?:of|and|the|de|&|[A-Z0-9][\w\.\-&']*))*"


def stop_before(*words: str) -> str:
    """
    Lookahead ending a lazy capture: clause punctuation, the end of the text,
    or one of the given words. A period directly after a lone initial
    ("John E. Smith") does not end the capture.
    """
    stop_words = rf"|\s+(?:{'|'.join(words)})\b" if words else ""
    return rf"(?=[,\?!;]|(?<![\s\.][A-Za-z])\.(?:\s|$){stop_words}|$)"


# Words a loose preposition pattern can grab that are never a name
_NON_NAMES = frozenset([
    "a", "an", "the", "all", "any", "case", "cases", "arbitrator", "arbitrators",
    "respondent", "respondents", "outcome", "outcomes", "result", "results",
    "award", "awards", "consumer", "consumers", "me", "them", "him", "her",
    "has", "have", "had", "is", "was", "were", "with", "who", "which", "what", "that", "did", "does",
])

ARBITRATOR_PATTERNS: Tuple[Pattern, ...] = (
    re.compile(
        rf"\b(?:handled|overseen|arbitrated|decided|heard)\s+by\s+({TITLE}{PERSON})"
        + stop_before("in", "and", "or", "with", "for", "since", "during", "between", "against"),
        re.IGNORECASE,
    ),
    re.compile(
        rf"\b(?:given|awarded|granted|authorized)\s+by\s+({TITLE}{PERSON})" + stop_before("in", "and", "or", "for"),
        re.IGNORECASE,
    ),
    re.compile(
        rf"\bhas\s+({TITLE}{PERSON})\s+(?:handled|overseen|arbitrated|decided|heard|had)\b",
        re.IGNORECASE,
    ),
    re.compile(
        rf"\b(?:did|does|would)\s+({TITLE}{PERSON})\s+(?:rule|ruled|decide|decided|handle|hear)\b",
        re.IGNORECASE,
    ),
    re.compile(
        rf"\barbitrator\s+({TITLE}{PERSON})"
        + stop_before("has", "have", "in", "and", "or", "with", "for", "against", "handled", "rule", "ruled", "decided"),
        re.IGNORECASE,
    ),
    re.compile(
        rf"\b(?:by|for|from|about|of)\s+({TITLE}{PERSON})"
        + stop_before("has", "have", "handled", "cases", "with", "against", "and", "or", "in", "the", "is", "was", "did"),
        re.IGNORECASE,
    ),
)

RESPONDENT_PATTERNS: Tuple[Pattern, ...] = (
    re.compile(
        rf"\b(?:list|show)?\s*cases?\s+(?:for|against|involving)\s+({COMPANY})\s+as\s+respondent",
        re.IGNORECASE,
    ),
    re.compile(
        rf"\b(?:list|show)\s+cases?\s+(?:for|against|involving)\s+({COMPANY})" + stop_before("and", "or", "in", "the"),
        re.IGNORECASE,
    ),
    re.compile(rf"\brespondent\s+(?:is|was|named)\s+({COMPANY})" + stop_before(), re.IGNORECASE),
    re.compile(
        rf"\b(?:respondent|company)\s+({COMPANY})" + stop_before("as", "and", "or", "in", "the", "by", "with", "has", "had"),
        re.IGNORECASE,
    ),
    re.compile(
        rf"\b(?:against|involving|with|versus|vs\.?|by|for)\s+({COMPANY})"
        + stop_before("as", "and", "or", "in", "the", "respondent", "since", "during", "before", "after"),
        re.IGNORECASE,
    ),
    re.compile(rf"\b({CAPITALIZED_RUN}\s+(?:Corp|Inc|LLC|Ltd|Corporation|Company))\b"),
    re.compile(rf"\boutcomes\s+(?:for|of|by)\s+({COMPANY})" + stop_before(), re.IGNORECASE),
    re.compile(rf"\b({CAPITALIZED_RUN})\s+(?i:as\s+respondent)"),
)

DEFAULT_ANCHORS = ("by", "arbitrator", "has")

_RULING_RE = re.compile(r"\b(?:rule|ruled|rules|ruling|rulings|decision|decisions|decide|decided)\b", re.IGNORECASE)
_RELATION_RE = re.compile(r"\b(?:against|for|involving|with|between)\b", re.IGNORECASE)
_TRAILING_PUNCTUATION = "?!,;:\"'"


def _clean_capture(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip().strip(_TRAILING_PUNCTUATION).strip()


def is_plausible_name(value: Optional[str]) -> bool:
    """Length 2-39 and not a bare filler word such as "cases\""""
    if not value:
        return False
    value = value.strip()
    if not MIN_NAME_LENGTH <= len(value) <= MAX_NAME_LENGTH:
        return False
    tokens = value.lower().split()
    return tokens[0] not in _NON_NAMES and value.lower() not in _NON_NAMES


def first_capture(
    patterns: Sequence[Pattern],
    text: str,
    accept: Callable[[str], bool] = is_plausible_name,
) -> Optional[str]:
    """Run patterns in order and return the first accepted capture group"""
    for pattern in patterns:
        for match in pattern.finditer(text):
            candidate = _clean_capture(match.group(1))
            if accept(candidate):
                return candidate
    return None


def name_after_anchor(text: str, anchors: Iterable[str] = DEFAULT_ANCHORS) -> Optional[str]:
    """
    Fallback scan: the run of capitalized (or honorific) tokens right after the
    first anchor keyword that is followed by one.
    """
    tokens = text.split()
    anchor_set = {anchor.lower() for anchor in anchors}

    for index, token in enumerate(tokens):
        if token.lower().strip(_TRAILING_PUNCTUATION) not in anchor_set:
            continue

        run = []
        for raw in tokens[index + 1:]:
            ends_clause = raw[-1] in "?!,;:" if raw else False
            word = raw.strip(_TRAILING_PUNCTUATION)
            if word.endswith(".") and len(word) > 3 and not is_honorific(word):
                word = word[:-1]
                ends_clause = True
            if not word or not (word[0].isupper() or is_honorific(word)):
                break
            run.append(word)
            if ends_clause:
                break

        candidate = " ".join(run)
        if is_plausible_name(candidate):
            return candidate
    return None


def extract_arbitrator_name(text: str) -> Optional[str]:
    """Raw arbitrator name capture, before standardization"""
    return first_capture(ARBITRATOR_PATTERNS, text) or name_after_anchor(text)


def _plausible_respondent(value: str) -> bool:
    return is_plausible_name(value) and len(value) >= 3


def extract_respondent_name(text: str) -> Optional[str]:
    """Raw respondent capture, before standardization"""
    return first_capture(RESPONDENT_PATTERNS, text, accept=_plausible_respondent)


def mentions_ruling(text: str) -> bool:
    """Ruling keyword together with a relational word ("against", "involving", ...)"""
    return bool(_RULING_RE.search(text) and _RELATION_RE.search(text))


class EntityExtractor:
    """
    Standardized arbitrator and respondent names for one query

    The standardizer is injected so callers can swap name normalization.
    """

    def __init__(self, standardizer: Callable[[Optional[str]], Optional[str]] = standardize_name):
        self.standardize = standardizer

    def arbitrator_name(self, text: str) -> Optional[str]:
        return self.standardize(extract_arbitrator_name(text))

    def respondent_name(self, text: str) -> Optional[str]:
        return self.standardize(extract_respondent_name(text))

    def name_after_anchor(self, text: str, anchors: Iterable[str] = DEFAULT_ANCHORS) -> Optional[str]:
        return self.standardize(name_after_anchor(text, anchors))

    def first_capture(self, patterns: Sequence[Pattern], text: str) -> Optional[str]:
        return self.standardize(first_capture(patterns, text))


class CombinedQueryDetector:
    """Detects "how did arbitrator X rule against respondent Y" questions"""

    def __init__(self, extractor: Optional[EntityExtractor] = None):
        self.extractor = extractor or EntityExtractor()

    def detect(self, text: str) -> Optional[Tuple[str, str]]:
        """(arbitrator, respondent) when both are present, else None"""
        if not mentions_ruling(text):
            return None
        arbitrator = self.extractor.arbitrator_name(text)
        respondent = self.extractor.respondent_name(text)
        if arbitrator and respondent:
            return arbitrator, respondent
        return None
