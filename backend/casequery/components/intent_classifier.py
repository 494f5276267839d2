"""
Rule-based intent classification.

Rules are tried in order and the first match wins:

1. "how many" or "number of" + "case" + a timeframe -> TIME_BASED_ANALYSIS
2. ruling keyword with arbitrator and respondent     -> COMBINED_OUTCOME_ANALYSIS
3. "how many" or "number of" + "case"                -> ARBITRATOR_CASE_COUNT
4. outcome / result / ruling                         -> respondent or arbitrator outcomes
5. ranking words over "arbitrators"                  -> ARBITRATOR_RANKING
6. average / mean + award, amount or damages         -> ARBITRATOR_AVERAGE_AWARD
7. list, show, display, "which/what case"            -> respondent or arbitrator listing
8. anything else                                     -> UNKNOWN

A name an intent requires but the intent-specific patterns missed is retried
once with the generic extractor before the query is returned.
"""
import re
from typing import Optional, Tuple

from casequery.components.contracts import IntentKind, StructuredQuery
from casequery.components.entity_extractor import (
    ARBITRATOR_PATTERNS,
    CombinedQueryDetector,
    EntityExtractor,
    PERSON,
    TITLE,
    stop_before,
)
from casequery.components.timeframe import TimeframeExtractor

EXPLICIT_CONFIDENCE = 0.9
LISTING_CONFIDENCE = 0.8
INFERRED_CONFIDENCE = 0.6
GUESSED_CONFIDENCE = 0.4

# Keyword stem -> disposition substring matched against the store
DISPOSITION_STEMS: Tuple[Tuple[str, str], ...] = (
    ("award", "award"),
    ("dismiss", "dismiss"),
    ("settle", "settle"),
    ("withdr", "withdraw"),
)

_RESPONDENT_MARKERS = (" as respondent", " against ", " vs ", " vs. ", " versus ", "respondent")
_ARBITRATOR_MARKERS = ("handled by", "overseen by", "arbitrated by", "decided by", "arbitrator", "cases by")
_LISTING_RESPONDENT_MARKERS = ("involving", " with ", "against", "versus", " vs ", " for ", "as respondent")
_OUTCOMES_FOR_NAME_RE = re.compile(r"outcomes\s+for\s+[A-Z]")
_CASES_FOR_RE = re.compile(r"\bcases?\s+for\s+", re.IGNORECASE)
_OUTCOME_RE = re.compile(r"\b(?:outcome|outcomes|result|results|ruling|rulings)\b", re.IGNORECASE)
_AVERAGE_RE = re.compile(r"\b(?:average|avg|mean)\b", re.IGNORECASE)
_LISTING_RE = re.compile(r"\b(?:list|show|display)\b|\b(?:which|what)\s+cases?\b", re.IGNORECASE)
_COUNT_RE = re.compile(r"\b(?:how\s+many|number\s+of)\b", re.IGNORECASE)
_AWARD_RE = re.compile(r"\b(?:award|amount|damages)", re.IGNORECASE)
_RANKING_RE = re.compile(r"\b(?:highest|top|most|rank|ranking|best|largest|biggest)\b", re.IGNORECASE)
_CASE_TYPE_RE = re.compile(r"\bin\s+([A-Za-z\-]+)\s+(?:cases|disputes|matters)\b", re.IGNORECASE)

_OUTCOME_BY_PATTERNS = (
    re.compile(
        rf"\b(?:handled|overseen|arbitrated|decided|heard)\s+by\s+({TITLE}{PERSON})" + stop_before("in", "and", "or"),
        re.IGNORECASE,
    ),
    re.compile(
        rf"\b(?:outcomes?|results?|rulings?)\s+(?:for|of)\s+(?:arbitrator\s+)?({TITLE}{PERSON})"
        + stop_before("in", "and", "or", "with"),
        re.IGNORECASE,
    ),
)
_AWARD_BY_PATTERNS = (
    re.compile(
        rf"\b(?:given|awarded|granted|authorized|issued)\s+by\s+({TITLE}{PERSON})"
        + stop_before("in", "and", "or", "for", "when"),
        re.IGNORECASE,
    ),
    re.compile(
        rf"\b(?:award|amount|awards)\b.*?\s+(?:of|for|from|by)\s+(?:arbitrator\s+)?({TITLE}{PERSON})"
        + stop_before("in", "and", "or", "for", "when"),
        re.IGNORECASE,
    ),
)
_LISTING_BY_PATTERNS = (
    re.compile(
        rf"\b(?:(?:handled|overseen|arbitrated|decided|heard)\s+)?by\s+(?:arbitrator\s+)?({TITLE}{PERSON})"
        + stop_before("in", "and", "or", "with", "since"),
        re.IGNORECASE,
    ),
    re.compile(
        rf"\bcases\s+(?:of|for)\s+arbitrator\s+({TITLE}{PERSON})" + stop_before("in", "and", "or"),
        re.IGNORECASE,
    ),
)
_COUNT_PATTERNS = (
    re.compile(
        rf"\bhas\s+({TITLE}{PERSON})\s+(?:handled|overseen|arbitrated|decided|heard|had)\b",
        re.IGNORECASE,
    ),
    re.compile(
        rf"\bdid\s+({TITLE}{PERSON})\s+(?:handle|oversee|arbitrate|decide|hear|have)\b",
        re.IGNORECASE,
    ),
    re.compile(
        rf"\b(?:handled|overseen|arbitrated|decided|heard)\s+by\s+({TITLE}{PERSON})" + stop_before("in", "and", "or"),
        re.IGNORECASE,
    ),
) + ARBITRATOR_PATTERNS

# Party phrases narrowing the average award question, matched against the disposition text
_AWARD_FILTERS: Tuple[str, ...] = ("for consumer", "for respondent", "for claimant")


def infer_disposition(text: str) -> Optional[str]:
    """Disposition substring named by the query, or None for all dispositions"""
    lowered = text.lower()
    for stem, disposition in DISPOSITION_STEMS:
        if stem in lowered:
            return disposition
    return None


def infer_award_filter(text: str) -> Optional[str]:
    lowered = text.lower()
    for phrase in _AWARD_FILTERS:
        if phrase in lowered:
            return phrase
    return None


def infer_case_type(text: str) -> Optional[str]:
    match = _CASE_TYPE_RE.search(text)
    if not match:
        return None
    case_type = match.group(1).lower()
    return None if case_type in ("all", "these", "those", "the", "my") else case_type


class IntentClassifier:
    """Maps free text onto a StructuredQuery without calling any external service"""

    def __init__(
        self,
        extractor: Optional[EntityExtractor] = None,
        timeframes: Optional[TimeframeExtractor] = None,
        combined: Optional[CombinedQueryDetector] = None,
    ):
        self.extractor = extractor or EntityExtractor()
        self.timeframes = timeframes or TimeframeExtractor()
        self.combined = combined or CombinedQueryDetector(self.extractor)

    def classify(self, query: str) -> StructuredQuery:
        text = (query or "").strip()
        lowered = text.lower()
        timeframe = self.timeframes.extract(text)

        fields = dict(raw_query=text, year=timeframe.year, timeframe_label=timeframe.label)
        # "the highest number of cases" ranks arbitrators rather than counting one
        asks_count = (
            bool(_COUNT_RE.search(text))
            and "case" in lowered
            and not (_RANKING_RE.search(text) and "arbitrators" in lowered)
        )

        if asks_count and timeframe.present:
            return StructuredQuery(
                intent=IntentKind.TIME_BASED_ANALYSIS,
                disposition=infer_disposition(text),
                confidence=EXPLICIT_CONFIDENCE,
                **fields,
            )

        pair = self.combined.detect(text)
        if pair:
            return StructuredQuery(
                intent=IntentKind.COMBINED_OUTCOME_ANALYSIS,
                arbitrator_name=pair[0],
                respondent_name=pair[1],
                confidence=EXPLICIT_CONFIDENCE,
                **fields,
            )

        if asks_count:
            structured = StructuredQuery(
                intent=IntentKind.ARBITRATOR_CASE_COUNT,
                arbitrator_name=self._arbitrator(text, _COUNT_PATTERNS, anchors=("has", "by")),
                confidence=EXPLICIT_CONFIDENCE,
                **fields,
            )
        elif _OUTCOME_RE.search(text) and not _AVERAGE_RE.search(text) and "award amount" not in lowered:
            structured = self._classify_outcomes(text, lowered, fields)
        elif _RANKING_RE.search(text) and "arbitrators" in lowered:
            structured = StructuredQuery(
                intent=IntentKind.ARBITRATOR_RANKING,
                case_type=infer_case_type(text),
                confidence=LISTING_CONFIDENCE,
                **fields,
            )
        elif _AVERAGE_RE.search(text) and _AWARD_RE.search(text):
            structured = StructuredQuery(
                intent=IntentKind.ARBITRATOR_AVERAGE_AWARD,
                arbitrator_name=self._arbitrator(text, _AWARD_BY_PATTERNS),
                disposition=infer_award_filter(text),
                confidence=EXPLICIT_CONFIDENCE,
                **fields,
            )
        elif _LISTING_RE.search(text):
            structured = self._classify_listing(text, lowered, fields)
        else:
            return StructuredQuery(intent=IntentKind.UNKNOWN, confidence=0.0, **fields)

        return self._retry_missing_names(structured)

    def _arbitrator(self, text: str, patterns, anchors=("by", "arbitrator")) -> Optional[str]:
        return self.extractor.first_capture(patterns, text) or self.extractor.name_after_anchor(text, anchors)

    def _classify_outcomes(self, text: str, lowered: str, fields: dict) -> StructuredQuery:
        if any(marker in lowered for marker in _RESPONDENT_MARKERS) or _OUTCOMES_FOR_NAME_RE.search(text):
            return StructuredQuery(
                intent=IntentKind.RESPONDENT_OUTCOME_ANALYSIS,
                respondent_name=self.extractor.respondent_name(text),
                confidence=EXPLICIT_CONFIDENCE,
                **fields,
            )

        if any(marker in lowered for marker in _ARBITRATOR_MARKERS):
            return StructuredQuery(
                intent=IntentKind.ARBITRATOR_OUTCOME_ANALYSIS,
                arbitrator_name=self._arbitrator(text, _OUTCOME_BY_PATTERNS),
                confidence=EXPLICIT_CONFIDENCE,
                **fields,
            )

        # No explicit marker: a respondent capture decides, else assume a person
        respondent = self.extractor.respondent_name(text)
        if respondent:
            return StructuredQuery(
                intent=IntentKind.RESPONDENT_OUTCOME_ANALYSIS,
                respondent_name=respondent,
                confidence=INFERRED_CONFIDENCE,
                **fields,
            )
        arbitrator = self._arbitrator(text, _OUTCOME_BY_PATTERNS)
        return StructuredQuery(
            intent=IntentKind.ARBITRATOR_OUTCOME_ANALYSIS,
            arbitrator_name=arbitrator,
            confidence=INFERRED_CONFIDENCE if arbitrator else GUESSED_CONFIDENCE,
            **fields,
        )

    def _classify_listing(self, text: str, lowered: str, fields: dict) -> StructuredQuery:
        if any(marker in lowered for marker in _LISTING_RESPONDENT_MARKERS) or _CASES_FOR_RE.search(text):
            respondent = self.extractor.respondent_name(text)
            if respondent or "arbitrator" not in lowered:
                return StructuredQuery(
                    intent=IntentKind.RESPONDENT_OUTCOME_ANALYSIS,
                    respondent_name=respondent,
                    confidence=LISTING_CONFIDENCE,
                    **fields,
                )

        return StructuredQuery(
            intent=IntentKind.ARBITRATOR_CASE_LISTING,
            arbitrator_name=self._arbitrator(text, _LISTING_BY_PATTERNS),
            confidence=LISTING_CONFIDENCE,
            **fields,
        )

    def _retry_missing_names(self, structured: StructuredQuery) -> StructuredQuery:
        updates = {}
        missing = structured.missing_fields()
        if "arbitrator_name" in missing:
            name = self.extractor.arbitrator_name(structured.raw_query)
            if name:
                updates["arbitrator_name"] = name
        if "respondent_name" in missing:
            name = self.extractor.respondent_name(structured.raw_query)
            if name:
                updates["respondent_name"] = name
        return structured.model_copy(update=updates) if updates else structured
