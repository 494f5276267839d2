"""
Contract models passed between query resolution components.

A StructuredQuery and its QueryResult live for exactly one answer() call.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class IntentKind(str, Enum):
    """Closed set of question types the engine can execute"""
    ARBITRATOR_CASE_COUNT = "arbitrator_case_count"
    ARBITRATOR_OUTCOME_ANALYSIS = "arbitrator_outcome_analysis"
    ARBITRATOR_AVERAGE_AWARD = "arbitrator_average_award"
    ARBITRATOR_CASE_LISTING = "arbitrator_case_listing"
    RESPONDENT_OUTCOME_ANALYSIS = "respondent_outcome_analysis"
    COMBINED_OUTCOME_ANALYSIS = "combined_outcome_analysis"
    ARBITRATOR_RANKING = "arbitrator_ranking"
    TIME_BASED_ANALYSIS = "time_based_analysis"
    COMPLEX_ANALYSIS = "complex_analysis"
    UNKNOWN = "unknown"

    @classmethod
    def from_label(cls, label: Optional[str]) -> Optional["IntentKind"]:
        """Map a label such as "ARBITRATOR_CASE_COUNT" onto an IntentKind, or None"""
        if not label:
            return None
        key = str(label).strip().upper().replace("-", "_").replace(" ", "_")
        key = _INTENT_ALIASES.get(key, key)
        try:
            return cls[key]
        except KeyError:
            return None

    @property
    def needs_escalation(self) -> bool:
        return self in (IntentKind.COMPLEX_ANALYSIS, IntentKind.UNKNOWN)


_INTENT_ALIASES = {
    "RESPONDENT_CASE_COUNT": "RESPONDENT_OUTCOME_ANALYSIS",
}

REQUIRED_FIELDS: Dict[IntentKind, Tuple[str, ...]] = {
    IntentKind.ARBITRATOR_CASE_COUNT: ("arbitrator_name",),
    IntentKind.ARBITRATOR_OUTCOME_ANALYSIS: ("arbitrator_name",),
    IntentKind.ARBITRATOR_AVERAGE_AWARD: ("arbitrator_name",),
    IntentKind.ARBITRATOR_CASE_LISTING: ("arbitrator_name",),
    IntentKind.RESPONDENT_OUTCOME_ANALYSIS: ("respondent_name",),
    IntentKind.COMBINED_OUTCOME_ANALYSIS: ("arbitrator_name", "respondent_name"),
    IntentKind.ARBITRATOR_RANKING: (),
    IntentKind.TIME_BASED_ANALYSIS: (),
    IntentKind.COMPLEX_ANALYSIS: (),
    IntentKind.UNKNOWN: (),
}


class Timeframe(BaseModel):
    """Year or relative period pulled out of the query text"""
    model_config = ConfigDict(frozen=True)

    year: Optional[int] = None
    label: Optional[str] = None

    @property
    def present(self) -> bool:
        return self.year is not None or bool(self.label)


class StructuredQuery(BaseModel):
    """Classified form of a free-text question"""
    raw_query: str = ""
    intent: IntentKind = IntentKind.UNKNOWN
    arbitrator_name: Optional[str] = None
    respondent_name: Optional[str] = None
    disposition: Optional[str] = None
    case_type: Optional[str] = None
    year: Optional[int] = None
    timeframe_label: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    source: Literal["rules", "ai"] = "rules"

    def missing_fields(self) -> List[str]:
        """Required fields (per intent) that were not captured"""
        missing = [name for name in REQUIRED_FIELDS[self.intent] if not getattr(self, name)]
        if self.intent == IntentKind.TIME_BASED_ANALYSIS and self.year is None and not self.timeframe_label:
            missing.append("timeframe")
        return missing


class QueryResult(BaseModel):
    """Outcome of executing one StructuredQuery; always produced, never raised"""
    data: Optional[Any] = None
    message: str
    status: Literal[
        "ok",
        "no_match",
        "extraction_failure",
        "store_failure",
        "ambiguous_timeframe",
        "ai_unavailable",
        "escalate",
    ] = "ok"


class AnswerResponse(BaseModel):
    """Caller-facing answer for one free-text question"""
    answer: str
    data: Optional[Any] = None
    query_type: str


class AIClassification(BaseModel):
    """Classification returned by the LLM collaborator"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    intent: str = "UNKNOWN"
    arbitrator_name: Optional[str] = Field(default=None, alias="arbitratorName")
    respondent_name: Optional[str] = Field(default=None, alias="respondentName")
    disposition: Optional[str] = None
    case_type: Optional[str] = Field(default=None, alias="caseType")
    timeframe: Optional[str] = None
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class GeneratedQuery(BaseModel):
    """Read-only SQL produced by the LLM collaborator"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    query_text: str = Field(default="", alias="sql")
    explanation: str = "No explanation provided"


class NamedCount(BaseModel):
    name: str
    count: int


class OutcomeCount(BaseModel):
    disposition: str
    count: int
    percentage: float
