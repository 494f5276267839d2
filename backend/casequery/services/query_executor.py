"""
Query Executor: runs a StructuredQuery against the case store

One handler per IntentKind. Handlers raise CaseQueryError subclasses; execute()
turns them into a QueryResult so a caller never sees an exception for an
unanswerable question.
"""
import asyncio
import functools
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from casequery.components.contracts import IntentKind, NamedCount, QueryResult, StructuredQuery
from casequery.components.name_matcher import NameMatcher, last_name_of
from casequery.components.response_formatter import ResponseFormatter
from casequery.components.timeframe import resolve_year_window
from casequery.core.config import Settings, get_settings
from casequery.core.exceptions import (
    AmbiguousTimeframe,
    ExtractionFailure,
    NoMatchFound,
    StoreFailure,
)
from casequery.core.logging_config import LoggingConfig
from casequery.services.case_store import CasePredicate, CaseStore
from casequery.utils.datetime_utils import Clock, zoned_clock

MISSING_FIELD_MESSAGES = {
    "arbitrator_name": "No arbitrator name specified in the query.",
    "respondent_name": "No respondent name specified in the query.",
    "timeframe": "No timeframe specified in the query. Please include a specific year or time period.",
}
MISSING_BOTH_NAMES_MESSAGE = "Could not identify both arbitrator and respondent names in the query."
ESCALATION_MESSAGE = "This query requires advanced analysis."
UNKNOWN_MESSAGE = "I couldn't understand the type of question. Please try rephrasing your query."

# Disposition stem -> wording used in time-based answers
_DISPOSITION_WORDS = {
    "award": "awarded",
    "dismiss": "dismissed",
    "settle": "settled",
    "withdraw": "withdrawn",
}


class QueryExecutor:
    """
    Executes classified queries

    Store reads run in the default executor one at a time, so an answer()
    that is cancelled stops at the next read and its partial aggregates are
    dropped.
    """

    HANDLERS: Dict[IntentKind, str] = {
        IntentKind.ARBITRATOR_CASE_COUNT: "arbitrator_case_count",
        IntentKind.ARBITRATOR_OUTCOME_ANALYSIS: "arbitrator_outcome_analysis",
        IntentKind.ARBITRATOR_AVERAGE_AWARD: "arbitrator_average_award",
        IntentKind.ARBITRATOR_CASE_LISTING: "arbitrator_case_listing",
        IntentKind.RESPONDENT_OUTCOME_ANALYSIS: "respondent_outcome_analysis",
        IntentKind.COMBINED_OUTCOME_ANALYSIS: "combined_outcome_analysis",
        IntentKind.ARBITRATOR_RANKING: "arbitrator_ranking",
        IntentKind.TIME_BASED_ANALYSIS: "time_based_analysis",
        IntentKind.COMPLEX_ANALYSIS: "needs_escalation",
        IntentKind.UNKNOWN: "needs_escalation",
    }

    def __init__(
        self,
        store: CaseStore,
        matcher: Optional[NameMatcher] = None,
        formatter: Optional[ResponseFormatter] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.matcher = matcher or NameMatcher()
        self.formatter = formatter or ResponseFormatter()
        self.settings = settings or get_settings()
        self.clock = clock or zoned_clock(self.settings.timeframe_timezone)
        self.logger = logger or LoggingConfig.get_logger(__name__)

    async def execute(self, query: StructuredQuery) -> QueryResult:
        """
        Run the handler for query.intent

        Returns:
            QueryResult whose status tells ok answers apart from each failure kind
        """
        handler = getattr(self, self.HANDLERS[query.intent])
        try:
            self._require_fields(query)
            return await handler(query)
        except ExtractionFailure as e:
            return QueryResult(message=e.user_message, status="extraction_failure")
        except NoMatchFound as e:
            return QueryResult(data=e.metadata.get("data"), message=e.user_message, status="no_match")
        except AmbiguousTimeframe as e:
            return QueryResult(message=e.user_message, status="ambiguous_timeframe")
        except StoreFailure as e:
            self.logger.warning(
                "Query execution failed in case store",
                extra={"intent": query.intent.value, "detail": e.detail},
            )
            return QueryResult(message=e.user_message, status="store_failure")

    def _require_fields(self, query: StructuredQuery) -> None:
        missing = query.missing_fields()
        if not missing:
            return
        if query.intent == IntentKind.COMBINED_OUTCOME_ANALYSIS:
            raise ExtractionFailure(MISSING_BOTH_NAMES_MESSAGE)
        raise ExtractionFailure(MISSING_FIELD_MESSAGES[missing[0]])

    async def _read(self, read: Callable[..., Any], *args, **kwargs) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(read, *args, **kwargs))

    async def _matching_arbitrators(self, name: str) -> List[str]:
        """Stored arbitrator names equivalent to name, pre-filtered on last name in SQL"""
        candidates = await self._read(
            self.store.distinct_names,
            "arbitrator_name",
            CasePredicate(arbitrator_contains=last_name_of(name)),
        )
        return self.matcher.filter_matching(name, candidates)

    async def _matching_respondents(self, name: str, arbitrator: Optional[str] = None) -> List[str]:
        return await self._read(
            self.store.distinct_names,
            "respondent_name",
            CasePredicate(respondent_contains=name, arbitrator_contains=arbitrator),
        )

    @staticmethod
    def _named_counts(counts: Dict[str, int]) -> List[NamedCount]:
        ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [NamedCount(name=name, count=count) for name, count in ordered]

    def _name_header(self, names: List[str], query_name: str) -> str:
        lines = [f'Found {len(names)} arbitrators matching "{query_name}":']
        lines.extend(f"- {name}" for name in names)
        return "\n".join(lines)

    # Handlers

    async def arbitrator_case_count(self, query: StructuredQuery) -> QueryResult:
        name = query.arbitrator_name
        names = await self._matching_arbitrators(name)
        if not names:
            raise NoMatchFound(
                f"{name} has handled 0 arbitration cases.",
                metadata={"data": {"count": 0, "matching_names": []}},
            )

        counts = await self._read(
            self.store.group_count_by,
            "arbitrator_name",
            CasePredicate(arbitrator_names_in=tuple(names)),
        )
        per_name = self._named_counts({n: counts.get(n, 0) for n in names})
        total = sum(item.count for item in per_name)
        data = {
            "count": total,
            "matching_names": names,
            "name_counts": [item.model_dump() for item in per_name],
        }

        if len(names) > 1:
            message = (
                f'I found {len(names)} arbitrators matching "{name}":\n\n'
                + self.formatter.named_count_lines(per_name)
                + f"\n\nIn total, they have handled {total} arbitration {self.formatter.pluralize(total, 'case')}."
            )
        else:
            message = f"{names[0]} has handled {total} arbitration {self.formatter.pluralize(total, 'case')}."
        return QueryResult(data=data, message=message)

    async def arbitrator_outcome_analysis(self, query: StructuredQuery) -> QueryResult:
        name = query.arbitrator_name
        names = await self._matching_arbitrators(name)
        if not names:
            raise NoMatchFound(f"No cases found for arbitrator {name}.")

        counts = await self._read(
            self.store.group_count_by_disposition,
            CasePredicate(arbitrator_names_in=tuple(names)),
        )
        if not counts:
            raise NoMatchFound(f"No outcome data found for arbitrator {name}.")

        outcomes = self.formatter.outcome_counts(counts)
        total = sum(counts.values())
        if len(names) > 1:
            header = (
                f'Found {len(names)} arbitrators matching "{name}" with a total of {total} cases:\n'
                + "\n".join(f"- {n}" for n in names)
                + "\n\nCombined outcomes:"
            )
        else:
            header = f"{names[0]} has handled {total} cases with the following outcomes:"

        return QueryResult(
            data={
                "total_cases": total,
                "outcomes": [o.model_dump() for o in outcomes],
                "matching_names": names,
            },
            message=f"{header}\n{self.formatter.outcome_lines(outcomes)}",
        )

    async def arbitrator_average_award(self, query: StructuredQuery) -> QueryResult:
        name = query.arbitrator_name
        disposition = query.disposition
        qualifier = f' with disposition containing "{disposition}"' if disposition else ""

        names = await self._matching_arbitrators(name)
        if not names:
            raise NoMatchFound(f"No cases found for arbitrator {name}{qualifier}.")

        base = CasePredicate(
            arbitrator_names_in=tuple(names),
            disposition_contains=(disposition,) if disposition else (),
        )
        total_cases = await self._read(self.store.count_where, base)
        if total_cases == 0:
            raise NoMatchFound(f"No cases found for arbitrator {name}{qualifier}.")

        awarded = CasePredicate(
            arbitrator_names_in=base.arbitrator_names_in,
            disposition_contains=base.disposition_contains + ("award",),
        )
        stats = await self._read(self.store.average_numeric_field, "award_amount", awarded)

        subject = "Matching arbitrators have" if len(names) > 1 else f"{names[0]} has"
        if stats.count == 0:
            return QueryResult(
                data={"average_award": 0, "case_count": total_cases, "award_count": 0, "matching_names": names},
                message=f"{subject} handled {total_cases} cases{qualifier}, but none have award amount data available.",
            )

        average = self.formatter.currency(stats.average, 2)
        summary = (
            f"The average award amount is {average} (based on {stats.count} cases with award data, "
            f"totaling {self.formatter.currency(stats.total, 0)})."
        )
        if len(names) > 1:
            message = (
                f"{self._name_header(names, name)}\n\n"
                f"Combined, they have handled {total_cases} cases{qualifier}. {summary}"
            )
        else:
            message = f"{names[0]} has handled {total_cases} cases{qualifier}. {summary}"

        return QueryResult(
            data={
                "average_award": float(stats.average),
                "total_award": float(stats.total),
                "case_count": total_cases,
                "award_count": stats.count,
                "matching_names": names,
            },
            message=message,
        )

    async def arbitrator_case_listing(self, query: StructuredQuery) -> QueryResult:
        name = query.arbitrator_name
        limit = self.settings.case_listing_limit
        names = await self._matching_arbitrators(name)
        if not names:
            raise NoMatchFound(f"No cases found for arbitrator {name}.")

        predicate = CasePredicate(arbitrator_names_in=tuple(names))
        total = await self._read(self.store.count_where, predicate)
        if total == 0:
            raise NoMatchFound(f"No cases found for arbitrator {name}.")
        cases = await self._read(self.store.list_where, predicate, limit=limit, order_by="case_id", descending=True)

        shown = f"first {limit} of {total} total" if total > limit else f"all {len(cases)}"
        if len(names) > 1:
            header = f"{self._name_header(names, name)}\n\nCombined cases (showing {shown}):"
        else:
            header = f"Cases handled by {names[0]} (showing {shown}):"

        blocks = [self._case_block(index, case) for index, case in enumerate(cases, start=1)]
        message = header + "\n\n" + "\n\n".join(blocks)
        if total > limit:
            message += f"\n\nNote: Only showing the first {limit} of {total} matching cases."

        return QueryResult(
            data={"cases": cases, "total_cases": total, "matching_names": names, "truncated": total > limit},
            message=message,
        )

    def _case_block(self, index: int, case: Dict[str, Any]) -> str:
        lines = [
            f"{index}. Case ID: {case['case_id']}",
            f"   Case Type: {case.get('case_type') or 'Unknown'}",
            f"   Arbitrator: {case.get('arbitrator_name')}",
            f"   Respondent: {case.get('respondent_name') or 'Unknown'}",
            f"   Disposition: {case.get('disposition') or 'Unknown'}",
        ]
        disposition = (case.get("disposition") or "").lower()
        if "award" in disposition and case.get("award_amount"):
            amount = str(case["award_amount"]).strip()
            lines.append(f"   Award Amount: {amount if amount.startswith('$') else '$' + amount}")
        return "\n".join(lines)

    async def respondent_outcome_analysis(self, query: StructuredQuery) -> QueryResult:
        name = query.respondent_name
        arbitrator = query.arbitrator_name
        qualifier = f" with arbitrator {arbitrator}" if arbitrator else ""

        variants = await self._matching_respondents(name, arbitrator)
        if not variants:
            raise NoMatchFound(f"No cases found for respondent {name}{qualifier}.")

        predicate = CasePredicate(respondent_names_in=tuple(variants), arbitrator_contains=arbitrator)
        per_variant = await self._read(self.store.group_count_by, "respondent_name", predicate)
        counts = await self._read(self.store.group_count_by_disposition, predicate)
        if not counts:
            raise NoMatchFound(f"No cases found for respondent {name}{qualifier}.")

        outcomes = self.formatter.outcome_counts(counts)
        total = sum(counts.values())
        named = self._named_counts(per_variant)
        if len(named) > 1:
            header = (
                f'Found {len(named)} respondents matching "{name}" with a total of {total} cases:\n'
                + self.formatter.named_count_lines(named, limit=self.settings.respondent_variant_display_limit)
                + "\n\nCombined outcomes:"
            )
        else:
            noun = self.formatter.pluralize(total, "case")
            header = f"{name} has been involved in {total} {noun}{qualifier}. The outcomes are:"

        return QueryResult(
            data={
                "total_cases": total,
                "outcomes": [o.model_dump() for o in outcomes],
                "matching_names": [item.name for item in named],
            },
            message=f"{header}\n{self.formatter.outcome_lines(outcomes)}",
        )

    async def combined_outcome_analysis(self, query: StructuredQuery) -> QueryResult:
        arbitrator = query.arbitrator_name
        respondent = query.respondent_name

        arbitrators = await self._matching_arbitrators(arbitrator)
        respondents = await self._matching_respondents(respondent)
        if not arbitrators or not respondents:
            raise NoMatchFound(f"No cases found with arbitrator {arbitrator} and respondent {respondent}.")

        # Single grouped read over both name sets
        counts = await self._read(
            self.store.group_count_by_disposition,
            CasePredicate(arbitrator_names_in=tuple(arbitrators), respondent_names_in=tuple(respondents)),
        )
        if not counts:
            raise NoMatchFound(
                f"No cases found where arbitrator {arbitrator} ruled on cases involving respondent {respondent}."
            )

        outcomes = self.formatter.outcome_counts(counts)
        total = sum(counts.values())
        message = (
            f"Found {total} cases where arbitrator {arbitrator} ruled on cases involving respondent "
            f"{respondent}. The outcomes are:\n{self.formatter.outcome_lines(outcomes)}"
        )
        return QueryResult(
            data={
                "total_cases": total,
                "outcomes": [o.model_dump() for o in outcomes],
                "matching_arbitrators": arbitrators,
                "matching_respondents": respondents,
            },
            message=message,
        )

    async def arbitrator_ranking(self, query: StructuredQuery) -> QueryResult:
        case_type = query.case_type
        predicate = CasePredicate(arbitrator_not_null=True, case_type_contains=case_type)

        award_stats = await self._read(self.store.numeric_stats_by, "award_amount", "arbitrator_name", predicate)
        case_counts = await self._read(self.store.group_count_by, "arbitrator_name", predicate)

        eligible: List[Tuple[str, Any]] = [
            (name, stats)
            for name, stats in award_stats.items()
            if stats.count >= self.settings.ranking_min_award_cases
        ]
        if not eligible:
            raise NoMatchFound("I couldn't find any arbitrators with sufficient award data to analyze.")

        eligible.sort(key=lambda item: (-item[1].average, item[0]))
        top = eligible[: self.settings.ranking_limit]

        ranking = [
            {
                "arbitrator_name": name,
                "average_award": float(stats.average),
                "award_count": stats.count,
                "case_count": case_counts.get(name, stats.count),
            }
            for name, stats in top
        ]
        header = "Here are the arbitrators with the highest average award amounts"
        if case_type:
            header += f" in {case_type} cases"
        lines = self.formatter.numbered_lines(
            f"{row['arbitrator_name']}: {self.formatter.currency(stats.average, 2)} average award "
            f"({row['award_count']} awards out of {row['case_count']} cases)"
            for row, (_, stats) in zip(ranking, top)
        )
        return QueryResult(data={"ranking": ranking, "case_type": case_type}, message=f"{header}:\n\n{lines}")

    async def time_based_analysis(self, query: StructuredQuery) -> QueryResult:
        (start, end), period = resolve_year_window(query.year, query.timeframe_label, self.clock)
        stem = query.disposition

        count = await self._read(
            self.store.count_where,
            CasePredicate(
                filing_year_between=(start, end),
                require_filing_date=True,
                disposition_contains=(stem,) if stem else (),
                exclude_duplicates=True,
            ),
        )
        verb = "was" if count == 1 else "were"
        noun = self.formatter.pluralize(count, "case")
        described = f"{_DISPOSITION_WORDS.get(stem, stem)} {noun}" if stem else noun
        return QueryResult(
            data={
                "count": count,
                "year_start": start,
                "year_end": end,
                "timeframe": query.timeframe_label or str(query.year),
                "disposition": stem or "all",
            },
            message=f"There {verb} {count} {described} {period}.",
        )

    async def needs_escalation(self, query: StructuredQuery) -> QueryResult:
        message = UNKNOWN_MESSAGE if query.intent == IntentKind.UNKNOWN else ESCALATION_MESSAGE
        return QueryResult(message=message, status="escalate")


_unhandled = set(IntentKind) - set(QueryExecutor.HANDLERS)
if _unhandled:
    raise RuntimeError(f"QueryExecutor has no handler for {sorted(kind.value for kind in _unhandled)}")
