"""
Tests for QueryExecutor handlers against seeded cases
"""
from datetime import datetime
from unittest.mock import Mock

import pytest

from casequery.components.contracts import IntentKind, StructuredQuery
from casequery.core.exceptions import StoreFailure
from casequery.services.case_store import CaseStore
from casequery.services.query_executor import (
    ESCALATION_MESSAGE,
    MISSING_BOTH_NAMES_MESSAGE,
    UNKNOWN_MESSAGE,
    QueryExecutor,
)


def make_executor(db, settings, clock, **overrides):
    if overrides:
        settings = settings.model_copy(update=overrides)
    return QueryExecutor(CaseStore(db, settings), settings=settings, clock=clock)


@pytest.fixture
def executor(db, settings, clock):
    return make_executor(db, settings, clock)


@pytest.fixture
def smiths(seed_cases):
    """Two John Smiths with three cases each, plus a Jane Smith and a duplicate row"""
    return seed_cases(
        {"arbitrator_name": "John A. Smith", "disposition": "Awarded"},
        {"arbitrator_name": "John A. Smith", "disposition": "Awarded"},
        {"arbitrator_name": "John A. Smith", "disposition": "Dismissed"},
        {"arbitrator_name": "John B. Smith", "disposition": "Awarded"},
        {"arbitrator_name": "John B. Smith", "disposition": "Awarded"},
        {"arbitrator_name": "John B. Smith", "disposition": "Dismissed"},
        {"arbitrator_name": "Jane Smith", "disposition": "Awarded"},
        {"arbitrator_name": "John A. Smith", "disposition": "Awarded", "duplicate_of": "AAA-00001"},
    )


def query(intent, **fields):
    return StructuredQuery(raw_query="", intent=intent, confidence=0.9, **fields)


class TestArbitratorOutcomes:
    @pytest.mark.asyncio
    async def test_combines_matching_names(self, executor, smiths):
        result = await executor.execute(query(IntentKind.ARBITRATOR_OUTCOME_ANALYSIS, arbitrator_name="John Smith"))

        assert result.status == "ok"
        assert result.data["total_cases"] == 6
        assert result.data["matching_names"] == ["John A. Smith", "John B. Smith"]
        assert result.message == (
            'Found 2 arbitrators matching "John Smith" with a total of 6 cases:\n'
            "- John A. Smith\n"
            "- John B. Smith\n"
            "\n"
            "Combined outcomes:\n"
            "- Awarded: 4 cases (66.7%)\n"
            "- Dismissed: 2 cases (33.3%)"
        )

    @pytest.mark.asyncio
    async def test_middle_initial_narrows_match(self, executor, smiths):
        result = await executor.execute(query(IntentKind.ARBITRATOR_OUTCOME_ANALYSIS, arbitrator_name="John B. Smith"))
        assert result.message.startswith("John B. Smith has handled 3 cases with the following outcomes:")

    @pytest.mark.asyncio
    async def test_no_match(self, executor, smiths):
        result = await executor.execute(query(IntentKind.ARBITRATOR_OUTCOME_ANALYSIS, arbitrator_name="Mary Major"))
        assert result.status == "no_match"
        assert result.message == "No cases found for arbitrator Mary Major."


class TestArbitratorCaseCount:
    @pytest.mark.asyncio
    async def test_single_name(self, executor, smiths):
        result = await executor.execute(query(IntentKind.ARBITRATOR_CASE_COUNT, arbitrator_name="John A. Smith"))
        assert result.message == "John A. Smith has handled 3 arbitration cases."
        assert result.data["count"] == 3

    @pytest.mark.asyncio
    async def test_several_names(self, executor, smiths):
        result = await executor.execute(query(IntentKind.ARBITRATOR_CASE_COUNT, arbitrator_name="John Smith"))
        assert result.message == (
            'I found 2 arbitrators matching "John Smith":\n\n'
            "- John A. Smith: 3 cases\n"
            "- John B. Smith: 3 cases\n"
            "\n"
            "In total, they have handled 6 arbitration cases."
        )

    @pytest.mark.asyncio
    async def test_zero_cases(self, executor, smiths):
        result = await executor.execute(query(IntentKind.ARBITRATOR_CASE_COUNT, arbitrator_name="Mary Major"))
        assert result.status == "no_match"
        assert result.message == "Mary Major has handled 0 arbitration cases."
        assert result.data == {"count": 0, "matching_names": []}


class TestAverageAward:
    @pytest.mark.asyncio
    async def test_average_over_numeric_awards(self, executor, seed_cases):
        seed_cases(
            {"arbitrator_name": "Jane Doe", "disposition": "Awarded", "award_amount": "$1,000.00"},
            {"arbitrator_name": "Jane Doe", "disposition": "Awarded", "award_amount": "2,000"},
            {"arbitrator_name": "Jane Doe", "disposition": "Awarded", "award_amount": "n/a"},
            {"arbitrator_name": "Jane Doe", "disposition": "Dismissed"},
        )
        result = await executor.execute(query(IntentKind.ARBITRATOR_AVERAGE_AWARD, arbitrator_name="Jane Doe"))

        assert result.message == (
            "Jane Doe has handled 4 cases. The average award amount is $1,500.00 "
            "(based on 2 cases with award data, totaling $3,000)."
        )
        assert result.data["average_award"] == 1500.0
        assert result.data["award_count"] == 2

    @pytest.mark.asyncio
    async def test_no_award_data(self, executor, seed_cases):
        seed_cases({"arbitrator_name": "Jane Doe", "disposition": "Dismissed"})
        result = await executor.execute(query(IntentKind.ARBITRATOR_AVERAGE_AWARD, arbitrator_name="Jane Doe"))
        assert result.status == "ok"
        assert "none have award amount data available" in result.message

    @pytest.mark.asyncio
    async def test_disposition_filter(self, executor, seed_cases):
        seed_cases(
            {"arbitrator_name": "Jane Doe", "disposition": "Awarded for consumer", "award_amount": "100"},
            {"arbitrator_name": "Jane Doe", "disposition": "Awarded for business", "award_amount": "900"},
        )
        result = await executor.execute(
            query(IntentKind.ARBITRATOR_AVERAGE_AWARD, arbitrator_name="Jane Doe", disposition="for consumer")
        )
        assert 'with disposition containing "for consumer"' in result.message
        assert result.data["average_award"] == 100.0


class TestCaseListing:
    @pytest.mark.asyncio
    async def test_truncates_to_listing_limit(self, db, settings, clock, seed_cases):
        seed_cases(
            {"arbitrator_name": "Jane Doe", "disposition": "Awarded", "award_amount": "500"},
            {"arbitrator_name": "Jane Doe", "disposition": "Dismissed", "respondent_name": "Acme Inc"},
            {"arbitrator_name": "Jane Doe", "disposition": "Awarded", "award_amount": "$75"},
        )
        executor = make_executor(db, settings, clock, case_listing_limit=2)
        result = await executor.execute(query(IntentKind.ARBITRATOR_CASE_LISTING, arbitrator_name="Jane Doe"))

        assert result.data["truncated"] is True
        assert [case["case_id"] for case in result.data["cases"]] == ["AAA-00003", "AAA-00002"]
        assert result.message.startswith("Cases handled by Jane Doe (showing first 2 of 3 total):")
        assert "   Award Amount: $75" in result.message
        assert "   Respondent: Acme Inc" in result.message
        assert result.message.endswith("Note: Only showing the first 2 of 3 matching cases.")

    @pytest.mark.asyncio
    async def test_true_total_stated_past_default_limit(self, executor, seed_cases):
        seed_cases(*({"arbitrator_name": "Jane Doe", "disposition": "Awarded"} for _ in range(53)))
        result = await executor.execute(query(IntentKind.ARBITRATOR_CASE_LISTING, arbitrator_name="Jane Doe"))

        assert result.data["total_cases"] == 53
        assert len(result.data["cases"]) == 50
        assert result.message.count("Case ID:") == 50
        assert result.message.startswith("Cases handled by Jane Doe (showing first 50 of 53 total):")
        assert result.message.endswith("Note: Only showing the first 50 of 53 matching cases.")

    @pytest.mark.asyncio
    async def test_combined_listing_states_total(self, db, settings, clock, smiths):
        executor = make_executor(db, settings, clock, case_listing_limit=4)
        result = await executor.execute(query(IntentKind.ARBITRATOR_CASE_LISTING, arbitrator_name="John Smith"))

        assert "Combined cases (showing first 4 of 6 total):" in result.message
        assert result.message.count("Case ID:") == 4

    @pytest.mark.asyncio
    async def test_all_cases_shown(self, executor, seed_cases):
        seed_cases({"arbitrator_name": "Jane Doe"})
        result = await executor.execute(query(IntentKind.ARBITRATOR_CASE_LISTING, arbitrator_name="Jane Doe"))
        assert result.message.startswith("Cases handled by Jane Doe (showing all 1):")
        assert "Note:" not in result.message


class TestRespondentOutcomes:
    @pytest.mark.asyncio
    async def test_variants_with_initial(self, executor, seed_cases):
        seed_cases(
            {"respondent_name": "Wells Fargo Bank", "disposition": "Awarded"},
            {"respondent_name": "Wells Fargo Bank", "disposition": "Settled"},
            {"respondent_name": "WELLS FARGO BANK", "disposition": "Dismissed"},
            {"respondent_name": "Wells Financial", "disposition": "Awarded"},
        )
        result = await executor.execute(query(IntentKind.RESPONDENT_OUTCOME_ANALYSIS, respondent_name="Wells F Bank"))

        assert result.data["total_cases"] == 3
        assert result.data["matching_names"] == ["Wells Fargo Bank", "WELLS FARGO BANK"]
        assert result.message.startswith(
            'Found 2 respondents matching "Wells F Bank" with a total of 3 cases:\n'
            "- Wells Fargo Bank: 2 cases\n"
            "- WELLS FARGO BANK: 1 case\n"
        )
        assert "- Settled: 1 case (33.3%)" in result.message

    @pytest.mark.asyncio
    async def test_single_variant(self, executor, seed_cases):
        seed_cases({"respondent_name": "Acme Inc", "disposition": "Awarded"})
        result = await executor.execute(query(IntentKind.RESPONDENT_OUTCOME_ANALYSIS, respondent_name="Acme"))
        assert result.message == "Acme has been involved in 1 case. The outcomes are:\n- Awarded: 1 case (100.0%)"


class TestCombinedOutcomes:
    @pytest.mark.asyncio
    async def test_intersection(self, executor, seed_cases):
        seed_cases(
            {"arbitrator_name": "John A. Smith", "respondent_name": "Acme Inc", "disposition": "Awarded"},
            {"arbitrator_name": "John A. Smith", "respondent_name": "Acme Inc", "disposition": "Dismissed"},
            {"arbitrator_name": "Jane Doe", "respondent_name": "Acme Inc", "disposition": "Awarded"},
            {"arbitrator_name": "John A. Smith", "respondent_name": "Other Co", "disposition": "Awarded"},
        )
        result = await executor.execute(
            query(IntentKind.COMBINED_OUTCOME_ANALYSIS, arbitrator_name="Smith", respondent_name="Acme")
        )
        assert result.data["total_cases"] == 2
        assert result.message.startswith(
            "Found 2 cases where arbitrator Smith ruled on cases involving respondent Acme. The outcomes are:"
        )

    @pytest.mark.asyncio
    async def test_no_overlap(self, executor, seed_cases):
        seed_cases(
            {"arbitrator_name": "Jane Doe", "respondent_name": "Other Co"},
            {"arbitrator_name": "John Roe", "respondent_name": "Acme Inc"},
        )
        result = await executor.execute(
            query(IntentKind.COMBINED_OUTCOME_ANALYSIS, arbitrator_name="Jane Doe", respondent_name="Acme")
        )
        assert result.status == "no_match"
        assert result.message == (
            "No cases found where arbitrator Jane Doe ruled on cases involving respondent Acme."
        )


class TestRanking:
    @pytest.mark.asyncio
    async def test_orders_by_average_then_name(self, db, settings, clock, seed_cases):
        seed_cases(
            {"arbitrator_name": "Mary Poe", "disposition": "Awarded", "award_amount": "150"},
            {"arbitrator_name": "Mary Poe", "disposition": "Awarded", "award_amount": "250"},
            {"arbitrator_name": "Jane Doe", "disposition": "Awarded", "award_amount": "100"},
            {"arbitrator_name": "Jane Doe", "disposition": "Awarded", "award_amount": "300"},
            {"arbitrator_name": "Jane Doe", "disposition": "Dismissed"},
            {"arbitrator_name": "John Roe", "disposition": "Awarded", "award_amount": "5000"},
        )
        executor = make_executor(db, settings, clock, ranking_min_award_cases=2)
        result = await executor.execute(query(IntentKind.ARBITRATOR_RANKING))

        names = [row["arbitrator_name"] for row in result.data["ranking"]]
        assert names == ["Jane Doe", "Mary Poe"]
        assert "1. Jane Doe: $200.00 average award (2 awards out of 3 cases)" in result.message

    @pytest.mark.asyncio
    async def test_insufficient_data(self, executor, seed_cases):
        seed_cases({"arbitrator_name": "Jane Doe", "award_amount": "100"})
        result = await executor.execute(query(IntentKind.ARBITRATOR_RANKING))
        assert result.status == "no_match"


class TestTimeBased:
    @pytest.fixture
    def filings(self, seed_cases):
        return seed_cases(
            {"filing_date": datetime(2023, 3, 1), "disposition": "Awarded"},
            {"filing_date": datetime(2023, 7, 1), "disposition": "Awarded", "duplicate_of": "AAA-00001"},
            {"filing_date": datetime(2023, 8, 1), "disposition": "Dismissed"},
            {"filing_date": datetime(2022, 1, 1), "disposition": "Awarded"},
            {"filing_date": None, "disposition": "Awarded"},
        )

    @pytest.mark.asyncio
    async def test_last_year_uses_clock(self, executor, filings):
        result = await executor.execute(
            query(IntentKind.TIME_BASED_ANALYSIS, timeframe_label="last year", disposition="award")
        )
        assert result.message == "There was 1 awarded case in 2023 (last year)."
        assert result.data["year_start"] == 2023

    @pytest.mark.asyncio
    async def test_explicit_year_all_dispositions(self, executor, filings):
        result = await executor.execute(query(IntentKind.TIME_BASED_ANALYSIS, year=2023, timeframe_label="2023"))
        assert result.message == "There were 2 cases in 2023."
        assert result.data["disposition"] == "all"

    @pytest.mark.asyncio
    async def test_ambiguous_label(self, executor, filings):
        result = await executor.execute(query(IntentKind.TIME_BASED_ANALYSIS, timeframe_label="the nineties"))
        assert result.status == "ambiguous_timeframe"

    @pytest.mark.asyncio
    async def test_missing_timeframe(self, executor):
        result = await executor.execute(query(IntentKind.TIME_BASED_ANALYSIS))
        assert result.status == "extraction_failure"
        assert result.message.startswith("No timeframe specified")


class TestFailures:
    @pytest.mark.asyncio
    async def test_missing_arbitrator(self, executor):
        result = await executor.execute(query(IntentKind.ARBITRATOR_CASE_COUNT))
        assert result.status == "extraction_failure"
        assert result.message == "No arbitrator name specified in the query."

    @pytest.mark.asyncio
    async def test_missing_both_names(self, executor):
        result = await executor.execute(query(IntentKind.COMBINED_OUTCOME_ANALYSIS, arbitrator_name="Smith"))
        assert result.message == MISSING_BOTH_NAMES_MESSAGE

    @pytest.mark.asyncio
    async def test_store_failure(self, settings, clock):
        store = Mock()
        store.distinct_names.side_effect = StoreFailure(detail="connection refused")
        executor = QueryExecutor(store, settings=settings, clock=clock, logger=Mock())

        result = await executor.execute(query(IntentKind.ARBITRATOR_CASE_COUNT, arbitrator_name="Smith"))

        assert result.status == "store_failure"
        assert result.message == StoreFailure.default_message

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "intent, message",
        [(IntentKind.UNKNOWN, UNKNOWN_MESSAGE), (IntentKind.COMPLEX_ANALYSIS, ESCALATION_MESSAGE)],
    )
    async def test_escalation_intents(self, executor, intent, message):
        result = await executor.execute(query(intent))
        assert result.status == "escalate"
        assert result.message == message


def test_every_intent_has_a_handler():
    assert set(QueryExecutor.HANDLERS) == set(IntentKind)
    for method in QueryExecutor.HANDLERS.values():
        assert callable(getattr(QueryExecutor, method))
