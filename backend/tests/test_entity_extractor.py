"""
Tests for arbitrator and respondent extraction
"""
import pytest

from casequery.components.entity_extractor import (
    CombinedQueryDetector,
    EntityExtractor,
    extract_arbitrator_name,
    extract_respondent_name,
    is_plausible_name,
    mentions_ruling,
    name_after_anchor,
)


class TestArbitratorCascade:
    @pytest.mark.parametrize(
        "query, expected",
        [
            ("How many cases has Smith handled?", "Smith"),
            ("What are the outcomes for cases handled by John Smith?", "John Smith"),
            ("List cases handled by Hon. John E. Smith.", "Hon. John E. Smith"),
            ("How did Smith rule against Wells Fargo?", "Smith"),
            ("What is the average award given by Jane Doe in 2020?", "Jane Doe"),
            ("How many cases for arbitrator Smith?", "Smith"),
        ],
    )
    def test_extracts(self, query, expected):
        assert extract_arbitrator_name(query) == expected

    def test_filler_capture_is_skipped(self):
        # "for cases" is rejected, the later "by John Smith" wins
        assert extract_arbitrator_name("outcomes for cases then by John Smith") == "John Smith"

    def test_nothing_to_extract(self):
        assert extract_arbitrator_name("Tell me a joke") is None

    @pytest.mark.parametrize(
        "query",
        [
            "Which arbitrator has the highest average award?",
            "Which arbitrator was assigned the most cases?",
            "Show the arbitrator with the largest awards",
        ],
    )
    def test_clause_after_arbitrator_is_rejected(self, query):
        assert extract_arbitrator_name(query) is None


class TestRespondentCascade:
    @pytest.mark.parametrize(
        "query, expected",
        [
            ("What are the outcomes for Bank of America as respondent?", "Bank of America"),
            ("Show cases for Acme Corp.", "Acme Corp"),
            ("What happened with respondent Acme Inc?", "Acme Inc"),
            ("The respondent is Wells Fargo", "Wells Fargo"),
            ("How did Smith rule against Wells Fargo?", "Wells Fargo"),
        ],
    )
    def test_extracts(self, query, expected):
        assert extract_respondent_name(query) == expected

    def test_too_short_is_rejected(self):
        assert extract_respondent_name("cases against X") is None


class TestAnchorFallback:
    def test_capitalized_run_after_anchor(self):
        assert name_after_anchor("Show me everything by Jane Q. Public, please") == "Jane Q. Public"

    def test_lowercase_after_anchor(self):
        assert name_after_anchor("cases by the arbitrator") is None

    def test_custom_anchors(self):
        assert name_after_anchor("cases where Mary Major sat", anchors=("where",)) == "Mary Major"


@pytest.mark.parametrize(
    "value, plausible",
    [("John Smith", True), ("A", False), ("x" * 40, False), ("x" * 39, True), ("cases", False), (None, False)],
)
def test_is_plausible_name(value, plausible):
    assert is_plausible_name(value) is plausible


def test_mentions_ruling_needs_relation():
    assert mentions_ruling("How did Smith rule against Acme?")
    assert not mentions_ruling("How did Smith rule?")
    assert not mentions_ruling("Cases against Acme")


class TestEntityExtractor:
    def test_standardizes_captures(self):
        extractor = EntityExtractor()
        assert extractor.arbitrator_name("How many cases has Hon. Judge John Edward Smith handled?") == "John E Smith"

    def test_injected_standardizer(self):
        extractor = EntityExtractor(standardizer=lambda name: name.upper() if name else name)
        assert extractor.arbitrator_name("cases handled by John Smith") == "JOHN SMITH"
        assert extractor.respondent_name("Tell me a joke") is None


class TestCombinedQueryDetector:
    def test_detects_both_names(self):
        detector = CombinedQueryDetector()
        assert detector.detect("How did Smith rule against Wells Fargo?") == ("Smith", "Wells Fargo")

    def test_requires_ruling_keyword(self):
        assert CombinedQueryDetector().detect("How many cases has Smith handled?") is None

    def test_requires_both_names(self):
        assert CombinedQueryDetector().detect("What decisions were made?") is None
