from pathlib import Path

import pytest

from casequery.components.contracts import (
    AIClassification,
    GeneratedQuery,
    IntentKind,
    QueryResult,
    StructuredQuery,
)
from casequery.components.prompt_repository import (
    CLASSIFICATION,
    QUERY_GENERATION,
    SUMMARIZATION,
    ComponentPromptRepository,
)


def _prompts_root() -> Path:
    # backend/tests/components -> backend/casequery/components/prompts
    return Path(__file__).resolve().parents[2] / "casequery" / "components" / "prompts"


@pytest.mark.parametrize("prompt_name", [CLASSIFICATION, QUERY_GENERATION, SUMMARIZATION])
def test_component_prompts_exist(prompt_name: str):
    p = _prompts_root() / f"{prompt_name}.system"
    assert p.exists(), f"Missing prompt file: {p}"
    assert ComponentPromptRepository().get_system_prompt(prompt_name).strip(), f"Empty prompt file: {p}"


def test_classification_prompt_lists_every_intent():
    prompt = ComponentPromptRepository().get_system_prompt(CLASSIFICATION)
    for kind in IntentKind:
        assert kind.name in prompt


@pytest.mark.parametrize(
    "label, expected",
    [
        ("ARBITRATOR_CASE_COUNT", IntentKind.ARBITRATOR_CASE_COUNT),
        ("arbitrator-case-listing", IntentKind.ARBITRATOR_CASE_LISTING),
        ("RESPONDENT_CASE_COUNT", IntentKind.RESPONDENT_OUTCOME_ANALYSIS),
        ("respondent case count", IntentKind.RESPONDENT_OUTCOME_ANALYSIS),
        ("NOT_AN_INTENT", None),
        (None, None),
    ],
)
def test_intent_from_label(label, expected):
    assert IntentKind.from_label(label) == expected


def test_missing_fields():
    assert StructuredQuery(intent=IntentKind.ARBITRATOR_RANKING).missing_fields() == []
    assert StructuredQuery(intent=IntentKind.COMBINED_OUTCOME_ANALYSIS, arbitrator_name="Smith").missing_fields() == [
        "respondent_name"
    ]
    assert StructuredQuery(intent=IntentKind.TIME_BASED_ANALYSIS).missing_fields() == ["timeframe"]
    assert StructuredQuery(intent=IntentKind.TIME_BASED_ANALYSIS, timeframe_label="last year").missing_fields() == []


def test_contract_models_defaults():
    assert QueryResult(message="ok").status == "ok"
    assert AIClassification.model_validate({}).intent == "UNKNOWN"
    generated = GeneratedQuery.model_validate({"sql": "SELECT 1"})
    assert generated.query_text == "SELECT 1"
    assert generated.explanation == "No explanation provided"
    classification = AIClassification.model_validate({"arbitratorName": "Jane Doe", "caseType": "consumer"})
    assert classification.arbitrator_name == "Jane Doe"
    assert classification.case_type == "consumer"
