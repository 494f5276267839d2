"""
Tests for QueryService: classification, execution and escalation routing
"""
from unittest.mock import AsyncMock, Mock

import pytest

from casequery.components.contracts import AnswerResponse, IntentKind, StructuredQuery
from casequery.core.config import get_settings
from casequery.core.logging_config import request_context
from casequery.services import query_service
from casequery.services.query_executor import UNKNOWN_MESSAGE
from casequery.services.query_service import EMPTY_QUERY_MESSAGE, ERROR_MESSAGE, QueryService


@pytest.fixture
def service(db, settings, clock):
    return QueryService(db, settings=settings, clock=clock, logger=Mock())


@pytest.fixture
def smiths(seed_cases):
    return seed_cases(
        {"arbitrator_name": "John A. Smith", "disposition": "Awarded"},
        {"arbitrator_name": "John A. Smith", "disposition": "Awarded"},
        {"arbitrator_name": "John A. Smith", "disposition": "Dismissed"},
        {"arbitrator_name": "John B. Smith", "disposition": "Awarded"},
        {"arbitrator_name": "John B. Smith", "disposition": "Awarded"},
        {"arbitrator_name": "John B. Smith", "disposition": "Dismissed"},
        {"arbitrator_name": "Jane Smith", "disposition": "Awarded"},
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   ", None])
async def test_empty_query(service, text):
    response = await service.answer(text)
    assert response.answer == EMPTY_QUERY_MESSAGE
    assert response.query_type == IntentKind.UNKNOWN.value


@pytest.mark.asyncio
async def test_outcome_question_end_to_end(service, smiths):
    response = await service.answer("What are the outcomes for cases handled by John Smith?")

    assert response.query_type == "arbitrator_outcome_analysis"
    assert response.data["total_cases"] == 6
    assert response.answer.endswith("- Awarded: 4 cases (66.7%)\n- Dismissed: 2 cases (33.3%)")


@pytest.mark.asyncio
async def test_number_of_cases_end_to_end(service, smiths):
    response = await service.answer("What number of cases has John Smith handled?")

    assert response.query_type == "arbitrator_case_count"
    assert response.data["count"] == 6
    assert response.answer.endswith("In total, they have handled 6 arbitration cases.")


@pytest.mark.asyncio
async def test_unknown_without_ai(service):
    assert service.ai_adapter is None
    response = await service.answer("Tell me a joke")
    assert response.answer == UNKNOWN_MESSAGE
    assert response.query_type == "unknown"


@pytest.mark.asyncio
async def test_unknown_is_escalated(db, settings, clock):
    adapter = Mock()
    adapter.escalate = AsyncMock(
        return_value=AnswerResponse(answer="Forty-two.", data={"rows": []}, query_type="ai_query")
    )
    service = QueryService(db, settings=settings, ai_adapter=adapter, clock=clock, logger=Mock())

    response = await service.answer("  Tell me a joke  ")

    assert response.answer == "Forty-two."
    assert response.query_type == "ai_query"
    adapter.escalate.assert_awaited_once_with("Tell me a joke", service.executor)


@pytest.mark.asyncio
async def test_confident_rules_skip_ai(db, settings, clock, smiths):
    adapter = Mock()
    adapter.escalate = AsyncMock()
    service = QueryService(db, settings=settings, ai_adapter=adapter, clock=clock, logger=Mock())

    response = await service.answer("How many cases has John A. Smith handled?")

    assert response.answer == "John A. Smith has handled 3 arbitration cases."
    adapter.escalate.assert_not_awaited()


@pytest.mark.asyncio
async def test_low_confidence_without_ai_still_executes(service):
    response = await service.answer("What are the results?")
    assert response.query_type == "arbitrator_outcome_analysis"
    assert response.answer == "No arbitrator name specified in the query."


@pytest.mark.asyncio
async def test_unexpected_error_is_reported(db, settings):
    classifier = Mock()
    classifier.classify.side_effect = RuntimeError("regex exploded")
    logger = Mock()
    service = QueryService(db, settings=settings, classifier=classifier, logger=logger)

    response = await service.answer("How many cases has Smith handled?")

    assert response.answer == ERROR_MESSAGE
    logger.error.assert_called_once()


@pytest.mark.asyncio
async def test_query_id_scoped_to_one_answer(db, settings):
    seen = {}

    def classify(text):
        seen.update(request_context.get())
        return StructuredQuery(raw_query=text, intent=IntentKind.UNKNOWN)

    classifier = Mock()
    classifier.classify.side_effect = classify
    service = QueryService(db, settings=settings, classifier=classifier, logger=Mock())

    await service.answer("Tell me a joke")

    assert "query_id" in seen
    assert "query_id" not in request_context.get()


def test_adapter_built_only_when_ai_configured(db, settings):
    configured = settings.model_copy(
        update={"enable_ai_escalation": True, "ollama_url": "http://ollama.test", "ollama_model": "test-model"}
    )
    assert QueryService(db, settings=configured).ai_adapter is not None
    assert QueryService(db, settings=settings).ai_adapter is None


@pytest.mark.asyncio
async def test_module_level_answer_uses_given_session(db, smiths):
    response = await query_service.answer("How many cases has John B. Smith handled?", db=db)
    assert response.answer == "John B. Smith has handled 3 arbitration cases."


@pytest.mark.real_llm
@pytest.mark.asyncio
async def test_escalation_against_real_model(db, seed_cases):
    """Requires a reachable Ollama server configured through OLLAMA_URL and OLLAMA_MODEL"""
    settings = get_settings()
    if not settings.ai_configured:
        pytest.skip("Ollama is not configured")
    seed_cases(
        {"respondent_name": "Acme Inc", "disposition": "Dismissed"},
        {"respondent_name": "Acme Inc", "disposition": "Dismissed"},
        {"respondent_name": "Globex LLC", "disposition": "Awarded"},
    )
    service = QueryService(db, settings=settings)

    response = await service.answer("Which respondent has the most dismissed cases?")

    assert response.answer
    assert response.query_type
