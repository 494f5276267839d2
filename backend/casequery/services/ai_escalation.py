"""
AI Escalation: hands questions the rules could not answer to the LLM

The model either classifies the question well enough to re-enter
deterministic execution, or writes a read-only query whose rows it then
summarizes. Any failure of the model is reported as AIUnavailable, which the
caller renders as an apology rather than as an empty result.
"""
import asyncio
import functools
import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from casequery.components.contracts import (
    AIClassification,
    AnswerResponse,
    GeneratedQuery,
    IntentKind,
    StructuredQuery,
    Timeframe,
)
from casequery.components.entity_extractor import is_plausible_name
from casequery.components.intent_classifier import infer_disposition
from casequery.components.name_standardizer import standardize_name
from casequery.components.prompt_repository import (
    CLASSIFICATION,
    QUERY_GENERATION,
    SUMMARIZATION,
    ComponentPromptRepository,
)
from casequery.components.timeframe import extract_timeframe
from casequery.core.config import Settings, get_settings
from casequery.core.exceptions import AIUnavailable, StoreFailure
from casequery.core.logging_config import LoggingConfig
from casequery.core.metrics import escalations_total
from casequery.core.ollama_client import OllamaClient, OllamaError, OllamaResponse
from casequery.services.case_store import CaseStore
from casequery.services.query_executor import QueryExecutor

AI_QUERY = "ai_query"
AI_QUERY_FAILED = "ai_query_failed"
AI_NO_QUERY = "ai_no_query"
AI_UNAVAILABLE = "ai_unavailable"

NO_QUERY_MESSAGE = (
    "I'm not sure how to find that information in the case records. Could you rephrase "
    "your question to be more specific about the arbitration cases you're interested in?"
)
QUERY_FAILED_MESSAGE = (
    "I couldn't find the information you're looking for. There might be an issue with how "
    "I'm searching the case records. Could you try asking your question differently?"
)
EMPTY_SUMMARY_MESSAGE = "I'm unable to analyze this query at the moment."

_FREE_TEXT_LIMIT = 40


class AIEscalationAdapter:
    """Routes a free-text question through the LLM collaborator"""

    def __init__(
        self,
        client: Optional[OllamaClient] = None,
        prompt_repo: Optional[ComponentPromptRepository] = None,
        settings: Optional[Settings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.settings = settings or get_settings()
        self.client = client or OllamaClient(settings=self.settings)
        self.prompt_repo = prompt_repo or ComponentPromptRepository()
        self.logger = logger or LoggingConfig.get_logger(__name__)

    async def _complete(self, component: str, prompt: str, json_mode: bool) -> OllamaResponse:
        system_prompt = self.prompt_repo.get_system_prompt(component)
        try:
            return await asyncio.wait_for(
                self.client.generate(
                    prompt=prompt,
                    system_prompt=system_prompt,
                    json_mode=json_mode,
                    operation=component,
                ),
                timeout=self.settings.llm_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            self.logger.warning("LLM request timed out", extra={"operation": component})
            raise AIUnavailable(detail=f"{component} timed out") from e
        except OllamaError as e:
            self.logger.warning(
                "LLM request failed",
                extra={"operation": component, "kind": e.kind, "status_code": e.status_code},
            )
            raise AIUnavailable(detail=str(e), metadata={"kind": e.kind}) from e

    async def _complete_json(self, component: str, prompt: str) -> Dict[str, Any]:
        response = await self._complete(component, prompt, json_mode=True)
        try:
            payload = response.json_payload()
        except OllamaError as e:
            self.logger.warning("LLM returned unusable JSON", extra={"operation": component, "error": str(e)})
            raise AIUnavailable(detail=str(e), metadata={"kind": e.kind}) from e
        return {key: value for key, value in payload.items() if value is not None}

    async def classify(self, query: str) -> AIClassification:
        """Ask the model for an intent and entities"""
        payload = await self._complete_json(CLASSIFICATION, query)
        try:
            return AIClassification.model_validate(payload)
        except ValidationError as e:
            raise AIUnavailable(detail=f"Invalid classification: {e}", metadata={"kind": "invalid_response"}) from e

    async def generate_query(self, query: str) -> GeneratedQuery:
        """Ask the model for one read-only SQL statement"""
        payload = await self._complete_json(QUERY_GENERATION, query)
        try:
            return GeneratedQuery.model_validate(payload)
        except ValidationError as e:
            raise AIUnavailable(detail=f"Invalid generated query: {e}", metadata={"kind": "invalid_response"}) from e

    async def summarize(self, query: str, rows: List[Dict[str, Any]]) -> str:
        """Natural-language answer to query from the returned rows"""
        prompt = f"Query: {query}\n\nAvailable data: {json.dumps(rows, indent=2, default=str)}"
        response = await self._complete(SUMMARIZATION, prompt, json_mode=False)
        return (response.response or "").strip() or EMPTY_SUMMARY_MESSAGE

    def to_structured(self, classification: AIClassification, raw_query: str) -> Optional[StructuredQuery]:
        """
        Validate a model classification as a StructuredQuery.

        Names go through the same standardization and plausibility checks as
        rule-based captures; the timeframe goes through the same extractor.
        Returns None when the intent label is not one the engine knows.
        """
        intent = IntentKind.from_label(classification.intent)
        if intent is None:
            return None

        timeframe = extract_timeframe(classification.timeframe) if classification.timeframe else Timeframe()
        label = timeframe.label
        if not timeframe.present and classification.timeframe and classification.timeframe.strip():
            # Kept so execution can ask for a clearer period
            label = classification.timeframe.strip()

        disposition = _free_text(classification.disposition)
        if intent == IntentKind.TIME_BASED_ANALYSIS:
            disposition = infer_disposition(disposition or raw_query)

        return StructuredQuery(
            raw_query=raw_query,
            intent=intent,
            arbitrator_name=_person_name(classification.arbitrator_name),
            respondent_name=_person_name(classification.respondent_name),
            disposition=disposition,
            case_type=_free_text(classification.case_type),
            year=timeframe.year,
            timeframe_label=label,
            confidence=classification.confidence,
            source="ai",
        )

    def is_trusted(self, structured: Optional[StructuredQuery]) -> bool:
        return bool(
            structured
            and not structured.intent.needs_escalation
            and structured.confidence >= self.settings.ai_trust_confidence
            and not structured.missing_fields()
        )

    async def escalate(self, query: str, executor: QueryExecutor) -> AnswerResponse:
        """
        Answer query with the model's help

        A trusted classification re-enters executor; anything else goes
        through a generated query against executor.store.
        """
        try:
            classification = await self.classify(query)
            structured = self.to_structured(classification, query)
            self.logger.info(
                "LLM classification received",
                extra={
                    "ai_intent": classification.intent,
                    "ai_confidence": classification.confidence,
                    "trusted": self.is_trusted(structured),
                },
            )
            if self.is_trusted(structured):
                escalations_total.labels(path="reentry").inc()
                result = await executor.execute(structured)
                return AnswerResponse(answer=result.message, data=result.data, query_type=structured.intent.value)

            escalations_total.labels(path="generated_query").inc()
            return await self._answer_with_generated_query(query, executor.store)
        except AIUnavailable as e:
            escalations_total.labels(path="unavailable").inc()
            return AnswerResponse(answer=e.user_message, data=None, query_type=AI_UNAVAILABLE)

    async def _answer_with_generated_query(self, query: str, store: CaseStore) -> AnswerResponse:
        generated = await self.generate_query(query)
        statement = generated.query_text.strip()
        if not statement:
            return AnswerResponse(answer=NO_QUERY_MESSAGE, data=None, query_type=AI_NO_QUERY)

        loop = asyncio.get_running_loop()
        try:
            rows = await loop.run_in_executor(None, functools.partial(store.execute_read_only, statement))
        except StoreFailure as e:
            self.logger.warning(
                "Generated query rejected or failed",
                extra={"sql": statement, "detail": e.detail, "error_type": type(e).__name__},
            )
            return AnswerResponse(answer=QUERY_FAILED_MESSAGE, data={"sql": statement}, query_type=AI_QUERY_FAILED)

        summary = await self.summarize(query, rows)
        return AnswerResponse(
            answer=summary,
            data={"rows": rows, "sql": statement, "explanation": generated.explanation},
            query_type=AI_QUERY,
        )


def _person_name(value: Optional[str]) -> Optional[str]:
    name = standardize_name(value.strip()) if value else None
    return name if is_plausible_name(name) else None


def _free_text(value: Optional[str]) -> Optional[str]:
    if not value or not value.strip():
        return None
    return value.strip()[:_FREE_TEXT_LIMIT]
