"""
Query Service: answers one free-text question about arbitration cases
"""
import logging
import time
import uuid
from typing import Optional

from sqlalchemy.orm import Session

from casequery.components.contracts import AnswerResponse, IntentKind, StructuredQuery
from casequery.components.intent_classifier import IntentClassifier
from casequery.core.config import Settings, get_settings
from casequery.core.database import get_session_local
from casequery.core.logging_config import LoggingConfig
from casequery.core.metrics import escalations_total, queries_total
from casequery.services.ai_escalation import AIEscalationAdapter
from casequery.services.case_store import CaseStore
from casequery.services.query_executor import ESCALATION_MESSAGE, UNKNOWN_MESSAGE, QueryExecutor
from casequery.utils.datetime_utils import Clock

EMPTY_QUERY_MESSAGE = "Please enter a question about arbitration cases."
ERROR_MESSAGE = "An error occurred while processing your query. Please try again."


class QueryService:
    """
    Classifies a question, executes it, and escalates to the LLM when the
    rules are unsure

    No state survives between answer() calls; one service may serve
    concurrent questions as long as its session does.
    """

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        classifier: Optional[IntentClassifier] = None,
        executor: Optional[QueryExecutor] = None,
        ai_adapter: Optional[AIEscalationAdapter] = None,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.logger = logger or LoggingConfig.get_logger(__name__)
        self.classifier = classifier or IntentClassifier()
        self.executor = executor or QueryExecutor(
            CaseStore(db, settings=self.settings, logger=self.logger),
            settings=self.settings,
            clock=clock,
            logger=self.logger,
        )
        if ai_adapter is None and self.settings.ai_configured:
            ai_adapter = AIEscalationAdapter(settings=self.settings, logger=self.logger)
        self.ai_adapter = ai_adapter

    def should_escalate(self, structured: StructuredQuery) -> bool:
        return (
            structured.intent.needs_escalation
            or structured.confidence < self.settings.escalation_confidence_threshold
        )

    async def answer(self, query: str) -> AnswerResponse:
        """
        Answer a free-text question

        Returns:
            AnswerResponse with the rendered answer, supporting data and the
            resolved query type. Never raises for an unanswerable question.
        """
        token = LoggingConfig.set_context(query_id=str(uuid.uuid4()))
        started = time.monotonic()
        query_type = IntentKind.UNKNOWN.value
        outcome = "error"
        try:
            text = (query or "").strip()
            if not text:
                outcome = "empty"
                return AnswerResponse(answer=EMPTY_QUERY_MESSAGE, data=None, query_type=query_type)

            structured = self.classifier.classify(text)
            query_type = structured.intent.value
            self.logger.info(
                "Query classified",
                extra={
                    "intent": query_type,
                    "confidence": structured.confidence,
                    "arbitrator_name": structured.arbitrator_name,
                    "respondent_name": structured.respondent_name,
                },
            )

            if self.should_escalate(structured):
                if self.ai_adapter is not None:
                    response = await self.ai_adapter.escalate(text, self.executor)
                    query_type = response.query_type
                    outcome = "escalated"
                    return response
                if structured.intent.needs_escalation:
                    escalations_total.labels(path="disabled").inc()
                    outcome = "unanswered"
                    message = UNKNOWN_MESSAGE if structured.intent == IntentKind.UNKNOWN else ESCALATION_MESSAGE
                    return AnswerResponse(answer=message, data=None, query_type=query_type)

            result = await self.executor.execute(structured)
            outcome = result.status
            return AnswerResponse(answer=result.message, data=result.data, query_type=query_type)
        except Exception as e:
            self.logger.error(
                "Unhandled error while answering query",
                extra={"error": str(e), "error_type": type(e).__name__},
                exc_info=True,
            )
            return AnswerResponse(answer=ERROR_MESSAGE, data=None, query_type=query_type)
        finally:
            queries_total.labels(intent=query_type, outcome=outcome).inc()
            self.logger.debug(
                "Query answered",
                extra={"query_type": query_type, "outcome": outcome, "duration_ms": int((time.monotonic() - started) * 1000)},
            )
            LoggingConfig.reset_context(token)


async def answer(query: str, db: Optional[Session] = None) -> AnswerResponse:
    """Answer one question, opening a session when none is given"""
    if db is not None:
        return await QueryService(db).answer(query)

    session = get_session_local()()
    try:
        return await QueryService(session).answer(query)
    finally:
        session.close()
