"""
Case Store: read-only access to arbitration case records

All filtering happens in SQL with bound parameters. Free-text amounts are
parsed in Python so the same rules apply on SQLite and PostgreSQL.
"""
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from casequery.core.config import Settings, get_settings
from casequery.core.exceptions import StoreFailure, UnsafeQueryError
from casequery.core.logging_config import LoggingConfig
from casequery.core.metrics import store_queries_total, store_query_duration_seconds
from casequery.models.arbitration_case import ArbitrationCase

T = TypeVar("T")

UNKNOWN_DISPOSITION = "Unknown"

NUMERIC_AMOUNT_RE = re.compile(r"^\$?\s*[0-9][0-9,]*(\.[0-9]+)?$")

_FIELDS = {
    "case_id": ArbitrationCase.case_id,
    "forum": ArbitrationCase.forum,
    "arbitrator_name": ArbitrationCase.arbitrator_name,
    "respondent_name": ArbitrationCase.respondent_name,
    "consumer_attorney": ArbitrationCase.consumer_attorney,
    "disposition": ArbitrationCase.disposition,
    "claim_amount": ArbitrationCase.claim_amount,
    "award_amount": ArbitrationCase.award_amount,
    "case_type": ArbitrationCase.case_type,
    "filing_date": ArbitrationCase.filing_date,
}

_SQL_STRING_LITERAL_RE = re.compile(r"'(?:[^']|'')*'")
_SQL_STATEMENT_START_RE = re.compile(r"^\s*(?:select|with)\b", re.IGNORECASE)
_SQL_WRITE_RE = re.compile(
    r"\b(?:insert|update|delete|merge|upsert|create|drop|alter|truncate|rename|grant|revoke|"
    r"attach|detach|pragma|vacuum|reindex|copy|call|exec|execute|lock|set|reset|begin|commit|"
    r"rollback|savepoint|into|returning)\b",
    re.IGNORECASE,
)


def parse_amount(value: Any) -> Optional[Decimal]:
    """
    Decimal value of a stored amount, or None when it is not numeric.

    "$1,250.00" and "1250" are numeric; "n/a", "" and "1,250 USD" are not,
    and are excluded from aggregates rather than counted as zero.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not NUMERIC_AMOUNT_RE.match(text):
        return None
    try:
        return Decimal(text.replace("$", "").replace(",", "").strip())
    except InvalidOperation:
        return None


def contains_pattern(value: str) -> str:
    """
    Case-insensitive LIKE pattern for a substring match.

    LIKE wildcards in the value are escaped. An interior single-letter token is
    treated as an initial, so "Wells F Bank" also matches "Wells Fargo Bank".
    """
    tokens = value.lower().split()
    escaped = []
    for index, token in enumerate(tokens):
        piece = token.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        if 0 < index < len(tokens) - 1 and len(token) == 1 and token.isalpha():
            piece += "%"
        escaped.append(piece)
    return "%" + " ".join(escaped) + "%"


def validate_read_only(sql: str) -> str:
    """
    Return the statement if it is a single read-only query.

    Raises:
        UnsafeQueryError: comments, several statements, or any write keyword
    """
    statement = (sql or "").strip()
    if statement.endswith(";"):
        statement = statement[:-1].rstrip()

    scrubbed = _SQL_STRING_LITERAL_RE.sub("''", statement)
    if not statement:
        raise UnsafeQueryError(detail="Empty generated query")
    if "--" in scrubbed or "/*" in scrubbed:
        raise UnsafeQueryError(detail="Generated query contains SQL comments")
    if ";" in scrubbed:
        raise UnsafeQueryError(detail="Generated query contains more than one statement")
    if not _SQL_STATEMENT_START_RE.match(scrubbed):
        raise UnsafeQueryError(detail="Generated query is not a SELECT")
    keyword = _SQL_WRITE_RE.search(scrubbed)
    if keyword:
        raise UnsafeQueryError(detail=f"Generated query uses forbidden keyword {keyword.group(0).upper()}")
    return statement


@dataclass(frozen=True)
class NumericStats:
    """Aggregate over the numeric values of one amount field"""
    count: int = 0
    total: Decimal = Decimal("0")

    @property
    def average(self) -> Optional[Decimal]:
        return self.total / self.count if self.count else None

    def add(self, amount: Decimal) -> "NumericStats":
        return NumericStats(count=self.count + 1, total=self.total + amount)


@dataclass(frozen=True)
class CasePredicate:
    """
    Composable row filter; every populated field narrows the selection.

    `*_in` fields match exact stored names (an empty tuple matches nothing),
    `*_contains` fields match case-insensitive substrings. Year bounds are
    inclusive. `exclude_duplicates=None` defers to the store's setting.
    """
    arbitrator_names_in: Optional[Tuple[str, ...]] = None
    respondent_names_in: Optional[Tuple[str, ...]] = None
    arbitrator_contains: Optional[str] = None
    respondent_contains: Optional[str] = None
    disposition_contains: Tuple[str, ...] = ()
    case_type_contains: Optional[str] = None
    filing_year_between: Optional[Tuple[int, int]] = None
    require_filing_date: bool = False
    arbitrator_not_null: bool = False
    respondent_not_null: bool = False
    exclude_duplicates: Optional[bool] = None


class CaseStore:
    """
    Service for reading arbitration cases

    Every method is a single round trip. SQLAlchemy errors are logged and
    re-raised as StoreFailure.
    """

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.logger = logger or LoggingConfig.get_logger(__name__)

    # Filters

    def _clauses(self, predicate: CasePredicate) -> List[Any]:
        clauses = []
        if predicate.arbitrator_names_in is not None:
            clauses.append(ArbitrationCase.arbitrator_name.in_(predicate.arbitrator_names_in))
        if predicate.respondent_names_in is not None:
            clauses.append(ArbitrationCase.respondent_name.in_(predicate.respondent_names_in))
        if predicate.arbitrator_contains:
            clauses.append(self._contains(ArbitrationCase.arbitrator_name, predicate.arbitrator_contains))
        if predicate.respondent_contains:
            clauses.append(self._contains(ArbitrationCase.respondent_name, predicate.respondent_contains))
        for disposition in predicate.disposition_contains:
            clauses.append(self._contains(ArbitrationCase.disposition, disposition))
        if predicate.case_type_contains:
            clauses.append(self._contains(ArbitrationCase.case_type, predicate.case_type_contains))
        if predicate.require_filing_date or predicate.filing_year_between:
            clauses.append(ArbitrationCase.filing_date.isnot(None))
        if predicate.filing_year_between:
            start, end = predicate.filing_year_between
            clauses.append(ArbitrationCase.filing_date >= datetime(start, 1, 1))
            clauses.append(ArbitrationCase.filing_date < datetime(end + 1, 1, 1))
        if predicate.arbitrator_not_null:
            clauses.append(ArbitrationCase.arbitrator_name.isnot(None))
            clauses.append(func.trim(ArbitrationCase.arbitrator_name) != "")
        if predicate.respondent_not_null:
            clauses.append(ArbitrationCase.respondent_name.isnot(None))

        exclude = predicate.exclude_duplicates
        if exclude is None:
            exclude = self.settings.exclude_duplicate_cases
        if exclude:
            clauses.append(or_(ArbitrationCase.duplicate_of.is_(None), ArbitrationCase.duplicate_of == ""))
        return clauses

    @staticmethod
    def _contains(column, value: str):
        return func.lower(column).like(contains_pattern(value), escape="\\")

    @staticmethod
    def _field(name: str):
        try:
            return _FIELDS[name]
        except KeyError:
            raise ValueError(f"Unknown case field: {name}")

    def _run(self, operation: str, read: Callable[[], T]) -> T:
        started = time.monotonic()
        try:
            return read()
        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger.error(
                "Case store read failed",
                extra={"operation": operation, "error": str(e)},
                exc_info=True,
            )
            raise StoreFailure(detail=f"{operation} failed: {e}") from e
        finally:
            store_queries_total.labels(operation=operation).inc()
            store_query_duration_seconds.labels(operation=operation).observe(time.monotonic() - started)

    # Reads

    def count_where(self, predicate: CasePredicate) -> int:
        """Number of cases matching the predicate"""
        def read():
            return self.db.query(func.count(ArbitrationCase.id)).filter(*self._clauses(predicate)).scalar()

        return int(self._run("count_where", read) or 0)

    def group_count_by_disposition(self, predicate: CasePredicate) -> Dict[str, int]:
        """Case counts per disposition; NULL or blank dispositions are reported as "Unknown\""""
        def read():
            return (
                self.db.query(ArbitrationCase.disposition, func.count(ArbitrationCase.id))
                .filter(*self._clauses(predicate))
                .group_by(ArbitrationCase.disposition)
                .all()
            )

        counts: Dict[str, int] = {}
        for disposition, count in self._run("group_count_by_disposition", read):
            label = (disposition or "").strip() or UNKNOWN_DISPOSITION
            counts[label] = counts.get(label, 0) + int(count)
        return counts

    def group_count_by(self, field: str, predicate: CasePredicate) -> Dict[str, int]:
        """Case counts per distinct non-null value of field"""
        column = self._field(field)

        def read():
            return (
                self.db.query(column, func.count(ArbitrationCase.id))
                .filter(column.isnot(None), *self._clauses(predicate))
                .group_by(column)
                .all()
            )

        return {value: int(count) for value, count in self._run("group_count_by", read)}

    def distinct_names(self, field: str, predicate: CasePredicate) -> List[str]:
        """Distinct non-null values of a name field, sorted"""
        column = self._field(field)

        def read():
            return (
                self.db.query(column)
                .filter(column.isnot(None), *self._clauses(predicate))
                .distinct()
                .order_by(column)
                .all()
            )

        return [row[0] for row in self._run("distinct_names", read)]

    def list_where(
        self,
        predicate: CasePredicate,
        limit: Optional[int] = None,
        order_by: str = "case_id",
        descending: bool = True,
    ) -> List[Dict[str, Any]]:
        """Matching cases as plain dicts, ordered and optionally limited"""
        column = self._field(order_by)

        def read():
            query = (
                self.db.query(ArbitrationCase)
                .filter(*self._clauses(predicate))
                .order_by(column.desc() if descending else column.asc())
            )
            if limit is not None:
                query = query.limit(limit)
            return query.all()

        return [case_to_dict(case) for case in self._run("list_where", read)]

    def average_numeric_field(self, field: str, predicate: CasePredicate) -> NumericStats:
        """Count, total and average over the numeric values of an amount field"""
        column = self._field(field)

        def read():
            return (
                self.db.query(column)
                .filter(column.isnot(None), column != "", *self._clauses(predicate))
                .all()
            )

        stats = NumericStats()
        for (raw,) in self._run("average_numeric_field", read):
            amount = parse_amount(raw)
            if amount is not None:
                stats = stats.add(amount)
        return stats

    def numeric_stats_by(self, field: str, group_field: str, predicate: CasePredicate) -> Dict[str, NumericStats]:
        """NumericStats of an amount field per distinct value of group_field"""
        column = self._field(field)
        group_column = self._field(group_field)

        def read():
            return (
                self.db.query(group_column, column)
                .filter(group_column.isnot(None), column.isnot(None), column != "", *self._clauses(predicate))
                .all()
            )

        stats: Dict[str, NumericStats] = {}
        for group, raw in self._run("numeric_stats_by", read):
            amount = parse_amount(raw)
            if amount is not None:
                stats[group] = stats.get(group, NumericStats()).add(amount)
        return stats

    def execute_read_only(self, sql: str, row_limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Run a generated query inside a transaction that is always rolled back.

        Raises:
            UnsafeQueryError: the statement failed validate_read_only()
            StoreFailure: the database rejected the statement
        """
        statement = validate_read_only(sql)
        limit = row_limit or self.settings.ai_query_row_limit

        def read():
            with self.db.get_bind().connect() as connection:
                transaction = connection.begin()
                try:
                    if connection.dialect.name == "postgresql":
                        connection.exec_driver_sql("SET TRANSACTION READ ONLY")
                    result = connection.execution_options(no_parameters=True).exec_driver_sql(statement)
                    return [dict(row) for row in result.mappings().fetchmany(limit)]
                finally:
                    transaction.rollback()

        self.logger.info("Executing generated query", extra={"sql": statement, "row_limit": limit})
        return self._run("execute_read_only", read)


def case_to_dict(case: ArbitrationCase) -> Dict[str, Any]:
    return {
        "case_id": case.case_id,
        "forum": case.forum,
        "arbitrator_name": case.arbitrator_name,
        "respondent_name": case.respondent_name,
        "consumer_attorney": case.consumer_attorney,
        "filing_date": case.filing_date.isoformat() if case.filing_date else None,
        "disposition": case.disposition,
        "claim_amount": case.claim_amount,
        "award_amount": case.award_amount,
        "case_type": case.case_type,
    }
