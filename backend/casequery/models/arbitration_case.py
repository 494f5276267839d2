"""
SQLAlchemy model for arbitration case records
"""
from casequery.core.database import Base
from casequery.utils.datetime_utils import utc_now
from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text


class ArbitrationCase(Base):
    """
    One arbitration case as ingested from a forum spreadsheet.

    The query engine only reads this table. Claim and award amounts are free
    text as published by the forum ("$1,250.00", "n/a", ...).
    """
    __tablename__ = "arbitration_cases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    case_id = Column(String(255), nullable=False, unique=True)
    forum = Column(String(50), nullable=False)  # AAA, JAMS, OTHER
    arbitrator_name = Column(String(255), nullable=True)
    respondent_name = Column(String(500), nullable=True)
    consumer_attorney = Column(String(255), nullable=True)
    filing_date = Column(DateTime, nullable=True)
    disposition = Column(String(255), nullable=True)
    claim_amount = Column(String(100), nullable=True)
    award_amount = Column(String(100), nullable=True)
    case_type = Column(String(255), nullable=True)

    source_file = Column(String(500), nullable=False, default="")
    processing_date = Column(DateTime, default=utc_now, nullable=False)
    has_discrepancies = Column(Boolean, default=False)
    duplicate_of = Column(String(255), nullable=True)
    raw_data = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_arbitration_cases_arbitrator", "arbitrator_name"),
        Index("idx_arbitration_cases_respondent", "respondent_name"),
        Index("idx_arbitration_cases_filing_date", "filing_date"),
    )

    def __repr__(self):
        return f"<ArbitrationCase(case_id={self.case_id}, arbitrator={self.arbitrator_name}, disposition={self.disposition})>"
