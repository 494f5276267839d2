"""
SQLAlchemy models
"""
from casequery.core.database import Base
from casequery.models.arbitration_case import ArbitrationCase  # noqa: F401

__all__ = ["Base", "ArbitrationCase"]
