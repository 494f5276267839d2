"""
Database configuration and session management
"""
import logging
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from casequery.core.config import get_settings

# Lazy initialization - don't create engine at module level
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None

Base = declarative_base()


def _connect_args(database_url: str, statement_timeout_ms: int) -> dict:
    if database_url.startswith("postgresql"):
        return {
            "connect_timeout": 5,
            "options": f"-c statement_timeout={statement_timeout_ms}",
        }
    if database_url.startswith("sqlite"):
        return {"timeout": 5, "check_same_thread": False}
    return {}


def get_engine() -> Engine:
    """Get or create database engine (lazy initialization)"""
    global _engine
    if _engine is None:
        settings = get_settings()
        kwargs = {
            "pool_pre_ping": True,
            "echo": settings.log_sqlalchemy,
            "connect_args": _connect_args(
                settings.database_url, settings.database_statement_timeout_ms
            ),
        }
        if not settings.database_url.startswith("sqlite"):
            kwargs["pool_size"] = settings.database_pool_size
            kwargs["max_overflow"] = settings.database_max_overflow

        _engine = create_engine(settings.database_url, **kwargs)

        if not settings.log_sqlalchemy:
            logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return _engine


def get_session_local() -> sessionmaker:
    """Get or create session factory (lazy initialization)"""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal

