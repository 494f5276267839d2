"""
Logging configuration with structured JSON output and per-query context
"""
import json
import logging
import re
import sys
from contextvars import ContextVar
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from casequery.core.config import Settings, get_settings

# Context variables for the query being answered
request_context: ContextVar[Dict[str, Any]] = ContextVar('request_context', default={})

_RESERVED_RECORD_FIELDS = frozenset([
    'name', 'msg', 'args', 'created', 'filename', 'funcName', 'levelname',
    'levelno', 'lineno', 'module', 'msecs', 'message', 'pathname', 'process',
    'processName', 'relativeCreated', 'thread', 'threadName', 'exc_info',
    'exc_text', 'stack_info', 'taskName',
])


class SensitiveDataFilter(logging.Filter):
    """Filter to mask sensitive data in log messages"""

    SENSITIVE_PATTERNS = [
        (r'password["\']?\s*[:=]\s*["\']?([^"\'\s&]+)', r'password": "***"'),
        (r'token["\']?\s*[:=]\s*["\']?([^"\'\s&]+)', r'token": "***"'),
        (r'api[_-]?key["\']?\s*[:=]\s*["\']?([^"\'\s&]+)', r'api_key": "***"'),
        (r'secret["\']?\s*[:=]\s*["\']?([^"\'\s&]+)', r'secret": "***"'),
        (r'Bearer\s+([^\s"]+)', r'Bearer ***'),
        (r'(postgres(?:ql)?(?:\+\w+)?://[^:/\s]+:)([^@\s]+)@', r'\1***@'),
    ]

    def __init__(self, enabled: bool = True):
        super().__init__()
        self.enabled = enabled

    def mask(self, value: str) -> str:
        for pattern, replacement in self.SENSITIVE_PATTERNS:
            value = re.sub(pattern, replacement, value, flags=re.IGNORECASE)
        return value

    def filter(self, record: logging.LogRecord) -> bool:
        """Filter and mask sensitive data"""
        if not self.enabled:
            return True

        if isinstance(record.msg, str):
            record.msg = self.mask(record.msg)

        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                self.mask(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )

        return True


class ContextualFormatter(logging.Formatter):
    """JSON formatter that merges the current query context into every record"""

    def format(self, record: logging.LogRecord) -> str:
        log_dict = {
            'timestamp': self.formatTime(record, self.datefmt),
            'level': record.levelname,
            'logger': record.name,
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
            'message': record.getMessage(),
        }

        ctx = request_context.get({})
        if ctx:
            log_dict.update(ctx)

        if record.exc_info:
            log_dict['exception'] = self.formatException(record.exc_info)

        # Fields passed with extra=
        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_FIELDS or key in log_dict:
                continue
            try:
                json.dumps(value, default=str)
                log_dict[key] = value
            except (TypeError, ValueError):
                log_dict[key] = str(value)

        return json.dumps(log_dict, ensure_ascii=False, default=str)


class LoggingConfig:
    """Centralized logging configuration with structured logging support"""

    _configured = False
    _module_levels: Dict[str, str] = {}

    @classmethod
    def configure(
        cls,
        settings: Optional[Settings] = None,
        module_levels: Optional[Dict[str, str]] = None,
    ):
        """Install handlers for the hosting application.

        The engine never calls this itself; the process embedding it decides
        when (and whether) handlers are installed.
        """
        if cls._configured:
            return

        settings = settings or get_settings()

        default_levels = {
            "sqlalchemy.engine": "INFO" if settings.log_sqlalchemy else "WARNING",
            "sqlalchemy.pool": "WARNING",
            "httpx": "WARNING",
            "casequery": settings.log_level,
            "root": settings.log_level,
        }

        if settings.log_module_levels:
            try:
                default_levels.update(json.loads(settings.log_module_levels))
            except (json.JSONDecodeError, TypeError):
                pass

        if module_levels:
            default_levels.update(module_levels)

        cls._module_levels = default_levels

        if settings.log_format == "json":
            formatter = ContextualFormatter(datefmt='%Y-%m-%d %H:%M:%S')
        else:
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )

        sensitive_filter = SensitiveDataFilter(enabled=not settings.log_sensitive_data)
        handlers = []

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.addFilter(sensitive_filter)
        handlers.append(console_handler)

        if settings.log_file_enabled:
            log_path = Path(settings.log_file_path)
            if not log_path.is_absolute():
                log_path = Path(__file__).resolve().parents[3] / log_path
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = TimedRotatingFileHandler(
                filename=str(log_path),
                when='midnight',
                interval=1,
                backupCount=settings.log_file_retention,
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            file_handler.addFilter(sensitive_filter)
            handlers.append(file_handler)

        logging.basicConfig(
            level=getattr(logging, default_levels.get("root", "INFO").upper()),
            handlers=handlers,
            force=True
        )

        for module, level in default_levels.items():
            if module != "root":
                logging.getLogger(module).setLevel(getattr(logging, level.upper()))

        cls._configured = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get a logger for a module"""
        return logging.getLogger(name)

    @classmethod
    def set_context(cls, **kwargs):
        """Set context variables for logging"""
        ctx = request_context.get({}).copy()
        ctx.update(kwargs)
        return request_context.set(ctx)

    @classmethod
    def reset_context(cls, token):
        """Restore the context that was active before set_context()"""
        request_context.reset(token)
