"""
Structured logging for the kiosk service: JSON or text output, request context, subject data masking
"""
import json
import logging
import re
import sys
from contextvars import ContextVar
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List

from medkiosk.core.config import get_settings

# Filled by LoggingContextMiddleware for the duration of a request
request_context: ContextVar[Dict[str, Any]] = ContextVar('request_context', default={})

_RESERVED_RECORD_KEYS = frozenset(vars(logging.LogRecord('', 0, '', 0, '', None, None))) | {'message'}

_ROTATION_WHEN = ('midnight', 'W0', 'W1', 'W2', 'W3', 'W4', 'W5', 'W6')


class SensitiveDataFilter(logging.Filter):
    """Mask subject phone numbers and database passwords before a record is emitted"""

    SENSITIVE_PATTERNS = [
        (re.compile(r'phone_number["\']?\s*[:=]\s*["\']?([^"\'\s&,}]+)', re.IGNORECASE), 'phone_number": "***"'),
        (re.compile(r'(://[^:/\s]+):([^@\s]+)@'), r'\1:***@'),
    ]

    def __init__(self, enabled: bool = True):
        super().__init__()
        self.enabled = enabled

    def _mask(self, value: str) -> str:
        for pattern, replacement in self.SENSITIVE_PATTERNS:
            value = pattern.sub(replacement, value)
        return value

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.enabled:
            return True

        if isinstance(record.msg, str):
            record.msg = self._mask(record.msg)
        if record.args and isinstance(record.args, tuple):
            record.args = tuple(self._mask(arg) if isinstance(arg, str) else arg for arg in record.args)

        # extra={"phone_number": ...} lands on the record itself
        if getattr(record, 'phone_number', None):
            record.phone_number = '***'

        return True


class ContextualFormatter(logging.Formatter):
    """One JSON object per record: base fields, request context, then `extra=` fields"""

    def format(self, record: logging.LogRecord) -> str:
        log_dict = {
            'timestamp': self.formatTime(record, self.datefmt),
            'level': record.levelname,
            'logger': record.name,
            'line': record.lineno,
            'message': record.getMessage(),
        }
        log_dict.update(request_context.get({}))

        if record.exc_info:
            log_dict['exception'] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_dict[key] = value

        return json.dumps(log_dict, ensure_ascii=False, default=str)


class LoggingConfig:
    """Process-wide logging setup, applied once"""

    _configured = False

    @classmethod
    def _levels(cls, settings) -> Dict[str, str]:
        levels = {
            "sqlalchemy.engine": "INFO" if settings.log_sqlalchemy else "WARNING",
            "sqlalchemy.pool": "WARNING",
            "uvicorn.access": "INFO" if settings.log_uvicorn_access else "WARNING",
            "uvicorn.error": "INFO",
            "medkiosk": settings.log_level,
        }
        if settings.log_module_levels:
            try:
                levels.update(json.loads(settings.log_module_levels))
            except (json.JSONDecodeError, TypeError):
                pass
        return levels

    @classmethod
    def _handlers(cls, settings) -> List[logging.Handler]:
        if settings.log_format.lower() == "json":
            formatter = ContextualFormatter(datefmt='%Y-%m-%d %H:%M:%S')
        else:
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )

        handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

        if settings.log_file_enabled:
            log_path = Path(settings.log_file_path)
            if not log_path.is_absolute():
                # Relative paths resolve against the project root, next to backend/
                log_path = Path(__file__).resolve().parents[3] / log_path
            log_path.parent.mkdir(parents=True, exist_ok=True)
            when = settings.log_file_rotation if settings.log_file_rotation in _ROTATION_WHEN else 'midnight'
            handlers.append(TimedRotatingFileHandler(
                filename=str(log_path),
                when=when,
                backupCount=settings.log_file_retention,
                encoding='utf-8',
                delay=True,
            ))

        for handler in handlers:
            handler.setFormatter(formatter)
            handler.addFilter(SensitiveDataFilter(enabled=not settings.log_sensitive_data))
        return handlers

    @classmethod
    def configure(cls):
        """Configure logging for the application"""
        if cls._configured:
            return

        settings = get_settings()
        logging.basicConfig(
            level=getattr(logging, settings.log_level.upper()),
            handlers=cls._handlers(settings),
            force=True
        )

        for module, level in cls._levels(settings).items():
            logger = logging.getLogger(module)
            logger.setLevel(getattr(logging, level.upper()))
            if module.startswith(("sqlalchemy", "uvicorn")):
                logger.propagate = False

        cls._configured = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        if not cls._configured:
            cls.configure()
        return logging.getLogger(name)

    @classmethod
    def set_context(cls, **kwargs):
        """Attach fields to every record logged by the current request"""
        ctx = request_context.get({}).copy()
        ctx.update(kwargs)
        request_context.set(ctx)

    @classmethod
    def clear_context(cls):
        request_context.set({})


LoggingConfig.configure()
