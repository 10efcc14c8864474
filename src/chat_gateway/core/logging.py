"""
Structured Logging for the Chat Gateway

This module configures structlog on top of the standard library logging tree,
carries a correlation ID per request, and provides the request and provider
loggers used by the HTTP boundary and the provider client.
"""

import contextvars
import json
import logging
import logging.handlers
import sys
import time
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog
from flask import g, request
from pythonjsonlogger.json import JsonFormatter

from ..config.settings import LoggingConfig, LogFormat


CORRELATION_HEADER = "X-Correlation-ID"

# Context variable for correlation ID
correlation_id: contextvars.ContextVar[str] = contextvars.ContextVar('correlation_id', default='')


class CorrelationIDProcessor:
    """Processor to add correlation ID to log entries."""

    def __call__(self, logger, method_name, event_dict):
        corr_id = correlation_id.get('')
        if corr_id:
            event_dict['correlation_id'] = corr_id
        return event_dict


class ErrorProcessor:
    """Processor to format exception information."""

    def __call__(self, logger, method_name, event_dict):
        exc_info = event_dict.pop('exc_info', None)
        if not exc_info:
            return event_dict
        if isinstance(exc_info, BaseException):
            exc_info = (type(exc_info), exc_info, exc_info.__traceback__)
        elif not isinstance(exc_info, tuple):
            exc_info = sys.exc_info()
        if exc_info[0] is not None:
            event_dict['exception'] = {
                'type': exc_info[0].__name__,
                'message': str(exc_info[1]),
                'traceback': traceback.format_exception(*exc_info)
            }
        return event_dict


class CustomJSONFormatter(JsonFormatter):
    """Custom JSON formatter with additional fields."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['module'] = record.module
        log_record['line'] = record.lineno

        if not log_record.get('timestamp'):
            log_record['timestamp'] = datetime.now(timezone.utc).isoformat()


class LoggingManager:
    """Central logging manager for the application."""

    def __init__(self, config: LoggingConfig):
        self.config = config
        self.logger = None
        self._setup_logging()

    def _setup_logging(self):
        """Setup logging configuration."""
        processors = [
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="ISO", utc=True),
            CorrelationIDProcessor(),
            ErrorProcessor(),
            structlog.processors.StackInfoRenderer(),
        ]

        if self.config.format == LogFormat.JSON:
            processors.append(structlog.processors.JSONRenderer())
        else:
            processors.append(structlog.processors.KeyValueRenderer())

        structlog.configure(
            processors=processors,
            wrapper_class=structlog.stdlib.BoundLogger,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        self._setup_stdlib_logging()

        self.logger = structlog.get_logger("chat_gateway")

    def _setup_stdlib_logging(self):
        """Setup standard library logging configuration."""
        root_logger = logging.getLogger()
        root_logger.setLevel(self.config.level.value)
        root_logger.handlers.clear()

        if self.config.format == LogFormat.JSON:
            formatter = CustomJSONFormatter('%(timestamp)s %(level)s %(name)s %(message)s')
        else:
            formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(self.config.level.value)
        root_logger.addHandler(console_handler)

        if self.config.file_path:
            file_path = Path(self.config.file_path)
            file_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.handlers.RotatingFileHandler(
                filename=file_path,
                maxBytes=int(self.config.max_size),
                backupCount=self.config.backup_count,
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            file_handler.setLevel(self.config.level.value)
            root_logger.addHandler(file_handler)

        # werkzeug's own access log duplicates request_completed
        logging.getLogger('werkzeug').setLevel(logging.ERROR)

    def get_logger(self, name: str = None) -> structlog.stdlib.BoundLogger:
        """Get a structured logger instance."""
        if name:
            return structlog.get_logger(name)
        return self.logger


class RequestLogger:
    """Logger for HTTP requests and responses."""

    def __init__(self, logger: structlog.stdlib.BoundLogger, config: LoggingConfig):
        self.logger = logger
        self.config = config

    def log_request_start(self):
        """Log the start of a request."""
        g.request_start_time = time.time()

        if not self.config.enable_request_logging:
            return

        self.logger.info(
            "request_started",
            method=request.method,
            path=request.path,
            remote_addr=request.remote_addr,
            user_agent=request.headers.get('User-Agent', ''),
            content_length=request.content_length
        )

    def log_request_end(self, status_code: int, response_size: int):
        """Log the end of a request."""
        if not self.config.enable_response_logging:
            return

        duration = None
        if hasattr(g, 'request_start_time'):
            duration = time.time() - g.request_start_time

        log_data = {
            "method": request.method,
            "path": request.path,
            "status_code": status_code,
            "response_size": response_size,
            "duration": round(duration, 4) if duration is not None else None,
        }

        if (duration and self.config.log_slow_requests and
                duration > self.config.slow_request_threshold):
            self.logger.warning("slow_request", **log_data)
        else:
            self.logger.info("request_completed", **log_data)


class ProviderAPILogger:
    """Logger for upstream provider interactions."""

    def __init__(self, logger: structlog.stdlib.BoundLogger):
        self.logger = logger

    def log_api_request(self, url: str, headers: Dict[str, str], payload: Dict[str, Any]):
        """Log provider API request."""
        safe_headers = {k: v for k, v in headers.items()
                        if k.lower() not in ['authorization', 'x-api-key']}

        self.logger.info(
            "provider_api_request",
            url=url,
            headers=safe_headers,
            payload_size=len(json.dumps(payload)) if payload else 0,
            model=payload.get('model') if payload else None,
            stream=payload.get('stream') if payload else None
        )

    def log_api_response(self, status_code: int, response_time: float,
                         response_size: int, token_usage: Optional[Dict[str, Any]] = None):
        """Log provider API response."""
        self.logger.info(
            "provider_api_response",
            status_code=status_code,
            response_time=round(response_time, 4),
            response_size=response_size,
            token_usage=token_usage
        )

    def log_api_error(self, error: Exception, status_code: int = None):
        """Log provider API error."""
        self.logger.error(
            "provider_api_error",
            error_type=type(error).__name__,
            error_message=str(error),
            status_code=status_code
        )


def set_correlation_id(corr_id: str):
    """Set correlation ID for current context."""
    correlation_id.set(corr_id)


def get_correlation_id() -> str:
    """Get current correlation ID."""
    return correlation_id.get('')


# Global logging manager instance
_logging_manager: Optional[LoggingManager] = None


def initialize_logging(config: LoggingConfig) -> LoggingManager:
    """Initialize the logging system."""
    global _logging_manager
    _logging_manager = LoggingManager(config)
    return _logging_manager


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance, falling back to structlog defaults before initialization."""
    if _logging_manager is None:
        return structlog.get_logger(name or "chat_gateway")
    return _logging_manager.get_logger(name)


def get_provider_api_logger() -> ProviderAPILogger:
    """Get provider API logger instance."""
    return ProviderAPILogger(get_logger("provider_api"))


# Flask logging middleware
def setup_request_logging(app, config: LoggingConfig):
    """Setup request logging middleware for Flask app."""
    request_logger = RequestLogger(get_logger("request"), config)

    @app.before_request
    def before_request():
        set_correlation_id(request.headers.get(CORRELATION_HEADER) or str(uuid4()))
        request_logger.log_request_start()

    @app.after_request
    def after_request(response):
        response.headers[CORRELATION_HEADER] = get_correlation_id()
        request_logger.log_request_end(response.status_code, response.content_length or 0)
        return response
