"""
Centralized Exception Handling for the Chat Gateway

This module provides the fault hierarchy shared by the provider client, the
resolvers and the HTTP boundary, and the Flask handlers that turn faults into
the GraphQL-style error envelope:

    {"errors": [{"message": "...", "extensions": {"code": "..."}}]}
"""

from enum import Enum
from typing import Any, Dict, List, Optional

import structlog
from flask import jsonify, request
from pydantic import BaseModel
from werkzeug.exceptions import HTTPException


class ErrorCode(str, Enum):
    """Standardized error codes, reported in ``extensions.code``."""

    # Transport errors
    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"

    # Request-level errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    BAD_USER_INPUT = "BAD_USER_INPUT"
    GRAPHQL_PARSE_FAILED = "GRAPHQL_PARSE_FAILED"
    GRAPHQL_VALIDATION_FAILED = "GRAPHQL_VALIDATION_FAILED"

    # Provider errors
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    UPSTREAM_RESPONSE_ERROR = "UPSTREAM_RESPONSE_ERROR"

    # Server errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    NOT_IMPLEMENTED = "NOT_IMPLEMENTED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorCategory(str, Enum):
    """Fault taxonomy."""
    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    VALIDATION = "validation"
    UPSTREAM = "upstream"
    INTERNAL = "internal"


class ErrorExtensions(BaseModel):
    """The ``extensions`` member of a reported error."""

    code: ErrorCode


class ErrorDetail(BaseModel):
    """A single entry of the ``errors`` array."""

    message: str
    extensions: Optional[ErrorExtensions] = None


class ErrorResponse(BaseModel):
    """Standardized error envelope."""

    errors: List[ErrorDetail]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return self.model_dump(mode="json", exclude_none=True)


class GatewayError(Exception):
    """Base exception class for all gateway faults."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        details: Optional[Dict[str, Any]] = None,
        http_status: int = 500
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.category = category
        self.details = details or {}
        self.http_status = http_status

    def to_error_response(self) -> ErrorResponse:
        """Convert exception to ErrorResponse."""
        return ErrorResponse(errors=[
            ErrorDetail(message=self.message, extensions=ErrorExtensions(code=self.error_code))
        ])

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary."""
        return self.to_error_response().to_dict()


class ConfigurationError(GatewayError):
    """The server is missing configuration it needs, e.g. the provider API key."""

    def __init__(self, message: str, config_section: Optional[str] = None):
        super().__init__(
            message=f"Server configuration error: {message}",
            error_code=ErrorCode.CONFIGURATION_ERROR,
            category=ErrorCategory.CONFIGURATION,
            details={"config_section": config_section},
            http_status=500
        )

    def to_error_response(self) -> ErrorResponse:
        # Configuration faults are reported as a bare message.
        return ErrorResponse(errors=[ErrorDetail(message=self.message)])


class BadRequestError(GatewayError):
    """Malformed transport-level request: content type, JSON body, missing field."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code=ErrorCode.BAD_REQUEST,
            category=ErrorCategory.TRANSPORT,
            http_status=400
        )


class NotFoundError(GatewayError):
    """No endpoint is mounted at the requested path."""

    def __init__(self, path: str):
        super().__init__(
            message=f"Endpoint not found: {path}",
            error_code=ErrorCode.NOT_FOUND,
            category=ErrorCategory.TRANSPORT,
            details={"path": path},
            http_status=404
        )


class MethodNotAllowedError(GatewayError):
    """HTTP method not supported by the active execution strategy."""

    def __init__(self, method: str, allowed: Optional[List[str]] = None, message: Optional[str] = None):
        super().__init__(
            message=message or f"Method {method} not allowed",
            error_code=ErrorCode.METHOD_NOT_ALLOWED,
            category=ErrorCategory.TRANSPORT,
            details={"method": method, "allowed": allowed or []},
            http_status=405
        )
        self.allowed = allowed or []


class ValidationError(GatewayError):
    """Request validation error."""

    def __init__(self, message: str, field_errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.VALIDATION_ERROR,
            category=ErrorCategory.VALIDATION,
            details={"field_errors": field_errors} if field_errors else None,
            http_status=400
        )


class UpstreamError(GatewayError):
    """The provider failed or answered with an unusable completion."""

    def __init__(self, message: str, status_code: Optional[int] = None, status_text: Optional[str] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.UPSTREAM_ERROR,
            category=ErrorCategory.UPSTREAM,
            details={"status_code": status_code, "status_text": status_text},
            http_status=500
        )
        self.status_code = status_code
        self.status_text = status_text


class ResponseProcessingError(GatewayError):
    """The provider body could not be decoded into the expected shape."""

    def __init__(self, message: str, processing_step: str):
        super().__init__(
            message=f"Response processing error in {processing_step}: {message}",
            error_code=ErrorCode.UPSTREAM_RESPONSE_ERROR,
            category=ErrorCategory.UPSTREAM,
            details={"processing_step": processing_step},
            http_status=500
        )


class StreamingNotImplementedError(GatewayError):
    """Raised by the streaming subscription, which has no implementation."""

    def __init__(self, message: str = "Streaming not implemented yet"):
        super().__init__(
            message=message,
            error_code=ErrorCode.NOT_IMPLEMENTED,
            category=ErrorCategory.INTERNAL,
            http_status=501
        )


class InternalError(GatewayError):
    """Wraps an unexpected exception for reporting."""

    def __init__(self, message: str = "Internal server error", original: Optional[Exception] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.INTERNAL_ERROR,
            category=ErrorCategory.INTERNAL,
            details={"original_error": repr(original)} if original else None,
            http_status=500
        )


# Error Handler Registry

class ErrorHandler:
    """Central error handler for the application."""

    @staticmethod
    def handle_exception(e: Exception, masked: bool = False):
        """Handle any exception and return appropriate response."""
        if isinstance(e, GatewayError):
            return ErrorHandler._handle_gateway_exception(e)
        return ErrorHandler._handle_generic_exception(e, masked)

    @staticmethod
    def _handle_gateway_exception(e: GatewayError):
        """Handle gateway faults."""
        logger = structlog.get_logger("chat_gateway.errors")
        log = logger.error if e.http_status >= 500 else logger.info
        log(
            "gateway_error",
            error_type=type(e).__name__,
            error_code=e.error_code.value,
            error_category=e.category.value,
            error_message=e.message,
            http_status=e.http_status,
        )
        response = jsonify(e.to_dict())
        if isinstance(e, MethodNotAllowedError) and e.allowed:
            response.headers["Allow"] = ", ".join(e.allowed)
        return response, e.http_status

    @staticmethod
    def _handle_generic_exception(e: Exception, masked: bool):
        """Handle generic exceptions."""
        structlog.get_logger("chat_gateway.errors").error(
            "unhandled_exception",
            error_type=type(e).__name__,
            error_message=str(e),
            exc_info=e,
        )
        message = "Internal server error" if masked or not str(e) else str(e)
        return ErrorHandler._handle_gateway_exception(InternalError(message, original=e))


# Flask error handlers

def register_error_handlers(app, masked: bool = False):
    """Register error handlers with Flask app."""

    @app.errorhandler(GatewayError)
    def handle_gateway_exception(e):
        return ErrorHandler.handle_exception(e)

    @app.errorhandler(404)
    def handle_not_found(e):
        return ErrorHandler.handle_exception(NotFoundError(request.path))

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        allowed = sorted(getattr(e, "valid_methods", None) or [])
        return ErrorHandler.handle_exception(MethodNotAllowedError(request.method, allowed))

    @app.errorhandler(Exception)
    def handle_generic_exception(e):
        if isinstance(e, HTTPException) and e.code and e.code < 500:
            return ErrorHandler.handle_exception(GatewayError(
                message=e.description or e.name,
                error_code=ErrorCode.BAD_REQUEST,
                category=ErrorCategory.TRANSPORT,
                http_status=e.code
            ))
        return ErrorHandler.handle_exception(e, masked)
