"""
Execution strategies for the gateway endpoint

The HTTP boundary in ``server`` handles CORS preflight and the API key check
for every request, then hands the request to one strategy:

- ``GraphQLStrategy`` executes GraphQL operations against the schema and
  serves the GraphiQL playground on GET.
- ``RawStrategy`` accepts ``{"prompt": ...}`` and answers
  ``{"generated_text": ...}``, reporting failures as plain text.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from flask import Request, Response, jsonify, render_template
from graphql import (
    ExecutionResult,
    GraphQLError,
    GraphQLSchema,
    GraphQLSyntaxError,
    OperationType,
    execute_sync,
    get_operation_ast,
    parse,
    validate,
)
from werkzeug.exceptions import BadRequest

from .config.settings import ApplicationConfig, ExecutionMode
from .core.exceptions import (
    BadRequestError,
    ErrorCode,
    GatewayError,
    MethodNotAllowedError,
)
from .core.logging import get_logger
from .models import ResolverContext
from .resolvers import ChatService, RootResolvers

MASKED_ERROR_MESSAGE = "Unexpected error."

logger = get_logger(__name__)


def read_json_body(request: Request) -> Any:
    """Decode a POST body, enforcing a JSON content type."""
    if not request.is_json:
        raise BadRequestError("Content-Type must be application/json")
    try:
        return request.get_json()
    except BadRequest:
        raise BadRequestError("Invalid JSON in request body")


class ExecutionStrategy(ABC):
    """Turns an authenticated request into a response."""

    allowed_methods: List[str] = ["POST"]

    @abstractmethod
    def handle(self, request: Request, context: ResolverContext) -> Response:
        """Handle one request. Transport faults may be raised as GatewayError."""


class GraphQLStrategy(ExecutionStrategy):
    """Executes GraphQL operations with graphql-core."""

    allowed_methods = ["GET", "POST"]

    def __init__(self, schema: GraphQLSchema, resolvers: RootResolvers,
                 graphiql: bool = True, masked: bool = False):
        self.schema = schema
        self.root_value = resolvers.as_root_value()
        self.graphiql = graphiql
        self.masked = masked

    def handle(self, request: Request, context: ResolverContext) -> Response:
        if request.method == "GET":
            return self._handle_get(request, context)
        if request.method == "POST":
            return self._handle_post(request, context)
        raise MethodNotAllowedError(request.method, self.allowed_methods)

    def _handle_get(self, request: Request, context: ResolverContext) -> Response:
        query = request.args.get("query")
        if query is None or (self.graphiql and self._wants_html(request)):
            if not self.graphiql:
                raise BadRequestError("Missing query in request body")
            html = render_template("playground.html", endpoint=request.path)
            return Response(html, status=200, mimetype="text/html")

        variables = self._decode_variables(request.args.get("variables"))
        payload = self.execute(
            query, variables, request.args.get("operationName"), context,
            allowed_operations=(OperationType.QUERY,),
        )
        return jsonify(payload)

    def _handle_post(self, request: Request, context: ResolverContext) -> Response:
        body = read_json_body(request)
        if not isinstance(body, dict) or not body.get("query"):
            raise BadRequestError("Missing query in request body")
        if not isinstance(body["query"], str):
            raise BadRequestError("Query must be a string")

        variables = body.get("variables")
        if variables is not None and not isinstance(variables, dict):
            raise BadRequestError("Variables must be a JSON object")

        payload = self.execute(body["query"], variables, body.get("operationName"), context)
        return jsonify(payload)

    @staticmethod
    def _wants_html(request: Request) -> bool:
        best = request.accept_mimetypes.best_match(["application/json", "text/html"])
        return best == "text/html"

    @staticmethod
    def _decode_variables(raw: Optional[str]) -> Optional[Dict[str, Any]]:
        if not raw:
            return None
        try:
            variables = json.loads(raw)
        except ValueError:
            raise BadRequestError("Variables must be a JSON object")
        if variables is not None and not isinstance(variables, dict):
            raise BadRequestError("Variables must be a JSON object")
        return variables

    def execute(self, query: str, variables: Optional[Dict[str, Any]], operation_name: Optional[str],
                context: ResolverContext,
                allowed_operations: Optional[Tuple[OperationType, ...]] = None) -> Dict[str, Any]:
        """Parse, validate and execute one operation into a ``{data, errors}`` payload."""
        try:
            document = parse(query)
        except GraphQLError as error:
            return self.format_result(ExecutionResult(data=None, errors=[error]), executed=False)

        validation_errors = validate(self.schema, document)
        if validation_errors:
            return self.format_result(ExecutionResult(data=None, errors=validation_errors), executed=False)

        if allowed_operations is not None:
            operation = get_operation_ast(document, operation_name)
            if operation is not None and operation.operation not in allowed_operations:
                raise MethodNotAllowedError(
                    "GET", ["POST"],
                    message=f"Can only perform a {operation.operation.value} operation from a POST request."
                )

        result = execute_sync(
            self.schema,
            document,
            root_value=self.root_value,
            context_value=context,
            variable_values=variables,
            operation_name=operation_name,
        )
        return self.format_result(result, executed=True)

    def format_result(self, result: ExecutionResult, executed: bool) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if result.errors:
            payload["errors"] = [self.format_error(error, executed) for error in result.errors]
        if executed:
            payload["data"] = result.data
        return payload

    def format_error(self, error: GraphQLError, executed: bool) -> Dict[str, Any]:
        """Render one GraphQL error with an ``extensions.code``."""
        original = error.original_error
        message = error.message

        if isinstance(error, GraphQLSyntaxError):
            code = ErrorCode.GRAPHQL_PARSE_FAILED.value
        elif isinstance(original, GatewayError):
            code = original.error_code.value
            logger.info("resolver_fault", error_code=code, error_message=original.message,
                        path=error.path)
        elif original is not None:
            code = ErrorCode.INTERNAL_ERROR.value
            logger.error("resolver_exception", error_type=type(original).__name__,
                         error_message=str(original), path=error.path, exc_info=original)
            if self.masked:
                message = MASKED_ERROR_MESSAGE
        elif executed:
            code = ErrorCode.BAD_USER_INPUT.value
        else:
            code = ErrorCode.GRAPHQL_VALIDATION_FAILED.value

        formatted = dict(error.formatted)
        formatted["message"] = message
        formatted["extensions"] = {**(formatted.get("extensions") or {}), "code": code}
        return formatted


class RawStrategy(ExecutionStrategy):
    """Prompt in, generated text out."""

    allowed_methods = ["POST"]

    def __init__(self, service: ChatService):
        self.service = service

    def handle(self, request: Request, context: ResolverContext) -> Response:
        try:
            if request.method != "POST":
                raise MethodNotAllowedError(request.method, self.allowed_methods, message="Method not allowed")
            body = read_json_body(request)
            if not isinstance(body, dict) or "prompt" not in body:
                raise BadRequestError("Missing query in request body")
            completion = self.service.chat(body, context.env).unwrap()
        except GatewayError as e:
            log = logger.error if e.http_status >= 500 else logger.info
            log("raw_request_failed", error_code=e.error_code.value, error_category=e.category.value,
                error_message=e.message, http_status=e.http_status)
            response = Response(f"Error: {e.message}", status=e.http_status, mimetype="text/plain")
            if isinstance(e, MethodNotAllowedError):
                response.headers["Allow"] = ", ".join(e.allowed)
            return response

        return jsonify({"generated_text": completion.content})


def build_strategy(config: ApplicationConfig, service: ChatService, schema: GraphQLSchema) -> ExecutionStrategy:
    """Select the execution strategy named by the configuration."""
    if config.gateway.mode == ExecutionMode.RAW:
        return RawStrategy(service)
    return GraphQLStrategy(
        schema,
        RootResolvers(service),
        graphiql=config.gateway.graphiql,
        masked=config.errors_masked(),
    )
