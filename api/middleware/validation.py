# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request validation middleware using Pydantic models.
Provides automatic request body validation and error formatting.
"""

from functools import wraps
from flask import request, jsonify, current_app
from typing import Type, Callable, Dict, Any, List
from pydantic import BaseModel, ValidationError
from opentelemetry import trace
import logging

from services.hal import HalFormatter

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


def format_validation_errors(validation_error: ValidationError) -> List[Dict[str, Any]]:
    """
    Format Pydantic validation errors for API response.

    Args:
        validation_error: Pydantic ValidationError

    Returns:
        List of formatted error dictionaries
    """
    errors = []

    for error in validation_error.errors(include_url=False):
        field_path = ".".join(str(loc) for loc in error["loc"])
        value = error.get("input")
        errors.append({
            "field": field_path,
            "message": error["msg"],
            "type": error["type"],
            # Keep the document JSON serializable
            "input": value if isinstance(value, (str, int, float, bool, type(None))) else str(value)
        })

    return errors


class ValidationMiddleware:
    """Middleware for request validation using Pydantic models."""

    def __init__(self, base_url: str):
        self.hal_formatter = HalFormatter(base_url)

    def format_validation_errors(self, validation_error: ValidationError) -> List[Dict[str, Any]]:
        return format_validation_errors(validation_error)

    def error_response(self, detail: str, errors: List[Dict[str, Any]]):
        error_response = self.hal_formatter.format_validation_error(detail, request.path, errors)
        return jsonify(error_response), 400

    def validate_json_body(self, model_class: Type[BaseModel], optional: bool = False) -> Callable:
        """
        Decorator to validate JSON request body against Pydantic model.

        Args:
            model_class: Pydantic model class for validation
            optional: Treat a missing body as an empty object

        Returns:
            Decorator function
        """
        def decorator(f: Callable) -> Callable:
            @wraps(f)
            def decorated_function(*args, **kwargs):
                with tracer.start_as_current_span("validation.validate_json_body") as span:
                    span.set_attributes({
                        "validation.model": model_class.__name__,
                        "http.method": request.method,
                        "http.path": request.path
                    })

                    has_body = bool(request.get_data(cache=True))

                    if optional and not has_body:
                        json_data = {}
                    else:
                        if not request.is_json:
                            span.set_attribute("validation.result", "invalid_content_type")
                            return self.error_response(
                                "Request must have Content-Type: application/json",
                                [{
                                    "field": "content-type",
                                    "message": "Expected application/json",
                                    "type": "content_type_error",
                                    "input": request.content_type
                                }]
                            )

                        json_data = request.get_json(silent=True)
                        if not isinstance(json_data, dict):
                            span.set_attribute("validation.result", "invalid_json")
                            return self.error_response(
                                "Invalid JSON in request body",
                                [{
                                    "field": "body",
                                    "message": "Expected a JSON object",
                                    "type": "json_error",
                                    "input": None
                                }]
                            )

                    try:
                        validated_data = model_class(**json_data)
                    except ValidationError as e:
                        span.set_attribute("validation.result", "validation_error")
                        validation_errors = self.format_validation_errors(e)

                        logger.warning(
                            "Request validation failed",
                            extra={
                                "model": model_class.__name__,
                                "path": request.path,
                                "method": request.method,
                                "error_fields": [err["field"] for err in validation_errors]
                            }
                        )

                        return self.error_response(
                            f"Request validation failed for {model_class.__name__}",
                            validation_errors
                        )

                    span.set_attribute("validation.result", "success")
                    logger.debug(
                        "Request validation successful",
                        extra={
                            "model": model_class.__name__,
                            "path": request.path,
                            "method": request.method
                        }
                    )

                    return f(validated_data, *args, **kwargs)

            return decorated_function
        return decorator

    def validate_query_params(self, model_class: Type[BaseModel]) -> Callable:
        """
        Decorator to validate query parameters against Pydantic model.

        Args:
            model_class: Pydantic model class for validation

        Returns:
            Decorator function
        """
        def decorator(f: Callable) -> Callable:
            @wraps(f)
            def decorated_function(*args, **kwargs):
                with tracer.start_as_current_span("validation.validate_query_params") as span:
                    span.set_attributes({
                        "validation.model": model_class.__name__,
                        "http.method": request.method,
                        "http.path": request.path
                    })

                    query_data = request.args.to_dict()

                    # Repeated parameters become lists
                    for key in request.args.keys():
                        values = request.args.getlist(key)
                        if len(values) > 1:
                            query_data[key] = values

                    try:
                        validated_params = model_class(**query_data)
                    except ValidationError as e:
                        span.set_attribute("validation.result", "validation_error")
                        validation_errors = self.format_validation_errors(e)

                        logger.warning(
                            "Query parameter validation failed",
                            extra={
                                "model": model_class.__name__,
                                "path": request.path,
                                "method": request.method,
                                "error_fields": [err["field"] for err in validation_errors]
                            }
                        )

                        return self.error_response(
                            f"Query parameter validation failed for {model_class.__name__}",
                            validation_errors
                        )

                    span.set_attribute("validation.result", "success")
                    return f(validated_params, *args, **kwargs)

            return decorated_function
        return decorator


def validate_json(model_class: Type[BaseModel], optional: bool = False) -> Callable:
    """
    Route decorator for JSON body validation using the app's middleware.

    Args:
        model_class: Pydantic model class
        optional: Treat a missing body as an empty object

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            middleware = current_app.validation_middleware
            return middleware.validate_json_body(model_class, optional)(f)(*args, **kwargs)
        return decorated_function
    return decorator


def validate_query(model_class: Type[BaseModel]) -> Callable:
    """
    Route decorator for query parameter validation using the app's middleware.

    Args:
        model_class: Pydantic model class

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            middleware = current_app.validation_middleware
            return middleware.validate_query_params(model_class)(f)(*args, **kwargs)
        return decorated_function
    return decorator


def openapi_validation_error(e: ValidationError):
    """
    Render flask-openapi3 request validation failures (path models) as
    problem documents.
    """
    validation_errors = format_validation_errors(e)
    logger.warning(
        "Path parameter validation failed",
        extra={
            "path": request.path,
            "method": request.method,
            "error_fields": [err["field"] for err in validation_errors]
        }
    )
    error_response = current_app.hal_formatter.format_validation_error(
        "Request validation failed",
        request.path,
        validation_errors
    )
    # flask-openapi3 aborts with the returned object, so it must be a Response
    response = jsonify(error_response)
    response.status_code = 400
    return response
