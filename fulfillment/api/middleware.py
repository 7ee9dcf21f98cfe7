"""
Error handling for the GraphQL API.
"""
import logging

from ariadne import format_error as default_format_error
from django.http import JsonResponse
from graphql import GraphQLError

from fulfillment.domain.errors import FulfillmentError, OrderNotFound, ValidationError

logger = logging.getLogger(__name__)


class ErrorHandler:
    """Maps exceptions to API error codes and responses."""

    ERROR_CODES = {
        "VALIDATION_ERROR": 400,
        "NOT_FOUND": 404,
        "PROVISIONING_ERROR": 422,
        "INTERNAL_ERROR": 500,
    }

    @classmethod
    def code_for(cls, error: Exception | None) -> str:
        if isinstance(error, OrderNotFound):
            return "NOT_FOUND"
        if isinstance(error, (ValidationError, ValueError)):
            return "VALIDATION_ERROR"
        if isinstance(error, FulfillmentError):
            return "PROVISIONING_ERROR"
        return "INTERNAL_ERROR"

    @classmethod
    def handle_error(cls, error: Exception) -> JsonResponse:
        """Handle error and return JSON response."""
        code = cls.code_for(error)
        if code != "INTERNAL_ERROR":
            return JsonResponse(
                {"error": {"code": code, "message": str(error)}},
                status=cls.ERROR_CODES[code],
            )

        logger.error(
            "unexpected_error",
            extra={"error": f"{type(error).__name__}: {error}"},
            exc_info=True,
        )
        return JsonResponse(
            {
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An internal error occurred",
                }
            },
            status=500,
        )


def format_error(error: GraphQLError, debug: bool = False) -> dict:
    """Add an error code to every GraphQL error; hide internal details."""
    original = error.original_error
    if original is None:
        # Parse and validation errors raised by graphql itself
        formatted = default_format_error(error, debug)
        formatted.setdefault("extensions", {})["code"] = "VALIDATION_ERROR"
        return formatted

    code = ErrorHandler.code_for(original)
    formatted = default_format_error(error, debug)
    if code == "INTERNAL_ERROR":
        logger.error(
            "unexpected_error",
            extra={"error": f"{type(original).__name__}: {original}"},
            exc_info=(type(original), original, original.__traceback__),
        )
        if not debug:
            formatted["message"] = "An internal error occurred"
    formatted.setdefault("extensions", {})["code"] = code
    return formatted
