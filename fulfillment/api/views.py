"""
GraphQL view with request logging.
"""
import json
import logging
from uuid import uuid4

from ariadne import graphql_sync
from django.conf import settings
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from fulfillment.api.middleware import ErrorHandler, format_error
from fulfillment.api.schema import schema
from fulfillment.infra.pii_masker import mask_pii_in_dict

logger = logging.getLogger(__name__)


class FulfillmentGraphQLView:
    """GraphQL view with structured logging."""

    def dispatch(self, request, *args, **kwargs):
        request_id = request.headers.get("X-Request-ID") or str(uuid4())

        logger.info(
            "graphql_request",
            extra={"request_id": request_id, "operation": "graphql"},
        )

        try:
            response = self._process_graphql_request(request, request_id)
        except Exception as e:
            response = ErrorHandler.handle_error(e)
            logger.error(
                "graphql_error",
                extra={"request_id": request_id, "error": str(e)},
            )

        response["X-Request-ID"] = request_id
        logger.info(
            "graphql_response",
            extra={"request_id": request_id, "status": response.status_code},
        )
        return response

    def _process_graphql_request(self, request, request_id):
        if request.method == "GET":
            return JsonResponse({"message": "GraphQL endpoint. Use POST for queries."})

        try:
            data = json.loads(request.body)
        except json.JSONDecodeError:
            return JsonResponse(
                {"error": {"code": "VALIDATION_ERROR", "message": "Invalid JSON"}},
                status=400,
            )
        if not isinstance(data, dict):
            return JsonResponse(
                {"error": {"code": "VALIDATION_ERROR", "message": "Request body must be an object"}},
                status=400,
            )

        logger.info(
            "graphql_operation",
            extra={
                "request_id": request_id,
                "operation": data.get("operationName") or "anonymous",
                "variables": mask_pii_in_dict(data.get("variables") or {}),
            },
        )

        success, result = graphql_sync(
            schema,
            data,
            context_value={"request": request, "request_id": request_id},
            debug=settings.DEBUG,
            error_formatter=format_error,
        )
        status_code = 200 if success else 400
        return JsonResponse(result, status=status_code)


@csrf_exempt
@require_http_methods(["GET", "POST"])
def graphql_view(request):
    """GraphQL endpoint."""
    view = FulfillmentGraphQLView()
    return view.dispatch(request)
