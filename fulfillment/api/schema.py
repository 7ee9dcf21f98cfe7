"""
GraphQL schema definition using Ariadne.
"""
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from uuid import UUID

from ariadne import (
    MutationType,
    QueryType,
    ScalarType,
    load_schema_from_path,
    make_executable_schema,
)

from fulfillment.services.orchestrator import ProvisioningOrchestrator
from fulfillment.services.reporting import ProvisioningReportService
from fulfillment.services.retry import RetryCoordinator

# Load schema from .graphql files
SCHEMAS_DIR = Path(__file__).parent / "schemas"
type_defs = "\n".join([
    load_schema_from_path(SCHEMAS_DIR / "common"),
    load_schema_from_path(SCHEMAS_DIR / "query"),
    load_schema_from_path(SCHEMAS_DIR / "mutation"),
])

query = QueryType()
mutation = MutationType()


def to_camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def camelize(value):
    """Recursively rename snake_case dict keys to the camelCase schema fields."""
    if isinstance(value, dict):
        return {to_camel_case(key): camelize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [camelize(item) for item in value]
    return value


@mutation.field("provisionOrder")
def resolve_provision_order(_, info, orderId):
    """Resolve provision order mutation."""
    result = ProvisioningOrchestrator().process_order(orderId)
    return camelize(result.as_dict())


@mutation.field("retryOrder")
def resolve_retry_order(_, info, orderId):
    """Resolve retry order mutation."""
    result = RetryCoordinator().retry_order(orderId)
    return camelize(result.as_dict())


@mutation.field("retryRecentFailures")
def resolve_retry_recent_failures(_, info, hours=24):
    results = RetryCoordinator().retry_recent_failures(window_hours=hours)
    return [camelize(result.as_dict()) for result in results]


@query.field("provisioningReport")
def resolve_provisioning_report(_, info, days=7):
    return camelize(ProvisioningReportService().overall_report(days=days))


@query.field("orderProvisioningReport")
def resolve_order_provisioning_report(_, info, orderId):
    return camelize(ProvisioningReportService().order_report(orderId))


@query.field("retryCandidates")
def resolve_retry_candidates(_, info, orderId=None, hours=None):
    """Failed items a retry would reset (dry run)."""
    items = RetryCoordinator().find_retry_candidates(window_hours=hours, order_id=orderId)
    return [
        {
            "orderItemId": item.id,
            "orderId": item.order_id,
            "orderNumber": item.order.order_number,
            "productTitle": item.product_title,
            "quantity": item.quantity,
            "error": item.fulfillment_error,
            "updatedAt": item.updated_at,
        }
        for item in items
    ]


# Define custom scalars
decimal_scalar = ScalarType("Decimal")
uuid_scalar = ScalarType("UUID")
datetime_scalar = ScalarType("DateTime")


@decimal_scalar.serializer
def serialize_decimal(value):
    return str(value)


@decimal_scalar.value_parser
def parse_decimal_value(value):
    return Decimal(str(value))


@uuid_scalar.serializer
def serialize_uuid(value):
    return str(value)


@uuid_scalar.value_parser
def parse_uuid_value(value):
    """Parse UUID from string."""
    if isinstance(value, UUID):
        return value
    return UUID(str(value))


@uuid_scalar.literal_parser
def parse_uuid_literal(ast, variables=None):
    return UUID(str(ast.value))


@datetime_scalar.serializer
def serialize_datetime(value):
    """Serialize DateTime to ISO format string."""
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


@datetime_scalar.value_parser
def parse_datetime_value(value):
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


# Create executable schema
schema = make_executable_schema(
    type_defs,
    query,
    mutation,
    datetime_scalar,
    decimal_scalar,
    uuid_scalar,
)
