"""Error code registry with E-XXXX format codes.

This module defines the error code system for OrderRelay, organizing errors
into categories:
- E-1xxx: Routing errors (matches, links)
- E-2xxx: Validation errors
- E-3xxx: Adapter / external platform errors
- E-4xxx: System/internal errors
- E-5xxx: Security errors (webhook signatures)

Each error includes a code, title, message template, and remediation steps.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    ROUTING = "routing"  # E-1xxx
    VALIDATION = "validation"  # E-2xxx
    ADAPTER = "adapter"  # E-3xxx
    SYSTEM = "system"  # E-4xxx
    SECURITY = "security"  # E-5xxx


@dataclass
class ErrorCode:
    """Definition of an error code with metadata.

    Attributes:
        code: Error code in E-XXXX format.
        category: Error category for grouping.
        title: Short title for display.
        message_template: Message with {placeholders} for context.
        remediation: Action the operator should take to resolve.
        is_retryable: Whether the operation can be retried without changes.
    """

    code: str
    category: ErrorCategory
    title: str
    message_template: str
    remediation: str
    is_retryable: bool = False


ERROR_REGISTRY: dict[str, ErrorCode] = {
    # Routing errors (E-1xxx)
    "E-1001": ErrorCode(
        code="E-1001",
        category=ErrorCategory.ROUTING,
        title="No Match Found",
        message_template="No saved match covers the order's line items.",
        remediation="Create a match for these products, then re-run matching.",
    ),
    "E-1002": ErrorCode(
        code="E-1002",
        category=ErrorCategory.ROUTING,
        title="Partial Match",
        message_template="Some line items have no match: {unmatched}.",
        remediation="Create single-item matches for the listed products, or one match for the full set.",
    ),
    "E-1003": ErrorCode(
        code="E-1003",
        category=ErrorCategory.ROUTING,
        title="No Link Matched",
        message_template="No link filter matched order {order_id}.",
        remediation="Adjust link filters or add cart items manually, then place the order.",
    ),
    "E-1004": ErrorCode(
        code="E-1004",
        category=ErrorCategory.ROUTING,
        title="Duplicate Match",
        message_template="A match with the same input combination already exists.",
        remediation="Update the existing match or use overwrite.",
    ),
    # Validation errors (E-2xxx)
    "E-2001": ErrorCode(
        code="E-2001",
        category=ErrorCategory.VALIDATION,
        title="Invalid Webhook Payload",
        message_template="Webhook payload from {platform} is invalid: {reason}.",
        remediation="Check the platform's webhook topic configuration.",
    ),
    "E-2002": ErrorCode(
        code="E-2002",
        category=ErrorCategory.VALIDATION,
        title="Invalid Link Filter",
        message_template="Link filter is invalid: {reason}.",
        remediation="Use supported operators (equals, in, contains, gt, AND/OR/NOT, some/every/none).",
    ),
    "E-2003": ErrorCode(
        code="E-2003",
        category=ErrorCategory.VALIDATION,
        title="Invalid Request",
        message_template="{reason}",
        remediation="Correct the request and retry.",
    ),
    # Adapter errors (E-3xxx)
    "E-3001": ErrorCode(
        code="E-3001",
        category=ErrorCategory.ADAPTER,
        title="Adapter Not Found",
        message_template="No adapter provides '{operation}' for '{target}'.",
        remediation="Register the adapter module or set the operation URL on the platform.",
    ),
    "E-3002": ErrorCode(
        code="E-3002",
        category=ErrorCategory.ADAPTER,
        title="Adapter HTTP Error",
        message_template="Adapter endpoint returned HTTP {status}.",
        remediation="Check the adapter endpoint logs and platform credentials.",
        is_retryable=True,
    ),
    "E-3003": ErrorCode(
        code="E-3003",
        category=ErrorCategory.ADAPTER,
        title="Adapter Execution Error",
        message_template="Error executing {operation} for platform {target}: {cause}",
        remediation="Check platform credentials and the adapter's error output.",
        is_retryable=True,
    ),
    "E-3004": ErrorCode(
        code="E-3004",
        category=ErrorCategory.ADAPTER,
        title="Order Placement Error",
        message_template="Placement failed for {count} cart item(s).",
        remediation="Verify on the channel whether the purchase exists before re-placing.",
    ),
    # System errors (E-4xxx)
    "E-4001": ErrorCode(
        code="E-4001",
        category=ErrorCategory.SYSTEM,
        title="Unexpected Error",
        message_template="An unexpected error occurred: {error}.",
        remediation="Check the server logs.",
    ),
    "E-4002": ErrorCode(
        code="E-4002",
        category=ErrorCategory.SYSTEM,
        title="Invalid State Transition",
        message_template="Cannot move order from {current} to {target}.",
        remediation="Check the order's current status before retrying.",
    ),
    # Security errors (E-5xxx)
    "E-5001": ErrorCode(
        code="E-5001",
        category=ErrorCategory.SECURITY,
        title="Missing Webhook Signature",
        message_template="Webhook from {platform} is missing the {header} header.",
        remediation="Configure the platform to sign webhooks.",
    ),
    "E-5002": ErrorCode(
        code="E-5002",
        category=ErrorCategory.SECURITY,
        title="Invalid Webhook Signature",
        message_template="Webhook signature from {platform} did not verify.",
        remediation="Check the webhook secret configured on the platform.",
    ),
}


def get_error(code: str) -> ErrorCode | None:
    """Get error definition by code.

    Args:
        code: Error code in E-XXXX format.

    Returns:
        ErrorCode if found, None otherwise.
    """
    return ERROR_REGISTRY.get(code)


def get_errors_by_category(category: ErrorCategory) -> list[ErrorCode]:
    """Get all errors in a category.

    Args:
        category: The error category to filter by.

    Returns:
        List of ErrorCode objects in the specified category.
    """
    return [e for e in ERROR_REGISTRY.values() if e.category == category]
