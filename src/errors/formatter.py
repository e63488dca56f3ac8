"""Error formatting and grouping utilities.

This module provides:
- OrderRelayError exception class for application errors
- Error formatting for operator display
- Error grouping to combine duplicates across orders

Errors built from a template with an integer ``count`` (e.g. E-3004,
"Placement failed for {count} cart item(s).") keep the count in
``details``; grouping merges them per code, sums the counts and renders
the message again, so a bulk run reports one line with the total.
"""

from dataclasses import dataclass, field

from src.errors.registry import get_error


@dataclass
class OrderRelayError(Exception):
    """Application error with code, message, and context.

    Attributes:
        code: Error code in E-XXXX format.
        message: Human-readable error message.
        remediation: Action the operator should take to resolve.
        order_ids: Affected order identifiers.
        is_retryable: Whether the operation can be retried without changes.
        details: Additional context dictionary.
    """

    code: str
    message: str
    remediation: str
    order_ids: list[str] = field(default_factory=list)
    is_retryable: bool = False
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        """Return string representation of the error."""
        return f"{self.code}: {self.message}"

    @classmethod
    def from_code(cls, code: str, **kwargs: object) -> "OrderRelayError":
        """Create error from registry code with context substitution.

        Args:
            code: Error code in E-XXXX format.
            **kwargs: Context values for message template substitution.
                Special keys 'order_ids' and 'details' populate the
                matching fields instead of the message.

        Returns:
            OrderRelayError instance with formatted message.
        """
        order_ids = kwargs.get("order_ids", [])
        if not isinstance(order_ids, list):
            order_ids = []
        details = kwargs.get("details", {})
        if not isinstance(details, dict):
            details = {}
        details = dict(details)
        count = kwargs.get("count")
        if isinstance(count, int) and not isinstance(count, bool):
            details.setdefault("count", count)

        error_def = get_error(code)
        if not error_def:
            return cls(
                code=code,
                message=f"Unknown error: {code}",
                remediation="Check the server logs.",
                order_ids=order_ids,
                details=details,
            )

        message = error_def.message_template
        try:
            template_kwargs = {
                k: v for k, v in kwargs.items() if k not in ("order_ids", "details")
            }
            message = message.format(**template_kwargs)
        except KeyError:
            # Keep template if some placeholders are missing
            pass

        return cls(
            code=error_def.code,
            message=message,
            remediation=error_def.remediation,
            is_retryable=error_def.is_retryable,
            order_ids=order_ids,
            details=details,
        )


def format_error(error: OrderRelayError, include_remediation: bool = True) -> str:
    """Format error for display to an operator.

    Args:
        error: The OrderRelayError to format.
        include_remediation: Whether to include remediation steps.

    Returns:
        Multi-line formatted string.
    """
    lines = [f"{error.code}: {error.message}"]

    if error.order_ids:
        if len(error.order_ids) == 1:
            lines.append(f"  Order: {error.order_ids[0]}")
        else:
            ids_str = ", ".join(error.order_ids[:10])
            if len(error.order_ids) > 10:
                ids_str += f" (and {len(error.order_ids) - 10} more)"
            lines.append(f"  Affected orders: {ids_str}")

    if include_remediation:
        lines.append(f"  Action: {error.remediation}")

    return "\n".join(lines)


def _count(error: OrderRelayError) -> int | None:
    count = error.details.get("count")
    if isinstance(count, int) and not isinstance(count, bool):
        return count
    return None


def _render(error: OrderRelayError) -> str:
    error_def = get_error(error.code)
    if not error_def:
        return error.message
    try:
        return error_def.message_template.format(**error.details)
    except (KeyError, IndexError):
        return error.message


def group_errors(errors: list[OrderRelayError]) -> list[OrderRelayError]:
    """Group errors by code and message, combining order ids.

    Counted errors (``details["count"]``) group by code alone; their counts
    are summed and the message is rendered again from the registry
    template with the total.

    Args:
        errors: List of OrderRelayError objects to group.

    Returns:
        List of grouped errors, order ids deduplicated and sorted.
    """
    groups: dict[str, OrderRelayError] = {}

    for error in errors:
        count = _count(error)
        key = error.code if count is not None else f"{error.code}|{error.message}"
        if key in groups:
            grouped = groups[key]
            grouped.order_ids.extend(error.order_ids)
            if count is not None:
                grouped.details["count"] += count
        else:
            groups[key] = OrderRelayError(
                code=error.code,
                message=error.message,
                remediation=error.remediation,
                order_ids=list(error.order_ids),
                is_retryable=error.is_retryable,
                details=error.details.copy(),
            )

    result = list(groups.values())
    for error in result:
        error.order_ids = sorted(set(error.order_ids))
        if _count(error) is not None:
            error.message = _render(error)
    return result


def format_error_summary(errors: list[OrderRelayError]) -> str:
    """Format a list of errors for display, grouping duplicates.

    Args:
        errors: List of OrderRelayError objects.

    Returns:
        Operator-facing summary.
    """
    if not errors:
        return "No errors."

    grouped = group_errors(errors)

    if len(grouped) == 1:
        return format_error(grouped[0])

    lines = [f"{len(grouped)} error type(s) found:\n"]
    for i, error in enumerate(grouped, 1):
        lines.append(f"{i}. {format_error(error)}")
        lines.append("")
    return "\n".join(lines)
