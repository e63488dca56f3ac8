"""Typed domain exceptions for API error mapping.

Routes catch specific exception types to return the right HTTP status;
the lifecycle controller catches the match errors to record a diagnostic
on the order instead of failing the request.

Usage:
    # In service layer
    raise NotFoundError("Order", order_id)

    # In route handler
    try:
        order = service.get_order(order_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
"""


class DomainError(Exception):
    """Base exception for all domain errors."""

    code = "E-4001"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class NotFoundError(DomainError):
    """Resource was not found. Maps to HTTP 404."""

    code = "E-2003"

    def __init__(self, resource_type: str, identifier: str) -> None:
        super().__init__(f"{resource_type} '{identifier}' not found")
        self.resource_type = resource_type
        self.identifier = identifier


class ConflictError(DomainError):
    """Resource conflict (e.g., duplicate). Maps to HTTP 409."""

    code = "E-2003"


class ValidationError(DomainError):
    """Validation failure. Maps to HTTP 400."""

    code = "E-2003"


class MatchError(DomainError):
    """Match resolution could not route the order's line items."""

    code = "E-1001"


class NoMatchFoundError(MatchError):
    """No saved match covers the line items at all."""

    def __init__(self) -> None:
        super().__init__("MATCH_ERROR: No matches found")


class PartialMatchError(MatchError):
    """Per-item fallback left some line items without a rule.

    Attributes:
        unmatched: (product_id, variant_id, quantity) tuples with no match.
    """

    code = "E-1002"

    def __init__(self, unmatched: list[tuple[str, str, int]]) -> None:
        self.unmatched = list(unmatched)
        described = ", ".join(
            f"{product_id}/{variant_id} x{quantity}"
            for product_id, variant_id, quantity in self.unmatched
        )
        super().__init__(f"MATCH_ERROR: Some lineItems not matched ({described})")


class DuplicateMatchError(ConflictError):
    """Another match for the same owner already has this input set."""

    code = "E-1004"

    def __init__(self, existing_match_id: str | None = None) -> None:
        super().__init__("A match with the same input combination already exists.")
        self.existing_match_id = existing_match_id


class LinkFilterError(ValidationError):
    """Link filter uses an unknown field or operator. Maps to HTTP 400."""

    code = "E-2002"

    def __init__(self, reason: str) -> None:
        super().__init__(f"Invalid link filter: {reason}")
        self.reason = reason
