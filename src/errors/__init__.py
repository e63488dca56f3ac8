"""Error handling framework for OrderRelay.

This package provides:
- Error code registry with E-XXXX format codes
- Typed domain exceptions
- Error formatting and grouping utilities

Error categories:
- E-1xxx: Routing errors
- E-2xxx: Validation errors
- E-3xxx: Adapter errors
- E-4xxx: System/internal errors
- E-5xxx: Security errors
"""

from src.errors.registry import (
    ErrorCategory,
    ErrorCode,
    ERROR_REGISTRY,
    get_error,
    get_errors_by_category,
)
from src.errors.formatter import (
    OrderRelayError,
    format_error,
    format_error_summary,
    group_errors,
)

__all__ = [
    # Registry
    "ErrorCode",
    "ErrorCategory",
    "ERROR_REGISTRY",
    "get_error",
    "get_errors_by_category",
    # Formatter
    "OrderRelayError",
    "format_error",
    "group_errors",
    "format_error_summary",
]
