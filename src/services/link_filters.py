"""Where-clause predicates for routing links.

Links carry a JSON filter evaluated in memory against an Order and its
relations. The grammar follows the usual ORM "where" shape:

    {"AND": [...], "OR": [...], "NOT": {...} | [...],
     "<column>": <value> | {"equals": v, "not": v, "in": [...], "notIn": [...],
                            "lt": v, "lte": v, "gt": v, "gte": v,
                            "contains": s, "startsWith": s, "endsWith": s,
                            "mode": "insensitive"},
     "<to-one relation>": {<nested where>},
     "<to-many relation>": {"some" | "every" | "none": {<nested where>}}}

Field names are the model's snake_case attributes. An empty filter
matches every order.

Example:
    validate_filter({"country": {"in": ["US", "CA"]}})
    if evaluate_filter(link.filters, order):
        ...
"""

from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import inspect as sa_inspect

from src.db.models import Order
from src.errors.domain import LinkFilterError

LOGICAL_OPERATORS = frozenset({"AND", "OR", "NOT"})
SCALAR_OPERATORS = frozenset({
    "equals", "not", "in", "notIn", "lt", "lte", "gt", "gte",
    "contains", "startsWith", "endsWith", "mode",
})
LIST_OPERATORS = frozenset({"some", "every", "none"})


def _fields(model: type) -> tuple[set[str], dict[str, Any]]:
    mapper = sa_inspect(model)
    columns = {attr.key for attr in mapper.column_attrs}
    relations = {rel.key: rel for rel in mapper.relationships}
    return columns, relations


def _as_list(value: Any, where: str) -> list:
    if isinstance(value, dict):
        return [value]
    if isinstance(value, list):
        return value
    raise LinkFilterError(f"{where} expects an object or a list of objects")


# =========================================================================
# Validation
# =========================================================================


def validate_filter(where: Any, model: type = Order) -> None:
    """Check a filter against the model's fields before it is saved.

    Raises:
        LinkFilterError: Unknown field, unknown operator, or bad shape.
    """
    if where is None:
        return
    if not isinstance(where, dict):
        raise LinkFilterError("filter must be an object")

    columns, relations = _fields(model)
    for key, value in where.items():
        if key in LOGICAL_OPERATORS:
            for clause in _as_list(value, key):
                validate_filter(clause, model)
        elif key in columns:
            _validate_scalar(key, value)
        elif key in relations:
            rel = relations[key]
            target = rel.mapper.class_
            if not isinstance(value, dict):
                raise LinkFilterError(f"'{key}' expects a nested filter object")
            if rel.uselist:
                unknown = set(value) - LIST_OPERATORS
                if unknown:
                    raise LinkFilterError(
                        f"'{key}' is a list; use some/every/none (got {sorted(unknown)})"
                    )
                for nested in value.values():
                    validate_filter(nested, target)
            else:
                validate_filter(value, target)
        else:
            raise LinkFilterError(f"unknown field '{key}' on {model.__name__}")


def _validate_scalar(field: str, condition: Any) -> None:
    if not isinstance(condition, dict):
        return
    unknown = set(condition) - SCALAR_OPERATORS
    if unknown:
        raise LinkFilterError(f"unknown operator(s) {sorted(unknown)} for '{field}'")
    for op in ("in", "notIn"):
        if op in condition and not isinstance(condition[op], list):
            raise LinkFilterError(f"'{op}' on '{field}' expects a list")
    if "mode" in condition and condition["mode"] not in ("insensitive", "default"):
        raise LinkFilterError(f"unsupported mode {condition['mode']!r} for '{field}'")
    if isinstance(condition.get("not"), dict):
        _validate_scalar(field, condition["not"])


# =========================================================================
# Evaluation
# =========================================================================


def evaluate_filter(where: dict[str, Any] | None, obj: Any) -> bool:
    """Return True if ``obj`` satisfies every clause of ``where``.

    Callers validate filters on save; an invalid stored filter still
    raises LinkFilterError here rather than silently matching.
    """
    if not where:
        return True

    _, relations = _fields(type(obj))
    for key, value in where.items():
        if key == "AND":
            if not all(evaluate_filter(c, obj) for c in _as_list(value, key)):
                return False
        elif key == "OR":
            if not any(evaluate_filter(c, obj) for c in _as_list(value, key)):
                return False
        elif key == "NOT":
            if any(evaluate_filter(c, obj) for c in _as_list(value, key)):
                return False
        elif key in relations:
            if not _evaluate_relation(relations[key], value, getattr(obj, key)):
                return False
        elif hasattr(obj, key):
            if not _evaluate_scalar(getattr(obj, key), value):
                return False
        else:
            raise LinkFilterError(f"unknown field '{key}' on {type(obj).__name__}")
    return True


def _evaluate_relation(rel: Any, condition: dict[str, Any], related: Any) -> bool:
    if not rel.uselist:
        if related is None:
            return False
        return evaluate_filter(condition, related)

    items = list(related or [])
    for op, nested in condition.items():
        if op == "some":
            ok = any(evaluate_filter(nested, item) for item in items)
        elif op == "every":
            ok = all(evaluate_filter(nested, item) for item in items)
        elif op == "none":
            ok = not any(evaluate_filter(nested, item) for item in items)
        else:
            raise LinkFilterError(f"unknown list operator '{op}'")
        if not ok:
            return False
    return True


def _coerce(actual: Any, expected: Any) -> tuple[Any, Any]:
    """Make a stored value and a JSON operand comparable."""
    if isinstance(actual, Decimal) and not isinstance(expected, (bool, type(None))):
        try:
            return actual, Decimal(str(expected))
        except InvalidOperation:
            return str(actual), str(expected)
    if isinstance(actual, bool) or isinstance(expected, bool):
        return actual, expected
    if isinstance(actual, (int, float)) and isinstance(expected, str):
        try:
            return actual, type(actual)(expected)
        except ValueError:
            return str(actual), expected
    if isinstance(actual, str) and isinstance(expected, (int, float, Decimal)):
        return actual, str(expected)
    return actual, expected


def _fold(value: Any, insensitive: bool) -> Any:
    if insensitive and isinstance(value, str):
        return value.lower()
    return value


def _equals(actual: Any, expected: Any, insensitive: bool) -> bool:
    actual, expected = _coerce(actual, expected)
    return _fold(actual, insensitive) == _fold(expected, insensitive)


def _compare(actual: Any, expected: Any, op: str) -> bool:
    if actual is None or expected is None:
        return False
    actual, expected = _coerce(actual, expected)
    try:
        if op == "lt":
            return actual < expected
        if op == "lte":
            return actual <= expected
        if op == "gt":
            return actual > expected
        return actual >= expected
    except TypeError:
        return False


def _evaluate_scalar(actual: Any, condition: Any) -> bool:
    if not isinstance(condition, dict):
        return _equals(actual, condition, insensitive=False)

    insensitive = condition.get("mode") == "insensitive"
    for op, expected in condition.items():
        if op == "mode":
            continue
        if op == "equals":
            ok = _equals(actual, expected, insensitive)
        elif op == "not":
            if isinstance(expected, dict):
                ok = not _evaluate_scalar(actual, expected)
            else:
                ok = not _equals(actual, expected, insensitive)
        elif op == "in":
            ok = any(_equals(actual, e, insensitive) for e in expected)
        elif op == "notIn":
            ok = not any(_equals(actual, e, insensitive) for e in expected)
        elif op in ("lt", "lte", "gt", "gte"):
            ok = _compare(actual, expected, op)
        elif op in ("contains", "startsWith", "endsWith"):
            if actual is None:
                return False
            haystack = _fold(str(actual), insensitive)
            needle = _fold(str(expected), insensitive)
            if op == "contains":
                ok = needle in haystack
            elif op == "startsWith":
                ok = haystack.startswith(needle)
            else:
                ok = haystack.endswith(needle)
        else:
            raise LinkFilterError(f"unknown operator '{op}'")
        if not ok:
            return False
    return True
