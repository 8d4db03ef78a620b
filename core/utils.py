"""Shared utilities."""

import json
from datetime import date
from decimal import Decimal
from typing import Any

from flask import Response


def json_response(data: dict[str, Any] | list[Any], status: int = 200) -> Response:
    """Create a Flask JSON response."""
    return Response(json.dumps(data, default=_json_default), status=status, mimetype="application/json")


def to_dict(obj: Any, exclude: tuple[str, ...] = ()) -> dict[str, Any]:
    """Serialize SQLAlchemy model to dictionary."""
    result: dict[str, Any] = {}
    for c in obj.__table__.columns:
        if c.name in exclude:
            continue
        value = getattr(obj, c.name)
        if isinstance(value, (date, Decimal)):
            value = _json_default(value)
        result[c.name] = value
    return result


def parse_decimal(value: Any) -> Decimal | None:
    """Parse a user-supplied amount, None when missing or not a number."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value))
    except ArithmeticError:
        return None
    return amount if amount.is_finite() else None


def _json_default(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
