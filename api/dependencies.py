"""
api/dependencies.py -- Request-body dependencies for the route layer.

json_body() parses the raw JSON body; validated_body(kind) additionally runs
the app's FieldValidator and hands the handler a normalized dict keyed by wire
(camelCase) names. Declare these AFTER the auth/role dependency in a route
signature so an unauthenticated or unauthorized caller never learns anything
about field rules.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import Request

from core.errors import ValidationError
from core.validation import FieldValidator, SchemaKind


async def json_body(request: Request) -> Any:
    """Return the decoded JSON body, or raise a 400 ValidationError."""
    try:
        return await request.json()
    except ValueError:
        raise ValidationError("body", "type", "Request body must be valid JSON") from None


def validated_body(kind: SchemaKind, partial: bool = False) -> Callable[[Request], Awaitable[dict]]:
    """Build a dependency returning the body validated against kind's schema."""

    async def dependency(request: Request) -> dict:
        raw = await json_body(request)
        validator: FieldValidator = request.app.state.validator
        return validator.validate(raw, kind, partial=partial)

    return dependency
