"""Shared sorting utilities for repository queries."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import asc, desc
from sqlalchemy.orm import Query

from woofadaar.core.database import Base


def apply_order_by(
    query: Query,  # type: ignore[type-arg]
    model: type[Base],
    order_by: str | None,
    default_field: str = "created_at",
    default_direction: str = "desc",
    allowed_fields: Iterable[str] | None = None,
) -> Query:  # type: ignore[type-arg]
    """Apply ordering to a SQLAlchemy query.

    Args:
        query: The SQLAlchemy query to sort.
        model: The SQLAlchemy model class.
        order_by: Sort string in "field:direction" format (e.g. "code:asc").
            Unknown fields and directions fall back to the defaults.
        default_field: Default column to sort by.
        default_direction: Default sort direction ("asc" or "desc").
        allowed_fields: Optional whitelist of sortable columns.

    Returns:
        The query with ordering applied.
    """
    field = default_field
    direction = default_direction

    if order_by:
        candidate_field, _, candidate_direction = order_by.partition(":")
        allowed = set(allowed_fields) if allowed_fields is not None else None

        if hasattr(model, candidate_field) and (allowed is None or candidate_field in allowed):
            field = candidate_field
            direction = candidate_direction if candidate_direction in ("asc", "desc") else "asc"

    column = getattr(model, field)
    order_func = asc if direction == "asc" else desc
    return query.order_by(order_func(column))
