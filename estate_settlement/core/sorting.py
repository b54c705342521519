"""Sorting helper for list endpoints backed by SQLAlchemy queries."""

from __future__ import annotations

from sqlalchemy import asc, desc
from sqlalchemy.orm import Query

from estate_settlement.core.database import Base


def apply_order_by(
    query: Query,  # type: ignore[type-arg]
    model: type[Base],
    order_by: str | None,
    default_field: str = "created_at",
    default_direction: str = "desc",
) -> Query:  # type: ignore[type-arg]
    """Order a query by a ``"field:direction"`` string.

    Unknown columns fall back to ``default_field``; a missing or invalid
    direction falls back to ``asc`` or ``default_direction`` respectively.
    """
    field = default_field
    direction = default_direction

    if order_by:
        candidate_field, _, candidate_direction = order_by.partition(":")
        if hasattr(model, candidate_field):
            field = candidate_field
            if not candidate_direction:
                direction = "asc"
            elif candidate_direction in ("asc", "desc"):
                direction = candidate_direction

    column = getattr(model, field)
    order_func = asc if direction == "asc" else desc
    return query.order_by(order_func(column))
