"""Shared pagination and name filtering for list endpoints.

Pages are 0-based. A page is fetched as ``limit + 1`` rows starting at
``page * limit``; the extra row only tells us whether ``more`` exists, so no
COUNT query is needed.

Name filters: ``None``, ``""`` or ``"*"`` match everything, ``"Foo*"``
matches names starting with ``Foo`` (case-sensitive), anything else must
match exactly.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, List, Optional, TypeVar

from sqlalchemy import func
from sqlalchemy.orm import Query

from pizza_service.core.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from pizza_service.core.errors import ValidationError

T = TypeVar("T")

WILDCARD = "*"


@dataclass
class Page(Generic[T]):
    rows: List[T]
    page: int
    limit: int
    more: bool


def normalize_paging(page: Optional[int], limit: Optional[int]) -> tuple[int, int]:
    page = 0 if page is None else int(page)
    limit = DEFAULT_PAGE_LIMIT if limit is None else int(limit)
    if page < 0:
        raise ValidationError("page must be zero or greater")
    if limit < 1 or limit > MAX_PAGE_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_LIMIT}")
    return page, limit


def _parse_filter(name_filter: Optional[str]) -> tuple[str, Optional[str]]:
    """Return ``("all" | "prefix" | "exact", value)``."""
    if name_filter is None:
        return "all", None
    value = name_filter.strip()
    if not value or value == WILDCARD:
        return "all", None
    if value.endswith(WILDCARD):
        return "prefix", value.rstrip(WILDCARD)
    return "exact", value


def matches_name_filter(name: str, name_filter: Optional[str]) -> bool:
    mode, value = _parse_filter(name_filter)
    if mode == "all":
        return True
    if mode == "prefix":
        return (name or "").startswith(value)
    return name == value


def apply_name_filter(query: Query, column, name_filter: Optional[str]) -> Query:
    mode, value = _parse_filter(name_filter)
    if mode == "all":
        return query
    if mode == "prefix":
        # substr comparison instead of LIKE: LIKE is case-insensitive on SQLite
        return query.filter(func.substr(column, 1, len(value)) == value)
    return query.filter(column == value)


def paginate(query: Query, page: Optional[int] = None, limit: Optional[int] = None) -> Page:
    """``query`` must already carry a stable ``order_by``."""
    page, limit = normalize_paging(page, limit)
    rows = query.offset(page * limit).limit(limit + 1).all()
    more = len(rows) > limit
    return Page(rows=rows[:limit], page=page, limit=limit, more=more)
