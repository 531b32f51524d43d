"""
Pagination Utility Module

Provides standardized pagination helpers for the listing endpoints.
"""
from typing import List, Optional, Any, Tuple
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

MAX_PAGE_SIZE = 100


def clamp_page(page: int, page_size: int) -> Tuple[int, int]:
    """Ensure valid page and page_size (page_size capped at MAX_PAGE_SIZE)"""
    return max(1, page), max(1, min(MAX_PAGE_SIZE, page_size))


async def paginate(
    db: AsyncSession,
    query: Select,
    page: int = 1,
    page_size: int = 10,
    count_query: Optional[Select] = None
) -> Tuple[List[Any], int]:
    """
    Apply pagination to a SQLAlchemy query.

    Args:
        db: Database session
        query: Base SQLAlchemy query
        page: Page number (1-indexed)
        page_size: Items per page
        count_query: Optional custom count query

    Returns:
        (items of the requested page, total count)
    """
    page, page_size = clamp_page(page, page_size)
    offset = (page - 1) * page_size

    if count_query is None:
        count_query = select(func.count()).select_from(query.order_by(None).subquery())
    count_result = await db.execute(count_query)
    total = count_result.scalar() or 0

    result = await db.execute(query.offset(offset).limit(page_size))
    items = list(result.scalars().all())

    return items, total


def create_paginated_response(
    items: List[Any],
    total: int,
    page: int,
    page_size: int
) -> dict:
    """
    Create a paginated response dictionary.

    Args:
        items: List of items for current page
        total: Total count of all items
        page: Current page number
        page_size: Items per page

    Returns:
        Paginated response dictionary
    """
    page, page_size = clamp_page(page, page_size)
    total_pages = (total + page_size - 1) // page_size if total > 0 else 1

    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_previous": page > 1
    }
