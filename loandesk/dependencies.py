"""Shared FastAPI dependencies and response helpers."""
from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import Query

from loandesk.crud import DEFAULT_PAGE_LIMIT, ListFilters, PageResult
from loandesk.schemas import Envelope


def ok(message: str, data: Any = None) -> Envelope:
    """Wrap ``data`` in the success envelope every ledger route returns."""
    return Envelope(message=message, data=data if data is not None else [])


def paged(message: str, page: PageResult, items: list[Any]) -> Envelope:
    payload = {
        "items": items,
        "pagination": {
            "total": page.total,
            "page": page.page,
            "limit": page.limit,
            "total_pages": page.total_pages,
        },
    }
    payload.update(page.extra)
    return ok(message, payload)


def list_filters(
    product_type: str | None = Query(None),
    advisor_name: str | None = Query(None),
    client_name: str | None = Query(None),
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1),
) -> ListFilters:
    return ListFilters(
        product_type=product_type,
        advisor_name=advisor_name,
        client_name=client_name,
        from_date=from_date,
        to_date=to_date,
        page=page,
        limit=limit,
    )
