"""Database access helpers shared by the ledgers."""
from __future__ import annotations

import logging
import math
import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Iterator, Sequence, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from loandesk.database import unit_of_work
from loandesk.errors import ConflictError, NotFoundError
from loandesk.models import Advisor, Banker, Lead, ProcessedBy

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = int(os.getenv("LOANDESK_DEFAULT_PAGE_LIMIT", "1000"))

T = TypeVar("T")


@dataclass
class ListFilters:
    """Query filters accepted by the ledger list screens."""

    product_type: str | None = None
    advisor_name: str | None = None
    client_name: str | None = None
    from_date: date | None = None
    to_date: date | None = None
    page: int = 1
    limit: int = DEFAULT_PAGE_LIMIT

    def __post_init__(self) -> None:
        self.product_type = (self.product_type or "").strip() or None
        self.advisor_name = (self.advisor_name or "").strip() or None
        self.client_name = (self.client_name or "").strip() or None
        self.page = max(int(self.page or 1), 1)
        self.limit = max(int(self.limit or DEFAULT_PAGE_LIMIT), 1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class PageResult:
    items: list[Any]
    total: int
    page: int
    limit: int
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def total_pages(self) -> int:
        return max(math.ceil(self.total / self.limit), 1) if self.limit else 1


def is_unique_violation(exc: IntegrityError) -> bool:
    code = getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "sqlstate", None)
    if code:
        return code == "23505"
    text = str(exc.orig).lower()
    return "unique" in text or "duplicate" in text


@contextmanager
def ledger_write(db: Session, label: str) -> Iterator[Session]:
    """Run a ledger mutation as one unit of work.

    Lost races on a versioned aggregate and unique-key collisions surface as
    ``ConflictError`` so the caller can retry against fresh state. Any other
    constraint failure propagates unchanged.
    """
    try:
        with unit_of_work(db):
            yield db
    except StaleDataError as exc:
        logger.warning("%s lost a concurrent update: %s", label, exc)
        raise ConflictError(f"{label}: record was modified concurrently, please retry") from exc
    except IntegrityError as exc:
        if not is_unique_violation(exc):
            logger.error("%s rejected by a database constraint: %s", label, exc.orig)
            raise
        logger.warning("%s collided with an existing record: %s", label, exc.orig)
        raise ConflictError(f"{label}: conflicts with an existing record") from exc


def lock_for_update(db: Session, model: type[T], record_id: int) -> T | None:
    """Load ``record_id`` fresh from the database with a row lock where supported."""
    stmt = (
        select(model)
        .where(model.id == record_id)  # type: ignore[attr-defined]
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.execute(stmt).scalars().first()


def get_lead(db: Session, lead_id: int) -> Lead:
    lead = db.get(Lead, lead_id)
    if lead is None:
        raise NotFoundError("Lead not found")
    return lead


def check_processed_by(db: Session, processed_by_id: int | None) -> None:
    if processed_by_id is not None and db.get(ProcessedBy, processed_by_id) is None:
        raise NotFoundError("Processed by not found")


def apply_date_range(stmt: Select, column, filters: ListFilters) -> Select:
    if filters.from_date:
        stmt = stmt.where(column >= datetime.combine(filters.from_date, time.min))
    if filters.to_date:
        stmt = stmt.where(column <= datetime.combine(filters.to_date, time.max))
    return stmt


def paginate(db: Session, stmt: Select, filters: ListFilters) -> PageResult:
    """Count ``stmt`` then fetch the requested page of it."""
    total = db.execute(select(func.count()).select_from(stmt.order_by(None).subquery())).scalar_one()
    rows = db.execute(stmt.offset(filters.offset).limit(filters.limit)).scalars().all()
    return PageResult(items=list(rows), total=int(total or 0), page=filters.page, limit=filters.limit)


def disbursed_leads(db: Session, *, exclude_final_payout: bool = False, exclude_final_invoice: bool = False) -> list[Lead]:
    """Leads whose latest feedback entry reports the loan as disbursed."""
    stmt = select(Lead).options(selectinload(Lead.history)).order_by(Lead.created_at.desc(), Lead.id.desc())
    if exclude_final_payout:
        stmt = stmt.where(Lead.final_payout.is_(False))
    if exclude_final_invoice:
        stmt = stmt.where(Lead.final_invoice.is_(False))
    leads = db.execute(stmt).scalars().all()
    return [lead for lead in leads if lead.is_disbursed]


def lead_options(leads: Sequence[Lead]) -> list[dict[str, Any]]:
    return [{"id": lead.id, "display_name": lead.display_name} for lead in leads]


def advisor_name_filter(stmt: Select, advisor_column, filters: ListFilters) -> Select:
    if filters.advisor_name:
        stmt = stmt.join(Advisor, Advisor.id == advisor_column).where(
            Advisor.name.ilike(f"%{filters.advisor_name}%")
        )
    return stmt


def lead_filters(stmt: Select, lead_column, filters: ListFilters) -> Select:
    if filters.product_type or filters.client_name:
        stmt = stmt.join(Lead, Lead.id == lead_column)
        if filters.product_type:
            stmt = stmt.where(Lead.product_type.ilike(f"%{filters.product_type}%"))
        if filters.client_name:
            stmt = stmt.where(Lead.client_name.ilike(f"%{filters.client_name}%"))
    return stmt


BANKER_SNAPSHOT_FIELDS = (
    "bank_name",
    "banker_name",
    "banker_email",
    "banker_designation",
    "banker_mobile",
    "state_name",
    "city_name",
)


def fill_banker_snapshot(db: Session, values: dict[str, Any]) -> dict[str, Any]:
    """Copy display fields from the referenced banker into ``values`` where blank."""
    banker_id = values.get("banker_id")
    if not banker_id:
        return values
    banker = db.get(Banker, banker_id)
    if banker is None:
        raise NotFoundError("Banker not found")
    source = {
        "bank_name": banker.bank.name if banker.bank else None,
        "banker_name": banker.banker_name,
        "banker_email": banker.email,
        "banker_designation": banker.designation,
        "banker_mobile": banker.mobile,
        "state_name": banker.state_name,
        "city_name": banker.city.name if banker.city else None,
    }
    for key in BANKER_SNAPSHOT_FIELDS:
        if not values.get(key):
            values[key] = source[key]
    return values


def apply_banker_changes(db: Session, record: Any, changes: dict[str, Any]) -> None:
    """Update the banker snapshot on a payout or invoice from a partial payload."""
    keys = ("banker_id", *BANKER_SNAPSHOT_FIELDS)
    if not any(key in changes for key in keys):
        return
    snapshot = {key: changes.get(key, getattr(record, key)) for key in keys}
    if "banker_id" in changes and changes["banker_id"] != record.banker_id:
        # new banker: stale display fields are refilled unless sent explicitly
        for key in BANKER_SNAPSHOT_FIELDS:
            snapshot[key] = changes.get(key)
    fill_banker_snapshot(db, snapshot)
    for key, value in snapshot.items():
        setattr(record, key, value)


def banker_details(lead: Lead | None) -> dict[str, Any] | None:
    banker = lead.banker if lead is not None else None
    if banker is None:
        return None
    return {
        "id": banker.id,
        "banker_name": banker.banker_name,
        "designation": banker.designation,
        "mobile": banker.mobile,
        "email": banker.email,
        "product": banker.product,
        "state_name": banker.state_name,
        "bank": banker.bank.name if banker.bank else None,
        "city": banker.city.name if banker.city else None,
    }

