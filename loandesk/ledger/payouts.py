"""Advisor payout ledger: one aggregate per (lead, advisor) plus its payables.

Every mutation runs inside ``ledger_write`` and checks its rules against a
freshly locked aggregate before anything is written. A rejected operation
therefore leaves both the aggregate and its payables untouched.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from loandesk import crud
from loandesk.auth import Actor
from loandesk.core.fees import FeeBreakdown, compute_payout_figures, quantize_money, validate_money
from loandesk.errors import BusinessRuleError, ConflictError, NotFoundError, ValidationError
from loandesk.ledger.status import refresh_final_payout
from loandesk.models import PAYABLE_AGAINST_ENUM, Advisor, AdvisorPayout, Lead, Payable
from loandesk.schemas import AdvisorPayoutCreate, AdvisorPayoutUpdate, PayableCreate, PayableUpdate

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# Fields whose change forces the payout figures to be re-derived
_FEE_INPUTS = {
    "disbursal_amount",
    "payout_percent",
    "payout_amount",
    "tds_percent",
    "tds_amount",
    "gst_applicable",
    "gst_percent",
}


# --- Aggregate helpers ------------------------------------------------------

def paid_totals(db: Session, payout_id: int) -> dict[str, Decimal]:
    """Sum recorded payments for a payout, keyed by ``payment_against``."""
    stmt = (
        select(Payable.payment_against, func.coalesce(func.sum(Payable.paid_amount), 0))
        .where(Payable.payout_id == payout_id)
        .group_by(Payable.payment_against)
    )
    totals = {against: ZERO for against in PAYABLE_AGAINST_ENUM}
    for against, total in db.execute(stmt).all():
        totals[against] = quantize_money(Decimal(str(total or 0)))
    return totals


def _bucket_remaining(payout: AdvisorPayout, payment_against: str) -> Decimal:
    if payment_against == "payableAmount":
        return Decimal(payout.remaining_payable_amount or 0)
    return Decimal(payout.remaining_gst_amount or 0)


def _set_bucket_remaining(payout: AdvisorPayout, payment_against: str, value: Decimal) -> None:
    value = max(value, ZERO)
    if payment_against == "payableAmount":
        payout.remaining_payable_amount = value
    else:
        payout.remaining_gst_amount = value


def _bucket_label(payment_against: str) -> str:
    return "payable" if payment_against == "payableAmount" else "gst"


def _validate_against(payment_against: str) -> str:
    if payment_against not in PAYABLE_AGAINST_ENUM:
        raise ValidationError("payment_against", "Invalid paymentAgainst value")
    return payment_against


def _apply_figures(payout: AdvisorPayout, figures: FeeBreakdown) -> None:
    payout.disbursal_amount = figures.disbursal_amount
    payout.payout_percent = figures.payout_percent
    payout.payout_amount = figures.payout_amount
    payout.tds_percent = figures.tds_percent
    payout.tds_amount = figures.tds_amount
    payout.gst_percent = figures.gst_percent
    payout.gst_amount = figures.gst_amount
    payout.net_payable_amount = figures.net_amount


def _get_payout(db: Session, payout_id: int, *, lock: bool = False) -> AdvisorPayout:
    payout = crud.lock_for_update(db, AdvisorPayout, payout_id) if lock else db.get(AdvisorPayout, payout_id)
    if payout is None:
        raise NotFoundError("Advisor Payout not found")
    return payout


def _get_payable(db: Session, payable_id: int, *, lock: bool = False) -> Payable:
    payable = crud.lock_for_update(db, Payable, payable_id) if lock else db.get(Payable, payable_id)
    if payable is None:
        raise NotFoundError("Payable not found")
    return payable


# --- Advisor payout aggregate -----------------------------------------------

def create_advisor_payout(db: Session, actor: Actor, payload: AdvisorPayoutCreate) -> AdvisorPayout:
    """Open the payout aggregate for a lead/advisor pair."""
    values = payload.model_dump()

    with crud.ledger_write(db, "Add advisor payout"):
        lead = crud.get_lead(db, payload.lead_id)
        if lead.final_payout:
            raise BusinessRuleError("Lead is already final payout")
        if db.get(Advisor, payload.advisor_id) is None:
            raise NotFoundError("Advisor not found")
        crud.check_processed_by(db, payload.processed_by_id)

        duplicate = db.execute(
            select(AdvisorPayout.id).where(
                AdvisorPayout.lead_id == payload.lead_id,
                AdvisorPayout.advisor_id == payload.advisor_id,
            )
        ).first()
        if duplicate:
            raise ConflictError("Advisor payout already exists for this lead and advisor")

        figures = compute_payout_figures(
            payload.disbursal_amount,
            payload.payout_percent,
            tds_percent=payload.tds_percent,
            gst_percent=payload.gst_percent,
            gst_applicable=payload.gst_applicable,
            payout_amount=payload.payout_amount,
            tds_amount=payload.tds_amount,
        )
        crud.fill_banker_snapshot(db, values)

        payout = AdvisorPayout(
            lead_id=payload.lead_id,
            advisor_id=payload.advisor_id,
            disbursal_date=payload.disbursal_date,
            gst_applicable=payload.gst_applicable,
            invoice_no=payload.invoice_no,
            invoice_date=payload.invoice_date,
            processed_by_id=payload.processed_by_id,
            final_payout=payload.final_payout,
            remarks=payload.remarks,
            banker_id=values.get("banker_id"),
            bank_name=values.get("bank_name"),
            banker_name=values.get("banker_name"),
            banker_email=values.get("banker_email"),
            banker_designation=values.get("banker_designation"),
            banker_mobile=values.get("banker_mobile"),
            state_name=values.get("state_name"),
            city_name=values.get("city_name"),
            remaining_payable_amount=figures.payable_bucket,
            remaining_gst_amount=figures.gst_amount,
            created_by=actor.id,
            updated_by=actor.id,
        )
        _apply_figures(payout, figures)
        db.add(payout)
        db.flush()

        refresh_final_payout(db, payout.lead_id)

    db.refresh(payout)
    logger.info(
        "Advisor payout %s created for lead %s advisor %s: payable %s gst %s",
        payout.id,
        payout.lead_id,
        payout.advisor_id,
        payout.remaining_payable_amount,
        payout.remaining_gst_amount,
    )
    return payout


def edit_advisor_payout(
    db: Session, actor: Actor, payout_id: int, payload: AdvisorPayoutUpdate
) -> AdvisorPayout:
    """Apply a partial update, re-deriving amounts without under-cutting paid history."""
    changes = payload.model_dump(exclude_unset=True)

    with crud.ledger_write(db, "Edit advisor payout"):
        payout = _get_payout(db, payout_id, lock=True)
        crud.get_lead(db, payout.lead_id)
        if "processed_by_id" in changes:
            crud.check_processed_by(db, changes["processed_by_id"])

        if changes.keys() & _FEE_INPUTS:
            gst_applicable = changes.get("gst_applicable")
            if gst_applicable is None:
                gst_applicable = payout.gst_applicable
            figures = compute_payout_figures(
                _merged(changes, "disbursal_amount", payout.disbursal_amount),
                _merged(changes, "payout_percent", payout.payout_percent),
                tds_percent=_merged(changes, "tds_percent", payout.tds_percent),
                gst_percent=_merged(changes, "gst_percent", payout.gst_percent),
                gst_applicable=gst_applicable,
                payout_amount=changes.get("payout_amount"),
                tds_amount=changes.get("tds_amount"),
            )

            paid = paid_totals(db, payout.id)
            if figures.payable_bucket < paid["payableAmount"]:
                raise BusinessRuleError(
                    f"Payable amount ({figures.payable_bucket}) cannot be less than "
                    f"the amount already paid ({paid['payableAmount']})"
                )
            if figures.gst_amount < paid["gstPayment"]:
                raise BusinessRuleError(
                    f"GST amount ({figures.gst_amount}) cannot be less than "
                    f"the GST already paid ({paid['gstPayment']})"
                )

            _apply_figures(payout, figures)
            payout.gst_applicable = bool(gst_applicable)
            payout.remaining_payable_amount = max(figures.payable_bucket - paid["payableAmount"], ZERO)
            payout.remaining_gst_amount = max(figures.gst_amount - paid["gstPayment"], ZERO)

        for key in ("disbursal_date", "invoice_no", "invoice_date", "processed_by_id", "remarks"):
            if key in changes:
                setattr(payout, key, changes[key])
        if changes.get("final_payout") is not None:
            payout.final_payout = changes["final_payout"]
        crud.apply_banker_changes(db, payout, changes)

        payout.updated_by = actor.id
        db.add(payout)

        refresh_final_payout(db, payout.lead_id)

    db.refresh(payout)
    logger.info(
        "Advisor payout %s edited: payout %s remaining payable %s gst %s",
        payout.id,
        payout.payout_amount,
        payout.remaining_payable_amount,
        payout.remaining_gst_amount,
    )
    return payout


def _merged(changes: dict[str, Any], key: str, current: Any) -> Any:
    value = changes.get(key)
    return current if value is None else value


def delete_advisor_payout(db: Session, actor: Actor, payout_id: int) -> None:
    """Delete a payout that has no recorded payments and re-derive the lead flag."""
    with crud.ledger_write(db, "Delete advisor payout"):
        payout = _get_payout(db, payout_id, lock=True)
        has_payables = db.execute(
            select(func.count()).select_from(Payable).where(Payable.payout_id == payout.id)
        ).scalar_one()
        if int(has_payables or 0) > 0:
            raise BusinessRuleError("Cannot delete an advisor payout that has payables.")

        lead_id = payout.lead_id
        db.delete(payout)
        refresh_final_payout(db, lead_id)

    logger.info("Advisor payout %s deleted by %s", payout_id, actor.id)


# --- Advisor payout read paths ----------------------------------------------

def get_advisor_payout(db: Session, payout_id: int) -> AdvisorPayout:
    stmt = (
        select(AdvisorPayout)
        .options(selectinload(AdvisorPayout.advisor), selectinload(AdvisorPayout.lead))
        .where(AdvisorPayout.id == payout_id)
    )
    payout = db.execute(stmt).scalars().first()
    if payout is None:
        raise NotFoundError("Advisor Payout not found")
    return payout


def list_advisor_payouts(db: Session, filters: crud.ListFilters) -> crud.PageResult:
    stmt = select(AdvisorPayout).options(
        selectinload(AdvisorPayout.advisor), selectinload(AdvisorPayout.lead)
    )
    stmt = crud.lead_filters(stmt, AdvisorPayout.lead_id, filters)
    stmt = crud.advisor_name_filter(stmt, AdvisorPayout.advisor_id, filters)
    stmt = crud.apply_date_range(stmt, AdvisorPayout.created_at, filters)
    stmt = stmt.order_by(AdvisorPayout.created_at.desc(), AdvisorPayout.id.desc())
    return crud.paginate(db, stmt, filters)


def disbursed_unpaid_leads(db: Session) -> list[dict[str, Any]]:
    """Disbursed leads still awaiting their final advisor payout."""
    return crud.lead_options(crud.disbursed_leads(db, exclude_final_payout=True))


def leads_with_outstanding_payouts(db: Session) -> list[dict[str, Any]]:
    """Leads with at least one payout that still has a balance to pay."""
    stmt = (
        select(Lead)
        .where(
            Lead.id.in_(
                select(AdvisorPayout.lead_id).where(
                    or_(
                        AdvisorPayout.remaining_payable_amount > 0,
                        AdvisorPayout.remaining_gst_amount > 0,
                    )
                )
            )
        )
        .order_by(Lead.lead_no)
    )
    return crud.lead_options(db.execute(stmt).scalars().all())


def advisors_for_lead_payouts(db: Session, lead_id: int | None) -> list[dict[str, Any]]:
    if not lead_id:
        raise ValidationError("lead_id", "Missing fields: lead_id")
    stmt = (
        select(AdvisorPayout)
        .options(selectinload(AdvisorPayout.advisor))
        .where(AdvisorPayout.lead_id == lead_id)
        .order_by(AdvisorPayout.id)
    )
    return [
        {
            "advisor_payout_id": payout.id,
            "advisor_id": payout.advisor_id,
            "name": payout.advisor.name if payout.advisor else None,
        }
        for payout in db.execute(stmt).scalars().all()
    ]


# --- Payables ---------------------------------------------------------------

def create_payable(db: Session, actor: Actor, payload: PayableCreate) -> Payable:
    """Record a partial payment and draw it down from the payout in one commit."""
    against = _validate_against(payload.payment_against)
    paid_amount = validate_money(payload.paid_amount, "paid_amount")

    with crud.ledger_write(db, "Add payable"):
        payout = _get_payout(db, payload.payout_id, lock=True)
        remaining = _bucket_remaining(payout, against)
        if paid_amount > remaining:
            raise BusinessRuleError(
                f"Paid amount exceeds remaining {_bucket_label(against)} amount ({remaining})"
            )

        payable = Payable(
            payout_id=payout.id,
            lead_id=payout.lead_id,
            advisor_id=payout.advisor_id,
            payment_against=against,
            payable_amount=remaining,
            paid_amount=paid_amount,
            balance_amount=remaining - paid_amount,
            paid_date=payload.paid_date,
            ref_no=payload.ref_no,
            remarks=payload.remarks,
            created_by=actor.id,
            updated_by=actor.id,
        )
        db.add(payable)
        _set_bucket_remaining(payout, against, remaining - paid_amount)
        db.add(payout)

    db.refresh(payable)
    logger.info(
        "Payable %s recorded against payout %s (%s): paid %s, remaining %s",
        payable.id,
        payable.payout_id,
        against,
        paid_amount,
        remaining - paid_amount,
    )
    return payable


def edit_payable(db: Session, actor: Actor, payable_id: int, payload: PayableUpdate) -> Payable:
    """Edit a payment; a changed amount re-applies only its delta to the payout."""
    changes = payload.model_dump(exclude_unset=True)

    with crud.ledger_write(db, "Edit payable"):
        payout = _get_payout(db, _get_payable(db, payable_id).payout_id, lock=True)
        # re-read under the payout lock so the delta starts from committed values
        payable = _get_payable(db, payable_id, lock=True)

        new_paid = changes.get("paid_amount")
        if new_paid is not None:
            new_paid = validate_money(new_paid, "paid_amount")
            old_paid = Decimal(payable.paid_amount)
            if new_paid != old_paid:
                if new_paid > Decimal(payable.payable_amount):
                    raise BusinessRuleError("Paid amount cannot exceed payable amount")
                diff = new_paid - old_paid
                remaining = _bucket_remaining(payout, payable.payment_against)
                if diff > remaining:
                    raise BusinessRuleError(
                        f"Paid amount exceeds remaining {_bucket_label(payable.payment_against)} "
                        f"amount ({remaining})"
                    )
                _set_bucket_remaining(payout, payable.payment_against, remaining - diff)
                payable.paid_amount = new_paid
                payable.balance_amount = max(Decimal(payable.payable_amount) - new_paid, ZERO)
                db.add(payout)

        if changes.get("paid_date") is not None:
            payable.paid_date = changes["paid_date"]
        if "ref_no" in changes:
            payable.ref_no = changes["ref_no"]
        if "remarks" in changes:
            payable.remarks = changes["remarks"]
        payable.updated_by = actor.id
        db.add(payable)

    db.refresh(payable)
    logger.info("Payable %s edited: paid %s", payable.id, payable.paid_amount)
    return payable


def delete_payable(db: Session, actor: Actor, payable_id: int) -> None:
    """Delete a payment and give its amount back to the payout's balance."""
    with crud.ledger_write(db, "Delete payable"):
        payout = _get_payout(db, _get_payable(db, payable_id).payout_id, lock=True)
        payable = _get_payable(db, payable_id, lock=True)

        remaining = _bucket_remaining(payout, payable.payment_against)
        _set_bucket_remaining(payout, payable.payment_against, remaining + Decimal(payable.paid_amount))
        db.add(payout)
        db.delete(payable)

    logger.info("Payable %s deleted by %s", payable_id, actor.id)


def get_payable(db: Session, payable_id: int) -> dict[str, Any]:
    """Payable detail with the bucket total (this payment plus what is still owed)."""
    stmt = (
        select(Payable)
        .options(
            selectinload(Payable.payout),
            selectinload(Payable.advisor),
            selectinload(Payable.lead).selectinload(Lead.banker),
        )
        .where(Payable.id == payable_id)
    )
    payable = db.execute(stmt).scalars().first()
    if payable is None:
        raise NotFoundError("Payable not found")
    if payable.payout is None:
        raise NotFoundError("Advisor Payout not found or deleted")

    total_amount = Decimal(payable.paid_amount or 0) + _bucket_remaining(payable.payout, payable.payment_against)
    return {
        "payable": payable,
        "advisor_display_name": payable.advisor.display_name if payable.advisor else None,
        "banker_details": crud.banker_details(payable.lead),
        "total_amount": total_amount,
    }


def list_payables(db: Session, filters: crud.ListFilters) -> crud.PageResult:
    stmt = select(Payable)
    stmt = crud.lead_filters(stmt, Payable.lead_id, filters)
    stmt = crud.advisor_name_filter(stmt, Payable.advisor_id, filters)
    stmt = crud.apply_date_range(stmt, Payable.created_at, filters)
    stmt = stmt.order_by(Payable.created_at.desc(), Payable.id.desc())
    return crud.paginate(db, stmt, filters)


def advisor_panel_payables(
    db: Session,
    advisor_id: int,
    filters: crud.ListFilters,
    payment_status: str | None = None,
) -> crud.PageResult:
    """The signed-in advisor's own payments, with a Pending/Paid status and totals."""
    stmt = (
        select(Payable)
        .options(selectinload(Payable.lead))
        .where(Payable.advisor_id == advisor_id)
    )
    stmt = crud.lead_filters(stmt, Payable.lead_id, filters)
    stmt = crud.apply_date_range(stmt, Payable.created_at, filters)
    stmt = stmt.order_by(Payable.created_at.desc(), Payable.id.desc())

    rows = []
    for payable in db.execute(stmt).scalars().all():
        status = "Pending" if Decimal(payable.payable_amount) > Decimal(payable.paid_amount) else "Paid"
        rows.append((payable, status))

    if payment_status:
        wanted = payment_status.strip().lower()
        rows = [row for row in rows if row[1].lower() == wanted]

    stats = {
        "total_disbursal": ZERO,
        "total_payout": ZERO,
        "paid_amount": ZERO,
        "pending_amount": ZERO,
    }
    for payable, _status in rows:
        lead_amount = payable.lead.loan_requirement_amount if payable.lead else None
        stats["total_disbursal"] += Decimal(lead_amount or 0)
        stats["total_payout"] += Decimal(payable.payable_amount)
        stats["paid_amount"] += Decimal(payable.paid_amount)
        stats["pending_amount"] += Decimal(payable.payable_amount) - Decimal(payable.paid_amount)

    page_rows = rows[filters.offset : filters.offset + filters.limit]
    return crud.PageResult(
        items=page_rows,
        total=len(rows),
        page=filters.page,
        limit=filters.limit,
        extra={"stats": stats},
    )
