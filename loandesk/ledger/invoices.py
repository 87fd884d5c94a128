"""Invoice ledger: invoices raised against the lender, rolled into one master per lead.

The master keeps running totals across every invoice of the lead and the
balance still to be received. Receivables draw that balance down the same
way payables draw down an advisor payout.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from loandesk import crud
from loandesk.auth import Actor
from loandesk.core.fees import FeeBreakdown, compute_invoice_figures, validate_money
from loandesk.errors import BusinessRuleError, NotFoundError, ValidationError
from loandesk.ledger.status import refresh_final_invoice
from loandesk.models import RECEIVABLE_AGAINST_ENUM, Invoice, InvoiceMaster, Lead, Receivable
from loandesk.schemas import InvoiceCreate, InvoiceUpdate, ReceivableCreate, ReceivableUpdate

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

_FEE_INPUTS = {
    "disbursal_amount",
    "payout_percent",
    "payout_amount",
    "tds_percent",
    "tds_amount",
    "gst_percent",
}


def _master_for_update(db: Session, master_id: int) -> InvoiceMaster:
    master = crud.lock_for_update(db, InvoiceMaster, master_id)
    if master is None:
        raise NotFoundError("Invoice master not found")
    return master


def _master_by_lead(db: Session, lead_id: int) -> InvoiceMaster | None:
    stmt = (
        select(InvoiceMaster)
        .where(InvoiceMaster.lead_id == lead_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.execute(stmt).scalars().first()


def _get_invoice(db: Session, invoice_id: int, *, lock: bool = False) -> Invoice:
    invoice = crud.lock_for_update(db, Invoice, invoice_id) if lock else db.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFoundError("Invoice not found")
    return invoice


def _get_receivable(db: Session, receivable_id: int, *, lock: bool = False) -> Receivable:
    if lock:
        receivable = crud.lock_for_update(db, Receivable, receivable_id)
    else:
        receivable = db.get(Receivable, receivable_id)
    if receivable is None:
        raise NotFoundError("Receivable not found")
    return receivable


def _shift_master(master: InvoiceMaster, receivable: Decimal, gst: Decimal) -> None:
    """Move both the totals and the balances of ``master`` by the given deltas."""
    new_remaining_receivable = Decimal(master.remaining_receivable_amount or 0) + receivable
    new_remaining_gst = Decimal(master.remaining_gst_amount or 0) + gst
    if new_remaining_receivable < 0 or new_remaining_gst < 0:
        raise BusinessRuleError("Received amount exceeds the new invoice total")
    master.invoice_receivable_amount = Decimal(master.invoice_receivable_amount or 0) + receivable
    master.invoice_gst_amount = Decimal(master.invoice_gst_amount or 0) + gst
    master.remaining_receivable_amount = new_remaining_receivable
    master.remaining_gst_amount = new_remaining_gst


def _apply_figures(invoice: Invoice, figures: FeeBreakdown) -> None:
    invoice.disbursal_amount = figures.disbursal_amount
    invoice.payout_percent = figures.payout_percent
    invoice.payout_amount = figures.payout_amount
    invoice.tds_percent = figures.tds_percent
    invoice.tds_amount = figures.tds_amount
    invoice.gst_percent = figures.gst_percent
    invoice.gst_amount = figures.gst_amount
    invoice.net_receivable_amount = figures.net_amount


# --- Invoices ---------------------------------------------------------------

def create_invoice(db: Session, actor: Actor, payload: InvoiceCreate) -> Invoice:
    values = payload.model_dump()

    with crud.ledger_write(db, "Add invoice"):
        lead = crud.get_lead(db, payload.lead_id)
        if lead.final_invoice:
            raise BusinessRuleError("Lead is already final invoice")
        crud.check_processed_by(db, payload.processed_by_id)

        figures = compute_invoice_figures(
            payload.disbursal_amount,
            payload.payout_percent,
            tds_percent=payload.tds_percent,
            gst_percent=payload.gst_percent,
            payout_amount=payload.payout_amount,
            tds_amount=payload.tds_amount,
        )
        crud.fill_banker_snapshot(db, values)

        master = _master_by_lead(db, lead.id)
        if master is None:
            master = InvoiceMaster(
                lead_id=lead.id,
                invoice_receivable_amount=ZERO,
                invoice_gst_amount=ZERO,
                remaining_receivable_amount=ZERO,
                remaining_gst_amount=ZERO,
            )
            db.add(master)
            db.flush()
        _shift_master(master, figures.payable_bucket, figures.gst_amount)

        invoice = Invoice(
            invoice_master_id=master.id,
            lead_id=lead.id,
            disbursal_date=payload.disbursal_date,
            invoice_no=payload.invoice_no,
            invoice_date=payload.invoice_date,
            processed_by_id=payload.processed_by_id,
            final_invoice=payload.final_invoice,
            remarks=payload.remarks,
            created_by=actor.id,
            updated_by=actor.id,
            **{key: values.get(key) for key in ("banker_id", *crud.BANKER_SNAPSHOT_FIELDS)},
        )
        _apply_figures(invoice, figures)
        db.add(invoice)
        db.add(master)
        db.flush()

        refresh_final_invoice(db, lead.id)

    db.refresh(invoice)
    logger.info(
        "Invoice %s (%s) created for lead %s: receivable %s gst %s",
        invoice.id,
        invoice.invoice_no,
        invoice.lead_id,
        figures.payable_bucket,
        figures.gst_amount,
    )
    return invoice


def edit_invoice(db: Session, actor: Actor, invoice_id: int, payload: InvoiceUpdate) -> Invoice:
    """Apply a partial update and move the master by the contribution delta."""
    changes = payload.model_dump(exclude_unset=True)

    with crud.ledger_write(db, "Edit invoice"):
        master = _master_for_update(db, _get_invoice(db, invoice_id).invoice_master_id)
        # re-read under the master lock so the delta starts from committed values
        invoice = _get_invoice(db, invoice_id, lock=True)
        if "processed_by_id" in changes:
            crud.check_processed_by(db, changes["processed_by_id"])

        if changes.keys() & _FEE_INPUTS:
            figures = compute_invoice_figures(
                _merged(changes, "disbursal_amount", invoice.disbursal_amount),
                _merged(changes, "payout_percent", invoice.payout_percent),
                tds_percent=_merged(changes, "tds_percent", invoice.tds_percent),
                gst_percent=_merged(changes, "gst_percent", invoice.gst_percent),
                payout_amount=changes.get("payout_amount"),
                tds_amount=changes.get("tds_amount"),
            )
            receivable_delta = figures.payable_bucket - invoice.receivable_contribution
            gst_delta = figures.gst_amount - Decimal(invoice.gst_amount or 0)
            _shift_master(master, receivable_delta, gst_delta)
            _apply_figures(invoice, figures)
            db.add(master)

        for key in ("disbursal_date", "processed_by_id", "remarks"):
            if key in changes:
                setattr(invoice, key, changes[key])
        for key in ("invoice_no", "invoice_date", "final_invoice"):
            if changes.get(key) is not None:
                setattr(invoice, key, changes[key])
        crud.apply_banker_changes(db, invoice, changes)

        invoice.updated_by = actor.id
        db.add(invoice)

        refresh_final_invoice(db, invoice.lead_id)

    db.refresh(invoice)
    logger.info(
        "Invoice %s edited: master %s remaining receivable %s gst %s",
        invoice.id,
        master.id,
        master.remaining_receivable_amount,
        master.remaining_gst_amount,
    )
    return invoice


def _merged(changes: dict[str, Any], key: str, current: Any) -> Any:
    value = changes.get(key)
    return current if value is None else value


def delete_invoice(db: Session, actor: Actor, invoice_id: int) -> None:
    """Withdraw an invoice's contribution; an emptied master goes with it."""
    with crud.ledger_write(db, "Delete invoice"):
        master = _master_for_update(db, _get_invoice(db, invoice_id).invoice_master_id)
        invoice = _get_invoice(db, invoice_id, lock=True)
        lead_id = invoice.lead_id

        _shift_master(master, -invoice.receivable_contribution, -Decimal(invoice.gst_amount or 0))
        db.delete(invoice)
        db.flush()

        siblings = db.execute(
            select(func.count()).select_from(Invoice).where(Invoice.invoice_master_id == master.id)
        ).scalar_one()
        if master.is_empty and not siblings:
            db.delete(master)
            logger.info("Invoice master %s emptied and removed", master.id)
        else:
            db.add(master)

        refresh_final_invoice(db, lead_id)

    logger.info("Invoice %s deleted by %s", invoice_id, actor.id)


def get_invoice(db: Session, invoice_id: int) -> Invoice:
    return _get_invoice(db, invoice_id)


def list_invoices(db: Session, filters: crud.ListFilters) -> crud.PageResult:
    stmt = select(Invoice)
    stmt = crud.lead_filters(stmt, Invoice.lead_id, filters)
    stmt = crud.apply_date_range(stmt, Invoice.created_at, filters)
    stmt = stmt.order_by(Invoice.created_at.desc(), Invoice.id.desc())
    return crud.paginate(db, stmt, filters)


def disbursed_leads_without_invoice(db: Session) -> list[dict[str, Any]]:
    """Disbursed leads that can still be invoiced."""
    return crud.lead_options(crud.disbursed_leads(db, exclude_final_invoice=True))


def leads_with_outstanding_invoices(db: Session) -> list[dict[str, Any]]:
    stmt = (
        select(Lead)
        .join(InvoiceMaster, InvoiceMaster.lead_id == Lead.id)
        .where(
            or_(
                InvoiceMaster.remaining_receivable_amount > 0,
                InvoiceMaster.remaining_gst_amount > 0,
            )
        )
        .order_by(Lead.lead_no)
    )
    return crud.lead_options(db.execute(stmt).scalars().all())


def get_invoice_master_by_lead(db: Session, lead_id: int | None) -> InvoiceMaster:
    if not lead_id:
        raise ValidationError("lead_id", "Lead id is required")
    master = db.execute(select(InvoiceMaster).where(InvoiceMaster.lead_id == lead_id)).scalars().first()
    if master is None:
        raise NotFoundError("Invoice master not found")
    return master


# --- Receivables ------------------------------------------------------------

def _bucket_remaining(master: InvoiceMaster, payment_against: str) -> Decimal:
    if payment_against == "receivableAmount":
        return Decimal(master.remaining_receivable_amount or 0)
    return Decimal(master.remaining_gst_amount or 0)


def _set_bucket_remaining(master: InvoiceMaster, payment_against: str, value: Decimal) -> None:
    value = max(value, ZERO)
    if payment_against == "receivableAmount":
        master.remaining_receivable_amount = value
    else:
        master.remaining_gst_amount = value


def _bucket_label(payment_against: str) -> str:
    return "receivable" if payment_against == "receivableAmount" else "gst"


def create_receivable(db: Session, actor: Actor, payload: ReceivableCreate) -> Receivable:
    against = payload.payment_against
    if against not in RECEIVABLE_AGAINST_ENUM:
        raise ValidationError("payment_against", "Invalid paymentAgainst value")
    received = validate_money(payload.received_amount, "received_amount")

    with crud.ledger_write(db, "Add receivable"):
        master = _master_for_update(db, payload.invoice_master_id)
        remaining = _bucket_remaining(master, against)
        if received > remaining:
            raise BusinessRuleError(
                f"Received amount exceeds remaining {_bucket_label(against)} amount ({remaining})"
            )

        receivable = Receivable(
            invoice_master_id=master.id,
            lead_id=master.lead_id,
            payment_against=against,
            receivable_amount=remaining,
            received_amount=received,
            balance_amount=remaining - received,
            received_date=payload.received_date,
            ref_no=payload.ref_no,
            remarks=payload.remarks,
            created_by=actor.id,
            updated_by=actor.id,
        )
        db.add(receivable)
        _set_bucket_remaining(master, against, remaining - received)
        db.add(master)

    db.refresh(receivable)
    logger.info(
        "Receivable %s recorded against master %s (%s): received %s",
        receivable.id,
        receivable.invoice_master_id,
        against,
        received,
    )
    return receivable


def edit_receivable(db: Session, actor: Actor, receivable_id: int, payload: ReceivableUpdate) -> Receivable:
    changes = payload.model_dump(exclude_unset=True)

    with crud.ledger_write(db, "Edit receivable"):
        master = _master_for_update(db, _get_receivable(db, receivable_id).invoice_master_id)
        receivable = _get_receivable(db, receivable_id, lock=True)

        new_received = changes.get("received_amount")
        if new_received is not None:
            new_received = validate_money(new_received, "received_amount")
            old_received = Decimal(receivable.received_amount)
            if new_received != old_received:
                if new_received > Decimal(receivable.receivable_amount):
                    raise BusinessRuleError("Received amount cannot exceed receivable amount")
                diff = new_received - old_received
                remaining = _bucket_remaining(master, receivable.payment_against)
                if diff > remaining:
                    raise BusinessRuleError(
                        f"Received amount exceeds remaining {_bucket_label(receivable.payment_against)} "
                        f"amount ({remaining})"
                    )
                _set_bucket_remaining(master, receivable.payment_against, remaining - diff)
                receivable.received_amount = new_received
                receivable.balance_amount = max(Decimal(receivable.receivable_amount) - new_received, ZERO)
                db.add(master)

        if changes.get("received_date") is not None:
            receivable.received_date = changes["received_date"]
        if "ref_no" in changes:
            receivable.ref_no = changes["ref_no"]
        if "remarks" in changes:
            receivable.remarks = changes["remarks"]
        receivable.updated_by = actor.id
        db.add(receivable)

    db.refresh(receivable)
    logger.info("Receivable %s edited: received %s", receivable.id, receivable.received_amount)
    return receivable


def delete_receivable(db: Session, actor: Actor, receivable_id: int) -> None:
    with crud.ledger_write(db, "Delete receivable"):
        master = _master_for_update(db, _get_receivable(db, receivable_id).invoice_master_id)
        receivable = _get_receivable(db, receivable_id, lock=True)

        remaining = _bucket_remaining(master, receivable.payment_against)
        _set_bucket_remaining(
            master, receivable.payment_against, remaining + Decimal(receivable.received_amount)
        )
        db.add(master)
        db.delete(receivable)

    logger.info("Receivable %s deleted by %s", receivable_id, actor.id)


def get_receivable(db: Session, receivable_id: int) -> dict[str, Any]:
    stmt = (
        select(Receivable)
        .options(selectinload(Receivable.invoice_master))
        .where(Receivable.id == receivable_id)
    )
    receivable = db.execute(stmt).scalars().first()
    if receivable is None:
        raise NotFoundError("Receivable not found")
    total_amount = Decimal(receivable.received_amount or 0) + _bucket_remaining(
        receivable.invoice_master, receivable.payment_against
    )
    return {"receivable": receivable, "total_amount": total_amount}


def list_receivables(db: Session, filters: crud.ListFilters) -> crud.PageResult:
    stmt = select(Receivable)
    stmt = crud.lead_filters(stmt, Receivable.lead_id, filters)
    stmt = crud.apply_date_range(stmt, Receivable.created_at, filters)
    stmt = stmt.order_by(Receivable.created_at.desc(), Receivable.id.desc())
    return crud.paginate(db, stmt, filters)
