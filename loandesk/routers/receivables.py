"""Receivable routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from loandesk.auth import Actor, get_ledger_admin
from loandesk.crud import ListFilters
from loandesk.database import get_session
from loandesk.dependencies import list_filters, ok, paged
from loandesk.ledger import invoices
from loandesk.schemas import (
    InvoiceMasterRead,
    ReceivableCreate,
    ReceivableDetail,
    ReceivableRead,
    ReceivableUpdate,
)

router = APIRouter(prefix="/receivables", tags=["Receivables"])


@router.get("/outstanding-leads")
def outstanding_leads(
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    """Leads whose invoices still have money to be received."""
    return ok("Leads fetched successfully", invoices.leads_with_outstanding_invoices(db))


@router.get("/invoice-master")
def invoice_master_for_lead(
    lead_id: int | None = Query(None),
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    master = invoices.get_invoice_master_by_lead(db, lead_id)
    return ok("Invoice master fetched successfully", InvoiceMasterRead.model_validate(master))


@router.post("")
def create_receivable(
    payload: ReceivableCreate,
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    receivable = invoices.create_receivable(db, actor, payload)
    return ok("Receivable created successfully", ReceivableRead.model_validate(receivable))


@router.get("")
def list_receivables(
    filters: ListFilters = Depends(list_filters),
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    page = invoices.list_receivables(db, filters)
    return paged(
        "Receivables fetched successfully", page, [ReceivableRead.model_validate(row) for row in page.items]
    )


@router.get("/{receivable_id}")
def get_receivable(
    receivable_id: int,
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    detail = invoices.get_receivable(db, receivable_id)
    data = ReceivableDetail(
        **ReceivableRead.model_validate(detail["receivable"]).model_dump(),
        total_amount=detail["total_amount"],
    )
    return ok("Receivable fetched successfully", data)


@router.put("/{receivable_id}")
def edit_receivable(
    receivable_id: int,
    payload: ReceivableUpdate,
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    receivable = invoices.edit_receivable(db, actor, receivable_id, payload)
    return ok("Receivable updated successfully", ReceivableRead.model_validate(receivable))


@router.delete("/{receivable_id}")
def delete_receivable(
    receivable_id: int,
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    invoices.delete_receivable(db, actor, receivable_id)
    return ok("Receivable deleted successfully")
