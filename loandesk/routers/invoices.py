"""Invoice routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from loandesk.auth import Actor, get_ledger_admin
from loandesk.crud import ListFilters
from loandesk.database import get_session
from loandesk.dependencies import list_filters, ok, paged
from loandesk.ledger import invoices
from loandesk.schemas import InvoiceCreate, InvoiceRead, InvoiceUpdate

router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.get("/disbursed-leads")
def disbursed_leads(
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    return ok("Disbursed leads fetched successfully", invoices.disbursed_leads_without_invoice(db))


@router.post("")
def create_invoice(
    payload: InvoiceCreate,
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    invoice = invoices.create_invoice(db, actor, payload)
    return ok("Invoice created successfully", InvoiceRead.model_validate(invoice))


@router.get("")
def list_invoices(
    filters: ListFilters = Depends(list_filters),
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    page = invoices.list_invoices(db, filters)
    return paged("Invoices fetched successfully", page, [InvoiceRead.model_validate(row) for row in page.items])


@router.get("/{invoice_id}")
def get_invoice(
    invoice_id: int,
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    return ok("Invoice fetched successfully", InvoiceRead.model_validate(invoices.get_invoice(db, invoice_id)))


@router.put("/{invoice_id}")
def edit_invoice(
    invoice_id: int,
    payload: InvoiceUpdate,
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    invoice = invoices.edit_invoice(db, actor, invoice_id, payload)
    return ok("Invoice updated successfully", InvoiceRead.model_validate(invoice))


@router.delete("/{invoice_id}")
def delete_invoice(
    invoice_id: int,
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    invoices.delete_invoice(db, actor, invoice_id)
    return ok("Invoice deleted successfully")
