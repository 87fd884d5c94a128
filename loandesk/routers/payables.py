"""Payable routes, including the advisor-facing payout panel."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from loandesk.auth import Actor, get_advisor_actor, get_ledger_admin
from loandesk.crud import ListFilters
from loandesk.database import get_session
from loandesk.dependencies import list_filters, ok, paged
from loandesk.ledger import payouts
from loandesk.schemas import AdvisorPanelPayable, PayableCreate, PayableDetail, PayableRead, PayableUpdate

router = APIRouter(prefix="/payables", tags=["Payables"])


def _detail(db: Session, payable_id: int) -> PayableDetail:
    detail = payouts.get_payable(db, payable_id)
    base = PayableRead.model_validate(detail["payable"]).model_dump()
    return PayableDetail(
        **base,
        advisor_display_name=detail["advisor_display_name"],
        total_amount=detail["total_amount"],
        banker_details=detail["banker_details"],
    )


@router.get("/outstanding-leads")
def outstanding_leads(
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    """Leads with a payout balance still to be paid."""
    return ok("Leads fetched successfully", payouts.leads_with_outstanding_payouts(db))


@router.get("/advisors")
def advisors_for_lead(
    lead_id: int | None = Query(None),
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    return ok("Advisors fetched successfully", payouts.advisors_for_lead_payouts(db, lead_id))


@router.get("/advisor-panel")
def advisor_panel(
    payment_status: str | None = Query(None),
    filters: ListFilters = Depends(list_filters),
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_advisor_actor),
):
    """The signed-in advisor's payments with Pending/Paid status and totals."""
    page = payouts.advisor_panel_payables(db, actor.id, filters, payment_status)
    items = [
        AdvisorPanelPayable(
            **PayableRead.model_validate(payable).model_dump(),
            status=status,
            product_type=payable.lead.product_type if payable.lead else None,
            client_name=payable.lead.client_name if payable.lead else None,
        )
        for payable, status in page.items
    ]
    return paged("Advisor payouts fetched successfully", page, items)


@router.post("")
def create_payable(
    payload: PayableCreate,
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    payable = payouts.create_payable(db, actor, payload)
    return ok("Payable created successfully", PayableRead.model_validate(payable))


@router.get("")
def list_payables(
    filters: ListFilters = Depends(list_filters),
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    page = payouts.list_payables(db, filters)
    return paged("Payables fetched successfully", page, [PayableRead.model_validate(row) for row in page.items])


@router.get("/{payable_id}")
def get_payable(
    payable_id: int,
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    return ok("Payable fetched successfully", _detail(db, payable_id))


@router.put("/{payable_id}")
def edit_payable(
    payable_id: int,
    payload: PayableUpdate,
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    payable = payouts.edit_payable(db, actor, payable_id, payload)
    return ok("Payable updated successfully", PayableRead.model_validate(payable))


@router.delete("/{payable_id}")
def delete_payable(
    payable_id: int,
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    payouts.delete_payable(db, actor, payable_id)
    return ok("Payable deleted successfully")
