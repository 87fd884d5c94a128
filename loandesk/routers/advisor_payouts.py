"""Advisor payout routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from loandesk.auth import Actor, get_ledger_admin
from loandesk.crud import ListFilters
from loandesk.database import get_session
from loandesk.dependencies import list_filters, ok, paged
from loandesk.ledger import payouts
from loandesk.schemas import AdvisorPayoutCreate, AdvisorPayoutRead, AdvisorPayoutUpdate

router = APIRouter(prefix="/advisor-payouts", tags=["Advisor Payouts"])


def _read(payout) -> AdvisorPayoutRead:
    return AdvisorPayoutRead.model_validate(payout)


@router.get("/disbursed-unpaid-leads")
def disbursed_unpaid_leads(
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    """Leads that are disbursed but not yet marked final payout."""
    return ok("Disbursed leads fetched successfully", payouts.disbursed_unpaid_leads(db))


@router.post("")
def create_advisor_payout(
    payload: AdvisorPayoutCreate,
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    payout = payouts.create_advisor_payout(db, actor, payload)
    return ok("Advisor Payout created successfully", _read(payouts.get_advisor_payout(db, payout.id)))


@router.get("")
def list_advisor_payouts(
    filters: ListFilters = Depends(list_filters),
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    page = payouts.list_advisor_payouts(db, filters)
    return paged("Advisor Payouts fetched successfully", page, [_read(row) for row in page.items])


@router.get("/{payout_id}")
def get_advisor_payout(
    payout_id: int,
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    return ok("Advisor Payout fetched successfully", _read(payouts.get_advisor_payout(db, payout_id)))


@router.put("/{payout_id}")
def edit_advisor_payout(
    payout_id: int,
    payload: AdvisorPayoutUpdate,
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    payouts.edit_advisor_payout(db, actor, payout_id, payload)
    return ok("Advisor Payout updated successfully", _read(payouts.get_advisor_payout(db, payout_id)))


@router.delete("/{payout_id}")
def delete_advisor_payout(
    payout_id: int,
    db: Session = Depends(get_session),
    actor: Actor = Depends(get_ledger_admin),
):
    payouts.delete_advisor_payout(db, actor, payout_id)
    return ok("Advisor Payout deleted successfully")
