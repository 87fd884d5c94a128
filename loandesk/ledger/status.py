"""Derive a lead's final payout / final invoice flags from its ledger rows.

Several advisors can hold payouts on one lead, and one lead can carry several
invoices. The lead flag is therefore the OR across every sibling row, and it
is re-derived by scanning them after each ledger write. Copying the touched
record's flag onto the lead would clear a flag that a sibling still holds.
"""
from __future__ import annotations

import logging

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from loandesk.models import AdvisorPayout, Invoice, Lead

logger = logging.getLogger(__name__)


def any_final_payout(db: Session, lead_id: int) -> bool:
    stmt = select(
        exists().where(AdvisorPayout.lead_id == lead_id, AdvisorPayout.final_payout.is_(True))
    )
    return bool(db.execute(stmt).scalar())


def any_final_invoice(db: Session, lead_id: int) -> bool:
    stmt = select(exists().where(Invoice.lead_id == lead_id, Invoice.final_invoice.is_(True)))
    return bool(db.execute(stmt).scalar())


def refresh_final_payout(db: Session, lead_id: int) -> bool:
    """Set ``lead.final_payout`` from the lead's payouts; return the new value.

    Must run after pending payout changes are flushed so the scan sees them.
    """
    db.flush()
    lead = db.get(Lead, lead_id)
    if lead is None:
        return False
    value = any_final_payout(db, lead_id)
    if lead.final_payout != value:
        logger.info("Lead %s final_payout %s -> %s", lead_id, lead.final_payout, value)
        lead.final_payout = value
        db.add(lead)
    return value


def refresh_final_invoice(db: Session, lead_id: int) -> bool:
    """Set ``lead.final_invoice`` from the lead's invoices; return the new value."""
    db.flush()
    lead = db.get(Lead, lead_id)
    if lead is None:
        return False
    value = any_final_invoice(db, lead_id)
    if lead.final_invoice != value:
        logger.info("Lead %s final_invoice %s -> %s", lead_id, lead.final_invoice, value)
        lead.final_invoice = value
        db.add(lead)
    return value


__all__ = [
    "any_final_invoice",
    "any_final_payout",
    "refresh_final_invoice",
    "refresh_final_payout",
]
