from datetime import date
from decimal import Decimal

import pytest

from loandesk.crud import ListFilters
from loandesk.errors import BusinessRuleError, NotFoundError, ValidationError
from loandesk.ledger import invoices
from loandesk.models import InvoiceMaster, Receivable
from loandesk.schemas import InvoiceCreate, ReceivableCreate, ReceivableUpdate


def _open_master(db, seeded):
    invoices.create_invoice(
        db,
        seeded.actor,
        InvoiceCreate(
            lead_id=seeded.lead_id,
            disbursal_amount=Decimal("100000"),
            payout_percent=Decimal("5"),
            tds_percent=Decimal("10"),
            gst_percent=Decimal("18"),
            invoice_no="INV-100",
            invoice_date=date(2025, 5, 1),
        ),
    )
    return invoices.get_invoice_master_by_lead(db, seeded.lead_id)


def _receipt(master_id, amount, against="receivableAmount"):
    return ReceivableCreate(
        invoice_master_id=master_id,
        payment_against=against,
        received_amount=Decimal(amount),
        received_date=date(2025, 6, 1),
    )


def test_receipt_draws_down_master(test_db, seeded):
    master = _open_master(test_db, seeded)

    receivable = invoices.create_receivable(test_db, seeded.actor, _receipt(master.id, "2000"))

    assert receivable.receivable_amount == Decimal("4500.00")
    assert receivable.balance_amount == Decimal("2500.00")
    assert receivable.lead_id == seeded.lead_id
    test_db.refresh(master)
    assert master.remaining_receivable_amount == Decimal("2500.00")
    assert master.remaining_gst_amount == Decimal("900.00")


def test_receipt_larger_than_balance_rejected(test_db, seeded):
    master = _open_master(test_db, seeded)
    invoices.create_receivable(test_db, seeded.actor, _receipt(master.id, "2000"))

    with pytest.raises(BusinessRuleError):
        invoices.create_receivable(test_db, seeded.actor, _receipt(master.id, "3000"))

    assert test_db.query(Receivable).count() == 1


def test_receipt_validation(test_db, seeded):
    master = _open_master(test_db, seeded)

    with pytest.raises(ValidationError):
        invoices.create_receivable(test_db, seeded.actor, _receipt(master.id, "10", against="payableAmount"))
    with pytest.raises(NotFoundError):
        invoices.create_receivable(test_db, seeded.actor, _receipt(55555, "10"))


def test_edit_and_delete_receipt_keep_master_balanced(test_db, seeded):
    master = _open_master(test_db, seeded)
    receivable = invoices.create_receivable(test_db, seeded.actor, _receipt(master.id, "400", against="gstPayment"))

    invoices.edit_receivable(
        test_db, seeded.actor, receivable.id, ReceivableUpdate(received_amount=Decimal("900"), remarks="full gst")
    )
    test_db.refresh(master)
    assert master.remaining_gst_amount == Decimal("0.00")

    with pytest.raises(BusinessRuleError):
        invoices.edit_receivable(
            test_db, seeded.actor, receivable.id, ReceivableUpdate(received_amount=Decimal("901"))
        )

    invoices.delete_receivable(test_db, seeded.actor, receivable.id)
    test_db.refresh(master)
    assert master.remaining_gst_amount == Decimal("900.00")
    assert test_db.query(Receivable).count() == 0


def test_receivable_detail_and_list(test_db, seeded):
    master = _open_master(test_db, seeded)
    receivable = invoices.create_receivable(test_db, seeded.actor, _receipt(master.id, "1000"))

    detail = invoices.get_receivable(test_db, receivable.id)
    assert detail["total_amount"] == Decimal("4500.00")

    assert invoices.list_receivables(test_db, ListFilters(client_name="ravi")).total == 1

    outstanding = invoices.leads_with_outstanding_invoices(test_db)
    assert [row["id"] for row in outstanding] == [seeded.lead_id]


def test_fully_received_lead_drops_off_outstanding(test_db, seeded):
    master = _open_master(test_db, seeded)
    invoices.create_receivable(test_db, seeded.actor, _receipt(master.id, "4500"))
    invoices.create_receivable(test_db, seeded.actor, _receipt(master.id, "900", against="gstPayment"))

    assert invoices.leads_with_outstanding_invoices(test_db) == []
    assert test_db.query(InvoiceMaster).count() == 1
