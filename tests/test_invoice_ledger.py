from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError as PayloadError

from loandesk.crud import ListFilters
from loandesk.errors import BusinessRuleError, NotFoundError, ValidationError
from loandesk.ledger import invoices
from loandesk.models import Invoice, InvoiceMaster, Lead, Receivable
from loandesk.schemas import InvoiceCreate, InvoiceUpdate, ReceivableCreate


def _invoice_payload(seeded, invoice_no="INV-1", **overrides):
    values = {
        "lead_id": seeded.lead_id,
        "disbursal_amount": Decimal("10000"),
        "payout_percent": Decimal("10"),
        "gst_percent": Decimal("18"),
        "invoice_no": invoice_no,
        "invoice_date": date(2025, 5, 1),
    }
    values.update(overrides)
    return InvoiceCreate(**values)


def _master(db, lead_id):
    master = db.query(InvoiceMaster).filter(InvoiceMaster.lead_id == lead_id).one_or_none()
    if master is not None:
        db.refresh(master)
    return master


def test_invoices_accumulate_on_one_master(test_db, seeded):
    first = invoices.create_invoice(test_db, seeded.actor, _invoice_payload(seeded))
    second = invoices.create_invoice(
        test_db, seeded.actor, _invoice_payload(seeded, invoice_no="INV-2", payout_percent=Decimal("5"))
    )

    assert first.invoice_master_id == second.invoice_master_id
    master = _master(test_db, seeded.lead_id)
    assert master.invoice_receivable_amount == Decimal("1500.00")
    assert master.remaining_receivable_amount == Decimal("1500.00")
    assert master.invoice_gst_amount == Decimal("270.00")
    assert master.remaining_gst_amount == Decimal("270.00")


def test_invoice_figures_always_include_gst(test_db, seeded):
    invoice = invoices.create_invoice(test_db, seeded.actor, _invoice_payload(seeded, tds_percent=Decimal("10")))

    assert invoice.payout_amount == Decimal("1000.00")
    assert invoice.tds_amount == Decimal("100.00")
    assert invoice.gst_amount == Decimal("180.00")
    assert invoice.net_receivable_amount == Decimal("1080.00")


def test_invoice_requires_invoice_number():
    with pytest.raises(PayloadError):
        InvoiceCreate(
            lead_id=1,
            disbursal_amount=Decimal("1"),
            payout_percent=Decimal("1"),
            invoice_no="   ",
            invoice_date=date(2025, 5, 1),
        )


def test_deleting_an_invoice_withdraws_its_contribution(test_db, seeded):
    first = invoices.create_invoice(test_db, seeded.actor, _invoice_payload(seeded))
    invoices.create_invoice(
        test_db, seeded.actor, _invoice_payload(seeded, invoice_no="INV-2", payout_percent=Decimal("5"))
    )

    invoices.delete_invoice(test_db, seeded.actor, first.id)

    master = _master(test_db, seeded.lead_id)
    assert master.invoice_receivable_amount == Decimal("500.00")
    assert master.remaining_receivable_amount == Decimal("500.00")
    assert master.invoice_gst_amount == Decimal("90.00")


def test_deleting_last_invoice_removes_empty_master(test_db, seeded):
    invoice = invoices.create_invoice(test_db, seeded.actor, _invoice_payload(seeded))

    invoices.delete_invoice(test_db, seeded.actor, invoice.id)

    assert _master(test_db, seeded.lead_id) is None
    assert test_db.query(Invoice).count() == 0


def test_delete_refused_when_receipts_exceed_what_would_remain(test_db, seeded):
    first = invoices.create_invoice(test_db, seeded.actor, _invoice_payload(seeded))
    invoices.create_invoice(
        test_db, seeded.actor, _invoice_payload(seeded, invoice_no="INV-2", payout_percent=Decimal("5"))
    )
    master = _master(test_db, seeded.lead_id)
    invoices.create_receivable(
        test_db,
        seeded.actor,
        ReceivableCreate(
            invoice_master_id=master.id,
            payment_against="receivableAmount",
            received_amount=Decimal("1200"),
            received_date=date(2025, 6, 1),
        ),
    )

    with pytest.raises(BusinessRuleError):
        invoices.delete_invoice(test_db, seeded.actor, first.id)

    assert test_db.get(Invoice, first.id) is not None
    master = _master(test_db, seeded.lead_id)
    assert master.invoice_receivable_amount == Decimal("1500.00")
    assert master.remaining_receivable_amount == Decimal("300.00")


def test_edit_invoice_moves_master_by_delta(test_db, seeded):
    invoice = invoices.create_invoice(test_db, seeded.actor, _invoice_payload(seeded))

    invoices.edit_invoice(test_db, seeded.actor, invoice.id, InvoiceUpdate(payout_percent=Decimal("12")))

    master = _master(test_db, seeded.lead_id)
    assert master.invoice_receivable_amount == Decimal("1200.00")
    assert master.remaining_receivable_amount == Decimal("1200.00")
    assert master.invoice_gst_amount == Decimal("216.00")


def test_edit_invoice_below_received_amount_refused(test_db, seeded):
    invoice = invoices.create_invoice(test_db, seeded.actor, _invoice_payload(seeded))
    master = _master(test_db, seeded.lead_id)
    invoices.create_receivable(
        test_db,
        seeded.actor,
        ReceivableCreate(
            invoice_master_id=master.id,
            payment_against="receivableAmount",
            received_amount=Decimal("800"),
            received_date=date(2025, 6, 1),
        ),
    )

    with pytest.raises(BusinessRuleError):
        invoices.edit_invoice(test_db, seeded.actor, invoice.id, InvoiceUpdate(payout_percent=Decimal("5")))

    test_db.refresh(invoice)
    assert invoice.payout_amount == Decimal("1000.00")
    master = _master(test_db, seeded.lead_id)
    assert master.remaining_receivable_amount == Decimal("200.00")


def test_create_invoice_refused_once_lead_is_final(test_db, seeded):
    invoices.create_invoice(test_db, seeded.actor, _invoice_payload(seeded, final_invoice=True))

    assert test_db.get(Lead, seeded.lead_id).final_invoice is True
    with pytest.raises(BusinessRuleError):
        invoices.create_invoice(test_db, seeded.actor, _invoice_payload(seeded, invoice_no="INV-2"))


def test_create_invoice_for_missing_lead(test_db, seeded):
    with pytest.raises(NotFoundError):
        invoices.create_invoice(test_db, seeded.actor, _invoice_payload(seeded, lead_id=31337))


def test_lead_pickers(test_db, seeded):
    assert invoices.disbursed_leads_without_invoice(test_db) == [
        {"id": seeded.lead_id, "display_name": "1001 - Ravi Kumar"}
    ]
    invoices.create_invoice(test_db, seeded.actor, _invoice_payload(seeded))

    outstanding = invoices.leads_with_outstanding_invoices(test_db)
    assert [row["id"] for row in outstanding] == [seeded.lead_id]


def test_invoice_master_lookup_by_lead(test_db, seeded):
    invoices.create_invoice(test_db, seeded.actor, _invoice_payload(seeded))

    master = invoices.get_invoice_master_by_lead(test_db, seeded.lead_id)
    assert master.invoice_receivable_amount == Decimal("1000.00")

    with pytest.raises(ValidationError) as excinfo:
        invoices.get_invoice_master_by_lead(test_db, None)
    assert excinfo.value.message == "Lead id is required"

    with pytest.raises(NotFoundError):
        invoices.get_invoice_master_by_lead(test_db, seeded.pending_lead_id)


def test_list_invoices_filters_by_product(test_db, seeded):
    invoices.create_invoice(test_db, seeded.actor, _invoice_payload(seeded))

    assert invoices.list_invoices(test_db, ListFilters(product_type="home")).total == 1
    assert invoices.list_invoices(test_db, ListFilters(product_type="business")).total == 0


def test_zero_value_receivables_go_with_the_master(test_db, seeded):
    invoice = invoices.create_invoice(test_db, seeded.actor, _invoice_payload(seeded))
    master = _master(test_db, seeded.lead_id)
    invoices.create_receivable(
        test_db,
        seeded.actor,
        ReceivableCreate(
            invoice_master_id=master.id,
            payment_against="gstPayment",
            received_amount=Decimal("0"),
            received_date=date(2025, 6, 1),
        ),
    )

    invoices.delete_invoice(test_db, seeded.actor, invoice.id)

    assert test_db.query(InvoiceMaster).count() == 0
    assert test_db.query(Receivable).count() == 0


def test_unknown_processed_by_is_not_found(test_db, seeded):
    with pytest.raises(NotFoundError) as excinfo:
        invoices.create_invoice(test_db, seeded.actor, _invoice_payload(seeded, processed_by_id=424242))

    assert excinfo.value.message == "Processed by not found"
    assert _master(test_db, seeded.lead_id) is None

    invoice = invoices.create_invoice(test_db, seeded.actor, _invoice_payload(seeded))
    with pytest.raises(NotFoundError):
        invoices.edit_invoice(test_db, seeded.actor, invoice.id, InvoiceUpdate(processed_by_id=424242))
