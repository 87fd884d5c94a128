from datetime import date
from decimal import Decimal

import pytest

from loandesk.errors import BusinessRuleError, ConflictError, NotFoundError
from loandesk.ledger import payouts
from loandesk.models import AdvisorPayout, Lead, ProcessedBy
from loandesk.schemas import AdvisorPayoutCreate, AdvisorPayoutUpdate, PayableCreate


def _payout_payload(seeded, **overrides):
    values = {
        "lead_id": seeded.lead_id,
        "advisor_id": seeded.advisor_id,
        "disbursal_amount": Decimal("100000"),
        "disbursal_date": date(2025, 3, 1),
        "payout_percent": Decimal("5"),
        "tds_percent": Decimal("10"),
        "gst_applicable": True,
        "gst_percent": Decimal("18"),
        "invoice_no": "ADV-INV-1",
        "invoice_date": date(2025, 3, 5),
    }
    values.update(overrides)
    return AdvisorPayoutCreate(**values)


def _pay(db, seeded, payout_id, amount, against="payableAmount"):
    return payouts.create_payable(
        db,
        seeded.actor,
        PayableCreate(payout_id=payout_id, payment_against=against, paid_amount=Decimal(amount), paid_date=date(2025, 4, 1)),
    )


def test_create_payout_sets_figures_and_balances(test_db, seeded):
    payout = payouts.create_advisor_payout(test_db, seeded.actor, _payout_payload(seeded))

    assert payout.payout_amount == Decimal("5000.00")
    assert payout.tds_amount == Decimal("500.00")
    assert payout.gst_amount == Decimal("900.00")
    assert payout.net_payable_amount == Decimal("5400.00")
    assert payout.remaining_payable_amount == Decimal("4500.00")
    assert payout.remaining_gst_amount == Decimal("900.00")
    assert payout.created_by == seeded.admin_id


def test_create_payout_copies_banker_snapshot(test_db, seeded):
    payout = payouts.create_advisor_payout(
        test_db, seeded.actor, _payout_payload(seeded, banker_id=seeded.banker_id, banker_name="Override Name")
    )

    assert payout.banker_name == "Override Name"
    assert payout.bank_name == "State Bank"
    assert payout.city_name == "Pune"


def test_second_payout_for_same_lead_and_advisor_conflicts(test_db, seeded):
    payouts.create_advisor_payout(test_db, seeded.actor, _payout_payload(seeded))

    with pytest.raises(ConflictError):
        payouts.create_advisor_payout(test_db, seeded.actor, _payout_payload(seeded))

    assert test_db.query(AdvisorPayout).count() == 1


def test_other_advisor_can_hold_payout_on_same_lead(test_db, seeded):
    payouts.create_advisor_payout(test_db, seeded.actor, _payout_payload(seeded))
    payouts.create_advisor_payout(
        test_db, seeded.actor, _payout_payload(seeded, advisor_id=seeded.other_advisor_id)
    )

    assert test_db.query(AdvisorPayout).count() == 2


def test_create_payout_for_missing_lead_or_advisor(test_db, seeded):
    with pytest.raises(NotFoundError):
        payouts.create_advisor_payout(test_db, seeded.actor, _payout_payload(seeded, lead_id=9999))
    with pytest.raises(NotFoundError):
        payouts.create_advisor_payout(test_db, seeded.actor, _payout_payload(seeded, advisor_id=9999))


def test_create_payout_refused_once_lead_is_final(test_db, seeded):
    payouts.create_advisor_payout(test_db, seeded.actor, _payout_payload(seeded, final_payout=True))

    with pytest.raises(BusinessRuleError):
        payouts.create_advisor_payout(
            test_db, seeded.actor, _payout_payload(seeded, advisor_id=seeded.other_advisor_id)
        )


def test_edit_recomputes_and_keeps_paid_history(test_db, seeded):
    payout = payouts.create_advisor_payout(test_db, seeded.actor, _payout_payload(seeded))
    _pay(test_db, seeded, payout.id, "1000")

    edited = payouts.edit_advisor_payout(
        test_db, seeded.actor, payout.id, AdvisorPayoutUpdate(payout_percent=Decimal("4"))
    )

    # payout 4000, tds 400, bucket 3600 less 1000 already paid
    assert edited.payout_amount == Decimal("4000.00")
    assert edited.remaining_payable_amount == Decimal("2600.00")
    assert edited.remaining_gst_amount == Decimal("720.00")


def test_edit_below_paid_amount_is_refused_and_leaves_payout_unchanged(test_db, seeded):
    payout = payouts.create_advisor_payout(test_db, seeded.actor, _payout_payload(seeded))
    _pay(test_db, seeded, payout.id, "4000")

    with pytest.raises(BusinessRuleError):
        payouts.edit_advisor_payout(
            test_db, seeded.actor, payout.id, AdvisorPayoutUpdate(payout_percent=Decimal("2"))
        )

    current = test_db.get(AdvisorPayout, payout.id)
    assert current.payout_percent == Decimal("5.00")
    assert current.payout_amount == Decimal("5000.00")
    assert current.remaining_payable_amount == Decimal("500.00")


def test_edit_gst_below_gst_paid_is_refused(test_db, seeded):
    payout = payouts.create_advisor_payout(test_db, seeded.actor, _payout_payload(seeded))
    _pay(test_db, seeded, payout.id, "500", against="gstPayment")

    with pytest.raises(BusinessRuleError):
        payouts.edit_advisor_payout(test_db, seeded.actor, payout.id, AdvisorPayoutUpdate(gst_applicable=False))


def test_edit_of_text_fields_only_leaves_amounts_alone(test_db, seeded):
    payout = payouts.create_advisor_payout(test_db, seeded.actor, _payout_payload(seeded))
    _pay(test_db, seeded, payout.id, "2000")

    edited = payouts.edit_advisor_payout(
        test_db, seeded.actor, payout.id, AdvisorPayoutUpdate(remarks="  cheque sent ")
    )

    assert edited.remarks == "cheque sent"
    assert edited.remaining_payable_amount == Decimal("2500.00")


def test_delete_payout_refused_while_payables_exist(test_db, seeded):
    payout = payouts.create_advisor_payout(test_db, seeded.actor, _payout_payload(seeded))
    _pay(test_db, seeded, payout.id, "100")

    with pytest.raises(BusinessRuleError):
        payouts.delete_advisor_payout(test_db, seeded.actor, payout.id)

    assert test_db.get(AdvisorPayout, payout.id) is not None


def test_delete_payout_without_payables(test_db, seeded):
    payout = payouts.create_advisor_payout(test_db, seeded.actor, _payout_payload(seeded, final_payout=True))
    payout_id = payout.id

    payouts.delete_advisor_payout(test_db, seeded.actor, payout_id)

    assert test_db.get(AdvisorPayout, payout_id) is None
    assert test_db.get(Lead, seeded.lead_id).final_payout is False


def test_delete_missing_payout(test_db, seeded):
    with pytest.raises(NotFoundError):
        payouts.delete_advisor_payout(test_db, seeded.actor, 424242)


def test_disbursed_unpaid_leads_lists_only_disbursed_open_leads(test_db, seeded):
    options = payouts.disbursed_unpaid_leads(test_db)
    assert options == [{"id": seeded.lead_id, "display_name": "1001 - Ravi Kumar"}]

    payouts.create_advisor_payout(test_db, seeded.actor, _payout_payload(seeded, final_payout=True))

    assert payouts.disbursed_unpaid_leads(test_db) == []


def test_outstanding_leads_and_advisors_for_lead(test_db, seeded):
    payout = payouts.create_advisor_payout(
        test_db, seeded.actor, _payout_payload(seeded, gst_applicable=False)
    )

    assert [row["id"] for row in payouts.leads_with_outstanding_payouts(test_db)] == [seeded.lead_id]
    advisors = payouts.advisors_for_lead_payouts(test_db, seeded.lead_id)
    assert advisors == [{"advisor_payout_id": payout.id, "advisor_id": seeded.advisor_id, "name": "Asha Rao"}]

    _pay(test_db, seeded, payout.id, "4500")
    assert payouts.leads_with_outstanding_payouts(test_db) == []


def test_list_advisor_payouts_filters_by_advisor_and_client(test_db, seeded):
    from loandesk.crud import ListFilters

    payouts.create_advisor_payout(test_db, seeded.actor, _payout_payload(seeded))
    payouts.create_advisor_payout(
        test_db, seeded.actor, _payout_payload(seeded, advisor_id=seeded.other_advisor_id)
    )

    by_advisor = payouts.list_advisor_payouts(test_db, ListFilters(advisor_name="vikram"))
    assert by_advisor.total == 1
    assert by_advisor.items[0].advisor_display_name == "Vikram Shah - ADV002"

    by_client = payouts.list_advisor_payouts(test_db, ListFilters(client_name="nobody"))
    assert by_client.total == 0

    paged = payouts.list_advisor_payouts(test_db, ListFilters(page=2, limit=1))
    assert paged.total == 2
    assert len(paged.items) == 1
    assert paged.total_pages == 2


def test_unknown_processed_by_is_not_found(test_db, seeded):
    with pytest.raises(NotFoundError) as excinfo:
        payouts.create_advisor_payout(test_db, seeded.actor, _payout_payload(seeded, processed_by_id=424242))

    assert excinfo.value.message == "Processed by not found"
    assert test_db.query(AdvisorPayout).count() == 0


def test_edit_resolves_processed_by(test_db, seeded):
    processor = ProcessedBy(processed_by="Back Office")
    test_db.add(processor)
    test_db.commit()
    payout = payouts.create_advisor_payout(test_db, seeded.actor, _payout_payload(seeded))

    with pytest.raises(NotFoundError):
        payouts.edit_advisor_payout(test_db, seeded.actor, payout.id, AdvisorPayoutUpdate(processed_by_id=424242))

    edited = payouts.edit_advisor_payout(
        test_db, seeded.actor, payout.id, AdvisorPayoutUpdate(processed_by_id=processor.id)
    )
    assert edited.processed_by_id == processor.id


def test_edit_recomputes_from_the_stored_percent(test_db, seeded):
    payout = payouts.create_advisor_payout(
        test_db,
        seeded.actor,
        _payout_payload(seeded, payout_percent=Decimal("33.335"), tds_percent=Decimal("0"), gst_applicable=False),
    )
    assert payout.payout_percent == Decimal("33.34")
    assert payout.payout_amount == Decimal("33340.00")

    edited = payouts.edit_advisor_payout(
        test_db, seeded.actor, payout.id, AdvisorPayoutUpdate(tds_percent=Decimal("10"))
    )

    assert edited.payout_amount == Decimal("33340.00")
    assert edited.tds_amount == Decimal("3334.00")
    assert edited.remaining_payable_amount == Decimal("30006.00")
