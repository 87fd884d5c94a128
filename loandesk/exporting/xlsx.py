from __future__ import annotations

from decimal import Decimal
from io import BytesIO
from typing import Iterable

import pandas as pd
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from loandesk.models import AdvisorPayout, Invoice, InvoiceMaster, Payable, Receivable

_PAYOUT_COLUMNS = [
    "payout_id",
    "lead",
    "advisor",
    "disbursal_amount",
    "disbursal_date",
    "payout_percent",
    "payout_amount",
    "tds_percent",
    "tds_amount",
    "gst_applicable",
    "gst_percent",
    "gst_amount",
    "net_payable_amount",
    "remaining_payable_amount",
    "remaining_gst_amount",
    "invoice_no",
    "final_payout",
    "created_at",
]


def _money(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def _frame(rows: list[dict], columns: list[str]) -> pd.DataFrame:
    if not rows:  # keep the headers on an empty sheet
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(rows, columns=columns)


def _payouts_df(payouts: Iterable[AdvisorPayout]) -> pd.DataFrame:
    rows = []
    for item in payouts:
        rows.append(
            {
                "payout_id": item.id,
                "lead": item.lead_display_name,
                "advisor": item.advisor_display_name,
                "disbursal_amount": _money(item.disbursal_amount),
                "disbursal_date": item.disbursal_date,
                "payout_percent": _money(item.payout_percent),
                "payout_amount": _money(item.payout_amount),
                "tds_percent": _money(item.tds_percent),
                "tds_amount": _money(item.tds_amount),
                "gst_applicable": item.gst_applicable,
                "gst_percent": _money(item.gst_percent),
                "gst_amount": _money(item.gst_amount),
                "net_payable_amount": _money(item.net_payable_amount),
                "remaining_payable_amount": _money(item.remaining_payable_amount),
                "remaining_gst_amount": _money(item.remaining_gst_amount),
                "invoice_no": item.invoice_no,
                "final_payout": item.final_payout,
                "created_at": item.created_at,
            }
        )
    return _frame(rows, _PAYOUT_COLUMNS)


def _payables_df(payables: Iterable[Payable]) -> pd.DataFrame:
    columns = [
        "payable_id",
        "payout_id",
        "lead_id",
        "advisor_id",
        "payment_against",
        "payable_amount",
        "paid_amount",
        "balance_amount",
        "paid_date",
        "ref_no",
        "remarks",
    ]
    rows = [
        {
            "payable_id": item.id,
            "payout_id": item.payout_id,
            "lead_id": item.lead_id,
            "advisor_id": item.advisor_id,
            "payment_against": item.payment_against,
            "payable_amount": _money(item.payable_amount),
            "paid_amount": _money(item.paid_amount),
            "balance_amount": _money(item.balance_amount),
            "paid_date": item.paid_date,
            "ref_no": item.ref_no,
            "remarks": item.remarks,
        }
        for item in payables
    ]
    return _frame(rows, columns)


def _masters_df(masters: Iterable[InvoiceMaster]) -> pd.DataFrame:
    columns = [
        "invoice_master_id",
        "lead",
        "invoice_receivable_amount",
        "invoice_gst_amount",
        "remaining_receivable_amount",
        "remaining_gst_amount",
    ]
    rows = [
        {
            "invoice_master_id": item.id,
            "lead": item.lead.display_name if item.lead else None,
            "invoice_receivable_amount": _money(item.invoice_receivable_amount),
            "invoice_gst_amount": _money(item.invoice_gst_amount),
            "remaining_receivable_amount": _money(item.remaining_receivable_amount),
            "remaining_gst_amount": _money(item.remaining_gst_amount),
        }
        for item in masters
    ]
    return _frame(rows, columns)


def _invoices_df(invoices: Iterable[Invoice]) -> pd.DataFrame:
    columns = [
        "invoice_id",
        "invoice_master_id",
        "lead_id",
        "invoice_no",
        "invoice_date",
        "disbursal_amount",
        "payout_amount",
        "tds_amount",
        "gst_amount",
        "net_receivable_amount",
        "final_invoice",
    ]
    rows = [
        {
            "invoice_id": item.id,
            "invoice_master_id": item.invoice_master_id,
            "lead_id": item.lead_id,
            "invoice_no": item.invoice_no,
            "invoice_date": item.invoice_date,
            "disbursal_amount": _money(item.disbursal_amount),
            "payout_amount": _money(item.payout_amount),
            "tds_amount": _money(item.tds_amount),
            "gst_amount": _money(item.gst_amount),
            "net_receivable_amount": _money(item.net_receivable_amount),
            "final_invoice": item.final_invoice,
        }
        for item in invoices
    ]
    return _frame(rows, columns)


def _receivables_df(receivables: Iterable[Receivable]) -> pd.DataFrame:
    columns = [
        "receivable_id",
        "invoice_master_id",
        "lead_id",
        "payment_against",
        "receivable_amount",
        "received_amount",
        "balance_amount",
        "received_date",
        "ref_no",
        "remarks",
    ]
    rows = [
        {
            "receivable_id": item.id,
            "invoice_master_id": item.invoice_master_id,
            "lead_id": item.lead_id,
            "payment_against": item.payment_against,
            "receivable_amount": _money(item.receivable_amount),
            "received_amount": _money(item.received_amount),
            "balance_amount": _money(item.balance_amount),
            "received_date": item.received_date,
            "ref_no": item.ref_no,
            "remarks": item.remarks,
        }
        for item in receivables
    ]
    return _frame(rows, columns)


def export_ledger_workbook(db: Session) -> bytes:
    """Return an XLSX workbook (bytes) with one sheet per ledger table."""

    payouts = (
        db.execute(
            select(AdvisorPayout)
            .options(selectinload(AdvisorPayout.lead), selectinload(AdvisorPayout.advisor))
            .order_by(AdvisorPayout.lead_id, AdvisorPayout.id)
        )
        .scalars()
        .all()
    )
    payables = db.execute(select(Payable).order_by(Payable.payout_id, Payable.id)).scalars().all()
    masters = (
        db.execute(select(InvoiceMaster).options(selectinload(InvoiceMaster.lead)).order_by(InvoiceMaster.lead_id))
        .scalars()
        .all()
    )
    invoices = db.execute(select(Invoice).order_by(Invoice.lead_id, Invoice.id)).scalars().all()
    receivables = (
        db.execute(select(Receivable).order_by(Receivable.invoice_master_id, Receivable.id)).scalars().all()
    )

    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        _payouts_df(payouts).to_excel(writer, sheet_name="AdvisorPayouts", index=False)
        _payables_df(payables).to_excel(writer, sheet_name="Payables", index=False)
        _masters_df(masters).to_excel(writer, sheet_name="InvoiceMasters", index=False)
        _invoices_df(invoices).to_excel(writer, sheet_name="Invoices", index=False)
        _receivables_df(receivables).to_excel(writer, sheet_name="Receivables", index=False)

    buffer.seek(0)
    return buffer.getvalue()
