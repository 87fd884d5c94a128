"""Pydantic schemas for ledger requests and responses."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _strip_optional(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class BankerSnapshot(BaseModel):
    banker_id: Optional[int] = None
    bank_name: Optional[str] = Field(None, max_length=200)
    banker_name: Optional[str] = Field(None, max_length=200)
    banker_email: Optional[str] = Field(None, max_length=200)
    banker_designation: Optional[str] = Field(None, max_length=200)
    banker_mobile: Optional[str] = Field(None, max_length=20)
    state_name: Optional[str] = Field(None, max_length=200)
    city_name: Optional[str] = Field(None, max_length=200)


# --- Advisor payouts ------------------------------------------------------

class AdvisorPayoutCreate(BankerSnapshot):
    lead_id: int
    advisor_id: int
    disbursal_amount: Decimal
    disbursal_date: Optional[date] = None
    payout_percent: Decimal
    payout_amount: Optional[Decimal] = None
    tds_percent: Decimal = Decimal("0")
    tds_amount: Optional[Decimal] = None
    gst_applicable: bool = False
    gst_percent: Decimal = Decimal("0")
    invoice_no: Optional[str] = Field(None, max_length=100)
    invoice_date: Optional[date] = None
    processed_by_id: Optional[int] = None
    final_payout: bool = False
    remarks: Optional[str] = None

    @field_validator("invoice_no", "remarks", mode="before")
    def strip_text(cls, value: Any) -> Any:
        return _strip_optional(value)


class AdvisorPayoutUpdate(BankerSnapshot):
    disbursal_amount: Optional[Decimal] = None
    disbursal_date: Optional[date] = None
    payout_percent: Optional[Decimal] = None
    payout_amount: Optional[Decimal] = None
    tds_percent: Optional[Decimal] = None
    tds_amount: Optional[Decimal] = None
    gst_applicable: Optional[bool] = None
    gst_percent: Optional[Decimal] = None
    invoice_no: Optional[str] = Field(None, max_length=100)
    invoice_date: Optional[date] = None
    processed_by_id: Optional[int] = None
    final_payout: Optional[bool] = None
    remarks: Optional[str] = None

    @field_validator("invoice_no", "remarks", mode="before")
    def strip_text(cls, value: Any) -> Any:
        return _strip_optional(value)


class AdvisorPayoutRead(BankerSnapshot):
    id: int
    lead_id: int
    advisor_id: int
    disbursal_amount: Decimal
    disbursal_date: Optional[date]
    payout_percent: Decimal
    payout_amount: Decimal
    tds_percent: Decimal
    tds_amount: Decimal
    gst_applicable: bool
    gst_percent: Decimal
    gst_amount: Decimal
    net_payable_amount: Decimal
    remaining_payable_amount: Decimal
    remaining_gst_amount: Decimal
    invoice_no: Optional[str]
    invoice_date: Optional[date]
    processed_by_id: Optional[int]
    final_payout: bool
    remarks: Optional[str]
    created_by: int
    updated_by: Optional[int]
    created_at: datetime
    updated_at: datetime
    advisor_display_name: Optional[str] = None
    lead_display_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# --- Payables ---------------------------------------------------------------

class PayableCreate(BaseModel):
    payout_id: int
    payment_against: str
    paid_amount: Decimal
    paid_date: date
    ref_no: Optional[str] = Field(None, max_length=100)
    remarks: Optional[str] = None

    @field_validator("ref_no", "remarks", mode="before")
    def strip_text(cls, value: Any) -> Any:
        return _strip_optional(value)


class PayableUpdate(BaseModel):
    paid_amount: Optional[Decimal] = None
    paid_date: Optional[date] = None
    ref_no: Optional[str] = Field(None, max_length=100)
    remarks: Optional[str] = None

    @field_validator("ref_no", "remarks", mode="before")
    def strip_text(cls, value: Any) -> Any:
        return _strip_optional(value)


class PayableRead(BaseModel):
    id: int
    payout_id: int
    lead_id: int
    advisor_id: int
    payment_against: str
    payable_amount: Decimal
    paid_amount: Decimal
    balance_amount: Decimal
    paid_date: date
    ref_no: Optional[str]
    remarks: Optional[str]
    created_by: int
    updated_by: Optional[int]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PayableDetail(PayableRead):
    advisor_display_name: Optional[str] = None
    total_amount: Decimal
    banker_details: Optional[dict[str, Any]] = None


class AdvisorPanelPayable(PayableRead):
    status: str
    product_type: Optional[str] = None
    client_name: Optional[str] = None


# --- Invoices ---------------------------------------------------------------

class InvoiceCreate(BankerSnapshot):
    lead_id: int
    disbursal_amount: Decimal
    disbursal_date: Optional[date] = None
    payout_percent: Decimal
    payout_amount: Optional[Decimal] = None
    tds_percent: Decimal = Decimal("0")
    tds_amount: Optional[Decimal] = None
    gst_percent: Decimal = Decimal("0")
    invoice_no: str = Field(..., min_length=1, max_length=100)
    invoice_date: date
    processed_by_id: Optional[int] = None
    final_invoice: bool = False
    remarks: Optional[str] = None

    @field_validator("invoice_no", mode="before")
    def strip_invoice_no(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("Invoice No is required.")
        return str(value).strip()

    @field_validator("remarks", mode="before")
    def strip_text(cls, value: Any) -> Any:
        return _strip_optional(value)


class InvoiceUpdate(BankerSnapshot):
    disbursal_amount: Optional[Decimal] = None
    disbursal_date: Optional[date] = None
    payout_percent: Optional[Decimal] = None
    payout_amount: Optional[Decimal] = None
    tds_percent: Optional[Decimal] = None
    tds_amount: Optional[Decimal] = None
    gst_percent: Optional[Decimal] = None
    invoice_no: Optional[str] = Field(None, min_length=1, max_length=100)
    invoice_date: Optional[date] = None
    processed_by_id: Optional[int] = None
    final_invoice: Optional[bool] = None
    remarks: Optional[str] = None

    @field_validator("remarks", mode="before")
    def strip_text(cls, value: Any) -> Any:
        return _strip_optional(value)


class InvoiceRead(BankerSnapshot):
    id: int
    invoice_master_id: int
    lead_id: int
    disbursal_amount: Decimal
    disbursal_date: Optional[date]
    payout_percent: Decimal
    payout_amount: Decimal
    tds_percent: Decimal
    tds_amount: Decimal
    gst_percent: Decimal
    gst_amount: Decimal
    net_receivable_amount: Decimal
    invoice_no: str
    invoice_date: date
    processed_by_id: Optional[int]
    final_invoice: bool
    remarks: Optional[str]
    created_by: int
    updated_by: Optional[int]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InvoiceMasterRead(BaseModel):
    id: int
    lead_id: int
    invoice_receivable_amount: Decimal
    invoice_gst_amount: Decimal
    remaining_receivable_amount: Decimal
    remaining_gst_amount: Decimal
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- Receivables ------------------------------------------------------------

class ReceivableCreate(BaseModel):
    invoice_master_id: int
    payment_against: str
    received_amount: Decimal
    received_date: date
    ref_no: Optional[str] = Field(None, max_length=100)
    remarks: Optional[str] = None

    @field_validator("ref_no", "remarks", mode="before")
    def strip_text(cls, value: Any) -> Any:
        return _strip_optional(value)


class ReceivableUpdate(BaseModel):
    received_amount: Optional[Decimal] = None
    received_date: Optional[date] = None
    ref_no: Optional[str] = Field(None, max_length=100)
    remarks: Optional[str] = None

    @field_validator("ref_no", "remarks", mode="before")
    def strip_text(cls, value: Any) -> Any:
        return _strip_optional(value)


class ReceivableRead(BaseModel):
    id: int
    invoice_master_id: int
    lead_id: int
    payment_against: str
    receivable_amount: Decimal
    received_amount: Decimal
    balance_amount: Decimal
    received_date: date
    ref_no: Optional[str]
    remarks: Optional[str]
    created_by: int
    updated_by: Optional[int]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReceivableDetail(ReceivableRead):
    total_amount: Decimal


# --- Shared -----------------------------------------------------------------

class Envelope(BaseModel):
    success: bool = True
    message: str
    data: Any = None
