"""SQLAlchemy models for the ledger service."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from loandesk.database import Base

PAYABLE_AGAINST_ENUM = ("payableAmount", "gstPayment")
RECEIVABLE_AGAINST_ENUM = ("receivableAmount", "gstPayment")
ACTOR_ROLE_ENUM = ("admin", "employee", "advisor")
DISBURSED_FEEDBACK = "Loan Disbursed"


# --- Reference data ---------------------------------------------------------

class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    department: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Advisor(Base):
    __tablename__ = "advisors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    advisor_code: Mapped[str | None] = mapped_column(String(50), unique=True, nullable=True)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    mobile: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def display_name(self) -> str:
        return f"{self.name} - {self.advisor_code}" if self.advisor_code else self.name


class ProcessedBy(Base):
    __tablename__ = "processed_by"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    processed_by: Mapped[str] = mapped_column(String(200), nullable=False)


class Bank(Base):
    __tablename__ = "banks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)


class City(Base):
    __tablename__ = "cities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    state_name: Mapped[str | None] = mapped_column(String(200), nullable=True)


class Banker(Base):
    __tablename__ = "bankers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    banker_name: Mapped[str] = mapped_column(String(200), nullable=False)
    designation: Mapped[str | None] = mapped_column(String(200), nullable=True)
    mobile: Mapped[str | None] = mapped_column(String(20), nullable=True)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    product: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    bank_id: Mapped[int | None] = mapped_column(ForeignKey("banks.id", ondelete="SET NULL"), nullable=True)
    city_id: Mapped[int | None] = mapped_column(ForeignKey("cities.id", ondelete="SET NULL"), nullable=True)

    bank: Mapped[Bank | None] = relationship()
    city: Mapped[City | None] = relationship()


# --- Leads ------------------------------------------------------------------

class Lead(Base):
    __tablename__ = "leads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lead_no: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    client_name: Mapped[str] = mapped_column(String(200), nullable=False)
    product_type: Mapped[str] = mapped_column(String(100), nullable=False)
    loan_requirement_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    advisor_id: Mapped[int] = mapped_column(ForeignKey("advisors.id"), nullable=False)
    allocated_to: Mapped[int | None] = mapped_column(ForeignKey("employees.id"), nullable=True)
    banker_id: Mapped[int | None] = mapped_column(ForeignKey("bankers.id", ondelete="SET NULL"), nullable=True)
    final_payout: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    final_invoice: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)

    advisor: Mapped[Advisor] = relationship()
    banker: Mapped[Banker | None] = relationship()
    history: Mapped[list["LeadHistory"]] = relationship(
        back_populates="lead",
        cascade="all, delete-orphan",
        order_by="LeadHistory.id",
    )

    @property
    def display_name(self) -> str:
        return f"{self.lead_no} - {self.client_name}"

    @property
    def is_disbursed(self) -> bool:
        """True when the most recent feedback entry reports the loan disbursed."""
        if not self.history:
            return False
        return self.history[-1].feedback == DISBURSED_FEEDBACK


class LeadHistory(Base):
    __tablename__ = "lead_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lead_id: Mapped[int] = mapped_column(ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    feedback: Mapped[str] = mapped_column(String(200), nullable=False)
    comment_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)

    lead: Mapped[Lead] = relationship(back_populates="history")


# --- Payout ledger ----------------------------------------------------------

class AdvisorPayout(Base):
    __tablename__ = "advisor_payouts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lead_id: Mapped[int] = mapped_column(ForeignKey("leads.id"), nullable=False, index=True)
    advisor_id: Mapped[int] = mapped_column(ForeignKey("advisors.id"), nullable=False, index=True)

    disbursal_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    disbursal_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payout_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    payout_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    tds_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=0)
    tds_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    gst_applicable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    gst_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=0)
    gst_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    net_payable_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    remaining_payable_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    remaining_gst_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    invoice_no: Mapped[str | None] = mapped_column(String(100), nullable=True)
    invoice_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    processed_by_id: Mapped[int | None] = mapped_column(ForeignKey("processed_by.id"), nullable=True)
    final_payout: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Banker snapshot shown on the payout statement
    banker_id: Mapped[int | None] = mapped_column(ForeignKey("bankers.id", ondelete="SET NULL"), nullable=True)
    bank_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    banker_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    banker_email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    banker_designation: Mapped[str | None] = mapped_column(String(200), nullable=True)
    banker_mobile: Mapped[str | None] = mapped_column(String(20), nullable=True)
    state_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    city_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    created_by: Mapped[int] = mapped_column(ForeignKey("employees.id"), nullable=False)
    updated_by: Mapped[int | None] = mapped_column(ForeignKey("employees.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    lead: Mapped[Lead] = relationship()
    advisor: Mapped[Advisor] = relationship()
    processed_by: Mapped[ProcessedBy | None] = relationship()
    banker: Mapped[Banker | None] = relationship()
    payables: Mapped[list["Payable"]] = relationship(back_populates="payout", passive_deletes=True)

    __mapper_args__ = {"version_id_col": version}

    @property
    def advisor_display_name(self) -> str | None:
        return self.advisor.display_name if self.advisor else None

    @property
    def lead_display_name(self) -> str | None:
        return self.lead.display_name if self.lead else None

    __table_args__ = (
        UniqueConstraint("lead_id", "advisor_id", name="uq_advisor_payout_lead_advisor"),
        CheckConstraint("remaining_payable_amount >= 0", name="ck_advisor_payout_remaining_payable"),
        CheckConstraint("remaining_gst_amount >= 0", name="ck_advisor_payout_remaining_gst"),
        CheckConstraint("payout_percent >= 0 AND payout_percent <= 100", name="ck_advisor_payout_percent_range"),
        CheckConstraint("tds_percent >= 0 AND tds_percent <= 100", name="ck_advisor_payout_tds_range"),
        CheckConstraint("gst_percent >= 0 AND gst_percent <= 100", name="ck_advisor_payout_gst_range"),
    )


class Payable(Base):
    __tablename__ = "payables"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payout_id: Mapped[int] = mapped_column(
        ForeignKey("advisor_payouts.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    lead_id: Mapped[int] = mapped_column(ForeignKey("leads.id"), nullable=False, index=True)
    advisor_id: Mapped[int] = mapped_column(ForeignKey("advisors.id"), nullable=False, index=True)
    payment_against: Mapped[str] = mapped_column(String(20), nullable=False)
    # Point-in-time copy of the bucket balance when the payment was recorded
    payable_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    balance_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    paid_date: Mapped[date] = mapped_column(Date, nullable=False)
    ref_no: Mapped[str | None] = mapped_column(String(100), nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by: Mapped[int] = mapped_column(ForeignKey("employees.id"), nullable=False)
    updated_by: Mapped[int | None] = mapped_column(ForeignKey("employees.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    payout: Mapped[AdvisorPayout] = relationship(back_populates="payables")
    lead: Mapped[Lead] = relationship()
    advisor: Mapped[Advisor] = relationship()

    __table_args__ = (
        CheckConstraint("payment_against IN ('payableAmount', 'gstPayment')", name="ck_payables_against_valid"),
        CheckConstraint("payable_amount >= 0", name="ck_payables_payable_nonnegative"),
        CheckConstraint("paid_amount >= 0", name="ck_payables_paid_nonnegative"),
        CheckConstraint("balance_amount >= 0", name="ck_payables_balance_nonnegative"),
    )


# --- Invoice ledger ---------------------------------------------------------

class InvoiceMaster(Base):
    __tablename__ = "invoice_masters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lead_id: Mapped[int] = mapped_column(ForeignKey("leads.id"), unique=True, nullable=False)
    invoice_receivable_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    invoice_gst_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    remaining_receivable_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    remaining_gst_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    lead: Mapped[Lead] = relationship()
    invoices: Mapped[list["Invoice"]] = relationship(back_populates="invoice_master")
    receivables: Mapped[list["Receivable"]] = relationship(
        back_populates="invoice_master", cascade="all, delete-orphan"
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("remaining_receivable_amount >= 0", name="ck_invoice_master_remaining_receivable"),
        CheckConstraint("remaining_gst_amount >= 0", name="ck_invoice_master_remaining_gst"),
    )

    @property
    def is_empty(self) -> bool:
        return all(
            Decimal(value or 0) == 0
            for value in (
                self.invoice_receivable_amount,
                self.invoice_gst_amount,
                self.remaining_receivable_amount,
                self.remaining_gst_amount,
            )
        )


class Invoice(Base):
    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_master_id: Mapped[int] = mapped_column(
        ForeignKey("invoice_masters.id"), nullable=False, index=True
    )
    lead_id: Mapped[int] = mapped_column(ForeignKey("leads.id"), nullable=False, index=True)

    disbursal_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    disbursal_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payout_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    payout_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    tds_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=0)
    tds_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    gst_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=0)
    gst_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    net_receivable_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    invoice_no: Mapped[str] = mapped_column(String(100), nullable=False)
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    processed_by_id: Mapped[int | None] = mapped_column(ForeignKey("processed_by.id"), nullable=True)
    final_invoice: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    banker_id: Mapped[int | None] = mapped_column(ForeignKey("bankers.id", ondelete="SET NULL"), nullable=True)
    bank_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    banker_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    banker_email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    banker_designation: Mapped[str | None] = mapped_column(String(200), nullable=True)
    banker_mobile: Mapped[str | None] = mapped_column(String(20), nullable=True)
    state_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    city_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    created_by: Mapped[int] = mapped_column(ForeignKey("employees.id"), nullable=False)
    updated_by: Mapped[int | None] = mapped_column(ForeignKey("employees.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    invoice_master: Mapped[InvoiceMaster] = relationship(back_populates="invoices")
    lead: Mapped[Lead] = relationship()
    processed_by: Mapped[ProcessedBy | None] = relationship()
    banker: Mapped[Banker | None] = relationship()

    __table_args__ = (
        CheckConstraint("payout_percent >= 0 AND payout_percent <= 100", name="ck_invoice_percent_range"),
        CheckConstraint("tds_percent >= 0 AND tds_percent <= 100", name="ck_invoice_tds_range"),
        CheckConstraint("gst_percent >= 0 AND gst_percent <= 100", name="ck_invoice_gst_range"),
    )

    @property
    def receivable_contribution(self) -> Decimal:
        return Decimal(self.payout_amount or 0) - Decimal(self.tds_amount or 0)


class Receivable(Base):
    __tablename__ = "receivables"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_master_id: Mapped[int] = mapped_column(
        ForeignKey("invoice_masters.id", ondelete="CASCADE"), nullable=False, index=True
    )
    lead_id: Mapped[int] = mapped_column(ForeignKey("leads.id"), nullable=False, index=True)
    payment_against: Mapped[str] = mapped_column(String(20), nullable=False)
    receivable_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    received_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    balance_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    received_date: Mapped[date] = mapped_column(Date, nullable=False)
    ref_no: Mapped[str | None] = mapped_column(String(100), nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by: Mapped[int] = mapped_column(ForeignKey("employees.id"), nullable=False)
    updated_by: Mapped[int | None] = mapped_column(ForeignKey("employees.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    invoice_master: Mapped[InvoiceMaster] = relationship(back_populates="receivables")
    lead: Mapped[Lead] = relationship()

    __table_args__ = (
        CheckConstraint(
            "payment_against IN ('receivableAmount', 'gstPayment')", name="ck_receivables_against_valid"
        ),
        CheckConstraint("receivable_amount >= 0", name="ck_receivables_receivable_nonnegative"),
        CheckConstraint("received_amount >= 0", name="ck_receivables_received_nonnegative"),
        CheckConstraint("balance_amount >= 0", name="ck_receivables_balance_nonnegative"),
        Index("idx_receivables_master_against", "invoice_master_id", "payment_against"),
    )
