"""Commission and fee arithmetic shared by the payout and invoice ledgers.

Everything here is pure: callers pass amounts and percentages in and get a
``FeeBreakdown`` back. Nothing is persisted, so a ``ValidationError`` raised
here always happens before the ledger touches the database.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from loandesk.errors import ValidationError

MONEY_QUANT = Decimal("0.01")
# percent columns are Numeric(5, 2)
PERCENT_QUANT = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0")


@dataclass(frozen=True)
class FeeBreakdown:
    """Derived figures for one payout or invoice."""

    disbursal_amount: Decimal
    payout_percent: Decimal
    payout_amount: Decimal
    tds_percent: Decimal
    tds_amount: Decimal
    gst_percent: Decimal
    gst_amount: Decimal
    net_amount: Decimal

    @property
    def payable_bucket(self) -> Decimal:
        """Amount owed excluding GST (payout less TDS)."""

        return self.payout_amount - self.tds_amount


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def _to_decimal(value: Any, field: str) -> Decimal:
    if value is None or value == "":
        return ZERO
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationError(field, f"{field} must be a number") from exc


def validate_percent(value: Any, field: str) -> Decimal:
    """Return ``value`` rounded to two places, rejecting anything outside [0, 100]."""

    percent = _to_decimal(value, field)
    if percent < ZERO or percent > HUNDRED:
        raise ValidationError(field, f"{field} should be between 0 and 100")
    return percent.quantize(PERCENT_QUANT, rounding=ROUND_HALF_UP)


def validate_money(value: Any, field: str) -> Decimal:
    """Return ``value`` as a quantized Decimal, rejecting negatives."""

    amount = _to_decimal(value, field)
    if amount < ZERO:
        raise ValidationError(field, f"{field} cannot be negative")
    return quantize_money(amount)


def _compute(
    disbursal_amount: Any,
    payout_percent: Any,
    tds_percent: Any,
    gst_percent: Any,
    apply_gst: bool,
    payout_amount: Any,
    tds_amount: Any,
) -> FeeBreakdown:
    disbursal = validate_money(disbursal_amount, "disbursal_amount")
    payout_pct = validate_percent(payout_percent, "payout_percent")
    tds_pct = validate_percent(tds_percent, "tds_percent")
    gst_pct = validate_percent(gst_percent, "gst_percent")

    if payout_amount is not None:
        payout = validate_money(payout_amount, "payout_amount")
    else:
        payout = quantize_money(disbursal * payout_pct / HUNDRED)

    if tds_amount is not None:
        tds = validate_money(tds_amount, "tds_amount")
    else:
        tds = quantize_money(payout * tds_pct / HUNDRED)

    if tds > payout:
        raise ValidationError("tds_amount", "tds_amount cannot exceed payout_amount")

    gst = quantize_money(payout * gst_pct / HUNDRED) if apply_gst else ZERO.quantize(MONEY_QUANT)

    return FeeBreakdown(
        disbursal_amount=disbursal,
        payout_percent=payout_pct,
        payout_amount=payout,
        tds_percent=tds_pct,
        tds_amount=tds,
        gst_percent=gst_pct,
        gst_amount=gst,
        net_amount=payout - tds + gst,
    )


def compute_payout_figures(
    disbursal_amount: Any,
    payout_percent: Any,
    tds_percent: Any = 0,
    gst_percent: Any = 0,
    gst_applicable: bool = False,
    payout_amount: Any = None,
    tds_amount: Any = None,
) -> FeeBreakdown:
    """Derive advisor payout figures; GST only counts when ``gst_applicable``.

    Explicit ``payout_amount`` / ``tds_amount`` override the percentage
    calculation for that figure only.
    """

    return _compute(
        disbursal_amount,
        payout_percent,
        tds_percent,
        gst_percent,
        bool(gst_applicable),
        payout_amount,
        tds_amount,
    )


def compute_invoice_figures(
    disbursal_amount: Any,
    payout_percent: Any,
    tds_percent: Any = 0,
    gst_percent: Any = 0,
    payout_amount: Any = None,
    tds_amount: Any = None,
) -> FeeBreakdown:
    """Derive invoice figures; GST is always charged on invoices."""

    return _compute(
        disbursal_amount,
        payout_percent,
        tds_percent,
        gst_percent,
        True,
        payout_amount,
        tds_amount,
    )


__all__ = [
    "FeeBreakdown",
    "compute_invoice_figures",
    "compute_payout_figures",
    "quantize_money",
    "validate_money",
    "validate_percent",
]
