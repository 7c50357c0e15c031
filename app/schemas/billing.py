"""Supplier billing summary schema."""

from __future__ import annotations

from datetime import date

from app.core.enums import BalanceStatus
from app.schemas.common import CamelModel, Money
from app.services.ledger_query import BillingSummary


class CurrentBalance(CamelModel):
    outstanding_fees: Money
    pending_fees: Money
    status: BalanceStatus
    next_billing_date: date


class MonthSummary(CamelModel):
    completed_orders: int
    total_effective_value: Money
    avg_fee_rate: Money
    fees_owed: Money


class BillingSummaryResponse(CamelModel):
    current_balance: CurrentBalance
    month_summary: MonthSummary

    @classmethod
    def from_summary(cls, summary: BillingSummary) -> "BillingSummaryResponse":
        balance = summary.current_balance
        month = summary.month_summary
        return cls(
            current_balance=CurrentBalance(
                outstanding_fees=balance.outstanding_fees,
                pending_fees=balance.pending_fees,
                status=balance.status,
                next_billing_date=balance.next_billing_date,
            ),
            month_summary=MonthSummary(
                completed_orders=month.completed_orders,
                total_effective_value=month.total_effective_value,
                avg_fee_rate=month.avg_fee_rate,
                fees_owed=month.fees_owed,
            ),
        )
