"""Canonical state transition tables for ledger, invoice and dispute records."""

from __future__ import annotations

from collections.abc import Hashable, Mapping

from app.core.enums import DisputeStatus, InvoiceStatus, LedgerStatus
from app.core.exceptions import InvalidTransitionError


class StateMachine:
    """Explicit transition table over a closed set of states."""

    def __init__(self, name: str, transitions: Mapping[Hashable, set]) -> None:
        self.name = name
        self._transitions = {state: frozenset(targets) for state, targets in transitions.items()}

    def can_transition(self, current, target) -> bool:
        return target in self._transitions.get(current, frozenset())

    def assert_transition(self, current, target) -> None:
        if not self.can_transition(current=current, target=target):
            raise InvalidTransitionError(
                f"{self.name} transition not allowed: {_label(current)} -> {_label(target)}"
            )

    def targets(self, current) -> frozenset:
        return self._transitions.get(current, frozenset())


def _label(state) -> str:
    return getattr(state, "value", str(state))


# Leaving DISPUTED is further restricted to the status held before the dispute.
LEDGER_STATE_MACHINE = StateMachine(
    "ledger",
    {
        LedgerStatus.PENDING: {LedgerStatus.INVOICED, LedgerStatus.DISPUTED},
        LedgerStatus.INVOICED: {LedgerStatus.PAID, LedgerStatus.DISPUTED},
        LedgerStatus.PAID: {LedgerStatus.DISPUTED},
        LedgerStatus.DISPUTED: {LedgerStatus.PENDING, LedgerStatus.INVOICED, LedgerStatus.PAID},
    },
)

INVOICE_STATE_MACHINE = StateMachine(
    "invoice",
    {
        InvoiceStatus.OPEN: {InvoiceStatus.PAID, InvoiceStatus.OVERDUE},
        InvoiceStatus.OVERDUE: {InvoiceStatus.PAID},
        InvoiceStatus.PAID: set(),
    },
)

DISPUTE_STATE_MACHINE = StateMachine(
    "dispute",
    {
        DisputeStatus.OPEN: {DisputeStatus.SUPPLIER_RESPONDED, DisputeStatus.RESOLVED},
        DisputeStatus.SUPPLIER_RESPONDED: {DisputeStatus.RESOLVED},
        DisputeStatus.RESOLVED: set(),
    },
)
