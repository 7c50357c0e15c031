from __future__ import annotations

import pytest

from app.core.enums import DisputeStatus, InvoiceStatus, LedgerStatus
from app.core.exceptions import InvalidTransitionError
from app.orchestration.state_machine import (
    DISPUTE_STATE_MACHINE,
    INVOICE_STATE_MACHINE,
    LEDGER_STATE_MACHINE,
    StateMachine,
)


def test_state_machine_allows_valid_transition():
    sm = StateMachine("job", {"new": {"running"}, "running": {"completed"}})
    assert sm.can_transition("new", "running") is True
    sm.assert_transition("new", "running")


def test_state_machine_rejects_invalid_transition():
    sm = StateMachine("job", {"new": {"running"}})
    with pytest.raises(InvalidTransitionError, match="job transition not allowed: new -> completed"):
        sm.assert_transition("new", "completed")


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (LedgerStatus.PENDING, LedgerStatus.INVOICED),
        (LedgerStatus.PENDING, LedgerStatus.DISPUTED),
        (LedgerStatus.INVOICED, LedgerStatus.PAID),
        (LedgerStatus.INVOICED, LedgerStatus.DISPUTED),
        (LedgerStatus.PAID, LedgerStatus.DISPUTED),
        (LedgerStatus.DISPUTED, LedgerStatus.PENDING),
        (LedgerStatus.DISPUTED, LedgerStatus.INVOICED),
        (LedgerStatus.DISPUTED, LedgerStatus.PAID),
    ],
)
def test_ledger_allowed_transitions(current, target):
    assert LEDGER_STATE_MACHINE.can_transition(current, target)


@pytest.mark.parametrize(
    ("current", "target"),
    [
        (LedgerStatus.PAID, LedgerStatus.PENDING),
        (LedgerStatus.PAID, LedgerStatus.INVOICED),
        (LedgerStatus.INVOICED, LedgerStatus.PENDING),
        (LedgerStatus.PENDING, LedgerStatus.PAID),
        (LedgerStatus.PENDING, LedgerStatus.PENDING),
    ],
)
def test_ledger_forbidden_transitions(current, target):
    with pytest.raises(InvalidTransitionError):
        LEDGER_STATE_MACHINE.assert_transition(current, target)


def test_invoice_and_dispute_tables():
    assert INVOICE_STATE_MACHINE.targets(InvoiceStatus.OPEN) == {InvoiceStatus.PAID, InvoiceStatus.OVERDUE}
    assert INVOICE_STATE_MACHINE.targets(InvoiceStatus.OVERDUE) == {InvoiceStatus.PAID}
    assert INVOICE_STATE_MACHINE.targets(InvoiceStatus.PAID) == frozenset()

    assert DISPUTE_STATE_MACHINE.can_transition(DisputeStatus.OPEN, DisputeStatus.RESOLVED)
    assert DISPUTE_STATE_MACHINE.can_transition(DisputeStatus.SUPPLIER_RESPONDED, DisputeStatus.RESOLVED)
    assert not DISPUTE_STATE_MACHINE.can_transition(DisputeStatus.RESOLVED, DisputeStatus.OPEN)
    assert not DISPUTE_STATE_MACHINE.can_transition(DisputeStatus.SUPPLIER_RESPONDED, DisputeStatus.OPEN)
