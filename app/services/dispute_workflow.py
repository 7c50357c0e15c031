"""Buyer dispute lifecycle and its effect on the linked ledger entry."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.orm import Session, contains_eager

from app.core.enums import (
    BuyerType,
    DisputeResolution,
    DisputeSortKey,
    DisputeStatus,
    IssueCategory,
    LedgerStatus,
    SortDirection,
)
from app.core.exceptions import (
    AlreadyResolvedError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
)
from app.core.logging import LogContext, build_log_event
from app.database.models import Dispute, DisputeNote, Supplier, utcnow_naive
from app.orchestration.state_machine import DISPUTE_STATE_MACHINE
from app.services.base_service import BaseService
from app.services.fee_calculator import validate_effective_value
from app.services.ledger_store import LedgerStore
from app.services.locks import SupplierLockRegistry

logger = logging.getLogger(__name__)

ALL = "all"


def _parse_optional(enum_cls, value, field: str):
    if value is None or value == ALL:
        return None
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise InvalidInputError(f"Unknown {field}: {value}") from exc


def _parse_required(enum_cls, value, field: str):
    parsed = _parse_optional(enum_cls, value, field)
    if parsed is None:
        raise InvalidInputError(f"{field} is required")
    return parsed


def _require_text(value: str | None, field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise InvalidInputError(f"{field} cannot be empty")
    return text


@dataclass(frozen=True)
class DisputeQuery:
    """Admin queue filter; a ``None`` filter means ``all``."""

    status: DisputeStatus | None = None
    issue_category: IssueCategory | None = None
    buyer_type: BuyerType | None = None
    sort_key: DisputeSortKey = DisputeSortKey.REPORTED_AT
    sort_direction: SortDirection = SortDirection.DESC

    @classmethod
    def from_params(
        cls,
        status: str | None = ALL,
        issue_category: str | None = ALL,
        buyer_type: str | None = ALL,
        sort_key: str | None = None,
        sort_direction: str | None = None,
    ) -> "DisputeQuery":
        return cls(
            status=_parse_optional(DisputeStatus, status, "status"),
            issue_category=_parse_optional(IssueCategory, issue_category, "issueCategory"),
            buyer_type=_parse_optional(BuyerType, buyer_type, "buyerType"),
            sort_key=_parse_optional(DisputeSortKey, sort_key, "sortKey") or DisputeSortKey.REPORTED_AT,
            sort_direction=_parse_optional(SortDirection, sort_direction, "sortDirection") or SortDirection.DESC,
        )


_SORT_COLUMNS = {
    DisputeSortKey.REPORTED_AT: Dispute.reported_at,
    DisputeSortKey.STATUS: Dispute.status,
    DisputeSortKey.ISSUE_CATEGORY: Dispute.issue_category,
    DisputeSortKey.SUPPLIER_NAME: Supplier.name,
}


class DisputeWorkflow(BaseService):
    """Open, respond to, annotate and resolve disputes."""

    def __init__(
        self,
        db: Session | None = None,
        locks: SupplierLockRegistry | None = None,
        ledger: LedgerStore | None = None,
    ) -> None:
        super().__init__(db=db, locks=locks)
        self.ledger = ledger or LedgerStore(db=self.db, locks=self.locks)

    def get_dispute(self, dispute_id: int) -> Dispute:
        dispute = self.db.get(Dispute, dispute_id)
        if dispute is None:
            raise NotFoundError(f"Dispute {dispute_id} not found")
        return dispute

    def unresolved_for_order(self, order_id: str) -> Dispute | None:
        return (
            self.db.query(Dispute)
            .filter(Dispute.order_id == order_id, Dispute.status != DisputeStatus.RESOLVED)
            .first()
        )

    def open_dispute(
        self,
        order_id: str,
        buyer_type: BuyerType | str,
        issue_category: IssueCategory | str,
        description: str | None = None,
        supplier_id: int | None = None,
        *,
        actor: str = "admin",
    ) -> Dispute:
        """Open a dispute and move the order's ledger entry, if any, to disputed."""
        order_id = _require_text(order_id, "order_id")
        parsed_buyer = _parse_required(BuyerType, buyer_type, "buyerType")
        parsed_category = _parse_required(IssueCategory, issue_category, "issueCategory")

        entry = self.ledger.get_by_order(order_id)
        if entry is not None:
            if supplier_id is not None and supplier_id != entry.supplier_id:
                raise InvalidInputError(f"Order {order_id} belongs to supplier {entry.supplier_id}")
            supplier_id = entry.supplier_id
        if supplier_id is None:
            raise InvalidInputError("supplier_id is required when the order has no ledger entry")
        if self.db.get(Supplier, supplier_id) is None:
            raise NotFoundError(f"Supplier {supplier_id} not found")

        with self.supplier_mutation(supplier_id):
            if self.unresolved_for_order(order_id) is not None:
                raise InvalidInputError(f"Order {order_id} already has an unresolved dispute")

            dispute = Dispute(
                order_id=order_id,
                supplier_id=supplier_id,
                buyer_type=parsed_buyer,
                issue_category=parsed_category,
                description=(description or "").strip() or None,
                status=DisputeStatus.OPEN,
                reported_at=utcnow_naive(),
            )
            self.db.add(dispute)
            self.db.flush()

            if entry is not None:
                self.db.refresh(entry)
                if entry.status != LedgerStatus.DISPUTED:
                    self.ledger.apply_transition(
                        entry,
                        entry.status,
                        LedgerStatus.DISPUTED,
                        actor=actor,
                        reason=f"dispute {dispute.id} opened: {parsed_category.value}",
                    )

        logger.info(
            "dispute.opened",
            extra=build_log_event(
                "dispute.opened",
                LogContext(supplier_id=supplier_id, entry_id=entry.id if entry else None, actor=actor),
                dispute_id=dispute.id,
                issue_category=parsed_category.value,
            ),
        )
        return dispute

    def record_supplier_response(self, dispute_id: int, response: str, *, actor: str = "supplier") -> Dispute:
        text = _require_text(response, "response")
        dispute = self.get_dispute(dispute_id)
        with self.supplier_mutation(dispute.supplier_id):
            self.db.refresh(dispute)
            if dispute.status == DisputeStatus.RESOLVED:
                raise AlreadyResolvedError(f"Dispute {dispute.id} is already resolved")
            DISPUTE_STATE_MACHINE.assert_transition(dispute.status, DisputeStatus.SUPPLIER_RESPONDED)
            dispute.supplier_response = text
            dispute.status = DisputeStatus.SUPPLIER_RESPONDED

        logger.info(
            "dispute.supplier_responded",
            extra=build_log_event(
                "dispute.supplier_responded",
                LogContext(supplier_id=dispute.supplier_id, actor=actor),
                dispute_id=dispute.id,
            ),
        )
        return dispute

    def add_note(self, dispute_id: int, text: str, author: str = "admin") -> DisputeNote:
        """Append an admin note; allowed in every status and never changes it."""
        body = _require_text(text, "note")
        dispute = self.get_dispute(dispute_id)
        with self.supplier_mutation(dispute.supplier_id):
            note = DisputeNote(dispute_id=dispute.id, note=body, author=author or "admin", created_at=utcnow_naive())
            self.db.add(note)
            self.db.flush()
        self.db.refresh(dispute)
        return note

    def resolve(
        self,
        dispute_id: int,
        outcome: str,
        resolution: DisputeResolution | str = DisputeResolution.DENIED,
        adjusted_effective_value: Decimal | int | float | str | None = None,
        *,
        actor: str = "admin",
    ) -> Dispute:
        """Close a dispute and apply its resolution to the linked ledger entry.

        denied reverts the entry to its pre-dispute status, adjusted re-prices
        it at the frozen rate first, and upheld leaves it disputed for a
        manual billing adjustment.
        """
        text = _require_text(outcome, "outcome")
        kind = _parse_required(DisputeResolution, resolution, "resolution")
        new_value = None
        if kind == DisputeResolution.ADJUSTED:
            if adjusted_effective_value is None:
                raise InvalidInputError("adjustedEffectiveValue is required for an adjusted resolution")
            new_value = validate_effective_value(adjusted_effective_value)
        elif adjusted_effective_value is not None:
            raise InvalidInputError("adjustedEffectiveValue is only accepted for an adjusted resolution")

        dispute = self.get_dispute(dispute_id)
        with self.supplier_mutation(dispute.supplier_id):
            self.db.refresh(dispute)
            if dispute.status == DisputeStatus.RESOLVED:
                raise AlreadyResolvedError(f"Dispute {dispute.id} is already resolved")
            DISPUTE_STATE_MACHINE.assert_transition(dispute.status, DisputeStatus.RESOLVED)

            entry = self.ledger.get_by_order(dispute.order_id)
            if entry is None and kind == DisputeResolution.ADJUSTED:
                raise InvalidInputError(f"Order {dispute.order_id} has no ledger entry to adjust")
            if entry is not None:
                self.db.refresh(entry)
                reason = f"dispute {dispute.id} {kind.value}"
                if entry.status == LedgerStatus.DISPUTED:
                    prior = entry.status_before_dispute
                    if kind == DisputeResolution.ADJUSTED:
                        if prior == LedgerStatus.PAID:
                            raise InvalidTransitionError(
                                f"Ledger entry {entry.id} was paid before the dispute and cannot be re-priced"
                            )
                        self.ledger.apply_adjustment(entry, new_value, actor=actor, reason=reason)
                    if kind != DisputeResolution.UPHELD:
                        self.ledger.apply_transition(
                            entry, LedgerStatus.DISPUTED, prior, actor=actor, reason=reason
                        )
                elif kind == DisputeResolution.ADJUSTED:
                    self.ledger.apply_adjustment(entry, new_value, actor=actor, reason=reason)

            dispute.outcome = text
            dispute.resolution = kind
            dispute.status = DisputeStatus.RESOLVED
            dispute.resolved_at = utcnow_naive()

        logger.info(
            "dispute.resolved",
            extra=build_log_event(
                "dispute.resolved",
                LogContext(supplier_id=dispute.supplier_id, entry_id=entry.id if entry else None, actor=actor),
                dispute_id=dispute.id,
                resolution=kind.value,
            ),
        )
        return dispute

    def list_queue(self, query: DisputeQuery | None = None) -> list[Dispute]:
        query = query or DisputeQuery()
        rows = (
            self.db.query(Dispute)
            .join(Supplier, Dispute.supplier_id == Supplier.id)
            .options(contains_eager(Dispute.supplier))
        )
        if query.status is not None:
            rows = rows.filter(Dispute.status == query.status)
        if query.issue_category is not None:
            rows = rows.filter(Dispute.issue_category == query.issue_category)
        if query.buyer_type is not None:
            rows = rows.filter(Dispute.buyer_type == query.buyer_type)

        column = _SORT_COLUMNS[query.sort_key]
        ordering = column.asc() if query.sort_direction == SortDirection.ASC else column.desc()
        return rows.order_by(ordering, Dispute.id.asc()).all()
