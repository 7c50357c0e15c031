"""Closed status and category enums for ledger, invoice and dispute records.

Values are the lowercase wire strings used by the REST contract and stored in
the database, so ``LedgerStatus("paid")`` round-trips query parameters.
"""

from enum import Enum


class OrderType(str, Enum):
    """Kind of marketplace order a fee was earned on."""

    MATERIAL = "material"
    RENTAL = "rental"


class LedgerStatus(str, Enum):
    """Lifecycle of a single fee obligation."""

    PENDING = "pending"
    INVOICED = "invoiced"
    PAID = "paid"
    DISPUTED = "disputed"


class InvoiceStatus(str, Enum):
    """Lifecycle of a monthly supplier invoice."""

    OPEN = "open"
    PAID = "paid"
    OVERDUE = "overdue"


class DisputeStatus(str, Enum):
    """Lifecycle of a buyer complaint."""

    OPEN = "open"
    SUPPLIER_RESPONDED = "supplier_responded"
    RESOLVED = "resolved"


class DisputeResolution(str, Enum):
    """Financial consequence chosen when a dispute is resolved."""

    DENIED = "denied"
    UPHELD = "upheld"
    ADJUSTED = "adjusted"


class BuyerType(str, Enum):
    HOMEOWNER = "homeowner"
    CONTRACTOR = "contractor"


class IssueCategory(str, Enum):
    SPEC_MISMATCH = "spec_mismatch"
    QUANTITY_SHORT = "quantity_short"
    QUALITY_ISSUE = "quality_issue"
    LATE_DELIVERY = "late_delivery"
    OTHER = "other"


class BalanceStatus(str, Enum):
    """Headline state of a supplier's billing balance."""

    CURRENT = "current"
    DUE_SOON = "due_soon"
    OVERDUE = "overdue"


class LedgerSortKey(str, Enum):
    COMPLETED_AT = "completed_at"
    EFFECTIVE_VALUE = "effective_value"
    FEE_AMOUNT = "fee_amount"


class DisputeSortKey(str, Enum):
    REPORTED_AT = "reportedAt"
    STATUS = "status"
    ISSUE_CATEGORY = "issueCategory"
    SUPPLIER_NAME = "supplierName"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class Role(str, Enum):
    ADMIN = "admin"
    SUPPLIER = "supplier"
