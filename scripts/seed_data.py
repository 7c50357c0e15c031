import sys
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from app.core.config import get_config
from app.auth.jwt import create_access_token
from app.database.db import SessionLocal
from app.database.init_db import init_db
from app.database.models import Supplier, utcnow_naive
from app.services.ledger_store import LedgerStore, OrderCompletion

DEMO_SUPPLIERS = [
    ("Tbilisi Concrete Works", None),
    ("Kutaisi Timber Supply", Decimal("4.50")),
]

# (days ago, order type, effective value, notes)
DEMO_ORDERS = [
    (2, "material", "1250.00", "Standard delivery, no adjustments"),
    (5, "material", "3500.00", "Large concrete order"),
    (25, "material", "890.00", "Invoiced in previous month"),
    (40, "rental", "450.00", "Excavator rental, 3 days"),
    (8, "rental", "1200.00", "Scaffolding rental, 2 weeks"),
]


def seed_suppliers(db) -> list[Supplier]:
    suppliers = []
    for name, rate in DEMO_SUPPLIERS:
        supplier = db.query(Supplier).filter(Supplier.name == name).first()
        if supplier is None:
            supplier = Supplier(name=name, fee_percentage=rate, active=True)
            db.add(supplier)
            db.commit()
            db.refresh(supplier)
            print(f"Seeded supplier {supplier.id}: {name}")
        suppliers.append(supplier)
    return suppliers


def seed_orders(db, supplier: Supplier) -> None:
    store = LedgerStore(db=db)
    now = utcnow_naive()
    for index, (days_ago, order_type, value, notes) in enumerate(DEMO_ORDERS, start=1):
        entry = store.create_entry(
            OrderCompletion(
                supplier_id=supplier.id,
                order_id=f"demo-{supplier.id}-{index:03d}",
                order_type=order_type,
                effective_value=value,
                completed_at=now - timedelta(days=days_ago),
                notes=notes,
            ),
            actor="seed",
        )
        print(f"  entry {entry.id}: {entry.order_id} fee {entry.fee_amount} ({entry.status.value})")


def main() -> None:
    init_db()
    db = SessionLocal()
    try:
        suppliers = seed_suppliers(db)
        for supplier in suppliers:
            print(f"Seeding orders for {supplier.name}...")
            seed_orders(db, supplier)

        config = get_config()
        print("\nDemo tokens:")
        print("  admin:    ", create_access_token("admin-1", "admin", config.JWT_SECRET))
        print(
            "  supplier: ",
            create_access_token(f"supplier-{suppliers[0].id}", "supplier", config.JWT_SECRET, supplier_id=suppliers[0].id),
        )
    finally:
        db.close()


if __name__ == "__main__":
    main()
