from __future__ import annotations

from decimal import Decimal

import app.core.dependencies as dependencies
import app.database.db as db
import app.schemas as schemas
from app.schemas.common import CamelModel, Money


class _Fee(CamelModel):
    fee_amount: Money


def test_schema_exports_resolve():
    for name in schemas.__all__:
        assert hasattr(schemas, name), name
    assert "CamelModel" in schemas.__all__
    assert "Money" in schemas.__all__


def test_camel_model_renders_money_as_number():
    fee = _Fee(feeAmount=Decimal("12.50"))
    assert fee.fee_amount == Decimal("12.50")
    assert fee.model_dump(mode="json", by_alias=True) == {"feeAmount": 12.5}


def test_sessions_come_from_database_module_only():
    assert callable(db.get_db_session)
    assert not hasattr(dependencies, "get_db_session")
