from datetime import datetime

import pytest

from stockledger.extensions import db
from stockledger.models import CreditEntry, Product, Sale, StockMovement
from stockledger.services.customers_service import delete_customer
from stockledger.services.ledger_service import append_sale
from stockledger.services.products_service import archive_product
from stockledger.services.return_service import (
    ReturnCandidate,
    outstanding_sales,
    plan_allocation,
    preview_return,
    record_return,
)
from stockledger.services.sales_service import record_sale
from stockledger.services.unit_of_work import atomic
from stockledger.validation import (
    NotFoundError,
    ReturnPayload,
    SalePayload,
    ValidationError,
)

from conftest import balance_for, find_by_name, returned_qty_by_origin


def _candidate(sale_id, qty, returned=0.0, price=10.0):
    return ReturnCandidate(
        sale_id=sale_id,
        ts=datetime(2026, 1, sale_id),
        qty=qty,
        returned_qty=returned,
        price_snapshot=price,
        is_credit=False,
        customer_id=None,
    )


# =============================================================================
# ALLOCATION (pure)
# =============================================================================

def test_plan_allocation_is_fifo():
    portions = plan_allocation([_candidate(1, 5.0), _candidate(2, 5.0)], 7.0)
    assert [(p.candidate.sale_id, p.qty) for p in portions] == [(1, 5.0), (2, 2.0)]


def test_plan_allocation_respects_previous_returns():
    portions = plan_allocation([_candidate(1, 5.0, returned=4.0), _candidate(2, 5.0)], 3.0)
    assert [(p.candidate.sale_id, p.qty) for p in portions] == [(1, 1.0), (2, 2.0)]


def test_plan_allocation_uses_snapshot_prices():
    portions = plan_allocation([_candidate(1, 1.0, price=4.0), _candidate(2, 2.0, price=6.0)], 3.0)
    assert sum(p.amount for p in portions) == 16.0


def test_plan_allocation_without_candidates():
    with pytest.raises(ValidationError, match="No outstanding sales"):
        plan_allocation([], 1.0)


def test_plan_allocation_over_available():
    with pytest.raises(ValidationError, match="exceeds"):
        plan_allocation([_candidate(1, 5.0)], 6.0)


def test_plan_allocation_tolerates_rounding_noise():
    portions = plan_allocation([_candidate(1, 0.3)], 0.1 + 0.2)
    assert len(portions) == 1


# =============================================================================
# RECORD RETURN
# =============================================================================

def test_full_cash_return_restores_stock(db_session, stocked_widget):
    record_sale(SalePayload(product_id=stocked_widget["id"], qty=5.0))

    data = record_return(ReturnPayload(product_id=stocked_widget["id"], qty=5.0))

    assert find_by_name(data["products"], "Widget")["qty"] == 20.0
    returns = [s for s in data["sales"] if s["is_return"]]
    sales = [s for s in data["sales"] if not s["is_return"]]
    assert len(returns) == 1
    assert returns[0]["origin_sale_id"] == sales[0]["id"]
    assert returns[0]["unit_price"] == 10.0
    assert returns[0]["total_amount"] == 50.0

    ret_mv = data["stock_movements"][0]
    assert ret_mv["kind"] == "RETURN"
    assert ret_mv["sale_id"] == returns[0]["id"]
    assert data["credits"] == []


def test_return_splits_fifo_across_sales(db_session, stocked_widget):
    record_sale(SalePayload(product_id=stocked_widget["id"], qty=5.0))
    record_sale(SalePayload(product_id=stocked_widget["id"], qty=5.0))
    first, second = db_session.query(Sale).order_by(Sale.id).all()
    first_id, second_id = first.id, second.id

    record_return(ReturnPayload(product_id=stocked_widget["id"], qty=7.0))

    returned = returned_qty_by_origin()
    assert returned == {first_id: 5.0, second_id: 2.0}
    assert db_session.query(Product).one().qty == 17.0
    assert db_session.query(StockMovement).filter_by(kind="RETURN").count() == 2


def test_fifo_follows_timestamp_not_insertion_order(db_session, stocked_widget):
    pid = stocked_widget["id"]
    with atomic("seed sales"):
        newer = append_sale(ts=datetime(2026, 3, 1), product_id=pid, qty=5.0, price_snapshot=10.0)
        older = append_sale(ts=datetime(2026, 1, 1), product_id=pid, qty=5.0, price_snapshot=10.0)
        newer_id, older_id = newer.id, older.id

    candidates = outstanding_sales(pid)
    assert [c.sale_id for c in candidates] == [older_id, newer_id]

    record_return(ReturnPayload(product_id=pid, qty=6.0))
    assert returned_qty_by_origin() == {older_id: 5.0, newer_id: 1.0}


def test_return_over_available_changes_nothing(db_session, stocked_widget):
    record_sale(SalePayload(product_id=stocked_widget["id"], qty=5.0))

    with pytest.raises(ValidationError, match="exceeds"):
        record_return(ReturnPayload(product_id=stocked_widget["id"], qty=6.0))

    assert db_session.query(Product).one().qty == 15.0
    assert db_session.query(Sale).count() == 1
    assert db_session.query(StockMovement).filter_by(kind="RETURN").count() == 0


def test_return_without_sales_is_rejected(db_session, stocked_widget):
    with pytest.raises(ValidationError, match="No outstanding sales"):
        record_return(ReturnPayload(product_id=stocked_widget["id"], qty=1.0))


def test_returned_qty_never_exceeds_sale_qty(db_session, stocked_widget):
    record_sale(SalePayload(product_id=stocked_widget["id"], qty=3.0))
    record_return(ReturnPayload(product_id=stocked_widget["id"], qty=2.0))
    record_return(ReturnPayload(product_id=stocked_widget["id"], qty=1.0))

    with pytest.raises(ValidationError, match="No outstanding sales"):
        record_return(ReturnPayload(product_id=stocked_widget["id"], qty=0.5))

    sale = db_session.query(Sale).filter_by(is_return=False).one()
    assert returned_qty_by_origin()[sale.id] == pytest.approx(sale.qty)


def test_customer_match_is_exact(db_session, stocked_widget, customer, other_customer):
    record_sale(SalePayload(product_id=stocked_widget["id"], qty=2.0, customer_id=customer["id"]))
    record_sale(SalePayload(product_id=stocked_widget["id"], qty=4.0))

    # walk-in returns only see the walk-in sale
    with pytest.raises(ValidationError, match="exceeds"):
        record_return(ReturnPayload(product_id=stocked_widget["id"], qty=5.0))
    # Bob bought nothing
    with pytest.raises(ValidationError, match="No outstanding sales"):
        record_return(
            ReturnPayload(product_id=stocked_widget["id"], qty=1.0, customer_id=other_customer["id"])
        )

    data = record_return(
        ReturnPayload(product_id=stocked_widget["id"], qty=2.0, customer_id=customer["id"])
    )
    ret = next(s for s in data["sales"] if s["is_return"])
    assert ret["customer_id"] == customer["id"]


def test_credit_return_pays_back_against_original_sale(db_session, stocked_widget, customer):
    data = record_sale(
        SalePayload(product_id=stocked_widget["id"], qty=3.0, customer_id=customer["id"], is_credit=True)
    )
    original_id = data["sales"][0]["id"]
    assert balance_for(data, customer["id"])["outstanding"] == 30.0

    data = record_return(
        ReturnPayload(product_id=stocked_widget["id"], qty=1.0, customer_id=customer["id"])
    )

    payment = data["credits"][0]
    assert payment["is_payment"] is True
    assert payment["amount"] == 10.0
    assert payment["sale_id"] == original_id
    assert payment["note"] == "Return settlement"
    assert balance_for(data, customer["id"])["outstanding"] == 20.0

    ret = next(s for s in data["sales"] if s["is_return"])
    assert ret["is_credit"] is True


def test_full_credit_return_clears_balance(db_session, stocked_widget, customer):
    record_sale(
        SalePayload(product_id=stocked_widget["id"], qty=4.0, customer_id=customer["id"], is_credit=True)
    )
    data = record_return(
        ReturnPayload(product_id=stocked_widget["id"], qty=4.0, customer_id=customer["id"], note="damaged")
    )

    assert find_by_name(data["products"], "Widget")["qty"] == 20.0
    assert balance_for(data, customer["id"])["outstanding"] == 0
    assert data["credits"][0]["note"] == "damaged"


@pytest.mark.parametrize(
    "override, expected_is_payment, expected_amount, expected_outstanding",
    [
        (25.0, False, 5.0, 15.0),
        (15.0, True, 5.0, 5.0),
    ],
)
def test_override_books_adjustment(
    db_session, stocked_widget, customer, override, expected_is_payment, expected_amount, expected_outstanding
):
    record_sale(
        SalePayload(product_id=stocked_widget["id"], qty=3.0, customer_id=customer["id"], is_credit=True)
    )
    data = record_return(
        ReturnPayload(
            product_id=stocked_widget["id"], qty=2.0, customer_id=customer["id"], override_amount=override
        )
    )

    adjustment = next(c for c in data["credits"] if c["note"] == "Return amount adjustment")
    assert adjustment["sale_id"] is None
    assert adjustment["is_payment"] is expected_is_payment
    assert adjustment["amount"] == expected_amount
    assert balance_for(data, customer["id"])["outstanding"] == expected_outstanding


def test_override_equal_to_computed_books_nothing(db_session, stocked_widget, customer):
    record_sale(
        SalePayload(product_id=stocked_widget["id"], qty=3.0, customer_id=customer["id"], is_credit=True)
    )
    record_return(
        ReturnPayload(product_id=stocked_widget["id"], qty=1.0, customer_id=customer["id"], override_amount=10.0)
    )
    assert db_session.query(CreditEntry).filter_by(note="Return amount adjustment").count() == 0


def test_override_without_customer_books_nothing(db_session, stocked_widget):
    record_sale(SalePayload(product_id=stocked_widget["id"], qty=3.0))
    record_return(ReturnPayload(product_id=stocked_widget["id"], qty=1.0, override_amount=3.0))
    assert db_session.query(CreditEntry).count() == 0


def test_return_for_missing_customer(db_session, stocked_widget):
    with pytest.raises(NotFoundError):
        record_return(ReturnPayload(product_id=stocked_widget["id"], qty=1.0, customer_id=5))


def test_archived_product_still_accepts_returns(db_session, stocked_widget):
    record_sale(SalePayload(product_id=stocked_widget["id"], qty=2.0))
    archive_product(stocked_widget["id"])

    record_return(ReturnPayload(product_id=stocked_widget["id"], qty=2.0))
    assert db.session.query(Product).one().qty == 20.0


def test_sales_of_deleted_customer_are_returnable_as_walk_in(db_session, stocked_widget, customer):
    record_sale(SalePayload(product_id=stocked_widget["id"], qty=2.0, customer_id=customer["id"]))
    delete_customer(customer["id"])

    data = record_return(ReturnPayload(product_id=stocked_widget["id"], qty=2.0))
    ret = next(s for s in data["sales"] if s["is_return"])
    assert ret["customer_id"] is None


# =============================================================================
# PREVIEW
# =============================================================================

def test_preview_caps_at_available_and_writes_nothing(db_session, stocked_widget, customer):
    record_sale(
        SalePayload(product_id=stocked_widget["id"], qty=3.0, customer_id=customer["id"], is_credit=True)
    )

    preview = preview_return(stocked_widget["id"], customer["id"], 10.0)

    assert preview["available_qty"] == 3.0
    assert preview["qty"] == 3.0
    assert preview["refund_amount"] == 30.0
    assert len(preview["portions"]) == 1
    assert preview["portions"][0]["is_credit"] is True
    assert db_session.query(Sale).filter_by(is_return=True).count() == 0


def test_preview_with_nothing_outstanding(db_session, stocked_widget):
    preview = preview_return(stocked_widget["id"], None)
    assert preview["available_qty"] == 0
    assert preview["portions"] == []


def test_preview_rejects_non_positive_qty(db_session, stocked_widget):
    with pytest.raises(ValidationError):
        preview_return(stocked_widget["id"], None, 0.0)
