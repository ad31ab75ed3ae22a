# Overview: Insert-only writers for the sale history, stock movement and credit ledgers.

from __future__ import annotations

from typing import Optional
from datetime import datetime

from ..extensions import db
from ..models import CreditEntry, Sale, StockMovement
from ..validation import MOVEMENT_KINDS, StorageError
"""
Ledger Invariants (authoritative)

- sales, transactions and credits are append-only. This module is the only
  place that creates their rows, and it exposes no update or delete.
- No domain/business logic here: callers validate, then append inside their
  own unit of work (services.unit_of_work.atomic).
- Every row is flushed immediately so the caller can reference its id in
  the next row of the same unit.
"""


def append_sale(
    *,
    ts: datetime,
    product_id: int,
    qty: float,
    price_snapshot: float,
    customer_id: int | None = None,
    note: Optional[str] = None,
    is_credit: bool = False,
    is_return: bool = False,
    origin_sale_id: int | None = None,
) -> Sale:
    """Append a sale (or return) row; total_amount is always qty * price_snapshot."""
    if is_return and origin_sale_id is None:
        raise StorageError("A return row must reference its origin sale")

    sale = Sale(
        ts=ts,
        product_id=product_id,
        qty=qty,
        price_snapshot=price_snapshot,
        total_amount=qty * price_snapshot,
        customer_id=customer_id,
        note=note,
        is_credit=is_credit,
        is_return=is_return,
        origin_sale_id=origin_sale_id,
        customer_deleted=False,
    )
    db.session.add(sale)
    db.session.flush()  # ensures sale.id is assigned without committing
    return sale


def append_stock_movement(
    *,
    ts: datetime,
    kind: str,
    product_id: int,
    qty: float,
    unit_price: Optional[float] = None,
    total_amount: Optional[float] = None,
    counterparty: Optional[str] = None,
    customer_id: int | None = None,
    note: Optional[str] = None,
    sale_id: int | None = None,
) -> StockMovement:
    """
    Append-only stock movement.

    - No updates/deletes of existing movements (the model rejects them).
    - ts is business time, shared with the sale/credit rows of the same unit.
    """
    if kind not in MOVEMENT_KINDS:
        raise StorageError(f"Refusing to write unknown stock movement kind {kind!r}")

    mv = StockMovement(
        ts=ts,
        kind=kind,
        product_id=product_id,
        qty=qty,
        unit_price=unit_price,
        total_amount=total_amount,
        counterparty=counterparty,
        customer_id=customer_id,
        note=note,
        sale_id=sale_id,
    )
    db.session.add(mv)
    db.session.flush()
    return mv


def append_credit_entry(
    *,
    ts: datetime,
    customer_id: int,
    amount: float,
    is_payment: bool,
    sale_id: int | None = None,
    note: Optional[str] = None,
) -> CreditEntry:
    """Append a charge (is_payment=False) or payment (is_payment=True)."""
    entry = CreditEntry(
        ts=ts,
        customer_id=customer_id,
        sale_id=sale_id,
        amount=amount,
        is_payment=is_payment,
        note=note,
    )
    db.session.add(entry)
    db.session.flush()
    return entry
