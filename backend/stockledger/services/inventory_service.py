# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/stockledger/services/inventory_service.py

from flask import current_app

from ..extensions import db
from ..models import Customer, Product
from ..time_utils import utcnow
from ..validation import (
    MOVEMENT_IN,
    NotFoundError,
    StockEntryPayload,
    ValidationError,
    enforce_rules_stock_entry,
)
from .aggregate_service import load_app_data
from .ledger_service import append_stock_movement
from .unit_of_work import atomic, lock_for_update
"""
Inventory Invariants (authoritative)

Inventory model:
- products.qty is the quantity on hand; it is a real number and never negative.
- Every change to products.qty happens inside a unit of work that also
  appends the matching StockMovement (IN, OUT or RETURN).

Business invariants:
- A change that would take qty below zero is rejected before any write.
- Manual stock entries are IN or OUT only; RETURN is reserved for the
  return operation, which also writes the reversing Sale row.
- Archived products accept no new stock entries or sales.
"""


def get_product(product_id, *, require_active: bool = False, lock: bool = False) -> Product:
    if product_id is None:
        raise ValidationError("product_id is required")
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFoundError("Product not found")
    if require_active and product.archived:
        raise ValidationError("Product is archived")
    return product


def get_customer(customer_id) -> Customer:
    if customer_id is None:
        raise ValidationError("customer_id is required")
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if customer is None:
        raise NotFoundError("Customer not found")
    return customer


def apply_quantity_delta(product: Product, delta: float) -> float:
    """
    Change on-hand quantity by a signed delta.

    Raises ValidationError (and writes nothing) when the result would be negative.
    """
    new_qty = product.qty + delta
    if new_qty < 0:
        raise ValidationError(
            f"Insufficient stock for {product.name}: on hand {product.qty:g}, requested {-delta:g}"
        )
    product.qty = new_qty
    db.session.flush()
    return new_qty


def record_stock_entry(payload: StockEntryPayload) -> dict:
    """
    Record a manual stock movement (IN or OUT) that is not a sale.

    The unit price defaults to the product's current price; total_amount is
    unit_price * qty. Quantity update and movement row commit together.
    """
    enforce_rules_stock_entry(payload)

    with atomic("stock entry"):
        product = get_product(payload.product_id, require_active=True, lock=True)
        if payload.customer_id is not None:
            get_customer(payload.customer_id)

        delta = payload.qty if payload.kind == MOVEMENT_IN else -payload.qty
        apply_quantity_delta(product, delta)

        unit_price = payload.unit_price if payload.unit_price is not None else product.unit_price
        mv = append_stock_movement(
            ts=utcnow(),
            kind=payload.kind,
            product_id=product.id,
            qty=payload.qty,
            unit_price=unit_price,
            total_amount=unit_price * payload.qty,
            counterparty=payload.counterparty,
            customer_id=payload.customer_id,
            note=payload.note,
        )
        current_app.logger.info(
            "Stock %s product_id=%s qty=%s movement_id=%s", payload.kind, product.id, payload.qty, mv.id
        )

    return load_app_data()


def receive_initial_stock(product: Product, qty: float) -> None:
    """Initial stock on product creation: an IN movement in the creator's unit of work."""
    apply_quantity_delta(product, qty)
    append_stock_movement(
        ts=utcnow(),
        kind=MOVEMENT_IN,
        product_id=product.id,
        qty=qty,
        unit_price=product.unit_price,
        total_amount=qty * product.unit_price,
        note="Initial stock",
    )


