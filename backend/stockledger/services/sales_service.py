# Overview: Service-layer operations for sales; encapsulates business logic and database work.

from __future__ import annotations

from flask import current_app

from ..validation import MOVEMENT_OUT, SalePayload, enforce_rules_sale
from ..time_utils import utcnow
from .aggregate_service import load_app_data
from .inventory_service import apply_quantity_delta, get_customer, get_product
from .ledger_service import append_credit_entry, append_sale, append_stock_movement
from .unit_of_work import atomic


def record_sale(payload: SalePayload) -> dict:
    """
    Record a sale and everything it implies, atomically:

    1. reject when qty exceeds stock on hand (nothing written)
    2. decrement product qty
    3. Sale row with the price snapshot (payload price, else current product price)
    4. mirroring OUT movement referencing the sale
    5. credit sales only: a charge CreditEntry for the sale total

    Rows written by one sale share the same timestamp.
    """
    enforce_rules_sale(payload)

    with atomic("sale"):
        product = get_product(payload.product_id, require_active=True, lock=True)
        if payload.customer_id is not None:
            get_customer(payload.customer_id)

        apply_quantity_delta(product, -payload.qty)

        now = utcnow()
        price = payload.unit_price if payload.unit_price is not None else product.unit_price
        sale = append_sale(
            ts=now,
            product_id=product.id,
            qty=payload.qty,
            price_snapshot=price,
            customer_id=payload.customer_id,
            note=payload.note,
            is_credit=payload.is_credit,
        )

        append_stock_movement(
            ts=now,
            kind=MOVEMENT_OUT,
            product_id=product.id,
            qty=payload.qty,
            unit_price=price,
            total_amount=sale.total_amount,
            customer_id=payload.customer_id,
            note=payload.note,
            sale_id=sale.id,
        )

        if payload.is_credit and sale.total_amount > 0:
            append_credit_entry(
                ts=now,
                customer_id=payload.customer_id,
                sale_id=sale.id,
                amount=sale.total_amount,
                is_payment=False,
                note=payload.note,
            )

        current_app.logger.info(
            "Sale id=%s product_id=%s qty=%s credit=%s",
            sale.id, product.id, payload.qty, payload.is_credit,
        )

    return load_app_data()
