"""
Return Processing Service

A return reverses (part of) earlier sales of the same product to the same
customer. It never stands on its own: every return row references the sale
it reverses through origin_sale_id.

ALLOCATION (FIFO):
- Candidates are the non-return sales for (product, customer) that still
  have quantity available, oldest first (ts, then id).
  - customer_id given: exact match
  - customer_id omitted: only sales with no customer
- available = sale.qty - SUM(qty of returns linked to the sale). It is
  derived on every read; there is no counter to keep in sync.
- The requested quantity is split across candidates in order, each portion
  capped at the candidate's availability.

PER PORTION (one unit of work for the whole return):
- product qty += portion
- return Sale row at the original price snapshot
- RETURN stock movement referencing the return row
- credit sale with a customer: a payment CreditEntry of portion * snapshot,
  referencing the ORIGINAL sale

OVERRIDE: when the caller states a different refund total and a customer
is given, a single adjustment CreditEntry books the difference.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Sale
from ..time_utils import to_utc_z, utcnow
from ..validation import (
    MOVEMENT_RETURN,
    QTY_EPSILON,
    ReturnPayload,
    ValidationError,
    enforce_rules_return,
)
from .aggregate_service import load_app_data
from .inventory_service import apply_quantity_delta, get_customer, get_product
from .ledger_service import append_credit_entry, append_sale, append_stock_movement
from .unit_of_work import atomic

RETURN_SETTLEMENT_NOTE = "Return settlement"
RETURN_ADJUSTMENT_NOTE = "Return amount adjustment"


@dataclass(frozen=True)
class ReturnCandidate:
    sale_id: int
    ts: datetime
    qty: float
    returned_qty: float
    price_snapshot: float
    is_credit: bool
    customer_id: Optional[int]

    @property
    def available(self) -> float:
        return self.qty - self.returned_qty


@dataclass(frozen=True)
class ReturnPortion:
    candidate: ReturnCandidate
    qty: float

    @property
    def amount(self) -> float:
        return self.qty * self.candidate.price_snapshot


# =============================================================================
# CANDIDATES
# =============================================================================

def _returned_subquery():
    return (
        db.session.query(
            Sale.origin_sale_id.label("origin_sale_id"),
            func.sum(Sale.qty).label("returned_qty"),
        )
        .filter(Sale.is_return.is_(True), Sale.origin_sale_id.isnot(None))
        .group_by(Sale.origin_sale_id)
        .subquery()
    )


def outstanding_sales(product_id: int, customer_id: int | None = None) -> list[ReturnCandidate]:
    """Non-return sales for the pair with quantity left to return, oldest first."""
    returned = _returned_subquery()
    q = (
        db.session.query(Sale, func.coalesce(returned.c.returned_qty, 0.0))
        .outerjoin(returned, returned.c.origin_sale_id == Sale.id)
        .filter(Sale.product_id == product_id, Sale.is_return.is_(False))
    )
    if customer_id is None:
        q = q.filter(Sale.customer_id.is_(None))
    else:
        q = q.filter(Sale.customer_id == customer_id)

    candidates = []
    for sale, returned_qty in q.order_by(Sale.ts.asc(), Sale.id.asc()).all():
        candidate = ReturnCandidate(
            sale_id=sale.id,
            ts=sale.ts,
            qty=sale.qty,
            returned_qty=float(returned_qty or 0.0),
            price_snapshot=sale.price_snapshot,
            is_credit=bool(sale.is_credit),
            customer_id=sale.customer_id,
        )
        if candidate.available > QTY_EPSILON:
            candidates.append(candidate)
    return candidates


def plan_allocation(candidates: list[ReturnCandidate], qty: float) -> list[ReturnPortion]:
    """
    Split qty across candidates in order. Pure; raises ValidationError when
    there is nothing to return against or not enough left.
    """
    if not candidates:
        raise ValidationError("No outstanding sales to return against")

    total_available = sum(c.available for c in candidates)
    if total_available + QTY_EPSILON < qty:
        raise ValidationError(
            f"Return qty {qty:g} exceeds the returnable quantity {total_available:g}"
        )

    portions = []
    remaining = qty
    for candidate in candidates:
        if remaining <= QTY_EPSILON:
            break
        portion = min(remaining, candidate.available)
        portions.append(ReturnPortion(candidate=candidate, qty=portion))
        remaining -= portion
    return portions


# =============================================================================
# RECORD
# =============================================================================

def record_return(payload: ReturnPayload) -> dict:
    enforce_rules_return(payload)

    with atomic("return"):
        # Archived products can still take returns of earlier sales.
        product = get_product(payload.product_id, lock=True)
        if payload.customer_id is not None:
            get_customer(payload.customer_id)

        portions = plan_allocation(
            outstanding_sales(product.id, payload.customer_id), payload.qty
        )

        now = utcnow()
        computed_total = 0.0
        for portion in portions:
            origin = portion.candidate
            apply_quantity_delta(product, portion.qty)

            ret = append_sale(
                ts=now,
                product_id=product.id,
                qty=portion.qty,
                price_snapshot=origin.price_snapshot,
                customer_id=origin.customer_id,
                note=payload.note,
                is_credit=origin.is_credit,
                is_return=True,
                origin_sale_id=origin.sale_id,
            )
            append_stock_movement(
                ts=now,
                kind=MOVEMENT_RETURN,
                product_id=product.id,
                qty=portion.qty,
                unit_price=origin.price_snapshot,
                total_amount=ret.total_amount,
                customer_id=origin.customer_id,
                note=payload.note,
                sale_id=ret.id,
            )
            if origin.is_credit and origin.customer_id is not None and portion.amount > 0:
                append_credit_entry(
                    ts=now,
                    customer_id=origin.customer_id,
                    sale_id=origin.sale_id,
                    amount=portion.amount,
                    is_payment=True,
                    note=payload.note or RETURN_SETTLEMENT_NOTE,
                )
            computed_total += portion.amount

        if payload.override_amount is not None and payload.customer_id is not None:
            diff = payload.override_amount - computed_total
            if abs(diff) > QTY_EPSILON:
                append_credit_entry(
                    ts=now,
                    customer_id=payload.customer_id,
                    amount=abs(diff),
                    is_payment=diff < 0,
                    note=RETURN_ADJUSTMENT_NOTE,
                )

        current_app.logger.info(
            "Return product_id=%s qty=%s portions=%s refund=%s",
            product.id, payload.qty, len(portions), computed_total,
        )

    return load_app_data()


def preview_return(product_id: int, customer_id: int | None, qty: float | None = None) -> dict:
    """
    Dry run of the allocation. Nothing is written.

    qty is capped at what is available; omitted qty previews a full return.
    """
    get_product(product_id)
    if customer_id is not None:
        get_customer(customer_id)
    if qty is not None and not qty > 0:
        raise ValidationError("Return qty must be > 0")

    candidates = outstanding_sales(product_id, customer_id)
    available = sum(c.available for c in candidates)
    requested = available if qty is None else min(qty, available)

    portions = plan_allocation(candidates, requested) if candidates and requested > 0 else []
    return {
        "product_id": product_id,
        "customer_id": customer_id,
        "available_qty": available,
        "qty": sum(p.qty for p in portions),
        "refund_amount": sum(p.amount for p in portions),
        "portions": [
            {
                "sale_id": p.candidate.sale_id,
                "sale_ts": to_utc_z(p.candidate.ts),
                "qty": p.qty,
                "unit_price": p.candidate.price_snapshot,
                "amount": p.amount,
                "is_credit": p.candidate.is_credit,
            }
            for p in portions
        ],
    }
