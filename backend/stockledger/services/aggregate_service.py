# Overview: Aggregate reader; re-projects the full ledger view from committed storage.

from __future__ import annotations

from sqlalchemy import case, func

from ..extensions import db
from ..models import CreditEntry, Customer, Product, Sale, StockMovement, decode_movement_kind
from ..time_utils import to_utc_z
"""
Aggregate view (authoritative shape returned by every ledger operation):

{
  "products":          active products, case-insensitive name order
  "customers":         all customers, case-insensitive name order
  "sales":             all sales and returns, newest first, with product/customer display fields
  "stock_movements":   all movements, newest first, with product/customer display fields
  "credits":           all credit entries, newest first, with customer display fields
  "customer_balances": one row per customer (zero-activity customers included)
}

Pure projection: nothing here writes.
"""


def fetch_products(*, include_archived: bool = False) -> list[dict]:
    q = db.session.query(Product)
    if not include_archived:
        q = q.filter(Product.archived.is_(False))
    products = q.order_by(func.lower(Product.name).asc(), Product.id.asc()).all()
    return [p.to_dict() for p in products]


def fetch_customers() -> list[dict]:
    customers = (
        db.session.query(Customer)
        .order_by(func.lower(Customer.name).asc(), Customer.id.asc())
        .all()
    )
    return [c.to_dict() for c in customers]


def fetch_sales() -> list[dict]:
    rows = (
        db.session.query(
            Sale,
            Product.name.label("product_name"),
            Customer.name.label("customer_name"),
            Customer.phone.label("customer_phone"),
        )
        .join(Product, Product.id == Sale.product_id)
        .outerjoin(Customer, Customer.id == Sale.customer_id)
        .order_by(Sale.ts.desc(), Sale.id.desc())
        .all()
    )

    sales = []
    for sale, product_name, customer_name, customer_phone in rows:
        item = sale.to_dict()
        item["product_name"] = product_name
        item["customer_name"] = customer_name
        item["customer_phone"] = customer_phone
        sales.append(item)
    return sales


def fetch_stock_movements() -> list[dict]:
    rows = (
        db.session.query(
            StockMovement,
            Product.name.label("product_name"),
            Customer.name.label("customer_name"),
        )
        .join(Product, Product.id == StockMovement.product_id)
        .outerjoin(Customer, Customer.id == StockMovement.customer_id)
        .order_by(StockMovement.ts.desc(), StockMovement.id.desc())
        .all()
    )

    movements = []
    for mv, product_name, customer_name in rows:
        item = mv.to_dict()
        item["kind"] = decode_movement_kind(mv.kind)
        item["product_name"] = product_name
        item["customer_name"] = customer_name
        movements.append(item)
    return movements


def fetch_credits() -> list[dict]:
    rows = (
        db.session.query(
            CreditEntry,
            Customer.name.label("customer_name"),
            Customer.phone.label("customer_phone"),
        )
        .join(Customer, Customer.id == CreditEntry.customer_id)
        .order_by(CreditEntry.ts.desc(), CreditEntry.id.desc())
        .all()
    )

    credits = []
    for entry, customer_name, customer_phone in rows:
        item = entry.to_dict()
        item["customer_name"] = customer_name
        item["customer_phone"] = customer_phone
        credits.append(item)
    return credits


def fetch_customer_balances() -> list[dict]:
    """
    Per-customer credit balance.

    LEFT OUTER JOIN so a customer with no credit entries still appears with
    zero charged/paid. outstanding = total_credit - total_paid.
    """
    charged = func.coalesce(
        func.sum(case((CreditEntry.is_payment.is_(False), CreditEntry.amount), else_=0.0)), 0.0
    )
    paid = func.coalesce(
        func.sum(case((CreditEntry.is_payment.is_(True), CreditEntry.amount), else_=0.0)), 0.0
    )

    rows = (
        db.session.query(
            Customer.id,
            Customer.name,
            Customer.phone,
            charged.label("total_credit"),
            paid.label("total_paid"),
            func.max(CreditEntry.ts).label("last_activity"),
        )
        .outerjoin(CreditEntry, CreditEntry.customer_id == Customer.id)
        .group_by(Customer.id, Customer.name, Customer.phone)
        .order_by(func.lower(Customer.name).asc(), Customer.id.asc())
        .all()
    )

    return [
        {
            "customer_id": row.id,
            "customer_name": row.name,
            "customer_phone": row.phone,
            "total_credit": float(row.total_credit or 0.0),
            "total_paid": float(row.total_paid or 0.0),
            "outstanding": float(row.total_credit or 0.0) - float(row.total_paid or 0.0),
            "last_activity": to_utc_z(row.last_activity),
        }
        for row in rows
    ]


def load_app_data() -> dict:
    """Full current view, read after the caller's unit of work has committed."""
    return {
        "products": fetch_products(),
        "customers": fetch_customers(),
        "sales": fetch_sales(),
        "stock_movements": fetch_stock_movements(),
        "credits": fetch_credits(),
        "customer_balances": fetch_customer_balances(),
    }
