# Overview: Read-only reports derived from the ledger; nothing here writes.

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..time_utils import month_key, parse_iso_datetime, to_utc_z
from ..validation import ValidationError
from .aggregate_service import (
    fetch_credits,
    fetch_customer_balances,
    fetch_products,
    fetch_sales,
)
from .return_service import outstanding_sales

WALK_IN_LABEL = "Walk-in customer"


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
    except ValueError:
        raise ValidationError("start and end must be ISO-8601 datetimes")
    return start_dt, end_dt


def _signed(sale: dict) -> int:
    return -1 if sale["is_return"] else 1


def low_stock_products() -> list[dict]:
    """Active products at or below their low-stock threshold."""
    return [p for p in fetch_products() if p["is_low_stock"]]


def outstanding_customers() -> list[dict]:
    """Customers who owe money, largest balance first."""
    rows = [b for b in fetch_customer_balances() if b["outstanding"] > 0]
    return sorted(rows, key=lambda b: b["outstanding"], reverse=True)


def inventory_value() -> dict:
    products = fetch_products()
    rows = [
        {
            "product_id": p["id"],
            "name": p["name"],
            "qty": p["qty"],
            "unit_price": p["unit_price"],
            "value": p["qty"] * p["unit_price"],
        }
        for p in products
    ]
    return {
        "total_qty": sum(r["qty"] for r in rows),
        "total_value": sum(r["value"] for r in rows),
        "rows": rows,
    }


def returnable_positions() -> list[dict]:
    """
    One row per (customer-or-none, product) with quantity still returnable,
    and the outstanding sales behind it, oldest first.
    """
    pairs = []
    seen = set()
    for sale in reversed(fetch_sales()):
        if sale["is_return"]:
            continue
        key = (sale["customer_id"], sale["product_id"])
        if key in seen:
            continue
        seen.add(key)
        pairs.append((key, sale))

    positions = []
    for (customer_id, product_id), sale in pairs:
        candidates = outstanding_sales(product_id, customer_id)
        if not candidates:
            continue
        positions.append(
            {
                "customer_id": customer_id,
                "customer_name": sale["customer_name"] or WALK_IN_LABEL,
                "customer_phone": sale["customer_phone"],
                "product_id": product_id,
                "product_name": sale["product_name"],
                "outstanding_qty": sum(c.available for c in candidates),
                "sales": [
                    {
                        "sale_id": c.sale_id,
                        "ts": to_utc_z(c.ts),
                        "qty": c.qty,
                        "returned_qty": c.returned_qty,
                        "available_qty": c.available,
                        "unit_price": c.price_snapshot,
                        "is_credit": c.is_credit,
                    }
                    for c in candidates
                ],
            }
        )
    return positions


def sales_summary_by_customer(*, start: str | None = None, end: str | None = None) -> dict:
    """
    Signed per-customer totals (returns count negative). Sales without a
    customer are grouped under a single walk-in row. Largest total first.
    """
    start_dt, end_dt = _parse_range(start, end)

    summary: dict[object, dict] = {}
    totals = {"qty": 0.0, "total": 0.0, "credit": 0.0}
    for sale in fetch_sales():
        ts = parse_iso_datetime(sale["ts"])
        if start_dt and ts < start_dt:
            continue
        if end_dt and ts > end_dt:
            continue

        key = sale["customer_id"] if sale["customer_id"] is not None else "NONE"
        entry = summary.setdefault(
            key,
            {
                "customer_id": sale["customer_id"],
                "customer_name": sale["customer_name"] or WALK_IN_LABEL,
                "customer_phone": sale["customer_phone"],
                "qty": 0.0,
                "total": 0.0,
                "credit": 0.0,
            },
        )
        sign = _signed(sale)
        entry["qty"] += sign * sale["qty"]
        entry["total"] += sign * sale["total_amount"]
        totals["qty"] += sign * sale["qty"]
        totals["total"] += sign * sale["total_amount"]
        if sale["is_credit"]:
            entry["credit"] += sign * sale["total_amount"]
            totals["credit"] += sign * sale["total_amount"]

    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "totals": totals,
        "rows": sorted(summary.values(), key=lambda r: r["total"], reverse=True),
    }


def monthly_sales() -> list[dict]:
    """
    Per calendar month (YYYY-MM of the row timestamp), newest first:
    - paid / credit: signed sale totals split by is_credit
    - total: paid + credit
    - outstanding: charges minus payments booked that month, floored at 0
    """
    months: dict[str, dict] = {}

    def _row(month: str) -> dict:
        return months.setdefault(month, {"month": month, "paid": 0.0, "credit": 0.0, "outstanding": 0.0})

    for sale in fetch_sales():
        row = _row(month_key(parse_iso_datetime(sale["ts"])))
        amount = _signed(sale) * sale["total_amount"]
        if sale["is_credit"]:
            row["credit"] += amount
        else:
            row["paid"] += amount

    for entry in fetch_credits():
        row = _row(month_key(parse_iso_datetime(entry["ts"])))
        row["outstanding"] += -entry["amount"] if entry["is_payment"] else entry["amount"]

    rows = [
        {
            "month": r["month"],
            "paid": r["paid"],
            "credit": r["credit"],
            "outstanding": max(r["outstanding"], 0.0),
            "total": r["paid"] + r["credit"],
        }
        for r in months.values()
    ]
    return sorted(rows, key=lambda r: r["month"], reverse=True)


def top_customers(limit: int | None = None) -> list[dict]:
    """Named customers ranked by signed sales total."""
    if limit is None:
        limit = current_app.config["TOP_CUSTOMERS_LIMIT"]
    if limit < 1:
        raise ValidationError("limit must be >= 1")

    rows = [
        r for r in sales_summary_by_customer()["rows"]
        if r["customer_id"] is not None
    ]
    return [
        {
            "customer_id": r["customer_id"],
            "customer_name": r["customer_name"],
            "customer_phone": r["customer_phone"],
            "total": r["total"],
            "credit": r["credit"],
        }
        for r in rows[:limit]
    ]
