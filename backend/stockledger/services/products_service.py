# backend/stockledger/services/products_service.py
"""
Products Service

- create_product: validated form, optional initial stock booked as an IN movement
- update_product: overwrites mutable fields; never touches qty
- archive_product: soft delete; history keeps referencing the row

Product names are unique regardless of letter case.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, product_name_key
from ..validation import (
    ConflictError,
    ProductForm,
    ProductUpdateForm,
    enforce_rules_product,
)
from .aggregate_service import load_app_data
from .inventory_service import get_product, receive_initial_stock
from .unit_of_work import atomic

PRODUCT_MUTABLE_FIELDS = {"name", "sku", "unit_price", "note", "low_stock_threshold"}


def _ensure_name_available(name: str, *, exclude_id: int | None = None) -> None:
    q = db.session.query(Product.id).filter(Product.name_key == product_name_key(name))
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"A product named {name!r} already exists")


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def create_product(form: ProductForm) -> dict:
    """
    Create a product with qty 0, then book any initial quantity.

    The product row and the "Initial stock" movement commit together.
    """
    enforce_rules_product(form)
    threshold = form.low_stock_threshold
    if threshold is None:
        threshold = current_app.config["DEFAULT_LOW_STOCK_THRESHOLD"]

    with atomic("create product"):
        _ensure_name_available(form.name)
        product = Product(
            name=form.name,
            sku=form.sku,
            unit_price=form.unit_price,
            qty=0.0,
            note=form.note,
            low_stock_threshold=threshold,
            archived=False,
        )
        db.session.add(product)
        db.session.flush()

        if form.initial_qty is not None and form.initial_qty > 0:
            receive_initial_stock(product, form.initial_qty)

    return load_app_data()


def update_product(form: ProductUpdateForm) -> dict:
    enforce_rules_product(form)

    with atomic("update product"):
        product = get_product(form.id)
        _ensure_name_available(form.name, exclude_id=product.id)

        patch = {
            "name": form.name,
            "sku": form.sku,
            "unit_price": form.unit_price,
            "note": form.note,
        }
        # Omitted threshold keeps the stored one.
        if form.low_stock_threshold is not None:
            patch["low_stock_threshold"] = form.low_stock_threshold
        apply_product_patch(product, patch)
        db.session.flush()

    return load_app_data()


def archive_product(product_id: int) -> dict:
    """Soft delete. Archiving an already archived product is a no-op."""
    with atomic("archive product"):
        product = get_product(product_id)
        product.archived = True
        db.session.flush()

    return load_app_data()
