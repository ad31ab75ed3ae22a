# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/stockledger/routes/products.py
"""
Product routes.

Each mutation returns the full aggregate view on success.
DELETE archives the product; history keeps referencing it.
"""
from flask import Blueprint, request

from ..decorators import ledger_operation
from ..services.products_service import archive_product, create_product, update_product
from ..validation import ProductForm, ProductUpdateForm

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.post("")
@ledger_operation(201)
def create_product_route():
    payload = request.get_json(silent=True)
    return create_product(ProductForm.from_json(payload))


@products_bp.put("/<int:product_id>")
@ledger_operation()
def update_product_route(product_id: int):
    payload = request.get_json(silent=True)
    return update_product(ProductUpdateForm.from_json(payload, product_id=product_id))


@products_bp.delete("/<int:product_id>")
@ledger_operation()
def archive_product_route(product_id: int):
    """Soft delete (archive)."""
    return archive_product(product_id)
