# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

from flask import Blueprint, request

from ..decorators import ledger_operation
from ..services.inventory_service import record_stock_entry
from ..validation import StockEntryPayload

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/stock-entries")


@inventory_bp.post("")
@ledger_operation(201)
def record_stock_entry_route():
    """
    Manual stock movement.

    Body: product_id, qty (> 0), kind IN|OUT (default IN), optional unit_price,
    counterparty, customer_id, note. RETURN is rejected; use /api/returns.
    """
    payload = request.get_json(silent=True)
    return record_stock_entry(StockEntryPayload.from_json(payload))
