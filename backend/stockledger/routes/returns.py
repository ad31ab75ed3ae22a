# Overview: Flask API routes for returns operations; parses input and returns JSON responses.

"""
Return routes.

POST /api/returns          record a return, allocated FIFO over outstanding sales
GET  /api/returns/preview  dry run: planned portions and refund, nothing written
"""

from flask import Blueprint, request

from ..decorators import ledger_operation
from ..services.return_service import preview_return, record_return
from ..validation import ReturnPayload, ValidationError, query_id, query_number

returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("")
@ledger_operation(201)
def record_return_route():
    payload = request.get_json(silent=True)
    return record_return(ReturnPayload.from_json(payload))


@returns_bp.get("/preview")
@ledger_operation()
def preview_return_route():
    """
    Query params:
    - product_id: int (required)
    - customer_id: int (optional; omitted means sales without a customer)
    - qty: number (optional; capped at what is returnable)
    """
    product_id = query_id(request.args, "product_id")
    if product_id is None:
        raise ValidationError("product_id is required")
    customer_id = query_id(request.args, "customer_id")
    qty = query_number(request.args, "qty")
    return preview_return(product_id, customer_id, qty)
