# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

from flask import Blueprint, request

from ..decorators import ledger_operation
from ..services.sales_service import record_sale
from ..validation import SalePayload

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@ledger_operation(201)
def record_sale_route():
    payload = request.get_json(silent=True)
    return record_sale(SalePayload.from_json(payload))
