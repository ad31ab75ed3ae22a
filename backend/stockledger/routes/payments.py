# Overview: Flask API routes for customer credit payments; parses input and returns JSON responses.

from flask import Blueprint, request

from ..decorators import ledger_operation
from ..services.credit_service import record_credit_payment
from ..validation import CreditPaymentPayload

payments_bp = Blueprint("payments", __name__, url_prefix="/api/credits")


@payments_bp.post("/payments")
@ledger_operation(201)
def record_credit_payment_route():
    """Body: customer_id, amount (> 0), optional note."""
    payload = request.get_json(silent=True)
    return record_credit_payment(CreditPaymentPayload.from_json(payload))
