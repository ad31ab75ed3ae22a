# Overview: Flask API routes for customer operations; parses input and returns JSON responses.

from flask import Blueprint, request

from ..decorators import ledger_operation
from ..services.customers_service import create_customer, delete_customer, update_customer
from ..validation import CustomerForm, CustomerUpdateForm

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.post("")
@ledger_operation(201)
def create_customer_route():
    payload = request.get_json(silent=True)
    return create_customer(CustomerForm.from_json(payload))


@customers_bp.put("/<int:customer_id>")
@ledger_operation()
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True)
    return update_customer(CustomerUpdateForm.from_json(payload, customer_id=customer_id))


@customers_bp.delete("/<int:customer_id>")
@ledger_operation()
def delete_customer_route(customer_id: int):
    """
    Hard delete. Sales keep their rows (flagged customer_deleted, customer
    reference cleared); the customer's credit entries are removed with it.
    """
    return delete_customer(customer_id)
