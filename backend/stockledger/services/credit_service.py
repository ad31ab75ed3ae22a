# Overview: Service-layer operations for customer credit (on-account) payments.

"""
Credit Payment Service

A payment lowers a customer's outstanding balance. It is recorded as a
CreditEntry with is_payment=True and no sale reference; charges come from
credit sales (sales_service) and return settlements from return_service.
"""

from flask import current_app

from ..time_utils import utcnow
from ..validation import CreditPaymentPayload, enforce_rules_credit_payment
from .aggregate_service import load_app_data
from .inventory_service import get_customer
from .ledger_service import append_credit_entry
from .unit_of_work import atomic


def record_credit_payment(payload: CreditPaymentPayload) -> dict:
    enforce_rules_credit_payment(payload)

    with atomic("credit payment"):
        customer = get_customer(payload.customer_id)
        entry = append_credit_entry(
            ts=utcnow(),
            customer_id=customer.id,
            amount=payload.amount,
            is_payment=True,
            note=payload.note,
        )
        current_app.logger.info(
            "Credit payment id=%s customer_id=%s amount=%s", entry.id, customer.id, payload.amount
        )

    return load_app_data()
