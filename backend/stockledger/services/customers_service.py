# Overview: Service-layer operations for customers; encapsulates business logic and database work.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Customer, Sale
from ..validation import (
    CustomerForm,
    CustomerUpdateForm,
    ValidationError,
    enforce_rules_customer,
)
from .aggregate_service import load_app_data
from .inventory_service import get_customer
from .unit_of_work import atomic


def create_customer(form: CustomerForm) -> dict:
    enforce_rules_customer(form)

    with atomic("create customer"):
        customer = Customer(name=form.name, phone=form.phone, note=form.note)
        db.session.add(customer)
        db.session.flush()

    return load_app_data()


def update_customer(form: CustomerUpdateForm) -> dict:
    enforce_rules_customer(form)

    with atomic("update customer"):
        customer = get_customer(form.id)
        customer.name = form.name
        customer.phone = form.phone
        customer.note = form.note
        db.session.flush()

    return load_app_data()


def delete_customer(customer_id: int) -> dict:
    """
    Hard delete a customer.

    Referencing sales are flagged customer_deleted first; the database then
    nulls their customer_id (SET NULL) and removes the customer's credit
    entries (CASCADE). The balance view drops the customer.
    """
    with atomic("delete customer"):
        customer = get_customer(customer_id)

        flagged = (
            db.session.query(Sale)
            .filter(Sale.customer_id == customer.id)
            .update({Sale.customer_deleted: True}, synchronize_session=False)
        )

        try:
            db.session.query(Customer).filter(Customer.id == customer.id).delete(
                synchronize_session=False
            )
        except IntegrityError:
            raise ValidationError(
                "This customer still has history that cannot be removed"
            )

        current_app.logger.info(
            "Deleted customer id=%s (%s sales flagged)", customer_id, flagged
        )

    return load_app_data()
