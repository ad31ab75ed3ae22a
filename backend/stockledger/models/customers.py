from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from ..validation import StorageError


class Customer(db.Model):
    """
    Customer master data for credit (on-account) sales.

    HARD DELETE: unlike products, customers are physically removed. Before
    the row goes, customers_service flags referencing sales with
    customer_deleted so the history can still say "deleted customer" after
    the database nullifies sales.customer_id. Credit entries cascade.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("idx_customers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    note = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Customer id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }


class CreditEntry(db.Model):
    """
    Append-only ledger of a customer's on-account balance.

    ENTRY TYPES:
    - is_payment=False: charge, the customer owes more (credit sale)
    - is_payment=True: payment, the customer owes less (payment, credit return)

    outstanding = SUM(charges) - SUM(payments); may be negative (overpaid).
    Amounts are always positive; the direction lives in is_payment.
    """
    __tablename__ = "credits"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_credits_amount_positive"),
        db.Index("idx_credits_customer", "customer_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    ts = db.Column(db.DateTime, nullable=False, default=utcnow)
    customer_id = db.Column(
        db.Integer, db.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    sale_id = db.Column(
        db.Integer, db.ForeignKey("sales.id", ondelete="SET NULL"), nullable=True, index=True
    )
    amount = db.Column(db.Float, nullable=False)
    is_payment = db.Column(db.Boolean, nullable=False, default=False)
    note = db.Column(db.Text, nullable=True)

    def __repr__(self) -> str:
        direction = "payment" if self.is_payment else "charge"
        return f"<CreditEntry id={self.id} customer_id={self.customer_id} {direction}={self.amount}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ts": to_utc_z(self.ts),
            "customer_id": self.customer_id,
            "sale_id": self.sale_id,
            "amount": self.amount,
            "is_payment": self.is_payment,
            "note": self.note,
        }


@event.listens_for(CreditEntry, "before_update")
def _reject_credit_update(mapper, connection, target):
    raise StorageError("Credit entries are append-only and cannot be modified")
