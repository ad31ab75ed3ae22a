from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Sale(db.Model):
    """
    Sale history, including return rows.

    PRICE SNAPSHOT: price_snapshot is captured at sale time and never follows
    later product price edits; total_amount = qty * price_snapshot.

    RETURNS: a return is another Sale row with is_return=True and
    origin_sale_id pointing at the sale being reversed. The quantity still
    returnable on a sale is derived (qty - SUM(linked return qty)); there is
    no running counter to keep in sync.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("qty > 0", name="ck_sales_qty_positive"),
        db.Index("idx_sales_ts", "ts"),
        db.Index("idx_sales_origin", "origin_sale_id"),
        db.Index("ix_sales_product_customer", "product_id", "customer_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    ts = db.Column(db.DateTime, nullable=False, default=utcnow)

    product_id = db.Column(
        db.Integer, db.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False
    )
    qty = db.Column(db.Float, nullable=False)
    price_snapshot = db.Column(db.Float, nullable=False)
    total_amount = db.Column(db.Float, nullable=False)

    customer_id = db.Column(
        db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True
    )
    note = db.Column(db.Text, nullable=True)

    is_credit = db.Column(db.Boolean, nullable=False, default=False)
    is_return = db.Column(db.Boolean, nullable=False, default=False)
    origin_sale_id = db.Column(
        db.Integer, db.ForeignKey("sales.id", ondelete="SET NULL"), nullable=True
    )

    # Set before the customer row is deleted; survives the FK nullification.
    customer_deleted = db.Column(db.Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        kind = "return" if self.is_return else "sale"
        return f"<Sale id={self.id} {kind} product_id={self.product_id} qty={self.qty}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ts": to_utc_z(self.ts),
            "product_id": self.product_id,
            "qty": self.qty,
            "unit_price": self.price_snapshot,
            "total_amount": self.total_amount,
            "customer_id": self.customer_id,
            "note": self.note,
            "is_credit": self.is_credit,
            "is_return": self.is_return,
            "origin_sale_id": self.origin_sale_id,
            "customer_deleted": self.customer_deleted,
        }
