from __future__ import annotations

import unicodedata

from sqlalchemy import event
from sqlalchemy.orm import validates

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from ..validation import MOVEMENT_KINDS, StorageError


def product_name_key(name: str) -> str:
    """Comparison key for product names: NFC-normalized and case-folded."""
    return unicodedata.normalize("NFC", name).casefold()


class Product(db.Model):
    """
    Product master data.

    QUANTITY DESIGN:
    qty is the quantity on hand and is only ever changed by the ledger
    operations (stock entry, sale, return), each of which appends a
    StockMovement in the same unit of work. Product edits never touch it.

    SOFT DELETE:
    Products are archived, never physically removed. Sales and movements
    reference products with ON DELETE RESTRICT, so history stays resolvable.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("qty >= 0", name="ck_products_qty_non_negative"),
        db.Index("idx_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False, unique=True)
    # Kept in sync with name; enforces case-insensitive uniqueness
    name_key = db.Column(db.String(255), nullable=False, unique=True)
    sku = db.Column(db.String(64), nullable=True)

    unit_price = db.Column(db.Float, nullable=False, default=0.0)
    qty = db.Column(db.Float, nullable=False, default=0.0)

    note = db.Column(db.Text, nullable=True)
    low_stock_threshold = db.Column(db.Float, nullable=False, default=5.0)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    archived = db.Column(db.Boolean, nullable=False, default=False, index=True)

    @validates("name")
    def _sync_name_key(self, key, value):
        self.name_key = product_name_key(value)
        return value

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} qty={self.qty}>"

    @property
    def is_low_stock(self) -> bool:
        return self.qty <= self.low_stock_threshold

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "unit_price": self.unit_price,
            "qty": self.qty,
            "note": self.note,
            "low_stock_threshold": self.low_stock_threshold,
            "is_low_stock": self.is_low_stock,
            "created_at": to_utc_z(self.created_at),
            "archived": self.archived,
        }


class StockMovement(db.Model):
    """
    Append-only audit trail of every quantity-affecting event.

    KINDS:
    - IN: stock received (including initial stock on product creation)
    - OUT: stock removed, either by a manual entry or mirroring a Sale
    - RETURN: stock restored by a return Sale

    IMMUTABLE: rows are inserted by ledger_service.append_stock_movement and
    never updated or deleted. The mapper events below reject any ORM attempt.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.CheckConstraint(
            "kind IN ('IN', 'OUT', 'RETURN')", name="ck_transactions_kind"
        ),
        db.Index("idx_transactions_ts", "ts"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    ts = db.Column(db.DateTime, nullable=False, default=utcnow)
    kind = db.Column(db.String(16), nullable=False)

    product_id = db.Column(
        db.Integer, db.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    qty = db.Column(db.Float, nullable=False)
    unit_price = db.Column(db.Float, nullable=True)
    total_amount = db.Column(db.Float, nullable=True)

    counterparty = db.Column(db.String(255), nullable=True)
    customer_id = db.Column(
        db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True
    )
    note = db.Column(db.Text, nullable=True)
    sale_id = db.Column(
        db.Integer, db.ForeignKey("sales.id", ondelete="SET NULL"), nullable=True, index=True
    )

    def __repr__(self) -> str:
        return f"<StockMovement id={self.id} kind={self.kind} product_id={self.product_id} qty={self.qty}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ts": to_utc_z(self.ts),
            "kind": decode_movement_kind(self.kind),
            "product_id": self.product_id,
            "qty": self.qty,
            "unit_price": self.unit_price,
            "total_amount": self.total_amount,
            "counterparty": self.counterparty,
            "customer_id": self.customer_id,
            "note": self.note,
            "sale_id": self.sale_id,
        }


def decode_movement_kind(value: str | None) -> str:
    """
    Decode a stored movement kind.

    Unknown values are a sign of corrupted or foreign data and are reported
    as a storage fault rather than being read back as IN.
    """
    if value not in MOVEMENT_KINDS:
        raise StorageError(f"Unrecognized stock movement kind in storage: {value!r}")
    return value


@event.listens_for(StockMovement, "before_update")
def _reject_movement_update(mapper, connection, target):
    raise StorageError("Stock movements are append-only and cannot be modified")


@event.listens_for(StockMovement, "before_delete")
def _reject_movement_delete(mapper, connection, target):
    raise StorageError("Stock movements are append-only and cannot be deleted")
