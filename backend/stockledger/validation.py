from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional


# Quantities and money are real-valued; comparisons that decide whether a
# return fits or an override differs use this tolerance instead of exact zero.
QTY_EPSILON = 1e-9

MOVEMENT_IN = "IN"
MOVEMENT_OUT = "OUT"
MOVEMENT_RETURN = "RETURN"
MOVEMENT_KINDS = (MOVEMENT_IN, MOVEMENT_OUT, MOVEMENT_RETURN)


class ValidationError(ValueError):
    """400-level input problem or business-rule violation."""


class ConflictError(ValidationError):
    """409-level business rule conflict (e.g., duplicate product name)."""


class NotFoundError(ValidationError):
    """404-level reference to a product or customer that does not exist."""


class StorageError(Exception):
    """Opaque storage fault that does not map to a known business condition."""


@dataclass(frozen=True)
class PayloadPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to send (security boundary)
    - required_fields: fields that must be present in the JSON body
    """
    writable_fields: set[str]
    required_fields: set[str] = frozenset()  # type: ignore


def _check_fields(payload: Any, policy: PayloadPolicy) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    missing = sorted(f for f in policy.required_fields if f not in payload)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
    return payload


def _coerce_number(key: str, value: Any) -> Optional[float]:
    if value is None:
        return None
    # bool is a subclass of int; never accept it as a quantity or amount
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            number = float(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be a number")
    else:
        raise ValidationError(f"{key} must be a number")
    if not math.isfinite(number):
        raise ValidationError(f"{key} must be a finite number")
    return number


def _coerce_id(key: str, value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        if stripped.isdigit():
            return int(stripped)
    raise ValidationError(f"{key} must be an integer id")


def _coerce_text(key: str, value: Any) -> Optional[str]:
    """Strings are trimmed; blank optional text is stored as NULL."""
    if value is None:
        return None
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise ValidationError(f"{key} must be text")
    text = str(value).strip()
    return text or None


def _coerce_bool(key: str, value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ValidationError(f"{key} must be true or false")


def _coerce_kind(value: Any) -> str:
    # An omitted kind means a receipt of stock.
    if value is None:
        return MOVEMENT_IN
    if not isinstance(value, str):
        raise ValidationError("kind must be one of IN, OUT")
    kind = value.strip().upper()
    if kind not in MOVEMENT_KINDS:
        raise ValidationError(f"Unknown stock movement kind: {value}")
    return kind


# =============================================================================
# TYPED OPERATION PAYLOADS
# =============================================================================

@dataclass(frozen=True)
class ProductForm:
    name: str
    unit_price: float
    sku: Optional[str] = None
    note: Optional[str] = None
    low_stock_threshold: Optional[float] = None
    initial_qty: Optional[float] = None

    POLICY = PayloadPolicy(
        writable_fields={"name", "sku", "unit_price", "note", "low_stock_threshold", "initial_qty"},
        required_fields={"name", "unit_price"},
    )

    @classmethod
    def from_json(cls, payload: Any) -> "ProductForm":
        data = _check_fields(payload, cls.POLICY)
        return cls(
            name=_coerce_text("name", data.get("name")) or "",
            unit_price=_coerce_number("unit_price", data.get("unit_price")),
            sku=_coerce_text("sku", data.get("sku")),
            note=_coerce_text("note", data.get("note")),
            low_stock_threshold=_coerce_number("low_stock_threshold", data.get("low_stock_threshold")),
            initial_qty=_coerce_number("initial_qty", data.get("initial_qty")),
        )


@dataclass(frozen=True)
class ProductUpdateForm:
    id: int
    name: str
    unit_price: float
    sku: Optional[str] = None
    note: Optional[str] = None
    low_stock_threshold: Optional[float] = None

    POLICY = PayloadPolicy(
        writable_fields={"id", "name", "sku", "unit_price", "note", "low_stock_threshold"},
        required_fields={"name", "unit_price"},
    )

    @classmethod
    def from_json(cls, payload: Any, *, product_id: int) -> "ProductUpdateForm":
        data = _check_fields(payload, cls.POLICY)
        if "id" in data and _coerce_id("id", data["id"]) != product_id:
            raise ValidationError("id in body does not match the product being updated")
        return cls(
            id=product_id,
            name=_coerce_text("name", data.get("name")) or "",
            unit_price=_coerce_number("unit_price", data.get("unit_price")),
            sku=_coerce_text("sku", data.get("sku")),
            note=_coerce_text("note", data.get("note")),
            low_stock_threshold=_coerce_number("low_stock_threshold", data.get("low_stock_threshold")),
        )


@dataclass(frozen=True)
class CustomerForm:
    name: str
    phone: str
    note: Optional[str] = None

    POLICY = PayloadPolicy(
        writable_fields={"name", "phone", "note"},
        required_fields={"name", "phone"},
    )

    @classmethod
    def from_json(cls, payload: Any) -> "CustomerForm":
        data = _check_fields(payload, cls.POLICY)
        return cls(
            name=_coerce_text("name", data.get("name")) or "",
            phone=_coerce_text("phone", data.get("phone")) or "",
            note=_coerce_text("note", data.get("note")),
        )


@dataclass(frozen=True)
class CustomerUpdateForm:
    id: int
    name: str
    phone: str
    note: Optional[str] = None

    POLICY = PayloadPolicy(
        writable_fields={"id", "name", "phone", "note"},
        required_fields={"name", "phone"},
    )

    @classmethod
    def from_json(cls, payload: Any, *, customer_id: int) -> "CustomerUpdateForm":
        data = _check_fields(payload, cls.POLICY)
        if "id" in data and _coerce_id("id", data["id"]) != customer_id:
            raise ValidationError("id in body does not match the customer being updated")
        return cls(
            id=customer_id,
            name=_coerce_text("name", data.get("name")) or "",
            phone=_coerce_text("phone", data.get("phone")) or "",
            note=_coerce_text("note", data.get("note")),
        )


@dataclass(frozen=True)
class StockEntryPayload:
    product_id: int
    qty: float
    kind: str = MOVEMENT_IN
    unit_price: Optional[float] = None
    counterparty: Optional[str] = None
    customer_id: Optional[int] = None
    note: Optional[str] = None

    POLICY = PayloadPolicy(
        writable_fields={"product_id", "qty", "kind", "unit_price", "counterparty", "customer_id", "note"},
        required_fields={"product_id", "qty"},
    )

    @classmethod
    def from_json(cls, payload: Any) -> "StockEntryPayload":
        data = _check_fields(payload, cls.POLICY)
        return cls(
            product_id=_coerce_id("product_id", data.get("product_id")),
            qty=_coerce_number("qty", data.get("qty")),
            kind=_coerce_kind(data.get("kind")),
            unit_price=_coerce_number("unit_price", data.get("unit_price")),
            counterparty=_coerce_text("counterparty", data.get("counterparty")),
            customer_id=_coerce_id("customer_id", data.get("customer_id")),
            note=_coerce_text("note", data.get("note")),
        )


@dataclass(frozen=True)
class SalePayload:
    product_id: int
    qty: float
    unit_price: Optional[float] = None
    customer_id: Optional[int] = None
    note: Optional[str] = None
    is_credit: bool = False

    POLICY = PayloadPolicy(
        writable_fields={"product_id", "qty", "unit_price", "customer_id", "note", "is_credit"},
        required_fields={"product_id", "qty"},
    )

    @classmethod
    def from_json(cls, payload: Any) -> "SalePayload":
        data = _check_fields(payload, cls.POLICY)
        return cls(
            product_id=_coerce_id("product_id", data.get("product_id")),
            qty=_coerce_number("qty", data.get("qty")),
            unit_price=_coerce_number("unit_price", data.get("unit_price")),
            customer_id=_coerce_id("customer_id", data.get("customer_id")),
            note=_coerce_text("note", data.get("note")),
            is_credit=_coerce_bool("is_credit", data.get("is_credit")),
        )


@dataclass(frozen=True)
class ReturnPayload:
    product_id: int
    qty: float
    customer_id: Optional[int] = None
    note: Optional[str] = None
    override_amount: Optional[float] = None

    POLICY = PayloadPolicy(
        writable_fields={"product_id", "customer_id", "qty", "note", "override_amount"},
        required_fields={"product_id", "qty"},
    )

    @classmethod
    def from_json(cls, payload: Any) -> "ReturnPayload":
        data = _check_fields(payload, cls.POLICY)
        return cls(
            product_id=_coerce_id("product_id", data.get("product_id")),
            qty=_coerce_number("qty", data.get("qty")),
            customer_id=_coerce_id("customer_id", data.get("customer_id")),
            note=_coerce_text("note", data.get("note")),
            override_amount=_coerce_number("override_amount", data.get("override_amount")),
        )


@dataclass(frozen=True)
class CreditPaymentPayload:
    customer_id: int
    amount: float
    note: Optional[str] = None

    POLICY = PayloadPolicy(
        writable_fields={"customer_id", "amount", "note"},
        required_fields={"customer_id", "amount"},
    )

    @classmethod
    def from_json(cls, payload: Any) -> "CreditPaymentPayload":
        data = _check_fields(payload, cls.POLICY)
        return cls(
            customer_id=_coerce_id("customer_id", data.get("customer_id")),
            amount=_coerce_number("amount", data.get("amount")),
            note=_coerce_text("note", data.get("note")),
        )


# =============================================================================
# QUERY STRING ARGUMENTS
# =============================================================================
# Absent or blank means None; anything else must parse.

def query_id(args, key: str) -> Optional[int]:
    return _coerce_id(key, args.get(key))


def query_number(args, key: str) -> Optional[float]:
    return _coerce_number(key, args.get(key))


# =============================================================================
# BUSINESS RULES
# =============================================================================
# Services call these before opening a unit of work, so a caller that builds
# payloads directly (CLI, tests) gets the same checks as the HTTP routes.

def _require_positive(value: Optional[float], message: str) -> None:
    if value is None or value <= 0:
        raise ValidationError(message)


def enforce_rules_product(form) -> None:
    if not form.name or not form.name.strip():
        raise ValidationError("Product name is required")
    if form.unit_price is None:
        raise ValidationError("unit_price is required")
    if form.unit_price < 0:
        raise ValidationError("unit_price must be >= 0")
    if form.low_stock_threshold is not None and form.low_stock_threshold < 0:
        raise ValidationError("low_stock_threshold must be >= 0")
    initial_qty = getattr(form, "initial_qty", None)
    if initial_qty is not None and initial_qty < 0:
        raise ValidationError("initial_qty must be >= 0")


def enforce_rules_customer(form) -> None:
    if not form.name or not form.name.strip():
        raise ValidationError("Customer name is required")
    if not form.phone or not form.phone.strip():
        raise ValidationError("Customer phone is required")


def enforce_rules_stock_entry(payload: StockEntryPayload) -> None:
    _require_positive(payload.qty, "qty must be > 0")
    if payload.kind == MOVEMENT_RETURN:
        raise ValidationError("Returns must be recorded through the return operation")
    if payload.kind not in (MOVEMENT_IN, MOVEMENT_OUT):
        raise ValidationError(f"Unknown stock movement kind: {payload.kind}")
    if payload.unit_price is not None and payload.unit_price < 0:
        raise ValidationError("unit_price must be >= 0")


def enforce_rules_sale(payload: SalePayload) -> None:
    _require_positive(payload.qty, "qty must be > 0")
    if payload.unit_price is not None and payload.unit_price < 0:
        raise ValidationError("unit_price must be >= 0")
    if payload.is_credit and payload.customer_id is None:
        raise ValidationError("A credit sale requires a customer")


def enforce_rules_return(payload: ReturnPayload) -> None:
    _require_positive(payload.qty, "Return qty must be > 0")
    if payload.override_amount is not None and payload.override_amount < 0:
        raise ValidationError("override_amount must be >= 0")


def enforce_rules_credit_payment(payload: CreditPaymentPayload) -> None:
    _require_positive(payload.amount, "Payment amount must be > 0")
