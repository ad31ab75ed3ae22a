import pytest

from stockledger.validation import (
    CreditPaymentPayload,
    CustomerForm,
    ProductForm,
    ProductUpdateForm,
    ReturnPayload,
    SalePayload,
    StockEntryPayload,
    ValidationError,
)


def test_product_form_trims_and_coerces():
    form = ProductForm.from_json({"name": " Widget ", "unit_price": "12.5", "sku": "  ", "note": None})
    assert form.name == "Widget"
    assert form.unit_price == 12.5
    assert form.sku is None
    assert form.initial_qty is None


@pytest.mark.parametrize("value", [True, "abc", [1], "nan", "inf"])
def test_numbers_reject_non_numeric(value):
    with pytest.raises(ValidationError):
        SalePayload.from_json({"product_id": 1, "qty": value})


def test_payload_must_be_an_object():
    with pytest.raises(ValidationError, match="Invalid JSON payload"):
        SalePayload.from_json([1, 2])


def test_missing_required_fields_are_listed():
    with pytest.raises(ValidationError, match="Missing required fields: product_id, qty"):
        StockEntryPayload.from_json({})


def test_stock_entry_kind_defaults_to_in():
    payload = StockEntryPayload.from_json({"product_id": "3", "qty": 1})
    assert payload.kind == "IN"
    assert payload.product_id == 3


def test_stock_entry_unknown_kind():
    with pytest.raises(ValidationError, match="Unknown stock movement kind"):
        StockEntryPayload.from_json({"product_id": 1, "qty": 1, "kind": "ADJUST"})


def test_is_credit_must_be_boolean():
    with pytest.raises(ValidationError):
        SalePayload.from_json({"product_id": 1, "qty": 1, "is_credit": "yes"})


def test_ids_must_be_integers():
    with pytest.raises(ValidationError):
        ReturnPayload.from_json({"product_id": 1.5, "qty": 1})


def test_update_form_takes_id_from_path():
    form = ProductUpdateForm.from_json({"name": "Widget", "unit_price": 1}, product_id=7)
    assert form.id == 7


def test_customer_form_requires_phone_key():
    with pytest.raises(ValidationError, match="phone"):
        CustomerForm.from_json({"name": "Alice"})


def test_credit_payment_trims_note():
    payload = CreditPaymentPayload.from_json({"customer_id": "1", "amount": 5, "note": " paid "})
    assert payload.customer_id == 1
    assert payload.amount == 5.0
    assert payload.note == "paid"
