from stockledger.services.sales_service import record_sale
from stockledger.validation import SalePayload


def test_init_db_is_idempotent(runner, db_session):
    result = runner.invoke(args=["system", "init-db"])
    assert result.exit_code == 0
    assert "up to date" in result.output


def test_reset_db_requires_confirmation(runner, db_session):
    result = runner.invoke(args=["system", "reset-db"], input="n\n")
    assert result.exit_code != 0


def test_balances_command(runner, db_session, stocked_widget, customer):
    record_sale(
        SalePayload(product_id=stocked_widget["id"], qty=2.0, customer_id=customer["id"], is_credit=True)
    )

    result = runner.invoke(args=["ledger", "balances"])
    assert result.exit_code == 0
    assert "Alice" in result.output
    assert "20.00" in result.output

    result = runner.invoke(args=["ledger", "balances", "--outstanding-only"])
    assert result.exit_code == 0
    assert "Alice" in result.output


def test_balances_command_without_customers(runner, db_session):
    result = runner.invoke(args=["ledger", "balances"])
    assert result.exit_code == 0
    assert "No customers found." in result.output


def test_low_stock_command(runner, db_session, widget):
    result = runner.invoke(args=["ledger", "low-stock"])
    assert result.exit_code == 0
    assert "Widget" in result.output


def test_returnable_command(runner, db_session, stocked_widget):
    result = runner.invoke(args=["ledger", "returnable"])
    assert "Nothing to return." in result.output

    record_sale(SalePayload(product_id=stocked_widget["id"], qty=4.0))
    result = runner.invoke(args=["ledger", "returnable"])
    assert result.exit_code == 0
    assert "Walk-in customer" in result.output
    assert "Widget" in result.output
