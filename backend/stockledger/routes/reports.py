from flask import Blueprint, request

from ..decorators import ledger_operation
from ..services import reporting_service
from ..validation import query_id


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/low-stock")
@ledger_operation()
def low_stock_report():
    return reporting_service.low_stock_products()


@reports_bp.get("/outstanding-customers")
@ledger_operation()
def outstanding_customers_report():
    return reporting_service.outstanding_customers()


@reports_bp.get("/inventory-value")
@ledger_operation()
def inventory_value_report():
    return reporting_service.inventory_value()


@reports_bp.get("/returnable")
@ledger_operation()
def returnable_report():
    return reporting_service.returnable_positions()


@reports_bp.get("/sales-by-customer")
@ledger_operation()
def sales_by_customer_report():
    start = request.args.get("start")
    end = request.args.get("end")
    return reporting_service.sales_summary_by_customer(start=start, end=end)


@reports_bp.get("/monthly-sales")
@ledger_operation()
def monthly_sales_report():
    return reporting_service.monthly_sales()


@reports_bp.get("/top-customers")
@ledger_operation()
def top_customers_report():
    # limit is a count, parsed with the same strict integer rule as ids
    limit = query_id(request.args, "limit")
    return reporting_service.top_customers(limit)
