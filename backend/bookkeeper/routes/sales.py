# Overview: Flask API routes for sales, line items, discount and tax; returns JSON responses.

# backend/bookkeeper/routes/sales.py
"""
Sales API routes

Every mutating route returns the sale header as it stands after the
ledger's recompute, so clients never see stale totals.
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import handle_ledger_errors
from ..errors import InvalidArgument, NotFound
from ..services.customers_service import require_customer
from ..services.ledger_service import require_positive_int
from ..time_utils import serialize_record
from . import get_ledger


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidArgument("Invalid JSON payload")
    return data


def _required(data: dict, *fields: str) -> None:
    missing = [f for f in fields if data.get(f) is None]
    if missing:
        raise InvalidArgument(f"{', '.join(missing)} required")


@sales_bp.get("")
@handle_ledger_errors
def list_sales_route():
    """
    List sales, newest first.

    Query params:
    - page: int (default 1)
    - per_page: int (default SALES_PER_PAGE, max 100)
    - payment_status: Unpaid | Partially Paid | Paid
    - customer_id: int
    """
    result = get_ledger().list_sales(
        page=request.args.get("page", default=1, type=int),
        per_page=request.args.get("per_page", default=current_app.config["SALES_PER_PAGE"], type=int),
        payment_status=request.args.get("payment_status"),
        customer_id=request.args.get("customer_id", type=int),
    )
    result["items"] = [serialize_record(s) for s in result["items"]]
    return jsonify(result), 200


@sales_bp.post("")
@handle_ledger_errors
def create_sale_route():
    """
    Create an empty sale for a customer.

    Request body: {"customer_id": 1, "sale_date": "2026-01-31", "notes": "..."}
    """
    data = _json_body()
    _required(data, "customer_id")
    ledger = get_ledger()
    require_customer(ledger.gateway, require_positive_int(data["customer_id"], "customer_id"))

    initial = {k: data[k] for k in ("customer_id", "sale_date", "notes") if k in data}
    sale = ledger.create_sale(initial)
    return jsonify({"sale": serialize_record(sale)}), 201


@sales_bp.get("/<int:sale_id>")
@handle_ledger_errors
def get_sale_route(sale_id: int):
    """Sale with customer, line items and payments."""
    details = get_ledger().get_sale_details(sale_id)
    if details is None:
        raise NotFound(f"Sale {sale_id} not found")
    return jsonify(serialize_record(details)), 200


@sales_bp.patch("/<int:sale_id>")
@handle_ledger_errors
def update_sale_route(sale_id: int):
    """Edit customer_id, sale_date or notes. Totals are not writable."""
    data = _json_body()
    ledger = get_ledger()
    if data.get("customer_id") is not None:
        require_customer(ledger.gateway, require_positive_int(data["customer_id"], "customer_id"))
    sale = ledger.update_sale(sale_id, data)
    return jsonify({"sale": serialize_record(sale)}), 200


@sales_bp.delete("/<int:sale_id>")
@handle_ledger_errors
def delete_sale_route(sale_id: int):
    """Delete a sale together with its line items and payments."""
    result = get_ledger().delete_sale(sale_id)
    return jsonify(result), 200


# =============================================================================
# LINE ITEMS
# =============================================================================

@sales_bp.post("/<int:sale_id>/items")
@handle_ledger_errors
def add_line_item_route(sale_id: int):
    """
    Add a line item.

    Request body:
    {
        "item_id": 3,
        "quantity": 2,
        "unit_price_cents": 1999  (optional, defaults to the item's current price)
    }
    """
    data = _json_body()
    _required(data, "item_id", "quantity")
    ledger = get_ledger()
    line = ledger.add_line_item(sale_id, data["item_id"], data["quantity"], data.get("unit_price_cents"))
    return jsonify({
        "line_item": serialize_record(line),
        "sale": serialize_record(ledger.get_sale(sale_id)),
    }), 201


@sales_bp.patch("/items/<int:line_item_id>")
@handle_ledger_errors
def update_line_item_route(line_item_id: int):
    data = _json_body()
    _required(data, "quantity")
    ledger = get_ledger()
    line = ledger.update_line_item_quantity(line_item_id, data["quantity"])
    return jsonify({
        "line_item": serialize_record(line),
        "sale": serialize_record(ledger.get_sale(line["sale_id"])),
    }), 200


@sales_bp.delete("/items/<int:line_item_id>")
@handle_ledger_errors
def remove_line_item_route(line_item_id: int):
    sale = get_ledger().remove_line_item(line_item_id)
    return jsonify({"deleted": line_item_id, "sale": serialize_record(sale)}), 200


# =============================================================================
# DISCOUNT / TAX / RECOMPUTE
# =============================================================================

@sales_bp.put("/<int:sale_id>/discount")
@handle_ledger_errors
def apply_discount_route(sale_id: int):
    data = _json_body()
    _required(data, "discount_cents")
    sale = get_ledger().apply_discount(sale_id, data["discount_cents"])
    return jsonify({"sale": serialize_record(sale)}), 200


@sales_bp.put("/<int:sale_id>/tax")
@handle_ledger_errors
def set_tax_route(sale_id: int):
    data = _json_body()
    _required(data, "tax_cents")
    sale = get_ledger().set_tax(sale_id, data["tax_cents"])
    return jsonify({"sale": serialize_record(sale)}), 200


@sales_bp.post("/<int:sale_id>/recompute")
@handle_ledger_errors
def recompute_route(sale_id: int):
    """Rebuild the sale's totals and payment status from its line items and payments."""
    sale = get_ledger().recompute_totals(sale_id)
    return jsonify({"sale": serialize_record(sale)}), 200


@sales_bp.get("/<int:sale_id>/payments")
@handle_ledger_errors
def payment_summary_route(sale_id: int):
    summary = get_ledger().get_payment_summary(sale_id)
    return jsonify(serialize_record(summary)), 200
