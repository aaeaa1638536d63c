# Overview: Flask API routes for customers; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..decorators import handle_ledger_errors
from ..errors import NotFound
from ..services import customers_service
from ..time_utils import serialize_record
from . import get_gateway

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@handle_ledger_errors
def list_customers_route():
    """List customers, optionally filtered by ?search= on name/email/phone."""
    customers = customers_service.list_customers(get_gateway(), request.args.get("search"))
    return jsonify({"items": [serialize_record(c) for c in customers], "count": len(customers)}), 200


@customers_bp.post("")
@handle_ledger_errors
def create_customer_route():
    customer = customers_service.create_customer(get_gateway(), request.get_json(silent=True) or {})
    return jsonify({"customer": serialize_record(customer)}), 201


@customers_bp.get("/<int:customer_id>")
@handle_ledger_errors
def get_customer_route(customer_id: int):
    customer = customers_service.get_customer(get_gateway(), customer_id)
    if customer is None:
        raise NotFound(f"Customer {customer_id} not found")
    return jsonify({"customer": serialize_record(customer)}), 200


@customers_bp.patch("/<int:customer_id>")
@handle_ledger_errors
def update_customer_route(customer_id: int):
    customer = customers_service.update_customer(get_gateway(), customer_id, request.get_json(silent=True) or {})
    return jsonify({"customer": serialize_record(customer)}), 200


@customers_bp.delete("/<int:customer_id>")
@handle_ledger_errors
def delete_customer_route(customer_id: int):
    """Delete a customer. Their sales are kept and show as 'Unknown Customer'."""
    customers_service.delete_customer(get_gateway(), customer_id)
    return jsonify({"deleted": customer_id}), 200
