# Overview: Flask API routes for payments; parses input and returns JSON responses.

# backend/bookkeeper/routes/payments.py
"""
Payment API Routes

- Record payments against a sale (split and partial payments allowed)
- Delete a payment (the sale's status is recomputed and may regress)
"""

from flask import Blueprint, request, jsonify

from ..decorators import handle_ledger_errors
from ..errors import InvalidArgument
from ..time_utils import serialize_record
from . import get_ledger


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("")
@handle_ledger_errors
def record_payment_route():
    """
    Record a payment.

    Request body:
    {
        "sale_id": 123,
        "amount_cents": 10000,
        "payment_date": "2026-01-31",  (optional, defaults to today)
        "payment_method": "cash",  (cash | bank_transfer | credit_card | other)
        "notes": "..."  (optional)
    }

    Returns:
        201: Payment created, with the sale's payment summary
        400: Invalid input
        404: Sale not found
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        raise InvalidArgument("Invalid JSON payload")

    sale_id = data.get("sale_id")
    amount_cents = data.get("amount_cents")
    if sale_id is None or amount_cents is None:
        raise InvalidArgument("sale_id and amount_cents required")

    ledger = get_ledger()
    payment = ledger.record_payment(
        sale_id,
        amount_cents,
        payment_date=data.get("payment_date"),
        payment_method=data.get("payment_method"),
        notes=data.get("notes"),
    )

    return jsonify({
        "payment": serialize_record(payment),
        "summary": serialize_record(ledger.get_payment_summary(sale_id)),
    }), 201


@payments_bp.delete("/<int:payment_id>")
@handle_ledger_errors
def remove_payment_route(payment_id: int):
    sale = get_ledger().remove_payment(payment_id)
    return jsonify({"deleted": payment_id, "sale": serialize_record(sale)}), 200
