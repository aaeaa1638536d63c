# Overview: Flask API routes for the three-step new-sale wizard; the draft lives in the session.

"""
New sale wizard

The in-progress sale is kept in the Flask session under
SALE_DRAFT_SESSION_KEY; nothing reaches the database until /commit.
Every response carries the draft with its derived totals.
"""

from flask import Blueprint, request, jsonify, session, current_app

from ..decorators import handle_ledger_errors
from ..errors import InvalidArgument, PartialCascadeFailure
from ..services.sale_builder import SaleDraft, clear_draft, load_draft, save_draft
from ..time_utils import serialize_record
from . import get_builder


draft_bp = Blueprint("sale_draft", __name__, url_prefix="/api/sales/draft")


def _key() -> str:
    return current_app.config["SALE_DRAFT_SESSION_KEY"]


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidArgument("Invalid JSON payload")
    return data


def _respond(draft: SaleDraft, status: int = 200):
    save_draft(session, _key(), draft)
    return jsonify({"draft": draft.to_dict(include_totals=True)}), status


@draft_bp.get("")
@handle_ledger_errors
def get_draft_route():
    return jsonify({"draft": load_draft(session, _key()).to_dict(include_totals=True)}), 200


@draft_bp.delete("")
@handle_ledger_errors
def discard_draft_route():
    clear_draft(session, _key())
    return jsonify({"draft": SaleDraft().to_dict(include_totals=True)}), 200


@draft_bp.put("/customer")
@handle_ledger_errors
def select_customer_route():
    data = _json_body()
    draft = get_builder().select_customer(load_draft(session, _key()), data.get("customer_id"))
    return _respond(draft)


@draft_bp.post("/items")
@handle_ledger_errors
def add_item_route():
    """Stage an item; staging the same item again increases its quantity."""
    data = _json_body()
    if data.get("item_id") is None:
        raise InvalidArgument("item_id required")
    draft = get_builder().add_item(load_draft(session, _key()), data["item_id"], data.get("quantity", 1))
    return _respond(draft)


@draft_bp.patch("/items/<int:item_id>")
@handle_ledger_errors
def set_quantity_route(item_id: int):
    data = _json_body()
    if data.get("quantity") is None:
        raise InvalidArgument("quantity required")
    draft = get_builder().set_quantity(load_draft(session, _key()), item_id, data["quantity"])
    return _respond(draft)


@draft_bp.post("/items/<int:item_id>/increment")
@handle_ledger_errors
def increment_route(item_id: int):
    return _respond(get_builder().increment(load_draft(session, _key()), item_id))


@draft_bp.post("/items/<int:item_id>/decrement")
@handle_ledger_errors
def decrement_route(item_id: int):
    return _respond(get_builder().decrement(load_draft(session, _key()), item_id))


@draft_bp.delete("/items/<int:item_id>")
@handle_ledger_errors
def remove_item_route(item_id: int):
    return _respond(get_builder().remove_item(load_draft(session, _key()), item_id))


@draft_bp.patch("")
@handle_ledger_errors
def update_draft_route():
    """Set discount_cents, tax_cents, payment_amount_cents, payment_method, notes or sale_date."""
    draft = get_builder().update(load_draft(session, _key()), _json_body())
    return _respond(draft)


@draft_bp.put("/step")
@handle_ledger_errors
def go_to_step_route():
    data = _json_body()
    draft = get_builder().go_to_step(load_draft(session, _key()), data.get("step"))
    return _respond(draft)


@draft_bp.post("/commit")
@handle_ledger_errors
def commit_route():
    """
    Write the draft as a sale. The draft is cleared once the sale exists,
    even if a later step fails (the error then names the sale id).
    """
    draft = load_draft(session, _key())
    builder = get_builder()
    try:
        sale = builder.commit(draft)
    except PartialCascadeFailure:
        # The header exists now, so this draft must not be committed again
        clear_draft(session, _key())
        raise
    clear_draft(session, _key())
    return jsonify({"sale": serialize_record(sale)}), 201
