# Overview: Flask API routes for items; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..decorators import handle_ledger_errors
from ..errors import NotFound
from ..services import items_service
from ..time_utils import serialize_record
from . import get_gateway

items_bp = Blueprint("items", __name__, url_prefix="/api/items")


@items_bp.get("")
@handle_ledger_errors
def list_items_route():
    items = items_service.list_items(get_gateway(), request.args.get("search"))
    return jsonify({"items": [serialize_record(i) for i in items], "count": len(items)}), 200


@items_bp.post("")
@handle_ledger_errors
def create_item_route():
    item = items_service.create_item(get_gateway(), request.get_json(silent=True) or {})
    return jsonify({"item": serialize_record(item)}), 201


@items_bp.get("/<int:item_id>")
@handle_ledger_errors
def get_item_route(item_id: int):
    item = items_service.get_item(get_gateway(), item_id)
    if item is None:
        raise NotFound(f"Item {item_id} not found")
    return jsonify({"item": serialize_record(item)}), 200


@items_bp.patch("/<int:item_id>")
@handle_ledger_errors
def update_item_route(item_id: int):
    item = items_service.update_item(get_gateway(), item_id, request.get_json(silent=True) or {})
    return jsonify({"item": serialize_record(item)}), 200


@items_bp.delete("/<int:item_id>")
@handle_ledger_errors
def delete_item_route(item_id: int):
    items_service.delete_item(get_gateway(), item_id)
    return jsonify({"deleted": item_id}), 200
