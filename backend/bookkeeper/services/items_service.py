# Overview: Item CRUD over the persistence gateway.

from __future__ import annotations

import logging

from ..errors import NotFound
from ..gateway import ITEMS
from ..models import Item
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, enforce_rules_item, validate_payload

logger = logging.getLogger(__name__)

ITEM_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "description", "price_cents", "cost_price_cents", "quantity", "category", "sku"}),
    required_on_create=frozenset({"name", "price_cents"}),
)


def list_items(gateway, search: str | None = None) -> list[dict]:
    items = gateway.get_all(ITEMS)
    if search:
        term = search.strip().lower()
        items = [
            i for i in items
            if any(term in (i.get(f) or "").lower() for f in ("name", "description", "sku", "category"))
        ]
    return sorted(items, key=lambda i: (i["name"].lower(), i["id"]))


def get_item(gateway, item_id) -> dict | None:
    return gateway.get(ITEMS, item_id)


def require_item(gateway, item_id) -> dict:
    item = gateway.get(ITEMS, item_id)
    if item is None:
        raise NotFound(f"Item {item_id} not found")
    return item


def create_item(gateway, payload: dict) -> dict:
    patch = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=False)
    enforce_rules_item(patch)
    patch.setdefault("cost_price_cents", 0)
    patch.setdefault("quantity", 0)
    patch["created_at"] = utcnow()
    item_id = gateway.insert(ITEMS, patch)
    logger.info("Created item %s", item_id)
    return gateway.get(ITEMS, item_id)


def update_item(gateway, item_id, payload: dict) -> dict:
    """
    Edit an item. Existing sale line items keep their own price snapshot.
    """
    patch = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=True)
    enforce_rules_item(patch)
    item = require_item(gateway, item_id)
    item.update(patch)
    item["updated_at"] = utcnow()
    gateway.put(ITEMS, item)
    return gateway.get(ITEMS, item_id)


def delete_item(gateway, item_id) -> None:
    require_item(gateway, item_id)
    gateway.delete(ITEMS, item_id)
    logger.info("Deleted item %s", item_id)
