# Overview: Customer CRUD over the persistence gateway.

"""
Customers are referenced by sales but never owned by them: deleting a
customer leaves sales.customer_id dangling, and lookups of a dangling
reference return None.
"""

from __future__ import annotations

import logging

from ..errors import NotFound
from ..gateway import CUSTOMERS
from ..models import Customer
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, validate_payload

logger = logging.getLogger(__name__)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "email", "phone", "address", "notes"}),
    required_on_create=frozenset({"name"}),
)


def list_customers(gateway, search: str | None = None) -> list[dict]:
    customers = gateway.get_all(CUSTOMERS)
    if search:
        term = search.strip().lower()
        customers = [
            c for c in customers
            if any(term in (c.get(f) or "").lower() for f in ("name", "email", "phone"))
        ]
    return sorted(customers, key=lambda c: (c["name"].lower(), c["id"]))


def get_customer(gateway, customer_id) -> dict | None:
    return gateway.get(CUSTOMERS, customer_id)


def require_customer(gateway, customer_id) -> dict:
    customer = gateway.get(CUSTOMERS, customer_id)
    if customer is None:
        raise NotFound(f"Customer {customer_id} not found")
    return customer


def create_customer(gateway, payload: dict) -> dict:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    patch["created_at"] = utcnow()
    customer_id = gateway.insert(CUSTOMERS, patch)
    logger.info("Created customer %s", customer_id)
    return gateway.get(CUSTOMERS, customer_id)


def update_customer(gateway, customer_id, payload: dict) -> dict:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    customer = require_customer(gateway, customer_id)
    customer.update(patch)
    gateway.put(CUSTOMERS, customer)
    return gateway.get(CUSTOMERS, customer_id)


def delete_customer(gateway, customer_id) -> None:
    """Sales that reference the customer are left untouched."""
    require_customer(gateway, customer_id)
    gateway.delete(CUSTOMERS, customer_id)
    logger.info("Deleted customer %s", customer_id)
