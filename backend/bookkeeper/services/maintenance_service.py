# Overview: Repair operations for the non-transactional store (orphans, stale headers).

from __future__ import annotations

import logging

from ..errors import NotFound
from ..gateway import PAYMENTS, SALE_ITEMS, SALES
from .ledger_service import SaleLedger

logger = logging.getLogger(__name__)


def find_orphans(gateway) -> dict:
    """
    Line items and payments whose sale header no longer exists.

    These are what an interrupted cascade or a write racing a delete leaves
    behind.
    """
    sale_ids = {s["id"] for s in gateway.get_all(SALES)}
    return {
        SALE_ITEMS: [r["id"] for r in gateway.get_all(SALE_ITEMS) if r["sale_id"] not in sale_ids],
        PAYMENTS: [r["id"] for r in gateway.get_all(PAYMENTS) if r["sale_id"] not in sale_ids],
    }


def purge_orphans(gateway) -> dict:
    orphans = find_orphans(gateway)
    deleted = {}
    for collection, keys in orphans.items():
        count = 0
        for key in keys:
            try:
                gateway.delete(collection, key)
            except NotFound:
                continue
            count += 1
        deleted[collection] = count
    if any(deleted.values()):
        logger.warning("Purged orphaned records: %s", deleted)
    return deleted


def recompute_all(ledger: SaleLedger) -> dict:
    """
    Re-run recompute_totals for every sale.

    Returns the ids whose stored header disagreed with their children.
    """
    repaired = []
    sales = ledger.gateway.get_all(SALES)
    for before in sales:
        after = ledger.recompute_totals(before["id"])
        if any(before[k] != after[k] for k in (
            "subtotal_cents", "final_amount_cents", "item_count", "amount_paid_cents", "payment_status",
        )):
            repaired.append(before["id"])
    if repaired:
        logger.warning("Recompute repaired %s sale(s): %s", len(repaired), repaired)
    return {"checked": len(sales), "repaired": repaired}
