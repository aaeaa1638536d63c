# Overview: Sale ledger engine; owns sale headers, line items, payments and their derived totals.

"""
Sale Ledger

A sale aggregate is a header (sales) plus the line items (sale_items) and
payments (payments) that carry its sale_id. The header stores derived
fields for cheap reads:

- subtotal_cents     = sum(line.total_cents)
- final_amount_cents = subtotal_cents - discount_cents + tax_cents
- item_count         = number of line items
- amount_paid_cents  = sum(payment.amount_cents)
- payment_status     = derive_payment_status(amount_paid_cents, final_amount_cents)

Every mutation funnels into recompute_totals / recompute_payment_status,
which rebuild those fields from the current children (never by applying a
delta to the stored value). The gateway has no multi-record transactions,
so if a step fails after a child write, re-running recompute restores the
header.

All mutations for one sale run under that sale's lock (SaleLocks).
"""

from __future__ import annotations

import logging

from ..errors import InvalidArgument, NotFound, PartialCascadeFailure, StorageFailure
from ..gateway import CUSTOMERS, ITEMS, PAYMENTS, SALE_ITEMS, SALES
from ..time_utils import parse_iso_date, today, utcnow
from .concurrency import SaleLocks
from .payment_service import (
    PAYMENT_STATUS_UNPAID,
    derive_payment_status,
    validate_payment_method,
    validate_payment_status,
)

logger = logging.getLogger(__name__)

UNKNOWN_CUSTOMER = "Unknown Customer"

# Header fields callers may edit directly; totals and status are derived
SALE_MUTABLE_FIELDS = {"customer_id", "sale_date", "notes"}

DERIVED_FIELDS = ("subtotal_cents", "final_amount_cents", "item_count")


def default_sale() -> dict:
    return {
        "customer_id": None,
        "sale_date": today(),
        "subtotal_cents": 0,
        "discount_cents": 0,
        "tax_cents": 0,
        "final_amount_cents": 0,
        "amount_paid_cents": 0,
        "payment_status": PAYMENT_STATUS_UNPAID,
        "item_count": 0,
        "notes": "",
        "created_at": None,
        "updated_at": None,
    }


def _require_int(value, field: str) -> int:
    # bool is an int subclass; JSON true/false must not pass as 1/0
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"{field} must be an integer")
    return value


def require_positive_int(value, field: str) -> int:
    value = _require_int(value, field)
    if value <= 0:
        raise InvalidArgument(f"{field} must be > 0")
    return value


def require_non_negative_int(value, field: str) -> int:
    value = _require_int(value, field)
    if value < 0:
        raise InvalidArgument(f"{field} cannot be negative")
    return value


def _parse_date(value, field: str):
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f"{field} must be an ISO-8601 date")


class SaleLedger:
    """
    Ledger engine over an injected persistence gateway.

    Public operations return fresh records (dicts) read back from the
    gateway after all derived fields have been recomputed.
    """

    def __init__(self, gateway, locks: SaleLocks | None = None):
        self.gateway = gateway
        self.locks = locks if locks is not None else SaleLocks()

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def _require_sale(self, sale_id) -> dict:
        sale = self.gateway.get(SALES, sale_id)
        if sale is None:
            raise NotFound(f"Sale {sale_id} not found")
        return sale

    def _require_line_item(self, line_item_id) -> dict:
        line = self.gateway.get(SALE_ITEMS, line_item_id)
        if line is None:
            raise NotFound(f"Sale item {line_item_id} not found")
        return line

    def get_sale(self, sale_id) -> dict | None:
        return self.gateway.get(SALES, sale_id)

    def get_line_items(self, sale_id) -> list[dict]:
        return self.gateway.get_all_by_index(SALE_ITEMS, "sale_id", int(sale_id))

    def get_payments(self, sale_id) -> list[dict]:
        return self.gateway.get_all_by_index(PAYMENTS, "sale_id", int(sale_id))

    def get_sale_details(self, sale_id) -> dict | None:
        """
        Sale header + resolved customer + line items + payments.

        Returns None when the sale does not exist. A dangling customer or item
        reference resolves to None rather than raising.
        """
        sale = self.gateway.get(SALES, sale_id)
        if sale is None:
            return None

        items = []
        for line in self.get_line_items(sale_id):
            item = self.gateway.get(ITEMS, line["item_id"])
            items.append({**line, "item_name": item["name"] if item else None})

        return {
            "sale": sale,
            "customer": self.gateway.get(CUSTOMERS, sale["customer_id"]),
            "items": items,
            "payments": self.get_payments(sale_id),
        }

    def list_sales(
        self,
        page: int = 1,
        per_page: int = 10,
        payment_status: str | None = None,
        customer_id: int | None = None,
    ) -> dict:
        """
        Newest-first sale listing with customer names and pagination metadata.
        """
        payment_status = validate_payment_status(payment_status)

        if customer_id is not None:
            sales = self.gateway.get_all_by_index(SALES, "customer_id", int(customer_id))
        elif payment_status is not None:
            sales = self.gateway.get_all_by_index(SALES, "payment_status", payment_status)
        else:
            sales = self.gateway.get_all(SALES)

        if payment_status is not None:
            sales = [s for s in sales if s["payment_status"] == payment_status]

        sales.sort(key=lambda s: (s["sale_date"], s["id"]), reverse=True)

        per_page = min(max(per_page or 10, 1), 100)
        page = max(page or 1, 1)
        total = len(sales)
        total_pages = (total + per_page - 1) // per_page if total > 0 else 1

        customer_names: dict = {}
        enriched = []
        for sale in sales[(page - 1) * per_page: page * per_page]:
            cid = sale["customer_id"]
            if cid not in customer_names:
                customer = self.gateway.get(CUSTOMERS, cid)
                customer_names[cid] = customer["name"] if customer else UNKNOWN_CUSTOMER
            enriched.append({**sale, "customer_name": customer_names[cid]})

        return {
            "items": enriched,
            "count": len(enriched),
            "pagination": {
                "page": page,
                "per_page": per_page,
                "total": total,
                "total_pages": total_pages,
                "has_next": page < total_pages,
                "has_prev": page > 1,
            },
        }

    # =========================================================================
    # SALE HEADER
    # =========================================================================

    def create_sale(self, initial: dict | None = None) -> dict:
        """
        Create a sale header from the default template overlaid with `initial`.

        Line items need not exist yet. payment_status is derived from the
        merged amount_paid/final_amount, whatever the caller passed.
        """
        initial = dict(initial or {})
        unknown = set(initial) - set(default_sale())
        if unknown:
            raise InvalidArgument(f"Unknown sale fields: {', '.join(sorted(unknown))}")

        record = {**default_sale(), **initial}
        if record["customer_id"] is None:
            raise InvalidArgument("customer_id is required")
        record["customer_id"] = _require_int(record["customer_id"], "customer_id")
        record["sale_date"] = _parse_date(record["sale_date"], "sale_date") or today()
        for field in ("subtotal_cents", "discount_cents", "tax_cents", "amount_paid_cents", "item_count"):
            record[field] = require_non_negative_int(record[field], field)
        record["final_amount_cents"] = _require_int(record["final_amount_cents"], "final_amount_cents")
        record["payment_status"] = derive_payment_status(
            record["amount_paid_cents"], record["final_amount_cents"]
        )
        record["created_at"] = utcnow()
        record["updated_at"] = record["created_at"]

        sale_id = self.gateway.insert(SALES, record)
        logger.info("Created sale %s for customer %s", sale_id, record["customer_id"])
        return self._require_sale(sale_id)

    def update_sale(self, sale_id, changes: dict) -> dict:
        """Edit header-only fields (customer, date, notes)."""
        changes = dict(changes or {})
        rejected = set(changes) - SALE_MUTABLE_FIELDS
        if rejected:
            raise InvalidArgument(
                f"Field not allowed: {', '.join(sorted(rejected))}",
                details={"writable_fields": sorted(SALE_MUTABLE_FIELDS)},
            )
        if "customer_id" in changes:
            if changes["customer_id"] is None:
                raise InvalidArgument("customer_id is required")
            _require_int(changes["customer_id"], "customer_id")
        if "sale_date" in changes:
            changes["sale_date"] = _parse_date(changes["sale_date"], "sale_date")
            if changes["sale_date"] is None:
                raise InvalidArgument("sale_date cannot be blank")

        with self.locks.hold(sale_id):
            sale = self._require_sale(sale_id)
            sale.update(changes)
            sale["updated_at"] = utcnow()
            self.gateway.put(SALES, sale)
            return self._require_sale(sale_id)

    # =========================================================================
    # LINE ITEMS
    # =========================================================================

    def add_line_item(self, sale_id, item_id, quantity: int, unit_price_cents: int | None = None) -> dict:
        """
        Add a line item and recompute the sale.

        unit_price_cents is the price snapshot; when omitted, the item's
        current price is used. The snapshot is never re-read afterwards.
        """
        sale_id = require_positive_int(sale_id, "sale_id")
        item_id = require_positive_int(item_id, "item_id")
        quantity = require_positive_int(quantity, "quantity")
        if unit_price_cents is None:
            item = self.gateway.get(ITEMS, item_id)
            if item is None:
                raise NotFound(f"Item {item_id} not found")
            unit_price_cents = item["price_cents"]
        unit_price_cents = require_non_negative_int(unit_price_cents, "unit_price_cents")

        with self.locks.hold(sale_id):
            self._require_sale(sale_id)
            line_id = self.gateway.insert(SALE_ITEMS, {
                "sale_id": sale_id,
                "item_id": item_id,
                "quantity": quantity,
                "price_cents": unit_price_cents,
                "total_cents": quantity * unit_price_cents,
                "created_at": utcnow(),
            })
            self.recompute_totals(sale_id)
            return self._require_line_item(line_id)

    def update_line_item_quantity(self, line_item_id, new_quantity: int) -> dict:
        new_quantity = require_positive_int(new_quantity, "quantity")
        sale_id = self._require_line_item(line_item_id)["sale_id"]

        with self.locks.hold(sale_id):
            line = self._require_line_item(line_item_id)
            self._require_sale(sale_id)
            line["quantity"] = new_quantity
            line["total_cents"] = new_quantity * line["price_cents"]
            self.gateway.put(SALE_ITEMS, line)
            self.recompute_totals(sale_id)
            return self._require_line_item(line_item_id)

    def remove_line_item(self, line_item_id) -> dict | None:
        """
        Delete a line item and recompute its former sale.

        Returns the updated sale, or None when the line item was an orphan
        whose sale no longer exists.
        """
        sale_id = self._require_line_item(line_item_id)["sale_id"]

        with self.locks.hold(sale_id):
            self._require_line_item(line_item_id)
            self.gateway.delete(SALE_ITEMS, line_item_id)
            if self.gateway.get(SALES, sale_id) is None:
                logger.warning("Removed orphaned sale item %s (sale %s missing)", line_item_id, sale_id)
                return None
            return self.recompute_totals(sale_id)

    # =========================================================================
    # DERIVED STATE
    # =========================================================================

    def recompute_totals(self, sale_id) -> dict:
        """
        Rebuild subtotal, final amount and item count from the current line
        items, then the payment status. Safe to re-run: a second call with no
        intervening mutation writes nothing and returns the same record.
        """
        with self.locks.hold(sale_id):
            sale = self._require_sale(sale_id)
            lines = self.get_line_items(sale_id)

            subtotal = sum(line["total_cents"] for line in lines)
            derived = {
                "subtotal_cents": subtotal,
                "final_amount_cents": subtotal - sale["discount_cents"] + sale["tax_cents"],
                "item_count": len(lines),
            }

            if any(sale[k] != v for k, v in derived.items()):
                sale.update(derived)
                sale["updated_at"] = utcnow()
                self.gateway.put(SALES, sale)
                logger.debug("Recomputed totals for sale %s: %s", sale_id, derived)

            return self.recompute_payment_status(sale_id)

    def recompute_payment_status(self, sale_id) -> dict:
        with self.locks.hold(sale_id):
            sale = self._require_sale(sale_id)
            amount_paid = sum(p["amount_cents"] for p in self.get_payments(sale_id))
            status = derive_payment_status(amount_paid, sale["final_amount_cents"])

            if sale["amount_paid_cents"] != amount_paid or sale["payment_status"] != status:
                sale["amount_paid_cents"] = amount_paid
                sale["payment_status"] = status
                sale["updated_at"] = utcnow()
                self.gateway.put(SALES, sale)
                logger.debug("Sale %s payment status -> %s (paid=%s)", sale_id, status, amount_paid)

            return sale

    def apply_discount(self, sale_id, discount_cents: int) -> dict:
        """
        Set the sale discount. Rejected (before any write) when negative or
        larger than the subtotal of the current line items.
        """
        discount_cents = require_non_negative_int(discount_cents, "discount_cents")

        with self.locks.hold(sale_id):
            sale = self._require_sale(sale_id)
            subtotal = sum(line["total_cents"] for line in self.get_line_items(sale_id))
            if discount_cents > subtotal:
                raise InvalidArgument(
                    "Discount cannot be greater than subtotal",
                    details={"discount_cents": discount_cents, "subtotal_cents": subtotal},
                )
            sale["discount_cents"] = discount_cents
            sale["updated_at"] = utcnow()
            self.gateway.put(SALES, sale)
            return self.recompute_totals(sale_id)

    def set_tax(self, sale_id, tax_cents: int) -> dict:
        tax_cents = require_non_negative_int(tax_cents, "tax_cents")

        with self.locks.hold(sale_id):
            sale = self._require_sale(sale_id)
            sale["tax_cents"] = tax_cents
            sale["updated_at"] = utcnow()
            self.gateway.put(SALES, sale)
            return self.recompute_totals(sale_id)

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    def record_payment(
        self,
        sale_id,
        amount_cents: int,
        payment_date=None,
        payment_method: str | None = None,
        notes: str | None = None,
    ) -> dict:
        """
        Record a payment and recompute the sale's payment status.

        Overpayment is accepted; the status reads Paid once the amount paid
        reaches the final amount.
        """
        sale_id = require_positive_int(sale_id, "sale_id")
        amount_cents = require_positive_int(amount_cents, "amount_cents")
        payment_method = validate_payment_method(payment_method)
        payment_date = _parse_date(payment_date, "payment_date") or today()

        with self.locks.hold(sale_id):
            self._require_sale(sale_id)
            payment_id = self.gateway.insert(PAYMENTS, {
                "sale_id": sale_id,
                "amount_cents": amount_cents,
                "payment_date": payment_date,
                "payment_method": payment_method,
                "notes": notes or "",
                "created_at": utcnow(),
            })
            sale = self.recompute_payment_status(sale_id)
            logger.info(
                "Recorded payment %s of %s on sale %s (%s)",
                payment_id, amount_cents, sale_id, sale["payment_status"],
            )
            payment = self.gateway.get(PAYMENTS, payment_id)
            return payment

    def remove_payment(self, payment_id) -> dict | None:
        """Delete a payment; the sale's status may regress. None for orphans."""
        payment = self.gateway.get(PAYMENTS, payment_id)
        if payment is None:
            raise NotFound(f"Payment {payment_id} not found")
        sale_id = payment["sale_id"]

        with self.locks.hold(sale_id):
            self.gateway.delete(PAYMENTS, payment_id)
            if self.gateway.get(SALES, sale_id) is None:
                logger.warning("Removed orphaned payment %s (sale %s missing)", payment_id, sale_id)
                return None
            return self.recompute_payment_status(sale_id)

    def get_payment_summary(self, sale_id) -> dict:
        sale = self._require_sale(sale_id)
        payments = self.get_payments(sale_id)
        return {
            "final_amount_cents": sale["final_amount_cents"],
            "amount_paid_cents": sale["amount_paid_cents"],
            "balance_cents": sale["final_amount_cents"] - sale["amount_paid_cents"],
            "payment_status": sale["payment_status"],
            "payments": payments,
        }

    # =========================================================================
    # DELETION
    # =========================================================================

    def delete_sale(self, sale_id) -> dict:
        """
        Delete a sale with its line items and payments (children first).

        A storage failure midway raises PartialCascadeFailure; because the
        header goes last, the sale is still addressable and calling
        delete_sale again finishes the job.
        """
        deleted_items = 0
        deleted_payments = 0

        with self.locks.hold(sale_id):
            self._require_sale(sale_id)

            def _fail(stage, exc):
                logger.error("Cascade delete of sale %s failed at %s: %s", sale_id, stage, exc)
                return PartialCascadeFailure(
                    f"Deleting sale {sale_id} stopped at {stage}",
                    details={
                        "sale_id": int(sale_id),
                        "stage": stage,
                        "deleted_line_items": deleted_items,
                        "deleted_payments": deleted_payments,
                    },
                )

            for line in self.get_line_items(sale_id):
                try:
                    self.gateway.delete(SALE_ITEMS, line["id"])
                except NotFound:
                    continue
                except StorageFailure as exc:
                    raise _fail(SALE_ITEMS, exc) from exc
                deleted_items += 1

            for payment in self.get_payments(sale_id):
                try:
                    self.gateway.delete(PAYMENTS, payment["id"])
                except NotFound:
                    continue
                except StorageFailure as exc:
                    raise _fail(PAYMENTS, exc) from exc
                deleted_payments += 1

            try:
                self.gateway.delete(SALES, sale_id)
            except StorageFailure as exc:
                raise _fail(SALES, exc) from exc

        self.locks.discard(sale_id)
        logger.info(
            "Deleted sale %s (%s line items, %s payments)",
            sale_id, deleted_items, deleted_payments,
        )
        return {
            "sale_id": int(sale_id),
            "deleted_line_items": deleted_items,
            "deleted_payments": deleted_payments,
        }
