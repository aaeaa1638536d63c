# Overview: Three-step sale wizard; stages a draft in session storage and commits it through the ledger.

"""
Sale Builder

Steps:
1. Customer  - pick the customer
2. Items     - stage items and quantities (re-adding an item bumps its quantity)
3. Payment   - discount, tax, optional first payment, notes

The draft lives only in session-scoped storage (the Flask session cookie),
never in the durable store. commit() writes it in one sequence:

    create_sale (header with staged totals)
    -> one sale_items insert per staged line (pre-computed totals)
    -> record_payment, if a payment amount was staged
    -> recompute_totals (idempotent; a no-op when the staged values agree)

There is no rollback: a failure after the header is written raises
PartialCascadeFailure carrying the new sale id, and the sale can be repaired
with recompute or removed with delete_sale.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, asdict
from typing import MutableMapping

from ..errors import InvalidArgument, NotFound, PartialCascadeFailure, StorageFailure
from ..gateway import SALE_ITEMS
from ..time_utils import parse_iso_date, today, utcnow
from .customers_service import require_customer
from .items_service import require_item
from .ledger_service import SaleLedger, require_non_negative_int, require_positive_int
from .payment_service import DEFAULT_PAYMENT_METHOD, derive_payment_status, validate_payment_method

logger = logging.getLogger(__name__)

STEP_CUSTOMER = 1
STEP_ITEMS = 2
STEP_PAYMENT = 3
TOTAL_STEPS = 3


@dataclass
class DraftLine:
    item_id: int
    price_cents: int  # Unit price snapshot taken when the item was staged
    quantity: int = 1

    @property
    def total_cents(self) -> int:
        return self.price_cents * self.quantity


@dataclass
class SaleDraft:
    customer_id: int | None = None
    sale_date: str = field(default_factory=lambda: today().isoformat())
    items: list[DraftLine] = field(default_factory=list)
    discount_cents: int = 0
    tax_cents: int = 0
    payment_amount_cents: int = 0
    payment_method: str = DEFAULT_PAYMENT_METHOD
    notes: str = ""
    step: int = STEP_CUSTOMER

    @property
    def subtotal_cents(self) -> int:
        return sum(line.total_cents for line in self.items)

    @property
    def final_amount_cents(self) -> int:
        return self.subtotal_cents - self.discount_cents + self.tax_cents

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def payment_status(self) -> str:
        return derive_payment_status(self.payment_amount_cents, self.final_amount_cents)

    def find_line(self, item_id) -> DraftLine | None:
        for line in self.items:
            if line.item_id == int(item_id):
                return line
        return None

    def to_dict(self, *, include_totals: bool = False) -> dict:
        data = asdict(self)
        if include_totals:
            for line, raw in zip(self.items, data["items"]):
                raw["total_cents"] = line.total_cents
            data.update(
                subtotal_cents=self.subtotal_cents,
                final_amount_cents=self.final_amount_cents,
                item_count=self.item_count,
                payment_status=self.payment_status,
            )
        return data

    @classmethod
    def from_dict(cls, data: dict | None) -> "SaleDraft":
        data = dict(data or {})
        lines = [
            DraftLine(item_id=raw["item_id"], price_cents=raw["price_cents"], quantity=raw.get("quantity", 1))
            for raw in data.pop("items", [])
        ]
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(items=lines, **known)


# =============================================================================
# SESSION STORAGE
# =============================================================================

def load_draft(session: MutableMapping, key: str) -> SaleDraft:
    return SaleDraft.from_dict(session.get(key))


def save_draft(session: MutableMapping, key: str, draft: SaleDraft) -> None:
    session[key] = draft.to_dict()


def clear_draft(session: MutableMapping, key: str) -> None:
    session.pop(key, None)


# =============================================================================
# BUILDER
# =============================================================================

def _quantity(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument("quantity must be an integer")
    return value


class SaleBuilder:
    """Operations over a SaleDraft; each mutates the draft in place and returns it."""

    def __init__(self, ledger: SaleLedger):
        self.ledger = ledger

    @property
    def gateway(self):
        return self.ledger.gateway

    # -- step 1 ---------------------------------------------------------------

    def select_customer(self, draft: SaleDraft, customer_id) -> SaleDraft:
        if customer_id is None:
            raise InvalidArgument("customer_id is required")
        customer = require_customer(self.gateway, require_positive_int(customer_id, "customer_id"))
        draft.customer_id = customer["id"]
        return draft

    # -- step 2 ---------------------------------------------------------------

    def _require_line(self, draft: SaleDraft, item_id) -> DraftLine:
        line = draft.find_line(item_id)
        if line is None:
            raise NotFound(f"Item {item_id} is not in the sale")
        return line

    def add_item(self, draft: SaleDraft, item_id, quantity: int = 1) -> SaleDraft:
        item_id = require_positive_int(item_id, "item_id")
        quantity = max(1, _quantity(quantity))
        line = draft.find_line(item_id)
        if line is not None:
            line.quantity += quantity
            return draft
        item = require_item(self.gateway, item_id)
        draft.items.append(DraftLine(item_id=item["id"], price_cents=item["price_cents"], quantity=quantity))
        return draft

    def set_quantity(self, draft: SaleDraft, item_id, quantity: int) -> SaleDraft:
        line = self._require_line(draft, item_id)
        line.quantity = max(1, _quantity(quantity))
        return draft

    def increment(self, draft: SaleDraft, item_id) -> SaleDraft:
        self._require_line(draft, item_id).quantity += 1
        return draft

    def decrement(self, draft: SaleDraft, item_id) -> SaleDraft:
        line = self._require_line(draft, item_id)
        line.quantity = max(1, line.quantity - 1)
        return draft

    def remove_item(self, draft: SaleDraft, item_id) -> SaleDraft:
        line = self._require_line(draft, item_id)
        draft.items.remove(line)
        return draft

    # -- step 3 ---------------------------------------------------------------

    def set_discount(self, draft: SaleDraft, discount_cents: int) -> SaleDraft:
        discount_cents = require_non_negative_int(discount_cents, "discount_cents")
        if discount_cents > draft.subtotal_cents:
            raise InvalidArgument(
                "Discount cannot be greater than subtotal",
                details={"discount_cents": discount_cents, "subtotal_cents": draft.subtotal_cents},
            )
        draft.discount_cents = discount_cents
        return draft

    def set_tax(self, draft: SaleDraft, tax_cents: int) -> SaleDraft:
        draft.tax_cents = require_non_negative_int(tax_cents, "tax_cents")
        return draft

    def set_payment(self, draft: SaleDraft, amount_cents: int, payment_method: str | None = None) -> SaleDraft:
        draft.payment_amount_cents = require_non_negative_int(amount_cents, "payment_amount_cents")
        if payment_method is not None:
            draft.payment_method = validate_payment_method(payment_method)
        return draft

    def set_notes(self, draft: SaleDraft, notes: str | None) -> SaleDraft:
        draft.notes = (notes or "").strip()
        return draft

    def set_sale_date(self, draft: SaleDraft, sale_date) -> SaleDraft:
        try:
            parsed = parse_iso_date(sale_date)
        except (TypeError, ValueError):
            raise InvalidArgument("sale_date must be an ISO-8601 date")
        if parsed is None:
            raise InvalidArgument("sale_date cannot be blank")
        draft.sale_date = parsed.isoformat()
        return draft

    def update(self, draft: SaleDraft, changes: dict) -> SaleDraft:
        """Apply several step-3 fields at once; tax is applied before discount."""
        allowed = {"sale_date", "discount_cents", "tax_cents", "payment_amount_cents", "payment_method", "notes"}
        rejected = set(changes) - allowed
        if rejected:
            raise InvalidArgument(f"Field not allowed: {', '.join(sorted(rejected))}")

        if "sale_date" in changes:
            self.set_sale_date(draft, changes["sale_date"])
        if "tax_cents" in changes:
            self.set_tax(draft, changes["tax_cents"])
        if "discount_cents" in changes:
            self.set_discount(draft, changes["discount_cents"])
        if "payment_amount_cents" in changes or "payment_method" in changes:
            self.set_payment(
                draft,
                changes.get("payment_amount_cents", draft.payment_amount_cents),
                changes.get("payment_method"),
            )
        if "notes" in changes:
            self.set_notes(draft, changes["notes"])
        return draft

    # -- navigation -----------------------------------------------------------

    def _check_gate(self, draft: SaleDraft, step: int) -> None:
        if step == STEP_CUSTOMER and draft.customer_id is None:
            raise InvalidArgument("Please select a customer")
        if step == STEP_ITEMS and not draft.items:
            raise InvalidArgument("Please add at least one item to the sale")

    def go_to_step(self, draft: SaleDraft, step) -> SaleDraft:
        """Moving back is always allowed; moving forward passes every gate in between."""
        if isinstance(step, bool) or not isinstance(step, int) or not 1 <= step <= TOTAL_STEPS:
            raise InvalidArgument(f"step must be between 1 and {TOTAL_STEPS}")
        for current in range(draft.step, step):
            self._check_gate(draft, current)
        draft.step = step
        return draft

    # -- commit ---------------------------------------------------------------

    def commit(self, draft: SaleDraft) -> dict:
        if draft.customer_id is None:
            raise InvalidArgument("Customer is required")
        if not draft.items:
            raise InvalidArgument("At least one item is required")
        if draft.discount_cents > draft.subtotal_cents:
            raise InvalidArgument("Discount cannot be greater than subtotal")

        sale = self.ledger.create_sale({
            "customer_id": draft.customer_id,
            "sale_date": draft.sale_date,
            "subtotal_cents": draft.subtotal_cents,
            "discount_cents": draft.discount_cents,
            "tax_cents": draft.tax_cents,
            "final_amount_cents": draft.final_amount_cents,
            "item_count": draft.item_count,
            "notes": draft.notes,
        })
        sale_id = sale["id"]
        written: list[int] = []
        stage = SALE_ITEMS

        with self.ledger.locks.hold(sale_id):
            try:
                for line in draft.items:
                    written.append(self.gateway.insert(SALE_ITEMS, {
                        "sale_id": sale_id,
                        "item_id": line.item_id,
                        "quantity": line.quantity,
                        "price_cents": line.price_cents,
                        "total_cents": line.total_cents,
                        "created_at": utcnow(),
                    }))

                if draft.payment_amount_cents > 0:
                    stage = "payments"
                    self.ledger.record_payment(
                        sale_id,
                        draft.payment_amount_cents,
                        payment_date=draft.sale_date,
                        payment_method=draft.payment_method,
                        notes="Initial payment",
                    )

                stage = "recompute"
                sale = self.ledger.recompute_totals(sale_id)
            except StorageFailure as exc:
                logger.error("Committing draft as sale %s failed at %s: %s", sale_id, stage, exc)
                raise PartialCascadeFailure(
                    f"Sale {sale_id} was created but saving stopped at {stage}",
                    details={"sale_id": sale_id, "stage": stage, "written_line_items": written},
                ) from exc

        logger.info("Committed draft as sale %s (%s items)", sale_id, len(written))
        return sale
