from __future__ import annotations

from ..extensions import db


class Sale(db.Model):
    """
    Sale header (aggregate root).

    subtotal/final_amount/amount_paid/payment_status/item_count are derived
    from the sale's line items and payments and are only ever written by the
    recompute routines in services.ledger_service.

    No foreign keys: the store enforces no referential integrity, so a
    deleted customer leaves customer_id dangling.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_date_id", "sale_date", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, nullable=False, index=True)
    sale_date = db.Column(db.Date, nullable=False, index=True)

    # Totals (all amounts in cents)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)  # Sum of line item totals
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    final_amount_cents = db.Column(db.Integer, nullable=False, default=0)  # subtotal - discount + tax
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)  # Sum of payments

    payment_status = db.Column(db.String(16), nullable=False, default="Unpaid", index=True)  # Unpaid, Partially Paid, Paid
    item_count = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, nullable=True)


class SaleLineItem(db.Model):
    """One item/quantity/price entry on a sale; total_cents = quantity * price_cents."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, nullable=False, index=True)
    item_id = db.Column(db.Integer, nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)  # Unit price snapshot
    total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())


class Payment(db.Model):
    """
    Payment recorded against a sale.

    A sale may carry any number of payments (split and partial payments);
    their sum may exceed the sale's final amount.
    """
    __tablename__ = "payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    payment_date = db.Column(db.Date, nullable=False, index=True)
    payment_method = db.Column(db.String(32), nullable=False, default="cash")  # cash, bank_transfer, credit_card, other
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
