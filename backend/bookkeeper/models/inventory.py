from __future__ import annotations

from ..extensions import db


class Item(db.Model):
    """
    Sellable item.

    Sale line items snapshot price_cents at the time of sale, so editing the
    price here never changes historical sales.
    """
    __tablename__ = "items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)

    # Pricing (all amounts in cents)
    price_cents = db.Column(db.Integer, nullable=False, index=True)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)

    # On-hand quantity (not decremented by sales)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    category = db.Column(db.String(128), nullable=True)
    sku = db.Column(db.String(64), nullable=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, nullable=True)
