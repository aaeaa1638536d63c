from flask import current_app

from ..services.sale_builder import SaleBuilder


def get_ledger():
    """The application's SaleLedger (built once in create_app)."""
    return current_app.extensions["sale_ledger"]


def get_gateway():
    return get_ledger().gateway


def get_builder() -> SaleBuilder:
    return SaleBuilder(get_ledger())
