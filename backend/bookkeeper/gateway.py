# Overview: Persistence gateway over the five bookkeeping collections.

"""
Persistence Gateway

Key-indexed record store consumed by the sale ledger. Records are plain
dicts of column values; each write commits on its own, so a sequence of
writes across collections is NOT atomic. Callers that chain writes must be
able to re-run their derivations (see services.ledger_service).

Contract:
- insert(collection, record) -> generated integer key
- get(collection, key) -> record | None
- get_all(collection) -> list[record] (ordered by key)
- get_all_by_index(collection, field, value) -> list[record] (indexed fields only)
- put(collection, record) -> None (full replace by record["id"])
- delete(collection, key) -> None
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from .errors import InvalidArgument, NotFound, StorageFailure
from .extensions import db
from .models import Customer, Item, Payment, Sale, SaleLineItem
from .services.concurrency import run_with_retry

logger = logging.getLogger(__name__)

CUSTOMERS = "customers"
ITEMS = "items"
SALES = "sales"
SALE_ITEMS = "sale_items"
PAYMENTS = "payments"

COLLECTIONS = {
    CUSTOMERS: Customer,
    ITEMS: Item,
    SALES: Sale,
    SALE_ITEMS: SaleLineItem,
    PAYMENTS: Payment,
}


def _columns(model) -> dict:
    return {c.key: c for c in model.__mapper__.columns}


def _is_indexed(model, field: str) -> bool:
    col = _columns(model).get(field)
    if col is None:
        return False
    if col.primary_key or col.index:
        return True
    # Composite indexes count when the field leads them
    return any(ix.columns[0].key == field for ix in model.__table__.indexes)


def to_record(obj) -> dict:
    return {key: getattr(obj, key) for key in _columns(type(obj))}


class SqlAlchemyGateway:
    """
    Gateway backed by a Flask-SQLAlchemy session.

    Must be used inside an application context. Reads always go to the store
    (populate_existing) so a record written through another session is never
    served stale from this session's identity map. SQLAlchemy failures are
    retried (OperationalError) and then surfaced as StorageFailure after the
    session is rolled back.
    """

    def __init__(self, database=db, *, retry_attempts: int = 3, backoff_base: float = 0.05):
        self.db = database
        self.retry_attempts = retry_attempts
        self.backoff_base = backoff_base

    @property
    def session(self):
        return self.db.session

    def _model(self, collection: str):
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise InvalidArgument(f"Unknown collection: {collection}")

    def _run(self, op, action: str, collection: str):
        try:
            return run_with_retry(
                op,
                attempts=self.retry_attempts,
                backoff_base=self.backoff_base,
                on_retry=self.session.rollback,
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Storage %s on %s failed: %s", action, collection, exc)
            raise StorageFailure(
                f"Storage {action} on {collection} failed",
                details={"collection": collection, "action": action},
            ) from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, collection: str, key) -> dict | None:
        model = self._model(collection)
        if key is None:
            return None

        def _op():
            obj = self.session.get(model, int(key), populate_existing=True)
            return to_record(obj) if obj is not None else None

        return self._run(_op, "get", collection)

    def get_all(self, collection: str) -> list[dict]:
        model = self._model(collection)

        def _op():
            rows = self.session.query(model).populate_existing().order_by(model.id.asc()).all()
            return [to_record(r) for r in rows]

        return self._run(_op, "get_all", collection)

    def get_all_by_index(self, collection: str, field: str, value) -> list[dict]:
        model = self._model(collection)
        if not _is_indexed(model, field):
            raise InvalidArgument(f"{collection}.{field} is not an indexed field")

        def _op():
            rows = (
                self.session.query(model)
                .populate_existing()
                .filter(getattr(model, field) == value)
                .order_by(model.id.asc())
                .all()
            )
            return [to_record(r) for r in rows]

        return self._run(_op, "get_all_by_index", collection)

    # ------------------------------------------------------------------
    # Writes (each commits on its own)
    # ------------------------------------------------------------------

    def insert(self, collection: str, record: dict) -> int:
        model = self._model(collection)
        cols = _columns(model)
        values = {k: v for k, v in record.items() if k in cols and k != "id"}

        def _op():
            obj = model(**values)
            self.session.add(obj)
            self.session.commit()
            return obj.id

        return self._run(_op, "insert", collection)

    def put(self, collection: str, record: dict) -> None:
        """Full replace: every non-key column takes the record's value (missing -> None)."""
        model = self._model(collection)
        key = record.get("id")
        if key is None:
            raise InvalidArgument(f"put on {collection} requires an id")

        def _op():
            obj = self.session.get(model, int(key))
            if obj is None:
                return False
            for name in _columns(model):
                if name == "id":
                    continue
                setattr(obj, name, record.get(name))
            self.session.commit()
            return True

        if not self._run(_op, "put", collection):
            raise NotFound(f"{collection} record {key} not found")

    def delete(self, collection: str, key) -> None:
        model = self._model(collection)

        def _op():
            obj = self.session.get(model, int(key))
            if obj is None:
                return False
            self.session.delete(obj)
            self.session.commit()
            return True

        if not self._run(_op, "delete", collection):
            raise NotFound(f"{collection} record {key} not found")
