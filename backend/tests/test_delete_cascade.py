"""
Cascade delete of a sale and recovery from partial failures.
"""

import pytest

from bookkeeper.errors import NotFound, PartialCascadeFailure, StorageFailure
from bookkeeper.gateway import PAYMENTS, SALE_ITEMS, SALES


@pytest.fixture
def full_sale(ledger, customer, widget, gadget):
    """Sale with two line items and two payments."""
    sale = ledger.create_sale({"customer_id": customer["id"]})
    ledger.add_line_item(sale["id"], widget["id"], 1)
    ledger.add_line_item(sale["id"], gadget["id"], 2)
    ledger.record_payment(sale["id"], 1000)
    ledger.record_payment(sale["id"], 500)
    return ledger.get_sale(sale["id"])


def children(gateway, sale_id):
    return (
        gateway.get_all_by_index(SALE_ITEMS, "sale_id", sale_id),
        gateway.get_all_by_index(PAYMENTS, "sale_id", sale_id),
    )


class TestDeleteSale:

    def test_cascade_completeness(self, ledger, gateway, full_sale):
        result = ledger.delete_sale(full_sale["id"])

        assert result == {"sale_id": full_sale["id"], "deleted_line_items": 2, "deleted_payments": 2}
        assert children(gateway, full_sale["id"]) == ([], [])
        assert gateway.get(SALES, full_sale["id"]) is None
        assert ledger.get_sale_details(full_sale["id"]) is None

    def test_other_sales_untouched(self, ledger, gateway, customer, widget, full_sale):
        other = ledger.create_sale({"customer_id": customer["id"]})
        ledger.add_line_item(other["id"], widget["id"], 1)
        ledger.record_payment(other["id"], 200)

        ledger.delete_sale(full_sale["id"])

        lines, payments = children(gateway, other["id"])
        assert len(lines) == 1
        assert len(payments) == 1
        assert ledger.get_sale(other["id"])["amount_paid_cents"] == 200

    def test_delete_missing_sale(self, ledger):
        with pytest.raises(NotFound):
            ledger.delete_sale(987654)

    def test_delete_twice(self, ledger, full_sale):
        ledger.delete_sale(full_sale["id"])
        with pytest.raises(NotFound):
            ledger.delete_sale(full_sale["id"])

    def test_lock_released_after_delete(self, ledger, full_sale):
        ledger.delete_sale(full_sale["id"])
        assert full_sale["id"] not in ledger.locks._locks


class TestPartialCascade:

    def test_failure_on_payments_leaves_orphaned_children_only(
        self, ledger, gateway, failing_ledger, full_sale
    ):
        broken = failing_ledger(fail_on="delete", collection=PAYMENTS, nth=1)

        with pytest.raises(PartialCascadeFailure) as excinfo:
            broken.delete_sale(full_sale["id"])

        details = excinfo.value.details
        assert details["sale_id"] == full_sale["id"]
        assert details["stage"] == PAYMENTS
        assert details["deleted_line_items"] == 2
        assert details["deleted_payments"] == 0
        assert isinstance(excinfo.value.__cause__, StorageFailure)

        # Children first: the header is still there, so a retry can find the rest
        lines, payments = children(gateway, full_sale["id"])
        assert lines == []
        assert len(payments) == 2
        assert gateway.get(SALES, full_sale["id"]) is not None

        result = ledger.delete_sale(full_sale["id"])

        assert result["deleted_line_items"] == 0
        assert result["deleted_payments"] == 2
        assert children(gateway, full_sale["id"]) == ([], [])
        assert gateway.get(SALES, full_sale["id"]) is None

    def test_failure_on_header(self, ledger, gateway, failing_ledger, full_sale):
        broken = failing_ledger(fail_on="delete", collection=SALES, nth=1)

        with pytest.raises(PartialCascadeFailure) as excinfo:
            broken.delete_sale(full_sale["id"])

        assert excinfo.value.details["stage"] == SALES
        assert children(gateway, full_sale["id"]) == ([], [])
        assert gateway.get(SALES, full_sale["id"]) is not None

        ledger.delete_sale(full_sale["id"])
        assert gateway.get(SALES, full_sale["id"]) is None

    def test_failure_midway_through_line_items(self, ledger, gateway, failing_ledger, full_sale):
        broken = failing_ledger(fail_on="delete", collection=SALE_ITEMS, nth=2)

        with pytest.raises(PartialCascadeFailure) as excinfo:
            broken.delete_sale(full_sale["id"])

        assert excinfo.value.details["stage"] == SALE_ITEMS
        assert excinfo.value.details["deleted_line_items"] == 1
        lines, payments = children(gateway, full_sale["id"])
        assert len(lines) == 1
        assert len(payments) == 2

        # The surviving header can be recomputed against what is left
        header = ledger.recompute_totals(full_sale["id"])
        assert header["item_count"] == 1
        assert header["subtotal_cents"] == lines[0]["total_cents"]


class TestInterruptedMutation:

    def test_storage_failure_during_recompute_is_surfaced_and_repairable(
        self, ledger, gateway, failing_ledger, customer, widget
    ):
        sale = ledger.create_sale({"customer_id": customer["id"]})
        broken = failing_ledger(fail_on="put", collection=SALES, nth=1)

        with pytest.raises(StorageFailure):
            broken.add_line_item(sale["id"], widget["id"], 2)

        # The line item landed, the header did not follow
        assert len(gateway.get_all_by_index(SALE_ITEMS, "sale_id", sale["id"])) == 1
        assert gateway.get(SALES, sale["id"])["subtotal_cents"] == 0

        repaired = ledger.recompute_totals(sale["id"])
        assert repaired["subtotal_cents"] == 2000
        assert repaired["item_count"] == 1

    def test_failed_payment_insert_leaves_sale_unchanged(self, gateway, failing_ledger, customer, ledger, widget):
        sale = ledger.create_sale({"customer_id": customer["id"]})
        ledger.add_line_item(sale["id"], widget["id"], 1)
        before = ledger.get_sale(sale["id"])
        broken = failing_ledger(fail_on="insert", collection=PAYMENTS, nth=1)

        with pytest.raises(StorageFailure):
            broken.record_payment(sale["id"], 500)

        assert gateway.get_all_by_index(PAYMENTS, "sale_id", sale["id"]) == []
        assert ledger.get_sale(sale["id"]) == before
