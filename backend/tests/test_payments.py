"""
Payment recording and the payment status rule.
"""

from datetime import date

import pytest

from bookkeeper.errors import InvalidArgument, NotFound
from bookkeeper.gateway import PAYMENTS
from bookkeeper.time_utils import today
from bookkeeper.services.payment_service import (
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_UNPAID,
    derive_payment_status,
    validate_payment_method,
)


@pytest.fixture
def sale(ledger, customer):
    return ledger.create_sale({"customer_id": customer["id"]})


class TestStatusRule:

    @pytest.mark.parametrize("paid, final, expected", [
        (0, 0, PAYMENT_STATUS_UNPAID),
        (100, 0, PAYMENT_STATUS_UNPAID),       # zero final is never Paid
        (0, 100, PAYMENT_STATUS_UNPAID),
        (50, 100, PAYMENT_STATUS_PARTIAL),
        (100, 100, PAYMENT_STATUS_PAID),
        (150, 100, PAYMENT_STATUS_PAID),       # overpaid
        (10, -50, PAYMENT_STATUS_UNPAID),      # discount kept after items removed
    ])
    def test_derive_payment_status(self, paid, final, expected):
        assert derive_payment_status(paid, final) == expected


class TestPaymentMethods:

    def test_default_is_cash(self):
        assert validate_payment_method(None) == "cash"
        assert validate_payment_method("  ") == "cash"

    def test_normalized(self):
        assert validate_payment_method(" Credit_Card ") == "credit_card"

    def test_unknown_method_rejected(self):
        with pytest.raises(InvalidArgument, match="Invalid payment method"):
            validate_payment_method("barter")


class TestRecordPayment:

    def test_basic_sale_scenario(self, ledger, sale, widget):
        ledger.add_line_item(sale["id"], widget["id"], 2, unit_price_cents=100)
        header = ledger.get_sale(sale["id"])
        assert header["subtotal_cents"] == 200
        assert header["final_amount_cents"] == 200
        assert header["payment_status"] == PAYMENT_STATUS_UNPAID

        ledger.record_payment(sale["id"], 120)
        header = ledger.get_sale(sale["id"])
        assert header["amount_paid_cents"] == 120
        assert header["payment_status"] == PAYMENT_STATUS_PARTIAL

        ledger.record_payment(sale["id"], 80)
        header = ledger.get_sale(sale["id"])
        assert header["amount_paid_cents"] == 200
        assert header["payment_status"] == PAYMENT_STATUS_PAID

    def test_payment_record_fields(self, ledger, sale, widget):
        ledger.add_line_item(sale["id"], widget["id"], 1)

        payment = ledger.record_payment(
            sale["id"], 400, payment_date="2026-04-02", payment_method="bank_transfer", notes="Deposit",
        )

        assert payment["sale_id"] == sale["id"]
        assert payment["amount_cents"] == 400
        assert payment["payment_date"] == date(2026, 4, 2)
        assert payment["payment_method"] == "bank_transfer"
        assert payment["notes"] == "Deposit"

    def test_payment_date_defaults_to_today(self, ledger, sale):
        payment = ledger.record_payment(sale["id"], 100)
        assert payment["payment_date"] == today()
        assert payment["payment_method"] == "cash"

    def test_overpayment_accepted(self, ledger, sale, widget):
        ledger.add_line_item(sale["id"], widget["id"], 1)
        ledger.record_payment(sale["id"], 1500)

        summary = ledger.get_payment_summary(sale["id"])

        assert summary["amount_paid_cents"] == 1500
        assert summary["payment_status"] == PAYMENT_STATUS_PAID
        assert summary["balance_cents"] == -500

    def test_payment_on_empty_sale_stays_unpaid(self, ledger, sale):
        ledger.record_payment(sale["id"], 100)
        header = ledger.get_sale(sale["id"])
        assert header["amount_paid_cents"] == 100
        assert header["payment_status"] == PAYMENT_STATUS_UNPAID

    @pytest.mark.parametrize("amount", [0, -100, 10.5, None, "100"])
    def test_invalid_amount_rejected_before_write(self, ledger, gateway, sale, amount):
        with pytest.raises(InvalidArgument):
            ledger.record_payment(sale["id"], amount)
        assert gateway.get_all_by_index(PAYMENTS, "sale_id", sale["id"]) == []

    def test_invalid_method_rejected_before_write(self, ledger, gateway, sale):
        with pytest.raises(InvalidArgument):
            ledger.record_payment(sale["id"], 100, payment_method="cheque")
        assert gateway.get_all_by_index(PAYMENTS, "sale_id", sale["id"]) == []

    @pytest.mark.parametrize("sale_id", [True, "abc", "1", 1.0, None, 0])
    def test_malformed_sale_id_rejected_before_write(self, ledger, gateway, sale, sale_id):
        with pytest.raises(InvalidArgument, match="sale_id"):
            ledger.record_payment(sale_id, 100)
        assert gateway.get_all(PAYMENTS) == []

    def test_payment_on_missing_sale(self, ledger):
        with pytest.raises(NotFound):
            ledger.record_payment(987654, 100)


class TestStatusTransitions:

    def test_remove_last_item_after_full_payment(self, ledger, sale, widget):
        line = ledger.add_line_item(sale["id"], widget["id"], 1, unit_price_cents=100)
        ledger.record_payment(sale["id"], 100)
        assert ledger.get_sale(sale["id"])["payment_status"] == PAYMENT_STATUS_PAID

        header = ledger.remove_line_item(line["id"])

        assert header["subtotal_cents"] == 0
        assert header["final_amount_cents"] == 0
        assert header["amount_paid_cents"] == 100
        assert header["payment_status"] == PAYMENT_STATUS_UNPAID

    def test_late_tax_regresses_paid_to_partial(self, ledger, sale, widget):
        ledger.add_line_item(sale["id"], widget["id"], 1)
        ledger.record_payment(sale["id"], 1000)
        assert ledger.get_sale(sale["id"])["payment_status"] == PAYMENT_STATUS_PAID

        header = ledger.set_tax(sale["id"], 100)

        assert header["final_amount_cents"] == 1100
        assert header["payment_status"] == PAYMENT_STATUS_PARTIAL

    def test_adding_items_regresses_paid(self, ledger, sale, widget, gadget):
        ledger.add_line_item(sale["id"], widget["id"], 1)
        ledger.record_payment(sale["id"], 1000)

        ledger.add_line_item(sale["id"], gadget["id"], 1)

        assert ledger.get_sale(sale["id"])["payment_status"] == PAYMENT_STATUS_PARTIAL

    def test_discount_can_complete_payment(self, ledger, sale, widget):
        ledger.add_line_item(sale["id"], widget["id"], 1)
        ledger.record_payment(sale["id"], 900)

        header = ledger.apply_discount(sale["id"], 100)

        assert header["final_amount_cents"] == 900
        assert header["payment_status"] == PAYMENT_STATUS_PAID

    def test_remove_payment_regresses_status(self, ledger, sale, widget):
        ledger.add_line_item(sale["id"], widget["id"], 1)
        first = ledger.record_payment(sale["id"], 600)
        second = ledger.record_payment(sale["id"], 400)
        assert ledger.get_sale(sale["id"])["payment_status"] == PAYMENT_STATUS_PAID

        header = ledger.remove_payment(second["id"])
        assert header["amount_paid_cents"] == 600
        assert header["payment_status"] == PAYMENT_STATUS_PARTIAL

        header = ledger.remove_payment(first["id"])
        assert header["amount_paid_cents"] == 0
        assert header["payment_status"] == PAYMENT_STATUS_UNPAID

    def test_remove_missing_payment(self, ledger):
        with pytest.raises(NotFound):
            ledger.remove_payment(987654)

    def test_remove_orphaned_payment_returns_none(self, ledger, gateway):
        payment_id = gateway.insert(PAYMENTS, {
            "sale_id": 987654, "amount_cents": 100, "payment_date": today(), "payment_method": "cash",
        })
        assert ledger.remove_payment(payment_id) is None
        assert gateway.get(PAYMENTS, payment_id) is None


class TestPaymentSummary:

    def test_summary(self, ledger, sale, widget):
        ledger.add_line_item(sale["id"], widget["id"], 3)
        ledger.record_payment(sale["id"], 1000, payment_method="cash")
        ledger.record_payment(sale["id"], 500, payment_method="credit_card")

        summary = ledger.get_payment_summary(sale["id"])

        assert summary["final_amount_cents"] == 3000
        assert summary["amount_paid_cents"] == 1500
        assert summary["balance_cents"] == 1500
        assert summary["payment_status"] == PAYMENT_STATUS_PARTIAL
        assert [p["payment_method"] for p in summary["payments"]] == ["cash", "credit_card"]

    def test_summary_missing_sale(self, ledger):
        with pytest.raises(NotFound):
            ledger.get_payment_summary(987654)
