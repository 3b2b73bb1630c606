"""
Product sold-quantity ledger tests.

total_sold only moves through atomic increments; reversals undo exactly
what was applied; reconciliation finds and repairs drift.
"""

import logging

import pytest

from kbpos.services import ledger_service
from kbpos.services.ledger_service import (
    LedgerAdjustments,
    LedgerTimeoutError,
    adjust_total_sold,
    net_quantity_diff,
    reconcile_total_sold,
)
from kbpos.services.sales_service import create_sale
from kbpos.validation import NotFoundError

from conftest import line, sale_fields, total_sold


class TestAdjustTotalSold:
    def test_increment_and_decrement(self, db_session, product_a):
        assert adjust_total_sold(product_a.id, 3) == 3
        assert adjust_total_sold(product_a.id, -1) == 2
        assert total_sold(product_a.id) == 2

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError, match="Product with id 999 not found"):
            adjust_total_sold(999, 1)

    def test_negative_result_is_logged_not_clamped(self, db_session, product_a, caplog):
        with caplog.at_level(logging.WARNING, logger="kbpos.services.ledger_service"):
            assert adjust_total_sold(product_a.id, -2) == -2
        assert "Ledger drift" in caplog.text
        assert total_sold(product_a.id) == -2


class TestLedgerAdjustments:
    def test_revert_undoes_applied_deltas(self, db_session, product_a, product_b):
        adjustments = LedgerAdjustments()
        adjustments.apply(product_a.id, 2)
        adjustments.apply(product_b.id, 5)

        assert adjustments.revert() == []
        assert total_sold(product_a.id) == 0
        assert total_sold(product_b.id) == 0
        assert adjustments.applied == []

    def test_failed_apply_is_not_recorded(self, db_session, product_a):
        adjustments = LedgerAdjustments()
        adjustments.apply(product_a.id, 2)
        with pytest.raises(NotFoundError):
            adjustments.apply(999, 1)

        assert adjustments.applied == [(product_a.id, 2)]

    def test_revert_reports_failures_without_raising(self, db_session, product_a, monkeypatch):
        adjustments = LedgerAdjustments()
        adjustments.apply(product_a.id, 4)

        def broken(product_id, delta):
            raise RuntimeError("database gone")

        monkeypatch.setattr(ledger_service, "adjust_total_sold", broken)
        assert adjustments.revert() == [(product_a.id, 4)]

    def test_deadline(self, db_session, product_a, monkeypatch):
        ticks = [100.0]

        def clock():
            value = ticks[0]
            ticks[0] = 101.0
            return value

        monkeypatch.setattr(ledger_service.time, "monotonic", clock)
        adjustments = LedgerAdjustments(timeout_seconds=0.5)

        with pytest.raises(LedgerTimeoutError):
            adjustments.apply(product_a.id, 1)
        assert total_sold(product_a.id) == 0


class TestNetQuantityDiff:
    def test_changed_quantity(self):
        assert net_quantity_diff([(1, 2)], [(1, 5)]) == {1: 3}

    def test_product_swapped(self):
        assert net_quantity_diff([(1, 2)], [(2, 2)]) == {1: -2, 2: 2}

    def test_repeated_lines_are_summed(self):
        assert net_quantity_diff([(1, 1), (1, 2)], [(1, 3)]) == {}

    def test_unchanged_products_omitted(self):
        assert net_quantity_diff([(1, 2), (2, 1)], [(1, 2), (2, 4)]) == {2: 3}


class TestReconcile:
    def test_consistent_ledger(self, db_session, product_a, staff_caller):
        items = [line(product_a, 2)]
        create_sale(fields=sale_fields(items), items=items, caller=staff_caller)

        assert reconcile_total_sold() == []

    def test_detects_and_fixes_drift(self, db_session, product_a, product_b, staff_caller):
        items = [line(product_a, 2)]
        create_sale(fields=sale_fields(items), items=items, caller=staff_caller)
        adjust_total_sold(product_a.id, 5)
        adjust_total_sold(product_b.id, 1)

        mismatches = reconcile_total_sold()
        assert mismatches == [
            {"product_id": product_a.id, "recorded": 7, "expected": 2},
            {"product_id": product_b.id, "recorded": 1, "expected": 0},
        ]
        # Report only
        assert total_sold(product_a.id) == 7

        reconcile_total_sold(fix=True)
        assert total_sold(product_a.id) == 2
        assert total_sold(product_b.id) == 0
        assert reconcile_total_sold() == []
