"""
Flask CLI command tests (system init, users create, ledger reconcile).
"""

from kbpos.models import User
from kbpos.services.ledger_service import adjust_total_sold
from kbpos.services.sales_service import create_sale

from conftest import PASSWORD, line, sale_fields, total_sold


class TestSystemInit:
    def test_creates_admin_once(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["system", "init", "--email", "owner@kbpos.test", "--password", PASSWORD])
        assert result.exit_code == 0, result.output
        assert "PASS Created admin: owner@kbpos.test" in result.output

        user = db_session.query(User).filter_by(email="owner@kbpos.test").one()
        assert user.role == "admin"

        again = runner.invoke(args=["system", "init", "--email", "owner@kbpos.test", "--password", PASSWORD])
        assert again.exit_code == 0
        assert "already exists" in again.output
        assert db_session.query(User).count() == 1

    def test_weak_password_fails(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["system", "init", "--password", "weak"])
        assert result.exit_code != 0
        assert "Password validation failed" in result.output
        assert db_session.query(User).count() == 0


class TestUsersCreate:
    def test_create_staff(self, app, db_session):
        result = app.test_cli_runner().invoke(args=[
            "users", "create",
            "--name", "Kasir Dua",
            "--email", "kasir2@kbpos.test",
            "--password", PASSWORD,
        ])

        assert result.exit_code == 0, result.output
        assert db_session.query(User).filter_by(email="kasir2@kbpos.test").one().role == "staff"

    def test_duplicate_email(self, app, db_session, staff_user):
        result = app.test_cli_runner().invoke(args=[
            "users", "create",
            "--name", "Copy",
            "--email", staff_user.email,
            "--password", PASSWORD,
            "--role", "admin",
        ])
        assert result.exit_code != 0
        assert "Email already registered" in result.output


class TestLedgerReconcile:
    def test_clean_ledger(self, app, db_session, product_a, staff_caller):
        items = [line(product_a, 2)]
        create_sale(fields=sale_fields(items), items=items, caller=staff_caller)

        result = app.test_cli_runner().invoke(args=["ledger", "reconcile"])
        assert result.exit_code == 0
        assert "All product totals match" in result.output

    def test_report_then_fix(self, app, db_session, product_a, staff_caller):
        items = [line(product_a, 2)]
        create_sale(fields=sale_fields(items), items=items, caller=staff_caller)
        adjust_total_sold(product_a.id, 4)
        runner = app.test_cli_runner()

        report = runner.invoke(args=["ledger", "reconcile"])
        assert "1 product(s) drifted" in report.output
        assert total_sold(product_a.id) == 6

        fixed = runner.invoke(args=["ledger", "reconcile", "--fix"])
        assert fixed.exit_code == 0
        assert "Corrected 1 product(s)" in fixed.output
        assert total_sold(product_a.id) == 2
