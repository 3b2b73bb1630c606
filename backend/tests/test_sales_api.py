"""
Sales HTTP API tests.

Covers the JSON envelope, validation errors, role checks and the ledger
effects seen through the API.
"""

from kbpos.extensions import db
from kbpos.models import Sale

from conftest import auth_headers, total_sold


def _body(product, quantity=2, **extra):
    body = {
        "items": [{"product": product.id, "name": product.name, "price": product.price, "quantity": quantity}],
        "total_amount": product.price * quantity,
        "payment_method": "Cash",
    }
    body.update(extra)
    return body


class TestCreate:
    def test_created(self, client, staff_token, product_a, customer):
        resp = client.post(
            "/api/sales",
            json=_body(product_a, order_type="Take Away", customer=customer.id),
            headers=auth_headers(staff_token),
        )

        assert resp.status_code == 201
        payload = resp.get_json()
        assert payload["success"] is True
        data = payload["data"]
        assert data["order_number"].startswith("KB-")
        assert data["order_type"] == "Take Away"
        assert data["customer"]["name"] == "Budi"
        assert data["items"][0]["product"] == product_a.id
        assert total_sold(product_a.id) == 2

    def test_missing_items(self, client, staff_token, product_a):
        body = _body(product_a)
        del body["items"]
        resp = client.post("/api/sales", json=body, headers=auth_headers(staff_token))

        assert resp.status_code == 400
        payload = resp.get_json()
        assert payload["success"] is False
        assert payload["errors"][0]["field"] == "items"

    def test_zero_quantity(self, client, staff_token, product_a):
        resp = client.post("/api/sales", json=_body(product_a, quantity=0), headers=auth_headers(staff_token))

        assert resp.status_code == 400
        assert resp.get_json()["errors"][0]["field"] == "items[0].quantity"
        assert total_sold(product_a.id) == 0

    def test_bad_payment_method(self, client, staff_token, product_a):
        resp = client.post(
            "/api/sales", json=_body(product_a, payment_method="Barter"), headers=auth_headers(staff_token)
        )
        assert resp.status_code == 400
        assert resp.get_json()["errors"][0]["field"] == "payment_method"

    def test_order_number_not_writable(self, client, staff_token, product_a):
        resp = client.post(
            "/api/sales", json=_body(product_a, order_number="KB-000000-0001"), headers=auth_headers(staff_token)
        )
        assert resp.status_code == 400

    def test_unknown_product(self, client, staff_token, db_session):
        body = {
            "items": [{"product": 999, "name": "Ghost", "price": 1000, "quantity": 1}],
            "total_amount": 1000,
            "payment_method": "Cash",
        }
        resp = client.post("/api/sales", json=body, headers=auth_headers(staff_token))

        assert resp.status_code == 404
        assert resp.get_json() == {"success": False, "error": "Product with id 999 not found"}
        assert db.session.query(Sale).count() == 0

    def test_requires_token(self, client, product_a):
        resp = client.post("/api/sales", json=_body(product_a))
        assert resp.status_code == 401
        assert resp.get_json()["success"] is False


class TestUpdateAndDelete:
    def _create(self, client, token, product, quantity=2):
        resp = client.post("/api/sales", json=_body(product, quantity), headers=auth_headers(token))
        assert resp.status_code == 201
        return resp.get_json()["data"]

    def test_update_items(self, client, staff_token, product_a):
        sale = self._create(client, staff_token, product_a)
        resp = client.put(
            f"/api/sales/{sale['id']}",
            json={"items": [{"product": product_a.id, "name": product_a.name, "price": product_a.price, "quantity": 5}]},
            headers=auth_headers(staff_token),
        )

        assert resp.status_code == 200
        assert resp.get_json()["data"]["items"][0]["quantity"] == 5
        assert total_sold(product_a.id) == 5

    def test_update_status_only(self, client, staff_token, product_a):
        sale = self._create(client, staff_token, product_a)
        resp = client.put(
            f"/api/sales/{sale['id']}",
            json={"payment_status": "Paid"},
            headers=auth_headers(staff_token),
        )

        assert resp.status_code == 200
        assert resp.get_json()["data"]["payment_status"] == "Paid"
        assert total_sold(product_a.id) == 2

    def test_update_unknown_sale(self, client, staff_token, db_session):
        resp = client.put("/api/sales/4242", json={"notes": "x"}, headers=auth_headers(staff_token))
        assert resp.status_code == 404

    def test_staff_cannot_delete(self, client, staff_token, product_a):
        sale = self._create(client, staff_token, product_a)
        resp = client.delete(f"/api/sales/{sale['id']}", headers=auth_headers(staff_token))

        assert resp.status_code == 403
        assert total_sold(product_a.id) == 2

    def test_admin_delete(self, client, staff_token, admin_token, product_a):
        sale = self._create(client, staff_token, product_a)
        resp = client.delete(f"/api/sales/{sale['id']}", headers=auth_headers(admin_token))

        assert resp.status_code == 200
        assert resp.get_json() == {"success": True, "data": {}}
        assert total_sold(product_a.id) == 0

        again = client.delete(f"/api/sales/{sale['id']}", headers=auth_headers(admin_token))
        assert again.status_code == 404
        assert total_sold(product_a.id) == 0


class TestReads:
    def test_get_and_list(self, client, staff_token, product_a):
        created = client.post("/api/sales", json=_body(product_a), headers=auth_headers(staff_token)).get_json()["data"]

        one = client.get(f"/api/sales/{created['id']}", headers=auth_headers(staff_token))
        assert one.status_code == 200
        assert one.get_json()["data"]["order_number"] == created["order_number"]

        listing = client.get("/api/sales", headers=auth_headers(staff_token)).get_json()
        assert listing["count"] == 1
        assert listing["data"][0]["id"] == created["id"]

    def test_get_missing(self, client, staff_token, db_session):
        resp = client.get("/api/sales/777", headers=auth_headers(staff_token))
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Sale with id 777 not found"

    def test_range_requires_dates(self, client, staff_token):
        resp = client.get("/api/sales/range?start_date=2025-01-01", headers=auth_headers(staff_token))
        assert resp.status_code == 400

    def test_range_rejects_reversed_dates(self, client, staff_token):
        resp = client.get(
            "/api/sales/range?start_date=2025-02-01&end_date=2025-01-01", headers=auth_headers(staff_token)
        )
        assert resp.status_code == 400

    def test_range_includes_today(self, client, staff_token, product_a):
        client.post("/api/sales", json=_body(product_a), headers=auth_headers(staff_token))
        today = db.session.query(Sale.created_at).scalar().date().isoformat()

        resp = client.get(
            f"/api/sales/range?start_date={today}&end_date={today}", headers=auth_headers(staff_token)
        )
        assert resp.status_code == 200
        assert resp.get_json()["count"] == 1

    def test_recent(self, client, staff_token, product_a):
        client.post("/api/sales", json=_body(product_a), headers=auth_headers(staff_token))
        resp = client.get("/api/sales/recent", headers=auth_headers(staff_token))
        assert resp.status_code == 200
        assert len(resp.get_json()["data"]) == 1


class TestClientFieldNames:
    def test_camel_case_body(self, client, staff_token, product_a):
        body = {
            "items": [{"product": product_a.id, "name": product_a.name, "price": product_a.price, "quantity": 3}],
            "totalAmount": product_a.price * 3,
            "paymentMethod": "E-Wallet",
            "orderType": "Delivery",
            "paymentStatus": "Paid",
        }
        resp = client.post("/api/sales", json=body, headers=auth_headers(staff_token))

        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["payment_method"] == "E-Wallet"
        assert data["order_type"] == "Delivery"
        assert data["payment_status"] == "Paid"
        assert total_sold(product_a.id) == 3

        update = client.put(
            f"/api/sales/{data['id']}",
            json={"orderStatus": "Completed"},
            headers=auth_headers(staff_token),
        )
        assert update.status_code == 200
        assert update.get_json()["data"]["order_status"] == "Completed"

    def test_camel_case_enum_checked(self, client, staff_token, product_a):
        resp = client.post(
            "/api/sales",
            json={
                "items": [{"product": product_a.id, "name": product_a.name, "price": product_a.price, "quantity": 1}],
                "totalAmount": product_a.price,
                "paymentMethod": "Barter",
            },
            headers=auth_headers(staff_token),
        )
        assert resp.status_code == 400
        assert resp.get_json()["errors"][0]["field"] == "payment_method"

    def test_page_size_clamped(self, client, staff_token, product_a):
        client.post("/api/sales", json=_body(product_a), headers=auth_headers(staff_token))
        resp = client.get("/api/sales?page=1&per_page=-1", headers=auth_headers(staff_token))
        assert resp.get_json()["pagination"]["per_page"] == 1
