"""
Products, customers, employees and health endpoint tests.
"""

from kbpos.services.sales_service import create_sale

from conftest import auth_headers, line, sale_fields


PRODUCT_BODY = {
    "name": "Kebab Jumbo",
    "description": "Double daging, extra keju",
    "price": 35000,
    "category": "Kebab Jumbo Mix",
    "tags": ["best seller", "pedas"],
}


class TestProducts:
    def test_admin_creates_product(self, client, admin_token):
        resp = client.post("/api/products", json=PRODUCT_BODY, headers=auth_headers(admin_token))

        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["total_sold"] == 0
        assert data["image_url"] == "no-image.jpg"
        assert data["tags"] == ["best seller", "pedas"]

    def test_staff_cannot_create(self, client, staff_token):
        resp = client.post("/api/products", json=PRODUCT_BODY, headers=auth_headers(staff_token))
        assert resp.status_code == 403

    def test_total_sold_not_writable(self, client, admin_token, product_a):
        resp = client.put(
            f"/api/products/{product_a.id}", json={"total_sold": 100}, headers=auth_headers(admin_token)
        )
        assert resp.status_code == 400
        assert resp.get_json()["errors"][0]["field"] == "total_sold"

    def test_invalid_category(self, client, admin_token):
        body = dict(PRODUCT_BODY, category="Pizza")
        resp = client.post("/api/products", json=body, headers=auth_headers(admin_token))
        assert resp.status_code == 400

    def test_negative_price(self, client, admin_token):
        body = dict(PRODUCT_BODY, price=-1)
        resp = client.post("/api/products", json=body, headers=auth_headers(admin_token))
        assert resp.status_code == 400

    def test_update(self, client, admin_token, product_a):
        resp = client.put(
            f"/api/products/{product_a.id}",
            json={"price": 27000, "is_available": False},
            headers=auth_headers(admin_token),
        )
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["price"] == 27000
        assert data["is_available"] is False

    def test_list_count_and_filter(self, client, staff_token, product_a, product_b, product_c):
        listing = client.get("/api/products", headers=auth_headers(staff_token)).get_json()
        assert listing["count"] == 3

        drinks = client.get("/api/products?category=Minuman", headers=auth_headers(staff_token)).get_json()
        assert [p["id"] for p in drinks["data"]] == [product_c.id]

        count = client.get("/api/products/count", headers=auth_headers(staff_token)).get_json()
        assert count["data"]["count"] == 3

    def test_top_products(self, client, staff_token, staff_caller, product_a, product_b, product_c):
        items = [line(product_a, 1), line(product_b, 7), line(product_c, 3)]
        create_sale(fields=sale_fields(items), items=items, caller=staff_caller)

        top = client.get("/api/products/top", headers=auth_headers(staff_token)).get_json()["data"]
        assert [p["id"] for p in top] == [product_b.id, product_c.id, product_a.id]

    def test_get_missing(self, client, staff_token):
        resp = client.get("/api/products/999", headers=auth_headers(staff_token))
        assert resp.status_code == 404

    def test_delete_unused(self, client, admin_token, product_a):
        resp = client.delete(f"/api/products/{product_a.id}", headers=auth_headers(admin_token))
        assert resp.status_code == 200

    def test_delete_referenced_product_conflicts(self, client, admin_token, staff_caller, product_a):
        items = [line(product_a, 1)]
        create_sale(fields=sale_fields(items), items=items, caller=staff_caller)

        resp = client.delete(f"/api/products/{product_a.id}", headers=auth_headers(admin_token))
        assert resp.status_code == 409


class TestCustomers:
    BODY = {"name": "Andi", "email": "andi@example.com", "phone": "0811111111", "address": "Jl. Kenanga 3"}

    def test_staff_creates_customer(self, client, staff_token):
        resp = client.post("/api/customers", json=self.BODY, headers=auth_headers(staff_token))
        assert resp.status_code == 201
        assert resp.get_json()["data"]["total_orders"] == 0

    def test_missing_required(self, client, staff_token):
        resp = client.post("/api/customers", json={"name": "Andi"}, headers=auth_headers(staff_token))
        assert resp.status_code == 400

    def test_search(self, client, staff_token, customer):
        resp = client.get("/api/customers?search=bud", headers=auth_headers(staff_token))
        assert [c["id"] for c in resp.get_json()["data"]] == [customer.id]

    def test_delete_keeps_sales(self, client, admin_token, staff_token, product_a, customer):
        body = {
            "items": [{"product": product_a.id, "name": product_a.name, "price": product_a.price, "quantity": 1}],
            "total_amount": product_a.price,
            "payment_method": "Cash",
            "customer": customer.id,
        }
        sale = client.post("/api/sales", json=body, headers=auth_headers(staff_token)).get_json()["data"]

        assert client.delete(f"/api/customers/{customer.id}", headers=auth_headers(staff_token)).status_code == 403
        assert client.delete(f"/api/customers/{customer.id}", headers=auth_headers(admin_token)).status_code == 200

        after = client.get(f"/api/sales/{sale['id']}", headers=auth_headers(staff_token)).get_json()["data"]
        assert after["customer_id"] is None


class TestEmployees:
    BODY = {
        "name": "Joko",
        "email": "joko@kbpos.test",
        "phone": "0822222222",
        "position": "Chef",
        "salary": 4000000,
        "address": "Jl. Melati 4",
    }

    def test_admin_creates_employee(self, client, admin_token):
        resp = client.post("/api/employees", json=self.BODY, headers=auth_headers(admin_token))
        assert resp.status_code == 201
        assert resp.get_json()["data"]["status"] == "Active"

    def test_duplicate_email(self, client, admin_token, employee):
        body = dict(self.BODY, email=employee.email)
        resp = client.post("/api/employees", json=body, headers=auth_headers(admin_token))
        assert resp.status_code == 409

    def test_invalid_position(self, client, admin_token):
        body = dict(self.BODY, position="Astronaut")
        resp = client.post("/api/employees", json=body, headers=auth_headers(admin_token))
        assert resp.status_code == 400

    def test_staff_reads_only(self, client, staff_token, employee):
        assert client.get("/api/employees", headers=auth_headers(staff_token)).status_code == 200
        resp = client.put(
            f"/api/employees/{employee.id}", json={"status": "On Leave"}, headers=auth_headers(staff_token)
        )
        assert resp.status_code == 403

    def test_filter_by_status(self, client, admin_token, employee):
        client.put(f"/api/employees/{employee.id}", json={"status": "On Leave"}, headers=auth_headers(admin_token))
        resp = client.get("/api/employees?status=On%20Leave", headers=auth_headers(admin_token))
        assert [e["id"] for e in resp.get_json()["data"]] == [employee.id]


class TestSystem:
    def test_health(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        payload = resp.get_json()
        assert payload["data"]["checks"]["database"]["status"] == "healthy"

    def test_unknown_route_uses_envelope(self, client, db_session):
        resp = client.get("/api/nope")
        assert resp.status_code == 404
        assert resp.get_json() == {"success": False, "error": "Resource not found"}
