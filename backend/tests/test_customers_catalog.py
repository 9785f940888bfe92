"""
Customer, category and supplier maintenance.

Verifies:
- CRUD through the HTTP API with the role table applied
- Rows that other records point at cannot be deleted
- Customer aggregates are not writable; a customer created over the API
  accrues them through a sale
"""

import pytest

from retailpos.errors import ConflictError, NotFoundError, ValidationFailedError
from retailpos.models import Category, Customer, Supplier
from retailpos.services import customer_service, products_service, purchase_order_service, sales_service

from conftest import make_product


class TestCustomerService:

    def test_create_and_update(self, db_session):
        customer = customer_service.create_customer(payload={"name": " Robin Vale ", "email": "Robin@Example.com"})
        assert customer.name == "Robin Vale"
        assert customer.email == "robin@example.com"
        assert customer.loyalty_points == 0

        updated = customer_service.update_customer(customer_id=customer.id, payload={"city": "Shelbyville"})
        assert updated.city == "Shelbyville"
        assert updated.name == "Robin Vale"

    @pytest.mark.parametrize("payload", [
        {},
        {"name": ""},
        {"name": "X", "email": "not-an-address"},
        {"name": "X", "loyalty_points": 500},
        {"name": "X", "total_spent": "100.00"},
        {"name": "X" * 256},
    ])
    def test_invalid_payloads(self, db_session, payload):
        with pytest.raises(ValidationFailedError):
            customer_service.create_customer(payload=payload)
        assert db_session.query(Customer).count() == 0

    def test_search(self, db_session, customer):
        customer_service.create_customer(payload={"name": "Dana Diaz", "phone": "555-0101"})

        assert [c.name for c in customer_service.list_customers(search="casey")] == ["Casey Customer"]
        assert [c.name for c in customer_service.list_customers(search="0101")] == ["Dana Diaz"]
        assert len(customer_service.list_customers()) == 2

    def test_cannot_delete_customer_with_sales(self, db_session, customer, product, cashier):
        sales_service.create_sale(
            user_id=cashier.id,
            lines=[{"product_id": product.id, "quantity": 1}],
            payment_method="cash",
            customer_id=customer.id,
        )
        with pytest.raises(ConflictError):
            customer_service.delete_customer(customer_id=customer.id)
        assert db_session.get(Customer, customer.id) is not None

    def test_unknown_customer(self, db_session):
        with pytest.raises(NotFoundError):
            customer_service.update_customer(customer_id="missing", payload={"name": "Nobody"})


class TestCategoryAndSupplierService:

    def test_category_slug_derived_and_unique(self, db_session, category):
        created = products_service.create_category(name="Frozen Foods")
        assert created.slug == "frozen-foods"

        with pytest.raises(ConflictError):
            products_service.create_category(name="SNACKS")

    def test_rename_keeps_slug(self, db_session, category):
        renamed = products_service.update_category(category_id=category.id, payload={"name": "Chips & Snacks"})
        assert renamed.name == "Chips & Snacks"
        assert renamed.slug == "snacks"

    def test_slug_change_checked_for_conflicts(self, db_session, category):
        other = products_service.create_category(name="Drinks")
        with pytest.raises(ConflictError):
            products_service.update_category(category_id=other.id, payload={"slug": "Snacks"})

    def test_category_in_use_cannot_be_deleted(self, db_session, product, category):
        with pytest.raises(ConflictError):
            products_service.delete_category(category_id=category.id)

        spare = products_service.create_category(name="Spare")
        products_service.delete_category(category_id=spare.id)
        assert db_session.get(Category, spare.id) is None

    def test_supplier_with_purchase_order_cannot_be_deleted(self, db_session, manager):
        supplier = products_service.create_supplier(name="Northwind", email="buy@northwind.example")
        item = make_product(db_session, sku="NW-1", quantity=0)
        purchase_order_service.create_purchase_order(
            supplier_id=supplier.id,
            user_id=manager.id,
            items=[{"product_id": item.id, "quantity": 1, "unit_cost": "1.00"}],
        )

        with pytest.raises(ConflictError):
            products_service.delete_supplier(supplier_id=supplier.id)

    def test_supplier_fields_validated(self, db_session):
        with pytest.raises(ValidationFailedError):
            products_service.create_supplier(name="Bad Mail", email="nope")
        with pytest.raises(ValidationFailedError):
            products_service.create_supplier(name="Odd", warehouse="B")
        assert db_session.query(Supplier).count() == 0


class TestCustomersApi:

    def test_customer_created_over_api_accrues_on_sale(self, client, db_session, cashier_headers, product):
        resp = client.post("/api/customers", headers=cashier_headers, json={
            "name": "Walk In", "email": "walkin@example.com",
        })
        assert resp.status_code == 201
        customer_id = resp.json["id"]

        resp = client.post("/api/sales", headers=cashier_headers, json={
            "payment_method": "card",
            "customer_id": customer_id,
            "lines": [{"product_id": product.id, "quantity": 1}],
        })
        assert resp.status_code == 201

        body = client.get(f"/api/customers/{customer_id}", headers=cashier_headers).json
        assert body["loyalty_points"] == 10
        assert body["total_spent"] == "10.85"

    def test_list_update_and_errors(self, client, db_session, cashier_headers, customer):
        resp = client.get("/api/customers?search=casey", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 1

        resp = client.put(f"/api/customers/{customer.id}", headers=cashier_headers, json={"phone": "555-0199"})
        assert resp.status_code == 200
        assert resp.json["phone"] == "555-0199"

        resp = client.put(f"/api/customers/{customer.id}", headers=cashier_headers, json={"loyalty_points": 1})
        assert resp.status_code == 400

        resp = client.get("/api/customers/missing", headers=cashier_headers)
        assert resp.status_code == 404

        resp = client.get("/api/customers?limit=0", headers=cashier_headers)
        assert resp.status_code == 400

    def test_delete_is_admin_only(self, client, db_session, cashier_headers, admin_headers, customer):
        resp = client.delete(f"/api/customers/{customer.id}", headers=cashier_headers)
        assert resp.status_code == 403

        resp = client.delete(f"/api/customers/{customer.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert db_session.query(Customer).count() == 0


class TestCatalogApi:

    def test_category_crud(self, client, db_session, manager_headers, admin_headers, cashier_headers):
        resp = client.post("/api/categories", headers=manager_headers, json={"name": "Dairy"})
        assert resp.status_code == 201
        assert resp.json["slug"] == "dairy"
        category_id = resp.json["id"]

        resp = client.post("/api/categories", headers=manager_headers, json={"name": "dairy"})
        assert resp.status_code == 409
        assert resp.json["kind"] == "conflict"

        resp = client.put(f"/api/categories/{category_id}", headers=manager_headers, json={"description": "Milk"})
        assert resp.status_code == 200
        assert resp.json["description"] == "Milk"

        listed = client.get("/api/categories", headers=cashier_headers).json
        assert [c["name"] for c in listed["items"]] == ["Dairy"]

        resp = client.delete(f"/api/categories/{category_id}", headers=manager_headers)
        assert resp.status_code == 403
        resp = client.delete(f"/api/categories/{category_id}", headers=admin_headers)
        assert resp.status_code == 200

    def test_category_in_use_is_409(self, client, db_session, admin_headers, product):
        resp = client.delete(f"/api/categories/{product.category_id}", headers=admin_headers)
        assert resp.status_code == 409

    def test_supplier_crud(self, client, db_session, manager_headers, admin_headers, cashier_headers):
        resp = client.post("/api/suppliers", headers=manager_headers, json={
            "name": "Globex Foods", "contact_person": "Hank", "country": "USA",
        })
        assert resp.status_code == 201
        supplier_id = resp.json["id"]

        resp = client.put(f"/api/suppliers/{supplier_id}", headers=manager_headers, json={"city": "Cypress Creek"})
        assert resp.status_code == 200
        assert resp.json["city"] == "Cypress Creek"

        resp = client.get("/api/suppliers?search=globex", headers=cashier_headers)
        assert [s["id"] for s in resp.json["items"]] == [supplier_id]

        resp = client.post("/api/suppliers", headers=manager_headers, json={"contact_person": "No Name"})
        assert resp.status_code == 400

        resp = client.delete(f"/api/suppliers/{supplier_id}", headers=admin_headers)
        assert resp.status_code == 200
        assert client.get(f"/api/suppliers/{supplier_id}", headers=cashier_headers).status_code == 404

    def test_cashier_cannot_edit_catalog(self, client, db_session, cashier_headers, category, supplier):
        assert client.post("/api/categories", headers=cashier_headers, json={"name": "X"}).status_code == 403
        assert client.put(
            f"/api/suppliers/{supplier.id}", headers=cashier_headers, json={"name": "Y"},
        ).status_code == 403

    def test_seeded_rows_visible(self, client, db_session, cashier_headers, category, supplier):
        assert client.get(f"/api/categories/{category.id}", headers=cashier_headers).json["slug"] == "snacks"
        assert client.get("/api/suppliers", headers=cashier_headers).json["count"] == 1
