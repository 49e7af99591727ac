"""
Tests for product management and aggregate stats.
"""
import re
import unittest

from api_case import ApiTestCase


class TestProducts(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.headers = self.login()

    def test_listing_is_public(self):
        self.create_product(self.headers, name="Apples")
        resp = self.client.get("/api/products")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([p["name"] for p in resp.json()["products"]], ["Apples"])

    def test_create_fills_defaults(self):
        product = self.create_product(self.headers, name="Soap", price=3, quantity=4)
        self.assertRegex(product["sku"], re.compile(r"^SKU-[A-Z0-9]{6}$"))
        self.assertEqual(product["category"], "General")
        self.assertEqual(product["imageUrl"], "")
        self.assertEqual(product["price"], 3.0)
        self.assertEqual(product["quantity"], 4)
        self.assertIn("createdAt", product)

    def test_create_accepts_all_fields(self):
        product = self.create_product(
            self.headers, name="Tea", sku="TEA-01", category="Drinks", price=2.2, quantity=8, imageUrl="/img/tea.png"
        )
        self.assertEqual(
            (product["sku"], product["category"], product["imageUrl"]), ("TEA-01", "Drinks", "/img/tea.png")
        )

    def test_create_requires_auth(self):
        resp = self.client.post("/api/products", json={"name": "X", "price": 1, "quantity": 1})
        self.assertEqual(resp.status_code, 401)

    def test_create_validates_fields(self):
        bad_bodies = [
            {"price": 1, "quantity": 1},
            {"name": "X", "quantity": 1},
            {"name": "X", "price": 1},
            {"name": "X", "price": -0.01, "quantity": 1},
            {"name": "X", "price": 1, "quantity": -1},
        ]
        for body in bad_bodies:
            resp = self.client.post("/api/products", json=body, headers=self.headers)
            self.assertEqual(resp.status_code, 422, body)
        self.assertEqual(self.client.get("/api/products").json()["products"], [])

    def test_duplicate_sku_is_rejected(self):
        self.create_product(self.headers, sku="DUP")
        resp = self.client.post("/api/products", json={"name": "Y", "sku": "DUP", "price": 1, "quantity": 1}, headers=self.headers)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["detail"], "sku exists")

    def test_partial_update(self):
        product = self.create_product(self.headers, name="Juice", price=1.0, quantity=5)

        resp = self.client.put(
            f"/api/products/{product['id']}", json={"price": 1.5, "quantity": 12}, headers=self.headers
        )

        self.assertEqual(resp.status_code, 200)
        updated = resp.json()
        self.assertEqual((updated["name"], updated["price"], updated["quantity"]), ("Juice", 1.5, 12))
        self.assertEqual(updated["sku"], product["sku"])

    def test_update_rejects_negative_values_and_taken_sku(self):
        self.create_product(self.headers, sku="TAKEN")
        product = self.create_product(self.headers, sku="MINE")
        url = f"/api/products/{product['id']}"

        self.assertEqual(self.client.put(url, json={"quantity": -1}, headers=self.headers).status_code, 422)
        self.assertEqual(self.client.put(url, json={"sku": "TAKEN"}, headers=self.headers).status_code, 400)
        # Keeping its own sku is fine
        self.assertEqual(self.client.put(url, json={"sku": "MINE"}, headers=self.headers).status_code, 200)

    def test_update_unknown_product(self):
        resp = self.client.put("/api/products/missing", json={"price": 2}, headers=self.headers)
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["detail"], "Product not found")

    def test_delete_returns_deleted_product(self):
        product = self.create_product(self.headers)

        resp = self.client.delete(f"/api/products/{product['id']}", headers=self.headers)

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["deleted"]["id"], product["id"])
        self.assertEqual(self.client.get("/api/products").json()["products"], [])
        self.assertEqual(self.client.delete(f"/api/products/{product['id']}", headers=self.headers).status_code, 404)


class TestStats(ApiTestCase):

    def test_empty_store(self):
        resp = self.client.get("/api/stats")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(
            resp.json(),
            {"totalProducts": 0, "totalStockUnits": 0, "totalStockValue": 0.0, "totalEarnings": 0.0},
        )

    def test_stats_follow_products_and_sales(self):
        headers = self.login()
        milk = self.create_product(headers, name="Milk", price=1.25, quantity=10)
        self.create_product(headers, name="Cheese", price=4.1, quantity=3)

        self.client.post("/api/sales", json={"items": [{"productId": milk["id"], "qty": 4}]}, headers=headers)

        stats = self.client.get("/api/stats").json()
        self.assertEqual(stats["totalProducts"], 2)
        self.assertEqual(stats["totalStockUnits"], 9)
        self.assertEqual(stats["totalStockValue"], round(6 * 1.25 + 3 * 4.1, 2))
        self.assertEqual(stats["totalEarnings"], 5.0)


class TestServiceInfo(ApiTestCase):

    def test_root_and_health(self):
        self.assertEqual(self.client.get("/").status_code, 200)
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})

    def test_unknown_route_carries_error_key(self):
        resp = self.client.get("/api/nowhere")
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["error"], "Not Found")


if __name__ == "__main__":
    unittest.main()
