"""
Tests for the cart API endpoints.
"""

from shared.security.auth import sign_jwt


class TestCartAuth:
    def test_requires_bearer_token(self, client):
        response = client.get("/api/cart")
        assert response.status_code == 401

    def test_rejects_malformed_token(self, client):
        response = client.get("/api/cart", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token"

    def test_rejects_expired_token(self, client):
        token = sign_jwt({"sub": "user-1", "roles": ["CUSTOMER"]}, ttl_seconds=-60)

        response = client.get("/api/cart", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Token has expired"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_rejects_non_bearer_scheme(self, client):
        response = client.get("/api/cart", headers={"Authorization": "Basic dXNlcjpwYXNz"})

        assert response.status_code == 401
        assert response.json()["detail"].startswith("Invalid Authorization header format")


class TestCartEndpoints:
    """Cart CRUD through the API."""

    def test_empty_cart(self, client, auth_headers):
        response = client.get("/api/cart", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["items"] == []
        assert data["summary"] == {"itemCount": 0, "subtotal": 0.0, "tax": 0.0, "total": 0.0}

    def test_add_then_get(self, client, auth_headers, seed_meal):
        response = client.post(
            "/api/cart/items",
            json={"itemType": "MEAL", "itemId": seed_meal.id, "quantity": 3, "notes": "No onions"},
            headers=auth_headers,
        )
        assert response.status_code == 201
        assert response.json()["quantity"] == 3

        response = client.get("/api/cart", headers=auth_headers)
        data = response.json()
        assert len(data["items"]) == 1
        item = data["items"][0]
        assert item["name"] == "Poulet DG"
        assert item["unitPrice"] == 1000.0
        assert item["lineTotal"] == 3000.0
        assert item["notes"] == "No onions"
        assert data["summary"] == {"itemCount": 3, "subtotal": 3000.0, "tax": 577.5, "total": 3577.5}

    def test_add_over_stock_conflict(self, client, auth_headers, seed_meal):
        client.post(
            "/api/cart/items",
            json={"itemType": "MEAL", "itemId": seed_meal.id, "quantity": 3},
            headers=auth_headers,
        )
        response = client.post(
            "/api/cart/items",
            json={"itemType": "MEAL", "itemId": seed_meal.id, "quantity": 4},
            headers=auth_headers,
        )

        assert response.status_code == 409
        assert response.json()["detail"] == "Cannot add 4 more items. Only 2 more available"

    def test_add_unknown_item(self, client, auth_headers):
        response = client.post(
            "/api/cart/items",
            json={"itemType": "EVENT", "itemId": 12345, "quantity": 1},
            headers=auth_headers,
        )
        assert response.status_code == 404

    def test_add_rejects_bad_body(self, client, auth_headers, seed_meal):
        response = client.post(
            "/api/cart/items",
            json={"itemType": "DRINK", "itemId": seed_meal.id, "quantity": 1},
            headers=auth_headers,
        )
        assert response.status_code == 422

        response = client.post(
            "/api/cart/items",
            json={"itemType": "MEAL", "itemId": seed_meal.id, "quantity": 100},
            headers=auth_headers,
        )
        assert response.status_code == 422

    def test_update_quantity(self, client, auth_headers, seed_meal):
        row_id = client.post(
            "/api/cart/items",
            json={"itemType": "MEAL", "itemId": seed_meal.id, "quantity": 1},
            headers=auth_headers,
        ).json()["itemId"]

        response = client.patch(f"/api/cart/items/{row_id}", json={"quantity": 5}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["quantity"] == 5

        response = client.patch(f"/api/cart/items/{row_id}", json={"quantity": 6}, headers=auth_headers)
        assert response.status_code == 409
        assert response.json()["detail"] == "Only 5 items available"

    def test_update_other_users_row(self, client, auth_headers, other_auth_headers, seed_meal):
        row_id = client.post(
            "/api/cart/items",
            json={"itemType": "MEAL", "itemId": seed_meal.id, "quantity": 1},
            headers=auth_headers,
        ).json()["itemId"]

        response = client.patch(
            f"/api/cart/items/{row_id}", json={"quantity": 2}, headers=other_auth_headers
        )
        assert response.status_code == 404

    def test_delete_row_is_idempotent(self, client, auth_headers, seed_meal):
        row_id = client.post(
            "/api/cart/items",
            json={"itemType": "MEAL", "itemId": seed_meal.id, "quantity": 1},
            headers=auth_headers,
        ).json()["itemId"]

        assert client.delete(f"/api/cart/items/{row_id}", headers=auth_headers).status_code == 204
        assert client.delete(f"/api/cart/items/{row_id}", headers=auth_headers).status_code == 204
        assert client.get("/api/cart/count", headers=auth_headers).json() == {"count": 0}

    def test_clear_cart(self, client, auth_headers, seed_meal, seed_event):
        for item_type, item_id in (("MEAL", seed_meal.id), ("EVENT", seed_event.id)):
            client.post(
                "/api/cart/items",
                json={"itemType": item_type, "itemId": item_id, "quantity": 2},
                headers=auth_headers,
            )
        assert client.get("/api/cart/count", headers=auth_headers).json() == {"count": 4}

        response = client.delete("/api/cart", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"success": True, "removed": 2}
        assert client.get("/api/cart", headers=auth_headers).json()["items"] == []
