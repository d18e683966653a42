"""HTTP-level tests for the deals, locations and health endpoints."""

from uuid import uuid4

import httpx
import pytest

from dealhub.dependencies import get_admin_password
from dealhub.locators import LocationSearchClient
from dealhub.main import app

DEALS_URL = "/api/v1/deals"


def deal_body(**overrides):
    body = {
        "storeName": "Blue Bottle",
        "category": "coffee",
        "title": "Half-price cold brew",
        "image": "https://example.com/cold-brew.jpg",
        "discount": 50,
        "originalPrice": 6.0,
        "discountedPrice": 3.0,
        "badge": "great-deal",
        "location": {
            "lat": 40.7411,
            "lng": -74.0048,
            "address": "450 W 15th St",
            "city": "New York",
            "state": "NY",
            "zipCode": "10011",
        },
        "deals": [{"title": "Free pastry", "discount": 100}],
    }
    body.update(overrides)
    return body


async def create_deal(client, auth_headers, **overrides):
    response = await client.post(DEALS_URL, json=deal_body(**overrides), headers=auth_headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


# ============================================================================
# TESTS: AUTHORIZATION
# ============================================================================

class TestAdminAuth:
    """Tests for the shared admin secret."""

    async def test_missing_token_rejected(self, client):
        response = await client.post(DEALS_URL, json=deal_body())

        assert response.status_code == 401
        body = response.json()
        assert body["status"] == "error"
        assert body["error"]["code"] == "unauthorized"
        assert body["error"]["message"] == "Unauthorized"

    async def test_wrong_token_rejected(self, client):
        response = await client.post(
            DEALS_URL, json=deal_body(), headers={"Authorization": "Bearer wrong"}
        )

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Unauthorized"

    async def test_rejected_before_validation(self, client):
        response = await client.post(DEALS_URL, json={})

        assert response.status_code == 401

    async def test_no_password_configured_allows_writes(self, client):
        app.dependency_overrides[get_admin_password] = lambda: ""

        response = await client.post(DEALS_URL, json=deal_body())

        assert response.status_code == 201

    async def test_reads_need_no_token(self, client, auth_headers):
        await create_deal(client, auth_headers)

        response = await client.get(DEALS_URL)

        assert response.status_code == 200

    async def test_location_endpoints_require_token(self, client):
        response = await client.get("/api/v1/locations/search", params={"q": "Starbucks"})

        assert response.status_code == 401


# ============================================================================
# TESTS: VALIDATION
# ============================================================================

class TestValidation:
    """Tests for 400 responses on bad input."""

    @pytest.mark.parametrize(
        "missing", ["storeName", "category", "title", "image", "discount", "location"]
    )
    async def test_missing_required_field_named(self, client, auth_headers, missing):
        body = deal_body()
        del body[missing]

        response = await client.post(DEALS_URL, json=body, headers=auth_headers)

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "validation_error"
        assert error["message"] == f"Missing required field: {missing}"
        assert error["field"] == missing

    async def test_discount_out_of_range(self, client, auth_headers):
        response = await client.post(DEALS_URL, json=deal_body(discount=150), headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"]["field"] == "discount"

    async def test_unknown_category(self, client, auth_headers):
        response = await client.post(DEALS_URL, json=deal_body(category="electronics"), headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"]["field"] == "category"

    async def test_bad_list_filter(self, client):
        response = await client.get(DEALS_URL, params={"category": "electronics"})

        assert response.status_code == 400
        assert response.json()["error"]["field"] == "category"

    async def test_malformed_deal_id(self, client):
        response = await client.get(f"{DEALS_URL}/not-a-uuid")

        assert response.status_code == 400

    async def test_unknown_route_uses_error_envelope(self, client):
        response = await client.get("/api/v1/nope")

        assert response.status_code == 404
        assert response.json() == {
            "status": "error",
            "error": {"code": "not_found", "message": "Not Found", "field": None},
        }

    async def test_wrong_method_uses_error_envelope(self, client):
        response = await client.patch(DEALS_URL)

        assert response.status_code == 405
        assert response.json()["status"] == "error"
        assert response.json()["error"]["message"] == "Method Not Allowed"


# ============================================================================
# TESTS: DEALS
# ============================================================================

class TestDealsApi:
    """Tests for the deal CRUD endpoints."""

    async def test_create_returns_camel_case_deal(self, client, auth_headers):
        deal = await create_deal(client, auth_headers)

        assert deal["storeName"] == "Blue Bottle"
        assert deal["location"]["zipCode"] == "10011"
        assert deal["originalPrice"] == 6.0
        assert deal["views"] == 0
        assert deal["clicks"] == 0
        assert deal["expiresAt"]
        assert deal["deals"][0]["title"] == "Free pastry"
        assert deal["deals"][0]["id"]

    async def test_list_with_origin_annotates_distance(self, client, auth_headers):
        await create_deal(client, auth_headers)
        await create_deal(
            client,
            auth_headers,
            storeName="Far Away Cafe",
            location={"lat": 34.05, "lng": -118.24, "city": "Los Angeles", "state": "CA"},
        )

        response = await client.get(
            DEALS_URL, params={"lat": 40.7589, "lng": -73.9851, "category": "coffee"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["count"] == 1
        assert body["data"][0]["storeName"] == "Blue Bottle"
        assert body["data"][0]["distance"] == pytest.approx(2.6, abs=0.2)
        assert body["center"] == {"lat": 40.7411, "lng": -74.0048}

    async def test_list_without_origin(self, client, auth_headers):
        await create_deal(client, auth_headers)

        response = await client.get(DEALS_URL)

        body = response.json()
        assert body["count"] == 1
        assert body["data"][0]["distance"] is None

    async def test_empty_list_centres_on_default(self, client):
        response = await client.get(DEALS_URL)

        body = response.json()
        assert body["count"] == 0
        assert body["center"] == {"lat": 40.7589, "lng": -73.9851}

    async def test_list_with_antipodal_deal(self, client, auth_headers):
        location = dict(deal_body()["location"], lat=-80.0581, lng=104.7654)
        await create_deal(client, auth_headers, location=location)

        response = await client.get(
            DEALS_URL, params={"lat": 80.0581, "lng": -75.2346, "maxDistance": 100}
        )

        assert response.status_code == 200
        assert response.json()["count"] == 0

    async def test_max_distance_filter(self, client, auth_headers):
        await create_deal(client, auth_headers)

        response = await client.get(
            DEALS_URL, params={"lat": 40.7589, "lng": -73.9851, "maxDistance": 1}
        )

        assert response.json()["count"] == 0

    async def test_get_by_id(self, client, auth_headers):
        created = await create_deal(client, auth_headers)

        response = await client.get(f"{DEALS_URL}/{created['id']}")

        assert response.status_code == 200
        assert response.json()["data"]["id"] == created["id"]

    async def test_get_missing_is_404(self, client):
        response = await client.get(f"{DEALS_URL}/{uuid4()}")

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "not_found"
        assert error["message"] == "Deal not found"

    async def test_update(self, client, auth_headers):
        created = await create_deal(client, auth_headers)

        response = await client.put(
            f"{DEALS_URL}/{created['id']}",
            json={"discount": 30, "badge": "ends-soon"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["discount"] == 30
        assert data["badge"] == "ends-soon"
        assert data["title"] == created["title"]

    async def test_update_location_replaces_whole_location(self, client, auth_headers):
        created = await create_deal(client, auth_headers)

        response = await client.put(
            f"{DEALS_URL}/{created['id']}",
            json={"location": {"lat": 40.0, "lng": -73.0}},
            headers=auth_headers,
        )

        location = response.json()["data"]["location"]
        assert location["lat"] == 40.0
        assert location["address"] == ""
        assert location["zipCode"] == ""

    async def test_update_missing_is_404(self, client, auth_headers):
        response = await client.put(
            f"{DEALS_URL}/{uuid4()}", json={"discount": 30}, headers=auth_headers
        )

        assert response.status_code == 404

    async def test_update_requires_token(self, client, auth_headers):
        created = await create_deal(client, auth_headers)

        response = await client.put(f"{DEALS_URL}/{created['id']}", json={"discount": 30})

        assert response.status_code == 401

    async def test_delete(self, client, auth_headers):
        created = await create_deal(client, auth_headers)

        response = await client.delete(f"{DEALS_URL}/{created['id']}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"] is None

        response = await client.get(f"{DEALS_URL}/{created['id']}")
        assert response.status_code == 404

    async def test_delete_missing_is_404(self, client, auth_headers):
        response = await client.delete(f"{DEALS_URL}/{uuid4()}", headers=auth_headers)

        assert response.status_code == 404

    async def test_bulk_create(self, client, auth_headers):
        body = deal_body()
        del body["location"]
        body["locations"] = [
            {"lat": 40.70, "lng": -74.00, "city": "New York", "state": "NY"},
            {"lat": 40.75, "lng": -73.99, "city": "New York", "state": "NY"},
        ]

        response = await client.post(f"{DEALS_URL}/bulk", json=body, headers=auth_headers)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["count"] == 2
        assert len({d["id"] for d in data["created"]}) == 2

        listed = await client.get(DEALS_URL)
        assert listed.json()["count"] == 2

    async def test_bulk_create_needs_locations(self, client, auth_headers):
        body = deal_body()
        del body["location"]
        body["locations"] = []

        response = await client.post(f"{DEALS_URL}/bulk", json=body, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"]["field"] == "locations"

    async def test_click_event(self, client, auth_headers):
        created = await create_deal(client, auth_headers)

        response = await client.post(f"{DEALS_URL}/{created['id']}/events", json={"type": "click"})

        assert response.status_code == 200
        assert response.json()["data"]["clicks"] == 1

    async def test_view_event(self, client, auth_headers):
        created = await create_deal(client, auth_headers)

        response = await client.post(f"{DEALS_URL}/{created['id']}/events", json={"type": "view"})

        assert response.status_code == 200
        assert response.json()["data"]["views"] == 1
        assert response.json()["data"]["clicks"] == 0

    async def test_event_for_missing_deal(self, client):
        response = await client.post(f"{DEALS_URL}/{uuid4()}/events", json={"type": "view"})

        assert response.status_code == 404


# ============================================================================
# TESTS: LOCATIONS AND HEALTH
# ============================================================================

class TestLocationsApi:
    """Tests for the admin location search endpoints."""

    async def test_nationwide_upstream_failure_is_502(self, client, auth_headers):
        response = await client.get(
            "/api/v1/locations/nationwide", params={"q": "Acme"}, headers=auth_headers
        )

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "upstream_error"
        assert "503" in error["message"]

    async def test_local_search(self, client, auth_headers, fast_limiter):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{
                "place_id": 1,
                "lat": "40.7411",
                "lon": "-74.0048",
                "display_name": "Blue Bottle, 450 West 15th Street, New York",
                "address": {"city": "New York", "state": "New York", "postcode": "10011"},
            }])

        upstream = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        app.state.location_client = LocationSearchClient(
            upstream, fast_limiter, base_url="https://nominatim.test"
        )

        response = await client.get(
            "/api/v1/locations/search",
            params={"q": "Blue Bottle", "city": "New York"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        assert body["cached"] is False
        assert body["data"][0]["zipCode"] == "10011"
        assert body["data"][0]["displayName"].startswith("Blue Bottle")
        await upstream.aclose()

    async def test_reverse_upstream_failure_is_502(self, client, auth_headers):
        response = await client.get(
            "/api/v1/locations/reverse", params={"lat": 40.0, "lng": -73.0}, headers=auth_headers
        )

        assert response.status_code == 502


class TestHealth:
    """Tests for the health endpoint."""

    async def test_health_ok_without_cache(self, client):
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["database"] == "ok"
        assert body["cache"] == "disabled"
