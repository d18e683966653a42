"""Tests for DealService: listing, CRUD and engagement counters."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from dealhub.config import settings
from dealhub.core.exceptions import PersistenceError
from dealhub.core.result import ResultStatus
from dealhub.schemas import BulkDealCreateRequest, DealCreateRequest, DealUpdateRequest
from dealhub.services.deal_service import DealService
from dealhub.services.distance import Coordinates

from conftest import make_deal

ORIGIN = Coordinates(lat=40.0, lng=-73.0)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def create_request(**overrides) -> DealCreateRequest:
    body = {
        "storeName": "Blue Bottle",
        "category": "coffee",
        "title": "Half-price cold brew",
        "image": "https://example.com/cold-brew.jpg",
        "discount": 50,
        "location": {
            "lat": 40.7411,
            "lng": -74.0048,
            "address": "450 W 15th St",
            "city": "New York",
            "state": "NY",
            "zipCode": "10011",
        },
    }
    body.update(overrides)
    return DealCreateRequest.model_validate(body)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest_asyncio.fixture
async def five_deals(test_db: AsyncSession):
    """Five deals around (40.0, -73.0): two qualifying coffee deals, one
    coffee deal too far away, one expired coffee deal and one restaurant."""
    now = datetime.now(timezone.utc)
    deals = {
        "near_coffee": make_deal(title="near", latitude=40.02, longitude=-73.0, discount=10, views=5),
        "mid_coffee": make_deal(title="mid", latitude=40.05, longitude=-73.0, discount=40, views=50),
        "far_coffee": make_deal(title="far", latitude=40.2, longitude=-73.0),
        "expired_coffee": make_deal(
            title="expired", latitude=40.01, longitude=-73.0, expires_at=now - timedelta(hours=1)
        ),
        "restaurant": make_deal(
            title="restaurant", category="restaurant", latitude=40.01, longitude=-73.0
        ),
    }
    test_db.add_all(deals.values())
    await test_db.commit()
    return deals


# ============================================================================
# TESTS: LISTING
# ============================================================================

class TestGetDeals:
    """Tests for DealService.get_deals."""

    async def test_category_radius_and_closest_sort(self, test_db: AsyncSession, five_deals):
        service = DealService(test_db)

        pairs = await service.get_deals(
            category="coffee", origin=ORIGIN, max_distance=10, sort_by="closest"
        )

        assert [deal.title for deal, _ in pairs] == ["near", "mid"]
        distances = [distance for _, distance in pairs]
        assert distances == sorted(distances)
        assert all(d <= 10 for d in distances)
        assert distances[0] == pytest.approx(2.2, abs=0.1)

    async def test_expired_deals_never_listed(self, test_db: AsyncSession, five_deals):
        service = DealService(test_db)

        pairs = await service.get_deals()

        titles = {deal.title for deal, _ in pairs}
        assert "expired" not in titles
        assert titles == {"near", "mid", "far", "restaurant"}

    async def test_without_origin_no_distance(self, test_db: AsyncSession, five_deals):
        service = DealService(test_db)

        pairs = await service.get_deals(category="coffee", max_distance=1)

        assert len(pairs) == 3
        assert all(distance is None for _, distance in pairs)

    async def test_all_category_disables_filter(self, test_db: AsyncSession, five_deals):
        service = DealService(test_db)

        pairs = await service.get_deals(category="all", origin=ORIGIN, max_distance=10)

        assert {deal.title for deal, _ in pairs} == {"near", "mid", "restaurant"}

    async def test_default_sort_with_origin_is_closest(self, test_db: AsyncSession, five_deals):
        service = DealService(test_db)

        pairs = await service.get_deals(origin=ORIGIN, max_distance=100)

        assert [deal.title for deal, _ in pairs] == ["restaurant", "near", "mid", "far"]

    async def test_highest_discount_sort_with_origin(self, test_db: AsyncSession, five_deals):
        service = DealService(test_db)

        pairs = await service.get_deals(
            category="coffee", origin=ORIGIN, max_distance=10, sort_by="highest-discount"
        )

        assert [deal.title for deal, _ in pairs] == ["mid", "near"]
        assert all(distance is not None for _, distance in pairs)

    async def test_trending_sort_without_origin(self, test_db: AsyncSession, five_deals):
        service = DealService(test_db)

        pairs = await service.get_deals(category="coffee", sort_by="trending")

        assert [deal.title for deal, _ in pairs][0] == "mid"

    async def test_database_failure_raises_persistence_error(self):
        db = AsyncMock()
        db.execute.side_effect = OperationalError("SELECT", {}, Exception("db down"))
        service = DealService(db)

        with pytest.raises(PersistenceError):
            await service.get_deals()


# ============================================================================
# TESTS: CRUD
# ============================================================================

class TestDealCrud:
    """Tests for create/get/update/delete."""

    async def test_create_flattens_location_and_defaults(self, test_db: AsyncSession):
        service = DealService(test_db)
        before = datetime.now(timezone.utc)

        deal = await service.create_deal(create_request(
            deals=[{"title": "Free pastry", "discount": 100, "originalPrice": 3.5}],
        ).model_dump())

        assert deal.id is not None
        assert deal.store_name == "Blue Bottle"
        assert deal.latitude == pytest.approx(40.7411)
        assert deal.longitude == pytest.approx(-74.0048)
        assert deal.zip_code == "10011"
        assert deal.views == 0
        assert deal.clicks == 0
        assert deal.description == ""

        expected_expiry = before + timedelta(days=settings.DEFAULT_DEAL_TTL_DAYS)
        assert abs(as_utc(deal.expires_at) - expected_expiry) < timedelta(minutes=1)

        assert len(deal.items) == 1
        assert deal.items[0]["title"] == "Free pastry"
        assert deal.items[0]["originalPrice"] == 3.5
        assert deal.items[0]["id"]

    async def test_create_keeps_explicit_expiry(self, test_db: AsyncSession):
        service = DealService(test_db)
        expires = datetime(2030, 1, 1, tzinfo=timezone.utc)

        deal = await service.create_deal(create_request(expiresAt=expires.isoformat()).model_dump())

        assert as_utc(deal.expires_at) == expires

    async def test_get_deal_by_id(self, test_db: AsyncSession, five_deals):
        service = DealService(test_db)
        wanted = five_deals["mid_coffee"]

        result = await service.get_deal_by_id(wanted.id)

        assert result.is_ok
        assert result.value.title == "mid"

    async def test_get_deal_by_id_not_found(self, test_db: AsyncSession):
        service = DealService(test_db)

        result = await service.get_deal_by_id(uuid4())

        assert result.status is ResultStatus.NOT_FOUND
        assert result.value is None

    async def test_get_deal_by_id_database_failure(self):
        db = AsyncMock()
        db.get.side_effect = OperationalError("SELECT", {}, Exception("db down"))
        service = DealService(db)

        result = await service.get_deal_by_id(uuid4())

        assert result.status is ResultStatus.TRANSPORT_ERROR

    async def test_update_applies_only_sent_fields(self, test_db: AsyncSession, five_deals):
        service = DealService(test_db)
        deal = five_deals["near_coffee"]
        changes = DealUpdateRequest.model_validate({
            "discount": 75,
            "location": {"lat": 40.03, "lng": -73.01, "city": "Hoboken", "state": "NJ"},
        }).model_dump(exclude_unset=True)

        result = await service.update_deal(deal.id, changes)

        assert result.is_ok
        updated = result.value
        assert updated.discount == 75
        assert updated.title == "near"
        assert updated.latitude == 40.03
        assert updated.city == "Hoboken"
        assert updated.address == "1 Times Sq"

    async def test_update_ignores_null_required_fields(self, test_db: AsyncSession, five_deals):
        service = DealService(test_db)
        deal = five_deals["near_coffee"]

        result = await service.update_deal(deal.id, {"title": None, "badge": None})

        assert result.is_ok
        assert result.value.title == "near"
        assert result.value.badge is None

    async def test_update_not_found(self, test_db: AsyncSession):
        service = DealService(test_db)

        result = await service.update_deal(uuid4(), {"discount": 10})

        assert result.is_not_found

    async def test_delete(self, test_db: AsyncSession, five_deals):
        service = DealService(test_db)
        deal_id = five_deals["far_coffee"].id

        result = await service.delete_deal(deal_id)

        assert result.is_ok
        assert (await service.get_deal_by_id(deal_id)).is_not_found

    async def test_delete_not_found(self, test_db: AsyncSession):
        service = DealService(test_db)

        result = await service.delete_deal(uuid4())

        assert result.is_not_found
        assert result.value is None

    async def test_create_many_one_row_per_location(self, test_db: AsyncSession):
        service = DealService(test_db)
        request = BulkDealCreateRequest.model_validate({
            "storeName": "Acme",
            "category": "grocery",
            "title": "$5 off $30",
            "image": "https://example.com/acme.jpg",
            "discount": 15,
            "locations": [
                {"lat": 40.7, "lng": -74.0, "city": "New York", "state": "NY"},
                {"lat": 39.95, "lng": -75.16, "city": "Philadelphia", "state": "PA"},
                {"lat": 42.36, "lng": -71.06, "city": "Boston", "state": "MA"},
            ],
        })

        deals = await service.create_many(
            request.model_dump(exclude={"locations"}),
            [loc.model_dump() for loc in request.locations],
        )

        assert len(deals) == 3
        assert {d.city for d in deals} == {"New York", "Philadelphia", "Boston"}
        assert len({d.id for d in deals}) == 3
        assert all(d.title == "$5 off $30" for d in deals)

        listed = await service.get_deals(category="grocery")
        assert len(listed) == 3


# ============================================================================
# TESTS: ENGAGEMENT
# ============================================================================

class TestRecordEvent:
    """Tests for DealService.record_event."""

    async def test_click_and_view_counters(self, test_db: AsyncSession, five_deals):
        service = DealService(test_db)
        deal_id = five_deals["mid_coffee"].id

        await service.record_event(deal_id, "click")
        result = await service.record_event(deal_id, "view")

        assert result.is_ok
        assert result.value.clicks == 1
        assert result.value.views == 51

    async def test_unknown_deal(self, test_db: AsyncSession):
        service = DealService(test_db)

        result = await service.record_event(uuid4(), "click")

        assert result.is_not_found
