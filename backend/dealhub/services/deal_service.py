"""Deal CRUD service.

Maps between the wire representation (nested location, camelCase
sub-deals) and flat ``deals`` rows, and applies the category, expiry
and distance filters used by the map and list views.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dealhub.config import settings
from dealhub.core.exceptions import PersistenceError
from dealhub.core.result import ServiceResult
from dealhub.models.deal import Deal
from dealhub.schemas.deal import DealItemSchema
from dealhub.services.distance import Coordinates, filter_by_distance

logger = structlog.get_logger(__name__)

# Location keys on the wire -> Deal columns
_LOCATION_COLUMNS = {
    "lat": "latitude",
    "lng": "longitude",
    "address": "address",
    "city": "city",
    "state": "state",
    "zip_code": "zip_code",
}

_PRICE_FIELDS = ("original_price", "discounted_price")

_REQUIRED_COLUMNS = (
    "store_name", "category", "title", "image", "discount", "description",
    "latitude", "longitude", "expires_at",
)


def _deal_coordinates(deal: Deal) -> Coordinates:
    return Coordinates(lat=deal.latitude, lng=deal.longitude)


class DealService:
    """Service for managing deals.

    Handles deal CRUD operations, location-aware listing, and engagement
    counters. Lookups by id return a ``ServiceResult`` so routes can tell a
    missing deal from a database failure.
    """

    def __init__(self, db: AsyncSession):
        """Initialize deal service.

        Args:
            db: Async database session
        """
        self.db = db
        self.logger = logger.bind(service="deal_service")

    async def get_deals(
        self,
        category: Optional[str] = None,
        origin: Optional[Coordinates] = None,
        max_distance: Optional[float] = None,
        sort_by: Optional[str] = None,
    ) -> List[Tuple[Deal, Optional[float]]]:
        """List non-expired deals, optionally ranked around an origin.

        Args:
            category: Category filter; None or "all" disables it
            origin: Viewer coordinate; enables distance annotation
            max_distance: Inclusive km threshold, only applied with an origin
            sort_by: "closest", "highest-discount" or "trending". Defaults
                to closest when an origin is given, else insertion order.

        Returns:
            List of (deal, distance_km) pairs; distance is None without origin

        Raises:
            PersistenceError: If the database query fails
        """
        self.logger.info(
            "fetching_deals",
            category=category,
            has_origin=origin is not None,
            max_distance=max_distance,
            sort=sort_by,
        )

        now = datetime.now(timezone.utc)
        query = select(Deal).where(Deal.expires_at >= now)

        if category and category != "all":
            query = query.where(Deal.category == category)

        sort_map = {
            "highest-discount": Deal.discount.desc(),
            "trending": Deal.views.desc(),
        }
        if sort_by in sort_map:
            query = query.order_by(sort_map[sort_by], Deal.created_at.asc())
        else:
            query = query.order_by(Deal.created_at.asc())

        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            self.logger.error("deals_query_failed", error=str(e))
            raise PersistenceError("list", str(e)) from e

        deals = list(result.scalars().all())

        if origin is None:
            pairs: List[Tuple[Deal, Optional[float]]] = [(d, None) for d in deals]
        else:
            limit_km = max_distance if max_distance is not None else float("inf")
            ranked = filter_by_distance(deals, origin, limit_km, coords_of=_deal_coordinates)
            pairs = [(r.item, r.distance) for r in ranked]

            # filter_by_distance orders nearest first; restore the requested order
            if sort_by == "highest-discount":
                pairs.sort(key=lambda p: p[0].discount, reverse=True)
            elif sort_by == "trending":
                pairs.sort(key=lambda p: p[0].views, reverse=True)

        self.logger.info("deals_fetched", count=len(pairs))

        return pairs

    async def get_deal_by_id(self, deal_id: UUID) -> ServiceResult[Deal]:
        """Get a single deal.

        Returns:
            ok with the deal, not_found, or transport_error when the
            database cannot be queried
        """
        try:
            deal = await self.db.get(Deal, deal_id)
        except SQLAlchemyError as e:
            self.logger.error("deal_fetch_failed", deal_id=str(deal_id), error=str(e))
            return ServiceResult.transport_error(str(e))

        if deal is None:
            return ServiceResult.not_found()
        return ServiceResult.ok(deal)

    async def create_deal(self, payload: Dict[str, Any]) -> Deal:
        """Persist a new deal.

        Args:
            payload: Validated request fields (snake_case), including a
                nested ``location`` dict

        Returns:
            The created Deal

        Raises:
            PersistenceError: If the insert fails
        """
        deal = Deal(**self._to_row(payload, creating=True))
        self.db.add(deal)

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            self.logger.error("deal_create_failed", store=payload.get("store_name"), error=str(e))
            raise PersistenceError("create", str(e)) from e

        await self.db.refresh(deal)

        self.logger.info(
            "deal_created",
            deal_id=str(deal.id),
            store=deal.store_name,
            category=deal.category,
        )

        return deal

    async def create_many(
        self,
        payload: Dict[str, Any],
        locations: List[Dict[str, Any]],
    ) -> List[Deal]:
        """Replicate one deal body across many store locations.

        All rows are written in one transaction: either every location gets
        its deal or none does.

        Raises:
            PersistenceError: If the insert fails
        """
        deals = [
            Deal(**self._to_row({**payload, "location": location}, creating=True))
            for location in locations
        ]
        self.db.add_all(deals)

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            self.logger.error("deal_bulk_create_failed", locations=len(locations), error=str(e))
            raise PersistenceError("bulk create", str(e)) from e

        self.logger.info(
            "deals_bulk_created",
            store=payload.get("store_name"),
            count=len(deals),
        )

        return deals

    async def update_deal(self, deal_id: UUID, changes: Dict[str, Any]) -> ServiceResult[Deal]:
        """Apply a partial update.

        Args:
            deal_id: Deal UUID
            changes: Only the fields the client sent (snake_case)
        """
        found = await self.get_deal_by_id(deal_id)
        if not found.is_ok:
            return found

        deal = found.value
        for column, value in self._to_row(changes, creating=False).items():
            setattr(deal, column, value)

        try:
            await self.db.commit()
            await self.db.refresh(deal)
        except SQLAlchemyError as e:
            await self.db.rollback()
            self.logger.error("deal_update_failed", deal_id=str(deal_id), error=str(e))
            return ServiceResult.transport_error(str(e))

        self.logger.info("deal_updated", deal_id=str(deal_id), fields=sorted(changes))
        return ServiceResult.ok(deal)

    async def delete_deal(self, deal_id: UUID) -> ServiceResult[bool]:
        """Delete a deal by id."""
        found = await self.get_deal_by_id(deal_id)
        if not found.is_ok:
            return ServiceResult(status=found.status, error=found.error)

        try:
            await self.db.delete(found.value)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            self.logger.error("deal_delete_failed", deal_id=str(deal_id), error=str(e))
            return ServiceResult.transport_error(str(e))

        self.logger.info("deal_deleted", deal_id=str(deal_id))
        return ServiceResult.ok(True)

    async def record_event(self, deal_id: UUID, event_type: str) -> ServiceResult[Deal]:
        """Increment the view or click counter of a deal.

        Args:
            deal_id: Deal UUID
            event_type: "view" or "click"
        """
        found = await self.get_deal_by_id(deal_id)
        if not found.is_ok:
            return found

        deal = found.value
        if event_type == "click":
            deal.clicks += 1
        else:
            deal.views += 1

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            self.logger.error("deal_event_failed", deal_id=str(deal_id), error=str(e))
            return ServiceResult.transport_error(str(e))

        self.logger.info(
            "deal_event_recorded",
            deal_id=str(deal_id),
            event_type=event_type,
            views=deal.views,
            clicks=deal.clicks,
        )
        return ServiceResult.ok(deal)

    def _to_row(self, payload: Dict[str, Any], creating: bool) -> Dict[str, Any]:
        """Translate request fields into Deal column values.

        On creation, counters start at zero and a missing expiry defaults
        to DEFAULT_DEAL_TTL_DAYS from now.
        """
        row = {k: v for k, v in payload.items() if k not in ("location", "deals")}

        location = payload.get("location")
        if location is not None:
            for key, column in _LOCATION_COLUMNS.items():
                if key in location:
                    row[column] = location[key] if location[key] is not None else ""

        if "deals" in payload:
            row["items"] = [_camel_item(item) for item in (payload["deals"] or [])]

        for field in _PRICE_FIELDS:
            if row.get(field) is not None:
                row[field] = Decimal(str(row[field]))

        if creating:
            if row.get("expires_at") is None:
                row["expires_at"] = datetime.now(timezone.utc) + timedelta(days=settings.DEFAULT_DEAL_TTL_DAYS)
            row["views"] = 0
            row["clicks"] = 0
            row.setdefault("description", "")
            row.setdefault("items", [])
        else:
            # Explicit nulls for NOT NULL columns are ignored on update
            for column in _REQUIRED_COLUMNS:
                if column in row and row[column] is None:
                    del row[column]

        return row


def _camel_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Store sub-deals with the same camelCase keys the client uses."""
    return DealItemSchema.model_validate(item).model_dump(mode="json", by_alias=True)
