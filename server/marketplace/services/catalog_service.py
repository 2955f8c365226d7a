"""Catalog service for resolving booked services to their vendors."""

import logging
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import ResolutionError
from ..models.catalog import ServiceListing

logger = logging.getLogger(__name__)


class CatalogService:
    """Service for catalog lookups."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_service(self, service_id: str) -> Optional[ServiceListing]:
        """Get a service listing by ID."""
        stmt = select(ServiceListing).where(ServiceListing.id == service_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def resolve_vendor(self, service_id: str) -> Tuple[ServiceListing, str]:
        """
        Resolve a service and the vendor who gets paid for it.

        Stay listings created by hosts carry host_id instead of vendor_id.

        Args:
            service_id: Service identifier from the booking draft or cart line

        Returns:
            Tuple of (service listing, vendor ID)

        Raises:
            ResolutionError: If the service or its vendor does not exist
        """
        service = await self.get_service(service_id)
        if service is None:
            logger.warning("Service not found during booking", extra={"service_id": service_id})
            raise ResolutionError("Service not found", service_id=service_id)

        vendor_id = service.owner_id
        if not vendor_id:
            logger.warning(
                "Service has no vendor or host",
                extra={"service_id": service_id, "service_type": service.service_type}
            )
            raise ResolutionError("Vendor not found", service_id=service_id)

        return service, vendor_id
