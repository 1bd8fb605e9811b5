"""
Application service for the services a barber offers.
"""

from __future__ import annotations

import logging
import uuid
from typing import List

from ..domain.exceptions import InvalidInputError, PermissionDeniedError
from ..domain.models import Service
from .context import BookingContext, store_call

logger = logging.getLogger(__name__)


class CatalogService:
    """Adds, lists and removes a barber's services."""

    async def list_services(self, context: BookingContext, barber_id: str) -> List[Service]:
        return await store_call(
            context.service_catalog.list_services(barber_id),
            f"Failed to load services of barber {barber_id}",
        )

    async def add_service(
        self,
        context: BookingContext,
        *,
        barber_id: str,
        name: str,
        price: float,
        duration_minutes: int,
    ) -> Service:
        """
        Create a new service.

        Raises:
            InvalidInputError: On an empty name, a non-positive price or duration
            PermissionDeniedError: If the session user is not the barber
        """
        _ensure_owner(context, barber_id)

        if not name or not name.strip():
            raise InvalidInputError("Service name is required")
        if isinstance(price, bool) or not isinstance(price, (int, float)) or price <= 0:
            raise InvalidInputError("Please enter a valid price")
        if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int) or duration_minutes <= 0:
            raise InvalidInputError("Please enter a valid duration")

        service = Service(
            id=str(uuid.uuid4()),
            barber_id=barber_id,
            name=name.strip(),
            price=float(price),
            duration_minutes=duration_minutes,
        )
        created = await store_call(
            context.service_catalog.add_service(service),
            "Failed to add service",
        )
        logger.info("Added service %s (%s) for barber %s", created.id, created.name, barber_id)
        return created

    async def delete_service(self, context: BookingContext, service_id: str) -> None:
        service = await store_call(
            context.service_catalog.get_service(service_id),
            f"Failed to load service {service_id}",
        )
        if service is None:
            raise InvalidInputError(f"Unknown service: {service_id}")

        _ensure_owner(context, service.barber_id)

        await store_call(
            context.service_catalog.delete_service(service_id),
            f"Failed to delete service {service_id}",
        )
        logger.info("Deleted service %s of barber %s", service_id, service.barber_id)


def _ensure_owner(context: BookingContext, barber_id: str) -> None:
    session = context.session
    if session is not None and session.user_id != barber_id:
        raise PermissionDeniedError("Barbers can only manage their own services")
