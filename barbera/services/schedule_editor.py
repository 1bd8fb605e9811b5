"""
Application service behind the barber's weekly schedule editor.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from ..domain.exceptions import PermissionDeniedError
from ..domain.schedule import WeeklyAvailability, default_week, validate_week
from .context import BookingContext, store_call

logger = logging.getLogger(__name__)


class ScheduleService:
    """
    Reads and replaces a barber's weekly working hours.

    Saving always replaces the full week; there are no partial updates.
    """

    async def get_schedule(self, context: BookingContext, barber_id: str) -> List[WeeklyAvailability]:
        """Return the stored entries ordered by weekday."""
        entries = await store_call(
            context.schedule_store.get_weekly_schedule(barber_id),
            f"Failed to load schedule of barber {barber_id}",
        )
        return sorted(entries, key=lambda entry: entry.day_of_week)

    async def get_editable_week(self, context: BookingContext, barber_id: str) -> List[WeeklyAvailability]:
        """
        Return the week to show in the editor.

        A barber without a saved schedule starts from 09:00-17:00 every day.
        """
        entries = await self.get_schedule(context, barber_id)
        return entries or default_week(barber_id)

    async def save_schedule(
        self,
        context: BookingContext,
        barber_id: str,
        entries: Sequence[WeeklyAvailability],
    ) -> List[WeeklyAvailability]:
        """
        Validate and store a full weekly schedule.

        Raises:
            PermissionDeniedError: If the session user is not the barber
            ScheduleValidationError: If the entries are inconsistent
            StoreError: If the store rejects the write
        """
        session = context.session
        if session is not None and session.user_id != barber_id:
            raise PermissionDeniedError("Barbers can only edit their own schedule")

        validate_week(barber_id, entries)

        saved = await store_call(
            context.schedule_store.replace_weekly_schedule(barber_id, entries),
            f"Failed to save schedule of barber {barber_id}",
        )
        logger.info("Saved %d schedule entries for barber %s", len(saved), barber_id)
        return saved
