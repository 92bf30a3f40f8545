"""Admin panel operations: reservation review, schedule and catalog editing.

Every state-changing call returns only after the backing store accepted
the write. A failed write raises, so the caller never reports an update
that did not happen.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional

from agenda.booking import BookingRejected, day_bounds
from agenda.catalog import ProfessionalConfig, ServiceConfig, seed_professionals, seed_services
from agenda.catalog_store import CatalogStore
from agenda.input_sanitizer import InputSanitizer
from agenda.notifications import ConfirmationNotice, build_confirmation_notice
from agenda.repository import ReservationRepository
from agenda.reservations import (
    Reservation,
    ReservationAction,
    ReservationStatus,
    available_actions,
    transition,
)
from agenda.schedule import WeeklyScheduleConfig
from agenda.schedule_store import ScheduleConfigStore, load_schedule

logger = logging.getLogger(__name__)


@dataclass
class ReviewOutcome:
    """Result of accepting or rejecting a reservation."""
    reservation: Reservation
    notice: Optional[ConfirmationNotice] = None  # Only for confirmations


class AdminService:
    """Operations behind the authenticated admin panel."""

    def __init__(
        self,
        reservations: ReservationRepository,
        schedule_store: ScheduleConfigStore,
        catalog: CatalogStore
    ):
        self.reservations = reservations
        self.schedule_store = schedule_store
        self.catalog = catalog

    # Reservations

    async def list_reservations(self, day: Optional[date] = None) -> List[Reservation]:
        """
        Reservations for review, newest appointment first.

        Args:
            day: Only reservations starting on this day (optional)
        """
        if day is None:
            found = await self.reservations.list_all()
        else:
            start, end = day_bounds(day)
            found = await self.reservations.list_by_date_range(start, end)
        return sorted(found, key=lambda r: r.start_at, reverse=True)

    @staticmethod
    def actions_for(reservation: Reservation) -> List[ReservationAction]:
        """Actions to offer for ``reservation`` in the panel."""
        return available_actions(reservation.status)

    async def accept(self, reservation_id: str) -> ReviewOutcome:
        """
        Confirm a pending reservation.

        The confirmation message is composed after the status is stored. If
        composing it fails the confirmation stands and no notice is returned.

        Raises:
            ReservationNotFoundError: Unknown id
            InvalidStatusTransition: Reservation is not pending
            StoreError: Status could not be saved
        """
        return await self._review(reservation_id, ReservationStatus.CONFIRMED)

    async def reject(self, reservation_id: str) -> ReviewOutcome:
        """
        Decline a pending reservation, releasing its slot.

        Raises:
            ReservationNotFoundError: Unknown id
            InvalidStatusTransition: Reservation is not pending
            StoreError: Status could not be saved
        """
        return await self._review(reservation_id, ReservationStatus.DECLINED)

    async def _review(self, reservation_id: str, target: ReservationStatus) -> ReviewOutcome:
        current = await self.reservations.get(reservation_id)
        transition(current, target)
        updated = await self.reservations.update_status(
            reservation_id, target, expected=current.status
        )
        logger.info(f"Reservation {reservation_id} {current.status.value} -> {target.value}")

        notice = None
        if target == ReservationStatus.CONFIRMED:
            try:
                notice = build_confirmation_notice(updated)
            except Exception as e:
                logger.error(f"Could not compose confirmation for {reservation_id}: {e}")

        return ReviewOutcome(reservation=updated, notice=notice)

    async def delete(self, reservation_id: str) -> None:
        """
        Permanently remove a reservation (any status).

        Raises:
            ReservationNotFoundError: Unknown id
            StoreError: Delete could not be saved
        """
        await self.reservations.delete(reservation_id)
        logger.info(f"Reservation {reservation_id} deleted")

    async def create_manual_booking(
        self,
        client_name: str,
        client_phone: str,
        service_name: str,
        professional_name: str,
        start_at: datetime,
        client_email: Optional[str] = None
    ) -> Reservation:
        """
        Register a booking taken by phone or at the desk, already confirmed.

        Opening hours and lead time are not enforced here.

        Raises:
            BookingRejected: Invalid client data
            StoreError: Reservation could not be saved
        """
        try:
            reservation = Reservation(
                client_name=InputSanitizer.clean_client_name(client_name),
                client_phone=InputSanitizer.clean_phone(client_phone),
                client_email=InputSanitizer.clean_email(client_email),
                service_name=service_name,
                professional_name=professional_name,
                start_at=start_at.replace(second=0, microsecond=0),
                status=ReservationStatus.CONFIRMED,
            )
        except ValueError as e:
            raise BookingRejected(str(e)) from e

        reservation_id = await self.reservations.create(reservation)
        logger.info(f"Manual booking {reservation_id} for {start_at.isoformat()}")
        return reservation.model_copy(update={"id": reservation_id})

    # Schedule

    async def get_schedule(self) -> WeeklyScheduleConfig:
        """Stored schedule, or the built-in default when none was saved."""
        return await load_schedule(self.schedule_store)

    async def update_schedule(self, schedule: WeeklyScheduleConfig) -> WeeklyScheduleConfig:
        """
        Validate and store a new weekly schedule.

        Raises:
            ScheduleValidationError: Inconsistent schedule (nothing stored)
            StoreError: Schedule could not be saved
        """
        schedule.validate_for_write()
        await self.schedule_store.set(schedule)
        logger.info(f"Schedule updated (interval {schedule.slot_interval_minutes} min)")
        return schedule

    # Catalog

    async def list_services(self) -> List[ServiceConfig]:
        return await self.catalog.list_services()

    async def save_service(self, service: ServiceConfig) -> ServiceConfig:
        saved = await self.catalog.save_service(service)
        logger.info(f"Service saved: {saved.id}")
        return saved

    async def delete_service(self, service_id: str) -> None:
        await self.catalog.delete_service(service_id)
        logger.info(f"Service deleted: {service_id}")

    async def list_professionals(self) -> List[ProfessionalConfig]:
        return await self.catalog.list_professionals()

    async def save_professional(self, professional: ProfessionalConfig) -> ProfessionalConfig:
        saved = await self.catalog.save_professional(professional)
        logger.info(f"Professional saved: {saved.id}")
        return saved

    async def delete_professional(self, professional_id: str) -> None:
        await self.catalog.delete_professional(professional_id)
        logger.info(f"Professional deleted: {professional_id}")

    async def seed_catalog(self) -> int:
        """
        Import the sample services and professionals.

        Existing items with the same ids are overwritten.

        Returns:
            Number of items written
        """
        count = 0
        for service in seed_services():
            await self.catalog.save_service(service)
            count += 1
        for professional in seed_professionals():
            await self.catalog.save_professional(professional)
            count += 1
        logger.info(f"Catalog seeded with {count} items")
        return count
