# Appointments Feature - Slot Reservations

from datetime import datetime, timedelta
from beanie import PydanticObjectId
from bson import ObjectId
from pymongo.errors import DuplicateKeyError
from medibook.config import settings
from medibook.features.appointments.models import Appointment, AppointmentSlot
from medibook.core.logging import logger
from medibook.shared.exceptions import ConflictException


def slot_taken() -> ConflictException:
    return ConflictException(
        "This time slot is already booked. Please select a different time.",
        code="slot-taken",
    )


class SlotReservations:
    """
    Reserve and release (doctor, date, time) slots.

    A reservation is a document with a unique ``key``; inserting a second
    reservation for the same slot fails in the store, so two concurrent
    bookings can never both succeed.
    """

    @staticmethod
    async def reserve(key: str, appointment_id: str) -> AppointmentSlot:
        """
        Reserve ``key`` for the appointment.

        Raises:
            ConflictException: If another appointment holds the slot
        """
        for attempt in range(2):
            try:
                slot = AppointmentSlot(key=key, appointment_id=appointment_id)
                await slot.insert()
                return slot
            except DuplicateKeyError:
                existing = await AppointmentSlot.find_one(AppointmentSlot.key == key)

                if existing is None:
                    # Released between our insert and lookup
                    continue

                if existing.appointment_id == appointment_id:
                    return existing

                if attempt == 0 and await SlotReservations.is_stale(existing):
                    logger.warning(
                        f"Reclaiming stale slot {key} held by appointment {existing.appointment_id}"
                    )
                    await AppointmentSlot.find(
                        AppointmentSlot.key == key,
                        AppointmentSlot.appointment_id == existing.appointment_id,
                    ).delete()
                    continue

                logger.warning(f"Slot {key} already held by appointment {existing.appointment_id}")
                raise slot_taken()

        raise slot_taken()

    @staticmethod
    async def release(key: str, appointment_id: str) -> None:
        """Release ``key`` if the appointment holds it."""
        await AppointmentSlot.find(
            AppointmentSlot.key == key,
            AppointmentSlot.appointment_id == appointment_id,
        ).delete()
        logger.debug(f"Released slot {key} from appointment {appointment_id}")

    @staticmethod
    async def is_stale(slot: AppointmentSlot) -> bool:
        """
        A reservation is stale once it is older than the claim timeout and
        its appointment was never written or does not hold the slot.

        Inside the claim timeout a reservation always counts as in flight: a
        reschedule reserves its new slot before the appointment is saved.
        """
        claim_timeout = timedelta(seconds=settings.SLOT_CLAIM_TIMEOUT_SECONDS)
        if datetime.utcnow() - slot.created_at <= claim_timeout:
            return False

        appointment = None
        if ObjectId.is_valid(slot.appointment_id):
            appointment = await Appointment.get(PydanticObjectId(slot.appointment_id))

        return appointment is None or appointment.current_slot_key != slot.key
