import asyncio
from datetime import datetime, timedelta

from bson import ObjectId
from httpx import AsyncClient

from conftest import auth_headers, future_date, past_date
from medibook.features.auth.models import Role
from medibook.features.patients.models import Patient
from medibook.features.appointments.models import Appointment, AppointmentSlot, slot_key
from medibook.features.appointments.service import AppointmentService


BOOK_URL = "/api/v1/appointments/book"


class TestBookAppointment:
    """Booking an appointment as a patient."""

    async def test_book_success(self, client: AsyncClient, make_patient, make_doctor, booking_payload) -> None:
        """A valid booking is stored as SCHEDULED with patient and doctor details."""
        user, patient = await make_patient()
        doctor_user, doctor = await make_doctor()

        response = await client.post(BOOK_URL, json=booking_payload(doctor), headers=auth_headers(user))

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["status"] == "SCHEDULED"
        assert data["type"] == "CONSULTATION"
        assert data["duration"] == 30
        assert data["isActive"] is True
        assert data["appointmentDate"] == future_date()
        assert data["appointmentTime"] == "10:00"
        assert data["patient"]["id"] == str(patient.id)
        assert data["patient"]["firstName"] == "Sarah"
        assert data["doctor"]["name"] == doctor_user.name
        assert data["doctor"]["specialization"] == "Cardiology"
        assert data["doctor"]["consultationFee"] == 2500
        assert data["pharmacist"] is None

        assert await Appointment.count() == 1
        assert await AppointmentSlot.count() == 1

    async def test_book_normalizes_time_and_type(self, client: AsyncClient, make_patient, make_doctor, booking_payload) -> None:
        user, _ = await make_patient()
        _, doctor = await make_doctor()

        response = await client.post(
            BOOK_URL,
            json=booking_payload(doctor, appointmentTime="9:30", type="follow_up", duration=45),
            headers=auth_headers(user),
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["appointmentTime"] == "09:30"
        assert data["type"] == "FOLLOW_UP"
        assert data["duration"] == 45

    async def test_book_today_is_allowed(self, client: AsyncClient, make_patient, make_doctor, booking_payload) -> None:
        """Only the calendar date is compared, so an earlier hour today is fine."""
        user, _ = await make_patient()
        _, doctor = await make_doctor()

        today = datetime.utcnow().date().isoformat()
        response = await client.post(
            BOOK_URL,
            json=booking_payload(doctor, appointmentDate=today, appointmentTime="00:00"),
            headers=auth_headers(user),
        )

        assert response.status_code == 201

    async def test_book_past_date_rejected(self, client: AsyncClient, make_patient, make_doctor, booking_payload) -> None:
        user, _ = await make_patient()
        _, doctor = await make_doctor()

        response = await client.post(
            BOOK_URL,
            json=booking_payload(doctor, appointmentDate=past_date(), appointmentTime="23:59"),
            headers=auth_headers(user),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "date-in-past"
        assert await Appointment.count() == 0

    async def test_book_invalid_date(self, client: AsyncClient, make_patient, make_doctor, booking_payload) -> None:
        user, _ = await make_patient()
        _, doctor = await make_doctor()

        response = await client.post(
            BOOK_URL,
            json=booking_payload(doctor, appointmentDate="2031-02-30"),
            headers=auth_headers(user),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid-date"

    async def test_book_invalid_time(self, client: AsyncClient, make_patient, make_doctor, booking_payload) -> None:
        user, _ = await make_patient()
        _, doctor = await make_doctor()

        response = await client.post(
            BOOK_URL,
            json=booking_payload(doctor, appointmentTime="25:00"),
            headers=auth_headers(user),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid-time"

    async def test_book_reports_every_invalid_field(self, client: AsyncClient, make_patient, make_doctor, booking_payload) -> None:
        user, _ = await make_patient()
        _, doctor = await make_doctor()

        response = await client.post(
            BOOK_URL,
            json=booking_payload(doctor, appointmentDate="not-a-date", appointmentTime="noon"),
            headers=auth_headers(user),
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "validation-error"
        assert {d["field"] for d in error["details"]} == {"appointmentDate", "appointmentTime"}

    async def test_book_invalid_type(self, client: AsyncClient, make_patient, make_doctor, booking_payload) -> None:
        user, _ = await make_patient()
        _, doctor = await make_doctor()

        response = await client.post(
            BOOK_URL,
            json=booking_payload(doctor, type="SURGERY"),
            headers=auth_headers(user),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid-type"
        assert await AppointmentSlot.count() == 0

    async def test_book_blank_reason_rejected(self, client: AsyncClient, make_patient, make_doctor, booking_payload) -> None:
        user, _ = await make_patient()
        _, doctor = await make_doctor()

        response = await client.post(
            BOOK_URL,
            json=booking_payload(doctor, reason="   "),
            headers=auth_headers(user),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation-error"

    async def test_book_without_profile(self, client: AsyncClient, make_user, make_doctor, booking_payload) -> None:
        """A patient who has not onboarded cannot book."""
        user = await make_user(Role.PATIENT)
        _, doctor = await make_doctor()

        response = await client.post(BOOK_URL, json=booking_payload(doctor), headers=auth_headers(user))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "profile-missing"

    async def test_book_with_legacy_created_by_profile(self, client: AsyncClient, make_user, make_doctor, booking_payload) -> None:
        """Profiles linked only through created_by are still found."""
        user = await make_user(Role.PATIENT)
        patient = Patient(created_by=str(user.id), first_name="Legacy", last_name="Record")
        await patient.insert()
        _, doctor = await make_doctor()

        response = await client.post(BOOK_URL, json=booking_payload(doctor), headers=auth_headers(user))

        assert response.status_code == 201
        assert response.json()["data"]["patient"]["id"] == str(patient.id)

    async def test_book_unknown_doctor(self, client: AsyncClient, make_patient, make_doctor, booking_payload) -> None:
        user, _ = await make_patient()
        _, doctor = await make_doctor()

        payload = booking_payload(doctor, doctorId=str(ObjectId()))
        response = await client.post(BOOK_URL, json=payload, headers=auth_headers(user))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "doctor-missing"

    async def test_book_requires_patient_role(self, client: AsyncClient, make_doctor, booking_payload) -> None:
        doctor_user, doctor = await make_doctor()

        response = await client.post(BOOK_URL, json=booking_payload(doctor), headers=auth_headers(doctor_user))

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "role-required"


class TestDoubleBooking:
    """At most one active appointment per doctor, date and time."""

    async def test_book_conflict_cancel_rebook(self, client: AsyncClient, make_patient, make_doctor, booking_payload) -> None:
        """Book, conflict, cancel, then the same slot can be booked again."""
        first_user, _ = await make_patient("Ann", "First")
        second_user, _ = await make_patient("Bob", "Second")
        _, doctor = await make_doctor()
        payload = booking_payload(doctor)

        first = await client.post(BOOK_URL, json=payload, headers=auth_headers(first_user))
        assert first.status_code == 201
        assert first.json()["data"]["status"] == "SCHEDULED"

        second = await client.post(BOOK_URL, json=payload, headers=auth_headers(second_user))
        assert second.status_code == 409
        assert second.json()["error"]["code"] == "slot-taken"

        appointment_id = first.json()["data"]["id"]
        cancelled = await client.delete(
            f"/api/v1/appointments/{appointment_id}", headers=auth_headers(first_user)
        )
        assert cancelled.status_code == 200

        retry = await client.post(BOOK_URL, json=payload, headers=auth_headers(second_user))
        assert retry.status_code == 201

    async def test_other_time_same_doctor_is_free(self, client: AsyncClient, make_patient, make_doctor, booking_payload) -> None:
        first_user, _ = await make_patient("Ann", "First")
        second_user, _ = await make_patient("Bob", "Second")
        _, doctor = await make_doctor()

        first = await client.post(BOOK_URL, json=booking_payload(doctor), headers=auth_headers(first_user))
        second = await client.post(
            BOOK_URL, json=booking_payload(doctor, appointmentTime="10:30"), headers=auth_headers(second_user)
        )

        assert first.status_code == 201
        assert second.status_code == 201

    async def test_store_constraint_catches_missed_conflict(
        self, client: AsyncClient, make_patient, make_doctor, booking_payload, monkeypatch
    ) -> None:
        """Even when the pre-check sees nothing, the slot index rejects the second booking."""

        async def no_conflict(*args, **kwargs):
            return None

        monkeypatch.setattr(AppointmentService, "find_conflict", staticmethod(no_conflict))

        first_user, _ = await make_patient("Ann", "First")
        second_user, _ = await make_patient("Bob", "Second")
        _, doctor = await make_doctor()
        payload = booking_payload(doctor)

        responses = await asyncio.gather(
            client.post(BOOK_URL, json=payload, headers=auth_headers(first_user)),
            client.post(BOOK_URL, json=payload, headers=auth_headers(second_user)),
        )

        assert sorted(r.status_code for r in responses) == [201, 409]
        conflict = next(r for r in responses if r.status_code == 409)
        assert conflict.json()["error"]["code"] == "slot-taken"
        assert await Appointment.find(Appointment.is_active == True).count() == 1

    async def test_stale_reservation_is_reclaimed(self, client: AsyncClient, make_patient, make_doctor, booking_payload) -> None:
        """A reservation left behind by a booking that never completed does not block the slot."""
        user, _ = await make_patient()
        _, doctor = await make_doctor()
        payload = booking_payload(doctor)

        appointment_date = datetime.fromisoformat(payload["appointmentDate"])
        orphan = AppointmentSlot(
            key=slot_key(str(doctor.id), appointment_date, "10:00"),
            appointment_id=str(ObjectId()),
            created_at=datetime.utcnow() - timedelta(hours=1),
        )
        await orphan.insert()

        response = await client.post(BOOK_URL, json=payload, headers=auth_headers(user))

        assert response.status_code == 201
        slots = await AppointmentSlot.find_all().to_list()
        assert len(slots) == 1
        assert slots[0].appointment_id == response.json()["data"]["id"]

    async def test_fresh_reservation_blocks_slot(self, client: AsyncClient, make_patient, make_doctor, booking_payload) -> None:
        """A reservation still within its claim window belongs to an in-flight booking."""
        user, _ = await make_patient()
        _, doctor = await make_doctor()
        payload = booking_payload(doctor)

        appointment_date = datetime.fromisoformat(payload["appointmentDate"])
        in_flight = AppointmentSlot(
            key=slot_key(str(doctor.id), appointment_date, "10:00"),
            appointment_id=str(ObjectId()),
        )
        await in_flight.insert()

        response = await client.post(BOOK_URL, json=payload, headers=auth_headers(user))

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "slot-taken"
        assert await Appointment.count() == 0

    async def test_aged_reservation_of_moved_appointment_is_reclaimed(
        self, client: AsyncClient, make_patient, make_doctor, booking_payload
    ) -> None:
        """A reservation left over from an abandoned reschedule stops blocking after the claim timeout."""
        first_user, _ = await make_patient("Ann", "First")
        second_user, _ = await make_patient("Bob", "Second")
        _, doctor = await make_doctor()
        booked = await client.post(BOOK_URL, json=booking_payload(doctor), headers=auth_headers(first_user))
        payload = booking_payload(doctor, appointmentTime="11:00")

        leftover = AppointmentSlot(
            key=slot_key(str(doctor.id), datetime.fromisoformat(payload["appointmentDate"]), "11:00"),
            appointment_id=booked.json()["data"]["id"],
            created_at=datetime.utcnow() - timedelta(hours=1),
        )
        await leftover.insert()

        response = await client.post(BOOK_URL, json=payload, headers=auth_headers(second_user))

        assert response.status_code == 201
        assert await AppointmentSlot.count() == 2


class TestStaffCreateAppointment:
    """Staff creating appointments on behalf of patients."""

    async def test_receptionist_creates_for_patient(
        self, client: AsyncClient, receptionist_user, make_patient, make_doctor, booking_payload
    ) -> None:
        _, patient = await make_patient()
        _, doctor = await make_doctor()

        response = await client.post(
            "/api/v1/appointments",
            json=booking_payload(doctor, patientId=str(patient.id), status="confirmed"),
            headers=auth_headers(receptionist_user),
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "CONFIRMED"
        assert data["patient"]["id"] == str(patient.id)

    async def test_unknown_patient(self, client: AsyncClient, admin_user, make_doctor, booking_payload) -> None:
        _, doctor = await make_doctor()

        response = await client.post(
            "/api/v1/appointments",
            json=booking_payload(doctor, patientId=str(ObjectId())),
            headers=auth_headers(admin_user),
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "patient-missing"

    async def test_patient_cannot_use_staff_route(self, client: AsyncClient, make_patient, make_doctor, booking_payload) -> None:
        user, patient = await make_patient()
        _, doctor = await make_doctor()

        response = await client.post(
            "/api/v1/appointments",
            json=booking_payload(doctor, patientId=str(patient.id)),
            headers=auth_headers(user),
        )

        assert response.status_code == 403
