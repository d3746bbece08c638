from datetime import datetime, timedelta

from bson import ObjectId
from httpx import AsyncClient

from conftest import auth_headers
from medibook.features.auth.models import Role
from medibook.features.doctors.models import Doctor
from medibook.features.patients.models import Patient
from medibook.features.receptionists.models import Receptionist
from medibook.features.users.profiles import RoleProfileService


def doctor_profile_payload(user_id: str, **overrides) -> dict:
    payload = {
        "userId": user_id,
        "specialization": "Neurology",
        "department": "Neurosciences",
        "qualifications": ["MBBS", "MD"],
        "experience": 12,
        "consultationFee": 3000,
        "licenseNumber": "slmc-12345",
        "licenseExpiry": (datetime.utcnow() + timedelta(days=365)).isoformat(),
        "availability": {"days": ["MON", "WED"], "startTime": "08:00", "endTime": "12:00"},
    }
    payload.update(overrides)
    return payload


def patient_payload(**overrides) -> dict:
    payload = {
        "firstName": "Nimal",
        "lastName": "Perera",
        "email": "nimal.perera@example.com",
        "nic": "199012345678",
        "phone": "+94771234567",
        "dateOfBirth": "1990-05-15",
        "gender": "Male",
        "bloodType": "O+",
        "allergies": ["Penicillin"],
        "medications": [{"name": "Metformin", "dosage": "500mg", "frequency": "Twice daily"}],
        "insurance": {
            "provider": "Ceylinco",
            "policyNumber": "POL-001",
            "validFrom": "2026-01-01",
            "validUntil": "2027-01-01",
        },
    }
    payload.update(overrides)
    return payload


class TestDoctorProfiles:

    async def test_admin_completes_stub(self, client: AsyncClient, admin_user, make_user) -> None:
        user = await make_user(Role.DOCTOR, name="Dr. Stub")
        await RoleProfileService.sync_role_profile(str(user.id), None, Role.DOCTOR)

        response = await client.post(
            "/api/v1/doctors", json=doctor_profile_payload(str(user.id)), headers=auth_headers(admin_user)
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["isStub"] is False
        assert data["name"] == "Dr. Stub"
        assert data["licenseNumber"] == "SLMC-12345"
        assert data["availability"]["startTime"] == "08:00"
        assert await Doctor.find(Doctor.user == str(user.id)).count() == 1

    async def test_complete_profile_conflicts(self, client: AsyncClient, admin_user, make_doctor) -> None:
        user, _ = await make_doctor()

        response = await client.post(
            "/api/v1/doctors", json=doctor_profile_payload(str(user.id)), headers=auth_headers(admin_user)
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "profile-exists"

    async def test_duplicate_license(self, client: AsyncClient, admin_user, make_user, make_doctor) -> None:
        await make_doctor(license_number="SLMC-12345")
        user = await make_user(Role.DOCTOR)

        response = await client.post(
            "/api/v1/doctors", json=doctor_profile_payload(str(user.id)), headers=auth_headers(admin_user)
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "license-taken"

    async def test_unknown_user(self, client: AsyncClient, admin_user) -> None:
        response = await client.post(
            "/api/v1/doctors", json=doctor_profile_payload(str(ObjectId())), headers=auth_headers(admin_user)
        )

        assert response.status_code == 404

    async def test_user_must_be_doctor(self, client: AsyncClient, admin_user, make_user) -> None:
        user = await make_user(Role.PATIENT)

        response = await client.post(
            "/api/v1/doctors", json=doctor_profile_payload(str(user.id)), headers=auth_headers(admin_user)
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "role-mismatch"

    async def test_list_filters_by_specialization(self, client: AsyncClient, make_patient, make_doctor) -> None:
        patient_user, _ = await make_patient()
        await make_doctor(name="Dr. Heart")

        matching = await client.get(
            "/api/v1/doctors", params={"specialization": "cardiology"}, headers=auth_headers(patient_user)
        )
        other = await client.get(
            "/api/v1/doctors", params={"specialization": "Dermatology"}, headers=auth_headers(patient_user)
        )

        assert [d["name"] for d in matching.json()["data"]["doctors"]] == ["Dr. Heart"]
        assert other.json()["data"]["doctors"] == []


class TestReceptionistProfiles:

    async def test_create_normalizes_employee_id(self, client: AsyncClient, admin_user, make_user) -> None:
        user = await make_user(Role.RECEPTIONIST)

        response = await client.post(
            "/api/v1/receptionists",
            json={"userId": str(user.id), "employeeId": "rec-2024-0001", "shift": "MORNING"},
            headers=auth_headers(admin_user),
        )

        assert response.status_code == 201
        assert response.json()["data"]["employeeId"] == "REC-2024-0001"

    async def test_invalid_employee_id(self, client: AsyncClient, admin_user, make_user) -> None:
        user = await make_user(Role.RECEPTIONIST)

        response = await client.post(
            "/api/v1/receptionists",
            json={"userId": str(user.id), "employeeId": "EMP-24-1"},
            headers=auth_headers(admin_user),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid-employee-id"

    async def test_duplicate_employee_id(self, client: AsyncClient, admin_user, make_user) -> None:
        first = await make_user(Role.RECEPTIONIST)
        second = await make_user(Role.RECEPTIONIST)
        await Receptionist(user=str(first.id), employee_id="REC-2024-0001").insert()

        response = await client.post(
            "/api/v1/receptionists",
            json={"userId": str(second.id), "employeeId": "REC-2024-0001"},
            headers=auth_headers(admin_user),
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "employee-id-taken"

    async def test_list_requires_staff(self, client: AsyncClient, receptionist_user, make_doctor) -> None:
        doctor_user, _ = await make_doctor()

        allowed = await client.get("/api/v1/receptionists", headers=auth_headers(receptionist_user))
        denied = await client.get("/api/v1/receptionists", headers=auth_headers(doctor_user))

        assert allowed.status_code == 200
        assert denied.status_code == 403


class TestPatientProfiles:

    async def test_patient_onboards_into_stub(self, client: AsyncClient, make_user) -> None:
        user = await make_user(Role.PATIENT, email="nimal.perera@example.com")
        await RoleProfileService.sync_role_profile(str(user.id), None, Role.PATIENT)

        response = await client.post("/api/v1/patients", json=patient_payload(), headers=auth_headers(user))

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["user"] == str(user.id)
        assert data["createdBy"] == str(user.id)
        assert data["dateOfBirth"] == "1990-05-15"
        assert data["insurance"]["validUntil"] == "2027-01-01"
        assert await Patient.find(Patient.user == str(user.id)).count() == 1

        me = await client.get("/api/v1/patients/me", headers=auth_headers(user))
        assert me.status_code == 200
        assert me.json()["data"]["id"] == data["id"]

    async def test_patient_cannot_onboard_twice(self, client: AsyncClient, make_patient) -> None:
        user, _ = await make_patient()

        response = await client.post("/api/v1/patients", json=patient_payload(), headers=auth_headers(user))

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "profile-exists"

    async def test_staff_registers_patient(self, client: AsyncClient, receptionist_user) -> None:
        response = await client.post(
            "/api/v1/patients", json=patient_payload(), headers=auth_headers(receptionist_user)
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["createdBy"] == str(receptionist_user.id)
        assert data["user"] is None
        assert data["nic"] == "199012345678"

    async def test_email_and_nic_are_unique(self, client: AsyncClient, receptionist_user) -> None:
        headers = auth_headers(receptionist_user)
        await client.post("/api/v1/patients", json=patient_payload(), headers=headers)

        same_email = await client.post(
            "/api/v1/patients", json=patient_payload(email="NIMAL.PERERA@example.com", nic="200011112222"), headers=headers
        )
        same_nic = await client.post(
            "/api/v1/patients", json=patient_payload(email="other@example.com"), headers=headers
        )

        assert same_email.status_code == 409
        assert same_email.json()["error"]["code"] == "email-taken"
        assert same_nic.status_code == 409
        assert same_nic.json()["error"]["code"] == "nic-taken"

    async def test_insurance_window_validated(self, client: AsyncClient, receptionist_user) -> None:
        payload = patient_payload(
            insurance={"provider": "Ceylinco", "policyNumber": "POL-1", "validFrom": "2027-01-01", "validUntil": "2026-01-01"}
        )

        response = await client.post("/api/v1/patients", json=payload, headers=auth_headers(receptionist_user))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation-error"

    async def test_patient_sees_only_self(self, client: AsyncClient, make_patient, make_doctor) -> None:
        owner, own_profile = await make_patient("Ann", "Owner")
        stranger, _ = await make_patient("Sam", "Stranger")
        doctor_user, _ = await make_doctor()
        url = f"/api/v1/patients/{own_profile.id}"

        assert (await client.get(url, headers=auth_headers(owner))).status_code == 200
        assert (await client.get(url, headers=auth_headers(doctor_user))).status_code == 200
        assert (await client.get(url, headers=auth_headers(stranger))).status_code == 403

        edit = await client.put(url, json={"phone": "+94770000000"}, headers=auth_headers(owner))
        assert edit.status_code == 200
        assert edit.json()["data"]["phone"] == "+94770000000"

        doctor_edit = await client.put(url, json={"phone": "+94771111111"}, headers=auth_headers(doctor_user))
        assert doctor_edit.status_code == 403

    async def test_soft_delete(self, client: AsyncClient, admin_user, make_patient) -> None:
        _, patient = await make_patient()
        headers = auth_headers(admin_user)

        deleted = await client.delete(f"/api/v1/patients/{patient.id}", headers=headers)
        assert deleted.status_code == 200

        fetched = await client.get(f"/api/v1/patients/{patient.id}", headers=headers)
        assert fetched.json()["data"]["isActive"] is False

        listed = await client.get("/api/v1/patients", headers=headers)
        assert listed.json()["data"]["patients"] == []

        with_inactive = await client.get("/api/v1/patients", params={"includeInactive": "true"}, headers=headers)
        assert with_inactive.json()["data"]["pagination"]["total"] == 1

    async def test_search(self, client: AsyncClient, admin_user, make_patient) -> None:
        await make_patient("Kamal", "Silva")
        await make_patient("Nimali", "Fernando")

        response = await client.get("/api/v1/patients", params={"search": "silv"}, headers=auth_headers(admin_user))

        assert [p["firstName"] for p in response.json()["data"]["patients"]] == ["Kamal"]
