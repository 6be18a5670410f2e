"""
Tests for Medications API
==========================

Tests medication CRUD, stock, schedule, prescription import and the
caregiver access rules on medication reads.
"""

import pytest
from fastapi import status
from fastapi.testclient import TestClient

import httpx

from tools.prescription_import import prescription_parser


API = "/api/v1/medications"


# ==================== FIXTURES ====================

@pytest.fixture
def medication_create_data():
    """Create payload as the portal sends it"""
    return {
        "name": "Amoxicillin",
        "dosage": "500",
        "dosageUnit": "mg",
        "frequency": {"label": "3x daily", "timesPerDay": 3},
        "totalQuantity": 21,
        "instructions": "Finish the course",
        "startDate": "2026-03-10",
        "endDate": "2026-03-17",
    }


# ==================== AUTH ====================

class TestIdentity:
    """Tests for the identity header"""

    @pytest.mark.api
    def test_missing_header(self, client: TestClient):
        response = client.get(API)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["success"] is False

    @pytest.mark.api
    def test_unknown_user(self, client: TestClient):
        response = client.get(API, headers={"X-User-Id": "9999"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


# ==================== CREATE ====================

class TestCreateMedication:
    """Tests for medication creation endpoint"""

    @pytest.mark.api
    def test_create_success(self, client: TestClient, auth, test_patient, medication_create_data):
        response = client.post(API, json=medication_create_data, headers=auth(test_patient))

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["name"] == "Amoxicillin"
        assert data["frequency"] == "3x daily"
        assert data["timesPerDay"] == 3
        assert data["remainingQuantity"] == 21
        assert data["userId"] == test_patient.id
        assert data["isActive"] is True

    @pytest.mark.api
    def test_plain_string_frequency(self, client: TestClient, auth, test_patient):
        response = client.post(
            API,
            json={"name": "Aspirin", "dosage": "81", "frequency": "once daily", "timesPerDay": 1},
            headers=auth(test_patient)
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["data"]["frequency"] == "once daily"

    @pytest.mark.api
    def test_nested_error_flattened(self, client: TestClient, auth, test_patient, medication_create_data):
        medication_create_data["frequency"] = {"timesPerDay": 0}

        response = client.post(API, json=medication_create_data, headers=auth(test_patient))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        body = response.json()
        assert body["success"] is False
        assert "timesPerDay" in body["errors"]

    @pytest.mark.api
    def test_missing_required_fields(self, client: TestClient, auth, test_patient):
        response = client.post(API, json={"dosage": "5"}, headers=auth(test_patient))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "name" in response.json()["errors"]

    @pytest.mark.api
    def test_end_before_start(self, client: TestClient, auth, test_patient, medication_create_data):
        medication_create_data["endDate"] = "2026-03-01"

        response = client.post(API, json=medication_create_data, headers=auth(test_patient))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "endDate" in response.json()["errors"]


# ==================== READ ====================

class TestReadMedications:
    """Tests for medication reads and caregiver access"""

    @pytest.mark.api
    def test_list_with_pagination(self, client: TestClient, auth, test_patient, test_medication, low_stock_medication):
        response = client.get(API, params={"limit": 1}, headers=auth(test_patient))

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert len(body["data"]) == 1
        assert body["pagination"] == {
            "currentPage": 1,
            "totalPages": 2,
            "totalItems": 2,
            "itemsPerPage": 1,
        }

    @pytest.mark.api
    def test_get_single(self, client: TestClient, auth, test_patient, test_medication):
        response = client.get(f"{API}/{test_medication.id}", headers=auth(test_patient))

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["name"] == "Metformin"

    @pytest.mark.api
    def test_get_other_users_medication(self, client: TestClient, auth, other_patient, test_medication):
        response = client.get(f"{API}/{test_medication.id}", headers=auth(other_patient))

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.api
    def test_verified_caregiver_reads_patient(
        self, client: TestClient, auth, test_caregiver, test_patient, test_medication, verified_link
    ):
        response = client.get(API, params={"patientId": test_patient.id}, headers=auth(test_caregiver))

        assert response.status_code == status.HTTP_200_OK
        assert [m["id"] for m in response.json()["data"]] == [test_medication.id]

    @pytest.mark.api
    def test_pending_caregiver_denied(
        self, client: TestClient, auth, test_caregiver, test_patient, test_medication, pending_link
    ):
        response = client.get(API, params={"patientId": test_patient.id}, headers=auth(test_caregiver))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["success"] is False

    @pytest.mark.api
    def test_capability_revoked(
        self, client: TestClient, db_session, auth, test_caregiver, test_patient, test_medication, verified_link
    ):
        verified_link.permissions = {"viewMedications": False}
        db_session.commit()

        response = client.get(API, params={"patientId": test_patient.id}, headers=auth(test_caregiver))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.api
    def test_admin_reads_any_patient(self, client: TestClient, auth, test_admin, test_patient, test_medication):
        response = client.get(API, params={"patientId": test_patient.id}, headers=auth(test_admin))

        assert response.status_code == status.HTTP_200_OK


# ==================== DERIVED VIEWS ====================

class TestDerivedViews:
    """Tests for refill, stats, upcoming and schedule endpoints"""

    @pytest.mark.api
    def test_refill_needed(self, client: TestClient, auth, test_patient, test_medication, low_stock_medication):
        response = client.get(f"{API}/refill-needed", headers=auth(test_patient))

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["count"] == 1
        assert body["data"][0]["id"] == low_stock_medication.id

    @pytest.mark.api
    def test_stats(self, client: TestClient, auth, test_patient, test_medication, low_stock_medication):
        response = client.get(f"{API}/stats", headers=auth(test_patient))

        assert response.json()["data"] == {"total": 2, "lowStock": 1}

    @pytest.mark.api
    def test_upcoming(self, client: TestClient, auth, test_patient, test_medication):
        response = client.get(f"{API}/upcoming", params={"hours": 24}, headers=auth(test_patient))

        assert response.status_code == status.HTTP_200_OK
        dose = response.json()["data"][0]
        assert dose["medicationId"] == test_medication.id
        assert dose["dosage"] == "500 mg"
        assert dose["isRefillDue"] is False

    @pytest.mark.api
    def test_schedule(self, client: TestClient, auth, test_patient, test_medication):
        response = client.get(
            f"{API}/schedule",
            params={"days": 1, "startDate": "2026-03-10"},
            headers=auth(test_patient)
        )

        assert response.status_code == status.HTTP_200_OK
        events = response.json()["data"]
        assert len(events) == 4
        assert events[0]["id"] == f"{test_medication.id}-2026-03-10-0"
        assert events[0]["title"] == "Take Metformin"
        assert events[0]["extendedProps"]["status"] == "scheduled"


# ==================== WRITE ====================

class TestWriteMedications:
    """Tests for update, delete and refill"""

    @pytest.mark.api
    def test_update(self, client: TestClient, auth, test_patient, test_medication):
        response = client.put(
            f"{API}/{test_medication.id}",
            json={"dosage": "850", "frequency": {"timesPerDay": 3}},
            headers=auth(test_patient)
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["dosage"] == "850"
        assert data["timesPerDay"] == 3
        assert data["frequency"] == "3x daily"

    @pytest.mark.api
    @pytest.mark.parametrize("field", ["name", "dosage", "remainingQuantity"])
    def test_update_rejects_null_required_field(
        self, client: TestClient, auth, test_patient, test_medication, field
    ):
        response = client.put(
            f"{API}/{test_medication.id}", json={field: None}, headers=auth(test_patient)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert field in response.json()["errors"]

    @pytest.mark.api
    def test_caregiver_cannot_update(
        self, client: TestClient, auth, test_caregiver, test_medication, verified_link
    ):
        response = client.put(
            f"{API}/{test_medication.id}", json={"dosage": "1"}, headers=auth(test_caregiver)
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.api
    def test_soft_delete(self, client: TestClient, auth, test_patient, test_medication):
        response = client.delete(f"{API}/{test_medication.id}", headers=auth(test_patient))

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["isActive"] is False

        listing = client.get(API, headers=auth(test_patient)).json()
        assert listing["data"] == []
        inactive = client.get(API, params={"status": "inactive"}, headers=auth(test_patient)).json()
        assert [m["id"] for m in inactive["data"]] == [test_medication.id]

    @pytest.mark.api
    def test_refill(self, client: TestClient, auth, test_patient, low_stock_medication):
        response = client.post(
            f"{API}/{low_stock_medication.id}/refill", json={"quantity": 30}, headers=auth(test_patient)
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["remainingQuantity"] == 44

    @pytest.mark.api
    def test_refill_rejects_zero(self, client: TestClient, auth, test_patient, low_stock_medication):
        response = client.post(
            f"{API}/{low_stock_medication.id}/refill", json={"quantity": 0}, headers=auth(test_patient)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "quantity" in response.json()["errors"]


# ==================== IMPORT ====================

class TestPrescriptionImport:
    """Tests for the PDF import endpoint"""

    @pytest.fixture
    def parser_stub(self, monkeypatch):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": [{
                "drug_name": "Amoxicillin",
                "dose_mg": 500,
                "times_per_day": 3,
                "interval_hours": 8,
                "raw_title": "Amoxicillin 500 mg",
            }]})

        monkeypatch.setattr(prescription_parser, "base_url", "http://parser.test/parse")
        monkeypatch.setattr(prescription_parser, "transport", httpx.MockTransport(handler))

    @pytest.mark.api
    def test_import_pdf(self, client: TestClient, auth, test_patient, parser_stub):
        response = client.post(
            f"{API}/import/pdf",
            files={"file": ("rx.pdf", b"%PDF-1.4 test", "application/pdf")},
            headers=auth(test_patient)
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["count"] == 1
        item = body["data"][0]
        assert item["frequency"] == "3x / day (every 8h)"
        assert item["totalQuantity"] == 30
        assert item["dosageUnit"] == "mg"

    @pytest.mark.api
    def test_rejects_non_pdf(self, client: TestClient, auth, test_patient, parser_stub):
        response = client.post(
            f"{API}/import/pdf",
            files={"file": ("notes.txt", b"hello", "text/plain")},
            headers=auth(test_patient)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "file" in response.json()["errors"]
