"""
Civil Registry Backend - Resident Service Unit Tests
=====================================================

What:  Tests for ResidentService business logic.
How:   Uses a mocked ResidentStore and a fake QR encoder (no real DB or
       image rendering).

What we test:
    ✅ Missing required fields are flagged exactly, nothing is stored
    ✅ Create attaches a BR identifier and a QR data URI
    ✅ Enum and blank-value failures are rejected before the store
    ✅ Get / update / delete / QR on unknown or malformed IDs → NotFoundError
    ✅ Update never changes residentId
    ✅ Regenerated QR payload carries the lookup fields
    ✅ Import shape check and per-item failure reporting
    ✅ Store faults become InfrastructureError with the operation's message
"""

import json
import re
import uuid

import pytest
from sqlalchemy.exc import IntegrityError

from civil_registry.exceptions import (
    FormatError,
    InfrastructureError,
    NotFoundError,
    ValidationError,
)
from civil_registry.services.resident_service import ResidentService

RESIDENT_ID_PATTERN = re.compile(r"^BR\d{20}$")


class TestMissingFields:

    def test_all_present(self, sample_payload):
        missing = ResidentService.missing_fields(sample_payload)
        assert not any(missing.values())
        assert list(missing) == [
            "firstName", "lastName", "dateOfBirth", "gender", "civilStatus", "contactNumber",
        ]

    def test_flags_exactly_the_absent_fields(self, sample_payload):
        del sample_payload["gender"]
        sample_payload["contactNumber"] = ""

        missing = ResidentService.missing_fields(sample_payload)

        assert missing["gender"] is True
        assert missing["contactNumber"] is True
        assert missing["firstName"] is False
        assert sum(missing.values()) == 2

    def test_accepts_snake_case_keys(self):
        payload = {
            "first_name": "Ana",
            "last_name": "Cruz",
            "date_of_birth": "1990-05-14",
            "gender": "Female",
            "civil_status": "Single",
            "contact_number": "0917",
        }
        assert not any(ResidentService.missing_fields(payload).values())


class TestCreateResident:

    @pytest.mark.asyncio
    async def test_create_success(self, resident_service, mock_store, fake_qr, sample_payload):
        result = await resident_service.create_resident(sample_payload)

        assert RESIDENT_ID_PATTERN.match(result.resident_id)
        assert result.qr_code == fake_qr.data_uri
        assert result.status == "Active"
        assert result.voter_status is False
        assert result.address.barangay == "San Isidro"
        mock_store.add.assert_awaited_once()

        descriptor = json.loads(fake_qr.payloads[0])
        assert descriptor == {
            "residentId": result.resident_id,
            "name": "Ana Cruz",
            "barangay": "San Isidro",
        }

    @pytest.mark.asyncio
    async def test_create_without_address_encodes_empty_barangay(
        self, resident_service, fake_qr, sample_payload
    ):
        del sample_payload["address"]
        await resident_service.create_resident(sample_payload)
        assert json.loads(fake_qr.payloads[0])["barangay"] == ""

    @pytest.mark.asyncio
    async def test_client_resident_id_is_ignored(self, resident_service, sample_payload):
        sample_payload["residentId"] = "BR-CHOSEN-BY-CLIENT"
        result = await resident_service.create_resident(sample_payload)
        assert result.resident_id != "BR-CHOSEN-BY-CLIENT"
        assert RESIDENT_ID_PATTERN.match(result.resident_id)

    @pytest.mark.asyncio
    async def test_identifiers_differ_between_creates(self, resident_service, sample_payload):
        first = await resident_service.create_resident(dict(sample_payload))
        second = await resident_service.create_resident(dict(sample_payload))
        assert first.resident_id != second.resident_id

    @pytest.mark.asyncio
    async def test_missing_fields_not_persisted(self, resident_service, mock_store, fake_qr):
        with pytest.raises(ValidationError) as exc_info:
            await resident_service.create_resident({"firstName": "Ana"})

        assert exc_info.value.message == "Missing required fields"
        assert exc_info.value.missing_fields["firstName"] is False
        assert exc_info.value.missing_fields["lastName"] is True
        mock_store.add.assert_not_awaited()
        assert fake_qr.payloads == []

    @pytest.mark.asyncio
    async def test_invalid_gender_rejected(self, resident_service, mock_store, sample_payload):
        sample_payload["gender"] = "Unknown"

        with pytest.raises(ValidationError) as exc_info:
            await resident_service.create_resident(sample_payload)

        assert exc_info.value.message == "Validation error"
        assert any(d["field"] == "gender" for d in exc_info.value.details)
        mock_store.add.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_whitespace_only_name_rejected(self, resident_service, sample_payload):
        sample_payload["lastName"] = "   "
        with pytest.raises(ValidationError):
            await resident_service.create_resident(sample_payload)

    @pytest.mark.asyncio
    async def test_store_failure_reported_as_400(self, resident_service, mock_store, sample_payload):
        mock_store.add.side_effect = RuntimeError("connection reset")

        with pytest.raises(InfrastructureError) as exc_info:
            await resident_service.create_resident(sample_payload)

        assert exc_info.value.message == "Error creating resident"
        assert exc_info.value.error == "connection reset"
        assert exc_info.value.status_code == 400


class TestReadResident:

    @pytest.mark.asyncio
    async def test_list_returns_every_row(self, resident_service, mock_store, make_resident):
        mock_store.list_all.return_value = [make_resident(), make_resident(resident_id="BR2")]
        result = await resident_service.list_residents()
        assert [r.resident_id for r in result] == ["BR17000000000000070000", "BR2"]

    @pytest.mark.asyncio
    async def test_list_failure_reported_as_500(self, resident_service, mock_store):
        mock_store.list_all.side_effect = RuntimeError("db down")
        with pytest.raises(InfrastructureError) as exc_info:
            await resident_service.list_residents()
        assert exc_info.value.message == "Error fetching residents"
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_get_found(self, resident_service, mock_store, make_resident):
        resident = make_resident()
        mock_store.get.return_value = resident

        result = await resident_service.get_resident(str(resident.id))

        assert result.id == resident.id
        assert result.first_name == "Ana"
        mock_store.get.assert_awaited_once_with(resident.id)

    @pytest.mark.asyncio
    async def test_get_not_found(self, resident_service, mock_store):
        mock_store.get.return_value = None
        with pytest.raises(NotFoundError, match="Resident not found"):
            await resident_service.get_resident(str(uuid.uuid4()))

    @pytest.mark.asyncio
    async def test_get_malformed_id_is_not_found(self, resident_service, mock_store):
        with pytest.raises(NotFoundError):
            await resident_service.get_resident("not-a-uuid")
        mock_store.get.assert_not_awaited()


class TestUpdateResident:

    @pytest.mark.asyncio
    async def test_partial_update(self, resident_service, mock_store, make_resident):
        resident = make_resident()
        mock_store.get.return_value = resident

        result = await resident_service.update_resident(
            str(resident.id), {"civilStatus": "Married", "occupation": "Teacher"}
        )

        assert result.civil_status == "Married"
        assert result.occupation == "Teacher"
        assert result.first_name == "Ana"
        mock_store.save.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_resident_id_unchanged(self, resident_service, mock_store, make_resident):
        resident = make_resident()
        mock_store.get.return_value = resident

        result = await resident_service.update_resident(
            str(resident.id), {"residentId": "BR999", "resident_id": "BR998", "firstName": "Anna"}
        )

        assert result.resident_id == "BR17000000000000070000"
        assert result.first_name == "Anna"

    @pytest.mark.asyncio
    async def test_address_replaced_as_a_whole(self, resident_service, mock_store, make_resident):
        resident = make_resident()
        mock_store.get.return_value = resident

        await resident_service.update_resident(str(resident.id), {"address": {"city": "Manila"}})

        assert resident.address["city"] == "Manila"
        assert resident.address["barangay"] is None

    @pytest.mark.asyncio
    async def test_invalid_status_rejected(self, resident_service, mock_store, make_resident):
        resident = make_resident()
        mock_store.get.return_value = resident

        with pytest.raises(ValidationError) as exc_info:
            await resident_service.update_resident(str(resident.id), {"status": "Missing"})

        assert exc_info.value.message == "Error updating resident"
        assert resident.status == "Active"
        mock_store.save.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_clearing_required_field_rejected(self, resident_service, mock_store, make_resident):
        resident = make_resident()
        mock_store.get.return_value = resident

        with pytest.raises(ValidationError):
            await resident_service.update_resident(str(resident.id), {"firstName": None})

    @pytest.mark.asyncio
    async def test_update_not_found(self, resident_service, mock_store):
        mock_store.get.return_value = None
        with pytest.raises(NotFoundError):
            await resident_service.update_resident(str(uuid.uuid4()), {"occupation": "Farmer"})

    @pytest.mark.asyncio
    async def test_update_malformed_id(self, resident_service):
        with pytest.raises(NotFoundError):
            await resident_service.update_resident("123", {"occupation": "Farmer"})


class TestDeleteResident:

    @pytest.mark.asyncio
    async def test_delete_success(self, resident_service, mock_store):
        key = uuid.uuid4()
        mock_store.delete.return_value = True
        await resident_service.delete_resident(str(key))
        mock_store.delete.assert_awaited_once_with(key)

    @pytest.mark.asyncio
    async def test_delete_twice(self, resident_service, mock_store):
        key = str(uuid.uuid4())
        mock_store.delete.side_effect = [True, False]

        await resident_service.delete_resident(key)
        with pytest.raises(NotFoundError):
            await resident_service.delete_resident(key)

    @pytest.mark.asyncio
    async def test_delete_failure_reported_as_500(self, resident_service, mock_store):
        mock_store.delete.side_effect = RuntimeError("locked")
        with pytest.raises(InfrastructureError) as exc_info:
            await resident_service.delete_resident(str(uuid.uuid4()))
        assert exc_info.value.message == "Error deleting resident"
        assert exc_info.value.status_code == 500


class TestRegenerateQRCode:

    @pytest.mark.asyncio
    async def test_lookup_payload_fields(self, resident_service, mock_store, fake_qr, make_resident):
        resident = make_resident(qr_code=None)
        mock_store.get.return_value = resident

        qr_code = await resident_service.regenerate_qr_code(str(resident.id))

        assert qr_code == fake_qr.data_uri
        assert resident.qr_code == fake_qr.data_uri
        descriptor = json.loads(fake_qr.payloads[0])
        assert descriptor["residentId"] == resident.resident_id
        assert descriptor["name"] == "Ana Cruz"
        assert descriptor["address"]["barangay"] == "San Isidro"
        assert descriptor["contactNumber"] == "09171234567"
        mock_store.save.assert_awaited_once_with(resident)

    @pytest.mark.asyncio
    async def test_regenerate_not_found(self, resident_service, mock_store, fake_qr):
        mock_store.get.return_value = None
        with pytest.raises(NotFoundError):
            await resident_service.regenerate_qr_code(str(uuid.uuid4()))
        assert fake_qr.payloads == []

    @pytest.mark.asyncio
    async def test_encoder_failure(self, resident_service, mock_store, make_resident):
        mock_store.get.return_value = make_resident()

        async def broken(payload):
            raise RuntimeError("payload too large")

        resident_service.qr_encoder.to_data_url = broken

        with pytest.raises(InfrastructureError) as exc_info:
            await resident_service.regenerate_qr_code(str(uuid.uuid4()))
        assert exc_info.value.message == "Error generating QR code"


class TestExportResidents:

    @pytest.mark.asyncio
    async def test_export_writes_camel_case_records(
        self, resident_service, mock_store, make_resident, backup_dir
    ):
        resident = make_resident()
        mock_store.list_all.return_value = [resident]

        path, filename = await resident_service.export_residents()

        assert filename.startswith("residents_backup_")
        assert filename.endswith(".json")
        with open(path, encoding="utf-8") as f:
            records = json.load(f)
        assert len(records) == 1
        assert records[0]["residentId"] == resident.resident_id
        assert records[0]["id"] == str(resident.id)
        assert records[0]["dateOfBirth"] == "1990-05-14"
        assert records[0]["address"]["barangay"] == "San Isidro"

    @pytest.mark.asyncio
    async def test_export_empty_store(self, resident_service, mock_store):
        mock_store.list_all.return_value = []
        path, _ = await resident_service.export_residents()
        with open(path, encoding="utf-8") as f:
            assert json.load(f) == []


class TestImportResidents:

    def _record(self, resident_id, **overrides):
        record = {
            "residentId": resident_id,
            "firstName": "Ana",
            "lastName": "Cruz",
            "dateOfBirth": "1990-05-14",
            "gender": "Female",
            "civilStatus": "Single",
            "contactNumber": "09171234567",
        }
        record.update(overrides)
        return record

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"residents": "not-an-array"},
        {"residents": {"residentId": "BR1"}},
        {},
        ["BR1"],
    ])
    async def test_rejects_non_array(self, resident_service, mock_store, payload):
        with pytest.raises(FormatError) as exc_info:
            await resident_service.import_residents(payload)
        assert exc_info.value.message == "Invalid data format. Expected an array of residents."
        mock_store.insert_isolated.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_array(self, resident_service):
        count, failures = await resident_service.import_residents({"residents": []})
        assert count == 0
        assert failures == []

    @pytest.mark.asyncio
    async def test_store_managed_fields_dropped(self, resident_service, mock_store):
        item = self._record("BR1", id=str(uuid.uuid4()), createdAt="2024-01-01T00:00:00Z")

        count, _ = await resident_service.import_residents({"residents": [item]})

        assert count == 1
        values = mock_store.insert_isolated.await_args.args[0]
        assert values["resident_id"] == "BR1"
        assert "id" not in values
        assert "created_at" not in values

    @pytest.mark.asyncio
    async def test_partial_failures_reported(self, resident_service, mock_store):
        duplicate = IntegrityError(
            "INSERT INTO residents", {}, Exception("UNIQUE constraint failed: residents.resident_id")
        )
        mock_store.insert_isolated.side_effect = [None, duplicate, None]

        payload = {"residents": [
            self._record("BR1"),
            self._record("BR2"),
            self._record("BR3", gender="Unknown"),
            self._record("BR4"),
        ]}
        count, failures = await resident_service.import_residents(payload)

        assert count == 2
        assert [(f.index, f.resident_id) for f in failures] == [(1, "BR2"), (2, "BR3")]
        assert "UNIQUE constraint failed" in failures[0].error
        assert "gender" in failures[1].error

    @pytest.mark.asyncio
    async def test_item_without_resident_id_fails(self, resident_service):
        item = self._record("BR1")
        del item["residentId"]

        count, failures = await resident_service.import_residents({"residents": [item]})

        assert count == 0
        assert failures[0].resident_id is None
        assert "residentId" in failures[0].error

    @pytest.mark.asyncio
    async def test_unexpected_store_failure_aborts(self, resident_service, mock_store):
        mock_store.insert_isolated.side_effect = RuntimeError("disk full")
        with pytest.raises(InfrastructureError) as exc_info:
            await resident_service.import_residents({"residents": [self._record("BR1")]})
        assert exc_info.value.message == "Error importing residents data"
