"""
Civil Registry Backend - Resident Service (Business Logic Orchestrator)
========================================================================

What:  Every resident operation: create, list, get, update, delete,
       QR regeneration, export and import.
How:   Composes a ResidentStore (persistence), a QREncoder, a BackupService
       and a ResidentIdGenerator, all handed in at construction.
Who:   Built per request by `get_resident_service` in routes/residents.py.

Create Flow (POST /api/residents):
    ┌──────────┐    ┌──────────────┐    ┌─────────────┐    ┌──────────┐    ┌──────────┐
    │ Presence │───▶│ Generate ID  │───▶│  QR encode  │───▶│  Schema  │───▶│  Store   │
    │  check   │    │ (BR<digits>) │    │ (data URI)  │    │ validate │    │ (insert) │
    └──────────┘    └──────────────┘    └─────────────┘    └──────────┘    └──────────┘

Error translation:
    Each method lets ValidationError / NotFoundError / FormatError and other
    RegistryError subclasses through untouched and wraps anything else in an
    InfrastructureError carrying the operation's message and the original
    fault's text. Create and update report those as 400, the rest as 500.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.exc import DataError, IntegrityError

from civil_registry.exceptions import (
    FormatError,
    InfrastructureError,
    NotFoundError,
    RegistryError,
    ValidationError,
)
from civil_registry.models.resident import Resident
from civil_registry.schemas.resident import (
    READ_ONLY_FIELDS,
    REQUIRED_FIELDS,
    ImportFailure,
    ResidentRecord,
    ResidentResponse,
    ResidentUpdate,
)
from civil_registry.services.backup_service import BackupService
from civil_registry.services.identifiers import ResidentIdGenerator
from civil_registry.services.qr_base import QREncoder
from civil_registry.services.qr_service import lookup_payload, registration_payload
from civil_registry.services.resident_store import ResidentStore

logger = logging.getLogger(__name__)

# Export files carry these; import lets the store assign fresh ones
STORE_MANAGED_FIELDS = ("id", "created_at", "updated_at")


def _snake(name: str) -> str:
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in name)


def _writable(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys a client may not set, in either spelling."""
    return {k: v for k, v in payload.items() if _snake(k) not in READ_ONLY_FIELDS}


def _parse_key(resident_id: str) -> uuid.UUID:
    """Primary keys are UUIDs; anything else cannot match a record."""
    try:
        return uuid.UUID(str(resident_id))
    except ValueError:
        raise NotFoundError(resource="Resident", resource_id=str(resident_id))


def _schema_details(exc: SchemaValidationError) -> List[Dict[str, Any]]:
    return [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]


def _columns(record: ResidentRecord) -> Dict[str, Any]:
    """Column values for a validated record; address is stored camelCase."""
    values = record.model_dump(exclude={"address"})
    values["address"] = (
        record.address.model_dump(by_alias=True) if record.address is not None else None
    )
    return values


class ResidentService:
    """
    Business logic layer for resident operations.

    The service holds no state of its own beyond its collaborators; a new
    instance is built for every request around that request's session.
    """

    def __init__(
        self,
        store: ResidentStore,
        qr_encoder: QREncoder,
        backups: BackupService,
        id_generator: ResidentIdGenerator,
    ):
        self.store = store
        self.qr_encoder = qr_encoder
        self.backups = backups
        self.id_generator = id_generator

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def missing_fields(payload: Dict[str, Any]) -> Dict[str, bool]:
        """
        Map every required field to True if it is absent or empty.

        Accepts camelCase or snake_case keys, mirroring the schema aliases.
        """
        return {
            field: not payload.get(field, payload.get(_snake(field)))
            for field in REQUIRED_FIELDS
        }

    async def create_resident(self, payload: Dict[str, Any]) -> ResidentResponse:
        """
        Register a new resident.

        Raises:
            ValidationError: Missing required fields, or schema failure (→ 400)
            InfrastructureError: Encoder or store failure (→ 400)
        """
        missing = self.missing_fields(payload)
        if any(missing.values()):
            logger.warning(
                "Create rejected, missing fields: %s",
                [name for name, absent in missing.items() if absent],
            )
            raise ValidationError(
                message="Missing required fields",
                missing_fields=missing,
            )

        try:
            data = _writable(payload)
            resident_id = self.id_generator.next_id()
            data["residentId"] = resident_id

            address = payload.get("address")
            qr_data = registration_payload(
                resident_id,
                str(payload.get("firstName", payload.get("first_name"))).strip(),
                str(payload.get("lastName", payload.get("last_name"))).strip(),
                address if isinstance(address, dict) else None,
            )
            data["qrCode"] = await self.qr_encoder.to_data_url(qr_data)

            try:
                record = ResidentRecord.model_validate(data)
            except SchemaValidationError as e:
                logger.warning("Create rejected by schema: %d error(s)", e.error_count())
                raise ValidationError(
                    message="Validation error",
                    error=str(e),
                    details=_schema_details(e),
                )

            resident = await self.store.add(Resident(**_columns(record)))
            logger.info("Resident created: %s (%s)", resident.resident_id, resident.id)
            return ResidentResponse.model_validate(resident)

        except RegistryError:
            raise
        except Exception as e:
            logger.error("Error creating resident: %s", str(e), exc_info=True)
            raise InfrastructureError(
                message="Error creating resident",
                error=str(e),
                status_code=400,
                context={"error_type": type(e).__name__},
            )

    # ── Read ──────────────────────────────────────────────────────────────

    async def list_residents(self) -> List[ResidentResponse]:
        try:
            residents = await self.store.list_all()
            return [ResidentResponse.model_validate(r) for r in residents]
        except RegistryError:
            raise
        except Exception as e:
            logger.error("Database error listing residents: %s", str(e), exc_info=True)
            raise InfrastructureError(
                message="Error fetching residents",
                error=str(e),
                context={"error_type": type(e).__name__},
            )

    async def _load(self, resident_id: str) -> Resident:
        resident = await self.store.get(_parse_key(resident_id))
        if resident is None:
            raise NotFoundError(resource="Resident", resource_id=resident_id)
        return resident

    async def get_resident(self, resident_id: str) -> ResidentResponse:
        """
        Raises:
            NotFoundError: No resident with this key (→ 404)
            InfrastructureError: Query failed (→ 500)
        """
        try:
            resident = await self._load(resident_id)
            return ResidentResponse.model_validate(resident)
        except RegistryError:
            raise
        except Exception as e:
            logger.error("Database error fetching resident %s: %s", resident_id, str(e))
            raise InfrastructureError(
                message="Error fetching resident",
                error=str(e),
                context={"resident_id": resident_id},
            )

    # ── Update ────────────────────────────────────────────────────────────

    async def update_resident(
        self, resident_id: str, payload: Dict[str, Any]
    ) -> ResidentResponse:
        """
        Apply a partial overwrite and re-validate the merged record.

        residentId and the store-maintained keys are never overwritten.
        Nested `address` is replaced as a whole.

        Raises:
            NotFoundError: No resident with this key (→ 404)
            ValidationError: Merged record fails the schema (→ 400)
            InfrastructureError: Store failure (→ 400)
        """
        try:
            resident = await self._load(resident_id)

            data = _writable(payload)
            try:
                changes = ResidentUpdate.model_validate(data).model_dump(exclude_unset=True)
                current = ResidentRecord.model_validate(resident).model_dump()
                merged = ResidentRecord.model_validate({**current, **changes})
            except SchemaValidationError as e:
                raise ValidationError(
                    message="Error updating resident",
                    error=str(e),
                    details=_schema_details(e),
                )

            columns = _columns(merged)
            for field in changes:
                setattr(resident, field, columns[field])

            resident = await self.store.save(resident)
            logger.info("Resident updated: %s (%d field(s))", resident.resident_id, len(changes))
            return ResidentResponse.model_validate(resident)

        except RegistryError:
            raise
        except Exception as e:
            logger.error("Error updating resident %s: %s", resident_id, str(e), exc_info=True)
            raise InfrastructureError(
                message="Error updating resident",
                error=str(e),
                status_code=400,
                context={"resident_id": resident_id},
            )

    # ── Delete ────────────────────────────────────────────────────────────

    async def delete_resident(self, resident_id: str) -> None:
        try:
            deleted = await self.store.delete(_parse_key(resident_id))
            if not deleted:
                raise NotFoundError(resource="Resident", resource_id=resident_id)
            logger.info("Resident deleted: %s", resident_id)
        except RegistryError:
            raise
        except Exception as e:
            logger.error("Error deleting resident %s: %s", resident_id, str(e))
            raise InfrastructureError(
                message="Error deleting resident",
                error=str(e),
                context={"resident_id": resident_id},
            )

    # ── QR Code ───────────────────────────────────────────────────────────

    async def regenerate_qr_code(self, resident_id: str) -> str:
        """
        Re-encode the resident's lookup descriptor and persist it.

        Returns:
            The new PNG data URI.
        """
        try:
            resident = await self._load(resident_id)
            qr_data = lookup_payload(
                resident.resident_id,
                resident.first_name,
                resident.last_name,
                resident.address,
                resident.contact_number,
            )
            resident.qr_code = await self.qr_encoder.to_data_url(qr_data)
            await self.store.save(resident)
            logger.info("QR code regenerated for %s", resident.resident_id)
            return resident.qr_code
        except RegistryError:
            raise
        except Exception as e:
            logger.error("Error generating QR code for %s: %s", resident_id, str(e), exc_info=True)
            raise InfrastructureError(
                message="Error generating QR code",
                error=str(e),
                context={"resident_id": resident_id},
            )

    # ── Export / Import ───────────────────────────────────────────────────

    async def export_residents(self) -> Tuple[str, str]:
        """
        Write every record to a new backup file.

        Returns:
            Tuple of (absolute_path, download_filename).
        """
        try:
            residents = await self.store.list_all()
            records = [
                ResidentResponse.model_validate(r).model_dump(mode="json", by_alias=True)
                for r in residents
            ]
            path, filename = await self.backups.write_export(records)
            return str(path), filename
        except RegistryError:
            raise
        except Exception as e:
            logger.error("Error exporting residents: %s", str(e), exc_info=True)
            raise InfrastructureError(
                message="Error exporting residents data",
                error=str(e),
                context={"error_type": type(e).__name__},
            )

    async def import_residents(self, payload: Any) -> Tuple[int, List[ImportFailure]]:
        """
        Insert every item of `payload["residents"]` independently.

        Items are validated against the full schema (residentId included)
        and inserted one SAVEPOINT at a time. Invalid items and unique-index
        violations are recorded and skipped; the rest still go in. Existing
        records are neither cleared nor de-duplicated.

        Returns:
            Tuple of (inserted_count, failures).

        Raises:
            FormatError: `residents` is not an array (→ 400)
            InfrastructureError: A non-constraint store failure (→ 500)
        """
        residents = payload.get("residents") if isinstance(payload, dict) else None
        if not isinstance(residents, list):
            raise FormatError(message="Invalid data format. Expected an array of residents.")

        inserted = 0
        failures: List[ImportFailure] = []
        try:
            for index, item in enumerate(residents):
                item_id: Optional[str] = None
                if isinstance(item, dict):
                    item_id = item.get("residentId", item.get("resident_id"))
                    item = {k: v for k, v in item.items() if _snake(k) not in STORE_MANAGED_FIELDS}
                try:
                    record = ResidentRecord.model_validate(item)
                    await self.store.insert_isolated(_columns(record))
                    inserted += 1
                except SchemaValidationError as e:
                    failures.append(ImportFailure(
                        index=index,
                        resident_id=str(item_id) if item_id is not None else None,
                        error="; ".join(
                            f"{d['field']}: {d['message']}" for d in _schema_details(e)
                        ),
                    ))
                except (IntegrityError, DataError) as e:
                    failures.append(ImportFailure(
                        index=index,
                        resident_id=str(item_id) if item_id is not None else None,
                        error=str(e.orig),
                    ))
        except RegistryError:
            raise
        except Exception as e:
            logger.error("Error importing residents: %s", str(e), exc_info=True)
            raise InfrastructureError(
                message="Error importing residents data",
                error=str(e),
                context={"inserted_before_failure": inserted},
            )

        logger.info(
            "Import finished: %d inserted, %d failed of %d",
            inserted, len(failures), len(residents),
        )
        return inserted, failures
