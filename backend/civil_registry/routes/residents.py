"""
Civil Registry Backend - Resident Route Handlers
=================================================

What:  The canonical resident route table.
How:   Each handler reads the request, calls one ResidentService method
       and wraps the result in the response envelope. Errors are raised as
       application exceptions and formatted by the handlers in main.py.

Route Table (prefix /api/residents):
    POST   /               create
    GET    /               list all
    GET    /export         download a JSON backup
    POST   /import         bulk insert from {"residents": [...]}
    GET    /{id}           get one
    PUT    /{id}           partial update
    DELETE /{id}           delete
    GET    /{id}/qrcode    regenerate QR code

    /export is declared before /{id} so it is not captured as an ID.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from civil_registry.database import get_db_session
from civil_registry.schemas.resident import (
    ErrorResponse,
    ImportEnvelope,
    ImportRequest,
    MessageEnvelope,
    QRCodeEnvelope,
    ResidentDataEnvelope,
    ResidentEnvelope,
    ResidentListEnvelope,
)
from civil_registry.services.backup_service import backup_service
from civil_registry.services.identifiers import resident_id_generator
from civil_registry.services.qr_service import qr_service
from civil_registry.services.resident_service import ResidentService
from civil_registry.services.resident_store import ResidentStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/residents", tags=["Residents"])


def get_resident_service(
    db: AsyncSession = Depends(get_db_session),
) -> ResidentService:
    """Builds the service around this request's session."""
    return ResidentService(
        store=ResidentStore(db),
        qr_encoder=qr_service,
        backups=backup_service,
        id_generator=resident_id_generator,
    )


@router.post(
    "",
    status_code=201,
    response_model=ResidentEnvelope,
    responses={
        400: {"description": "Missing fields, validation or store error", "model": ErrorResponse},
    },
    summary="Register a resident",
)
async def create_resident(
    payload: Dict[str, Any] = Body(..., description="Resident fields (camelCase)"),
    service: ResidentService = Depends(get_resident_service),
) -> ResidentEnvelope:
    """
    Generates residentId and qrCode, validates and stores the record.

    Required: firstName, lastName, dateOfBirth, gender, civilStatus, contactNumber.
    """
    logger.debug("Create request with fields: %s", sorted(payload.keys()))
    resident = await service.create_resident(payload)
    return ResidentEnvelope(message="Resident created successfully", data=resident)


@router.get(
    "",
    response_model=ResidentListEnvelope,
    responses={500: {"description": "Server error", "model": ErrorResponse}},
    summary="List every resident",
)
async def list_residents(
    service: ResidentService = Depends(get_resident_service),
) -> ResidentListEnvelope:
    residents = await service.list_residents()
    return ResidentListEnvelope(count=len(residents), data=residents)


@router.get(
    "/export",
    response_class=FileResponse,
    responses={
        200: {"description": "JSON backup file", "content": {"application/json": {}}},
        500: {"description": "Export failed", "model": ErrorResponse},
    },
    summary="Download a JSON backup of all residents",
)
async def export_residents(
    service: ResidentService = Depends(get_resident_service),
) -> FileResponse:
    """
    Writes residents_backup_<timestamp>.json to the backup directory and
    sends it as an attachment. The file is kept on disk.
    """
    path, filename = await service.export_residents()
    return FileResponse(path=path, filename=filename, media_type="application/json")


@router.post(
    "/import",
    response_model=ImportEnvelope,
    responses={
        400: {"description": "`residents` is not an array", "model": ErrorResponse},
        500: {"description": "Import failed", "model": ErrorResponse},
    },
    summary="Bulk insert residents from a backup",
    openapi_extra={
        "requestBody": {
            "content": {
                "application/json": {"schema": ImportRequest.model_json_schema(by_alias=True)}
            }
        }
    },
)
async def import_residents(
    payload: Any = Body(None),
    service: ResidentService = Depends(get_resident_service),
) -> ImportEnvelope:
    """
    Inserts each item independently. Failed items (invalid or duplicate
    residentId) are listed in `failed`; the others are kept.
    """
    count, failures = await service.import_residents(payload)
    return ImportEnvelope(
        message="Residents data imported successfully",
        count=count,
        failed=failures,
    )


@router.get(
    "/{resident_id}",
    response_model=ResidentDataEnvelope,
    responses={
        404: {"description": "Resident not found", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Get a resident by ID",
)
async def get_resident(
    resident_id: str,
    service: ResidentService = Depends(get_resident_service),
) -> ResidentDataEnvelope:
    resident = await service.get_resident(resident_id)
    return ResidentDataEnvelope(data=resident)


@router.put(
    "/{resident_id}",
    response_model=ResidentEnvelope,
    responses={
        400: {"description": "Validation or store error", "model": ErrorResponse},
        404: {"description": "Resident not found", "model": ErrorResponse},
    },
    summary="Update a resident",
)
async def update_resident(
    resident_id: str,
    payload: Dict[str, Any] = Body(...),
    service: ResidentService = Depends(get_resident_service),
) -> ResidentEnvelope:
    """Partial overwrite; residentId cannot be changed."""
    resident = await service.update_resident(resident_id, payload)
    return ResidentEnvelope(message="Resident updated successfully", data=resident)


@router.delete(
    "/{resident_id}",
    response_model=MessageEnvelope,
    responses={
        404: {"description": "Resident not found", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Delete a resident",
)
async def delete_resident(
    resident_id: str,
    service: ResidentService = Depends(get_resident_service),
) -> MessageEnvelope:
    await service.delete_resident(resident_id)
    return MessageEnvelope(message="Resident deleted successfully")


@router.get(
    "/{resident_id}/qrcode",
    response_model=QRCodeEnvelope,
    responses={
        404: {"description": "Resident not found", "model": ErrorResponse},
        500: {"description": "QR generation failed", "model": ErrorResponse},
    },
    summary="Regenerate a resident's QR code",
)
async def generate_qr_code(
    resident_id: str,
    service: ResidentService = Depends(get_resident_service),
) -> QRCodeEnvelope:
    qr_code = await service.regenerate_qr_code(resident_id)
    return QRCodeEnvelope(message="QR code generated successfully", qr_code=qr_code)
