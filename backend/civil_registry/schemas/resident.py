"""
Civil Registry Backend - Pydantic Request/Response Schemas
===========================================================

What:  Pydantic models defining the API contract and the resident validator.
How:   Every model carries a camelCase alias generator, so the API speaks
       `firstName` while Python code uses `first_name`. Input accepts either
       spelling (`populate_by_name`); responses are serialized by alias.

Validator layering:
    1. REQUIRED_FIELDS presence check on the raw body (service, create only)
    2. ResidentRecord: full schema (types, trimming, enums, blanks)
    3. ResidentUpdate: partial overwrite, every field optional

Enumerations are Literal types and must match what the database stores.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel


# ══════════════════════════════════════════════════════════════════════════
# Enumerations & Field Types
# ══════════════════════════════════════════════════════════════════════════

Gender = Literal["Male", "Female", "Other"]
CivilStatus = Literal["Single", "Married", "Widowed", "Separated", "Divorced"]
ResidentStatus = Literal["Active", "Inactive", "Deceased", "Transferred"]

TrimmedStr = Annotated[str, StringConstraints(strip_whitespace=True)]
RequiredStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

# Checked on the raw body, in this order, before any schema validation
REQUIRED_FIELDS = (
    "firstName",
    "lastName",
    "dateOfBirth",
    "gender",
    "civilStatus",
    "contactNumber",
)

# Keys a client may send but never overwrite (snake_case form)
READ_ONLY_FIELDS = ("id", "resident_id", "created_at", "updated_at")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ══════════════════════════════════════════════════════════════════════════
# Resident Models
# ══════════════════════════════════════════════════════════════════════════


class Address(CamelModel):
    """Structured address; every part is optional."""
    street: Optional[str] = None
    house_number: Optional[str] = None
    barangay: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    zip_code: Optional[str] = None


class ResidentFields(CamelModel):
    """
    Fields a client controls. Unknown keys are ignored, matching a
    document store's strict mode.
    """
    first_name: RequiredStr
    last_name: RequiredStr
    middle_name: Optional[TrimmedStr] = None
    date_of_birth: date
    gender: Gender
    civil_status: CivilStatus
    contact_number: RequiredStr
    email: Optional[TrimmedStr] = None
    address: Optional[Address] = None
    occupation: Optional[TrimmedStr] = None
    monthly_income: Optional[float] = None
    voter_status: bool = False
    registration_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    qr_code: Optional[str] = None
    status: ResidentStatus = "Active"


class ResidentRecord(ResidentFields):
    """
    A complete, persistable resident.

    Used for create (after the identifier is attached), for re-validating
    merged updates, and for each item of a bulk import.
    """
    resident_id: RequiredStr


class ResidentUpdate(CamelModel):
    """
    Partial overwrite. Only keys present in the body are applied
    (`model_dump(exclude_unset=True)`); read-only keys are stripped before
    this model sees the body.
    """
    first_name: Optional[RequiredStr] = None
    last_name: Optional[RequiredStr] = None
    middle_name: Optional[TrimmedStr] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    civil_status: Optional[CivilStatus] = None
    contact_number: Optional[RequiredStr] = None
    email: Optional[TrimmedStr] = None
    address: Optional[Address] = None
    occupation: Optional[TrimmedStr] = None
    monthly_income: Optional[float] = None
    voter_status: Optional[bool] = None
    registration_date: Optional[datetime] = None
    qr_code: Optional[str] = None
    status: Optional[ResidentStatus] = None


class ResidentResponse(ResidentRecord):
    """Full resident as returned by the API and written to export files."""
    id: uuid.UUID = Field(description="Store-assigned primary key")
    created_at: datetime
    updated_at: datetime


# ══════════════════════════════════════════════════════════════════════════
# Response Envelopes
# ══════════════════════════════════════════════════════════════════════════


class ResidentEnvelope(CamelModel):
    success: bool = True
    message: str
    data: ResidentResponse


class ResidentDataEnvelope(CamelModel):
    """GET /residents/{id}: record without a message."""
    success: bool = True
    data: ResidentResponse


class ResidentListEnvelope(CamelModel):
    success: bool = True
    count: int
    data: List[ResidentResponse]


class MessageEnvelope(CamelModel):
    success: bool = True
    message: str


class QRCodeEnvelope(CamelModel):
    success: bool = True
    message: str
    qr_code: str = Field(description="PNG data URI")


class ImportFailure(CamelModel):
    """One rejected import item; `index` is its position in the array."""
    index: int
    resident_id: Optional[str] = None
    error: str


class ImportEnvelope(CamelModel):
    success: bool = True
    message: str
    count: int = Field(description="Number of records inserted")
    failed: List[ImportFailure] = Field(default_factory=list)


class ImportRequest(CamelModel):
    """
    Documents the import body for OpenAPI. The route reads the raw body so
    that a non-array `residents` yields the format error instead of a
    generic schema error.
    """
    residents: List[Dict[str, Any]]


# ══════════════════════════════════════════════════════════════════════════
# Error & Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(CamelModel):
    """
    Error envelope produced by the global exception handlers.

    Example:
        {
            "success": false,
            "message": "Missing required fields",
            "missingFields": {"firstName": false, "gender": true, ...},
            "requestId": "3f2a9c1d"
        }
    """
    success: bool = False
    message: str
    error: Optional[str] = None
    missing_fields: Optional[Dict[str, bool]] = None
    details: Optional[List[Dict[str, Any]]] = None
    request_id: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
