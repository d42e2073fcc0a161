"""
Civil Registry Backend - Application Package
=============================================

What:  Resident record management API for a local civil registry.
How:   FastAPI routes on top of a service layer, async SQLAlchemy persistence
       and a QR code encoder.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │  Services (Resident, QR, Backups)   │  ← Orchestration, validation
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Routes translate HTTP into service calls and service results into the
    response envelope. Services never see a Request object, so they are
    tested directly with a mocked store.
"""

__version__ = "1.0.0"
