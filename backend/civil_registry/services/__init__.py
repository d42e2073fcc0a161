"""
Civil Registry Backend - Services Layer
========================================

Service Inventory:
    - ResidentService:     Orchestrates every resident operation
    - ResidentStore:       Async SQLAlchemy access to the residents table
    - QREncoder (abstract) / QRCodeService: payload → PNG data URI
    - BackupService:       Timestamped JSON export files
    - ResidentIdGenerator: Monotonic BR<digits> identifiers

Collaborators are passed into ResidentService at construction, so tests
swap any of them for a mock without patching module globals.
"""
