"""
Civil Registry Backend - API Routes Package
============================================

Route Inventory:
    - residents.py:  /api/residents ...   (CRUD, QR code, export, import)
    - health.py:     GET /health          (service health check)

Routes stay thin: read the request, call ResidentService, wrap the result
in the response envelope. Business rules live in services/.
"""
