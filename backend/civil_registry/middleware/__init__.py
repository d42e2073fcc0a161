"""
Civil Registry Backend - Middleware Package
============================================

Middleware Chain (request direction):
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    Request ID runs first so the logging middleware and the exception
    handlers can read the ID from request_id_var. On the way back the
    logging middleware sees the final status code and the request ID
    middleware stamps X-Request-ID on the response.
"""
