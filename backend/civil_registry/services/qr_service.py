"""
Civil Registry Backend - QR Code Service
=========================================

What:  Builds the JSON descriptors embedded in resident QR codes and renders
       them to PNG data URIs with the `qrcode` library.
Who:   Called by ResidentService on create and on QR regeneration.

Descriptors:
    On registration (compact, printed on the first ID card):
        {"residentId": "BR...", "name": "Ana Cruz", "barangay": "San Isidro"}

    On regeneration (used for lookups at the counter):
        {"residentId": "BR...", "name": "Ana Cruz",
         "address": {...}, "contactNumber": "09171234567"}

    The two shapes differ on purpose; cards issued before a regeneration
    keep decoding to the compact form.

Rendering:
    qrcode + Pillow are synchronous and CPU-bound, so rendering runs in a
    worker thread via asyncio.to_thread.
"""

import asyncio
import base64
import io
import json
import logging
from typing import Any, Dict, Optional

import qrcode
from qrcode.constants import (
    ERROR_CORRECT_H,
    ERROR_CORRECT_L,
    ERROR_CORRECT_M,
    ERROR_CORRECT_Q,
)

from civil_registry.config import settings
from civil_registry.services.qr_base import QREncoder

logger = logging.getLogger(__name__)

ERROR_CORRECTION_LEVELS = {
    "L": ERROR_CORRECT_L,
    "M": ERROR_CORRECT_M,
    "Q": ERROR_CORRECT_Q,
    "H": ERROR_CORRECT_H,
}

DATA_URI_PREFIX = "data:image/png;base64,"


# ── Descriptor Builders ───────────────────────────────────────────────────

def full_name(first_name: str, last_name: str) -> str:
    return f"{first_name} {last_name}"


def registration_payload(
    resident_id: str,
    first_name: str,
    last_name: str,
    address: Optional[Dict[str, Any]] = None,
) -> str:
    """Descriptor encoded when a resident is first registered."""
    barangay = (address or {}).get("barangay") or ""
    return json.dumps({
        "residentId": resident_id,
        "name": full_name(first_name, last_name),
        "barangay": barangay,
    })


def lookup_payload(
    resident_id: str,
    first_name: str,
    last_name: str,
    address: Optional[Dict[str, Any]],
    contact_number: str,
) -> str:
    """Descriptor encoded when a resident's QR code is regenerated."""
    return json.dumps({
        "residentId": resident_id,
        "name": full_name(first_name, last_name),
        "address": address,
        "contactNumber": contact_number,
    })


# ── Encoder ───────────────────────────────────────────────────────────────

class QRCodeService(QREncoder):
    """
    `qrcode`-backed encoder producing PNG data URIs.

    Configuration (from settings):
        qr_error_correction: L, M, Q or H
        qr_box_size:         pixels per module
        qr_border:           quiet-zone width in modules (4 or more for reliable scanning)
    """

    def __init__(
        self,
        error_correction: Optional[str] = None,
        box_size: Optional[int] = None,
        border: Optional[int] = None,
    ):
        level = (error_correction or settings.qr_error_correction).upper()
        self.error_correction = ERROR_CORRECTION_LEVELS[level]
        self.box_size = box_size if box_size is not None else settings.qr_box_size
        self.border = border if border is not None else settings.qr_border

    def render_png(self, payload: str) -> bytes:
        """Synchronously render `payload` to PNG bytes."""
        code = qrcode.QRCode(
            version=None,  # smallest version that fits
            error_correction=self.error_correction,
            box_size=self.box_size,
            border=self.border,
        )
        code.add_data(payload)
        code.make(fit=True)
        image = code.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        image.save(buffer)
        return buffer.getvalue()

    async def to_data_url(self, payload: str) -> str:
        png = await asyncio.to_thread(self.render_png, payload)
        logger.debug("Rendered QR code: %d payload chars, %d PNG bytes", len(payload), len(png))
        return DATA_URI_PREFIX + base64.b64encode(png).decode("ascii")


qr_service = QRCodeService()
