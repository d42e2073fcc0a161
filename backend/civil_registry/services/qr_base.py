"""
Civil Registry Backend - QR Encoder Interface
==============================================

What:  Abstract base class for turning a text payload into an
       image-embeddable QR code.
How:   ResidentService depends on this interface; QRCodeService is the
       `qrcode`-backed implementation. Tests substitute a fake.
"""

from abc import ABC, abstractmethod


class QREncoder(ABC):
    """
    Contract for QR encoders.

    Implementations must:
        1. Accept an arbitrary UTF-8 text payload (resident descriptors are JSON)
        2. Return a `data:` URI that an <img> tag can render directly
        3. Raise on failure; callers translate the fault into an API error
    """

    @abstractmethod
    async def to_data_url(self, payload: str) -> str:
        """
        Encode `payload` as a QR code image.

        Returns:
            A data URI such as "data:image/png;base64,iVBORw0..."
        """
        ...
