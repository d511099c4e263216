"""
QR code rendering for TOTP provisioning URIs.
"""
import base64
import io
import logging

import qrcode

from .errors import QrGenerationError
from .interfaces import QrRenderer

logger = logging.getLogger(__name__)


class PngQrRenderer(QrRenderer):
    """Renders otpauth:// URIs as PNG images."""

    mime_type = "image/png"

    def __init__(self, box_size: int = 10, border: int = 4):
        self.box_size = box_size
        self.border = border

    def render(self, uri: str) -> bytes:
        """
        Generate a QR code image for the provisioning URI.

        Args:
            uri: otpauth:// provisioning URI.

        Returns:
            PNG image bytes.
        """
        if not uri:
            raise QrGenerationError("Cannot render an empty provisioning URI")

        try:
            qr = qrcode.QRCode(
                version=None,
                error_correction=qrcode.constants.ERROR_CORRECT_L,
                box_size=self.box_size,
                border=self.border,
            )
            qr.add_data(uri)
            qr.make(fit=True)

            img = qr.make_image(fill_color="black", back_color="white")

            buffer = io.BytesIO()
            img.save(buffer, format='PNG')
            return buffer.getvalue()
        except Exception as e:
            logger.error(f"Failed to generate QR code: {e}")
            raise QrGenerationError("Failed to generate QR code") from e


def to_data_uri(image: bytes, mime_type: str = "image/png") -> str:
    """
    Encode image bytes for embedding in HTML.

    Returns:
        Data URI such as "data:image/png;base64,iVBOR...".
    """
    b64 = base64.b64encode(image).decode('utf-8')
    return f"data:{mime_type};base64,{b64}"
