"""QR Code Provisioning for Authenticator Apps

Two ways to put the otpauth:// URI in front of the admin:
- Image URLs from a public QR rendering service (used by the dashboard's
  setup screen)
- Locally rendered PNGs via ``qrcode`` for deployments that must not leak
  the provisioning URI to a third party
"""

import base64
import io
from urllib.parse import quote

import qrcode

from cropify_auth.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_QR_SIZE = 200

_ERROR_CORRECTION = {
    "L": qrcode.constants.ERROR_CORRECT_L,
    "M": qrcode.constants.ERROR_CORRECT_M,
    "Q": qrcode.constants.ERROR_CORRECT_Q,
    "H": qrcode.constants.ERROR_CORRECT_H,
}


def _encode_data(totp_uri: str) -> str:
    if not totp_uri:
        raise ValueError("TOTP URI is required")
    return quote(totp_uri, safe="-_.!~*'()")


def generate_qr_code_url(
    totp_uri: str,
    size: int = DEFAULT_QR_SIZE,
    service: str = "qrserver",
) -> str:
    """Build an image URL that renders ``totp_uri`` as a QR code.

    Args:
        totp_uri: otpauth:// provisioning URI
        size: Edge length in pixels
        service: "qrserver" or "google"; unknown services fall back to qrserver

    Raises:
        ValueError: If the URI is empty
    """
    encoded_uri = _encode_data(totp_uri)

    if service == "google":
        return f"https://chart.googleapis.com/chart?chs={size}x{size}&cht=qr&chl={encoded_uri}"

    return f"https://api.qrserver.com/v1/create-qr-code/?size={size}x{size}&data={encoded_uri}"


def generate_styled_qr_code_url(
    totp_uri: str,
    size: int = DEFAULT_QR_SIZE,
    margin: int = 4,
    error_correction_level: str = "M",
    service: str = "qrserver",
) -> str:
    """QR code URL with margin and error correction options (qrserver only)."""
    encoded_uri = _encode_data(totp_uri)

    if service == "qrserver":
        return (
            f"https://api.qrserver.com/v1/create-qr-code/?size={size}x{size}"
            f"&data={encoded_uri}&margin={margin}&ecc={error_correction_level}"
        )

    return generate_qr_code_url(totp_uri, size, service)


def generate_qr_code_png(
    totp_uri: str,
    box_size: int = 10,
    border: int = 4,
    error_correction_level: str = "L",
) -> bytes:
    """Render ``totp_uri`` to PNG bytes locally.

    A 20-byte secret URI fits version 5-6 QR codes, which at the default box
    size comfortably exceeds 200x200px.
    """
    if not totp_uri:
        raise ValueError("TOTP URI is required")

    qr = qrcode.QRCode(
        version=None,
        error_correction=_ERROR_CORRECTION.get(
            error_correction_level.upper(), qrcode.constants.ERROR_CORRECT_L
        ),
        box_size=box_size,
        border=border,
    )
    qr.add_data(totp_uri)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    png_bytes = buffer.getvalue()

    logger.debug("Rendered QR code", size_bytes=len(png_bytes))

    return png_bytes


def generate_qr_code_data_uri(totp_uri: str, **options) -> str:
    """PNG QR code as a ``data:image/png;base64,...`` URI."""
    png_bytes = generate_qr_code_png(totp_uri, **options)
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode("utf-8")
