from __future__ import annotations

import io
from typing import BinaryIO, Optional

import qrcode
from PIL import Image


def render_png(payload: str) -> bytes:
    """Render ``payload`` as a PNG QR code."""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=2,
    )
    qr.add_data(payload)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def decode_image(stream: BinaryIO) -> Optional[str]:
    """Return the text of the first QR code found in an image, if any."""
    # pyzbar binds the native zbar library on import; only the upload path needs it.
    from pyzbar.pyzbar import decode as pyzbar_decode

    img = Image.open(stream).convert("RGB")
    decoded = pyzbar_decode(img)
    if not decoded:
        return None
    return decoded[0].data.decode("utf-8").strip() or None
