"""QR code rendering for short URLs."""

import base64
from io import BytesIO

import qrcode
from fastapi.concurrency import run_in_threadpool
from qrcode.constants import ERROR_CORRECT_M

__all__ = ["generate_qr_data_url", "render_qr_data_url"]


def render_qr_data_url(data: str) -> str:
    qr = qrcode.QRCode(
        version=None, box_size=10, border=4,
        error_correction=ERROR_CORRECT_M,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buf = BytesIO()
    img.save(buf)
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode()


async def generate_qr_data_url(data: str) -> str:
    return await run_in_threadpool(render_qr_data_url, data)
