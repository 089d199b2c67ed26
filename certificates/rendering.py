"""Render certificates to PDF with Pillow."""
from __future__ import annotations

import io
import logging

from django.conf import settings
from PIL import Image, ImageDraw, ImageFont

from .models import Certificate

logger = logging.getLogger(__name__)

WIDTH, HEIGHT = 1754, 1240  # A4 landscape at 150 dpi
PRIMARY_COLOR = (41, 128, 185)
SECONDARY_COLOR = (52, 73, 94)
GOLD_COLOR = (241, 196, 15)


def _load_font(path: str, size: int):
    try:
        return ImageFont.truetype(path, size)
    except OSError:
        logger.warning("Certificate font unavailable, using default", extra={"path": path})
        return ImageFont.load_default()


def render_certificate_pdf(certificate: Certificate) -> bytes:
    image = Image.new("RGB", (WIDTH, HEIGHT), color="white")
    draw = ImageDraw.Draw(image)

    draw.rectangle([50, 50, WIDTH - 50, HEIGHT - 50], outline=PRIMARY_COLOR, width=10)
    draw.rectangle([70, 70, WIDTH - 70, HEIGHT - 70], outline=GOLD_COLOR, width=3)

    title_font = _load_font(settings.CERTIFICATE_BOLD_FONT_PATH, 80)
    name_font = _load_font(settings.CERTIFICATE_BOLD_FONT_PATH, 64)
    text_font = _load_font(settings.CERTIFICATE_FONT_PATH, 36)
    small_font = _load_font(settings.CERTIFICATE_FONT_PATH, 26)

    def centered(text: str, font, y: int, fill) -> None:
        left, _, right, _ = draw.textbbox((0, 0), text, font=font)
        draw.text(((WIDTH - (right - left)) / 2, y), text, fill=fill, font=font)

    completion_date = certificate.issued_at.strftime("%B %d, %Y")
    centered("CERTIFICATE OF COMPLETION", title_font, 170, PRIMARY_COLOR)
    centered("This is to certify that", text_font, 330, SECONDARY_COLOR)
    centered(certificate.student_name or certificate.user.get_username(), name_font, 410, GOLD_COLOR)
    centered("has successfully completed the course", text_font, 540, SECONDARY_COLOR)
    centered(certificate.course_name or certificate.course.title, name_font, 620, PRIMARY_COLOR)

    metadata = certificate.metadata or {}
    if metadata.get("total_possible"):
        centered(
            f"Score: {metadata.get('total_score', 0)} / {metadata['total_possible']}",
            text_font,
            760,
            SECONDARY_COLOR,
        )
    centered(f"Issued on: {completion_date}", small_font, 860, SECONDARY_COLOR)
    centered(f"Verification code: {certificate.verification_code}", small_font, 910, SECONDARY_COLOR)
    centered(f"Certificate ID: {certificate.id}", small_font, 960, SECONDARY_COLOR)
    draw.line([(WIDTH // 2 - 200, 1060), (WIDTH // 2 + 200, 1060)], fill=SECONDARY_COLOR, width=2)
    centered("Authorized Signature", small_font, 1075, SECONDARY_COLOR)

    buffer = io.BytesIO()
    image.save(buffer, format="PDF", resolution=150.0)
    return buffer.getvalue()
