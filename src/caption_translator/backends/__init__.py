"""External collaborators: OCR, translation, fonts and video rendering.

Backends are created from settings:

    from caption_translator.backends import get_ocr_backend

    ocr = get_ocr_backend(settings)
"""

from caption_translator.backends.base import (
    FontAsset,
    FontProvider,
    OCRBackend,
    Renderer,
    TranslationBackend,
)
from caption_translator.config import Settings


def get_ocr_backend(settings: Settings) -> OCRBackend:
    """Google Cloud Vision OCR using the configured service account (or default credentials)."""
    from caption_translator.backends.google_vision import GoogleVisionBackend

    return GoogleVisionBackend(credentials_json=settings.service_account_json or None)


__all__ = [
    "FontAsset",
    "FontProvider",
    "OCRBackend",
    "Renderer",
    "TranslationBackend",
    "get_ocr_backend",
]
