"""Google Cloud Vision API backend for word-level text detection."""

import json

from google.cloud import vision
from google.oauth2 import service_account

from caption_translator.backends.base import OCRBackend
from caption_translator.models import TextBox


class GoogleVisionBackend(OCRBackend):
    """Google Vision API backend using service-account credentials."""

    def __init__(self, credentials_json: str | None = None):
        """Initialize with credentials.

        Args:
            credentials_json: JSON string with service account credentials.
                            Falls back to default credentials (GOOGLE_APPLICATION_CREDENTIALS).
        """
        if credentials_json:
            service_account_info = json.loads(credentials_json)
            credentials = service_account.Credentials.from_service_account_info(
                service_account_info
            )
            self.client = vision.ImageAnnotatorClient(credentials=credentials)
        else:
            self.client = vision.ImageAnnotatorClient()

    def detect(self, image_bytes: bytes, language_hint: str = "") -> list[TextBox]:
        """Run text_detection on one frame.

        Args:
            image_bytes: Encoded frame image
            language_hint: Optional language code hint (e.g., "zh", "en")

        Returns:
            One TextBox per detected word

        Raises:
            RuntimeError: If the API reports an error
        """
        image = vision.Image(content=image_bytes)
        image_context = {"language_hints": [language_hint]} if language_hint else None
        response = self.client.text_detection(image=image, image_context=image_context)

        if response.error.message:
            raise RuntimeError(f"Google Vision API error: {response.error.message}")

        boxes = []
        # The first annotation is the whole-image text block; the rest are words
        for annotation in response.text_annotations[1:]:
            vertices = annotation.bounding_poly.vertices
            if not vertices:
                continue
            x = min(v.x for v in vertices)
            y = min(v.y for v in vertices)
            w = max(v.x for v in vertices) - x
            h = max(v.y for v in vertices) - y
            boxes.append(
                TextBox(
                    text=annotation.description,
                    x=x,
                    y=y,
                    width=w,
                    height=h,
                    font_size=round(h * 0.8),
                )
            )
        return boxes
