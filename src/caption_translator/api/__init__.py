"""HTTP API for submitting and tracking subtitle translation jobs."""

from caption_translator.api.main import create_app

__all__ = ["create_app"]
