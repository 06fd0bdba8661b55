"""Shared fixtures for caption translator tests."""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from caption_translator.api.main import create_app
from caption_translator.config import Settings
from caption_translator.pipeline import SubtitlePipeline

from fakes import FakeFonts, FakeOCR, FakeRenderer, FakeTranslator, hello_box


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment, writing under tmp_path."""
    return Settings(_env_file=None, work_dir=tmp_path / "work", ocr_throttle_seconds=0)


@pytest.fixture
def fake_ocr() -> FakeOCR:
    return FakeOCR({1: [hello_box()], 2: [hello_box()]})


@pytest.fixture
def fake_translator() -> FakeTranslator:
    return FakeTranslator({"HELLO": "BONJOUR"})


@pytest.fixture
def fake_renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def pipeline(
    settings: Settings,
    fake_ocr: FakeOCR,
    fake_translator: FakeTranslator,
    fake_renderer: FakeRenderer,
) -> SubtitlePipeline:
    """Pipeline wired entirely to fakes."""
    return SubtitlePipeline(
        ocr=fake_ocr,
        renderer=fake_renderer,
        settings=settings,
        translator_factory=lambda language: fake_translator,
        fonts=FakeFonts(),
    )


@pytest.fixture
def app(settings: Settings, pipeline: SubtitlePipeline) -> FastAPI:
    return create_app(settings=settings, pipeline=pipeline)


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client for the API."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
