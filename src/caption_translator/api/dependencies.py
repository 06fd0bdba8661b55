"""FastAPI dependencies resolving the per-app services."""

from typing import Annotated

from fastapi import Depends, Request

from caption_translator.api.workers import JobRunner
from caption_translator.config import Settings
from caption_translator.jobs import JobStore
from caption_translator.pipeline import SubtitlePipeline


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> JobStore:
    return request.app.state.store


def get_pipeline(request: Request) -> SubtitlePipeline:
    return request.app.state.pipeline


def get_runner(request: Request) -> JobRunner:
    return request.app.state.runner


AppSettings = Annotated[Settings, Depends(get_app_settings)]
Store = Annotated[JobStore, Depends(get_store)]
Pipeline = Annotated[SubtitlePipeline, Depends(get_pipeline)]
Runner = Annotated[JobRunner, Depends(get_runner)]
