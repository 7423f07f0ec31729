"""Dependency wiring for routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from reelfetch.adapters.extractors import PostExtractor
from reelfetch.core.config import Settings
from reelfetch.repositories.memory import InMemoryProgressStore
from reelfetch.services.delivery import MediaDeliveryService
from reelfetch.services.downloads import DownloadService
from reelfetch.services.retention import RetentionSweeper


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> InMemoryProgressStore:
    return request.app.state.store


def get_extractors(request: Request) -> list[PostExtractor]:
    return request.app.state.extractors


def get_sweeper(request: Request) -> RetentionSweeper:
    return request.app.state.sweeper


def get_download_service(
    store: Annotated[InMemoryProgressStore, Depends(get_store)],
    extractors: Annotated[list[PostExtractor], Depends(get_extractors)],
    sweeper: Annotated[RetentionSweeper, Depends(get_sweeper)],
) -> DownloadService:
    return DownloadService(store, extractors, sweeper)


def get_delivery_service(settings: Annotated[Settings, Depends(get_app_settings)]) -> MediaDeliveryService:
    return MediaDeliveryService(settings.output_dir)
