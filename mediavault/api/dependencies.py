"""
FastAPI dependencies.

create_app() stores the config, media library and job scheduler on
``app.state``; routes receive them through ``Depends``.
"""

from fastapi import Request

from mediavault.core.config import Config
from mediavault.core.jobs import JobScheduler
from mediavault.media.library import MediaLibrary


def get_config(request: Request) -> Config:
    return request.app.state.config


def get_scheduler(request: Request) -> JobScheduler:
    return request.app.state.scheduler


def get_library(request: Request) -> MediaLibrary:
    return request.app.state.library
