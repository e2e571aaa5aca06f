# streamz/deps.py
"""FastAPI dependencies handing out the process-wide handles on ``app.state``."""
from __future__ import annotations

from fastapi import Request

from streamz.config import Settings
from streamz.metadata import MetadataStore
from streamz.relay import VideoRelay


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_metadata(request: Request) -> MetadataStore:
    return request.app.state.metadata


def get_storage(request: Request):
    return request.app.state.storage


def get_relay(request: Request) -> VideoRelay:
    return request.app.state.relay
