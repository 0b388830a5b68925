# src/find_parametric/backend/main.py

"""ASGI entrypoint: ``uvicorn find_parametric.backend.main:app``."""

from __future__ import annotations

from find_parametric.backend.api.app import create_app
from find_parametric.config import settings


app = create_app(init_schema=settings.DEBUG)
