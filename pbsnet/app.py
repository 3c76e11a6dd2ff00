"""
FastAPI application entry point for the pbsnet API.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pbsnet.config import get_settings
from pbsnet.errors import register_error_handlers
from pbsnet.routes import router


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="pbsnet API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
