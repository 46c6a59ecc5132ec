"""
FastAPI application factory for the wafer detector status API.

Routes:
- /api/status  -> latest DetectionStatus snapshot
- /api/healthz -> liveness summary with warning codes
"""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import api
from .state import StatusBoard


def create_app(status_board: Optional[StatusBoard] = None) -> FastAPI:
    """Create the FastAPI app bound to a status board."""
    app = FastAPI(
        title="Wafer Detector",
        version="0.1.0",
        description="Live wafer presence verification status",
    )
    app.state.status_board = status_board if status_board is not None else StatusBoard()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.include_router(api.router, prefix="/api")
    return app
