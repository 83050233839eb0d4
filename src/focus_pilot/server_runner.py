"""Helpers to launch the local focus engine service."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import uvicorn

from .config import EngineSettings
from .engine import FocusEngine
from .paths import get_db_path
from .webapp import create_app


def run_server(
    *,
    host: str = "127.0.0.1",
    port: int = 8765,
    db_path: Optional[Path] = None,
    settings: Optional[EngineSettings] = None,
    log_level: str = "info",
) -> None:
    """Start the FastAPI service that hosts the focus engine."""
    engine = FocusEngine(
        Path(db_path or get_db_path()),
        settings or EngineSettings(),
        dashboard_url=f"http://{host}:{port}",
    )
    app = create_app(engine=engine)

    logging.getLogger("uvicorn.error").setLevel(log_level.upper())
    uvicorn.run(app, host=host, port=port, log_level=log_level)
