"""
FastAPI app for the shelf service.

Responsibilities:
- On startup: scan the PDF root and build any missing cover, one PDF at a
  time, before the server accepts traffic.
- Expose GET /api/pdfs (the catalog, rebuilt per request) and /health.
- Serve the PDFs (/pdfs), the covers (/covers) and the front-end shell (/).
- Track connected viewers over Socket.IO (see presence.py).

Run with `python -m app` or `uvicorn app.main:asgi` (asgi wraps the FastAPI
app with the Socket.IO endpoint).
"""

import asyncio
import logging
import os
from typing import List, Optional

import socketio
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from common.config import Settings, ensure_dirs, settings as default_settings
from .catalog import build_catalog
from .covers import CoverBuilder, CoverOptions, CoverQueue, Runner, run_command
from .models import BatchSummary, CatalogItem, HealthResponse
from .presence import PresenceTracker
from .scanner import scan_pdfs

logger = logging.getLogger("shelf")


def cover_options(cfg: Settings) -> CoverOptions:
    return CoverOptions(
        resize_width=cfg.cover_width,
        jpeg_quality=cfg.cover_quality,
        pdftoppm_bin=cfg.pdftoppm_bin,
        convert_bin=cfg.convert_bin,
    )


async def build_missing_covers(cfg: Settings, runner: Runner = run_command) -> BatchSummary:
    """
    Startup pass: scan once and make sure every PDF has a cover.
    A scan error is fatal (re-raised); cover errors are logged and skipped.
    """
    ensure_dirs(cfg.pdf_dir, cfg.covers_dir)
    try:
        entries = await asyncio.to_thread(scan_pdfs, cfg.pdf_dir)
    except OSError:
        logger.exception("Unable to scan PDF root %s", cfg.pdf_dir)
        raise

    logger.info("Found %s PDFs under %s", len(entries), cfg.pdf_dir)
    queue = CoverQueue(CoverBuilder(cover_options(cfg), runner=runner), workers=cfg.cover_workers)
    return await queue.run(entries, cfg.covers_dir)


def create_app(cfg: Optional[Settings] = None, runner: Runner = run_command) -> FastAPI:
    cfg = cfg or default_settings

    app = FastAPI(title="PDF Shelf")
    sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins="*")
    presence = PresenceTracker(sio)

    app.state.settings = cfg
    app.state.sio = sio
    app.state.presence = presence
    app.state.covers = None

    # -------------------------------------------------------------------------
    # Startup
    # -------------------------------------------------------------------------
    @app.on_event("startup")
    async def on_startup():
        app.state.covers = await build_missing_covers(cfg, runner=runner)

    # -------------------------------------------------------------------------
    # Download logging
    # -------------------------------------------------------------------------
    @app.middleware("http")
    async def log_downloads(request: Request, call_next):
        path = request.url.path
        if cfg.log_downloads and path.startswith("/pdfs/"):
            logger.info("Download: %s", path[len("/pdfs"):])
        return await call_next(request)

    # -------------------------------------------------------------------------
    # Routes
    # -------------------------------------------------------------------------
    @app.get("/")
    def index():
        """
        Front-end shell.
        """
        return FileResponse(os.path.join(cfg.public_dir, "index.html"))

    @app.get("/health", response_model=HealthResponse)
    def health():
        return HealthResponse(service=cfg.service_name, viewers=presence.viewers)

    @app.get("/api/pdfs", response_model=List[CatalogItem])
    async def list_pdfs():
        """
        Re-scan the PDF root and return every PDF with its size and URLs.
        The walk runs in a worker thread so other requests keep flowing.
        """
        try:
            return await asyncio.to_thread(build_catalog, cfg.pdf_dir)
        except OSError:
            logger.exception("Unable to build catalog from %s", cfg.pdf_dir)
            raise HTTPException(status_code=500, detail="Unable to read PDF library")

    # Static files. Order matters: the "/" mount must come last.
    app.mount("/pdfs", StaticFiles(directory=cfg.pdf_dir, check_dir=False), name="pdfs")
    app.mount("/covers", StaticFiles(directory=cfg.covers_dir, check_dir=False), name="covers")
    app.mount("/", StaticFiles(directory=cfg.public_dir, check_dir=False), name="public")

    return app


def create_asgi(app: FastAPI) -> socketio.ASGIApp:
    """
    Socket.IO answers on /socket.io/, everything else goes to FastAPI.
    """
    return socketio.ASGIApp(app.state.sio, other_asgi_app=app)


app = create_app()
asgi = create_asgi(app)
