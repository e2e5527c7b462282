"""
================================================================================
WR TACTICIAN — HTTP SURFACE
================================================================================
FastAPI app serving the single page plus the JSON endpoints it calls.
Every endpoint just forwards to the CompanionSession and returns its view;
there is no matchup logic in here.

Author: WR Tactician | Version: 1.0.0
================================================================================
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from daemon.companion import CAMERA_GUIDE, CompanionSession
from schemas.errors import NoFrameAvailable
from schemas.models import Role

logger = logging.getLogger("wr_tactician.server")

VERSION = "1.0.0"
INDEX_PATH = Path(__file__).parent / "static" / "index.html"


class MatchupUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    my_hero: Optional[str] = Field(default=None, alias="myHero")
    enemy_hero: Optional[str] = Field(default=None, alias="enemyHero")
    my_role: Optional[Role] = Field(default=None, alias="myRole")


class ItemRequest(BaseModel):
    item: str


def create_app(session: CompanionSession) -> FastAPI:
    """Create the FastAPI app around an existing session."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await session.shutdown()

    app = FastAPI(
        title="WR Tactician",
        description="Wild Rift matchup coach with live screen/camera sync",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.session = session

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", response_class=HTMLResponse)
    async def index():
        return HTMLResponse(INDEX_PATH.read_text(encoding="utf-8"))

    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "live": session.controller.status.value,
            "version": VERSION,
        }

    @app.get("/api/state")
    async def state():
        return session.view()

    @app.get("/api/guide")
    async def guide():
        return {"platform": session.controller.platform_hint.value, "lines": CAMERA_GUIDE}

    # -------------------------------------------------------------------------
    # Manual edits
    # -------------------------------------------------------------------------

    @app.put("/api/matchup")
    async def update_matchup(update: MatchupUpdate):
        if update.my_hero is not None:
            session.store.set_my_hero(update.my_hero.strip())
        if update.enemy_hero is not None:
            session.store.set_enemy_hero(update.enemy_hero.strip())
        if update.my_role is not None:
            session.store.set_role(update.my_role)
        return session.view()

    @app.post("/api/matchup/items")
    async def add_item(request: ItemRequest):
        session.store.add_enemy_item(request.item)
        return session.view()

    @app.delete("/api/matchup/items/{index}")
    async def remove_item(index: int):
        try:
            session.store.remove_enemy_item(index)
        except IndexError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return session.view()

    # -------------------------------------------------------------------------
    # Analysis + recognition
    # -------------------------------------------------------------------------

    @app.post("/api/analyze")
    async def analyze():
        try:
            await session.request_analysis()
        except Exception as e:
            logger.error(f"Analyze endpoint failed: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(e))
        return session.view()

    @app.post("/api/recognize")
    async def recognize(image: UploadFile = File(...)):
        if not (image.content_type or "").startswith("image/"):
            raise HTTPException(status_code=415, detail=f"Expected an image, got {image.content_type}")
        data = await image.read()
        await session.recognize_upload(data)
        return session.view()

    # -------------------------------------------------------------------------
    # Live sync
    # -------------------------------------------------------------------------

    @app.post("/api/live/start")
    async def live_start():
        await session.start_live()
        return session.view()

    @app.post("/api/live/stop")
    async def live_stop():
        session.stop_live()
        return session.view()

    @app.get("/api/live/frame")
    async def live_frame():
        stream = session.controller.stream
        if stream is None:
            raise HTTPException(status_code=404, detail="Live sync is not running")
        try:
            jpeg = await session.sampler.capture_jpeg(stream)
        except NoFrameAvailable as e:
            raise HTTPException(status_code=404, detail=str(e))
        return Response(content=jpeg, media_type="image/jpeg", headers={"Cache-Control": "no-store"})

    return app
