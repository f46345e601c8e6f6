import asyncio
import html
import json
import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse

from clients.exceptions import AuthError, FetchError, UnrecognizedPayloadShape
from logic.auth import MeliAuthHandler
from logic.resolver import resolve_leader
from logic.scheduler import CycleAlreadyRunning, PollScheduler
from models.logic_models import NoValidLeader
from services.meli_service import MeliService
from services.state_store import LeaderStateStore
from utils.config import Settings

logger = logging.getLogger(__name__)


def create_app(
        settings: Settings,
        auth_handler: MeliAuthHandler,
        meli_service: MeliService,
        state_store: LeaderStateStore,
        scheduler: Optional[PollScheduler] = None
) -> FastAPI:
    app = FastAPI(title="Mercado Libre catalog leader bot")
    app.state.settings = settings
    app.state.auth_handler = auth_handler
    app.state.meli_service = meli_service
    app.state.state_store = state_store
    app.state.scheduler = scheduler

    @app.get("/", response_class=PlainTextResponse)
    async def index():
        return "Mercado Libre leader bot is running."

    @app.get("/auth")
    async def auth(request: Request):
        try:
            url = request.app.state.auth_handler.authorization_url()
        except AuthError as e:
            raise HTTPException(status_code=500, detail=str(e))
        return RedirectResponse(url)

    @app.get("/callback", response_class=HTMLResponse)
    async def callback(request: Request, code: Optional[str] = None):
        if not code:
            raise HTTPException(status_code=400, detail="Missing authorization code.")
        try:
            tokens = await request.app.state.auth_handler.exchange_code(code)
        except AuthError as e:
            logger.error(f"Could not obtain token: {e}")
            return PlainTextResponse("Error obtaining token", status_code=500)

        body = html.escape(json.dumps(tokens.model_dump(), indent=2))
        return f"<h1>Authenticated successfully!</h1><pre>{body}</pre>"

    @app.get("/debug/state")
    async def debug_state(request: Request):
        return await asyncio.to_thread(request.app.state.state_store.load_all)

    @app.get("/debug/competitors")
    async def debug_competitors(request: Request, product_id: Optional[str] = None):
        product_id = product_id or request.app.state.settings.PRODUCT_ID
        if not product_id:
            raise HTTPException(status_code=400, detail="No product configured.")
        try:
            listings = await request.app.state.meli_service.get_competitors(product_id)
        except (FetchError, UnrecognizedPayloadShape) as e:
            raise HTTPException(status_code=502, detail=str(e))

        ranking = resolve_leader(listings, request.app.state.settings.TOP_N)
        if isinstance(ranking, NoValidLeader):
            return {"product_id": product_id, "leader": None, "reason": ranking.reason, "ranked": []}
        return {
            "product_id": product_id,
            "leader": ranking.leader.model_dump(),
            "ranked": [listing.model_dump() for listing in ranking.ranked],
        }

    @app.post("/debug/check")
    async def debug_check(request: Request):
        scheduler: Optional[PollScheduler] = request.app.state.scheduler
        if scheduler is None:
            raise HTTPException(status_code=503, detail="Scheduler is not configured.")
        try:
            result = await scheduler.run_once()
        except CycleAlreadyRunning as e:
            raise HTTPException(status_code=409, detail=str(e))
        except asyncio.TimeoutError:
            raise HTTPException(status_code=504, detail="Cycle timed out.")
        return result.model_dump(mode="json")

    return app
