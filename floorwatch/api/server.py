# floorwatch/api/server.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from floorwatch.api.state import get_state
from floorwatch.services.market.sparkline import render_sparkline
from floorwatch.services.poller.floor_price_poller import FloorPricePoller, LoginValidationError, PollerStoppedError

# Handlers touching the poller or the repository are async so they run on the
# poller's event loop thread rather than in the threadpool.
router = APIRouter()


class LoginPayload(BaseModel):
    account: str = ""
    password: str = ""


class AlertPayload(BaseModel):
    enabled: Optional[bool] = None
    minimum_price: Optional[str] = None


def status_payload(poller: FloorPricePoller) -> Dict[str, Any]:
    s = poller.snapshot()
    return {
        "project_name": s.project_name,
        "floor_price": s.floor_price,
        "floor_price_formatted": s.floor_price_formatted,
        "last_trade_price": s.last_trade_price,
        "last_trade_price_formatted": s.last_trade_price_formatted,
        "last_updated": s.last_updated.isoformat() if s.last_updated else None,
        "trend": s.trend.value,
        "history": s.history,
        "sparkline": render_sparkline(s.history),
        "is_loading": s.is_loading,
        "is_logging_in": s.is_logging_in,
        "is_logged_in": s.is_logged_in,
        "showing_error": s.showing_error,
        "error_message": s.error_message,
        "status_text": s.status_text,
        "phase": poller.phase,
        "interval_seconds": poller.interval_seconds,
    }


@router.get("/health")
def health():
    return {"ok": True}


@router.get("/status")
async def status():
    return status_payload(get_state().poller)


@router.post("/refresh")
async def refresh():
    poller = get_state().poller
    await poller.refresh_now()
    return status_payload(poller)


@router.post("/login")
async def login(payload: LoginPayload):
    poller = get_state().poller
    try:
        ok = await poller.login(payload.account, payload.password)
    except LoginValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PollerStoppedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not ok:
        raise HTTPException(status_code=502, detail=poller.snapshot().error_message)
    return status_payload(poller)


@router.get("/alert")
async def get_alert():
    settings = get_state().poller.alert_settings
    return {"enabled": settings.enabled, "minimum_price": settings.minimum_price}


@router.put("/alert")
async def put_alert(payload: AlertPayload):
    settings = get_state().poller.update_alert_settings(
        enabled=payload.enabled,
        minimum_price=payload.minimum_price,
    )
    return {"enabled": settings.enabled, "minimum_price": settings.minimum_price}


@router.get("/alerts/events")
async def alert_events(limit: int = Query(default=50, ge=1, le=1000)) -> List[Dict[str, Any]]:
    return get_state().repo.list_alert_events(limit=limit)


def create_app(cors_origins: Optional[List[str]] = None) -> FastAPI:
    app = FastAPI(title="floorwatch API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["http://localhost:5173", "http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app
