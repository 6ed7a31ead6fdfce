# routes.py
# Annotations stay evaluated: FastAPI resolves them through the rate-limit wrapper's globals.
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from local_pulse.models import CountryCode, PulseResponse
from local_pulse.pulse_service import PulseService
from local_pulse.ratelimit import limiter
from local_pulse.session_auth import require_user, sign_user
from local_pulse.settings import settings


router = APIRouter()

# -----------------------------------------------------------
# Dependencies
# -----------------------------------------------------------
def require_api_key(x_api_key: str = Header(..., alias="x-api-key")):
    """
    Validates that the incoming request supplies a correct x-api-key header.
    """
    if not settings.api_key or x_api_key != settings.api_key:
        raise HTTPException(status_code=401, detail="Invalid API key")


def get_pulse_service(request: Request) -> PulseService:
    return request.app.state.pulse


def ok(data: Any) -> Dict[str, Any]:
    if isinstance(data, list):
        data = [d.model_dump(mode="json") for d in data]
    elif isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    return PulseResponse(success=True, data=data).model_dump()


# -----------------------------------------------------------
# Pydantic models
# -----------------------------------------------------------
class UpdateCityRequest(BaseModel):
    city: str


# -----------------------------------------------------------
# Session
# -----------------------------------------------------------
@router.post("/session", tags=["session"], dependencies=[Depends(require_api_key)])
@limiter.limit("30/minute")
async def create_session(request: Request) -> Dict[str, str]:
    user_id = str(uuid4())
    return {"user_id": user_id, "user_token": sign_user(user_id)}


# -----------------------------------------------------------
# Pulse
# -----------------------------------------------------------
@router.get("/pulse", tags=["pulse"])
@limiter.limit("30/minute")
async def pulse_for_user(
    request: Request,
    user_id: str = Depends(require_user),
    pulse: PulseService = Depends(get_pulse_service),
) -> Dict[str, Any]:
    return ok(await pulse.pulse_for_user(user_id))


@router.get("/pulse/city/{city}", tags=["pulse"])
@limiter.limit("30/minute")
async def pulse_for_city(
    request: Request,
    city: str,
    country: Optional[CountryCode] = Query(None, description="Override the guessed country"),
    pulse: PulseService = Depends(get_pulse_service),
) -> Dict[str, Any]:
    return ok(await pulse.pulse_for_place(city, country))


@router.get("/pulse/coords", tags=["pulse"])
@limiter.limit("30/minute")
async def pulse_for_coordinates(
    request: Request,
    lat: float = Query(..., description="Latitude"),
    lon: float = Query(..., description="Longitude"),
    pulse: PulseService = Depends(get_pulse_service),
) -> Dict[str, Any]:
    return ok(await pulse.pulse_for_coordinates(lat, lon))


@router.get("/pulse/weather/{city}", tags=["pulse"])
@limiter.limit("30/minute")
async def weather_for_city(
    request: Request,
    city: str,
    pulse: PulseService = Depends(get_pulse_service),
) -> Dict[str, Any]:
    return ok(await pulse.weather_only(city))


@router.get("/pulse/aqi/{city}", tags=["pulse"])
@limiter.limit("30/minute")
async def aqi_for_city(
    request: Request,
    city: str,
    pulse: PulseService = Depends(get_pulse_service),
) -> Dict[str, Any]:
    return ok(await pulse.air_quality_only(city))


@router.get("/pulse/news/{city}", tags=["pulse"])
@limiter.limit("30/minute")
async def news_for_city(
    request: Request,
    city: str,
    state: Optional[str] = Query(None),
    country: Optional[CountryCode] = Query(None),
    pulse: PulseService = Depends(get_pulse_service),
) -> Dict[str, Any]:
    return ok(await pulse.highlights_only(city, state, country))


@router.post("/pulse/update-city", tags=["pulse"])
@limiter.limit("15/minute")
async def update_city(
    request: Request,
    payload: UpdateCityRequest,
    user_id: str = Depends(require_user),
    pulse: PulseService = Depends(get_pulse_service),
) -> Dict[str, Any]:
    return ok(await pulse.update_user_city(user_id, payload.city))


# -----------------------------------------------------------
# Operations (x-api-key)
# -----------------------------------------------------------
@router.post("/pulse/refresh/{city}", tags=["ops"], dependencies=[Depends(require_api_key)])
@limiter.limit("10/minute")
async def refresh_city(
    request: Request,
    city: str,
    country: Optional[CountryCode] = Query(None),
    pulse: PulseService = Depends(get_pulse_service),
) -> Dict[str, Any]:
    return ok(await pulse.refresh(city, country))


@router.post("/pulse/clear-cache", tags=["ops"], dependencies=[Depends(require_api_key)])
@limiter.limit("5/minute")
async def clear_cache(
    request: Request,
    pulse: PulseService = Depends(get_pulse_service),
) -> Dict[str, Any]:
    pulse.clear_all_caches()
    return ok({"cleared": True})


@router.get("/pulse/health", tags=["ops"])
@limiter.limit("30/minute")
async def health(
    request: Request,
    pulse: PulseService = Depends(get_pulse_service),
) -> JSONResponse:
    status = pulse.health_status()
    code = 200 if status.status == "healthy" else 503
    return JSONResponse(status_code=code, content=ok(status))
