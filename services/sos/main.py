# Run:
# uvicorn services.sos.main:app --host 0.0.0.0 --port 20004 --reload
# Docs: http://127.0.0.1:20004/docs

import asyncio
import logging
from datetime import datetime
from typing import Literal, Optional

from dotenv import load_dotenv
from fastapi import Depends, HTTPException, Path, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

# Load environment variables from .env file
load_dotenv()

from common.constants import DEFAULT_SHARE_DURATION_MIN
from common.errors import StorageError
from libs.config import Config
from libs.fastapi_service import FastAPIServiceFactory, ServiceAppConfig
from libs.twilio_client import TwilioClient, get_twilio_client
from services.sos.live_location import (
    InMemoryLiveLocationStore,
    LiveLocationService,
    ShareExpiredError,
    ShareNotFoundError,
    build_live_location_store,
)

logger = logging.getLogger(__name__)

factory = FastAPIServiceFactory(
    ServiceAppConfig(
        title="SOS Service",
        description="Emergency SMS alerts and live-location sharing.",
        service_name="sos",
    )
)
app = factory.create_app()

# Business metrics
SOS_ALERTS_TOTAL = factory.add_business_metric(
    "sos_alerts_total", "Total SOS alerts by delivery status", ["status"]
)
LIVE_SHARES_TOTAL = factory.add_business_metric(
    "sos_live_shares_total", "Total live-location shares started"
)

SWEEP_INTERVAL_S = 60

live_location_service = LiveLocationService(build_live_location_store(Config.LIVE_LOCATION_BACKEND))
_sweeper: Optional[asyncio.Task] = None


def get_live_location_service() -> LiveLocationService:
    return live_location_service


def get_sms_client() -> Optional[TwilioClient]:
    try:
        return get_twilio_client()
    except ValueError as e:
        logger.warning("SMS delivery unavailable: %s", e)
        return None


async def _sweep_loop(store: InMemoryLiveLocationStore):
    while True:
        await asyncio.sleep(SWEEP_INTERVAL_S)
        store.sweep_expired()


@app.on_event("startup")
async def startup():
    global _sweeper
    # Redis expires keys itself
    if isinstance(live_location_service.store, InMemoryLiveLocationStore):
        _sweeper = asyncio.create_task(_sweep_loop(live_location_service.store))


@app.on_event("shutdown")
async def shutdown():
    if _sweeper is not None:
        _sweeper.cancel()


# ========= Schemas =========


class SOSAlertRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    message: Optional[str] = Field(None, max_length=500)
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    emergency_contact: Optional[str] = Field(None, description="E.164 phone number")


class Location(BaseModel):
    lat: float
    lng: float


class SOSAlertResponse(BaseModel):
    status: Literal["sent", "failed"]
    sms_id: Optional[str] = None
    sent_to: str
    location: Location
    maps_url: str
    timestamp: datetime
    error: Optional[str] = None


class ShareLocationRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    duration: int = Field(DEFAULT_SHARE_DURATION_MIN, ge=1, le=24 * 60, description="Minutes")
    user_id: Optional[str] = None


class ShareLocationResponse(BaseModel):
    share_id: str
    share_url: str
    expires_at: datetime
    duration: int


class LiveLocationResponse(BaseModel):
    share_id: str
    lat: float
    lng: float
    started_at: datetime
    expires_at: datetime
    last_update: Optional[datetime] = None
    is_active: bool


class UpdateLocationRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class UpdateLocationResponse(BaseModel):
    share_id: str
    lat: float
    lng: float
    last_update: datetime


def maps_url(lat: float, lng: float) -> str:
    return f"https://www.google.com/maps?q={lat},{lng}"


def build_alert_message(body: SOSAlertRequest, timestamp: datetime) -> str:
    lines = [
        f"EMERGENCY ALERT from {body.user_name or 'a Safe Route user'}",
        f"Time: {timestamp.strftime('%Y-%m-%d %H:%M:%S')} UTC",
        f"Location: {maps_url(body.lat, body.lng)}",
    ]
    if body.message:
        lines.append(f"Message: {body.message}")
    lines.append("Please check on this person immediately.")
    return "\n".join(lines)


# ========= Endpoints =========


@app.post("/v1/sos/alert", response_model=SOSAlertResponse)
async def send_sos_alert(
    body: SOSAlertRequest,
    sms_client: Optional[TwilioClient] = Depends(get_sms_client),
):
    contact = body.emergency_contact or Config.EMERGENCY_PHONE
    if not contact:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No emergency contact configured",
        )

    now = datetime.utcnow()
    if sms_client is None:
        result = {"status": "failed", "sid": None, "error": "SMS delivery is not configured"}
    else:
        result = sms_client.send_sms(to_phone=contact, message=build_alert_message(body, now))

    SOS_ALERTS_TOTAL.labels(status=result["status"]).inc()
    response = SOSAlertResponse(
        status=result["status"],
        sms_id=result.get("sid"),
        sent_to=contact,
        location=Location(lat=body.lat, lng=body.lng),
        maps_url=maps_url(body.lat, body.lng),
        timestamp=now,
        error=result.get("error"),
    )

    if result["status"] != "sent":
        logger.error("SOS alert for user %s not delivered: %s", body.user_id, result.get("error"))
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content=response.model_dump(mode="json"),
        )
    logger.info("SOS alert for user %s sent to %s", body.user_id, contact)
    return response


@app.post("/v1/sos/share", response_model=ShareLocationResponse)
async def share_location(
    body: ShareLocationRequest,
    service: LiveLocationService = Depends(get_live_location_service),
):
    try:
        share = service.start(body.lat, body.lng, body.duration, user_id=body.user_id)
    except StorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to start location sharing",
        )

    LIVE_SHARES_TOTAL.inc()
    return ShareLocationResponse(
        share_id=share.share_id,
        share_url=f"{Config.FRONTEND_URL}/live-location/{share.share_id}",
        expires_at=share.expires_at,
        duration=body.duration,
    )


@app.get("/v1/sos/share/{share_id}", response_model=LiveLocationResponse)
async def get_live_location(
    share_id: str = Path(..., description="Live-location share to read"),
    service: LiveLocationService = Depends(get_live_location_service),
):
    try:
        share = service.get(share_id)
    except ShareNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Live location share not found or expired",
        )
    except ShareExpiredError:
        raise HTTPException(
            status_code=status.HTTP_410_GONE,
            detail="Live location share has expired",
        )

    return LiveLocationResponse(
        share_id=share.share_id,
        lat=share.lat,
        lng=share.lng,
        started_at=share.started_at,
        expires_at=share.expires_at,
        last_update=share.last_update,
        is_active=share.is_active,
    )


@app.put("/v1/sos/share/{share_id}", response_model=UpdateLocationResponse)
async def update_live_location(
    body: UpdateLocationRequest,
    share_id: str = Path(..., description="Live-location share to move"),
    service: LiveLocationService = Depends(get_live_location_service),
):
    try:
        share = service.update(share_id, body.lat, body.lng)
    except ShareNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Live location share not found",
        )
    except ShareExpiredError:
        raise HTTPException(
            status_code=status.HTTP_410_GONE,
            detail="Live location share has expired",
        )
    except StorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update live location",
        )

    return UpdateLocationResponse(
        share_id=share.share_id,
        lat=share.lat,
        lng=share.lng,
        last_update=share.last_update,
    )
