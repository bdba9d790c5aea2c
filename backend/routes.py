"""GuardNomad Backend — FastAPI Routes"""

import logging
import time
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import CLASSIFIER_BACKEND, RATE_LIMIT, RATE_WINDOW
from location_service import LocationSafetyService, location_service
from models import (
    AlertsResponse, Coordinates, EmergencyInfo, HealthResponse, LocalEvent, LocalNews,
    LocationContext, LocationSafetyData, ProviderStatus, SafetyScoreRequest,
    SafetyScoreSummary, ScamAlert, SearchLocation, TravelSafetyAlert,
    UserLocation, UserSafetyAlert, UserSafetyData, UserSafetyScore,
)
from safety_service import AISafetyService, ai_safety_service, get_ai_safety_insights
from search_service import UnifiedSearchService, search_service

logger = logging.getLogger("guardnomad")


# ─────────────────────────── Service providers ──────────────────
# Overridden in tests through app.dependency_overrides

def get_search_service() -> UnifiedSearchService:
    return search_service


def get_location_service() -> LocationSafetyService:
    return location_service


def get_safety_service() -> AISafetyService:
    return ai_safety_service


# ─────────────────────────── App Setup ──────────────────────────

app = FastAPI(title="GuardNomad Safety API", version="1.0.0")

_allowed_origins = [
    f"http://localhost:{p}" for p in range(5173, 5180)
] + [
    f"http://localhost:{p}" for p in range(3000, 3010)
] + [
    f"http://127.0.0.1:{p}" for p in range(5173, 5180)
] + [
    f"http://127.0.0.1:{p}" for p in range(3000, 3010)
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("shutdown")
async def shutdown_event():
    await search_service.aclose()


# ─────────────────────────── Rate Limiting ──────────────────────

_rate_store: dict[str, list[float]] = {}
_RATE_EVICT_INTERVAL = 300  # evict stale IPs every 5 minutes
_last_rate_evict = 0.0


@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    client_ip = request.client.host if request.client else "unknown"
    now = time.time()

    global _last_rate_evict
    if now - _last_rate_evict > _RATE_EVICT_INTERVAL:
        stale_ips = [ip for ip, timestamps in _rate_store.items()
                     if not timestamps or now - timestamps[-1] > RATE_WINDOW * 2]
        for ip in stale_ips:
            del _rate_store[ip]
        _last_rate_evict = now

    recent = [t for t in _rate_store.get(client_ip, []) if now - t < RATE_WINDOW]
    if len(recent) >= RATE_LIMIT:
        logger.warning(f"Rate limit exceeded for {client_ip}")
        _rate_store[client_ip] = recent
        return JSONResponse(
            status_code=429,
            content={"detail": "Rate limit exceeded. Try again in a minute."},
        )

    recent.append(now)
    _rate_store[client_ip] = recent
    return await call_next(request)


def _require_location(location: str) -> str:
    location = (location or "").strip()
    if not location:
        raise HTTPException(status_code=400, detail="Provide a non-empty 'location' query param")
    return location


# ─────────────────────────── Safety alerts ──────────────────────

@app.post("/api/alerts", response_model=AlertsResponse)
async def generate_alerts(context: LocationContext, service: AISafetyService = Depends(get_safety_service)):
    """Ranked safety alerts for a destination."""
    alerts = await service.generate_safety_alerts(context)
    return AlertsResponse(alerts=alerts, stats=service.get_alert_stats(alerts))


@app.get("/api/insights", response_model=AlertsResponse)
async def safety_insights(destination: str, user_id: str = "anonymous",
                          service: AISafetyService = Depends(get_safety_service)):
    """Alerts for a "City, Country" destination string."""
    alerts = await get_ai_safety_insights(user_id, destination, service=service)
    return AlertsResponse(alerts=alerts, stats=service.get_alert_stats(alerts))


# ─────────────────────────── Search-backed data ─────────────────

@app.post("/api/safety-data", response_model=LocationSafetyData)
async def location_safety_data(location: SearchLocation,
                               search: UnifiedSearchService = Depends(get_search_service)):
    return await search.get_location_safety_data(location)


@app.post("/api/safety-score", response_model=SafetyScoreSummary)
async def location_safety_score(req: SafetyScoreRequest,
                                search: UnifiedSearchService = Depends(get_search_service)):
    logger.info(f"Safety score request: {req.city or req.country} ({req.lat:.4f}, {req.lng:.4f})")
    return await search.get_location_safety_score(Coordinates(lat=req.lat, lng=req.lng), req.country, req.city)


@app.get("/api/news", response_model=list[LocalNews])
async def local_news(location: str = "", category: Optional[str] = None,
                     search: UnifiedSearchService = Depends(get_search_service)):
    return await search.get_local_news(_require_location(location), category)


@app.get("/api/scams", response_model=list[ScamAlert])
async def scam_alerts(location: Optional[str] = None,
                      search: UnifiedSearchService = Depends(get_search_service)):
    return await search.get_scam_alerts((location or "").strip() or None)


@app.get("/api/events", response_model=list[LocalEvent])
async def local_events(location: str = "", category: Optional[str] = None,
                       search: UnifiedSearchService = Depends(get_search_service)):
    return await search.get_local_events(_require_location(location), category)


@app.get("/api/travel-safety", response_model=list[TravelSafetyAlert])
async def travel_safety(location: str = "", search: UnifiedSearchService = Depends(get_search_service)):
    return await search.get_travel_safety_alerts(_require_location(location))


# ─────────────────────────── User location ──────────────────────

@app.put("/api/users/{user_id}/location")
async def update_user_location(user_id: str, location: UserLocation,
                               service: LocationSafetyService = Depends(get_location_service)):
    changed = service.has_user_location_changed(user_id, location)
    await service.update_user_location(user_id, location)
    return {"userId": user_id, "changed": changed, "location": location}


@app.get("/api/users/{user_id}/location", response_model=UserLocation)
async def get_user_location(user_id: str, service: LocationSafetyService = Depends(get_location_service)):
    location = service.get_user_location(user_id)
    if location is None:
        raise HTTPException(status_code=404, detail="No recent location for user")
    return location


@app.delete("/api/users/{user_id}/location")
async def clear_user_location(user_id: str, service: LocationSafetyService = Depends(get_location_service)):
    service.clear_user_location(user_id)
    return {"userId": user_id, "status": "cleared"}


@app.get("/api/users/{user_id}/alerts", response_model=list[UserSafetyAlert])
async def user_location_alerts(user_id: str, service: LocationSafetyService = Depends(get_location_service)):
    return await service.get_user_location_alerts(user_id)


@app.get("/api/users/{user_id}/nearby-alerts", response_model=list[UserSafetyAlert])
async def user_nearby_alerts(user_id: str, radius_km: float = 10,
                             service: LocationSafetyService = Depends(get_location_service)):
    return await service.get_nearby_alerts(user_id, radius_km)


@app.get("/api/users/{user_id}/safety-score", response_model=UserSafetyScore)
async def user_safety_score(user_id: str, service: LocationSafetyService = Depends(get_location_service)):
    score = await service.get_user_location_safety_score(user_id)
    if score is None:
        raise HTTPException(status_code=404, detail="No location data for user")
    return score


@app.get("/api/users/{user_id}/safety-data", response_model=UserSafetyData)
async def user_safety_data(user_id: str, service: LocationSafetyService = Depends(get_location_service)):
    data = await service.get_user_location_safety_data(user_id)
    if data is None:
        raise HTTPException(status_code=404, detail="No location data for user")
    return data


@app.get("/api/users/{user_id}/emergency-info", response_model=EmergencyInfo)
async def user_emergency_info(user_id: str, service: LocationSafetyService = Depends(get_location_service)):
    info = await service.get_emergency_info(user_id)
    if info is None:
        raise HTTPException(status_code=404, detail="No location data for user")
    return info


@app.get("/api/users/{user_id}/tips", response_model=list[str])
async def user_location_tips(user_id: str, service: LocationSafetyService = Depends(get_location_service)):
    return await service.get_location_tips(user_id)


# ─────────────────────────── Utility Endpoints ──────────────────

@app.delete("/api/cache")
async def clear_caches(search: UnifiedSearchService = Depends(get_search_service),
                       service: AISafetyService = Depends(get_safety_service)):
    search.clear_cache()
    evicted = service.clear_expired_cache()
    return {"status": "cleared", "expiredAlertEntries": evicted}


@app.get("/api/health", response_model=HealthResponse)
async def health(search: UnifiedSearchService = Depends(get_search_service)):
    provider = ProviderStatus(**search.status())
    status = "ok" if provider.configured and provider.circuit == "closed" else "degraded"
    return HealthResponse(status=status, searchProvider=provider, classifier=CLASSIFIER_BACKEND)
