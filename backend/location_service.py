"""GuardNomad Backend — Per-user location safety

Remembers where each user currently is and derives location-specific
alerts, a quick safety score and travel tips from the search service.
Users in the same city share the search service cache, so this layer adds
no provider traffic of its own.
"""

import asyncio
import logging
import math
import time
from typing import Callable, Optional

from cache import TTLCache
from config import USER_LOCATION_MAX_ENTRIES, USER_LOCATION_TTL
from models import EmergencyInfo, UserLocation, UserSafetyAlert, UserSafetyData, UserSafetyScore
from search_service import UnifiedSearchService, search_service as default_search_service

logger = logging.getLogger("guardnomad.location")

EARTH_RADIUS_KM = 6371.0
BASE_USER_SCORE = 80
SCAM_PENALTY = 15
NEWS_PENALTY = 10
SAFETY_NEWS_CATEGORIES = ("crime", "breaking")

DEFAULT_TIPS = [
    "Stay aware of your surroundings",
    "Keep important documents secure",
    "Stay connected with family/friends",
]


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    a = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlng / 2) ** 2)
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def location_label(location: UserLocation) -> str:
    return f"{location.city}, {location.country}" if location.city else location.country


class LocationSafetyService:
    def __init__(self, search_service: Optional[UnifiedSearchService] = None,
                 clock: Callable[[], float] = time.time):
        self.search = search_service or default_search_service
        self._locations = TTLCache(default_ttl=USER_LOCATION_TTL, max_size=USER_LOCATION_MAX_ENTRIES, clock=clock)

    async def update_user_location(self, user_id: str, location: UserLocation):
        self._locations.set(user_id, location)
        logger.info(f"Updated location for user {user_id}: {location.city or location.country}")

    def _known_location(self, user_id: str) -> Optional[UserLocation]:
        location = self._locations.peek(user_id)
        if location is None:
            logger.warning(f"No location data available for user {user_id}")
        return location

    async def _scams_and_news(self, label: str):
        """Scam alerts and local news for ``label``; a failed branch comes back as []."""
        scams, news = await asyncio.gather(
            self.search.get_scam_alerts(label),
            self.search.get_local_news(label),
            return_exceptions=True,
        )
        if isinstance(scams, Exception):
            logger.warning(f"Scam alert lookup failed for {label}: {scams}")
            scams = []
        if isinstance(news, Exception):
            logger.warning(f"Local news lookup failed for {label}: {news}")
            news = []
        safety_news = [n for n in news if n.category in SAFETY_NEWS_CATEGORIES]
        return scams, safety_news

    async def get_user_location_alerts(self, user_id: str) -> list[UserSafetyAlert]:
        location = self._known_location(user_id)
        if location is None:
            return []

        label = location_label(location)
        scams, safety_news = await self._scams_and_news(label)

        alerts = [
            UserSafetyAlert(
                id=scam.id,
                title=scam.title or "Scam Alert",
                description=scam.description or "Be aware of local scam activities",
                severity=scam.severity,
                type="scam",
                location=label,
                distanceFromUser=0,
            )
            for scam in scams
        ]
        alerts.extend(
            UserSafetyAlert(
                id=news.id,
                title=news.title,
                description=news.description or news.content,
                severity="high" if news.category == "breaking" else "medium",
                type="news",
                location=label,
                distanceFromUser=0,
            )
            for news in safety_news
        )
        logger.info(f"Found {len(alerts)} location-specific alerts for user {user_id}")
        return alerts

    async def get_user_location_safety_score(self, user_id: str) -> Optional[UserSafetyScore]:
        location = self._known_location(user_id)
        if location is None:
            return None

        label = location_label(location)
        scams, safety_news = await self._scams_and_news(label)

        score = BASE_USER_SCORE
        risk_level = "medium"
        summary = "Moderate safety conditions"
        if scams:
            score -= len(scams) * SCAM_PENALTY
            risk_level = "high"
            summary = "Elevated risk due to reported scam activities"
        if safety_news:
            score -= len(safety_news) * NEWS_PENALTY
            if risk_level == "medium":
                risk_level = "elevated"
                summary = "Some safety concerns based on recent news"
        score = max(0, score)

        logger.info(f"Safety score for user {user_id} at {label}: {score}/100")
        return UserSafetyScore(score=score, riskLevel=risk_level, summary=summary, location=label)

    async def get_user_location_safety_data(self, user_id: str) -> Optional[UserSafetyData]:
        location = self._known_location(user_id)
        if location is None:
            return None

        label = location_label(location)
        scams, safety_news = await self._scams_and_news(label)

        data = UserSafetyData(
            safetyScore=75,
            riskLevel="medium",
            emergencyNumbers=["112", "911"],
            location=label,
        )
        if scams:
            data.activeAlerts.extend(s.model_dump() for s in scams)
            data.commonScams.extend(s.title or "Unknown scam" for s in scams)
            data.riskLevel = "high"
            data.safetyScore = 60
        if safety_news:
            data.activeAlerts.extend(n.model_dump() for n in safety_news)
            if data.riskLevel == "medium":
                data.riskLevel = "elevated"
                data.safetyScore = 65
        return data

    async def get_nearby_alerts(self, user_id: str, radius_km: float = 10) -> list[UserSafetyAlert]:
        location = self._locations.peek(user_id)
        if location is None:
            return []

        # Radius is not applied yet: alerts are resolved per city, not per point
        logger.info(f"Searching for alerts within {radius_km}km of user {user_id}")
        alerts = await self.get_user_location_alerts(user_id)
        city = (location.city or "").lower()
        country = location.country.lower()
        return [a for a in alerts if city in a.location.lower() or country in a.location.lower()]

    def has_user_location_changed(self, user_id: str, new_location: UserLocation,
                                  significant_distance_km: float = 5) -> bool:
        old = self._locations.peek(user_id)
        if old is None:
            return True
        distance = haversine_km(old.lat, old.lng, new_location.lat, new_location.lng)
        return distance > significant_distance_km

    def get_user_location(self, user_id: str) -> Optional[UserLocation]:
        """Last known location, or None once it is older than the freshness window."""
        location = self._locations.get(user_id)
        if location is None and user_id in self._locations:
            self._locations.delete(user_id)
        return location

    def clear_user_location(self, user_id: str):
        self._locations.delete(user_id)
        logger.info(f"Cleared location data for user {user_id}")

    async def get_emergency_info(self, user_id: str) -> Optional[EmergencyInfo]:
        data = await self.get_user_location_safety_data(user_id)
        if data is None:
            return None
        return EmergencyInfo(
            emergencyNumbers=data.emergencyNumbers,
            nearestHospital="Contact local emergency services",
            nearestPoliceStation="Contact local police",
            embassyContact="Contact your country's embassy",
        )

    async def get_location_tips(self, user_id: str) -> list[str]:
        data = await self.get_user_location_safety_data(user_id)
        if data is None:
            return list(DEFAULT_TIPS)
        return [
            f"Current safety score: {data.safetyScore}/100 ({data.riskLevel} risk)",
            *(f"Watch out for: {scam}" for scam in data.commonScams),
            "Keep emergency numbers handy",
            "Stay informed about local conditions",
        ]


location_service = LocationSafetyService()
