"""GuardNomad Backend — AI Safety Service (alert orchestration)

Builds the ranked alert list shown for a destination:

  1. no destination and no coordinates → generic fallback pair
  2. 30-minute cache keyed by destination, country and coordinates (4 dp)
  3. gather context (safety analysis, top local news, trip timeline)
  4. search-derived alerts, else one score-based alert, else static
     country advice
  5. weather awareness + official travel advisories, fetched concurrently
  6. prioritize (severity, then recency) and keep the top 8
  7. best-effort hand-off to the per-user location service
  8. cache and return

``generate_safety_alerts`` never raises: any failure in steps 3-7 yields the
fallback pair from step 1.
"""

import asyncio
import logging
import time
from typing import Callable, Optional, Union

from pydantic import ValidationError

from cache import TTLCache
from config import ALERT_CACHE_TTL, ALERT_VALIDITY_HOURS, CACHE_MAX_ENTRIES, CONTEXT_NEWS_ITEMS
from location_service import LocationSafetyService, location_service as default_location_service
from models import (
    AISafetyAlert, AlertStats, ContextData, LocationContext, LocationSafetyData,
    SearchLocation, TravelTimeline, UserLocation,
)
from region_data import TOURIST_HOTSPOT_CITIES, get_country_advice
from scoring import compute_alert_stats, prioritize_alerts, safety_message
from search_service import UnifiedSearchService, search_service as default_search_service
from text_mining import iso_in, parse_timestamp, utc_now_iso

logger = logging.getLogger("guardnomad.safety")

# Search-analysis alert type → dashboard alert type
ALERT_TYPE_MAP = {
    "scam": "security",
    "crime": "security",
    "weather": "weather",
    "political": "safety",
    "health": "health",
    "transport": "transportation",
}

# Travel advisory type → dashboard alert type
EXA_ALERT_TYPE_MAP = {
    "security": "security",
    "health": "health",
    "weather": "weather",
    "political": "safety",
    "transport": "transportation",
    "natural-disaster": "weather",
}

GENERAL_ADVICE = [
    "Stay alert and aware of your surroundings",
    "Follow local safety guidelines",
    "Keep emergency contacts handy",
]

SYSTEM_USER_ID = "system"


def map_alert_type(alert_type: Optional[str]) -> str:
    return ALERT_TYPE_MAP.get(alert_type or "", "safety")


def map_exa_alert_type(alert_type: Optional[str]) -> str:
    return EXA_ALERT_TYPE_MAP.get(alert_type or "", "safety")


class AISafetyService:
    def __init__(
        self,
        search_service: Optional[UnifiedSearchService] = None,
        location_service: Optional[LocationSafetyService] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.search = search_service or default_search_service
        self.locations = location_service or default_location_service
        self._clock = clock
        self._alerts = TTLCache(default_ttl=ALERT_CACHE_TTL, max_size=CACHE_MAX_ENTRIES, clock=clock)

    def _ms(self) -> int:
        return int(self._clock() * 1000)

    # ─────────────────────────── Entry point ────────────────────

    async def generate_safety_alerts(
        self, context: Union[LocationContext, dict, None],
    ) -> list[AISafetyAlert]:
        if isinstance(context, dict):
            try:
                context = LocationContext.model_validate(context)
            except ValidationError as e:
                logger.warning(f"Invalid location context, using fallback alerts: {e}")
                return self.get_fallback_alerts(None)

        if context is None or (not context.destination and context.coordinates is None):
            logger.warning("No destination or coordinates provided, using fallback alerts")
            return self.get_fallback_alerts(None)

        cache_key = self.cache_key(context)
        cached = self._alerts.get(cache_key)
        if cached is not None:
            logger.info(f"Alert cache hit for {cache_key}")
            return cached

        try:
            logger.info(f"Generating safety alerts for {context.destination or 'coordinates-based location'}")
            context_data = await self.gather_context_data(context)
            ai_alerts = await self.generate_ai_alerts(context, context_data)
            real_time_alerts = await self.get_real_time_alerts(context)

            alerts = prioritize_alerts(ai_alerts + real_time_alerts)

            await self._update_location_service(context)
        except Exception as e:
            logger.error(f"Safety alert generation failed for {context.destination}: {e}", exc_info=True)
            return self.get_fallback_alerts(context)

        self._alerts.set(cache_key, alerts)
        logger.info(f"Generated {len(alerts)} safety alerts for {context.destination}")
        return alerts

    # ─────────────────────────── Context ────────────────────────

    def _search_location(self, context: LocationContext) -> SearchLocation:
        return SearchLocation(
            country=context.country or "Unknown",
            city=context.city,
            coordinates=context.coordinates,
        )

    async def gather_context_data(self, context: LocationContext) -> ContextData:
        async def safety_stats() -> Optional[LocationSafetyData]:
            if context.coordinates is None:
                return None
            return await self.search.get_location_safety_data(self._search_location(context))

        stats, news = await asyncio.gather(
            safety_stats(),
            self.search.get_local_news(context.destination),
            return_exceptions=True,
        )
        if isinstance(stats, Exception):
            logger.warning(f"Could not fetch safety stats: {stats}")
            stats = None
        if isinstance(news, Exception):
            logger.warning(f"Could not fetch recent news: {news}")
            news = []

        return ContextData(
            safety_stats=stats,
            recent_news=news[:CONTEXT_NEWS_ITEMS],
            travel_timeline=self._travel_timeline(context),
        )

    def _travel_timeline(self, context: LocationContext) -> Optional[TravelTimeline]:
        if context.travel_dates is None:
            return None
        start = parse_timestamp(context.travel_dates.start)
        end = parse_timestamp(context.travel_dates.end)
        now = self._clock()
        day = 24 * 60 * 60
        return TravelTimeline(
            is_upcoming=start > now,
            days_until_trip=-int((now - start) // day),
            trip_duration=-int((start - end) // day),
        )

    # ─────────────────────────── Alert sources ──────────────────

    def _expiry(self) -> str:
        return iso_in(hours=ALERT_VALIDITY_HOURS, now=self._clock())

    async def generate_ai_alerts(self, context: LocationContext, context_data: ContextData) -> list[AISafetyAlert]:
        """Alerts from the search analysis, falling back to static country advice."""
        safety = context_data.safety_stats
        if safety is None and (context.coordinates is not None or context.country):
            try:
                safety = await self.search.get_location_safety_data(self._search_location(context))
            except Exception as e:
                logger.warning(f"Safety analysis unavailable, using basic alerts: {e}")
                safety = None

        if safety is not None and safety.activeAlerts:
            stamp = self._ms()
            return [
                AISafetyAlert(
                    id=f"analysis-{stamp}-{index}",
                    type=map_alert_type(alert.type),
                    severity=alert.severity or "medium",
                    title=alert.title or "Safety Alert",
                    message=alert.description or "",
                    location=context.destination,
                    coordinates=context.coordinates,
                    source="ai",
                    timestamp=utc_now_iso(self._clock()),
                    actionable_advice=[alert.actionRequired] if alert.actionRequired else list(GENERAL_ADVICE),
                    expires_at=self._expiry(),
                )
                for index, alert in enumerate(safety.activeAlerts)
            ]

        if safety is not None and safety.safetyScore:
            if safety.commonScams:
                advice = [
                    f"Be aware of common scams: {', '.join(safety.commonScams[:2])}",
                    "Keep valuables secure",
                    "Stay in well-lit, populated areas",
                    f"Emergency numbers: {safety.emergencyNumbers[0] if safety.emergencyNumbers else 'Local emergency services'}",
                ]
            else:
                advice = list(GENERAL_ADVICE)
            return [AISafetyAlert(
                id=f"safety-score-{self._ms()}",
                type="safety",
                severity=safety.riskLevel if safety.riskLevel in ("critical", "high") else "medium",
                title=f"{context.destination} Safety Update",
                message=(f"Current safety score: {safety.safetyScore}/100. "
                         f"{safety_message(safety.safetyScore, context.destination)}"),
                location=context.destination,
                coordinates=context.coordinates,
                source="ai",
                timestamp=utc_now_iso(self._clock()),
                actionable_advice=advice,
                expires_at=self._expiry(),
            )]

        return self.generate_basic_alerts(context)

    def generate_basic_alerts(self, context: LocationContext) -> list[AISafetyAlert]:
        advice = self.get_location_specific_advice(context.country, context.city)
        stamp = self._ms()
        now = utc_now_iso(self._clock())

        alerts = [AISafetyAlert(
            id=f"location-safety-{stamp}",
            type="safety",
            severity=advice["riskLevel"],
            title=f"{context.destination} Safety Alert",
            message=f"{advice['safetyMessage']} Current security assessment: {advice['riskDescription']}",
            location=context.destination,
            coordinates=context.coordinates,
            source="ai",
            timestamp=now,
            actionable_advice=advice["advice"],
            expires_at=self._expiry(),
        )]

        if context.coordinates is not None:
            alerts.append(AISafetyAlert(
                id=f"transport-{stamp}",
                type="transportation",
                severity="medium",
                title="Transportation Safety",
                message=(f"Exercise caution with transportation in {context.destination}. "
                         "Verify legitimate services and routes."),
                location=context.destination,
                coordinates=context.coordinates,
                source="ai",
                timestamp=now,
                actionable_advice=[
                    "Use licensed transportation services",
                    "Verify taxi meters are running",
                    "Keep GPS tracking enabled",
                    "Share your location with trusted contacts",
                    "Avoid isolated transport stops after dark",
                ],
                expires_at=self._expiry(),
            ))

        alerts.append(AISafetyAlert(
            id=f"health-prep-{stamp}",
            type="health",
            severity="low",
            title="Health & Emergency Preparedness",
            message=f"Ensure you're prepared for health emergencies in {context.destination}.",
            location=context.destination,
            coordinates=context.coordinates,
            source="ai",
            timestamp=now,
            actionable_advice=[
                "Locate nearest medical facilities",
                "Have travel insurance documentation ready",
                "Keep emergency contacts in local format",
                "Know local emergency numbers",
                "Carry necessary medications with prescriptions",
            ],
            expires_at=self._expiry(),
        ))

        logger.info(f"Generated {len(alerts)} basic alerts for {context.destination}")
        return alerts

    @staticmethod
    def get_location_specific_advice(country: str, city: Optional[str] = None) -> dict:
        """Static risk level, description and tips for a country (generic template if unknown)."""
        advice = get_country_advice(country)
        if city and any(hotspot in city.lower() for hotspot in TOURIST_HOTSPOT_CITIES):
            advice["advice"].insert(0, "Extra caution needed in tourist-heavy areas")
        advice["safetyMessage"] = f"Traveling to {country}{f', {city}' if city else ''}."
        return advice

    async def get_real_time_alerts(self, context: LocationContext) -> list[AISafetyAlert]:
        weather, advisories = await asyncio.gather(
            self.generate_weather_alert(context),
            self.generate_exa_based_alerts(context),
            return_exceptions=True,
        )
        alerts: list[AISafetyAlert] = []
        if isinstance(weather, Exception):
            logger.warning(f"Weather alert unavailable: {weather}")
        elif weather is not None:
            alerts.append(weather)
        if isinstance(advisories, Exception):
            logger.warning(f"Travel advisories unavailable: {advisories}")
        else:
            alerts.extend(advisories)
        return alerts

    async def generate_exa_based_alerts(self, context: LocationContext) -> list[AISafetyAlert]:
        if context.destination:
            location = context.destination
        elif context.coordinates is not None:
            location = f"{context.coordinates.lat:.4f}, {context.coordinates.lng:.4f}"
        else:
            logger.warning("No location provided for travel advisory alerts")
            return []

        advisories = await self.search.get_travel_safety_alerts(location)
        alerts = [
            AISafetyAlert(
                id=f"exa-{advisory.id}",
                type=map_exa_alert_type(advisory.alertType),
                severity=advisory.severity,
                title=advisory.title,
                message=advisory.description,
                location=advisory.location,
                coordinates=context.coordinates,
                source="ai",
                timestamp=advisory.issuedDate,
                actionable_advice=advisory.recommendations,
                relevant_links=[url for url in [advisory.source.url] if url != "#"],
                expires_at=self._expiry(),
            )
            for advisory in advisories
        ]
        logger.info(f"Added {len(alerts)} travel advisory alerts for {location}")
        return alerts

    async def generate_weather_alert(self, context: LocationContext) -> Optional[AISafetyAlert]:
        # Static awareness notice; live weather lives in the dashboard's weather client
        return AISafetyAlert(
            id=f"weather-{self._ms()}",
            type="weather",
            severity="medium",
            title="Weather Monitoring",
            message=(f"Stay updated on weather conditions in {context.destination}. "
                     "Check local forecasts for any severe weather warnings."),
            location=context.destination,
            coordinates=context.coordinates,
            source="ai",
            timestamp=utc_now_iso(self._clock()),
            actionable_advice=[
                "Check daily weather forecasts",
                "Pack appropriate clothing for weather conditions",
                "Monitor local weather alerts and warnings",
            ],
        )

    async def _update_location_service(self, context: LocationContext):
        if context.coordinates is None:
            return
        try:
            await self.locations.update_user_location(SYSTEM_USER_ID, UserLocation(
                lat=context.coordinates.lat,
                lng=context.coordinates.lng,
                country=context.country or "Unknown",
                city=context.city,
            ))
        except Exception as e:
            logger.warning(f"Could not update location safety service: {e}")

    # ─────────────────────────── Fallbacks & housekeeping ───────

    def get_fallback_alerts(self, context: Optional[LocationContext]) -> list[AISafetyAlert]:
        destination = (context.destination if context is not None else "") or "Unknown"
        stamp = self._ms()
        now = utc_now_iso(self._clock())
        return [
            AISafetyAlert(
                id=f"fallback-general-{stamp}",
                type="safety",
                severity="medium",
                title="General Travel Safety",
                message=f"Stay alert and follow general safety practices while in {destination}.",
                location=destination,
                source="ai",
                timestamp=now,
                actionable_advice=[
                    "Keep important documents secure",
                    "Stay aware of your surroundings",
                    "Have emergency contacts readily available",
                    "Follow local laws and customs",
                ],
            ),
            AISafetyAlert(
                id=f"fallback-health-{stamp}",
                type="health",
                severity="low",
                title="Health & Hygiene Reminder",
                message=f"Remember to maintain good hygiene practices during your travels in {destination}.",
                location=destination,
                source="ai",
                timestamp=now,
                actionable_advice=[
                    "Wash hands frequently",
                    "Carry hand sanitizer",
                    "Stay hydrated",
                    "Be cautious with street food",
                ],
            ),
        ]

    @staticmethod
    def cache_key(context: LocationContext) -> str:
        destination = context.destination or "unknown"
        country = context.country or "unknown"
        if context.coordinates is not None:
            coords = f"{context.coordinates.lat:.4f}-{context.coordinates.lng:.4f}"
        else:
            coords = "no-coords"
        return f"{destination}-{country}-{coords}"

    def clear_expired_cache(self) -> int:
        removed = self._alerts.evict_expired()
        if removed:
            logger.info(f"Evicted {removed} expired alert cache entries")
        return removed

    @staticmethod
    def get_alert_stats(alerts: list[AISafetyAlert]) -> AlertStats:
        return compute_alert_stats(alerts)


ai_safety_service = AISafetyService()


async def get_ai_safety_insights(user_id: str, destination: str,
                                 service: Optional[AISafetyService] = None) -> list[AISafetyAlert]:
    """Alerts for a free-form "City, Country" destination string."""
    parts = [p.strip() for p in (destination or "").split(",") if p.strip()]
    logger.debug(f"Safety insights requested by {user_id} for {destination!r}")
    return await (service or ai_safety_service).generate_safety_alerts(LocationContext(
        destination=destination or "Unknown",
        country=parts[-1] if parts else "Unknown",
        city=parts[0] if len(parts) > 1 else None,
    ))
