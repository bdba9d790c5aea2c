"""GuardNomad Backend — Unified search service (Exa neural search).

One entry point for every search-backed signal the dashboard shows:
local news, scam alerts, local events, official travel advisories and the
composite per-location safety analysis.

Each operation:
  1. returns a fresh cache entry verbatim when one exists,
  2. otherwise queries Exa with region-specific domains and a recency window,
  3. maps results through the classifiers and text-mining helpers,
  4. on any failure, or an answer with no usable results, returns a fixed fallback payload and opens the circuit
     breaker so later calls skip the network until the cooldown ends.

Public operations never raise.
"""

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

import httpx
from pydantic import ValidationError

from breaker import CircuitBreaker
from cache import TTLCache
from classifiers import Classifier, build_classifiers
from config import (
    CACHE_MAX_ENTRIES, EXA_API_KEY, EXA_BASE_URL, EXA_PLACEHOLDER_KEYS, EXA_TIMEOUT,
    IMAGE_MAP, LOCATION_ALERT_VALIDITY_DAYS, MAX_ACTIVE_ALERTS, PROVIDER_COOLDOWN,
    SAFETY_CACHE_TTL, SEARCH_CACHE_TTL,
)
from models import (
    AdvisorySource, Coordinates, EventSource, EventVenue, LocalEvent, LocalNews,
    LocationAlert, LocationSafetyData, NewsSource, SafetyScoreSummary, ScamAlert,
    ScamSource, SearchLocation, TravelSafetyAlert,
)
from region_data import (
    SAFETY_ANALYSIS_DOMAINS, TRAVEL_ADVISORY_DOMAINS,
    get_event_domains, get_news_domains, get_security_domains,
)
from scoring import calculate_safety_score, determine_risk_level
from text_mining import (
    date_days_ago, determine_authority, determine_credibility, determine_source_type,
    excerpt, extract_address, extract_affected_areas, extract_affected_regions,
    extract_action_required, extract_common_scams, extract_emergency_numbers,
    extract_event_date, extract_location, extract_recommendations, extract_source_name,
    extract_venue_name, generate_id, is_event_free, iso_in, sanitize_description,
    sanitize_text, utc_now_iso,
)

logger = logging.getLogger("guardnomad.search")

T = TypeVar("T")


class SearchAPIError(Exception):
    """The search API answered with a body we cannot use, or with no results."""


class UnifiedSearchService:
    def __init__(
        self,
        api_key: Optional[str] = EXA_API_KEY,
        client: Optional[httpx.AsyncClient] = None,
        *,
        clock: Callable[[], float] = time.time,
        classifiers: Optional[dict[str, Classifier]] = None,
        cache: Optional[TTLCache] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.api_key = api_key or ""
        self.configured = self.api_key not in EXA_PLACEHOLDER_KEYS
        if not self.configured:
            logger.warning("Exa API key missing or placeholder, search service will serve fallback data "
                           "(set EXA_API_KEY in .env)")

        self.client = client or httpx.AsyncClient(base_url=EXA_BASE_URL, timeout=EXA_TIMEOUT)
        self.cache = cache or TTLCache(default_ttl=SEARCH_CACHE_TTL, max_size=CACHE_MAX_ENTRIES, clock=clock)
        self.breaker = breaker or CircuitBreaker("Exa search", cooldown=PROVIDER_COOLDOWN, clock=clock)
        self.classifiers: dict[str, Classifier] = {**build_classifiers(), **(classifiers or {})}
        self._clock = clock

    # ─────────────────────────── Plumbing ───────────────────────

    @staticmethod
    def cache_key(kind: str, params: dict[str, Any]) -> str:
        return f"{kind}_{json.dumps(params, sort_keys=True, default=str)}"

    def _now(self) -> float:
        return self._clock()

    async def _search(
        self,
        query: str,
        *,
        num_results: int,
        include_domains: list[str],
        days_back: int,
        exclude_domains: Optional[list[str]] = None,
        highlight_sentences: int = 3,
        highlights_per_url: int = 1,
    ) -> list[dict]:
        payload: dict[str, Any] = {
            "query": query,
            "type": "neural",
            "useAutoprompt": True,
            "numResults": num_results,
            "includeDomains": include_domains,
            "startPublishedDate": date_days_ago(days_back),
            "contents": {
                "text": True,
                "highlights": {"numSentences": highlight_sentences, "highlightsPerUrl": highlights_per_url},
            },
        }
        if exclude_domains:
            payload["excludeDomains"] = exclude_domains

        r = await self.client.post("/search", json=payload, headers={"x-api-key": self.api_key})
        r.raise_for_status()
        data = r.json()
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise SearchAPIError(f"unexpected search response shape: {type(data).__name__}")
        return [res for res in results if isinstance(res, dict)]

    async def _guarded(self, operation: str, call: Callable[[], Awaitable[T]], fallback: T) -> T:
        """Run a provider call, degrading to ``fallback`` instead of raising."""
        if not self.configured:
            logger.info(f"Using fallback data for {operation} (search API not configured)")
            return fallback
        if not self.breaker.allow_request():
            logger.info(f"Using fallback data for {operation} (search API cooling down)")
            return fallback
        try:
            result = await call()
        except Exception as e:
            logger.warning(f"Exa API call failed for {operation}, using fallback: {e}")
            self.breaker.record_failure()
            return fallback
        self.breaker.record_success()
        return result

    def status(self) -> dict:
        return {
            "configured": self.configured,
            "circuit": self.breaker.state.value,
            "cachedEntries": len(self.cache),
        }

    def clear_cache(self):
        self.cache.clear()
        logger.info("Search service cache cleared")

    async def aclose(self):
        await self.client.aclose()

    # ─────────────────────────── Safety analysis ────────────────

    async def get_location_safety_data(
        self, location: Union[SearchLocation, dict, None],
    ) -> LocationSafetyData:
        """Composite safety picture for a country/city from four parallel searches."""
        if location is None:
            location = SearchLocation()
        elif isinstance(location, dict):
            try:
                location = SearchLocation.model_validate(location)
            except ValidationError as e:
                logger.warning(f"Invalid search location, using default safety data: {e}")
                return self.default_safety_data(SearchLocation())

        cache_key = self.cache_key("safety_data", {
            "country": location.country or "Unknown",
            "city": location.city or "",
            "coordinates": location.coordinates.model_dump() if location.coordinates else None,
        })
        cached = self.cache.get(cache_key, ttl=SAFETY_CACHE_TTL)
        if cached is not None:
            logger.info(f"Safety data cache hit for {location.label}")
            return cached

        async def analyse() -> LocationSafetyData:
            label = location.label
            queries = [
                f"Current safety alerts crime reports {label}",
                f"Travel warnings security advisories {label}",
                f"Tourist scams fraud alerts {label}",
                f"Emergency services police contact {label}",
            ]
            responses = await asyncio.gather(*[
                self._search(
                    q, num_results=8, include_domains=SAFETY_ANALYSIS_DOMAINS, days_back=30,
                    highlight_sentences=4, highlights_per_url=2,
                )
                for q in queries
            ])
            results = [res for batch in responses for res in batch]

            alerts = self.extract_location_alerts(results)
            score = calculate_safety_score(alerts, results)
            data = LocationSafetyData(
                location=label,
                country=location.country,
                coordinates=location.coordinates or Coordinates(lat=0, lng=0),
                safetyScore=score,
                riskLevel=determine_risk_level(score, alerts),
                activeAlerts=alerts,
                commonScams=extract_common_scams(results),
                emergencyNumbers=extract_emergency_numbers(results, location.country),
                lastUpdated=utc_now_iso(self._now()),
            )
            self.cache.set(cache_key, data)
            logger.info(f"Safety analysis for {label}: score {score}, {len(alerts)} alerts")
            return data

        return await self._guarded("safety analysis", analyse, self.default_safety_data(location))

    def extract_location_alerts(self, results: list[dict]) -> list[LocationAlert]:
        classifier = self.classifiers["location_alert"]
        stamp = int(self._now() * 1000)
        alerts = []
        for index, result in enumerate(results or []):
            title, text = result.get("title"), result.get("text")
            if not title or not text:
                continue
            c = classifier.classify(title, text)
            alerts.append(LocationAlert(
                id=f"exa_alert_{stamp}_{index}",
                type=c.category,
                severity=c.severity,
                title=title,
                description=excerpt(result),
                actionRequired=extract_action_required(text),
                affectedAreas=extract_affected_areas(text),
                source=extract_source_name(result.get("url")),
                validUntil=iso_in(days=LOCATION_ALERT_VALIDITY_DAYS, now=self._now()),
            ))
            if len(alerts) >= MAX_ACTIVE_ALERTS:
                break
        return alerts

    async def get_location_specific_alerts(
        self, user_location: Coordinates, country: str, city: Optional[str] = None,
    ) -> list[LocationAlert]:
        data = await self.get_location_safety_data(
            SearchLocation(country=country, city=city, coordinates=user_location)
        )
        return data.activeAlerts

    async def get_location_safety_score(
        self, user_location: Coordinates, country: str, city: Optional[str] = None,
    ) -> SafetyScoreSummary:
        data = await self.get_location_safety_data(
            SearchLocation(country=country, city=city, coordinates=user_location)
        )
        return SafetyScoreSummary(
            score=data.safetyScore,
            riskLevel=data.riskLevel,
            summary=(f"{data.location} has a {data.safetyScore}% safety score "
                     f"with {len(data.activeAlerts)} active alerts."),
        )

    # ─────────────────────────── Local news ─────────────────────

    async def get_local_news(self, location: str, category: Optional[str] = None) -> list[LocalNews]:
        cache_key = self.cache_key("local_news", {"location": location, "category": category})
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info(f"Local news cache hit for {location}")
            return cached

        async def fetch() -> list[LocalNews]:
            query = f"{location} local news current events today {category or ''}".strip()
            include, exclude = get_news_domains(location)
            logger.info(f"Exa local news search: {query} (domains: {', '.join(include[:5])})")

            results = await self._search(
                query, num_results=15, include_domains=include, exclude_domains=exclude, days_back=7,
            )
            classifier = self.classifiers["news"]
            news = []
            for result in results:
                url = result.get("url") or ""
                title = result.get("title") or ""
                text = result.get("text") or ""
                news.append(LocalNews(
                    id=generate_id(url, self._now()),
                    title=sanitize_text(title) or "Local News Update",
                    description=sanitize_description((result.get("highlights") or [None])[0] or text),
                    content=sanitize_text(text) or "Content not available",
                    url=url,
                    imageUrl=IMAGE_MAP["news"],
                    publishedAt=result.get("publishedDate") or utc_now_iso(self._now()),
                    source=NewsSource(name=extract_source_name(url), url=url, type=determine_source_type(url)),
                    category=classifier.classify(title, text).category,
                    location=location,
                ))
            if not news:
                raise SearchAPIError(f"no local news results for {location}")
            self.cache.set(cache_key, news)
            logger.info(f"Found {len(news)} local news articles for {location}")
            return news

        return await self._guarded("local news", fetch, self.fallback_local_news(location))

    # ─────────────────────────── Scam alerts ────────────────────

    async def get_scam_alerts(self, location: Optional[str] = None) -> list[ScamAlert]:
        cache_key = self.cache_key("scam_alerts", {"location": location})
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info(f"Scam alerts cache hit for {location or 'global'}")
            return cached

        async def fetch() -> list[ScamAlert]:
            query = (f"{location} scam alerts fraud warnings security threats" if location
                     else "Recent scam alerts and fraud warnings")
            domains = get_security_domains(location)
            logger.info(f"Exa scam alert search: {query} (domains: {', '.join(domains[:3])})")

            results = await self._search(
                query, num_results=10, include_domains=domains, days_back=30, highlight_sentences=2,
            )
            scam_classifier = self.classifiers["scam"]
            warning_classifier = self.classifiers["scam_warning"]
            alerts = []
            for result in results:
                url = result.get("url") or ""
                title = result.get("title") or ""
                text = result.get("text") or ""
                c = scam_classifier.classify(title, text)
                alerts.append(ScamAlert(
                    id=generate_id(url, self._now()),
                    title=sanitize_text(title) or "Scam Alert",
                    description=sanitize_description((result.get("highlights") or [None])[0] or text),
                    severity=c.severity,
                    location=location or extract_location(title, text),
                    scamType=c.category,
                    source=ScamSource(name=extract_source_name(url), url=url,
                                      credibility=determine_credibility(url)),
                    reportedDate=result.get("publishedDate") or utc_now_iso(self._now()),
                    affectedAreas=[location] if location else extract_affected_areas(text),
                    warningLevel=warning_classifier.classify(title, text).category,
                ))
            if not alerts:
                raise SearchAPIError(f"no scam alert results for {location or 'global'}")
            self.cache.set(cache_key, alerts)
            logger.info(f"Found {len(alerts)} scam alerts for {location or 'global'}")
            return alerts

        return await self._guarded("scam alerts", fetch, self.fallback_scam_alerts(location))

    # ─────────────────────────── Local events ───────────────────

    async def get_local_events(self, location: str, category: Optional[str] = None) -> list[LocalEvent]:
        cache_key = self.cache_key("local_events", {"location": location, "category": category})
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info(f"Local events cache hit for {location}")
            return cached

        async def fetch() -> list[LocalEvent]:
            query = f"{location} upcoming events activities {category or ''}".strip()
            domains = get_event_domains(location)
            logger.info(f"Exa local events search: {query} (domains: {', '.join(domains[:3])})")

            results = await self._search(
                query, num_results=12, include_domains=domains, days_back=14, highlight_sentences=2,
            )
            classifier = self.classifiers["event"]
            events = []
            for result in results:
                url = result.get("url") or ""
                title = result.get("title") or ""
                text = result.get("text") or ""
                events.append(LocalEvent(
                    id=generate_id(url, self._now()),
                    title=sanitize_text(title) or "Local Event",
                    description=sanitize_description((result.get("highlights") or [None])[0] or text),
                    startDate=extract_event_date(text) or utc_now_iso(self._now()),
                    location=EventVenue(
                        name=extract_venue_name(text) or location,
                        address=extract_address(text) or location,
                    ),
                    category=classifier.classify(title, text).category,
                    isFree=is_event_free(text),
                    eventUrl=url,
                    source=EventSource(name=extract_source_name(url), url=url),
                ))
            if not events:
                raise SearchAPIError(f"no local event results for {location}")
            self.cache.set(cache_key, events)
            logger.info(f"Found {len(events)} local events for {location}")
            return events

        return await self._guarded("local events", fetch, self.fallback_local_events(location))

    # ─────────────────────────── Travel advisories ──────────────

    async def get_travel_safety_alerts(self, location: str) -> list[TravelSafetyAlert]:
        cache_key = self.cache_key("travel_safety", {"location": location})
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info(f"Travel safety cache hit for {location}")
            return cached

        async def fetch() -> list[TravelSafetyAlert]:
            query = f"Official travel safety alerts and advisories for {location}:"
            logger.info(f"Exa travel safety search: {query}")

            results = await self._search(
                query, num_results=6, include_domains=TRAVEL_ADVISORY_DOMAINS, days_back=60,
            )
            classifier = self.classifiers["travel_advisory"]
            alerts = []
            for result in results:
                url = result.get("url") or ""
                title = result.get("title") or ""
                text = result.get("text") or ""
                c = classifier.classify(title, text)
                alerts.append(TravelSafetyAlert(
                    id=generate_id(url, self._now()),
                    title=sanitize_text(title) or "Travel Safety Alert",
                    description=sanitize_description((result.get("highlights") or [None])[0] or text),
                    severity=c.severity,
                    alertType=c.category,
                    location=location,
                    source=AdvisorySource(name=extract_source_name(url), url=url,
                                          authority=determine_authority(url)),
                    issuedDate=result.get("publishedDate") or utc_now_iso(self._now()),
                    affectedRegions=extract_affected_regions(text, location),
                    recommendations=extract_recommendations(text),
                ))
            if not alerts:
                raise SearchAPIError(f"no travel safety results for {location}")
            self.cache.set(cache_key, alerts)
            logger.info(f"Found {len(alerts)} travel safety alerts for {location}")
            return alerts

        return await self._guarded("travel safety alerts", fetch, self.fallback_travel_safety(location))

    # ─────────────────────────── Fallback payloads ──────────────

    def default_safety_data(self, location: SearchLocation) -> LocationSafetyData:
        label = location.label
        return LocationSafetyData(
            location=label,
            country=location.country,
            coordinates=location.coordinates or Coordinates(lat=0, lng=0),
            safetyScore=75,
            riskLevel="medium",
            activeAlerts=[LocationAlert(
                id="default_alert_1",
                type="crime",
                severity="low",
                title=f"General Safety Awareness for {label}",
                description="Stay aware of your surroundings and follow standard travel safety practices.",
                actionRequired="Exercise normal precautions",
                affectedAreas=[label],
                source="Guard Nomad Safety",
                validUntil=iso_in(days=LOCATION_ALERT_VALIDITY_DAYS, now=self._now()),
            )],
            commonScams=[
                "Pickpocketing in crowded tourist areas",
                "Overcharging by taxi drivers",
                "Fake police or authority figures",
            ],
            emergencyNumbers=[
                "Emergency: 112",
                "Police: Local emergency services",
                "Tourist Assistance: Contact local tourism office",
            ],
            lastUpdated=utc_now_iso(self._now()),
        )

    @staticmethod
    def fallback_local_news(location: str) -> list[LocalNews]:
        return [LocalNews(
            id="fallback_news_1",
            title=f"{location} Travel Updates",
            description=f"Stay informed about local developments and travel news in {location}.",
            content=f"Guard Nomad provides local news and updates for travelers in {location}.",
            url="#",
            imageUrl="https://images.unsplash.com/photo-1504711434969-e33886168f5c?w=400",
            publishedAt=utc_now_iso(),
            source=NewsSource(name="Guard Nomad News", url="#", type="local"),
            category="community",
            location=location,
        )]

    @staticmethod
    def fallback_scam_alerts(location: Optional[str] = None) -> list[ScamAlert]:
        return [ScamAlert(
            id="fallback_scam_1",
            title=f"{location} Scam Alert" if location else "General Fraud Awareness",
            description=("Stay vigilant against common scams and fraudulent activities "
                         f"{f'in {location}' if location else 'while traveling'}."),
            severity="medium",
            location=location or "Global",
            scamType="fraud",
            source=ScamSource(name="Guard Nomad Security", url="#", credibility="verified"),
            reportedDate=utc_now_iso(),
            affectedAreas=[location or "Global"],
            warningLevel="advisory",
        )]

    @staticmethod
    def fallback_local_events(location: str) -> list[LocalEvent]:
        return [LocalEvent(
            id="fallback_event_1",
            title=f"{location} Traveler Meetup",
            description=f"Connect with other travelers and explore {location} together.",
            startDate=utc_now_iso(),
            location=EventVenue(name=location, address=location),
            category="travel",
            isFree=True,
            eventUrl="#",
            source=EventSource(name="Guard Nomad Events", url="#"),
        )]

    @staticmethod
    def fallback_travel_safety(location: str) -> list[TravelSafetyAlert]:
        return [TravelSafetyAlert(
            id="fallback_safety_1",
            title=f"{location} Travel Advisory",
            description=f"General travel safety information and recommendations for {location}.",
            severity="low",
            alertType="security",
            location=location,
            source=AdvisorySource(name="Guard Nomad Safety", url="#", authority="verified"),
            issuedDate=utc_now_iso(),
            affectedRegions=[location],
            recommendations=["Stay informed", "Follow local guidance", "Keep emergency contacts handy"],
        )]


# Shared instance used by the API layer
search_service = UnifiedSearchService()
