"""GuardNomad Backend — Pydantic Models"""

from typing import Literal, Optional
from pydantic import BaseModel, Field

Severity = Literal["low", "medium", "high", "critical"]
AlertType = Literal["safety", "weather", "health", "security", "transportation", "cultural"]
AlertSource = Literal["ai", "news", "weather", "local_authority"]
LocationAlertType = Literal["scam", "crime", "weather", "political", "health", "transport"]
ScamType = Literal["phishing", "fraud", "theft", "romance", "investment", "travel", "other"]
TravelAlertType = Literal["security", "health", "weather", "political", "transport", "natural-disaster"]
NewsCategory = Literal["breaking", "politics", "business", "crime", "weather", "traffic", "community", "sports"]
EventCategory = Literal["cultural", "business", "entertainment", "sports", "education", "community", "food", "travel"]


class Coordinates(BaseModel):
    lat: float
    lng: float


class TravelDates(BaseModel):
    start: str  # ISO date
    end: str


class UserLocation(BaseModel):
    lat: float
    lng: float
    country: str = "Unknown"
    city: Optional[str] = None
    region: Optional[str] = None


class LocationContext(BaseModel):
    """Destination being planned or visited, built per request from UI state."""
    destination: str = ""
    coordinates: Optional[Coordinates] = None
    country: str = ""
    city: Optional[str] = None
    travel_dates: Optional[TravelDates] = None
    user_location: Optional[UserLocation] = None


class SearchLocation(BaseModel):
    """Location parameters for the composite safety analysis."""
    country: str = "Unknown"
    city: Optional[str] = None
    region: Optional[str] = None
    coordinates: Optional[Coordinates] = None

    @property
    def label(self) -> str:
        return f"{self.city}, {self.country}" if self.city else self.country


# ─────────────────────────── Alerts ─────────────────────────────

class AISafetyAlert(BaseModel):
    id: str
    type: AlertType = "safety"
    severity: Severity = "low"
    title: str
    message: str
    location: str
    coordinates: Optional[Coordinates] = None
    source: AlertSource = "ai"
    timestamp: str
    actionable_advice: list[str] = []
    relevant_links: Optional[list[str]] = None
    expires_at: Optional[str] = None


class LocationAlert(BaseModel):
    id: str
    type: LocationAlertType = "crime"
    severity: Severity = "low"
    title: str
    description: str
    actionRequired: str
    affectedAreas: list[str] = []
    validUntil: Optional[str] = None
    source: str


class ScamSource(BaseModel):
    name: str
    url: str
    credibility: Literal["government", "verified", "community"]


class ScamAlert(BaseModel):
    id: str
    title: str
    description: str
    severity: Severity = "low"
    location: Optional[str] = None
    scamType: ScamType = "fraud"
    source: ScamSource
    reportedDate: str
    affectedAreas: list[str] = []
    warningLevel: Literal["immediate", "caution", "advisory"] = "advisory"


class AdvisorySource(BaseModel):
    name: str
    url: str
    authority: Literal["government", "international", "local", "verified"]


class TravelSafetyAlert(BaseModel):
    id: str
    title: str
    description: str
    severity: Severity = "low"
    alertType: TravelAlertType = "security"
    location: str
    source: AdvisorySource
    issuedDate: str
    affectedRegions: list[str] = []
    recommendations: list[str] = []


class NewsSource(BaseModel):
    name: str
    url: str
    type: Literal["local", "regional", "national"]


class LocalNews(BaseModel):
    id: str
    title: str
    description: str
    content: str
    url: str
    imageUrl: Optional[str] = None
    publishedAt: str
    source: NewsSource
    category: NewsCategory = "community"
    location: str


class EventVenue(BaseModel):
    name: str
    address: str


class EventSource(BaseModel):
    name: str
    url: str


class LocalEvent(BaseModel):
    id: str
    title: str
    description: str
    startDate: str
    location: EventVenue
    category: EventCategory = "community"
    isFree: bool = False
    eventUrl: str
    source: EventSource


# ─────────────────────────── Aggregates ─────────────────────────

class LocationSafetyData(BaseModel):
    location: str
    country: str
    coordinates: Coordinates
    safetyScore: int = Field(ge=20, le=100)
    riskLevel: Severity
    activeAlerts: list[LocationAlert] = Field(default_factory=list, max_length=5)
    commonScams: list[str] = Field(default_factory=list, max_length=3)
    emergencyNumbers: list[str] = Field(default_factory=list, max_length=3)
    lastUpdated: str


class SafetyScoreSummary(BaseModel):
    score: int
    riskLevel: str
    summary: str


class TravelTimeline(BaseModel):
    is_upcoming: bool
    days_until_trip: int
    trip_duration: int


class ContextData(BaseModel):
    """Signals gathered before alert generation."""
    safety_stats: Optional[LocationSafetyData] = None
    recent_news: list[LocalNews] = []
    travel_timeline: Optional[TravelTimeline] = None


class AlertStats(BaseModel):
    total: int
    by_severity: dict[str, int]
    by_type: dict[str, int]
    ai_generated: int
    actionable_items: int


# ─────────────────────────── Location service ───────────────────

class UserSafetyAlert(BaseModel):
    id: str
    title: str
    description: str
    severity: Severity = "medium"
    type: str
    location: str
    isLocationSpecific: bool = True
    distanceFromUser: Optional[float] = None  # km


class UserSafetyScore(BaseModel):
    score: int
    riskLevel: str  # low | medium | elevated | high
    summary: str
    location: str


class UserSafetyData(BaseModel):
    safetyScore: int
    riskLevel: str
    activeAlerts: list[dict] = []
    commonScams: list[str] = []
    emergencyNumbers: list[str] = []
    location: str


class EmergencyInfo(BaseModel):
    emergencyNumbers: list[str]
    nearestHospital: Optional[str] = None
    nearestPoliceStation: Optional[str] = None
    embassyContact: Optional[str] = None


# ─────────────────────────── API ────────────────────────────────

class AlertsResponse(BaseModel):
    alerts: list[AISafetyAlert]
    stats: AlertStats


class SafetyScoreRequest(BaseModel):
    lat: float
    lng: float
    country: str
    city: Optional[str] = None


class ProviderStatus(BaseModel):
    configured: bool
    circuit: str
    cachedEntries: int


class HealthResponse(BaseModel):
    status: str
    searchProvider: ProviderStatus
    classifier: str
