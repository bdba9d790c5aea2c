from unittest.mock import AsyncMock, Mock, patch

import pytest

from conftest import ExaStub
from location_service import LocationSafetyService
from models import (
    AdvisorySource, Coordinates, LocationAlert, LocationContext, LocationSafetyData,
    TravelSafetyAlert,
)
from safety_service import (
    AISafetyService, get_ai_safety_insights, map_alert_type, map_exa_alert_type,
)
from search_service import UnifiedSearchService

ALERT_TYPES = {"safety", "weather", "health", "security", "transportation", "cultural"}

BERLIN = {
    "destination": "Berlin, Germany",
    "country": "Germany",
    "city": "Berlin",
    "coordinates": {"lat": 52.520008, "lng": 13.404954},
}


def _safety_data(alerts=(), score: int = 72, scams=()) -> LocationSafetyData:
    return LocationSafetyData(
        location="Berlin, Germany",
        country="Germany",
        coordinates=Coordinates(lat=52.52, lng=13.40),
        safetyScore=score,
        riskLevel="medium",
        activeAlerts=list(alerts),
        commonScams=list(scams),
        emergencyNumbers=["Police: 110"],
        lastUpdated="2024-05-01T00:00:00Z",
    )


def _advisory(severity: str = "high") -> TravelSafetyAlert:
    return TravelSafetyAlert(
        id="adv1",
        title="Strike disrupts rail travel",
        description="Nationwide rail strike.",
        severity=severity,
        alertType="transport",
        location="Berlin, Germany",
        source=AdvisorySource(name="GOV", url="https://www.gov.uk/foreign-travel-advice", authority="government"),
        issuedDate="2024-05-01T00:00:00Z",
        affectedRegions=["Germany"],
        recommendations=["Check train times"],
    )


@pytest.fixture
def search():
    mock = Mock(spec=UnifiedSearchService)
    mock.get_location_safety_data = AsyncMock(return_value=_safety_data(alerts=[
        LocationAlert(id="x1", type="scam", severity="critical", title="ATM skimming",
                      description="Skimmers found", actionRequired="Use bank ATMs", source="POLICE"),
    ]))
    mock.get_local_news = AsyncMock(return_value=[])
    mock.get_travel_safety_alerts = AsyncMock(return_value=[_advisory()])
    return mock


@pytest.fixture
def locations():
    mock = Mock(spec=LocationSafetyService)
    mock.update_user_location = AsyncMock()
    return mock


@pytest.fixture
def service(search, locations, clock):
    return AISafetyService(search_service=search, location_service=locations, clock=clock)


# ─────────────────────────── Validation & fallbacks ─────────────

@pytest.mark.asyncio
@pytest.mark.parametrize("context", [{}, None, {"destination": ""}, LocationContext()])
async def test_missing_location_returns_fallback_pair(service, search, context):
    alerts = await service.generate_safety_alerts(context)

    assert len(alerts) == 2
    assert alerts[0].id.startswith("fallback-general-")
    assert alerts[1].id.startswith("fallback-health-")
    assert [a.title for a in alerts] == ["General Travel Safety", "Health & Hygiene Reminder"]
    assert alerts[0].message.endswith("while in Unknown.")
    assert alerts[0].location == "Unknown"
    search.get_local_news.assert_not_called()


@pytest.mark.asyncio
async def test_invalid_context_returns_fallback_pair(service):
    alerts = await service.generate_safety_alerts({"coordinates": {"lat": "north"}})
    assert [a.id.split("-")[1] for a in alerts] == ["general", "health"]


@pytest.mark.asyncio
async def test_unhandled_error_returns_fallback_for_destination(service):
    with patch.object(service, "get_real_time_alerts", side_effect=RuntimeError("boom")):
        alerts = await service.generate_safety_alerts(BERLIN)

    assert len(alerts) == 2
    assert "Berlin, Germany" in alerts[0].message


# ─────────────────────────── Pipeline ───────────────────────────

@pytest.mark.asyncio
async def test_pipeline_merges_and_prioritizes(service, locations):
    alerts = await service.generate_safety_alerts(BERLIN)

    assert [a.severity for a in alerts] == ["critical", "high", "medium"]
    analysis, advisory, weather = alerts
    assert analysis.id.startswith("analysis-")
    assert analysis.type == "security"
    assert analysis.actionable_advice == ["Use bank ATMs"]
    assert advisory.id == "exa-adv1"
    assert advisory.type == "transportation"
    assert advisory.relevant_links == ["https://www.gov.uk/foreign-travel-advice"]
    assert weather.type == "weather"
    assert all(a.type in ALERT_TYPES for a in alerts)

    locations.update_user_location.assert_awaited_once()
    user_id, location = locations.update_user_location.await_args.args
    assert user_id == "system"
    assert (location.lat, location.country, location.city) == (52.520008, "Germany", "Berlin")


@pytest.mark.asyncio
async def test_result_cached_for_rounded_coordinates(service, search, clock):
    first = await service.generate_safety_alerts(BERLIN)
    nearby = dict(BERLIN, coordinates={"lat": 52.52001, "lng": 13.40496})
    second = await service.generate_safety_alerts(nearby)

    assert second is first
    assert search.get_travel_safety_alerts.await_count == 1

    clock.advance(30 * 60)
    await service.generate_safety_alerts(BERLIN)
    assert search.get_travel_safety_alerts.await_count == 2


@pytest.mark.asyncio
async def test_travel_advisories_fetched_once_per_generation(service, search):
    await service.generate_safety_alerts(BERLIN)
    search.get_travel_safety_alerts.assert_awaited_once_with("Berlin, Germany")


@pytest.mark.asyncio
async def test_location_service_failure_is_swallowed(service, locations):
    locations.update_user_location.side_effect = RuntimeError("store down")
    alerts = await service.generate_safety_alerts(BERLIN)
    assert not alerts[0].id.startswith("fallback-")


@pytest.mark.asyncio
async def test_advisory_failure_does_not_drop_other_alerts(service, search):
    search.get_travel_safety_alerts.side_effect = RuntimeError("timeout")
    alerts = await service.generate_safety_alerts(BERLIN)
    assert [a.type for a in alerts] == ["security", "weather"]


@pytest.mark.asyncio
async def test_score_based_alert_when_no_active_alerts(service, search):
    search.get_location_safety_data.return_value = _safety_data(score=72, scams=["Fake petitions", "Shell game"])
    alerts = await service.generate_safety_alerts(BERLIN)

    score_alert = next(a for a in alerts if a.id.startswith("safety-score-"))
    assert score_alert.severity == "medium"
    assert "Current safety score: 72/100." in score_alert.message
    assert "moderate safety concerns" in score_alert.message
    assert score_alert.actionable_advice[0] == "Be aware of common scams: Fake petitions, Shell game"
    assert score_alert.actionable_advice[-1] == "Emergency numbers: Police: 110"


@pytest.mark.asyncio
async def test_basic_alerts_without_search_analysis(service, search):
    search.get_location_safety_data.return_value = None
    search.get_travel_safety_alerts.return_value = []

    alerts = await service.generate_safety_alerts(BERLIN)

    ids = {a.id.rsplit("-", 1)[0] for a in alerts}
    assert ids == {"location-safety", "transport", "health-prep", "weather"}
    location_alert = next(a for a in alerts if a.id.startswith("location-safety-"))
    assert location_alert.severity == "low"
    assert location_alert.actionable_advice[-1] == "Emergency number: 112"


@pytest.mark.asyncio
async def test_destination_only_skips_safety_stats_in_context(service, search):
    data = await service.gather_context_data(LocationContext(destination="Oslo", country="Norway"))
    assert data.safety_stats is None
    assert data.travel_timeline is None
    search.get_local_news.assert_awaited_once_with("Oslo")


@pytest.mark.asyncio
async def test_context_keeps_top_three_news(service, search):
    search.get_local_news.return_value = ["n1", "n2", "n3", "n4"]
    with patch("safety_service.ContextData", side_effect=lambda **kw: kw):
        data = await service.gather_context_data(LocationContext(destination="Oslo"))
    assert data["recent_news"] == ["n1", "n2", "n3"]


@pytest.mark.asyncio
async def test_alert_times_follow_injected_clock(service, clock):
    clock.now = 1_704_067_200.0  # 2024-01-01T00:00:00Z
    alerts = await service.generate_safety_alerts({})
    assert {a.timestamp for a in alerts} == {"2024-01-01T00:00:00+00:00"}

    weather = await service.generate_weather_alert(LocationContext(destination="Oslo"))
    assert weather.timestamp == "2024-01-01T00:00:00+00:00"
    assert service._expiry() == "2024-01-02T00:00:00+00:00"


def test_travel_timeline(service, clock):
    clock.now = 1_704_067_200.0  # 2024-01-01T00:00:00Z
    context = LocationContext(
        destination="Rome",
        travel_dates={"start": "2024-01-10T12:00:00Z", "end": "2024-01-15T00:00:00Z"},
    )
    timeline = service._travel_timeline(context)
    assert timeline.is_upcoming is True
    assert timeline.days_until_trip == 10
    assert timeline.trip_duration == 5


# ─────────────────────────── Helpers ────────────────────────────

def test_location_specific_advice_france_paris():
    advice = AISafetyService.get_location_specific_advice("France", "Paris")
    assert advice["riskLevel"] == "medium"
    assert advice["advice"][-1] == "Emergency number: 112"
    assert advice["advice"][0] == "Extra caution needed in tourist-heavy areas"
    assert advice["safetyMessage"] == "Traveling to France, Paris."


def test_location_specific_advice_does_not_accumulate():
    first = AISafetyService.get_location_specific_advice("France", "Paris")
    second = AISafetyService.get_location_specific_advice("France", "Paris")
    assert first["advice"] == second["advice"]


def test_location_specific_advice_unknown_country():
    advice = AISafetyService.get_location_specific_advice("Atlantis")
    assert advice["riskLevel"] == "medium"
    assert advice["riskDescription"] == "Standard travel precautions recommended"


@pytest.mark.parametrize("value", ["scam", "crime", "weather", "political", "health", "transport",
                                   "", None, "volcano", "SCAM", "🚨"])
def test_map_alert_type_always_in_enum(value):
    assert map_alert_type(value) in ALERT_TYPES


@pytest.mark.parametrize("value", ["security", "health", "weather", "political", "transport",
                                   "natural-disaster", "", None, "cyber", "Security"])
def test_map_exa_alert_type_always_in_enum(value):
    assert map_exa_alert_type(value) in ALERT_TYPES


def test_type_mappings():
    assert map_alert_type("scam") == "security"
    assert map_alert_type("transport") == "transportation"
    assert map_alert_type("unknown") == "safety"
    assert map_exa_alert_type("natural-disaster") == "weather"
    assert map_exa_alert_type("political") == "safety"


def test_cache_key():
    ctx = LocationContext.model_validate(BERLIN)
    assert AISafetyService.cache_key(ctx) == "Berlin, Germany-Germany-52.5200-13.4050"
    assert AISafetyService.cache_key(LocationContext(destination="Oslo")) == "Oslo-unknown-no-coords"


@pytest.mark.asyncio
async def test_clear_expired_cache(service, clock):
    await service.generate_safety_alerts(BERLIN)
    assert service.clear_expired_cache() == 0
    clock.advance(30 * 60)
    assert service.clear_expired_cache() == 1


@pytest.mark.asyncio
async def test_alert_stats(service):
    alerts = await service.generate_safety_alerts(BERLIN)
    stats = service.get_alert_stats(alerts)
    assert stats.total == 3
    assert stats.by_severity["critical"] == 1
    assert stats.ai_generated == 3


@pytest.mark.asyncio
async def test_insights_split_destination(service):
    with patch.object(service, "generate_safety_alerts", AsyncMock(return_value=[])) as generate:
        await get_ai_safety_insights("user-1", "Lisbon, Portugal", service=service)
    context = generate.await_args.args[0]
    assert (context.destination, context.city, context.country) == ("Lisbon, Portugal", "Lisbon", "Portugal")


# ─────────────────────────── Degraded provider end to end ───────

@pytest.mark.asyncio
async def test_unconfigured_search_still_yields_alerts(clock):
    stub = ExaStub()
    search = UnifiedSearchService(api_key="", client=stub.client(), clock=clock)
    service = AISafetyService(search_service=search, location_service=LocationSafetyService(search, clock), clock=clock)

    alerts = await service.generate_safety_alerts(BERLIN)

    assert alerts
    assert stub.calls == 0
    assert {a.id for a in alerts} >= {"exa-fallback_safety_1"}
    assert all(a.type in ALERT_TYPES for a in alerts)
