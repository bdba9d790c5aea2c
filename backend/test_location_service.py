from unittest.mock import AsyncMock, Mock

import pytest

from location_service import LocationSafetyService, haversine_km
from models import LocalNews, NewsSource, ScamAlert, ScamSource, UserLocation
from search_service import UnifiedSearchService

BERLIN = UserLocation(lat=52.52, lng=13.405, country="Germany", city="Berlin")


def _scam(ident: str, severity: str = "high") -> ScamAlert:
    return ScamAlert(
        id=ident, title=f"Scam {ident}", description="Fake ticket sellers", severity=severity,
        source=ScamSource(name="POLIZEI", url="https://polizei.de/x", credibility="government"),
        reportedDate="2024-05-01T00:00:00Z",
    )


def _news(ident: str, category: str) -> LocalNews:
    return LocalNews(
        id=ident, title=f"News {ident}", description="", content="Full story", url="https://x.de",
        publishedAt="2024-05-01T00:00:00Z",
        source=NewsSource(name="X", url="https://x.de", type="national"),
        category=category, location="Berlin, Germany",
    )


@pytest.fixture
def search():
    mock = Mock(spec=UnifiedSearchService)
    mock.get_scam_alerts = AsyncMock(return_value=[_scam("s1")])
    mock.get_local_news = AsyncMock(return_value=[
        _news("n1", "crime"), _news("n2", "sports"), _news("n3", "breaking"),
    ])
    return mock


@pytest.fixture
def service(search, clock):
    return LocationSafetyService(search_service=search, clock=clock)


@pytest.mark.asyncio
async def test_unknown_user_has_no_data(service, search):
    assert await service.get_user_location_alerts("ghost") == []
    assert await service.get_user_location_safety_score("ghost") is None
    assert await service.get_user_location_safety_data("ghost") is None
    assert await service.get_emergency_info("ghost") is None
    assert await service.get_nearby_alerts("ghost") == []
    assert await service.get_location_tips("ghost") == [
        "Stay aware of your surroundings",
        "Keep important documents secure",
        "Stay connected with family/friends",
    ]
    search.get_scam_alerts.assert_not_called()


@pytest.mark.asyncio
async def test_alerts_combine_scams_and_safety_news(service, search):
    await service.update_user_location("u1", BERLIN)
    alerts = await service.get_user_location_alerts("u1")

    assert [(a.id, a.type, a.severity) for a in alerts] == [
        ("s1", "scam", "high"),
        ("n1", "news", "medium"),
        ("n3", "news", "high"),
    ]
    assert all(a.location == "Berlin, Germany" and a.distanceFromUser == 0 for a in alerts)
    # empty description falls back to article content
    assert alerts[1].description == "Full story"
    search.get_scam_alerts.assert_awaited_once_with("Berlin, Germany")


@pytest.mark.asyncio
async def test_safety_score(service):
    await service.update_user_location("u1", BERLIN)
    score = await service.get_user_location_safety_score("u1")

    assert score.score == 80 - 15 - 2 * 10
    assert score.riskLevel == "high"
    assert score.location == "Berlin, Germany"


@pytest.mark.asyncio
async def test_safety_score_elevated_on_news_only(service, search):
    search.get_scam_alerts.return_value = []
    await service.update_user_location("u1", BERLIN)
    score = await service.get_user_location_safety_score("u1")

    assert score.score == 60
    assert score.riskLevel == "elevated"
    assert score.summary == "Some safety concerns based on recent news"


@pytest.mark.asyncio
async def test_safety_score_floor(service, search):
    search.get_scam_alerts.return_value = [_scam(f"s{i}") for i in range(10)]
    await service.update_user_location("u1", BERLIN)
    assert (await service.get_user_location_safety_score("u1")).score == 0


@pytest.mark.asyncio
async def test_failed_branch_is_isolated(service, search):
    search.get_scam_alerts.side_effect = RuntimeError("provider exploded")
    await service.update_user_location("u1", BERLIN)

    alerts = await service.get_user_location_alerts("u1")
    assert [a.type for a in alerts] == ["news", "news"]


@pytest.mark.asyncio
async def test_safety_data_and_derived_views(service):
    await service.update_user_location("u1", BERLIN)

    data = await service.get_user_location_safety_data("u1")
    assert data.safetyScore == 60
    assert data.riskLevel == "high"
    assert data.commonScams == ["Scam s1"]
    assert len(data.activeAlerts) == 3

    info = await service.get_emergency_info("u1")
    assert info.emergencyNumbers == ["112", "911"]

    tips = await service.get_location_tips("u1")
    assert tips[0] == "Current safety score: 60/100 (high risk)"
    assert "Watch out for: Scam s1" in tips


@pytest.mark.asyncio
async def test_nearby_alerts_match_user_city(service):
    await service.update_user_location("u1", BERLIN)
    assert len(await service.get_nearby_alerts("u1", radius_km=2)) == 3


def test_location_change_detection(service):
    assert service.has_user_location_changed("u1", BERLIN)


@pytest.mark.asyncio
async def test_location_change_threshold(service):
    await service.update_user_location("u1", BERLIN)
    same_block = UserLocation(lat=52.521, lng=13.406, country="Germany", city="Berlin")
    potsdam = UserLocation(lat=52.3906, lng=13.0645, country="Germany", city="Potsdam")

    assert not service.has_user_location_changed("u1", same_block)
    assert service.has_user_location_changed("u1", potsdam)
    assert not service.has_user_location_changed("u1", potsdam, significant_distance_km=50)


@pytest.mark.asyncio
async def test_location_expires_after_five_minutes(service, clock):
    await service.update_user_location("u1", BERLIN)
    assert service.get_user_location("u1") == BERLIN

    clock.advance(5 * 60)
    assert service.get_user_location("u1") is None
    # expired entry is dropped
    assert service.has_user_location_changed("u1", BERLIN)


@pytest.mark.asyncio
async def test_clear_user_location(service):
    await service.update_user_location("u1", BERLIN)
    service.clear_user_location("u1")
    assert service.get_user_location("u1") is None


def test_haversine_km():
    assert haversine_km(52.52, 13.405, 52.52, 13.405) == 0
    # Berlin to Paris is roughly 878 km
    assert 870 < haversine_km(52.52, 13.405, 48.8566, 2.3522) < 885
