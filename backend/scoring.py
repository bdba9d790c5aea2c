"""GuardNomad Backend — Safety Scoring & Alert Prioritization"""

import logging

from config import MAX_PRIORITIZED_ALERTS, SEVERITY_PENALTY, SEVERITY_RANK
from models import AISafetyAlert, AlertStats, LocationAlert
from text_mining import parse_timestamp

logger = logging.getLogger("guardnomad.scoring")

BASE_SAFETY_SCORE = 85
MIN_SAFETY_SCORE = 20
MAX_SAFETY_SCORE = 100

_DANGER_WORDS = ("crime", "danger", "warning")


def calculate_safety_score(alerts: list[LocationAlert], results: list[dict]) -> int:
    """Score a location from its extracted alerts and raw search results.

    Starts at 85 and subtracts a fixed weight per alert severity
    (critical 20, high 10, medium 5, low 2). A further 5 or 10 points
    come off when more than 5 or 10 raw results mention crime, danger
    or warnings. The result is clamped to [20, 100].
    """
    score = BASE_SAFETY_SCORE
    for alert in alerts or []:
        score -= SEVERITY_PENALTY.get(alert.severity, 0)

    danger_mentions = sum(
        1 for r in results or []
        if r and any(w in (r.get("text") or "").lower() for w in _DANGER_WORDS)
    )
    if danger_mentions > 10:
        score -= 10
    elif danger_mentions > 5:
        score -= 5

    return max(MIN_SAFETY_SCORE, min(MAX_SAFETY_SCORE, score))


def determine_risk_level(safety_score: int, alerts: list[LocationAlert]) -> str:
    """Derive the risk level from the score and the alert severity counts.

    Mapping:
      any critical alert or score < 40   → critical
      more than one high alert or < 60   → high
      score < 80                         → medium
      otherwise                          → low
    """
    critical = sum(1 for a in alerts or [] if a.severity == "critical")
    high = sum(1 for a in alerts or [] if a.severity == "high")

    if critical > 0 or safety_score < 40:
        return "critical"
    if high > 1 or safety_score < 60:
        return "high"
    if safety_score < 80:
        return "medium"
    return "low"


def safety_message(score: int, destination: str) -> str:
    if score >= 85:
        return f"{destination} is considered relatively safe. Continue following standard travel precautions."
    elif score >= 70:
        return (f"{destination} has moderate safety concerns. "
                "Exercise increased caution and stay informed about local conditions.")
    elif score >= 50:
        return f"{destination} has elevated safety risks. Take extra precautions and avoid high-risk areas."
    else:
        return (f"{destination} has significant safety concerns. "
                "Consider avoiding non-essential travel and stay highly vigilant.")


def prioritize_alerts(alerts: list[AISafetyAlert], limit: int = MAX_PRIORITIZED_ALERTS) -> list[AISafetyAlert]:
    """Most severe first, newest first within a severity, capped at ``limit``.

    The sort is stable, so alerts with equal severity and timestamp keep
    their input order.
    """
    ranked = sorted(
        alerts,
        key=lambda a: (-SEVERITY_RANK.get(a.severity, 0), -parse_timestamp(a.timestamp)),
    )
    return ranked[:limit]


def compute_alert_stats(alerts: list[AISafetyAlert]) -> AlertStats:
    by_severity = {"critical": 0, "high": 0, "medium": 0, "low": 0}
    by_type = {"safety": 0, "weather": 0, "health": 0, "security": 0, "transportation": 0, "cultural": 0}
    for alert in alerts:
        by_severity[alert.severity] += 1
        by_type[alert.type] += 1

    return AlertStats(
        total=len(alerts),
        by_severity=by_severity,
        by_type=by_type,
        ai_generated=sum(1 for a in alerts if a.source == "ai"),
        actionable_items=sum(len(a.actionable_advice) for a in alerts),
    )
