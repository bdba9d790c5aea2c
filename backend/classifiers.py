"""GuardNomad Backend — Severity & category classification of search snippets.

A classifier turns a title + body into a (severity, category) pair. The
search service only depends on the ``Classifier`` protocol, so the keyword
rules below can be swapped for a model-backed implementation without
touching the orchestration code.
"""

import json
import logging
import threading
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from cachetools import LRUCache

from config import CLASSIFIER_BACKEND, GEMINI_API_KEY, GEMINI_MODEL

logger = logging.getLogger("guardnomad.classifiers")

SEVERITIES = ("low", "medium", "high", "critical")


@dataclass(frozen=True)
class Classification:
    severity: str
    category: str


class Classifier(Protocol):
    def classify(self, title: str, text: str = "") -> Classification:
        ...


# Ordered (label, keywords) rules; first label with a matching keyword wins
Rules = Sequence[tuple[str, Sequence[str]]]


class KeywordClassifier:
    """Lower-cased substring matching against ordered keyword rules."""

    def __init__(self, *, severity_rules: Rules = (), category_rules: Rules = (),
                 default_severity: str = "low", default_category: str = ""):
        self.severity_rules = severity_rules
        self.category_rules = category_rules
        self.default_severity = default_severity
        self.default_category = default_category

    @staticmethod
    def _first_match(rules: Rules, text: str, default: str) -> str:
        for label, keywords in rules:
            if any(k in text for k in keywords):
                return label
        return default

    def classify(self, title: str, text: str = "") -> Classification:
        blob = f"{title or ''} {text or ''}".lower()
        return Classification(
            severity=self._first_match(self.severity_rules, blob, self.default_severity),
            category=self._first_match(self.category_rules, blob, self.default_category),
        )

    @property
    def severity_labels(self) -> list[str]:
        return [label for label, _ in self.severity_rules] + [self.default_severity]

    @property
    def category_labels(self) -> list[str]:
        return [label for label, _ in self.category_rules] + [self.default_category]


# ─────────────────────────── Keyword rule sets ──────────────────

# Composite safety analysis → LocationAlert.type / severity
LOCATION_ALERT = KeywordClassifier(
    severity_rules=[
        ("critical", ["critical", "urgent", "immediate"]),
        ("high", ["high", "warning", "danger"]),
        ("medium", ["medium", "caution", "alert"]),
    ],
    category_rules=[
        ("scam", ["scam", "fraud"]),
        ("crime", ["crime", "robbery", "theft"]),
        ("weather", ["weather", "storm", "flood"]),
        ("political", ["political", "protest", "unrest"]),
        ("health", ["health", "disease", "medical"]),
        ("transport", ["transport", "traffic", "airport"]),
    ],
    default_category="crime",
)

# Government travel advisories → TravelSafetyAlert.alertType / severity
TRAVEL_ADVISORY = KeywordClassifier(
    severity_rules=[
        ("critical", ["do not travel", "emergency", "evacuate"]),
        ("high", ["reconsider travel", "high risk", "avoid"]),
        ("medium", ["exercise caution", "increased caution"]),
    ],
    category_rules=[
        ("health", ["health", "disease", "medical"]),
        ("weather", ["weather", "storm", "hurricane"]),
        ("political", ["political", "unrest", "protest"]),
        ("transport", ["transport", "flight", "airport"]),
        ("natural-disaster", ["earthquake", "tsunami", "volcano"]),
    ],
    default_category="security",
)

SCAM = KeywordClassifier(
    severity_rules=[
        ("critical", ["critical", "urgent", "immediate"]),
        ("high", ["warning", "alert", "danger"]),
        ("medium", ["caution", "beware", "notice"]),
    ],
    category_rules=[
        ("phishing", ["phishing", "email", "link"]),
        ("romance", ["romance", "dating", "relationship"]),
        ("investment", ["investment", "crypto", "stock"]),
        ("travel", ["travel", "vacation", "booking"]),
        ("theft", ["theft", "steal", "rob"]),
    ],
    default_category="fraud",
)

# ScamAlert.warningLevel, carried in the category slot
SCAM_WARNING = KeywordClassifier(
    category_rules=[
        ("immediate", ["immediate", "urgent", "now"]),
        ("caution", ["caution", "careful", "aware"]),
    ],
    default_category="advisory",
)

NEWS = KeywordClassifier(
    category_rules=[
        ("breaking", ["breaking", "urgent"]),
        ("crime", ["crime", "arrest", "police"]),
        ("weather", ["weather", "storm", "temperature"]),
        ("traffic", ["traffic", "road", "highway"]),
        ("business", ["business", "economy", "market"]),
        ("sports", ["sport", "game", "team"]),
        ("politics", ["politic", "election", "government"]),
    ],
    default_category="community",
)

EVENT = KeywordClassifier(
    category_rules=[
        ("entertainment", ["concert", "music", "show"]),
        ("food", ["food", "restaurant", "dining"]),
        ("cultural", ["art", "museum", "culture"]),
        ("business", ["business", "networking", "conference"]),
        ("sports", ["sport", "game", "race"]),
        ("education", ["learn", "workshop", "class"]),
        ("travel", ["travel", "tour", "trip"]),
    ],
    default_category="community",
)

KEYWORD_CLASSIFIERS: dict[str, KeywordClassifier] = {
    "location_alert": LOCATION_ALERT,
    "travel_advisory": TRAVEL_ADVISORY,
    "scam": SCAM,
    "scam_warning": SCAM_WARNING,
    "news": NEWS,
    "event": EVENT,
}


# ─────────────────────────── Gemini-backed classifier ───────────

_GEMINI_CACHE = LRUCache(maxsize=256)
_GEMINI_CACHE_LOCK = threading.Lock()


class GeminiClassifier:
    """Asks Gemini to pick a severity and category from a fixed label set.

    Labels outside the allowed sets, API errors and a missing key all fall
    back to the wrapped keyword classifier, so this never degrades results
    below the keyword baseline.
    """

    def __init__(self, name: str, fallback: KeywordClassifier,
                 api_key: str = GEMINI_API_KEY, model: str = GEMINI_MODEL):
        self.name = name
        self.fallback = fallback
        self.api_key = api_key
        self.model = model

    def classify(self, title: str, text: str = "") -> Classification:
        baseline = self.fallback.classify(title, text)
        if not self.api_key:
            return baseline

        cache_key = (self.name, (title or "")[:200], (text or "")[:500])
        with _GEMINI_CACHE_LOCK:
            if cache_key in _GEMINI_CACHE:
                return _GEMINI_CACHE[cache_key]

        severities = self.fallback.severity_labels if self.fallback.severity_rules else [baseline.severity]
        categories = self.fallback.category_labels

        try:
            import google.generativeai as genai
            genai.configure(api_key=self.api_key)
            model = genai.GenerativeModel(self.model)

            prompt = f"""You classify travel-safety web snippets.

Title: {title}
Text: {(text or '')[:1500]}

Pick exactly one severity from {severities} and one category from {categories}.
Return ONLY valid JSON (no markdown):
{{"severity": "<severity>", "category": "<category>"}}"""

            result = model.generate_content(
                prompt,
                generation_config=genai.types.GenerationConfig(
                    response_mime_type="application/json",
                ),
            )
            raw = result.text.strip()
            start_idx = raw.find('{')
            end_idx = raw.rfind('}')
            if start_idx != -1 and end_idx != -1:
                raw = raw[start_idx:end_idx + 1]
            parsed = json.loads(raw)

            severity = parsed.get("severity")
            category = parsed.get("category")
            classification = Classification(
                severity=severity if severity in severities else baseline.severity,
                category=category if category in categories else baseline.category,
            )
        except Exception as e:
            logger.warning(f"Gemini classification error for {self.name} (using keyword rules): {e}")
            return baseline

        with _GEMINI_CACHE_LOCK:
            _GEMINI_CACHE[cache_key] = classification
        return classification


def build_classifiers(backend: Optional[str] = None) -> dict[str, Classifier]:
    """Classifier set for the configured backend (``keyword`` or ``gemini``)."""
    backend = (backend or CLASSIFIER_BACKEND).lower()
    if backend == "gemini":
        if not GEMINI_API_KEY:
            logger.warning("CLASSIFIER_BACKEND=gemini but no Gemini key set, using keyword rules")
        else:
            return {name: GeminiClassifier(name, kw) for name, kw in KEYWORD_CLASSIFIERS.items()}
    return dict(KEYWORD_CLASSIFIERS)
