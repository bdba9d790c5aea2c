"""GuardNomad Backend — Text cleanup & heuristic extraction from search results.

Everything here is best-effort text mining over free-form web snippets:
regexes and keyword checks, no guarantee of correctness. Callers always
have a default to fall back on when an extractor returns nothing.
"""

import base64
import html
import logging
import re
import time
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlparse

from config import EMERGENCY_NUMBERS, MAX_COMMON_SCAMS, MAX_EMERGENCY_NUMBERS

logger = logging.getLogger("guardnomad.text")

_TAG_RE = re.compile(r"<[^>]*>")
_DATA_URL_RE = re.compile(r"data:image/[^;]+;base64,[A-Za-z0-9+/=]+")
_WS_RE = re.compile(r"\s+")
_CONTROL_RE = re.compile(r"[^\x20-\x7E\u00A0-\uFFFF]")

# "Capitalized Words, Place", e.g. "Kreuzberg, Berlin"
_PLACE_RE = re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*),?\s*([A-Z][a-z]+)\b")

_RECOMMENDATION_RES = [
    re.compile(r"avoid\s+([^.]+)"),
    re.compile(r"do not\s+([^.]+)"),
    re.compile(r"exercise\s+([^.]+)"),
    re.compile(r"consider\s+([^.]+)"),
]

_EVENT_DATE_RE = re.compile(r"\b(\d{1,2}/\d{1,2}/\d{4}|\d{4}-\d{2}-\d{2})\b")
_VENUE_RE = re.compile(r"\b[Aa]t\s+([A-Z][^,.\n]+)")
_ADDRESS_RE = re.compile(r"\d+\s+[A-Z][^,\n]+,\s*[A-Z][^,\n]+", re.IGNORECASE)

_PHONE_RE = re.compile(r"(?:\+\d{1,3}[-.\s]?)?\(?\d{1,4}\)?[-.\s]?\d{1,4}[-.\s]?\d{1,9}")
# Short codes dialled for police, fire or ambulance services
_SHORT_EMERGENCY_CODES = frozenset({
    "000", "100", "101", "102", "108", "110", "111", "112", "113", "117", "118", "119",
    "122", "133", "144", "190", "191", "192", "193", "911", "999",
})
_EMERGENCY_CONTEXT = ("emergency", "police", "ambulance", "fire", "hotline", "dial", "call")
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+|\n+")

DEFAULT_RECOMMENDATION = "Stay informed and follow local guidance"


# ─────────────────────────── Identity & dates ───────────────────

def _base36(n: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    out = ""
    while n:
        n, r = divmod(n, 36)
        out = digits[r] + out
    return out or "0"


def generate_id(text: str, now: Optional[float] = None) -> str:
    """Short id from a URL plus the current time. Not unique across runs."""
    stamp = _base36(int((now if now is not None else time.time()) * 1000))
    digest = re.sub(r"[^a-zA-Z0-9]", "", base64.b64encode((text or "").encode("utf-8")).decode("ascii"))
    return f"{digest[:12]}_{stamp}"


def _utc(now: Optional[float] = None) -> datetime:
    return datetime.now(timezone.utc) if now is None else datetime.fromtimestamp(now, timezone.utc)


def utc_now_iso(now: Optional[float] = None) -> str:
    return _utc(now).isoformat()


def iso_in(hours: float = 0, days: float = 0, now: Optional[float] = None) -> str:
    return (_utc(now) + timedelta(hours=hours, days=days)).isoformat()


def date_days_ago(days: int) -> str:
    """YYYY-MM-DD for the start of a recency window."""
    return (datetime.now(timezone.utc) - timedelta(days=days)).date().isoformat()


def parse_timestamp(value: Optional[str]) -> float:
    """Epoch seconds for an ISO timestamp; 0.0 when missing or unparseable."""
    if not value:
        return 0.0
    try:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (ValueError, TypeError):
        return 0.0
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


# ─────────────────────────── Sanitization ───────────────────────

def sanitize_text(text: Optional[str]) -> str:
    if not text:
        return ""
    cleaned = _TAG_RE.sub("", text)
    cleaned = _DATA_URL_RE.sub("", cleaned)
    cleaned = _WS_RE.sub(" ", cleaned).strip()
    cleaned = _CONTROL_RE.sub("", cleaned)
    return html.unescape(cleaned).replace("\xa0", " ")


def sanitize_description(text: Optional[str]) -> str:
    if not text:
        return "No description available"
    cleaned = sanitize_text(text)
    if len(cleaned) < 10:
        return "Local news and safety information"
    if len(cleaned) > 150:
        cleaned = cleaned[:150]
        last_space = cleaned.rfind(" ")
        if last_space > 100:
            cleaned = cleaned[:last_space]
        cleaned += "..."
    return cleaned


def excerpt(result: dict, length: int = 200) -> str:
    """First highlight of a search result, or the head of its text."""
    highlights = result.get("highlights") or []
    if highlights and highlights[0]:
        return highlights[0]
    return (result.get("text") or "")[:length] + "..."


# ─────────────────────────── Sources ────────────────────────────

def extract_source_name(url: Optional[str]) -> str:
    try:
        host = urlparse(url or "").hostname
    except ValueError:
        host = None
    if not host:
        return "News Source"
    return host.replace("www.", "").split(".")[0].upper()


def determine_credibility(url: str) -> str:
    domain = (url or "").lower()
    if ".gov" in domain or "fbi." in domain or "ftc." in domain:
        return "government"
    if "bbb.org" in domain or "verified" in domain:
        return "verified"
    return "community"


def determine_authority(url: str) -> str:
    domain = (url or "").lower()
    if ".gov" in domain:
        return "government"
    if "who.int" in domain or "cdc.gov" in domain:
        return "international"
    if "verified" in domain or "official" in domain:
        return "verified"
    return "local"


def determine_source_type(url: str) -> str:
    domain = (url or "").lower()
    if "local" in domain or "patch.com" in domain or "nextdoor" in domain:
        return "local"
    if "regional" in domain or "state" in domain:
        return "regional"
    return "national"


# ─────────────────────────── Places & advice ────────────────────

def extract_location(title: str, content: str) -> Optional[str]:
    match = _PLACE_RE.search(f"{title} {content}")
    return match.group(0) if match else None


def extract_affected_areas(content: str, limit: int = 5) -> list[str]:
    areas = []
    for match in _PLACE_RE.finditer(content or ""):
        areas.append(match.group(0))
        if len(areas) >= limit:
            break
    return areas


def extract_affected_regions(content: str, location: str) -> list[str]:
    return extract_affected_areas(content) or [location]


def extract_recommendations(content: str, limit: int = 5) -> list[str]:
    text = (content or "").lower()
    recommendations: list[str] = []
    for pattern in _RECOMMENDATION_RES:
        for match in pattern.finditer(text):
            if len(recommendations) >= limit:
                break
            recommendations.append(match.group(1).strip())
    return recommendations or [DEFAULT_RECOMMENDATION]


def extract_action_required(content: str) -> str:
    text = (content or "").lower()
    if "avoid" in text:
        return "Avoid the affected area"
    if "exercise caution" in text:
        return "Exercise increased caution"
    if "stay informed" in text:
        return "Stay informed and monitor updates"
    if "contact" in text:
        return "Contact local authorities if needed"
    return "Stay alert and follow local guidance"


# ─────────────────────────── Events ─────────────────────────────

def extract_event_date(content: str) -> Optional[str]:
    match = _EVENT_DATE_RE.search(content or "")
    if not match:
        return None
    raw = match.group(0)
    fmt = "%m/%d/%Y" if "/" in raw else "%Y-%m-%d"
    try:
        return datetime.strptime(raw, fmt).replace(tzinfo=timezone.utc).isoformat()
    except ValueError:
        return None


def extract_venue_name(content: str) -> Optional[str]:
    match = _VENUE_RE.search(content or "")
    return match.group(1).strip() if match else None


def extract_address(content: str) -> Optional[str]:
    match = _ADDRESS_RE.search(content or "")
    return match.group(0) if match else None


def is_event_free(content: str) -> bool:
    text = (content or "").lower()
    return "free" in text or "no cost" in text or "complimentary" in text


# ─────────────────────────── Safety aggregates ──────────────────

def extract_scam_description(content: str) -> Optional[str]:
    for sentence in (content or "").split("."):
        if len(sentence) <= 20:
            continue
        lower = sentence.lower()
        if "scam" in lower or "fraud" in lower or "theft" in lower:
            return sentence.strip()[:100] + "..."
    return None


def extract_common_scams(results: list[dict]) -> list[str]:
    scams = []
    for result in results or []:
        text = result.get("text") or ""
        lower = text.lower()
        if "scam" in lower or "fraud" in lower or "theft" in lower:
            description = extract_scam_description(text)
            if description:
                scams.append(description)
    return scams[:MAX_COMMON_SCAMS]


def _is_dialable(candidate: str) -> bool:
    """Known short emergency codes, international numbers, or full-length lines."""
    digits = re.sub(r"\D", "", candidate)
    if candidate.startswith("+"):
        return len(digits) >= 7
    return digits in _SHORT_EMERGENCY_CODES or len(digits) >= 7


def extract_emergency_numbers(results: list[dict], country: str) -> list[str]:
    """Phone numbers quoted next to emergency wording, else country defaults."""
    numbers: list[str] = []
    for result in results or []:
        text = result.get("text") or ""
        found = []
        for sentence in _SENTENCE_RE.split(text):
            lower = sentence.lower()
            if not any(word in lower for word in _EMERGENCY_CONTEXT):
                continue
            found.extend(m.strip() for m in _PHONE_RE.findall(sentence) if _is_dialable(m.strip()))
        for number in found[:2]:
            label = f"Emergency: {number}"
            if label not in numbers:
                numbers.append(label)

    if not numbers:
        numbers = list(EMERGENCY_NUMBERS.get(country, EMERGENCY_NUMBERS["DEFAULT"]))
    return numbers[:MAX_EMERGENCY_NUMBERS]
