"""GuardNomad Backend — Configuration & Constants"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env from project root (one level up from backend/)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path)

# ── API Keys ──
# VITE_ prefix kept so the dashboard's existing .env works unchanged
EXA_API_KEY = os.environ.get("EXA_API_KEY") or os.environ.get("VITE_EXA_API_KEY", "")
EXA_BASE_URL = os.environ.get("EXA_BASE_URL", "https://api.exa.ai")
EXA_TIMEOUT = float(os.environ.get("EXA_TIMEOUT", "15"))
EXA_PLACEHOLDER_KEYS = {"", "your_exa_api_key"}

GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY") or os.environ.get("VITE_GEMINI_API_KEY", "")
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.0-flash")

# keyword | gemini
CLASSIFIER_BACKEND = os.environ.get("CLASSIFIER_BACKEND", "keyword").lower()

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# ── Cache & provider timings (seconds) ──
SEARCH_CACHE_TTL = 15 * 60
SAFETY_CACHE_TTL = 30 * 60
ALERT_CACHE_TTL = 30 * 60
USER_LOCATION_TTL = 5 * 60
USER_LOCATION_MAX_ENTRIES = 1000
CACHE_MAX_ENTRIES = 50
PROVIDER_COOLDOWN = 5 * 60

# ── Result limits ──
MAX_PRIORITIZED_ALERTS = 8
MAX_ACTIVE_ALERTS = 5
MAX_COMMON_SCAMS = 3
MAX_EMERGENCY_NUMBERS = 3
CONTEXT_NEWS_ITEMS = 3

ALERT_VALIDITY_HOURS = 24
LOCATION_ALERT_VALIDITY_DAYS = 7

# ── HTTP API ──
RATE_LIMIT = int(os.environ.get("RATE_LIMIT", "30"))  # requests per minute per IP
RATE_WINDOW = 60

# Severity order used for sorting and score adjustment
SEVERITY_RANK = {"critical": 4, "high": 3, "medium": 2, "low": 1}

# Score penalty per alert severity
SEVERITY_PENALTY = {"critical": 20, "high": 10, "medium": 5, "low": 2}

# Emergency numbers by country name, used when search results carry none
EMERGENCY_NUMBERS = {
    "Germany": ["Police: 110", "Fire/Medical: 112", "Tourist Hotline: +49-30-25002333"],
    "United States": ["Emergency: 911", "Tourist Assistance: 1-800-555-0199"],
    "United Kingdom": ["Emergency: 999", "Non-emergency Police: 101"],
    "France": ["Emergency: 112", "Police: 17", "Fire: 18"],
    "DEFAULT": ["Emergency: 112", "Police: Local emergency services", "Medical: Local ambulance services"],
}

# Stock imagery for news cards
IMAGE_MAP = {
    "news": "https://images.unsplash.com/photo-1504711434969-e33886168f5c?w=400&h=250&fit=crop&auto=format",
    "safety": "https://images.unsplash.com/photo-1563013544-824ae1b704d3?w=400&h=250&fit=crop&auto=format",
    "event": "https://images.unsplash.com/photo-1492684223066-81342ee5ff30?w=400&h=250&fit=crop&auto=format",
    "scam": "https://images.unsplash.com/photo-1555949963-aa79dcee981c?w=400&h=250&fit=crop&auto=format",
}
