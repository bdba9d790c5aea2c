"""GuardNomad Backend — Regional Source Tables & Country Advice

Static lookup tables that steer the neural search toward sources that
actually cover a destination (so a German destination queries German news
and government domains rather than US outlets), plus a hand-authored
country risk table used when no live safety signal is available.

Region detection is keyword based on the free-form location string.
Short tokens ("uk", "us", "eu", "usa") are matched as whole words so
that "Russia" or "Australia" do not fall into the US bucket.
"""

import copy
import logging
import re
from typing import Optional

logger = logging.getLogger("guardnomad.regions")

# ═══════════════════════════════════════════════════════════════
# Region detection
# ═══════════════════════════════════════════════════════════════

# Checked in order; first match wins.
REGION_KEYWORDS: list[tuple[str, list[str]]] = [
    ("germany", ["germany", "deutschland", "berlin", "munich", "hamburg", "magdeburg"]),
    ("uk", ["uk", "england", "london", "britain"]),
    ("france", ["france", "paris", "lyon"]),
    ("spain", ["spain", "madrid", "barcelona"]),
    ("italy", ["italy", "rome", "milan"]),
    ("netherlands", ["netherlands", "amsterdam", "holland"]),
    ("europe", ["europe", "eu"]),
    ("us", ["us", "usa", "america"]),
]

_SHORT_TOKENS = {"uk", "us", "eu", "usa"}


def _matches(keyword: str, text: str) -> bool:
    if keyword in _SHORT_TOKENS:
        return re.search(rf"\b{keyword}\b", text) is not None
    return keyword in text


def detect_region(location: Optional[str], allowed: Optional[set[str]] = None) -> str:
    """Map a location string to a region key, or "default".

    ``allowed`` restricts the candidate regions to those a given table
    actually has entries for; other matches are skipped.
    """
    if not location:
        return "default"
    text = location.lower()
    for region, keywords in REGION_KEYWORDS:
        if allowed is not None and region not in allowed:
            continue
        if any(_matches(k, text) for k in keywords):
            return region
    return "default"


# ═══════════════════════════════════════════════════════════════
# News domains (include / exclude)
# ═══════════════════════════════════════════════════════════════

_US_LOCAL_OUTLETS = ["patch.com", "abc7.com", "nbc.com", "cbs.com"]

NEWS_DOMAINS: dict[str, dict[str, list[str]]] = {
    "germany": {
        "include": [
            "spiegel.de", "bild.de", "zeit.de", "sueddeutsche.de", "faz.net",
            "welt.de", "focus.de", "stern.de", "tagesschau.de", "zdf.de",
            "dw.com", "deutsche-welle.de", "mdr.de", "ndr.de", "br.de",
            "lokalkompass.de", "news.de", "gmx.net", "web.de",
            # English-language coverage of Germany
            "thelocal.de", "reuters.com", "bbc.com", "euronews.com",
        ],
        "exclude": _US_LOCAL_OUTLETS + [
            "fox.com", "cnn.com", "usatoday.com", "washingtonpost.com", "nytimes.com",
        ],
    },
    "uk": {
        "include": [
            "bbc.co.uk", "guardian.co.uk", "telegraph.co.uk", "independent.co.uk",
            "dailymail.co.uk", "mirror.co.uk", "express.co.uk", "metro.co.uk",
            "standard.co.uk", "manchestereveningnews.co.uk", "birminghammail.co.uk",
        ],
        "exclude": _US_LOCAL_OUTLETS,
    },
    "france": {
        "include": [
            "lemonde.fr", "figaro.fr", "liberation.fr", "franceinfo.fr",
            "bfmtv.com", "leparisien.fr", "ouest-france.fr", "france24.com",
        ],
        "exclude": _US_LOCAL_OUTLETS,
    },
    "spain": {
        "include": [
            "elpais.com", "elmundo.es", "abc.es", "lavanguardia.com",
            "elperiodico.com", "publico.es", "rtve.es",
        ],
        "exclude": _US_LOCAL_OUTLETS,
    },
    "italy": {
        "include": [
            "corriere.it", "repubblica.it", "lastampa.it", "gazzetta.it",
            "ansa.it", "ilgiornale.it", "ilmessaggero.it",
        ],
        "exclude": _US_LOCAL_OUTLETS,
    },
    "netherlands": {
        "include": [
            "nu.nl", "nos.nl", "telegraaf.nl", "volkskrant.nl", "nrc.nl",
            "rtl.nl", "ad.nl", "dutchnews.nl",
        ],
        "exclude": _US_LOCAL_OUTLETS,
    },
    "europe": {
        "include": [
            "euronews.com", "politico.eu", "reuters.com", "bbc.com",
            "dw.com", "france24.com", "euractiv.com",
        ],
        "exclude": _US_LOCAL_OUTLETS,
    },
    "us": {
        "include": [
            "patch.com", "nextdoor.com", "local.news", "abc7.com", "nbc.com", "cbs.com",
            "npr.org", "pbs.org", "usatoday.com", "apnews.com",
        ],
        "exclude": [],
    },
    "default": {
        "include": [
            "reuters.com", "bbc.com", "apnews.com", "euronews.com",
            "dw.com", "france24.com", "aljazeera.com", "cnn.com",
        ],
        "exclude": ["patch.com", "abc7.com", "nextdoor.com"],
    },
}

# ═══════════════════════════════════════════════════════════════
# Security / consumer-protection domains (scam alerts)
# ═══════════════════════════════════════════════════════════════

SECURITY_DOMAINS: dict[str, list[str]] = {
    "global": [
        "interpol.int", "europol.europa.eu", "consumer.ftc.gov", "ic3.gov",
        "scamwatch.gov.au", "actionfraud.police.uk", "bbb.org",
    ],
    "germany": [
        "bka.de", "bsi.bund.de", "polizei.de", "verbraucherzentrale.de",
        "bundesnetzagentur.de", "europol.europa.eu", "bbb.org",
        "scamadviser.com", "trustpilot.com",
    ],
    "uk": [
        "actionfraud.police.uk", "ncsc.gov.uk", "citizensadvice.org.uk",
        "which.co.uk", "ico.org.uk", "fca.org.uk", "europol.europa.eu",
    ],
    "europe": [
        "europol.europa.eu", "europarl.europa.eu", "ecdl.org",
        "bsi.bund.de", "ncsc.gov.uk", "actionfraud.police.uk",
    ],
    "us": [
        "ftc.gov", "fbi.gov", "ic3.gov", "consumer.ftc.gov",
        "bbb.org", "fraud.org", "aarp.org",
    ],
    "default": [
        "interpol.int", "europol.europa.eu", "consumer.ftc.gov",
        "scamwatch.gov.au", "actionfraud.police.uk", "bbb.org",
    ],
}

# ═══════════════════════════════════════════════════════════════
# Event platforms
# ═══════════════════════════════════════════════════════════════

EVENT_DOMAINS: dict[str, list[str]] = {
    "germany": [
        "eventbrite.de", "xing.com", "meetup.com", "facebook.com/events",
        "veranstaltungen.meinestadt.de", "events.at", "berlin.de/events",
        "muenchen.de", "hamburg.de/events", "magdeburg.de", "sachsen-anhalt.de",
        "timeout.com", "allevents.in", "unternehmen-heute.de",
    ],
    "uk": [
        "eventbrite.co.uk", "meetup.com", "facebook.com/events",
        "timeout.com/london", "visitlondon.com", "whatson.co.uk",
        "ticketmaster.co.uk", "seetickets.com", "designmynight.com",
    ],
    "europe": [
        "eventbrite.com", "meetup.com", "facebook.com/events",
        "timeout.com", "allevents.in", "events.at", "ticketmaster.com",
        "viagogo.com", "stubhub.com", "songkick.com",
    ],
    "us": [
        "eventbrite.com", "meetup.com", "facebook.com/events",
        "patch.com", "timeout.com", "allevents.in", "ticketmaster.com",
        "stubhub.com", "bandsintown.com", "songkick.com",
    ],
    "default": [
        "eventbrite.com", "meetup.com", "facebook.com/events",
        "timeout.com", "allevents.in", "ticketmaster.com", "songkick.com",
    ],
}

# ═══════════════════════════════════════════════════════════════
# Government advisory domains
# ═══════════════════════════════════════════════════════════════

# Composite safety analysis (crime, advisories, scams, emergency contacts)
SAFETY_ANALYSIS_DOMAINS = [
    "state.gov", "fco.gov.uk", "travel.gc.ca", "smartraveller.gov.au", "police.uk", "local.gov",
]

TRAVEL_ADVISORY_DOMAINS = [
    "state.gov", "gov.uk", "smartraveller.gov.au", "travel.gc.ca",
    "who.int", "cdc.gov", "auswaertiges-amt.de", "diplomatie.gouv.fr",
]


def get_news_domains(location: str) -> tuple[list[str], list[str]]:
    """Return (include_domains, exclude_domains) for a news query."""
    entry = NEWS_DOMAINS[detect_region(location, set(NEWS_DOMAINS))]
    return list(entry["include"]), list(entry["exclude"])


def get_security_domains(location: Optional[str] = None) -> list[str]:
    if not location:
        return list(SECURITY_DOMAINS["global"])
    return list(SECURITY_DOMAINS[detect_region(location, set(SECURITY_DOMAINS))])


def get_event_domains(location: str) -> list[str]:
    return list(EVENT_DOMAINS[detect_region(location, set(EVENT_DOMAINS))])


# ═══════════════════════════════════════════════════════════════
# Country advice (knowledge-based baseline)
# ═══════════════════════════════════════════════════════════════

COUNTRY_ADVICE: dict[str, dict] = {
    "france": {
        "riskLevel": "medium",
        "riskDescription": "Generally safe with standard tourist precautions needed",
        "advice": [
            "Be aware of pickpockets in tourist areas and public transport",
            "Avoid protests and large gatherings",
            "Keep valuables secure in popular destinations",
            "Use hotel safes for important documents",
            "Emergency number: 112",
        ],
    },
    "spain": {
        "riskLevel": "medium",
        "riskDescription": "Popular destination with typical urban safety concerns",
        "advice": [
            "Watch for pickpockets in crowded areas",
            "Be cautious with bag snatching in tourist zones",
            "Avoid displaying expensive items openly",
            "Stay in well-lit areas at night",
            "Emergency number: 112",
        ],
    },
    "italy": {
        "riskLevel": "medium",
        "riskDescription": "Generally safe with awareness needed in tourist areas",
        "advice": [
            "Be alert for pickpockets near major attractions",
            "Avoid unofficial tour guides and street vendors",
            "Keep copies of important documents separate",
            "Use official taxi services",
            "Emergency number: 112",
        ],
    },
    "united kingdom": {
        "riskLevel": "low",
        "riskDescription": "Low crime rates with standard urban precautions",
        "advice": [
            "Be aware of petty theft in busy areas",
            "Mind the gap on public transport",
            "Carry umbrella for unpredictable weather",
            "Keep left when walking on sidewalks",
            "Emergency number: 999",
        ],
    },
    "germany": {
        "riskLevel": "low",
        "riskDescription": "Very safe with excellent infrastructure",
        "advice": [
            "Follow strict traffic rules",
            "Be punctual for appointments",
            "Separate waste properly",
            "Carry cash as cards not always accepted",
            "Emergency number: 112",
        ],
    },
    "japan": {
        "riskLevel": "low",
        "riskDescription": "Extremely safe with unique cultural considerations",
        "advice": [
            "Remove shoes when entering homes",
            "Bow slightly when greeting",
            "Avoid eating while walking",
            "Follow strict recycling rules",
            "Emergency number: 119 (fire/medical), 110 (police)",
        ],
    },
    "thailand": {
        "riskLevel": "medium",
        "riskDescription": "Popular destination requiring cultural sensitivity",
        "advice": [
            "Dress modestly at temples and religious sites",
            "Be cautious of tourist scams",
            "Drink bottled or purified water",
            "Respect the monarchy and religious customs",
            "Emergency number: 191",
        ],
    },
    "india": {
        "riskLevel": "high",
        "riskDescription": "Complex destination requiring heightened awareness",
        "advice": [
            "Be extremely cautious with food and water",
            "Dress conservatively, especially women",
            "Use prepaid taxis or ride-sharing apps",
            "Avoid isolated areas, especially after dark",
            "Emergency number: 100 (police), 108 (medical)",
        ],
    },
    "brazil": {
        "riskLevel": "high",
        "riskDescription": "Beautiful country with significant safety concerns",
        "advice": [
            "Avoid displaying wealth or expensive items",
            "Stay in tourist-friendly areas",
            "Use official transportation services",
            "Be extremely cautious at night",
            "Emergency number: 190 (police), 192 (medical)",
        ],
    },
    "united states": {
        "riskLevel": "medium",
        "riskDescription": "Varies significantly by region and city",
        "advice": [
            "Research specific city safety conditions",
            "Be aware of varying state laws",
            "Tip 15-20% at restaurants",
            "Carry ID at all times",
            "Emergency number: 911",
        ],
    },
}

GENERIC_COUNTRY_ADVICE = {
    "riskLevel": "medium",
    "riskDescription": "Standard travel precautions recommended",
    "advice": [
        "Research local customs and laws",
        "Keep important documents secure",
        "Stay aware of your surroundings",
        "Use official transportation services",
        "Locate nearest embassy or consulate",
    ],
}

# Cities where pickpocketing in tourist zones warrants an extra warning
TOURIST_HOTSPOT_CITIES = ("paris", "rome", "barcelona")


def get_country_advice(country: str) -> dict:
    """Return a private copy of the advice entry for ``country``."""
    entry = COUNTRY_ADVICE.get((country or "").strip().lower(), GENERIC_COUNTRY_ADVICE)
    return copy.deepcopy(entry)
