# location_resolver.py
from __future__ import annotations

from typing import Dict, Optional, Tuple

from local_pulse.models import (
    CountryCode,
    CountryInfo,
    LocaleParams,
    LocationInfo,
    Region,
)

_C = CountryCode
_INTL = Region.INTERNATIONAL


def _country(code, name, timezone, lang, edition, currency, region=_INTL) -> CountryInfo:
    return CountryInfo(
        code=code,
        name=name,
        region=region,
        timezone=timezone,
        news_language=lang,
        news_edition=edition,
        currency=currency,
    )


# -------------------------------------------------------------------
# Country table: code -> name, timezone, news locale, currency
# -------------------------------------------------------------------
COUNTRIES: Dict[CountryCode, CountryInfo] = {
    c.code: c
    for c in (
        # South Asia
        _country(_C.IN, "India", "Asia/Kolkata", "en-IN", "IN:en", "INR", Region.DOMESTIC),
        _country(_C.PK, "Pakistan", "Asia/Karachi", "en-PK", "PK:en", "PKR"),
        _country(_C.BD, "Bangladesh", "Asia/Dhaka", "en-BD", "BD:en", "BDT"),
        _country(_C.LK, "Sri Lanka", "Asia/Colombo", "en-LK", "LK:en", "LKR"),
        _country(_C.NP, "Nepal", "Asia/Kathmandu", "en-NP", "NP:en", "NPR"),
        # North America
        _country(_C.US, "United States", "America/New_York", "en-US", "US:en", "USD"),
        _country(_C.CA, "Canada", "America/Toronto", "en-CA", "CA:en", "CAD"),
        _country(_C.MX, "Mexico", "America/Mexico_City", "es-MX", "MX:es", "MXN"),
        # Europe
        _country(_C.GB, "United Kingdom", "Europe/London", "en-GB", "GB:en", "GBP"),
        _country(_C.DE, "Germany", "Europe/Berlin", "de", "DE:de", "EUR"),
        _country(_C.FR, "France", "Europe/Paris", "fr", "FR:fr", "EUR"),
        _country(_C.IT, "Italy", "Europe/Rome", "it", "IT:it", "EUR"),
        _country(_C.ES, "Spain", "Europe/Madrid", "es", "ES:es", "EUR"),
        _country(_C.NL, "Netherlands", "Europe/Amsterdam", "nl", "NL:nl", "EUR"),
        _country(_C.CH, "Switzerland", "Europe/Zurich", "de-CH", "CH:de", "CHF"),
        _country(_C.SE, "Sweden", "Europe/Stockholm", "sv", "SE:sv", "SEK"),
        _country(_C.NO, "Norway", "Europe/Oslo", "no", "NO:no", "NOK"),
        _country(_C.DK, "Denmark", "Europe/Copenhagen", "da", "DK:da", "DKK"),
        _country(_C.FI, "Finland", "Europe/Helsinki", "fi", "FI:fi", "EUR"),
        _country(_C.IE, "Ireland", "Europe/Dublin", "en-IE", "IE:en", "EUR"),
        _country(_C.PL, "Poland", "Europe/Warsaw", "pl", "PL:pl", "PLN"),
        _country(_C.AT, "Austria", "Europe/Vienna", "de-AT", "AT:de", "EUR"),
        _country(_C.BE, "Belgium", "Europe/Brussels", "nl-BE", "BE:nl", "EUR"),
        _country(_C.PT, "Portugal", "Europe/Lisbon", "pt-PT", "PT:pt", "EUR"),
        _country(_C.GR, "Greece", "Europe/Athens", "el", "GR:el", "EUR"),
        _country(_C.CZ, "Czech Republic", "Europe/Prague", "cs", "CZ:cs", "CZK"),
        _country(_C.HU, "Hungary", "Europe/Budapest", "hu", "HU:hu", "HUF"),
        _country(_C.RO, "Romania", "Europe/Bucharest", "ro", "RO:ro", "RON"),
        # Middle East
        _country(_C.AE, "United Arab Emirates", "Asia/Dubai", "en-AE", "AE:en", "AED"),
        _country(_C.SA, "Saudi Arabia", "Asia/Riyadh", "ar-SA", "SA:ar", "SAR"),
        _country(_C.QA, "Qatar", "Asia/Qatar", "en-QA", "QA:en", "QAR"),
        _country(_C.KW, "Kuwait", "Asia/Kuwait", "en-KW", "KW:en", "KWD"),
        _country(_C.OM, "Oman", "Asia/Muscat", "en-OM", "OM:en", "OMR"),
        _country(_C.BH, "Bahrain", "Asia/Bahrain", "en-BH", "BH:en", "BHD"),
        _country(_C.IL, "Israel", "Asia/Jerusalem", "he", "IL:he", "ILS"),
        # Asia Pacific
        _country(_C.AU, "Australia", "Australia/Sydney", "en-AU", "AU:en", "AUD"),
        _country(_C.NZ, "New Zealand", "Pacific/Auckland", "en-NZ", "NZ:en", "NZD"),
        _country(_C.SG, "Singapore", "Asia/Singapore", "en-SG", "SG:en", "SGD"),
        _country(_C.JP, "Japan", "Asia/Tokyo", "ja", "JP:ja", "JPY"),
        _country(_C.CN, "China", "Asia/Shanghai", "zh-CN", "CN:zh-Hans", "CNY"),
        _country(_C.HK, "Hong Kong", "Asia/Hong_Kong", "zh-HK", "HK:zh-Hant", "HKD"),
        _country(_C.TW, "Taiwan", "Asia/Taipei", "zh-TW", "TW:zh-Hant", "TWD"),
        _country(_C.KR, "South Korea", "Asia/Seoul", "ko", "KR:ko", "KRW"),
        _country(_C.TH, "Thailand", "Asia/Bangkok", "th", "TH:th", "THB"),
        _country(_C.MY, "Malaysia", "Asia/Kuala_Lumpur", "en-MY", "MY:en", "MYR"),
        _country(_C.ID, "Indonesia", "Asia/Jakarta", "id", "ID:id", "IDR"),
        _country(_C.PH, "Philippines", "Asia/Manila", "en-PH", "PH:en", "PHP"),
        _country(_C.VN, "Vietnam", "Asia/Ho_Chi_Minh", "vi", "VN:vi", "VND"),
        # South America / Africa
        _country(_C.BR, "Brazil", "America/Sao_Paulo", "pt-BR", "BR:pt-419", "BRL"),
        _country(_C.ZA, "South Africa", "Africa/Johannesburg", "en-ZA", "ZA:en", "ZAR"),
        # Default
        _country(_C.OTHER, "Other", "UTC", "en", "US:en", "USD"),
    )
}


# -------------------------------------------------------------------
# Place table: lower-cased place name -> (state, country)
# -------------------------------------------------------------------
_PLACES_BY_COUNTRY: Dict[CountryCode, Dict[str, str]] = {
    _C.IN: {
        # Punjab
        "ferozepur": "Punjab", "ludhiana": "Punjab", "amritsar": "Punjab",
        "jalandhar": "Punjab", "patiala": "Punjab", "bathinda": "Punjab", "mohali": "Punjab",
        # Delhi NCR
        "delhi": "Delhi", "new delhi": "Delhi", "noida": "Uttar Pradesh",
        "gurgaon": "Haryana", "gurugram": "Haryana", "faridabad": "Haryana",
        "ghaziabad": "Uttar Pradesh",
        # Maharashtra
        "mumbai": "Maharashtra", "pune": "Maharashtra", "nagpur": "Maharashtra",
        "thane": "Maharashtra",
        # South
        "bangalore": "Karnataka", "bengaluru": "Karnataka", "mysore": "Karnataka",
        "mysuru": "Karnataka", "chennai": "Tamil Nadu", "coimbatore": "Tamil Nadu",
        "madurai": "Tamil Nadu", "hyderabad": "Telangana", "secunderabad": "Telangana",
        "visakhapatnam": "Andhra Pradesh", "vijayawada": "Andhra Pradesh",
        "kochi": "Kerala", "cochin": "Kerala", "thiruvananthapuram": "Kerala",
        "kozhikode": "Kerala",
        # East / West
        "kolkata": "West Bengal", "howrah": "West Bengal", "ahmedabad": "Gujarat",
        "surat": "Gujarat", "vadodara": "Gujarat", "rajkot": "Gujarat",
        "jaipur": "Rajasthan", "jodhpur": "Rajasthan", "udaipur": "Rajasthan",
        "kota": "Rajasthan",
        # Uttar Pradesh
        "lucknow": "Uttar Pradesh", "kanpur": "Uttar Pradesh", "varanasi": "Uttar Pradesh",
        "agra": "Uttar Pradesh", "prayagraj": "Uttar Pradesh",
        # Others
        "chandigarh": "Chandigarh", "bhopal": "Madhya Pradesh", "indore": "Madhya Pradesh",
        "patna": "Bihar", "ranchi": "Jharkhand", "bhubaneswar": "Odisha",
        "guwahati": "Assam", "shimla": "Himachal Pradesh", "dehradun": "Uttarakhand",
        "srinagar": "Jammu & Kashmir", "jammu": "Jammu & Kashmir", "goa": "Goa",
        "panaji": "Goa",
    },
    _C.US: {
        "new york": "New York", "new york city": "New York", "nyc": "New York",
        "manhattan": "New York", "brooklyn": "New York",
        "los angeles": "California", "la": "California", "san francisco": "California",
        "san jose": "California", "san diego": "California", "chicago": "Illinois",
        "houston": "Texas", "dallas": "Texas", "austin": "Texas", "san antonio": "Texas",
        "phoenix": "Arizona", "philadelphia": "Pennsylvania", "seattle": "Washington",
        "denver": "Colorado", "boston": "Massachusetts", "miami": "Florida",
        "atlanta": "Georgia", "washington dc": "District of Columbia",
        "washington": "District of Columbia", "las vegas": "Nevada", "detroit": "Michigan",
        "minneapolis": "Minnesota", "portland": "Oregon", "nashville": "Tennessee",
        "salt lake city": "Utah", "raleigh": "North Carolina", "charlotte": "North Carolina",
    },
    _C.GB: {
        "london": "England", "manchester": "England", "birmingham": "England",
        "leeds": "England", "liverpool": "England", "bristol": "England",
        "sheffield": "England", "newcastle": "England", "nottingham": "England",
        "cambridge": "England", "oxford": "England", "edinburgh": "Scotland",
        "glasgow": "Scotland", "cardiff": "Wales", "belfast": "Northern Ireland",
    },
    _C.CA: {
        "toronto": "Ontario", "vancouver": "British Columbia", "montreal": "Quebec",
        "calgary": "Alberta", "edmonton": "Alberta", "ottawa": "Ontario",
        "winnipeg": "Manitoba", "quebec": "Quebec", "quebec city": "Quebec",
        "hamilton": "Ontario",
    },
    _C.AU: {
        "sydney": "New South Wales", "melbourne": "Victoria", "brisbane": "Queensland",
        "perth": "Western Australia", "adelaide": "South Australia",
        "canberra": "Australian Capital Territory", "hobart": "Tasmania",
        "darwin": "Northern Territory", "gold coast": "Queensland",
    },
    _C.AE: {"dubai": "Dubai", "abu dhabi": "Abu Dhabi", "sharjah": "Sharjah", "ajman": "Ajman"},
    _C.SA: {"riyadh": "Riyadh", "jeddah": "Makkah", "mecca": "Makkah", "medina": "Madinah"},
    _C.QA: {"doha": "Doha"},
    _C.KW: {"kuwait": "Kuwait City", "kuwait city": "Kuwait City"},
    _C.OM: {"muscat": "Muscat"},
    _C.BH: {"manama": "Capital"},
    _C.IL: {"tel aviv": "Tel Aviv", "jerusalem": "Jerusalem"},
    _C.SG: {"singapore": "Singapore"},
    _C.DE: {
        "berlin": "Berlin", "munich": "Bavaria", "frankfurt": "Hesse",
        "hamburg": "Hamburg", "cologne": "North Rhine-Westphalia",
    },
    _C.FR: {
        "paris": "Île-de-France", "lyon": "Auvergne-Rhône-Alpes",
        "marseille": "Provence-Alpes-Côte d'Azur", "nice": "Provence-Alpes-Côte d'Azur",
    },
    _C.IT: {
        "rome": "Lazio", "milan": "Lombardy", "naples": "Campania",
        "florence": "Tuscany", "venice": "Veneto",
    },
    _C.ES: {
        "madrid": "Community of Madrid", "barcelona": "Catalonia",
        "valencia": "Valencian Community", "seville": "Andalusia",
    },
    _C.NL: {"amsterdam": "North Holland", "rotterdam": "South Holland", "the hague": "South Holland"},
    _C.CH: {"zurich": "Zürich", "geneva": "Geneva", "bern": "Bern"},
    _C.IE: {"dublin": "Leinster"},
    _C.AT: {"vienna": "Vienna"},
    _C.BE: {"brussels": "Brussels"},
    _C.PT: {"lisbon": "Lisbon"},
    _C.GR: {"athens": "Attica"},
    _C.CZ: {"prague": "Prague"},
    _C.HU: {"budapest": "Budapest"},
    _C.PL: {"warsaw": "Masovian"},
    _C.SE: {"stockholm": "Stockholm"},
    _C.NO: {"oslo": "Oslo"},
    _C.DK: {"copenhagen": "Capital Region"},
    _C.FI: {"helsinki": "Uusimaa"},
    _C.JP: {"tokyo": "Tokyo", "osaka": "Osaka", "kyoto": "Kyoto", "yokohama": "Kanagawa"},
    _C.CN: {"beijing": "Beijing", "shanghai": "Shanghai", "guangzhou": "Guangdong", "shenzhen": "Guangdong"},
    _C.HK: {"hong kong": "Hong Kong"},
    _C.TW: {"taipei": "Taipei"},
    _C.KR: {"seoul": "Seoul", "busan": "Busan"},
    _C.TH: {"bangkok": "Bangkok"},
    _C.MY: {"kuala lumpur": "Kuala Lumpur"},
    _C.ID: {"jakarta": "Jakarta"},
    _C.PH: {"manila": "Metro Manila"},
    _C.VN: {"ho chi minh": "Ho Chi Minh City", "hanoi": "Hanoi"},
    _C.NZ: {"auckland": "Auckland", "wellington": "Wellington", "christchurch": "Canterbury"},
    _C.PK: {"karachi": "Sindh", "lahore": "Punjab", "islamabad": "Islamabad"},
    _C.BD: {"dhaka": "Dhaka"},
    _C.LK: {"colombo": "Western"},
    _C.NP: {"kathmandu": "Bagmati"},
    _C.BR: {"sao paulo": "São Paulo", "rio de janeiro": "Rio de Janeiro"},
    _C.MX: {"mexico city": "Mexico City"},
    _C.ZA: {"johannesburg": "Gauteng", "cape town": "Western Cape", "durban": "KwaZulu-Natal"},
}

PLACES: Dict[str, Tuple[str, CountryCode]] = {
    place: (state, country)
    for country, places in _PLACES_BY_COUNTRY.items()
    for place, state in places.items()
}


# -------------------------------------------------------------------
# Lookups
# -------------------------------------------------------------------
def normalize_place(name: str) -> str:
    """Lower-case and collapse whitespace; the shared cache-key form of a place."""
    return " ".join((name or "").lower().split())


def capitalize_city(name: str) -> str:
    return " ".join(w[:1].upper() + w[1:].lower() for w in (name or "").split())


def country_info(code: Optional[CountryCode]) -> CountryInfo:
    if code is None:
        return COUNTRIES[CountryCode.OTHER]
    return COUNTRIES.get(CountryCode(code), COUNTRIES[CountryCode.OTHER])


def lookup_place(name: str) -> Optional[Tuple[str, CountryCode]]:
    return PLACES.get(normalize_place(name))


def locale_params(code: Optional[CountryCode]) -> LocaleParams:
    """Upstream query parameters for a country; OTHER falls back to US English."""
    info = country_info(code)
    region_code = "US" if info.code == CountryCode.OTHER else info.code.value
    return LocaleParams(
        language=info.news_language,
        news_region_code=region_code,
        news_edition=info.news_edition,
        timezone=info.timezone,
    )


def format_label(city: str, state: str, country_code: Optional[CountryCode]) -> str:
    """
    Display label for a place:
    - India joins city and state: "Ferozepur, Punjab"
    - US appends USA: "Austin, Texas, USA"
    - everything else appends the country name: "London, England, United Kingdom"
    - unresolved places (OTHER) keep only what is known: "Nowhereville"
    """
    info = country_info(country_code)
    parts = [p for p in (city, state) if p]

    if info.code in (CountryCode.IN, CountryCode.OTHER):
        return ", ".join(parts)
    if info.code == CountryCode.US:
        return ", ".join(parts + ["USA"])
    return ", ".join(parts + [info.name])


def resolve(place_name: str, country_hint: Optional[CountryCode] = None) -> LocationInfo:
    """
    Map a free-form place name to a LocationInfo.
    Unknown places never fail: they resolve to country OTHER with an empty state.
    """
    match = lookup_place(place_name)
    state, country = match if match else ("", CountryCode.OTHER)

    if country_hint is not None and CountryCode(country_hint) != country:
        # the registry's state belongs to a different country
        country = CountryCode(country_hint)
        state = ""

    info = country_info(country)
    return LocationInfo(
        city=capitalize_city(place_name.strip()),
        state=state,
        country_code=info.code,
        country_name=info.name,
        region=info.region,
    )
