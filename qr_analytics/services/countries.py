"""
countries.py — Static country reference data for geographic heatmaps.

COUNTRY_COORDINATES maps a two-letter code to the country's centroid and
display name. It is configuration, not a managed entity: extend the table
when the product enters a new market.

The table keeps the analytics platform's historical "UK" code for the
United Kingdom (not ISO "GB"); "GB" is accepted as an alias.
"""

from typing import NamedTuple


class CountryInfo(NamedTuple):
    lat: float
    lng: float
    name: str


COUNTRY_COORDINATES: dict[str, CountryInfo] = {
    # ── Major global markets ──────────────────────────────────────────────────
    "US": CountryInfo(39.8283,  -98.5795,  "United States"),
    "CN": CountryInfo(35.8617,  104.1954,  "China"),
    "IN": CountryInfo(20.5937,   78.9629,  "India"),
    "BR": CountryInfo(-14.2350, -51.9253,  "Brazil"),
    "RU": CountryInfo(61.5240,  105.3188,  "Russia"),
    "JP": CountryInfo(36.2048,  138.2529,  "Japan"),
    "CA": CountryInfo(56.1304, -106.3468,  "Canada"),
    "AU": CountryInfo(-25.2744, 133.7751,  "Australia"),

    # ── Nordics (primary market) ──────────────────────────────────────────────
    "SE": CountryInfo(60.1282,   18.6435,  "Sweden"),
    "NO": CountryInfo(60.4720,    8.4689,  "Norway"),
    "DK": CountryInfo(56.2639,    9.5018,  "Denmark"),
    "FI": CountryInfo(61.9241,   25.7482,  "Finland"),
    "IS": CountryInfo(64.9631,  -19.0208,  "Iceland"),

    # ── Extended Nordic region ────────────────────────────────────────────────
    "EE": CountryInfo(58.5953,   25.0136,  "Estonia"),
    "LV": CountryInfo(56.8796,   24.6032,  "Latvia"),
    "LT": CountryInfo(55.1694,   23.8813,  "Lithuania"),
    "FO": CountryInfo(61.8926,   -6.9118,  "Faroe Islands"),
    "GL": CountryInfo(71.7069,  -42.6043,  "Greenland"),
    "AX": CountryInfo(60.1785,   19.9156,  "Åland Islands"),
    "SJ": CountryInfo(77.5536,   23.6703,  "Svalbard"),

    # ── Europe ────────────────────────────────────────────────────────────────
    "DE": CountryInfo(51.1657,   10.4515,  "Germany"),
    "UK": CountryInfo(55.3781,   -3.4360,  "United Kingdom"),
    "FR": CountryInfo(46.2276,    2.2137,  "France"),
    "IT": CountryInfo(41.8719,   12.5674,  "Italy"),
    "ES": CountryInfo(40.4637,   -3.7492,  "Spain"),
    "PL": CountryInfo(51.9194,   19.1451,  "Poland"),
    "NL": CountryInfo(52.1326,    5.2913,  "Netherlands"),
    "BE": CountryInfo(50.5039,    4.4699,  "Belgium"),
    "CH": CountryInfo(46.8182,    8.2275,  "Switzerland"),
    "AT": CountryInfo(47.5162,   14.5501,  "Austria"),
    "CZ": CountryInfo(49.8175,   15.4730,  "Czech Republic"),
    "HU": CountryInfo(47.1625,   19.5033,  "Hungary"),
    "RO": CountryInfo(45.9432,   24.9668,  "Romania"),
    "BG": CountryInfo(42.7339,   25.4858,  "Bulgaria"),
    "GR": CountryInfo(39.0742,   21.8243,  "Greece"),
    "PT": CountryInfo(39.3999,   -8.2245,  "Portugal"),
    "IE": CountryInfo(53.4129,   -8.2439,  "Ireland"),
    "HR": CountryInfo(45.1000,   15.2000,  "Croatia"),
    "SI": CountryInfo(46.1512,   14.9955,  "Slovenia"),
    "SK": CountryInfo(48.6690,   19.6990,  "Slovakia"),
    "MK": CountryInfo(41.6086,   21.7453,  "North Macedonia"),
    "AL": CountryInfo(41.1533,   20.1683,  "Albania"),
    "BA": CountryInfo(43.9159,   17.6791,  "Bosnia and Herzegovina"),
    "RS": CountryInfo(44.0165,   21.0059,  "Serbia"),
    "ME": CountryInfo(42.7087,   19.3744,  "Montenegro"),
    "XK": CountryInfo(42.6026,   20.9030,  "Kosovo"),

    # ── Asia-Pacific ──────────────────────────────────────────────────────────
    "KR": CountryInfo(35.9078,  127.7669,  "South Korea"),
    "SG": CountryInfo(1.3521,   103.8198,  "Singapore"),
    "MY": CountryInfo(4.2105,   101.9758,  "Malaysia"),
    "TH": CountryInfo(15.8700,  100.9925,  "Thailand"),
    "VN": CountryInfo(14.0583,  108.2772,  "Vietnam"),
    "PH": CountryInfo(12.8797,  121.7740,  "Philippines"),
    "ID": CountryInfo(-0.7893,  113.9213,  "Indonesia"),
    "NZ": CountryInfo(-40.9006, 174.8860,  "New Zealand"),

    # ── Africa ────────────────────────────────────────────────────────────────
    "ZA": CountryInfo(-30.5595,  22.9375,  "South Africa"),
    "EG": CountryInfo(26.8206,   30.8025,  "Egypt"),
    "NG": CountryInfo(9.0820,     8.6753,  "Nigeria"),
    "KE": CountryInfo(-0.0236,   37.9062,  "Kenya"),

    # ── Americas ──────────────────────────────────────────────────────────────
    "MX": CountryInfo(23.6345, -102.5528,  "Mexico"),
    "AR": CountryInfo(-38.4161, -63.6167,  "Argentina"),
    "CL": CountryInfo(-35.6751, -71.5430,  "Chile"),
    "CO": CountryInfo(4.5709,   -74.2973,  "Colombia"),
    "PE": CountryInfo(-9.1900,  -75.0152,  "Peru"),

    # ── Middle East ───────────────────────────────────────────────────────────
    "AE": CountryInfo(23.4241,   53.8478,  "United Arab Emirates"),
    "SA": CountryInfo(23.8859,   45.0792,  "Saudi Arabia"),
    "IL": CountryInfo(31.0461,   34.8516,  "Israel"),
    "TR": CountryInfo(38.9637,   35.2433,  "Turkey"),
}

# Free-text spellings seen in scan data that the reference names don't cover.
COUNTRY_ALIASES: dict[str, str] = {
    "GB":                       "UK",
    "Great Britain":            "UK",
    "United States of America": "US",
    "USA":                      "US",
}

_NAME_TO_CODE: dict[str, str] = {
    **{info.name: code for code, info in COUNTRY_COORDINATES.items()},
    **{code: code for code in COUNTRY_COORDINATES},
    **COUNTRY_ALIASES,
}


def get_country_code(country_name: str) -> str:
    """
    Resolve a country string from a scan event to a two-letter bucket code.

    Known names, codes and aliases resolve exactly. Anything else falls back
    to its first two characters upper-cased ("Wakanda" → "WA"). The fallback
    is best-effort: it can collide with a real code and is not a geocoder.
    """
    name = country_name.strip()
    return _NAME_TO_CODE.get(name) or name[:2].upper()


def lookup_country(code: str) -> CountryInfo | None:
    return COUNTRY_COORDINATES.get(code)
