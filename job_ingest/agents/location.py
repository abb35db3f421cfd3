"""Heuristic country membership for free-text job locations."""

import re
from collections import Counter
from typing import Dict, Iterable, NamedTuple, Optional, Tuple

from job_ingest.utils.logger import setup_logger

logger = setup_logger(__name__)


class CountryTable(NamedTuple):
    """Lookup data for one target country."""

    code: str
    display_name: str
    aliases: Tuple[str, ...]  # accepted spellings of an explicit country field
    keywords: Tuple[str, ...]  # full names matched in free-text locations
    subdivisions: Tuple[str, ...]
    cities: Tuple[str, ...]


COUNTRY_TABLES: Dict[str, CountryTable] = {
    table.code: table
    for table in (
        CountryTable(
            code="in",
            display_name="India",
            aliases=("india", "ind", "bharat"),
            keywords=("india",),
            subdivisions=("in-ka", "in-tn", "in-mh", "in-dl", "in-hr", "in-up", "in-ap",
                          "in-jk", "in-hp", "in-pb", "in-gj", "in-kl", "in-tg", "in-wb"),
            cities=("bangalore", "bengaluru", "mumbai", "delhi", "new delhi", "gurgaon", "gurugram",
                    "pune", "hyderabad", "kolkata", "chennai", "jaipur", "lucknow", "ahmedabad",
                    "chandigarh", "indore", "bhopal", "visakhapatnam", "kochi", "vadodara",
                    "surat", "nagpur", "coimbatore", "ghaziabad", "ludhiana", "noida", "faridabad",
                    "trivandrum", "thiruvananthapuram", "kottayam", "thrissur", "ernakulam",
                    "kozhikode", "kannur", "palakkad", "malappuram", "mysore", "mysuru"),
        ),
        CountryTable(
            code="us",
            display_name="United States",
            aliases=("usa", "united states", "united states of america", "u.s.", "u.s.a."),
            keywords=("united states", "usa", "america"),
            subdivisions=("al", "ak", "az", "ar", "ca", "co", "ct", "de", "fl", "ga", "hi", "id",
                          "il", "in", "ia", "ks", "ky", "la", "me", "md", "ma", "mi", "mn", "ms",
                          "mo", "mt", "ne", "nv", "nh", "nj", "nm", "ny", "nc", "nd", "oh", "ok",
                          "or", "pa", "ri", "sc", "sd", "tn", "tx", "ut", "vt", "va", "wa", "wv",
                          "wi", "wy", "dc"),
            cities=("new york", "los angeles", "chicago", "houston", "phoenix", "philadelphia",
                    "san antonio", "san diego", "dallas", "san jose", "austin", "jacksonville",
                    "fort worth", "columbus", "indianapolis", "charlotte", "san francisco",
                    "seattle", "denver", "boston", "el paso", "detroit", "nashville", "portland",
                    "memphis", "oklahoma city", "las vegas", "louisville", "baltimore", "milwaukee",
                    "albuquerque", "tucson", "fresno", "mesa", "sacramento", "atlanta", "kansas city",
                    "colorado springs", "miami", "raleigh", "omaha", "long beach", "virginia beach",
                    "oakland", "minneapolis", "tulsa", "arlington", "tampa", "new orleans"),
        ),
        CountryTable(
            code="gb",
            display_name="United Kingdom",
            aliases=("uk", "united kingdom", "great britain", "britain", "england", "scotland",
                     "wales", "northern ireland"),
            keywords=("united kingdom", "uk", "britain", "england", "scotland", "wales"),
            subdivisions=("england", "scotland", "wales", "northern ireland"),
            cities=("london", "birmingham", "manchester", "leeds", "glasgow", "newcastle",
                    "sheffield", "liverpool", "bristol", "nottingham", "leicester", "brighton",
                    "plymouth", "southampton", "reading", "derby", "dundee", "cardiff", "edinburgh",
                    "belfast", "oxford", "cambridge", "york", "bath", "norwich", "portsmouth"),
        ),
        CountryTable(
            code="ca",
            display_name="Canada",
            aliases=("canada", "can"),
            keywords=("canada",),
            subdivisions=("on", "qc", "bc", "ab", "mb", "sk", "ns", "nb", "nl", "pe", "nt", "yt", "nu"),
            cities=("toronto", "montreal", "vancouver", "calgary", "edmonton", "ottawa",
                    "winnipeg", "quebec city", "hamilton", "kitchener", "halifax",
                    "victoria", "saskatoon", "regina", "sherbrooke", "kelowna", "abbotsford",
                    "sudbury", "kingston", "sault ste marie", "thunder bay", "north bay"),
        ),
        CountryTable(
            code="au",
            display_name="Australia",
            aliases=("australia", "aus"),
            keywords=("australia",),
            subdivisions=("nsw", "vic", "qld", "wa", "sa", "tas", "act", "nt"),
            cities=("sydney", "melbourne", "brisbane", "perth", "adelaide", "gold coast",
                    "canberra", "newcastle", "wollongong", "logan", "geelong", "hobart",
                    "townsville", "cairns", "darwin", "toowoomba", "ballarat", "bendigo"),
        ),
        CountryTable(
            code="de",
            display_name="Germany",
            aliases=("germany", "deutschland", "deu"),
            keywords=("germany", "deutschland"),
            subdivisions=("bw", "by", "be", "bb", "hb", "hh", "he", "mv", "ni", "nw", "rp",
                          "sl", "sn", "st", "sh", "th"),
            cities=("berlin", "hamburg", "munich", "münchen", "cologne", "köln", "frankfurt",
                    "stuttgart", "düsseldorf", "dusseldorf", "dortmund", "essen", "leipzig",
                    "bremen", "dresden", "hanover", "nuremberg", "duisburg", "bochum",
                    "wuppertal", "bielefeld"),
        ),
        CountryTable(
            code="fr",
            display_name="France",
            aliases=("france", "fra"),
            keywords=("france",),
            subdivisions=("ara", "bfc", "bre", "cvl", "cor", "ges", "hdf", "idf", "nor", "nau",
                          "occ", "pac", "pdl", "île-de-france", "ile-de-france"),
            cities=("paris", "marseille", "lyon", "toulouse", "nice", "nantes", "strasbourg",
                    "montpellier", "bordeaux", "lille", "rennes", "reims", "le havre",
                    "saint-etienne", "toulon", "grenoble", "dijon", "angers", "nîmes",
                    "villeurbanne"),
        ),
        CountryTable(
            code="nl",
            display_name="Netherlands",
            aliases=("netherlands", "the netherlands", "holland", "nld"),
            keywords=("netherlands", "holland"),
            subdivisions=("dr", "fl", "fr", "ge", "gr", "li", "nb", "nh", "ov", "ut", "ze", "zh"),
            cities=("amsterdam", "rotterdam", "the hague", "den haag", "utrecht", "eindhoven",
                    "tilburg", "groningen", "almere", "breda", "nijmegen", "enschede", "haarlem",
                    "arnhem", "amersfoort", "zwolle", "zoetermeer", "apeldoorn", "heerlen"),
        ),
        CountryTable(
            code="sg",
            display_name="Singapore",
            aliases=("singapore", "sgp"),
            keywords=("singapore",),
            subdivisions=("central region", "north region", "north-east region", "east region",
                          "west region"),
            cities=("singapore", "jurong", "tampines", "yishun", "bedok", "woodlands",
                    "ang mo kio", "hougang", "choa chu kang", "sengkang", "punggol",
                    "bukit batok", "bukit panjang"),
        ),
        CountryTable(
            code="es",
            display_name="Spain",
            aliases=("spain", "españa", "espana", "esp"),
            keywords=("spain", "españa"),
            subdivisions=("an", "ar", "as", "ib", "cn", "cb", "cl", "cm", "ct", "ce", "ga", "ri",
                          "md", "mc", "nc", "pv", "vc"),
            cities=("madrid", "barcelona", "valencia", "seville", "sevilla", "zaragoza", "málaga",
                    "malaga", "murcia", "palma", "las palmas", "bilbao", "alicante", "córdoba",
                    "valladolid", "vigo", "gijón", "hospitalet de llobregat", "la coruña",
                    "granada", "vitoria-gasteiz"),
        ),
    )
}

# User-facing names and legacy codes accepted by resolve_country_code
COUNTRY_NAME_ALIASES: Dict[str, str] = {
    "uk": "gb",
    "great britain": "gb",
    "england": "gb",
    "usa": "us",
    "america": "us",
    "holland": "nl",
    "deutschland": "de",
    "españa": "es",
}

US_STATE_NAMES = (
    "alabama", "alaska", "arizona", "arkansas", "california", "colorado", "connecticut",
    "delaware", "florida", "georgia", "hawaii", "idaho", "illinois", "indiana", "iowa",
    "kansas", "kentucky", "louisiana", "maine", "maryland", "massachusetts", "michigan",
    "minnesota", "mississippi", "missouri", "montana", "nebraska", "nevada", "new hampshire",
    "new jersey", "new mexico", "new york", "north carolina", "north dakota", "ohio",
    "oklahoma", "oregon", "pennsylvania", "rhode island", "south carolina", "south dakota",
    "tennessee", "texas", "utah", "vermont", "virginia", "washington", "west virginia",
    "wisconsin", "wyoming",
)

DEFAULT_COUNTRY_CODE = "us"

_US_STATE_PATTERN = re.compile(r", (?:" + "|".join(US_STATE_NAMES) + r")\b")

_TOKEN_SPLIT = re.compile(r"[,\s/()|]+")


def _term_pattern(term: str) -> "re.Pattern[str]":
    return re.compile(r"(?:^|[\s,(])" + re.escape(term) + r"(?=$|[\s,)])")


_CITY_PATTERNS: Dict[str, Tuple["re.Pattern[str]", ...]] = {
    code: tuple(_term_pattern(city) for city in table.cities)
    for code, table in COUNTRY_TABLES.items()
}


def _clean(value: Optional[str]) -> str:
    return " ".join(str(value).split()).lower() if value else ""


def resolve_country_code(country: Optional[str]) -> str:
    """Map a country name ("India") or code ("IN", "uk") to a supported ISO code."""

    cleaned = _clean(country)
    if cleaned in COUNTRY_TABLES:
        return cleaned
    if cleaned in COUNTRY_NAME_ALIASES:
        return COUNTRY_NAME_ALIASES[cleaned]
    for code, table in COUNTRY_TABLES.items():
        if cleaned == table.display_name.lower():
            return code

    logger.warning("Unknown country '%s', defaulting to '%s'", country, DEFAULT_COUNTRY_CODE)
    return DEFAULT_COUNTRY_CODE


def country_display_name(code: str) -> str:
    table = COUNTRY_TABLES.get(code.lower())
    return table.display_name if table else code.upper()


def _matches_explicit_country(table: CountryTable, country: str) -> bool:
    value = country.rstrip(",").strip()
    if value == table.code or value in table.aliases:
        return True
    # Subdivision-qualified codes such as "in-ka"
    return value.startswith(f"{table.code}-")


def _contains_us_state(location: str) -> bool:
    return bool(_US_STATE_PATTERN.search(location))


def is_in_country(
    target_country: str,
    location: Optional[str],
    city: Optional[str] = None,
    state: Optional[str] = None,
    country: Optional[str] = None,
) -> bool:
    """Return True when the location fields place a job in ``target_country``.

    Explicit country data wins over every other heuristic. Without it, the raw
    location and the joined city/state/country string are checked against the
    target's subdivision codes, city names and country keywords, in that order.
    Incomplete or ambiguous data is rejected.
    """

    if not any((location, city, state, country)):
        return False

    target = target_country.lower().strip()
    target = COUNTRY_NAME_ALIASES.get(target, target)
    table = COUNTRY_TABLES.get(target)
    if table is None:
        logger.warning("No location table for country '%s'", target_country)
        return False

    loc = _clean(location)
    joined = _clean(" ".join(part for part in (city, state, country) if part))

    explicit = _clean(country)
    if explicit:
        return _matches_explicit_country(table, explicit)

    if target != "us" and _contains_us_state(loc):
        return False

    loc_tokens = set(_TOKEN_SPLIT.split(loc))
    joined_tokens = set(_TOKEN_SPLIT.split(joined))
    for code in table.subdivisions:
        if " " in code:
            if code in loc or code in joined:
                return True
        elif code in loc_tokens or code in joined_tokens:
            return True

    for pattern in _CITY_PATTERNS[target]:
        if pattern.search(loc) or pattern.search(joined):
            return True

    # Keywords count only as a whole comma-separated segment
    segments = {segment.strip() for segment in loc.split(",")}
    for keyword in table.keywords:
        if keyword in segments or joined == keyword:
            return True

    return False


def filter_jobs_by_country(jobs: Iterable, target_country: str) -> list:
    """Keep only jobs whose location fields fall inside ``target_country``."""

    jobs = list(jobs)
    kept = [
        job for job in jobs
        if is_in_country(target_country, job.location, job.city, job.state, job.country)
    ]
    logger.info("Filtered: %d/%d jobs are in %s", len(kept), len(jobs), target_country.upper())
    return kept


def location_stats(jobs: Iterable) -> Dict[str, int]:
    """Count jobs per explicit country value."""

    return dict(Counter(job.country or "Unknown" for job in jobs))
