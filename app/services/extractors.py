"""Field extractors for a loaded Booking.com hotel page.

Each extractor reads a parsed snapshot of the page DOM and returns its
field, falling back to None/empty when the markup is missing. Selector
lists are ordered by preference; the first candidate with text wins.
"""

import logging
import re
from collections.abc import Hashable, Iterable
from typing import Callable, TypeVar

from bs4 import BeautifulSoup, Tag

from app.schemas.hotel import CheckTimes, NearbyPlace, Rating, Review

logger = logging.getLogger(__name__)

T = TypeVar("T")

LOW_RES_TOKEN = "max300"
HIGH_RES_TOKEN = "max1024x768"

_NAME_SELECTORS = (
    "h2.d2fee87262",
    ".pp-header__title",
    "#hp_hotel_name",
    '[data-testid="title"]',
    "h1.pp-header__title",
    ".hp__hotel-title",
    ".hp__hotel-name",
)

_DESCRIPTION_SELECTORS = (
    "#property_description_content",
    ".hotel_description_wrapper_exp",
    '[data-testid="property-description"]',
    ".hp-description",
    ".hotel-description",
    "#summary",
)

# Address markup has no stable hook; match on country names or a postal code.
_ADDRESS_MARKERS = ("Morocco", "France", "Spain", "Italy", "Germany", "United", "Maroc")
_POSTAL_CODE_RE = re.compile(r"\d{5}")

_RATING_CONTAINER = '[data-testid="review-score-right-component"]'
_REVIEW_COUNT_RE = re.compile(r"\d[\d\s.,]*")

_FEATURES_SELECTOR = '[data-testid="property-most-popular-facilities-wrapper"] li span span'

_REVIEW_SELECTOR = '[data-testid="featuredreview"]'
_REVIEW_NAME = '[data-testid="featuredreview-avatar"] .b08850ce41'
_REVIEW_COUNTRY = '[data-testid="featuredreview-avatar"] .d838fb5f41'
_REVIEW_TEXT = '[data-testid="featuredreview-text"] .b99b6ef58f'
_QUOTE_EDGES_RE = re.compile(r'^[\s"“”„‟«»‹›‘’]+|[\s"“”„‟«»‹›‘’]+$')

_CHECK_TIME_PATTERNS = (
    re.compile(r"^From\s\d{2}:\d{2}\sto\s\d{2}:\d{2}$", re.IGNORECASE),
    re.compile(r"^Until\s\d{2}:\d{2}$", re.IGNORECASE),
    re.compile(r"^De\s\d{2}:\d{2}\sà\s\d{2}:\d{2}$"),
    re.compile(r"^Jusqu'à\s\d{2}:\d{2}$"),
)

_POI_BLOCK = '[data-testid="poi-block"]'
_POI_ITEMS = '[data-testid="poi-block-list"] li'
_POI_NAME = "div.aa225776f2"
_POI_DISTANCE = "div.b99b6ef58f"
_POI_PREFIX_RE = re.compile(r"^(?:(?:Restaurant|Train|Airport)\s*)+", re.IGNORECASE)


def unique(items: Iterable[T], key: Callable[[T], Hashable] | None = None) -> list[T]:
    """De-duplicate while keeping first-seen order."""
    seen: set[Hashable] = set()
    result: list[T] = []
    for item in items:
        marker = key(item) if key else item
        if marker in seen:
            continue
        seen.add(marker)
        result.append(item)
    return result


def to_high_res(url: str) -> str:
    return url.replace(LOW_RES_TOKEN, HIGH_RES_TOKEN)


def _text(el: Tag | None) -> str:
    return el.get_text().strip() if el is not None else ""


def _first_text(soup: BeautifulSoup, selectors: Iterable[str]) -> str | None:
    for selector in selectors:
        text = _text(soup.select_one(selector))
        if text:
            return text
    return None


def extract_hotel_name(soup: BeautifulSoup) -> str | None:
    name = _first_text(soup, _NAME_SELECTORS)
    if name:
        return name
    return _text(soup.find("h2")) or None


def extract_address(soup: BeautifulSoup) -> str | None:
    for div in soup.select("button div"):
        text = div.get_text()
        if any(marker in text for marker in _ADDRESS_MARKERS) or _POSTAL_CODE_RE.search(text):
            if not div.contents:
                return None
            first = div.contents[0]
            value = first.get_text() if isinstance(first, Tag) else str(first)
            return value.strip() or None
    return None


def extract_description(soup: BeautifulSoup) -> str:
    return _first_text(soup, _DESCRIPTION_SELECTORS) or ""


def extract_rating(soup: BeautifulSoup) -> Rating:
    try:
        container = soup.select_one(_RATING_CONTAINER)
        if container is None:
            return Rating()

        texts = [_text(div) for div in container.select('div[aria-hidden="true"]')]
        score = texts[0].replace(",", ".", 1) if texts and texts[0] else None

        total_reviews = None
        if len(texts) > 1:
            match = _REVIEW_COUNT_RE.search(texts[1])
            digits = re.sub(r"\D", "", match.group(0)) if match else ""
            total_reviews = int(digits) if digits else None

        return Rating(score=score, total_reviews=total_reviews)
    except Exception:
        logger.exception("Rating extraction failed")
        return Rating()


def extract_features(soup: BeautifulSoup) -> list[str]:
    features = (_text(span) for span in soup.select(_FEATURES_SELECTOR))
    return unique(f for f in features if f)


def strip_quotes(text: str) -> str:
    return _QUOTE_EDGES_RE.sub("", text)


def extract_reviews(soup: BeautifulSoup) -> list[Review]:
    reviews = [
        Review(
            name=_text(block.select_one(_REVIEW_NAME)),
            country=_text(block.select_one(_REVIEW_COUNTRY)),
            text=strip_quotes(_text(block.select_one(_REVIEW_TEXT))),
        )
        for block in soup.select(_REVIEW_SELECTOR)
    ]
    return unique(reviews, key=lambda r: r.text)


def _is_check_time(text: str) -> bool:
    return any(p.match(text) for p in _CHECK_TIME_PATTERNS)


def _has_check_time(el: Tag) -> bool:
    return _is_check_time(el.get_text().strip())


def extract_check_times(soup: BeautifulSoup) -> CheckTimes:
    root = soup.body or soup
    # Wrappers around a matching element carry the same text; keep the innermost.
    matches = [
        el.get_text().strip()
        for el in root.find_all(True)
        if _has_check_time(el) and el.find(_has_check_time) is None
    ]
    return CheckTimes(
        checkin=matches[0] if matches else None,
        checkout=matches[1] if len(matches) > 1 else None,
    )


def strip_poi_prefix(name: str) -> str:
    return _POI_PREFIX_RE.sub("", name)


def extract_nearby_places(soup: BeautifulSoup) -> list[NearbyPlace]:
    places: list[NearbyPlace] = []
    for block in soup.select(_POI_BLOCK):
        place_type = _text(block.select_one("h3 div")).lower()
        for item in block.select(_POI_ITEMS):
            places.append(
                NearbyPlace(
                    place=strip_poi_prefix(_text(item.select_one(_POI_NAME))),
                    distance=_text(item.select_one(_POI_DISTANCE)),
                    type=place_type,
                )
            )
    return unique(places, key=lambda p: f"{p.place}|{p.distance}")


# Read-only extractors that can run concurrently against one snapshot.
FIELD_EXTRACTORS = {
    "hotel_name": extract_hotel_name,
    "address": extract_address,
    "description": extract_description,
    "rating": extract_rating,
    "features": extract_features,
    "reviews": extract_reviews,
    "check_times": extract_check_times,
    "nearby_places": extract_nearby_places,
}
