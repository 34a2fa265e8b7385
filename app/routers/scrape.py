import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from app.dependencies import ScraperDep
from app.exceptions.custom import InvalidHotelUrlError
from app.schemas.hotel import HotelData
from app.schemas.responses import HealthResponse, ScrapeRequest
from app.services.navigation import is_valid_booking_url

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="ok", timestamp=datetime.now(timezone.utc))


@router.post("/scrape", response_model=HotelData)
async def scrape_hotel(request: ScrapeRequest, scraper: ScraperDep) -> HotelData:
    if not is_valid_booking_url(request.url):
        raise InvalidHotelUrlError(request.url)

    logger.info("Starting scrape for: %s", request.url)
    return await scraper.scrape(request.url)
