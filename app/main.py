import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from app.config import Settings
from app.exceptions.custom import InvalidHotelUrlError, ScrapeFailedError
from app.exceptions.handlers import (
    invalid_url_error_handler,
    request_validation_error_handler,
    scrape_failed_error_handler,
)
from app.routers.scrape import router as scrape_router
from app.services.scraper import HotelScraperService


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    settings.screenshot_dir.mkdir(parents=True, exist_ok=True)

    app.state.settings = settings
    app.state.scraper_service = HotelScraperService(settings)

    yield


app = FastAPI(title="Booking Hotel Scraper", lifespan=lifespan)

app.add_exception_handler(InvalidHotelUrlError, invalid_url_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_error_handler)
app.add_exception_handler(ScrapeFailedError, scrape_failed_error_handler)

app.include_router(scrape_router)
