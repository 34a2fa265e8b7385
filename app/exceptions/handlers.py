import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .custom import InvalidHotelUrlError, ScrapeFailedError

logger = logging.getLogger(__name__)

EXAMPLE_URL = "https://www.booking.com/hotel/xx/hotel-name.html"


def _invalid_url_response(exc: InvalidHotelUrlError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": exc.message, "example": EXAMPLE_URL},
    )


async def invalid_url_error_handler(_request: Request, exc: InvalidHotelUrlError) -> JSONResponse:
    logger.warning("Rejected scrape request for %r", exc.url)
    return _invalid_url_response(exc)


async def request_validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    # A body that does not parse into ScrapeRequest carries no usable URL.
    logger.warning("Rejected malformed scrape request: %s", exc.errors())
    return _invalid_url_response(InvalidHotelUrlError(None))


async def scrape_failed_error_handler(_request: Request, exc: ScrapeFailedError) -> JSONResponse:
    logger.error("Scrape failed: %s (session=%s)", exc.message, exc.diagnostics.session_id)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Scraping failed",
            "details": exc.message,
            "diagnostics": exc.diagnostics.model_dump(mode="json", by_alias=True),
        },
    )
