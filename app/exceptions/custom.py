from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.diagnostics import Diagnostics


class InvalidHotelUrlError(Exception):
    def __init__(self, url: str | None):
        self.url = url
        self.message = "Invalid URL. Please provide a valid Booking.com hotel profile URL."
        super().__init__(self.message)


class ScrapeError(Exception):
    """Fatal condition that aborts a scrape."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NavigationError(ScrapeError):
    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class AccessDeniedError(NavigationError):
    def __init__(self, status_code: int = 403):
        super().__init__(
            f"Access denied ({status_code}) - Bot detection likely triggered",
            status_code=status_code,
        )


class NotFoundError(NavigationError):
    def __init__(self, status_code: int = 404):
        super().__init__(f"Page not found ({status_code})", status_code=status_code)


class WrongPageError(ScrapeError):
    def __init__(self, final_url: str):
        self.final_url = final_url
        super().__init__(f"Final URL is not a hotel page: {final_url}")


class ScrapeFailedError(Exception):
    """Raised by the scraper service once diagnostics have been recorded."""

    def __init__(self, message: str, diagnostics: Diagnostics):
        self.message = message
        self.diagnostics = diagnostics
        super().__init__(message)
