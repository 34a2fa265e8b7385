from typing import Annotated

from fastapi import Depends, Request

from app.services.scraper import HotelScraperService


def get_scraper_service(request: Request) -> HotelScraperService:
    return request.app.state.scraper_service


ScraperDep = Annotated[HotelScraperService, Depends(get_scraper_service)]
