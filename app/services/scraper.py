import asyncio
import logging
import traceback

from bs4 import BeautifulSoup
from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from app.config import BROWSER_ARGS, Settings
from app.diagnostics import Diagnostics
from app.exceptions.custom import ScrapeFailedError
from app.schemas.hotel import HotelData
from app.services.extractors import FIELD_EXTRACTORS
from app.services.navigation import GalleryCollector, NavigationController, open_context
from app.services.rooms import RoomDetailExtractor

logger = logging.getLogger(__name__)


def _failure(exc: Exception, diagnostics: Diagnostics) -> ScrapeFailedError:
    diagnostics.add_step("Error", message=str(exc), stack=traceback.format_exc())
    return ScrapeFailedError(str(exc), diagnostics)


async def extract_hotel_data(
    page: Page,
    diagnostics: Diagnostics,
    gallery: GalleryCollector | None = None,
) -> HotelData:
    """Run the field extractors concurrently, then the room extractor on its own."""
    try:
        diagnostics.add_step("Extracting data in parallel")

        soup = BeautifulSoup(await page.content(), "html.parser")
        names = list(FIELD_EXTRACTORS)
        values = await asyncio.gather(
            *(asyncio.to_thread(FIELD_EXTRACTORS[name], soup) for name in names)
        )
        fields = dict(zip(names, values))
        check_times = fields["check_times"]

        data = HotelData(
            hotel_name=fields["hotel_name"],
            address=fields["address"],
            description=fields["description"],
            rating=fields["rating"],
            features=fields["features"],
            reviews=fields["reviews"],
            checkin=check_times.checkin,
            checkout=check_times.checkout,
            nearby_places=fields["nearby_places"],
        )

        diagnostics.add_step(
            "Parallel extraction complete",
            hotel_name=bool(data.hotel_name),
            address=bool(data.address),
            features=len(data.features),
            reviews=len(data.reviews),
        )

        # Rooms open and close an in-page panel, so they must run after the reads.
        diagnostics.add_step("Extracting rooms")
        data.rooms = await RoomDetailExtractor(page).extract()
        diagnostics.add_step("Rooms extracted", count=len(data.rooms))

        # Room panels load images too, so the gallery is read last.
        data.gallery_images = gallery.images if gallery is not None else []

        return data
    except Exception as exc:
        diagnostics.add_step("Error during extraction", message=str(exc))
        raise


class HotelScraperService:
    def __init__(self, settings: Settings):
        self._settings = settings

    async def scrape(self, url: str) -> HotelData:
        """Scrape one hotel page. Raises ScrapeFailedError with the diagnostic trace."""
        diagnostics = Diagnostics.start()
        diagnostics.add_step("Initialization", url=url)

        try:
            async with async_playwright() as playwright:
                return await self._scrape_with(playwright, url, diagnostics)
        except ScrapeFailedError:
            raise
        except Exception as exc:
            # Playwright driver failed to start or stop.
            raise _failure(exc, diagnostics) from exc

    async def _scrape_with(self, playwright: Playwright, url: str, diagnostics: Diagnostics) -> HotelData:
        browser: Browser | None = None
        page: Page | None = None
        try:
            browser = await playwright.chromium.launch(
                headless=self._settings.headless,
                args=list(BROWSER_ARGS),
            )
            diagnostics.add_step("Browser launched")

            context = await open_context(browser, self._settings)
            page = await context.new_page()

            navigation = await NavigationController(self._settings, diagnostics).prepare(page, url)

            diagnostics.add_step("Extracting data")
            data = await extract_hotel_data(page, diagnostics, navigation.gallery)

            diagnostics.add_step(
                "Extraction complete",
                data_fields=list(data.model_dump(by_alias=True)),
                has_rooms=len(data.rooms) > 0,
                has_reviews=len(data.reviews) > 0,
            )
            return data
        except Exception as exc:
            failure = _failure(exc, diagnostics)
            if page is not None:
                await self._capture_screenshot(page, diagnostics)
            raise failure from exc
        finally:
            if browser is not None:
                diagnostics.add_step("Closing browser")
                await browser.close()

    async def _capture_screenshot(self, page: Page, diagnostics: Diagnostics) -> None:
        path = self._settings.screenshot_dir / f"error-{diagnostics.session_id}.png"
        try:
            await page.screenshot(path=str(path), full_page=True)
        except PlaywrightError:
            logger.warning("Could not capture failure screenshot to %s", path)
            return
        diagnostics.screenshots.append(str(path))
