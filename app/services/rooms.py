from __future__ import annotations

import logging
import re
from enum import StrEnum

from bs4 import BeautifulSoup, Tag
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from app.schemas.hotel import Room
from app.services.extractors import to_high_res, unique

logger = logging.getLogger(__name__)

ROW_SELECTOR = ".roomstable tr"
_ROW_NAME = "a span"
_ROW_OCCUPANCY = "td:nth-child(2) [aria-label]"
PANEL_SELECTOR = '[data-testid="rp-content"]'
CLOSE_SELECTOR = '[aria-label="Close banner"]'

_PANEL_DESCRIPTION = '[data-testid="rp-description"]'
_PANEL_SIZE = '[data-testid="rp-room-size"] span.b99b6ef58f span'
_PANEL_AMENITIES = '[data-testid="property-unit-facility-badge-icon"] span.beb5ef4fb4'
_PANEL_PHOTOS = '[data-testid="roomPagePhotos"] div[style*="background-image"]'

_OCCUPANCY_RE = re.compile(r"(\d+)\s+adult", re.IGNORECASE)
_BACKGROUND_URL_RE = re.compile(r"""url\((['"]?)(.+?)\1\)""")

_OUTER_HTML = "el => el.outerHTML"


class PanelState(StrEnum):
    idle = "idle"
    opening = "opening"
    open = "open"
    closing = "closing"


class RoomPanel:
    """The in-page room detail panel. Only one can be open at a time."""

    def __init__(
        self,
        page: Page,
        settle_ms: int = 1000,
        close_settle_ms: int = 500,
        click_timeout_ms: int = 5000,
    ) -> None:
        self._page = page
        self._settle_ms = settle_ms
        self._close_settle_ms = close_settle_ms
        self._click_timeout_ms = click_timeout_ms
        self.state = PanelState.idle

    def _require(self, expected: PanelState) -> None:
        if self.state is not expected:
            raise RuntimeError(f"Room panel is {self.state}, expected {expected}")

    async def open(self, trigger: Locator) -> str | None:
        """Click the trigger and return the panel markup, or None if nothing opened."""
        self._require(PanelState.idle)
        self.state = PanelState.opening
        try:
            await trigger.click(timeout=self._click_timeout_ms)
        except PlaywrightError as exc:
            logger.warning("Could not open room panel: %s", exc)
            self.state = PanelState.idle
            return None
        await self._page.wait_for_timeout(self._settle_ms)

        panel = self._page.locator(PANEL_SELECTOR)
        if await panel.count() == 0:
            self.state = PanelState.idle
            return None

        self.state = PanelState.open
        return await panel.first.evaluate(_OUTER_HTML)

    async def close(self) -> None:
        self._require(PanelState.open)
        self.state = PanelState.closing
        close_button = self._page.locator(CLOSE_SELECTOR)
        try:
            if await close_button.count() > 0:
                await close_button.first.click(timeout=self._click_timeout_ms)
        except PlaywrightError as exc:
            logger.warning("Could not close room panel: %s", exc)
        finally:
            await self._page.wait_for_timeout(self._close_settle_ms)
            self.state = PanelState.idle


def parse_occupancy(label: str) -> int | None:
    match = _OCCUPANCY_RE.search(label)
    return int(match.group(1)) if match else None


def _background_url(style: str) -> str | None:
    match = _BACKGROUND_URL_RE.search(style)
    return match.group(2) if match else None


def parse_room_panel(name: str, max_occupancy: int | None, panel_html: str) -> Room:
    panel = BeautifulSoup(panel_html, "html.parser")

    description = panel.select_one(_PANEL_DESCRIPTION)
    size = panel.select_one(_PANEL_SIZE)
    amenities = [span.get_text().strip() for span in panel.select(_PANEL_AMENITIES)]

    images = []
    for div in panel.select(_PANEL_PHOTOS):
        url = _background_url(div.get("style", ""))
        if url:
            images.append(to_high_res(url))

    return Room(
        name=name,
        max_occupancy=max_occupancy,
        description=description.get_text().strip() if description else "",
        images=unique(images),
        size=size.get_text().strip() if size else "",
        amenities=unique(amenities),
    )


def _parse_row(row_html: str) -> tuple[str, int | None] | None:
    row = BeautifulSoup(row_html, "html.parser")
    name_el = row.select_one(_ROW_NAME)
    occupancy_el = row.select_one(_ROW_OCCUPANCY)
    if not isinstance(name_el, Tag) or not isinstance(occupancy_el, Tag):
        return None
    label = occupancy_el.get("aria-label") or ""
    return name_el.get_text().strip(), parse_occupancy(label)


class RoomDetailExtractor:
    """Walks the room table, opening and closing each row's detail panel in turn."""

    def __init__(self, page: Page, settle_ms: int = 1000, close_settle_ms: int = 500) -> None:
        self._page = page
        self.panel = RoomPanel(page, settle_ms=settle_ms, close_settle_ms=close_settle_ms)

    async def extract(self) -> list[Room]:
        rows = self._page.locator(ROW_SELECTOR)
        results: list[Room] = []

        for i in range(await rows.count()):
            row = rows.nth(i)
            parsed = _parse_row(await row.evaluate(_OUTER_HTML))
            if parsed is None:
                continue
            name, max_occupancy = parsed

            panel_html = await self.panel.open(row.locator(_ROW_NAME).first)
            if panel_html is None:
                logger.debug("No detail panel for room %r", name)
                continue

            results.append(parse_room_panel(name, max_occupancy, panel_html))
            await self.panel.close()

        return results
