from __future__ import annotations

import logging

from playwright.async_api import Browser, BrowserContext, Dialog, Page, Response, Route
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from app.config import Settings
from app.diagnostics import Diagnostics
from app.exceptions.custom import (
    AccessDeniedError,
    NavigationError,
    NotFoundError,
    WrongPageError,
)
from app.services.extractors import to_high_res, unique

logger = logging.getLogger(__name__)

HOTEL_URL_MARKER = "booking.com/hotel"
_CAPTCHA_MARKER = "captcha"

_VIEWPORT = {"width": 1920, "height": 1080}
_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,image/apng,*/*;q=0.8"

_GALLERY_IMAGE_PREFIX = "https://cf.bstatic.com/xdata/images/hotel/max300"
_BLOCKED_URL_MARKERS = ("analytics", "tracking", "telemetry")

_TITLE_SELECTOR = 'h2.d2fee87262, [data-testid="title"], #hp_hotel_name'

_TABS = (
    ('a[href="#rooms"]', "Rooms"),
    ('a[href="#facilities"]', "Facilities"),
    ('a[href="#reviews"]', "Reviews"),
)

STEALTH_SCRIPT = """
() => {
    Object.defineProperty(navigator, 'webdriver', { get: () => undefined });

    window.chrome = {
        runtime: {},
        loadTimes: function () {},
        csi: function () {},
        app: {},
    };

    Object.defineProperty(navigator, 'plugins', {
        get: () => [
            {
                0: { type: 'application/x-google-chrome-pdf', suffixes: 'pdf', description: 'Portable Document Format' },
                name: 'Chrome PDF Plugin',
                filename: 'internal-pdf-viewer',
                length: 1,
            },
            {
                0: { type: 'application/pdf', suffixes: 'pdf', description: 'Portable Document Format' },
                name: 'Chrome PDF Viewer',
                filename: 'mhjfbmdgcfjbbpaeojofohoefgiehjai',
                length: 1,
            },
        ],
    });

    Object.defineProperty(navigator, 'languages', {
        get: () => ['en-US', 'en', 'fr-FR', 'fr'],
    });

    const userAgent = navigator.userAgent;
    Object.defineProperty(navigator, 'userAgent', {
        get: () => userAgent.replace('Headless', ''),
    });
}
"""


def is_valid_booking_url(url: str | None) -> bool:
    return bool(url) and HOTEL_URL_MARKER in url


def is_hotel_page(url: str) -> bool:
    return HOTEL_URL_MARKER in url


async def open_context(browser: Browser, settings: Settings) -> BrowserContext:
    """New browser context with the anti-detection shims installed."""
    context = await browser.new_context(
        viewport=_VIEWPORT,
        user_agent=settings.user_agent,
        ignore_https_errors=True,
        extra_http_headers={
            "Accept-Language": settings.accept_language,
            "Accept": _ACCEPT,
            "Accept-Encoding": "gzip, deflate, br",
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
            "Cache-Control": "max-age=0",
        },
    )
    await context.add_init_script(f"({STEALTH_SCRIPT})()")
    return context


class GalleryCollector:
    """Request filter that drops trackers and records gallery images as they load."""

    def __init__(self) -> None:
        self._urls: list[str] = []

    async def handle_route(self, route: Route) -> None:
        request = route.request
        url = request.url
        resource_type = request.resource_type

        if resource_type == "font" or any(marker in url for marker in _BLOCKED_URL_MARKERS):
            await route.abort()
            return

        if resource_type == "image" and _GALLERY_IMAGE_PREFIX in url:
            self._urls.append(to_high_res(url))

        await route.continue_()

    @property
    def images(self) -> list[str]:
        return unique(self._urls)


class NavigationResult:
    def __init__(self, final_url: str, status: int, gallery: GalleryCollector | None = None) -> None:
        self.final_url = final_url
        self.status = status
        self.gallery = gallery if gallery is not None else GalleryCollector()

    @property
    def gallery_images(self) -> list[str]:
        return self.gallery.images


async def auto_scroll(page: Page, step: int = 100, interval_ms: int = 100, max_steps: int = 1000) -> None:
    """Scroll to the bottom in small steps so lazy content renders, then back to the top.

    The sweep stops after ``max_steps`` steps (100,000 px by default) even if
    the page keeps growing.
    """
    scrolled = 0
    for _ in range(max_steps):
        height = await page.evaluate("() => document.body.scrollHeight")
        await page.evaluate("(distance) => window.scrollBy(0, distance)", step)
        scrolled += step
        if scrolled >= height:
            break
        await page.wait_for_timeout(interval_ms)

    await page.evaluate("() => window.scrollTo(0, 0)")


class NavigationController:
    def __init__(
        self,
        settings: Settings,
        diagnostics: Diagnostics,
        *,
        title_timeout_ms: int = 10000,
        grace_ms: int = 5000,
        captcha_timeout_ms: int = 30000,
        body_timeout_ms: int = 30000,
        tab_timeout_ms: int = 3000,
        tab_settle_ms: int = 500,
    ) -> None:
        self._settings = settings
        self._diagnostics = diagnostics
        self._title_timeout_ms = title_timeout_ms
        self._grace_ms = grace_ms
        self._captcha_timeout_ms = captcha_timeout_ms
        self._body_timeout_ms = body_timeout_ms
        self._tab_timeout_ms = tab_timeout_ms
        self._tab_settle_ms = tab_settle_ms

    async def prepare(self, page: Page, url: str) -> NavigationResult:
        """Navigate to a hotel page and bring it to a state ready for extraction."""
        add_step = self._diagnostics.add_step
        gallery = GalleryCollector()

        page.set_default_navigation_timeout(self._settings.navigation_timeout)
        page.set_default_timeout(self._settings.default_timeout)
        await page.route("**/*", gallery.handle_route)
        page.on("dialog", self._dismiss_dialog)
        page.on("response", self._track_redirect)

        add_step("Navigating to URL", url=url)
        response = await page.goto(
            url,
            wait_until="domcontentloaded",
            timeout=self._settings.navigation_timeout,
        )
        if response is None:
            raise NavigationError("No response from server")

        status = response.status
        add_step("Response received", status=status, url=page.url)

        try:
            await page.wait_for_selector(_TITLE_SELECTOR, timeout=self._title_timeout_ms)
        except PlaywrightTimeoutError:
            add_step("Warning: Could not find hotel title selector, continuing anyway")

        self._check_status(status)
        await self._handle_soft_block(page, url)

        final_url = page.url
        add_step("Final URL", url=final_url)
        if not is_hotel_page(final_url):
            raise WrongPageError(final_url)

        add_step("Waiting for content to load")
        await page.wait_for_selector("body", timeout=self._body_timeout_ms)

        add_step("Scrolling page")
        await auto_scroll(page)
        await self._load_dynamic_content(page)

        return NavigationResult(final_url=final_url, status=status, gallery=gallery)

    def _check_status(self, status: int) -> None:
        if status == 403:
            self._diagnostics.add_step("Access denied", status=status)
            raise AccessDeniedError(status)
        if status == 404:
            self._diagnostics.add_step("Page not found", status=status)
            raise NotFoundError(status)
        if status >= 400:
            raise NavigationError(f"Unexpected response status ({status})", status_code=status)

    async def _handle_soft_block(self, page: Page, original_url: str) -> None:
        current_url = page.url
        is_captcha = _CAPTCHA_MARKER in current_url
        if not is_captcha and is_hotel_page(current_url):
            return

        self._diagnostics.add_step(
            "Redirect or captcha detected",
            original_url=original_url,
            current_url=current_url,
        )
        await page.wait_for_timeout(self._grace_ms)

        if not is_captcha:
            return

        # A navigation event is the only signal that the captcha was resolved.
        self._diagnostics.add_step("Captcha detected - waiting for resolution")
        try:
            await page.wait_for_event(
                "framenavigated",
                predicate=lambda frame: frame == page.main_frame,
                timeout=self._captcha_timeout_ms,
            )
            self._diagnostics.add_step("Navigation after captcha", url=page.url)
        except PlaywrightTimeoutError:
            self._diagnostics.add_step("Timeout waiting for captcha resolution")

    async def _load_dynamic_content(self, page: Page) -> None:
        for selector, name in _TABS:
            try:
                await page.wait_for_selector(selector, timeout=self._tab_timeout_ms)
                await page.click(selector)
                await page.wait_for_timeout(self._tab_settle_ms)
            except PlaywrightError as exc:
                self._diagnostics.add_step(f"Could not click {name} tab", error=str(exc))

    async def _dismiss_dialog(self, dialog: Dialog) -> None:
        self._diagnostics.add_step("Dialog detected", type=dialog.type, message=dialog.message)
        await dialog.dismiss()

    def _track_redirect(self, response: Response) -> None:
        status = response.status
        if 300 <= status <= 399:
            self._diagnostics.add_step(
                "Redirect detected",
                **{
                    "from": response.request.url,
                    "to": response.headers.get("location", "Unknown"),
                    "status": status,
                },
            )
