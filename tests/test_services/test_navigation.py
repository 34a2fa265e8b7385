"""Tests for the navigation controller and request filtering."""

import pytest

from app.config import Settings
from app.diagnostics import Diagnostics
from app.exceptions.custom import (
    AccessDeniedError,
    NavigationError,
    NotFoundError,
    WrongPageError,
)
from app.services.navigation import (
    STEALTH_SCRIPT,
    GalleryCollector,
    NavigationController,
    auto_scroll,
    is_valid_booking_url,
    open_context,
)
from tests.fakes import GALLERY_URL, HOTEL_URL, FakeBrowser, FakeDialog, FakePage, FakeResponse, FakeRoute

CAPTCHA_URL = "https://www.booking.com/captcha?redirect=hotel"


@pytest.fixture
def settings(tmp_path):
    return Settings(screenshot_dir=tmp_path, navigation_timeout=1000, default_timeout=2000)


@pytest.fixture
def diagnostics():
    return Diagnostics.start()


@pytest.fixture
def controller(settings, diagnostics):
    return NavigationController(settings, diagnostics)


# --- URL validation ---


@pytest.mark.parametrize(
    "url,expected",
    [
        (HOTEL_URL, True),
        ("https://booking.com/hotel/fr/le-marais.html?aid=1", True),
        ("https://www.booking.com/searchresults.html", False),
        ("https://example.com", False),
        ("", False),
        (None, False),
    ],
)
def test_is_valid_booking_url(url, expected):
    assert is_valid_booking_url(url) is expected


# --- request filter ---


@pytest.mark.asyncio
async def test_gallery_collector_records_high_res_images():
    collector = GalleryCollector()
    for url in (GALLERY_URL, GALLERY_URL, "https://cf.bstatic.com/xdata/images/hotel/max300/99.jpg"):
        route = FakeRoute(url, "image")
        await collector.handle_route(route)
        assert route.outcome == "continued"

    assert collector.images == [
        "https://cf.bstatic.com/xdata/images/hotel/max1024x768/1234.jpg?k=abc",
        "https://cf.bstatic.com/xdata/images/hotel/max1024x768/99.jpg",
    ]
    assert all("max300" not in url for url in collector.images)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "url,resource_type",
    [
        ("https://fonts.example.com/a.woff2", "font"),
        ("https://www.google-analytics.com/collect", "xhr"),
        ("https://www.booking.com/tracking/pixel.gif", "image"),
        ("https://telemetry.booking.com/beacon", "fetch"),
    ],
)
async def test_gallery_collector_blocks_fonts_and_trackers(url, resource_type):
    collector = GalleryCollector()
    route = FakeRoute(url, resource_type)
    await collector.handle_route(route)
    assert route.outcome == "aborted"
    assert collector.images == []


@pytest.mark.asyncio
async def test_gallery_collector_ignores_other_images():
    collector = GalleryCollector()
    route = FakeRoute("https://cf.bstatic.com/static/img/logo.png", "image")
    await collector.handle_route(route)
    assert route.outcome == "continued"
    assert collector.images == []


# --- context setup ---


@pytest.mark.asyncio
async def test_open_context_applies_identity_and_stealth(settings):
    browser = FakeBrowser(FakePage())
    context = await open_context(browser, settings)

    assert context.options["viewport"] == {"width": 1920, "height": 1080}
    assert context.options["user_agent"] == settings.user_agent
    assert context.options["extra_http_headers"]["Accept-Language"] == "en-US,en;q=0.9"
    assert context.init_scripts == [f"({STEALTH_SCRIPT})()"]
    assert "webdriver" in STEALTH_SCRIPT
    assert "Headless" in STEALTH_SCRIPT


# --- prepare ---


@pytest.mark.asyncio
async def test_prepare_happy_path(controller, diagnostics):
    page = FakePage(network=[(GALLERY_URL, "image"), ("https://x.com/font.woff", "font")])

    result = await controller.prepare(page, HOTEL_URL)

    assert result.status == 200
    assert result.final_url == HOTEL_URL
    assert result.gallery_images == ["https://cf.bstatic.com/xdata/images/hotel/max1024x768/1234.jpg?k=abc"]
    assert page.route_outcomes["https://x.com/font.woff"] == "aborted"
    assert page.timeouts == {"navigation": 1000, "default": 2000}
    assert ("goto", HOTEL_URL, "domcontentloaded") in page.events
    assert [e for e in page.events if e[0] == "tab"] == [
        ("tab", 'a[href="#rooms"]'),
        ("tab", 'a[href="#facilities"]'),
        ("tab", 'a[href="#reviews"]'),
    ]
    steps = diagnostics.step_names()
    assert steps == [
        "Navigating to URL",
        "Response received",
        "Final URL",
        "Waiting for content to load",
        "Scrolling page",
    ]


@pytest.mark.asyncio
async def test_prepare_no_response(controller):
    with pytest.raises(NavigationError, match="No response from server"):
        await controller.prepare(FakePage(status=None), HOTEL_URL)


@pytest.mark.asyncio
async def test_prepare_access_denied(controller, diagnostics):
    with pytest.raises(AccessDeniedError, match="Bot detection"):
        await controller.prepare(FakePage(status=403), HOTEL_URL)
    assert "Access denied" in diagnostics.step_names()


@pytest.mark.asyncio
async def test_prepare_not_found(controller):
    with pytest.raises(NotFoundError, match="Page not found"):
        await controller.prepare(FakePage(status=404), HOTEL_URL)


@pytest.mark.asyncio
async def test_prepare_server_error(controller):
    with pytest.raises(NavigationError, match="500"):
        await controller.prepare(FakePage(status=500), HOTEL_URL)


@pytest.mark.asyncio
async def test_missing_title_is_not_fatal(controller, diagnostics):
    page = FakePage(missing_selectors={'h2.d2fee87262, [data-testid="title"], #hp_hotel_name'})
    await controller.prepare(page, HOTEL_URL)
    assert "Warning: Could not find hotel title selector, continuing anyway" in diagnostics.step_names()


@pytest.mark.asyncio
async def test_redirect_away_raises_wrong_page(controller, diagnostics):
    page = FakePage(final_url="https://www.booking.com/index.html")

    with pytest.raises(WrongPageError):
        await controller.prepare(page, HOTEL_URL)

    steps = diagnostics.step_names()
    assert "Redirect or captcha detected" in steps
    assert "Captcha detected - waiting for resolution" not in steps
    assert 5000 in page.waits


@pytest.mark.asyncio
async def test_unresolved_captcha_raises_wrong_page(controller, diagnostics):
    page = FakePage(final_url=CAPTCHA_URL)

    with pytest.raises(WrongPageError):
        await controller.prepare(page, HOTEL_URL)

    assert "Timeout waiting for captcha resolution" in diagnostics.step_names()


@pytest.mark.asyncio
async def test_resolved_captcha_continues(controller, diagnostics):
    page = FakePage(final_url=CAPTCHA_URL, captcha_resolves_to=HOTEL_URL)

    result = await controller.prepare(page, HOTEL_URL)

    assert result.final_url == HOTEL_URL
    assert "Navigation after captcha" in diagnostics.step_names()


@pytest.mark.asyncio
async def test_tab_click_failures_are_logged(controller, diagnostics):
    page = FakePage(
        missing_selectors={'a[href="#rooms"]'},
        failing_clicks={'a[href="#reviews"]'},
    )

    await controller.prepare(page, HOTEL_URL)

    steps = diagnostics.step_names()
    assert "Could not click Rooms tab" in steps
    assert "Could not click Reviews tab" in steps
    assert ("tab", 'a[href="#facilities"]') in page.events


@pytest.mark.asyncio
async def test_dialogs_are_dismissed(controller, diagnostics):
    dialog = FakeDialog()
    await controller._dismiss_dialog(dialog)
    assert dialog.dismissed
    assert diagnostics.steps[-1].step == "Dialog detected"


def test_redirect_responses_are_traced(controller, diagnostics):
    controller._track_redirect(FakeResponse(301, headers={"location": "https://www.booking.com/x"}))
    controller._track_redirect(FakeResponse(200))

    assert diagnostics.step_names() == ["Redirect detected"]
    detail = diagnostics.steps[0].model_dump()
    assert detail["to"] == "https://www.booking.com/x"
    assert detail["status"] == 301


# --- scrolling ---


@pytest.mark.asyncio
async def test_auto_scroll_reaches_bottom_then_returns_to_top():
    page = FakePage(scroll_height=350)
    await auto_scroll(page)

    scrolls = [e for e in page.events if e[0] == "scroll"]
    assert scrolls == [("scroll", 100)] * 4
    assert page.events[-1] == ("scroll_top",)
    assert page.waits == [100, 100, 100]


@pytest.mark.asyncio
async def test_auto_scroll_stops_at_step_limit_on_endless_page():
    page = FakePage(scroll_height=10**9)
    await auto_scroll(page, max_steps=3)

    scrolls = [e for e in page.events if e[0] == "scroll"]
    assert scrolls == [("scroll", 100)] * 3
    assert page.events[-1] == ("scroll_top",)
