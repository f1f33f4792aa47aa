import asyncio
import sys
from pathlib import Path

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fakes import FakePage, FakePlaywright, FakeResponse  # noqa: E402
from scripts.a11y_core.browser import (  # noqa: E402
    DETECT_FRAMEWORK_JS,
    BrowserResource,
    detect_framework,
    navigate,
)
from scripts.a11y_core.config import BrowserEngine, BrowserSettings  # noqa: E402
from scripts.a11y_core.errors import LaunchError, NavigationError, NavigationTimeoutError  # noqa: E402
from scripts.a11y_core.models import SessionState  # noqa: E402


def assert_closed_once(playwright: FakePlaywright) -> None:
    (browser,) = playwright.browsers()
    assert browser.closed == 1
    assert browser.contexts[0].closed == 1
    assert playwright.driver.stopped == 1


def test_release_closes_exactly_once_on_success() -> None:
    playwright = FakePlaywright()
    resource = BrowserResource(BrowserEngine.CHROMIUM, playwright_factory=playwright)

    async def scenario():
        async with resource as page:
            assert page is playwright.driver.chromium.page
            assert resource.state is SessionState.LAUNCHED
        await resource.release()

    asyncio.run(scenario())
    assert resource.state is SessionState.CLOSED
    assert_closed_once(playwright)


def test_release_closes_exactly_once_on_error() -> None:
    playwright = FakePlaywright()
    resource = BrowserResource("webkit", playwright_factory=playwright)

    async def scenario():
        async with resource:
            raise ValueError("scan blew up")

    with pytest.raises(ValueError):
        asyncio.run(scenario())
    assert playwright.driver.webkit.launched
    assert_closed_once(playwright)


def test_release_closes_exactly_once_on_cancellation() -> None:
    playwright = FakePlaywright()
    resource = BrowserResource(BrowserEngine.FIREFOX, playwright_factory=playwright)

    async def scenario():
        entered = asyncio.Event()

        async def session():
            async with resource:
                entered.set()
                await asyncio.sleep(3600)

        task = asyncio.ensure_future(session())
        await entered.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())
    assert resource.state is SessionState.CLOSED
    assert_closed_once(playwright)


def test_missing_browser_gives_install_hint_and_stops_driver() -> None:
    error = PlaywrightError("Executable doesn't exist at /ms-playwright/firefox-1400/firefox")
    playwright = FakePlaywright(launch_error=error)
    resource = BrowserResource(BrowserEngine.FIREFOX, playwright_factory=playwright)

    with pytest.raises(LaunchError) as excinfo:
        asyncio.run(resource.acquire())

    assert "playwright install firefox" in excinfo.value.reason
    assert excinfo.value.engine == "firefox"
    assert playwright.driver.stopped == 1
    assert resource.state is SessionState.UNLAUNCHED
    asyncio.run(resource.release())
    assert playwright.driver.stopped == 1


def test_other_launch_failures_keep_their_reason() -> None:
    playwright = FakePlaywright(launch_error=RuntimeError("sandbox denied"))
    with pytest.raises(LaunchError) as excinfo:
        asyncio.run(BrowserResource(BrowserEngine.CHROMIUM, playwright_factory=playwright).acquire())
    assert excinfo.value.reason == "sandbox denied"


def test_mobile_context_options_per_engine() -> None:
    chromium = BrowserResource(BrowserEngine.CHROMIUM, mobile=True, playwright_factory=FakePlaywright())
    firefox = BrowserResource(BrowserEngine.FIREFOX, mobile=True, playwright_factory=FakePlaywright())
    assert chromium.context_options() == {
        "viewport": {"width": 375, "height": 812},
        "has_touch": True,
        "is_mobile": True,
    }
    assert "is_mobile" not in firefox.context_options()
    assert BrowserResource(BrowserEngine.WEBKIT, playwright_factory=FakePlaywright()).context_options() == {}


def test_navigate_waits_for_stabilization_delay_after_load() -> None:
    page = FakePage()
    loaded = []
    settings = BrowserSettings(timeout=1234, stabilization_delay=50)

    asyncio.run(navigate(page, "https://example.com", settings, on_loaded=loaded.append))

    assert page.gotos == [{"url": "https://example.com", "wait_until": "domcontentloaded", "timeout": 1234}]
    assert loaded == [page]
    assert page.timeouts == [50]


def test_navigate_maps_playwright_errors() -> None:
    page = FakePage()
    page.goto_result = PlaywrightTimeoutError("Timeout 10ms exceeded")
    with pytest.raises(NavigationTimeoutError) as excinfo:
        asyncio.run(navigate(page, "https://slow.example", BrowserSettings(timeout=10)))
    assert excinfo.value.timeout == 10

    page.goto_result = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")
    with pytest.raises(NavigationError) as excinfo:
        asyncio.run(navigate(page, "https://nowhere.invalid", BrowserSettings()))
    assert not isinstance(excinfo.value, NavigationTimeoutError)
    assert "ERR_NAME_NOT_RESOLVED" in excinfo.value.reason


def test_navigate_tolerates_http_error_pages() -> None:
    page = FakePage()
    page.goto_result = FakeResponse(404)
    asyncio.run(navigate(page, "https://example.com/missing", BrowserSettings(stabilization_delay=0)))
    assert page.timeouts == [0]


def test_detect_framework_reports_strategy() -> None:
    page = FakePage({DETECT_FRAMEWORK_JS: {"detected": True, "strategy": "root-container"}})
    detection = asyncio.run(detect_framework(page))
    assert detection.detected is True
    assert detection.strategy == "root-container"


def test_detect_framework_is_false_when_page_errors() -> None:
    page = FakePage({DETECT_FRAMEWORK_JS: PlaywrightError("Execution context was destroyed")})
    assert asyncio.run(detect_framework(page)).detected is False
