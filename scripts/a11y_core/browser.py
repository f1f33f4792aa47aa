"""Browser lifecycle: launch, navigate, detect the component framework, close."""
import logging
from typing import Any, Callable, Dict, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from scripts.a11y_core.config import MOBILE_VIEWPORT, BrowserEngine, BrowserSettings
from scripts.a11y_core.errors import LaunchError, NavigationError, NavigationTimeoutError
from scripts.a11y_core.models import FrameworkDetection, SessionState

LOGGER = logging.getLogger("a11y-scan")

LAUNCHERS: Dict[BrowserEngine, Callable[[Any], Any]] = {
    BrowserEngine.CHROMIUM: lambda playwright: playwright.chromium,
    BrowserEngine.FIREFOX: lambda playwright: playwright.firefox,
    BrowserEngine.WEBKIT: lambda playwright: playwright.webkit,
}

MISSING_BROWSER_MARKERS = (
    "No browsers found",
    "browser executable path",
    "Failed to find",
    "not installed",
    "Executable doesn't exist",
)

DETECT_FRAMEWORK_JS = """() => {
    const hasFiber = (el) => Object.keys(el).some((key) =>
        key.startsWith('__reactFiber') ||
        key.startsWith('__reactProps') ||
        key.startsWith('__reactInternalInstance') ||
        key.startsWith('__reactContainer') ||
        key.startsWith('_reactRootContainer'));

    const hook = window.__REACT_DEVTOOLS_GLOBAL_HOOK__;
    if (hook && typeof hook.getFiberRoots === 'function') {
        const roots = hook.getFiberRoots(1);
        if (roots && roots.size > 0) {
            return {detected: true, strategy: 'devtools-hook'};
        }
    }

    for (const selector of ['#root', '#app', '#__next', '[data-reactroot]', '[data-reactid]']) {
        const el = document.querySelector(selector);
        if (el && hasFiber(el)) {
            return {detected: true, strategy: 'root-container'};
        }
    }

    const all = document.querySelectorAll('*');
    const sampleSize = Math.min(100, all.length);
    const step = Math.max(1, Math.floor(all.length / Math.max(1, sampleSize)));
    for (let i = 0; i < all.length; i += step) {
        if (hasFiber(all[i])) {
            return {detected: true, strategy: 'dom-sample'};
        }
    }
    return {detected: false, strategy: null};
}"""


def install_hint(engine: BrowserEngine) -> str:
    return f"Playwright browsers are not installed. Run: playwright install {engine.value}"


def launch_error_for(engine: BrowserEngine, exc: BaseException) -> LaunchError:
    message = getattr(exc, "message", None) or str(exc)
    if any(marker in message for marker in MISSING_BROWSER_MARKERS):
        return LaunchError(engine.value, install_hint(engine))
    return LaunchError(engine.value, message)


class BrowserResource:
    """One browser engine plus one page, released exactly once.

    Use as ``async with BrowserResource(engine) as page:`` so the browser is
    closed on success, on error and on cancellation alike.
    """

    def __init__(
        self,
        engine: BrowserEngine,
        headless: bool = True,
        mobile: bool = False,
        playwright_factory: Callable[[], Any] = async_playwright,
    ):
        self.engine = BrowserEngine.parse(engine)
        self.headless = headless
        self.mobile = mobile
        self.state = SessionState.UNLAUNCHED
        self.page: Optional[Page] = None
        self._factory = playwright_factory
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None

    def context_options(self) -> Dict[str, Any]:
        if not self.mobile:
            return {}
        options: Dict[str, Any] = {"viewport": dict(MOBILE_VIEWPORT), "has_touch": True}
        # Firefox rejects is_mobile.
        if self.engine is not BrowserEngine.FIREFOX:
            options["is_mobile"] = True
        return options

    async def acquire(self) -> Page:
        if self.state is not SessionState.UNLAUNCHED:
            raise RuntimeError(f"Browser resource is {self.state.value}; create a new one per session")
        try:
            self._playwright = await self._factory().start()
            launcher = LAUNCHERS[self.engine](self._playwright)
            self._browser = await launcher.launch(headless=self.headless)
            self._context = await self._browser.new_context(**self.context_options())
            self.page = await self._context.new_page()
        except Exception as exc:
            await self._discard()
            raise launch_error_for(self.engine, exc) from exc
        except BaseException:
            await self._discard()
            raise
        self.state = SessionState.LAUNCHED
        LOGGER.debug("Browser %s launched (headless=%s)", self.engine.value, self.headless)
        return self.page

    async def release(self) -> None:
        if self.state is not SessionState.LAUNCHED:
            return
        self.state = SessionState.CLOSED
        await self._discard()
        LOGGER.debug("Browser %s closed", self.engine.value)

    async def _discard(self) -> None:
        for label, closer in (
            ("context", self._context.close if self._context else None),
            ("browser", self._browser.close if self._browser else None),
            ("driver", self._playwright.stop if self._playwright else None),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except Exception as exc:
                LOGGER.debug("Ignoring %s close error: %s", label, exc)
        self._context = None
        self._browser = None
        self._playwright = None
        self.page = None

    async def __aenter__(self) -> Page:
        return await self.acquire()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()


async def navigate(
    page: Page,
    url: str,
    settings: BrowserSettings,
    on_loaded: Optional[Callable[[Page], None]] = None,
) -> None:
    try:
        response = await page.goto(url, wait_until=settings.wait_until, timeout=settings.timeout)
    except PlaywrightTimeoutError as exc:
        raise NavigationTimeoutError(url, settings.timeout) from exc
    except PlaywrightError as exc:
        raise NavigationError(url, exc.message) from exc
    if response is not None and response.status >= 400:
        LOGGER.warning("%s answered with HTTP %s; scanning the error page", url, response.status)
    LOGGER.debug("Navigated to %s", url)
    if on_loaded is not None:
        on_loaded(page)
    await page.wait_for_timeout(settings.stabilization_delay)


async def detect_framework(page: Page) -> FrameworkDetection:
    try:
        found = await page.evaluate(DETECT_FRAMEWORK_JS)
    except PlaywrightError as exc:
        LOGGER.debug("Framework detection failed: %s", exc)
        return FrameworkDetection(detected=False)
    if not isinstance(found, dict):
        return FrameworkDetection(detected=False)
    return FrameworkDetection(detected=bool(found.get("detected")), strategy=found.get("strategy"))
