"""Wait for single-page applications to stop navigating after load."""
import asyncio
import logging
from enum import Enum
from typing import Any, Optional

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from scripts.a11y_core.config import BrowserSettings
from scripts.a11y_core.models import StabilityReport

LOGGER = logging.getLogger("a11y-scan")


class StabilityState(Enum):
    PROBING = "probing"
    STABLE = "stable"
    EXHAUSTED = "exhausted"


class StabilityMonitor:
    """Probe a page until no client-side navigation occurs within one check interval.

    ``attach`` should run as soon as the initial ``goto`` returns so redirects
    fired during the settle delay are still seen. Each probe waits for network
    idle (a timeout only means the network is busy), sleeps the post-navigation
    delay, then checks for main-frame navigations. A navigation re-enters
    probing; silence for one interval means stable. After
    ``max_navigation_waits`` navigations the monitor gives up and the scan
    proceeds against whatever document is loaded.
    """

    def __init__(self, settings: BrowserSettings):
        self.settings = settings
        self.state = StabilityState.PROBING
        self.navigation_count = 0
        self.last_error: Optional[BaseException] = None
        self._page: Any = None
        self._pending = 0
        self._signal = asyncio.Event()

    def _on_navigated(self, frame: Any) -> None:
        if self._page is not None and frame == self._page.main_frame:
            self._pending += 1
            self._signal.set()

    def attach(self, page: Page) -> None:
        if self._page is page:
            return
        self.detach()
        self._page = page
        page.on("framenavigated", self._on_navigated)

    def detach(self) -> None:
        if self._page is None:
            return
        try:
            self._page.remove_listener("framenavigated", self._on_navigated)
        except Exception as exc:
            LOGGER.debug("Could not detach navigation listener: %s", exc)
        self._page = None

    async def _network_idle(self, page: Page) -> None:
        try:
            await page.wait_for_load_state("networkidle", timeout=self.settings.network_idle_timeout)
        except PlaywrightTimeoutError:
            LOGGER.debug("Network idle timeout - slow network or a never-ending loader")

    async def _navigated(self) -> bool:
        if not self._pending:
            try:
                await asyncio.wait_for(self._signal.wait(), timeout=self.settings.navigation_check_interval / 1000.0)
            except asyncio.TimeoutError:
                return False
        self._pending = 0
        self._signal.clear()
        return True

    async def wait(self, page: Page) -> StabilityReport:
        self.attach(page)
        limit = self.settings.max_navigation_waits
        self.state = StabilityState.PROBING
        try:
            while self.state is StabilityState.PROBING:
                if self.navigation_count >= limit:
                    self.state = StabilityState.EXHAUSTED
                    break
                try:
                    await self._network_idle(page)
                    await page.wait_for_timeout(self.settings.post_navigation_delay)
                    if await self._navigated():
                        self.navigation_count += 1
                        LOGGER.warning(
                            "Navigation detected (%d/%d), waiting for stabilization...",
                            self.navigation_count,
                            limit,
                        )
                    else:
                        self.state = StabilityState.STABLE
                except Exception as exc:
                    self.last_error = exc
                    self.navigation_count += 1
                    LOGGER.debug("Stability probe %d failed: %s", self.navigation_count, exc)
        finally:
            self.detach()

        if self.state is StabilityState.EXHAUSTED:
            LOGGER.warning("Page did not stabilize after %d navigation checks. Proceeding anyway...", self.navigation_count)
            LOGGER.warning("Last stability error: %s", self.last_error or "none")
        else:
            LOGGER.info("Page appears stable after %d navigation(s), proceeding...", self.navigation_count)

        return StabilityReport(
            state=self.state.value,
            is_stable=self.state is StabilityState.STABLE,
            navigation_count=self.navigation_count,
            last_error=str(self.last_error) if self.last_error else None,
        )
