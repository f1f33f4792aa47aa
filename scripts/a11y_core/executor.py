"""Run the injected scanner inside the page with a bounded retry schedule."""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from scripts.a11y_core.config import BUNDLE_GLOBAL, MAX_COMPONENT_NODES, RetryPolicy
from scripts.a11y_core.errors import ScanDataError
from scripts.a11y_core.injector import BundleInjector
from scripts.a11y_core.models import RawScanData, ScanOptions
from scripts.a11y_core.retry import RetriesExhausted, RetryObserver, with_retry

LOGGER = logging.getLogger("a11y-scan")

SCAN_JS = f"(options) => window.{BUNDLE_GLOBAL}.scan(options)"

SUPPRESS_HISTORY_JS = """() => {
    if (window.__a11yHistoryGuard) {
        return false;
    }
    window.__a11yHistoryGuard = {push: history.pushState, replace: history.replaceState};
    history.pushState = function () {};
    history.replaceState = function () {};
    return true;
}"""

RESTORE_HISTORY_JS = """() => {
    const saved = window.__a11yHistoryGuard;
    if (!saved) {
        return false;
    }
    history.pushState = saved.push;
    history.replaceState = saved.replace;
    delete window.__a11yHistoryGuard;
    return true;
}"""


@asynccontextmanager
async def history_guard(page: Page) -> AsyncIterator[None]:
    """Stub out pushState/replaceState so the scan cannot trigger a client-side navigation."""
    await page.evaluate(SUPPRESS_HISTORY_JS)
    try:
        yield
    finally:
        try:
            await page.evaluate(RESTORE_HISTORY_JS)
        except PlaywrightError as exc:
            # The document the guard was installed in is gone; nothing left to restore.
            LOGGER.debug("History APIs not restored: %s", exc)


def normalize_scan_payload(raw: Any) -> RawScanData:
    if not isinstance(raw, dict):
        raise ValueError("No scan data returned from browser")

    lists: Dict[str, list] = {}
    for key in ("violations", "passes", "incomplete"):
        value = raw.get(key)
        if not isinstance(value, list):
            LOGGER.warning("Scan returned invalid %s data; treating it as empty", key)
            value = []
        lists[key] = [item for item in value if isinstance(item, dict)]

    components = raw.get("components")
    if not isinstance(components, dict):
        LOGGER.warning("Scan returned invalid component data; treating it as empty")
        components = {}

    keyboard = raw.get("keyboard")
    if keyboard is not None and not isinstance(keyboard, dict):
        LOGGER.warning("Scan returned invalid keyboard data; ignoring it")
        keyboard = None

    return RawScanData(
        violations=lists["violations"],
        passes=lists["passes"],
        incomplete=lists["incomplete"],
        components=components,
        keyboard=keyboard,
    )


class ScanExecutor:
    def __init__(
        self,
        injector: BundleInjector,
        policy: RetryPolicy,
        max_nodes: int = MAX_COMPONENT_NODES,
        on_retry: Optional[RetryObserver] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.injector = injector
        self.policy = policy
        self.max_nodes = max_nodes
        self.on_retry = on_retry
        self._sleep = sleep

    def _observe(self, attempt: int, error: BaseException) -> None:
        LOGGER.warning("Scan attempt %d failed, retrying...", attempt)
        LOGGER.debug("Error: %s", error)
        if self.on_retry is not None:
            self.on_retry(attempt, error)

    async def _attempt(self, page: Page, payload: Dict[str, Any]) -> RawScanData:
        # A previous attempt may have lost its execution context, so inject every time.
        await self.injector.inject(page)
        async with history_guard(page):
            raw = await page.evaluate(SCAN_JS, payload)
        return normalize_scan_payload(raw)

    async def scan(self, page: Page, options: ScanOptions) -> RawScanData:
        payload = {
            "tags": list(options.tags),
            "includeKeyboardTests": options.include_keyboard_tests,
            "disableRules": list(options.disable_rules),
            "exclude": list(options.exclude),
            "maxNodes": self.max_nodes,
        }
        try:
            data = await with_retry(lambda: self._attempt(page, payload), self.policy, self._observe, self._sleep)
        except RetriesExhausted as exc:
            raise ScanDataError(str(exc.last_error), attempts=exc.attempts) from exc.last_error

        LOGGER.info(
            "Scan complete: %d violated rule(s), %d component graph node(s)",
            len(data.violations),
            len(data.components.get("nodes") or {}),
        )
        return data
