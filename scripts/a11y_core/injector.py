"""Idempotent injection of axe-core and the scanner bundle into a page."""
import logging

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from scripts.a11y_core.config import BUNDLE_GLOBAL, BundleSettings
from scripts.a11y_core.errors import InjectionError

LOGGER = logging.getLogger("a11y-scan")

IS_INJECTED_JS = f"() => typeof window.{BUNDLE_GLOBAL} !== 'undefined'"
HAS_AXE_JS = "() => typeof window.axe !== 'undefined' && typeof window.axe.run === 'function'"


class BundleInjector:
    def __init__(self, settings: BundleSettings):
        self.settings = settings

    async def is_injected(self, page: Page) -> bool:
        try:
            return bool(await page.evaluate(IS_INJECTED_JS))
        except PlaywrightError as exc:
            LOGGER.debug("Bundle marker check failed: %s", exc)
            return False

    async def _load_axe(self, page: Page) -> None:
        if await page.evaluate(HAS_AXE_JS):
            return
        axe_path = self.settings.axe_path
        if axe_path is not None:
            if not axe_path.is_file():
                raise InjectionError(f"axe-core script not found at {axe_path}")
            await page.add_script_tag(path=str(axe_path))
        else:
            await page.add_script_tag(url=self.settings.axe_url)
        LOGGER.debug("axe-core loaded from %s", axe_path or self.settings.axe_url)

    async def inject(self, page: Page) -> None:
        """Load the bundle unless its global marker is already present."""
        if await self.is_injected(page):
            LOGGER.debug("Scanner bundle already injected, skipping")
            return

        bundle_path = self.settings.bundle_path
        if not bundle_path.is_file():
            raise InjectionError(f"Scanner bundle is missing at {bundle_path}; reinstall the package")

        try:
            await self._load_axe(page)
            await page.add_script_tag(path=str(bundle_path))
        except PlaywrightError as exc:
            raise InjectionError(f"script injection failed: {exc.message}") from exc

        if not await self.is_injected(page):
            raise InjectionError(
                "Scanner bundle failed to load in page context. This may indicate a JavaScript error "
                "in the page or a Content-Security-Policy blocking scripts. Try running with --headed to debug."
            )
        LOGGER.debug("Scanner bundle injected successfully")
