"""Drive one scan session end to end: launch, settle, scan, attribute, summarize."""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from scripts.a11y_core.aggregator import ResultsAggregator
from scripts.a11y_core.attribution import (
    PageElementResolver,
    ViolationAttributor,
    custom_to_violation,
    first_targets,
)
from scripts.a11y_core.browser import BrowserResource, detect_framework, navigate
from scripts.a11y_core.checks import DEFAULT_CHECKS, CustomCheck, run_custom_checks
from scripts.a11y_core.components import ComponentIndex, ComponentTreeWalker, SnapshotGraph
from scripts.a11y_core.config import BrowserEngine, ScanConfig
from scripts.a11y_core.errors import FrameworkNotDetectedError, ScanError
from scripts.a11y_core.executor import ScanExecutor
from scripts.a11y_core.injector import BundleInjector
from scripts.a11y_core.models import (
    KeyboardReport,
    RawViolation,
    ScanOptions,
    ScanResults,
    ScanSession,
    SessionState,
)
from scripts.a11y_core.stability import StabilityMonitor

LOGGER = logging.getLogger("a11y-scan")


class ScanOrchestrator:
    """Runs scan sessions sequentially; each session owns its own browser.

    ``resource_factory`` is called as ``factory(engine, headless=..., mobile=...)``
    and must return an async context manager yielding a page.
    """

    def __init__(
        self,
        config: Optional[ScanConfig] = None,
        resource_factory: Callable[..., Any] = BrowserResource,
        checks: Sequence[CustomCheck] = DEFAULT_CHECKS,
    ):
        self.config = config or ScanConfig()
        self.resource_factory = resource_factory
        self.checks = checks
        self.injector = BundleInjector(self.config.bundle)
        self.executor = ScanExecutor(self.injector, self.config.retry, max_nodes=self.config.framework.max_nodes)
        self.attributor = ViolationAttributor(self.config.framework.patterns)
        self.aggregator = ResultsAggregator()
        self.session: Optional[ScanSession] = None

    async def perform_scan(self, options: ScanOptions) -> ScanResults:
        timeout = self.config.session_timeout
        if not timeout:
            return await self._run_session(options)
        try:
            return await asyncio.wait_for(self._run_session(options), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise ScanError(f"Scan of {options.url} timed out after {timeout}s", {"timeout": timeout}) from exc

    async def _run_session(self, options: ScanOptions) -> ScanResults:
        engine = BrowserEngine.parse(options.engine)
        session = ScanSession(options.url, engine.value, options.headless)
        self.session = session
        resource = self.resource_factory(engine, headless=options.headless, mobile=options.mobile)
        try:
            async with resource as page:
                session.state = SessionState.LAUNCHED
                return await self._scan_page(page, engine, options)
        finally:
            if session.state is SessionState.LAUNCHED:
                session.state = SessionState.CLOSED

    async def _scan_page(self, page: Any, engine: BrowserEngine, options: ScanOptions) -> ScanResults:
        settings = self.config.browser
        monitor = StabilityMonitor(settings)

        LOGGER.info("Navigating to %s", options.url)
        await navigate(page, options.url, settings, on_loaded=monitor.attach)
        stability = await monitor.wait(page)

        framework = await detect_framework(page)
        if framework.detected:
            LOGGER.info("React detected (%s)", framework.strategy)
        elif options.require_framework:
            raise FrameworkNotDetectedError(options.url)
        else:
            LOGGER.warning("No React component tree detected; violations will not be attributed to components")

        raw = await self.executor.scan(page, options)

        graph = SnapshotGraph(raw.components)
        if graph.truncated:
            LOGGER.warning("Component snapshot was truncated in the page at %d nodes", self.config.framework.max_nodes)
        walker = ComponentTreeWalker(self.config.framework.max_nodes)
        components = walker.traverse(graph)
        index = ComponentIndex.build(components)
        LOGGER.debug("Indexed %d element(s) across %d component(s)", len(index), len(components))

        raw_violations = [RawViolation.from_dict(v) for v in raw.violations]
        raw_passes = [RawViolation.from_dict(p, require_impact=False) for p in raw.passes]
        raw_incomplete = [RawViolation.from_dict(i, require_impact=False) for i in raw.incomplete]
        resolver = PageElementResolver(page)
        await resolver.prefetch(first_targets([*raw_violations, *raw_passes, *raw_incomplete]))
        violations = self.attributor.attribute(raw_violations, index, resolver)
        passes = self.attributor.attribute_passes(raw_passes, index, resolver)
        incomplete = self.attributor.attribute_incomplete(raw_incomplete, index, resolver)

        if self.config.run_custom_checks:
            custom = await run_custom_checks(page, self.checks)
            violations.extend(custom_to_violation(c) for c in custom)

        keyboard = KeyboardReport.from_dict(raw.keyboard) if raw.keyboard is not None else None
        summary = self.aggregator.aggregate(components, violations, passes, incomplete, keyboard)

        LOGGER.info(
            "Found %d violation(s) across %d component(s)",
            summary.total_violations,
            summary.components_with_violations,
        )
        return ScanResults(
            url=options.url,
            timestamp=datetime.now(timezone.utc).isoformat(),
            browser=engine.value,
            framework=framework,
            stability=stability,
            components=components,
            violations=violations,
            passes=passes,
            incomplete=incomplete,
            summary=summary,
            keyboard=keyboard,
        )


async def perform_scan(options: ScanOptions, config: Optional[ScanConfig] = None) -> ScanResults:
    return await ScanOrchestrator(config).perform_scan(options)
