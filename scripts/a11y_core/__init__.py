"""Component-attributed accessibility scanning on top of Playwright."""
from scripts.a11y_core.config import BrowserEngine, ScanConfig
from scripts.a11y_core.errors import ScanError
from scripts.a11y_core.models import ScanOptions, ScanResults
from scripts.a11y_core.orchestrator import ScanOrchestrator, perform_scan

__all__ = [
    "BrowserEngine",
    "ScanConfig",
    "ScanError",
    "ScanOptions",
    "ScanOrchestrator",
    "ScanResults",
    "perform_scan",
]
