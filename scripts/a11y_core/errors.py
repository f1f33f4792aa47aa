"""Typed errors raised by a scan session."""
from typing import Any, Dict, Optional


class ScanError(Exception):
    """Base class for every error the scanner surfaces to callers."""

    code = "SCAN_ERROR"
    recoverable = False

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "recoverable": self.recoverable,
            "context": self.context,
        }


class LaunchError(ScanError):
    code = "BROWSER_LAUNCH_FAILED"

    def __init__(self, engine: str, reason: str):
        super().__init__(f"Failed to launch {engine} browser: {reason}", {"engine": engine, "reason": reason})
        self.engine = engine
        self.reason = reason


class NavigationError(ScanError):
    code = "NAVIGATION_FAILED"

    def __init__(self, url: str, reason: str):
        super().__init__(f"Navigation to {url} failed: {reason}", {"url": url, "reason": reason})
        self.url = url
        self.reason = reason


class NavigationTimeoutError(NavigationError):
    code = "NAV_TIMEOUT"
    recoverable = True

    def __init__(self, url: str, timeout: int):
        super().__init__(url, f"timed out after {timeout}ms")
        self.context["timeout"] = timeout
        self.timeout = timeout


class InjectionError(ScanError):
    code = "SCANNER_INJECTION_FAILED"
    recoverable = True

    def __init__(self, reason: str):
        super().__init__(f"Failed to inject or execute scanner: {reason}", {"reason": reason})
        self.reason = reason


class ScanDataError(ScanError):
    code = "SCAN_DATA_FAILED"

    def __init__(self, reason: str, attempts: Optional[int] = None):
        context: Dict[str, Any] = {"reason": reason}
        if attempts is not None:
            context["attempts"] = attempts
        super().__init__(f"Scan failed: {reason}", context)
        self.reason = reason
        self.attempts = attempts


class FrameworkNotDetectedError(ScanError):
    code = "FRAMEWORK_NOT_FOUND"

    def __init__(self, url: str):
        super().__init__(
            "No component framework was detected on this page; component attribution needs a React tree.",
            {"url": url},
        )
        self.url = url


class ConfigurationError(ScanError):
    code = "INVALID_CONFIGURATION"

    def __init__(self, message: str, invalid_field: Optional[str] = None):
        super().__init__(message, {"field": invalid_field} if invalid_field else {})
        self.invalid_field = invalid_field


class SelectorResolutionError(Exception):
    """A violation target could not be resolved to a live element.

    Recovered inside attribution; never reaches callers.
    """

    def __init__(self, selector: Any, reason: str):
        super().__init__(f"Could not resolve selector {selector!r}: {reason}")
        self.selector = selector
        self.reason = reason
