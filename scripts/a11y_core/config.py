"""Configuration values threaded through a scan session."""
import json
from dataclasses import dataclass, field, fields, is_dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from scripts.a11y_core.errors import ConfigurationError

PACKAGE_ROOT = Path(__file__).resolve().parent
DEFAULT_BUNDLE_PATH = PACKAGE_ROOT / "assets" / "scanner-bundle.js"
DEFAULT_AXE_URL = "https://cdnjs.cloudflare.com/ajax/libs/axe-core/4.9.1/axe.min.js"

# Global set by the injected bundle; its presence means the bundle is live in the page.
BUNDLE_GLOBAL = "A11yComponentScanner"

MAX_COMPONENT_NODES = 50000
HTML_SNIPPET_LENGTH = 200

MOBILE_VIEWPORT = {"width": 375, "height": 812}

SEVERITY_LEVELS = ("critical", "serious", "moderate", "minor")

DEFAULT_FRAMEWORK_PATTERNS = [
    "React",
    "ReactDOM",
    "Router",
    "Link",
    "Route",
    "Switch",
    "Redirect",
    "Provider",
    "Consumer",
    "Context",
    "Fragment",
    "StrictMode",
    "Suspense",
    "ErrorBoundary",
    "Profiler",
    "Portal",
    # Next.js
    "NextJS",
    "Next",
    "Head",
    "Script",
    "Image",
    "Layout",
    "Loading",
    "Error",
    "NotFound",
    "Template",
    "ServerRoot",
    "AppRouter",
    "InnerLayoutRouter",
    "OuterLayoutRouter",
    "ScrollAndFocusHandler",
    "RedirectBoundary",
    # UI kits
    "Chakra",
    "MUI",
    "Ant",
    "Radix",
    "HeadlessUI",
]


class BrowserEngine(Enum):
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"

    @classmethod
    def parse(cls, raw: "str | BrowserEngine") -> "BrowserEngine":
        if isinstance(raw, cls):
            return raw
        value = str(raw or "").strip().lower()
        for engine in cls:
            if engine.value == value:
                return engine
        choices = ", ".join(e.value for e in cls)
        raise ConfigurationError(f"Unsupported browser '{raw}' (expected one of: {choices})", "browser")


class Backoff(Enum):
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


@dataclass
class BrowserSettings:
    timeout: int = 30000
    wait_until: str = "domcontentloaded"
    stabilization_delay: int = 3000
    max_navigation_waits: int = 3
    navigation_check_interval: int = 1000
    network_idle_timeout: int = 5000
    post_navigation_delay: int = 2000


@dataclass
class RetryPolicy:
    """Bounded retry schedule: ``max_retries`` retries after the first attempt."""

    max_retries: int = 3
    delay_ms: int = 2000
    backoff: Backoff = Backoff.LINEAR

    @property
    def attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, attempt: int) -> float:
        """Delay in seconds after failed attempt number ``attempt`` (1-based)."""
        if self.backoff is Backoff.EXPONENTIAL:
            millis = self.delay_ms * (2 ** (attempt - 1))
        else:
            millis = self.delay_ms * attempt
        return millis / 1000.0


@dataclass
class FrameworkSettings:
    patterns: List[str] = field(default_factory=lambda: list(DEFAULT_FRAMEWORK_PATTERNS))
    max_nodes: int = MAX_COMPONENT_NODES


@dataclass
class BundleSettings:
    bundle_path: Path = DEFAULT_BUNDLE_PATH
    axe_path: Optional[Path] = None
    axe_url: str = DEFAULT_AXE_URL


@dataclass
class ScanConfig:
    browser: BrowserSettings = field(default_factory=BrowserSettings)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    framework: FrameworkSettings = field(default_factory=FrameworkSettings)
    bundle: BundleSettings = field(default_factory=BundleSettings)
    run_custom_checks: bool = False
    session_timeout: Optional[float] = None
    verbose: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ScanConfig":
        """Build a config by merging ``data`` over the defaults."""
        if not isinstance(data, Mapping):
            raise ConfigurationError("Configuration must be a JSON object")
        return _merge(cls(), data, "")

    def with_overrides(self, **changes: Any) -> "ScanConfig":
        return replace(self, **changes)


def _coerce(current: Any, raw: Any, key: str) -> Any:
    if isinstance(current, Enum):
        try:
            return type(current)(raw)
        except ValueError:
            raise ConfigurationError(f"Invalid value {raw!r} for '{key}'", key) from None
    if isinstance(current, bool) or current is None and isinstance(raw, bool):
        if not isinstance(raw, bool):
            raise ConfigurationError(f"'{key}' must be true or false", key)
        return raw
    if isinstance(current, Path) or key.endswith("_path"):
        if raw is not None and not isinstance(raw, str):
            raise ConfigurationError(f"'{key}' must be a file path", key)
        if raw:
            return Path(raw).expanduser()
        # A path with a default cannot be unset.
        if isinstance(current, Path):
            raise ConfigurationError(f"'{key}' must not be empty", key)
        return None
    if isinstance(current, int):
        if isinstance(raw, bool) or not isinstance(raw, int) or raw < 0:
            raise ConfigurationError(f"'{key}' must be a non-negative integer", key)
        return raw
    if isinstance(current, list):
        if not isinstance(raw, list) or not all(isinstance(item, str) for item in raw):
            raise ConfigurationError(f"'{key}' must be a list of strings", key)
        return list(raw)
    return raw


def _merge(target: Any, data: Mapping[str, Any], prefix: str) -> Any:
    known = {f.name: f for f in fields(target)}
    changes: Dict[str, Any] = {}
    for key, raw in data.items():
        dotted = f"{prefix}{key}"
        if key not in known:
            raise ConfigurationError(f"Unknown configuration key '{dotted}'", dotted)
        current = getattr(target, key)
        if is_dataclass(current):
            if not isinstance(raw, Mapping):
                raise ConfigurationError(f"'{dotted}' must be an object", dotted)
            changes[key] = _merge(current, raw, dotted + ".")
        else:
            changes[key] = _coerce(current, raw, dotted)
    return replace(target, **changes)


def parse_tags(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [t.strip() for t in raw.split(",") if t.strip()]


def split_selector_list(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def load_config(path: Optional[Path]) -> ScanConfig:
    """Read a JSON config file; ``None`` gives the defaults."""
    if path is None:
        return ScanConfig()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Config file not found: {path}", "config") from None
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Config file {path} is not valid JSON: {exc}", "config") from exc
    return ScanConfig.from_mapping(data)
