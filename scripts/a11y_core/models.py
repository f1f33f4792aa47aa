"""Data models for scan sessions, components, violations and summaries."""
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from scripts.a11y_core.config import SEVERITY_LEVELS

# A target entry is a CSS selector, or a list of selectors for shadow-DOM hops.
Target = Union[str, List[str]]


class SessionState(Enum):
    UNLAUNCHED = "unlaunched"
    LAUNCHED = "launched"
    CLOSED = "closed"


class ComponentKind(Enum):
    HOST = "host-element"
    COMPOSITE = "composite-component"


def normalize_impact(raw: Any) -> str:
    value = str(raw or "").strip().lower()
    return value if value in SEVERITY_LEVELS else "minor"


@dataclass
class ScanOptions:
    """What to scan and how; one instance per ``perform_scan`` call."""

    url: str
    engine: str = "chromium"
    headless: bool = True
    tags: List[str] = field(default_factory=list)
    include_keyboard_tests: bool = False
    mobile: bool = False
    disable_rules: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)
    require_framework: bool = False


@dataclass
class ScanSession:
    url: str
    engine: str
    headless: bool = True
    state: SessionState = SessionState.UNLAUNCHED

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "engine": self.engine, "headless": self.headless, "state": self.state.value}


@dataclass(frozen=True)
class ComponentDescriptor:
    name: str
    kind: ComponentKind
    path: Tuple[str, ...]
    element: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "kind": self.kind.value, "path": list(self.path), "element": self.element}


@dataclass
class RelatedNode:
    html: str
    target: List[Target]


@dataclass
class CheckResult:
    """One axe check behind a node result; ``any``/``all``/``none`` lists hold these."""

    id: str
    impact: Optional[str]
    message: str
    related_nodes: List[RelatedNode] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CheckResult":
        related = []
        for item in data.get("relatedNodes") or []:
            if not isinstance(item, dict):
                continue
            html = str(item.get("html") or "")
            target = item.get("target") or []
            related.append(RelatedNode(html=html, target=[target] if isinstance(target, str) else list(target)))
        impact = data.get("impact")
        return cls(
            id=str(data.get("id") or "unknown"),
            impact=normalize_impact(impact) if impact else None,
            message=str(data.get("message") or ""),
            related_nodes=related,
        )


CHECK_GROUPS = ("any", "all", "none")


def parse_checks(data: Dict[str, Any]) -> Dict[str, List[CheckResult]]:
    """Empty when the node carries no check data at all."""
    checks = {
        group: [CheckResult.from_dict(c) for c in data.get(group) or [] if isinstance(c, dict)]
        for group in CHECK_GROUPS
    }
    return checks if any(checks.values()) else {}


@dataclass
class RawNode:
    html: str
    target: List[Target]
    failure_summary: str = ""
    impact: Optional[str] = None
    checks: Dict[str, List[CheckResult]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawNode":
        target = data.get("target") or []
        if isinstance(target, str):
            target = [target]
        return cls(
            html=str(data.get("html") or ""),
            target=list(target),
            failure_summary=str(data.get("failureSummary") or ""),
            impact=data.get("impact"),
            checks=parse_checks(data),
        )

    def review_message(self) -> Optional[str]:
        """Why a node needs manual review: the first ``any`` or ``all`` check message."""
        for group in ("any", "all"):
            for check in self.checks.get(group, []):
                if check.message:
                    return check.message
        return None


@dataclass
class RawViolation:
    """A rule-engine result (violation, pass or incomplete) before attribution."""

    id: str
    impact: Optional[str]
    description: str
    help: str
    help_url: str
    tags: List[str] = field(default_factory=list)
    nodes: List[RawNode] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], require_impact: bool = True) -> "RawViolation":
        impact = data.get("impact")
        return cls(
            id=str(data.get("id") or "unknown"),
            impact=normalize_impact(impact) if impact or require_impact else None,
            description=str(data.get("description") or ""),
            help=str(data.get("help") or ""),
            help_url=str(data.get("helpUrl") or ""),
            tags=[str(t) for t in data.get("tags") or []],
            nodes=[RawNode.from_dict(n) for n in data.get("nodes") or [] if isinstance(n, dict)],
        )


@dataclass
class RawScanData:
    violations: List[Dict[str, Any]] = field(default_factory=list)
    passes: List[Dict[str, Any]] = field(default_factory=list)
    incomplete: List[Dict[str, Any]] = field(default_factory=list)
    components: Dict[str, Any] = field(default_factory=dict)
    keyboard: Optional[Dict[str, Any]] = None


@dataclass
class FixSuggestion:
    summary: str
    details: str


@dataclass
class AttributedViolationNode:
    component: Optional[str]
    component_path: List[str]
    user_component_path: List[str]
    component_kind: Optional[str]
    html: str
    html_snippet: str
    css_selector: str
    target: List[Target]
    failure_summary: str
    is_framework_component: bool = False
    checks: Dict[str, List[CheckResult]] = field(default_factory=dict)


@dataclass
class AttributedViolation:
    id: str
    impact: str
    description: str
    help: str
    help_url: str
    tags: List[str]
    nodes: List[AttributedViolationNode]
    source: str = "rule-engine"
    criterion: Optional[str] = None
    fix_suggestion: Optional[FixSuggestion] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AttributedPassNode:
    component: Optional[str]
    component_path: List[str]
    user_component_path: List[str]
    html: str
    html_snippet: str
    css_selector: str
    target: List[Target]


@dataclass
class AttributedIncompleteNode(AttributedPassNode):
    message: Optional[str] = None
    checks: Dict[str, List[CheckResult]] = field(default_factory=dict)


@dataclass
class AttributedPass:
    """A rule that passed, with each passing node attributed to its component."""

    id: str
    impact: Optional[str]
    description: str
    help: str
    help_url: str
    tags: List[str]
    nodes: List[AttributedPassNode]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AttributedIncomplete:
    """A rule needing manual review; nodes carry the reason in ``message``."""

    id: str
    impact: Optional[str]
    description: str
    help: str
    help_url: str
    tags: List[str]
    nodes: List[AttributedIncompleteNode]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CustomCheckViolation:
    id: str
    criterion: str
    level: str
    element: str
    selector: str
    html: str
    impact: str
    description: str
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CustomCheckViolation":
        return cls(
            id=str(data.get("id") or "custom-check"),
            criterion=str(data.get("criterion") or ""),
            level=str(data.get("level") or "AA"),
            element=str(data.get("element") or ""),
            selector=str(data.get("selector") or ""),
            html=str(data.get("html") or ""),
            impact=normalize_impact(data.get("impact")),
            description=str(data.get("description") or ""),
            details=dict(data.get("details") or {}),
        )


KEYBOARD_CATEGORIES = ("tab-order", "focus-management", "shortcuts")


def _records(data: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    return [item for item in data.get(key) or [] if isinstance(item, dict)]


@dataclass
class KeyboardReport:
    """Keyboard sub-test results gathered in the page.

    ``issues`` is the flat list of problems; each carries ``type``,
    ``category`` (one of ``KEYBOARD_CATEGORIES``), ``severity``, ``selector``
    and ``message``. The remaining lists are the raw observations behind them.
    """

    focusable_count: int = 0
    issues: List[Dict[str, Any]] = field(default_factory=list)
    tab_order: List[Dict[str, Any]] = field(default_factory=list)
    visual_order_mismatches: List[Dict[str, Any]] = field(default_factory=list)
    skip_link: Optional[Dict[str, Any]] = None
    focus_traps: List[Dict[str, Any]] = field(default_factory=list)
    shortcuts: List[Dict[str, Any]] = field(default_factory=list)
    custom_widgets: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeyboardReport":
        skip_link = data.get("skipLink")
        return cls(
            focusable_count=int(data.get("focusableCount") or 0),
            issues=_records(data, "issues"),
            tab_order=_records(data, "tabOrder"),
            visual_order_mismatches=_records(data, "visualOrderMismatches"),
            skip_link=skip_link if isinstance(skip_link, dict) else None,
            focus_traps=_records(data, "focusTraps"),
            shortcuts=_records(data, "shortcuts"),
            custom_widgets=_records(data, "customWidgets"),
        )

    def by_category(self, category: str) -> List[Dict[str, Any]]:
        return [issue for issue in self.issues if issue.get("category") == category]

    def severity_counts(self) -> Dict[str, int]:
        counts = {s: 0 for s in SEVERITY_LEVELS}
        for issue in self.issues:
            counts[normalize_impact(issue.get("severity"))] += 1
        return counts


@dataclass
class FrameworkDetection:
    detected: bool
    strategy: Optional[str] = None


@dataclass
class StabilityReport:
    state: str
    is_stable: bool
    navigation_count: int
    last_error: Optional[str] = None


@dataclass
class ScanSummary:
    total_components: int = 0
    total_violations: int = 0
    violations_by_severity: Dict[str, int] = field(default_factory=lambda: {s: 0 for s in SEVERITY_LEVELS})
    violations_by_wcag_level: Dict[str, int] = field(
        default_factory=lambda: {"A": 0, "AA": 0, "AAA": 0, "unknown": 0}
    )
    violations_by_criterion: Dict[str, int] = field(default_factory=dict)
    components_with_violations: int = 0
    total_passes: int = 0
    total_incomplete: int = 0
    keyboard_issues: Optional[int] = None


@dataclass
class ScanResults:
    url: str
    timestamp: str
    browser: str
    framework: FrameworkDetection
    stability: StabilityReport
    components: List[ComponentDescriptor]
    violations: List[AttributedViolation]
    passes: List[AttributedPass]
    incomplete: List[AttributedIncomplete]
    summary: ScanSummary
    keyboard: Optional[KeyboardReport] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "timestamp": self.timestamp,
            "browser": self.browser,
            "framework": asdict(self.framework),
            "stability": asdict(self.stability),
            "components": [c.to_dict() for c in self.components],
            "violations": [v.to_dict() for v in self.violations],
            "passes": [p.to_dict() for p in self.passes],
            "incomplete": [i.to_dict() for i in self.incomplete],
            "keyboard": asdict(self.keyboard) if self.keyboard else None,
            "summary": asdict(self.summary),
        }
