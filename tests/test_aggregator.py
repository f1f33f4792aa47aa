import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from scripts.a11y_core.aggregator import ResultsAggregator, criteria_from_tags, wcag_level  # noqa: E402
from scripts.a11y_core.models import (  # noqa: E402
    AttributedPass,
    AttributedViolation,
    AttributedViolationNode,
    ComponentDescriptor,
    ComponentKind,
    KeyboardReport,
)


def node(component=None) -> AttributedViolationNode:
    path = ["App", component] if component else []
    return AttributedViolationNode(
        component=component,
        component_path=path,
        user_component_path=path,
        component_kind="composite-component" if component else None,
        html="<div></div>",
        html_snippet="<div></div>",
        css_selector="div",
        target=["div"],
        failure_summary="",
    )


def violation(rule_id, impact, tags, *components, criterion=None, source="rule-engine") -> AttributedViolation:
    return AttributedViolation(
        id=rule_id,
        impact=impact,
        description="",
        help="",
        help_url="",
        tags=list(tags),
        nodes=[node(c) for c in components],
        source=source,
        criterion=criterion,
    )


COMPONENTS = [
    ComponentDescriptor("App", ComponentKind.COMPOSITE, ("App",)),
    ComponentDescriptor("Card", ComponentKind.COMPOSITE, ("App", "Card")),
    ComponentDescriptor("Nav", ComponentKind.COMPOSITE, ("App", "Nav")),
]


def test_totals_count_nodes_not_rules() -> None:
    violations = [
        violation("image-alt", "critical", ["wcag2a", "wcag111"], "Card", "Card", None),
        violation("color-contrast", "serious", ["wcag2aa", "wcag143"], "Nav"),
    ]
    summary = ResultsAggregator().aggregate(COMPONENTS, violations)

    assert summary.total_violations == 4
    assert summary.total_violations == sum(len(v.nodes) for v in violations)
    assert summary.violations_by_severity == {"critical": 3, "serious": 1, "moderate": 0, "minor": 0}
    assert summary.components_with_violations == 2
    assert summary.total_components == 3
    assert summary.violations_by_criterion == {"1.1.1": 3, "1.4.3": 1}
    assert summary.violations_by_wcag_level == {"A": 3, "AA": 1, "AAA": 0, "unknown": 0}


def test_highest_level_wins() -> None:
    assert wcag_level(["wcag2a", "wcag21aa"]) == "AA"
    assert wcag_level(["wcag2aaa", "wcag2a"]) == "AAA"
    assert wcag_level(["wcag22aa", "wcag2aa"]) == "AA"
    assert wcag_level(["best-practice", "cat.keyboard"]) == "unknown"
    assert wcag_level([]) == "unknown"


def test_criterion_tags_are_dotted() -> None:
    assert criteria_from_tags(["wcag2a", "wcag111", "wcag1410", "wcag21aa"]) == ["1.1.1", "1.4.10"]


def test_custom_check_criterion_counts_when_tags_have_none() -> None:
    custom = violation("target-size", "serious", ["wcag2aa"], None, criterion="2.5.8", source="custom-check")
    summary = ResultsAggregator().aggregate([], [custom])
    assert summary.violations_by_criterion == {"2.5.8": 1}
    assert summary.components_with_violations == 0


def test_optional_sections_are_counted() -> None:
    passes = [AttributedPass("document-title", None, "", "", "", ["wcag2a"], [])]
    keyboard = KeyboardReport(focusable_count=4, issues=[{"type": "positive-tabindex"}])
    summary = ResultsAggregator().aggregate(COMPONENTS, [], passes=passes, incomplete=[], keyboard=keyboard)

    assert summary.total_passes == 1
    assert summary.total_incomplete == 0
    assert summary.keyboard_issues == 1
    assert ResultsAggregator().aggregate(COMPONENTS, []).keyboard_issues is None


def test_aggregation_is_stateless() -> None:
    aggregator = ResultsAggregator()
    violations = [violation("label", "critical", ["wcag2a"], "Card")]
    first = aggregator.aggregate(COMPONENTS, violations)
    second = aggregator.aggregate(COMPONENTS, violations)
    assert first == second
    assert second.total_violations == 1


def test_keyboard_report_groups_issues_by_category() -> None:
    report = KeyboardReport.from_dict(
        {
            "focusableCount": 6,
            "issues": [
                {"category": "tab-order", "type": "positive-tabindex", "severity": "serious", "selector": "#a"},
                {"category": "tab-order", "type": "hidden-focusable", "severity": "moderate", "selector": "#b"},
                {"category": "focus-management", "type": "focus-indicator-missing", "severity": "critical"},
                {"category": "shortcuts", "type": "custom-widget", "severity": "serious", "selector": "#menu"},
                "garbage",
            ],
            "tabOrder": [{"selector": "#a", "tabIndex": 2, "x": 10, "y": 10}],
            "visualOrderMismatches": [],
            "skipLink": {"found": False, "working": False, "details": "No skip link found"},
            "focusTraps": [{"selector": "#dialog", "passed": True, "details": "2 focusable element(s)"}],
            "shortcuts": [{"shortcut": "Escape", "passed": False}],
            "customWidgets": [{"selector": "#menu", "role": "menu", "keyboardSupport": "partial", "issues": ["x"]}],
        }
    )

    assert report.focusable_count == 6
    assert len(report.issues) == 4
    assert [i["type"] for i in report.by_category("tab-order")] == ["positive-tabindex", "hidden-focusable"]
    assert report.severity_counts() == {"critical": 1, "serious": 2, "moderate": 1, "minor": 0}
    assert report.skip_link["found"] is False
    assert report.custom_widgets[0]["keyboardSupport"] == "partial"
    assert ResultsAggregator().aggregate(COMPONENTS, [], keyboard=report).keyboard_issues == 4

    bare = KeyboardReport.from_dict({"skipLink": "yes"})
    assert bare.skip_link is None
    assert bare.tab_order == []
