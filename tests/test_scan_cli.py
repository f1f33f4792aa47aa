import json
import logging
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import scripts.scan as scanner  # noqa: E402
from scripts.a11y_core.aggregator import ResultsAggregator  # noqa: E402
from scripts.a11y_core.errors import ConfigurationError, NavigationError  # noqa: E402
from scripts.a11y_core.models import (  # noqa: E402
    AttributedViolation,
    AttributedViolationNode,
    FrameworkDetection,
    KeyboardReport,
    ScanResults,
    StabilityReport,
)
from scripts.a11y_core.reporting import format_for_ci, render_summary, write_json  # noqa: E402


def sample_results(violation_count: int = 2) -> ScanResults:
    violations = []
    for i in range(violation_count):
        node = AttributedViolationNode(
            component="SubmitButton",
            component_path=["App", "Suspense", "SubmitButton"],
            user_component_path=["App", "SubmitButton"],
            component_kind="composite-component",
            html="<button></button>",
            html_snippet="<button></button>",
            css_selector=f"button:nth-of-type({i + 1})",
            target=["button"],
            failure_summary="Fix any of the following",
        )
        violations.append(
            AttributedViolation(
                id=f"rule-{i}",
                impact="critical" if i == 0 else "minor",
                description="",
                help="Buttons must have discernible text",
                help_url="",
                tags=["wcag2a", "wcag412"],
                nodes=[node],
            )
        )
    return ScanResults(
        url="https://app.example",
        timestamp="2026-01-01T00:00:00+00:00",
        browser="chromium",
        framework=FrameworkDetection(True, "devtools-hook"),
        stability=StabilityReport("stable", True, 0),
        components=[],
        violations=violations,
        passes=[],
        incomplete=[],
        summary=ResultsAggregator().aggregate([], violations),
    )


class FakeOrchestrator:
    outcome = None
    seen = []

    def __init__(self, config):
        self.config = config

    async def perform_scan(self, options):
        FakeOrchestrator.seen.append((options, self.config))
        if isinstance(FakeOrchestrator.outcome, Exception):
            raise FakeOrchestrator.outcome
        return FakeOrchestrator.outcome


@pytest.fixture
def fake_orchestrator(monkeypatch):
    FakeOrchestrator.outcome = sample_results()
    FakeOrchestrator.seen = []
    monkeypatch.setattr(scanner, "ScanOrchestrator", FakeOrchestrator)
    return FakeOrchestrator


def test_validate_url_requires_scheme_and_host() -> None:
    assert scanner.validate_url("https://example.com/page") == "https://example.com/page"
    assert scanner.validate_url("file:///tmp/fixture.html") == "file:///tmp/fixture.html"
    for bad in ("example.com", "ftp://example.com", "https://", "javascript:alert(1)"):
        with pytest.raises(ConfigurationError):
            scanner.validate_url(bad)


def test_invalid_url_exits_with_validation_code(fake_orchestrator, capsys) -> None:
    assert scanner.run(["not-a-url"]) == 2
    assert "ERROR" in capsys.readouterr().err
    assert fake_orchestrator.seen == []


def test_invalid_config_file_exits_with_validation_code(tmp_path, fake_orchestrator) -> None:
    config = tmp_path / "config.json"
    config.write_text(json.dumps({"retry": {"attempts": 9}}), encoding="utf-8")
    assert scanner.run(["https://app.example", "--config", str(config)]) == 2


def test_config_file_verbose_enables_debug_logging(tmp_path, fake_orchestrator) -> None:
    config = tmp_path / "config.json"
    config.write_text(json.dumps({"verbose": True}), encoding="utf-8")

    assert scanner.run(["https://app.example", "--config", str(config)]) == 0
    assert fake_orchestrator.seen[0][1].verbose is True
    assert logging.getLogger("a11y-scan").level == logging.DEBUG


def test_verbose_flag_and_default_levels(fake_orchestrator) -> None:
    assert scanner.run(["https://app.example"]) == 0
    assert logging.getLogger("a11y-scan").level == logging.INFO

    assert scanner.run(["https://app.example", "--verbose"]) == 0
    assert logging.getLogger("a11y-scan").level == logging.DEBUG


def test_successful_scan_writes_report(tmp_path, fake_orchestrator, capsys) -> None:
    output = tmp_path / "reports" / "a11y.json"
    exit_code = scanner.run(
        [
            "https://app.example",
            "--browser",
            "webkit",
            "--tags",
            "wcag2a,wcag2aa",
            "--exclude",
            "#ads",
            "--timeout",
            "5000",
            "--output",
            str(output),
        ]
    )

    assert exit_code == 0
    report = json.loads(output.read_text(encoding="utf-8"))
    assert report["summary"]["total_violations"] == 2
    assert report["violations"][0]["nodes"][0]["user_component_path"] == ["App", "SubmitButton"]

    options, config = fake_orchestrator.seen[0]
    assert options.engine == "webkit"
    assert options.tags == ["wcag2a", "wcag2aa"]
    assert options.exclude == ["#ads"]
    assert options.headless is True
    assert config.browser.timeout == 5000

    out = capsys.readouterr().out
    assert "Violations: 2" in out
    assert "App > SubmitButton" in out


def test_ci_mode_fails_above_threshold(fake_orchestrator, capsys) -> None:
    assert scanner.run(["https://app.example", "--ci"]) == 1
    assert "CI Check Failed: 2 violation(s) found (threshold: 0)" in capsys.readouterr().out
    assert scanner.run(["https://app.example", "--ci", "--threshold", "2"]) == 0


def test_scan_errors_exit_with_failure(fake_orchestrator) -> None:
    fake_orchestrator.outcome = NavigationError("https://app.example", "net::ERR_CONNECTION_REFUSED")
    assert scanner.run(["https://app.example"]) == 1


def test_format_for_ci_counts_critical() -> None:
    ci = format_for_ci(sample_results(), threshold=5)
    assert ci.passed is True
    assert ci.total_violations == 2
    assert ci.critical_violations == 1
    assert ci.message == "CI Check Passed: 2 violation(s) found (threshold: 5)"


def test_render_summary_limits_listed_rules() -> None:
    text = render_summary(sample_results(12), limit=10)
    assert "Violations: 12 across 12 rule(s)" in text
    assert "... 2 more rule(s)" in text
    assert "by severity: critical=1, serious=0, moderate=0, minor=11" in text


def test_write_json_accepts_results(tmp_path) -> None:
    path = tmp_path / "out.json"
    write_json(path, sample_results(1))
    assert json.loads(path.read_text(encoding="utf-8"))["url"] == "https://app.example"


def test_render_summary_lists_review_counts_and_keyboard_categories() -> None:
    results = sample_results(1)
    results.keyboard = KeyboardReport(
        focusable_count=3,
        issues=[
            {"category": "tab-order", "type": "positive-tabindex", "severity": "serious"},
            {"category": "shortcuts", "type": "custom-widget", "severity": "critical"},
        ],
    )
    results.summary = ResultsAggregator().aggregate([], results.violations, keyboard=results.keyboard)

    text = render_summary(results)

    assert "Passed rules: 0, needs review: 0" in text
    assert "Keyboard issues: 2" in text
    assert "  tab-order: 1" in text
    assert "  focus-management: 0" in text
