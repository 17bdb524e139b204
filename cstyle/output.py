"""Output rendering."""

from __future__ import annotations

import json
from typing import Any

import click

from cstyle import __version__
from cstyle.engine import ConformanceReport, RunReport
from cstyle.rules.base import Violation

SEVERITY_COLORS = {"error": "red", "warning": "yellow"}


def render_human(report: RunReport) -> str:
    """Render a compact colorized summary."""
    lines: list[str] = []
    for violation in report.violations:
        severity = click.style(violation.severity, fg=SEVERITY_COLORS[violation.severity])
        lines.append(
            f"{violation.file}:{violation.line}:{violation.column}: {severity} "
            f"[{violation.rule_id}] {violation.message}"
        )

    for unit in report.reports:
        for error in unit.errors:
            lines.append(click.style(f"{unit.unit}: {error}", fg="red"))
        if unit.status == "cancelled":
            lines.append(click.style(f"{unit.unit}: cancelled", fg="yellow"))

    errors, warnings = _severity_counts(report.violations)
    passed = sum(1 for unit in report.reports if unit.passed)
    color = "green" if report.exit_code == 0 else "red"
    lines.append(
        click.style(
            f"{len(report.reports)} units checked, {passed} passed: "
            f"{errors} errors, {warnings} warnings",
            fg=color,
            bold=True,
        )
    )
    return "\n".join(lines)


def render_json(report: RunReport) -> str:
    """Render stable JSON output for CI and automation."""
    return json.dumps(build_json_payload(report), sort_keys=True)


def build_json_payload(report: RunReport) -> dict[str, Any]:
    """Build stable JSON payload; identical input always yields identical output."""
    errors, warnings = _severity_counts(report.violations)
    return {
        "units": [_serialize_unit(unit) for unit in report.reports],
        "violations": [violation.to_dict() for violation in report.violations],
        "summary": {
            "units": len(report.reports),
            "passed": sum(1 for unit in report.reports if unit.passed),
            "errors": errors,
            "warnings": warnings,
            "exit_code": report.exit_code,
        },
        "meta": {"version": __version__},
    }


def _serialize_unit(unit: ConformanceReport) -> dict[str, Any]:
    return {
        "unit": unit.unit,
        "files": list(unit.files),
        "status": unit.status,
        "errors": list(unit.errors),
        "violation_count": len(unit.violations),
    }


def _severity_counts(violations: list[Violation]) -> tuple[int, int]:
    errors = sum(1 for violation in violations if violation.severity == "error")
    return (errors, len(violations) - errors)
