"""Conformance engine: scans units and runs the rule catalog over them."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from threading import Event
from typing import Literal

from cstyle.lexer import Token, tokenize
from cstyle.rules import RuleSet, build_rules
from cstyle.rules.base import (
    FileRule,
    FileView,
    Rule,
    ScannedFile,
    TokenRule,
    TokenWindow,
    UnitRule,
    Violation,
)
from cstyle.tracker import StructuralTracker, lookahead
from cstyle.units import SourceFile, SourceUnit

logger = logging.getLogger(__name__)

UnitStatus = Literal["passed", "failed", "error", "cancelled"]

CANCEL_CHECK_INTERVAL = 256
DEFAULT_WORKERS = 4


class CheckCancelled(Exception):
    """Raised inside a scan when the cancel signal is set."""


@dataclass(frozen=True, slots=True)
class ConformanceReport:
    """Outcome of checking one unit."""

    unit: str
    files: tuple[str, ...]
    violations: tuple[Violation, ...]
    errors: tuple[str, ...] = ()
    status: UnitStatus = "passed"

    @property
    def passed(self) -> bool:
        return self.status == "passed"


@dataclass(frozen=True, slots=True)
class RunReport:
    """Merged outcome of checking many units."""

    reports: tuple[ConformanceReport, ...]

    @property
    def violations(self) -> list[Violation]:
        merged = [violation for report in self.reports for violation in report.violations]
        return sorted(merged, key=Violation.sort_key)

    @property
    def exit_code(self) -> int:
        return 0 if all(report.passed for report in self.reports) else 1


def check(
    unit: SourceUnit,
    rule_set: RuleSet | None = None,
    *,
    cancel: Event | None = None,
) -> ConformanceReport:
    """Check one unit. Raises RuleConfigError before reading any file."""
    rules = build_rules(rule_set)
    return _check_unit(unit, rules, cancel)


def check_units(
    units: Iterable[SourceUnit],
    rule_set: RuleSet | None = None,
    *,
    workers: int = DEFAULT_WORKERS,
    cancel: Event | None = None,
) -> RunReport:
    """Check units concurrently; results are ordered by unit name."""
    rules = build_rules(rule_set)
    ordered = sorted(units, key=lambda unit: unit.name)
    if not ordered:
        return RunReport(reports=())

    with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
        futures: list[Future[ConformanceReport]] = [
            executor.submit(_check_unit, unit, rules, cancel) for unit in ordered
        ]
        reports = tuple(future.result() for future in futures)
    return RunReport(reports=reports)


def scan_file(
    source: SourceFile,
    text: str,
    rules: Sequence[Rule],
    *,
    cancel: Event | None = None,
) -> tuple[ScannedFile, list[Violation]]:
    """Run the forward pass and the token and file rules over one file."""
    tokens = tuple(tokenize(text))
    view = FileView(
        path=source.path,
        role=source.role,
        text=text,
        lines=split_lines(text),
        tokens=tokens,
        partners=match_brackets(tokens),
    )

    dispatch: dict[str, list[TokenRule]] = {}
    for rule in rules:
        if isinstance(rule, TokenRule):
            for kind in rule.token_kinds:
                dispatch.setdefault(kind, []).append(rule)

    tracker = StructuralTracker(role=source.role)
    upcoming = lookahead(tokens)
    violations: list[Violation] = []
    for index, token in enumerate(tokens):
        if cancel is not None and index % CANCEL_CHECK_INTERVAL == 0 and cancel.is_set():
            raise CheckCancelled(source.path)
        context = tracker.feed(token, upcoming[index])
        if context is None:
            continue
        interested = dispatch.get(token.kind)
        if not interested:
            continue
        window = TokenWindow(view=view, index=index)
        for rule in interested:
            violations.extend(rule.visit(window, context))

    scanned = ScannedFile(view=view, outcome=tracker.finish())
    for rule in rules:
        if isinstance(rule, FileRule):
            violations.extend(rule.check_file(scanned))
    return (scanned, violations)


def split_lines(text: str) -> tuple[str, ...]:
    """Physical lines without terminators; a trailing newline adds no line."""
    lines = [line[:-1] if line.endswith("\r") else line for line in text.split("\n")]
    if lines and lines[-1] == "":
        lines.pop()
    return tuple(lines)


def match_brackets(tokens: Sequence[Token]) -> dict[int, int]:
    """Pair the indices of matching braces and square brackets, both directions."""
    partners: dict[int, int] = {}
    stacks: dict[str, list[int]] = {"{": [], "[": []}
    closers = {"}": "{", "]": "["}
    for index, token in enumerate(tokens):
        if token.kind != "punctuator":
            continue
        text = token.text
        if text in stacks:
            stacks[text].append(index)
        elif text in closers:
            stack = stacks[closers[text]]
            if stack:
                opening = stack.pop()
                partners[opening] = index
                partners[index] = opening
    return partners


def _check_unit(
    unit: SourceUnit,
    rules: Sequence[Rule],
    cancel: Event | None,
) -> ConformanceReport:
    files = tuple(item.path for item in unit.files)
    if cancel is not None and cancel.is_set():
        logger.info("Skipping unit %s: run cancelled", unit.name)
        return ConformanceReport(unit=unit.name, files=files, violations=(), status="cancelled")

    logger.debug("Checking unit %s (%s)", unit.name, ", ".join(files))
    violations: list[Violation] = []
    errors: list[str] = []
    scanned: dict[str, ScannedFile] = {}
    try:
        for item in unit.files:
            try:
                text = item.read()
            except OSError as exc:
                logger.warning("Cannot read %s: %s", item.path, exc)
                errors.append(f"{item.path}: {exc}")
                continue
            result, found = scan_file(item, text, rules, cancel=cancel)
            scanned[item.role] = result
            violations.extend(found)
    except CheckCancelled:
        logger.info("Cancelled unit %s", unit.name)
        return ConformanceReport(unit=unit.name, files=files, violations=(), status="cancelled")

    header = scanned.get("header")
    source = scanned.get("source")
    if header is not None and source is not None:
        for rule in rules:
            if isinstance(rule, UnitRule):
                violations.extend(rule.check_unit(header, source))

    ordered = tuple(sorted(set(violations), key=Violation.sort_key))
    if errors:
        status: UnitStatus = "error"
    elif any(violation.severity == "error" for violation in ordered):
        status = "failed"
    else:
        status = "passed"
    logger.debug("Finished unit %s: %s, %d violations", unit.name, status, len(ordered))
    return ConformanceReport(
        unit=unit.name,
        files=files,
        violations=ordered,
        errors=tuple(errors),
        status=status,
    )
