"""Helpers for running the engine over in-memory C text in tests."""

from __future__ import annotations

from cstyle.engine import check
from cstyle.lexer import tokenize
from cstyle.rules import RuleSet, RuleSetting, known_rule_ids
from cstyle.rules.base import Violation
from cstyle.tracker import ContextSnapshot, StructuralTracker, TrackerOutcome, lookahead
from cstyle.units import SourceUnit, source_file


def only(*rule_ids: str, **rule_set_fields: object) -> RuleSet:
    """RuleSet enabling exactly ``rule_ids``."""
    settings = tuple(
        (rule_id, RuleSetting(enabled=rule_id in rule_ids)) for rule_id in known_rule_ids()
    )
    return RuleSet(settings=settings, **rule_set_fields)  # type: ignore[arg-type]


def check_text(
    text: str,
    *rule_ids: str,
    path: str = "sample.c",
    **rule_set_fields: object,
) -> list[Violation]:
    """Check one in-memory file with only the given rules enabled."""
    item = source_file(path, text=text)
    if item.role == "header":
        unit = SourceUnit(name=path, header=item)
    else:
        unit = SourceUnit(name=path, source=item)
    report = check(unit, only(*rule_ids, **rule_set_fields))
    return list(report.violations)


def check_pair(
    header_text: str,
    source_text: str,
    *rule_ids: str,
    header_path: str = "uart.h",
    source_path: str = "uart.c",
) -> list[Violation]:
    unit = SourceUnit(
        name="uart",
        header=source_file(header_path, text=header_text),
        source=source_file(source_path, text=source_text),
    )
    return list(check(unit, only(*rule_ids)).violations)


def track(text: str, *, role: str = "source") -> tuple[list[ContextSnapshot], TrackerOutcome]:
    """Feed every token of ``text`` through a tracker and collect the snapshots."""
    tokens = list(tokenize(text))
    upcoming = lookahead(tokens)
    tracker = StructuralTracker(role=role)
    snapshots: list[ContextSnapshot] = []
    for index, token in enumerate(tokens):
        snapshot = tracker.feed(token, upcoming[index])
        if snapshot is not None:
            snapshots.append(snapshot)
    return (snapshots, tracker.finish())


def snapshot_for(
    snapshots: list[ContextSnapshot], text: str, occurrence: int = 1
) -> ContextSnapshot:
    """Return the snapshot of the ``occurrence``-th token whose text is ``text``."""
    seen = 0
    for snapshot in snapshots:
        if snapshot.token.text == text:
            seen += 1
            if seen == occurrence:
                return snapshot
    raise AssertionError(f"token {text!r} #{occurrence} not found")


def lines_of(violations: list[Violation], rule_id: str) -> list[int]:
    return [violation.line for violation in violations if violation.rule_id == rule_id]
