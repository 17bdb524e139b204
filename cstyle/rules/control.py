"""Control-flow rules driven by tracker events."""

from __future__ import annotations

from cstyle.rules.base import TokenRule, TokenWindow, Violation
from cstyle.tracker import (
    CaseTerminated,
    ContextSnapshot,
    FallthroughCandidate,
    HeaderClosed,
    ScopeOpened,
    SwitchClosed,
)

RELATIONAL_OPERATORS = frozenset({"<", ">", "<=", ">=", "==", "!="})


class BraceRequiredRule(TokenRule):
    """Bodies of if, else, for, while and do must be enclosed in braces."""

    rule_id = "brace-required"
    category = "control"
    severity = "warning"
    token_kinds = frozenset({"punctuator", "keyword"})

    def visit(self, window: TokenWindow, context: ContextSnapshot) -> list[Violation]:
        token = window.token
        keyword = None
        if token.text == ")":
            header = next(
                (event for event in context.events if isinstance(event, HeaderClosed)), None
            )
            if header is None or header.do_while or header.keyword.text == "switch":
                return []
            keyword = header.keyword
        elif token.text in {"else", "do"}:
            keyword = token
        else:
            return []

        body = window.next_significant()
        if body is None or body.text == "{":
            return []
        if keyword.text == "else" and body.text == "if":
            return []
        return [
            self.at_token(
                window.view.path,
                keyword,
                f"Body of '{keyword.text}' must be enclosed in braces.",
            )
        ]


class NestingDepthRule(TokenRule):
    """Conditional if/else nesting must not exceed the configured depth."""

    rule_id = "nesting-depth"
    category = "control"
    severity = "warning"
    token_kinds = frozenset({"punctuator"})
    option_defaults = {"max_depth": 2}

    def visit(self, window: TokenWindow, context: ContextSnapshot) -> list[Violation]:
        if window.token.text != "{":
            return []
        opened = next((event for event in context.events if isinstance(event, ScopeOpened)), None)
        if opened is None or opened.frame.kind not in {"if", "else"}:
            return []
        limit = self.option("max_depth")
        depth = context.conditional_depth
        if depth <= limit:
            return []
        anchor = opened.frame.keyword_token or window.token
        return [
            self.at_token(
                window.view.path,
                anchor,
                f"Conditional nesting depth {depth} exceeds the maximum of {limit}.",
            )
        ]


class FallthroughRule(TokenRule):
    """Each non-empty case ends in a terminator or carries a fall-through comment."""

    rule_id = "fallthrough"
    category = "control"
    severity = "error"
    token_kinds = frozenset({"keyword", "punctuator"})

    def visit(self, window: TokenWindow, context: ContextSnapshot) -> list[Violation]:
        return [
            self.at_token(
                window.view.path,
                event.case_token,
                "Case falls through without 'break' or a fall-through comment.",
            )
            for event in context.events
            if isinstance(event, FallthroughCandidate)
        ]


class SwitchDefaultRule(TokenRule):
    """Every switch carries a default label."""

    rule_id = "switch-default"
    category = "control"
    severity = "warning"
    token_kinds = frozenset({"punctuator"})

    def visit(self, window: TokenWindow, context: ContextSnapshot) -> list[Violation]:
        violations: list[Violation] = []
        for event in context.events:
            if not isinstance(event, SwitchClosed) or event.has_default:
                continue
            anchor = event.switch_token or event.close_token
            violations.append(
                self.at_token(window.view.path, anchor, "Switch statement has no 'default' label.")
            )
        return violations


class CaseBreakAlignmentRule(TokenRule):
    """A terminating break lines up with the statements of its case."""

    rule_id = "case-break-alignment"
    category = "control"
    severity = "warning"
    token_kinds = frozenset({"keyword", "punctuator"})

    def visit(self, window: TokenWindow, context: ContextSnapshot) -> list[Violation]:
        violations: list[Violation] = []
        for event in context.events:
            if not isinstance(event, CaseTerminated):
                continue
            terminator = event.terminator
            first = event.first_statement
            if terminator is None or first is None or terminator is first:
                continue
            if terminator.text != "break" or terminator.line == first.line:
                continue
            view = window.view
            if not (view.token_starts_line(first) and view.token_starts_line(terminator)):
                continue
            if terminator.column != first.column:
                violations.append(
                    self.at_token(
                        window.view.path,
                        terminator,
                        f"'break' at column {terminator.column} is not aligned with the "
                        f"case statements at column {first.column}.",
                    )
                )
        return violations


class MagicNumberInLoopRule(TokenRule):
    """Loop bounds use named constants rather than numeric literals."""

    rule_id = "magic-number-in-loop"
    category = "control"
    severity = "warning"
    token_kinds = frozenset({"literal"})
    option_defaults = {"allowed": "0"}

    def visit(self, window: TokenWindow, context: ContextSnapshot) -> list[Violation]:
        token = window.token
        if not context.loop_condition or not token.is_number:
            return []
        before = window.previous_significant()
        after = window.next_significant()
        compared = (before is not None and before.text in RELATIONAL_OPERATORS) or (
            after is not None and after.text in RELATIONAL_OPERATORS
        )
        if not compared:
            return []
        allowed = {item.strip().lower() for item in str(self.option("allowed")).split(",")}
        if token.text.lower().rstrip("ul") in allowed:
            return []
        return [
            self.at_token(
                window.view.path,
                token,
                f"Loop bound uses the literal {token.text}; use a named constant.",
            )
        ]

