"""Base rule classes, violation model and the read-only views rules evaluate."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from cstyle.lexer import Token
from cstyle.tracker import ContextSnapshot, TrackerOutcome

Severity = Literal["error", "warning"]
Role = Literal["header", "source"]
RuleHook = Literal["token", "file", "unit"]


class RuleConfigError(ValueError):
    """Raised when a rule set names unknown rules or carries invalid options."""


@dataclass(frozen=True, slots=True)
class Violation:
    """A single convention violation at a file position."""

    rule_id: str
    severity: Severity
    file: str
    line: int
    column: int
    message: str

    def sort_key(self) -> tuple[str, int, int, str, str]:
        return (self.file, self.line, self.column, self.rule_id, self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "severity": self.severity,
            "file": self.file,
            "line": self.line,
            "column": self.column,
            "message": self.message,
        }


@dataclass(frozen=True, slots=True, eq=False)
class FileView:
    """Immutable tokenized view of one file."""

    path: str
    role: Role
    text: str
    lines: tuple[str, ...]
    tokens: tuple[Token, ...]
    partners: Mapping[int, int] = field(default_factory=dict)

    @property
    def last_line(self) -> int:
        return max(1, len(self.lines))

    def starts_line(self, index: int) -> bool:
        """True when only blanks precede the token at ``index`` on its line."""
        position = index - 1
        while position >= 0:
            kind = self.tokens[position].kind
            if kind == "newline":
                return True
            if kind != "whitespace":
                return False
            position -= 1
        return True

    def token_starts_line(self, token: Token) -> bool:
        line_start = self.text.rfind("\n", 0, token.offset) + 1
        return not self.text[line_start : token.offset].strip(" \t\f\v\r")

    def ends_line(self, index: int) -> bool:
        """True when only blanks or comments follow the token at ``index`` on its line."""
        position = index + 1
        while position < len(self.tokens):
            token = self.tokens[position]
            if token.kind == "newline":
                return True
            if token.kind not in {"whitespace", "comment"} or "\n" in token.text:
                return False
            position += 1
        return True


@dataclass(frozen=True, slots=True, eq=False)
class ScannedFile:
    """A file after the forward pass, handed to file and unit rules."""

    view: FileView
    outcome: TrackerOutcome

    @property
    def path(self) -> str:
        return self.view.path

    @property
    def role(self) -> Role:
        return self.view.role


@dataclass(frozen=True, slots=True)
class TokenWindow:
    """Cursor over a file's tokens centred on the token being visited."""

    view: FileView
    index: int

    @property
    def token(self) -> Token:
        return self.view.tokens[self.index]

    def previous(self) -> Token | None:
        return self.view.tokens[self.index - 1] if self.index > 0 else None

    def next(self) -> Token | None:
        position = self.index + 1
        return self.view.tokens[position] if position < len(self.view.tokens) else None

    def previous_significant(self, count: int = 1) -> Token | None:
        position = self.index - 1
        while position >= 0:
            token = self.view.tokens[position]
            if token.is_significant:
                count -= 1
                if count == 0:
                    return token
            position -= 1
        return None

    def next_significant(self, count: int = 1) -> Token | None:
        position = self.index + 1
        while position < len(self.view.tokens):
            token = self.view.tokens[position]
            if token.is_significant:
                count -= 1
                if count == 0:
                    return token
            position += 1
        return None

    def partner(self) -> Token | None:
        position = self.view.partners.get(self.index)
        return self.view.tokens[position] if position is not None else None

    def starts_line(self) -> bool:
        return self.view.starts_line(self.index)

    def ends_line(self) -> bool:
        return self.view.ends_line(self.index)


@dataclass(frozen=True, slots=True)
class RuleOptions:
    """Resolved options for one rule instance."""

    max_line_width: int = 80
    indent_width: int = 4
    naming: Mapping[str, str] = field(default_factory=dict)
    values: Mapping[str, Any] = field(default_factory=dict)


class Rule(Protocol):
    """Protocol shared by every catalog rule."""

    rule_id: str
    category: str
    severity: Severity
    hook: RuleHook


class RuleBase:
    rule_id = ""
    category = ""
    severity: Severity = "warning"
    hook: RuleHook = "token"
    option_defaults: dict[str, Any] = {}

    def __init__(self, options: RuleOptions | None = None) -> None:
        self.options = options or RuleOptions()

    def option(self, name: str) -> Any:
        return self.options.values.get(name, self.option_defaults[name])

    def violation(self, path: str, line: int, column: int, message: str) -> Violation:
        return Violation(
            rule_id=self.rule_id,
            severity=self.severity,
            file=path,
            line=line,
            column=column,
            message=message,
        )

    def at_token(self, path: str, token: Token, message: str) -> Violation:
        return self.violation(path, token.line, token.column, message)


class TokenRule(RuleBase):
    """Evaluated once per token during the forward pass."""

    hook: RuleHook = "token"
    token_kinds: frozenset[str] = frozenset()

    def visit(self, window: TokenWindow, context: ContextSnapshot) -> list[Violation]:
        raise NotImplementedError


class FileRule(RuleBase):
    """Evaluated once per file after the forward pass."""

    hook: RuleHook = "file"

    def check_file(self, scanned: ScannedFile) -> list[Violation]:
        raise NotImplementedError


class UnitRule(RuleBase):
    """Evaluated once per unit when both its header and source were scanned."""

    hook: RuleHook = "unit"

    def check_unit(self, header: ScannedFile, source: ScannedFile) -> list[Violation]:
        raise NotImplementedError
