"""Lexical and layout rules."""

from __future__ import annotations

from collections.abc import Iterator
from re import compile

from cstyle.lexer import Token
from cstyle.rules.base import FileRule, ScannedFile, TokenRule, TokenWindow, Violation
from cstyle.tracker import ContextSnapshot, ScopeOpened

QUOTED_SPAN_RE = compile(r"\"(?:\\.|[^\"\\\n])*\"|'(?:\\.|[^'\\\n])*'")

BINARY_OPERATORS = frozenset(
    {
        "=",
        "+=",
        "-=",
        "*=",
        "/=",
        "%=",
        "&=",
        "|=",
        "^=",
        "<<=",
        ">>=",
        "==",
        "!=",
        "<",
        ">",
        "<=",
        ">=",
        "&&",
        "||",
        "+",
        "-",
        "/",
        "%",
        "|",
        "^",
        "<<",
        ">>",
        "?",
    }
)
UNARY_CAPABLE = frozenset({"+", "-"})
TIGHT_OPERATORS = frozenset({"->", "."})
CAST_KEYWORDS = frozenset(
    {
        "char",
        "short",
        "int",
        "long",
        "float",
        "double",
        "signed",
        "unsigned",
        "void",
        "const",
        "volatile",
        "struct",
        "union",
        "enum",
        "_Bool",
    }
)
SPACED_KEYWORDS = frozenset({"if", "for", "while", "switch"})
STATEMENT_BOUNDARIES = frozenset({";", "{", "}", ":"})
BRACED_CONSTRUCTS = {
    "function": "function body",
    "if": "'if' body",
    "else": "'else' body",
    "loop": "loop body",
    "switch": "'switch' body",
}


class LexErrorRule(TokenRule):
    """Reports malformed tokens the lexer recovered from."""

    rule_id = "lex-error"
    category = "layout"
    severity = "error"
    token_kinds = frozenset({"lex_error"})

    def visit(self, window: TokenWindow, context: ContextSnapshot) -> list[Violation]:
        token = window.token
        return [self.at_token(window.view.path, token, token.message or "Malformed token.")]


class LineWidthRule(FileRule):
    """Physical lines must not exceed the configured byte width."""

    rule_id = "line-width"
    category = "layout"
    severity = "warning"

    def check_file(self, scanned: ScannedFile) -> list[Violation]:
        limit = self.options.max_line_width
        violations: list[Violation] = []
        for number, line in enumerate(scanned.view.lines, start=1):
            width = len(line.encode("utf-8"))
            if width > limit:
                violations.append(
                    self.violation(
                        scanned.path,
                        number,
                        limit + 1,
                        f"Line is {width} bytes long; maximum is {limit}.",
                    )
                )
        return violations


class TabForbiddenRule(FileRule):
    """Tab characters are not allowed outside string and character literals."""

    rule_id = "tab-forbidden"
    category = "layout"
    severity = "error"

    def check_file(self, scanned: ScannedFile) -> list[Violation]:
        violations: list[Violation] = []
        for token in scanned.view.tokens:
            if "\t" not in token.text or _is_literal_text(token):
                continue
            skipped = _quoted_spans(token) if token.kind == "directive" else []
            for offset, line, column in _char_positions(token, "\t"):
                if any(start <= offset < end for start, end in skipped):
                    continue
                violations.append(
                    self.violation(scanned.path, line, column, "Tab character; indent with spaces.")
                )
        return violations


class TrailingWhitespaceRule(FileRule):
    """Lines must not end with blanks."""

    rule_id = "trailing-whitespace"
    category = "layout"
    severity = "warning"

    def check_file(self, scanned: ScannedFile) -> list[Violation]:
        violations: list[Violation] = []
        for number, line in enumerate(scanned.view.lines, start=1):
            stripped = line.rstrip(" \t\f\v")
            if stripped != line:
                violations.append(
                    self.violation(
                        scanned.path, number, len(stripped) + 1, "Trailing whitespace."
                    )
                )
        return violations


class IndentWidthRule(FileRule):
    """Statement indentation must be a multiple of the configured indent width."""

    rule_id = "indent-width"
    category = "layout"
    severity = "warning"

    def check_file(self, scanned: ScannedFile) -> list[Violation]:
        width = self.options.indent_width
        tokens = scanned.view.tokens
        violations: list[Violation] = []
        previous: Token | None = None
        paren_depth = 0

        for index, token in enumerate(tokens):
            if not token.is_significant:
                continue
            starts_statement = previous is None or previous.text in STATEMENT_BOUNDARIES
            if starts_statement and paren_depth == 0 and scanned.view.starts_line(index):
                indent = _leading_blanks(tokens, index)
                if "\t" not in indent and len(indent) % width:
                    violations.append(
                        self.violation(
                            scanned.path,
                            token.line,
                            1,
                            f"Indentation of {len(indent)} columns is not a multiple of {width}.",
                        )
                    )
            if token.text == "(":
                paren_depth += 1
            elif token.text == ")" and paren_depth:
                paren_depth -= 1
            previous = token
        return violations


class BracePlacementRule(TokenRule):
    """Braces of functions and control statements open on their own line, aligned with the close."""

    rule_id = "brace-placement"
    category = "layout"
    severity = "warning"
    token_kinds = frozenset({"punctuator"})

    def visit(self, window: TokenWindow, context: ContextSnapshot) -> list[Violation]:
        if window.token.text != "{":
            return []
        opened = next((event for event in context.events if isinstance(event, ScopeOpened)), None)
        if opened is None or opened.frame.kind not in BRACED_CONSTRUCTS:
            return []

        path = window.view.path
        token = window.token
        label = BRACED_CONSTRUCTS[opened.frame.kind]
        if not (window.starts_line() and window.ends_line()):
            message = f"Opening brace of {label} must be on its own line."
            return [self.at_token(path, token, message)]

        closing = window.partner()
        if closing is not None and closing.column != token.column:
            return [
                self.at_token(
                    path,
                    closing,
                    f"Closing brace of {label} is not aligned with its opening brace "
                    f"at line {token.line}, column {token.column}.",
                )
            ]
        return []


class SpaceAroundOperatorRule(TokenRule):
    """Binary operators take one blank on each side; member access and subscripts take none."""

    rule_id = "space-around-operator"
    category = "layout"
    severity = "warning"
    token_kinds = frozenset({"punctuator"})

    def visit(self, window: TokenWindow, context: ContextSnapshot) -> list[Violation]:
        text = window.token.text
        if text in BINARY_OPERATORS:
            return self._check_binary(window)
        if text in TIGHT_OPERATORS:
            return self._check_tight(window)
        if text == "[":
            return self._check_subscript(window)
        if text == "]":
            return self._check_close_subscript(window)
        if text == "(":
            return self._check_call(window)
        return []

    def _check_binary(self, window: TokenWindow) -> list[Violation]:
        text = window.token.text
        operand = window.previous_significant()
        if operand is None:
            return []
        if text in UNARY_CAPABLE and (not _is_operand_end(operand) or _closes_cast(window)):
            return []
        before = window.previous()
        after = window.next()
        spaced_before = before is not None and before.kind in {"whitespace", "newline"}
        spaced_after = after is None or after.kind in {"whitespace", "newline"}
        if spaced_before and spaced_after:
            return []
        return [
            self.at_token(
                window.view.path,
                window.token,
                f"Operator '{text}' must have one blank on each side.",
            )
        ]

    def _check_tight(self, window: TokenWindow) -> list[Violation]:
        text = window.token.text
        operand = window.previous_significant()
        if text == "." and (operand is None or operand.text in {"{", ",", "="}):
            return []
        before = window.previous()
        after = window.next()
        if (before is not None and before.kind == "whitespace" and not window.starts_line()) or (
            after is not None and after.kind == "whitespace"
        ):
            return [
                self.at_token(
                    window.view.path,
                    window.token,
                    f"No blank allowed around '{text}'.",
                )
            ]
        return []

    def _check_subscript(self, window: TokenWindow) -> list[Violation]:
        operand = window.previous_significant()
        if operand is None or not _is_operand_end(operand):
            return []
        before = window.previous()
        after = window.next()
        if (before is not None and before.kind == "whitespace") or (
            after is not None and after.kind == "whitespace"
        ):
            return [self.at_token(window.view.path, window.token, "No blank allowed around '['.")]
        return []

    def _check_close_subscript(self, window: TokenWindow) -> list[Violation]:
        opening = window.partner()
        if opening is None:
            return []
        before = window.previous()
        if before is not None and before.kind == "whitespace" and not window.starts_line():
            return [self.at_token(window.view.path, window.token, "No blank allowed before ']'.")]
        return []

    def _check_call(self, window: TokenWindow) -> list[Violation]:
        before = window.previous()
        callee = window.previous_significant()
        if before is None or before.kind != "whitespace" or callee is None:
            return []
        if callee.kind != "identifier" or window.starts_line():
            return []
        return [
            self.at_token(
                window.view.path,
                window.token,
                f"No blank allowed between '{callee.text}' and '('.",
            )
        ]


class KeywordSpacingRule(TokenRule):
    """Control keywords are separated from their '(' by exactly one blank."""

    rule_id = "keyword-spacing"
    category = "layout"
    severity = "warning"
    token_kinds = frozenset({"keyword"})

    def visit(self, window: TokenWindow, context: ContextSnapshot) -> list[Violation]:
        token = window.token
        if token.text not in SPACED_KEYWORDS:
            return []
        following = window.next_significant()
        if following is None or following.text != "(":
            return []
        after = window.next()
        if after is not None and after.kind == "whitespace" and after.text == " ":
            return []
        return [
            self.at_token(
                window.view.path,
                token,
                f"Expected exactly one blank between '{token.text}' and '('.",
            )
        ]


class CommaSpacingRule(TokenRule):
    """Commas take no blank before and a blank or line break after."""

    rule_id = "comma-spacing"
    category = "layout"
    severity = "warning"
    token_kinds = frozenset({"punctuator"})

    def visit(self, window: TokenWindow, context: ContextSnapshot) -> list[Violation]:
        if window.token.text != ",":
            return []
        path = window.view.path
        before = window.previous()
        after = window.next()
        if before is not None and before.kind == "whitespace" and not window.starts_line():
            return [self.at_token(path, window.token, "No blank allowed before ','.")]
        if after is not None and after.kind not in {"whitespace", "newline", "comment"}:
            return [self.at_token(path, window.token, "Expected a blank after ','.")]
        return []


def _closes_cast(window: TokenWindow) -> bool:
    """True when the operand before the operator is a ``(type)`` cast."""
    tokens = window.view.tokens
    inner: list[Token] = []
    closed = False
    position = window.index - 1
    while position >= 0:
        token = tokens[position]
        position -= 1
        if not token.is_significant:
            continue
        if not closed:
            if token.text != ")":
                return False
            closed = True
            continue
        if token.text == "(":
            break
        if not (token.kind == "identifier" or token.text in CAST_KEYWORDS or token.text == "*"):
            return False
        inner.append(token)
    else:
        return False

    if not any(
        (token.kind == "keyword" and token.text not in {"const", "volatile"})
        or token.text.endswith("_t")
        for token in inner
    ):
        return False
    while position >= 0 and not tokens[position].is_significant:
        position -= 1
    if position < 0:
        return True
    before = tokens[position]
    if before.kind == "identifier" or before.text in {")", "]", "sizeof", "_Alignof"}:
        return False
    return True


def _is_operand_end(token: Token) -> bool:
    return token.kind in {"identifier", "literal"} or token.text in {")", "]"}


def _is_literal_text(token: Token) -> bool:
    if token.is_quoted:
        return True
    return token.kind == "lex_error" and token.message.startswith(
        ("Unterminated string", "Unterminated character")
    )


def _quoted_spans(token: Token) -> list[tuple[int, int]]:
    return [match.span() for match in QUOTED_SPAN_RE.finditer(token.text)]


def _char_positions(token: Token, char: str) -> Iterator[tuple[int, int, int]]:
    line = token.line
    column = token.column
    for offset, current in enumerate(token.text):
        if current == char:
            yield (offset, line, column)
        if current == "\n":
            line += 1
            column = 1
        else:
            column += 1


def _leading_blanks(tokens: tuple[Token, ...], index: int) -> str:
    if index > 0 and tokens[index - 1].kind == "whitespace":
        return tokens[index - 1].text
    return ""
